"""Render templates and write generated output.

Declarations are rendered from macros in ``templates/<section>.go.j2``;
buckets are assembled into Go files (header, package clause, imports,
bodies) using pooled buffers.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any

import jinja2

from .bufpool import default_pool

if TYPE_CHECKING:
    from .generator import GenerateResult
    from .splitter import Bucket

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

GENERATED_HEADER = "// Code generated by oasgen. DO NOT EDIT."


def _strip_html(text: str) -> str:
    """Strip HTML tags, keeping line structure."""
    return re.sub(r"<[^>]+>", "", text)


def format_doc_comment(text: str, indent: str = "") -> str:
    """Render documentation as // lines, one per source line.

    Returns "" for empty text, otherwise the comment block with a trailing
    newline so it can sit directly above a declaration. A raw newline never
    escapes the comment.
    """
    text = _strip_html(text or "").strip()
    if not text:
        return ""
    lines = []
    for line in text.splitlines():
        line = line.rstrip()
        lines.append(f"{indent}// {line}" if line else f"{indent}//")
    return "\n".join(lines) + "\n"


def one_line(text: str) -> str:
    """Collapse all whitespace runs, newlines included, to single spaces."""
    return " ".join(str(text or "").split())


def go_string(value: str) -> str:
    """Quote a value as a Go interpreted string literal."""
    return json.dumps(str(value), ensure_ascii=False)


@lru_cache(maxsize=1)
def environment() -> jinja2.Environment:
    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["comment"] = format_doc_comment
    env.filters["gostr"] = go_string
    env.filters["oneline"] = one_line
    return env


def fragment(section: str, macro: str, **context: Any) -> str:
    """Render one macro of a section template, without surrounding blank lines."""
    template = environment().get_template(f"{section}.go.j2")
    return str(getattr(template.module, macro)(**context)).strip("\n")


def _import_block(imports: list[str]) -> str:
    std = [i for i in imports if "." not in i.split("/")[0]]
    external = [i for i in imports if i not in std]
    lines = [f'\t"{i}"' for i in std]
    if std and external:
        lines.append("")
    lines.extend(f'\t"{i}"' for i in external)
    return "import (\n" + "\n".join(lines) + "\n)\n"


def render_bucket(bucket: Bucket, package_name: str) -> str:
    """Assemble one bucket into Go source text."""
    imports = sorted({i for decl in bucket.declarations for i in decl.imports})
    size_hint = sum(len(decl.body) + 2 for decl in bucket.declarations) + 256
    with default_pool.borrow(size_hint) as buf:
        buf.write(GENERATED_HEADER + "\n\n")
        buf.write(f"package {package_name}\n")
        if imports:
            buf.write("\n" + _import_block(imports))
        for decl in bucket.declarations:
            buf.write("\n" + decl.body + "\n")
        return buf.getvalue()


def render_readme(result: GenerateResult) -> str:
    template = environment().get_template("README.md.j2")
    return template.render(result=result)


def render_files(result: GenerateResult) -> dict[str, str]:
    """File name -> content for every bucket (plus README.md when enabled)."""
    files = {bucket.file_name: render_bucket(bucket, result.package_name) for bucket in result.buckets}
    if result.generate_readme:
        files["README.md"] = render_readme(result)
    return files


def gofmt(source: str, name: str = "") -> str:
    """Run Go source through gofmt when it is on PATH.

    Templates do not align struct fields or composite literals; gofmt does.
    The source is returned unchanged when gofmt is missing or rejects it.
    """
    binary = shutil.which("gofmt")
    if binary is None:
        logger.debug("gofmt not found, %s left unformatted", name)
        return source
    proc = subprocess.run([binary], input=source, capture_output=True, text=True, check=False)
    if proc.returncode != 0:
        logger.warning("gofmt failed on %s: %s", name, proc.stderr.strip())
        return source
    return proc.stdout


def write_files(result: GenerateResult, output_dir: Path, *, format_go: bool = True) -> list[Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, content in render_files(result).items():
        if format_go and name.endswith(".go"):
            content = gofmt(content, name)
        path = output_dir / name
        path.write_text(content)
        written.append(path)
        logger.info("wrote %s (%d bytes)", path, len(content))
    return written
