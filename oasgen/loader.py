"""Load an API description document from disk or over HTTP.

JSON and YAML are both accepted (JSON is parsed as YAML when it is not
valid JSON, which covers documents with trailing commas removed by
tooling). The loader also builds a source map from dotted document paths
to line/column positions so issues can point back into the file.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

import httpx
import yaml
from pydantic import BaseModel, ConfigDict, Field

from .errors import LoadError
from .issues import SourceLocation

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "oasgen"
DEFAULT_TIMEOUT = 30.0


class LoadedDocument(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    source: str
    data: dict[str, Any]
    format: str
    size: int
    load_time: float
    source_map: dict[str, SourceLocation] = Field(default_factory=dict)


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def load_document(
    source: str | Path,
    *,
    user_agent: str | None = None,
    client: httpx.Client | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> LoadedDocument:
    """Read and parse a document from a file path or an http(s) URL."""
    start = time.perf_counter()
    source = str(source)
    if is_url(source):
        text = _fetch(source, user_agent or DEFAULT_USER_AGENT, client, timeout)
        name = source
    else:
        try:
            text = Path(source).read_text()
        except OSError as exc:
            raise LoadError(f"{source}: {exc.strerror or exc}") from exc
        name = Path(source).name

    data, fmt = parse_text(text, source)
    source_map = build_source_map(text, name)
    logger.debug("loaded %s (%s, %d bytes)", source, fmt, len(text))
    return LoadedDocument(
        source=source,
        data=data,
        format=fmt,
        size=len(text.encode()),
        load_time=time.perf_counter() - start,
        source_map=source_map,
    )


def _fetch(url: str, user_agent: str, client: httpx.Client | None, timeout: float) -> str:
    headers = {"User-Agent": user_agent, "Accept": "application/json, application/yaml, */*"}
    try:
        if client is not None:
            resp = client.get(url, headers=headers, follow_redirects=True)
        else:
            resp = httpx.get(url, headers=headers, timeout=timeout, follow_redirects=True)
        resp.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise LoadError(f"{url}: HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise LoadError(f"{url}: {exc}") from exc
    return resp.text


def parse_text(text: str, source: str = "<string>") -> tuple[dict[str, Any], str]:
    """Parse JSON or YAML text into a mapping. Returns (data, format)."""
    stripped = text.lstrip()
    fmt = "json" if stripped.startswith("{") else "yaml"
    try:
        if fmt == "json":
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                data = yaml.safe_load(text)
        else:
            data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise LoadError(f"{source}: invalid {fmt}: {exc}") from exc
    if not isinstance(data, dict):
        raise LoadError(f"{source}: document root must be a mapping")
    return data, fmt


def build_source_map(text: str, file: str = "") -> dict[str, SourceLocation]:
    """Map dotted key paths (``paths./pets.get``) to 1-based positions."""
    try:
        root = yaml.compose(text, Loader=yaml.SafeLoader)
    except yaml.YAMLError:
        return {}
    result: dict[str, SourceLocation] = {}
    if root is not None:
        _walk(root, "", file, result)
    return result


def _walk(node: yaml.Node, prefix: str, file: str, out: dict[str, SourceLocation]) -> None:
    if isinstance(node, yaml.MappingNode):
        for key_node, value_node in node.value:
            key = str(key_node.value)
            path = f"{prefix}.{key}" if prefix else key
            mark = key_node.start_mark
            out[path] = SourceLocation(line=mark.line + 1, column=mark.column + 1, file=file)
            _walk(value_node, path, file, out)
    elif isinstance(node, yaml.SequenceNode):
        for index, item in enumerate(node.value):
            path = f"{prefix}.{index}"
            mark = item.start_mark
            out[path] = SourceLocation(line=mark.line + 1, column=mark.column + 1, file=file)
            _walk(item, path, file, out)


def resolve_ref(document: dict[str, Any], ref: str) -> Any:
    """Resolve a local ``#/...`` JSON pointer.

    Raises KeyError when the pointer is external or does not resolve.
    """
    if not ref.startswith("#/"):
        raise KeyError(ref)
    node: Any = document
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if isinstance(node, dict) and part in node:
            node = node[part]
        elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
            node = node[int(part)]
        else:
            raise KeyError(ref)
    return node


def ref_name(ref: str) -> str:
    """Last segment of a reference: ``#/components/schemas/Pet`` -> ``Pet``."""
    return ref.rsplit("/", 1)[-1].replace("~1", "/").replace("~0", "~")
