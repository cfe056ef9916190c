"""The generation pipeline.

normalize -> context (names, types, issues) -> client / server / router /
security synthesizers -> type declarations -> split plan. ``generate`` does
no file or network I/O; see render.write_files and loader.load_document for
the host side.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict

from . import splitter
from .client import ClientSynthesizer
from .config import GeneratorConfig
from .context import GenerationContext
from .errors import DocumentError, GenerationError, StrictModeError
from .issues import Issue, IssueLog, Severity, SourceLocation
from .models import GeneratedDeclaration, NormalizedDocument, Operation, SecurityScheme
from .naming import NamingRegistry
from .normalizer import normalize
from .router import RouterSynthesizer
from .security import SecuritySynthesizer
from .server import ServerSynthesizer
from .splitter import Bucket, Thresholds

logger = logging.getLogger(__name__)


class GenerateResult(BaseModel):
    """Everything one run produced, ready to render."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    package_name: str
    title: str = ""
    version: str = ""
    description: str = ""
    dialect: str = ""
    config: GeneratorConfig
    operations: tuple[Operation, ...] = ()
    security_schemes: dict[str, SecurityScheme] = {}
    buckets: list[Bucket] = []
    issues: list[Issue] = []
    counts: dict[str, int] = {}
    operation_count: int = 0
    type_count: int = 0
    file_count: int = 0
    generate_time: float = 0.0
    needs_split: bool = False
    generate_readme: bool = True

    @property
    def declarations(self) -> list[GeneratedDeclaration]:
        return [decl for bucket in self.buckets for decl in bucket.declarations]

    @property
    def critical_count(self) -> int:
        return self.counts.get(Severity.CRITICAL.value, 0)

    @property
    def warning_count(self) -> int:
        return self.counts.get(Severity.WARNING.value, 0)

    @property
    def info_count(self) -> int:
        return self.counts.get(Severity.INFO.value, 0)

    @property
    def has_critical_issues(self) -> bool:
        return self.critical_count > 0

    @property
    def has_warnings(self) -> bool:
        return self.warning_count > 0

    def get_bucket(self, name: str) -> Bucket | None:
        for bucket in self.buckets:
            if bucket.name == name:
                return bucket
        return None

    def section(self, section: str) -> list[GeneratedDeclaration]:
        """Declarations of one section, in bucket order."""
        return [decl for decl in self.declarations if decl.section == section]


def generate(
    document: Mapping[str, Any] | NormalizedDocument,
    config: GeneratorConfig | None = None,
    *,
    source_map: dict[str, SourceLocation] | None = None,
) -> GenerateResult:
    """Generate Go declarations for a parsed or normalized document.

    Raises DocumentError for unusable input, GenerationError when the
    requested output cannot be produced, and StrictModeError when strict
    mode rejects the collected issues.
    """
    config = config or GeneratorConfig()
    started = time.perf_counter()
    names = NamingRegistry()
    issues = IssueLog(source_map)

    if isinstance(document, NormalizedDocument):
        normalized = document
    elif isinstance(document, Mapping):
        normalized = normalize(dict(document), names=names, issues=issues)
    else:
        raise DocumentError(f"expected a mapping or NormalizedDocument, got {type(document).__name__}")
    logger.debug("normalized %s document: %d operations", normalized.dialect, len(normalized.operations))

    ctx = GenerationContext(normalized, config, names, issues)
    declarations: list[GeneratedDeclaration] = []

    if config.generate_client:
        declarations.extend(ClientSynthesizer(ctx).synthesize())
        logger.debug("client: %d declarations", len(declarations))

    if config.generate_server:
        if not ctx.operations and config.any_server_extension:
            message = "server extensions requested but the document has no operations"
            if config.strict_mode:
                raise GenerationError(message)
            issues.warning("paths", message)
        declarations.extend(ServerSynthesizer(ctx).synthesize())
        declarations.extend(RouterSynthesizer(ctx).synthesize())

    declarations.extend(SecuritySynthesizer(ctx).synthesize())

    # Types last: the synthesizers above register composite types on demand
    if config.generate_types:
        declarations.extend(ctx.types.declarations(ctx.type_groups()))

    thresholds = Thresholds(
        max_lines=config.max_lines_per_file,
        max_types=config.max_types_per_file,
        max_operations=config.max_operations_per_file,
    )
    split = splitter.plan(declarations, thresholds, ctx.strategy)

    kept = issues.issues(include_info=config.include_info)
    counts = {severity.value: sum(1 for i in kept if i.severity is severity) for severity in Severity}
    result = GenerateResult(
        package_name=config.package_name,
        title=normalized.title,
        version=normalized.version,
        description=normalized.description,
        dialect=normalized.dialect,
        config=config,
        operations=normalized.operations,
        security_schemes=normalized.security_schemes,
        buckets=split.buckets,
        issues=kept,
        counts=counts,
        operation_count=len(normalized.operations),
        type_count=len(ctx.types.definitions) if config.generate_types else 0,
        file_count=len(split.buckets) + (1 if config.generate_readme else 0),
        generate_time=time.perf_counter() - started,
        needs_split=split.needs_split,
        generate_readme=config.generate_readme,
    )
    logger.info(
        "generated %d files (%d operations, %d types) in %.3fs",
        result.file_count, result.operation_count, result.type_count, result.generate_time,
    )

    if config.strict_mode and (result.has_critical_issues or result.has_warnings):
        raise StrictModeError(result)
    return result
