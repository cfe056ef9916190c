"""Partition generated declarations into output files.

Grouping (when a split is needed):
  1. by the operation's first tag
  2. else by the first literal path segment (/pets/{id} -> pets)
  3. else "default"

Declarations not tied to one group (infrastructure, types used by several
groups) go to the section's shared bucket. A group bucket closes when the
next unit would push it past a threshold; an empty bucket always takes
its first unit so oversized operations still get a home.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from pydantic import BaseModel, ConfigDict, Field

from .models import SHARED_GROUP, DeclarationKind, GeneratedDeclaration, Operation
from .naming import path_prefix, to_file_name

logger = logging.getLogger(__name__)

DEFAULT_GROUP = "default"

# File families in output order
SECTION_ORDER: tuple[str, ...] = (
    "types",
    "client",
    "security_helpers",
    "oauth2",
    "oidc_discovery",
    "credentials",
    "security_enforce",
    "server",
    "server_responses",
    "server_validation",
    "server_binder",
    "server_middleware",
    "server_router",
    "server_stubs",
)


class Thresholds(BaseModel):
    """Per-file limits; 0 disables a limit."""

    model_config = ConfigDict(frozen=True)

    max_lines: int = 2000
    max_types: int = 200
    max_operations: int = 100


class SplitStrategy(BaseModel):
    model_config = ConfigDict(frozen=True)

    split_by_tag: bool = True
    split_by_path_prefix: bool = True


class Bucket(BaseModel):
    name: str
    section: str
    group: str = SHARED_GROUP
    declarations: list[GeneratedDeclaration] = Field(default_factory=list)
    line_count: int = 0
    type_count: int = 0
    operations: list[str] = Field(default_factory=list)

    @property
    def file_name(self) -> str:
        return f"{self.name}.go"

    @property
    def operation_count(self) -> int:
        return len(self.operations)

    @property
    def is_shared(self) -> bool:
        return self.group == SHARED_GROUP

    def add(self, unit: list[GeneratedDeclaration]) -> None:
        self.declarations.extend(unit)
        self.line_count += _lines(unit)
        self.type_count += _types(unit)
        for op in _operations(unit):
            if op not in self.operations:
                self.operations.append(op)


class SplitPlan(BaseModel):
    buckets: list[Bucket] = Field(default_factory=list)
    needs_split: bool = False
    total_lines: int = 0
    total_types: int = 0
    total_operations: int = 0

    def bucket(self, name: str) -> Bucket | None:
        for bucket in self.buckets:
            if bucket.name == name:
                return bucket
        return None


def group_key(operation: Operation, strategy: SplitStrategy) -> str:
    """File-group key for an operation."""
    key = ""
    if strategy.split_by_tag and operation.tags:
        key = to_file_name(operation.tags[0])
    elif strategy.split_by_path_prefix:
        prefix = path_prefix(operation.path)
        if prefix:
            key = to_file_name(prefix)
    if not key:
        return DEFAULT_GROUP
    if key == SHARED_GROUP:
        return f"{key}_ops"
    return key


def _lines(unit: list[GeneratedDeclaration]) -> int:
    return sum(d.line_count for d in unit)


def _types(unit: list[GeneratedDeclaration]) -> int:
    return sum(1 for d in unit if d.kind is DeclarationKind.TYPE)


def _operations(unit: list[GeneratedDeclaration]) -> list[str]:
    return list(dict.fromkeys(d.operation for d in unit if d.operation))


def needs_split(declarations: list[GeneratedDeclaration], thresholds: Thresholds) -> bool:
    lines = _lines(declarations)
    types = _types(declarations)
    operations = len(_operations(declarations))
    return bool(
        (thresholds.max_lines and lines > thresholds.max_lines)
        or (thresholds.max_types and types > thresholds.max_types)
        or (thresholds.max_operations and operations > thresholds.max_operations)
    )


def _exceeds(bucket: Bucket, unit: list[GeneratedDeclaration], thresholds: Thresholds) -> bool:
    new_ops = [op for op in _operations(unit) if op not in bucket.operations]
    return bool(
        (thresholds.max_lines and bucket.line_count + _lines(unit) > thresholds.max_lines)
        or (thresholds.max_types and bucket.type_count + _types(unit) > thresholds.max_types)
        or (thresholds.max_operations and bucket.operation_count + len(new_ops) > thresholds.max_operations)
    )


def _section_rank(section: str) -> tuple[int, str]:
    if section in SECTION_ORDER:
        return SECTION_ORDER.index(section), section
    return len(SECTION_ORDER), section


def _units(declarations: list[GeneratedDeclaration]) -> list[list[GeneratedDeclaration]]:
    """Cluster declarations that must stay in one file.

    An operation's declarations travel together; otherwise a type travels
    with its methods.
    """
    clusters: dict[str, list[GeneratedDeclaration]] = defaultdict(list)
    for decl in declarations:
        key = f"op:{decl.operation}" if decl.operation else f"decl:{decl.receiver or decl.name}"
        clusters[key].append(decl)
    units = [sorted(c, key=lambda d: d.qualified_name) for c in clusters.values()]
    units.sort(key=lambda u: u[0].qualified_name)
    return units


def plan(
    declarations: list[GeneratedDeclaration],
    thresholds: Thresholds | None = None,
    strategy: SplitStrategy | None = None,
) -> SplitPlan:
    """Plan output buckets. The same input always yields the same plan."""
    thresholds = thresholds or Thresholds()
    split = needs_split(declarations, thresholds)

    by_section: dict[str, list[GeneratedDeclaration]] = defaultdict(list)
    for decl in declarations:
        by_section[decl.section].append(decl)

    buckets: list[Bucket] = []
    for section in sorted(by_section, key=_section_rank):
        decls = by_section[section]
        if not split:
            bucket = Bucket(name=section, section=section)
            for unit in _units(decls):
                bucket.add(unit)
            buckets.append(bucket)
            continue

        by_group: dict[str, list[GeneratedDeclaration]] = defaultdict(list)
        for decl in decls:
            by_group[decl.group].append(decl)

        if SHARED_GROUP in by_group:
            shared = Bucket(name=section, section=section)
            for unit in _units(by_group.pop(SHARED_GROUP)):
                shared.add(unit)
            buckets.append(shared)

        for group in sorted(by_group):
            index = 1
            current = Bucket(name=f"{section}_{group}", section=section, group=group)
            for unit in _units(by_group[group]):
                if current.declarations and _exceeds(current, unit, thresholds):
                    buckets.append(current)
                    index += 1
                    current = Bucket(name=f"{section}_{group}_{index}", section=section, group=group)
                current.add(unit)
            buckets.append(current)

    for bucket in buckets:
        bucket.declarations.sort(key=lambda d: d.qualified_name)

    result = SplitPlan(
        buckets=buckets,
        needs_split=split,
        total_lines=_lines(declarations),
        total_types=_types(declarations),
        total_operations=len(_operations(declarations)),
    )
    logger.debug(
        "split plan: %d buckets (split=%s, %d operations, %d types)",
        len(buckets), split, result.total_operations, result.total_types,
    )
    return result
