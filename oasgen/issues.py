"""Non-fatal generation issues.

Issues are collected during normalization and synthesis instead of being
raised. Each carries a dotted document path (``paths./pets.get``) and,
when the loader provided a source map, the line and column it came from.
"""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class SourceLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    line: int
    column: int
    file: str = ""

    def __str__(self) -> str:
        prefix = f"{self.file}:" if self.file else ""
        return f"{prefix}{self.line}:{self.column}"


class Issue(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    message: str
    severity: Severity
    location: SourceLocation | None = None

    def __str__(self) -> str:
        where = f" ({self.location})" if self.location else ""
        return f"[{self.severity.value}] {self.path}: {self.message}{where}"


# Severity -> log level used when an issue is recorded
_LOG_LEVELS: dict[Severity, int] = {
    Severity.INFO: logging.DEBUG,
    Severity.WARNING: logging.INFO,
    Severity.CRITICAL: logging.WARNING,
}


class IssueLog:
    """Ordered collection of issues for a single generation run.

    An issue repeated at the same path, as happens for path-level
    parameters shared by several operations, is recorded once.
    """

    def __init__(self, source_map: dict[str, SourceLocation] | None = None) -> None:
        self._issues: list[Issue] = []
        self._seen: dict[tuple[str, str, Severity], Issue] = {}
        self._source_map = source_map or {}

    def add(self, path: str, message: str, severity: Severity = Severity.WARNING) -> Issue:
        key = (path, message, severity)
        if key in self._seen:
            return self._seen[key]
        issue = Issue(
            path=path,
            message=message,
            severity=severity,
            location=self._locate(path),
        )
        self._issues.append(issue)
        self._seen[key] = issue
        logger.log(_LOG_LEVELS[severity], "%s", issue)
        return issue

    def info(self, path: str, message: str) -> Issue:
        return self.add(path, message, Severity.INFO)

    def warning(self, path: str, message: str) -> Issue:
        return self.add(path, message, Severity.WARNING)

    def critical(self, path: str, message: str) -> Issue:
        return self.add(path, message, Severity.CRITICAL)

    def _locate(self, path: str) -> SourceLocation | None:
        """Find the closest mapped ancestor of a dotted path."""
        candidate = path
        while candidate:
            if candidate in self._source_map:
                return self._source_map[candidate]
            if "." not in candidate:
                break
            candidate = candidate.rsplit(".", 1)[0]
        return None

    def count(self, severity: Severity) -> int:
        return sum(1 for i in self._issues if i.severity is severity)

    def issues(self, include_info: bool = True) -> list[Issue]:
        if include_info:
            return list(self._issues)
        return [i for i in self._issues if i.severity is not Severity.INFO]

    def __iter__(self):
        return iter(self._issues)

    def __len__(self) -> int:
        return len(self._issues)
