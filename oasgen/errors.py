"""Exception hierarchy for the generator.

Fatal conditions raise; everything recoverable is recorded as an Issue
(see issues.py) and generation carries on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .generator import GenerateResult


class OasgenError(Exception):
    """Base class for all generator errors."""


class LoadError(OasgenError):
    """The input document could not be read or parsed."""


class DocumentError(OasgenError):
    """The input document is structurally unusable (e.g. no path set)."""


class ConfigError(OasgenError):
    """The generator configuration is invalid."""


class GenerationError(OasgenError):
    """Generation could not produce a coherent output."""


class StrictModeError(GenerationError):
    """Generation finished but strict mode rejects the collected issues."""

    def __init__(self, result: GenerateResult) -> None:
        self.result = result
        super().__init__(
            f"strict mode: {result.critical_count} critical issue(s), "
            f"{result.warning_count} warning(s)"
        )
