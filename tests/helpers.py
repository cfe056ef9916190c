"""Helpers shared by the test modules."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from oasgen.config import GeneratorConfig
from oasgen.context import GenerationContext
from oasgen.generator import GenerateResult
from oasgen.issues import IssueLog
from oasgen.loader import load_document
from oasgen.naming import NamingRegistry
from oasgen.normalizer import normalize

FIXTURES = Path(__file__).parent / "fixtures"


def fixture_path(name: str) -> Path:
    return FIXTURES / name


def load_fixture(name: str) -> dict[str, Any]:
    return load_document(fixture_path(name)).data


def make_context(document: dict[str, Any], **options: Any) -> GenerationContext:
    """Normalize ``document`` and build a context, as generate() does."""
    names = NamingRegistry()
    issues = IssueLog()
    normalized = normalize(document, names=names, issues=issues)
    return GenerationContext(normalized, GeneratorConfig(**options), names, issues)


def minimal_document(**paths: Any) -> dict[str, Any]:
    return {"openapi": "3.0.0", "info": {"title": "Mini", "version": "1"}, "paths": paths}


def bodies(result: GenerateResult, section: str) -> dict[str, str]:
    """Qualified declaration name -> Go source for one section."""
    return {decl.qualified_name: decl.body for decl in result.section(section)}
