"""Shared fixtures: sample documents and a generation runner."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from helpers import load_fixture
from oasgen.config import GeneratorConfig
from oasgen.generator import GenerateResult, generate


@pytest.fixture(scope="session")
def petstore_doc() -> dict[str, Any]:
    return load_fixture("petstore.yaml")


@pytest.fixture(scope="session")
def swagger_doc() -> dict[str, Any]:
    return load_fixture("swagger.yaml")


@pytest.fixture(scope="session")
def pets_doc() -> dict[str, Any]:
    return load_fixture("pets.yaml")


@pytest.fixture
def run(petstore_doc) -> Callable[..., GenerateResult]:
    """Generate a document (the petstore by default) with the given config options."""

    def _run(document: dict[str, Any] | None = None, **options: Any) -> GenerateResult:
        return generate(document if document is not None else petstore_doc, GeneratorConfig(**options))

    return _run
