"""Generate Go clients, servers and types from OpenAPI 3 and Swagger 2 documents."""

from .config import GeneratorConfig
from .errors import (
    ConfigError,
    DocumentError,
    GenerationError,
    LoadError,
    OasgenError,
    StrictModeError,
)
from .generator import GenerateResult, generate
from .loader import load_document
from .normalizer import normalize
from .render import render_files, write_files

__all__ = [
    "ConfigError",
    "DocumentError",
    "GenerateResult",
    "GenerationError",
    "GeneratorConfig",
    "LoadError",
    "OasgenError",
    "StrictModeError",
    "generate",
    "load_document",
    "normalize",
    "render_files",
    "write_files",
]
