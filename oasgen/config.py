"""Generator configuration.

A GeneratorConfig is built once per run, either directly, from keyword
options, or from a YAML file layered under command-line overrides.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from .errors import ConfigError

ROUTER_STRATEGIES = ("stdlib", "chi")

# Extension toggles that imply server scaffolding
_SERVER_EXTENSIONS = (
    "server_responses",
    "server_binder",
    "server_middleware",
    "server_stubs",
)


class GeneratorConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    package_name: str = "api"

    generate_types: bool = True
    generate_client: bool = False
    generate_server: bool = False
    generate_readme: bool = True

    use_pointers: bool = True
    include_validation: bool = True
    strict_mode: bool = False
    include_info: bool = True

    # Security
    generate_security: bool = True
    generate_oauth2_flows: bool = False
    generate_credential_mgmt: bool = False
    generate_security_enforce: bool = False
    generate_oidc_discovery: bool = False

    # Server extensions
    server_responses: bool = False
    server_binder: bool = False
    server_middleware: bool = False
    server_router: str = ""
    server_stubs: bool = False

    # File splitting (0 disables a threshold)
    max_lines_per_file: int = 2000
    max_types_per_file: int = 200
    max_operations_per_file: int = 100
    split_by_tag: bool = True
    split_by_path_prefix: bool = True

    @field_validator("package_name")
    @classmethod
    def _valid_package(cls, value: str) -> str:
        if not re.fullmatch(r"[a-z][a-z0-9_]*", value):
            raise ValueError(f"invalid package name: {value!r}")
        return value

    @field_validator("server_router")
    @classmethod
    def _valid_router(cls, value: str) -> str:
        if value and value not in ROUTER_STRATEGIES:
            raise ValueError(
                f"invalid server router {value!r}: expected one of {', '.join(ROUTER_STRATEGIES)}"
            )
        return value

    @field_validator("max_lines_per_file", "max_types_per_file", "max_operations_per_file")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("thresholds must be >= 0")
        return value

    @model_validator(mode="before")
    @classmethod
    def _implied_toggles(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("server_all"):
            data.pop("server_all")
            for key in _SERVER_EXTENSIONS:
                data[key] = True
            data.setdefault("server_router", "stdlib")
        else:
            data.pop("server_all", None)
        if any(data.get(key) for key in _SERVER_EXTENSIONS) or data.get("server_router"):
            data["generate_server"] = True
        if data.get("generate_client") or data.get("generate_server"):
            data["generate_types"] = True
        return data

    @property
    def any_server_extension(self) -> bool:
        return bool(
            self.server_responses
            or self.server_binder
            or self.server_middleware
            or self.server_router
            or self.server_stubs
        )


def build_config(**options: Any) -> GeneratorConfig:
    """Build a config, turning validation failures into ConfigError."""
    options = {k: v for k, v in options.items() if v is not None}
    try:
        return GeneratorConfig(**options)
    except ValidationError as exc:
        raise ConfigError(_describe(exc)) from exc


def load_config(path: Path, **overrides: Any) -> GeneratorConfig:
    """Load a YAML config file; non-None overrides win over file values."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: config file must contain a mapping")
    data.update({k: v for k, v in overrides.items() if v is not None})
    return build_config(**data)


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "config"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)
