"""Normalized, dialect-independent API model.

Both Swagger 2.0 and OpenAPI 3.x documents are reduced to these types by
normalizer.py; everything downstream only ever sees this model.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

SHARED_GROUP = "shared"


class ParamLocation(str, Enum):
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"


class SchemaKind(str, Enum):
    PRIMITIVE = "primitive"
    ARRAY = "array"
    OBJECT = "object"
    REFERENCE = "reference"
    ANY = "any"


class SchemaNode(BaseModel):
    """A normalized schema.

    ``ref`` holds the component name for REFERENCE nodes. ``additional``
    is True for free-form maps, a SchemaNode for typed maps and None when
    the object has a fixed property set only.
    """

    model_config = ConfigDict(frozen=True)

    kind: SchemaKind
    type: str = ""
    format: str = ""
    nullable: bool = False
    ref: str = ""
    items: SchemaNode | None = None
    properties: dict[str, SchemaNode] = Field(default_factory=dict)
    required: tuple[str, ...] = ()
    additional: SchemaNode | bool | None = None
    enum: tuple[Any, ...] = ()
    description: str = ""
    minimum: float | None = None
    maximum: float | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str = ""

    @property
    def is_map(self) -> bool:
        return self.kind is SchemaKind.OBJECT and not self.properties and self.additional is not None


class Parameter(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    location: ParamLocation
    required: bool = False
    schema_node: SchemaNode = Field(default_factory=lambda: SchemaNode(kind=SchemaKind.ANY))
    description: str = ""

    @model_validator(mode="before")
    @classmethod
    def _path_params_are_required(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("location") in (ParamLocation.PATH, "path"):
            data = {**data, "required": True}
        return data


class Response(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    description: str = ""
    schema_node: SchemaNode | None = None
    content_type: str = ""


# Operation security: tuple of alternatives, each a scheme -> scopes mapping
SecurityRequirements = tuple[dict[str, tuple[str, ...]], ...]


class Operation(BaseModel):
    model_config = ConfigDict(frozen=True)

    operation_id: str
    name: str
    method: str
    path: str
    parameters: tuple[Parameter, ...] = ()
    request_body: SchemaNode | None = None
    request_body_required: bool = False
    request_content_type: str = ""
    responses: dict[str, Response] = Field(default_factory=dict)
    security: SecurityRequirements | None = None
    deprecated: bool = False
    summary: str = ""
    description: str = ""
    tags: tuple[str, ...] = ()
    id_synthesized: bool = False

    @property
    def key(self) -> str:
        return f"{self.method.upper()} {self.path}"

    def params_in(self, location: ParamLocation) -> list[Parameter]:
        return [p for p in self.parameters if p.location is location]


# --- Security schemes -------------------------------------------------------


class OAuthFlowKind(str, Enum):
    AUTHORIZATION_CODE = "authorizationCode"
    CLIENT_CREDENTIALS = "clientCredentials"
    PASSWORD = "password"
    IMPLICIT = "implicit"


class OAuthFlow(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: OAuthFlowKind
    authorization_url: str = ""
    token_url: str = ""
    refresh_url: str = ""
    scopes: dict[str, str] = Field(default_factory=dict)


class _SchemeBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""


class ApiKeyScheme(_SchemeBase):
    kind: Literal["apiKey"] = "apiKey"
    param_name: str
    location: Literal["header", "query", "cookie"] = "header"


class HTTPBasicScheme(_SchemeBase):
    kind: Literal["http-basic"] = "http-basic"


class HTTPBearerScheme(_SchemeBase):
    kind: Literal["http-bearer"] = "http-bearer"
    bearer_format: str = ""


class OAuth2Scheme(_SchemeBase):
    kind: Literal["oauth2"] = "oauth2"
    flows: tuple[OAuthFlow, ...] = ()

    def flow(self, kind: OAuthFlowKind) -> OAuthFlow | None:
        for flow in self.flows:
            if flow.kind is kind:
                return flow
        return None

    @property
    def scopes(self) -> dict[str, str]:
        merged: dict[str, str] = {}
        for flow in self.flows:
            merged.update(flow.scopes)
        return merged


class OpenIDConnectScheme(_SchemeBase):
    kind: Literal["openIdConnect"] = "openIdConnect"
    discovery_url: str = ""


SecurityScheme = Annotated[
    Union[ApiKeyScheme, HTTPBasicScheme, HTTPBearerScheme, OAuth2Scheme, OpenIDConnectScheme],
    Field(discriminator="kind"),
]


class NormalizedDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = ""
    version: str = ""
    description: str = ""
    dialect: Literal["swagger2", "openapi3"]
    dialect_version: str = ""
    operations: tuple[Operation, ...] = ()
    schemas: dict[str, SchemaNode] = Field(default_factory=dict)
    security_schemes: dict[str, SecurityScheme] = Field(default_factory=dict)
    global_security: SecurityRequirements = ()


# --- Generated output -------------------------------------------------------


class DeclarationKind(str, Enum):
    TYPE = "type"
    FUNCTION = "function"
    METHOD = "method"
    CONSTANT = "constant"
    VARIABLE = "variable"


class GeneratedDeclaration(BaseModel):
    """One top-level Go declaration and the file group it belongs to."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: DeclarationKind
    section: str
    body: str
    group: str = SHARED_GROUP
    receiver: str | None = None
    operation: str | None = None
    imports: tuple[str, ...] = ()
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def qualified_name(self) -> str:
        if self.receiver:
            return f"{self.receiver}.{self.name}"
        return self.name

    @property
    def line_count(self) -> int:
        return self.body.count("\n") + 1
