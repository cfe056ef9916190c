"""Reduce Swagger 2.0 and OpenAPI 3.x documents to one model.

Handles:
- dialect detection (swagger: "2.0" / openapi: 3.x)
- $ref resolution for parameters, request bodies, responses, schemes
- path-level parameter merging (operation parameters win)
- Swagger body/formData parameters -> request body
- responses: inline schema (2.0) vs content by media type (3.x)
- nullable / x-nullable / 3.1 type arrays
- allOf merging, single-branch oneOf/anyOf collapsing
- missing operationId synthesis
- security schemes -> a closed set of scheme variants
"""

from __future__ import annotations

import logging
from typing import Any

from .errors import DocumentError
from .issues import IssueLog
from .loader import ref_name, resolve_ref
from .models import (
    ApiKeyScheme,
    HTTPBasicScheme,
    HTTPBearerScheme,
    NormalizedDocument,
    OAuth2Scheme,
    OAuthFlow,
    OAuthFlowKind,
    OpenIDConnectScheme,
    Operation,
    Parameter,
    ParamLocation,
    Response,
    SchemaKind,
    SchemaNode,
    SecurityRequirements,
    SecurityScheme,
)
from .naming import NameKind, NamingRegistry, synthesize_operation_id, to_pascal

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

_PRIMITIVES = ("string", "integer", "number", "boolean")

# Schema keywords that Swagger 2.0 puts directly on non-body parameters
_PARAM_SCHEMA_KEYS = (
    "type", "format", "items", "enum", "default", "minimum", "maximum",
    "minLength", "maxLength", "pattern",
)

# Swagger 2.0 flow names -> flow kinds
_SWAGGER_FLOWS: dict[str, OAuthFlowKind] = {
    "implicit": OAuthFlowKind.IMPLICIT,
    "password": OAuthFlowKind.PASSWORD,
    "application": OAuthFlowKind.CLIENT_CREDENTIALS,
    "accessCode": OAuthFlowKind.AUTHORIZATION_CODE,
}

# OpenAPI 3.x flow keys -> flow kinds
_OAS3_FLOWS: dict[str, OAuthFlowKind] = {
    "implicit": OAuthFlowKind.IMPLICIT,
    "password": OAuthFlowKind.PASSWORD,
    "clientCredentials": OAuthFlowKind.CLIENT_CREDENTIALS,
    "authorizationCode": OAuthFlowKind.AUTHORIZATION_CODE,
}

_FLOW_ORDER = list(OAuthFlowKind)

_ANY = SchemaNode(kind=SchemaKind.ANY)


def normalize(
    document: dict[str, Any],
    *,
    names: NamingRegistry | None = None,
    issues: IssueLog | None = None,
) -> NormalizedDocument:
    """Normalize a parsed document. Raises DocumentError when it has no paths."""
    if names is None:
        names = NamingRegistry()
    if issues is None:
        issues = IssueLog()
    return _Normalizer(document, names, issues).run()


def pick_media_type(content: dict[str, Any]) -> str:
    """Prefer application/json, then any JSON flavour, then the first entry."""
    if not content:
        return ""
    if "application/json" in content:
        return "application/json"
    for media in content:
        if "json" in media:
            return media
    return next(iter(content))


class _Normalizer:
    def __init__(self, document: dict[str, Any], names: NamingRegistry, issues: IssueLog) -> None:
        self.doc = document
        self.names = names
        self.issues = issues
        self.swagger = False

    # --- entry point ---------------------------------------------------------

    def run(self) -> NormalizedDocument:
        dialect, version = self._detect_dialect()
        self.swagger = dialect == "swagger2"

        paths = self.doc.get("paths")
        if not isinstance(paths, dict):
            raise DocumentError("document has no paths object")

        schema_root = "definitions" if self.swagger else "components.schemas"
        raw_schemas = (
            self.doc.get("definitions", {})
            if self.swagger
            else self.doc.get("components", {}).get("schemas", {})
        ) or {}
        schemas = {
            str(name): self.schema(raw, f"{schema_root}.{name}")
            for name, raw in raw_schemas.items()
        }

        schemes = self._security_schemes()
        global_security = self._requirements(self.doc.get("security"), "security", schemes) or ()

        operations = []
        for path in sorted(paths):
            item = paths[path]
            if not isinstance(item, dict):
                self.issues.warning(f"paths.{path}", "path item is not a mapping")
                continue
            if "$ref" in item:
                item = self._deref(item, f"paths.{path}") or {}
            for method in HTTP_METHODS:
                raw_op = item.get(method)
                if isinstance(raw_op, dict):
                    operations.append(self._operation(path, method, item, raw_op, schemes))

        info = self.doc.get("info") or {}
        logger.debug("normalized %d operations, %d schemas", len(operations), len(schemas))
        return NormalizedDocument(
            title=str(info.get("title", "")),
            version=str(info.get("version", "")),
            description=str(info.get("description", "")),
            dialect=dialect,
            dialect_version=version,
            operations=tuple(operations),
            schemas=schemas,
            security_schemes=schemes,
            global_security=global_security,
        )

    def _detect_dialect(self) -> tuple[str, str]:
        if "swagger" in self.doc:
            version = str(self.doc["swagger"])
            if not version.startswith("2"):
                self.issues.warning("swagger", f"unsupported swagger version {version}; treating as 2.0")
            return "swagger2", version
        if "openapi" in self.doc:
            version = str(self.doc["openapi"])
            if not version.startswith("3"):
                self.issues.warning("openapi", f"unsupported openapi version {version}; treating as 3.x")
            return "openapi3", version
        if "definitions" in self.doc or "securityDefinitions" in self.doc:
            self.issues.warning("", "no dialect marker; assuming swagger 2.0")
            return "swagger2", ""
        self.issues.warning("", "no dialect marker; assuming openapi 3.x")
        return "openapi3", ""

    def _deref(self, raw: dict[str, Any], path: str) -> dict[str, Any] | None:
        """Follow a $ref chain to a concrete mapping."""
        seen: set[str] = set()
        while isinstance(raw, dict) and "$ref" in raw:
            ref = raw["$ref"]
            if ref in seen:
                self.issues.warning(path, f"circular reference {ref}")
                return None
            seen.add(ref)
            try:
                raw = resolve_ref(self.doc, ref)
            except KeyError:
                self.issues.warning(path, f"unresolvable reference {ref}")
                return None
        return raw if isinstance(raw, dict) else None

    # --- schemas -------------------------------------------------------------

    def schema(self, raw: Any, path: str) -> SchemaNode:
        if not isinstance(raw, dict) or not raw:
            return _ANY

        description = str(raw.get("description", "") or "")
        nullable = bool(raw.get("nullable") or raw.get("x-nullable"))

        if "$ref" in raw:
            ref = raw["$ref"]
            try:
                resolve_ref(self.doc, ref)
            except KeyError:
                self.issues.warning(path, f"unresolvable reference {ref}")
                return _ANY
            return SchemaNode(
                kind=SchemaKind.REFERENCE,
                ref=ref_name(ref),
                nullable=nullable,
                description=description,
            )

        schema_type = raw.get("type")
        if isinstance(schema_type, list):
            concrete = [t for t in schema_type if t != "null"]
            if len(concrete) < len(schema_type):
                nullable = True
            if len(concrete) != 1:
                if concrete:
                    self.issues.info(path, f"multiple types {concrete} mapped to any")
                return SchemaNode(kind=SchemaKind.ANY, nullable=nullable, description=description)
            schema_type = concrete[0]

        if "allOf" in raw:
            return self._all_of(raw, path, nullable, description)
        for key in ("oneOf", "anyOf"):
            if key in raw:
                return self._one_of(raw[key], key, path, nullable, description)

        if not schema_type:
            schema_type = _infer_type(raw)
            if not schema_type:
                return SchemaNode(kind=SchemaKind.ANY, nullable=nullable, description=description)

        if schema_type == "array":
            return SchemaNode(
                kind=SchemaKind.ARRAY,
                items=self.schema(raw.get("items") or {}, f"{path}.items"),
                nullable=nullable,
                description=description,
                min_length=raw.get("minItems"),
                max_length=raw.get("maxItems"),
            )

        if schema_type == "object":
            return self._object(raw, path, nullable, description)

        if schema_type == "file":
            return SchemaNode(kind=SchemaKind.PRIMITIVE, type="string", format="binary", description=description)

        if schema_type not in _PRIMITIVES:
            if schema_type != "null":
                self.issues.warning(path, f"unknown type {schema_type!r} mapped to any")
            return SchemaNode(kind=SchemaKind.ANY, nullable=True if schema_type == "null" else nullable)

        return SchemaNode(
            kind=SchemaKind.PRIMITIVE,
            type=schema_type,
            format=str(raw.get("format", "") or ""),
            nullable=nullable,
            description=description,
            enum=tuple(raw.get("enum") or ()),
            minimum=raw.get("minimum"),
            maximum=raw.get("maximum"),
            min_length=raw.get("minLength"),
            max_length=raw.get("maxLength"),
            pattern=str(raw.get("pattern", "") or ""),
        )

    def _object(self, raw: dict[str, Any], path: str, nullable: bool, description: str) -> SchemaNode:
        properties = {
            str(name): self.schema(prop, f"{path}.properties.{name}")
            for name, prop in (raw.get("properties") or {}).items()
        }
        additional: SchemaNode | bool | None = None
        extra = raw.get("additionalProperties")
        if extra is True or extra == {}:
            additional = True
        elif isinstance(extra, dict):
            additional = self.schema(extra, f"{path}.additionalProperties")
        elif extra is None and not properties:
            additional = True
        return SchemaNode(
            kind=SchemaKind.OBJECT,
            properties=properties,
            required=tuple(str(r) for r in raw.get("required") or ()),
            additional=additional,
            nullable=nullable,
            description=description,
        )

    def _all_of(self, raw: dict[str, Any], path: str, nullable: bool, description: str) -> SchemaNode:
        parts = raw["allOf"]
        if len(parts) == 1 and not raw.get("properties"):
            node = self.schema(parts[0], f"{path}.allOf.0")
            return node.model_copy(update={
                "nullable": node.nullable or nullable,
                "description": description or node.description,
            })

        properties: dict[str, SchemaNode] = {}
        required: list[str] = []
        self._merge_all_of(raw, path, properties, required, set())
        return SchemaNode(
            kind=SchemaKind.OBJECT,
            properties=properties,
            required=tuple(dict.fromkeys(required)),
            nullable=nullable,
            description=description,
        )

    def _merge_all_of(
        self,
        raw: dict[str, Any],
        path: str,
        properties: dict[str, SchemaNode],
        required: list[str],
        seen: set[str],
    ) -> None:
        for index, part in enumerate(raw.get("allOf") or ()):
            part_path = f"{path}.allOf.{index}"
            if isinstance(part, dict) and "$ref" in part:
                if part["$ref"] in seen:
                    continue
                seen.add(part["$ref"])
                part = self._deref(part, part_path)
            if not isinstance(part, dict):
                continue
            if "allOf" in part:
                self._merge_all_of(part, part_path, properties, required, seen)
                continue
            node = self.schema(part, part_path)
            if node.kind is SchemaKind.OBJECT:
                properties.update(node.properties)
                required.extend(node.required)
            else:
                self.issues.info(part_path, "non-object allOf member ignored")
        for name, prop in (raw.get("properties") or {}).items():
            properties[str(name)] = self.schema(prop, f"{path}.properties.{name}")
        required.extend(str(r) for r in raw.get("required") or ())

    def _one_of(
        self, variants: list[Any], key: str, path: str, nullable: bool, description: str
    ) -> SchemaNode:
        branches = [v for v in variants if not (isinstance(v, dict) and v.get("type") == "null")]
        if len(branches) < len(variants):
            nullable = True
        if len(branches) == 1:
            node = self.schema(branches[0], f"{path}.{key}.0")
            return node.model_copy(update={"nullable": node.nullable or nullable})
        self.issues.info(path, f"{key} with {len(branches)} branches mapped to any")
        return SchemaNode(kind=SchemaKind.ANY, nullable=nullable, description=description)

    # --- operations ----------------------------------------------------------

    def _operation(
        self,
        path: str,
        method: str,
        item: dict[str, Any],
        raw: dict[str, Any],
        schemes: dict[str, SecurityScheme],
    ) -> Operation:
        op_path = f"paths.{path}.{method}"

        operation_id = raw.get("operationId")
        synthesized = False
        if not isinstance(operation_id, str) or not operation_id.strip():
            operation_id = synthesize_operation_id(method, path)
            synthesized = True
            self.issues.info(op_path, f"missing operationId; synthesized {operation_id}")
        name = self.names.assign(operation_id, NameKind.OPERATION, key=f"{method.upper()} {path}")
        if name != to_pascal(operation_id):
            self.issues.info(op_path, f"operation {operation_id} renamed to {name} to avoid a collision")

        params, body, form = self._parameters(item, raw, f"paths.{path}", op_path)
        body_required = False
        content_type = ""
        if self.swagger:
            if body is not None:
                body_schema, body_required = body
                content_type = self._swagger_media(raw, "consumes")
            elif form is not None:
                body_schema, body_required, content_type = form
            else:
                body_schema = None
        else:
            body_schema, body_required, content_type = self._request_body(raw, op_path)

        if raw.get("deprecated"):
            self.issues.info(op_path, f"operation {name} is deprecated")

        return Operation(
            operation_id=operation_id,
            name=name,
            method=method.upper(),
            path=path,
            parameters=tuple(params),
            request_body=body_schema,
            request_body_required=body_required,
            request_content_type=content_type,
            responses=self._responses(raw, op_path),
            security=self._requirements(raw.get("security"), f"{op_path}.security", schemes),
            deprecated=bool(raw.get("deprecated")),
            summary=str(raw.get("summary", "") or ""),
            description=str(raw.get("description", "") or ""),
            tags=tuple(str(t) for t in raw.get("tags") or ()),
            id_synthesized=synthesized,
        )

    def _parameters(self, item: dict[str, Any], raw: dict[str, Any], item_path: str, op_path: str):
        # Operation entries override path-level ones with the same name and location.
        merged: dict[tuple[str, str], tuple[dict[str, Any], str]] = {}
        for source_path, entries in ((item_path, item.get("parameters")), (op_path, raw.get("parameters"))):
            for index, entry in enumerate(entries or ()):
                param_path = f"{source_path}.parameters.{index}"
                entry = self._deref(entry, param_path) if isinstance(entry, dict) else None
                if not entry or "name" not in entry:
                    continue
                merged[(str(entry["name"]), str(entry.get("in", "")))] = (entry, param_path)

        params: list[Parameter] = []
        body: tuple[SchemaNode, bool] | None = None
        form_props: dict[str, SchemaNode] = {}
        form_required: list[str] = []
        has_file = False

        for (name, location), (entry, param_path) in merged.items():
            if location == "body":
                body = (self.schema(entry.get("schema") or {}, f"{param_path}.schema"), bool(entry.get("required")))
                continue
            schema_raw = entry.get("schema")
            if schema_raw is None:
                schema_raw = {k: entry[k] for k in _PARAM_SCHEMA_KEYS if k in entry}
            node = self.schema(schema_raw, f"{param_path}.schema")
            if location == "formData":
                has_file = has_file or entry.get("type") == "file"
                form_props[name] = node
                if entry.get("required"):
                    form_required.append(name)
                continue
            try:
                loc = ParamLocation(location)
            except ValueError:
                self.issues.warning(param_path, f"parameter {name} has unsupported location {location!r}")
                continue
            if loc is ParamLocation.PATH and entry.get("required") is not True:
                self.issues.warning(param_path, f"path parameter {name} must be required; forcing required")
            params.append(Parameter(
                name=name,
                location=loc,
                required=bool(entry.get("required")),
                schema_node=node,
                description=str(entry.get("description", "") or ""),
            ))

        form = None
        if form_props:
            form = (
                SchemaNode(kind=SchemaKind.OBJECT, properties=form_props, required=tuple(form_required)),
                bool(form_required),
                "multipart/form-data" if has_file else "application/x-www-form-urlencoded",
            )
        return params, body, form

    def _swagger_media(self, raw: dict[str, Any], key: str) -> str:
        media = raw.get(key) or self.doc.get(key) or ["application/json"]
        return pick_media_type({m: None for m in media})

    def _request_body(self, raw: dict[str, Any], op_path: str) -> tuple[SchemaNode | None, bool, str]:
        body = raw.get("requestBody")
        if not isinstance(body, dict):
            return None, False, ""
        body = self._deref(body, f"{op_path}.requestBody")
        if not body:
            return None, False, ""
        content = body.get("content") or {}
        media = pick_media_type(content)
        if not media:
            return None, bool(body.get("required")), ""
        schema_raw = (content.get(media) or {}).get("schema") or {}
        node = self.schema(schema_raw, f"{op_path}.requestBody.content.{media}.schema")
        return node, bool(body.get("required")), media

    def _responses(self, raw: dict[str, Any], op_path: str) -> dict[str, Response]:
        responses: dict[str, Response] = {}
        for status, entry in (raw.get("responses") or {}).items():
            status = str(status)
            if status.lower() != "default":
                status = status.upper()
            else:
                status = "default"
            resp_path = f"{op_path}.responses.{status}"
            entry = self._deref(entry, resp_path) if isinstance(entry, dict) else None
            if entry is None:
                continue
            if self.swagger:
                schema_raw = entry.get("schema")
                node = self.schema(schema_raw, f"{resp_path}.schema") if schema_raw else None
                media = self._swagger_media(raw, "produces") if node else ""
            else:
                content = entry.get("content") or {}
                media = pick_media_type(content)
                schema_raw = (content.get(media) or {}).get("schema") if media else None
                node = self.schema(schema_raw, f"{resp_path}.content.{media}.schema") if schema_raw else None
            responses[status] = Response(
                status=status,
                description=str(entry.get("description", "") or ""),
                schema_node=node,
                content_type=media,
            )
        return responses

    # --- security ------------------------------------------------------------

    def _requirements(
        self, raw: Any, path: str, schemes: dict[str, SecurityScheme]
    ) -> SecurityRequirements | None:
        if raw is None:
            return None
        requirements = []
        for index, entry in enumerate(raw or ()):
            if not isinstance(entry, dict):
                continue
            for scheme_name in entry:
                if scheme_name not in schemes:
                    self.issues.warning(f"{path}.{index}", f"undefined security scheme {scheme_name!r}")
            requirements.append({str(k): tuple(str(s) for s in v or ()) for k, v in entry.items()})
        return tuple(requirements)

    def _security_schemes(self) -> dict[str, SecurityScheme]:
        if self.swagger:
            raw_schemes = self.doc.get("securityDefinitions") or {}
            root = "securityDefinitions"
        else:
            raw_schemes = (self.doc.get("components") or {}).get("securitySchemes") or {}
            root = "components.securitySchemes"
        schemes: dict[str, SecurityScheme] = {}
        for name, raw in raw_schemes.items():
            path = f"{root}.{name}"
            raw = self._deref(raw, path) if isinstance(raw, dict) else None
            if raw is None:
                continue
            scheme = self._scheme(str(name), raw, path)
            if scheme is not None:
                schemes[str(name)] = scheme
        return schemes

    def _scheme(self, name: str, raw: dict[str, Any], path: str) -> SecurityScheme | None:
        scheme_type = raw.get("type")
        description = str(raw.get("description", "") or "")

        if scheme_type == "apiKey":
            location = raw.get("in")
            if location not in ("header", "query", "cookie"):
                self.issues.warning(path, f"apiKey scheme has no valid location ({location!r}); using header")
                location = "header"
            return ApiKeyScheme(
                name=name,
                param_name=str(raw.get("name") or name),
                location=location,
                description=description,
            )

        if scheme_type == "basic":
            return HTTPBasicScheme(name=name, description=description)

        if scheme_type == "http":
            scheme = str(raw.get("scheme", "") or "").lower()
            if not scheme:
                self.issues.warning(path, "http scheme has no scheme value; assuming bearer")
                scheme = "bearer"
            if scheme == "basic":
                return HTTPBasicScheme(name=name, description=description)
            if scheme == "bearer":
                return HTTPBearerScheme(
                    name=name,
                    bearer_format=str(raw.get("bearerFormat", "") or ""),
                    description=description,
                )
            self.issues.warning(path, f"unsupported http auth scheme {scheme!r}; skipped")
            return None

        if scheme_type == "oauth2":
            flows = self._flows(raw, path)
            if not flows:
                self.issues.warning(path, "oauth2 scheme declares no usable flows")
            return OAuth2Scheme(name=name, flows=tuple(flows), description=description)

        if scheme_type == "openIdConnect":
            url = str(raw.get("openIdConnectUrl", "") or "")
            if not url:
                self.issues.warning(path, "openIdConnect scheme has no openIdConnectUrl")
            return OpenIDConnectScheme(name=name, discovery_url=url, description=description)

        self.issues.warning(path, f"unsupported security scheme type {scheme_type!r}; skipped")
        return None

    def _flows(self, raw: dict[str, Any], path: str) -> list[OAuthFlow]:
        if self.swagger:
            entries = {raw.get("flow"): raw}
            table = _SWAGGER_FLOWS
        else:
            entries = raw.get("flows") or {}
            table = _OAS3_FLOWS
        flows = []
        for key, entry in entries.items():
            kind = table.get(key)
            if kind is None or not isinstance(entry, dict):
                self.issues.warning(path, f"unknown oauth2 flow {key!r}; skipped")
                continue
            flows.append(OAuthFlow(
                kind=kind,
                authorization_url=str(entry.get("authorizationUrl", "") or ""),
                token_url=str(entry.get("tokenUrl", "") or ""),
                refresh_url=str(entry.get("refreshUrl", "") or ""),
                scopes={str(k): str(v or "") for k, v in (entry.get("scopes") or {}).items()},
            ))
        flows.sort(key=lambda f: _FLOW_ORDER.index(f.kind))
        return flows


def _infer_type(raw: dict[str, Any]) -> str:
    if "properties" in raw or "additionalProperties" in raw:
        return "object"
    if "items" in raw:
        return "array"
    if raw.get("enum"):
        first = raw["enum"][0]
        if isinstance(first, bool):
            return "boolean"
        if isinstance(first, int):
            return "integer"
        if isinstance(first, float):
            return "number"
        return "string"
    return ""
