"""Typed HTTP client: one method per operation.

Path parameters become method arguments, query/header/cookie parameters
live in a per-operation Params struct, and JSON bodies are marshalled.
The success type comes from the 200, 201, 2XX, other 2xx or default
response, in that order; without one the method returns *http.Response.
"""

from __future__ import annotations

import re
from typing import Any

from .context import GenerationContext, is_json, type_imports
from .models import DeclarationKind, GeneratedDeclaration, Operation, ParamLocation
from .naming import NameKind
from .render import go_string
from .typemap import TypeDescriptor, TypeKind

SECTION = "client"

_TEMPLATE_PARAM = re.compile(r"(\{[^}/]+\})")

# Argument names a generated method body uses itself
_RESERVED_ARGS = ("c", "ctx", "params", "body", "path", "query", "req", "err", "out", "v")


def operation_doc(name: str, op: Operation) -> str:
    summary = op.summary.strip()
    head = f"{name} {summary}" if summary else f"{name} handles {op.method} {op.path}."
    parts = [head]
    description = op.description.strip()
    if description and description != summary:
        parts.append(description)
    parts.append(f"{op.method} {op.path}")
    if op.deprecated:
        parts.append("Deprecated: this operation is marked deprecated by the API.")
    return "\n\n".join(parts)


def path_expression(path: str, args: dict[str, str]) -> str:
    """Go expression building a request path from its template."""
    pieces = []
    for part in _TEMPLATE_PARAM.split(path):
        if not part:
            continue
        arg = args.get(part[1:-1]) if part.startswith("{") else None
        if arg:
            pieces.append(f"url.PathEscape(fmt.Sprint({arg}))")
        else:
            pieces.append(go_string(part))
    return " + ".join(pieces) or go_string("/")


def _setter(location: ParamLocation, name: str, value: str) -> str:
    if location is ParamLocation.QUERY:
        return f"query.Add({go_string(name)}, fmt.Sprint({value}))"
    if location is ParamLocation.HEADER:
        return f"req.Header.Add({go_string(name)}, fmt.Sprint({value}))"
    return f"req.AddCookie(&http.Cookie{{Name: {go_string(name)}, Value: fmt.Sprint({value})}})"


def _value_spec(location: ParamLocation, name: str, field: str, desc: TypeDescriptor, description: str) -> dict[str, Any]:
    sequence = desc.base.kind is TypeKind.SEQUENCE
    pointer = desc.kind is TypeKind.OPTIONAL and not desc.element.nilable
    if sequence:
        value = "v"
    elif pointer:
        value = f"*params.{field}"
    else:
        value = f"params.{field}"
    return {
        "name": name,
        "field": field,
        "go": desc.go,
        "description": description,
        "sequence": sequence,
        "pointer": pointer,
        "stmt": _setter(location, name, value),
    }


class ClientSynthesizer:
    def __init__(self, ctx: GenerationContext) -> None:
        self.ctx = ctx
        client = ctx.name("Client", section=SECTION)
        self.n = {
            "client": client,
            "option": ctx.client_option(),
            "editor_fn": ctx.name("RequestEditorFn", section=SECTION),
            "new_client": ctx.name("NewClient", DeclarationKind.FUNCTION, section=SECTION),
            "with_http_client": ctx.name("WithHTTPClient", DeclarationKind.FUNCTION, section=SECTION),
            "with_request_editor": ctx.request_editor(),
            "with_user_agent": ctx.name("WithUserAgent", DeclarationKind.FUNCTION, section=SECTION),
            "api_error": ctx.name("APIError", section=SECTION),
            "new_request": ctx.method(client, "newRequest", section=SECTION, exported=False),
            "do": ctx.method(client, "do", section=SECTION, exported=False),
        }

    def synthesize(self) -> list[GeneratedDeclaration]:
        n = self.n
        T, F, M = DeclarationKind.TYPE, DeclarationKind.FUNCTION, DeclarationKind.METHOD
        decl = self.ctx.declare
        decls = [
            decl(n["client"], T, SECTION, "client_type", n=n, title=self.ctx.document.title, imports=["net/http"]),
            decl(n["option"], T, SECTION, "client_option", n=n),
            decl(n["editor_fn"], T, SECTION, "editor_fn", n=n, imports=["context", "net/http"]),
            decl(n["new_client"], F, SECTION, "new_client", n=n, imports=["net/http", "strings"]),
            decl(n["with_http_client"], F, SECTION, "with_http_client", n=n, imports=["net/http"]),
            decl(n["with_request_editor"], F, SECTION, "with_request_editor", n=n),
            decl(n["with_user_agent"], F, SECTION, "with_user_agent", n=n),
            decl(n["api_error"], T, SECTION, "api_error", n=n),
            decl("Error", M, SECTION, "api_error_message", n=n, receiver=n["api_error"], imports=["fmt"]),
            decl(
                n["new_request"], M, SECTION, "new_request", n=n, receiver=n["client"],
                imports=["bytes", "context", "encoding/json", "fmt", "io", "net/http", "net/url"],
            ),
            decl(
                n["do"], M, SECTION, "do", n=n, receiver=n["client"],
                imports=["encoding/json", "fmt", "io", "net/http"],
            ),
        ]
        for op in self.ctx.operations:
            decls.extend(self._operation(op))
        return decls

    def _operation(self, op: Operation) -> list[GeneratedDeclaration]:
        ctx, n = self.ctx, self.n
        decls = []
        scope = f"{n['client']}.{op.name}"
        for reserved in _RESERVED_ARGS:
            ctx.names.assign(reserved, NameKind.PARAMETER, scope=scope)

        imports = {"context"}
        args = ["ctx context.Context"]
        path_args: dict[str, str] = {}
        for param in op.params_in(ParamLocation.PATH):
            arg = ctx.names.assign(param.name, NameKind.PARAMETER, scope=scope)
            desc = ctx.param_type(op, param)
            args.append(f"{arg} {desc.go}")
            path_args[param.name] = arg
            imports.update(desc.imports)
        if path_args:
            imports.update({"fmt", "net/url"})

        optional = [p for p in op.parameters if p.location is not ParamLocation.PATH]
        specs: dict[ParamLocation, list[dict[str, Any]]] = {}
        if optional:
            params_type = ctx.name(f"{op.name}Params", section=SECTION)
            fields = []
            for param, field, desc in ctx.param_fields(op, params_type):
                if param.location is ParamLocation.PATH:
                    continue
                spec = _value_spec(param.location, param.name, field, desc, param.description)
                fields.append(spec)
                specs.setdefault(param.location, []).append(spec)
                imports.update(desc.imports)
            decls.append(ctx.declare(
                params_type, DeclarationKind.TYPE, SECTION, "params_type",
                operation=op, type_name=params_type, op_name=op.name, fields=fields,
                imports=type_imports(*(ctx.param_type(op, p) for p in optional)),
            ))
            args.append(f"params *{params_type}")
            imports.add("fmt")
            if ParamLocation.QUERY in specs:
                imports.add("net/url")
            if ParamLocation.COOKIE in specs:
                imports.add("net/http")

        has_body = op.request_body is not None
        content_type = op.request_content_type or "application/json"
        if has_body:
            if is_json(op.request_content_type):
                body = ctx.body_type(op)
                args.append(f"body {ctx.ref_go(body)}")
                imports.update(body.imports)
            else:
                args.append("body io.Reader")
                imports.add("io")

        success = ctx.success_type(op)
        if success is not None:
            result = ctx.ref_go(success)
            imports.update(success.imports)
        else:
            result = "*http.Response"
            imports.add("net/http")

        method = {
            "name": op.name,
            "doc": operation_doc(op.name, op),
            "args": ", ".join(args),
            "result": result,
            "path_expr": path_expression(op.path, path_args),
            "method": op.method,
            "query": specs.get(ParamLocation.QUERY, []),
            "headers": specs.get(ParamLocation.HEADER, []),
            "cookies": specs.get(ParamLocation.COOKIE, []),
            "has_body": has_body,
            "content_type": content_type,
        }
        decls.append(ctx.declare(
            op.name, DeclarationKind.METHOD, SECTION, "operation_method",
            operation=op, receiver=n["client"], n=n, m=method, imports=imports,
        ))
        return decls
