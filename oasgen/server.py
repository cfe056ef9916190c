"""Server scaffolding and the optional server extensions.

Sections emitted here:

  server             ServerInterface, <Op>Request, UnimplementedServer
  server_responses   <Op>Response with Status<code> constructors, write helpers
  server_validation  ValidationError and RequestValidator (binder and middleware)
  server_binder      RequestBinder with one Bind<Op>Request method per operation
  server_middleware  ValidationMiddleware and its response recorder
  server_stubs       StubServer with one overridable func field per operation

The router lives in ``router`` and shares the parameter binding below.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from .client import operation_doc
from .context import GenerationContext, is_json, type_imports
from .models import DeclarationKind, GeneratedDeclaration, Operation, Parameter, ParamLocation
from .naming import NameKind
from .render import go_string
from .typemap import TypeDescriptor, TypeKind

logger = logging.getLogger(__name__)

SECTION = "server"

_INT_BITS = {"int": 0, "int32": 32, "int64": 64}
_FLOAT_BITS = {"float32": 32, "float64": 64}
_SCALARS = (TypeKind.PRIMITIVE, TypeKind.TEMPORAL, TypeKind.BYTES)

T = DeclarationKind.TYPE
F = DeclarationKind.FUNCTION
M = DeclarationKind.METHOD
C = DeclarationKind.CONSTANT
V = DeclarationKind.VARIABLE

# err expression -> statements run when a value fails to parse
FailLines = Callable[[str], list[str]]


def indent(lines: list[str], depth: int = 1) -> list[str]:
    prefix = "\t" * depth
    return [prefix + line if line else line for line in lines]


def block(lines: list[str], depth: int = 1) -> str:
    return "\n".join(indent(lines, depth))


# --- parameter binding -------------------------------------------------------


def underlying(ctx: GenerationContext, desc: TypeDescriptor) -> tuple[TypeDescriptor, str]:
    """Scalar wrapped by a named enum/defined type, and that type's name."""
    if desc.kind is TypeKind.COMPOSITE and not desc.indirect:
        definition = ctx.types.definitions.get(desc.name)
        if definition is not None and definition.target is not None and definition.target.kind in _SCALARS:
            return definition.target, desc.name
    return desc, ""


def parse_scalar(
    ctx: GenerationContext, desc: TypeDescriptor, raw: str, fail: FailLines
) -> tuple[list[str], str, set[str]]:
    """Statements turning the string ``raw`` into a value of ``desc``.

    Returns (statements, value expression, imports). Integers, numbers and
    booleans go through strconv, date-times through time.Parse, and
    anything that is not a scalar is decoded as JSON.
    """
    scalar, conversion = underlying(ctx, desc)
    name = scalar.name if scalar.kind in _SCALARS else ""
    imports: set[str] = set()
    call = ""
    if name == "string":
        value = raw
    elif name == "[]byte":
        value = f"[]byte({raw})"
    elif name in _INT_BITS:
        call = f"strconv.ParseInt({raw}, 10, {_INT_BITS[name]})"
        value = "parsed" if name == "int64" else f"{name}(parsed)"
        imports.add("strconv")
    elif name in _FLOAT_BITS:
        call = f"strconv.ParseFloat({raw}, {_FLOAT_BITS[name]})"
        value = "parsed" if name == "float64" else "float32(parsed)"
        imports.add("strconv")
    elif name == "bool":
        call = f"strconv.ParseBool({raw})"
        value = "parsed"
        imports.add("strconv")
    elif name == "time.Time":
        call = f"time.Parse(time.RFC3339, {raw})"
        value = "parsed"
        imports.add("time")
    else:
        lines = [
            f"var parsed {desc.go}",
            f"if err := json.Unmarshal([]byte({raw}), &parsed); err != nil {{",
            *indent(fail("err")),
            "}",
        ]
        return lines, "parsed", {"encoding/json", *desc.imports}

    lines = []
    if call:
        lines = [f"parsed, err := {call}", "if err != nil {", *indent(fail("err")), "}"]
    if conversion:
        value = f"{conversion}({value})"
    return lines, value, imports


def _raw_source(location: ParamLocation, name: str, request: str, path_value: Callable[[str], str]) -> list[str]:
    quoted = go_string(name)
    if location is ParamLocation.PATH:
        return [f"raw := {path_value(quoted)}"]
    if location is ParamLocation.QUERY:
        return [f"raw := {request}.URL.Query().Get({quoted})"]
    if location is ParamLocation.HEADER:
        return [f"raw := {request}.Header.Get({quoted})"]
    return [
        'raw := ""',
        f"if cookie, err := {request}.Cookie({quoted}); err == nil {{",
        "\traw = cookie.Value",
        "}",
    ]


def _values_source(location: ParamLocation, name: str, request: str, path_value: Callable[[str], str]) -> list[str]:
    quoted = go_string(name)
    if location is ParamLocation.QUERY:
        return [f"values := {request}.URL.Query()[{quoted}]"]
    if location is ParamLocation.HEADER:
        return [f"values := {request}.Header.Values({quoted})"]
    return [
        *_raw_source(location, name, request, path_value),
        "var values []string",
        'if raw != "" {',
        '\tvalues = strings.Split(raw, ",")',
        "}",
    ]


def bind_parameter(
    ctx: GenerationContext,
    param: Parameter,
    desc: TypeDescriptor,
    target: str,
    *,
    request: str,
    path_value: Callable[[str], str],
    fail: FailLines,
    missing: list[str],
) -> tuple[list[str], set[str]]:
    """A scoped block reading one parameter from ``request`` into ``target``."""
    base = desc.base
    imports: set[str] = set(desc.imports)
    if base.kind is TypeKind.SEQUENCE:
        if param.location in (ParamLocation.PATH, ParamLocation.COOKIE):
            imports.add("strings")
        parse, value, extra = parse_scalar(ctx, base.element, "raw", fail)
        lines = _values_source(param.location, param.name, request, path_value)
        if param.required:
            lines += ["if len(values) == 0 {", *indent(missing), "}"]
        lines += [
            "for _, raw := range values {",
            *indent(parse),
            f"\t{target} = append({target}, {value})",
            "}",
        ]
    else:
        parse, value, extra = parse_scalar(ctx, base, "raw", fail)
        if desc.kind is TypeKind.OPTIONAL and not base.nilable:
            assign = [f"value := {value}", f"{target} = &value"]
        else:
            assign = [f"{target} = {value}"]
        lines = _raw_source(param.location, param.name, request, path_value)
        if param.required:
            lines += ['if raw == "" {', *indent(missing), "}", *parse, *assign]
        else:
            lines += ['if raw != "" {', *indent(parse + assign), "}"]
    return ["{", *indent(lines), "}"], imports | extra


def bind_body(
    ctx: GenerationContext, op: Operation, target: str, *, request: str, fail: FailLines
) -> tuple[list[str], set[str]]:
    """Statements decoding the request body into ``target``."""
    if not is_json(op.request_content_type):
        return [f"{target} = {request}.Body"], set()
    body = ctx.body_type(op)
    go = ctx.ref_go(body)
    imports = {"encoding/json", *body.imports}
    assign = f"{target} = {'&body' if go != body.go else 'body'}"
    decode = f"json.NewDecoder({request}.Body).Decode(&body)"
    if op.request_body_required:
        lines = [
            f"if err := {decode}; err != nil {{",
            *indent(fail("err")),
            "}",
            assign,
        ]
    else:
        # An empty body leaves the optional target unset
        imports.update({"errors", "io"})
        lines = [
            f"err := {decode}",
            "if err != nil && !errors.Is(err, io.EOF) {",
            *indent(fail("err")),
            "}",
            "if err == nil {",
            f"\t{assign}",
            "}",
        ]
    return ["{", f"\tvar body {body.go}", *indent(lines), "}"], imports


# --- synthesizer -------------------------------------------------------------


class ServerSynthesizer:
    """Server scaffold plus the responses, binder, middleware and stub extensions."""

    def __init__(self, ctx: GenerationContext) -> None:
        self.ctx = ctx
        self.decl = ctx.declare

    def synthesize(self) -> list[GeneratedDeclaration]:
        config = self.ctx.config
        decls = self.scaffold()
        if not self.ctx.operations:
            logger.debug("no operations; server extensions skipped")
            return decls
        if config.server_responses:
            decls.extend(self.responses())
        if config.server_binder or config.server_middleware:
            decls.extend(self.validation())
        if config.server_binder:
            decls.extend(self.binder())
        if config.server_middleware:
            decls.extend(self.middleware())
        if config.server_stubs:
            decls.extend(self.stubs())
        return decls

    # --- scaffold ------------------------------------------------------------

    def _result_imports(self, op: Operation) -> set[str]:
        if self.ctx.config.server_responses:
            return set()
        return type_imports(self.ctx.success_type(op))

    def signature(self, op: Operation) -> dict[str, Any]:
        ctx = self.ctx
        return {
            "name": op.name,
            "doc": operation_doc(op.name, op),
            "request": ctx.request_type(op),
            "result": ctx.server_result(op),
            "imports": {"context"} | self._result_imports(op),
        }

    def scaffold(self) -> list[GeneratedDeclaration]:
        ctx, decl = self.ctx, self.decl
        n = {
            "interface": ctx.server_interface(),
            "err_not_implemented": ctx.name("ErrNotImplemented", V, section=SECTION),
            "not_implemented_error": ctx.name("NotImplementedError", section=SECTION),
            "unimplemented": ctx.name("UnimplementedServer", section=SECTION),
        }
        methods = [self.signature(op) for op in ctx.operations]
        interface_imports = {"context"}
        for m in methods:
            interface_imports |= m["imports"]
        decls = [
            decl(n["interface"], T, SECTION, "server_interface", n=n, methods=methods, imports=interface_imports),
            decl(n["err_not_implemented"], V, SECTION, "err_not_implemented", n=n, imports=["errors"]),
            decl(n["not_implemented_error"], T, SECTION, "not_implemented_error", n=n),
            decl("Error", M, SECTION, "not_implemented_message", n=n, receiver=n["not_implemented_error"]),
            decl("Unwrap", M, SECTION, "not_implemented_unwrap", n=n, receiver=n["not_implemented_error"]),
            decl(n["unimplemented"], T, SECTION, "unimplemented_server", n=n),
        ]
        for op, m in zip(ctx.operations, methods):
            decls.append(self._request_type(op))
            decls.append(decl(
                op.name, M, SECTION, "unimplemented_method",
                operation=op, receiver=n["unimplemented"], n=n, m=m, imports=m["imports"],
            ))
        return decls

    def _request_type(self, op: Operation) -> GeneratedDeclaration:
        ctx = self.ctx
        type_name = ctx.request_type(op)
        imports = {"net/http"}
        fields = []
        for param, field, desc in ctx.request_fields(op):
            fields.append({
                "field": field,
                "go": desc.go,
                "description": param.description or f"{param.name} is the {param.location.value} parameter {param.name!r}.",
            })
            imports.update(desc.imports)
        body = ctx.request_body_go(op)
        if body is not None:
            imports.update(body[1])
        return self.decl(
            type_name, T, SECTION, "request_type",
            operation=op, type_name=type_name, op_name=op.name, fields=fields,
            body=body[0] if body else "", imports=imports,
        )

    # --- responses -----------------------------------------------------------

    def responses(self) -> list[GeneratedDeclaration]:
        ctx, decl = self.ctx, self.decl
        sec = "server_responses"
        n = {
            "write_json": ctx.name("WriteJSON", F, section=sec),
            "write_error": ctx.name("WriteError", F, section=sec),
            "write_no_content": ctx.name("WriteNoContent", F, section=sec),
        }
        decls = [
            decl(n["write_json"], F, sec, "write_json", n=n, imports=["encoding/json", "net/http"]),
            decl(n["write_error"], F, sec, "write_error", n=n, imports=["net/http"]),
            decl(n["write_no_content"], F, sec, "write_no_content", n=n, imports=["net/http"]),
        ]
        for op in ctx.operations:
            response_type = ctx.response_type(op)
            r = {"type": response_type, "op_name": op.name}
            decls.append(decl(response_type, T, sec, "response_type", operation=op, r=r, imports=["net/http"]))
            for status in status_order(op.responses):
                decls.append(self._status_method(op, response_type, r, status))
            decls.append(decl(
                "WriteTo", M, sec, "write_to", operation=op, receiver=response_type, n=n, r=r, imports=["net/http"],
            ))
        return decls

    def _status_method(self, op: Operation, response_type: str, r: dict[str, str], status: str) -> GeneratedDeclaration:
        ctx = self.ctx
        resp = op.responses[status]
        body = ""
        imports: tuple[str, ...] = ()
        if resp.schema_node is not None:
            if is_json(resp.content_type):
                desc = ctx.response_descriptor(op, resp)
                body, imports = ctx.ref_go(desc), desc.imports
            else:
                body = "[]byte"
        numeric = status.isdigit()
        method = ctx.method(response_type, "StatusDefault" if status == "default" else f"Status{status}",
                            section="server_responses")
        params = [] if numeric else ["statusCode int"]
        if body:
            params.append(f"body {body}")
        label = "default" if status == "default" else status
        doc = f"{method} builds the {label} response of {op.name}."
        if resp.description:
            doc += f"\n\n{resp.description}"
        s = {
            "method": method,
            "doc": doc,
            "params": ", ".join(params),
            "status": status if numeric else "statusCode",
            "has_body": bool(body),
        }
        return self.decl(
            method, M, "server_responses", "status_method",
            operation=op, receiver=response_type, r=r, s=s, imports=imports,
        )

    # --- validation contract -------------------------------------------------

    def validation_names(self) -> dict[str, str]:
        sec = "server_validation"
        return {
            "validation_error": self.ctx.name("ValidationError", section=sec),
            "request_validator": self.ctx.name("RequestValidator", section=sec),
        }

    def validation(self) -> list[GeneratedDeclaration]:
        decl, sec = self.decl, "server_validation"
        n = self.validation_names()
        return [
            decl(n["validation_error"], T, sec, "validation_error", n=n),
            decl("Error", M, sec, "validation_error_message", n=n, receiver=n["validation_error"]),
            decl(n["request_validator"], T, sec, "request_validator", n=n, imports=["net/http"]),
        ]

    # --- binder --------------------------------------------------------------

    def binder_names(self) -> dict[str, str]:
        ctx, sec = self.ctx, "server_binder"
        binder = ctx.name("RequestBinder", section=sec)
        return {
            **self.validation_names(),
            "kind": ctx.name("BindingErrorKind", section=sec),
            "malformed": ctx.name("BindingErrorMalformed", C, section=sec),
            "invalid": ctx.name("BindingErrorValidation", C, section=sec),
            "binding_error": ctx.name("BindingError", section=sec),
            "binder": binder,
            "option": ctx.name("BinderOption", section=sec),
            "with_path_param": ctx.name("WithPathParamFunc", F, section=sec),
            "new_binder": ctx.name("NewRequestBinder", F, section=sec),
            "validate": ctx.method(binder, "validate", section=sec, exported=False),
        }

    def binder(self) -> list[GeneratedDeclaration]:
        decl, sec = self.decl, "server_binder"
        n = self.binder_names()
        err = n["binding_error"]
        decls = [
            decl(n["kind"], T, sec, "binding_error_kind", n=n),
            decl(n["malformed"], C, sec, "binding_error_kinds", n=n),
            decl(err, T, sec, "binding_error", n=n),
            decl("Error", M, sec, "binding_error_message", n=n, receiver=err, imports=["fmt"]),
            decl("Unwrap", M, sec, "binding_error_unwrap", n=n, receiver=err),
            decl("ValidationErrors", M, sec, "binding_error_validation_errors", n=n, receiver=err),
            decl(n["binder"], T, sec, "request_binder", n=n, imports=["net/http"]),
            decl(n["option"], T, sec, "binder_option", n=n),
            decl(n["with_path_param"], F, sec, "with_path_param_func", n=n, imports=["net/http"]),
            decl(n["new_binder"], F, sec, "new_request_binder", n=n, imports=["net/http"]),
            decl(n["validate"], M, sec, "binder_validate", n=n, receiver=n["binder"],
                 imports=["bytes", "io", "net/http"]),
        ]
        for op in self.ctx.operations:
            decls.append(self._bind_method(op, n))
        return decls

    def _bind_method(self, op: Operation, n: dict[str, str]) -> GeneratedDeclaration:
        ctx, sec = self.ctx, "server_binder"
        method = ctx.method(n["binder"], f"Bind{op.name}Request", section=sec)
        imports = {"net/http"}
        blocks = []

        def malformed(parameter: str, err: str) -> list[str]:
            return [
                f"return nil, &{n['binding_error']}{{Kind: {n['malformed']}, "
                f"Parameter: {go_string(parameter)}, Err: {err}}}"
            ]

        for param, field, desc in ctx.request_fields(op):
            lines, extra = bind_parameter(
                ctx, param, desc, f"req.{field}",
                request="r",
                path_value=lambda quoted: f"b.pathParam(r, {quoted})",
                fail=lambda err, name=param.name: malformed(name, err),
                missing=malformed(param.name, 'errors.New("missing required parameter")'),
            )
            if param.required:
                imports.add("errors")
            blocks.append(block(lines))
            imports |= extra
        if op.request_body is not None:
            lines, extra = bind_body(ctx, op, "req.Body", request="r", fail=lambda err: malformed("body", err))
            blocks.append(block(lines))
            imports |= extra

        m = {
            "name": method,
            "op_name": op.name,
            "request": ctx.request_type(op),
            "blocks": blocks,
        }
        return self.decl(method, M, sec, "bind_method", operation=op, receiver=n["binder"], n=n, m=m, imports=imports)

    # --- middleware ----------------------------------------------------------

    def middleware(self) -> list[GeneratedDeclaration]:
        ctx, decl, sec = self.ctx, self.decl, "server_middleware"
        recorder = ctx.name("responseRecorder", section=sec, exported=False)
        n = {
            **self.validation_names(),
            "config": ctx.name("ValidationConfig", section=sec),
            "default_config": ctx.name("DefaultValidationConfig", F, section=sec),
            "response_validator": ctx.name("ResponseValidator", section=sec),
            "error_response": ctx.name("ValidationErrorResponse", section=sec),
            "middleware": ctx.name("ValidationMiddleware", F, section=sec),
            "middleware_with_config": ctx.name("ValidationMiddlewareWithConfig", F, section=sec),
            "recorder": recorder,
            "flush": ctx.method(recorder, "flush", section=sec, exported=False),
            "write_errors": ctx.name("writeValidationErrors", F, section=sec, exported=False),
        }
        return [
            decl(n["config"], T, sec, "validation_config", n=n, imports=["net/http"]),
            decl(n["default_config"], F, sec, "default_validation_config", n=n),
            decl(n["response_validator"], T, sec, "response_validator", n=n, imports=["net/http"]),
            decl(n["error_response"], T, sec, "validation_error_response", n=n),
            decl(n["middleware"], F, sec, "validation_middleware", n=n, imports=["net/http"]),
            decl(n["middleware_with_config"], F, sec, "validation_middleware_with_config", n=n,
                 imports=["bytes", "io", "net/http"]),
            decl(recorder, T, sec, "response_recorder", n=n, imports=["bytes", "net/http"]),
            decl("Header", M, sec, "recorder_header", n=n, receiver=recorder, imports=["net/http"]),
            decl("WriteHeader", M, sec, "recorder_write_header", n=n, receiver=recorder),
            decl("Write", M, sec, "recorder_write", n=n, receiver=recorder),
            decl(n["flush"], M, sec, "recorder_flush", n=n, receiver=recorder),
            decl(n["write_errors"], F, sec, "write_validation_errors", n=n, imports=["encoding/json", "net/http"]),
        ]

    # --- stubs ---------------------------------------------------------------

    def stubs(self) -> list[GeneratedDeclaration]:
        ctx, decl, sec = self.ctx, self.decl, "server_stubs"
        stub = ctx.name("StubServer", section=sec)
        n = {
            "stub": stub,
            "new_stub": ctx.name("NewStubServer", F, section=sec),
            "option": ctx.name("StubServerOption", section=sec),
            "new_with_options": ctx.name("NewStubServerWithOptions", F, section=sec),
        }
        methods = []
        for op in ctx.operations:
            m = self.signature(op)
            m["field"] = ctx.names.assign(f"{op.name}Func", NameKind.FIELD, scope=stub)
            m["option"] = ctx.name(f"With{op.name}", F, section=sec)
            methods.append((op, m))

        struct_imports = {"context"}
        for _, m in methods:
            struct_imports |= m["imports"]
        decls = [
            decl(stub, T, sec, "stub_server", n=n, methods=[m for _, m in methods], imports=struct_imports),
            decl(n["new_stub"], F, sec, "new_stub_server", n=n),
            decl("Reset", M, sec, "stub_reset", n=n, receiver=stub),
            decl(n["option"], T, sec, "stub_option", n=n),
            decl(n["new_with_options"], F, sec, "new_stub_server_with_options", n=n),
        ]
        for op, m in methods:
            decls.append(decl(op.name, M, sec, "stub_method", operation=op, receiver=stub, n=n, m=m,
                              imports=m["imports"]))
            decls.append(decl(m["option"], F, sec, "stub_with", operation=op, n=n, m=m, imports=m["imports"]))
        return decls


def status_order(responses: dict[str, Any]) -> list[str]:
    """Default first, then the status codes in sorted order."""
    ordered = ["default"] if "default" in responses else []
    return ordered + sorted(s for s in responses if s != "default")
