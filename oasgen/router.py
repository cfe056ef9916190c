"""HTTP routers dispatching to a ServerInterface.

Both strategies consume the same route table:

  stdlib   ServerRouter: literal-first path-template matching and a
           "<path>:<METHOD>" dispatch switch, PathParam for handlers
  chi      NewChiRouter: r.Get/r.Post/... (or r.Method) registrations on a
           chi.Router, chi.URLParam for handlers

Typed path, query, header and cookie parameters are parsed with explicit
error checks; a failed parse answers 400 naming the parameter.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict

from .context import GenerationContext
from .models import DeclarationKind, GeneratedDeclaration, Operation, Parameter, ParamLocation
from .render import go_string
from .server import bind_body, bind_parameter, block
from .typemap import TypeDescriptor

logger = logging.getLogger(__name__)

SECTION = "server_router"

STDLIB = "stdlib"
CHI = "chi"
CHI_IMPORT = "github.com/go-chi/chi/v5"

# Methods with a dedicated chi.Router registration function
_CHI_METHODS = {
    "GET": "Get",
    "PUT": "Put",
    "POST": "Post",
    "DELETE": "Delete",
    "OPTIONS": "Options",
    "HEAD": "Head",
    "PATCH": "Patch",
    "TRACE": "Trace",
    "CONNECT": "Connect",
}

T = DeclarationKind.TYPE
F = DeclarationKind.FUNCTION
M = DeclarationKind.METHOD
V = DeclarationKind.VARIABLE


class RouteParam(BaseModel):
    model_config = ConfigDict(frozen=True)

    parameter: Parameter
    field: str
    type: TypeDescriptor


class RouteSpec(BaseModel):
    """One row of the route table."""

    model_config = ConfigDict(frozen=True)

    operation: Operation
    method: str
    path: str
    request_type: str
    params: tuple[RouteParam, ...] = ()

    @property
    def case(self) -> str:
        return f"{self.path}:{self.method}"


def route_sort_key(path: str) -> tuple:
    """Literal segments sort before templates at the same position."""
    return tuple((segment.startswith("{"), segment) for segment in path.strip("/").split("/"))


def route_table(ctx: GenerationContext) -> list[RouteSpec]:
    routes = []
    for op in ctx.operations:
        params = tuple(
            RouteParam(parameter=param, field=field, type=desc)
            for param, field, desc in ctx.request_fields(op)
        )
        routes.append(RouteSpec(
            operation=op,
            method=op.method,
            path=op.path,
            request_type=ctx.request_type(op),
            params=params,
        ))
    routes.sort(key=lambda r: (route_sort_key(r.path), r.method))
    return routes


def _bad_request(message: str) -> list[str]:
    return [f"routerWriteError(w, http.StatusBadRequest, {go_string(message)})", "return"]


class RouterSynthesizer:
    def __init__(self, ctx: GenerationContext) -> None:
        self.ctx = ctx
        self.decl = ctx.declare

    def synthesize(self) -> list[GeneratedDeclaration]:
        strategy = self.ctx.config.server_router
        if not strategy or not self.ctx.operations:
            return []
        routes = route_table(self.ctx)
        builders = {STDLIB: self._stdlib, CHI: self._chi}
        logger.debug("building %s router for %d routes", strategy, len(routes))
        return builders[strategy](routes)

    # --- shared --------------------------------------------------------------

    def _common_names(self) -> dict[str, str]:
        ctx = self.ctx
        return {
            "interface": ctx.server_interface(),
            "error_handler": ctx.name("ErrorHandler", section=SECTION),
            "option": ctx.name("RouterOption", section=SECTION),
            "with_middleware": ctx.name("WithMiddleware", F, section=SECTION),
            "with_error_handler": ctx.name("WithErrorHandler", F, section=SECTION),
            "write_response": ctx.name("routerWriteResponse", F, section=SECTION, exported=False),
            "write_error": ctx.name("routerWriteError", F, section=SECTION, exported=False),
            "err_not_implemented": ctx.name("ErrNotImplemented", V, section="server"),
        }

    def _common(self, n: dict[str, str], options_target: str) -> list[GeneratedDeclaration]:
        decl = self.decl
        return [
            decl(n["error_handler"], T, SECTION, "error_handler", n=n, imports=["net/http"]),
            decl(n["option"], T, SECTION, "router_option", n=n, target=options_target),
            decl(n["with_middleware"], F, SECTION, "with_middleware", n=n, target=options_target,
                 imports=["net/http"]),
            decl(n["with_error_handler"], F, SECTION, "with_error_handler", n=n, target=options_target),
            decl(n["write_response"], F, SECTION, "write_response", n=n, imports=["encoding/json", "net/http"]),
            decl(n["write_error"], F, SECTION, "write_error", n=n, imports=["encoding/json", "net/http"]),
        ]

    def _handler_body(self, route: RouteSpec, path_value, depth: int) -> tuple[list[str], set[str]]:
        """Binding blocks filling ``request`` from ``req``."""
        ctx = self.ctx
        blocks, imports = [], {"net/http"}
        for rp in route.params:
            param = rp.parameter
            where = f"{param.location.value} parameter: {param.name}"
            lines, extra = bind_parameter(
                ctx, param, rp.type, f"request.{rp.field}",
                request="req",
                path_value=path_value,
                fail=lambda err, where=where: _bad_request(f"invalid {where}"),
                missing=_bad_request(f"missing required {where}"),
            )
            blocks.append(block(lines, depth))
            imports |= extra
        if route.operation.request_body is not None:
            lines, extra = bind_body(
                ctx, route.operation, "request.Body", request="req",
                fail=lambda err: _bad_request("invalid request body"),
            )
            blocks.append(block(lines, depth))
            imports |= extra
        return blocks, imports

    # --- stdlib --------------------------------------------------------------

    def _stdlib(self, routes: list[RouteSpec]) -> list[GeneratedDeclaration]:
        ctx, decl = self.ctx, self.decl
        router = ctx.name("ServerRouter", section=SECTION)
        route_type = ctx.name("serverRoute", section=SECTION, exported=False)
        n = {
            **self._common_names(),
            "router": router,
            "new_router": ctx.name("NewServerRouter", F, section=SECTION),
            "dispatch": ctx.method(router, "dispatch", section=SECTION, exported=False),
            "handle_error": ctx.method(router, "handleError", section=SECTION, exported=False),
            "path_params_key": ctx.name("pathParamsKey", section=SECTION, exported=False),
            "path_param": ctx.name("PathParam", F, section=SECTION),
            "route": route_type,
            "routes": ctx.name("serverRoutes", V, section=SECTION, exported=False),
            "match": ctx.name("matchRoute", F, section=SECTION, exported=False),
        }
        cases = []
        handlers = []
        for route in routes:
            op = route.operation
            handler = ctx.method(router, f"handle{op.name}", section=SECTION, exported=False)
            cases.append({"case": go_string(route.case), "handler": handler})
            blocks, imports = self._handler_body(
                route, lambda quoted: f"{n['path_param']}(req, {quoted})", depth=1,
            )
            h = {"name": handler, "op_name": op.name, "request": route.request_type, "blocks": blocks}
            handlers.append(decl(handler, M, SECTION, "stdlib_handler", operation=op, receiver=router,
                                 n=n, h=h, imports=imports))

        table = []
        for path in sorted({r.path for r in routes}, key=route_sort_key):
            segments = path.strip("/").split("/")
            table.append({
                "pattern": go_string(path),
                "segments": ", ".join(go_string(s) for s in segments),
            })

        decls = self._common(n, router)
        decls += [
            decl(router, T, SECTION, "server_router", n=n, imports=["net/http"]),
            decl(n["new_router"], F, SECTION, "new_server_router", n=n, imports=["net/http"]),
            decl("Handler", M, SECTION, "router_handler", n=n, receiver=router, imports=["net/http"]),
            decl("ServeHTTP", M, SECTION, "router_serve_http", n=n, receiver=router, imports=["net/http"]),
            decl(n["dispatch"], M, SECTION, "router_dispatch", n=n, receiver=router, cases=cases,
                 imports=["context", "net/http"]),
            decl(n["handle_error"], M, SECTION, "stdlib_handle_error", n=n, receiver=router,
                 imports=["errors", "net/http"]),
            decl(n["path_params_key"], T, SECTION, "path_params_key", n=n),
            decl(n["path_param"], F, SECTION, "path_param", n=n, imports=["net/http"]),
            decl(route_type, T, SECTION, "route_type", n=n),
            decl(n["routes"], V, SECTION, "route_table", n=n, table=table),
            decl(n["match"], F, SECTION, "match_route", n=n, imports=["strings"]),
        ]
        return decls + handlers

    # --- chi -----------------------------------------------------------------

    def _chi(self, routes: list[RouteSpec]) -> list[GeneratedDeclaration]:
        ctx, decl = self.ctx, self.decl
        config = ctx.name("chiRouterConfig", section=SECTION, exported=False)
        n = {
            **self._common_names(),
            "config": config,
            "new_chi": ctx.name("NewChiRouter", F, section=SECTION),
            "handle_error": ctx.method(config, "handleError", section=SECTION, exported=False),
        }
        registrations = []
        handlers = []
        for route in routes:
            op = route.operation
            handler = ctx.name(f"handle{op.name}Chi", F, section=SECTION, exported=False)
            chi_method = _CHI_METHODS.get(route.method)
            if chi_method:
                call = f"r.{chi_method}({go_string(route.path)}, {handler}(server, cfg))"
            else:
                call = f"r.Method({go_string(route.method)}, {go_string(route.path)}, {handler}(server, cfg))"
            registrations.append(call)
            blocks, imports = self._handler_body(
                route, lambda quoted: f"chi.URLParam(req, {quoted})", depth=2,
            )
            if any(rp.parameter.location is ParamLocation.PATH for rp in route.params):
                imports.add(CHI_IMPORT)
            h = {"name": handler, "op_name": op.name, "request": route.request_type, "blocks": blocks}
            handlers.append(decl(handler, F, SECTION, "chi_handler", operation=op, n=n, h=h, imports=imports))

        decls = self._common(n, config)
        decls += [
            decl(config, T, SECTION, "chi_router_config", n=n, imports=["net/http"]),
            decl(n["handle_error"], M, SECTION, "chi_handle_error", n=n, receiver=config,
                 imports=["errors", "net/http"]),
            decl(n["new_chi"], F, SECTION, "new_chi_router", n=n, registrations=registrations,
                 imports=[CHI_IMPORT]),
        ]
        return decls + handlers
