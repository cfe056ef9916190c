"""Tests for the stdlib and chi routers."""

import pytest

from oasgen.router import route_sort_key, route_table

from helpers import bodies, make_context


class TestRouteTable:
    """Route ordering shared by both strategies."""

    def test_literals_before_templates(self):
        paths = ["/pets/{id}", "/pets/mine", "/pets"]
        assert sorted(paths, key=route_sort_key) == ["/pets", "/pets/mine", "/pets/{id}"]

    def test_rows(self, petstore_doc):
        routes = route_table(make_context(petstore_doc, server_router="stdlib"))
        assert [r.case for r in routes] == [
            "/pets:GET",
            "/pets:POST",
            "/pets/{petId}:DELETE",
            "/pets/{petId}:GET",
            "/stores/{storeId}/inventory:GET",
        ]
        show = next(r for r in routes if r.operation.name == "ShowPetById")
        assert [p.field for p in show.params] == ["PetId", "XRequestID"]
        assert show.request_type == "ShowPetByIdRequest"


class TestStdlibRouter:
    """ServerRouter with its dispatch switch."""

    @pytest.fixture
    def router(self, run):
        return bodies(run(server_router="stdlib"), "server_router")

    def test_infrastructure(self, router):
        for name in ("ServerRouter", "NewServerRouter", "ServerRouter.Handler", "ServerRouter.ServeHTTP",
                     "ServerRouter.dispatch", "PathParam", "RouterOption", "WithMiddleware",
                     "WithErrorHandler", "routerWriteResponse", "routerWriteError"):
            assert name in router

    def test_constructor(self, router):
        assert "func NewServerRouter(server ServerInterface, opts ...RouterOption) *ServerRouter {" in (
            router["NewServerRouter"]
        )

    def test_dispatch_cases(self, router):
        body = router["ServerRouter.dispatch"]
        assert 'case "/pets/{petId}:GET":\n\t\tr.handleShowPetById(w, req)' in body
        assert "http.StatusMethodNotAllowed" in body

    def test_route_table(self, router):
        body = router["serverRoutes"]
        assert '{pattern: "/pets", segments: []string{"pets"}},' in body
        assert body.index('"/pets/{petId}"') < body.index('"/stores/{storeId}/inventory"')

    def test_typed_path_param(self, router):
        body = router["ServerRouter.handleShowPetById"]
        assert 'raw := PathParam(req, "petId")' in body
        assert "parsed, err := strconv.ParseInt(raw, 10, 64)" in body
        assert 'routerWriteError(w, http.StatusBadRequest, "invalid path parameter: petId")' in body
        assert 'routerWriteError(w, http.StatusBadRequest, "missing required path parameter: petId")' in body

    def test_body_decode(self, router):
        body = router["ServerRouter.handleCreatePet"]
        assert '"invalid request body"' in body
        assert "resp, err := r.server.CreatePet(req.Context(), request)" in body

    def test_not_implemented_maps_to_501(self, router):
        assert "http.StatusNotImplemented" in router["ServerRouter.handleError"]

    def test_router_implies_scaffold(self, run):
        result = run(server_router="stdlib")
        assert result.config.generate_server
        assert "ServerInterface" in bodies(result, "server")


class TestChiRouter:
    """NewChiRouter registrations."""

    @pytest.fixture
    def result(self, run):
        return run(server_router="chi")

    def test_registrations(self, result):
        body = bodies(result, "server_router")["NewChiRouter"]
        assert "func NewChiRouter(server ServerInterface, opts ...RouterOption) chi.Router {" in body
        assert 'r.Get("/pets/{petId}", handleShowPetByIdChi(server, cfg))' in body
        assert 'r.Post("/pets", handleCreatePetChi(server, cfg))' in body
        assert 'r.Delete("/pets/{petId}", handleDeletePetChi(server, cfg))' in body

    def test_url_param(self, result):
        handler = next(d for d in result.section("server_router") if d.name == "handleShowPetByIdChi")
        assert 'raw := chi.URLParam(req, "petId")' in handler.body
        assert "github.com/go-chi/chi/v5" in handler.imports

    def test_config_captured_by_handlers(self, result):
        router = bodies(result, "server_router")
        assert "chiRouterConfig" in router
        assert "cfg.handleError(w, req, err)" in router["handleListPetsChi"]

    def test_no_stdlib_declarations(self, result):
        assert "ServerRouter" not in bodies(result, "server_router")


class TestTwoOperationScenario:
    """Two operations sharing a tag, a typed path parameter and a schema."""

    @pytest.fixture
    def result(self, run, pets_doc):
        return run(pets_doc, server_router="stdlib", server_responses=True)

    def test_one_router_bucket(self, result):
        assert [b.name for b in result.buckets if b.section == "server_router"] == ["server_router"]

    def test_guarded_parse_per_operation(self, result):
        router = bodies(result, "server_router")
        for handler in ("ServerRouter.handleGetPet", "ServerRouter.handleDeletePet"):
            assert router[handler].count("strconv.ParseInt(raw, 10, 64)") == 1
            assert '"invalid path parameter: id"' in router[handler]

    def test_response_type_and_writer_per_operation(self, result):
        responses = bodies(result, "server_responses")
        for op in ("GetPet", "DeletePet"):
            assert f"{op}Response" in responses
            assert f"{op}Response.WriteTo" in responses

    def test_one_shared_type_bucket(self, result):
        type_buckets = [b for b in result.buckets if b.section == "types"]
        assert len(type_buckets) == 1
        assert [d.name for d in type_buckets[0].declarations] == ["Pet"]
