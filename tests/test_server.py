"""Tests for the server scaffold and its extensions."""

import pytest

from oasgen.config import GeneratorConfig
from oasgen.generator import generate
from oasgen.server import parse_scalar, status_order
from oasgen.typemap import BOOL, INT32, STRING, TIME

from helpers import bodies, make_context


@pytest.fixture(scope="module")
def full(petstore_doc):
    return generate(petstore_doc, GeneratorConfig(server_all=True))


def _fail(err):
    return [f"return {err}"]


class TestParseScalar:
    """String -> typed value conversions."""

    @pytest.fixture
    def ctx(self, petstore_doc):
        return make_context(petstore_doc)

    def test_string_is_raw(self, ctx):
        lines, value, imports = parse_scalar(ctx, STRING, "raw", _fail)
        assert (lines, value, imports) == ([], "raw", set())

    def test_int32(self, ctx):
        lines, value, imports = parse_scalar(ctx, INT32, "raw", _fail)
        assert lines[0] == "parsed, err := strconv.ParseInt(raw, 10, 32)"
        assert value == "int32(parsed)"
        assert imports == {"strconv"}

    def test_bool(self, ctx):
        lines, value, _ = parse_scalar(ctx, BOOL, "raw", _fail)
        assert lines[0] == "parsed, err := strconv.ParseBool(raw)"
        assert lines[2] == "\treturn err"

    def test_time(self, ctx):
        lines, _, imports = parse_scalar(ctx, TIME, "raw", _fail)
        assert "time.RFC3339" in lines[0]
        assert imports == {"time"}

    def test_enum_converts_to_named_type(self, ctx):
        _, value, _ = parse_scalar(ctx, ctx.types.composite("PetStatus"), "raw", _fail)
        assert value == "PetStatus(raw)"

    def test_struct_decoded_as_json(self, ctx):
        lines, value, imports = parse_scalar(ctx, ctx.types.composite("Pet"), "raw", _fail)
        assert lines[0] == "var parsed Pet"
        assert "encoding/json" in imports


class TestScaffold:
    """ServerInterface, request types and UnimplementedServer."""

    def test_interface_returns_typed_responses(self, full):
        body = bodies(full, "server")["ServerInterface"]
        assert "ListPets(ctx context.Context, req *ListPetsRequest) (ListPetsResponse, error)" in body
        assert "DeletePet(ctx context.Context, req *DeletePetRequest) (DeletePetResponse, error)" in body

    def test_interface_without_responses(self, run):
        body = bodies(run(generate_server=True), "server")["ServerInterface"]
        assert "(ctx context.Context, req *ListPetsRequest) ([]Pet, error)" in body
        assert "(ctx context.Context, req *ShowPetByIdRequest) (*Pet, error)" in body
        assert "(ctx context.Context, req *DeletePetRequest) (any, error)" in body

    def test_request_type_fields(self, full):
        server = bodies(full, "server")
        assert "PetId int64" in server["ShowPetByIdRequest"]
        assert "XRequestID *string" in server["ShowPetByIdRequest"]
        assert "Body *NewPet" in server["CreatePetRequest"]
        assert "HTTPRequest *http.Request" in server["DeletePetRequest"]

    def test_unimplemented(self, full):
        server = bodies(full, "server")
        assert 'return zero, &NotImplementedError{Operation: "ListPets"}' in server["UnimplementedServer.ListPets"]
        assert "return ErrNotImplemented" in server["NotImplementedError.Unwrap"]

    def test_server_only_emits_scaffold(self, run):
        result = run(generate_server=True)
        sections = {d.section for d in result.declarations}
        assert "server" in sections
        assert not sections & {"server_responses", "server_binder", "server_router", "server_stubs"}


class TestResponses:
    """<Op>Response and its status constructors."""

    def test_status_order(self):
        assert status_order({"404": 1, "200": 2, "default": 3}) == ["default", "200", "404"]

    def test_status_methods(self, full):
        responses = bodies(full, "server_responses")
        assert "func (ListPetsResponse) Status200(body []Pet) ListPetsResponse {" in (
            responses["ListPetsResponse.Status200"]
        )
        assert "StatusDefault(statusCode int, body *Error)" in responses["ListPetsResponse.StatusDefault"]
        assert "return DeletePetResponse{StatusCode: 204}" in responses["DeletePetResponse.Status204"]

    def test_wildcard_takes_status_code(self, full):
        body = bodies(full, "server_responses")["GetStoresInventoryByStoreIdResponse.Status2XX"]
        assert "Status2XX(statusCode int, body map[string]int32)" in body
        assert "StatusCode: statusCode, Body: body" in body

    def test_one_response_type_per_operation(self, full):
        types = [d.name for d in full.section("server_responses") if d.kind.value == "type"]
        assert sorted(types) == sorted(f"{op.name}Response" for op in full.operations)

    def test_write_helpers(self, full):
        responses = bodies(full, "server_responses")
        assert {"WriteJSON", "WriteError", "WriteNoContent"} <= set(responses)


class TestBinder:
    """RequestBinder.Bind<Op>Request."""

    def test_path_param(self, full):
        body = bodies(full, "server_binder")["RequestBinder.BindShowPetByIdRequest"]
        assert 'raw := b.pathParam(r, "petId")' in body
        assert "parsed, err := strconv.ParseInt(raw, 10, 64)" in body
        assert 'Parameter: "petId", Err: err}' in body
        assert "req.PetId = parsed" in body

    def test_optional_header(self, full):
        body = bodies(full, "server_binder")["RequestBinder.BindShowPetByIdRequest"]
        assert 'raw := r.Header.Get("X-Request-ID")' in body
        assert "req.XRequestID = &value" in body

    def test_query_array(self, full):
        body = bodies(full, "server_binder")["RequestBinder.BindListPetsRequest"]
        assert 'values := r.URL.Query()["tags"]' in body
        assert "req.Tags = append(req.Tags, raw)" in body

    def test_required_body(self, full):
        body = bodies(full, "server_binder")["RequestBinder.BindCreatePetRequest"]
        assert "if err := json.NewDecoder(r.Body).Decode(&body); err != nil {" in body
        assert "req.Body = &body" in body

    def test_optional_body_only_assigned_on_success(self):
        doc = {
            "openapi": "3.0.0",
            "info": {"title": "T", "version": "1"},
            "paths": {"/notes": {"post": {
                "operationId": "addNote",
                "requestBody": {"content": {"application/json": {"schema": {"type": "string"}}}},
                "responses": {"204": {"description": "ok"}},
            }}},
        }
        result = generate(doc, GeneratorConfig(server_binder=True))
        body = bodies(result, "server_binder")["RequestBinder.BindAddNoteRequest"]
        assert "if err != nil && !errors.Is(err, io.EOF) {" in body
        assert "if err == nil {" in body

    def test_default_path_param_reader(self, full):
        assert "return r.PathValue(name)" in bodies(full, "server_binder")["NewRequestBinder"]


class TestMiddlewareAndStubs:
    def test_middleware_declared(self, full):
        middleware = bodies(full, "server_middleware")
        assert {"ValidationMiddleware", "ValidationMiddlewareWithConfig", "DefaultValidationConfig"} <= set(middleware)

    def test_validation_contract_shared(self, full):
        assert {"ValidationError", "RequestValidator"} <= set(bodies(full, "server_validation"))

    def test_stub_fields(self, full):
        stub = bodies(full, "server_stubs")
        assert "ListPetsFunc func(ctx context.Context, req *ListPetsRequest) (ListPetsResponse, error)" in (
            stub["StubServer"]
        )
        assert "s.ListPetsFunc = fn" in stub["WithListPets"]
        assert "*s = StubServer{}" in stub["StubServer.Reset"]
