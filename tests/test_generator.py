"""Tests for the generation pipeline."""

import pytest

from oasgen.config import GeneratorConfig
from oasgen.errors import DocumentError, GenerationError, StrictModeError
from oasgen.generator import generate
from oasgen.issues import Severity
from oasgen.loader import load_document
from oasgen.normalizer import normalize
from oasgen.render import render_files

from helpers import fixture_path, minimal_document


class TestGenerate:
    """End-to-end runs over the sample documents."""

    def test_defaults_emit_types_only(self, run):
        result = run()
        assert {b.section for b in result.buckets} == {"types"}
        assert result.package_name == "api"
        assert result.dialect == "openapi3"

    def test_counts(self, run):
        result = run(generate_client=True)
        assert result.operation_count == 5
        assert result.type_count == len({d.name for d in result.section("types")})
        assert result.file_count == len(result.buckets) + 1

    def test_no_types(self, run):
        result = run(generate_types=False)
        assert result.buckets == []
        assert result.type_count == 0

    def test_accepts_normalized_document(self, petstore_doc):
        result = generate(normalize(petstore_doc), GeneratorConfig(generate_client=True))
        assert "Client.ListPets" in {d.qualified_name for d in result.section("client")}

    def test_rejects_other_input(self):
        with pytest.raises(DocumentError):
            generate(["not", "a", "document"])

    def test_missing_paths(self):
        with pytest.raises(DocumentError):
            generate({"openapi": "3.0.0", "info": {"title": "x", "version": "1"}})

    def test_swagger(self, run, swagger_doc):
        result = run(swagger_doc, generate_client=True)
        assert result.dialect == "swagger2"
        assert {op.name for op in result.operations} == {"FindPets", "AddPet", "UploadPhoto"}

    def test_deterministic(self, run, petstore_doc):
        options = {"generate_client": True, "server_all": True, "generate_security_enforce": True,
                   "max_operations_per_file": 2}
        first = render_files(run(petstore_doc, **options))
        second = render_files(run(petstore_doc, **options))
        assert first == second

    def test_split_uses_group_buckets(self, run):
        result = run(generate_client=True, max_operations_per_file=1)
        assert result.needs_split
        names = {b.name for b in result.buckets if b.section == "client"}
        assert "client" in names
        assert "client_pets" in names
        assert "client_store" in names


class TestIssues:
    """Issue collection and strict mode."""

    def test_info_recorded(self, run):
        result = run()
        messages = [i.message for i in result.issues if i.severity is Severity.INFO]
        assert "operation DeletePet is deprecated" in messages
        assert result.info_count == len(messages)

    def test_include_info_false(self, run):
        result = run(include_info=False)
        assert all(i.severity is not Severity.INFO for i in result.issues)
        assert result.info_count == 0

    def test_source_locations(self):
        loaded = load_document(fixture_path("petstore.yaml"))
        result = generate(loaded.data, source_map=loaded.source_map)
        deprecated = next(i for i in result.issues if "deprecated" in i.message)
        assert deprecated.location is not None
        assert deprecated.location.file == "petstore.yaml"

    def test_strict_accepts_info(self, run):
        result = run(generate_client=True, strict_mode=True)
        assert result.info_count > 0

    def test_strict_rejects_warnings(self, run, swagger_doc):
        with pytest.raises(StrictModeError) as excinfo:
            run(swagger_doc, generate_client=True, generate_oauth2_flows=True, strict_mode=True)
        issues = excinfo.value.result.issues
        assert any("insecure URL http://auth.internal.example.com/token" in i.message for i in issues)
        assert "warning(s)" in str(excinfo.value)

    def test_zero_operations_warns(self):
        result = generate(minimal_document(), GeneratorConfig(server_stubs=True))
        warnings = [i.message for i in result.issues if i.path == "paths"]
        assert warnings == ["server extensions requested but the document has no operations"]
        assert result.section("server_stubs") == []
        assert "ServerInterface" in {d.name for d in result.section("server")}

    def test_zero_operations_strict(self):
        with pytest.raises(GenerationError):
            generate(minimal_document(), GeneratorConfig(server_stubs=True, strict_mode=True))

    def test_zero_operations_scaffold_only(self):
        result = generate(minimal_document(), GeneratorConfig(generate_server=True))
        assert result.warning_count == 0
