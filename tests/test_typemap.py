"""Tests for schema -> Go type mapping."""

import pytest

from oasgen.issues import IssueLog, Severity
from oasgen.models import SchemaKind, SchemaNode
from oasgen.naming import NamingRegistry
from oasgen.typemap import INT64, STRING, TIME, TypeKind, TypeMapper, optional, primitive

from helpers import make_context


def _prim(schema_type, fmt=""):
    return SchemaNode(kind=SchemaKind.PRIMITIVE, type=schema_type, format=fmt)


def _object(**properties):
    return SchemaNode(kind=SchemaKind.OBJECT, properties=properties)


class TestPrimitives:
    """Primitive table lookups."""

    @pytest.mark.parametrize("schema_type, fmt, go", [
        ("integer", "", "int"),
        ("integer", "int32", "int32"),
        ("integer", "int64", "int64"),
        ("number", "", "float64"),
        ("number", "float", "float32"),
        ("string", "", "string"),
        ("string", "date-time", "time.Time"),
        ("string", "binary", "[]byte"),
        ("string", "uuid", "string"),
        ("boolean", "", "bool"),
    ])
    def test_mapping(self, schema_type, fmt, go):
        assert primitive(schema_type, fmt).go == go

    def test_unknown_is_any(self):
        assert primitive("mystery").kind is TypeKind.ANY

    def test_time_import(self):
        assert TIME.imports == ("time",)


class TestOptional:
    """Optional wrapping."""

    def test_wrap_once(self):
        once = optional(STRING)
        assert optional(once) is once
        assert once.go == "*string"

    def test_nilable_not_pointered(self):
        seq = TypeMapper(NamingRegistry(), IssueLog()).map_schema(
            SchemaNode(kind=SchemaKind.ARRAY, items=_prim("string"))
        )
        assert optional(seq).go == "[]string"

    def test_field_type_respects_use_pointers(self):
        mapper = TypeMapper(NamingRegistry(), IssueLog(), use_pointers=False)
        assert mapper.field_type(_prim("integer", "int64"), required=False) == INT64

    def test_required_not_wrapped(self):
        mapper = TypeMapper(NamingRegistry(), IssueLog())
        assert mapper.field_type(_prim("string"), required=True) == STRING


class TestComponents:
    """Component definitions from the petstore fixture."""

    @pytest.fixture
    def types(self, petstore_doc):
        return make_context(petstore_doc).types

    def test_struct_fields(self, types):
        pet = types.definitions["Pet"]
        assert pet.form == "struct"
        fields = {f.json_name: f for f in pet.fields}
        assert fields["id"].type.go == "int64"
        assert fields["tag"].type.go == "*string"
        assert fields["status"].type.go == "*PetStatus"
        assert fields["birthday"].type.go == "*time.Time"

    def test_struct_tags(self, types):
        fields = {f.json_name: f for f in types.definitions["Pet"].fields}
        assert fields["id"].tag == 'json:"id" validate:"required"'
        assert fields["name"].tag == 'json:"name" validate:"required,max=64"'
        assert fields["tag"].tag == 'json:"tag,omitempty"'

    def test_enum(self, types):
        status = types.definitions["PetStatus"]
        assert status.form == "enum"
        assert status.enum_values == [
            ("PetStatusAvailable", '"available"'),
            ("PetStatusPending", '"pending"'),
            ("PetStatusSold", '"sold"'),
        ]

    def test_cycle_broken_with_pointer(self, types):
        fields = {f.json_name: f for f in types.definitions["Node"].fields}
        assert fields["next"].type.indirect
        assert fields["next"].type.go == "*Node"

    def test_declarations_render(self, types):
        decls = {d.name: d for d in types.declarations()}
        assert "type Pet struct {" in decls["Pet"].body
        assert decls["Pet"].imports == ("time",)
        assert 'PetStatusAvailable PetStatus = "available"' in decls["PetStatus"].body
        assert decls["Node"].metadata["form"] == "struct"


class TestInlineTypes:
    """Inline object schemas get one named struct per shape."""

    def test_identical_shapes_share_a_type(self):
        mapper = TypeMapper(NamingRegistry(), IssueLog())
        first = mapper.map_schema(_object(a=_prim("string")), "First")
        second = mapper.map_schema(_object(a=_prim("string")), "Second")
        assert first is second
        assert first.name == "First"
        assert mapper.definitions["First"].source == "inline"

    def test_distinct_shapes(self):
        mapper = TypeMapper(NamingRegistry(), IssueLog())
        first = mapper.map_schema(_object(a=_prim("string")), "Thing")
        second = mapper.map_schema(_object(b=_prim("string")), "Thing")
        assert (first.name, second.name) == ("Thing", "Thing2")

    def test_typed_map(self):
        mapper = TypeMapper(NamingRegistry(), IssueLog())
        node = SchemaNode(kind=SchemaKind.OBJECT, additional=_prim("integer", "int32"))
        assert mapper.map_schema(node).go == "map[string]int32"

    def test_unknown_reference_warns(self):
        issues = IssueLog()
        mapper = TypeMapper(NamingRegistry(), issues)
        desc = mapper.map_schema(SchemaNode(kind=SchemaKind.REFERENCE, ref="Ghost"))
        assert desc.kind is TypeKind.ANY
        assert issues.count(Severity.WARNING) == 1


class TestReferenced:
    def test_transitive(self, petstore_doc):
        types = make_context(petstore_doc).types
        assert types.referenced([types.composite("Pet")]) == {"Pet", "PetStatus"}
