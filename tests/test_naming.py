"""Tests for the naming module."""

from oasgen.naming import (
    NameKind,
    NamingRegistry,
    path_prefix,
    security_name_fragment,
    split_words,
    synthesize_operation_id,
    to_camel,
    to_file_name,
    to_pascal,
)


class TestCasing:
    """Word splitting and case conversion."""

    def test_pascal_from_camel(self):
        assert to_pascal("listPets") == "ListPets"

    def test_pascal_from_snake(self):
        assert to_pascal("api_key") == "ApiKey"

    def test_pascal_keeps_acronym_runs(self):
        assert to_pascal("HTTPServer") == "HTTPServer"
        assert to_pascal("WithApiKeyAPIKey") == "WithApiKeyAPIKey"

    def test_pascal_leading_digit(self):
        assert to_pascal("2fa-code") == "X2FaCode"

    def test_pascal_empty_falls_back(self):
        assert to_pascal("") == "Default"
        assert to_pascal("---") == "Default"

    def test_camel(self):
        assert to_camel("pet-id") == "petId"
        assert to_camel("PetId") == "petId"

    def test_camel_lowers_leading_acronym(self):
        assert to_camel("ID") == "id"

    def test_camel_escapes_keywords(self):
        assert to_camel("type") == "type_"
        assert to_camel("range") == "range_"

    def test_camel_does_not_escape_partial_keyword(self):
        assert to_camel("types") == "types"

    def test_split_words(self):
        assert split_words("petStoreID") == ["pet", "Store", "ID"]

    def test_file_name(self):
        assert to_file_name("PetStore") == "pet_store"
        assert to_file_name("User Accounts!") == "user_accounts"
        assert to_file_name("///") == "misc"

    def test_security_fragment(self):
        assert security_name_fragment("bearer-auth") == "BearerAuth"
        assert security_name_fragment("") == "Default"


class TestOperationIds:
    """Operation identifiers synthesized from method and path."""

    def test_path_template(self):
        assert synthesize_operation_id("GET", "/pets/{id}") == "GetPetsById"

    def test_plain_path(self):
        assert synthesize_operation_id("get", "/pets") == "GetPets"

    def test_several_templates(self):
        assert synthesize_operation_id("GET", "/users/{uid}/posts/{pid}") == "GetUsersPostsByUidAndPid"

    def test_root(self):
        assert synthesize_operation_id("DELETE", "/") == "Delete"

    def test_path_prefix(self):
        assert path_prefix("/pets/{id}") == "pets"
        assert path_prefix("/{tenant}/pets") == ""
        assert path_prefix("/") == ""


class TestNamingRegistry:
    """Collision handling and idempotence."""

    def test_same_key_same_name(self):
        names = NamingRegistry()
        first = names.assign("Pet", NameKind.TYPE, key="a")
        assert names.assign("Pet", NameKind.TYPE, key="a") == first

    def test_collisions_are_suffixed_in_order(self):
        names = NamingRegistry()
        assert names.assign("pet", NameKind.TYPE, key="a") == "Pet"
        assert names.assign("Pet", NameKind.TYPE, key="b") == "Pet2"
        assert names.assign("PET", NameKind.TYPE, key="c") == "PET"
        assert names.assign("pet_", NameKind.TYPE, key="d") == "Pet3"

    def test_kinds_are_independent(self):
        names = NamingRegistry()
        assert names.assign("Pet", NameKind.TYPE) == "Pet"
        assert names.assign("Pet", NameKind.FUNCTION) == "Pet"

    def test_scopes_are_independent(self):
        names = NamingRegistry()
        assert names.assign("Name", NameKind.FIELD, scope="Pet") == "Name"
        assert names.assign("Name", NameKind.FIELD, scope="Owner") == "Name"

    def test_file_suffix_uses_underscore(self):
        names = NamingRegistry()
        assert names.assign("pets", NameKind.FILE, key="a") == "pets"
        assert names.assign("Pets", NameKind.FILE, key="b") == "pets_2"

    def test_unexported(self):
        names = NamingRegistry()
        assert names.assign("NewRequest", NameKind.METHOD, exported=False) == "newRequest"

    def test_lookup(self):
        names = NamingRegistry()
        names.assign("listPets", NameKind.OPERATION, key="GET /pets")
        assert names.get(NameKind.OPERATION, "GET /pets") == "ListPets"
        assert names.names(NameKind.OPERATION) == {"ListPets"}
