"""Tests for credential providers."""

import pytest

from oasgen.credentials import scheme_style
from oasgen.models import ApiKeyScheme, HTTPBasicScheme, HTTPBearerScheme

from helpers import bodies


@pytest.fixture
def result(run):
    return run(generate_client=True, generate_credential_mgmt=True)


@pytest.fixture
def credentials(result):
    return bodies(result, "credentials")


class TestSchemeStyle:
    def test_api_key_location(self):
        assert scheme_style(ApiKeyScheme(name="k", param_name="api_key", location="cookie")) == "cookie"

    def test_basic(self):
        assert scheme_style(HTTPBasicScheme(name="b")) == "basic"

    def test_bearer(self):
        assert scheme_style(HTTPBearerScheme(name="t")) == "bearer"


class TestProviders:
    """Memory, environment and chained providers."""

    def test_memory_is_locked(self, credentials):
        assert "mu          sync.Mutex" in credentials["MemoryCredentialProvider"]
        assert "p.mu.Lock()" in credentials["MemoryCredentialProvider.Set"]

    def test_env_key_mangling(self, credentials):
        body = credentials["EnvCredentialProvider.GetCredential"]
        assert 'strings.NewReplacer("-", "_", ".", "_")' in body
        assert "os.LookupEnv(name)" in body

    def test_chain_returns_first_hit(self, credentials):
        assert "if providerErr == nil {" in credentials["CredentialChain.GetCredential"]

    def test_requires_client(self, run):
        assert run(generate_credential_mgmt=True).section("credentials") == []


class TestSchemeProviders:
    """One With<F>CredentialProvider per security scheme."""

    def test_one_per_scheme(self, result):
        names = {d.metadata["scheme"]: d.name for d in result.section("credentials") if "scheme" in d.metadata}
        assert names == {
            "api_key": "WithApiKeyCredentialProvider",
            "basicAuth": "WithBasicAuthCredentialProvider",
            "bearerAuth": "WithBearerAuthCredentialProvider",
            "petstore_auth": "WithPetstoreAuthCredentialProvider",
            "oidc": "WithOidcCredentialProvider",
        }

    def test_header_key(self, credentials):
        assert 'req.Header.Set("X-API-Key", credential)' in credentials["WithApiKeyCredentialProvider"]

    def test_basic_split(self, result):
        decl = next(d for d in result.section("credentials") if d.name == "WithBasicAuthCredentialProvider")
        assert 'strings.Cut(credential, ":")' in decl.body
        assert "strings" in decl.imports

    def test_bearer(self, credentials):
        body = credentials["WithPetstoreAuthCredentialProvider"]
        assert 'req.Header.Set("Authorization", "Bearer "+credential)' in body

    def test_query_key(self, run, swagger_doc):
        credentials = bodies(run(swagger_doc, generate_client=True, generate_credential_mgmt=True), "credentials")
        assert 'query.Set("api_key", credential)' in credentials["WithLegacyKeyCredentialProvider"]
