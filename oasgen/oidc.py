"""OpenID Connect discovery client.

``OIDCDiscoveryClient.GetConfiguration`` caches the provider metadata for
a TTL behind an RWMutex with a re-check under the write lock, so callers
racing on an empty cache trigger a single fetch. When OAuth2 flow clients
are generated too, each gets a ``New<F>OAuth2ClientFromOIDC`` constructor
that takes its endpoints from the discovered configuration.
"""

from __future__ import annotations

from .context import GenerationContext
from .models import DeclarationKind, GeneratedDeclaration, OpenIDConnectScheme, SecurityScheme
from .oauth2 import oauth2_schemes, scheme_names

SECTION = "oidc_discovery"

WELL_KNOWN_PATH = "/.well-known/openid-configuration"

T = DeclarationKind.TYPE
F = DeclarationKind.FUNCTION
M = DeclarationKind.METHOD


def discovery_url(schemes: list[SecurityScheme]) -> str:
    """Discovery URL of the first openIdConnect scheme that declares one."""
    for scheme in schemes:
        if isinstance(scheme, OpenIDConnectScheme) and scheme.discovery_url:
            return scheme.discovery_url
    return ""


class OIDCSynthesizer:
    def __init__(self, ctx: GenerationContext) -> None:
        self.ctx = ctx
        self.decl = ctx.declare

    def names(self) -> dict[str, str]:
        ctx = self.ctx
        return {
            "default_url": ctx.name("DefaultOIDCDiscoveryURL", DeclarationKind.CONSTANT, section=SECTION),
            "configuration": ctx.name("OIDCConfiguration", section=SECTION),
            "client": ctx.name("OIDCDiscoveryClient", section=SECTION),
            "option": ctx.name("OIDCDiscoveryOption", section=SECTION),
            "with_http_client": ctx.name("WithOIDCHTTPClient", F, section=SECTION),
            "with_cache_ttl": ctx.name("WithOIDCCacheTTL", F, section=SECTION),
            "new_client": ctx.name("NewOIDCDiscoveryClient", F, section=SECTION),
            "oauth2_config": ctx.name("OIDCOAuth2Config", section=SECTION),
            "config_from_oidc": ctx.name("GetOAuth2ConfigFromOIDC", F, section=SECTION),
            "with_discovery": ctx.name("WithOIDCDiscovery", F, section=SECTION),
            "client_option": ctx.client_option(),
            "editor": ctx.request_editor(),
        }

    def synthesize(self, schemes: list[SecurityScheme]) -> list[GeneratedDeclaration]:
        decl = self.decl
        n = self.names()
        client = n["client"]
        url = discovery_url(schemes)
        decls = []
        if url:
            decls.append(decl(n["default_url"], DeclarationKind.CONSTANT, SECTION, "default_discovery_url",
                              n=n, url=url))
        decls += [
            decl(n["configuration"], T, SECTION, "oidc_configuration", n=n),
            decl(client, T, SECTION, "discovery_client", n=n, imports=["net/http", "sync", "time"]),
            decl(n["option"], T, SECTION, "discovery_option", n=n),
            decl(n["with_http_client"], F, SECTION, "with_oidc_http_client", n=n, imports=["net/http"]),
            decl(n["with_cache_ttl"], F, SECTION, "with_oidc_cache_ttl", n=n, imports=["time"]),
            decl(n["new_client"], F, SECTION, "new_discovery_client", n=n, well_known=WELL_KNOWN_PATH,
                 imports=["net/http", "strings", "time"]),
            decl("GetConfiguration", M, SECTION, "get_configuration", n=n, receiver=client,
                 imports=["context", "encoding/json", "fmt", "net/http", "time"]),
            decl("ClearCache", M, SECTION, "clear_cache", n=n, receiver=client, imports=["time"]),
            decl("SupportsScope", M, SECTION, "supports_scope", n=n, receiver=client,
                 imports=["context", "slices"]),
            decl("SupportsGrantType", M, SECTION, "supports_grant_type", n=n, receiver=client,
                 imports=["context", "slices"]),
            decl("SupportsPKCE", M, SECTION, "supports_pkce", n=n, receiver=client,
                 imports=["context", "slices"]),
            decl(n["oauth2_config"], T, SECTION, "oidc_oauth2_config", n=n),
            decl(n["config_from_oidc"], F, SECTION, "config_from_oidc", n=n, imports=["context", "slices"]),
            decl(n["with_discovery"], F, SECTION, "with_oidc_discovery", n=n,
                 imports=["context", "fmt", "net/http"]),
        ]
        if self.ctx.config.generate_oauth2_flows:
            for scheme in oauth2_schemes(schemes):
                s = scheme_names(self.ctx, scheme)
                name = self.ctx.name(f"New{s['client']}FromOIDC", F, section=SECTION)
                decls.append(decl(name, F, SECTION, "oauth2_client_from_oidc", n=n, s=s, fn=name,
                                  metadata={"scheme": scheme.name}, imports=["context"]))
        return decls
