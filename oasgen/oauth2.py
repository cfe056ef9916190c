"""OAuth2 flow clients, PKCE and the token manager.

For every oauth2 scheme the ``<F>OAuth2Client`` gets one method per flow
the scheme declares:

  authorizationCode   ExchangeCode (+ GetAuthorizationURL and the PKCE pair
                      GetAuthorizationURLWithPKCE / ExchangeCodeWithPKCE)
  clientCredentials   GetClientCredentialsToken
  password            GetPasswordToken
  implicit            GetImplicitAuthorizationURL (deprecated)

Flow methods carry ``flow`` metadata; the PKCE pair carries ``pkce``.
RefreshToken, the token manager and the auto-refresh option are emitted
for every scheme.
"""

from __future__ import annotations

import logging

from .context import GenerationContext
from .models import DeclarationKind, GeneratedDeclaration, OAuth2Scheme, OAuthFlowKind, SecurityScheme

logger = logging.getLogger(__name__)

SECTION = "oauth2"

T = DeclarationKind.TYPE
F = DeclarationKind.FUNCTION
M = DeclarationKind.METHOD

_TOKEN_IMPORTS = ["context", "net/url"]


def oauth2_schemes(schemes: list[SecurityScheme]) -> list[OAuth2Scheme]:
    return [s for s in schemes if isinstance(s, OAuth2Scheme)]


def has_authorization_code(scheme: OAuth2Scheme) -> bool:
    return scheme.flow(OAuthFlowKind.AUTHORIZATION_CODE) is not None


def scheme_names(ctx: GenerationContext, scheme: OAuth2Scheme) -> dict[str, str]:
    """Names of the per-scheme OAuth2 declarations."""
    fragment = ctx.scheme_fragment(scheme.name)
    client = ctx.name(f"{fragment}OAuth2Client", section=SECTION)
    return {
        "config": ctx.name(f"{fragment}OAuth2Config", section=SECTION),
        "client": client,
        "new_client": ctx.name(f"New{fragment}OAuth2Client", F, section=SECTION),
        "manager": ctx.name(f"{fragment}OAuth2TokenManager", section=SECTION),
        "new_manager": ctx.name(f"New{fragment}OAuth2TokenManager", F, section=SECTION),
        "auto_refresh": ctx.name(f"With{fragment}OAuth2AutoRefresh", F, section=SECTION),
        "authorization_url": ctx.method(client, "authorizationURL", section=SECTION, exported=False),
    }


def shared_names(ctx: GenerationContext) -> dict[str, str]:
    return {
        "token": ctx.name("OAuth2Token", section=SECTION),
        "request_token": ctx.name("requestOAuth2Token", F, section=SECTION, exported=False),
        "pkce": ctx.name("PKCEChallenge", section=SECTION),
        "generate_pkce": ctx.name("GeneratePKCEChallenge", F, section=SECTION),
        "option": ctx.client_option(),
        "editor": ctx.request_editor(),
    }


def _default_urls(scheme: OAuth2Scheme) -> dict[str, str]:
    urls = {"authorization": "", "token": "", "refresh": ""}
    for flow in scheme.flows:
        urls["authorization"] = urls["authorization"] or flow.authorization_url
        urls["token"] = urls["token"] or flow.token_url
        urls["refresh"] = urls["refresh"] or flow.refresh_url
    return urls


class OAuth2Synthesizer:
    def __init__(self, ctx: GenerationContext) -> None:
        self.ctx = ctx
        self.decl = ctx.declare

    def synthesize(self, schemes: list[SecurityScheme]) -> list[GeneratedDeclaration]:
        oauth = oauth2_schemes(schemes)
        if not oauth:
            return []
        n = shared_names(self.ctx)
        decl = self.decl
        decls = [
            decl(n["token"], T, SECTION, "oauth2_token", n=n, imports=["time"]),
            decl("Valid", M, SECTION, "token_valid", n=n, receiver=n["token"], imports=["time"]),
            decl(n["request_token"], F, SECTION, "request_token", n=n, imports=[
                "context", "encoding/json", "fmt", "io", "net/http", "net/url", "strings", "time",
            ]),
        ]
        if any(has_authorization_code(s) for s in oauth):
            decls += [
                decl(n["pkce"], T, SECTION, "pkce_challenge", n=n),
                decl(n["generate_pkce"], F, SECTION, "generate_pkce", n=n, imports=[
                    "crypto/rand", "crypto/sha256", "encoding/base64", "fmt",
                ]),
            ]
        for scheme in oauth:
            decls.extend(self._scheme(scheme, n))
        return decls

    def _scheme(self, scheme: OAuth2Scheme, n: dict[str, str]) -> list[GeneratedDeclaration]:
        decl, ctx = self.decl, self.ctx
        s = scheme_names(ctx, scheme)
        client = s["client"]
        meta = {"scheme": scheme.name}
        decls = [
            decl(s["config"], T, SECTION, "oauth2_config", n=n, s=s, scheme=scheme,
                 scopes=sorted(scheme.scopes.items()), metadata=meta, imports=["net/http"]),
            decl(client, T, SECTION, "oauth2_client", n=n, s=s, scheme=scheme, metadata=meta),
            decl(s["new_client"], F, SECTION, "new_oauth2_client", n=n, s=s, urls=_default_urls(scheme),
                 metadata=meta, imports=["net/http"]),
        ]
        kinds = {flow.kind for flow in scheme.flows}
        if kinds & {OAuthFlowKind.AUTHORIZATION_CODE, OAuthFlowKind.IMPLICIT}:
            decls.append(decl(s["authorization_url"], M, SECTION, "authorization_url", n=n, s=s,
                              receiver=client, metadata=meta, imports=["net/url", "strings"]))

        for flow in scheme.flows:
            flow_meta = {**meta, "flow": flow.kind.value}
            if flow.kind is OAuthFlowKind.AUTHORIZATION_CODE:
                pkce_meta = {**meta, "pkce": flow.kind.value}
                decls += [
                    decl("GetAuthorizationURL", M, SECTION, "get_authorization_url", n=n, s=s,
                         receiver=client, metadata=meta),
                    decl("ExchangeCode", M, SECTION, "exchange_code", n=n, s=s,
                         receiver=client, metadata=flow_meta, imports=_TOKEN_IMPORTS),
                    decl("GetAuthorizationURLWithPKCE", M, SECTION, "get_authorization_url_pkce", n=n, s=s,
                         receiver=client, metadata=pkce_meta, imports=["net/url"]),
                    decl("ExchangeCodeWithPKCE", M, SECTION, "exchange_code_pkce", n=n, s=s,
                         receiver=client, metadata=pkce_meta, imports=_TOKEN_IMPORTS),
                ]
            elif flow.kind is OAuthFlowKind.CLIENT_CREDENTIALS:
                decls.append(decl("GetClientCredentialsToken", M, SECTION, "client_credentials_token", n=n, s=s,
                                  receiver=client, metadata=flow_meta, imports=[*_TOKEN_IMPORTS, "strings"]))
            elif flow.kind is OAuthFlowKind.PASSWORD:
                decls.append(decl("GetPasswordToken", M, SECTION, "password_token", n=n, s=s,
                                  receiver=client, metadata=flow_meta, imports=[*_TOKEN_IMPORTS, "strings"]))
            elif flow.kind is OAuthFlowKind.IMPLICIT:
                decls.append(decl("GetImplicitAuthorizationURL", M, SECTION, "implicit_authorization_url", n=n,
                                  s=s, receiver=client, metadata=flow_meta))
            else:
                raise TypeError(f"unhandled OAuth2 flow: {flow.kind!r}")

        decls += [
            decl("RefreshToken", M, SECTION, "refresh_token", n=n, s=s, receiver=client, metadata=meta,
                 imports=_TOKEN_IMPORTS),
            decl(s["manager"], T, SECTION, "token_manager", n=n, s=s, metadata=meta,
                 imports=["context", "sync"]),
            decl(s["new_manager"], F, SECTION, "new_token_manager", n=n, s=s, metadata=meta, imports=["context"]),
            decl("Token", M, SECTION, "manager_token", n=n, s=s, receiver=s["manager"], metadata=meta,
                 imports=["context"]),
            decl("Invalidate", M, SECTION, "manager_invalidate", n=n, s=s, receiver=s["manager"], metadata=meta),
            decl(s["auto_refresh"], F, SECTION, "auto_refresh", n=n, s=s, metadata=meta,
                 imports=["context", "net/http"]),
        ]
        logger.debug("oauth2 scheme %s: %d flows", scheme.name, len(scheme.flows))
        return decls
