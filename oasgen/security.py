"""Authentication helpers and security-enforcement metadata.

Per scheme kind (helper name fragment F from the scheme name):

  apiKey          With<F>APIKey / With<F>APIKeyQuery / With<F>APIKeyCookie
  http-basic      With<F>BasicAuth(username, password)
  http-bearer     With<F>BearerToken(token)
  oauth2          With<F>OAuth2Token(token), plus the flow clients in ``oauth2``
  openIdConnect   With<F>Token(token), plus the discovery client in ``oidc``

Helpers, OAuth2 flows, OIDC discovery and credential providers extend the
client. Enforcement metadata (OperationSecurity, GlobalSecurity,
SecurityValidator) is emitted on its own toggle, with or without a client.
"""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from .context import GenerationContext
from .credentials import CredentialSynthesizer
from .models import (
    ApiKeyScheme,
    DeclarationKind,
    GeneratedDeclaration,
    HTTPBasicScheme,
    HTTPBearerScheme,
    OAuth2Scheme,
    OpenIDConnectScheme,
    SecurityRequirements,
    SecurityScheme,
)
from .oauth2 import OAuth2Synthesizer
from .oidc import OIDCSynthesizer
from .render import go_string

logger = logging.getLogger(__name__)

HELPERS = "security_helpers"
ENFORCE = "security_enforce"

_LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")

_API_KEY_SUFFIX = {"header": "APIKey", "query": "APIKeyQuery", "cookie": "APIKeyCookie"}

F = DeclarationKind.FUNCTION


def is_secure_url(url: str) -> bool:
    """HTTPS, or plain HTTP to a loopback host."""
    parts = urlsplit(url)
    if parts.scheme == "https":
        return True
    return parts.scheme == "http" and (parts.hostname or "") in _LOCAL_HOSTS


def scheme_urls(scheme: SecurityScheme) -> list[tuple[str, str]]:
    """(label, url) for every endpoint a scheme declares."""
    if isinstance(scheme, OAuth2Scheme):
        urls = []
        for flow in scheme.flows:
            for label, url in (
                ("authorizationUrl", flow.authorization_url),
                ("tokenUrl", flow.token_url),
                ("refreshUrl", flow.refresh_url),
            ):
                if url:
                    urls.append((f"flows.{flow.kind.value}.{label}", url))
        return urls
    if isinstance(scheme, OpenIDConnectScheme) and scheme.discovery_url:
        return [("openIdConnectUrl", scheme.discovery_url)]
    return []


def _scopes_literal(scopes: tuple[str, ...]) -> str:
    if not scopes:
        return "nil"
    return "[]string{" + ", ".join(go_string(s) for s in scopes) + "}"


def requirements_literal(requirements: SecurityRequirements) -> list[str]:
    """One Go composite literal per alternative of ``requirements``."""
    alternatives = []
    for alternative in requirements:
        items = [
            f"{{Scheme: {go_string(name)}, Scopes: {_scopes_literal(scopes)}}}"
            for name, scopes in sorted(alternative.items())
        ]
        alternatives.append("{" + ", ".join(items) + "}")
    return alternatives


class SecuritySynthesizer:
    def __init__(self, ctx: GenerationContext) -> None:
        self.ctx = ctx
        self.decl = ctx.declare

    @property
    def schemes(self) -> list[SecurityScheme]:
        return list(self.ctx.document.security_schemes.values())

    def synthesize(self) -> list[GeneratedDeclaration]:
        config = self.ctx.config
        schemes = self.schemes
        decls: list[GeneratedDeclaration] = []
        if config.generate_client:
            if config.generate_security:
                decls.extend(self.helpers(schemes))
            if config.generate_oauth2_flows:
                decls.extend(OAuth2Synthesizer(self.ctx).synthesize(schemes))
            if config.generate_oidc_discovery:
                decls.extend(OIDCSynthesizer(self.ctx).synthesize(schemes))
            if config.generate_credential_mgmt:
                decls.extend(CredentialSynthesizer(self.ctx).synthesize(schemes))
        if config.generate_security_enforce:
            decls.extend(self.enforcement())
        if config.generate_oauth2_flows or config.generate_oidc_discovery:
            self.check_urls(schemes)
        return decls

    def check_urls(self, schemes: list[SecurityScheme]) -> None:
        for scheme in schemes:
            for label, url in scheme_urls(scheme):
                if not is_secure_url(url):
                    self.ctx.issues.warning(
                        f"securitySchemes.{scheme.name}.{label}",
                        f"insecure URL {url}: use HTTPS outside of localhost",
                    )

    # --- helpers -------------------------------------------------------------

    def helpers(self, schemes: list[SecurityScheme]) -> list[GeneratedDeclaration]:
        ctx = self.ctx
        n = {"option": ctx.client_option(), "editor": ctx.request_editor()}
        decls = []
        for scheme in schemes:
            fragment = ctx.scheme_fragment(scheme.name)
            if isinstance(scheme, ApiKeyScheme):
                name = ctx.name(f"With{fragment}{_API_KEY_SUFFIX[scheme.location]}", F, section=HELPERS)
                decls.append(self.decl(
                    name, F, HELPERS, "api_key", n=n, fn=name, scheme=scheme,
                    metadata={"scheme": scheme.name},
                    imports=["context", "net/http"],
                ))
            elif isinstance(scheme, HTTPBasicScheme):
                name = ctx.name(f"With{fragment}BasicAuth", F, section=HELPERS)
                decls.append(self.decl(
                    name, F, HELPERS, "basic_auth", n=n, fn=name, scheme=scheme,
                    metadata={"scheme": scheme.name},
                    imports=["context", "net/http"],
                ))
            elif isinstance(scheme, HTTPBearerScheme):
                name = ctx.name(f"With{fragment}BearerToken", F, section=HELPERS)
                decls.append(self.decl(
                    name, F, HELPERS, "bearer_token", n=n, fn=name, scheme=scheme,
                    metadata={"scheme": scheme.name},
                    imports=["context", "net/http"],
                ))
            elif isinstance(scheme, OAuth2Scheme):
                name = ctx.name(f"With{fragment}OAuth2Token", F, section=HELPERS)
                decls.append(self.decl(
                    name, F, HELPERS, "oauth2_token", n=n, fn=name, scheme=scheme,
                    scopes=sorted(scheme.scopes.items()),
                    metadata={"scheme": scheme.name},
                    imports=["context", "net/http"],
                ))
            elif isinstance(scheme, OpenIDConnectScheme):
                name = ctx.name(f"With{fragment}Token", F, section=HELPERS)
                decls.append(self.decl(
                    name, F, HELPERS, "oidc_token", n=n, fn=name, scheme=scheme,
                    metadata={"scheme": scheme.name},
                    imports=["context", "net/http"],
                ))
            else:
                raise TypeError(f"unhandled security scheme: {scheme!r}")
        return decls

    # --- enforcement ---------------------------------------------------------

    def enforcement(self) -> list[GeneratedDeclaration]:
        ctx, decl = self.ctx, self.decl
        validator = ctx.name("SecurityValidator", section=ENFORCE)
        n = {
            "requirement": ctx.name("SecurityRequirement", section=ENFORCE),
            "operations": ctx.name("OperationSecurity", DeclarationKind.VARIABLE, section=ENFORCE),
            "global": ctx.name("GlobalSecurity", DeclarationKind.VARIABLE, section=ENFORCE),
            "validator": validator,
            "new_validator": ctx.name("NewSecurityValidator", F, section=ENFORCE),
            "satisfies": ctx.method(validator, "satisfies", section=ENFORCE, exported=False),
        }
        document = ctx.document
        entries = []
        for op in sorted(ctx.operations, key=lambda o: o.name):
            requirements = op.security if op.security is not None else document.global_security
            entries.append({
                "name": go_string(op.name),
                "alternatives": requirements_literal(requirements),
            })

        decls = [
            decl(n["requirement"], DeclarationKind.TYPE, ENFORCE, "security_requirement", n=n),
            decl(n["operations"], DeclarationKind.VARIABLE, ENFORCE, "operation_security", n=n, entries=entries),
        ]
        if document.global_security:
            decls.append(decl(
                n["global"], DeclarationKind.VARIABLE, ENFORCE, "global_security", n=n,
                alternatives=requirements_literal(document.global_security),
            ))
        decls += [
            decl(validator, DeclarationKind.TYPE, ENFORCE, "security_validator", n=n, imports=["sync"]),
            decl(n["new_validator"], F, ENFORCE, "new_security_validator", n=n),
            decl("ConfigureScheme", DeclarationKind.METHOD, ENFORCE, "configure_scheme", n=n, receiver=validator),
            decl("ValidateOperation", DeclarationKind.METHOD, ENFORCE, "validate_operation", n=n,
                 receiver=validator, imports=["fmt"]),
            decl(n["satisfies"], DeclarationKind.METHOD, ENFORCE, "satisfies", n=n, receiver=validator,
                 imports=["slices"]),
        ]
        return decls
