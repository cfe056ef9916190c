"""Credential providers for the generated client.

Emits the ``CredentialProvider`` interface with a memory, an environment
and a chaining implementation, plus ``WithCredentialProvider`` and one
``With<F>CredentialProvider`` per security scheme that applies the looked
up credential the way that scheme expects it.
"""

from __future__ import annotations

from .context import GenerationContext
from .models import (
    ApiKeyScheme,
    DeclarationKind,
    GeneratedDeclaration,
    HTTPBasicScheme,
    SecurityScheme,
)

SECTION = "credentials"

T = DeclarationKind.TYPE
F = DeclarationKind.FUNCTION
M = DeclarationKind.METHOD


def scheme_style(scheme: SecurityScheme) -> str:
    """How a credential is attached: api key location, basic or bearer."""
    if isinstance(scheme, ApiKeyScheme):
        return scheme.location
    if isinstance(scheme, HTTPBasicScheme):
        return "basic"
    return "bearer"


class CredentialSynthesizer:
    def __init__(self, ctx: GenerationContext) -> None:
        self.ctx = ctx
        self.decl = ctx.declare

    def names(self) -> dict[str, str]:
        ctx = self.ctx
        return {
            "not_found": ctx.name("ErrCredentialNotFound", DeclarationKind.VARIABLE, section=SECTION),
            "provider": ctx.name("CredentialProvider", section=SECTION),
            "memory": ctx.name("MemoryCredentialProvider", section=SECTION),
            "new_memory": ctx.name("NewMemoryCredentialProvider", F, section=SECTION),
            "env": ctx.name("EnvCredentialProvider", section=SECTION),
            "new_env": ctx.name("NewEnvCredentialProvider", F, section=SECTION),
            "chain": ctx.name("CredentialChain", section=SECTION),
            "new_chain": ctx.name("NewCredentialChain", F, section=SECTION),
            "with_provider": ctx.name("WithCredentialProvider", F, section=SECTION),
            "option": ctx.client_option(),
            "editor": ctx.request_editor(),
        }

    def synthesize(self, schemes: list[SecurityScheme]) -> list[GeneratedDeclaration]:
        decl = self.decl
        n = self.names()
        decls = [
            decl(n["not_found"], DeclarationKind.VARIABLE, SECTION, "err_not_found", n=n, imports=["errors"]),
            decl(n["provider"], T, SECTION, "provider_interface", n=n, imports=["context"]),
            decl(n["memory"], T, SECTION, "memory_provider", n=n, imports=["sync"]),
            decl(n["new_memory"], F, SECTION, "new_memory_provider", n=n),
            decl("GetCredential", M, SECTION, "memory_get", n=n, receiver=n["memory"],
                 imports=["context", "fmt"]),
            decl("Set", M, SECTION, "memory_set", n=n, receiver=n["memory"]),
            decl("Delete", M, SECTION, "memory_delete", n=n, receiver=n["memory"]),
            decl(n["env"], T, SECTION, "env_provider", n=n),
            decl(n["new_env"], F, SECTION, "new_env_provider", n=n),
            decl("GetCredential", M, SECTION, "env_get", n=n, receiver=n["env"],
                 imports=["context", "fmt", "os", "strings"]),
            decl(n["chain"], T, SECTION, "credential_chain", n=n),
            decl(n["new_chain"], F, SECTION, "new_credential_chain", n=n),
            decl("GetCredential", M, SECTION, "chain_get", n=n, receiver=n["chain"], imports=["context"]),
            decl(n["with_provider"], F, SECTION, "with_credential_provider", n=n,
                 imports=["context", "fmt", "net/http"]),
        ]
        for scheme in schemes:
            name = self.ctx.name(f"With{self.ctx.scheme_fragment(scheme.name)}CredentialProvider", F,
                                 section=SECTION)
            style = scheme_style(scheme)
            imports = ["context", "fmt", "net/http"]
            if style == "basic":
                imports.append("strings")
            decls.append(decl(name, F, SECTION, "with_scheme_provider", n=n, fn=name, scheme=scheme,
                              style=style, metadata={"scheme": scheme.name}, imports=imports))
        return decls
