"""Per-run state shared by the synthesizers.

A GenerationContext owns the naming registry, the type mapper and the
issue log of exactly one generation run. The helpers here give every
synthesizer the same answer for shared names (request types, response
types, client options) and per-operation typing.
"""

from __future__ import annotations

from typing import Any

from .config import GeneratorConfig
from .issues import IssueLog
from .models import (
    SHARED_GROUP,
    DeclarationKind,
    GeneratedDeclaration,
    NormalizedDocument,
    Operation,
    Parameter,
    Response,
)
from .naming import NameKind, NamingRegistry, to_pascal
from .render import fragment
from .splitter import SplitStrategy, group_key
from .typemap import TypeDescriptor, TypeKind, TypeMapper

_KIND_NAMES: dict[DeclarationKind, NameKind] = {
    DeclarationKind.TYPE: NameKind.TYPE,
    DeclarationKind.FUNCTION: NameKind.FUNCTION,
    DeclarationKind.METHOD: NameKind.METHOD,
    DeclarationKind.CONSTANT: NameKind.CONSTANT,
    DeclarationKind.VARIABLE: NameKind.VARIABLE,
}


# Fields every <Op>Request carries besides its parameters
REQUEST_FIXED_FIELDS = ("HTTPRequest", "Body")


def is_json(content_type: str) -> bool:
    return not content_type or "json" in content_type


class GenerationContext:
    def __init__(
        self,
        document: NormalizedDocument,
        config: GeneratorConfig,
        names: NamingRegistry,
        issues: IssueLog,
    ) -> None:
        self.document = document
        self.config = config
        self.names = names
        self.issues = issues
        self.strategy = SplitStrategy(
            split_by_tag=config.split_by_tag,
            split_by_path_prefix=config.split_by_path_prefix,
        )
        self.types = TypeMapper(
            names,
            issues,
            use_pointers=config.use_pointers,
            include_validation=config.include_validation,
        )
        self.types.declare_components(document.schemas)
        for scheme_name in document.security_schemes:
            self.scheme_fragment(scheme_name)
        self._fields: dict[tuple[str, str], list[tuple[Parameter, str, TypeDescriptor]]] = {}

    @property
    def operations(self) -> tuple[Operation, ...]:
        return self.document.operations

    # --- names ---------------------------------------------------------------

    def name(
        self,
        candidate: str,
        kind: DeclarationKind = DeclarationKind.TYPE,
        *,
        section: str,
        receiver: str = "",
        exported: bool = True,
    ) -> str:
        """Final identifier for a declaration owned by ``section``.

        Asking again with the same arguments returns the same name, so any
        synthesizer can refer to another section's declarations.
        """
        return self.names.assign(
            candidate,
            _KIND_NAMES[kind],
            scope=receiver,
            key=f"{section}/{candidate}",
            exported=exported,
        )

    def scheme_fragment(self, scheme_name: str) -> str:
        """Identifier fragment for a security scheme, distinct per scheme.

        Fragments are reserved in document order when the context is built,
        so api_key and api-key become ApiKey and ApiKey2.
        """
        return self.names.assign(scheme_name, NameKind.SCHEME, key=scheme_name)

    def method(self, receiver: str, candidate: str, *, section: str, exported: bool = True) -> str:
        return self.name(candidate, DeclarationKind.METHOD, section=section, receiver=receiver, exported=exported)

    def group(self, operation: Operation) -> str:
        return group_key(operation, self.strategy)

    def request_type(self, op: Operation) -> str:
        return self.name(f"{op.name}Request", section="server")

    def response_type(self, op: Operation) -> str:
        return self.name(f"{op.name}Response", section="server_responses")

    def server_interface(self) -> str:
        return self.name("ServerInterface", section="server")

    def client_option(self) -> str:
        return self.name("ClientOption", section="client")

    def request_editor(self) -> str:
        return self.name("WithRequestEditor", DeclarationKind.FUNCTION, section="client")

    # --- typing --------------------------------------------------------------

    def ref_go(self, desc: TypeDescriptor) -> str:
        """Go type used when passing a value by reference (structs as *T)."""
        if desc.kind is TypeKind.COMPOSITE and not desc.indirect:
            definition = self.types.definitions.get(desc.name)
            if definition is not None and definition.form == "struct":
                return "*" + desc.name
        return desc.go

    def body_type(self, op: Operation) -> TypeDescriptor | None:
        if op.request_body is None:
            return None
        return self.types.map_schema(op.request_body, f"{op.name}RequestBody")

    def success_response(self, op: Operation) -> Response | None:
        ordered = [op.responses.get(s) for s in ("200", "201", "2XX")]
        ordered += [
            op.responses[s]
            for s in sorted(op.responses)
            if s.startswith("2") and s not in ("200", "201", "2XX")
        ]
        ordered.append(op.responses.get("default"))
        for resp in ordered:
            if resp is not None and resp.schema_node is not None and is_json(resp.content_type):
                return resp
        return None

    def success_status(self, op: Operation) -> int:
        for status in sorted(op.responses):
            if status.isdigit() and status.startswith("2"):
                return int(status)
        return 200

    def response_descriptor(self, op: Operation, resp: Response) -> TypeDescriptor | None:
        if resp.schema_node is None:
            return None
        status = resp.status if resp.status[:1].isdigit() else to_pascal(resp.status)
        return self.types.map_schema(resp.schema_node, f"{op.name}{status}Response")

    def success_type(self, op: Operation) -> TypeDescriptor | None:
        resp = self.success_response(op)
        if resp is None:
            return None
        return self.response_descriptor(op, resp)

    def server_result(self, op: Operation) -> str:
        """Go result type of a ServerInterface method."""
        if self.config.server_responses:
            return self.response_type(op)
        desc = self.success_type(op)
        return self.ref_go(desc) if desc is not None else "any"

    def param_fields(self, op: Operation, owner: str) -> list[tuple[Parameter, str, TypeDescriptor]]:
        """(parameter, Go field name, type) for each parameter, named within ``owner``."""
        cache_key = (op.key, owner)
        if cache_key not in self._fields:
            fields = []
            for param in op.parameters:
                field = self.names.assign(
                    param.name, NameKind.FIELD, scope=owner, key=f"{param.location.value}/{param.name}"
                )
                fields.append((param, field, self.param_type(op, param)))
            self._fields[cache_key] = fields
        return self._fields[cache_key]

    def request_fields(self, op: Operation) -> list[tuple[Parameter, str, TypeDescriptor]]:
        """Parameter fields of ``<Op>Request``, clear of its fixed fields."""
        owner = self.request_type(op)
        for fixed in REQUEST_FIXED_FIELDS:
            self.names.assign(fixed, NameKind.FIELD, scope=owner, key=f"fixed/{fixed}")
        return self.param_fields(op, owner)

    def request_body_go(self, op: Operation) -> tuple[str, set[str]] | None:
        """Go type of ``<Op>Request.Body``: the decoded JSON value or a raw reader."""
        if op.request_body is None:
            return None
        if not is_json(op.request_content_type):
            return "io.Reader", {"io"}
        body = self.body_type(op)
        return self.ref_go(body), set(body.imports)

    def param_type(self, op: Operation, param: Parameter) -> TypeDescriptor:
        return self.types.field_type(
            param.schema_node, param.required, f"{op.name}{to_pascal(param.name)}Param"
        )

    def operation_descriptors(self, op: Operation) -> list[TypeDescriptor]:
        descs = [self.param_type(op, p) for p in op.parameters]
        body = self.body_type(op)
        if body is not None:
            descs.append(body)
        for status in sorted(op.responses):
            desc = self.response_descriptor(op, op.responses[status])
            if desc is not None:
                descs.append(desc)
        return descs

    def type_groups(self) -> dict[str, str]:
        """Type name -> group key, "shared" when used by several groups or none."""
        usage: dict[str, set[str]] = {}
        for op in self.operations:
            group = self.group(op)
            for type_name in self.types.referenced(self.operation_descriptors(op)):
                usage.setdefault(type_name, set()).add(group)
        return {
            name: next(iter(groups)) if len(groups) == 1 else SHARED_GROUP
            for name, groups in usage.items()
        }

    # --- declarations --------------------------------------------------------

    def declare(
        self,
        name: str,
        kind: DeclarationKind,
        section: str,
        macro: str,
        *,
        template: str | None = None,
        operation: Operation | None = None,
        receiver: str | None = None,
        imports: Any = (),
        metadata: dict[str, str] | None = None,
        **context: Any,
    ) -> GeneratedDeclaration:
        return GeneratedDeclaration(
            name=name,
            kind=kind,
            section=section,
            body=fragment(template or section, macro, **context),
            group=self.group(operation) if operation is not None else SHARED_GROUP,
            receiver=receiver,
            operation=operation.name if operation is not None else None,
            imports=tuple(sorted(set(imports))),
            metadata=metadata or {},
        )


def type_imports(*descs: TypeDescriptor | None) -> set[str]:
    found: set[str] = set()
    for desc in descs:
        if desc is not None:
            found.update(desc.imports)
    return found
