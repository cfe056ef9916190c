"""Map normalized schema nodes to Go type descriptors.

Primitive mapping:
  integer            -> int        (int32 / int64 by format)
  number             -> float64    (float -> float32)
  string             -> string     (date-time -> time.Time, byte/binary -> []byte)
  boolean            -> bool
  array              -> []T
  object (map only)  -> map[string]T
  object (fields)    -> named struct, one per distinct shape
  $ref               -> the component's type name (reserved up front)

Optional fields are wrapped once in an OPTIONAL descriptor when pointers
are enabled; the wrapper renders as *T except over types that are
already nilable (slices, maps, any).
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .issues import IssueLog
from .models import SHARED_GROUP, DeclarationKind, GeneratedDeclaration, SchemaKind, SchemaNode
from .naming import NameKind, NamingRegistry, to_pascal
from .render import fragment, go_string

logger = logging.getLogger(__name__)


class TypeKind(str, Enum):
    PRIMITIVE = "primitive"
    TEMPORAL = "temporal"
    BYTES = "bytes"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    COMPOSITE = "composite"
    ANY = "any"
    OPTIONAL = "optional"


class TypeDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: TypeKind
    name: str = ""
    element: TypeDescriptor | None = None
    indirect: bool = False

    @property
    def go(self) -> str:
        if self.kind is TypeKind.SEQUENCE:
            return "[]" + self.element.go
        if self.kind is TypeKind.MAPPING:
            return "map[string]" + self.element.go
        if self.kind is TypeKind.OPTIONAL:
            inner = self.element.go
            return inner if self.element.nilable else "*" + inner
        if self.kind is TypeKind.COMPOSITE and self.indirect:
            return "*" + self.name
        return self.name

    @property
    def nilable(self) -> bool:
        if self.kind is TypeKind.COMPOSITE:
            return self.indirect
        return self.kind in (TypeKind.SEQUENCE, TypeKind.MAPPING, TypeKind.ANY, TypeKind.BYTES, TypeKind.OPTIONAL)

    @property
    def base(self) -> TypeDescriptor:
        return self.element if self.kind is TypeKind.OPTIONAL else self

    @property
    def imports(self) -> tuple[str, ...]:
        if self.kind is TypeKind.TEMPORAL:
            return ("time",)
        if self.element is not None:
            return self.element.imports
        return ()


def _prim(name: str, kind: TypeKind = TypeKind.PRIMITIVE) -> TypeDescriptor:
    return TypeDescriptor(kind=kind, name=name)


STRING = _prim("string")
INT = _prim("int")
INT32 = _prim("int32")
INT64 = _prim("int64")
FLOAT32 = _prim("float32")
FLOAT64 = _prim("float64")
BOOL = _prim("bool")
TIME = _prim("time.Time", TypeKind.TEMPORAL)
BYTES = _prim("[]byte", TypeKind.BYTES)
ANY = _prim("any", TypeKind.ANY)

# (schema type, format) -> descriptor; "" format is the fallback for a type
_PRIMITIVE_TABLE: dict[tuple[str, str], TypeDescriptor] = {
    ("string", ""): STRING,
    ("string", "date-time"): TIME,
    ("string", "byte"): BYTES,
    ("string", "binary"): BYTES,
    ("integer", ""): INT,
    ("integer", "int32"): INT32,
    ("integer", "int64"): INT64,
    ("number", ""): FLOAT64,
    ("number", "float"): FLOAT32,
    ("number", "double"): FLOAT64,
    ("boolean", ""): BOOL,
}


def optional(desc: TypeDescriptor) -> TypeDescriptor:
    """Wrap once; wrapping an optional descriptor is a no-op."""
    if desc.kind is TypeKind.OPTIONAL:
        return desc
    return TypeDescriptor(kind=TypeKind.OPTIONAL, element=desc)


def primitive(schema_type: str, fmt: str = "") -> TypeDescriptor:
    return _PRIMITIVE_TABLE.get((schema_type, fmt)) or _PRIMITIVE_TABLE.get((schema_type, ""), ANY)


def shape_key(node: SchemaNode) -> tuple:
    """Structural identity of a schema node, ignoring documentation."""
    additional = node.additional
    if isinstance(additional, SchemaNode):
        additional = shape_key(additional)
    return (
        node.kind.value,
        node.type,
        node.format,
        node.nullable,
        node.ref,
        shape_key(node.items) if node.items else None,
        tuple(sorted((k, shape_key(v)) for k, v in node.properties.items())),
        tuple(sorted(node.required)),
        additional,
        tuple(repr(v) for v in node.enum),
        node.minimum,
        node.maximum,
        node.min_length,
        node.max_length,
        node.pattern,
    )


class FieldDef(BaseModel):
    name: str
    json_name: str
    type: TypeDescriptor
    required: bool = False
    description: str = ""
    validate_tag: str = ""

    @property
    def tag(self) -> str:
        json_tag = self.json_name if self.required else f"{self.json_name},omitempty"
        tag = f'json:"{json_tag}"'
        if self.validate_tag:
            tag += f' validate:"{self.validate_tag}"'
        return tag


class TypeDefinition(BaseModel):
    """A named Go type to be emitted.

    ``form`` is struct, enum, defined (type X T) or alias (type X = T).
    """

    name: str
    form: str
    description: str = ""
    fields: list[FieldDef] = Field(default_factory=list)
    target: TypeDescriptor | None = None
    enum_values: list[tuple[str, str]] = Field(default_factory=list)
    source: str = "component"


class TypeMapper:
    def __init__(
        self,
        names: NamingRegistry,
        issues: IssueLog,
        *,
        use_pointers: bool = True,
        include_validation: bool = True,
    ) -> None:
        self.names = names
        self.issues = issues
        self.use_pointers = use_pointers
        self.include_validation = include_validation
        self.definitions: dict[str, TypeDefinition] = {}
        self._components: dict[str, str] = {}
        self._shapes: dict[tuple, str] = {}
        self._cache: dict[tuple, TypeDescriptor] = {}
        self._composites: dict[str, TypeDescriptor] = {}

    # --- components ----------------------------------------------------------

    def declare_components(self, schemas: dict[str, SchemaNode]) -> None:
        """Reserve every component name, then build the definitions.

        Reserving first lets references point forward and through cycles.
        """
        for component in schemas:
            self._components[component] = self.names.assign(
                component, NameKind.TYPE, key=f"types/{component}"
            )
        for component, node in schemas.items():
            name = self._components[component]
            if node.kind is SchemaKind.OBJECT and node.properties:
                self._shapes.setdefault(shape_key(node), name)
        for component, node in schemas.items():
            self._define_component(self._components[component], node)
        self._break_cycles()

    def component_type(self, component: str) -> str | None:
        return self._components.get(component)

    def _define_component(self, name: str, node: SchemaNode) -> None:
        description = node.description
        if node.kind is SchemaKind.OBJECT and node.properties:
            self.definitions[name] = TypeDefinition(
                name=name,
                form="struct",
                description=description,
                fields=self._fields(name, node),
            )
        elif node.kind is SchemaKind.PRIMITIVE and node.enum:
            self.definitions[name] = TypeDefinition(
                name=name,
                form="enum",
                description=description,
                target=primitive(node.type, node.format),
                enum_values=self._enum_values(name, node),
            )
        elif node.kind is SchemaKind.REFERENCE:
            self.definitions[name] = TypeDefinition(
                name=name, form="alias", description=description, target=self.map_schema(node)
            )
        elif node.kind is SchemaKind.ANY:
            self.definitions[name] = TypeDefinition(
                name=name, form="alias", description=description, target=ANY
            )
        else:
            self.definitions[name] = TypeDefinition(
                name=name, form="defined", description=description, target=self._map(node, name)
            )

    # --- mapping -------------------------------------------------------------

    def map_schema(self, node: SchemaNode | None, hint: str = "") -> TypeDescriptor:
        """Map a node; identical nodes always yield the identical descriptor."""
        if node is None:
            return ANY
        key = shape_key(node)
        if node.kind is SchemaKind.OBJECT and node.properties:
            name = self._shapes.get(key)
            if name is None:
                name = self._define_inline(node, hint)
            return self.composite(name)
        cached = self._cache.get(key)
        if cached is None:
            cached = self._cache[key] = self._map(node, hint)
        return cached

    def field_type(self, node: SchemaNode | None, required: bool, hint: str = "") -> TypeDescriptor:
        desc = self.map_schema(node, hint)
        if not required and self.use_pointers:
            return optional(desc)
        return desc

    def composite(self, name: str) -> TypeDescriptor:
        desc = self._composites.get(name)
        if desc is None:
            desc = self._composites[name] = TypeDescriptor(kind=TypeKind.COMPOSITE, name=name)
        return desc

    def _map(self, node: SchemaNode, hint: str) -> TypeDescriptor:
        if node.kind is SchemaKind.REFERENCE:
            name = self._components.get(node.ref)
            if name is None:
                self.issues.warning(f"ref.{node.ref}", f"reference to unknown schema {node.ref}; using any")
                return ANY
            return self.composite(name)
        if node.kind is SchemaKind.PRIMITIVE:
            return primitive(node.type, node.format)
        if node.kind is SchemaKind.ARRAY:
            return TypeDescriptor(kind=TypeKind.SEQUENCE, element=self.map_schema(node.items, f"{hint}Item"))
        if node.kind is SchemaKind.OBJECT:
            value = ANY
            if isinstance(node.additional, SchemaNode):
                value = self.map_schema(node.additional, f"{hint}Value")
            return TypeDescriptor(kind=TypeKind.MAPPING, element=value)
        return ANY

    def _define_inline(self, node: SchemaNode, hint: str) -> str:
        name = self.names.assign(hint or "InlineObject", NameKind.TYPE, key=f"inline/{len(self.definitions)}/{hint}")
        # Register the shape before mapping fields so self-similar nesting terminates
        self._shapes[shape_key(node)] = name
        self.definitions[name] = TypeDefinition(
            name=name, form="struct", description=node.description, source="inline"
        )
        self.definitions[name].fields = self._fields(name, node)
        return name

    def _fields(self, type_name: str, node: SchemaNode) -> list[FieldDef]:
        required = set(node.required)
        fields = []
        for prop, prop_node in node.properties.items():
            is_required = prop in required
            field_name = self.names.assign(prop, NameKind.FIELD, scope=type_name)
            fields.append(FieldDef(
                name=field_name,
                json_name=prop,
                type=self.field_type(prop_node, is_required, f"{type_name}{to_pascal(prop)}"),
                required=is_required,
                description=prop_node.description,
                validate_tag=self._validate_tag(prop_node, is_required) if self.include_validation else "",
            ))
        return fields

    def _enum_values(self, type_name: str, node: SchemaNode) -> list[tuple[str, str]]:
        values = []
        for value in node.enum:
            if value is None:
                continue
            const = self.names.assign(f"{type_name} {value}", NameKind.CONSTANT, key=f"{type_name}/{value!r}")
            if node.type == "string":
                literal = go_string(str(value))
            elif isinstance(value, bool):
                literal = "true" if value else "false"
            else:
                literal = str(value)
            values.append((const, literal))
        return values

    @staticmethod
    def _validate_tag(node: SchemaNode, required: bool) -> str:
        rules = []
        if node.minimum is not None:
            rules.append(f"min={_num(node.minimum)}")
        if node.maximum is not None:
            rules.append(f"max={_num(node.maximum)}")
        if node.min_length is not None:
            rules.append(f"min={node.min_length}")
        if node.max_length is not None:
            rules.append(f"max={node.max_length}")
        if node.enum and node.type == "string" and all(" " not in str(v) for v in node.enum):
            rules.append("oneof=" + " ".join(str(v) for v in node.enum))
        if required:
            return ",".join(["required", *rules])
        if rules:
            return ",".join(["omitempty", *rules])
        return ""

    # --- cycles --------------------------------------------------------------

    def _struct_target(self, desc: TypeDescriptor) -> str | None:
        """Follow aliases from a by-value composite to the struct it embeds."""
        seen = set()
        while desc.kind is TypeKind.COMPOSITE and not desc.indirect and desc.name not in seen:
            seen.add(desc.name)
            definition = self.definitions.get(desc.name)
            if definition is None:
                return None
            if definition.form == "struct":
                return desc.name
            if definition.form != "alias" or definition.target is None:
                return None
            desc = definition.target
        return None

    def _break_cycles(self) -> None:
        """Make by-value struct fields that close a cycle indirect (*T)."""
        edges: dict[str, dict[int, str]] = {}
        for name, definition in self.definitions.items():
            if definition.form != "struct":
                continue
            for index, field in enumerate(definition.fields):
                target = self._struct_target(field.type)
                if target is not None:
                    edges.setdefault(name, {})[index] = target

        def reaches(start: str, goal: str) -> bool:
            stack, seen = [start], set()
            while stack:
                current = stack.pop()
                if current == goal:
                    return True
                if current in seen:
                    continue
                seen.add(current)
                stack.extend(edges.get(current, {}).values())
            return False

        for name in list(edges):
            for index, target in list(edges[name].items()):
                if reaches(target, name):
                    field = self.definitions[name].fields[index]
                    field.type = field.type.model_copy(update={"indirect": True})
                    del edges[name][index]
                    logger.debug("field %s.%s made indirect to break a cycle", name, field.name)

    # --- usage ---------------------------------------------------------------

    def referenced(self, descriptors: list[TypeDescriptor]) -> set[str]:
        """Names of all defined types reachable from the given descriptors."""
        found: set[str] = set()
        pending = list(descriptors)
        while pending:
            desc = pending.pop()
            while desc.element is not None:
                desc = desc.element
            if desc.kind is not TypeKind.COMPOSITE or desc.name in found:
                continue
            definition = self.definitions.get(desc.name)
            if definition is None:
                continue
            found.add(desc.name)
            pending.extend(f.type for f in definition.fields)
            if definition.target is not None:
                pending.append(definition.target)
        return found

    # --- declarations --------------------------------------------------------

    def declarations(self, groups: dict[str, str] | None = None) -> list[GeneratedDeclaration]:
        groups = groups or {}
        decls = []
        for name, definition in self.definitions.items():
            imports: set[str] = set()
            for field in definition.fields:
                imports.update(field.type.imports)
            if definition.target is not None:
                imports.update(definition.target.imports)
            decls.append(GeneratedDeclaration(
                name=name,
                kind=DeclarationKind.TYPE,
                section="types",
                group=groups.get(name, SHARED_GROUP),
                body=fragment("types", "type_definition", d=definition),
                imports=tuple(sorted(imports)),
                metadata={"form": definition.form, "source": definition.source},
            ))
        return decls


def _num(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)

