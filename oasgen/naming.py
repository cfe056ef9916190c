"""Canonical, collision-free Go identifiers.

Words are split at separators, digit runs and acronym runs, then joined
in the style the identifier kind needs:

  listPets          -> ListPets      (exported)
  HTTPServer        -> HTTPServer    (acronym run kept)
  api_key           -> ApiKey
  API_KEY           -> APIKEY
  oauth2            -> Oauth2
  pet-id            -> petId         (unexported)
  PetStore          -> pet_store     (file)

Every identifier used by a generation run goes through a NamingRegistry,
which suffixes collisions (Pet, Pet2, Pet3 ...) in first-seen order.
"""

from __future__ import annotations

import re
from enum import Enum

# Acronym run before a capitalized word, capitalized/lower words, bare
# uppercase runs, digit runs.
_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")

GO_KEYWORDS: frozenset[str] = frozenset({
    "break", "case", "chan", "const", "continue", "default", "defer", "else",
    "fallthrough", "for", "func", "go", "goto", "if", "import", "interface",
    "map", "package", "range", "return", "select", "struct", "switch", "type",
    "var",
})

DEFAULT_NAME = "Default"


class NameKind(str, Enum):
    OPERATION = "operation"
    TYPE = "type"
    FUNCTION = "function"
    METHOD = "method"
    CONSTANT = "constant"
    VARIABLE = "variable"
    FIELD = "field"
    PARAMETER = "parameter"
    FILE = "file"
    SCHEME = "scheme"


def split_words(text: str) -> list[str]:
    """Split an arbitrary string into words."""
    return _WORD_RE.findall(text)


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def to_pascal(text: str) -> str:
    """PascalCase, keeping existing capitals inside each word."""
    name = "".join(_capitalize(w) for w in split_words(text))
    if not name:
        return DEFAULT_NAME
    if name[0].isdigit():
        name = "X" + name
    return name


def to_camel(text: str) -> str:
    words = split_words(text)
    if not words:
        return _escape_keyword(DEFAULT_NAME[0].lower() + DEFAULT_NAME[1:])
    first = words[0]
    # An all-caps first word (ID, URL) is lowered entirely
    first = first.lower() if first.isupper() else first[:1].lower() + first[1:]
    name = first + "".join(_capitalize(w) for w in words[1:])
    if name[0].isdigit():
        name = "x" + name
    return _escape_keyword(name)


def _camel_to_snake(name: str) -> str:
    """Convert camelCase or PascalCase to snake_case."""
    s1 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    return re.sub(r"([a-z\d])([A-Z])", r"\1_\2", s1).lower()


def to_file_name(text: str) -> str:
    """Sanitize a group name for use in a file name (lowercase snake_case)."""
    name = _camel_to_snake(text)
    name = re.sub(r"[^a-z0-9]+", "_", name)
    name = re.sub(r"_+", "_", name).strip("_")
    return name or "misc"


def _escape_keyword(name: str) -> str:
    if name in GO_KEYWORDS:
        return name + "_"
    return name


def _path_parts(path: str) -> tuple[list[str], list[str]]:
    """Split a path template into literal segments and template parameters."""
    literals: list[str] = []
    params: list[str] = []
    for segment in path.split("/"):
        if not segment:
            continue
        if segment.startswith("{") and segment.endswith("}"):
            params.append(segment[1:-1])
        else:
            literals.append(segment)
    return literals, params


def path_prefix(path: str) -> str:
    """First literal segment of a path, or "" when it starts with a template."""
    for segment in path.split("/"):
        if not segment:
            continue
        if segment.startswith("{"):
            return ""
        return segment
    return ""


def synthesize_operation_id(method: str, path: str) -> str:
    """Build an operation identifier from method and path.

    Literal segments are title-cased in order; template parameters follow
    as a ``By`` suffix, joined with ``And``:

      GET /pets/{id}                     -> GetPetsById
      GET /users/{uid}/posts/{pid}       -> GetUsersPostsByUidAndPid
      DELETE /                           -> Delete
    """
    literals, params = _path_parts(path)
    name = to_pascal(method.lower()) + "".join(to_pascal(s) for s in literals if split_words(s))
    if params:
        name += "By" + "And".join(to_pascal(p) for p in params)
    return name


def security_name_fragment(scheme_name: str) -> str:
    """Name fragment used in security helper identifiers.

    api_key -> ApiKey, bearer-auth -> BearerAuth, "" -> Default.
    """
    return to_pascal(scheme_name)


class NamingRegistry:
    """Per-run table of assigned identifiers.

    ``assign`` is idempotent for a (kind, scope, key) triple; ``key``
    defaults to the candidate itself. Distinct keys that normalize to the
    same identifier within a (kind, scope) get numeric suffixes.
    """

    def __init__(self) -> None:
        self._assigned: dict[tuple[NameKind, str, str], str] = {}
        self._taken: dict[tuple[NameKind, str], set[str]] = {}

    def assign(
        self,
        candidate: str,
        kind: NameKind,
        *,
        scope: str = "",
        key: str | None = None,
        exported: bool = True,
    ) -> str:
        lookup = (kind, scope, key if key is not None else candidate)
        if lookup in self._assigned:
            return self._assigned[lookup]

        base = self._normalize(candidate, kind, exported)
        taken = self._taken.setdefault((kind, scope), set())
        name = base
        suffix = 2
        while name in taken:
            sep = "_" if kind is NameKind.FILE else ""
            name = f"{base}{sep}{suffix}"
            suffix += 1
        taken.add(name)
        self._assigned[lookup] = name
        return name

    def get(self, kind: NameKind, key: str, *, scope: str = "") -> str | None:
        return self._assigned.get((kind, scope, key))

    def names(self, kind: NameKind, *, scope: str = "") -> set[str]:
        return set(self._taken.get((kind, scope), set()))

    @staticmethod
    def _normalize(candidate: str, kind: NameKind, exported: bool) -> str:
        if kind is NameKind.FILE:
            return to_file_name(candidate)
        if kind is NameKind.SCHEME:
            return security_name_fragment(candidate)
        if kind is NameKind.PARAMETER or not exported:
            return to_camel(candidate)
        return to_pascal(candidate)
