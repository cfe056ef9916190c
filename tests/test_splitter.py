"""Tests for splitting declarations into files."""

import random

import pytest

from oasgen.models import SHARED_GROUP, DeclarationKind, GeneratedDeclaration, Operation
from oasgen.splitter import (
    SECTION_ORDER,
    SplitStrategy,
    Thresholds,
    group_key,
    needs_split,
    plan,
)


def _op(path="/pets", tags=()):
    return Operation(operation_id="x", name="X", method="GET", path=path, tags=tags)


def _decl(name, section="client", group=SHARED_GROUP, operation=None, lines=1,
          kind=DeclarationKind.FUNCTION, receiver=None):
    return GeneratedDeclaration(
        name=name,
        kind=kind,
        section=section,
        body="\n".join(["x"] * lines),
        group=group,
        operation=operation,
        receiver=receiver,
    )


def _ops(count, group="pets", section="client"):
    return [_decl(f"Op{i}", section=section, group=group, operation=f"Op{i}") for i in range(count)]


class TestGroupKey:
    """Tag first, then path prefix, then default."""

    def test_tag(self):
        assert group_key(_op(tags=("PetStore",)), SplitStrategy()) == "pet_store"

    def test_path_prefix(self):
        assert group_key(_op("/stores/{id}"), SplitStrategy()) == "stores"

    def test_template_first_segment(self):
        assert group_key(_op("/{id}"), SplitStrategy()) == "default"

    def test_tag_disabled(self):
        strategy = SplitStrategy(split_by_tag=False)
        assert group_key(_op("/stores", tags=("pets",)), strategy) == "stores"

    def test_nothing_enabled(self):
        strategy = SplitStrategy(split_by_tag=False, split_by_path_prefix=False)
        assert group_key(_op(tags=("pets",)), strategy) == "default"

    def test_shared_is_reserved(self):
        assert group_key(_op(tags=("shared",)), SplitStrategy()) == "shared_ops"


class TestNeedsSplit:
    def test_under_thresholds(self):
        assert not needs_split(_ops(3), Thresholds())

    def test_operations(self):
        assert needs_split(_ops(3), Thresholds(max_operations=2))

    def test_lines(self):
        assert needs_split([_decl("Big", lines=11)], Thresholds(max_lines=10))

    def test_types(self):
        types = [_decl(f"T{i}", kind=DeclarationKind.TYPE) for i in range(3)]
        assert needs_split(types, Thresholds(max_types=2))

    def test_zero_disables(self):
        assert not needs_split(_ops(500), Thresholds(max_lines=0, max_types=0, max_operations=0))


class TestPlan:
    """Bucket layout."""

    def test_no_split_one_bucket_per_section(self):
        decls = _ops(2, section="server") + _ops(2, section="client") + [_decl("Pet", section="types")]
        result = plan(decls)
        assert not result.needs_split
        assert [b.name for b in result.buckets] == ["types", "client", "server"]
        assert all(b.is_shared for b in result.buckets)

    def test_section_order_is_complete(self):
        assert SECTION_ORDER[0] == "types"
        assert SECTION_ORDER[-1] == "server_stubs"
        assert len(set(SECTION_ORDER)) == len(SECTION_ORDER)

    def test_split_by_operation_threshold(self):
        decls = _ops(5) + [_decl("Client", kind=DeclarationKind.TYPE)]
        result = plan(decls, Thresholds(max_operations=2))
        assert result.needs_split
        assert [b.name for b in result.buckets] == ["client", "client_pets", "client_pets_2", "client_pets_3"]
        assert [b.operation_count for b in result.buckets[1:]] == [2, 2, 1]

    def test_groups_sorted(self):
        decls = _ops(2, group="zoo") + [_decl("Alpha", group="alpha", operation="Alpha")]
        result = plan(decls, Thresholds(max_operations=1))
        assert [b.name for b in result.buckets] == ["client_alpha", "client_zoo", "client_zoo_2"]

    def test_oversized_unit_gets_own_bucket(self):
        decls = [
            _decl("Small", group="pets", operation="Small", lines=2),
            _decl("Huge", group="pets", operation="Huge", lines=50),
        ]
        result = plan(decls, Thresholds(max_lines=10))
        assert [[d.name for d in b.declarations] for b in result.buckets] == [["Huge"], ["Small"]]

    def test_methods_follow_receiver(self):
        decls = [
            _decl("Client", kind=DeclarationKind.TYPE, lines=5),
            _decl("Do", kind=DeclarationKind.METHOD, receiver="Client", lines=5),
        ]
        result = plan(decls, Thresholds(max_lines=1))
        assert len(result.buckets) == 1
        assert [d.qualified_name for d in result.buckets[0].declarations] == ["Client", "Client.Do"]

    def test_totals(self):
        result = plan(_ops(3) + [_decl("Pet", section="types", kind=DeclarationKind.TYPE)])
        assert (result.total_operations, result.total_types, result.total_lines) == (3, 1, 4)

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_deterministic(self, seed):
        decls = _ops(7) + _ops(4, group="stores") + [_decl(f"T{i}", section="types") for i in range(5)]
        expected = plan(decls, Thresholds(max_operations=3))
        shuffled = list(decls)
        random.Random(seed).shuffle(shuffled)
        actual = plan(shuffled, Thresholds(max_operations=3))
        assert [(b.name, [d.qualified_name for d in b.declarations]) for b in actual.buckets] == [
            (b.name, [d.qualified_name for d in b.declarations]) for b in expected.buckets
        ]

    def test_lookup(self):
        result = plan(_ops(1))
        assert result.bucket("client").file_name == "client.go"
        assert result.bucket("missing") is None
