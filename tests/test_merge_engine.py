"""Tests for grouping and the merge engine"""

import pytest

from backend.errors import RequirementMergeConflict, UnknownResourceTypeError
from backend.grouping import (
    format_concrete_key,
    format_resource_key,
    group_requirements,
    parse_resource_key,
)
from backend.merge.engine import merge_groups
from backend.merge.strategies import Maximum, MergePolicy, Union
from backend.registry import ProviderRegistry
from tests.fakes import RecordingProvider, requirement, sourced

POLICY = MergePolicy(fields={"items": Union(identity="name"), "size": Maximum()})


class TestResourceKeys:
    def test_format_and_parse(self):
        key = format_resource_key("cosmos", "shared-database")
        assert key == "cosmos:shared-database"
        assert parse_resource_key(key) == ("cosmos", "shared-database")

    def test_parse_keeps_colons_in_requirement_key(self):
        assert parse_resource_key("storage:a:b") == ("storage", "a:b")

    @pytest.mark.parametrize("key", ["storage", ":key", "storage:"])
    def test_parse_rejects_malformed_keys(self, key):
        with pytest.raises(ValueError):
            parse_resource_key(key)

    def test_format_rejects_empty_parts(self):
        with pytest.raises(ValueError):
            format_resource_key("", "key")

    def test_concrete_keys(self):
        assert format_concrete_key("storage:assets", 1) == "storage:assets"
        assert format_concrete_key("storage:assets", 2) == "storage:assets-2"


class TestGroupRequirements:
    def test_groups_preserve_first_appearance_and_declaration_order(self):
        members = sourced(
            ("A", requirement("storage", "shared")),
            ("B", requirement("cosmos", "db")),
            ("C", requirement("storage", "shared")),
            ("D", requirement("storage", "other")),
        )
        groups = group_requirements(members)
        assert [g.composite_key for g in groups] == ["storage:shared", "cosmos:db", "storage:other"]
        assert groups[0].component_ids == ("A", "C")

    def test_different_keys_are_independent(self):
        groups = group_requirements(
            sourced(("A", requirement("storage", "one")), ("B", requirement("storage", "two")))
        )
        assert len(groups) == 2


class TestMergeGroups:
    def test_merges_each_group_with_its_provider(self):
        provider = RecordingProvider(types=("fake",), policy=POLICY)
        groups = group_requirements(
            sourced(
                ("A", requirement("fake", "k", items=[{"name": "x"}], size=1)),
                ("B", requirement("fake", "k", items=[{"name": "y"}], size=4)),
            )
        )
        merged, errors = merge_groups(groups, ProviderRegistry([provider]))
        assert errors == []
        [(chosen, result)] = merged
        assert chosen is provider
        assert result.config == {"items": [{"name": "x"}, {"name": "y"}], "size": 4}
        assert result.source_count == 2
        assert result.component_ids == ("A", "B")
        assert result.owners_of("items", "y") == ("B",)

    def test_merged_priority_is_the_highest(self):
        provider = RecordingProvider(policy=POLICY)
        groups = group_requirements(
            sourced(
                ("A", requirement("fake", "k", priority=5)),
                ("B", requirement("fake", "k", priority=30)),
            )
        )
        [(_, result)], _ = merge_groups(groups, ProviderRegistry([provider]))
        assert result.priority == 30

    def test_accumulates_errors_across_groups(self):
        provider = RecordingProvider(policy=POLICY)
        groups = group_requirements(
            sourced(
                ("A", requirement("unknown", "k")),
                ("B", requirement("fake", "k", items=[{"name": "x", "v": 1}])),
                ("C", requirement("fake", "k", items=[{"name": "x", "v": 2}])),
                ("D", requirement("fake", "ok")),
            )
        )
        merged, errors = merge_groups(groups, ProviderRegistry([provider]))
        assert [type(e) for e in errors] == [UnknownResourceTypeError, RequirementMergeConflict]
        assert errors[0].component_ids == ("A",)
        assert errors[1].component_ids == ("B", "C")
        assert errors[1].identity == "x"
        assert [m.composite_key for _, m in merged] == ["fake:ok"]

    def test_equal_priority_scalar_conflict_names_both_components(self):
        provider = RecordingProvider(policy=MergePolicy())
        groups = group_requirements(
            sourced(
                ("UserApi", requirement("fake", "k", tier="basic")),
                ("OrderApi", requirement("fake", "k", tier="premium")),
            )
        )
        _, [error] = merge_groups(groups, ProviderRegistry([provider]))
        assert isinstance(error, RequirementMergeConflict)
        assert error.field == "tier"
        assert error.component_ids == ("UserApi", "OrderApi")
        assert "tier" in str(error)
