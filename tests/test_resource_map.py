"""Tests for the resource map, scoped views, definitions and the collector"""

import pytest

from backend.collector import collect_requirements
from backend.definition import (
    ConstructionContext,
    ConstructionMode,
    define_component,
)
from backend.errors import IllegalStateError, InvalidRequirementError
from backend.requirements import ResourceRequirement
from backend.resource_map import ProvidedResource, ResourceMap, ScopedResources
from tests.fakes import DeclaringComponent, component, requirement


def resource(key: str) -> ProvidedResource:
    return ProvidedResource(concrete_key=key, handle=object())


class TestResourceMap:
    def test_add_assign_and_scope(self):
        resources = ResourceMap()
        resources.add(resource("storage:assets"))
        resources.add(resource("storage:assets-2"))
        resources.assign("A", "storage:assets", "storage:assets")
        resources.assign("B", "storage:assets", "storage:assets-2")
        resources.assign("B", "storage:assets", "storage:assets")

        assert resources.scoped("A").get_resource("storage", "assets").concrete_key == "storage:assets"
        # Primary bucket is the first one assigned.
        assert resources.scoped("B").get_resource("storage", "assets").concrete_key == "storage:assets-2"
        assert [r.concrete_key for r in resources.scoped("B").get_all("storage", "assets")] == [
            "storage:assets-2",
            "storage:assets",
        ]

    def test_duplicate_key_rejected(self):
        resources = ResourceMap()
        resources.add(resource("a:b"))
        with pytest.raises(IllegalStateError):
            resources.add(resource("a:b"))

    def test_assign_unknown_key(self):
        with pytest.raises(KeyError):
            ResourceMap().assign("A", "a:b", "a:b")

    def test_frozen_map_is_read_only(self):
        resources = ResourceMap()
        resources.add(resource("a:b"))
        resources.freeze()
        assert resources.frozen
        with pytest.raises(IllegalStateError):
            resources.add(resource("a:c"))
        with pytest.raises(IllegalStateError):
            resources.assign("A", "a:b", "a:b")


class TestScopedResources:
    def test_empty_view(self):
        view = ScopedResources.empty("A")
        assert len(view) == 0
        assert not view.has("storage", "assets")
        with pytest.raises(KeyError):
            view.get_resource("storage", "assets")

    def test_view_only_shows_own_requirements(self):
        resources = ResourceMap()
        resources.add(resource("a:x"))
        resources.add(resource("a:y"))
        resources.assign("A", "a:x", "a:x")
        resources.assign("B", "a:y", "a:y")
        assert list(resources.scoped("A")) == ["a:x"]
        assert "a:y" not in resources.scoped("A")


class TestDefineComponent:
    def test_is_inert(self):
        calls = []
        definition = define_component("A", "Thing", {}, lambda *args: calls.append(args))
        assert calls == []
        assert definition.component_id == "A"

    @pytest.mark.parametrize("component_id,component_type", [("", "T"), ("A", "")])
    def test_requires_id_and_type(self, component_id, component_type):
        with pytest.raises(ValueError):
            define_component(component_id, component_type, {}, lambda *args: None)

    def test_requires_callable_factory(self):
        with pytest.raises(ValueError):
            define_component("A", "T", {}, "not callable")

    def test_initialize_runs_once_and_gates_outputs(self):
        context = ConstructionContext(ConstructionMode.ORCHESTRATED, "b", ScopedResources.empty("A"))
        instance = component("A").build(context)
        with pytest.raises(IllegalStateError):
            instance.get_outputs()
        instance.initialize(ScopedResources.empty("A"))
        assert instance.get_outputs() == {"resources": []}
        with pytest.raises(IllegalStateError):
            instance.initialize(ScopedResources.empty("A"))


class TestCollectRequirements:
    def test_probe_mode_and_global_order(self):
        DeclaringComponent.instances.clear()
        definitions = [
            component("A", requirement("x", "1"), requirement("y", "1")),
            component("B", requirement("x", "1")),
        ]
        collected, errors = collect_requirements(definitions, "backend")
        assert errors == []
        assert [(s.component_id, s.composite_key, s.order) for s in collected] == [
            ("A", "x:1", 0),
            ("A", "y:1", 1),
            ("B", "x:1", 2),
        ]
        assert all(instance.context.probing for instance in DeclaringComponent.instances)
        assert all(len(instance.context.resources) == 0 for instance in DeclaringComponent.instances)

    def test_failures_are_collected_per_component(self):
        definitions = [
            component("Broken", fail_declare=True),
            component("Bad", ResourceRequirement("", "k"), ResourceRequirement("x:y", "k")),
            component("Good", requirement("x", "1")),
        ]
        collected, errors = collect_requirements(definitions, "backend")
        assert [s.component_id for s in collected] == ["Good"]
        assert all(isinstance(error, InvalidRequirementError) for error in errors)
        assert [error.component_id for error in errors] == ["Broken", "Bad", "Bad"]

    def test_rejects_non_mapping_config_and_bool_priority(self):
        definitions = [
            component(
                "Bad",
                ResourceRequirement("x", "k", config=["not", "a", "mapping"]),
                ResourceRequirement("x", "j", priority=True),
            )
        ]
        collected, errors = collect_requirements(definitions, "backend")
        assert collected == []
        assert len(errors) == 2

    def test_non_string_type_or_key_is_reported(self):
        definitions = [
            component(
                "Bad",
                ResourceRequirement(5, "k"),
                ResourceRequirement("x", None),
            ),
            component("Good", requirement("x", "1")),
        ]
        collected, errors = collect_requirements(definitions, "backend")
        assert [s.component_id for s in collected] == ["Good"]
        assert len(errors) == 2
        assert all(isinstance(error, InvalidRequirementError) for error in errors)
