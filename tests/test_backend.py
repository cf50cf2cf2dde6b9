"""Tests for the backend lifecycle"""

import pytest

from backend.backend import Backend, BackendConfig, BackendState
from backend.errors import (
    CapacityExceededError,
    ComponentInitializationError,
    ComponentValidationFailure,
    DuplicateComponentError,
    IllegalStateError,
    InvalidRequirementError,
    OrchestrationError,
    ProviderError,
    RequirementMergeConflict,
    RequirementValidationError,
    UnknownResourceTypeError,
)
from backend.merge.strategies import MergePolicy, Union
from providers import namespace_setting
from tests.fakes import (
    DeclaringComponent,
    RecordingCosmosProvider,
    RecordingFunctionsProvider,
    RecordingProvider,
    RecordingStorageProvider,
    component,
    requirement,
)

ITEMS = MergePolicy(fields={"items": Union(identity="name")})


def azure_backend(*definitions, **config):
    providers = (RecordingCosmosProvider(), RecordingFunctionsProvider(), RecordingStorageProvider())
    backend = Backend(
        "shop",
        BackendConfig(providers=providers, resource_group_name="shop-rg", **config),
    )
    backend.add_components(definitions)
    return backend, providers


class TestAddComponent:
    def test_duplicate_id(self):
        backend = Backend("b")
        backend.add_component(component("A"))
        with pytest.raises(DuplicateComponentError):
            backend.add_component(component("A"))

    def test_duplicate_alias(self):
        backend = Backend("b")
        backend.add_components({"api": component("A")})
        with pytest.raises(DuplicateComponentError):
            backend.add_component(component("B"), alias="api")

    def test_id_may_not_reuse_an_alias(self):
        backend = Backend("b")
        backend.add_components({"B": component("A")})
        with pytest.raises(DuplicateComponentError):
            backend.add_component(component("B"))
        assert list(backend.definitions) == ["A"]

    def test_only_in_created_state(self):
        backend = Backend("b", BackendConfig(providers=(RecordingProvider(),)))
        backend.initialize()
        with pytest.raises(IllegalStateError):
            backend.add_component(component("A"))

    def test_requires_backend_id(self):
        with pytest.raises(ValueError):
            Backend("")


class TestScenarios:
    def test_shared_cosmos_database(self):
        definitions = [
            component(
                name,
                requirement(
                    "cosmos",
                    "shared-database",
                    databases=[{"name": "shop", "containers": [{"name": name, "partition_key": "/id"}]}],
                ),
            )
            for name in ("User", "Product", "Order")
        ]
        backend, (cosmos, _, _) = azure_backend(*definitions)
        backend.initialize()

        assert backend.state is BackendState.INITIALIZED
        assert [b.concrete_key for b in backend.buckets] == ["cosmos:shared-database"]
        [(key, merged)] = cosmos.created
        assert key == "cosmos:shared-database"
        [database] = merged.config["databases"]
        assert [c["name"] for c in database["containers"]] == ["User", "Product", "Order"]
        assert merged.source_count == 3
        resource = backend.get_resource("cosmos", "shared-database")
        assert resource.provider_metadata["shared"] is True
        for name in ("User", "Product", "Order"):
            scoped = backend.resources.scoped(name)
            assert scoped.get_resource("cosmos", "shared-database") is resource

    def test_shared_function_app_with_namespaced_settings(self):
        definitions = [
            component(
                name,
                requirement(
                    "functions",
                    "api",
                    runtime="node",
                    version="20",
                    app_settings={namespace_setting(name, "DATABASE"): "shop"},
                ),
            )
            for name in ("UserApi", "ProductApi")
        ]
        backend, (_, functions, _) = azure_backend(*definitions)
        backend.initialize()

        [(_, merged)] = functions.created
        assert merged.config["app_settings"] == {
            "USER_API_DATABASE": "shop",
            "PRODUCT_API_DATABASE": "shop",
        }
        for name in ("UserApi", "ProductApi"):
            resource = backend.resources.scoped(name).get_resource("functions", "api")
            assert set(resource.provider_metadata["app_settings"]) == {
                "USER_API_DATABASE",
                "PRODUCT_API_DATABASE",
            }

    def test_conflicting_container_settings(self):
        backend, providers = azure_backend(
            component("A", requirement("storage", "shared", containers=[{"name": "logs", "public_access": "None"}])),
            component("B", requirement("storage", "shared", containers=[{"name": "logs", "public_access": "Blob"}])),
        )
        with pytest.raises(OrchestrationError) as excinfo:
            backend.initialize()

        assert excinfo.value.phase == "analysis"
        [conflict] = excinfo.value.of_type(RequirementMergeConflict)
        assert conflict.field == "public_access"
        assert conflict.identity == "logs"
        assert conflict.component_ids == ("A", "B")
        assert all(provider.created == [] for provider in providers)
        assert backend.state is BackendState.FAILED

    def test_storage_split_over_capacity(self):
        definitions = [
            component(
                f"Site{index}",
                requirement(
                    "storage",
                    "assets",
                    containers=[{"name": f"c{index}-{n:03d}"} for n in range(50)],
                ),
            )
            for index in range(5)
        ]
        backend, (_, _, storage) = azure_backend(*definitions, capacity_limits={"storage": 200})
        backend.initialize()

        assert [key for key, _ in storage.created] == ["storage:assets", "storage:assets-2"]
        assert [len(merged.config["containers"]) for _, merged in storage.created] == [200, 50]
        assert backend.resources.assignments("Site4") == {"storage:assets": ("storage:assets-2",)}
        assert backend.resources.scoped("Site0").get_resource("storage", "assets").concrete_key == "storage:assets"
        assert backend.get_resource("storage", "assets", index=2).provider_metadata["shared"] is False

    def test_second_initialize_is_illegal(self):
        provider = RecordingProvider()
        backend = Backend("b", BackendConfig(providers=(provider,)))
        backend.add_component(component("A", requirement("fake", "k")))
        backend.initialize()
        snapshot = dict(backend.resources)

        with pytest.raises(IllegalStateError):
            backend.initialize()
        assert dict(backend.resources) == snapshot
        assert provider.calls == ["fake:k"]
        assert backend.state is BackendState.INITIALIZED


class TestAnalysisErrors:
    def test_no_partial_provisioning(self):
        good = RecordingProvider("good", ("good",))
        bad = RecordingProvider("bad", ("bad",), validation_errors={"bad:k": ["invalid sku"]})
        backend = Backend("b", BackendConfig(providers=(good, bad)))
        backend.add_components(
            [
                component("A", requirement("good", "k")),
                component("B", requirement("bad", "k")),
            ]
        )
        with pytest.raises(OrchestrationError) as excinfo:
            backend.initialize()
        [error] = excinfo.value.errors
        assert isinstance(error, RequirementValidationError)
        assert error.concrete_key == "bad:k"
        assert good.calls == [] and bad.calls == []

    def test_all_analysis_errors_are_reported_together(self):
        provider = RecordingProvider(policy=ITEMS, items_field="items", limit=1)
        backend = Backend("b", BackendConfig(providers=(provider,), max_splits=1))
        backend.add_components(
            [
                component("Broken", fail_declare=True),
                component("Unknown", requirement("nothing", "k")),
                component("A", requirement("fake", "conflict", tier="a")),
                component("B", requirement("fake", "conflict", tier="b")),
                component("Big", requirement("fake", "big", items=[{"name": "x"}, {"name": "y"}])),
            ]
        )
        with pytest.raises(OrchestrationError) as excinfo:
            backend.initialize()
        types = [type(error) for error in excinfo.value.errors]
        assert types == [
            InvalidRequirementError,
            UnknownResourceTypeError,
            RequirementMergeConflict,
            CapacityExceededError,
        ]
        assert provider.calls == []

    def test_provider_failure_is_wrapped(self):
        provider = RecordingProvider(fail_on=("fake:k",))
        backend = Backend("b", BackendConfig(providers=(provider,)))
        backend.add_component(component("A", requirement("fake", "k")))
        with pytest.raises(ProviderError) as excinfo:
            backend.initialize()
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert backend.state is BackendState.FAILED

    def test_azure_provider_needs_a_resource_group(self):
        backend = Backend("b", BackendConfig(providers=(RecordingStorageProvider(),)))
        backend.add_component(component("A", requirement("storage", "k")))
        with pytest.raises(ProviderError, match="resource_group_name"):
            backend.initialize()


class TestInitializationPhase:
    def test_failures_are_aggregated_and_siblings_complete(self):
        DeclaringComponent.instances.clear()
        backend = Backend("b", BackendConfig(providers=(RecordingProvider(),)))
        backend.add_components(
            [
                component("Rejects", requirement("fake", "k"), reject=["wrong region"]),
                component("Fails", requirement("fake", "k"), fail_setup=True),
                component("Works", requirement("fake", "k")),
            ]
        )
        with pytest.raises(OrchestrationError) as excinfo:
            backend.initialize(scope="stack")

        assert excinfo.value.phase == "initialization"
        assert [type(e) for e in excinfo.value.errors] == [
            ComponentValidationFailure,
            ComponentInitializationError,
        ]
        works = [i for i in DeclaringComponent.instances if i.component_id == "Works" and i.initialized]
        assert len(works) == 1
        assert works[0].scope == "stack"
        assert not works[0].context.probing
        assert backend.resources.frozen

    def test_type_tag_is_checked(self):
        class Other(DeclaringComponent):
            pass

        definition = component("A")
        backend = Backend("b", BackendConfig(providers=(RecordingProvider(),)))
        backend.add_component(
            type(definition)(
                component_id="A",
                component_type="Declaring",
                config={},
                factory=definition.factory,
                component_class=Other,
            )
        )
        with pytest.raises(OrchestrationError) as excinfo:
            backend.initialize()
        [error] = excinfo.value.errors
        assert isinstance(error, ComponentInitializationError)
        assert "expected Other" in str(error)


class TestInitializedBackend:
    @pytest.fixture
    def backend(self):
        backend = Backend("b", BackendConfig(providers=(RecordingProvider(),)))
        backend.add_components({"api": component("A", requirement("fake", "k"))})
        return backend.initialize()

    def test_components_and_lookup_by_alias(self, backend):
        assert list(backend.components) == ["A"]
        assert backend.get_component("api") is backend.get_component("A", DeclaringComponent)
        with pytest.raises(TypeError):
            backend.get_component("A", int)

    def test_outputs_and_validate(self, backend):
        assert backend.outputs() == {"A": {"resources": ["fake:k"]}}
        assert backend.validate().valid

    def test_every_requirement_resolves(self, backend):
        scoped = backend.resources.scoped("A")
        assert scoped.get_resource("fake", "k") is backend.get_resource("fake", "k")

    def test_components_unavailable_before_initialize(self):
        backend = Backend("b")
        with pytest.raises(IllegalStateError):
            backend.components
        with pytest.raises(IllegalStateError):
            backend.outputs()


class TestDeterminism:
    def test_identical_runs_produce_identical_assignments(self):
        def run():
            provider = RecordingProvider(policy=ITEMS, items_field="items", limit=3)
            backend = Backend("b", BackendConfig(providers=(provider,)))
            backend.add_components(
                [
                    component(f"C{i}", requirement("fake", "k", items=[{"name": f"{i}-{n}"} for n in range(i + 1)]))
                    for i in range(4)
                ]
            )
            backend.initialize()
            return (
                provider.calls,
                {f"C{i}": dict(backend.resources.assignments(f"C{i}")) for i in range(4)},
            )

        assert run() == run() == run()
