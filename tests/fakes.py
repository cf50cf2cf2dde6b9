"""Test doubles shared by the backend tests."""

from types import SimpleNamespace
from typing import Any

from backend.definition import BackendComponent, ComponentDefinition
from backend.merge.strategies import MergePolicy
from backend.provider import ResourceProvider
from backend.requirements import (
    ResourceRequirement,
    SourcedRequirement,
    SubResource,
    ValidationResult,
)
from backend.resource_map import ProvidedResource
from providers import CosmosProvider, FunctionsProvider, StorageProvider


def requirement(resource_type: str, key: str, priority: int = 10, **config: Any) -> ResourceRequirement:
    return ResourceRequirement(resource_type, key, config, priority)


def sourced(*pairs: tuple[str, ResourceRequirement]) -> list[SourcedRequirement]:
    """``("A", req), ("B", req)`` -> sourced requirements in that order."""
    return [
        SourcedRequirement(requirement=req, component_id=component_id, order=index)
        for index, (component_id, req) in enumerate(pairs)
    ]


class RecordingProvider(ResourceProvider):
    """Provider that records creation calls instead of creating anything."""

    def __init__(
        self,
        provider_id: str = "fake-provider",
        types: tuple[str, ...] = ("fake",),
        limit: int | None = None,
        policy: MergePolicy | None = None,
        items_field: str | None = None,
        validation_errors: dict[str, list[str]] | None = None,
        fail_on: tuple[str, ...] = (),
    ):
        self.provider_id = provider_id
        self.supported_types = types
        self.capacity_limit = limit
        if policy is not None:
            self.merge_policy = policy
        self.items_field = items_field
        self.validation_errors = validation_errors or {}
        self.fail_on = fail_on
        self.calls: list[str] = []

    def sub_resources(self, merged):
        if self.items_field is None:
            return ()
        return [
            SubResource(
                identity=item["name"],
                owners=merged.owners_of(self.items_field, item["name"]) or merged.component_ids,
                config=item,
            )
            for item in merged.config.get(self.items_field, [])
        ]

    def bucket_config(self, merged, items, index):
        names = {item.identity for item in items}
        return {
            **merged.config,
            self.items_field: [i for i in merged.config[self.items_field] if i["name"] in names],
        }

    def validate_merged(self, merged):
        return ValidationResult.from_messages(self.validation_errors.get(merged.composite_key, []))

    def provide_resource(self, requirement, scope, context):
        if context.concrete_key in self.fail_on:
            raise RuntimeError("quota exhausted")
        self.calls.append(context.concrete_key)
        return ProvidedResource(
            concrete_key=context.concrete_key,
            handle=SimpleNamespace(config=requirement.config, scope=scope),
            provider_metadata={"component_ids": requirement.component_ids},
        )


def _recording(provider_cls):
    class Recording(provider_cls):
        def __init__(self):
            self.created: list[tuple[str, Any]] = []

        def create(self, name, requirement, context, opts):
            self.created.append((context.concrete_key, requirement))
            return SimpleNamespace(name=name, config=requirement.config)

    Recording.__name__ = f"Recording{provider_cls.__name__}"
    return Recording


# Azure providers whose resource creation is replaced by a record.
RecordingCosmosProvider = _recording(CosmosProvider)
RecordingFunctionsProvider = _recording(FunctionsProvider)
RecordingStorageProvider = _recording(StorageProvider)


class DeclaringComponent(BackendComponent[dict]):
    """
    Component whose behaviour is driven by its config dict.

    Keys: ``requirements`` (declared as-is), ``reject`` (validation errors),
    ``fail_setup`` (setup raises), ``fail_declare`` (get_requirements raises).
    """

    component_type = "Declaring"
    instances: list["DeclaringComponent"] = []

    def __init__(self, component_id, config, context):
        super().__init__(component_id, config, context)
        DeclaringComponent.instances.append(self)
        self.seen: dict[str, ProvidedResource] = {}

    def get_requirements(self):
        if self.config.get("fail_declare"):
            raise RuntimeError("cannot declare")
        return list(self.config.get("requirements", []))

    def validate_resources(self, resources):
        result = super().validate_resources(resources)
        return result.merge(ValidationResult.from_messages(self.config.get("reject", [])))

    def setup(self, resources, scope):
        if self.config.get("fail_setup"):
            raise RuntimeError("setup failed")
        self.seen = dict(resources)
        self.scope = scope

    def outputs(self):
        return {"resources": sorted(self.seen)}


def component(component_id: str, *requirements: ResourceRequirement, **options: Any) -> ComponentDefinition:
    return DeclaringComponent.define(component_id, {"requirements": list(requirements), **options})
