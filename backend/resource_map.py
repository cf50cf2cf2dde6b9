"""
Resource map: concrete resource key -> provided resource handle.

The map is append-only while the backend creates resources and frozen once
component initialization begins. Each component sees it through a
``ScopedResources`` view that resolves the component's own
``(resource_type, requirement_key)`` pairs to the bucket it was assigned.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator

from backend.errors import IllegalStateError
from backend.grouping import format_resource_key

__all__ = ["ProvidedResource", "ResourceMap", "ScopedResources"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvidedResource:
    """
    Handle returned by a provider for one concrete bucket.

    Attributes:
        concrete_key: Bucket key (``storage:assets``, ``storage:assets-2``).
        handle: Provider-specific object (usually a Pulumi resource).
        provider_metadata: Extra facts from the provider (names, members).
    """

    concrete_key: str
    handle: Any
    provider_metadata: Mapping[str, Any] = field(default_factory=dict)


class ResourceMap(Mapping):
    """Append-only mapping of concrete keys to provided resources."""

    def __init__(self) -> None:
        self._resources: dict[str, ProvidedResource] = {}
        # component id -> composite key -> concrete keys (primary first)
        self._assignments: dict[str, dict[str, list[str]]] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add(self, resource: ProvidedResource) -> None:
        self._ensure_mutable("add a resource")
        if resource.concrete_key in self._resources:
            raise IllegalStateError(
                "add a resource",
                "frozen" if self._frozen else "building",
                f'"{resource.concrete_key}" is already present',
            )
        self._resources[resource.concrete_key] = resource

    def assign(self, component_id: str, composite_key: str, concrete_key: str) -> None:
        """Record that ``component_id`` resolves ``composite_key`` through ``concrete_key``."""
        self._ensure_mutable("assign a resource")
        if concrete_key not in self._resources:
            raise KeyError(concrete_key)
        keys = self._assignments.setdefault(component_id, {}).setdefault(composite_key, [])
        if concrete_key not in keys:
            keys.append(concrete_key)

    def freeze(self) -> None:
        if not self._frozen:
            logger.debug("Freezing resource map with %d resource(s)", len(self._resources))
        self._frozen = True

    def assignments(self, component_id: str) -> Mapping[str, tuple[str, ...]]:
        return MappingProxyType(
            {
                key: tuple(values)
                for key, values in self._assignments.get(component_id, {}).items()
            }
        )

    def scoped(self, component_id: str) -> "ScopedResources":
        return ScopedResources(component_id, self)

    def _ensure_mutable(self, operation: str) -> None:
        if self._frozen:
            raise IllegalStateError(operation, "frozen", "the resource map is read-only")

    def __getitem__(self, concrete_key: str) -> ProvidedResource:
        return self._resources[concrete_key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._resources)

    def __len__(self) -> int:
        return len(self._resources)

    def __repr__(self) -> str:
        return f"ResourceMap({list(self._resources)!r}, frozen={self._frozen})"


class ScopedResources(Mapping):
    """
    One component's view of the resource map.

    Keys are the component's declared composite keys; values are the primary
    ``ProvidedResource`` of each. A component whose contributions spilled over
    into several buckets reaches the others through ``get_all``. In probe mode
    the view is empty.
    """

    def __init__(self, component_id: str, resources: ResourceMap | None = None):
        self.component_id = component_id
        self._resources = resources if resources is not None else ResourceMap()

    @classmethod
    def empty(cls, component_id: str) -> "ScopedResources":
        return cls(component_id)

    def get_resource(self, resource_type: str, requirement_key: str) -> ProvidedResource:
        """Return the primary resource for a declared requirement.

        Raises:
            KeyError: If the component did not declare the requirement.
        """
        return self[format_resource_key(resource_type, requirement_key)]

    def get_all(self, resource_type: str, requirement_key: str) -> tuple[ProvidedResource, ...]:
        keys = self._keys(format_resource_key(resource_type, requirement_key))
        return tuple(self._resources[key] for key in keys)

    def handle(self, resource_type: str, requirement_key: str) -> Any:
        return self.get_resource(resource_type, requirement_key).handle

    def has(self, resource_type: str, requirement_key: str) -> bool:
        return format_resource_key(resource_type, requirement_key) in self

    def _keys(self, composite_key: str) -> tuple[str, ...]:
        return tuple(self._resources.assignments(self.component_id).get(composite_key, ()))

    def __getitem__(self, composite_key: str) -> ProvidedResource:
        keys = self._keys(composite_key)
        if not keys:
            raise KeyError(
                f'Component "{self.component_id}" has no resource for "{composite_key}"'
            )
        return self._resources[keys[0]]

    def __iter__(self) -> Iterator[str]:
        return iter(self._resources.assignments(self.component_id))

    def __len__(self) -> int:
        return len(self._resources.assignments(self.component_id))

    def __repr__(self) -> str:
        return f"ScopedResources({self.component_id!r}, {list(self)!r})"
