"""
Resource-provider contract.

A provider owns one or more resource types: it merges their requirement
groups, validates merged buckets, decomposes them into countable
sub-resources for capacity splitting, and finally creates the concrete
resource. Only ``provide_resource`` may have external side effects.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from backend.errors import RequirementMergeConflict
from backend.merge.strategies import MergePolicy, merge_configs
from backend.requirements import (
    MergedRequirement,
    ResourceRequirement,
    SourcedRequirement,
    SubResource,
    ValidationResult,
)

if TYPE_CHECKING:
    from backend.naming import NamingConvention
    from backend.resource_map import ProvidedResource

__all__ = ["ProviderContext", "ResourceProvider"]


@dataclass(frozen=True)
class ProviderContext:
    """
    Creation context passed to ``ResourceProvider.provide_resource``.

    Attributes:
        backend_id: Id of the backend creating the resource.
        naming: Naming collaborator; deterministic and trusted.
        tags: Tags to apply to every created resource.
        environment: Deployment environment name.
        location: Default cloud location.
        resource_group_name: Resource group (or equivalent) to deploy into.
        existing_resources: Read-only view of the resources created so far.
        concrete_key: Key of the bucket being created.
        bucket_index: 1-based bucket index within its composite key.
    """

    backend_id: str
    naming: "NamingConvention"
    tags: Mapping[str, str] = field(default_factory=dict)
    environment: str = "dev"
    location: str = "eastus"
    resource_group_name: Any = None
    existing_resources: Mapping[str, "ProvidedResource"] = field(default_factory=dict)
    concrete_key: str = ""
    bucket_index: int = 1

    def resource_name(self, resource_type: str, suffix: str | None = None) -> str:
        """Name for a resource of this bucket, unique per overflow index."""
        parts = [part for part in (suffix, self._index_suffix()) if part]
        return self.naming.format_resource_name(
            resource_type,
            self.backend_id,
            "-".join(parts) or None,
        )

    def _index_suffix(self) -> str | None:
        return str(self.bucket_index) if self.bucket_index > 1 else None


class ResourceProvider(ABC):
    """
    Base class for resource providers.

    Subclasses set ``provider_id`` and ``supported_types``, usually a
    ``merge_policy`` and ``capacity_limit``, and implement
    ``provide_resource``. The default ``merge_requirements`` applies
    ``merge_policy`` and raises on any conflict.

    Attributes:
        provider_id: Unique registry id.
        supported_types: Resource types this provider can provide.
        capacity_limit: Sub-resources per concrete resource, or ``None``.
        merge_policy: Field strategies for ``merge_requirements``.
    """

    provider_id: str = ""
    supported_types: tuple[str, ...] = ()
    capacity_limit: int | None = None
    merge_policy: MergePolicy = MergePolicy()

    def can_provide(self, requirement: ResourceRequirement | str) -> bool:
        resource_type = (
            requirement.resource_type
            if isinstance(requirement, ResourceRequirement)
            else requirement
        )
        return resource_type in self.supported_types

    def merge_requirements(self, members: Sequence[SourcedRequirement]) -> MergedRequirement:
        """
        Collapse one requirement group into a single merged requirement.

        Pure and independent of member order, except for the first-declared
        tie-break of strategies that opt into it.

        Raises:
            RequirementMergeConflict: With every conflicting field of the group.
        """
        if not members:
            raise ValueError("Cannot merge an empty requirement group")
        first = members[0].requirement
        config, context = merge_configs(members, self.merge_policy)
        if context.conflicts:
            raise RequirementMergeConflict(
                first.resource_type,
                first.requirement_key,
                context.conflicts,
            )
        ordered = sorted(members, key=lambda member: member.order)
        return MergedRequirement(
            resource_type=first.resource_type,
            requirement_key=first.requirement_key,
            config=config,
            priority=max(member.requirement.priority for member in members),
            warnings=tuple(context.warnings),
            source_count=len(members),
            component_ids=tuple(dict.fromkeys(member.component_id for member in ordered)),
            owners=context.owners,
        )

    def validate_merged(self, merged: MergedRequirement) -> ValidationResult:
        return ValidationResult.ok()

    def sub_resources(self, merged: MergedRequirement) -> Sequence[SubResource]:
        """Countable items of ``merged``; empty when it does not decompose."""
        return ()

    def bucket_config(
        self,
        merged: MergedRequirement,
        items: Sequence[SubResource],
        index: int,
    ) -> Mapping[str, Any]:
        """Configuration of the bucket holding ``items``; override to slice."""
        return merged.config

    @abstractmethod
    def provide_resource(
        self,
        requirement: MergedRequirement,
        scope: Any,
        context: ProviderContext,
    ) -> "ProvidedResource":
        """Create the concrete resource for one bucket. May have side effects."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.provider_id!r}, types={list(self.supported_types)!r})"
