"""
Requirement model: what components declare and what the merge produces.

Requirements are frozen values. Merging and splitting always build new
values; the configuration mappings inside them are treated as read-only.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Sequence

__all__ = [
    "DEFAULT_PRIORITY",
    "MergedRequirement",
    "RequirementGroup",
    "ResourceRequirement",
    "SourcedRequirement",
    "SubResource",
    "ValidationResult",
]

# Priority used when a requirement does not set one; higher wins.
DEFAULT_PRIORITY: int = 10


@dataclass(frozen=True)
class ResourceRequirement:
    """
    An abstract, typed declaration of a resource a component needs.

    Requirements with the same ``(resource_type, requirement_key)`` share one
    merged resource; a different ``requirement_key`` always yields an
    independent resource.

    Attributes:
        resource_type: Provider-facing type tag (e.g. "cosmos", "storage").
        requirement_key: Sharing key within the type (e.g. "shared-database").
        config: Opaque configuration payload interpreted by the provider.
        priority: Conflict-resolution priority; higher wins.
    """

    resource_type: str
    requirement_key: str
    config: Mapping[str, Any] = field(default_factory=dict)
    priority: int = DEFAULT_PRIORITY

    @property
    def composite_key(self) -> str:
        return f"{self.resource_type}:{self.requirement_key}"


@dataclass(frozen=True)
class SourcedRequirement:
    """A requirement together with the component that declared it.

    ``order`` is the global declaration index, used for deterministic
    tie-breaks and bin filling.
    """

    requirement: ResourceRequirement
    component_id: str
    order: int

    @property
    def composite_key(self) -> str:
        return self.requirement.composite_key


@dataclass(frozen=True)
class RequirementGroup:
    """All sourced requirements sharing one composite key, in declaration order."""

    composite_key: str
    members: tuple[SourcedRequirement, ...]

    @property
    def resource_type(self) -> str:
        return self.members[0].requirement.resource_type

    @property
    def requirement_key(self) -> str:
        return self.members[0].requirement.requirement_key

    @property
    def component_ids(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(member.component_id for member in self.members))


@dataclass(frozen=True)
class MergedRequirement:
    """
    Result of applying a provider's merge to one requirement group.

    Attributes:
        resource_type: Resource type of the group.
        requirement_key: Requirement key of the group.
        config: Merged configuration.
        priority: Highest priority among the merged sources.
        warnings: Non-fatal notes produced while merging.
        source_count: Number of requirements merged.
        component_ids: Contributing components, first-declared first.
        owners: Per union field path, the components that contributed each
            identity (e.g. ``{"containers": {"logs": ("A", "B")}}``).
    """

    resource_type: str
    requirement_key: str
    config: Mapping[str, Any]
    priority: int = DEFAULT_PRIORITY
    warnings: tuple[str, ...] = ()
    source_count: int = 1
    component_ids: tuple[str, ...] = ()
    owners: Mapping[str, Mapping[str, tuple[str, ...]]] = field(default_factory=dict)

    @property
    def composite_key(self) -> str:
        return f"{self.resource_type}:{self.requirement_key}"

    def owners_of(self, path: str, identity: str) -> tuple[str, ...]:
        return tuple(self.owners.get(path, {}).get(identity, ()))

    def with_config(
        self,
        config: Mapping[str, Any],
        component_ids: Sequence[str] | None = None,
    ) -> "MergedRequirement":
        """Return a copy carrying ``config`` (and optionally fewer components)."""
        if component_ids is None:
            return replace(self, config=config)
        return replace(self, config=config, component_ids=tuple(component_ids))


@dataclass(frozen=True)
class SubResource:
    """
    One countable item of a merged requirement, e.g. a blob container.

    Attributes:
        identity: Identity of the item within the requirement.
        owners: Components that declared the item, first-declared first.
        config: The item's merged configuration.
        weight: Capacity units the item consumes.
        parent: Identity of an enclosing item (e.g. the Cosmos database).
    """

    identity: str
    owners: tuple[str, ...]
    config: Mapping[str, Any]
    weight: int = 1
    parent: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation: fatal ``errors`` and non-fatal ``warnings``."""

    valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @classmethod
    def ok(cls, warnings: Sequence[str] = ()) -> "ValidationResult":
        return cls(valid=True, warnings=tuple(warnings))

    @classmethod
    def from_messages(
        cls,
        errors: Sequence[str] = (),
        warnings: Sequence[str] = (),
    ) -> "ValidationResult":
        return cls(valid=not errors, errors=tuple(errors), warnings=tuple(warnings))

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult.from_messages(
            self.errors + other.errors,
            self.warnings + other.warnings,
        )
