"""
Grouper and resource-key helpers.

Requirements are partitioned by composite key ``<resource_type>:<requirement_key>``.
Group order follows the first declaration of each key and members keep their
declaration order, so every later stage is deterministic.
"""

from typing import Iterable

from backend.requirements import RequirementGroup, SourcedRequirement

__all__ = [
    "format_concrete_key",
    "format_resource_key",
    "group_requirements",
    "parse_resource_key",
]


def format_resource_key(resource_type: str, requirement_key: str) -> str:
    """
    Build the composite key for a requirement.

    Raises:
        ValueError: If either part is empty.
    """
    if not resource_type or not requirement_key:
        raise ValueError("Resource type and requirement key are required")
    return f"{resource_type}:{requirement_key}"


def parse_resource_key(resource_key: str) -> tuple[str, str]:
    """
    Split a composite key into ``(resource_type, requirement_key)``.

    The resource type never contains ``:``; everything after the first colon
    is the requirement key.
    """
    resource_type, sep, requirement_key = resource_key.partition(":")
    if not sep or not resource_type or not requirement_key:
        raise ValueError(
            f'Invalid resource key format: "{resource_key}". '
            'Expected format: "resourceType:requirementKey"'
        )
    return resource_type, requirement_key


def format_concrete_key(composite_key: str, index: int) -> str:
    """
    Key of the ``index``-th bucket (1-based) of a composite key.

    The first bucket keeps the composite key; overflow buckets get ``-2``,
    ``-3``, ...
    """
    if index < 1:
        raise ValueError("Bucket index must be a positive integer")
    return composite_key if index == 1 else f"{composite_key}-{index}"


def group_requirements(
    requirements: Iterable[SourcedRequirement],
) -> list[RequirementGroup]:
    grouped: dict[str, list[SourcedRequirement]] = {}
    for sourced in requirements:
        grouped.setdefault(sourced.composite_key, []).append(sourced)
    return [
        RequirementGroup(composite_key=key, members=tuple(members))
        for key, members in grouped.items()
    ]
