"""
Merge engine.

Applies each group's provider merge and accumulates every analysis error
instead of stopping at the first one.
"""

import logging
from typing import TYPE_CHECKING, Sequence

from backend.errors import BackendError, UnknownResourceTypeError
from backend.requirements import MergedRequirement, RequirementGroup

if TYPE_CHECKING:
    from backend.provider import ResourceProvider
    from backend.registry import ProviderRegistry

__all__ = ["merge_groups"]

logger = logging.getLogger(__name__)


def merge_groups(
    groups: Sequence[RequirementGroup],
    registry: "ProviderRegistry",
) -> tuple[list[tuple["ResourceProvider", MergedRequirement]], list[BackendError]]:
    """
    Merge every group with the provider registered for its resource type.

    Returns:
        ``(merged, errors)`` where ``merged`` pairs each successfully merged
        requirement with its provider, in group order.
    """
    merged: list[tuple["ResourceProvider", MergedRequirement]] = []
    errors: list[BackendError] = []
    for group in groups:
        provider = registry.find_provider(group.resource_type)
        if provider is None:
            errors.append(
                UnknownResourceTypeError(
                    group.resource_type,
                    group.requirement_key,
                    group.component_ids,
                )
            )
            continue
        try:
            result = provider.merge_requirements(group.members)
        except BackendError as error:
            errors.append(error)
            continue

        for warning in result.warnings:
            logger.warning("%s: %s", group.composite_key, warning)
        logger.debug(
            "Merged %d requirement(s) for %s with provider %s",
            result.source_count,
            group.composite_key,
            provider.provider_id,
        )
        merged.append((provider, result))
    return merged, errors
