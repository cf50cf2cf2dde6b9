"""
Capacity enforcer.

Splits a merged requirement into buckets that each respect the provider's
capacity limit. The fill is first-fit in declaration order: deterministic and
reproducible rather than bucket-count optimal.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping

from backend.errors import CapacityExceededError
from backend.grouping import format_concrete_key
from backend.requirements import MergedRequirement, SubResource

if TYPE_CHECKING:
    from backend.provider import ResourceProvider

__all__ = ["ResourceBucket", "enforce_capacity", "resolve_limit"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceBucket:
    """
    One concrete resource instance of a merged requirement.

    Attributes:
        concrete_key: ``composite_key`` for the first bucket, then
            ``composite_key-2``, ``composite_key-3``, ...
        index: 1-based bucket index.
        requirement: Merged requirement restricted to this bucket.
        component_ids: Components assigned to this bucket.
        sub_resources: Items placed in this bucket.
    """

    concrete_key: str
    index: int
    requirement: MergedRequirement
    component_ids: tuple[str, ...]
    sub_resources: tuple[SubResource, ...] = ()

    @property
    def composite_key(self) -> str:
        return self.requirement.composite_key

    @property
    def shared(self) -> bool:
        return len(self.component_ids) > 1

    @property
    def load(self) -> int:
        return sum(item.weight for item in self.sub_resources)


def resolve_limit(
    merged: MergedRequirement,
    provider: "ResourceProvider",
    capacity_limits: Mapping[str, int],
) -> int | None:
    """Limit for ``merged``: per composite key, then per type, then provider default."""
    if merged.composite_key in capacity_limits:
        return capacity_limits[merged.composite_key]
    if merged.resource_type in capacity_limits:
        return capacity_limits[merged.resource_type]
    return provider.capacity_limit


def _component_units(merged: MergedRequirement) -> list[SubResource]:
    return [
        SubResource(identity=component_id, owners=(component_id,), config={})
        for component_id in merged.component_ids
    ]


def enforce_capacity(
    merged: MergedRequirement,
    provider: "ResourceProvider",
    limit: int | None,
    max_splits: int,
) -> list[ResourceBucket]:
    """
    Split ``merged`` into buckets of at most ``limit`` units.

    Items come from ``provider.sub_resources`` in declaration order; when the
    requirement does not decompose, each contributing component counts as one
    unit. Components that own no item are members of the first bucket.

    Raises:
        CapacityExceededError: If one item is heavier than ``limit`` or more
            than ``max_splits`` buckets would be needed.
    """
    if limit is not None and limit < 1:
        raise ValueError(f'Capacity limit for "{merged.composite_key}" must be positive')
    if max_splits < 1:
        raise ValueError("max_splits must be positive")

    decomposed = list(provider.sub_resources(merged))
    items = decomposed or _component_units(merged)
    demand = sum(item.weight for item in items)

    bins: list[list[SubResource]] = [[]]
    load = 0
    for item in items:
        if limit is not None and item.weight > limit:
            raise CapacityExceededError(
                merged.composite_key,
                limit,
                max_splits,
                demand,
                reason=f'"{item.identity}" alone needs {item.weight}',
            )
        if limit is not None and bins[-1] and load + item.weight > limit:
            bins.append([])
            load = 0
        bins[-1].append(item)
        load += item.weight

    if len(bins) > max_splits:
        raise CapacityExceededError(merged.composite_key, limit or 0, max_splits, demand)

    buckets: list[ResourceBucket] = []
    for index, contents in enumerate(bins, start=1):
        members: dict[str, None] = {}
        for item in contents:
            members.update(dict.fromkeys(item.owners))
        if index == 1:
            # Components with nothing countable ride along in the first bucket.
            owned = {owner for item in items for owner in item.owners}
            members.update(
                dict.fromkeys(c for c in merged.component_ids if c not in owned)
            )
        component_ids = tuple(c for c in merged.component_ids if c in members)

        config = (
            provider.bucket_config(merged, contents, index)
            if decomposed and len(bins) > 1
            else merged.config
        )
        buckets.append(
            ResourceBucket(
                concrete_key=format_concrete_key(merged.composite_key, index),
                index=index,
                requirement=merged.with_config(config, component_ids),
                component_ids=component_ids,
                sub_resources=tuple(contents) if decomposed else (),
            )
        )

    if len(buckets) > 1:
        logger.info(
            "Split %s into %d buckets (limit %s, demand %d)",
            merged.composite_key,
            len(buckets),
            limit,
            demand,
        )
    return buckets
