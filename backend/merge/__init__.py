from backend.merge.engine import merge_groups
from backend.merge.strategies import (
    Contribution,
    Equal,
    FieldPath,
    FieldStrategy,
    Intersection,
    Maximum,
    MergeContext,
    MergePolicy,
    Minimum,
    Priority,
    Union,
    merge_configs,
    merge_mapping,
)

__all__ = [
    "Contribution",
    "Equal",
    "FieldPath",
    "FieldStrategy",
    "Intersection",
    "Maximum",
    "MergeContext",
    "MergePolicy",
    "Minimum",
    "Priority",
    "Union",
    "merge_configs",
    "merge_groups",
    "merge_mapping",
]
