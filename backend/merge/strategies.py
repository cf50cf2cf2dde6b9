"""
Field merge strategies.

A provider describes how its configuration merges with a ``MergePolicy``: a
mapping of field name to ``FieldStrategy`` plus a default strategy for fields
it does not name. Strategies receive every contribution for a field at once,
so merging is n-ary (and therefore associative). Contributions are always
passed in declaration order, which only matters for the documented
first-declared tie-break and for the order of union/intersection output.

Conflicts and warnings are recorded on a ``MergeContext`` rather than raised,
so one pass reports every problem of a requirement group.
"""

import copy
import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from backend.errors import FieldConflict
from backend.requirements import SourcedRequirement

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
    "canonical",
    "merge_configs",
    "merge_mapping",
]


def canonical(value: Any) -> str:
    """Stable text form used to compare and deduplicate values."""
    return json.dumps(value, sort_keys=True, default=repr)


def _kind(value: Any) -> str:
    if isinstance(value, Mapping):
        return "mapping"
    if isinstance(value, (list, tuple)):
        return "list"
    return "scalar"


@dataclass(frozen=True)
class Contribution:
    """One component's value for one field."""

    value: Any
    source: str
    priority: int
    order: int

    def with_value(self, value: Any) -> "Contribution":
        return Contribution(value, self.source, self.priority, self.order)


@dataclass(frozen=True)
class FieldPath:
    """
    Location of a field inside a configuration.

    ``segments`` render as ``databases[orders].containers[User].ttl``;
    ``identity`` is the identity of the innermost collection entry.
    """

    segments: tuple[str, ...] = ()
    identity: str | None = None

    @property
    def path(self) -> str:
        return ".".join(self.segments) or "<root>"

    @property
    def field(self) -> str:
        if not self.segments:
            return ""
        return self.segments[-1].split("[", 1)[0]

    def child(self, name: str) -> "FieldPath":
        return FieldPath(self.segments + (name,), self.identity)

    def entry(self, identity: str) -> "FieldPath":
        last = f"{self.segments[-1]}[{identity}]" if self.segments else f"[{identity}]"
        return FieldPath(self.segments[:-1] + (last,), identity)


class MergeContext:
    """Collects warnings, conflicts and union ownership while merging."""

    def __init__(self) -> None:
        self.warnings: list[str] = []
        self.conflicts: list[FieldConflict] = []
        self.owners: dict[str, dict[str, tuple[str, ...]]] = {}

    def warn(self, path: FieldPath, message: str) -> None:
        self.warnings.append(f"{path.path}: {message}")

    def conflict(
        self,
        path: FieldPath,
        contributions: Sequence[Contribution],
        reason: str,
    ) -> None:
        self.conflicts.append(
            FieldConflict(
                path=path.path,
                field=path.field,
                identity=path.identity,
                component_ids=tuple(c.source for c in contributions),
                values=tuple(c.value for c in contributions),
                reason=reason,
            )
        )

    def record_owners(self, path: FieldPath, identity: str, sources: Sequence[str]) -> None:
        self.owners.setdefault(path.path, {})[identity] = tuple(dict.fromkeys(sources))


class FieldStrategy(ABC):
    """Merges every contribution to one field into a single value."""

    name: str = "custom"

    @abstractmethod
    def merge(
        self,
        path: FieldPath,
        contributions: Sequence[Contribution],
        context: MergeContext,
    ) -> Any:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Equal(FieldStrategy):
    """All contributions must carry the same value."""

    name = "equal"

    def merge(self, path, contributions, context):
        first = contributions[0]
        if any(canonical(c.value) != canonical(first.value) for c in contributions[1:]):
            context.conflict(path, contributions, "values differ and cannot be combined")
        return copy.deepcopy(first.value)


class Priority(FieldStrategy):
    """
    The contribution with the highest priority wins.

    Overridden values are recorded as warnings. Different values sharing the
    top priority are a conflict, unless ``tie_break`` is set, in which case
    the first-declared value wins and the tie is recorded as a warning.
    """

    name = "priority"

    def __init__(self, tie_break: bool = False):
        self.tie_break = tie_break

    def merge(self, path, contributions, context):
        top = max(c.priority for c in contributions)
        leaders = [c for c in contributions if c.priority == top]
        winner = leaders[0]
        tied = [c for c in leaders if canonical(c.value) != canonical(winner.value)]
        if tied:
            if not self.tie_break:
                context.conflict(
                    path,
                    leaders,
                    f"different values with equal priority {top}",
                )
                return copy.deepcopy(winner.value)
            context.warn(
                path,
                f"tie at priority {top}; kept first-declared value {winner.value!r} "
                f"from {winner.source} over {', '.join(c.source for c in tied)}",
            )
        overridden = [
            c
            for c in contributions
            if c.priority < top and canonical(c.value) != canonical(winner.value)
        ]
        if overridden:
            context.warn(
                path,
                f"value {winner.value!r} from {winner.source} (priority {top}) overrides "
                + ", ".join(f"{c.value!r} from {c.source} (priority {c.priority})" for c in overridden),
            )
        return copy.deepcopy(winner.value)

    def __repr__(self) -> str:
        return f"Priority(tie_break={self.tie_break})"


class _Ordered(FieldStrategy):
    """Shared logic of ``Maximum`` and ``Minimum``."""

    def __init__(
        self,
        ranking: Sequence[Any] | None = None,
        key: Callable[[Any], Any] | None = None,
    ):
        if ranking is not None and key is not None:
            raise ValueError("Pass either ranking or key, not both")
        self.ranking = tuple(ranking) if ranking is not None else None
        self.key = key

    def _rank(self, value: Any) -> Any:
        if self.ranking is not None:
            return self.ranking.index(value)
        if self.key is not None:
            return self.key(value)
        return value

    @abstractmethod
    def _select(self, ranked: list[tuple[Any, Contribution]]) -> Contribution:
        ...

    def merge(self, path, contributions, context):
        if len(contributions) == 1:
            return copy.deepcopy(contributions[0].value)
        ranked: list[tuple[Any, Contribution]] = []
        for contribution in contributions:
            try:
                ranked.append((self._rank(contribution.value), contribution))
            except (ValueError, TypeError):
                reason = (
                    f"{contribution.value!r} is not one of {list(self.ranking)}"
                    if self.ranking is not None
                    else f"{contribution.value!r} cannot be ordered"
                )
                context.conflict(path, [contribution], reason)
                return copy.deepcopy(contributions[0].value)
        try:
            best = self._select(ranked)
        except TypeError:
            context.conflict(path, contributions, "values are not comparable")
            return copy.deepcopy(contributions[0].value)
        others = [c for c in contributions if canonical(c.value) != canonical(best.value)]
        if others:
            context.warn(
                path,
                f"selected {self.name} {best.value!r} from {best.source} over "
                + ", ".join(f"{c.value!r} from {c.source}" for c in others),
            )
        return copy.deepcopy(best.value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(ranking={self.ranking!r})"


class Maximum(_Ordered):
    """Take the highest value (by natural order, ``ranking`` index, or ``key``)."""

    name = "maximum"

    def _select(self, ranked):
        # max() keeps the first of equal ranks, i.e. the first-declared one.
        return max(ranked, key=lambda pair: pair[0])[1]


class Minimum(_Ordered):
    """Take the lowest value (by natural order, ``ranking`` index, or ``key``)."""

    name = "minimum"

    def _select(self, ranked):
        return min(ranked, key=lambda pair: pair[0])[1]


class Intersection(FieldStrategy):
    """
    Keep only list entries present in every contribution.

    Used for restrictive allow-lists. An empty result while some input was
    non-empty is a warning, not an error.
    """

    name = "intersection"

    def merge(self, path, contributions, context):
        if any(_kind(c.value) != "list" for c in contributions):
            context.conflict(path, contributions, "intersection needs list values")
            return copy.deepcopy(contributions[0].value)
        allowed = [{canonical(item) for item in c.value} for c in contributions[1:]]
        result: list[Any] = []
        seen: set[str] = set()
        for item in contributions[0].value:
            text = canonical(item)
            if text in seen:
                continue
            seen.add(text)
            if all(text in other for other in allowed):
                result.append(copy.deepcopy(item))
        if not result and any(c.value for c in contributions):
            context.warn(
                path,
                "intersection is empty; sources: "
                + ", ".join(c.source for c in contributions),
            )
        elif len(result) < max(len({canonical(item) for item in c.value}) for c in contributions):
            context.warn(path, "entries not allowed by every source were dropped")
        return result


class Union(FieldStrategy):
    """
    Combine collection-valued fields.

    Lists are deduplicated by ``identity``: a mapping key name, a callable, or
    (when ``None``) the whole value. Entries sharing an identity are merged
    field by field with ``entries`` when given; otherwise any differing field
    is a conflict. Mappings are combined key by key: the same key with
    different values is a conflict unless ``entries`` says how to merge it.
    Owners of every identity are recorded on the context.
    """

    name = "union"

    def __init__(
        self,
        identity: str | Callable[[Any], Any] | None = None,
        entries: "MergePolicy | None" = None,
    ):
        self.identity = identity
        self.entries = entries

    def merge(self, path, contributions, context):
        kinds = {_kind(c.value) for c in contributions}
        if len(kinds) > 1:
            context.conflict(
                path,
                contributions,
                f"structurally incompatible values ({', '.join(sorted(kinds))})",
            )
            return copy.deepcopy(contributions[0].value)
        kind = kinds.pop()
        if kind == "mapping":
            return merge_mapping(path, contributions, self.entries or _STRICT, context)
        if kind == "scalar":
            return Equal().merge(path, contributions, context)
        return self._merge_lists(path, contributions, context)

    def _identify(self, item: Any) -> str | None:
        if self.identity is None:
            return canonical(item)
        if callable(self.identity):
            return str(self.identity(item))
        if isinstance(item, Mapping) and item.get(self.identity) is not None:
            return str(item[self.identity])
        return None

    def _merge_lists(self, path, contributions, context):
        entries: dict[str, list[Contribution]] = {}
        for contribution in contributions:
            for item in contribution.value:
                identity = self._identify(item)
                if identity is None:
                    context.conflict(
                        path,
                        [contribution.with_value(item)],
                        f'entry has no identity field "{self.identity}"',
                    )
                    continue
                entries.setdefault(identity, []).append(contribution.with_value(item))

        result = []
        for identity, items in entries.items():
            if self.identity is None:
                result.append(copy.deepcopy(items[0].value))
                continue
            context.record_owners(path, identity, [c.source for c in items])
            entry_path = path.entry(identity)
            mappings = all(_kind(c.value) == "mapping" for c in items)
            if mappings and (len(items) > 1 or self.entries is not None):
                # Single entries still go through ``entries`` so nested owners are recorded.
                result.append(merge_mapping(entry_path, items, self.entries or _STRICT, context))
            elif len(items) == 1:
                result.append(copy.deepcopy(items[0].value))
            else:
                result.append(Equal().merge(entry_path, items, context))
        return result

    def __repr__(self) -> str:
        return f"Union(identity={self.identity!r})"


@dataclass(frozen=True)
class MergePolicy:
    """Field name -> strategy, with ``default`` for every other field."""

    fields: Mapping[str, FieldStrategy] = field(default_factory=dict)
    default: FieldStrategy = field(default_factory=Priority)

    def strategy_for(self, name: str) -> FieldStrategy:
        return self.fields.get(name, self.default)


# Entries sharing an identity must agree on every field they both set.
_STRICT = MergePolicy(default=Equal())


def merge_mapping(
    path: FieldPath,
    contributions: Sequence[Contribution],
    policy: MergePolicy,
    context: MergeContext,
) -> dict[str, Any]:
    """
    Merge mapping-valued contributions key by key with ``policy``.

    Keys appear in first-declared order; ``None`` values count as unset.
    """
    if any(_kind(c.value) != "mapping" for c in contributions):
        context.conflict(path, contributions, "expected mapping values")
        return {}
    keys: dict[str, None] = {}
    for contribution in contributions:
        keys.update(dict.fromkeys(contribution.value))
    merged: dict[str, Any] = {}
    for key in keys:
        values = [
            c.with_value(c.value[key])
            for c in contributions
            if c.value.get(key) is not None
        ]
        if not values:
            continue
        merged[key] = policy.strategy_for(key).merge(path.child(key), values, context)
    return merged


def merge_configs(
    members: Sequence[SourcedRequirement],
    policy: MergePolicy,
) -> tuple[dict[str, Any], MergeContext]:
    """Merge the configs of a requirement group; returns ``(config, context)``."""
    context = MergeContext()
    contributions = [
        Contribution(
            value=member.requirement.config,
            source=member.component_id,
            priority=member.requirement.priority,
            order=member.order,
        )
        for member in sorted(members, key=lambda member: member.order)
    ]
    config = merge_mapping(FieldPath(), contributions, policy, context)
    return config, context
