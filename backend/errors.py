"""
Error taxonomy for the backend orchestrator.

Every error raised by the backend derives from ``BackendError`` and carries a
machine-readable ``code`` plus a ``context`` dict for tooling. Analysis-stage
errors (unknown types, merge conflicts, capacity, validation) and
component-stage errors are collected and raised together inside an
``OrchestrationError`` so that every problem is reported at once.
"""

from dataclasses import dataclass
from typing import Any, Sequence

__all__ = [
    "BackendError",
    "CapacityExceededError",
    "ComponentInitializationError",
    "ComponentValidationFailure",
    "DuplicateComponentError",
    "FieldConflict",
    "IllegalStateError",
    "InvalidRequirementError",
    "OrchestrationError",
    "ProviderError",
    "ProviderRegistrationError",
    "RequirementMergeConflict",
    "RequirementValidationError",
    "UnknownResourceTypeError",
]


class BackendError(Exception):
    """
    Base class for all backend errors.

    Attributes:
        code: Stable error code for programmatic handling.
        context: Extra details about the failure (ids, keys, limits).
    """

    code: str = "BACKEND_ERROR"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context: dict[str, Any] = context


class DuplicateComponentError(BackendError):
    """Raised by ``add_component`` when a component id is already registered."""

    code = "DUPLICATE_COMPONENT"

    def __init__(self, component_id: str, backend_id: str):
        super().__init__(
            f'Component with ID "{component_id}" already exists in backend "{backend_id}"',
            component_id=component_id,
            backend_id=backend_id,
        )
        self.component_id = component_id


class IllegalStateError(BackendError):
    """Raised when an operation is attempted outside the state that allows it."""

    code = "ILLEGAL_STATE"

    def __init__(self, operation: str, state: str, detail: str | None = None):
        message = f'Cannot {operation} while backend is in state "{state}"'
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, operation=operation, state=state)
        self.operation = operation
        self.state = state


class UnknownResourceTypeError(BackendError):
    """No registered provider can provide a declared resource type."""

    code = "UNKNOWN_RESOURCE_TYPE"

    def __init__(
        self,
        resource_type: str,
        requirement_key: str,
        component_ids: Sequence[str] = (),
    ):
        super().__init__(
            f'No provider found for resource type "{resource_type}" '
            f'(requirement "{resource_type}:{requirement_key}", '
            f"declared by {', '.join(component_ids) or 'unknown'}). "
            "Register a provider or ensure the resource type is supported.",
            resource_type=resource_type,
            requirement_key=requirement_key,
            component_ids=tuple(component_ids),
        )
        self.resource_type = resource_type
        self.requirement_key = requirement_key
        self.component_ids = tuple(component_ids)


class InvalidRequirementError(BackendError):
    """A component declared a malformed requirement or failed while declaring."""

    code = "INVALID_REQUIREMENT"

    def __init__(
        self,
        reason: str,
        component_id: str | None = None,
        resource_type: str | None = None,
        requirement_key: str | None = None,
    ):
        source = f' from component "{component_id}"' if component_id else ""
        super().__init__(
            f"Invalid requirement{source}: {reason}",
            component_id=component_id,
            resource_type=resource_type,
            requirement_key=requirement_key,
        )
        self.component_id = component_id
        self.reason = reason


@dataclass(frozen=True)
class FieldConflict:
    """
    One irreconcilable field inside a requirement group.

    Attributes:
        path: Full field path, e.g. ``containers[logs].public_access``.
        field: Last field name of the path, e.g. ``public_access``.
        identity: Identity of the enclosing collection entry (``logs``), if any.
        component_ids: Components whose values disagree.
        values: The disagreeing values, aligned with ``component_ids``.
        reason: Human-readable explanation.
    """

    path: str
    field: str
    identity: str | None
    component_ids: tuple[str, ...]
    values: tuple[Any, ...]
    reason: str

    def describe(self) -> str:
        where = f' for "{self.identity}"' if self.identity else ""
        return (
            f'field "{self.field}"{where} at {self.path}: {self.reason} '
            f"(components: {', '.join(self.component_ids)})"
        )


class RequirementMergeConflict(BackendError):
    """
    Requirements sharing a composite key cannot be merged.

    Carries every conflict found in the group. ``field``, ``identity`` and
    ``component_ids`` describe the first conflict for convenience.
    """

    code = "REQUIREMENT_MERGE_CONFLICT"

    def __init__(
        self,
        resource_type: str,
        requirement_key: str,
        conflicts: Sequence[FieldConflict],
    ):
        if not conflicts:
            raise ValueError("RequirementMergeConflict needs at least one conflict")
        details = "; ".join(conflict.describe() for conflict in conflicts)
        super().__init__(
            f'Cannot merge requirements for "{resource_type}:{requirement_key}": {details}',
            resource_type=resource_type,
            requirement_key=requirement_key,
            conflicts=tuple(conflicts),
        )
        self.resource_type = resource_type
        self.requirement_key = requirement_key
        self.conflicts = tuple(conflicts)

    @property
    def field(self) -> str:
        return self.conflicts[0].field

    @property
    def identity(self) -> str | None:
        return self.conflicts[0].identity

    @property
    def component_ids(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for conflict in self.conflicts:
            for component_id in conflict.component_ids:
                seen.setdefault(component_id, None)
        return tuple(seen)


class CapacityExceededError(BackendError):
    """Demand for a requirement cannot fit into ``limit`` x ``max_splits``."""

    code = "CAPACITY_EXCEEDED"

    def __init__(
        self,
        composite_key: str,
        limit: int,
        max_splits: int,
        demand: int,
        reason: str | None = None,
    ):
        super().__init__(
            f'Resource limit exceeded for "{composite_key}": demand of {demand} '
            f"does not fit into {max_splits} resource(s) of {limit}"
            + (f" ({reason})" if reason else ""),
            composite_key=composite_key,
            limit=limit,
            max_splits=max_splits,
            demand=demand,
        )
        self.composite_key = composite_key
        self.limit = limit
        self.max_splits = max_splits
        self.demand = demand


class RequirementValidationError(BackendError):
    """A provider rejected the merged configuration of one bucket."""

    code = "REQUIREMENT_VALIDATION"

    def __init__(self, concrete_key: str, errors: Sequence[str]):
        super().__init__(
            f'Merged requirement "{concrete_key}" failed validation: {", ".join(errors)}',
            concrete_key=concrete_key,
            errors=tuple(errors),
        )
        self.concrete_key = concrete_key
        self.errors = tuple(errors)


class ProviderError(BackendError):
    """Wraps a failure surfaced by a provider's resource creation call."""

    code = "PROVIDER_ERROR"

    def __init__(self, provider_id: str, concrete_key: str, reason: str):
        super().__init__(
            f'Provider "{provider_id}" failed to provide "{concrete_key}": {reason}',
            provider_id=provider_id,
            concrete_key=concrete_key,
            reason=reason,
        )
        self.provider_id = provider_id
        self.concrete_key = concrete_key


class ProviderRegistrationError(BackendError):
    """A provider could not be registered (missing id, no types, duplicate)."""

    code = "PROVIDER_REGISTRATION"


class ComponentValidationFailure(BackendError):
    """A component rejected the resources injected into it."""

    code = "COMPONENT_VALIDATION_FAILURE"

    def __init__(self, component_id: str, errors: Sequence[str]):
        super().__init__(
            f'Component "{component_id}" validation failed: {", ".join(errors)}',
            component_id=component_id,
            errors=tuple(errors),
        )
        self.component_id = component_id
        self.errors = tuple(errors)


class ComponentInitializationError(BackendError):
    """A component's factory or ``initialize`` raised during injection."""

    code = "COMPONENT_INITIALIZATION"

    def __init__(self, component_id: str, reason: str):
        super().__init__(
            f'Failed to initialize component "{component_id}": {reason}',
            component_id=component_id,
            reason=reason,
        )
        self.component_id = component_id


class OrchestrationError(BackendError):
    """
    Aggregate of every error found during one orchestration phase.

    Attributes:
        backend_id: Backend that failed.
        phase: ``"analysis"`` or ``"initialization"``.
        errors: The collected errors, in discovery order.
    """

    code = "ORCHESTRATION_FAILED"

    def __init__(self, backend_id: str, phase: str, errors: Sequence[BackendError]):
        lines = "\n".join(f"  - {error}" for error in errors)
        super().__init__(
            f'Backend "{backend_id}" failed during {phase} with '
            f"{len(errors)} error(s):\n{lines}",
            backend_id=backend_id,
            phase=phase,
        )
        self.backend_id = backend_id
        self.phase = phase
        self.errors = tuple(errors)

    def of_type(self, error_type: type[BackendError]) -> list[BackendError]:
        return [error for error in self.errors if isinstance(error, error_type)]
