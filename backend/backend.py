"""
The backend orchestrator.

A ``Backend`` accepts component definitions, then in one ``initialize`` call:

1. Analysis (no side effects): collect requirements in probe mode, group them,
   merge every group, split every merged requirement into capacity buckets
   and validate every bucket. All errors of this stage are raised together;
   when any exists no provider is ever asked to create anything.
2. Creation: every bucket is created through its provider, in group and
   bucket order, and assigned to its member components. The resource map is
   then frozen.
3. Initialization: each component is rebuilt in orchestrated mode with its
   scoped resources, validated and initialized. Failures are collected across
   all components and raised together at the end.
"""

import enum
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from backend.capacity import ResourceBucket, enforce_capacity, resolve_limit
from backend.collector import collect_requirements
from backend.definition import (
    BackendComponent,
    ComponentDefinition,
    ConstructionContext,
    ConstructionMode,
)
from backend.errors import (
    BackendError,
    CapacityExceededError,
    ComponentInitializationError,
    ComponentValidationFailure,
    DuplicateComponentError,
    IllegalStateError,
    OrchestrationError,
    ProviderError,
    RequirementValidationError,
)
from backend.grouping import format_concrete_key, format_resource_key, group_requirements
from backend.merge.engine import merge_groups
from backend.naming import DefaultNamingConvention, NamingConvention
from backend.provider import ProviderContext, ResourceProvider
from backend.registry import ProviderRegistry
from backend.requirements import SourcedRequirement, ValidationResult
from backend.resource_map import ProvidedResource, ResourceMap

__all__ = ["Backend", "BackendConfig", "BackendState"]

logger = logging.getLogger(__name__)


class BackendState(enum.Enum):
    CREATED = "created"
    ORCHESTRATING = "orchestrating"
    INITIALIZED = "initialized"
    FAILED = "failed"


@dataclass(frozen=True)
class BackendConfig:
    """
    Settings of one backend.

    Attributes:
        providers: Providers registered in order; the first one supporting a
            type wins.
        naming: Naming collaborator handed to providers.
        tags: Tags applied to every created resource.
        environment: Deployment environment name.
        location: Default cloud location.
        resource_group_name: Resource group (name or output) providers deploy
            into.
        capacity_limits: Overrides keyed by composite key or resource type.
        max_splits: Most buckets one requirement may be split into.
    """

    providers: tuple[ResourceProvider, ...] = ()
    naming: NamingConvention = field(default_factory=DefaultNamingConvention)
    tags: Mapping[str, str] = field(default_factory=dict)
    environment: str = "dev"
    location: str = "eastus"
    resource_group_name: Any = None
    capacity_limits: Mapping[str, int] = field(default_factory=dict)
    max_splits: int = 10


class Backend:
    """Orchestrates component requirements into shared, provided resources."""

    def __init__(self, backend_id: str, config: BackendConfig | None = None):
        if not backend_id:
            raise ValueError("Backend must have a backend_id")
        self.backend_id = backend_id
        self.config = config or BackendConfig()
        self.registry = ProviderRegistry(self.config.providers)
        self._state = BackendState.CREATED
        self._definitions: dict[str, ComponentDefinition] = {}
        self._aliases: dict[str, str] = {}
        self._requirements: list[SourcedRequirement] = []
        self._buckets: list[ResourceBucket] = []
        self._resources = ResourceMap()
        self._components: dict[str, BackendComponent] = {}
        self._warnings: list[str] = []

    @property
    def state(self) -> BackendState:
        return self._state

    @property
    def resources(self) -> ResourceMap:
        return self._resources

    @property
    def buckets(self) -> tuple[ResourceBucket, ...]:
        return tuple(self._buckets)

    @property
    def warnings(self) -> tuple[str, ...]:
        return tuple(self._warnings)

    @property
    def definitions(self) -> Mapping[str, ComponentDefinition]:
        return MappingProxyType(self._definitions)

    @property
    def components(self) -> Mapping[str, BackendComponent]:
        self._require_initialized("read components")
        return MappingProxyType(self._components)

    def add_component(self, definition: ComponentDefinition, alias: str | None = None) -> "Backend":
        """
        Register a component definition.

        Raises:
            IllegalStateError: If the backend is no longer accepting components.
            DuplicateComponentError: If the id (or alias) is already used.
        """
        if self._state is not BackendState.CREATED:
            raise IllegalStateError("add a component", self._state.value)
        component_id = definition.component_id
        if component_id in self._definitions or component_id in self._aliases:
            raise DuplicateComponentError(component_id, self.backend_id)
        if alias is not None and alias != component_id:
            if alias in self._aliases or alias in self._definitions:
                raise DuplicateComponentError(alias, self.backend_id)
            self._aliases[alias] = component_id
        self._definitions[component_id] = definition
        logger.debug("Added component %s (%s)", component_id, definition.component_type)
        return self

    def add_components(
        self,
        definitions: Mapping[str, ComponentDefinition] | Iterable[ComponentDefinition],
    ) -> "Backend":
        if isinstance(definitions, Mapping):
            for alias, definition in definitions.items():
                self.add_component(definition, alias=alias)
        else:
            for definition in definitions:
                self.add_component(definition)
        return self

    def initialize(self, scope: Any = None) -> "Backend":
        """
        Run the analysis, creation and initialization phases.

        Args:
            scope: Deployment scope handed to providers and components, e.g. a
                parent ``pulumi.Resource``.

        Raises:
            IllegalStateError: If called more than once.
            OrchestrationError: With every analysis (or initialization) error.
            ProviderError: If a provider fails to create a resource.
        """
        if self._state is not BackendState.CREATED:
            raise IllegalStateError(
                "initialize",
                self._state.value,
                "a backend can only be initialized once",
            )
        self._state = BackendState.ORCHESTRATING
        logger.info(
            "Orchestrating backend %s with %d component(s)",
            self.backend_id,
            len(self._definitions),
        )
        try:
            planned = self._analyze()
            self._provision(planned, scope)
            self._initialize_components(scope)
        except Exception:
            self._state = BackendState.FAILED
            logger.error("Backend %s failed", self.backend_id)
            raise
        self._state = BackendState.INITIALIZED
        logger.info(
            "Backend %s initialized: %d resource(s), %d component(s)",
            self.backend_id,
            len(self._resources),
            len(self._components),
        )
        return self

    add_to_stack = initialize

    def _analyze(self) -> list[tuple[ResourceProvider, ResourceBucket]]:
        requirements, errors = collect_requirements(
            self._definitions.values(),
            self.backend_id,
        )
        groups = group_requirements(requirements)
        merged, merge_errors = merge_groups(groups, self.registry)
        errors.extend(merge_errors)

        planned: list[tuple[ResourceProvider, ResourceBucket]] = []
        for provider, requirement in merged:
            self._warnings.extend(
                f"{requirement.composite_key}: {warning}" for warning in requirement.warnings
            )
            limit = resolve_limit(requirement, provider, self.config.capacity_limits)
            try:
                buckets = enforce_capacity(requirement, provider, limit, self.config.max_splits)
            except CapacityExceededError as error:
                errors.append(error)
                continue
            planned.extend((provider, bucket) for bucket in buckets)

        for provider, bucket in planned:
            result = provider.validate_merged(bucket.requirement)
            for warning in result.warnings:
                logger.warning("%s: %s", bucket.concrete_key, warning)
                self._warnings.append(f"{bucket.concrete_key}: {warning}")
            if not result.valid:
                errors.append(RequirementValidationError(bucket.concrete_key, result.errors))

        if errors:
            raise OrchestrationError(self.backend_id, "analysis", errors)
        self._requirements = requirements
        self._buckets = [bucket for _, bucket in planned]
        logger.info(
            "Analysis of %s complete: %d group(s), %d bucket(s)",
            self.backend_id,
            len(groups),
            len(planned),
        )
        return planned

    def _provider_context(self, bucket: ResourceBucket) -> ProviderContext:
        return ProviderContext(
            backend_id=self.backend_id,
            naming=self.config.naming,
            tags=MappingProxyType(dict(self.config.tags)),
            environment=self.config.environment,
            location=self.config.location,
            resource_group_name=self.config.resource_group_name,
            existing_resources=MappingProxyType(dict(self._resources)),
            concrete_key=bucket.concrete_key,
            bucket_index=bucket.index,
        )

    def _provision(
        self,
        planned: list[tuple[ResourceProvider, ResourceBucket]],
        scope: Any,
    ) -> None:
        for provider, bucket in planned:
            try:
                provided = provider.provide_resource(
                    bucket.requirement,
                    scope,
                    self._provider_context(bucket),
                )
            except ProviderError:
                raise
            except Exception as error:
                raise ProviderError(provider.provider_id, bucket.concrete_key, str(error)) from error
            if not isinstance(provided, ProvidedResource):
                raise ProviderError(
                    provider.provider_id,
                    bucket.concrete_key,
                    f"expected ProvidedResource, got {type(provided).__name__}",
                )
            if provided.concrete_key != bucket.concrete_key:
                raise ProviderError(
                    provider.provider_id,
                    bucket.concrete_key,
                    f'returned resource for "{provided.concrete_key}"',
                )
            self._resources.add(provided)
            for component_id in bucket.component_ids:
                self._resources.assign(component_id, bucket.composite_key, bucket.concrete_key)
            logger.debug(
                "Provided %s for %s",
                bucket.concrete_key,
                ", ".join(bucket.component_ids),
            )

        for sourced in self._requirements:
            scoped = self._resources.scoped(sourced.component_id)
            if sourced.composite_key not in scoped:
                raise BackendError(
                    f'Requirement "{sourced.composite_key}" of component '
                    f'"{sourced.component_id}" was not assigned a resource',
                    component_id=sourced.component_id,
                    composite_key=sourced.composite_key,
                )
        self._resources.freeze()

    def _initialize_components(self, scope: Any) -> None:
        failures: list[BackendError] = []
        for component_id, definition in self._definitions.items():
            resources = self._resources.scoped(component_id)
            context = ConstructionContext(
                mode=ConstructionMode.ORCHESTRATED,
                backend_id=self.backend_id,
                resources=resources,
                scope=scope,
            )
            try:
                component = definition.build(context)
            except Exception as error:
                failures.append(
                    ComponentInitializationError(component_id, f"factory failed: {error}")
                )
                continue
            expected = definition.component_class
            if expected is not None and not isinstance(component, expected):
                failures.append(
                    ComponentInitializationError(
                        component_id,
                        f"factory returned {type(component).__name__}, "
                        f"expected {expected.__name__}",
                    )
                )
                continue

            try:
                validation = component.validate_resources(resources)
            except Exception as error:
                failures.append(ComponentValidationFailure(component_id, [str(error)]))
                continue
            for warning in validation.warnings:
                self._warnings.append(f"{component_id}: {warning}")
            if not validation.valid:
                failures.append(ComponentValidationFailure(component_id, validation.errors))
                continue

            try:
                component.initialize(resources, scope)
            except Exception as error:
                logger.debug("Component %s failed to initialize", component_id, exc_info=True)
                failures.append(ComponentInitializationError(component_id, str(error)))
                continue
            self._components[component_id] = component

        if failures:
            raise OrchestrationError(self.backend_id, "initialization", failures)

    def _require_initialized(self, operation: str) -> None:
        if self._state is not BackendState.INITIALIZED:
            raise IllegalStateError(operation, self._state.value)

    def get_component(self, component_id: str, expected_type: type | None = None) -> BackendComponent:
        """
        Look up an initialized component by id or alias.

        Raises:
            IllegalStateError: If the backend is not initialized.
            KeyError: If no such component exists.
            TypeError: If it is not an instance of ``expected_type``.
        """
        self._require_initialized("read components")
        component = self._components[self._aliases.get(component_id, component_id)]
        if expected_type is not None and not isinstance(component, expected_type):
            raise TypeError(
                f'Component "{component_id}" is {type(component).__name__}, '
                f"not {expected_type.__name__}"
            )
        return component

    def get_resource(
        self,
        resource_type: str,
        requirement_key: str = "default",
        index: int = 1,
    ) -> ProvidedResource:
        key = format_concrete_key(format_resource_key(resource_type, requirement_key), index)
        return self._resources[key]

    def validate(self) -> ValidationResult:
        """Re-run ``validate_resources`` on every initialized component."""
        self._require_initialized("validate")
        result = ValidationResult.ok()
        for component_id, component in self._components.items():
            outcome = component.validate_resources(self._resources.scoped(component_id))
            result = result.merge(
                ValidationResult.from_messages(
                    [f"{component_id}: {error}" for error in outcome.errors],
                    [f"{component_id}: {warning}" for warning in outcome.warnings],
                )
            )
        return result

    def outputs(self) -> dict[str, Mapping[str, Any]]:
        """Outputs of every component, keyed by component id."""
        self._require_initialized("read outputs")
        return {
            component_id: dict(component.get_outputs())
            for component_id, component in self._components.items()
        }

    def __repr__(self) -> str:
        return (
            f"Backend({self.backend_id!r}, state={self._state.value!r}, "
            f"components={list(self._definitions)!r})"
        )
