"""
Component definitions and the component contract.

Declaring a component is side-effect free: ``define_component`` (or the
``BackendComponent.define`` class helper) returns an inert
``ComponentDefinition`` that the backend consumes later. The backend builds
components through the definition's factory twice:

1. In ``ConstructionMode.PROBE`` with an empty resource view and no deployment
   scope, only to call ``get_requirements()``. Construction and
   ``get_requirements()`` must not create anything externally visible in this
   mode; the backend cannot detect a violation.
2. In ``ConstructionMode.ORCHESTRATED`` with the component's scoped resources,
   followed by ``validate_resources()`` and ``initialize()``.

The mode is passed explicitly so components never have to guess whether they
run under a backend.
"""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Generic, Mapping, TypeVar

from backend.errors import IllegalStateError
from backend.requirements import ResourceRequirement, ValidationResult
from backend.resource_map import ScopedResources

__all__ = [
    "BackendComponent",
    "ComponentDefinition",
    "ComponentFactory",
    "ConstructionContext",
    "ConstructionMode",
    "define_component",
]

ConfigT = TypeVar("ConfigT")


class ConstructionMode(enum.Enum):
    """Why a component is being constructed."""

    PROBE = "probe"
    ORCHESTRATED = "orchestrated"


@dataclass(frozen=True)
class ConstructionContext:
    """
    Everything a factory receives besides the component id and config.

    Attributes:
        mode: Probe (requirements only) or orchestrated (resources injected).
        backend_id: Id of the backend constructing the component.
        resources: The component's scoped resource view (empty when probing).
        scope: Deployment scope (e.g. a parent ``pulumi.Resource``); ``None``
            when probing or when resources are not parented.
    """

    mode: ConstructionMode
    backend_id: str
    resources: ScopedResources
    scope: Any = None

    @property
    def probing(self) -> bool:
        return self.mode is ConstructionMode.PROBE


# factory(component_id, config, context) -> component instance
ComponentFactory = Callable[[str, Any, ConstructionContext], "BackendComponent"]


@dataclass(frozen=True)
class ComponentDefinition(Generic[ConfigT]):
    """
    Inert description of a component, consumed once by a backend.

    Attributes:
        component_id: Unique id within a backend.
        component_type: Type name (e.g. "CrudApi").
        config: Opaque component configuration.
        factory: Builds the component instance.
        component_class: Optional run-time type tag; when set the backend
            checks the instance built for injection is of this type.
    """

    component_id: str
    component_type: str
    config: ConfigT
    factory: ComponentFactory
    component_class: type | None = None

    def build(self, context: ConstructionContext) -> Any:
        return self.factory(self.component_id, self.config, context)


def define_component(
    component_id: str,
    component_type: str,
    config: ConfigT,
    factory: ComponentFactory,
    component_class: type | None = None,
) -> ComponentDefinition[ConfigT]:
    """
    Declare a component without creating anything.

    Raises:
        ValueError: If ``component_id`` or ``component_type`` is empty or
            ``factory`` is not callable.
    """
    if not component_id:
        raise ValueError("Component must have a component_id")
    if not component_type:
        raise ValueError(f'Component "{component_id}" must have a component_type')
    if not callable(factory):
        raise ValueError(f'Component "{component_id}" factory must be callable')
    return ComponentDefinition(
        component_id=component_id,
        component_type=component_type,
        config=config,
        factory=factory,
        component_class=component_class,
    )


class BackendComponent(ABC, Generic[ConfigT]):
    """
    Base class for components managed by a backend.

    Subclasses implement ``get_requirements`` and ``setup``; ``initialize``
    guarantees ``setup`` runs at most once and ``get_outputs`` is only
    available afterwards.
    """

    component_type: str = "Component"

    def __init__(self, component_id: str, config: ConfigT, context: ConstructionContext):
        self.component_id = component_id
        self.config = config
        self.context = context
        self._initialized = False

    @classmethod
    def define(cls, component_id: str, config: ConfigT) -> ComponentDefinition[ConfigT]:
        return define_component(
            component_id,
            cls.component_type,
            config,
            cls,
            component_class=cls,
        )

    @property
    def initialized(self) -> bool:
        return self._initialized

    @abstractmethod
    def get_requirements(self) -> list[ResourceRequirement]:
        """Declare the resources this component needs. Must be pure."""

    def validate_resources(self, resources: ScopedResources) -> ValidationResult:
        """Check every declared requirement resolves; override to add checks."""
        errors = [
            f'Missing resource "{requirement.composite_key}"'
            for requirement in self.get_requirements()
            if requirement.composite_key not in resources
        ]
        return ValidationResult.from_messages(errors)

    def initialize(self, resources: ScopedResources, scope: Any = None) -> None:
        if self._initialized:
            raise IllegalStateError(
                "initialize component",
                "initialized",
                f'component "{self.component_id}" was already initialized',
            )
        self.setup(resources, scope)
        self._initialized = True

    @abstractmethod
    def setup(self, resources: ScopedResources, scope: Any) -> None:
        """Consume injected resources; may create resources of its own."""

    def get_outputs(self) -> Mapping[str, Any]:
        if not self._initialized:
            raise IllegalStateError(
                "read outputs",
                "uninitialized",
                f'component "{self.component_id}" has not been initialized',
            )
        return self.outputs()

    def outputs(self) -> Mapping[str, Any]:
        return {}
