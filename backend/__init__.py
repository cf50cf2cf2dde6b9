"""
Component backend: shared-resource orchestration for Pulumi programs.

Components declare abstract ``ResourceRequirement``s; a ``Backend`` merges
the requirements that share a ``(resource_type, requirement_key)``, splits
them across capacity-bounded buckets, creates each bucket through a
registered ``ResourceProvider`` and injects the results back into the
components. ``backend.builder`` holds the entry points that wire in the
Azure providers.
"""

from backend.backend import Backend, BackendConfig, BackendState
from backend.capacity import ResourceBucket, enforce_capacity
from backend.definition import (
    BackendComponent,
    ComponentDefinition,
    ConstructionContext,
    ConstructionMode,
    define_component,
)
from backend.errors import (
    BackendError,
    CapacityExceededError,
    ComponentInitializationError,
    ComponentValidationFailure,
    DuplicateComponentError,
    IllegalStateError,
    InvalidRequirementError,
    OrchestrationError,
    ProviderError,
    ProviderRegistrationError,
    RequirementMergeConflict,
    RequirementValidationError,
    UnknownResourceTypeError,
)
from backend.naming import DefaultNamingConvention, NamingConvention
from backend.provider import ProviderContext, ResourceProvider
from backend.registry import ProviderRegistry
from backend.requirements import (
    DEFAULT_PRIORITY,
    MergedRequirement,
    ResourceRequirement,
    SubResource,
    ValidationResult,
)
from backend.resource_map import ProvidedResource, ResourceMap, ScopedResources

__all__ = [
    "DEFAULT_PRIORITY",
    "Backend",
    "BackendComponent",
    "BackendConfig",
    "BackendError",
    "BackendState",
    "CapacityExceededError",
    "ComponentDefinition",
    "ComponentInitializationError",
    "ComponentValidationFailure",
    "ConstructionContext",
    "ConstructionMode",
    "DefaultNamingConvention",
    "DuplicateComponentError",
    "IllegalStateError",
    "InvalidRequirementError",
    "MergedRequirement",
    "NamingConvention",
    "OrchestrationError",
    "ProvidedResource",
    "ProviderContext",
    "ProviderError",
    "ProviderRegistrationError",
    "ProviderRegistry",
    "RequirementMergeConflict",
    "RequirementValidationError",
    "ResourceBucket",
    "ResourceMap",
    "ResourceProvider",
    "ResourceRequirement",
    "ScopedResources",
    "SubResource",
    "UnknownResourceTypeError",
    "ValidationResult",
    "define_component",
    "enforce_capacity",
]
