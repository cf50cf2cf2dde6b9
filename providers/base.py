"""
Shared plumbing for providers that create Azure Native resources.

Each provider turns one bucket into one ``pulumi.ComponentResource`` whose
children are the concrete Azure resources, parented under the deployment
scope handed to ``Backend.initialize``.
"""

from abc import abstractmethod
from typing import Any, Mapping

import pulumi

from backend.provider import ProviderContext, ResourceProvider
from backend.requirements import MergedRequirement
from backend.resource_map import ProvidedResource


class AzureProvider(ResourceProvider):
    """
    Base class of the Azure providers.

    Subclasses implement ``create`` and may extend ``metadata``; the base
    resolves names, location, tags and parenting.
    """

    def provide_resource(
        self,
        requirement: MergedRequirement,
        scope: Any,
        context: ProviderContext,
    ) -> ProvidedResource:
        if context.resource_group_name is None:
            raise ValueError("Azure providers need a resource_group_name in the backend config")
        opts = pulumi.ResourceOptions(parent=scope) if isinstance(scope, pulumi.Resource) else None
        name = context.resource_name(requirement.resource_type, requirement.requirement_key)
        handle = self.create(name, requirement, context, opts)
        return ProvidedResource(
            concrete_key=context.concrete_key,
            handle=handle,
            provider_metadata={
                "provider_id": self.provider_id,
                "resource_name": name,
                "component_ids": requirement.component_ids,
                "shared": len(requirement.component_ids) > 1,
                **self.metadata(requirement),
            },
        )

    @abstractmethod
    def create(
        self,
        name: str,
        requirement: MergedRequirement,
        context: ProviderContext,
        opts: pulumi.ResourceOptions | None,
    ) -> pulumi.ComponentResource:
        """Create the bucket's resources and return their parent component."""

    def metadata(self, requirement: MergedRequirement) -> Mapping[str, Any]:
        return {}

    @staticmethod
    def location(requirement: MergedRequirement, context: ProviderContext) -> str:
        return requirement.config.get("location") or context.location

    @staticmethod
    def tags(requirement: MergedRequirement, context: ProviderContext) -> dict[str, str]:
        return {
            **context.tags,
            "environment": context.environment,
            "managed-by": context.backend_id,
            "requirement": requirement.composite_key,
        }
