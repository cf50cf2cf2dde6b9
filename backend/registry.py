"""
Provider registry: resource type -> provider.
"""

import logging
from typing import Iterable, Iterator

from backend.errors import ProviderRegistrationError, UnknownResourceTypeError
from backend.provider import ResourceProvider
from backend.requirements import ResourceRequirement

__all__ = ["ProviderRegistry"]

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Registered providers, looked up by id or by resource type.

    Registration order matters: when two providers support the same type the
    first registered one is used.
    """

    def __init__(self, providers: Iterable[ResourceProvider] = ()):
        self._providers: dict[str, ResourceProvider] = {}
        self.register_all(providers)

    def register(self, provider: ResourceProvider) -> None:
        """
        Add a provider.

        Raises:
            ProviderRegistrationError: If the provider has no id, supports no
                type, or its id is already registered.
        """
        if not provider.provider_id:
            raise ProviderRegistrationError(
                f"Provider {type(provider).__name__} must have a provider_id"
            )
        if not provider.supported_types:
            raise ProviderRegistrationError(
                f'Provider "{provider.provider_id}" must support at least one resource type'
            )
        if provider.provider_id in self._providers:
            raise ProviderRegistrationError(
                f'Provider with ID "{provider.provider_id}" is already registered'
            )
        self._providers[provider.provider_id] = provider
        logger.debug(
            "Registered provider %s for %s",
            provider.provider_id,
            ", ".join(provider.supported_types),
        )

    def register_all(self, providers: Iterable[ResourceProvider]) -> None:
        for provider in providers:
            self.register(provider)

    def unregister(self, provider_id: str) -> bool:
        return self._providers.pop(provider_id, None) is not None

    def get_provider(self, provider_id: str) -> ResourceProvider | None:
        return self._providers.get(provider_id)

    def all_providers(self) -> list[ResourceProvider]:
        return list(self._providers.values())

    def providers_for_type(self, resource_type: str) -> list[ResourceProvider]:
        return [p for p in self._providers.values() if p.can_provide(resource_type)]

    def find_provider(self, resource_type: str) -> ResourceProvider | None:
        for provider in self._providers.values():
            if provider.can_provide(resource_type):
                return provider
        return None

    def find_provider_or_raise(
        self,
        requirement: ResourceRequirement,
        component_ids: Iterable[str] = (),
    ) -> ResourceProvider:
        provider = self.find_provider(requirement.resource_type)
        if provider is None:
            raise UnknownResourceTypeError(
                requirement.resource_type,
                requirement.requirement_key,
                tuple(component_ids),
            )
        return provider

    def is_type_supported(self, resource_type: str) -> bool:
        return self.find_provider(resource_type) is not None

    def supported_types(self) -> list[str]:
        types: dict[str, None] = {}
        for provider in self._providers.values():
            types.update(dict.fromkeys(provider.supported_types))
        return sorted(types)

    def can_provide(self, requirements: Iterable[ResourceRequirement]) -> bool:
        return all(self.is_type_supported(r.resource_type) for r in requirements)

    def missing_types(self, requirements: Iterable[ResourceRequirement]) -> list[str]:
        missing: dict[str, None] = {}
        for requirement in requirements:
            if not self.is_type_supported(requirement.resource_type):
                missing.setdefault(requirement.resource_type, None)
        return list(missing)

    def clear(self) -> None:
        self._providers.clear()

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __iter__(self) -> Iterator[ResourceProvider]:
        return iter(list(self._providers.values()))

    def __len__(self) -> int:
        return len(self._providers)
