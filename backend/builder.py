"""
Entry points for assembling a backend.

``define_backend`` covers the common case of a mapping of named component
definitions; ``BackendBuilder`` assembles the configuration step by step.
Both default to the Azure providers when none are given.
"""

from dataclasses import replace
from typing import Any, Mapping

from backend.backend import Backend, BackendConfig
from backend.definition import ComponentDefinition
from backend.naming import NamingConvention
from backend.provider import ResourceProvider
from providers import default_providers

__all__ = ["BackendBuilder", "define_backend"]

DEFAULT_BACKEND_ID: str = "backend"


def _with_default_providers(config: BackendConfig) -> BackendConfig:
    if config.providers:
        return config
    return replace(config, providers=default_providers())


def define_backend(
    components: Mapping[str, ComponentDefinition],
    config: BackendConfig | None = None,
    backend_id: str = DEFAULT_BACKEND_ID,
) -> Backend:
    """
    Create a backend holding ``components``.

    Args:
        components: Alias -> component definition. Aliases work with
            ``Backend.get_component`` next to the component ids.
        config: Backend settings; providers default to the Azure set.
        backend_id: Id used in resource names.

    Returns:
        A backend in the ``CREATED`` state; call ``initialize`` to run it.
    """
    backend = Backend(backend_id, _with_default_providers(config or BackendConfig()))
    backend.add_components(components)
    return backend


class BackendBuilder:
    """Fluent assembly of a ``Backend``."""

    def __init__(self, backend_id: str = DEFAULT_BACKEND_ID, config: BackendConfig | None = None):
        self.backend_id = backend_id
        self._config = config or BackendConfig()
        self._providers: list[ResourceProvider] = list(self._config.providers)
        self._components: list[tuple[ComponentDefinition, str | None]] = []

    def add_component(self, definition: ComponentDefinition, alias: str | None = None) -> "BackendBuilder":
        self._components.append((definition, alias))
        return self

    def with_provider(self, provider: ResourceProvider) -> "BackendBuilder":
        self._providers.append(provider)
        return self

    def with_tags(self, tags: Mapping[str, str]) -> "BackendBuilder":
        self._config = replace(self._config, tags={**self._config.tags, **tags})
        return self

    def with_naming(self, naming: NamingConvention) -> "BackendBuilder":
        self._config = replace(self._config, naming=naming)
        return self

    def with_capacity_limit(self, key: str, limit: int) -> "BackendBuilder":
        """Override the limit for a resource type or a ``type:key`` composite key."""
        self._config = replace(
            self._config,
            capacity_limits={**self._config.capacity_limits, key: limit},
        )
        return self

    def with_max_splits(self, max_splits: int) -> "BackendBuilder":
        self._config = replace(self._config, max_splits=max_splits)
        return self

    def with_environment(self, environment: str) -> "BackendBuilder":
        self._config = replace(self._config, environment=environment)
        return self

    def with_location(self, location: str) -> "BackendBuilder":
        self._config = replace(self._config, location=location)
        return self

    def with_resource_group(self, resource_group_name: Any) -> "BackendBuilder":
        self._config = replace(self._config, resource_group_name=resource_group_name)
        return self

    def build(self) -> Backend:
        config = _with_default_providers(replace(self._config, providers=tuple(self._providers)))
        backend = Backend(self.backend_id, config)
        for definition, alias in self._components:
            backend.add_component(definition, alias=alias)
        return backend
