"""
Stack configuration loaded from pulumi.Config().

Provides a typed, immutable view of stack settings. All settings are read from
Pulumi config (e.g. Pulumi.<stack>.yaml or pulumi config set). ``project_name``,
``environment`` and ``location`` are required; the rest fall back to the
backend defaults. Used by __main__.main() to name the backend, tag resources
and override capacity limits.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import pulumi

from backend.backend import BackendConfig
from backend.naming import DefaultNamingConvention


def _require_str(config: pulumi.Config, key: str) -> str:
    return config.require(key)


def _optional_int(config: pulumi.Config, key: str) -> int | None:
    raw = config.get(key)
    return int(raw) if raw is not None else None


def _optional_str_map(config: pulumi.Config, key: str) -> dict[str, str]:
    raw = config.get_object(key) or {}
    return {str(k): str(v) for k, v in raw.items()}


def _optional_int_map(config: pulumi.Config, key: str) -> dict[str, int]:
    raw = config.get_object(key) or {}
    return {str(k): int(v) for k, v in raw.items()}


# (key, parser); parser receives (config, key) and returns value.
_CONFIG_SPEC: list[tuple[str, Callable[[pulumi.Config, str], Any]]] = [
    ("project_name", _require_str),
    ("environment", _require_str),
    ("location", _require_str),
    ("max_splits", _optional_int),
    ("tags", _optional_str_map),
    ("capacity_limits", _optional_int_map),
]


@dataclass(frozen=True)
class StackConfig:
    """
    Stack configuration from Pulumi config.

    Attributes:
        project_name: Project name used as the backend id (required).
        environment: Environment label used in resource naming (required).
        location: Azure region for every resource (required).
        max_splits: Most buckets a requirement may be split into (optional).
        tags: Extra tags applied to every resource (optional).
        capacity_limits: Capacity overrides keyed by resource type or
            ``type:key`` (optional).
    """

    project_name: str
    environment: str
    location: str
    max_splits: int | None = None
    tags: Mapping[str, str] = field(default_factory=dict)
    capacity_limits: Mapping[str, int] = field(default_factory=dict)

    @property
    def backend_id(self) -> str:
        return f"{self.project_name}-{self.environment}"

    @property
    def resource_group_name(self) -> str:
        return DefaultNamingConvention().format_resource_group_name(
            self.project_name,
            self.environment,
        )

    @classmethod
    def from_pulumi_config(cls, config: pulumi.Config) -> "StackConfig":
        """
        Build StackConfig from pulumi.Config() using the parsers in _CONFIG_SPEC.
        """
        kwargs = {key: parser(config, key) for key, parser in _CONFIG_SPEC}
        return cls(**kwargs)

    def backend_config(self, resource_group_name: Any = None) -> BackendConfig:
        """Backend settings for this stack; providers default to the Azure set."""
        settings: dict[str, Any] = {}
        if self.max_splits is not None:
            settings["max_splits"] = self.max_splits
        return BackendConfig(
            tags={"project": self.project_name, **self.tags},
            environment=self.environment,
            location=self.location,
            resource_group_name=resource_group_name,
            capacity_limits=dict(self.capacity_limits),
            **settings,
        )
