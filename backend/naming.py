"""
Naming collaborator.

The backend never invents resource names itself; providers ask a
``NamingConvention``. Implementations must be deterministic and guarantee
platform validity for what they return.
"""

from typing import Protocol, runtime_checkable

__all__ = ["DefaultNamingConvention", "NamingConvention"]


@runtime_checkable
class NamingConvention(Protocol):
    def format_resource_name(
        self,
        resource_type: str,
        backend_id: str,
        suffix: str | None = None,
    ) -> str:
        ...

    def format_resource_group_name(
        self,
        backend_id: str,
        environment: str | None = None,
    ) -> str:
        ...


class DefaultNamingConvention:
    """Lower-cased parts joined by ``-``: ``<backend>-<type>[-<suffix>]``."""

    def __init__(self, separator: str = "-"):
        self.separator = separator

    def _join(self, *parts: str | None) -> str:
        return self.separator.join(part.lower() for part in parts if part)

    def format_resource_name(self, resource_type, backend_id, suffix=None):
        return self._join(backend_id, resource_type, suffix)

    def format_resource_group_name(self, backend_id, environment=None):
        return self._join(backend_id, environment, "rg")
