"""Port for provider lookup."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tmdbembed.domain.providers.base import ProviderProtocol


@runtime_checkable
class ProviderRegistryPort(Protocol):
    """Synchronous interface for provider listing and retrieval."""

    def get(self, name: str) -> ProviderProtocol | None: ...
    def list_providers(self) -> list[ProviderProtocol]: ...
    def list_names(self) -> list[str]: ...
