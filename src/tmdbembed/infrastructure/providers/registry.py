"""In-memory provider registry.

Providers are constructed and registered once at startup; lookup is by
exact, case-sensitive name.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from tmdbembed.domain.errors import DuplicateProviderError
from tmdbembed.domain.providers.base import ProviderProtocol

log = structlog.get_logger(__name__)


class ProviderRegistry:
    """Name -> provider mapping that keeps registration order."""

    def __init__(self, providers: Iterable[ProviderProtocol] = ()) -> None:
        self._providers: dict[str, ProviderProtocol] = {}
        for provider in providers:
            self.register(provider)

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def register(self, provider: ProviderProtocol) -> None:
        if provider.name in self._providers:
            raise DuplicateProviderError(provider.name)
        self._providers[provider.name] = provider
        log.info("provider_registered", provider=provider.name, enabled=provider.enabled)

    def get(self, name: str) -> ProviderProtocol | None:
        return self._providers.get(name)

    def list_providers(self) -> list[ProviderProtocol]:
        return list(self._providers.values())

    def list_names(self) -> list[str]:
        return list(self._providers)

    def disable(self, names: Iterable[str]) -> None:
        """Switch off the named providers; unknown names are logged and skipped."""
        for name in names:
            provider = self._providers.get(name)
            if provider is None:
                log.warning("disable_unknown_provider", provider=name)
                continue
            provider.enabled = False
            log.info("provider_disabled", provider=name)

    async def cleanup(self) -> None:
        """Release provider-owned resources (HTTP clients)."""
        for provider in self._providers.values():
            cleanup = getattr(provider, "cleanup", None)
            if cleanup is None:
                continue
            try:
                await cleanup()
            except Exception:
                log.warning("provider_cleanup_failed", provider=provider.name, exc_info=True)
