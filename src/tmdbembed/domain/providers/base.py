"""Domain protocol for stream providers."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tmdbembed.domain.entities.streams import FetchCriteria, Stream


@runtime_checkable
class ProviderProtocol(Protocol):
    """
    Protocol for stream providers.

    A provider:
    - has a unique, case-sensitive ``name``
    - exposes an ``enabled`` flag checked before every invocation
    - implements: async def fetch(criteria) -> list[Stream]

    Failures are opaque: a provider may raise anything, the aggregation
    engine isolates it.
    """

    name: str
    enabled: bool

    async def fetch(self, criteria: FetchCriteria) -> list[Stream]: ...
