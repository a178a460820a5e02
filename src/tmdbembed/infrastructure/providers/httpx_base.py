"""Shared base class for httpx-based stream providers.

Lives in the *infrastructure* layer because it depends on ``httpx`` and
``structlog``.  The *domain* layer only knows ``ProviderProtocol``;
providers inheriting from ``HttpxProviderBase`` satisfy it structurally.
"""

from __future__ import annotations

import json

import httpx
import structlog

from tmdbembed.domain.entities.streams import FetchCriteria, Stream

DEFAULT_TIMEOUT = 10.0
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
)


class HttpxProviderBase:
    """Shared base for httpx-based providers.

    Subclasses **must** set ``name`` and override ``fetch()``.

    Args:
        http_client: Shared client owned by the caller.  When omitted a
            private client is created lazily and closed by ``cleanup()``.
        enabled: Initial value of the ``enabled`` flag.
    """

    name: str = ""

    _timeout: float = DEFAULT_TIMEOUT
    _user_agent: str = DEFAULT_USER_AGENT

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        enabled: bool = True,
    ) -> None:
        self.enabled = enabled
        self._client = http_client
        self._owns_client = http_client is None
        self._log = structlog.get_logger(self.name or __name__)

    # ------------------------------------------------------------------
    # Client lifecycle
    # ------------------------------------------------------------------

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers={"User-Agent": self._user_agent},
            )
            self._owns_client = True
        return self._client

    async def cleanup(self) -> None:
        """Close the provider's own httpx client (shared clients are left alone)."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------

    async def _safe_fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        context: str = "",
        **kwargs: object,
    ) -> httpx.Response | None:
        """Fetch *url* with structured error logging.

        Returns ``None`` on failure instead of raising.
        """
        client = await self._ensure_client()
        try:
            resp = await client.request(method, url, **kwargs)  # type: ignore[arg-type]
            resp.raise_for_status()
            return resp
        except httpx.TimeoutException:
            self._log.warning(f"{self.name}_timeout", url=url, context=context)
        except httpx.HTTPStatusError as exc:
            self._log.warning(
                f"{self.name}_http_error",
                url=url,
                status=exc.response.status_code,
                context=context,
            )
        except httpx.HTTPError as exc:
            self._log.warning(
                f"{self.name}_fetch_error", url=url, error=str(exc), context=context
            )
        return None

    def _safe_parse_json(
        self,
        response: httpx.Response,
        context: str = "",
    ) -> dict | list | None:
        """Parse JSON response with structured error logging."""
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError):
            self._log.warning(
                f"{self.name}_invalid_json",
                url=str(response.url),
                context=context,
            )
            return None

    # ------------------------------------------------------------------
    # Abstract fetch (subclass must implement)
    # ------------------------------------------------------------------

    async def fetch(self, criteria: FetchCriteria) -> list[Stream]:
        raise NotImplementedError(f"{type(self).__name__}.fetch() not implemented")
