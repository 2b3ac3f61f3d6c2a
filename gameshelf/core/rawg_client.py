"""
Async client for the RAWG video game database API.

Every request goes through fetch_with_retry, so RAWG's rate limiting (429)
and flaky gateway responses are absorbed here. Methods return the raw
httpx.Response: deciding whether a non-2xx status means "search failed" or
"detail fetch failed" is the resolver's job.
"""

import asyncio
import logging

import httpx

from gameshelf.config import get_settings
from gameshelf.core.errors import ConfigError
from gameshelf.core.retry import RetryConfig, SleepFunc, fetch_with_retry

logger = logging.getLogger(__name__)


class RawgClient:
    """Async client for the RAWG REST API with retry handling."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.rawg.io/api",
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    def require_api_key(self) -> str:
        """Return the API key or raise ConfigError when it is missing."""
        if not self.api_key:
            raise ConfigError("RAWG API key not configured")
        return self.api_key

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get(self, endpoint: str, params: dict) -> httpx.Response:
        key = self.require_api_key()
        client = await self._get_client()
        return await fetch_with_retry(
            client,
            endpoint,
            config=self.retry_config,
            sleep=self._sleep,
            params={"key": key, **params},
        )

    async def search_games(self, query: str, page_size: int = 10) -> httpx.Response:
        """Search games by free text. Results are ranked by RAWG relevance."""
        return await self._get("/games", {"search": query, "page_size": page_size})

    async def get_game(self, rawg_id: int) -> httpx.Response:
        """Fetch the full detail record for one game."""
        return await self._get(f"/games/{rawg_id}", {})


# Singleton client instance
_client: RawgClient | None = None


def get_rawg_client() -> RawgClient:
    """Get the singleton RAWG client."""
    global _client
    if _client is None:
        settings = get_settings()
        _client = RawgClient(
            api_key=settings.rawg_api_key,
            base_url=settings.rawg_api_url,
            retry_config=RetryConfig.from_settings(settings),
            timeout=settings.http_request_timeout,
        )
    return _client
