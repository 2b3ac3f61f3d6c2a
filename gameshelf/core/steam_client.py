"""
Async client for the Steam Web API, used only for owned-games imports.

Accepts the identifiers people actually paste: a SteamID64, a
steamcommunity.com/profiles/<id> URL, a steamcommunity.com/id/<vanity> URL,
or a bare vanity name. Vanity names are resolved through ResolveVanityURL.
"""

import asyncio
import logging
import re

import httpx
from pydantic import BaseModel, ValidationError

from gameshelf.config import get_settings
from gameshelf.core.cache import CacheService, get_cache
from gameshelf.core.errors import ConfigError, SteamError
from gameshelf.core.retry import RetryConfig, SleepFunc, fetch_with_retry

logger = logging.getLogger(__name__)

_PROFILES_URL = re.compile(r"steamcommunity\.com/profiles/(\d{17})", re.IGNORECASE)
_VANITY_URL = re.compile(r"steamcommunity\.com/id/([^/?#]+)", re.IGNORECASE)
_STEAM_ID64 = re.compile(r"^\d{17}$")


class SteamOwnedGame(BaseModel):
    """One entry of GetOwnedGames (with include_appinfo=1)."""
    appid: int
    name: str | None = None
    playtime_forever: int | None = None  # minutes


class _OwnedGamesBody(BaseModel):
    games: list[SteamOwnedGame] = []


class _OwnedGamesResponse(BaseModel):
    response: _OwnedGamesBody = _OwnedGamesBody()


class SteamClient:
    """Async client for the handful of Steam Web API calls we need."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.steampowered.com",
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc = asyncio.sleep,
        cache: CacheService | None = None,
        cache_ttl: int = 600,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep
        self.cache = cache
        self.cache_ttl = cache_ttl
        self._client: httpx.AsyncClient | None = None

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigError("STEAM API key not configured")
        return self.api_key

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
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

    async def resolve_vanity(self, vanity: str) -> str | None:
        """Resolve a custom profile name to a SteamID64, or None if unknown."""
        cache_key = f"steam:vanity:{vanity.casefold()}"
        if self.cache is not None:
            cached = await self.cache.get(cache_key)
            if cached:
                return cached

        response = await self._get(
            "/ISteamUser/ResolveVanityURL/v0001/", {"vanityurl": vanity}
        )
        if not response.is_success:
            logger.warning(f"ResolveVanityURL returned HTTP {response.status_code} for '{vanity}'")
            return None
        try:
            data = response.json()
        except ValueError:
            return None
        body = data.get("response") if isinstance(data, dict) else None
        if isinstance(body, dict) and body.get("success") == 1 and body.get("steamid"):
            steam_id = str(body["steamid"])
            if self.cache is not None:
                await self.cache.set(cache_key, steam_id, ttl=self.cache_ttl)
            return steam_id
        return None

    async def resolve_steam_id(self, steam_id_or_url: str) -> str:
        """
        Turn a SteamID64, profile URL, vanity URL or vanity name into a SteamID64.

        Raises:
            SteamError: If the identifier cannot be resolved
        """
        trimmed = steam_id_or_url.strip()
        if not trimmed:
            raise SteamError("Could not parse Steam ID or profile URL")

        match = _PROFILES_URL.search(trimmed)
        if match:
            return match.group(1)

        match = _VANITY_URL.search(trimmed)
        if match:
            steam_id = await self.resolve_vanity(match.group(1))
            if steam_id:
                return steam_id
            raise SteamError("Failed to resolve Steam vanity URL")

        if _STEAM_ID64.match(trimmed):
            return trimmed

        steam_id = await self.resolve_vanity(trimmed)
        if steam_id:
            return steam_id
        raise SteamError("Could not parse Steam ID or profile URL")

    async def get_owned_games(self, steam_id: str) -> list[SteamOwnedGame]:
        """
        Fetch the games a Steam account owns.

        Private profiles come back as an empty list, not an error.
        """
        response = await self._get(
            "/IPlayerService/GetOwnedGames/v0001/",
            {
                "steamid": steam_id,
                "include_appinfo": 1,
                "include_played_free_games": 1,
                "format": "json",
            },
        )
        if not response.is_success:
            logger.error(f"GetOwnedGames failed for {steam_id}: HTTP {response.status_code}")
            raise SteamError(
                f"Failed to fetch owned games from Steam. Error: {response.text[:200]}"
            )

        try:
            parsed = _OwnedGamesResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise SteamError("Unexpected response from Steam") from e

        return parsed.response.games


# Singleton client instance
_client: SteamClient | None = None


def get_steam_client() -> SteamClient:
    """Get the singleton Steam client."""
    global _client
    if _client is None:
        settings = get_settings()
        _client = SteamClient(
            api_key=settings.steam_api_key,
            base_url=settings.steam_api_url,
            retry_config=RetryConfig.from_settings(settings),
            timeout=settings.http_request_timeout,
            cache=get_cache(),
            cache_ttl=settings.cache_ttl_seconds,
        )
    return _client
