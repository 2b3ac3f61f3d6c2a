"""Resolve one game name or RAWG id to a normalized catalog entry."""

import logging
from typing import Any

import httpx

from gameshelf.core.errors import (
    DetailFetchError,
    InvalidPayloadError,
    NotFoundError,
    SearchError,
    TransientHttpError,
)
from gameshelf.core.rawg_client import RawgClient
from gameshelf.db.schemas import NormalizedGame
from gameshelf.ingestion.normalizer import normalize_game, parse_search_hits

logger = logging.getLogger(__name__)


def _failure_cause(response: httpx.Response) -> TransientHttpError | None:
    """Attach the exhausted-retry status as the cause of a resolution error."""
    if response.status_code in (429, 502, 503, 504):
        return TransientHttpError(response.status_code)
    return None


def _json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise InvalidPayloadError() from e


class CatalogResolver:
    """
    Turns user input into catalog entries via the RAWG API.

    Name lookups trust RAWG's relevance ranking: the first hit of a
    page_size=1 search is taken as the match.
    """

    def __init__(self, rawg: RawgClient):
        self.rawg = rawg

    async def search(self, query: str, page_size: int = 10) -> list[dict]:
        """Raw search results for the add-game picker."""
        response = await self.rawg.search_games(query, page_size=page_size)
        if not response.is_success:
            raise SearchError() from _failure_cause(response)
        data = _json(response)
        results = data.get("results") if isinstance(data, dict) else None
        return results if isinstance(results, list) else []

    async def resolve_by_id(self, rawg_id: int) -> NormalizedGame:
        """
        Fetch and normalize one game.

        Raises:
            DetailFetchError: If the detail endpoint answers non-2xx
            InvalidPayloadError: If the payload doesn't match the expected schema
        """
        response = await self.rawg.get_game(rawg_id)
        if not response.is_success:
            logger.debug(f"Detail fetch for RAWG id {rawg_id} returned HTTP {response.status_code}")
            raise DetailFetchError() from _failure_cause(response)
        return normalize_game(_json(response))

    async def resolve_by_name(self, name: str) -> NormalizedGame:
        """
        Find the best RAWG match for a free-text name and fetch its details.

        Raises:
            SearchError: If the search endpoint answers non-2xx
            NotFoundError: If the search has no results
            DetailFetchError: If the detail endpoint answers non-2xx
        """
        response = await self.rawg.search_games(name, page_size=1)
        if not response.is_success:
            logger.debug(f"Search for '{name}' returned HTTP {response.status_code}")
            raise SearchError() from _failure_cause(response)

        hits = parse_search_hits(_json(response))
        if not hits:
            raise NotFoundError()

        return await self.resolve_by_id(hits[0].id)
