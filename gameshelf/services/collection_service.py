"""
Browse a user's collection: filter, sort and paginate.

Collections are small (hundreds of games), so the whole collection is loaded
once and filtered in memory. Duplicate ownership rows are merged on read;
they are only deleted when the game is next written to.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gameshelf.db.models import CatalogGame, UserGame
from gameshelf.db.schemas import CollectionResponse, GameResponse, OwnershipFlags

logger = logging.getLogger(__name__)

SORT_FIELDS = ("name", "released", "rating", "metacritic", "userAddedAt")
STORES = ("steam", "epic", "gog")


@dataclass
class CollectionQuery:
    """Filter, sort and page parameters for one collection request."""
    search_term: str | None = None
    platforms: list[str] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    stores: list[str] = field(default_factory=list)
    sort_by: str = "userAddedAt"
    sort_order: str = "desc"
    page: int = 1
    items_per_page: int = 12


def _matches_search(game: GameResponse, term: str) -> bool:
    return (
        term in game.name.lower()
        or any(term in genre.lower() for genre in game.genres)
        or any(term in platform.lower() for platform in game.platforms)
    )


def _matches_any(selected: list[str], values: list[str]) -> bool:
    """True if any selected value is a case-insensitive substring of any game value."""
    lowered = [value.lower() for value in values]
    return any(choice.lower() in value for choice in selected for value in lowered)


def _owned_on_any(game: GameResponse, stores: list[str]) -> bool:
    return (
        ("steam" in stores and game.owned_on_steam)
        or ("epic" in stores and game.owned_on_epic)
        or ("gog" in stores and game.owned_on_gog)
    )


def _sort_key(sort_by: str):
    if sort_by == "name":
        return lambda game: game.name.lower()
    if sort_by == "released":
        return lambda game: game.released or ""
    if sort_by == "rating":
        return lambda game: game.rating or 0
    if sort_by == "metacritic":
        return lambda game: game.metacritic or 0
    # Missing timestamps sort before any real one
    return lambda game: (game.user_added_at is not None, game.user_added_at or 0)


def apply_query(games: list[GameResponse], query: CollectionQuery) -> CollectionResponse:
    """Filter, sort and paginate an already-loaded collection."""
    if query.search_term:
        term = query.search_term.lower()
        games = [game for game in games if _matches_search(game, term)]

    if query.platforms:
        games = [game for game in games if _matches_any(query.platforms, game.platforms)]

    if query.genres:
        games = [game for game in games if _matches_any(query.genres, game.genres)]

    if query.stores:
        games = [game for game in games if _owned_on_any(game, query.stores)]

    sort_by = query.sort_by if query.sort_by in SORT_FIELDS else "userAddedAt"
    games = sorted(
        games,
        key=_sort_key(sort_by),
        reverse=query.sort_order != "asc",
    )

    total_count = len(games)
    page = max(query.page, 1)
    per_page = max(query.items_per_page, 1)
    start = (page - 1) * per_page
    end = start + per_page

    return CollectionResponse(
        games=games[start:end],
        total_count=total_count,
        has_more=end < total_count,
    )


class CollectionService:
    """Read-side queries over one user's collection."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_collection(self, user_id: int) -> list[GameResponse]:
        """All games the user owns, one entry per game, oldest ownership first."""
        result = await self.db.execute(
            select(UserGame, CatalogGame)
            .join(CatalogGame, UserGame.game_id == CatalogGame.id)
            .where(UserGame.user_id == user_id)
            .order_by(UserGame.added_at, UserGame.id)
        )

        by_game: dict[int, GameResponse] = {}
        for ownership, game in result.all():
            flags = OwnershipFlags(
                owned_on_steam=bool(ownership.owned_on_steam),
                owned_on_epic=bool(ownership.owned_on_epic),
                owned_on_gog=bool(ownership.owned_on_gog),
            )
            existing = by_game.get(game.id)
            if existing is not None:
                merged = OwnershipFlags(
                    owned_on_steam=existing.owned_on_steam,
                    owned_on_epic=existing.owned_on_epic,
                    owned_on_gog=existing.owned_on_gog,
                ).merged_with(flags)
                by_game[game.id] = existing.model_copy(update=merged.model_dump())
                continue

            entry = GameResponse.model_validate(game)
            by_game[game.id] = entry.model_copy(update={
                "user_added_at": ownership.added_at,
                **flags.model_dump(),
            })

        return list(by_game.values())

    async def query(self, user_id: int, query: CollectionQuery) -> CollectionResponse:
        games = await self.load_collection(user_id)
        return apply_query(games, query)

    async def facets(self, user_id: int) -> dict[str, list[str]]:
        """Distinct platforms, genres and stores across the collection, sorted."""
        games = await self.load_collection(user_id)
        platforms: set[str] = set()
        genres: set[str] = set()
        stores: set[str] = set()
        for game in games:
            platforms.update(game.platforms)
            genres.update(game.genres)
            if game.owned_on_steam:
                stores.add("steam")
            if game.owned_on_epic:
                stores.add("epic")
            if game.owned_on_gog:
                stores.add("gog")
        return {
            "platforms": sorted(platforms),
            "genres": sorted(genres),
            "stores": sorted(stores),
        }
