"""
Shared catalog and per-user ownership writes.

Race handling:
- games.rawg_id and user_games(user_id, game_id) carry unique indexes. Inserts
  run inside a SAVEPOINT; if a concurrent writer got there first the savepoint
  is rolled back and the winner's row is re-read and reused.
- Duplicate ownership rows (from before the unique index existed) are
  collapsed whenever they are about to be mutated: the oldest row is kept,
  the flags of the others are OR-ed into it, and the others are deleted.
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gameshelf.core.errors import CollectionError
from gameshelf.db.models import CatalogGame, UserGame, utcnow
from gameshelf.db.schemas import GameDetailResponse, NormalizedGame, OwnershipFlags

logger = logging.getLogger(__name__)


def _merge_flags(row: UserGame, flags: OwnershipFlags) -> None:
    row.owned_on_steam = bool(row.owned_on_steam) or flags.owned_on_steam
    row.owned_on_epic = bool(row.owned_on_epic) or flags.owned_on_epic
    row.owned_on_gog = bool(row.owned_on_gog) or flags.owned_on_gog


def _flags_of(row: UserGame) -> OwnershipFlags:
    return OwnershipFlags(
        owned_on_steam=bool(row.owned_on_steam),
        owned_on_epic=bool(row.owned_on_epic),
        owned_on_gog=bool(row.owned_on_gog),
    )


class CatalogService:
    """Get-or-insert catalog games and upsert user ownership."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_rawg_id(self, rawg_id: int) -> CatalogGame | None:
        result = await self.db.execute(
            select(CatalogGame).where(CatalogGame.rawg_id == rawg_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create_game(self, game: NormalizedGame) -> tuple[CatalogGame, bool]:
        """
        Return the catalog row for a RAWG id, creating it on first sight.

        The first writer wins: an existing row is never overwritten with newer
        RAWG data.

        Returns:
            (game row, whether this call created it)
        """
        existing = await self.find_by_rawg_id(game.rawg_id)
        if existing is not None:
            return existing, False

        row = CatalogGame(**game.model_dump(), added_at=utcnow())
        try:
            async with self.db.begin_nested():
                self.db.add(row)
        except IntegrityError:
            logger.info(f"RAWG id {game.rawg_id} was inserted concurrently; reusing existing row")
            existing = await self.find_by_rawg_id(game.rawg_id)
            if existing is None:
                raise
            return existing, False

        return row, True

    async def _ownership_rows(self, user_id: int, game_id: int) -> list[UserGame]:
        result = await self.db.execute(
            select(UserGame)
            .where(UserGame.user_id == user_id, UserGame.game_id == game_id)
            .order_by(UserGame.added_at, UserGame.id)
        )
        return list(result.scalars().all())

    async def _collapsed_ownership(self, user_id: int, game_id: int) -> UserGame | None:
        """Return the single ownership row for a pair, collapsing duplicates first."""
        rows = await self._ownership_rows(user_id, game_id)
        if not rows:
            return None

        keeper, *duplicates = rows
        if duplicates:
            logger.warning(
                f"Collapsing {len(duplicates)} duplicate ownership rows "
                f"for user {user_id}, game {game_id}"
            )
            for duplicate in duplicates:
                _merge_flags(keeper, _flags_of(duplicate))
                await self.db.delete(duplicate)
            await self.db.flush()
        return keeper

    async def add_game_to_user(
        self,
        user_id: int,
        game: NormalizedGame,
        flags: OwnershipFlags | None = None,
    ) -> tuple[CatalogGame, bool]:
        """
        Add a game to the catalog (if new) and to the user's collection.

        Re-adding an owned game ORs the new store flags into the existing
        ones; a flag that is already True is never cleared here.

        Returns:
            (catalog game, whether the user already owned it)
        """
        flags = flags or OwnershipFlags()
        catalog_game, _ = await self.get_or_create_game(game)

        keeper = await self._collapsed_ownership(user_id, catalog_game.id)
        if keeper is not None:
            _merge_flags(keeper, flags)
            await self.db.commit()
            return catalog_game, True

        row = UserGame(
            user_id=user_id,
            game_id=catalog_game.id,
            added_at=utcnow(),
            **flags.as_flags().model_dump(),
        )
        try:
            async with self.db.begin_nested():
                self.db.add(row)
        except IntegrityError:
            keeper = await self._collapsed_ownership(user_id, catalog_game.id)
            if keeper is None:
                raise
            _merge_flags(keeper, flags)
            await self.db.commit()
            return catalog_game, True

        await self.db.commit()
        return catalog_game, False

    async def update_ownership(
        self, user_id: int, game_id: int, flags: OwnershipFlags
    ) -> OwnershipFlags:
        """
        Replace the store flags of an owned game (flags can be cleared here).

        Raises:
            CollectionError: If the user doesn't own the game
        """
        keeper = await self._collapsed_ownership(user_id, game_id)
        if keeper is None:
            raise CollectionError()

        keeper.owned_on_steam = flags.owned_on_steam
        keeper.owned_on_epic = flags.owned_on_epic
        keeper.owned_on_gog = flags.owned_on_gog
        await self.db.commit()
        return _flags_of(keeper)

    async def remove_game_from_user(self, user_id: int, game_id: int) -> None:
        """
        Remove a game from the user's collection (the catalog row stays).

        Raises:
            CollectionError: If the user doesn't own the game
        """
        result = await self.db.execute(
            delete(UserGame).where(UserGame.user_id == user_id, UserGame.game_id == game_id)
        )
        if not result.rowcount:
            await self.db.rollback()
            raise CollectionError()
        await self.db.commit()

    async def get_game_for_user(self, user_id: int, game_id: int) -> GameDetailResponse | None:
        """A catalog game with the caller's ownership projection, or None if unknown."""
        game = await self.db.get(CatalogGame, game_id)
        if game is None:
            return None

        rows = await self._ownership_rows(user_id, game_id)
        detail = GameDetailResponse.model_validate(game)
        if rows:
            flags = OwnershipFlags()
            for row in rows:
                flags = flags.merged_with(_flags_of(row))
            detail = detail.model_copy(update={
                "is_owned": True,
                "user_added_at": rows[0].added_at,
                **flags.model_dump(),
            })
        return detail

    async def get_owned_rawg_ids(self, user_id: int) -> list[int]:
        """RAWG ids in the user's collection, used to mark search results as owned."""
        result = await self.db.execute(
            select(CatalogGame.rawg_id)
            .join(UserGame, UserGame.game_id == CatalogGame.id)
            .where(UserGame.user_id == user_id)
            .distinct()
            .order_by(CatalogGame.rawg_id)
        )
        return list(result.scalars().all())
