"""
Batch import: resolve many game names against RAWG and add them to a
user's collection, reporting progress through an ImportJob.

Items are processed strictly one at a time. RAWG rate-limits aggressively,
and sequential processing keeps ImportJob.completed monotonic (+1 per item).

Failure model:
- Pre-loop problems (missing API key, no user, unresolvable Steam account)
  mark the job failed and raise.
- Anything that goes wrong with a single item is recorded in that item's
  PerItemResult and the loop moves on; the batch itself never raises for it.
"""

import logging
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gameshelf.core.errors import AuthError, GameShelfError
from gameshelf.core.steam_client import SteamClient, SteamOwnedGame
from gameshelf.db.models import ImportJob
from gameshelf.db.schemas import OwnershipFlags, PerItemResult
from gameshelf.ingestion.progress import ImportJobTracker
from gameshelf.ingestion.resolver import CatalogResolver
from gameshelf.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)


def normalize_name_list(names: str | Iterable[str], dedupe: bool = True) -> list[str]:
    """
    Clean up user-entered names before an import.

    Accepts newline-separated text or an iterable of names. Names are trimmed
    and blanks dropped. With dedupe, repeats are removed case-insensitively
    (the first spelling wins).
    """
    if isinstance(names, str):
        names = names.splitlines()

    seen: set[str] = set()
    cleaned: list[str] = []
    for raw in names:
        name = raw.strip()
        if not name:
            continue
        key = name.casefold()
        if dedupe and key in seen:
            continue
        seen.add(key)
        cleaned.append(name)
    return cleaned


def select_steam_games(
    owned: list[SteamOwnedGame],
    min_playtime_minutes: int | None = None,
    limit: int | None = None,
) -> list[str]:
    """
    Pick the Steam games to import and return their de-duplicated names.

    Unnamed entries are dropped, then the playtime filter applies, then the
    limit (which keeps large libraries within RAWG's rate limits).
    """
    selected = [game for game in owned if game.name and game.name.strip()]
    if min_playtime_minutes:
        selected = [
            game for game in selected
            if (game.playtime_forever or 0) >= min_playtime_minutes
        ]
    if limit and limit > 0:
        selected = selected[:limit]
    return normalize_name_list(game.name for game in selected)


class BatchImporter:
    """Drives a list of names through resolve → catalog upsert → progress."""

    def __init__(
        self,
        db: AsyncSession,
        resolver: CatalogResolver,
        catalog: CatalogService | None = None,
        tracker: ImportJobTracker | None = None,
    ):
        self.db = db
        self.resolver = resolver
        self.catalog = catalog or CatalogService(db)
        self.tracker = tracker or ImportJobTracker(db)

    async def open_job(
        self,
        user_id: int | None,
        job_type: str,
        total: int,
        job_id: int | None = None,
    ) -> ImportJob:
        """
        Check pre-loop requirements and return the running job.

        Raises:
            AuthError: If there is no user
            ConfigError: If the RAWG API key is missing (the job is marked failed)
        """
        if user_id is None:
            raise AuthError()

        job = await self.tracker.open(user_id, job_type, total, job_id=job_id)
        try:
            self.resolver.rawg.require_api_key()
        except GameShelfError as e:
            await self.tracker.fail(job, e.message)
            raise
        return job

    async def _import_one(self, user_id: int, name: str, flags: OwnershipFlags) -> PerItemResult:
        try:
            game = await self.resolver.resolve_by_name(name)
            _, already_owned = await self.catalog.add_game_to_user(user_id, game, flags)
        except GameShelfError as e:
            logger.warning(f"[import] '{name}' failed: {e.message}")
            return PerItemResult(name=name, success=False, error=e.message)
        except Exception as e:
            logger.exception(f"[import] '{name}' failed unexpectedly")
            await self.db.rollback()
            return PerItemResult(name=name, success=False, error=str(e) or "Unknown error")

        return PerItemResult(
            name=name,
            success=True,
            added_name=game.name,
            already_owned=already_owned,
        )

    async def run(
        self,
        job: ImportJob,
        user_id: int,
        names: list[str],
        flags: OwnershipFlags | None = None,
    ) -> list[PerItemResult]:
        """Process names sequentially against an already-open job."""
        flags = flags or OwnershipFlags()
        results: list[PerItemResult] = []

        logger.info(f"[import job {job.id}] Starting {job.type} import of {len(names)} games for user {user_id}")

        try:
            for name in names:
                results.append(await self._import_one(user_id, name, flags))
                await self.tracker.advance(job)

            await self.tracker.complete(job)
        except Exception as e:
            logger.exception(f"[import job {job.id}] Aborted after {len(results)} of {len(names)} games")
            await self.db.rollback()
            await self.db.refresh(job)
            await self.tracker.fail(job, str(e) or "Import failed")
            raise

        succeeded = sum(1 for result in results if result.success)
        logger.info(
            f"[import job {job.id}] Finished: {succeeded}/{len(results)} added, "
            f"{len(results) - succeeded} failed"
        )
        return results

    async def import_batch(
        self,
        user_id: int | None,
        names: list[str],
        flags: OwnershipFlags | None = None,
        job_id: int | None = None,
        job_type: str = "bulk",
    ) -> tuple[ImportJob, list[PerItemResult]]:
        """
        Import a list of game names into the user's collection.

        The caller is expected to pass names through normalize_name_list();
        the list is processed exactly as given.

        Returns:
            (the finished job, one PerItemResult per input name, in order)
        """
        job = await self.open_job(user_id, job_type, len(names), job_id=job_id)
        results = await self.run(job, user_id, names, flags)
        return job, results


class SteamImporter:
    """Steam variant: the name list comes from a Steam account's library."""

    def __init__(self, batch: BatchImporter, steam: SteamClient):
        self.batch = batch
        self.steam = steam

    async def collect_names(
        self,
        steam_id_or_url: str,
        min_playtime_minutes: int | None = None,
        limit: int | None = None,
    ) -> list[str]:
        steam_id = await self.steam.resolve_steam_id(steam_id_or_url)
        owned = await self.steam.get_owned_games(steam_id)
        names = select_steam_games(owned, min_playtime_minutes, limit)
        logger.info(f"[steam] {steam_id} owns {len(owned)} games, importing {len(names)}")
        return names

    async def prepare(
        self,
        user_id: int | None,
        steam_id_or_url: str,
        min_playtime_minutes: int | None = None,
        limit: int | None = None,
        job_id: int | None = None,
    ) -> tuple[ImportJob, list[str]]:
        """
        Resolve the Steam account and open a running job sized to its games.

        Raises:
            AuthError, ConfigError, SteamError: The job (supplied or newly
                created) is marked failed first
        """
        if user_id is None:
            raise AuthError()

        tracker = self.batch.tracker
        try:
            self.steam.require_api_key()
            self.batch.resolver.rawg.require_api_key()
            names = await self.collect_names(steam_id_or_url, min_playtime_minutes, limit)
        except GameShelfError as e:
            job = await tracker.open(user_id, "steam", 0, job_id=job_id)
            await tracker.fail(job, e.message)
            raise

        job = await tracker.open(user_id, "steam", len(names), job_id=job_id)
        return job, names

    async def import_owned_games(
        self,
        user_id: int | None,
        steam_id_or_url: str,
        min_playtime_minutes: int | None = None,
        limit: int | None = None,
        job_id: int | None = None,
    ) -> tuple[ImportJob, list[PerItemResult]]:
        """Import a Steam library, flagging every added game as owned on Steam."""
        job, names = await self.prepare(
            user_id, steam_id_or_url, min_playtime_minutes, limit, job_id=job_id
        )
        results = await self.batch.run(job, user_id, names, STEAM_FLAGS)
        return job, results


STEAM_FLAGS = OwnershipFlags(owned_on_steam=True)


async def run_import_job(
    session_factory: async_sessionmaker,
    resolver: CatalogResolver,
    job_id: int,
    user_id: int,
    names: list[str],
    flags: OwnershipFlags | None = None,
) -> None:
    """
    Run an already-open job's item loop in its own session.

    Used for imports started with ``background=true``: the request returns as
    soon as the job exists and the client polls it for progress.
    """
    async with session_factory() as db:
        importer = BatchImporter(db, resolver)
        job = await importer.tracker.get_for_user(job_id, user_id)
        if job is None:
            logger.error(f"[import job {job_id}] Vanished before the background run started")
            return

        await importer.run(job, user_id, names, flags)
