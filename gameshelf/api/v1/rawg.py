"""RAWG catalog endpoints: search, add one game, bulk add by name."""

import logging

from fastapi import APIRouter, Depends, Query, Request, Response, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gameshelf.api.deps import get_resolver, get_session_factory
from gameshelf.config import get_settings
from gameshelf.core.auth import get_current_user_id
from gameshelf.core.cache import CacheService, get_cache
from gameshelf.core.tasks import TaskManager
from gameshelf.db import schemas
from gameshelf.db.database import get_db
from gameshelf.ingestion.importer import BatchImporter, normalize_name_list, run_import_job
from gameshelf.ingestion.resolver import CatalogResolver
from gameshelf.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


@router.get("/search")
@limiter.limit("60/minute")
async def search_games(
    request: Request,
    query: str = Query(..., min_length=1, description="Free-text game name"),
    resolver: CatalogResolver = Depends(get_resolver),
    cache: CacheService = Depends(get_cache),
) -> list[dict]:
    """
    Search the RAWG catalog. Public; no token required.

    Returns RAWG's raw result objects, ranked by relevance.
    """
    settings = get_settings()
    page_size = settings.rawg_search_page_size

    cache_key = CacheService.rawg_search_key(query, page_size)
    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    results = await resolver.search(query, page_size=page_size)
    await cache.set(cache_key, results, ttl=settings.cache_ttl_seconds)
    return results


@router.post("/games", response_model=schemas.AddGameResponse)
async def add_game(
    body: schemas.AddGameRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    resolver: CatalogResolver = Depends(get_resolver),
):
    """Add one game by RAWG id to the catalog and the caller's collection."""
    game = await resolver.resolve_by_id(body.rawg_id)
    catalog_game, already_owned = await CatalogService(db).add_game_to_user(
        user_id, game, body.as_flags()
    )
    return schemas.AddGameResponse(game_id=catalog_game.id, already_owned=already_owned)


@router.post(
    "/bulk",
    response_model=schemas.BatchImportResponse | schemas.ImportStartedResponse,
    response_model_exclude_none=True,
)
@limiter.limit("10/minute")
async def bulk_add(
    request: Request,
    response: Response,
    body: schemas.BulkAddRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    resolver: CatalogResolver = Depends(get_resolver),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    Add many games by name.

    Names are trimmed and blank lines dropped; every remaining line gets one
    result, in order. With ``background`` the request returns 202 as soon as
    the job is running; poll ``GET /imports/{jobId}`` for progress.
    """
    names = normalize_name_list(body.game_names, dedupe=False)
    flags = body.as_flags()
    importer = BatchImporter(db, resolver)

    if body.background:
        job = await importer.open_job(user_id, "bulk", len(names), job_id=body.job_id)
        TaskManager.get_instance().create_task(
            run_import_job(session_factory, resolver, job.id, user_id, names, flags),
            name=f"import-job-{job.id}",
        )
        response.status_code = status.HTTP_202_ACCEPTED
        return schemas.ImportStartedResponse(job_id=job.id, status=job.status)

    job, results = await importer.import_batch(
        user_id, names, flags, job_id=body.job_id, job_type="bulk"
    )
    return schemas.BatchImportResponse(job_id=job.id, results=results)
