"""Steam library import endpoint."""

from fastapi import APIRouter, Depends, Request, Response, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gameshelf.api.deps import get_resolver, get_session_factory, get_steam
from gameshelf.core.auth import get_current_user_id
from gameshelf.core.steam_client import SteamClient
from gameshelf.core.tasks import TaskManager
from gameshelf.db import schemas
from gameshelf.db.database import get_db
from gameshelf.ingestion.importer import (
    STEAM_FLAGS,
    BatchImporter,
    SteamImporter,
    run_import_job,
)
from gameshelf.ingestion.resolver import CatalogResolver

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


@router.post(
    "/import",
    response_model=schemas.BatchImportResponse | schemas.ImportStartedResponse,
    response_model_exclude_none=True,
)
@limiter.limit("5/minute")
async def import_steam_library(
    request: Request,
    response: Response,
    body: schemas.SteamImportRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    resolver: CatalogResolver = Depends(get_resolver),
    steam: SteamClient = Depends(get_steam),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    Import the games a Steam account owns, marking each as owned on Steam.

    Accepts a SteamID64, a /profiles/ or /id/ community URL, or a bare vanity
    name. The account must have a public game list.
    """
    importer = SteamImporter(BatchImporter(db, resolver), steam)

    if body.background:
        job, names = await importer.prepare(
            user_id,
            body.steam_id_or_profile_url,
            body.min_playtime_minutes,
            body.limit,
            job_id=body.job_id,
        )
        TaskManager.get_instance().create_task(
            run_import_job(session_factory, resolver, job.id, user_id, names, STEAM_FLAGS),
            name=f"import-job-{job.id}",
        )
        response.status_code = status.HTTP_202_ACCEPTED
        return schemas.ImportStartedResponse(job_id=job.id, status=job.status)

    job, results = await importer.import_owned_games(
        user_id,
        body.steam_id_or_profile_url,
        body.min_playtime_minutes,
        body.limit,
        job_id=body.job_id,
    )
    return schemas.BatchImportResponse(job_id=job.id, results=results)
