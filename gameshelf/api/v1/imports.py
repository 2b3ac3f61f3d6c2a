"""Import job endpoints: create a job ahead of a batch and poll its progress."""

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from gameshelf.core.auth import get_current_user_id
from gameshelf.db import schemas
from gameshelf.db.database import get_db
from gameshelf.ingestion.progress import ImportJobTracker

router = APIRouter()


@router.post("", response_model=schemas.ImportJobResponse, response_model_exclude_none=True, status_code=201)
async def create_import_job(
    body: schemas.CreateImportJobRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a pending job so the client can start polling before the batch
    request is sent. Pass its id as ``jobId`` to the import endpoint.
    """
    return await ImportJobTracker(db).create(user_id, body.type, total=body.total, status="pending")


@router.get("/{job_id}", response_model=schemas.ImportJobResponse, response_model_exclude_none=True)
async def get_import_job(
    job_id: int,
    response: Response,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Current progress of one of the caller's jobs."""
    response.headers["Cache-Control"] = "no-store"

    job = await ImportJobTracker(db).get_for_user(job_id, user_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Import job {job_id} not found")
    return job
