"""Collection view preferences."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gameshelf.core.auth import get_current_user_id
from gameshelf.db import schemas
from gameshelf.db.database import get_db
from gameshelf.services.user_service import PreferencesService

router = APIRouter()


@router.get("", response_model=schemas.PreferencesResponse)
async def get_preferences(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Saved view settings, or the defaults if none were saved."""
    return await PreferencesService(db).get(user_id)


@router.put("", response_model=schemas.PreferencesResponse)
async def update_preferences(
    body: schemas.PreferencesUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await PreferencesService(db).update(user_id, body)
