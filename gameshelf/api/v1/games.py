"""Collection endpoints: browse, inspect, re-tag and remove owned games."""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from gameshelf.core.auth import get_current_user_id
from gameshelf.db import schemas
from gameshelf.db.database import get_db
from gameshelf.services.catalog_service import CatalogService
from gameshelf.services.collection_service import CollectionQuery, CollectionService

router = APIRouter()


@router.get("", response_model=schemas.CollectionResponse)
async def list_games(
    response: Response,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    search: str | None = Query(None, description="Matches name, genres and platforms"),
    platforms: list[str] = Query([], description="Any of these platforms (substring match)"),
    genres: list[str] = Query([], description="Any of these genres (substring match)"),
    stores: list[schemas.Store] = Query([], description="Owned on any of these stores"),
    sort_by: str = Query("userAddedAt", alias="sortBy", description="name, released, rating, metacritic, userAddedAt"),
    sort_order: str = Query("desc", alias="sortOrder", description="asc or desc"),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    items_per_page: int = Query(12, ge=1, le=100, alias="itemsPerPage"),
):
    """One page of the caller's collection after filtering and sorting."""
    response.headers["Cache-Control"] = "private, no-cache"

    query = CollectionQuery(
        search_term=search,
        platforms=platforms,
        genres=genres,
        stores=list(stores),
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        items_per_page=items_per_page,
    )
    return await CollectionService(db).query(user_id, query)


@router.get("/owned-rawg-ids", response_model=list[int])
async def owned_rawg_ids(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """RAWG ids in the caller's collection, to mark search results as owned."""
    return await CatalogService(db).get_owned_rawg_ids(user_id)


@router.get("/facets/{facet}", response_model=list[str])
async def collection_facet(
    facet: Literal["platforms", "genres", "stores"],
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Sorted distinct values for a filter control."""
    facets = await CollectionService(db).facets(user_id)
    return facets[facet]


@router.get("/{game_id}", response_model=schemas.GameDetailResponse)
async def get_game(
    game_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """A catalog game with the caller's ownership (isOwned false if not in the collection)."""
    game = await CatalogService(db).get_game_for_user(user_id, game_id)
    if game is None:
        raise HTTPException(status_code=404, detail=f"Game {game_id} not found")
    return game


@router.put("/{game_id}/ownership", response_model=schemas.OwnershipFlags)
async def update_ownership(
    game_id: int,
    body: schemas.OwnershipFlags,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Replace the store flags of an owned game. Unset flags become false."""
    return await CatalogService(db).update_ownership(user_id, game_id, body)


@router.delete("/{game_id}", status_code=204)
async def remove_game(
    game_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Remove a game from the caller's collection. The catalog entry stays."""
    await CatalogService(db).remove_game_from_user(user_id, game_id)
    return Response(status_code=204)
