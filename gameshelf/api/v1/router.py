"""API v1 router - aggregates all endpoint routers."""

from fastapi import APIRouter

from gameshelf.api.v1 import games, imports, preferences, rawg, steam

api_router = APIRouter()

api_router.include_router(rawg.router, prefix="/rawg", tags=["rawg"])
api_router.include_router(steam.router, prefix="/steam", tags=["steam"])
api_router.include_router(imports.router, prefix="/imports", tags=["imports"])
api_router.include_router(games.router, prefix="/games", tags=["games"])
api_router.include_router(preferences.router, prefix="/preferences", tags=["preferences"])
