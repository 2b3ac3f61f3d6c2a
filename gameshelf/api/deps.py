"""Shared FastAPI dependencies for the external API clients.

Kept as functions so tests can swap them through app.dependency_overrides.
"""

from sqlalchemy.ext.asyncio import async_sessionmaker

from gameshelf.core.rawg_client import get_rawg_client
from gameshelf.core.steam_client import SteamClient, get_steam_client
from gameshelf.db.database import async_session
from gameshelf.ingestion.resolver import CatalogResolver


def get_resolver() -> CatalogResolver:
    return CatalogResolver(get_rawg_client())


def get_steam() -> SteamClient:
    return get_steam_client()


def get_session_factory() -> async_sessionmaker:
    """Session factory for background imports, which outlive the request session."""
    return async_session
