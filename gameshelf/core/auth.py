"""Bearer-token authentication dependency for user-scoped endpoints."""

import logging

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from gameshelf.core.errors import AuthError
from gameshelf.db.database import get_db
from gameshelf.services.user_service import UserService

logger = logging.getLogger(__name__)

# Optional bearer token scheme - won't reject missing tokens,
# allowing the dependency to return a clear 401 instead of 403.
_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> int:
    """
    Dependency that resolves the caller's user id from their bearer token.

    Usage:
        @router.get("/games")
        async def list_games(user_id: int = Depends(get_current_user_id)):
            ...

    The client must send:
        Authorization: Bearer <token>

    Raises AuthError (401) when the token is missing or unknown.
    """
    if not credentials or not credentials.credentials:
        raise AuthError()

    user = await UserService(db).get_by_token(credentials.credentials)
    if user is None:
        client_ip = request.client.host if request.client else "unknown"
        logger.warning("Rejected unknown bearer token from %s", client_ip)
        raise AuthError("Invalid token")

    return user.id
