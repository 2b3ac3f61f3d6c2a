"""
Accounts and per-user collection view preferences.

Accounts are provisioned from the command line (scripts/create_user.py); the
API only ever looks them up by bearer token.
"""

import hashlib
import logging
import secrets

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gameshelf.db.models import User, UserPreference
from gameshelf.db.schemas import PreferencesResponse, PreferencesUpdate

logger = logging.getLogger(__name__)


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a bearer token; only the digest is stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_token() -> str:
    return secrets.token_urlsafe(32)


class UserService:
    """Look up and provision token-authenticated users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_token(self, token: str) -> User | None:
        result = await self.db.execute(
            select(User).where(User.token_hash == hash_token(token))
        )
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> User | None:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def create_user(self, username: str, token: str | None = None) -> tuple[User, str]:
        """
        Create an account and return it with its plaintext token.

        The token is shown once; it cannot be recovered from the database.
        """
        token = token or generate_token()
        user = User(username=username, token_hash=hash_token(token))
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"Created user {user.id} ({username})")
        return user, token

    async def rotate_token(self, user: User) -> str:
        token = generate_token()
        user.token_hash = hash_token(token)
        await self.db.commit()
        return token


class PreferencesService:
    """Read and update collection view settings, falling back to defaults."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: int) -> PreferencesResponse:
        row = await self.db.get(UserPreference, user_id)
        if row is None:
            return PreferencesResponse()
        return PreferencesResponse.model_validate(row)

    async def update(self, user_id: int, changes: PreferencesUpdate) -> PreferencesResponse:
        """Apply the fields present in `changes`; absent fields keep their value."""
        row = await self.db.get(UserPreference, user_id)
        if row is None:
            defaults = PreferencesResponse()
            row = UserPreference(
                user_id=user_id,
                view_mode=defaults.view_mode,
                visible_fields=defaults.visible_fields,
                items_per_page=defaults.items_per_page,
            )
            self.db.add(row)

        for field, value in changes.model_dump(exclude_none=True).items():
            setattr(row, field, value)

        await self.db.commit()
        return PreferencesResponse.model_validate(row)
