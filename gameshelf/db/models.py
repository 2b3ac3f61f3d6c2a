"""
SQLAlchemy ORM models.

- CatalogGame: one row per RAWG game, shared by every user
- UserGame: a user's ownership of a catalog game plus storefront flags
- ImportJob: progress of a bulk or Steam import, polled by clients
- User / UserPreference: bearer-token accounts and their view settings

Uniqueness of games.rawg_id and user_games(user_id, game_id) is enforced by
unique indexes; the services rely on them to detect concurrent inserts.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text,
)
from sqlalchemy.orm import relationship

from gameshelf.db.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """An account that owns a collection. Authenticates with a bearer token."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), nullable=False, unique=True)
    token_hash = Column(String(64), nullable=False, unique=True)  # sha256 hex of the bearer token
    created_at = Column(DateTime(timezone=True), default=utcnow)


class CatalogGame(Base):
    """Game metadata normalized from RAWG. Shared across all users."""

    __tablename__ = "games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rawg_id = Column(Integer, nullable=False)
    name = Column(String(500), nullable=False)
    slug = Column(String(500), nullable=False)
    background_image = Column(String(1000))
    released = Column(String(20))  # ISO date string as RAWG sends it
    rating = Column(Float)  # 0-5 scale
    metacritic = Column(Float)  # 0-100
    platforms = Column(JSON, nullable=False, default=list)
    genres = Column(JSON, nullable=False, default=list)
    developers = Column(JSON, nullable=False, default=list)
    publishers = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)
    esrb_rating = Column(String(50))
    playtime = Column(Float)  # Average hours
    description = Column(Text)
    website = Column(String(1000))
    added_at = Column(DateTime(timezone=True), default=utcnow)

    owners = relationship("UserGame", back_populates="game", cascade="all, delete-orphan")

    __table_args__ = (
        Index("uq_games_rawg_id", "rawg_id", unique=True),
        Index("idx_games_name", "name"),
    )


class UserGame(Base):
    """A user's ownership of one catalog game."""

    __tablename__ = "user_games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    added_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    owned_on_steam = Column(Boolean, nullable=False, default=False)
    owned_on_epic = Column(Boolean, nullable=False, default=False)
    owned_on_gog = Column(Boolean, nullable=False, default=False)

    game = relationship("CatalogGame", back_populates="owners")

    __table_args__ = (
        Index("uq_user_games_user_game", "user_id", "game_id", unique=True),
        Index("idx_user_games_user", "user_id"),
        Index("idx_user_games_game", "game_id"),
    )


class UserPreference(Base):
    """Collection view settings for one user."""

    __tablename__ = "user_preferences"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    view_mode = Column(String(10), nullable=False, default="grid")  # grid, table
    visible_fields = Column(JSON, nullable=False, default=list)
    items_per_page = Column(Integer, nullable=False, default=12)


# ============ Import Tracking Models ============

class ImportJob(Base):
    """Progress of one bulk-by-name or Steam import, polled by the client."""

    __tablename__ = "import_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(10), nullable=False)  # bulk, steam
    status = Column(String(20), nullable=False, default="pending")  # pending, running, completed, failed
    total = Column(Integer, nullable=False, default=0)
    completed = Column(Integer, nullable=False, default=0)
    error = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_import_jobs_user", "user_id"),
        Index("idx_import_jobs_status", "status"),
    )
