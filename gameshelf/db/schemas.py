"""Pydantic schemas for API request/response validation.

JSON keys are camelCase (the web client's convention); Python attributes stay
snake_case. Routes returning per-item results or import jobs are declared with
response_model_exclude_none so that optional keys are omitted, not null.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Store = Literal["steam", "epic", "gog"]
ImportType = Literal["bulk", "steam"]
ImportStatus = Literal["pending", "running", "completed", "failed"]

DEFAULT_VISIBLE_FIELDS = ["name", "platforms", "genres", "rating", "released"]
DEFAULT_ITEMS_PER_PAGE = 12


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============ Catalog Schemas ============

class NormalizedGame(CamelModel):
    """A RAWG game in catalog shape. Unknown optional values are None."""
    rawg_id: int
    name: str
    slug: str
    background_image: str | None = None
    released: str | None = None
    rating: float | None = None  # 0-5
    metacritic: float | None = None  # 0-100
    platforms: list[str] = []
    genres: list[str] = []
    developers: list[str] = []
    publishers: list[str] = []
    esrb_rating: str | None = None
    playtime: float | None = None  # hours
    description: str | None = None
    website: str | None = None
    tags: list[str] = []


class OwnershipFlags(CamelModel):
    """Storefronts a user owns a game on."""
    owned_on_steam: bool = False
    owned_on_epic: bool = False
    owned_on_gog: bool = False

    def merged_with(self, other: "OwnershipFlags") -> "OwnershipFlags":
        """OR two flag sets together; a True flag is never cleared."""
        return OwnershipFlags(
            owned_on_steam=self.owned_on_steam or other.owned_on_steam,
            owned_on_epic=self.owned_on_epic or other.owned_on_epic,
            owned_on_gog=self.owned_on_gog or other.owned_on_gog,
        )

    def as_flags(self) -> "OwnershipFlags":
        """Plain flag set, dropping any fields of a request subclass."""
        return OwnershipFlags(
            owned_on_steam=self.owned_on_steam,
            owned_on_epic=self.owned_on_epic,
            owned_on_gog=self.owned_on_gog,
        )


class GameResponse(NormalizedGame):
    """Catalog game as seen by one user."""
    id: int
    added_at: datetime | None = None
    user_added_at: datetime | None = None
    owned_on_steam: bool = False
    owned_on_epic: bool = False
    owned_on_gog: bool = False


class GameDetailResponse(GameResponse):
    is_owned: bool = False


class CollectionResponse(CamelModel):
    """One page of a user's filtered, sorted collection."""
    games: list[GameResponse]
    total_count: int
    has_more: bool


class AddGameRequest(OwnershipFlags):
    rawg_id: int


class AddGameResponse(CamelModel):
    game_id: int
    already_owned: bool


# ============ Import Schemas ============

class PerItemResult(CamelModel):
    """Outcome of one name in a batch import."""
    name: str
    success: bool
    added_name: str | None = None
    error: str | None = None
    already_owned: bool | None = None


class ImportJobResponse(CamelModel):
    """Live progress of an import job."""
    id: int
    type: ImportType
    status: ImportStatus
    total: int
    completed: int
    error: str | None = None
    created_at: datetime
    updated_at: datetime


class CreateImportJobRequest(CamelModel):
    type: ImportType
    total: int = Field(0, ge=0)


class BulkAddRequest(OwnershipFlags):
    game_names: list[str]
    job_id: int | None = None
    background: bool = False  # Return 202 immediately and run the batch as a background task


class SteamImportRequest(CamelModel):
    steam_id_or_profile_url: str
    min_playtime_minutes: int | None = Field(None, ge=0)
    limit: int | None = Field(None, ge=0)
    job_id: int | None = None
    background: bool = False


class BatchImportResponse(CamelModel):
    job_id: int
    results: list[PerItemResult]


class ImportStartedResponse(CamelModel):
    job_id: int
    status: ImportStatus


# ============ Preferences Schemas ============

class PreferencesResponse(CamelModel):
    view_mode: Literal["grid", "table"] = "grid"
    visible_fields: list[str] = Field(default_factory=lambda: list(DEFAULT_VISIBLE_FIELDS))
    items_per_page: int = DEFAULT_ITEMS_PER_PAGE


class PreferencesUpdate(CamelModel):
    view_mode: Literal["grid", "table"] | None = None
    visible_fields: list[str] | None = None
    items_per_page: int | None = Field(None, ge=1, le=100)
