"""
RAWG payload parsing and normalization.

Two steps, kept separate on purpose:

1. parse_rawg_game() validates the raw JSON into a fixed RawgGame structure.
   Identity fields (id, name, slug) must have the right types and optional
   strings must be strings or null; anything else raises InvalidPayloadError.
2. normalize_game() maps a RawgGame into catalog shape. It is pure: no I/O,
   no global state, same input gives the same output.

Mapping rules:
- null, missing or blank optional strings become None
- rating/metacritic/playtime are kept only when they are real numbers
  (bools and numeric strings become None)
- relational lists are flattened to their names in source order; a null or
  missing list becomes []
"""

import math
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError

from gameshelf.core.errors import InvalidPayloadError
from gameshelf.db.schemas import NormalizedGame


class _Named(BaseModel):
    model_config = ConfigDict(extra="ignore")
    name: StrictStr | None = None


class _PlatformEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")
    platform: _Named | None = None


class RawgGame(BaseModel):
    """The subset of a RAWG game record that the catalog uses."""

    model_config = ConfigDict(extra="ignore")

    id: StrictInt
    name: StrictStr
    slug: StrictStr
    background_image: StrictStr | None = None
    released: StrictStr | None = None
    rating: Any = None
    metacritic: Any = None
    playtime: Any = None
    platforms: list[_PlatformEntry | None] | None = None
    genres: list[_Named | None] | None = None
    developers: list[_Named | None] | None = None
    publishers: list[_Named | None] | None = None
    tags: list[_Named | None] | None = None
    esrb_rating: _Named | None = None
    description_raw: StrictStr | None = None
    website: StrictStr | None = None


class RawgSearchHit(BaseModel):
    """A search result; only the id is needed to fetch the full record."""

    model_config = ConfigDict(extra="ignore")

    id: StrictInt
    name: StrictStr | None = None


def parse_rawg_game(raw: Any) -> RawgGame:
    """Validate a RAWG detail payload, raising InvalidPayloadError on mismatch."""
    if not isinstance(raw, Mapping):
        raise InvalidPayloadError()
    try:
        return RawgGame.model_validate(dict(raw))
    except ValidationError as e:
        raise InvalidPayloadError(
            f"Unexpected response from game catalog: {e.error_count()} invalid field(s)"
        ) from e


def parse_search_hits(raw: Any) -> list[RawgSearchHit]:
    """Validate the ``results`` list of a RAWG search payload."""
    if not isinstance(raw, Mapping):
        raise InvalidPayloadError()
    results = raw.get("results")
    if results is None:
        return []
    if not isinstance(results, list):
        raise InvalidPayloadError()
    try:
        return [RawgSearchHit.model_validate(item) for item in results]
    except ValidationError as e:
        raise InvalidPayloadError() from e


def _text(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value


def _number(value: Any) -> float | int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def _names(entries: list[_Named | None] | None) -> list[str]:
    if not entries:
        return []
    return [entry.name for entry in entries if entry is not None and entry.name is not None]


def _platform_names(entries: list[_PlatformEntry | None] | None) -> list[str]:
    if not entries:
        return []
    return [
        entry.platform.name
        for entry in entries
        if entry is not None and entry.platform is not None and entry.platform.name is not None
    ]


def normalize_game(raw: Any) -> NormalizedGame:
    """
    Map a RAWG game record (raw dict or parsed RawgGame) into catalog shape.

    Raises:
        InvalidPayloadError: If a raw dict fails validation
    """
    game = raw if isinstance(raw, RawgGame) else parse_rawg_game(raw)

    return NormalizedGame(
        rawg_id=game.id,
        name=game.name,
        slug=game.slug,
        background_image=_text(game.background_image),
        released=_text(game.released),
        rating=_number(game.rating),
        metacritic=_number(game.metacritic),
        platforms=_platform_names(game.platforms),
        genres=_names(game.genres),
        developers=_names(game.developers),
        publishers=_names(game.publishers),
        esrb_rating=_text(game.esrb_rating.name) if game.esrb_rating and game.esrb_rating.name else None,
        playtime=_number(game.playtime),
        description=_text(game.description_raw),
        website=_text(game.website),
        tags=_names(game.tags),
    )
