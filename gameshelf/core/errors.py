"""Exception hierarchy for catalog lookups, imports and collection changes.

Fatal errors (ConfigError, AuthError, SteamError) abort an import before its
item loop starts. ResolutionError subclasses describe a single item that could
not be resolved; the batch importer records them per item and moves on.
"""


class GameShelfError(Exception):
    """Base class for all application errors."""

    default_message = "Unexpected error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ConfigError(GameShelfError):
    """A required API credential is not configured."""

    default_message = "API key not configured"


class AuthError(GameShelfError):
    """No authenticated user for a user-scoped operation."""

    default_message = "User not authenticated"


# ============ Per-item resolution failures ============

class ResolutionError(GameShelfError):
    """A single name or id could not be turned into a catalog game."""


class SearchError(ResolutionError):
    default_message = "Search failed"


class NotFoundError(ResolutionError):
    default_message = "Game not found"


class DetailFetchError(ResolutionError):
    default_message = "Failed to get details"


class InvalidPayloadError(ResolutionError):
    default_message = "Unexpected response from game catalog"


# ============ Transport failures ============

class TransientHttpError(GameShelfError):
    """Rate limit or gateway error that persisted through every retry."""

    default_message = "External API temporarily unavailable"

    def __init__(self, status_code: int, message: str | None = None):
        self.status_code = status_code
        super().__init__(message or f"{self.default_message} (HTTP {status_code})")


class NetworkError(GameShelfError):
    """Connection-level failure that persisted through every retry."""

    default_message = "Network error"


# ============ Steam and collection ============

class SteamError(GameShelfError):
    """Steam account could not be resolved or its games could not be listed."""

    default_message = "Steam request failed"


class CollectionError(GameShelfError):
    """The requested game is not part of the caller's collection."""

    default_message = "Game not found in your collection"
