"""pytest configuration and fixtures."""

import os

# Set required environment variables for testing before any imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.pop("REDIS_URL", None)
os.environ.pop("RAWG_API_KEY", None)
os.environ.pop("STEAM_API_KEY", None)

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from gameshelf.core.rawg_client import RawgClient  # noqa: E402
from gameshelf.core.retry import RetryConfig  # noqa: E402
from gameshelf.core.steam_client import SteamClient  # noqa: E402
from gameshelf.db import models  # noqa: F401, E402
from gameshelf.db.database import Base  # noqa: E402
from gameshelf.ingestion.resolver import CatalogResolver  # noqa: E402
from gameshelf.services.user_service import UserService  # noqa: E402

# No real waiting in tests: zero jitter, tiny delays
FAST_RETRY = RetryConfig(max_retries=2, initial_delay_ms=1, max_delay_ms=4, jitter_ms=0)


def rawg_detail(rawg_id: int, name: str, **overrides) -> dict:
    """A RAWG /games/{id} payload with every field the catalog reads."""
    payload = {
        "id": rawg_id,
        "name": name,
        "slug": name.lower().replace(" ", "-"),
        "background_image": f"https://media.rawg.io/{rawg_id}.jpg",
        "released": "2007-09-25",
        "rating": 4.4,
        "metacritic": 94,
        "playtime": 9,
        "platforms": [{"platform": {"id": 1, "name": "Xbox 360"}}, {"platform": {"id": 4, "name": "PC"}}],
        "genres": [{"id": 2, "name": "Shooter"}, {"id": 3, "name": "Action"}],
        "developers": [{"id": 10, "name": "Bungie"}],
        "publishers": [{"id": 20, "name": "Microsoft Studios"}],
        "tags": [{"id": 31, "name": "Singleplayer"}, {"id": 7, "name": "Multiplayer"}],
        "esrb_rating": {"id": 4, "name": "Mature"},
        "description_raw": f"{name} description",
        "website": "https://example.com",
    }
    payload.update(overrides)
    return payload


class FakeRawgApi:
    """
    In-memory stand-in for the RAWG API, served through httpx.MockTransport.

    Search matches games whose name contains the query (case-insensitive), in
    insertion order. ``fail_next`` queues statuses returned before real answers.
    """

    def __init__(self, games: list[dict] | None = None):
        self.games = {game["id"]: game for game in (games or [])}
        self.requests: list[httpx.Request] = []
        self.fail_next: list[int] = []

    def add(self, payload: dict) -> None:
        self.games[payload["id"]] = payload

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_next:
            return httpx.Response(self.fail_next.pop(0), json={"detail": "try later"})

        path = request.url.path
        if path.endswith("/games"):
            query = request.url.params.get("search", "").lower()
            page_size = int(request.url.params.get("page_size", "10"))
            hits = [
                {"id": game["id"], "name": game["name"]}
                for game in self.games.values()
                if query and query in game["name"].lower()
            ]
            return httpx.Response(200, json={"count": len(hits), "results": hits[:page_size]})

        rawg_id = int(path.rsplit("/", 1)[-1])
        if rawg_id not in self.games:
            return httpx.Response(404, json={"detail": "Not found."})
        return httpx.Response(200, json=self.games[rawg_id])


class SleepRecorder:
    """Async sleep replacement that records requested delays instead of waiting."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def rawg_api() -> FakeRawgApi:
    return FakeRawgApi([
        rawg_detail(3, "Halo 3"),
        rawg_detail(4200, "Portal 2", platforms=[{"platform": {"name": "PC"}}], genres=[{"name": "Puzzle"}]),
        rawg_detail(3328, "The Witcher 3: Wild Hunt", genres=[{"name": "RPG"}]),
    ])


@pytest.fixture
def rawg_client(rawg_api, sleep_recorder) -> RawgClient:
    return RawgClient(
        api_key="test-rawg-key",
        base_url="https://rawg.test/api",
        retry_config=FAST_RETRY,
        transport=httpx.MockTransport(rawg_api),
        sleep=sleep_recorder,
    )


@pytest.fixture
def resolver(rawg_client) -> CatalogResolver:
    return CatalogResolver(rawg_client)


STEAM_ID = "76561197960287930"


def steam_handler(owned_games: list[dict], vanity: dict[str, str] | None = None, requests: list | None = None):
    """MockTransport handler for ResolveVanityURL and GetOwnedGames."""
    vanity = vanity if vanity is not None else {"gabelogannewell": STEAM_ID}

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        if request.url.path.endswith("/ResolveVanityURL/v0001/"):
            steam_id = vanity.get(request.url.params.get("vanityurl", ""))
            if steam_id:
                return httpx.Response(200, json={"response": {"steamid": steam_id, "success": 1}})
            return httpx.Response(200, json={"response": {"success": 42, "message": "No match"}})
        if request.url.path.endswith("/GetOwnedGames/v0001/"):
            return httpx.Response(
                200, json={"response": {"game_count": len(owned_games), "games": owned_games}}
            )
        return httpx.Response(404)

    return handler


def make_steam_client(handler, api_key: str | None = "test-steam-key", sleep=None) -> SteamClient:
    kwargs = {"sleep": sleep} if sleep is not None else {}
    return SteamClient(
        api_key=api_key,
        base_url="https://steam.test",
        retry_config=FAST_RETRY,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def user(db):
    user, _ = await UserService(db).create_user("alice", token="alice-token")
    return user


@pytest_asyncio.fixture
async def other_user(db):
    user, _ = await UserService(db).create_user("bob", token="bob-token")
    return user
