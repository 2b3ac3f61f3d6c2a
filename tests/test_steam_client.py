import httpx
import pytest

from gameshelf.core.cache import CacheService
from gameshelf.core.errors import ConfigError, SteamError

from conftest import STEAM_ID, make_steam_client, steam_handler


class MemoryCache(CacheService):
    """CacheService backed by a dict instead of Redis."""

    def __init__(self):
        super().__init__(redis_url=None)
        self.values = {}

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value, ttl=None):
        self.values[key] = value
        return True


class TestResolveSteamId:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("identifier", [
        STEAM_ID,
        f"  {STEAM_ID}  ",
        f"https://steamcommunity.com/profiles/{STEAM_ID}",
        f"https://steamcommunity.com/profiles/{STEAM_ID}/games/?tab=all",
        "https://steamcommunity.com/id/gabelogannewell/",
        "steamcommunity.com/id/gabelogannewell",
        "gabelogannewell",
    ])
    async def test_accepted_forms(self, identifier):
        steam = make_steam_client(steam_handler([]))
        assert await steam.resolve_steam_id(identifier) == STEAM_ID

    @pytest.mark.asyncio
    async def test_profile_url_needs_no_request(self):
        requests = []
        steam = make_steam_client(steam_handler([], requests=requests))

        await steam.resolve_steam_id(f"https://steamcommunity.com/profiles/{STEAM_ID}")

        assert requests == []

    @pytest.mark.asyncio
    async def test_unknown_vanity_url(self):
        steam = make_steam_client(steam_handler([]))

        with pytest.raises(SteamError) as exc_info:
            await steam.resolve_steam_id("https://steamcommunity.com/id/nobody")

        assert exc_info.value.message == "Failed to resolve Steam vanity URL"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("identifier", ["", "   ", "not a real profile"])
    async def test_unparseable(self, identifier):
        steam = make_steam_client(steam_handler([]))

        with pytest.raises(SteamError) as exc_info:
            await steam.resolve_steam_id(identifier)

        assert exc_info.value.message == "Could not parse Steam ID or profile URL"

    @pytest.mark.asyncio
    async def test_vanity_lookups_are_cached(self):
        requests = []
        steam = make_steam_client(steam_handler([], requests=requests))
        steam.cache = MemoryCache()

        await steam.resolve_steam_id("https://steamcommunity.com/id/gabelogannewell")
        await steam.resolve_steam_id("gabelogannewell")

        assert len(requests) == 1
        assert steam.cache.values == {"steam:vanity:gabelogannewell": STEAM_ID}


class TestOwnedGames:

    @pytest.mark.asyncio
    async def test_parses_games(self):
        steam = make_steam_client(steam_handler([
            {"appid": 220, "name": "Half-Life 2", "playtime_forever": 600, "img_icon_url": "x"},
            {"appid": 70},
        ]))

        games = await steam.get_owned_games(STEAM_ID)

        assert [(game.appid, game.name, game.playtime_forever) for game in games] == [
            (220, "Half-Life 2", 600),
            (70, None, None),
        ]

    @pytest.mark.asyncio
    async def test_request_parameters(self):
        requests = []
        steam = make_steam_client(steam_handler([], requests=requests))

        await steam.get_owned_games(STEAM_ID)

        params = requests[0].url.params
        assert params["key"] == "test-steam-key"
        assert params["steamid"] == STEAM_ID
        assert params["include_appinfo"] == "1"
        assert params["include_played_free_games"] == "1"

    @pytest.mark.asyncio
    async def test_private_profile_is_empty(self):
        steam = make_steam_client(lambda request: httpx.Response(200, json={"response": {}}))
        assert await steam.get_owned_games(STEAM_ID) == []

    @pytest.mark.asyncio
    async def test_error_status(self):
        steam = make_steam_client(lambda request: httpx.Response(403, text="Forbidden"))

        with pytest.raises(SteamError) as exc_info:
            await steam.get_owned_games(STEAM_ID)

        assert exc_info.value.message == "Failed to fetch owned games from Steam. Error: Forbidden"


@pytest.mark.asyncio
async def test_missing_key():
    steam = make_steam_client(steam_handler([]), api_key=None)

    with pytest.raises(ConfigError) as exc_info:
        await steam.get_owned_games(STEAM_ID)

    assert exc_info.value.message == "STEAM API key not configured"
