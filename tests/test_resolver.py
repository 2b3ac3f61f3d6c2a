import httpx
import pytest

from gameshelf.core.errors import (
    ConfigError,
    DetailFetchError,
    InvalidPayloadError,
    NetworkError,
    NotFoundError,
    SearchError,
    TransientHttpError,
)
from gameshelf.core.rawg_client import RawgClient
from gameshelf.ingestion.resolver import CatalogResolver

from conftest import FAST_RETRY


class TestResolveByName:

    @pytest.mark.asyncio
    async def test_first_hit_is_fetched_and_normalized(self, resolver, rawg_api):
        game = await resolver.resolve_by_name("Halo 3")

        assert game.rawg_id == 3
        assert game.platforms == ["Xbox 360", "PC"]

        search, detail = rawg_api.requests
        assert search.url.params["search"] == "Halo 3"
        assert search.url.params["page_size"] == "1"
        assert search.url.params["key"] == "test-rawg-key"
        assert detail.url.path.endswith("/games/3")

    @pytest.mark.asyncio
    async def test_no_results_is_not_found(self, resolver, rawg_api):
        with pytest.raises(NotFoundError) as exc_info:
            await resolver.resolve_by_name("NotAGameXYZ123")

        assert exc_info.value.message == "Game not found"
        assert len(rawg_api.requests) == 1

    @pytest.mark.asyncio
    async def test_search_failure(self, resolver, rawg_api):
        rawg_api.fail_next = [400]

        with pytest.raises(SearchError) as exc_info:
            await resolver.resolve_by_name("Halo 3")

        assert exc_info.value.message == "Search failed"

    @pytest.mark.asyncio
    async def test_search_rate_limited_through_all_retries(self, resolver, rawg_api, sleep_recorder):
        rawg_api.fail_next = [429, 429, 429]

        with pytest.raises(SearchError) as exc_info:
            await resolver.resolve_by_name("Halo 3")

        assert isinstance(exc_info.value.__cause__, TransientHttpError)
        assert exc_info.value.__cause__.status_code == 429
        assert len(rawg_api.requests) == FAST_RETRY.max_retries + 1
        assert len(sleep_recorder.calls) == FAST_RETRY.max_retries

    @pytest.mark.asyncio
    async def test_rate_limit_recovers_within_budget(self, resolver, rawg_api):
        rawg_api.fail_next = [429]

        game = await resolver.resolve_by_name("Portal")

        assert game.rawg_id == 4200

    @pytest.mark.asyncio
    async def test_detail_failure(self, resolver, rawg_api):
        # Searchable, but /games/99 is unknown
        rawg_api.games[-1] = {"id": 99, "name": "Ghost", "slug": "ghost"}

        with pytest.raises(DetailFetchError) as exc_info:
            await resolver.resolve_by_name("Ghost")

        assert exc_info.value.message == "Failed to get details"


class TestResolveById:

    @pytest.mark.asyncio
    async def test_resolves(self, resolver):
        game = await resolver.resolve_by_id(3328)
        assert game.name == "The Witcher 3: Wild Hunt"
        assert game.genres == ["RPG"]

    @pytest.mark.asyncio
    async def test_unknown_id(self, resolver):
        with pytest.raises(DetailFetchError):
            await resolver.resolve_by_id(123456)

    @pytest.mark.asyncio
    async def test_malformed_detail_payload(self, resolver, rawg_api):
        rawg_api.add({"id": 77, "name": None, "slug": "broken"})

        with pytest.raises(InvalidPayloadError):
            await resolver.resolve_by_id(77)


@pytest.mark.asyncio
async def test_network_failure_passes_through(sleep_recorder):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = RawgClient(
        api_key="key",
        base_url="https://rawg.test/api",
        retry_config=FAST_RETRY,
        transport=httpx.MockTransport(handler),
        sleep=sleep_recorder,
    )

    with pytest.raises(NetworkError):
        await CatalogResolver(client).resolve_by_name("Halo 3")


@pytest.mark.asyncio
async def test_missing_api_key_is_config_error():
    client = RawgClient(api_key=None, transport=httpx.MockTransport(lambda request: httpx.Response(200)))

    with pytest.raises(ConfigError) as exc_info:
        await CatalogResolver(client).search("Halo")

    assert exc_info.value.message == "RAWG API key not configured"


@pytest.mark.asyncio
async def test_search_returns_raw_results(resolver):
    results = await resolver.search("o", page_size=2)
    assert [result["id"] for result in results] == [3, 4200]
