import pytest

from gameshelf.core.errors import InvalidPayloadError
from gameshelf.ingestion.normalizer import normalize_game, parse_rawg_game, parse_search_hits

from conftest import rawg_detail


def test_full_payload_is_flattened():
    game = normalize_game(rawg_detail(3, "Halo 3"))

    assert game.rawg_id == 3
    assert game.name == "Halo 3"
    assert game.slug == "halo-3"
    assert game.background_image == "https://media.rawg.io/3.jpg"
    assert game.released == "2007-09-25"
    assert game.rating == 4.4
    assert game.metacritic == 94
    assert game.playtime == 9
    assert game.platforms == ["Xbox 360", "PC"]
    assert game.genres == ["Shooter", "Action"]
    assert game.developers == ["Bungie"]
    assert game.publishers == ["Microsoft Studios"]
    assert game.tags == ["Singleplayer", "Multiplayer"]
    assert game.esrb_rating == "Mature"
    assert game.description == "Halo 3 description"
    assert game.website == "https://example.com"


def test_minimal_payload_defaults_to_empty():
    game = normalize_game({"id": 7, "name": "Obscure", "slug": "obscure"})

    assert game.background_image is None
    assert game.released is None
    assert game.rating is None
    assert game.metacritic is None
    assert game.playtime is None
    assert game.esrb_rating is None
    assert game.description is None
    assert game.website is None
    assert game.platforms == []
    assert game.genres == []
    assert game.developers == []
    assert game.publishers == []
    assert game.tags == []


def test_explicit_nulls_behave_like_missing():
    game = normalize_game(rawg_detail(
        7, "Obscure",
        background_image=None, released=None, rating=None, metacritic=None,
        platforms=None, genres=None, developers=None, publishers=None, tags=None,
        esrb_rating=None, description_raw=None, website=None,
    ))

    assert game.esrb_rating is None
    assert game.rating is None
    assert game.platforms == []
    assert game.tags == []


def test_null_and_nameless_list_entries_are_skipped():
    game = normalize_game(rawg_detail(
        7, "Obscure",
        platforms=[None, {"platform": None}, {"platform": {"name": "PC"}}, {}],
        genres=[{"name": "RPG"}, None, {"id": 5}],
    ))

    assert game.platforms == ["PC"]
    assert game.genres == ["RPG"]


def test_blank_strings_become_none():
    game = normalize_game(rawg_detail(7, "Obscure", website="", released="  ", description_raw=""))

    assert game.website is None
    assert game.released is None
    assert game.description is None


@pytest.mark.parametrize("value", [True, "4.5", [], {}])
def test_non_numeric_scores_become_none(value):
    game = normalize_game(rawg_detail(7, "Obscure", rating=value, metacritic=value, playtime=value))

    assert game.rating is None
    assert game.metacritic is None
    assert game.playtime is None


def test_zero_scores_are_kept():
    game = normalize_game(rawg_detail(7, "Obscure", rating=0, metacritic=0, playtime=0))

    assert game.rating == 0
    assert game.metacritic == 0
    assert game.playtime == 0


def test_fractional_metacritic_is_kept():
    assert normalize_game(rawg_detail(7, "Obscure", metacritic=87.5)).metacritic == 87.5
    assert normalize_game(rawg_detail(7, "Obscure", metacritic=87)).metacritic == 87
