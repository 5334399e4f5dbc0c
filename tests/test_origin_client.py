from __future__ import annotations

from typing import Any

import requests

from cinematic.api.services import metrics
from cinematic.api.services.origin import (
    OriginClient,
    filter_poster,
    movie_from_detail,
    movie_from_listing_item,
    movie_from_premiere,
)
from cinematic.api.services.taxonomy import FilmFilters

from conftest import make_settings


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, invalid_json: bool = False) -> None:
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self) -> Any:
        if self._invalid_json:
            raise ValueError("Expecting value")
        return self._payload


class FakeSession:
    def __init__(self, response: FakeResponse | Exception) -> None:
        self._response = response
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if isinstance(self._response, Exception):
            raise self._response
        return self._response

    def close(self) -> None:
        self.closed = True


def _client(response, **overrides) -> tuple[OriginClient, FakeSession]:
    session = FakeSession(response)
    return OriginClient(make_settings(**overrides), session=session), session


# ============================================================
# Mapeo
# ============================================================


def test_filter_poster_drops_placeholder_images():
    assert filter_poster("https://img/no-poster.png") is None
    assert filter_poster("  ") is None
    assert filter_poster(None) is None
    assert filter_poster("https://img/real.jpg") == "https://img/real.jpg"


def test_movie_from_detail_maps_all_fields():
    data = {
        "nameRu": "Начало",
        "nameOriginal": "Inception",
        "year": 2010,
        "description": "Кобб — талантливый вор.",
        "posterUrl": "https://img/poster.jpg",
        "posterUrlPreview": "https://img/preview.jpg",
        "coverUrl": None,
        "ratingKinopoisk": 8.7,
        "ratingImdb": 8.8,
        "ratingKinopoiskVoteCount": 900000,
        "filmLength": 148,
        "genres": [{"genre": "фантастика"}, {"genre": "боевик"}],
        "countries": [{"country": "США"}],
        "ratingAgeLimits": "age12",
        "type": "FILM",
        "slogan": "Твой разум — место преступления",
    }

    rec = movie_from_detail(data, 447301)

    assert rec["id"] == 447301
    assert rec["title"] == "Начало"
    assert rec["originalTitle"] == "Inception"
    assert rec["rating"] == 8.7
    assert rec["ratingImdb"] == 8.8
    assert rec["backdrop"] == "https://img/poster.jpg"
    assert rec["genres"] == ["фантастика", "боевик"]
    assert rec["countries"] == ["США"]
    assert rec["ageRating"] == "12"
    assert rec["type"] == "movie"
    assert rec["duration"] == 148
    assert rec["streamUrl"] == "/watch/447301"


def test_rating_falls_back_to_imdb_only_when_primary_missing():
    rec = movie_from_detail({"nameRu": "X", "ratingKinopoisk": None, "ratingImdb": 7.1}, 1)
    assert rec["rating"] == 7.1

    rec = movie_from_detail({"nameRu": "X", "ratingKinopoisk": 6.0, "ratingImdb": 9.0}, 1)
    assert rec["rating"] == 6.0


def test_series_types_map_to_series():
    for raw in ("TV_SERIES", "MINI_SERIES", "TV_SHOW"):
        assert movie_from_detail({"type": raw}, 1)["type"] == "series"
    assert movie_from_detail({"type": "VIDEO"}, 1)["type"] == "movie"


def test_detail_without_names_uses_placeholder_title():
    rec = movie_from_detail({}, 5)
    assert rec["title"] == "Фильм"
    assert rec["description"] == ""


def test_listing_item_accepts_film_id_and_skips_items_without_id():
    rec = movie_from_listing_item({"filmId": 301, "nameEn": "The Matrix", "posterUrlPreview": "https://x/no-poster.gif"})
    assert rec is not None
    assert rec["id"] == 301
    assert rec["title"] == "The Matrix"
    assert rec["poster"] is None
    assert "description" not in rec

    assert movie_from_listing_item({"nameRu": "Без id"}) is None


def test_premiere_item_carries_duration_and_date():
    rec = movie_from_premiere({"kinopoiskId": 9, "nameRu": "Новинка", "duration": 101, "premiereRu": "2024-05-01"})
    assert rec is not None
    assert rec["duration"] == 101
    assert rec["premiereRu"] == "2024-05-01"


# ============================================================
# HTTP
# ============================================================


def test_get_json_sends_key_and_timeout():
    client, session = _client(FakeResponse(200, {"nameRu": "Начало"}))

    rec = client.fetch_movie(447301)

    assert rec is not None and rec["title"] == "Начало"
    call = session.calls[0]
    assert call["url"] == "https://origin.test/api/v2.2/films/447301"
    assert call["headers"] == {"X-API-KEY": "test-key"}
    assert call["timeout"] == 3.0


def test_disabled_client_never_calls_network():
    client, session = _client(FakeResponse(200, {}), origin_api_key="")

    assert client.enabled is False
    assert client.fetch_movie(1) is None
    assert client.search("matrix") is None
    assert session.calls == []


def test_non_2xx_is_soft_failure():
    client, _ = _client(FakeResponse(402, {"message": "quota"}))
    before = metrics.snapshot()["origin_failures_total"]

    assert client.fetch_movie(1) is None
    assert metrics.snapshot()["origin_failures_total"] == before + 1


def test_invalid_json_and_non_object_are_soft_failures():
    client, _ = _client(FakeResponse(200, invalid_json=True))
    assert client.fetch_movie(1) is None

    client, _ = _client(FakeResponse(200, ["not", "an", "object"]))
    assert client.fetch_movie(1) is None


def test_network_error_is_soft_failure():
    client, _ = _client(requests.ConnectionError("refused"))
    assert client.fetch_movie(1) is None
    assert client.collection("TOP_POPULAR_MOVIES") is None


def test_search_parses_listing_page():
    payload = {
        "totalPages": 3,
        "items": [
            {"kinopoiskId": 1, "nameRu": "Один", "ratingKinopoisk": 7.0},
            {"nameRu": "sin id"},
            {"kinopoiskId": 2, "nameRu": "Два"},
        ],
    }
    client, session = _client(FakeResponse(200, payload))

    page = client.search("один", page=2)

    assert page is not None
    assert [m["id"] for m in page.movies] == [1, 2]
    assert page.total_pages == 3
    assert session.calls[0]["params"] == {"keyword": "один", "page": "2"}


def test_collection_reads_legacy_films_key():
    client, _ = _client(FakeResponse(200, {"pagesCount": 2, "films": [{"filmId": 5, "nameRu": "Пять"}]}))
    page = client.collection("TOP_AWAIT")
    assert page is not None
    assert page.total_pages == 2
    assert page.movies[0]["id"] == 5


def test_filter_films_sends_filter_params():
    client, session = _client(FakeResponse(200, {"items": []}))
    filters = FilmFilters.build(year="2010-2019", genre="drama", country="США", sort="YEAR", type="FILM")

    page = client.filter_films(filters, page=1)

    assert page is not None and page.movies == []
    assert session.calls[0]["params"] == {
        "page": "1",
        "order": "YEAR",
        "type": "FILM",
        "yearFrom": "2010",
        "yearTo": "2019",
        "genres": "2",
        "countries": "1",
    }


def test_premieres_uppercases_month():
    client, session = _client(FakeResponse(200, {"items": [{"kinopoiskId": 3, "nameRu": "Три"}]}))
    movies = client.premieres(year=2024, month="may")
    assert movies is not None and movies[0]["id"] == 3
    assert session.calls[0]["params"] == {"year": "2024", "month": "MAY"}


def test_close_closes_shared_session():
    client, session = _client(FakeResponse(200, {}))

    client.close()

    assert session.closed is True
