from __future__ import annotations

from datetime import datetime, timezone

import pytest

from cinematic.api.services import metrics
from cinematic.api.services.catalog import Catalog, UnknownGenreError, paginate_local
from cinematic.api.services.movie_store import MovieStore
from cinematic.api.services.origin import OriginPage
from cinematic.api.services.taxonomy import FilmFilters

from conftest import ManualClock, detail_record, listing_record


def _catalog(store, origin, clock=None) -> Catalog:
    return Catalog(store, origin, clock=clock or ManualClock(), sleep=lambda _s: None)


# ============================================================
# Detalle
# ============================================================


def test_complete_record_is_served_without_origin_call(store, origin):
    store.upsert(detail_record(1))
    catalog = _catalog(store, origin)

    first = catalog.get_movie(1)
    second = catalog.get_movie(1)

    assert first == second
    assert origin.calls == []


def test_miss_fetches_upserts_and_next_call_hits_cache(store, origin):
    origin.details[447301] = detail_record(447301, title="Начало")
    catalog = _catalog(store, origin)

    first = catalog.get_movie(447301)
    second = catalog.get_movie(447301)

    assert first["title"] == "Начало"
    assert "cachedAt" in first
    assert first == second
    assert origin.names() == ["fetch_movie"]
    assert store.get(447301) == first


def test_partial_record_is_enriched_from_origin(store, origin):
    store.upsert_if_absent([listing_record(5, title="Partial")])
    origin.details[5] = detail_record(5, title="Full")

    movie = _catalog(store, origin).get_movie(5)

    assert movie["title"] == "Full"
    assert store.get(5)["description"] == "A full description."


def test_origin_failure_returns_partial_record(store, origin):
    store.upsert_if_absent([listing_record(5, title="Partial")])

    movie = _catalog(store, origin).get_movie(5)

    assert movie["title"] == "Partial"
    assert origin.names() == ["fetch_movie"]


def test_origin_failure_without_cache_returns_stub(store, origin):
    catalog = _catalog(store, origin)

    movie = catalog.get_movie(447301)

    assert movie == {"id": 447301, "title": "Фильм", "streamUrl": "/watch/447301"}
    assert not catalog.is_resolved(movie)
    assert store.count() == 0


def test_unexpected_origin_exception_degrades_to_stub(store, origin, monkeypatch):
    def _boom(_movie_id):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(origin, "fetch_movie", _boom)
    assert _catalog(store, origin).get_movie(9)["title"] == "Фильм"


# ============================================================
# Búsqueda
# ============================================================


def test_search_upserts_only_absent_records(store, origin):
    store.upsert(detail_record(1, title="Enriched"))
    origin.search_page = OriginPage(movies=[listing_record(1, title="From search"), listing_record(2)])

    movies = _catalog(store, origin).search("movie")

    assert [m["id"] for m in movies] == [1, 2]
    assert store.get(1)["title"] == "Enriched"
    assert store.get(2) is not None


def test_search_limits_results(store, origin):
    origin.search_page = OriginPage(movies=[listing_record(i) for i in range(1, 31)])
    assert len(_catalog(store, origin).search("x")) == 20


def test_search_failure_returns_empty_list(store, origin):
    store.upsert(detail_record(1))
    assert _catalog(store, origin).search("movie") == []


# ============================================================
# Listados
# ============================================================


def test_top_from_origin_uses_reported_total_pages(store, origin):
    origin.collections["TOP_POPULAR_MOVIES"] = OriginPage(movies=[listing_record(1)], total_pages=3)

    result = _catalog(store, origin).top(2).to_dict()

    assert result == {
        "success": True,
        "movies": [listing_record(1)],
        "page": 2,
        "totalPages": 3,
        "hasMore": True,
    }
    assert store.count() == 1


def test_top_default_total_when_origin_omits_it(store, origin):
    origin.collections["TOP_POPULAR_MOVIES"] = OriginPage(movies=[], total_pages=None)
    result = _catalog(store, origin).top(20)
    assert result.total_pages == 20
    assert result.has_more is False


def test_top_fallback_paginates_cache_with_same_envelope(store, origin):
    store.upsert_if_absent([listing_record(i) for i in range(1, 46)])

    page1 = _catalog(store, origin).top(1).to_dict()
    page3 = _catalog(store, origin).top(3).to_dict()

    assert set(page1) == {"success", "movies", "page", "totalPages", "hasMore", "source"}
    assert page1["source"] == "cache"
    assert page1["totalPages"] == 3
    assert len(page1["movies"]) == 20
    assert page1["hasMore"] is True
    assert [m["id"] for m in page3["movies"]] == [41, 42, 43, 44, 45]
    assert page3["hasMore"] is False


def test_fallback_with_empty_cache_still_reports_one_page(store, origin):
    result = _catalog(store, origin).top(1)
    assert result.movies == []
    assert result.total_pages == 1
    assert result.has_more is False


def test_genre_rejects_unknown_tag(store, origin):
    with pytest.raises(UnknownGenreError):
        _catalog(store, origin).genre("western")
    assert origin.calls == []


def test_genre_searches_first_keyword(store, origin):
    origin.search_page = OriginPage(movies=[listing_record(1, genres=["боевик"])], total_pages=4)

    result = _catalog(store, origin).genre("Action").to_dict()

    assert origin.calls == [("search", ("боевик", 1))]
    assert result["genre"] == "action"
    assert result["totalPages"] == 4


def test_genre_fallback_filters_cache_by_keywords(store, origin):
    store.upsert_if_absent(
        [
            listing_record(1, genres=["Боевик", "триллер"]),
            listing_record(2, genres=["комедия"]),
            listing_record(3, genres=["экшн"]),
        ]
    )

    result = _catalog(store, origin).genre("action").to_dict()

    assert [m["id"] for m in result["movies"]] == [1, 3]
    assert result["source"] == "cache"
    assert result["genre"] == "action"


def test_new_releases_paginates_premieres(store, origin):
    origin.premiere_list = [listing_record(i, year=2024) for i in range(1, 26)]
    clock = ManualClock(datetime(2024, 5, 10, tzinfo=timezone.utc))

    result = _catalog(store, origin, clock).new_releases(2)

    assert origin.calls[0] == ("premieres", (2024, "MAY"))
    assert [m["id"] for m in result.movies] == [21, 22, 23, 24, 25]
    assert result.total_pages == 2
    assert result.has_more is False
    assert store.count() == 5


def test_new_releases_falls_back_to_top_await(store, origin):
    origin.premiere_list = []
    origin.collections["TOP_AWAIT"] = OriginPage(movies=[listing_record(7)], total_pages=None)

    result = _catalog(store, origin).new_releases(1)

    assert origin.names() == ["premieres", "collection"]
    assert result.total_pages == 10
    assert result.source == "origin"


def test_new_releases_cache_fallback_is_recent_and_newest_first(store, origin):
    store.upsert_if_absent(
        [listing_record(1, year=2020), listing_record(2, year=2023), listing_record(3, year=2024), listing_record(4, year=2022)]
    )
    clock = ManualClock(datetime(2024, 5, 10, tzinfo=timezone.utc))

    result = _catalog(store, origin, clock).new_releases(1)

    assert [m["id"] for m in result.movies] == [3, 2, 4]
    assert result.source == "cache"


def test_series_keeps_only_series_from_origin(store, origin):
    origin.collections["TOP_POPULAR_ALL"] = OriginPage(
        movies=[listing_record(1, type="series"), listing_record(2, type="movie")], total_pages=2
    )

    result = _catalog(store, origin).series(1)

    assert [m["id"] for m in result.movies] == [1]
    assert store.get(2) is None


def test_series_fallback(store, origin):
    store.upsert_if_absent([listing_record(1, type="series"), listing_record(2)])
    result = _catalog(store, origin).series(1)
    assert [m["id"] for m in result.movies] == [1]


def test_films_echoes_filters(store, origin):
    origin.films_page = OriginPage(movies=[listing_record(1)], total_pages=None)
    filters = FilmFilters.build(year="2010", sort="YEAR")

    result = _catalog(store, origin).films(filters, 1).to_dict()

    assert result["filters"] == {"year": "2010", "genre": "", "country": "", "sort": "YEAR"}
    assert result["totalPages"] == 5


def test_films_fallback_filters_and_sorts_descending(store, origin):
    store.upsert_if_absent(
        [
            listing_record(1, rating=6.0),
            listing_record(2, rating=9.0),
            listing_record(3, rating=7.5, countries=["Франция"]),
            listing_record(4, rating=8.0),
        ]
    )
    filters = FilmFilters.build(country="США")

    result = _catalog(store, origin).films(filters, 1).to_dict()

    assert [m["id"] for m in result["movies"]] == [2, 4, 1]
    assert result["source"] == "cache"


# ============================================================
# Sólo caché
# ============================================================


def test_collections_and_stats_read_cache_only(store, origin):
    store.upsert_if_absent(
        [
            listing_record(1, rating=8.5, year=1995),
            listing_record(2, rating=6.0, year=2023),
            listing_record(3, rating=9.1, year=2015),
        ]
    )
    catalog = _catalog(store, origin, ManualClock(datetime(2024, 5, 10, tzinfo=timezone.utc)))

    collections = catalog.collections()
    stats = catalog.stats()

    assert [m["id"] for m in collections["popular"]] == [1, 3]
    assert [m["id"] for m in collections["new"]] == [2]
    assert [m["id"] for m in collections["classic"]] == [1]
    assert stats["totalMovies"] == 3
    assert stats["lastUpdate"] is not None
    assert origin.calls == []


def test_paginate_local_slices_pages():
    records = [listing_record(i) for i in range(1, 22)]
    page = paginate_local(records, 2)
    assert [m["id"] for m in page.movies] == [21]
    assert page.total_pages == 2
    assert page.has_more is False


def test_warm_up_fetches_popular_and_enriches_partials(store, origin):
    store.upsert(detail_record(10))
    store.upsert_if_absent([listing_record(20), listing_record(21)])
    origin.details[11] = detail_record(11)
    origin.details[20] = detail_record(20)

    completed = _catalog(store, origin).warm_up(popular_ids=(10, 11), enrich_limit=5)

    assert completed == 2
    fetched = [args[0] for name, args in origin.calls if name == "fetch_movie"]
    assert fetched == [11, 20, 21]
    assert store.get(20)["description"] == "A full description."


# ============================================================
# Escritura fallida en movies.json
# ============================================================


@pytest.fixture()
def unwritable_store(tmp_path, clock) -> MovieStore:
    # El directorio padre es un fichero normal => cualquier escritura falla
    blocked = tmp_path / "blocked"
    blocked.write_text("not a directory", encoding="utf-8")
    return MovieStore(blocked / "movies.json", clock=clock)


def test_detail_is_served_when_store_write_fails(unwritable_store, origin):
    origin.details[447301] = detail_record(447301, title="Начало")
    catalog = _catalog(unwritable_store, origin)
    before = metrics.snapshot()["store_write_failures_total"]

    movie = catalog.get_movie(447301)

    assert movie["title"] == "Начало"
    assert "cachedAt" not in movie
    assert catalog.is_resolved(movie) is True
    assert unwritable_store.count() == 0
    assert metrics.snapshot()["store_write_failures_total"] == before + 1


def test_listings_are_served_when_store_write_fails(unwritable_store, origin):
    origin.collections["TOP_POPULAR_MOVIES"] = OriginPage(movies=[listing_record(1), listing_record(2)], total_pages=4)
    origin.search_page = OriginPage(movies=[listing_record(3)], total_pages=1)
    catalog = _catalog(unwritable_store, origin)
    before = metrics.snapshot()["store_write_failures_total"]

    top = catalog.top(1)
    found = catalog.search("matrix")

    assert top.source == "origin"
    assert [m["id"] for m in top.movies] == [1, 2]
    assert top.total_pages == 4
    assert [m["id"] for m in found] == [3]
    assert metrics.snapshot()["store_write_failures_total"] == before + 2
