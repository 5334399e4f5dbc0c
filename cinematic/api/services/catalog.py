from __future__ import annotations

"""
cinematic/api/services/catalog.py

Cache Orchestrator: decide por request si se sirve desde movies.json o si hay
que ir al origen, y reconcilia ambos.

Reglas
------
- Detalle: registro completo (con descripción) => caché, sin red.
  Si no, origen; éxito => upsert (pisa el parcial). Fallo => parcial o stub.
  Nunca lanza.
- Búsqueda: siempre origen (la relevancia depende de la query);
  upsert-if-absent; fallo => lista vacía.
- Listados: origen paginado; upsert-if-absent; fallo => paginación sobre el
  snapshot local con los mismos criterios y `source="cache"`.
  Ambos caminos devuelven el mismo sobre (movies/page/totalPages/hasMore).
- Sin caducidad: un registro completo no se vuelve a pedir nunca.
"""

import logging
import math
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Final, Literal

from cinematic.api.services import metrics
from cinematic.api.services.movie_store import MovieStore
from cinematic.api.services.origin import OriginClient, OriginPage
from cinematic.api.services.records import MovieRecord, is_complete, stub_record, utc_now
from cinematic.api.services.taxonomy import GENRE_KEYWORDS, FilmFilters, matches_genre

_logger = logging.getLogger("cinematic.catalog")

PER_PAGE: Final[int] = 20
SEARCH_LIMIT: Final[int] = 20
COLLECTION_LIMIT: Final[int] = 12
NEW_RELEASE_WINDOW_YEARS: Final[int] = 2
ENRICH_LIMIT: Final[int] = 50

# totalPages cuando el origen no lo informa
DEFAULT_TOTAL_TOP: Final[int] = 20
DEFAULT_TOTAL_GENRE: Final[int] = 10
DEFAULT_TOTAL_NEW: Final[int] = 10
DEFAULT_TOTAL_SERIES: Final[int] = 10
DEFAULT_TOTAL_FILMS: Final[int] = 5

# Precarga al arrancar (ids del origen)
POPULAR_IDS: Final[tuple[int, ...]] = (
    447301,
    258687,
    526875,
    1143242,
    435,
    329,
    3498,
    41520,
    32898,
    342,
    519,
    301,
)

Source = Literal["origin", "cache"]


class UnknownGenreError(ValueError):
    pass


@dataclass
class ListingPage:
    movies: list[MovieRecord]
    page: int
    total_pages: int
    has_more: bool
    source: Source = "origin"
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "success": True,
            "movies": self.movies,
            "page": self.page,
            "totalPages": self.total_pages,
            "hasMore": self.has_more,
        }
        out.update(self.extra)
        if self.source == "cache":
            out["source"] = "cache"
        return out


def _page_number(page: int | None) -> int:
    try:
        return max(1, int(page or 1))
    except (TypeError, ValueError):
        return 1


def paginate_local(records: Sequence[MovieRecord], page: int, *, extra: dict[str, Any] | None = None) -> ListingPage:
    """Paginación sobre el snapshot local; mismo sobre que la del origen."""
    start = (page - 1) * PER_PAGE
    total = len(records)
    return ListingPage(
        movies=list(records[start : start + PER_PAGE]),
        page=page,
        total_pages=max(1, math.ceil(total / PER_PAGE)),
        has_more=start + PER_PAGE < total,
        source="cache",
        extra=dict(extra or {}),
    )


class Catalog:
    def __init__(
        self,
        store: MovieStore,
        origin: OriginClient,
        *,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._origin = origin
        self._clock = clock
        self._sleep = sleep

    @property
    def store(self) -> MovieStore:
        return self._store

    # ---------------- detalle ----------------

    def get_movie(self, movie_id: int) -> MovieRecord:
        cached = self._store.get(movie_id)
        if is_complete(cached):
            metrics.inc("catalog_cache_hit_total", 1)
            _logger.debug("movie %s served from local cache", movie_id)
            return cached  # type: ignore[return-value]

        metrics.inc("catalog_cache_miss_total", 1)
        _logger.info("movie %s not complete in cache, fetching from origin", movie_id)
        try:
            fetched = self._origin.fetch_movie(movie_id)
        except Exception:
            _logger.exception("unexpected error fetching movie %s", movie_id)
            fetched = None

        if fetched is not None:
            try:
                stored = self._store.upsert(fetched)
            except OSError as exc:
                # Lo ya traído del origen se sirve igual
                _logger.warning("movie %s fetched but not saved: %r", movie_id, exc)
                metrics.inc("store_write_failures_total", 1)
                return fetched
            _logger.info("movie %s saved to local cache (complete=%s)", movie_id, is_complete(stored))
            return stored

        metrics.inc("catalog_fallback_total", 1)
        if cached is not None:
            return cached
        return stub_record(movie_id)

    def is_resolved(self, movie: MovieRecord) -> bool:
        """True si el registro viene de caché u origen (no es el stub)."""
        return bool(movie.get("cachedAt")) or is_complete(movie)

    # ---------------- búsqueda ----------------

    def search(self, query: str) -> list[MovieRecord]:
        page = self._origin.search(query, page=1)
        if page is None:
            return []
        movies = page.movies[:SEARCH_LIMIT]
        self._remember(movies)
        return movies

    # ---------------- listados ----------------

    def _remember(self, movies: Iterable[MovieRecord]) -> None:
        try:
            inserted = self._store.upsert_if_absent(movies)
        except OSError as exc:
            _logger.warning("listing not cached: %r", exc)
            metrics.inc("store_write_failures_total", 1)
            return
        if inserted:
            _logger.debug("%d new movies cached from listing", inserted)

    def _from_origin(
        self,
        result: OriginPage,
        page: int,
        *,
        default_total: int,
        extra: dict[str, Any] | None = None,
    ) -> ListingPage:
        self._remember(result.movies)
        total = result.total_pages or default_total
        return ListingPage(
            movies=result.movies,
            page=page,
            total_pages=total,
            has_more=page < total,
            extra=dict(extra or {}),
        )

    def _fallback(self, what: str, records: Sequence[MovieRecord], page: int, *, extra: dict[str, Any] | None = None) -> ListingPage:
        metrics.inc("catalog_fallback_total", 1)
        _logger.info("%s: origin unavailable, paginating local cache (%d records)", what, len(records))
        return paginate_local(records, page, extra=extra)

    def top(self, page: int = 1) -> ListingPage:
        page = _page_number(page)
        result = self._origin.collection("TOP_POPULAR_MOVIES", page=page)
        if result is not None:
            return self._from_origin(result, page, default_total=DEFAULT_TOTAL_TOP)
        return self._fallback("top", self._store.all(), page)

    def genre(self, genre: str, page: int = 1) -> ListingPage:
        tag = (genre or "").strip().lower()
        keywords = GENRE_KEYWORDS.get(tag)
        if not keywords:
            raise UnknownGenreError(tag)

        page = _page_number(page)
        extra = {"genre": tag}
        result = self._origin.search(keywords[0], page=page)
        if result is not None:
            return self._from_origin(result, page, default_total=DEFAULT_TOTAL_GENRE, extra=extra)

        local = [m for m in self._store.all() if matches_genre(m, keywords)]
        return self._fallback("genre", local, page, extra=extra)

    def new_releases(self, page: int = 1, *, year: int | None = None, month: str | None = None) -> ListingPage:
        page = _page_number(page)
        now = self._clock()
        year_v = year or now.year
        month_v = (month or now.strftime("%B")).strip().upper()

        premieres = self._origin.premieres(year=year_v, month=month_v)
        if premieres:
            # El endpoint de estrenos no pagina: se pagina aquí
            start = (page - 1) * PER_PAGE
            chunk = premieres[start : start + PER_PAGE]
            self._remember(chunk)
            return ListingPage(
                movies=chunk,
                page=page,
                total_pages=max(1, math.ceil(len(premieres) / PER_PAGE)),
                has_more=start + PER_PAGE < len(premieres),
            )

        result = self._origin.collection("TOP_AWAIT", page=page)
        if result is not None:
            return self._from_origin(result, page, default_total=DEFAULT_TOTAL_NEW)

        min_year = now.year - NEW_RELEASE_WINDOW_YEARS
        local = [m for m in self._store.all() if (m.get("year") or 0) >= min_year]
        local.sort(key=lambda m: m.get("year") or 0, reverse=True)
        return self._fallback("new", local, page)

    def series(self, page: int = 1) -> ListingPage:
        page = _page_number(page)
        result = self._origin.collection("TOP_POPULAR_ALL", page=page)
        if result is not None:
            only_series = [m for m in result.movies if m.get("type") == "series"]
            return self._from_origin(
                OriginPage(movies=only_series, total_pages=result.total_pages),
                page,
                default_total=DEFAULT_TOTAL_SERIES,
            )

        local = [m for m in self._store.all() if m.get("type") == "series"]
        return self._fallback("series", local, page)

    def films(self, filters: FilmFilters, page: int = 1) -> ListingPage:
        page = _page_number(page)
        extra = {"filters": filters.as_dict()}
        _logger.debug("films filter %s page=%d", filters, page)

        result = self._origin.filter_films(filters, page=page)
        if result is not None:
            return self._from_origin(result, page, default_total=DEFAULT_TOTAL_FILMS, extra=extra)

        local = [m for m in self._store.all() if filters.matches(m)]
        local.sort(key=filters.sort_key, reverse=True)
        return self._fallback("films", local, page, extra=extra)

    # ---------------- sólo caché ----------------

    def collections(self) -> dict[str, list[MovieRecord]]:
        movies = self._store.all()
        min_year = self._clock().year - NEW_RELEASE_WINDOW_YEARS
        return {
            "popular": [m for m in movies if (m.get("rating") or 0) >= 8][:COLLECTION_LIMIT],
            "new": [m for m in movies if (m.get("year") or 0) >= min_year][:COLLECTION_LIMIT],
            "classic": [m for m in movies if 0 < (m.get("year") or 0) < 2000][:COLLECTION_LIMIT],
        }

    def stats(self) -> dict[str, Any]:
        return {"totalMovies": self._store.count(), "lastUpdate": self._store.last_update()}

    # ---------------- arranque ----------------

    def warm_up(self, *, popular_ids: Iterable[int] = POPULAR_IDS, enrich_limit: int = ENRICH_LIMIT, delay_s: float = 0.35) -> int:
        """
        Precarga populares y enriquece registros sin descripción.
        Devuelve cuántos registros quedaron completos tras la pasada.
        """
        completed = 0
        for movie_id in popular_ids:
            if is_complete(self._store.get(movie_id)):
                continue
            if is_complete(self.get_movie(movie_id)):
                completed += 1
            self._sleep(delay_s)

        pending = [m["id"] for m in self._store.all() if not is_complete(m) and m.get("id") is not None]
        if not pending:
            _logger.info("warm-up: every cached movie already has a description")
            return completed

        _logger.info("warm-up: enriching %d movies with descriptions", min(len(pending), enrich_limit))
        for movie_id in pending[: max(0, enrich_limit)]:
            if is_complete(self.get_movie(movie_id)):
                completed += 1
            self._sleep(delay_s)

        _logger.info("warm-up finished: %d movies completed", completed)
        return completed
