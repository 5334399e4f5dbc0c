from __future__ import annotations

"""
cinematic/api/services/origin.py

Cliente del origen de metadatos (Kinopoisk unofficial API v2.2).

Política
--------
- Sesión requests compartida (pooling) + Retry de urllib3 configurable
  (por defecto 0 reintentos: el caller decide el fallback).
- Cualquier fallo es "soft": status no-2xx, JSON inválido, JSON que no es
  objeto o RequestException => se loguea, se cuenta y se devuelve None.
- Una función de mapeo explícita por forma de respuesta del origen
  (detalle, item de listado, estreno) que produce siempre un MovieRecord.
- Las URLs de póster "no-poster" del origen se anulan (None).
"""

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException
from urllib3.util.retry import Retry

from cinematic.api.services import metrics
from cinematic.api.services.records import PLACEHOLDER_TITLE, MovieRecord, MovieType, stream_url
from cinematic.api.services.taxonomy import FilmFilters
from cinematic.api.settings import Settings

_logger = logging.getLogger("cinematic.origin")

NO_POSTER_MARKER: Final[str] = "no-poster"
_SERIES_TYPES: Final[frozenset[str]] = frozenset({"TV_SERIES", "MINI_SERIES", "TV_SHOW"})


@dataclass
class OriginPage:
    movies: list[MovieRecord] = field(default_factory=list)
    total_pages: int | None = None


# ============================================================
# AUX: parseo defensivo
# ============================================================


def _safe_int(value: object) -> int | None:
    """Cast defensivo a int (None/ValueError/TypeError => None)."""
    try:
        if value is None or isinstance(value, bool):
            return None
        return int(value)  # type: ignore[arg-type]
    except (ValueError, TypeError):
        return None


def _safe_float(value: object) -> float | None:
    """Cast defensivo a float (None/ValueError/TypeError => None)."""
    try:
        if value is None or isinstance(value, bool):
            return None
        return float(value)  # type: ignore[arg-type]
    except (ValueError, TypeError):
        return None


def _str_or_none(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    s = value.strip()
    return s or None


def filter_poster(url: object) -> str | None:
    """Anula la imagen de relleno del origen para no pintarla como arte real."""
    s = _str_or_none(url)
    if s is None or NO_POSTER_MARKER in s:
        return None
    return s


def _names(items: object, key: str) -> list[str]:
    if not isinstance(items, list):
        return []
    out: list[str] = []
    for it in items:
        if isinstance(it, Mapping):
            v = _str_or_none(it.get(key))
            if v:
                out.append(v)
    return out


def _pick_rating(data: Mapping[str, object]) -> float | None:
    # Kinopoisk primero; IMDb sólo si no hay rating primario. Nunca se promedian.
    primary = _safe_float(data.get("ratingKinopoisk"))
    if primary is not None:
        return primary
    return _safe_float(data.get("ratingImdb"))


def _movie_type(raw: object) -> MovieType:
    return "series" if isinstance(raw, str) and raw.upper() in _SERIES_TYPES else "movie"


def _title(data: Mapping[str, object]) -> str:
    return (
        _str_or_none(data.get("nameRu"))
        or _str_or_none(data.get("nameOriginal"))
        or _str_or_none(data.get("nameEn"))
        or PLACEHOLDER_TITLE
    )


def _age_rating(raw: object) -> str | None:
    s = _str_or_none(raw)
    if s is None:
        return None
    return s.replace("age", "") or None


# ============================================================
# MAPEO: forma del origen -> MovieRecord
# ============================================================


def movie_from_detail(data: Mapping[str, object], movie_id: int) -> MovieRecord:
    """`GET films/{id}` -> registro completo (si el origen trae descripción)."""
    poster = filter_poster(data.get("posterUrl"))
    return {
        "id": movie_id,
        "title": _title(data),
        "originalTitle": _str_or_none(data.get("nameOriginal")) or _str_or_none(data.get("nameEn")),
        "year": _safe_int(data.get("year")),
        "description": _str_or_none(data.get("description")) or _str_or_none(data.get("shortDescription")) or "",
        "poster": poster,
        "posterPreview": filter_poster(data.get("posterUrlPreview")),
        "backdrop": filter_poster(data.get("coverUrl")) or poster,
        "rating": _pick_rating(data),
        "ratingImdb": _safe_float(data.get("ratingImdb")),
        "votes": _safe_int(data.get("ratingKinopoiskVoteCount")),
        "duration": _safe_int(data.get("filmLength")),
        "genres": _names(data.get("genres"), "genre"),
        "countries": _names(data.get("countries"), "country"),
        "ageRating": _age_rating(data.get("ratingAgeLimits")),
        "type": _movie_type(data.get("type")),
        "slogan": _str_or_none(data.get("slogan")),
        "streamUrl": stream_url(movie_id),
    }


def movie_from_listing_item(item: Mapping[str, object]) -> MovieRecord | None:
    """
    Item de búsqueda / colección / filtro -> registro parcial (sin descripción).
    Sin `kinopoiskId` no hay clave => None.
    """
    movie_id = _safe_int(item.get("kinopoiskId"))
    if movie_id is None:
        movie_id = _safe_int(item.get("filmId"))
    if movie_id is None:
        return None
    preview = filter_poster(item.get("posterUrlPreview"))
    return {
        "id": movie_id,
        "title": _title(item),
        "originalTitle": _str_or_none(item.get("nameOriginal")) or _str_or_none(item.get("nameEn")),
        "year": _safe_int(item.get("year")),
        "poster": preview or filter_poster(item.get("posterUrl")),
        "posterPreview": preview,
        "rating": _pick_rating(item),
        "ratingImdb": _safe_float(item.get("ratingImdb")),
        "genres": _names(item.get("genres"), "genre"),
        "countries": _names(item.get("countries"), "country"),
        "type": _movie_type(item.get("type")),
        "streamUrl": stream_url(movie_id),
    }


def movie_from_premiere(item: Mapping[str, object]) -> MovieRecord | None:
    """Item de `films/premieres` (trae duración y fecha de estreno, no rating)."""
    rec = movie_from_listing_item(item)
    if rec is None:
        return None
    rec["duration"] = _safe_int(item.get("duration"))
    rec["premiereRu"] = _str_or_none(item.get("premiereRu"))
    return rec


def _items(data: Mapping[str, object]) -> list[Mapping[str, object]]:
    raw = data.get("items")
    if not isinstance(raw, list):
        raw = data.get("films")
    if not isinstance(raw, list):
        return []
    return [it for it in raw if isinstance(it, Mapping)]


def _listing_page(data: Mapping[str, object]) -> OriginPage:
    movies = [m for m in (movie_from_listing_item(it) for it in _items(data)) if m is not None]
    total = _safe_int(data.get("totalPages")) or _safe_int(data.get("pagesCount"))
    return OriginPage(movies=movies, total_pages=total if total and total > 0 else None)


# ============================================================
# CLIENTE HTTP
# ============================================================


class OriginClient:
    """Fetcher del origen. Thread-safe (sesión lazy-init con lock)."""

    def __init__(self, settings: Settings, *, session: requests.Session | None = None) -> None:
        self._base_url = settings.origin_base_url.rstrip("/")
        self._api_key = settings.origin_api_key
        self._timeout = max(0.5, float(settings.origin_http_timeout_seconds))
        self._retry_total = max(0, min(10, int(settings.origin_http_retry_total)))
        self._user_agent = settings.origin_http_user_agent.strip() or "Cinematic/1.0"
        self._session = session
        self._session_lock = threading.Lock()
        self._missing_key_notice_shown = False

    @property
    def enabled(self) -> bool:
        return bool(self._api_key.strip())

    def _get_session(self) -> requests.Session:
        if self._session is not None:
            return self._session

        with self._session_lock:
            if self._session is not None:
                return self._session

            session = requests.Session()
            retries = Retry(
                total=self._retry_total,
                backoff_factor=0.5,
                status_forcelist=(429, 500, 502, 503, 504),
                allowed_methods=("GET",),
                raise_on_status=False,
                respect_retry_after_header=True,
            )
            adapter = HTTPAdapter(max_retries=retries, pool_connections=8, pool_maxsize=8)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
            session.headers.update(
                {
                    "User-Agent": self._user_agent,
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                }
            )
            self._session = session
            return session

    def _fail(self, what: str, detail: object) -> None:
        metrics.inc("origin_failures_total", 1)
        _logger.warning("origin %s failed: %s", what, detail)

    def get_json(self, path: str, params: Mapping[str, object] | None = None) -> dict[str, object] | None:
        """GET autenticado al origen. Devuelve el objeto JSON o None (fallo soft)."""
        if not self.enabled:
            if not self._missing_key_notice_shown:
                _logger.warning("ORIGIN_API_KEY not configured; serving from local cache only")
                self._missing_key_notice_shown = True
            return None

        url = f"{self._base_url}/{path.lstrip('/')}"
        req_params = {str(k): str(v) for k, v in (params or {}).items() if v is not None and v != ""}
        metrics.inc("origin_requests_total", 1)
        _logger.debug("origin GET %s %s", url, req_params)

        try:
            resp: Response = self._get_session().get(
                url,
                params=req_params,
                headers={"X-API-KEY": self._api_key},
                timeout=self._timeout,
            )
        except RequestException as exc:
            self._fail(path, repr(exc))
            return None

        if not (200 <= resp.status_code < 300):
            self._fail(path, f"status {resp.status_code}")
            return None

        try:
            data = resp.json()
        except ValueError as exc:
            self._fail(path, f"invalid JSON: {exc!r}")
            return None

        if not isinstance(data, dict):
            self._fail(path, "JSON is not an object")
            return None

        return data

    # ---------------- endpoints ----------------

    def fetch_movie(self, movie_id: int) -> MovieRecord | None:
        data = self.get_json(f"films/{movie_id}")
        return None if data is None else movie_from_detail(data, movie_id)

    def search(self, keyword: str, *, page: int = 1) -> OriginPage | None:
        data = self.get_json("films", {"keyword": keyword, "page": page})
        return None if data is None else _listing_page(data)

    def collection(self, kind: str, *, page: int = 1) -> OriginPage | None:
        data = self.get_json("films/collections", {"type": kind, "page": page})
        return None if data is None else _listing_page(data)

    def premieres(self, *, year: int, month: str) -> list[MovieRecord] | None:
        data = self.get_json("films/premieres", {"year": year, "month": month.upper()})
        if data is None:
            return None
        return [m for m in (movie_from_premiere(it) for it in _items(data)) if m is not None]

    def filter_films(self, filters: FilmFilters, *, page: int = 1) -> OriginPage | None:
        params: dict[str, object] = {"page": page, **filters.origin_params()}
        data = self.get_json("films", params)
        return None if data is None else _listing_page(data)

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
