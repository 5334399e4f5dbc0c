# tipos persistidos (movies.json / sites.json) + helpers comunes
from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, TypedDict

MovieType = Literal["movie", "series"]
SiteStatus = Literal["online", "offline"]

PLACEHOLDER_TITLE = "Фильм"


class MovieRecord(TypedDict, total=False):
    """
    Registro canónico de película tal y como se guarda en movies.json.

    Las claves van en camelCase porque son el contrato JSON con el front.
    Un registro está "completo" sólo si tiene `description` no vacía.
    """

    id: int
    title: str
    originalTitle: str | None
    year: int | None
    description: str
    poster: str | None
    posterPreview: str | None
    backdrop: str | None
    rating: float | None
    ratingImdb: float | None
    votes: int | None
    duration: int | None
    genres: list[str]
    countries: list[str]
    ageRating: str | None
    type: MovieType
    slogan: str | None
    premiereRu: str | None
    streamUrl: str
    cachedAt: str


class SiteStats(TypedDict):
    onlineNow: int
    viewsToday: int
    viewsTotal: int


class MirrorSite(TypedDict):
    siteId: str
    name: str
    domain: str
    apiKey: str
    status: SiteStatus
    lastHeartbeat: str | None
    stats: SiteStats
    statsDay: str
    createdAt: str


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat()


def parse_iso(value: object) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def stream_url(movie_id: int) -> str:
    return f"/watch/{movie_id}"


def is_complete(record: MovieRecord | None) -> bool:
    if not record:
        return False
    desc = record.get("description")
    return isinstance(desc, str) and bool(desc.strip())


def stub_record(movie_id: int) -> MovieRecord:
    """Registro mínimo cuando no hay caché ni origen disponible."""
    return {"id": movie_id, "title": PLACEHOLDER_TITLE, "streamUrl": stream_url(movie_id)}
