from __future__ import annotations

import re
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from cinematic.api.deps import get_catalog
from cinematic.api.services.catalog import Catalog, UnknownGenreError
from cinematic.api.services.taxonomy import FilmFilters

router = APIRouter(prefix="/api")

_ID_RE = re.compile(r"(\d+)")


def parse_movie_id(raw: str) -> int | None:
    """Primer bloque de dígitos del segmento (admite slugs tipo `447301-inception`)."""
    m = _ID_RE.search(raw or "")
    return int(m.group(1)) if m else None


@router.get("/movie/{movie_id}")
def movie_detail(movie_id: str, catalog: Catalog = Depends(get_catalog)) -> dict[str, Any]:
    mid = parse_movie_id(movie_id)
    if mid is None:
        raise HTTPException(status_code=400, detail="Invalid ID")
    return {"success": True, "movie": catalog.get_movie(mid)}


@router.get("/search")
def search(
    q: str | None = Query(None, description="Texto a buscar"),
    catalog: Catalog = Depends(get_catalog),
) -> dict[str, Any]:
    query = (q or "").strip()
    if not query:
        raise HTTPException(status_code=400, detail="Query required")
    return {"success": True, "movies": catalog.search(query)}


@router.get("/top")
def top(page: int = Query(1, ge=1), catalog: Catalog = Depends(get_catalog)) -> dict[str, Any]:
    return catalog.top(page).to_dict()


@router.get("/genre/{genre}")
def by_genre(genre: str, page: int = Query(1, ge=1), catalog: Catalog = Depends(get_catalog)) -> dict[str, Any]:
    try:
        return catalog.genre(genre, page).to_dict()
    except UnknownGenreError:
        raise HTTPException(status_code=400, detail="Unknown genre")


@router.get("/new")
def new_releases(
    page: int = Query(1, ge=1),
    year: int | None = Query(None, ge=1900, le=2100),
    month: str | None = Query(None, description="Mes en inglés (JANUARY...)"),
    catalog: Catalog = Depends(get_catalog),
) -> dict[str, Any]:
    return catalog.new_releases(page, year=year, month=month).to_dict()


@router.get("/series")
def series(page: int = Query(1, ge=1), catalog: Catalog = Depends(get_catalog)) -> dict[str, Any]:
    return catalog.series(page).to_dict()


@router.get("/films")
def films(
    page: int = Query(1, ge=1),
    year: str | None = Query(None, description="2020 | 2010-2019 | classic"),
    genre: str | None = Query(None),
    country: str | None = Query(None),
    sort: str | None = Query(None, description="RATING | NUM_VOTE | YEAR"),
    type: str | None = Query(None, description="ALL | FILM | TV_SERIES"),
    catalog: Catalog = Depends(get_catalog),
) -> dict[str, Any]:
    filters = FilmFilters.build(year=year, genre=genre, country=country, sort=sort, type=type)
    return catalog.films(filters, page).to_dict()


@router.get("/collections")
def collections(catalog: Catalog = Depends(get_catalog)) -> dict[str, Any]:
    return {"success": True, "collections": catalog.collections()}


@router.get("/stats")
def stats(catalog: Catalog = Depends(get_catalog)) -> dict[str, Any]:
    return catalog.stats()
