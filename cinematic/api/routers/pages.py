# páginas HTML + sitemap.xml
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import FileResponse, HTMLResponse

from cinematic.api import paths
from cinematic.api.caching.http_cache import maybe_not_modified, stat_or_none
from cinematic.api.deps import get_catalog, get_settings
from cinematic.api.routers.movies import parse_movie_id
from cinematic.api.services.catalog import Catalog
from cinematic.api.services.seo import build_sitemap, load_template, render_watch_page
from cinematic.api.settings import Settings

router = APIRouter()

_logger = logging.getLogger("cinematic.pages")


def _page(name: str) -> FileResponse:
    return FileResponse(paths.STATIC_DIR / name, media_type="text/html")


def _watch_html(raw_id: str, catalog: Catalog, settings: Settings) -> HTMLResponse:
    try:
        template = load_template(paths.WATCH_TEMPLATE_PATH)
    except OSError as exc:
        _logger.error("watch template unreadable: %r", exc)
        raise HTTPException(status_code=500, detail="Error loading page")

    movie_id = parse_movie_id(raw_id)
    movie = catalog.get_movie(movie_id) if movie_id is not None else None
    if movie is not None and not catalog.is_resolved(movie):
        movie = None

    html = render_watch_page(
        template,
        movie_id=raw_id,
        movie=movie,
        site_url=settings.site_url,
    )
    return HTMLResponse(content=html)


@router.get("/watch/{movie_id}", response_class=HTMLResponse)
def watch(
    movie_id: str,
    catalog: Catalog = Depends(get_catalog),
    settings: Settings = Depends(get_settings),
) -> HTMLResponse:
    return _watch_html(movie_id, catalog, settings)


@router.get("/movie/{movie_id}", response_class=HTMLResponse)
def movie_page(
    movie_id: str,
    catalog: Catalog = Depends(get_catalog),
    settings: Settings = Depends(get_settings),
) -> HTMLResponse:
    return _watch_html(movie_id, catalog, settings)


@router.get("/sitemap.xml")
def sitemap(
    request: Request,
    catalog: Catalog = Depends(get_catalog),
    settings: Settings = Depends(get_settings),
) -> Response:
    # Las URLs estáticas llevan lastmod del día => el día entra en el ETag
    today = datetime.now(timezone.utc).date()
    not_modified, validators = maybe_not_modified(
        request, stat_or_none(catalog.store.path), salt=today.isoformat()
    )
    if not_modified:
        return Response(status_code=304, headers=validators)

    body = build_sitemap(catalog.store.all(), site_url=settings.site_url, today=today)
    return Response(content=body, media_type="application/xml", headers=validators)


@router.get("/", include_in_schema=False)
def index() -> FileResponse:
    return _page("index.html")


@router.get("/movies", include_in_schema=False)
@router.get("/series", include_in_schema=False)
@router.get("/new", include_in_schema=False)
def listing_page() -> FileResponse:
    return _page("category.html")


@router.get("/category/{name}", include_in_schema=False)
def category_page(name: str) -> FileResponse:
    return _page("category.html")


@router.get("/admin", include_in_schema=False)
def admin_page() -> FileResponse:
    return _page("admin.html")
