from __future__ import annotations

import logging
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles

from cinematic.api import paths
from cinematic.api.deps import get_catalog, get_origin, get_presence, get_settings, get_site_registry
from cinematic.api.logging_config import configure_logging
from cinematic.api.middleware import build_exception_handler, build_request_id_middleware
from cinematic.api.routers.admin import router as admin_router
from cinematic.api.routers.health import router as health_router
from cinematic.api.routers.movies import router as movies_router
from cinematic.api.routers.online import router as online_router
from cinematic.api.routers.pages import router as pages_router

_settings = get_settings()
_logger = logging.getLogger("cinematic.app")


def _start_warm_up() -> None:
    catalog = get_catalog()
    delay = _settings.warmup_delay_seconds

    def run() -> None:
        try:
            catalog.warm_up(delay_s=delay)
        except Exception:
            _logger.exception("warm-up failed")

    threading.Thread(target=run, daemon=True, name="catalog-warm-up").start()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    configure_logging(_settings)
    paths.DATA_DIR.mkdir(parents=True, exist_ok=True)

    presence = get_presence()
    sites = get_site_registry()
    presence.start()
    sites.start()
    if _settings.warmup_enabled:
        _start_warm_up()
    _logger.info("cinematic started (data dir: %s)", paths.DATA_DIR)
    try:
        yield
    finally:
        presence.stop()
        sites.stop()
        get_origin().close()
        _logger.info("cinematic stopped")


def create_app() -> FastAPI:
    app = FastAPI(title="Cinematic", version="1.0.0", lifespan=lifespan)

    app.add_middleware(GZipMiddleware, minimum_size=max(0, _settings.gzip_min_size))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_settings.cors_allow_origins(),
        allow_credentials=_settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.middleware("http")(build_request_id_middleware(_settings))
    app.add_exception_handler(Exception, build_exception_handler(_settings))

    app.include_router(health_router)
    app.include_router(movies_router)
    app.include_router(online_router)
    app.include_router(admin_router)
    app.include_router(pages_router)

    app.mount("/static", StaticFiles(directory=str(paths.STATIC_DIR)), name="static")

    return app


app = create_app()
