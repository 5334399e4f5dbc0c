from __future__ import annotations

from cinematic.api import paths
from cinematic.api.services.auth import AdminAuth
from cinematic.api.services.catalog import Catalog
from cinematic.api.services.movie_store import MovieStore
from cinematic.api.services.origin import OriginClient
from cinematic.api.services.presence import PresenceTracker
from cinematic.api.services.sites import SiteRegistry
from cinematic.api.settings import Settings

_SETTINGS = Settings.from_env()
_MOVIE_STORE = MovieStore(paths.MOVIES_DB_PATH)
_ORIGIN = OriginClient(_SETTINGS)
_CATALOG = Catalog(_MOVIE_STORE, _ORIGIN)
_PRESENCE = PresenceTracker(
    timeout_s=_SETTINGS.presence_timeout_seconds,
    sweep_interval_s=_SETTINGS.presence_sweep_interval_seconds,
)
_SITES = SiteRegistry(
    paths.SITES_DB_PATH,
    offline_after_s=_SETTINGS.site_offline_after_seconds,
    sweep_interval_s=_SETTINGS.site_sweep_interval_seconds,
)
_ADMIN_AUTH = AdminAuth(_SETTINGS)


def get_settings() -> Settings:
    return _SETTINGS


def get_movie_store() -> MovieStore:
    return _MOVIE_STORE


def get_origin() -> OriginClient:
    return _ORIGIN


def get_catalog() -> Catalog:
    return _CATALOG


def get_presence() -> PresenceTracker:
    return _PRESENCE


def get_site_registry() -> SiteRegistry:
    return _SITES


def get_admin_auth() -> AdminAuth:
    return _ADMIN_AUTH
