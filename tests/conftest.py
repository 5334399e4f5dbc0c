from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from cinematic.api.services.movie_store import MovieStore
from cinematic.api.services.origin import OriginPage
from cinematic.api.services.records import MovieRecord
from cinematic.api.services.taxonomy import FilmFilters
from cinematic.api.settings import Settings


def make_settings(**overrides: Any) -> Settings:
    base = Settings(
        log_level="INFO",
        cors_origins_raw="*",
        cors_allow_credentials=False,
        gzip_min_size=0,
        site_url="https://cinematic.test",
        origin_base_url="https://origin.test/api/v2.2",
        origin_api_key="test-key",
        origin_http_timeout_seconds=3.0,
        origin_http_retry_total=0,
        origin_http_user_agent="Cinematic-Test/1.0",
        presence_timeout_seconds=60.0,
        presence_sweep_interval_seconds=30.0,
        site_offline_after_seconds=120.0,
        site_sweep_interval_seconds=60.0,
        admin_username="admin",
        admin_password="secret",
        admin_token_secret="test-secret",
        admin_token_ttl_seconds=3600,
        warmup_enabled=False,
        warmup_delay_seconds=0.0,
    )
    return replace(base, **overrides)


class ManualClock:
    """Reloj controlable: `clock()` devuelve el instante actual; `advance()` lo mueve."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


class MonotonicClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def detail_record(movie_id: int, **extra: Any) -> MovieRecord:
    rec: dict[str, Any] = {
        "id": movie_id,
        "title": f"Movie {movie_id}",
        "year": 2010,
        "description": "A full description.",
        "genres": ["драма"],
        "countries": ["США"],
        "type": "movie",
        "streamUrl": f"/watch/{movie_id}",
    }
    rec.update(extra)
    return rec  # type: ignore[return-value]


def listing_record(movie_id: int, **extra: Any) -> MovieRecord:
    rec: dict[str, Any] = {
        "id": movie_id,
        "title": f"Movie {movie_id}",
        "year": 2010,
        "genres": ["драма"],
        "countries": ["США"],
        "type": "movie",
        "streamUrl": f"/watch/{movie_id}",
    }
    rec.update(extra)
    return rec  # type: ignore[return-value]


@dataclass
class FakeOrigin:
    """
    Doble del OriginClient. `None` en cualquier respuesta simula fallo del origen.
    `calls` registra (método, args) en orden.
    """

    details: dict[int, MovieRecord] = field(default_factory=dict)
    search_page: OriginPage | None = None
    collections: dict[str, OriginPage | None] = field(default_factory=dict)
    premiere_list: list[MovieRecord] | None = None
    films_page: OriginPage | None = None
    enabled: bool = True
    calls: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)

    def fetch_movie(self, movie_id: int) -> MovieRecord | None:
        self.calls.append(("fetch_movie", (movie_id,)))
        rec = self.details.get(movie_id)
        return dict(rec) if rec is not None else None  # type: ignore[return-value]

    def search(self, keyword: str, *, page: int = 1) -> OriginPage | None:
        self.calls.append(("search", (keyword, page)))
        return self.search_page

    def collection(self, kind: str, *, page: int = 1) -> OriginPage | None:
        self.calls.append(("collection", (kind, page)))
        return self.collections.get(kind)

    def premieres(self, *, year: int, month: str) -> list[MovieRecord] | None:
        self.calls.append(("premieres", (year, month)))
        return self.premiere_list

    def filter_films(self, filters: FilmFilters, *, page: int = 1) -> OriginPage | None:
        self.calls.append(("filter_films", (filters, page)))
        return self.films_page

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def store(tmp_path, clock) -> MovieStore:
    return MovieStore(tmp_path / "movies.json", clock=clock)


@pytest.fixture()
def origin() -> FakeOrigin:
    return FakeOrigin()


@dataclass
class ApiHarness:
    client: Any
    store: MovieStore
    origin: FakeOrigin
    presence: Any
    presence_clock: MonotonicClock
    sites: Any
    auth: Any

    def admin_headers(self) -> dict[str, str]:
        token = self.auth.issue_token("admin")
        return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def api(tmp_path, monkeypatch, store, origin, clock) -> ApiHarness:
    """App completa con dependencias aisladas en tmp_path (sin lifespan: no arranca barridos)."""
    pytest.importorskip("httpx")
    from fastapi.testclient import TestClient

    import cinematic.api.deps as deps
    import cinematic.api.paths as paths
    from cinematic.api.app import create_app
    from cinematic.api.services.auth import AdminAuth
    from cinematic.api.services.catalog import Catalog
    from cinematic.api.services.presence import PresenceTracker
    from cinematic.api.services.sites import SiteRegistry

    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setattr(paths, "DATA_DIR", data_dir)

    settings = make_settings()
    catalog = Catalog(store, origin, clock=clock, sleep=lambda _s: None)
    presence_clock = MonotonicClock()
    presence = PresenceTracker(clock=presence_clock)
    sites = SiteRegistry(data_dir / "sites.json", clock=clock)
    auth = AdminAuth(settings)

    app = create_app()
    app.dependency_overrides[deps.get_settings] = lambda: settings
    app.dependency_overrides[deps.get_movie_store] = lambda: store
    app.dependency_overrides[deps.get_origin] = lambda: origin
    app.dependency_overrides[deps.get_catalog] = lambda: catalog
    app.dependency_overrides[deps.get_presence] = lambda: presence
    app.dependency_overrides[deps.get_site_registry] = lambda: sites
    app.dependency_overrides[deps.get_admin_auth] = lambda: auth

    return ApiHarness(
        client=TestClient(app),
        store=store,
        origin=origin,
        presence=presence,
        presence_clock=presence_clock,
        sites=sites,
        auth=auth,
    )
