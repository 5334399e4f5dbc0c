from __future__ import annotations

"""
cinematic/api/services/sites.py

Site Registry (panel admin): espejos registrados + sus estadísticas.

Modelo de acumulación
---------------------
Tanto heartbeat como stats reciben `views` como DELTA (vistas nuevas desde
el último envío) y lo suman a `viewsToday` y `viewsTotal`. `onlineNow` es
siempre absoluto (lo último que reporta el espejo). `viewsToday` se pone a
cero cuando cambia el día UTC (`statsDay`).
"""

import copy
import hmac
import logging
import secrets
import string
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, cast

from cinematic.api.services import metrics
from cinematic.api.services.periodic import PeriodicTask
from cinematic.api.services.records import MirrorSite, iso, parse_iso, utc_now
from cinematic.api.storage.json_file import JsonDocument

_logger = logging.getLogger("cinematic.sites")

_KEY_ALPHABET = string.ascii_lowercase + string.digits
_B36 = "0123456789abcdefghijklmnopqrstuvwxyz"

API_KEY_PREFIX = "ck_"
SITE_ID_PREFIX = "site_"
REDACTED_KEY_CHARS = 8


class SiteNotFoundError(LookupError):
    pass


class InvalidSiteKeyError(PermissionError):
    pass


def _base36(n: int) -> str:
    if n <= 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_B36[r])
    return "".join(reversed(out))


def generate_api_key() -> str:
    return API_KEY_PREFIX + "".join(secrets.choice(_KEY_ALPHABET) for _ in range(32))


def generate_site_id() -> str:
    suffix = "".join(secrets.choice(_KEY_ALPHABET) for _ in range(6))
    return SITE_ID_PREFIX + _base36(int(time.time() * 1000)) + suffix


def redact_key(api_key: str) -> str:
    return api_key[:REDACTED_KEY_CHARS] + "..."


def _empty_db() -> dict[str, Any]:
    return {"sites": {}}


def _sites_of(data: dict[str, Any]) -> dict[str, Any]:
    sites = data.get("sites")
    if not isinstance(sites, dict):
        sites = {}
        data["sites"] = sites
    return sites


def _as_count(value: object) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0


class SiteRegistry:
    def __init__(
        self,
        path: Path,
        *,
        offline_after_s: float = 120.0,
        sweep_interval_s: float = 60.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._doc = JsonDocument(path, empty=_empty_db)
        self._offline_after_s = float(offline_after_s)
        self._clock = clock
        self._sweeper = PeriodicTask("sites-sweep", self.sweep, sweep_interval_s)

    def _today(self) -> str:
        return self._clock().date().isoformat()

    def _roll_day(self, site: dict[str, Any]) -> None:
        today = self._today()
        if site.get("statsDay") != today:
            site["statsDay"] = today
            site.setdefault("stats", {})["viewsToday"] = 0

    # ---------------- admin ----------------

    def register(self, name: str, domain: str) -> MirrorSite:
        name_v = (name or "").strip()
        domain_v = (domain or "").strip()
        if not name_v or not domain_v:
            raise ValueError("Name and domain required")

        now = self._clock()
        site: MirrorSite = {
            "siteId": generate_site_id(),
            "name": name_v,
            "domain": domain_v,
            "apiKey": generate_api_key(),
            "status": "offline",
            "lastHeartbeat": None,
            "stats": {"onlineNow": 0, "viewsToday": 0, "viewsTotal": 0},
            "statsDay": now.date().isoformat(),
            "createdAt": iso(now),
        }
        with self._doc.mutate() as data:
            _sites_of(data)[site["siteId"]] = copy.deepcopy(site)
        _logger.info("site registered: %s (%s)", site["siteId"], domain_v)
        return site

    def list_sites(self) -> list[MirrorSite]:
        """Todos los sitios con la API key recortada."""
        out: list[MirrorSite] = []
        for site in _sites_of(self._doc.read()).values():
            if not isinstance(site, dict):
                continue
            site["apiKey"] = redact_key(str(site.get("apiKey") or ""))
            out.append(cast(MirrorSite, site))
        return out

    def get(self, site_id: str) -> MirrorSite:
        site = _sites_of(self._doc.read()).get(site_id)
        if not isinstance(site, dict):
            raise SiteNotFoundError(site_id)
        return cast(MirrorSite, site)

    def delete(self, site_id: str) -> None:
        with self._doc.mutate() as data:
            sites = _sites_of(data)
            if site_id not in sites:
                raise SiteNotFoundError(site_id)
            del sites[site_id]
        _logger.info("site deleted: %s", site_id)

    def aggregate(self) -> dict[str, int]:
        sites = [s for s in _sites_of(self._doc.read()).values() if isinstance(s, dict)]
        today = self._today()

        def stat(s: dict[str, Any], key: str) -> int:
            return _as_count((s.get("stats") or {}).get(key))

        return {
            "totalSites": len(sites),
            "onlineSites": sum(1 for s in sites if s.get("status") == "online"),
            "totalOnlineUsers": sum(stat(s, "onlineNow") for s in sites),
            "viewsToday": sum(stat(s, "viewsToday") for s in sites if s.get("statsDay") == today),
            "viewsTotal": sum(stat(s, "viewsTotal") for s in sites),
        }

    # ---------------- API de espejos ----------------

    def authenticate(self, site_id: str, api_key: str | None) -> MirrorSite:
        site = _sites_of(self._doc.read()).get(site_id)
        expected = str(site.get("apiKey") or "") if isinstance(site, dict) else ""
        if not expected or not api_key or not hmac.compare_digest(expected, api_key):
            raise InvalidSiteKeyError(site_id)
        return cast(MirrorSite, site)

    def heartbeat(self, site_id: str, *, online: object = 0, views: object = 0) -> MirrorSite:
        with self._doc.mutate() as data:
            site = _sites_of(data).get(site_id)
            if not isinstance(site, dict):
                raise SiteNotFoundError(site_id)
            self._roll_day(site)
            stats = site.setdefault("stats", {})
            site["status"] = "online"
            site["lastHeartbeat"] = iso(self._clock())
            stats["onlineNow"] = _as_count(online)
            delta = _as_count(views)
            stats["viewsToday"] = _as_count(stats.get("viewsToday")) + delta
            stats["viewsTotal"] = _as_count(stats.get("viewsTotal")) + delta
            return cast(MirrorSite, copy.deepcopy(site))

    def report_stats(self, site_id: str, *, views: object = 0) -> MirrorSite:
        with self._doc.mutate() as data:
            site = _sites_of(data).get(site_id)
            if not isinstance(site, dict):
                raise SiteNotFoundError(site_id)
            self._roll_day(site)
            stats = site.setdefault("stats", {})
            delta = _as_count(views)
            stats["viewsToday"] = _as_count(stats.get("viewsToday")) + delta
            stats["viewsTotal"] = _as_count(stats.get("viewsTotal")) + delta
            return cast(MirrorSite, copy.deepcopy(site))

    # ---------------- barrido ----------------

    def sweep(self) -> int:
        """Marca offline (y onlineNow=0) los sitios sin heartbeat reciente."""
        now = self._clock()

        def is_stale(site: object) -> bool:
            if not isinstance(site, dict) or site.get("status") != "online":
                return False
            last = parse_iso(site.get("lastHeartbeat"))
            return last is not None and (now - last).total_seconds() > self._offline_after_s

        if not any(is_stale(s) for s in _sites_of(self._doc.read()).values()):
            return 0

        demoted = 0
        with self._doc.mutate() as data:
            for site in _sites_of(data).values():
                if is_stale(site):
                    site["status"] = "offline"
                    site.setdefault("stats", {})["onlineNow"] = 0
                    demoted += 1
        if demoted:
            metrics.inc("sites_demoted_total", demoted)
            _logger.info("%d sites marked offline (no heartbeat)", demoted)
        return demoted

    def start(self) -> None:
        self._sweeper.start()

    def stop(self) -> None:
        self._sweeper.stop()
