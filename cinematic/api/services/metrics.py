from __future__ import annotations

from threading import RLock

_LOCK = RLock()
_METRICS: dict[str, int] = {
    "http_requests_total": 0,
    "http_errors_4xx_total": 0,
    "http_errors_5xx_total": 0,
    "origin_requests_total": 0,
    "origin_failures_total": 0,
    "catalog_cache_hit_total": 0,
    "catalog_cache_miss_total": 0,
    "catalog_fallback_total": 0,
    "store_writes_total": 0,
    "store_corrupt_total": 0,
    "store_write_failures_total": 0,
    "presence_heartbeats_total": 0,
    "presence_evicted_total": 0,
    "sites_demoted_total": 0,
}


def inc(name: str, value: int = 1) -> None:
    with _LOCK:
        _METRICS[name] = _METRICS.get(name, 0) + value


def snapshot() -> dict[str, int]:
    with _LOCK:
        return dict(_METRICS)


def render_prometheus() -> str:
    with _LOCK:
        lines: list[str] = []
        for k, v in sorted(_METRICS.items()):
            lines.append(f"# TYPE {k} counter")
            lines.append(f"{k} {v}")
        return "\n".join(lines) + "\n"
