from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response

from cinematic.api import paths
from cinematic.api.deps import get_catalog, get_origin, get_presence
from cinematic.api.services import metrics
from cinematic.api.services.catalog import Catalog
from cinematic.api.services.origin import OriginClient
from cinematic.api.services.presence import PresenceTracker

router = APIRouter()


@router.get("/health")
def health() -> dict[str, Any]:
    return {"ok": True, "ts": datetime.now(timezone.utc).isoformat()}


@router.get("/ready")
def ready(
    catalog: Catalog = Depends(get_catalog),
    origin: OriginClient = Depends(get_origin),
    presence: PresenceTracker = Depends(get_presence),
) -> dict[str, Any]:
    """
    Readiness:
    - data/ debe existir y ser escribible (movies.json / sites.json).
    - movies.json se lee (si está corrupto se trata como vacío, no falla).
    - el origen es opcional: sin API key todo sale de caché.
    """
    issues: dict[str, str] = {}

    data_dir = paths.DATA_DIR
    if not data_dir.is_dir():
        issues["data_dir"] = f"missing: {data_dir}"
    elif not os.access(data_dir, os.W_OK):
        issues["data_dir"] = f"not writable: {data_dir}"

    try:
        total = catalog.store.count()
    except Exception as exc:
        issues["movies_db"] = f"unreadable: {catalog.store.path} ({exc!r})"
        total = 0

    if issues:
        raise HTTPException(status_code=503, detail={"ready": False, "issues": issues})

    return {
        "ready": True,
        "movies": total,
        "origin_enabled": origin.enabled,
        "online": presence.count(),
        "ts": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/metrics")
def metrics_endpoint() -> Response:
    body = metrics.render_prometheus()
    return Response(content=body, media_type="text/plain; version=0.0.4")
