from __future__ import annotations

"""
cinematic/api/middleware/request_id.py

Middleware HTTP:
- X-Request-ID de entrada (acotado) o uno nuevo; se devuelve siempre.
- Contadores: requests totales y respuestas 4xx (los 5xx los cuenta el
  exception handler).
- Una línea de log por request. Las rutas de sondeo (latido de visitantes,
  health) van a DEBUG: con muchos visitantes serían la mayoría del log.
"""

import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response

from cinematic.api.logging_config import configure_logging
from cinematic.api.services import metrics
from cinematic.api.settings import Settings

CallNext = Callable[[Request], Awaitable[Response]]
Middleware = Callable[[Request, CallNext], Awaitable[Response]]

_QUIET_PATHS = frozenset({"/api/online/heartbeat", "/api/online/count", "/health", "/ready", "/metrics"})
_MAX_REQUEST_ID_LEN = 128


def _incoming_request_id(request: Request) -> str:
    raw = (request.headers.get("x-request-id") or "").strip()
    if raw and len(raw) <= _MAX_REQUEST_ID_LEN:
        return raw
    return uuid.uuid4().hex


def _count_status(status_code: int) -> None:
    if 400 <= status_code < 500:
        metrics.inc("http_errors_4xx_total", 1)


def _log_request(logger: logging.Logger, request: Request, *, req_id: str, status: int, started: float) -> None:
    log = logger.debug if request.url.path in _QUIET_PATHS else logger.info
    log(
        "request",
        extra={
            "request_id": req_id,
            "method": request.method,
            "path": request.url.path,
            "status": status,
            "duration_ms": int((time.perf_counter() - started) * 1000),
        },
    )


def build_request_id_middleware(settings: Settings) -> Middleware:
    logger = configure_logging(settings)

    async def middleware(request: Request, call_next: CallNext) -> Response:
        started = time.perf_counter()
        req_id = _incoming_request_id(request)
        request.state.request_id = req_id
        metrics.inc("http_requests_total", 1)

        try:
            response = await call_next(request)
        except Exception:
            # Lo no controlado acaba en el exception handler como 500
            _log_request(logger, request, req_id=req_id, status=500, started=started)
            raise

        _count_status(response.status_code)
        _log_request(logger, request, req_id=req_id, status=response.status_code, started=started)
        response.headers["X-Request-ID"] = req_id
        return response

    return middleware
