# exception handlers (error_id)
from __future__ import annotations

import uuid
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from cinematic.api.logging_config import configure_logging
from cinematic.api.services import metrics
from cinematic.api.settings import Settings


def build_exception_handler(settings: Settings):
    """
    Último recurso para errores no controlados.

    Los errores esperados (400/401/404) salen como HTTPException desde los
    routers; aquí sólo llega lo inesperado => 500 con un error_id que aparece
    también en el log para poder cruzarlos.
    """
    logger = configure_logging(settings)

    async def handler(request: Request, exc: Exception) -> JSONResponse:
        error_id = uuid.uuid4().hex
        req_id = getattr(request.state, "request_id", None)

        logger.exception(
            "unhandled_exception",
            extra={
                "error_id": error_id,
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "exc_type": type(exc).__name__,
            },
        )
        metrics.inc("http_errors_5xx_total", 1)

        payload: dict[str, Any] = {
            "success": False,
            "detail": "Internal Server Error",
            "error_id": error_id,
        }
        if isinstance(req_id, str) and req_id:
            payload["request_id"] = req_id

        return JSONResponse(status_code=500, content=payload)

    return handler
