# logger y utilidades de logging
from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path

from cinematic.api.settings import Settings, _env_bool, _env_str

LOGGER_NAME = "cinematic"

_FILE_HANDLER_TAG = "_cinematic_file_handler"
_LOGGER_FILE_PATH_SENTINEL: object = object()
_LOGGER_FILE_PATH_CACHED: Path | None | object = _LOGGER_FILE_PATH_SENTINEL

# Campos `extra=` que los middlewares adjuntan y que queremos ver en el fichero
_EXTRA_FIELDS = ("request_id", "method", "path", "status", "duration_ms", "error_id", "exc_type")

# Librerías que a DEBUG sacan una línea por conexión
_NOISY_LOGGERS = ("urllib3", "requests", "multipart")

PACKAGE_DIR = Path(__file__).resolve().parents[1]


class KeyValueFormatter(logging.Formatter):
    """Formato clásico + `clave=valor` de los extras conocidos."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        pairs = [f"{k}={getattr(record, k)}" for k in _EXTRA_FIELDS if getattr(record, k, None) is not None]
        return f"{base} {' '.join(pairs)}" if pairs else base


def _sanitize_filename_component(value: str) -> str:
    s = (value or "").strip()
    if not s:
        return ""
    out = []
    for ch in s:
        if ch.isalnum() or ch in ("-", "_", "."):
            out.append(ch)
        else:
            out.append("_")
    return "".join(out).strip("._-")


def _resolve_dir(raw: str, *, base: Path) -> Path:
    p = Path(raw)
    return p if p.is_absolute() else (base / p)


def _build_logger_file_path() -> Path | None:
    """
    LOGGER_FILE_ENABLED=1 activa el fichero:
    - LOGGER_FILE_PATH explícito, o
    - LOGGER_FILE_DIR/<prefix>_<timestamp>[_<pid>].log

    Se resuelve una vez por proceso (el nombre lleva timestamp).
    """
    global _LOGGER_FILE_PATH_CACHED

    if _LOGGER_FILE_PATH_CACHED is not _LOGGER_FILE_PATH_SENTINEL:
        return None if _LOGGER_FILE_PATH_CACHED is None else _LOGGER_FILE_PATH_CACHED  # type: ignore[return-value]

    if not _env_bool("LOGGER_FILE_ENABLED", False):
        _LOGGER_FILE_PATH_CACHED = None
        return None

    raw_path = _env_str("LOGGER_FILE_PATH", "").strip()
    if raw_path:
        p = Path(raw_path)
        resolved = p if p.is_absolute() else (PACKAGE_DIR / p)
        _LOGGER_FILE_PATH_CACHED = resolved.resolve()
        return _LOGGER_FILE_PATH_CACHED

    log_dir = _resolve_dir(_env_str("LOGGER_FILE_DIR", "logs"), base=PACKAGE_DIR.parent)
    prefix = _sanitize_filename_component(_env_str("LOGGER_FILE_PREFIX", "cinematic")) or "cinematic"
    ts_fmt = _env_str("LOGGER_FILE_TIMESTAMP_FORMAT", "%Y-%m-%d_%H-%M-%S")
    pid_part = f"_{os.getpid()}" if _env_bool("LOGGER_FILE_INCLUDE_PID", True) else ""

    filename = f"{prefix}_{datetime.now().strftime(ts_fmt)}{pid_part}.log"
    _LOGGER_FILE_PATH_CACHED = (log_dir / filename).resolve()
    return _LOGGER_FILE_PATH_CACHED


def _our_file_handlers(root: logging.Logger) -> list[logging.Handler]:
    return [h for h in root.handlers if getattr(h, _FILE_HANDLER_TAG, False)]


def _ensure_file_handler(root: logging.Logger, *, level: str) -> None:
    path = _build_logger_file_path()
    if path is None:
        return

    existing = _our_file_handlers(root)
    if existing:
        for handler in existing:
            handler.setLevel(level)
        return

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="a", encoding="utf-8", delay=True)
    except OSError:
        # Sin fichero seguimos con los handlers de consola de uvicorn
        return
    handler.setLevel(level)
    handler.setFormatter(KeyValueFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    setattr(handler, _FILE_HANDLER_TAG, True)
    root.addHandler(handler)


def configure_logging(settings: Settings) -> logging.Logger:
    """
    Configuración mínima e idempotente:
    - Respetamos handlers/format de quien ejecute (uvicorn, gunicorn, etc.).
    - Ajustamos nivel global según LOG_LEVEL.
    - Las librerías HTTP nunca bajan de WARNING salvo en DEBUG.
    """
    root = logging.getLogger()
    root.setLevel(settings.log_level)
    _ensure_file_handler(root, level=settings.log_level)

    noisy_level = logging.DEBUG if settings.log_level == "DEBUG" else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(settings.log_level)
    return logger
