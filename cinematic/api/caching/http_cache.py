# validadores HTTP (ETag/Last-Modified) para respuestas derivadas de ficheros
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from pathlib import Path
from typing import Final

from fastapi import Request

_ETAG_PREFIX: Final[str] = 'W/"'


@dataclass(frozen=True)
class Validators:
    etag: str
    last_modified: str

    def headers(self) -> dict[str, str]:
        return {"ETag": self.etag, "Last-Modified": self.last_modified}


def stat_or_none(path: Path) -> os.stat_result | None:
    try:
        return path.stat()
    except OSError:
        return None


def validators_for(stat: os.stat_result, *, salt: str = "") -> Validators:
    """
    ETag débil a partir de mtime/tamaño del fichero.

    `salt` entra en la etiqueta cuando la respuesta depende de algo más que el
    fichero (p.ej. la fecha del día en el sitemap).
    """
    tag = f"{stat.st_mtime_ns:x}-{stat.st_size:x}"
    if salt:
        tag = f"{tag}-{salt}"
    modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
    return Validators(etag=f'{_ETAG_PREFIX}{tag}"', last_modified=format_datetime(modified, usegmt=True))


def _etag_matches(header: str, etag: str) -> bool:
    candidates = [c.strip() for c in header.split(",") if c.strip()]
    return "*" in candidates or etag in candidates


def is_not_modified(request: Request, validators: Validators, stat: os.stat_result) -> bool:
    """If-None-Match manda; If-Modified-Since sólo si no hay etiqueta."""
    inm = (request.headers.get("if-none-match") or "").strip()
    if inm:
        return _etag_matches(inm, validators.etag)

    ims = (request.headers.get("if-modified-since") or "").strip()
    if not ims:
        return False
    try:
        ims_dt = parsedate_to_datetime(ims)
    except (TypeError, ValueError):
        return False
    if ims_dt.tzinfo is None:
        ims_dt = ims_dt.replace(tzinfo=timezone.utc)
    # Resolución de segundos en la cabecera
    server_dt = datetime.fromtimestamp(int(stat.st_mtime), tz=timezone.utc)
    return server_dt <= ims_dt


def maybe_not_modified(
    request: Request, stat: os.stat_result | None, *, salt: str = ""
) -> tuple[bool, dict[str, str]]:
    """
    Devuelve (304?, cabeceras de validación).

    Sin stat (el fichero aún no existe) no hay validadores y nunca es 304.
    """
    if stat is None:
        return False, {}
    validators = validators_for(stat, salt=salt)
    return is_not_modified(request, validators, stat), validators.headers()
