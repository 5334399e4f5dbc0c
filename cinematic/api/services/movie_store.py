# movies.json: mapa id -> MovieRecord + lastUpdate
from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any, cast

from cinematic.api.services.records import MovieRecord, iso, utc_now
from cinematic.api.storage.json_file import JsonDocument

_logger = logging.getLogger("cinematic.store")


def _empty_db() -> dict[str, Any]:
    return {"movies": {}, "lastUpdate": None}


def _movies_of(data: dict[str, Any]) -> dict[str, Any]:
    movies = data.get("movies")
    if not isinstance(movies, dict):
        movies = {}
        data["movies"] = movies
    return movies


class MovieStore:
    """
    Persistent Record Store.

    - Clave: id como string (JSON no admite claves int).
    - Cada escritura fija `cachedAt` en el registro y `lastUpdate` en el documento.
    - Sólo el Catalog escribe aquí; las lecturas devuelven copias.
    """

    def __init__(self, path: Path, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._doc = JsonDocument(path, empty=_empty_db)
        self._clock = clock

    @property
    def path(self) -> Path:
        return self._doc.path

    def get(self, movie_id: int) -> MovieRecord | None:
        rec = _movies_of(self._doc.read()).get(str(movie_id))
        return cast(MovieRecord, rec) if isinstance(rec, dict) else None

    def all(self) -> list[MovieRecord]:
        """Snapshot completo en orden de inserción."""
        movies = _movies_of(self._doc.read())
        return [cast(MovieRecord, m) for m in movies.values() if isinstance(m, dict)]

    def count(self) -> int:
        return len(_movies_of(self._doc.read()))

    def last_update(self) -> str | None:
        value = self._doc.read().get("lastUpdate")
        return value if isinstance(value, str) else None

    def upsert(self, record: MovieRecord) -> MovieRecord:
        """Sobrescribe cualquier registro previo con el mismo id."""
        now = iso(self._clock())
        stored: MovieRecord = {**record, "cachedAt": now}
        with self._doc.mutate() as data:
            _movies_of(data)[str(record["id"])] = copy.deepcopy(stored)
            data["lastUpdate"] = now
        _logger.debug("movie %s saved", record["id"])
        return stored

    def upsert_if_absent(self, records: Iterable[MovieRecord]) -> int:
        """
        Inserta sólo los ids que no existen (no pisa datos ya enriquecidos).

        Un único ciclo read-modify-write para todo el lote; devuelve cuántos
        registros nuevos se escribieron.
        """
        known = _movies_of(self._doc.read())
        pending = [r for r in records if r.get("id") is not None and str(r["id"]) not in known]
        if not pending:
            return 0

        inserted = 0
        now = iso(self._clock())
        with self._doc.mutate() as data:
            movies = _movies_of(data)
            for rec in pending:
                key = str(rec["id"])
                if key in movies:
                    continue
                movies[key] = copy.deepcopy({**rec, "cachedAt": now})
                inserted += 1
            if inserted:
                data["lastUpdate"] = now
        return inserted
