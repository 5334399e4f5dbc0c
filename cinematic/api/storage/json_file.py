from __future__ import annotations

"""
cinematic/api/storage/json_file.py

Documento JSON persistido en un único fichero.

- Lectura completa y reescritura completa en cada mutación.
- Un RLock por documento serializa los ciclos read-modify-write
  (un único escritor por proceso: no hay lost-updates entre requests).
- Escritura atómica: temp file en el mismo directorio + fsync + replace.
- Fichero ilegible/corrupto => documento vacío (el corrupto se aparta
  como `<nombre>.corrupt.<ts>` para inspección). Nunca rompe el proceso.
"""

import json
import logging
import os
import tempfile
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from typing import Any

from cinematic.api.services import metrics

_logger = logging.getLogger("cinematic.storage")

Document = dict[str, Any]


class JsonDocument:
    def __init__(self, path: Path, *, empty: Callable[[], Document]) -> None:
        self._path = path
        self._empty = empty
        self._lock = RLock()
        self._data: Document | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _quarantine_corrupt(self) -> None:
        try:
            if not self._path.exists():
                return
            ts = int(time.time())
            bad_path = self._path.with_name(f"{self._path.name}.corrupt.{ts}")
            os.replace(str(self._path), str(bad_path))
            _logger.warning("corrupt json document moved aside: %s", bad_path.name)
        except OSError:
            return

    def _load_unlocked(self) -> Document:
        if self._data is not None:
            return self._data

        if not self._path.exists():
            self._data = self._empty()
            return self._data

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            metrics.inc("store_corrupt_total", 1)
            _logger.warning("unreadable json document %s: %r", self._path, exc)
            self._quarantine_corrupt()
            self._data = self._empty()
            return self._data

        if not isinstance(raw, dict):
            metrics.inc("store_corrupt_total", 1)
            _logger.warning("json document %s is not an object, starting empty", self._path)
            self._data = self._empty()
            return self._data

        base = self._empty()
        base.update(raw)
        self._data = base
        return self._data

    def _save_unlocked(self, data: Document) -> None:
        dirpath = self._path.parent
        dirpath.mkdir(parents=True, exist_ok=True)

        temp_name: str | None = None
        try:
            with tempfile.NamedTemporaryFile("w", encoding="utf-8", delete=False, dir=str(dirpath)) as tf:
                json.dump(data, tf, ensure_ascii=False, indent=2)
                tf.flush()
                try:
                    os.fsync(tf.fileno())
                except OSError:
                    pass
                temp_name = tf.name

            os.replace(temp_name, str(self._path))
            metrics.inc("store_writes_total", 1)
        finally:
            if temp_name and os.path.exists(temp_name) and temp_name != str(self._path):
                try:
                    os.remove(temp_name)
                except OSError:
                    pass

    def read(self) -> Document:
        """Snapshot (copia profunda vía JSON) del documento actual."""
        with self._lock:
            data = self._load_unlocked()
            return json.loads(json.dumps(data))

    @contextmanager
    def mutate(self) -> Iterator[Document]:
        """
        Ciclo read-modify-write bajo lock.

        El caller modifica el dict recibido; al salir sin excepción se
        reescribe el fichero completo. Si el bloque lanza, no se persiste
        nada y el estado en memoria se recarga desde disco.
        """
        with self._lock:
            data = self._load_unlocked()
            try:
                yield data
                self._save_unlocked(data)
            except BaseException:
                self._data = None
                raise
