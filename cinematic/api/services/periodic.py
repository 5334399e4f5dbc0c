from __future__ import annotations

import logging
import threading
from collections.abc import Callable

_logger = logging.getLogger("cinematic.periodic")


class PeriodicTask:
    """
    Ejecuta `fn` cada `interval_s` segundos en un hilo daemon.

    - start() idempotente; stop() espera al hilo (con timeout).
    - Una excepción en `fn` se loguea y no mata el hilo.
    """

    def __init__(self, name: str, fn: Callable[[], object], interval_s: float) -> None:
        self._name = name
        self._fn = fn
        self._interval_s = max(0.01, float(interval_s))
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            _logger.warning("periodic task %s already running", self._name)
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._worker, daemon=True, name=self._name)
        self._thread.start()
        _logger.debug("periodic task %s started (every %.1fs)", self._name, self._interval_s)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None

    def _worker(self) -> None:
        while not self._stop_event.wait(self._interval_s):
            try:
                self._fn()
            except Exception:
                _logger.exception("periodic task %s failed", self._name)
