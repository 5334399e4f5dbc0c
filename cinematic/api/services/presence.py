# usuarios "online": heartbeats + barrido periódico
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from threading import Lock

from cinematic.api.services import metrics
from cinematic.api.services.periodic import PeriodicTask

_logger = logging.getLogger("cinematic.presence")


class PresenceTracker:
    """
    Presencia en memoria: session_id -> último heartbeat (segundos del `clock`).

    - heartbeat() inserta o actualiza; un mismo id nunca cuenta dos veces.
    - count() no comprueba caducidad: los inactivos sólo salen con sweep().
    - sweep() elimina los que llevan más de `timeout_s` sin heartbeat.
    - start()/stop() controlan el barrido cada `sweep_interval_s`.

    Sin persistencia: un reinicio vacía el mapa.
    """

    def __init__(
        self,
        *,
        timeout_s: float = 60.0,
        sweep_interval_s: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timeout_s = float(timeout_s)
        self._clock = clock
        self._lock = Lock()
        self._sessions: dict[str, float] = {}
        self._sweeper = PeriodicTask("presence-sweep", self.sweep, sweep_interval_s)

    def heartbeat(self, session_id: str) -> int:
        now = self._clock()
        with self._lock:
            self._sessions[session_id] = now
            total = len(self._sessions)
        metrics.inc("presence_heartbeats_total", 1)
        return total

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [sid for sid, seen in self._sessions.items() if now - seen > self._timeout_s]
            for sid in stale:
                del self._sessions[sid]
        if stale:
            metrics.inc("presence_evicted_total", len(stale))
            _logger.debug("presence sweep evicted %d sessions", len(stale))
        return len(stale)

    def start(self) -> None:
        self._sweeper.start()

    def stop(self) -> None:
        self._sweeper.stop()
