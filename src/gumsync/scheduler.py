"""In-process periodic timer that drives reconciliation passes."""

from __future__ import annotations

import threading
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)


class PassScheduler:
    """Calls ``tick`` immediately and then every ``interval()`` seconds.

    The interval is re-read after every tick so a changed poll interval takes
    effect without a restart. ``tick`` must not raise; anything that escapes
    is logged and the loop keeps going.
    """

    def __init__(
        self,
        tick: Callable[[], object],
        *,
        interval: Callable[[], float],
        name: str = "gumsync-scheduler",
    ) -> None:
        self._tick = tick
        self._interval = interval
        self._name = name
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name=self._name, daemon=True)
        self._thread.start()
        log.info("Scheduler started")

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for a pass in flight to finish."""

        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        log.info("Scheduler stopped")

    def wait(self) -> None:
        """Block until :meth:`stop` is called from another thread or a signal handler."""

        while not self._stop_event.wait(timeout=1.0):
            pass

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self._tick()
            except Exception:
                log.exception("Scheduled pass failed")
            self._stop_event.wait(timeout=self._next_interval())

    def _next_interval(self) -> float:
        try:
            return max(float(self._interval()), 0.0)
        except Exception:
            log.exception("Could not read the poll interval; retrying in 60 seconds")
            return 60.0
