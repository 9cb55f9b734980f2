from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class ScheduledTask(Protocol):
    def cancel(self) -> None:
        raise NotImplementedError


class Scheduler(Protocol):
    def every(self, interval_seconds: float, callback: Callable[[], None]) -> ScheduledTask:
        raise NotImplementedError


class _RepeatingTimer:
    def __init__(self, interval_seconds: float, callback: Callable[[], None]):
        self._interval = interval_seconds
        self._callback = callback
        self._cancelled = threading.Event()
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def start(self) -> None:
        with self._lock:
            if self._cancelled.is_set():
                return
            self._timer = threading.Timer(self._interval, self._run)
            self._timer.daemon = True
            self._timer.start()

    def _run(self) -> None:
        if self._cancelled.is_set():
            return
        try:
            self._callback()
        except Exception:
            logger.exception("Scheduled task failed")
        self.start()

    def cancel(self) -> None:
        self._cancelled.set()
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()


class ThreadingScheduler(Scheduler):
    """Runs callbacks on daemon ``threading.Timer`` threads, re-armed after each run."""

    def every(self, interval_seconds: float, callback: Callable[[], None]) -> ScheduledTask:
        task = _RepeatingTimer(interval_seconds, callback)
        task.start()
        return task
