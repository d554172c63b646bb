"""Cancellable scheduled callbacks.

Timers are explicit handles so that replacing or cancelling a pending
callback is a plain method call and can be driven by a fake scheduler in
tests.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Runs each callback on a daemon ``threading.Timer``."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(max(0.0, delay), callback)
        timer.daemon = True
        timer.start()
        return timer


class Debouncer:
    """Coalesce bursts of calls per key into one call after an idle delay.

    Scheduling a key that already has a pending call cancels that call and
    starts the delay over.
    """

    def __init__(self, scheduler: Scheduler, delay: float) -> None:
        self._scheduler = scheduler
        self.delay = delay
        self._pending: dict[str, tuple[TimerHandle, Callable[[], None]]] = {}
        self._lock = threading.Lock()

    def schedule(self, key: str, callback: Callable[[], None]) -> None:
        with self._lock:
            previous = self._pending.pop(key, None)
            if previous is not None:
                previous[0].cancel()
            handle = self._scheduler.call_later(self.delay, lambda: self._fire(key, callback))
            self._pending[key] = (handle, callback)

    def pending(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    def _fire(self, key: str, callback: Callable[[], None]) -> None:
        with self._lock:
            entry = self._pending.get(key)
            # A replaced timer that fired anyway must not run the stale callback.
            if entry is None or entry[1] is not callback:
                return
            del self._pending[key]
        self._run(key, callback)

    def flush(self) -> None:
        """Run every pending callback now."""
        with self._lock:
            pending = list(self._pending.items())
            self._pending.clear()
        for key, (handle, callback) in pending:
            handle.cancel()
            self._run(key, callback)

    def cancel_all(self) -> None:
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for handle, _callback in pending:
            handle.cancel()

    @staticmethod
    def _run(key: str, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Debounced call %r failed", key)
