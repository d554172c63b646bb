"""Focus session accumulator.

A session moves Idle -> Running -> Paused -> Running -> ... -> Idle. Elapsed
time is always derived from timestamps (accumulated base + current running
segment), never from a counter bumped by ticks, so late or missed ticks
cannot make it drift.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable

from quantix.models import SessionRecord, SessionState
from quantix.timers import Scheduler, TimerHandle


class SessionError(ValueError):
    """A session action was requested from a state that does not allow it."""


def _seconds_between(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds()))


def idle_state() -> SessionState:
    return SessionState()


def is_running(state: SessionState) -> bool:
    return state.is_active and not state.is_paused


def start_session(state: SessionState, now: datetime, session_id: str | None = None) -> SessionState:
    if state.is_active:
        raise SessionError("A focus session is already active. Stop it first.")
    return SessionState(
        is_active=True,
        is_paused=False,
        start_time=now,
        accumulated_seconds=0,
        session_id=session_id or str(uuid.uuid4()),
        opened_at=now,
    )


def pause_session(state: SessionState, now: datetime) -> SessionState:
    if not is_running(state) or state.start_time is None:
        raise SessionError("Only a running session can be paused.")
    return replace(
        state,
        accumulated_seconds=state.accumulated_seconds + _seconds_between(state.start_time, now),
        start_time=None,
        is_paused=True,
    )


def resume_session(state: SessionState, now: datetime) -> SessionState:
    if not (state.is_active and state.is_paused):
        raise SessionError("Only a paused session can be resumed.")
    return replace(state, start_time=now, is_paused=False)


def toggle_pause(state: SessionState, now: datetime) -> SessionState:
    if state.is_paused:
        return resume_session(state, now)
    return pause_session(state, now)


def elapsed_seconds(state: SessionState, now: datetime) -> int:
    """Seconds to display: the accumulated base plus the running segment."""
    if not state.is_active:
        return 0
    running = _seconds_between(state.start_time, now) if state.start_time is not None else 0
    return state.accumulated_seconds + running


def stop_session(state: SessionState, now: datetime) -> tuple[SessionState, SessionRecord]:
    """Close the session and return (idle_state, record)."""
    if not state.is_active:
        raise SessionError("No active focus session to stop.")
    record = SessionRecord(
        id=state.session_id or str(uuid.uuid4()),
        started_at=state.opened_at or state.start_time or now,
        ended_at=now,
        duration_seconds=elapsed_seconds(state, now),
    )
    return idle_state(), record


def open_record(state: SessionState) -> SessionRecord:
    """The record mirrored when a session starts (no end yet)."""
    return SessionRecord(id=state.session_id or "", started_at=state.opened_at, ended_at=None, duration_seconds=0)


def format_elapsed(seconds: int) -> str:
    hours, rest = divmod(max(0, seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class SessionTicker:
    """Periodic display tick for a running session.

    Each tick reports ``elapsed_fn()``. ``stop()`` cancels the pending timer
    and any callback already in flight is dropped, so no tick is delivered
    once the session has left the running state.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        on_tick: Callable[[int], None],
        elapsed_fn: Callable[[], int],
        interval: float = 1.0,
    ) -> None:
        self._scheduler = scheduler
        self._on_tick = on_tick
        self._elapsed_fn = elapsed_fn
        self.interval = interval
        self._handle: TimerHandle | None = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        with self._lock:
            if self._handle is not None:
                return
            self._generation += 1
            self._schedule(self._generation)

    def stop(self) -> None:
        with self._lock:
            self._generation += 1
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None

    def _schedule(self, generation: int) -> None:
        self._handle = self._scheduler.call_later(self.interval, lambda: self._tick(generation))

    def _tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._schedule(generation)
        self._on_tick(self._elapsed_fn())
