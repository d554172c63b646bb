"""Tests for quantix/focus.py: session state machine and ticker."""

from datetime import timedelta

import pytest

from conftest import START, ManualScheduler
from quantix.focus import (
    SessionError,
    SessionTicker,
    elapsed_seconds,
    format_elapsed,
    idle_state,
    is_running,
    open_record,
    pause_session,
    resume_session,
    start_session,
    stop_session,
    toggle_pause,
)


def at(seconds):
    return START + timedelta(seconds=seconds)


def test_start_session():
    state = start_session(idle_state(), at(0), session_id="s1")
    assert state.is_active and not state.is_paused
    assert state.start_time == at(0)
    assert state.opened_at == at(0)
    assert state.accumulated_seconds == 0
    assert state.session_id == "s1"
    assert is_running(state)


def test_start_session_already_active():
    state = start_session(idle_state(), at(0))
    with pytest.raises(SessionError, match="already active"):
        start_session(state, at(1))


def test_pause_resume_excludes_paused_gap():
    state = start_session(idle_state(), at(0))
    state = pause_session(state, at(10))
    state = resume_session(state, at(15))
    _, record = stop_session(state, at(25))
    assert record.duration_seconds == 20


def test_paused_elapsed_is_frozen():
    state = pause_session(start_session(idle_state(), at(0)), at(42))
    assert state.start_time is None
    assert elapsed_seconds(state, at(42)) == 42
    assert elapsed_seconds(state, at(4200)) == 42


def test_elapsed_derived_from_timestamps():
    state = start_session(idle_state(), at(0))
    # No ticks in between: the value is still exact.
    assert elapsed_seconds(state, at(3600)) == 3600
    assert elapsed_seconds(idle_state(), at(3600)) == 0


def test_resume_keeps_accumulated_base():
    state = pause_session(start_session(idle_state(), at(0)), at(30))
    state = resume_session(state, at(100))
    assert state.accumulated_seconds == 30
    assert elapsed_seconds(state, at(110)) == 40


def test_clock_going_backwards_clamps_to_zero():
    state = start_session(idle_state(), at(100))
    state = pause_session(state, at(50))
    assert state.accumulated_seconds == 0


def test_invalid_transitions():
    idle = idle_state()
    with pytest.raises(SessionError):
        pause_session(idle, at(0))
    with pytest.raises(SessionError):
        resume_session(idle, at(0))
    with pytest.raises(SessionError, match="No active"):
        stop_session(idle, at(0))

    running = start_session(idle, at(0))
    with pytest.raises(SessionError):
        resume_session(running, at(1))

    paused = pause_session(running, at(1))
    with pytest.raises(SessionError):
        pause_session(paused, at(2))


def test_toggle_pause():
    state = start_session(idle_state(), at(0))
    state = toggle_pause(state, at(5))
    assert state.is_paused
    state = toggle_pause(state, at(8))
    assert not state.is_paused
    assert elapsed_seconds(state, at(10)) == 7


def test_stop_while_paused():
    state = pause_session(start_session(idle_state(), at(0), session_id="s9"), at(12))
    idle, record = stop_session(state, at(500))
    assert idle == idle_state()
    assert record.id == "s9"
    assert record.started_at == at(0)
    assert record.ended_at == at(500)
    assert record.duration_seconds == 12
    assert not record.is_open


def test_open_record():
    state = start_session(idle_state(), at(0), session_id="s2")
    record = open_record(state)
    assert record.id == "s2"
    assert record.started_at == at(0)
    assert record.is_open


def test_format_elapsed():
    assert format_elapsed(0) == "00:00:00"
    assert format_elapsed(3725) == "01:02:05"
    assert format_elapsed(-5) == "00:00:00"


# ── Ticker ────────────────────────────────────────────────────


def test_ticker_reports_elapsed_each_interval():
    scheduler = ManualScheduler()
    ticks = []
    ticker = SessionTicker(scheduler, ticks.append, lambda: int(scheduler.time))
    ticker.start()
    scheduler.advance(3)
    assert ticks == [1, 2, 3]
    assert ticker.running


def test_ticker_start_is_idempotent():
    scheduler = ManualScheduler()
    ticks = []
    ticker = SessionTicker(scheduler, ticks.append, lambda: 0)
    ticker.start()
    ticker.start()
    scheduler.advance(1)
    assert len(ticks) == 1


def test_no_tick_after_stop():
    scheduler = ManualScheduler()
    ticks = []
    ticker = SessionTicker(scheduler, ticks.append, lambda: 1)
    ticker.start()
    scheduler.advance(2)
    ticker.stop()
    scheduler.advance(10)
    assert len(ticks) == 2
    assert not ticker.running
    assert scheduler.active() == []


def test_stale_callback_after_stop_is_dropped():
    scheduler = ManualScheduler()
    ticks = []
    ticker = SessionTicker(scheduler, ticks.append, lambda: 1)
    ticker.start()
    pending = scheduler.active()[0]
    ticker.stop()
    # A timer that was already in flight when stop() ran.
    pending.callback()
    assert ticks == []
