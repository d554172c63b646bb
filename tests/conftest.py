"""Shared test fixtures for Quantix tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from quantix.mirror import MirrorWorker
from quantix.remote import MemoryRemote
from quantix.store import LocalStore
from quantix.sync import Synchronizer

# A Wednesday.
START = datetime(2026, 2, 11, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.now += timedelta(seconds=seconds, **kwargs)
        return self.now


class FakeTimer:
    def __init__(self, due: float, callback) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Fake timers: nothing fires until advance() or fire_all() is called."""

    def __init__(self) -> None:
        self.time = 0.0
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback) -> FakeTimer:
        timer = FakeTimer(self.time + delay, callback)
        self.timers.append(timer)
        return timer

    def active(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        target = self.time + seconds
        while True:
            due = sorted((t for t in self.active() if t.due <= target), key=lambda t: t.due)
            if not due:
                break
            timer = due[0]
            self.time = timer.due
            timer.fired = True
            timer.callback()
        self.time = target

    def fire_all(self) -> None:
        while self.active():
            self.advance(max(t.due for t in self.active()) - self.time)


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch) -> Path:
    """Temporary workspace root, exported as QUANTIX_ROOT."""
    root = tmp_path / "workspace"
    (root / "data").mkdir(parents=True)
    monkeypatch.setenv("QUANTIX_ROOT", str(root))
    return root


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def memory_remote() -> MemoryRemote:
    return MemoryRemote()


@pytest.fixture
def store(workspace: Path) -> LocalStore:
    return LocalStore(workspace)


@pytest.fixture
def sync(store, memory_remote, scheduler, clock) -> Synchronizer:
    """Hydrated synchronizer over an empty MemoryRemote; the mirror worker runs inline."""
    s = Synchronizer(
        store,
        "device-1",
        remote=memory_remote,
        worker=MirrorWorker(memory_remote),
        scheduler=scheduler,
        clock=clock,
    )
    s.hydrate()
    return s


@pytest.fixture
def local_sync(store, scheduler, clock) -> Synchronizer:
    """Synchronizer with no remote configured."""
    s = Synchronizer(store, "device-1", scheduler=scheduler, clock=clock)
    s.hydrate()
    return s
