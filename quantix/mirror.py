"""Fire-and-forget remote mirroring.

Commands are queued and executed by one background worker in submission
order. A command that fails is logged and dropped: there is no retry and
nothing is reported back to the caller.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any

from quantix.remote import RemoteStore

logger = logging.getLogger(__name__)

OPS = ("insert", "upsert", "delete")


@dataclass(frozen=True)
class MirrorCommand:
    op: str
    table: str
    row: dict[str, Any] = field(default_factory=dict)
    record_id: str = ""

    def describe(self) -> str:
        target = self.record_id or self.row.get("id", "?")
        return f"{self.op} {self.table}/{target}"


_STOP = object()


class MirrorWorker:
    def __init__(self, remote: RemoteStore) -> None:
        self.remote = remote
        self._queue: queue.Queue[Any] = queue.Queue()
        self._thread: threading.Thread | None = None
        self.failures = 0

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._loop, name="quantix-mirror", daemon=True)
        self._thread.start()

    @property
    def started(self) -> bool:
        return self._thread is not None

    def submit(self, command: MirrorCommand) -> None:
        if command.op not in OPS:
            raise ValueError(f"Unknown mirror op: {command.op}")
        self._queue.put(command)

    def pending(self) -> int:
        return self._queue.qsize()

    def run_pending(self) -> int:
        """Execute queued commands on the calling thread. Returns how many ran."""
        ran = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return ran
            try:
                if item is _STOP:
                    continue
                self._execute(item)
                ran += 1
            finally:
                self._queue.task_done()

    def close(self, timeout: float = 5.0) -> None:
        """Drain the queue and stop the worker thread."""
        if self._thread is None:
            self.run_pending()
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Mirror worker did not stop within %.1fs; %d writes abandoned", timeout, self.pending())
        self._thread = None

    def _loop(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._execute(item)
            finally:
                self._queue.task_done()

    def _execute(self, command: MirrorCommand) -> None:
        try:
            if command.op == "insert":
                self.remote.insert(command.table, command.row)
            elif command.op == "upsert":
                self.remote.upsert(command.table, command.row)
            else:
                self.remote.delete(command.table, command.record_id)
        except Exception as e:
            self.failures += 1
            logger.warning("Remote mirror %s failed, local state kept: %s", command.describe(), e)
        else:
            logger.debug("Remote mirror %s ok", command.describe())
