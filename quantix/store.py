"""Local cache: one keyed blob per record kind.

Each blob is read once at startup and rewritten in full on every change.
A blob that cannot be read loads as defaults; a blob that cannot be written
is logged and the in-memory state carries on as the source of truth.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Callable, TypeVar

from quantix.errors import LocalStorageError
from quantix.fileio import (
    read_json,
    read_text,
    read_yaml,
    remove_file,
    write_json_atomic,
    write_text_atomic,
    write_yaml_atomic,
)
from quantix.models import (
    AppSettings,
    Goal,
    JournalEntry,
    LocalState,
    SessionRecord,
    Task,
    TaskList,
    UserProfile,
)
from quantix.tasks import default_task_lists
from quantix.workspace import (
    device_id_path,
    goals_path,
    journal_path,
    lists_path,
    profile_path,
    sessions_path,
    settings_path,
    tasks_path,
    workspace_root,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LocalStore:
    def __init__(self, root: Path | None = None) -> None:
        self.root = root if root is not None else workspace_root()

    # ── Reading ───────────────────────────────────────────────

    def _load(self, path: Path, reader: Callable[[Path], Any], parse: Callable[[Any], T], default: Callable[[], T]) -> T:
        try:
            raw = reader(path)
        except LocalStorageError as e:
            logger.error("Local cache unreadable, using defaults: %s", e)
            return default()
        if raw is None:
            return default()
        try:
            return parse(raw)
        except (TypeError, ValueError, AttributeError) as e:
            logger.error("Local cache %s has unexpected shape, using defaults: %s", path.name, e)
            return default()

    @staticmethod
    def _records(cls: Any) -> Callable[[Any], list[Any]]:
        def parse(raw: Any) -> list[Any]:
            if not isinstance(raw, list):
                raise ValueError(f"expected a list, got {type(raw).__name__}")
            return [cls.from_dict(item) for item in raw if isinstance(item, dict)]
        return parse

    def load_profile(self) -> UserProfile:
        return self._load(profile_path(self.root), read_json, UserProfile.from_dict, UserProfile)

    def load_tasks(self) -> list[Task]:
        return self._load(tasks_path(self.root), read_json, self._records(Task), list)

    def load_task_lists(self) -> list[TaskList]:
        lists = self._load(lists_path(self.root), read_yaml, self._records(TaskList), default_task_lists)
        return lists or default_task_lists()

    def load_settings(self) -> AppSettings:
        return self._load(settings_path(self.root), read_yaml, AppSettings.from_dict, AppSettings)

    def load_sessions(self) -> list[SessionRecord]:
        return self._load(sessions_path(self.root), read_json, self._records(SessionRecord), list)

    def load_journal(self) -> list[JournalEntry]:
        return self._load(journal_path(self.root), read_json, self._records(JournalEntry), list)

    def load_goals(self) -> list[Goal]:
        return self._load(goals_path(self.root), read_json, self._records(Goal), list)

    def load_all(self) -> LocalState:
        return LocalState(
            profile=self.load_profile(),
            tasks=self.load_tasks(),
            task_lists=self.load_task_lists(),
            settings=self.load_settings(),
            sessions=self.load_sessions(),
            journal=self.load_journal(),
            goals=self.load_goals(),
        )

    # ── Writing ───────────────────────────────────────────────

    def _save(self, path: Path, writer: Callable[[Path, Any], None], data: Any) -> bool:
        try:
            writer(path, data)
        except LocalStorageError as e:
            logger.error("Local cache write failed, keeping in-memory state: %s", e)
            return False
        return True

    def save_profile(self, profile: UserProfile) -> bool:
        return self._save(profile_path(self.root), write_json_atomic, profile.to_dict())

    def save_tasks(self, tasks: list[Task]) -> bool:
        return self._save(tasks_path(self.root), write_json_atomic, [t.to_dict() for t in tasks])

    def save_task_lists(self, lists: list[TaskList]) -> bool:
        return self._save(lists_path(self.root), write_yaml_atomic, [tl.to_dict() for tl in lists])

    def save_settings(self, settings: AppSettings) -> bool:
        return self._save(settings_path(self.root), write_yaml_atomic, settings.to_dict())

    def save_sessions(self, sessions: list[SessionRecord]) -> bool:
        return self._save(sessions_path(self.root), write_json_atomic, [s.to_dict() for s in sessions])

    def save_journal(self, journal: list[JournalEntry]) -> bool:
        return self._save(journal_path(self.root), write_json_atomic, [e.to_dict() for e in journal])

    def save_goals(self, goals: list[Goal]) -> bool:
        return self._save(goals_path(self.root), write_json_atomic, [g.to_dict() for g in goals])

    # ── Identity ──────────────────────────────────────────────

    def device_id(self) -> str:
        """Return the persisted device id, generating one on first use."""
        path = device_id_path(self.root)
        try:
            existing = read_text(path).strip()
        except LocalStorageError as e:
            logger.error("Device id unreadable, generating a new one: %s", e)
            existing = ""
        if existing:
            return existing
        new_id = str(uuid.uuid4())
        self._save(path, write_text_atomic, new_id + "\n")
        return new_id

    def wipe(self) -> None:
        """Forget this device: identity and every record kind owned by it.

        Task lists and settings are preferences and survive a wipe.
        """
        paths = (
            device_id_path(self.root),
            profile_path(self.root),
            tasks_path(self.root),
            goals_path(self.root),
            sessions_path(self.root),
            journal_path(self.root),
        )
        for path in paths:
            try:
                remove_file(path)
            except LocalStorageError as e:
                logger.error("Could not remove %s: %s", path.name, e)
