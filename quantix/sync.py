"""Local-first persistence synchronizer.

Every mutation is applied to the in-memory state, written to the local
cache and only then handed to the mirror worker as a fire-and-forget
remote write. The remote is read exactly once, in ``hydrate()``; nothing
written during a session ever feeds back into local state.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable

from quantix import focus, progression
from quantix.clock import resolve_timezone, utc_now
from quantix.config import AppConfig
from quantix.errors import RecordNotFound, ValidationError
from quantix.journal import (
    apply_goal_progress,
    new_goal,
    new_journal_entry,
    validate_goal,
    validate_journal_entry,
)
from quantix.mirror import MirrorCommand, MirrorWorker
from quantix.models import (
    DEFAULT_LIST_ID,
    THEMES,
    AppSettings,
    Goal,
    JournalEntry,
    LocalState,
    SessionRecord,
    SessionState,
    StreakState,
    Task,
    TaskList,
    UserProfile,
)
from quantix.remote import RemoteStore, RestRemote
from quantix.store import LocalStore
from quantix.streak import compute_streak, week_activity
from quantix.tasks import (
    find_task,
    list_stats,
    new_task,
    new_task_list,
    rename_task_list,
    toggle_task,
    validate_task,
    validate_task_list,
)
from quantix.timers import Debouncer, Scheduler, ThreadingScheduler

logger = logging.getLogger(__name__)

# Mutation kinds
TASK = "task"
PROFILE = "profile"
SESSION = "session"
JOURNAL = "journal"
GOAL = "goal"
KINDS = (TASK, PROFILE, SESSION, JOURNAL, GOAL)

# Mutation actions
CREATE = "create"
UPDATE = "update"
DELETE = "delete"
ACTIONS = (CREATE, UPDATE, DELETE)

REMOTE_TABLES = {
    TASK: "tasks",
    PROFILE: "profiles",
    SESSION: "sessions",
    JOURNAL: "journal_entries",
    GOAL: "goals",
}

PROFILE_WRITE_KEY = "profile"


@dataclass(frozen=True)
class Mutation:
    """A create/update/delete of one record.

    Creates and updates carry the full resulting record; deletes only need
    ``record_id``. Profile mutations carry the whole profile.
    """

    kind: str
    action: str
    record: Any = None
    record_id: str = ""

    @property
    def target_id(self) -> str:
        if self.record_id:
            return self.record_id
        return str(getattr(self.record, "id", "") or "")


def _put(records: list[Any], record: Any, prepend: bool = True) -> list[Any]:
    """Replace the record with the same id, or add it."""
    out = []
    found = False
    for existing in records:
        if existing.id == record.id:
            out.append(record)
            found = True
        else:
            out.append(existing)
    if not found:
        out = [record] + out if prepend else out + [record]
    return out


def _without(records: list[Any], record_id: str) -> list[Any]:
    return [r for r in records if r.id != record_id]


def _find(records: list[Any], record_id: str) -> Any:
    for r in records:
        if r.id == record_id:
            return r
    return None


def _merge_records(
    remote: list[Any],
    current: list[Any],
    baseline: list[Any],
    key: Callable[[Any], float] | None = None,
    reverse: bool = False,
) -> list[Any]:
    """Remote records replace the local collection.

    Records created locally after *baseline* was loaded, and unknown to the
    remote, are kept.
    """
    remote_ids = {r.id for r in remote}
    baseline_ids = {r.id for r in baseline}
    merged = [r for r in current if r.id not in baseline_ids and r.id not in remote_ids] + list(remote)
    if key is not None:
        merged.sort(key=key, reverse=reverse)
    return merged


class Synchronizer:
    def __init__(
        self,
        store: LocalStore,
        device_id: str,
        remote: RemoteStore | None = None,
        worker: MirrorWorker | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] = utc_now,
        profile_debounce: float = 1.5,
        daily_rule: str = "created_today",
    ) -> None:
        self.store = store
        self.device_id = device_id
        self.remote = remote
        if worker is None and remote is not None:
            worker = MirrorWorker(remote)
            worker.start()
        self.worker = worker
        self.clock = clock
        self.daily_rule = daily_rule
        self.remote_available = remote is not None
        self._debouncer = Debouncer(scheduler or ThreadingScheduler(), profile_debounce)
        self._state = LocalState()
        self._lock = threading.RLock()
        self._level_up_listeners: list[Callable[[UserProfile], None]] = []
        self._leveled_up: UserProfile | None = None

    # ── Read side ─────────────────────────────────────────────

    @property
    def state(self) -> LocalState:
        return self._state

    @property
    def timezone(self):
        return resolve_timezone(self._state.settings.timezone)

    def _now(self, now: datetime | None) -> datetime:
        return now if now is not None else self.clock()

    def streak(self, now: datetime | None = None) -> StreakState:
        s = self._state
        return compute_streak(s.tasks, s.sessions, self._now(now), self.timezone, s.settings.streak_reset_at)

    def week(self, now: datetime | None = None) -> list[dict[str, object]]:
        now = self._now(now)
        return week_activity(self.streak(now).days, now, self.timezone)

    def list_stats(self, now: datetime | None = None) -> dict[str, dict[str, int]]:
        return list_stats(self._state.tasks, self._now(now), self.timezone, self.daily_rule)

    def session_elapsed(self, now: datetime | None = None) -> int:
        return focus.elapsed_seconds(self._state.session, self._now(now))

    def on_level_up(self, listener: Callable[[UserProfile], None]) -> Callable[[], None]:
        """Register a level-up listener. Returns an unsubscribe function."""
        self._level_up_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._level_up_listeners:
                self._level_up_listeners.remove(listener)

        return unsubscribe

    # ── Startup ───────────────────────────────────────────────

    def hydrate(self) -> LocalState:
        """Load the local cache, then let non-empty remote collections win.

        The remote is probed and read without holding the command lock.
        Commands issued meanwhile run against the local cache, and records
        they create are kept when the remote collections are merged in.
        """
        with self._lock:
            self._state = self.store.load_all()
            baseline = self._state
        if self.remote is None:
            self.remote_available = False
            logger.info("No remote configured, running local-only")
            return baseline

        try:
            available = bool(self.remote.probe())
        except Exception as e:
            logger.warning("Remote probe raised: %s", e)
            available = False
        if not available:
            self.remote_available = False
            logger.info("Remote unreachable, running local-only")
            return self._state

        fetched = {
            "tasks": self._fetch("tasks", user_id=self.device_id),
            "profiles": self._fetch("profiles", id=self.device_id),
            "sessions": self._fetch("sessions", user_id=self.device_id),
            "journal_entries": self._fetch("journal_entries", user_id=self.device_id),
            "goals": self._fetch("goals", user_id=self.device_id),
        }

        with self._lock:
            self.remote_available = True
            self._state = self._merge_remote(baseline, fetched)
            logger.info(
                "Hydrated %d tasks, %d sessions from remote",
                len(self._state.tasks),
                len(self._state.sessions),
            )
            return self._state

    def _merge_remote(self, baseline: LocalState, fetched: dict[str, list[dict[str, Any]]]) -> LocalState:
        state = self._state

        if fetched["tasks"]:
            tasks = _merge_records(
                [Task.from_remote(r) for r in fetched["tasks"]],
                state.tasks,
                baseline.tasks,
                key=lambda t: t.created_at.timestamp() if t.created_at else 0.0,
                reverse=True,
            )
            state = replace(state, tasks=tasks)
            self.store.save_tasks(tasks)

        profile = state.profile
        if fetched["profiles"]:
            profile = profile.merge_remote(fetched["profiles"][0])

        if fetched["sessions"]:
            sessions = _merge_records(
                [SessionRecord.from_remote(r) for r in fetched["sessions"]],
                state.sessions,
                baseline.sessions,
                key=lambda s: s.started_at.timestamp() if s.started_at else 0.0,
            )
            state = replace(state, sessions=sessions)
            self.store.save_sessions(sessions)
            profile = replace(
                profile,
                total_hours_logged=sum(s.duration_seconds for s in sessions) / 3600,
            )

        if profile != state.profile:
            # A zero gain carries any stored overflow into levels and refreshes the rank.
            profile, _ = progression.gain_xp(profile, 0)
            state = replace(state, profile=profile)
            self.store.save_profile(profile)

        if fetched["journal_entries"]:
            journal = _merge_records(
                [JournalEntry.from_remote(r) for r in fetched["journal_entries"]],
                state.journal,
                baseline.journal,
                key=lambda e: e.created_at.timestamp() if e.created_at else 0.0,
                reverse=True,
            )
            state = replace(state, journal=journal)
            self.store.save_journal(journal)

        if fetched["goals"]:
            goals = _merge_records(
                [Goal.from_remote(r) for r in fetched["goals"]],
                state.goals,
                baseline.goals,
            )
            state = replace(state, goals=goals)
            self.store.save_goals(goals)

        return state

    def _fetch(self, table: str, **filters: str) -> list[dict[str, Any]]:
        try:
            return self.remote.select(table, **filters)
        except Exception as e:
            logger.warning("Remote fetch of %s failed, keeping local: %s", table, e)
            return []

    # ── Mutations ─────────────────────────────────────────────

    def apply(self, mutation: Mutation) -> LocalState:
        """Apply one mutation locally and queue its remote mirror."""
        if mutation.kind not in KINDS:
            raise ValueError(f"Unknown mutation kind: {mutation.kind}")
        if mutation.action not in ACTIONS:
            raise ValueError(f"Unknown mutation action: {mutation.action}")
        handler = {
            TASK: self._apply_task,
            PROFILE: self._apply_profile,
            SESSION: self._apply_session,
            JOURNAL: self._apply_journal,
            GOAL: self._apply_goal,
        }[mutation.kind]

        with self._lock:
            self._leveled_up = None
            self._state = handler(mutation)
            leveled_up, self._leveled_up = self._leveled_up, None

        if leveled_up is not None:
            self._notify_level_up(leveled_up)
        return self._state

    def _apply_task(self, m: Mutation) -> LocalState:
        state = self._state
        before = find_task(state.tasks, m.target_id)
        if m.action == DELETE:
            if before is None:
                return state
            tasks = _without(state.tasks, before.id)
            self.store.save_tasks(tasks)
            self._mirror(MirrorCommand("delete", "tasks", record_id=before.id))
            return replace(state, tasks=tasks)

        task: Task = m.record
        tasks = _put(state.tasks, task)
        self.store.save_tasks(tasks)
        op = "insert" if m.action == CREATE and before is None else "upsert"
        self._mirror(MirrorCommand(op, "tasks", row=task.to_remote(self.device_id)))

        next_state = replace(state, tasks=tasks)
        profile = self._task_progress(state.profile, before, task)
        if profile is not state.profile:
            next_state = replace(next_state, profile=profile)
            self._profile_changed(profile)
        return next_state

    def _task_progress(self, profile: UserProfile, before: Task | None, after: Task) -> UserProfile:
        was_done = before is not None and before.completed
        if after.completed and not was_done:
            profile, leveled_up = progression.gain_xp(profile, after.xp_worth)
            profile = replace(profile, total_tasks_completed=profile.total_tasks_completed + 1)
            if leveled_up:
                self._leveled_up = profile
        elif was_done and not after.completed:
            profile = progression.lose_xp(profile, before.xp_worth)
            profile = replace(profile, total_tasks_completed=max(0, profile.total_tasks_completed - 1))
        return profile

    def _apply_profile(self, m: Mutation) -> LocalState:
        if m.action == DELETE:
            profile = UserProfile()
        else:
            profile = m.record
        profile = replace(profile, rank_title=progression.rank_title(profile.level))
        self._profile_changed(profile)
        return replace(self._state, profile=profile)

    def _apply_session(self, m: Mutation) -> LocalState:
        state = self._state
        before = _find(state.sessions, m.target_id)
        if m.action == DELETE:
            if before is None:
                return state
            sessions = _without(state.sessions, before.id)
            self.store.save_sessions(sessions)
            self._mirror(MirrorCommand("delete", "sessions", record_id=before.id))
            return replace(state, sessions=sessions)

        record: SessionRecord = m.record
        sessions = _put(state.sessions, record, prepend=False)
        self.store.save_sessions(sessions)
        op = "insert" if m.action == CREATE and before is None else "upsert"
        self._mirror(MirrorCommand(op, "sessions", row=record.to_remote(self.device_id)))

        next_state = replace(state, sessions=sessions)
        if not record.is_open and (before is None or before.is_open):
            profile = replace(
                state.profile,
                total_hours_logged=state.profile.total_hours_logged + record.duration_seconds / 3600,
            )
            next_state = replace(next_state, profile=profile)
            self._profile_changed(profile)
        return next_state

    def _apply_journal(self, m: Mutation) -> LocalState:
        state = self._state
        if m.action == DELETE:
            if _find(state.journal, m.target_id) is None:
                return state
            journal = _without(state.journal, m.target_id)
            self.store.save_journal(journal)
            self._mirror(MirrorCommand("delete", "journal_entries", record_id=m.target_id))
            return replace(state, journal=journal)

        entry: JournalEntry = m.record
        op = "insert" if m.action == CREATE and _find(state.journal, entry.id) is None else "upsert"
        journal = _put(state.journal, entry)
        self.store.save_journal(journal)
        self._mirror(MirrorCommand(op, "journal_entries", row=entry.to_remote(self.device_id)))
        return replace(state, journal=journal)

    def _apply_goal(self, m: Mutation) -> LocalState:
        state = self._state
        if m.action == DELETE:
            if _find(state.goals, m.target_id) is None:
                return state
            goals = _without(state.goals, m.target_id)
            self.store.save_goals(goals)
            self._mirror(MirrorCommand("delete", "goals", record_id=m.target_id))
            return replace(state, goals=goals)

        goal: Goal = m.record
        op = "insert" if m.action == CREATE and _find(state.goals, goal.id) is None else "upsert"
        goals = _put(state.goals, goal, prepend=False)
        self.store.save_goals(goals)
        self._mirror(MirrorCommand(op, "goals", row=goal.to_remote(self.device_id)))
        return replace(state, goals=goals)

    # ── Remote leg ────────────────────────────────────────────

    def _mirror(self, command: MirrorCommand) -> None:
        if not self.remote_available or self.worker is None:
            return
        try:
            self.worker.submit(command)
        except Exception as e:
            logger.warning("Could not queue remote %s: %s", command.describe(), e)

    def _profile_changed(self, profile: UserProfile) -> None:
        """Persist the profile now and schedule one debounced remote upsert."""
        self.store.save_profile(profile)
        if not self.remote_available:
            return
        command = MirrorCommand("upsert", "profiles", row=profile.to_remote(self.device_id, self.clock()))
        self._debouncer.schedule(PROFILE_WRITE_KEY, lambda: self._mirror(command))

    def profile_write_pending(self) -> bool:
        return self._debouncer.pending(PROFILE_WRITE_KEY)

    def _notify_level_up(self, profile: UserProfile) -> None:
        logger.info("Level up: %d (%s)", profile.level, profile.rank_title)
        for listener in list(self._level_up_listeners):
            try:
                listener(profile)
            except Exception:
                logger.exception("Level-up listener failed")

    # ── Tasks ─────────────────────────────────────────────────

    def add_task(
        self,
        title: str,
        duration_minutes: int | None = 20,
        priority: str = "Medium",
        list_id: str = DEFAULT_LIST_ID,
    ) -> Task:
        errors = validate_task({
            "title": title,
            "priority": priority,
            "duration_minutes": duration_minutes,
            "list_id": list_id,
        })
        if errors:
            raise ValidationError(errors)
        task = new_task(title, self.clock(), duration_minutes, priority, list_id)
        self.apply(Mutation(TASK, CREATE, task))
        return task

    def toggle_task(self, task_id: str) -> tuple[Task, bool]:
        """Flip a task's completion. Returns (task, leveled_up)."""
        with self._lock:
            task = find_task(self._state.tasks, task_id)
            if task is None:
                raise RecordNotFound(f"Task not found: {task_id}")
            level = self._state.profile.level
            updated = toggle_task(task, self.clock())
            self.apply(Mutation(TASK, UPDATE, updated))
            return updated, self._state.profile.level > level

    def delete_task(self, task_id: str) -> None:
        with self._lock:
            if find_task(self._state.tasks, task_id) is None:
                raise RecordNotFound(f"Task not found: {task_id}")
            self.apply(Mutation(TASK, DELETE, record_id=task_id))

    # ── Profile ───────────────────────────────────────────────

    def update_profile(
        self,
        name: str | None = None,
        avatar_ref: str | None = None,
        zoom: float | None = None,
    ) -> UserProfile:
        errors = []
        if name is not None and (not isinstance(name, str) or not name.strip()):
            errors.append("name must be a non-empty string")
        if avatar_ref is not None and (not isinstance(avatar_ref, str) or not avatar_ref.strip()):
            errors.append("avatar_ref must be a non-empty string")
        if zoom is not None and (isinstance(zoom, bool) or not isinstance(zoom, (int, float)) or zoom <= 0):
            errors.append("zoom must be a positive number")
        if errors:
            raise ValidationError(errors)

        with self._lock:
            profile = self._state.profile
            changes: dict[str, Any] = {}
            if name is not None:
                changes["name"] = name.strip()
            if avatar_ref is not None:
                changes["avatar_ref"] = avatar_ref.strip()
            if zoom is not None:
                changes["zoom"] = float(zoom)
            self.apply(Mutation(PROFILE, UPDATE, replace(profile, **changes)))
            return self._state.profile

    def reset_level(self) -> UserProfile:
        with self._lock:
            profile = progression.reset_progress(self._state.profile)
            self.apply(Mutation(PROFILE, UPDATE, profile))
            return self._state.profile

    # ── Settings & lists (local only) ─────────────────────────

    def reset_streak(self, now: datetime | None = None) -> AppSettings:
        """Start the streak over from *now* without deleting history."""
        with self._lock:
            settings = replace(self._state.settings, streak_reset_at=self._now(now))
            self._save_settings(settings)
            return settings

    def update_settings(
        self,
        app_name: str | None = None,
        app_subtitle: str | None = None,
        timezone: str | None = None,
        theme: str | None = None,
    ) -> AppSettings:
        errors = []
        for label, value in (("app_name", app_name), ("app_subtitle", app_subtitle)):
            if value is not None and (not isinstance(value, str) or not value.strip()):
                errors.append(f"{label} must be a non-empty string")
        if timezone is not None and resolve_timezone(timezone).key != timezone:
            errors.append(f"Unknown timezone: {timezone}")
        if theme is not None and theme not in THEMES:
            errors.append(f"Invalid theme: {theme}")
        if errors:
            raise ValidationError(errors)

        with self._lock:
            changes: dict[str, Any] = {}
            if app_name is not None:
                changes["app_name"] = app_name.strip()
            if app_subtitle is not None:
                changes["app_subtitle"] = app_subtitle.strip()
            if timezone is not None:
                changes["timezone"] = timezone
            if theme is not None:
                changes["theme"] = theme
            settings = replace(self._state.settings, **changes)
            self._save_settings(settings)
            return settings

    def _save_settings(self, settings: AppSettings) -> None:
        self._state = replace(self._state, settings=settings)
        self.store.save_settings(settings)

    def create_task_list(self, name: str, description: str = "", icon: str = "") -> TaskList:
        errors = validate_task_list({"name": name})
        if errors:
            raise ValidationError(errors)
        with self._lock:
            task_list = new_task_list(name, description, icon)
            lists = self._state.task_lists + [task_list]
            self._state = replace(self._state, task_lists=lists)
            self.store.save_task_lists(lists)
            return task_list

    def update_task_list(
        self,
        list_id: str,
        name: str,
        description: str | None = None,
        icon: str | None = None,
    ) -> TaskList:
        errors = validate_task_list({"name": name})
        if errors:
            raise ValidationError(errors)
        with self._lock:
            if _find(self._state.task_lists, list_id) is None:
                raise RecordNotFound(f"Task list not found: {list_id}")
            lists = rename_task_list(self._state.task_lists, list_id, name, description, icon)
            self._state = replace(self._state, task_lists=lists)
            self.store.save_task_lists(lists)
            return _find(lists, list_id)

    # ── Focus sessions ────────────────────────────────────────

    def _set_session(self, session: SessionState) -> SessionState:
        self._state = replace(self._state, session=session)
        return session

    def start_session(self, now: datetime | None = None) -> SessionState:
        with self._lock:
            session = focus.start_session(self._state.session, self._now(now))
            self._set_session(session)
            self.apply(Mutation(SESSION, CREATE, focus.open_record(session)))
            return session

    def pause_session(self, now: datetime | None = None) -> SessionState:
        with self._lock:
            return self._set_session(focus.pause_session(self._state.session, self._now(now)))

    def resume_session(self, now: datetime | None = None) -> SessionState:
        with self._lock:
            return self._set_session(focus.resume_session(self._state.session, self._now(now)))

    def toggle_pause(self, now: datetime | None = None) -> SessionState:
        with self._lock:
            return self._set_session(focus.toggle_pause(self._state.session, self._now(now)))

    def stop_session(self, now: datetime | None = None) -> SessionRecord:
        with self._lock:
            idle, record = focus.stop_session(self._state.session, self._now(now))
            self._set_session(idle)
            self.apply(Mutation(SESSION, UPDATE, record))
            return record

    # ── Journal & goals ───────────────────────────────────────

    def add_journal_entry(
        self,
        title: str = "",
        content: str = "",
        mood: str = "neutral",
        images: list[str] | None = None,
    ) -> JournalEntry:
        errors = validate_journal_entry({"title": title, "content": content, "mood": mood, "images": images})
        if errors:
            raise ValidationError(errors)
        entry = new_journal_entry(self.clock(), title, content, mood, images)
        self.apply(Mutation(JOURNAL, CREATE, entry))
        return entry

    def delete_journal_entry(self, entry_id: str) -> None:
        with self._lock:
            if _find(self._state.journal, entry_id) is None:
                raise RecordNotFound(f"Journal entry not found: {entry_id}")
            self.apply(Mutation(JOURNAL, DELETE, record_id=entry_id))

    def add_goal(self, title: str, target: int, unit: str = "", deadline: str | None = None) -> Goal:
        errors = validate_goal({"title": title, "target": target, "deadline": deadline})
        if errors:
            raise ValidationError(errors)
        goal = new_goal(title, target, self.clock(), unit, deadline)
        self.apply(Mutation(GOAL, CREATE, goal))
        return goal

    def record_goal_progress(self, goal_id: str, amount: int = 1) -> Goal:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError(["amount must be an integer"])
        with self._lock:
            goal = _find(self._state.goals, goal_id)
            if goal is None:
                raise RecordNotFound(f"Goal not found: {goal_id}")
            updated = apply_goal_progress(goal, amount, self.clock())
            self.apply(Mutation(GOAL, UPDATE, updated))
            return updated

    def delete_goal(self, goal_id: str) -> None:
        with self._lock:
            if _find(self._state.goals, goal_id) is None:
                raise RecordNotFound(f"Goal not found: {goal_id}")
            self.apply(Mutation(GOAL, DELETE, record_id=goal_id))

    # ── Identity & lifecycle ──────────────────────────────────

    def wipe_identity(self) -> str:
        """Forget this device and start over under a fresh device id.

        Remote rows of the old identity are left alone. Task lists and
        settings are kept.
        """
        with self._lock:
            self._debouncer.cancel_all()
            self.store.wipe()
            self.device_id = self.store.device_id()
            self._state = LocalState(task_lists=self._state.task_lists, settings=self._state.settings)
            logger.info("Identity wiped, new device id %s", self.device_id)
            return self.device_id

    def flush(self) -> None:
        """Fire any pending debounced remote write now."""
        self._debouncer.flush()

    def close(self) -> None:
        self.flush()
        if self.worker is not None:
            self.worker.close()


def build_synchronizer(config: AppConfig, scheduler: Scheduler | None = None) -> Synchronizer:
    """Wire a Synchronizer from configuration. Call ``hydrate()`` on the result."""
    store = LocalStore(config.root)
    remote = None
    worker = None
    if config.remote.enabled:
        remote = RestRemote(config.remote.url, config.remote.api_key, config.remote.timeout)
        worker = MirrorWorker(remote)
        worker.start()
    else:
        logger.info("QUANTIX_REMOTE_URL/QUANTIX_REMOTE_KEY not set, remote mirror disabled")
    return Synchronizer(
        store,
        store.device_id(),
        remote=remote,
        worker=worker,
        scheduler=scheduler,
        profile_debounce=config.profile_debounce,
        daily_rule=config.daily_rule,
    )
