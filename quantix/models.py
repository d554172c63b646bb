"""Typed dataclasses for the Quantix data model.

Local cache documents use camelCase keys (from_dict/to_dict); remote rows
use the snake_case wire names (from_remote/to_remote). Unknown keys are
ignored and missing keys use defaults. Instants are timezone-aware
datetimes, stored as ISO-8601 strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from quantix.clock import format_instant, parse_instant


PRIORITIES = ("Low", "Medium", "High", "Critical")
MOODS = ("focus", "success", "failure", "neutral", "idea")
THEMES = ("neon-lime", "crimson-red", "cyan-blue", "royal-purple", "sunset-orange")

DEFAULT_AVATAR = "https://api.dicebear.com/7.x/bottts/svg?seed=Prime"
DEFAULT_LIST_ID = "daily"


def _int(value: Any, default: int) -> int:
    try:
        if value is None:
            return default
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(value: Any, default: float) -> float:
    try:
        if value is None:
            return default
        return float(value)
    except (TypeError, ValueError):
        return default


def _pick(d: dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return None


# ── Tasks ─────────────────────────────────────────────────────


@dataclass
class Task:
    id: str = ""
    title: str = ""
    completed: bool = False
    priority: str = "Medium"
    xp_worth: int = 10
    list_id: str = DEFAULT_LIST_ID
    created_at: datetime | None = None
    completed_at: datetime | None = None
    duration_minutes: int | None = None

    def _settle_completion(self) -> Task:
        """Keep completedAt set exactly when the task is completed.

        A completed record without a completion time is dated at its
        creation; with no creation time either it loads as open.
        """
        if not self.completed:
            self.completed_at = None
        elif self.completed_at is None:
            if self.created_at is None:
                self.completed = False
            else:
                self.completed_at = self.created_at
        return self

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Task:
        duration = _pick(d, "durationMinutes", "duration")
        priority = str(d.get("priority") or "Medium")
        return cls(
            id=str(d.get("id", "")),
            title=str(d.get("title", "")),
            completed=bool(d.get("completed", False)),
            priority=priority if priority in PRIORITIES else "Medium",
            xp_worth=_int(d.get("xpWorth"), 10),
            list_id=str(d.get("listId") or DEFAULT_LIST_ID),
            created_at=parse_instant(_pick(d, "createdAt", "timestamp")),
            completed_at=parse_instant(d.get("completedAt")),
            duration_minutes=_int(duration, 0) or None,
        )._settle_completion()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "completed": self.completed,
            "priority": self.priority,
            "xpWorth": self.xp_worth,
            "listId": self.list_id,
            "createdAt": format_instant(self.created_at),
            "completedAt": format_instant(self.completed_at),
            "durationMinutes": self.duration_minutes,
        }

    @classmethod
    def from_remote(cls, row: dict[str, Any]) -> Task:
        priority = str(row.get("priority") or "Medium")
        return cls(
            id=str(row.get("id", "")),
            title=str(row.get("title", "")),
            completed=bool(row.get("completed", False)),
            priority=priority if priority in PRIORITIES else "Medium",
            xp_worth=_int(row.get("xp_worth"), 10) or 10,
            list_id=str(row.get("list_id") or DEFAULT_LIST_ID),
            created_at=parse_instant(row.get("created_at")),
            completed_at=parse_instant(row.get("completed_at")),
            duration_minutes=_int(row.get("duration_minutes"), 0) or None,
        )._settle_completion()

    def to_remote(self, user_id: str) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": user_id,
            "list_id": self.list_id,
            "title": self.title,
            "completed": self.completed,
            "priority": self.priority,
            "xp_worth": self.xp_worth,
            "duration_minutes": self.duration_minutes,
            "completed_at": format_instant(self.completed_at),
            "created_at": format_instant(self.created_at),
        }


@dataclass
class TaskList:
    id: str = ""
    name: str = ""
    description: str = ""
    icon: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TaskList:
        return cls(
            id=str(d.get("id", "")),
            name=str(d.get("name", "")),
            description=str(d.get("description") or ""),
            icon=str(d.get("icon") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "description": self.description, "icon": self.icon}


# ── Profile ───────────────────────────────────────────────────


@dataclass
class UserProfile:
    name: str = "Agent"
    avatar_ref: str = DEFAULT_AVATAR
    rank_title: str = "Initiate"
    level: int = 1
    current_xp: int = 0
    xp_to_next_level: int = 1000
    total_hours_logged: float = 0.0
    total_tasks_completed: int = 0
    zoom: float = 1.0

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> UserProfile:
        if not d or not isinstance(d, dict):
            return cls()
        # Older caches nest the counters under "stats".
        stats = d.get("stats") if isinstance(d.get("stats"), dict) else {}
        return cls(
            name=str(d.get("name") or "Agent"),
            avatar_ref=str(_pick(d, "avatarRef", "avatarUrl") or DEFAULT_AVATAR),
            rank_title=str(_pick(d, "rankTitle", "gamerTag") or "Initiate"),
            level=max(1, _int(d.get("level"), 1)),
            current_xp=max(0, _int(d.get("currentXP"), 0)),
            xp_to_next_level=max(1, _int(_pick(d, "xpToNextLevel", "nextLevelXP"), 1000)),
            total_hours_logged=max(0.0, _float(_pick(d, "totalHoursLogged") or stats.get("totalHours"), 0.0)),
            total_tasks_completed=max(
                0, _int(_pick(d, "totalTasksCompleted") or stats.get("totalTasksCompleted"), 0)
            ),
            zoom=_float(d.get("zoom"), 1.0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "avatarRef": self.avatar_ref,
            "rankTitle": self.rank_title,
            "level": self.level,
            "currentXP": self.current_xp,
            "xpToNextLevel": self.xp_to_next_level,
            "totalHoursLogged": self.total_hours_logged,
            "totalTasksCompleted": self.total_tasks_completed,
            "zoom": self.zoom,
        }

    def merge_remote(self, row: dict[str, Any]) -> UserProfile:
        """Overlay a remote profile row; absent or empty remote fields keep local values."""
        return UserProfile(
            name=str(row.get("name") or self.name),
            avatar_ref=str(row.get("avatar_url") or self.avatar_ref),
            rank_title=self.rank_title,
            level=max(1, _int(row.get("level"), self.level)),
            current_xp=max(0, _int(row.get("current_xp"), self.current_xp)),
            xp_to_next_level=max(1, _int(row.get("next_level_xp"), self.xp_to_next_level) or self.xp_to_next_level),
            total_hours_logged=self.total_hours_logged,
            total_tasks_completed=max(
                0, _int(row.get("total_tasks_completed"), self.total_tasks_completed)
            ),
            zoom=self.zoom,
        )

    def to_remote(self, device_id: str, updated_at: datetime) -> dict[str, Any]:
        return {
            "id": device_id,
            "name": self.name,
            "avatar_url": self.avatar_ref,
            "level": self.level,
            "current_xp": self.current_xp,
            "next_level_xp": self.xp_to_next_level,
            "total_tasks_completed": self.total_tasks_completed,
            "updated_at": format_instant(updated_at),
        }


# ── Focus sessions ────────────────────────────────────────────


@dataclass(frozen=True)
class SessionRecord:
    id: str = ""
    started_at: datetime | None = None
    ended_at: datetime | None = None
    duration_seconds: int = 0

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> SessionRecord:
        return cls(
            id=str(d.get("id", "")),
            started_at=parse_instant(_pick(d, "startedAt", "started_at")),
            ended_at=parse_instant(_pick(d, "endedAt", "ended_at")),
            duration_seconds=max(0, _int(_pick(d, "durationSeconds", "duration_seconds"), 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "startedAt": format_instant(self.started_at),
            "endedAt": format_instant(self.ended_at),
            "durationSeconds": self.duration_seconds,
        }

    @classmethod
    def from_remote(cls, row: dict[str, Any]) -> SessionRecord:
        return cls(
            id=str(row.get("id", "")),
            started_at=parse_instant(row.get("started_at")),
            ended_at=parse_instant(row.get("ended_at")),
            duration_seconds=max(0, _int(row.get("duration_seconds"), 0)),
        )

    def to_remote(self, user_id: str) -> dict[str, Any]:
        row: dict[str, Any] = {
            "id": self.id,
            "user_id": user_id,
            "started_at": format_instant(self.started_at),
        }
        if not self.is_open:
            row["ended_at"] = format_instant(self.ended_at)
            row["duration_seconds"] = self.duration_seconds
        return row


@dataclass(frozen=True)
class SessionState:
    """One in-progress focus session. Never persisted."""

    is_active: bool = False
    is_paused: bool = False
    start_time: datetime | None = None  # start of the current running segment
    accumulated_seconds: int = 0
    session_id: str | None = None
    opened_at: datetime | None = None  # when the session began; survives pause/resume

    def to_dict(self) -> dict[str, Any]:
        return {
            "isActive": self.is_active,
            "isPaused": self.is_paused,
            "startTime": format_instant(self.start_time),
            "accumulatedSeconds": self.accumulated_seconds,
            "sessionId": self.session_id,
            "openedAt": format_instant(self.opened_at),
        }


# ── Journal & goals ───────────────────────────────────────────


@dataclass
class JournalEntry:
    id: str = ""
    title: str = ""
    content: str = ""
    images: list[str] = field(default_factory=list)
    mood: str = "neutral"
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> JournalEntry:
        mood = str(d.get("mood") or "neutral")
        return cls(
            id=str(d.get("id", "")),
            title=str(d.get("title", "")),
            content=str(d.get("content", "")),
            images=[str(i) for i in (d.get("images") or [])],
            mood=mood if mood in MOODS else "neutral",
            created_at=parse_instant(d.get("createdAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "images": list(self.images),
            "mood": self.mood,
            "createdAt": format_instant(self.created_at),
        }

    @classmethod
    def from_remote(cls, row: dict[str, Any]) -> JournalEntry:
        mood = str(row.get("mood") or "neutral")
        return cls(
            id=str(row.get("id", "")),
            title=str(row.get("title") or ""),
            content=str(row.get("content") or ""),
            images=[str(i) for i in (row.get("images") or [])],
            mood=mood if mood in MOODS else "neutral",
            created_at=parse_instant(row.get("created_at")),
        )

    def to_remote(self, user_id: str) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": user_id,
            "title": self.title,
            "content": self.content,
            "images": list(self.images),
            "mood": self.mood,
            "created_at": format_instant(self.created_at),
        }


@dataclass
class Goal:
    id: str = ""
    title: str = ""
    target: int = 1
    progress: int = 0
    unit: str = ""
    deadline: str | None = None  # day key
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def completed(self) -> bool:
        return self.completed_at is not None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Goal:
        return cls(
            id=str(d.get("id", "")),
            title=str(d.get("title", "")),
            target=max(1, _int(d.get("target"), 1)),
            progress=max(0, _int(d.get("progress"), 0)),
            unit=str(d.get("unit") or ""),
            deadline=d.get("deadline") or None,
            created_at=parse_instant(d.get("createdAt")),
            completed_at=parse_instant(d.get("completedAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "target": self.target,
            "progress": self.progress,
            "unit": self.unit,
            "deadline": self.deadline,
            "createdAt": format_instant(self.created_at),
            "completedAt": format_instant(self.completed_at),
        }

    @classmethod
    def from_remote(cls, row: dict[str, Any]) -> Goal:
        return cls(
            id=str(row.get("id", "")),
            title=str(row.get("title") or ""),
            target=max(1, _int(row.get("target"), 1)),
            progress=max(0, _int(row.get("progress"), 0)),
            unit=str(row.get("unit") or ""),
            deadline=row.get("deadline") or None,
            created_at=parse_instant(row.get("created_at")),
            completed_at=parse_instant(row.get("completed_at")),
        )

    def to_remote(self, user_id: str) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": user_id,
            "title": self.title,
            "target": self.target,
            "progress": self.progress,
            "unit": self.unit,
            "deadline": self.deadline,
            "completed_at": format_instant(self.completed_at),
            "created_at": format_instant(self.created_at),
        }


# ── Settings ──────────────────────────────────────────────────


@dataclass
class AppSettings:
    app_name: str = "Quantix"
    app_subtitle: str = "Agency HUD"
    timezone: str = "UTC"
    theme: str = "neon-lime"
    streak_reset_at: datetime | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> AppSettings:
        if not d or not isinstance(d, dict):
            return cls()
        theme = str(d.get("theme") or "neon-lime")
        return cls(
            app_name=str(d.get("appName") or "Quantix"),
            app_subtitle=str(d.get("appSubtitle") or "Agency HUD"),
            timezone=str(d.get("timezone") or "UTC"),
            theme=theme if theme in THEMES else "neon-lime",
            streak_reset_at=parse_instant(_pick(d, "streakResetTimestamp", "streakStartTimestamp")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "appName": self.app_name,
            "appSubtitle": self.app_subtitle,
            "timezone": self.timezone,
            "theme": self.theme,
            "streakResetTimestamp": format_instant(self.streak_reset_at),
        }


# ── Streaks (derived) ─────────────────────────────────────────


@dataclass
class DayStats:
    tasks_completed: int = 0
    xp_earned: int = 0
    hours_logged: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "tasksCompleted": self.tasks_completed,
            "xpEarned": self.xp_earned,
            "hoursLogged": round(self.hours_logged, 3),
        }


@dataclass
class StreakState:
    days: dict[str, DayStats] = field(default_factory=dict)
    consecutive_days: int = 0
    longest_streak: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "days": {k: v.to_dict() for k, v in sorted(self.days.items())},
            "consecutiveDays": self.consecutive_days,
            "longestStreak": self.longest_streak,
        }


# ── Local state ───────────────────────────────────────────────


@dataclass
class LocalState:
    """Everything the synchronizer holds in memory for one device."""

    profile: UserProfile = field(default_factory=UserProfile)
    tasks: list[Task] = field(default_factory=list)
    task_lists: list[TaskList] = field(default_factory=list)
    settings: AppSettings = field(default_factory=AppSettings)
    sessions: list[SessionRecord] = field(default_factory=list)
    journal: list[JournalEntry] = field(default_factory=list)
    goals: list[Goal] = field(default_factory=list)
    session: SessionState = field(default_factory=SessionState)
