"""Daily consistency ("streak") calculator.

Everything here is recomputed from the full task and session history on
every call. Only completed tasks keep a streak alive; session hours show
up in the per-day stats but do not count toward continuity.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable
from zoneinfo import ZoneInfo

from quantix.clock import day_key, previous_day_key, today_key, yesterday_key
from quantix.models import DayStats, SessionRecord, StreakState, Task


def _before_floor(instant: datetime, reset_at: datetime | None) -> bool:
    return reset_at is not None and instant < reset_at


def build_day_stats(
    tasks: Iterable[Task],
    sessions: Iterable[SessionRecord],
    tz: ZoneInfo,
    reset_at: datetime | None = None,
) -> dict[str, DayStats]:
    """Bucket completed tasks (by completedAt) and sessions (by startedAt) into day keys.

    Records earlier than *reset_at* are left out entirely.
    """
    days: dict[str, DayStats] = {}

    for task in tasks:
        if not task.completed or task.completed_at is None:
            continue
        if _before_floor(task.completed_at, reset_at):
            continue
        stats = days.setdefault(day_key(task.completed_at, tz), DayStats())
        stats.tasks_completed += 1
        stats.xp_earned += task.xp_worth

    for session in sessions:
        if session.started_at is None or _before_floor(session.started_at, reset_at):
            continue
        stats = days.setdefault(day_key(session.started_at, tz), DayStats())
        stats.hours_logged += session.duration_seconds / 3600

    return days


def _active(days: dict[str, DayStats], key: str) -> bool:
    stats = days.get(key)
    return stats is not None and stats.tasks_completed >= 1


def consecutive_days(days: dict[str, DayStats], now: datetime, tz: ZoneInfo) -> int:
    """Length of the current run of active days.

    The run is anchored at today if today is active, otherwise at yesterday
    (a streak is not broken just because today has no activity yet), and is
    zero if neither is active.
    """
    today = today_key(now, tz)
    if _active(days, today):
        anchor = today
    elif _active(days, yesterday_key(now, tz)):
        anchor = yesterday_key(now, tz)
    else:
        return 0

    count = 0
    key = anchor
    while _active(days, key):
        count += 1
        key = previous_day_key(key)
    return count


def longest_streak(days: dict[str, DayStats]) -> int:
    active = sorted(date.fromisoformat(k) for k in days if _active(days, k))
    best = run = 0
    previous: date | None = None
    for d in active:
        run = run + 1 if previous is not None and d - previous == timedelta(days=1) else 1
        best = max(best, run)
        previous = d
    return best


def compute_streak(
    tasks: Iterable[Task],
    sessions: Iterable[SessionRecord],
    now: datetime,
    tz: ZoneInfo,
    reset_at: datetime | None = None,
) -> StreakState:
    days = build_day_stats(tasks, sessions, tz, reset_at)
    return StreakState(
        days=days,
        consecutive_days=consecutive_days(days, now, tz),
        longest_streak=longest_streak(days),
    )


def week_activity(days: dict[str, DayStats], now: datetime, tz: ZoneInfo) -> list[dict[str, object]]:
    """Monday-to-Sunday view of the current week for the weekly calendar."""
    today = date.fromisoformat(today_key(now, tz))
    monday = today - timedelta(days=today.weekday())
    week = []
    for offset in range(7):
        d = monday + timedelta(days=offset)
        key = d.isoformat()
        week.append({
            "day": key,
            "weekday": d.strftime("%a"),
            "active": _active(days, key),
            "isToday": d == today,
            "isFuture": d > today,
        })
    return week
