"""Task and task-list validation, lifecycle and dashboard totals."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from quantix.clock import day_key
from quantix.models import DEFAULT_LIST_ID, PRIORITIES, Task, TaskList
from quantix.progression import task_xp_value


# ── Validation ────────────────────────────────────────────────


def validate_task(task: dict[str, Any]) -> list[str]:
    """Validate new-task input and return list of errors (empty if valid)."""
    errors = []
    title = task.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.append("title must be a non-empty string")

    if "priority" in task and task["priority"] not in PRIORITIES:
        errors.append(f"Invalid priority: {task['priority']}")

    duration = task.get("duration_minutes")
    if duration is not None:
        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            errors.append("duration_minutes must be a positive integer")

    if "list_id" in task:
        list_id = task["list_id"]
        if not isinstance(list_id, str) or not list_id.strip():
            errors.append("list_id must be a non-empty string")

    return errors


def validate_task_list(data: dict[str, Any]) -> list[str]:
    errors = []
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append("name must be a non-empty string")
    return errors


# ── Tasks ─────────────────────────────────────────────────────


def new_task(
    title: str,
    now: datetime,
    duration_minutes: int | None = 20,
    priority: str = "Medium",
    list_id: str = DEFAULT_LIST_ID,
    task_id: str | None = None,
) -> Task:
    """Build a new open task; its XP value is fixed here."""
    return Task(
        id=task_id or str(uuid.uuid4()),
        title=title.strip(),
        completed=False,
        priority=priority,
        xp_worth=task_xp_value(duration_minutes, priority),
        list_id=list_id,
        created_at=now,
        completed_at=None,
        duration_minutes=duration_minutes,
    )


def find_task(tasks: list[Task], task_id: str) -> Task | None:
    for t in tasks:
        if t.id == task_id:
            return t
    return None


def toggle_task(task: Task, now: datetime) -> Task:
    """Flip completion, keeping completed_at set exactly when completed."""
    if task.completed:
        return replace(task, completed=False, completed_at=None)
    return replace(task, completed=True, completed_at=now)


# ── Task lists ────────────────────────────────────────────────


def default_task_lists() -> list[TaskList]:
    return [
        TaskList(id="daily", name="Daily Tasks", description="Your active missions.", icon="calendar"),
        TaskList(id="tasks_only", name="Tasks Only", description="General to-do items.", icon="layers"),
    ]


def new_task_list(name: str, description: str = "", icon: str = "", list_id: str | None = None) -> TaskList:
    return TaskList(id=list_id or str(uuid.uuid4()), name=name.strip(), description=description, icon=icon)


def rename_task_list(
    lists: list[TaskList],
    list_id: str,
    name: str,
    description: str | None = None,
    icon: str | None = None,
) -> list[TaskList]:
    out = []
    for tl in lists:
        if tl.id == list_id:
            tl = replace(
                tl,
                name=name.strip(),
                description=tl.description if description is None else description,
                icon=tl.icon if icon is None else icon,
            )
        out.append(tl)
    return out


# ── Dashboard totals ──────────────────────────────────────────

DAILY_RULES = ("created_today", "completed_today", "active_or_completed_today")


def is_daily_list(list_id: str) -> bool:
    return list_id == DEFAULT_LIST_ID or "daily" in list_id


def _counts_today(task: Task, today: str, tz: ZoneInfo, rule: str) -> bool:
    created_today = task.created_at is not None and day_key(task.created_at, tz) == today
    completed_today = (
        task.completed and task.completed_at is not None and day_key(task.completed_at, tz) == today
    )
    if rule == "completed_today":
        return completed_today
    if rule == "active_or_completed_today":
        return not task.completed or completed_today
    return created_today


def list_stats(
    tasks: list[Task],
    now: datetime,
    tz: ZoneInfo,
    rule: str = "created_today",
) -> dict[str, dict[str, int]]:
    """Per-list {total, completed} counts.

    Daily lists only count the tasks that belong to today under *rule*;
    every other list counts all of its tasks.
    """
    if rule not in DAILY_RULES:
        rule = "created_today"
    today = day_key(now, tz)
    stats: dict[str, dict[str, int]] = {}
    for task in tasks:
        list_id = task.list_id or DEFAULT_LIST_ID
        bucket = stats.setdefault(list_id, {"total": 0, "completed": 0})
        if is_daily_list(list_id) and not _counts_today(task, today, tz, rule):
            continue
        bucket["total"] += 1
        if task.completed:
            bucket["completed"] += 1
    return stats
