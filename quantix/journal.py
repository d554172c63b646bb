"""Journal entries and goals."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import Any

from quantix.models import MOODS, Goal, JournalEntry


def validate_journal_entry(data: dict[str, Any]) -> list[str]:
    errors = []
    title = data.get("title") or ""
    content = data.get("content") or ""
    if not isinstance(title, str) or not isinstance(content, str):
        errors.append("title and content must be strings")
    elif not title.strip() and not content.strip():
        errors.append("journal entry needs a title or content")
    if "mood" in data and data["mood"] not in MOODS:
        errors.append(f"Invalid mood: {data['mood']}")
    images = data.get("images")
    if images is not None and (not isinstance(images, list) or not all(isinstance(i, str) for i in images)):
        errors.append("images must be a list of strings")
    return errors


def new_journal_entry(
    now: datetime,
    title: str = "",
    content: str = "",
    mood: str = "neutral",
    images: list[str] | None = None,
    entry_id: str | None = None,
) -> JournalEntry:
    return JournalEntry(
        id=entry_id or str(uuid.uuid4()),
        title=title.strip(),
        content=content,
        images=list(images or []),
        mood=mood,
        created_at=now,
    )


def validate_goal(data: dict[str, Any]) -> list[str]:
    errors = []
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.append("title must be a non-empty string")
    target = data.get("target")
    if isinstance(target, bool) or not isinstance(target, int) or target <= 0:
        errors.append("target must be a positive integer")
    deadline = data.get("deadline")
    if deadline is not None:
        try:
            date.fromisoformat(str(deadline))
        except ValueError:
            errors.append(f"Invalid deadline: {deadline}")
    return errors


def new_goal(
    title: str,
    target: int,
    now: datetime,
    unit: str = "",
    deadline: str | None = None,
    goal_id: str | None = None,
) -> Goal:
    return Goal(
        id=goal_id or str(uuid.uuid4()),
        title=title.strip(),
        target=target,
        progress=0,
        unit=unit,
        deadline=deadline,
        created_at=now,
        completed_at=None,
    )


def apply_goal_progress(goal: Goal, amount: int, now: datetime) -> Goal:
    """Add (or with a negative amount, remove) progress.

    completed_at is stamped the first time progress reaches the target and
    cleared again if progress falls back below it.
    """
    progress = max(0, goal.progress + int(amount))
    if progress >= goal.target:
        completed_at = goal.completed_at or now
    else:
        completed_at = None
    return replace(goal, progress=progress, completed_at=completed_at)
