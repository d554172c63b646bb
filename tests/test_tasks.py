"""Tests for quantix/tasks.py: validation, toggling and dashboard totals."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from quantix.clock import UTC
from quantix.models import Task
from quantix.tasks import (
    default_task_lists,
    find_task,
    is_daily_list,
    list_stats,
    new_task,
    new_task_list,
    rename_task_list,
    toggle_task,
    validate_task,
    validate_task_list,
)

NOW = datetime(2026, 2, 11, 15, 0, tzinfo=timezone.utc)
YESTERDAY = NOW - timedelta(days=1)


def test_validate_task_valid():
    assert validate_task({"title": "Write report", "priority": "High", "duration_minutes": 30}) == []
    assert validate_task({"title": "No estimate", "duration_minutes": None}) == []


def test_validate_task_blank_title():
    assert any("title" in e for e in validate_task({"title": "   "}))
    assert any("title" in e for e in validate_task({}))


def test_validate_task_invalid_priority():
    errors = validate_task({"title": "T", "priority": "Urgent"})
    assert any("priority" in e for e in errors)


@pytest.mark.parametrize("duration", [0, -5, 1.5, True, "20"])
def test_validate_task_bad_duration(duration):
    assert any("duration" in e for e in validate_task({"title": "T", "duration_minutes": duration}))


def test_validate_task_blank_list():
    assert any("list_id" in e for e in validate_task({"title": "T", "list_id": ""}))


def test_new_task_fixes_xp_at_creation():
    task = new_task("  Deep work  ", NOW, duration_minutes=180, priority="Critical", task_id="t1")
    assert task.id == "t1"
    assert task.title == "Deep work"
    assert task.xp_worth == 720
    assert task.list_id == "daily"
    assert task.created_at == NOW
    assert not task.completed and task.completed_at is None


def test_new_task_generates_id():
    assert new_task("A", NOW).id != new_task("B", NOW).id


def test_toggle_task_keeps_completed_at_invariant():
    task = new_task("T", NOW)
    done = toggle_task(task, NOW)
    assert done.completed and done.completed_at == NOW
    undone = toggle_task(done, NOW)
    assert not undone.completed and undone.completed_at is None
    assert undone.xp_worth == task.xp_worth


def test_find_task():
    tasks = [Task(id="a", title="A"), Task(id="b", title="B")]
    assert find_task(tasks, "b").title == "B"
    assert find_task(tasks, "c") is None


# ── Task lists ────────────────────────────────────────────────


def test_default_task_lists():
    assert [tl.id for tl in default_task_lists()] == ["daily", "tasks_only"]


def test_validate_task_list():
    assert validate_task_list({"name": "Work"}) == []
    assert validate_task_list({"name": " "}) != []


def test_rename_task_list():
    lists = default_task_lists() + [new_task_list("Side", list_id="side")]
    renamed = rename_task_list(lists, "side", " Side quests ", icon="star")
    side = [tl for tl in renamed if tl.id == "side"][0]
    assert side.name == "Side quests"
    assert side.icon == "star"
    assert side.description == ""
    assert renamed[0] == lists[0]


def test_is_daily_list():
    assert is_daily_list("daily")
    assert is_daily_list("my-daily-habits")
    assert not is_daily_list("tasks_only")


# ── Dashboard totals ──────────────────────────────────────────


def _tasks():
    return [
        Task(id="old-open", list_id="daily", created_at=YESTERDAY),
        Task(id="old-done-today", list_id="daily", created_at=YESTERDAY, completed=True, completed_at=NOW),
        Task(id="new-open", list_id="daily", created_at=NOW),
        Task(id="new-done", list_id="daily", created_at=NOW, completed=True, completed_at=NOW),
        Task(id="old-done-old", list_id="daily", created_at=YESTERDAY, completed=True, completed_at=YESTERDAY),
        Task(id="general", list_id="tasks_only", created_at=YESTERDAY, completed=True, completed_at=YESTERDAY),
    ]


def test_list_stats_created_today():
    stats = list_stats(_tasks(), NOW, UTC, "created_today")
    assert stats["daily"] == {"total": 2, "completed": 1}
    assert stats["tasks_only"] == {"total": 1, "completed": 1}


def test_list_stats_completed_today():
    stats = list_stats(_tasks(), NOW, UTC, "completed_today")
    assert stats["daily"] == {"total": 2, "completed": 2}


def test_list_stats_active_or_completed_today():
    stats = list_stats(_tasks(), NOW, UTC, "active_or_completed_today")
    assert stats["daily"] == {"total": 4, "completed": 2}


def test_list_stats_unknown_rule_falls_back():
    assert list_stats(_tasks(), NOW, UTC, "bogus") == list_stats(_tasks(), NOW, UTC)


def test_list_stats_uses_timezone():
    # Created 15:00 UTC on the 11th, which is already the 12th in Tokyo.
    task = Task(id="x", list_id="daily", created_at=NOW)
    tomorrow_in_tokyo = NOW + timedelta(hours=10)
    assert list_stats([task], NOW, UTC)["daily"]["total"] == 1
    assert list_stats([task], tomorrow_in_tokyo, UTC)["daily"]["total"] == 0
    assert list_stats([task], tomorrow_in_tokyo, ZoneInfo("Asia/Tokyo"))["daily"]["total"] == 1
    assert list_stats([task], NOW - timedelta(hours=10), ZoneInfo("Asia/Tokyo"))["daily"]["total"] == 0
