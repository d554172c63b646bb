"""Tests for quantix/models.py: cache documents and wire rows."""

from datetime import datetime, timezone

from quantix.models import (
    AppSettings,
    Goal,
    JournalEntry,
    SessionRecord,
    StreakState,
    DayStats,
    Task,
    UserProfile,
)

NOW = datetime(2026, 2, 11, 15, 0, tzinfo=timezone.utc)


def test_task_round_trip():
    task = Task(
        id="t1",
        title="Write",
        completed=True,
        priority="High",
        xp_worth=90,
        list_id="tasks_only",
        created_at=NOW,
        completed_at=NOW,
        duration_minutes=30,
    )
    d = task.to_dict()
    assert d["xpWorth"] == 90
    assert d["completedAt"] == "2026-02-11T15:00:00.000+00:00"
    assert Task.from_dict(d) == task


def test_task_from_legacy_cache():
    task = Task.from_dict({"id": "t1", "title": "Old", "timestamp": 1770822000000, "duration": 20, "priority": "Urgent"})
    assert task.created_at == datetime.fromtimestamp(1770822000, tz=timezone.utc)
    assert task.duration_minutes == 20
    assert task.priority == "Medium"
    assert task.list_id == "daily"


def test_task_to_remote_uses_wire_names():
    row = Task(id="t1", title="W", xp_worth=40, created_at=NOW, duration_minutes=20).to_remote("dev")
    assert set(row) == {
        "id", "user_id", "list_id", "title", "completed", "priority",
        "xp_worth", "duration_minutes", "completed_at", "created_at",
    }
    assert row["user_id"] == "dev"
    assert row["completed_at"] is None


def test_task_from_remote():
    task = Task.from_remote({
        "id": "t1", "title": "Remote", "completed": True, "priority": "Low",
        "xp_worth": 25, "list_id": None, "completed_at": "2026-02-11T15:00:00Z",
        "created_at": "2026-02-10T09:00:00+00:00", "duration_minutes": None,
    })
    assert task.list_id == "daily"
    assert task.completed_at == NOW
    assert task.duration_minutes is None


def test_task_completion_time_follows_completed_flag():
    created = "2026-02-10T09:00:00+00:00"
    task = Task.from_remote({"id": "t1", "title": "R", "completed": True, "completed_at": None, "created_at": created})
    assert task.completed
    assert task.completed_at == task.created_at

    task = Task.from_dict({"id": "t2", "title": "L", "completed": True})
    assert not task.completed
    assert task.completed_at is None

    task = Task.from_dict({"id": "t3", "title": "L", "completed": False, "completedAt": "2026-02-11T15:00:00Z"})
    assert task.completed_at is None


def test_profile_defaults_and_legacy_keys():
    assert UserProfile.from_dict({}) == UserProfile()
    profile = UserProfile.from_dict({
        "name": "Neo",
        "avatarUrl": "https://example.com/a.png",
        "gamerTag": "Scout",
        "level": 5,
        "currentXP": 120,
        "nextLevelXP": 5062,
        "stats": {"totalHours": 12.5, "totalTasksCompleted": 40},
    })
    assert profile.avatar_ref == "https://example.com/a.png"
    assert profile.rank_title == "Scout"
    assert profile.xp_to_next_level == 5062
    assert profile.total_hours_logged == 12.5
    assert profile.total_tasks_completed == 40


def test_profile_from_dict_clamps():
    profile = UserProfile.from_dict({"level": 0, "currentXP": -5, "xpToNextLevel": 0})
    assert profile.level == 1
    assert profile.current_xp == 0
    assert profile.xp_to_next_level >= 1


def test_profile_merge_remote_present_fields_win():
    local = UserProfile(name="Local", level=4, current_xp=300, xp_to_next_level=3375, total_tasks_completed=9, zoom=1.2)
    merged = local.merge_remote({"name": "", "level": 6, "current_xp": 0, "next_level_xp": 7593})
    assert merged.name == "Local"
    assert merged.level == 6
    assert merged.current_xp == 0
    assert merged.xp_to_next_level == 7593
    assert merged.total_tasks_completed == 9
    assert merged.zoom == 1.2


def test_profile_to_remote():
    row = UserProfile(name="Neo", level=2).to_remote("dev", NOW)
    assert row["id"] == "dev"
    assert row["next_level_xp"] == 1000
    assert row["updated_at"] == "2026-02-11T15:00:00.000+00:00"
    assert "total_hours_logged" not in row


def test_session_record_remote_rows():
    open_row = SessionRecord(id="s1", started_at=NOW).to_remote("dev")
    assert open_row == {"id": "s1", "user_id": "dev", "started_at": "2026-02-11T15:00:00.000+00:00"}

    closed = SessionRecord(id="s1", started_at=NOW, ended_at=NOW, duration_seconds=60)
    row = closed.to_remote("dev")
    assert row["duration_seconds"] == 60
    assert row["ended_at"] is not None
    assert SessionRecord.from_remote(row) == closed


def test_journal_and_goal_rows():
    entry = JournalEntry(id="j1", title="T", mood="idea", created_at=NOW)
    assert JournalEntry.from_remote(entry.to_remote("dev")) == entry
    assert JournalEntry.from_dict({"mood": "furious"}).mood == "neutral"

    goal = Goal(id="g1", title="G", target=5, progress=2, deadline="2026-03-01", created_at=NOW)
    assert Goal.from_remote(goal.to_remote("dev")) == goal
    assert Goal.from_dict(goal.to_dict()) == goal


def test_settings_reads_legacy_streak_key():
    settings = AppSettings.from_dict({"streakStartTimestamp": 1770822000000, "theme": "plaid"})
    assert settings.streak_reset_at == datetime.fromtimestamp(1770822000, tz=timezone.utc)
    assert settings.theme == "neon-lime"
    assert AppSettings.from_dict(settings.to_dict()) == settings


def test_streak_state_to_dict():
    state = StreakState(days={"2026-02-11": DayStats(2, 80, 1.5)}, consecutive_days=1, longest_streak=4)
    d = state.to_dict()
    assert d["consecutiveDays"] == 1
    assert d["days"]["2026-02-11"] == {"tasksCompleted": 2, "xpEarned": 80, "hoursLogged": 1.5}
