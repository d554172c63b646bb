"""Tests for quantix/store.py and quantix/fileio.py: the local cache."""

import json
import logging
from datetime import datetime, timezone

import pytest
import yaml

from quantix.errors import LocalStorageError
from quantix.fileio import read_json, read_yaml, write_json_atomic
from quantix.models import AppSettings, Goal, SessionRecord, Task, UserProfile
from quantix.store import LocalStore
from quantix.tasks import new_task_list

NOW = datetime(2026, 2, 11, 15, 0, tzinfo=timezone.utc)


def test_fresh_workspace_loads_defaults(store):
    state = store.load_all()
    assert state.profile == UserProfile()
    assert state.tasks == []
    assert [tl.id for tl in state.task_lists] == ["daily", "tasks_only"]
    assert state.settings == AppSettings()
    assert not state.session.is_active


def test_tasks_persist(store, workspace):
    tasks = [Task(id="t1", title="A", created_at=NOW), Task(id="t2", title="B", created_at=NOW)]
    assert store.save_tasks(tasks)
    assert LocalStore(workspace).load_tasks() == tasks
    raw = json.loads((workspace / "data" / "tasks.json").read_text("utf-8"))
    assert raw[0]["id"] == "t1"


def test_lists_and_settings_are_yaml(store, workspace):
    store.save_task_lists([new_task_list("Work", list_id="work")])
    store.save_settings(AppSettings(app_name="HQ", timezone="Europe/Berlin"))
    assert yaml.safe_load((workspace / "data" / "lists.yaml").read_text("utf-8"))[0]["id"] == "work"
    assert store.load_settings().timezone == "Europe/Berlin"
    assert [tl.id for tl in store.load_task_lists()] == ["work"]


def test_other_blobs_persist(store):
    store.save_profile(UserProfile(name="Neo", level=3))
    store.save_sessions([SessionRecord(id="s1", started_at=NOW, ended_at=NOW, duration_seconds=5)])
    store.save_goals([Goal(id="g1", title="G", target=2, created_at=NOW)])
    state = store.load_all()
    assert state.profile.name == "Neo" and state.profile.level == 3
    assert state.sessions[0].duration_seconds == 5
    assert state.goals[0].id == "g1"


def test_malformed_blob_loads_defaults(store, workspace, caplog):
    (workspace / "data" / "tasks.json").write_text("{not json", encoding="utf-8")
    (workspace / "data" / "profile.json").write_text("[1, 2]", encoding="utf-8")
    with caplog.at_level(logging.ERROR, logger="quantix.store"):
        assert store.load_tasks() == []
        assert store.load_profile() == UserProfile()
    assert "unreadable" in caplog.text


def test_wrong_shape_blob_loads_defaults(store, workspace):
    (workspace / "data" / "tasks.json").write_text('{"tasks": []}', encoding="utf-8")
    assert store.load_tasks() == []


def test_write_failure_is_logged_not_raised(tmp_path, caplog):
    root = tmp_path / "ro"
    root.mkdir()
    (root / "data").write_text("not a directory", encoding="utf-8")
    store = LocalStore(root)
    with caplog.at_level(logging.ERROR, logger="quantix.store"):
        assert store.save_tasks([Task(id="t1", title="A")]) is False
    assert "write failed" in caplog.text


def test_device_id_is_stable(store, workspace):
    first = store.device_id()
    assert first
    assert LocalStore(workspace).device_id() == first


def test_wipe_keeps_preferences(store):
    old_id = store.device_id()
    store.save_tasks([Task(id="t1", title="A")])
    store.save_profile(UserProfile(name="Neo"))
    store.save_settings(AppSettings(app_name="HQ"))
    store.save_task_lists([new_task_list("Work", list_id="work")])

    store.wipe()

    assert store.load_tasks() == []
    assert store.load_profile() == UserProfile()
    assert store.load_settings().app_name == "HQ"
    assert [tl.id for tl in store.load_task_lists()] == ["work"]
    assert store.device_id() != old_id


# ── fileio ────────────────────────────────────────────────────


def test_read_missing_files(tmp_path):
    assert read_json(tmp_path / "nope.json") is None
    assert read_yaml(tmp_path / "nope.yaml") is None


def test_read_malformed_yaml_raises(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("key: [unclosed", encoding="utf-8")
    with pytest.raises(LocalStorageError):
        read_yaml(path)


def test_atomic_write_leaves_no_temp_files(tmp_path):
    path = tmp_path / "nested" / "doc.json"
    write_json_atomic(path, {"a": 1})
    write_json_atomic(path, {"a": 2})
    assert read_json(path) == {"a": 2}
    assert [p.name for p in path.parent.iterdir()] == ["doc.json"]
