from __future__ import annotations

import logging
import os
import secrets
import threading
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from quantix import (
    RecordNotFound,
    SessionError,
    Synchronizer,
    ValidationError,
    build_synchronizer,
    load_config,
)
from quantix.focus import format_elapsed
from quantix.logs import setup_logging
from quantix.progression import level_progress

logger = logging.getLogger("quantix.ui")

_sync: Synchronizer | None = None
_sync_lock = threading.Lock()


def get_sync() -> Synchronizer:
    """The process-wide synchronizer, built and hydrated on first use."""
    global _sync
    if _sync is not None:
        return _sync
    with _sync_lock:
        if _sync is None:
            config = load_config()
            setup_logging(config.log_level, config.log_file)
            sync = build_synchronizer(config)
            sync.hydrate()
            _sync = sync
    return _sync


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    global _sync
    if _sync is not None:
        logger.info("Shutting down, flushing pending remote writes")
        _sync.close()
        _sync = None


app = FastAPI(title="Quantix HUD", version="0.1.0", lifespan=lifespan)


# ── Errors ────────────────────────────────────────────────────

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": "; ".join(exc.errors), "errors": exc.errors})


@app.exception_handler(RecordNotFound)
async def not_found_handler(request: Request, exc: RecordNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(SessionError)
async def session_error_handler(request: Request, exc: SessionError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# ── Auth ──────────────────────────────────────────────────────

security = HTTPBasic(auto_error=False)


def get_current_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    expected_username = os.environ.get("QUANTIX_USERNAME", "")
    expected_password = os.environ.get("QUANTIX_PASSWORD", "")

    if not expected_username or not expected_password:
        return "guest"

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


# ── Payload helpers ───────────────────────────────────────────

def _session_payload(sync: Synchronizer) -> dict[str, Any]:
    elapsed = sync.session_elapsed()
    return {**sync.state.session.to_dict(), "elapsedSeconds": elapsed, "display": format_elapsed(elapsed)}


def _profile_payload(sync: Synchronizer) -> dict[str, Any]:
    profile = sync.state.profile
    return {**profile.to_dict(), "levelProgress": round(level_progress(profile), 4)}


def _escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


# ── Pages ─────────────────────────────────────────────────────

@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.get("/", response_class=HTMLResponse)
def index(username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> HTMLResponse:
    """Read-only HUD summary."""
    state = sync.state
    profile = state.profile
    streak = sync.streak()
    stats = sync.list_stats()

    task_rows = []
    for task in state.tasks:
        mark = "x" if task.completed else " "
        task_rows.append(
            f"<li><code>[{mark}]</code> {_escape(task.title)} "
            f"<span class=\"muted\">{_escape(task.priority)} · {task.xp_worth} XP</span></li>"
        )

    list_rows = []
    for tl in state.task_lists:
        s = stats.get(tl.id, {"total": 0, "completed": 0})
        list_rows.append(f"<li>{_escape(tl.name)}: {s['completed']}/{s['total']}</li>")

    week = "".join(
        f"<span title=\"{d['day']}\">{'■' if d['active'] else '□'}</span>" for d in sync.week()
    )
    offline = "" if sync.remote_available else '<div class="banner">Remote offline · saving locally</div>'

    html = f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{_escape(state.settings.app_name)}</title>
</head>
<body>
  {offline}
  <header>
    <h1>{_escape(state.settings.app_name)}</h1>
    <div class="muted">{_escape(state.settings.app_subtitle)}</div>
  </header>
  <section>
    <h2>{_escape(profile.name)} · {_escape(profile.rank_title)}</h2>
    <div>Level {profile.level} · {profile.current_xp}/{profile.xp_to_next_level} XP</div>
    <div>Streak {streak.consecutive_days} days (best {streak.longest_streak}) {week}</div>
    <div>{profile.total_tasks_completed} tasks · {profile.total_hours_logged:.1f} h focused</div>
    <div>Session {format_elapsed(sync.session_elapsed())}</div>
  </section>
  <section><h2>Lists</h2><ul>{''.join(list_rows)}</ul></section>
  <section><h2>Tasks</h2><ul>{''.join(task_rows) or '<li class="muted">(no tasks yet)</li>'}</ul></section>
</body>
</html>"""
    return HTMLResponse(html)


# ── State ─────────────────────────────────────────────────────

@app.get("/api/state")
def api_get_state(username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    """Full local state dump."""
    state = sync.state
    return {
        "deviceId": sync.device_id,
        "remoteAvailable": sync.remote_available,
        "profile": _profile_payload(sync),
        "tasks": [t.to_dict() for t in state.tasks],
        "lists": [tl.to_dict() for tl in state.task_lists],
        "listStats": sync.list_stats(),
        "settings": state.settings.to_dict(),
        "session": _session_payload(sync),
        "journal": [e.to_dict() for e in state.journal],
        "goals": [g.to_dict() for g in state.goals],
    }


# ── Tasks ─────────────────────────────────────────────────────

@app.get("/api/tasks")
def api_list_tasks(
    list_id: str | None = None,
    username: str = Depends(get_current_user),
    sync: Synchronizer = Depends(get_sync),
) -> dict[str, Any]:
    tasks = sync.state.tasks
    if list_id:
        tasks = [t for t in tasks if t.list_id == list_id]
    return {"tasks": [t.to_dict() for t in tasks], "listStats": sync.list_stats()}


@app.post("/api/tasks")
def api_create_task(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    sync: Synchronizer = Depends(get_sync),
) -> dict[str, Any]:
    task = sync.add_task(
        payload.get("title"),
        duration_minutes=payload.get("durationMinutes", 20),
        priority=payload.get("priority", "Medium"),
        list_id=payload.get("listId", "daily"),
    )
    return {"ok": True, "task": task.to_dict()}


@app.post("/api/tasks/{task_id}/toggle")
def api_toggle_task(task_id: str, username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    task, leveled_up = sync.toggle_task(task_id)
    return {"ok": True, "task": task.to_dict(), "leveledUp": leveled_up, "profile": _profile_payload(sync)}


@app.delete("/api/tasks/{task_id}")
def api_delete_task(task_id: str, username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    sync.delete_task(task_id)
    return {"ok": True, "task_id": task_id}


# ── Task lists ────────────────────────────────────────────────

@app.get("/api/lists")
def api_list_lists(username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    return {"lists": [tl.to_dict() for tl in sync.state.task_lists], "stats": sync.list_stats()}


@app.post("/api/lists")
def api_create_list(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    sync: Synchronizer = Depends(get_sync),
) -> dict[str, Any]:
    task_list = sync.create_task_list(
        payload.get("name"),
        description=payload.get("description", ""),
        icon=payload.get("icon", ""),
    )
    return {"ok": True, "list": task_list.to_dict()}


@app.put("/api/lists/{list_id}")
def api_update_list(
    list_id: str,
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    sync: Synchronizer = Depends(get_sync),
) -> dict[str, Any]:
    task_list = sync.update_task_list(
        list_id,
        payload.get("name"),
        description=payload.get("description"),
        icon=payload.get("icon"),
    )
    return {"ok": True, "list": task_list.to_dict()}


# ── Profile & settings ────────────────────────────────────────

@app.get("/api/profile")
def api_get_profile(username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    return _profile_payload(sync)


@app.put("/api/profile")
def api_update_profile(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    sync: Synchronizer = Depends(get_sync),
) -> dict[str, Any]:
    sync.update_profile(
        name=payload.get("name"),
        avatar_ref=payload.get("avatarRef"),
        zoom=payload.get("zoom"),
    )
    return {"ok": True, "profile": _profile_payload(sync)}


@app.post("/api/profile/reset_level")
def api_reset_level(username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    sync.reset_level()
    return {"ok": True, "profile": _profile_payload(sync)}


@app.get("/api/settings")
def api_get_settings(username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    return sync.state.settings.to_dict()


@app.put("/api/settings")
def api_update_settings(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    sync: Synchronizer = Depends(get_sync),
) -> dict[str, Any]:
    settings = sync.update_settings(
        app_name=payload.get("appName"),
        app_subtitle=payload.get("appSubtitle"),
        timezone=payload.get("timezone"),
        theme=payload.get("theme"),
    )
    return {"ok": True, "settings": settings.to_dict()}


@app.post("/api/identity/wipe")
def api_wipe_identity(username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    device_id = sync.wipe_identity()
    return {"ok": True, "deviceId": device_id}


# ── Streak ────────────────────────────────────────────────────

@app.get("/api/streak")
def api_get_streak(username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    return {**sync.streak().to_dict(), "week": sync.week()}


@app.post("/api/streak/reset")
def api_reset_streak(username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    settings = sync.reset_streak()
    return {"ok": True, "streakResetTimestamp": settings.to_dict()["streakResetTimestamp"], **sync.streak().to_dict()}


# ── Focus sessions ────────────────────────────────────────────

@app.get("/api/session")
def api_session_current(username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    return _session_payload(sync)


@app.post("/api/session/{action}")
def api_session_action(action: str, username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    """Drive the focus session: start, pause, resume, toggle or stop."""
    if action == "stop":
        record = sync.stop_session()
        return {"ok": True, "record": record.to_dict(), "session": _session_payload(sync)}
    actions = {
        "start": sync.start_session,
        "pause": sync.pause_session,
        "resume": sync.resume_session,
        "toggle": sync.toggle_pause,
    }
    if action not in actions:
        raise HTTPException(status_code=404, detail=f"Unknown session action: {action}")
    actions[action]()
    return {"ok": True, "session": _session_payload(sync)}


@app.get("/api/sessions")
def api_list_sessions(username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    return {"sessions": [s.to_dict() for s in sync.state.sessions]}


# ── Journal ───────────────────────────────────────────────────

@app.get("/api/journal")
def api_list_journal(username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    return {"entries": [e.to_dict() for e in sync.state.journal]}


@app.post("/api/journal")
def api_create_journal_entry(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    sync: Synchronizer = Depends(get_sync),
) -> dict[str, Any]:
    entry = sync.add_journal_entry(
        title=payload.get("title", ""),
        content=payload.get("content", ""),
        mood=payload.get("mood", "neutral"),
        images=payload.get("images"),
    )
    return {"ok": True, "entry": entry.to_dict()}


@app.delete("/api/journal/{entry_id}")
def api_delete_journal_entry(entry_id: str, username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    sync.delete_journal_entry(entry_id)
    return {"ok": True, "entry_id": entry_id}


# ── Goals ─────────────────────────────────────────────────────

@app.get("/api/goals")
def api_list_goals(username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    return {"goals": [g.to_dict() for g in sync.state.goals]}


@app.post("/api/goals")
def api_create_goal(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    sync: Synchronizer = Depends(get_sync),
) -> dict[str, Any]:
    goal = sync.add_goal(
        payload.get("title"),
        payload.get("target"),
        unit=payload.get("unit", ""),
        deadline=payload.get("deadline"),
    )
    return {"ok": True, "goal": goal.to_dict()}


@app.post("/api/goals/{goal_id}/progress")
def api_goal_progress(
    goal_id: str,
    payload: dict[str, Any] = Body(default={}),
    username: str = Depends(get_current_user),
    sync: Synchronizer = Depends(get_sync),
) -> dict[str, Any]:
    goal = sync.record_goal_progress(goal_id, payload.get("amount", 1))
    return {"ok": True, "goal": goal.to_dict()}


@app.delete("/api/goals/{goal_id}")
def api_delete_goal(goal_id: str, username: str = Depends(get_current_user), sync: Synchronizer = Depends(get_sync)) -> dict[str, Any]:
    sync.delete_goal(goal_id)
    return {"ok": True, "goal_id": goal_id}


def main() -> None:
    import uvicorn

    uvicorn.run(
        "ui.app:app",
        host=os.environ.get("QUANTIX_HOST", "127.0.0.1"),
        port=int(os.environ.get("QUANTIX_PORT", "8000")),
        log_level="info",
    )


if __name__ == "__main__":
    main()
