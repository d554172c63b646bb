#!/usr/bin/env python3
"""Quantix TUI: a terminal HUD for tasks, XP, streaks and focus sessions."""

from __future__ import annotations

from typing import Callable

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.timer import Timer
from textual.widgets import DataTable, Footer, Input, Label, ProgressBar, Static

from quantix import RecordNotFound, SessionError, Synchronizer, UserProfile, ValidationError
from quantix.config import load_config
from quantix.focus import SessionTicker, format_elapsed
from quantix.logs import setup_logging
from quantix.sync import build_synchronizer


# ── Stylesheet ─────────────────────────────────────────────────

CSS = """
Screen {
    background: $surface;
}

#header-bar {
    dock: top;
    height: 3;
    background: $primary-background;
    color: $text;
    content-align: center middle;
    padding: 0 2;
}

#offline-banner {
    dock: top;
    height: 1;
    background: $warning-darken-2;
    color: $text;
    padding: 0 2;
    display: none;
}

#main-layout {
    height: 1fr;
}

#left-pane {
    width: 2fr;
    min-width: 40;
    border-right: tall $primary-background-darken-2;
    padding: 0 1;
}

#right-pane {
    width: 1fr;
    min-width: 30;
    padding: 0 1;
}

.section-title {
    text-style: bold;
    color: $text;
    margin: 1 0 0 0;
    padding: 0 1;
}

#tasks-table {
    height: 1fr;
}

#new-task {
    height: 3;
}

#profile-info, #streak-info {
    height: auto;
    padding: 0 1;
}

#session-timer {
    height: 3;
    content-align: center middle;
    text-style: bold;
    border: tall $primary-background-darken-2;
}
"""


# ── Timers ─────────────────────────────────────────────────────


class _TimerHandle:
    def __init__(self, timer: Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.stop()


class AppScheduler:
    """Runs scheduled callbacks on the Textual event loop."""

    def __init__(self, app: App) -> None:
        self._app = app

    def call_later(self, delay: float, callback: Callable[[], None]) -> _TimerHandle:
        return _TimerHandle(self._app.set_timer(delay, callback))


# ── Main app ───────────────────────────────────────────────────


class QuantixApp(App):
    """Quantix: terminal HUD."""

    TITLE = "Quantix"
    CSS = CSS

    BINDINGS = [
        Binding("a", "add_task", "Add"),
        Binding("x", "toggle_task", "Done"),
        Binding("delete", "delete_task", "Delete"),
        Binding("s", "toggle_session", "Start/Stop"),
        Binding("p", "pause_session", "Pause"),
        Binding("escape", "blur_focus", "Back"),
        Binding("q", "quit_app", "Quit"),
    ]

    def __init__(self, sync: Synchronizer | None = None) -> None:
        super().__init__()
        if sync is None:
            config = load_config()
            log_file = config.log_file or config.root / "logs" / "quantix.log"
            setup_logging(config.log_level, log_file, stream=False)
            sync = build_synchronizer(config)
        self.sync = sync
        self._ticker: SessionTicker | None = None
        self.sync.on_level_up(self._on_level_up)

    def compose(self) -> ComposeResult:
        yield Static(id="header-bar")
        yield Static("Remote offline · changes are saved locally", id="offline-banner")
        with Horizontal(id="main-layout"):
            with Vertical(id="left-pane"):
                yield Label("Tasks", classes="section-title")
                yield DataTable(id="tasks-table", cursor_type="row")
                yield Input(placeholder="New task: title [minutes] [Low|Medium|High|Critical]", id="new-task")
            with Vertical(id="right-pane"):
                yield Label("Agent", classes="section-title")
                yield Static(id="profile-info")
                yield ProgressBar(id="xp-bar", show_eta=False)
                yield Label("Streak", classes="section-title")
                yield Static(id="streak-info")
                yield Label("Focus", classes="section-title")
                yield Static(format_elapsed(0), id="session-timer")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#tasks-table", DataTable)
        table.add_columns("Done", "Title", "Priority", "XP", "List")
        self._ticker = SessionTicker(AppScheduler(self), self._show_elapsed, self.sync.session_elapsed)
        self._hydrate()

    @work(thread=True)
    def _hydrate(self) -> None:
        self.sync.hydrate()
        self.call_from_thread(self._refresh)

    # ── Rendering ─────────────────────────────────────────────

    def _refresh(self) -> None:
        state = self.sync.state
        profile = state.profile
        streak = self.sync.streak()

        self.query_one("#header-bar", Static).update(
            f"{state.settings.app_name} · {profile.name} · {profile.rank_title} · "
            f"Lv {profile.level} · 🔥 {streak.consecutive_days}"
        )
        self.query_one("#offline-banner", Static).display = not self.sync.remote_available

        self.query_one("#profile-info", Static).update(
            f"XP {profile.current_xp}/{profile.xp_to_next_level}\n"
            f"Tasks completed: {profile.total_tasks_completed}\n"
            f"Hours focused: {profile.total_hours_logged:.1f}"
        )
        bar = self.query_one("#xp-bar", ProgressBar)
        bar.update(total=profile.xp_to_next_level, progress=profile.current_xp)

        week = " ".join(
            ("■" if d["active"] else "□") if not d["isFuture"] else "·" for d in self.sync.week()
        )
        self.query_one("#streak-info", Static).update(
            f"{streak.consecutive_days} days (best {streak.longest_streak})\n{week}"
        )

        table = self.query_one("#tasks-table", DataTable)
        table.clear()
        lists = {tl.id: tl.name for tl in state.task_lists}
        for task in state.tasks:
            table.add_row(
                "✔" if task.completed else " ",
                task.title,
                task.priority,
                str(task.xp_worth),
                lists.get(task.list_id, task.list_id),
                key=task.id,
            )
        self._show_elapsed(self.sync.session_elapsed())

    def _show_elapsed(self, seconds: int) -> None:
        session = self.sync.state.session
        suffix = " (paused)" if session.is_paused else ""
        self.query_one("#session-timer", Static).update(format_elapsed(seconds) + suffix)

    def _on_level_up(self, profile: UserProfile) -> None:
        self.notify(f"Level {profile.level}: {profile.rank_title}", title="Level up!", severity="information")

    def _selected_task_id(self) -> str | None:
        table = self.query_one("#tasks-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return row_key.value

    # ── Tasks ─────────────────────────────────────────────────

    def action_add_task(self) -> None:
        self.query_one("#new-task", Input).focus()

    @on(Input.Submitted, "#new-task")
    def _on_new_task(self, event: Input.Submitted) -> None:
        words = event.value.split()
        priority = "Medium"
        minutes = 20
        if words and words[-1].capitalize() in ("Low", "Medium", "High", "Critical"):
            priority = words.pop().capitalize()
        if words and words[-1].isdigit():
            minutes = int(words.pop())
        try:
            self.sync.add_task(" ".join(words), duration_minutes=minutes, priority=priority)
        except ValidationError as e:
            self.notify("; ".join(e.errors), title="Invalid task", severity="warning")
            return
        event.input.value = ""
        self._refresh()

    def action_toggle_task(self) -> None:
        task_id = self._selected_task_id()
        if task_id is None:
            return
        try:
            self.sync.toggle_task(task_id)
        except RecordNotFound as e:
            self.notify(str(e), severity="warning")
        self._refresh()

    def action_delete_task(self) -> None:
        task_id = self._selected_task_id()
        if task_id is None:
            return
        try:
            self.sync.delete_task(task_id)
        except RecordNotFound as e:
            self.notify(str(e), severity="warning")
        self._refresh()

    # ── Focus session ─────────────────────────────────────────

    def action_toggle_session(self) -> None:
        if self.sync.state.session.is_active:
            record = self.sync.stop_session()
            self._ticker.stop()
            self.notify(f"Logged {format_elapsed(record.duration_seconds)}", title="Session stopped")
        else:
            self.sync.start_session()
            self._ticker.start()
        self._refresh()

    def action_pause_session(self) -> None:
        try:
            session = self.sync.toggle_pause()
        except SessionError as e:
            self.notify(str(e), severity="warning")
            return
        if session.is_paused:
            self._ticker.stop()
        else:
            self._ticker.start()
        self._show_elapsed(self.sync.session_elapsed())

    # ── Lifecycle ─────────────────────────────────────────────

    def action_blur_focus(self) -> None:
        self.set_focus(None)

    def action_quit_app(self) -> None:
        if self._ticker is not None:
            self._ticker.stop()
        self.sync.close()
        self.exit()


# ── Entry point ────────────────────────────────────────────────


def main() -> None:
    app = QuantixApp()
    app.run()


if __name__ == "__main__":
    main()
