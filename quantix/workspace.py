"""Workspace root and local cache paths."""

from __future__ import annotations

import os
from pathlib import Path


def workspace_root() -> Path:
    """Get the workspace root directory (contains data/ and logs/)."""
    return Path(
        os.environ.get("QUANTIX_ROOT", str(Path.home() / "quantix"))
    ).expanduser().resolve()


def data_dir(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "data"


def profile_path(root: Path | None = None) -> Path:
    return data_dir(root) / "profile.json"


def tasks_path(root: Path | None = None) -> Path:
    return data_dir(root) / "tasks.json"


def lists_path(root: Path | None = None) -> Path:
    return data_dir(root) / "lists.yaml"


def settings_path(root: Path | None = None) -> Path:
    return data_dir(root) / "settings.yaml"


def sessions_path(root: Path | None = None) -> Path:
    return data_dir(root) / "sessions.json"


def journal_path(root: Path | None = None) -> Path:
    return data_dir(root) / "journal.json"


def goals_path(root: Path | None = None) -> Path:
    return data_dir(root) / "goals.json"


def device_id_path(root: Path | None = None) -> Path:
    return data_dir(root) / "device_id"
