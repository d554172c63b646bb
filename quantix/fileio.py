"""Atomic file I/O for the local cache.

Readers raise LocalStorageError on unreadable or malformed content so the
store can decide on defaults; missing files are simply empty.
"""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from quantix.errors import LocalStorageError


def read_text(path: Path) -> str:
    """Read a text file, returning empty string if missing."""
    if not path.exists():
        return ""
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise LocalStorageError(f"Cannot read {path}: {e}") from e


def read_json(path: Path) -> Any:
    """Read a JSON document, returning None if missing or blank."""
    text = read_text(path)
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise LocalStorageError(f"Malformed JSON in {path}: {e}") from e


def read_yaml(path: Path) -> Any:
    """Read a YAML document, returning None if missing or blank."""
    text = read_text(path)
    if not text.strip():
        return None
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise LocalStorageError(f"Malformed YAML in {path}: {e}") from e


def _atomic_write(path: Path, content: str, suffix: str) -> None:
    """Temp file + flock + fsync + rename, so readers never see a partial blob."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=suffix)
    except OSError as e:
        raise LocalStorageError(f"Cannot write {path}: {e}") from e
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        os.replace(temp_path, path)
    except OSError as e:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise LocalStorageError(f"Cannot write {path}: {e}") from e


def write_text_atomic(path: Path, content: str) -> None:
    _atomic_write(path, content, suffix=".txt")


def write_json_atomic(path: Path, data: Any) -> None:
    _atomic_write(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n", suffix=".json")


def write_yaml_atomic(path: Path, data: Any) -> None:
    content = yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
    _atomic_write(path, content, suffix=".yaml")


def remove_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        raise LocalStorageError(f"Cannot remove {path}: {e}") from e
