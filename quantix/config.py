"""Process configuration from environment variables.

User preferences (timezone, theme, names) are not configuration; they live
in settings.yaml and change through the synchronizer.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from quantix.tasks import DAILY_RULES
from quantix.workspace import workspace_root

logger = logging.getLogger(__name__)


@dataclass
class RemoteConfig:
    url: str | None = None
    api_key: str | None = None
    timeout: float = 10.0

    @property
    def enabled(self) -> bool:
        return bool(self.url and self.api_key)


@dataclass
class AppConfig:
    root: Path
    remote: RemoteConfig
    profile_debounce: float = 1.5
    daily_rule: str = "created_today"
    log_level: str = "INFO"
    log_file: Path | None = None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number, using %s", name, raw, default)
        return default
    if value < 0:
        logger.warning("%s=%r is negative, using %s", name, raw, default)
        return default
    return value


def load_config() -> AppConfig:
    daily_rule = os.environ.get("QUANTIX_DAILY_RULE", "created_today").strip().lower()
    if daily_rule not in DAILY_RULES:
        logger.warning("Unknown QUANTIX_DAILY_RULE %r, using created_today", daily_rule)
        daily_rule = "created_today"

    log_file = os.environ.get("QUANTIX_LOG_FILE")
    return AppConfig(
        root=workspace_root(),
        remote=RemoteConfig(
            url=os.environ.get("QUANTIX_REMOTE_URL") or None,
            api_key=os.environ.get("QUANTIX_REMOTE_KEY") or None,
            timeout=_env_float("QUANTIX_REMOTE_TIMEOUT", 10.0),
        ),
        profile_debounce=_env_float("QUANTIX_PROFILE_DEBOUNCE", 1.5),
        daily_rule=daily_rule,
        log_level=os.environ.get("QUANTIX_LOG_LEVEL", "INFO").upper(),
        log_file=Path(log_file).expanduser() if log_file else None,
    )
