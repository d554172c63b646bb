"""Tests for quantix/config.py, quantix/logs.py and synchronizer wiring."""

import logging

from quantix.config import load_config
from quantix.logs import setup_logging
from quantix.remote import RestRemote
from quantix.sync import build_synchronizer

ENV_VARS = (
    "QUANTIX_REMOTE_URL",
    "QUANTIX_REMOTE_KEY",
    "QUANTIX_REMOTE_TIMEOUT",
    "QUANTIX_PROFILE_DEBOUNCE",
    "QUANTIX_DAILY_RULE",
    "QUANTIX_LOG_LEVEL",
    "QUANTIX_LOG_FILE",
)


def _clear(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(workspace, monkeypatch):
    _clear(monkeypatch)
    config = load_config()
    assert config.root == workspace.resolve()
    assert not config.remote.enabled
    assert config.remote.timeout == 10.0
    assert config.profile_debounce == 1.5
    assert config.daily_rule == "created_today"
    assert config.log_level == "INFO"
    assert config.log_file is None


def test_remote_needs_url_and_key(workspace, monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("QUANTIX_REMOTE_URL", "https://x.supabase.co")
    assert not load_config().remote.enabled
    monkeypatch.setenv("QUANTIX_REMOTE_KEY", "anon-key")
    assert load_config().remote.enabled


def test_overrides(workspace, monkeypatch, tmp_path):
    _clear(monkeypatch)
    monkeypatch.setenv("QUANTIX_PROFILE_DEBOUNCE", "0.25")
    monkeypatch.setenv("QUANTIX_REMOTE_TIMEOUT", "3")
    monkeypatch.setenv("QUANTIX_DAILY_RULE", "Completed_Today")
    monkeypatch.setenv("QUANTIX_LOG_LEVEL", "debug")
    monkeypatch.setenv("QUANTIX_LOG_FILE", str(tmp_path / "logs" / "q.log"))
    config = load_config()
    assert config.profile_debounce == 0.25
    assert config.remote.timeout == 3.0
    assert config.daily_rule == "completed_today"
    assert config.log_level == "DEBUG"
    assert config.log_file == tmp_path / "logs" / "q.log"


def test_malformed_values_fall_back(workspace, monkeypatch, caplog):
    _clear(monkeypatch)
    monkeypatch.setenv("QUANTIX_PROFILE_DEBOUNCE", "soon")
    monkeypatch.setenv("QUANTIX_REMOTE_TIMEOUT", "-1")
    monkeypatch.setenv("QUANTIX_DAILY_RULE", "whenever")
    with caplog.at_level(logging.WARNING, logger="quantix.config"):
        config = load_config()
    assert config.profile_debounce == 1.5
    assert config.remote.timeout == 10.0
    assert config.daily_rule == "created_today"
    assert "QUANTIX_PROFILE_DEBOUNCE" in caplog.text


def test_build_synchronizer_local_only(workspace, monkeypatch):
    _clear(monkeypatch)
    sync = build_synchronizer(load_config())
    assert sync.remote is None
    assert sync.worker is None
    assert sync.device_id == (workspace / "data" / "device_id").read_text("utf-8").strip()
    sync.hydrate()
    assert not sync.remote_available
    sync.close()


def test_build_synchronizer_with_remote(workspace, monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("QUANTIX_REMOTE_URL", "https://x.supabase.co")
    monkeypatch.setenv("QUANTIX_REMOTE_KEY", "anon-key")
    monkeypatch.setenv("QUANTIX_DAILY_RULE", "completed_today")
    sync = build_synchronizer(load_config())
    try:
        assert isinstance(sync.remote, RestRemote)
        assert sync.remote.base_url == "https://x.supabase.co"
        assert sync.worker.started
        assert sync.daily_rule == "completed_today"
    finally:
        sync.close()


def test_setup_logging_file_handler(tmp_path):
    log_file = tmp_path / "logs" / "quantix.log"
    logger = setup_logging("DEBUG", log_file, stream=False)
    try:
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        logging.getLogger("quantix.sync").info("hello from sync")
        for handler in logger.handlers:
            handler.flush()
        assert "[INFO] quantix.sync: hello from sync" in log_file.read_text("utf-8")

        # Reconfiguring replaces handlers instead of stacking them.
        setup_logging("INFO", log_file, stream=True)
        assert len(logger.handlers) == 2
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)
