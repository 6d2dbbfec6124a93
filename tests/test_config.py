# tests/test_config.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from bgservice import config
from bgservice.config import Settings
from bgservice.logging_setup import setup_logging


def test_defaults_derive_from_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("DB_PATH", "LOG_DIR", "PID_FILE", "SITES_DIR", "APP_DB_PATH", "MAX_RUNTIME_SECONDS"):
        monkeypatch.delenv(f"BGSVC_{key}", raising=False)
    monkeypatch.setenv("BGSVC_DATA_DIR", str(tmp_path))

    s = Settings.from_env()

    assert s.db_path == tmp_path / "background.sqlite3"
    assert s.log_dir == tmp_path / "logs"
    assert s.pid_file == tmp_path / "bgservice.pid"
    assert s.app_db_path is None
    assert s.max_runtime_seconds == 3600.0


def test_env_parsing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BGSVC_CACHE_DIRS", f"{tmp_path}/a, {tmp_path}/b")
    monkeypatch.setenv("BGSVC_LOG_RETENTION_DAYS", "7")
    monkeypatch.setenv("BGSVC_SESSION_TTL_HOURS", "not-a-number")
    monkeypatch.setenv("BGSVC_SLEEP_INTERVAL_SECONDS", "2.5")

    s = Settings.from_env()

    assert s.cache_dirs == [tmp_path / "a", tmp_path / "b"]
    assert s.log_retention_days == 7
    assert s.session_ttl_hours == 24
    assert s.sleep_interval_seconds == 2.5


def test_db_path_for_site(settings: Settings) -> None:
    assert settings.db_path_for_site("default") == settings.db_path
    assert settings.db_path_for_site("") == settings.db_path
    assert settings.db_path_for_site("clinic") == settings.sites_dir / "clinic" / "background.sqlite3"
    for bad in ("..", "a/b", "x y"):
        with pytest.raises(ValueError):
            settings.db_path_for_site(bad)


def test_load_env_file_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BGSVC_APP_NAME", "before")
    env_file = tmp_path / "daemon.env"
    env_file.write_text("BGSVC_APP_NAME=from-file\n", "utf-8")

    assert config.load_env_file(env_file)
    assert config.get_settings(reload=True).app_name == "from-file"
    assert not config.load_env_file(tmp_path / "missing.env")


def test_setup_logging_writes_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved = (list(root.handlers), root.level)
    try:
        log_file = setup_logging(log_dir=tmp_path / "logs", console=False)
        logging.getLogger("bgservice.test").info("hello from test")
        for h in root.handlers:
            h.flush()
        assert "hello from test" in log_file.read_text("utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved[0]:
            root.addHandler(h)
        root.setLevel(saved[1])
