# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from bgservice.config import Settings
from bgservice.core.state import RunContext
from bgservice.services.handlers import HandlerRegistry
from bgservice.services.service_store import ServiceStore

from .fakes import CallLog, FakeClock, RecordingDiagnostics


@pytest.fixture()
def store(tmp_path: Path) -> ServiceStore:
    return ServiceStore(tmp_path / "background.sqlite3")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def diagnostics() -> RecordingDiagnostics:
    return RecordingDiagnostics()


@pytest.fixture()
def handlers() -> HandlerRegistry:
    return HandlerRegistry()


@pytest.fixture()
def context() -> RunContext:
    return RunContext()


@pytest.fixture()
def calls() -> CallLog:
    return CallLog()


@pytest.fixture()
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """
    Settings rooted in tmp_path.

    Built through from_env so the env parsing is exercised, with every path
    pointing inside the test directory.
    """
    data_dir = tmp_path / "data"
    monkeypatch.setenv("BGSVC_DATA_DIR", str(data_dir))
    monkeypatch.setenv("BGSVC_LOG_CLEANUP_DIRS", str(tmp_path / "logs_to_prune"))
    monkeypatch.setenv("BGSVC_CACHE_DIRS", str(tmp_path / "cache"))
    monkeypatch.setenv("BGSVC_BACKUP_DIR", str(tmp_path / "backups"))
    monkeypatch.setenv("BGSVC_SLEEP_INTERVAL_SECONDS", "0")
    for key in ("BGSVC_DB_PATH", "BGSVC_LOG_DIR", "BGSVC_PID_FILE", "BGSVC_APP_DB_PATH", "BGSVC_SITES_DIR"):
        monkeypatch.delenv(key, raising=False)
    return Settings.from_env()
