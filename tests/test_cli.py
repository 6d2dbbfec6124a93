# tests/test_cli.py

from __future__ import annotations

import pytest

from bgservice.cli import main as cli_main
from bgservice.cli.bootstrap import create_site_runtime
from bgservice.core.state import PassRequest


@pytest.fixture(autouse=True)
def _no_logging_setup(monkeypatch: pytest.MonkeyPatch) -> None:
    # Keep pytest's own log capture handlers in place.
    monkeypatch.setattr(cli_main, "setup_logging", lambda **kwargs: None)


@pytest.mark.parametrize(
    ("argv", "expected"),
    [
        ((), PassRequest("default", "", False)),
        (("clinic",), PassRequest("clinic", "", False)),
        (("clinic", "all", "1"), PassRequest("clinic", "", True)),
        (("default", "log_cleanup"), PassRequest("default", "log_cleanup", False)),
        (("", "ALL", "0"), PassRequest("default", "", False)),
        (("default", "cache_cleanup", "yes"), PassRequest("default", "cache_cleanup", False)),
    ],
)
def test_cron_argument_convention(argv, expected) -> None:
    assert PassRequest.from_cli_args(*argv) == expected


def test_run_command_executes_due_services(settings) -> None:
    assert cli_main.main(["run"], settings=settings) == 0

    runtime = create_site_runtime(settings=settings)
    services = runtime.store.list_services()
    assert services
    assert all(s.running == 0 for s in services)
    assert all(s.next_run > 0 for s in services)


def test_run_command_for_another_site_uses_its_own_store(settings) -> None:
    assert cli_main.main(["run", "clinic", "log_cleanup", "1"], settings=settings) == 0

    clinic_db = settings.db_path_for_site("clinic")
    assert clinic_db.exists()
    assert clinic_db != settings.db_path

    clinic = create_site_runtime(settings=settings, site="clinic")
    ran = {s.name: s.next_run > 0 for s in clinic.store.list_services()}
    assert ran["log_cleanup"] is True
    assert ran["cache_cleanup"] is False


def test_invalid_site_is_rejected(settings) -> None:
    assert cli_main.main(["run", "../etc"], settings=settings) == 2


def test_list_command(settings, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_main.main(["list"], settings=settings) == 0
    out = capsys.readouterr().out
    assert "db_maintenance" in out
    assert "backup_validation" in out


def test_release_command(settings) -> None:
    runtime = create_site_runtime(settings=settings)
    assert runtime.store.try_claim("log_cleanup", 60, force=True)

    assert cli_main.main(["release", "log_cleanup"], settings=settings) == 0
    assert runtime.store.get_service("log_cleanup").running == 0  # type: ignore[union-attr]

    assert cli_main.main(["release", "nope"], settings=settings) == 2


def test_daemon_refuses_when_already_running(settings, monkeypatch: pytest.MonkeyPatch) -> None:
    from bgservice.daemon import pidfile

    settings.pid_file.parent.mkdir(parents=True, exist_ok=True)
    settings.pid_file.write_text("424242", "utf-8")
    monkeypatch.setattr(pidfile, "pid_alive", lambda pid: True)

    assert cli_main.main(["daemon"], settings=settings) == 1
    assert settings.pid_file.read_text("utf-8") == "424242"
