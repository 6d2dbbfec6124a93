# tests/test_recovery.py

from __future__ import annotations

import atexit
import os
import sqlite3
import subprocess
import sys
import textwrap
import time
from pathlib import Path

import pytest

from bgservice.core.state import PassRequest, RunContext
from bgservice.services.handlers import HandlerRegistry
from bgservice.services.recovery import CrashRecoveryHook
from bgservice.services.service_runner import run_pass
from bgservice.services.service_store import ServiceStore

from .fakes import FakeClock, RecordingDiagnostics

SRC_DIR = Path(__file__).resolve().parents[1] / "src"


class FlakyReleaseStore(ServiceStore):
    """Store whose first `failures` releases fail the way a locked database does."""

    def __init__(self, db_path: Path, failures: int = 1) -> None:
        super().__init__(db_path)
        self.failures = failures

    def release(self, name: str) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise sqlite3.OperationalError("database is locked")
        super().release(name)


class AtexitSpy:
    def __init__(self) -> None:
        self.registered: list[object] = []

    def register(self, func, *args, **kwargs):
        self.registered.append(func)
        return func

    def unregister(self, func) -> None:
        self.registered = [f for f in self.registered if f != func]


@pytest.fixture()
def atexit_spy(monkeypatch: pytest.MonkeyPatch) -> AtexitSpy:
    spy = AtexitSpy()
    monkeypatch.setattr(atexit, "register", spy.register)
    monkeypatch.setattr(atexit, "unregister", spy.unregister)
    return spy


def test_fire_releases_the_current_service(store: ServiceStore, clock: FakeClock) -> None:
    store.upsert_service(name="t", handler_ref="t", interval_minutes=10)
    assert store.try_claim("t", 10, now_ts=clock())

    context = RunContext(site="default", current_service="t")
    diagnostics = RecordingDiagnostics()
    CrashRecoveryHook(store, context, diagnostics).fire()

    assert store.get_service("t").running == 0  # type: ignore[union-attr]
    assert context.current_service is None
    assert diagnostics.names() == ["service.recovered"]

    # once due again, another pass can claim it
    assert not store.try_claim("t", 10, now_ts=clock() + 60)
    assert store.try_claim("t", 10, now_ts=clock() + 11 * 60)


def test_fire_is_a_noop_without_a_current_service(store: ServiceStore) -> None:
    diagnostics = RecordingDiagnostics()
    CrashRecoveryHook(store, RunContext(), diagnostics).fire()
    assert diagnostics.events == []


def test_hook_is_disarmed_after_a_normal_pass(
    atexit_spy: AtexitSpy, store, handlers, context, diagnostics, clock
) -> None:
    store.upsert_service(name="ok", handler_ref="ok", interval_minutes=10)
    handlers.register("ok", lambda: None)
    hook = CrashRecoveryHook(store, context, diagnostics)

    run_pass(
        PassRequest(),
        store=store,
        handlers=handlers,
        context=context,
        diagnostics=diagnostics,
        clock=clock,
        recovery=hook,
    )

    assert atexit_spy.registered == []
    assert not hook.registered


def test_hook_stays_armed_when_a_handler_exits_the_process(
    atexit_spy: AtexitSpy, store, handlers, context, diagnostics, clock
) -> None:
    store.upsert_service(name="quitter", handler_ref="quitter", interval_minutes=10, sort_order=1)
    store.upsert_service(name="later", handler_ref="later", interval_minutes=10, sort_order=2)
    handlers.register("quitter", lambda: sys.exit(2))
    ran: list[str] = []
    handlers.register("later", lambda: ran.append("later"))
    hook = CrashRecoveryHook(store, context, diagnostics)

    with pytest.raises(SystemExit):
        run_pass(
            PassRequest(),
            store=store,
            handlers=handlers,
            context=context,
            diagnostics=diagnostics,
            clock=clock,
            recovery=hook,
        )

    assert ran == []
    assert context.current_service == "quitter"
    assert store.get_service("quitter").running == 1  # type: ignore[union-attr]
    assert atexit_spy.registered == [hook.fire]

    # what the interpreter does on the way out
    for func in atexit_spy.registered:
        func()  # type: ignore[operator]

    assert store.get_service("quitter").running == 0  # type: ignore[union-attr]
    assert diagnostics.names() == ["service.recovered"]


def test_release_after_real_process_exit(tmp_path: Path) -> None:
    db = tmp_path / "background.sqlite3"
    store = ServiceStore(db)
    store.upsert_service(name="crashy", handler_ref="die", interval_minutes=10)

    script = textwrap.dedent(
        """
        import sys

        from bgservice.core.diagnostics import LoggingDiagnostics
        from bgservice.core.state import PassRequest, RunContext
        from bgservice.services.handlers import HandlerRegistry
        from bgservice.services.service_runner import run_pass
        from bgservice.services.service_store import ServiceStore

        store = ServiceStore(sys.argv[1])
        handlers = HandlerRegistry()
        handlers.register("die", lambda: sys.exit(3))
        run_pass(
            PassRequest(),
            store=store,
            handlers=handlers,
            context=RunContext(),
            diagnostics=LoggingDiagnostics(),
        )
        """
    )
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(p for p in (str(SRC_DIR), env.get("PYTHONPATH", "")) if p)

    started = time.time()
    proc = subprocess.run(
        [sys.executable, "-c", script, str(db)],
        env=env,
        capture_output=True,
        text=True,
        timeout=60,
    )
    assert proc.returncode == 3, proc.stderr

    svc = store.get_service("crashy")
    assert svc is not None
    assert svc.running == 0
    assert svc.next_run >= started + 600 - 1

    assert not store.try_claim("crashy", 10)
    assert store.try_claim("crashy", 10, now_ts=svc.next_run + 60)


def test_failed_release_is_retried_by_the_next_pass(
    atexit_spy: AtexitSpy, tmp_path: Path, handlers, context, diagnostics, clock
) -> None:
    store = FlakyReleaseStore(tmp_path / "background.sqlite3", failures=1)
    store.upsert_service(name="x", handler_ref="x", interval_minutes=10)
    handlers.register("x", lambda: None)
    hook = CrashRecoveryHook(store, context, diagnostics)

    def one_pass():
        return run_pass(
            PassRequest(),
            store=store,
            handlers=handlers,
            context=context,
            diagnostics=diagnostics,
            clock=clock,
            recovery=hook,
        )

    with pytest.raises(sqlite3.OperationalError):
        one_pass()

    assert store.get_service("x").running == 1  # type: ignore[union-attr]
    assert context.current_service == "x"
    assert atexit_spy.registered == [hook.fire]

    report = one_pass()

    assert store.get_service("x").running == 0  # type: ignore[union-attr]
    assert context.current_service is None
    assert diagnostics.names() == ["service.recovered"]
    # next_run was pushed by the first claim, so x is not due yet
    assert report.executed == []
    assert atexit_spy.registered == []
    assert not hook.registered


def test_hook_stays_armed_while_the_release_keeps_failing(
    atexit_spy: AtexitSpy, tmp_path: Path, handlers, context, diagnostics, clock
) -> None:
    store = FlakyReleaseStore(tmp_path / "background.sqlite3", failures=2)
    store.upsert_service(name="x", handler_ref="x", interval_minutes=10)
    handlers.register("x", lambda: None)
    hook = CrashRecoveryHook(store, context, diagnostics)

    for _ in range(2):
        with pytest.raises(sqlite3.OperationalError):
            run_pass(
                PassRequest(),
                store=store,
                handlers=handlers,
                context=context,
                diagnostics=diagnostics,
                clock=clock,
                recovery=hook,
            )
        assert atexit_spy.registered == [hook.fire]

    assert context.current_service == "x"

    # the exit callback gets the last word
    hook.fire()
    assert store.get_service("x").running == 0  # type: ignore[union-attr]
    assert diagnostics.names() == ["service.recovered"]
