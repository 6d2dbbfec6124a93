# src/bgservice/daemon/controller.py

"""
Continuous mode.

Runs a pass, waits, runs again until a stop is requested (signal or stop())
or the configured maximum run time has elapsed. Stopping never interrupts a
pass: the stop flag is checked between passes and between the short sleeps
that make up the idle wait. Signal handlers only set that flag; they never
take a lock the interrupted main thread might already hold.
"""

from __future__ import annotations

import logging
import os
import signal
import threading
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from ..core.ports import Diagnostics
from .pidfile import PidFile

logger = logging.getLogger(__name__)

STOP_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGINT", "SIGQUIT") if hasattr(signal, name)
)

# Longest uninterrupted sleep of the idle wait.
WAIT_SLICE_SECONDS = 1.0


class DaemonState(StrEnum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    TERMINATED = "terminated"


class BackgroundDaemon:
    def __init__(
            self,
            pass_fn: Callable[[], Any],
            pidfile: PidFile,
            diagnostics: Diagnostics,
            *,
            sleep_interval: float = 60.0,
            max_runtime: float = 3600.0,
            clock: Callable[[], float] = time.monotonic,
            sleep: Callable[[float], None] = time.sleep,
            install_signals: bool = True,
    ) -> None:
        self._pass_fn = pass_fn
        self._pidfile = pidfile
        self._diagnostics = diagnostics
        self._sleep_interval = max(0.0, float(sleep_interval))
        self._max_runtime = float(max_runtime)
        self._clock = clock
        self._sleep = sleep
        self._install_signals = install_signals

        self._stop_requested = False
        self._previous_handlers: dict[int, Any] = {}
        self.state = DaemonState.IDLE
        self.passes = 0

    # ---- control ----

    def stop(self) -> None:
        if not self._stop_requested:
            logger.info("Background service stop requested")
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def handle_signal(self, signum: int, _frame: Any | None = None) -> None:
        # Runs on the main thread between bytecodes: set the flag, nothing else.
        self._stop_requested = True

    def _install_signal_handlers(self) -> None:
        if not self._install_signals:
            return
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread; signal handlers not installed")
            return
        for sig in STOP_SIGNALS:
            try:
                self._previous_handlers[sig] = signal.signal(sig, self.handle_signal)
            except (OSError, ValueError):
                logger.debug("Cannot install handler for signal %s", sig)

    def _restore_signal_handlers(self) -> None:
        for sig, previous in self._previous_handlers.items():
            try:
                signal.signal(sig, previous)
            except (OSError, ValueError, TypeError):
                logger.debug("Cannot restore handler for signal %s", sig)
        self._previous_handlers.clear()

    # ---- lifecycle ----

    def _should_stop(self, started: float) -> bool:
        if self._stop_requested:
            return True
        if self._clock() - started > self._max_runtime:
            logger.info("Max execution time reached, stopping service")
            return True
        return False

    def _idle_wait(self) -> None:
        remaining = self._sleep_interval
        while remaining > 0 and not self._stop_requested:
            step = min(WAIT_SLICE_SECONDS, remaining)
            self._sleep(step)
            remaining -= step

    def _run_one_pass(self) -> None:
        try:
            self._pass_fn()
        except Exception as e:
            logger.exception("Error processing background services")
            self._diagnostics.emit("daemon.pass_failed", error=f"{type(e).__name__}: {e}")
        self.passes += 1

    def start(self) -> None:
        """
        Run until stopped.

        Raises DaemonAlreadyRunning (before any pass runs) if another live
        instance holds the PID file.
        """
        self.state = DaemonState.STARTING
        try:
            stale = self._pidfile.acquire()
        except Exception:
            self.state = DaemonState.TERMINATED
            raise
        if stale:
            self._diagnostics.emit("daemon.stale_marker", pidfile=str(self._pidfile.path))

        self._install_signal_handlers()
        logger.info("Background service started pid=%s", os.getpid())

        try:
            self.state = DaemonState.RUNNING
            started = self._clock()
            while True:
                self._run_one_pass()
                if self._should_stop(started):
                    break
                self._idle_wait()
                if self._should_stop(started):
                    break
            self.state = DaemonState.STOPPING
        finally:
            self._restore_signal_handlers()
            self._pidfile.release()
            self.state = DaemonState.TERMINATED
            logger.info("Background service stopped after %d passes", self.passes)
