# src/bgservice/core/errors.py

from __future__ import annotations


class BackgroundServiceError(Exception):
    """Base class for errors raised by bgservice itself."""


class HandlerResolutionError(BackgroundServiceError):
    """A descriptor's handler could not be loaded or is not registered."""

    def __init__(self, handler_ref: str, reason: str) -> None:
        super().__init__(f"cannot resolve handler {handler_ref!r}: {reason}")
        self.handler_ref = handler_ref
        self.reason = reason


class PidFileError(BackgroundServiceError):
    """The daemon instance marker could not be read or written."""


class DaemonAlreadyRunning(BackgroundServiceError):
    def __init__(self, pid: int) -> None:
        super().__init__(f"Service already running with PID: {pid}")
        self.pid = pid
