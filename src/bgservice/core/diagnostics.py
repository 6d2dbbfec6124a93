# src/bgservice/core/diagnostics.py

from __future__ import annotations

import logging
from typing import Any

_LEVELS = {
    "service.failed": logging.ERROR,
    "service.unresolved": logging.ERROR,
    "service.recovered": logging.WARNING,
    "daemon.pass_failed": logging.ERROR,
    "daemon.stale_marker": logging.WARNING,
}


def format_event(event: str, fields: dict[str, Any]) -> str:
    parts = [f"event={event}"]
    for key in sorted(fields):
        parts.append(f"{key}={fields[key]!r}")
    return " ".join(parts)


class LoggingDiagnostics:
    """
    Diagnostics sink backed by stdlib logging.

    Events are written as one `event=... key=value` line on the
    bgservice.diagnostics logger so they can be grepped out of the service log.
    """

    def __init__(self, logger_name: str = "bgservice.diagnostics") -> None:
        self._logger = logging.getLogger(logger_name)

    def emit(self, event: str, **fields: Any) -> None:
        level = _LEVELS.get(event, logging.INFO)
        self._logger.log(level, format_event(event, fields), extra={"event": event, "fields": fields})
