# src/bgservice/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The scheduler depends on Protocols instead of concrete implementations so the
store, handlers and observability sink stay swappable and easy to fake in tests.
"""

from typing import Any, Protocol

from ..services.service_models import ServiceDescriptor


class ServiceHandler(Protocol):
    """
    A background service body.

    Return values are ignored. A handler logs its own problems and disables
    itself (ServiceRepo.set_active) when it needs an operator.
    """

    def execute(self) -> None: ...


class ServiceRepo(Protocol):
    # Registry
    def list_eligible(self, service_filter: str = "", force: bool = False) -> list[ServiceDescriptor]: ...

    # Claim protocol
    def try_claim(
            self,
            name: str,
            interval_minutes: int | None,
            force: bool = False,
            *,
            now_ts: float | None = None,
    ) -> bool: ...
    def release(self, name: str) -> None: ...

    # Self-disable
    def set_active(self, name: str, active: bool) -> None: ...


class Diagnostics(Protocol):
    """Observability sink: one structured event per error path."""

    def emit(self, event: str, **fields: Any) -> None: ...
