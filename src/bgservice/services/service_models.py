# src/bgservice/services/service_models.py

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class ServiceDescriptor:
    """
    One row of the background_services table.

    Only `running` and `next_run` are written by the scheduler itself;
    everything else is administrative.
    """

    name: str
    handler_ref: str
    require_ref: str | None
    title: str
    active: bool
    interval_minutes: int
    sort_order: int
    running: int
    next_run: float

    @property
    def is_running(self) -> bool:
        return self.running == 1

    @property
    def forced_only(self) -> bool:
        # interval 0/NULL: claimable only when the caller forces execution
        return self.interval_minutes <= 0
