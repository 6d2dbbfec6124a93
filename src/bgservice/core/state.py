# src/bgservice/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_SITE = "default"


@dataclass(slots=True, frozen=True)
class PassRequest:
    """
    What the trigger asks for: which site, which service (empty = every due one),
    and whether to bypass the interval check.

    The trigger (cron, CLI, an authenticated web handler) builds this; the
    scheduler never reads request globals.
    """

    site: str = DEFAULT_SITE
    service: str = ""
    force: bool = False

    @classmethod
    def from_cli_args(
        cls,
        site: str | None = None,
        service: str | None = None,
        force: str | bool | None = None,
    ) -> PassRequest:
        """
        Cron convention: [site] [service] [force].

        - site defaults to "default"
        - service "all" (or empty) means every due service
        - force "1" bypasses the interval
        """
        site_s = (site or "").strip() or DEFAULT_SITE
        service_s = (service or "").strip()
        if service_s.lower() == "all":
            service_s = ""
        if isinstance(force, bool):
            force_b = force
        else:
            force_b = (force or "").strip() == "1"
        return cls(site=site_s, service=service_s, force=force_b)


@dataclass(slots=True)
class RunContext:
    """
    Per-process scheduler state shared by the execution loop and the crash
    recovery hook.

    current_service is set while a claimed service's handler is running and
    cleared right after its normal release.
    """

    site: str = DEFAULT_SITE
    current_service: str | None = None


@dataclass(slots=True)
class PassReport:
    executed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def claimed(self) -> list[str]:
        return [*self.executed, *self.failed, *self.unresolved]
