# src/bgservice/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- opens the store for the requested site and seeds the built-in services,
- wires handlers, run context, diagnostics and the crash recovery hook.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import Settings, get_settings
from ..core.diagnostics import LoggingDiagnostics
from ..core.ports import Diagnostics
from ..core.state import DEFAULT_SITE, PassReport, PassRequest, RunContext
from ..maintenance.catalog import register_default_handlers, seed_services
from ..services.handlers import HandlerRegistry
from ..services.recovery import CrashRecoveryHook
from ..services.service_runner import run_pass
from ..services.service_store import ServiceStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SiteRuntime:
    settings: Settings
    store: ServiceStore
    handlers: HandlerRegistry
    context: RunContext
    diagnostics: Diagnostics
    recovery: CrashRecoveryHook

    def run_pass(self, request: PassRequest) -> PassReport:
        return run_pass(
            request,
            store=self.store,
            handlers=self.handlers,
            context=self.context,
            diagnostics=self.diagnostics,
            recovery=self.recovery,
        )


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    settings.pid_file.parent.mkdir(parents=True, exist_ok=True)


def create_site_runtime(
    *,
    settings: Settings | None = None,
    site: str = DEFAULT_SITE,
    diagnostics: Diagnostics | None = None,
    seed: bool = True,
) -> SiteRuntime:
    """
    Build everything one site needs to run passes.

    Keeping settings injectable makes the CLI easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = ServiceStore(settings.db_path_for_site(site))
    if seed:
        seed_services(store)

    if diagnostics is None:
        diagnostics = LoggingDiagnostics()

    handlers = HandlerRegistry()
    register_default_handlers(
        handlers,
        settings,
        store,
        settings.app_db_path or store.db_path,
    )

    context = RunContext(site=site)
    return SiteRuntime(
        settings=settings,
        store=store,
        handlers=handlers,
        context=context,
        diagnostics=diagnostics,
        recovery=CrashRecoveryHook(store, context, diagnostics),
    )
