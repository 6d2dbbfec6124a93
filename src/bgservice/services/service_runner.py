# src/bgservice/services/service_runner.py

from __future__ import annotations

"""
Execution loop.

One pass over the eligible services, in sort_order:
- skip inactive or already running rows (cheap local check),
- claim the row with the atomic conditional update,
- resolve and run the handler,
- release the row whatever the handler did, unless the process is going down.

A failing handler never stops the pass. Storage errors do.
"""

import logging
import time
from collections.abc import Callable

from ..core.errors import HandlerResolutionError
from ..core.ports import Diagnostics, ServiceRepo
from ..core.state import PassReport, PassRequest, RunContext
from .handlers import HandlerRegistry
from .recovery import CrashRecoveryHook

logger = logging.getLogger(__name__)


def run_pass(
        request: PassRequest,
        *,
        store: ServiceRepo,
        handlers: HandlerRegistry,
        context: RunContext,
        diagnostics: Diagnostics,
        clock: Callable[[], float] = time.time,
        recovery: CrashRecoveryHook | None = None,
) -> PassReport:
    """
    Run every due service once (or only request.service when set).

    The recovery hook is armed for the duration of the pass. Handler
    exceptions are reported to `diagnostics` and the pass moves on; only
    exceptions outside Exception (SystemExit, KeyboardInterrupt) escape, and
    for those the hook performs the release at interpreter exit.
    """
    if recovery is None:
        recovery = CrashRecoveryHook(store, context, diagnostics)

    report = PassReport()
    context.site = request.site

    with recovery.armed():
        pending = recovery.release_pending()
        if pending:
            logger.warning("Released service %s left claimed by an earlier pass", pending)

        services = store.list_eligible(request.service, request.force)
        logger.debug(
            "Pass start site=%s filter=%s force=%s candidates=%d",
            request.site,
            request.service or "all",
            request.force,
            len(services),
        )

        for service in services:
            name = service.name
            if not service.active or service.is_running:
                report.skipped.append(name)
                continue

            if not store.try_claim(name, service.interval_minutes, request.force, now_ts=clock()):
                # Held by another process, or not due yet.
                logger.debug("Service %s not claimed", name)
                report.skipped.append(name)
                continue

            context.current_service = name
            try:
                handler = handlers.resolve(service.handler_ref, service.require_ref)
            except HandlerResolutionError as e:
                logger.error("Service %s: %s", name, e)
                diagnostics.emit(
                    "service.unresolved",
                    service=name,
                    site=request.site,
                    handler=service.handler_ref,
                    reason=e.reason,
                )
                report.unresolved.append(name)
            else:
                started = clock()
                try:
                    handler.execute()
                except Exception as e:
                    logger.exception("Service %s raised", name)
                    diagnostics.emit(
                        "service.failed",
                        service=name,
                        site=request.site,
                        error=f"{type(e).__name__}: {e}",
                    )
                    report.failed.append(name)
                else:
                    logger.info("Service %s done in %.2fs", name, clock() - started)
                    report.executed.append(name)

            store.release(name)
            context.current_service = None

    return report
