# src/bgservice/services/recovery.py

from __future__ import annotations

"""
Crash recovery.

While a pass runs, an atexit callback stays registered. If the interpreter
exits with a service still marked as current in the RunContext (the handler
called sys.exit, a KeyboardInterrupt escaped, ...), the callback releases that
service so it does not stay locked forever. A pass that completes normally
unregisters the callback, so the common case costs nothing at exit. If a
release itself failed, the service stays marked, the callback stays
registered, and the next pass retries that release before anything else.
"""

import atexit
import contextlib
import logging
from collections.abc import Iterator

from ..core.ports import Diagnostics, ServiceRepo
from ..core.state import RunContext

logger = logging.getLogger(__name__)


class CrashRecoveryHook:
    def __init__(self, store: ServiceRepo, context: RunContext, diagnostics: Diagnostics) -> None:
        self._store = store
        self._context = context
        self._diagnostics = diagnostics
        self._registered = False

    @property
    def registered(self) -> bool:
        return self._registered

    def arm(self) -> None:
        if self._registered:
            return
        atexit.register(self.fire)
        self._registered = True

    def disarm(self) -> None:
        if not self._registered:
            return
        atexit.unregister(self.fire)
        self._registered = False

    @contextlib.contextmanager
    def armed(self) -> Iterator[CrashRecoveryHook]:
        """
        Keep the hook registered for the body of the block.

        Only a normal exit with no service left marked disarms it. If the block
        exits through an exception, or a claim is still marked (its release
        failed), the hook stays registered and fires at interpreter exit.
        """
        self.arm()
        yield self
        if self._context.current_service is None:
            self.disarm()

    def release_pending(self) -> str | None:
        """
        Release a claim still marked in the context, if any.

        Storage errors propagate; the mark and the registration are kept so a
        later pass or the exit callback can try again.
        """
        name = self._context.current_service
        if not name:
            return None

        self._store.release(name)
        self._context.current_service = None
        self._diagnostics.emit("service.recovered", service=name, site=self._context.site)
        return name

    def fire(self) -> None:
        name = self._context.current_service
        if not name:
            return

        logger.warning("Process exiting with service %s still claimed; releasing", name)
        try:
            self.release_pending()
        except Exception:
            logger.exception("Crash release failed service=%s", name)
