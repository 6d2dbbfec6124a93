# src/bgservice/daemon/pidfile.py

from __future__ import annotations

import contextlib
import logging
import os
from pathlib import Path

from ..core.errors import DaemonAlreadyRunning, PidFileError

logger = logging.getLogger(__name__)


def pid_alive(pid: int) -> bool:
    """Signal 0 probe: True if a process with this pid exists."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else.
        return True
    except OSError:
        return False
    return True


class PidFile:
    """
    Single-instance marker for the daemon.

    - acquire(): refuse if the recorded pid is alive, discard it if stale,
      then record our own pid
    - release(): remove the file, but only if it still records our pid
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._owned_pid: int | None = None

    def read_pid(self) -> int | None:
        try:
            raw = self.path.read_text("utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PidFileError(f"Failed to read PID file {self.path}: {e}") from e
        try:
            return int(raw)
        except ValueError:
            return 0

    def acquire(self) -> bool:
        """
        Record this process as the running instance.

        Returns True if a stale record had to be discarded first.
        Raises DaemonAlreadyRunning if another live process holds the marker.
        """
        stale = False
        pid = self.read_pid()
        if pid is not None:
            if pid > 0 and pid != os.getpid() and pid_alive(pid):
                raise DaemonAlreadyRunning(pid)
            with contextlib.suppress(FileNotFoundError):
                self.path.unlink()
            logger.warning("Removed stale PID file %s (pid=%s)", self.path, pid)
            stale = True

        own = os.getpid()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_name(f"{self.path.name}.{own}.tmp")
            tmp.write_text(str(own), "utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise PidFileError(f"Failed to write PID file {self.path}: {e}") from e

        self._owned_pid = own
        logger.debug("PID file written pid=%s file=%s", own, self.path)
        return stale

    def release(self) -> None:
        if self._owned_pid is None:
            return
        try:
            if self.read_pid() == self._owned_pid:
                self.path.unlink()
        except (OSError, PidFileError):
            logger.exception("Failed to remove PID file %s", self.path)
        finally:
            self._owned_pid = None
