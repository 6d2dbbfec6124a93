# src/bgservice/maintenance/backups.py

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)


class CheckBackupFreshness:
    """
    Warn when the newest backup_*.sql in `backup_dir` is missing or older than
    `max_age_hours`. Read-only; never touches the backups themselves.
    """

    def __init__(
        self,
        backup_dir: str | Path,
        *,
        pattern: str = "backup_*.sql",
        max_age_hours: int = 24,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backup_dir = Path(backup_dir)
        self.pattern = pattern
        self.max_age_hours = max(0, int(max_age_hours))
        self._clock = clock

    def latest_backup(self) -> Path | None:
        candidates = [p for p in self.backup_dir.glob(self.pattern) if p.is_file()]
        if not candidates:
            return None
        return max(candidates, key=lambda p: p.stat().st_mtime)

    def check(self) -> bool:
        """True if a fresh backup exists."""
        if not self.backup_dir.is_dir():
            logger.warning("Backup directory not found directory=%s", self.backup_dir)
            return False

        latest = self.latest_backup()
        if latest is None:
            logger.warning("No backup files found directory=%s", self.backup_dir)
            return False

        age_s = self._clock() - latest.stat().st_mtime
        age_hours = round(age_s / 3600, 2)
        if age_s > self.max_age_hours * 60 * 60:
            logger.warning("Latest backup is old file=%s age_hours=%s", latest.name, age_hours)
            return False

        logger.debug("Backup validation passed latest_backup=%s age_hours=%s", latest.name, age_hours)
        return True

    def execute(self) -> None:
        self.check()
