# src/bgservice/maintenance/files.py

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

LOG_FILE_RE = re.compile(r"\.(log|log\.\d+)$")


def _old_files(directory: Path, cutoff: float) -> Iterable[Path]:
    for path in directory.rglob("*"):
        try:
            if path.is_file() and not path.is_symlink() and path.stat().st_mtime < cutoff:
                yield path
        except OSError:
            # Vanished between listing and stat.
            continue


class PruneLogFiles:
    """Delete *.log / *.log.N files older than `days_to_keep` under each directory."""

    def __init__(
        self,
        directories: Iterable[str | Path],
        *,
        days_to_keep: int = 30,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directories = [Path(d) for d in directories]
        self.days_to_keep = max(0, int(days_to_keep))
        self._clock = clock

    def execute(self) -> None:
        cutoff = self._clock() - self.days_to_keep * 24 * 60 * 60
        for directory in self.directories:
            if not directory.is_dir():
                continue
            deleted = 0
            for path in _old_files(directory, cutoff):
                if not LOG_FILE_RE.search(path.name):
                    continue
                try:
                    path.unlink()
                    deleted += 1
                except FileNotFoundError:
                    continue
            if deleted:
                logger.info(
                    "Cleaned old logs directory=%s deleted_files=%d days_kept=%d",
                    directory,
                    deleted,
                    self.days_to_keep,
                )


class PruneCacheDirs:
    """Delete every file older than `max_age_hours` under each cache directory."""

    def __init__(
        self,
        directories: Iterable[str | Path],
        *,
        max_age_hours: int = 24,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directories = [Path(d) for d in directories]
        self.max_age_hours = max(0, int(max_age_hours))
        self._clock = clock

    def execute(self) -> None:
        cutoff = self._clock() - self.max_age_hours * 60 * 60
        for directory in self.directories:
            if not directory.is_dir():
                continue
            deleted = 0
            for path in _old_files(directory, cutoff):
                try:
                    path.unlink()
                    deleted += 1
                except FileNotFoundError:
                    continue
            if deleted:
                logger.info("Cleaned cache directory=%s deleted_files=%d", directory, deleted)
