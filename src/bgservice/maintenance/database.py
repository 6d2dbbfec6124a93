# src/bgservice/maintenance/database.py

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Callable
from pathlib import Path

from ..core.ports import ServiceRepo

logger = logging.getLogger(__name__)


def _connect(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), timeout=30.0)
    conn.row_factory = sqlite3.Row
    return conn


def _table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
    ).fetchone()
    return row is not None


class OptimizeDatabase:
    """
    Housekeeping for the application database:
    - drop audit_log rows older than `audit_retention_days` (created_at, epoch seconds)
    - ANALYZE + PRAGMA optimize

    A corrupt database needs an operator: the service disables itself and re-raises.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        store: ServiceRepo,
        service_name: str = "db_maintenance",
        audit_retention_days: int = 180,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db_path = Path(db_path)
        self.store = store
        self.service_name = service_name
        self.audit_retention_days = max(0, int(audit_retention_days))
        self._clock = clock

    def execute(self) -> None:
        cutoff = self._clock() - self.audit_retention_days * 24 * 60 * 60
        conn = _connect(self.db_path)
        try:
            if _table_exists(conn, "audit_log"):
                cur = conn.execute("DELETE FROM audit_log WHERE created_at < ?", (cutoff,))
                conn.commit()
                if cur.rowcount > 0:
                    logger.info("Cleaned audit logs deleted_rows=%d", cur.rowcount)

            conn.execute("ANALYZE")
            conn.execute("PRAGMA optimize")
            conn.commit()
            logger.debug("Optimized database %s", self.db_path)
        except sqlite3.OperationalError:
            # Locked / busy: try again next interval.
            logger.exception("Database maintenance error db=%s", self.db_path)
            raise
        except sqlite3.DatabaseError:
            logger.exception("Database maintenance error db=%s; disabling %s", self.db_path, self.service_name)
            self.store.set_active(self.service_name, False)
            raise
        finally:
            conn.close()


class ExpireSessions:
    """Delete sessions rows whose last_updated (epoch seconds) is older than `ttl_hours`."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        ttl_hours: int = 24,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db_path = Path(db_path)
        self.ttl_hours = max(0, int(ttl_hours))
        self._clock = clock

    def execute(self) -> None:
        cutoff = self._clock() - self.ttl_hours * 60 * 60
        try:
            conn = _connect(self.db_path)
            try:
                if not _table_exists(conn, "sessions"):
                    return
                cur = conn.execute("DELETE FROM sessions WHERE last_updated < ?", (cutoff,))
                conn.commit()
                if cur.rowcount > 0:
                    logger.info("Cleaned expired sessions deleted_rows=%d", cur.rowcount)
            finally:
                conn.close()
        except sqlite3.Error:
            logger.exception("Session cleanup error db=%s", self.db_path)
