# src/bgservice/services/service_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from pathlib import Path

from .service_models import ServiceDescriptor

logger = logging.getLogger(__name__)


class ServiceStore:
    """
    SQLite store for background service descriptors.

    Two roles:
    - registry: snapshot reads of the descriptors eligible for a pass
    - claim protocol: the conditional UPDATE that acquires a service and the
      unconditional UPDATE that releases it

    Mutual exclusion across processes relies only on SQLite serializing
    writers: a claim is a single UPDATE whose affected-row count says whether
    this caller won. There is no lock table and no transaction spanning more
    than one row.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "background.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.debug("ServiceStore ready db=%s", self._db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS background_services (
                    name TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    active INTEGER NOT NULL DEFAULT 0,
                    running INTEGER NOT NULL DEFAULT 0,
                    next_run REAL NOT NULL DEFAULT 0,
                    execute_interval INTEGER NOT NULL DEFAULT 0,
                    function TEXT NOT NULL,
                    require_once TEXT,
                    sort_order INTEGER NOT NULL DEFAULT 100
                )
                """
            )

            cur.execute("PRAGMA table_info(background_services)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE background_services ADD COLUMN {name} {decl}")
                logger.info("ServiceStore migration: added column %s", name)

            add_col("title", "TEXT NOT NULL DEFAULT ''")
            add_col("active", "INTEGER NOT NULL DEFAULT 0")
            add_col("running", "INTEGER NOT NULL DEFAULT 0")
            add_col("next_run", "REAL NOT NULL DEFAULT 0")
            add_col("execute_interval", "INTEGER NOT NULL DEFAULT 0")
            add_col("require_once", "TEXT")
            add_col("sort_order", "INTEGER NOT NULL DEFAULT 100")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_background_services_order "
                "ON background_services(sort_order, name)"
            )

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_service(row: sqlite3.Row) -> ServiceDescriptor:
        return ServiceDescriptor(
            name=str(row["name"]),
            handler_ref=str(row["function"] or ""),
            require_ref=row["require_once"] or None,
            title=str(row["title"] or ""),
            active=bool(row["active"]),
            interval_minutes=int(row["execute_interval"] or 0),
            sort_order=int(row["sort_order"] or 0),
            running=int(row["running"] or 0),
            next_run=float(row["next_run"] or 0.0),
        )

    # ---- registry ----

    def list_eligible(self, service_filter: str = "", force: bool = False) -> list[ServiceDescriptor]:
        """
        Snapshot of the services a pass should consider, in evaluation order.

        - service_filter set: at most that one service, whatever its interval
        - otherwise: services with a positive interval (every active one when forced)

        Re-read on every pass so that sort_order edits take effect immediately.
        """
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if service_filter:
                cur.execute(
                    "SELECT * FROM background_services WHERE active = 1 AND name = ? LIMIT 1",
                    (service_filter,),
                )
            elif force:
                cur.execute(
                    "SELECT * FROM background_services WHERE active = 1 ORDER BY sort_order ASC, name ASC"
                )
            else:
                cur.execute(
                    """
                    SELECT *
                    FROM background_services
                    WHERE active = 1
                      AND execute_interval > 0
                    ORDER BY sort_order ASC, name ASC
                    """
                )
            return [self._row_to_service(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def get_service(self, name: str) -> ServiceDescriptor | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM background_services WHERE name = ?", (name,))
            row = cur.fetchone()
            return self._row_to_service(row) if row else None
        finally:
            conn.close()

    def list_services(self) -> list[ServiceDescriptor]:
        """Every descriptor, active or not (administrative listing)."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM background_services ORDER BY sort_order ASC, name ASC")
            return [self._row_to_service(r) for r in cur.fetchall()]
        finally:
            conn.close()

    # ---- claim protocol ----

    def try_claim(
        self,
        name: str,
        interval_minutes: int | None,
        force: bool = False,
        *,
        now_ts: float | None = None,
    ) -> bool:
        """
        Atomically acquire `name` for execution.

        Transitions running 0 -> 1 and moves next_run to now + interval, but only
        when the row is idle and either forced or due. A service without a
        positive interval is never due; it can only be forced.

        Returns True if this caller acquired the service. False means another
        process holds it or it is not due yet; that is not an error.
        """
        if now_ts is None:
            now_ts = time.time()
        minutes = max(0, int(interval_minutes or 0))
        next_run = float(now_ts) + minutes * 60

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                UPDATE background_services
                SET running = 1, next_run = ?
                WHERE name = ?
                  AND active = 1
                  AND running < 1
                  AND (? = 1 OR (execute_interval > 0 AND next_run < ?))
                """,
                (next_run, name, 1 if force else 0, float(now_ts)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def release(self, name: str) -> None:
        """Unconditional and idempotent: mark the service idle."""
        conn = self._get_conn()
        try:
            conn.execute("UPDATE background_services SET running = 0 WHERE name = ?", (name,))
            conn.commit()
        finally:
            conn.close()

    # ---- administrative ----

    def upsert_service(
        self,
        *,
        name: str,
        handler_ref: str,
        title: str = "",
        require_ref: str | None = None,
        active: bool = True,
        interval_minutes: int = 0,
        sort_order: int = 100,
        overwrite: bool = False,
    ) -> bool:
        """
        Seed a descriptor.

        By default an existing row is left untouched so operator edits survive
        restarts. With overwrite=True the administrative columns are replaced;
        running and next_run are never written here.

        Returns True if a row was inserted or updated.
        """
        if not name or not name.strip():
            raise ValueError("name is required")
        if not handler_ref or not handler_ref.strip():
            raise ValueError("handler_ref is required")

        conflict = (
            """
            DO UPDATE SET
                title = excluded.title,
                active = excluded.active,
                execute_interval = excluded.execute_interval,
                function = excluded.function,
                require_once = excluded.require_once,
                sort_order = excluded.sort_order
            """
            if overwrite
            else "DO NOTHING"
        )

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                f"""
                INSERT INTO background_services(
                    name, title, active, execute_interval, function, require_once, sort_order
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(name) {conflict}
                """,
                (
                    name.strip(),
                    title,
                    1 if active else 0,
                    max(0, int(interval_minutes)),
                    handler_ref.strip(),
                    require_ref,
                    int(sort_order),
                ),
            )
            conn.commit()
            changed = cur.rowcount == 1
            if changed:
                logger.debug("Service seeded name=%s handler=%s overwrite=%s", name, handler_ref, overwrite)
            return changed
        finally:
            conn.close()

    def set_active(self, name: str, active: bool) -> None:
        """Used by handlers that need to disable themselves pending operator action."""
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE background_services SET active = ? WHERE name = ?",
                (1 if active else 0, name),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Service %s active=%s", name, active)
