# src/bgservice/maintenance/catalog.py

"""
Built-in maintenance services.

SERVICE_DEFINITIONS is the administrative source both for the descriptor rows
(seed_services) and for the handler mapping (register_default_handlers), so a
seeded row always has a matching handler key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from ..config import Settings
from ..core.ports import ServiceRepo
from ..services.handlers import HandlerRegistry
from ..services.service_store import ServiceStore
from .backups import CheckBackupFreshness
from .database import ExpireSessions, OptimizeDatabase
from .files import PruneCacheDirs, PruneLogFiles

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ServiceDefinition:
    name: str
    handler_ref: str
    title: str
    interval_minutes: int
    sort_order: int
    active: bool = True


SERVICE_DEFINITIONS: tuple[ServiceDefinition, ...] = (
    ServiceDefinition("db_maintenance", "optimize_database", "Database maintenance", 24 * 60, 10),
    ServiceDefinition("log_cleanup", "prune_log_files", "Log file cleanup", 24 * 60, 20),
    ServiceDefinition("cache_cleanup", "prune_cache_dirs", "Cache directory cleanup", 60, 30),
    ServiceDefinition("session_cleanup", "expire_sessions", "Expired session cleanup", 60, 40),
    ServiceDefinition("backup_validation", "check_backup_freshness", "Backup freshness check", 6 * 60, 50),
)


def seed_services(store: ServiceStore, definitions: tuple[ServiceDefinition, ...] = SERVICE_DEFINITIONS) -> int:
    """Insert missing descriptor rows; existing rows keep their operator edits. Returns rows inserted."""
    inserted = 0
    for d in definitions:
        if store.upsert_service(
            name=d.name,
            handler_ref=d.handler_ref,
            title=d.title,
            active=d.active,
            interval_minutes=d.interval_minutes,
            sort_order=d.sort_order,
        ):
            inserted += 1
    if inserted:
        logger.info("Seeded %d background services into %s", inserted, store.db_path)
    return inserted


def register_default_handlers(
    handlers: HandlerRegistry,
    settings: Settings,
    store: ServiceRepo,
    app_db_path: Path,
) -> None:
    handlers.register(
        "optimize_database",
        OptimizeDatabase(
            app_db_path,
            store=store,
            service_name="db_maintenance",
            audit_retention_days=settings.audit_retention_days,
        ),
    )
    handlers.register(
        "prune_log_files",
        PruneLogFiles(settings.log_cleanup_dirs, days_to_keep=settings.log_retention_days),
    )
    handlers.register(
        "prune_cache_dirs",
        PruneCacheDirs(settings.cache_dirs, max_age_hours=settings.cache_max_age_hours),
    )
    handlers.register(
        "expire_sessions",
        ExpireSessions(app_db_path, ttl_hours=settings.session_ttl_hours),
    )
    handlers.register(
        "check_backup_freshness",
        CheckBackupFreshness(settings.backup_dir, max_age_hours=settings.backup_max_age_hours),
    )
