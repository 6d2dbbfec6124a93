# src/bgservice/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole process.
- Every key has a working default, so a bare `bgservice run` works.
- An explicit env file (`bgservice daemon -c FILE`) can override the environment.
"""

from __future__ import annotations

import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ENV_PREFIX = "BGSVC"

_SITE_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def load_env_file(path: str | Path) -> bool:
    """Load an explicit env file on top of the environment. Returns False if it does not exist."""
    p = Path(path).expanduser()
    if not p.is_file():
        return False
    load_dotenv(p, override=True)
    return True


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_optional_path(name: str) -> Optional[Path]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    log_dir: Path
    log_backup_count: int

    # ---- Storage ----
    data_dir: Path
    db_path: Path
    sites_dir: Path
    # Database the maintenance handlers work on (audit_log, sessions). None = the site store.
    app_db_path: Optional[Path]

    # ---- Daemon ----
    pid_file: Path
    max_runtime_seconds: float
    sleep_interval_seconds: float

    # ---- Maintenance handlers ----
    log_cleanup_dirs: List[Path]
    log_retention_days: int
    cache_dirs: List[Path]
    cache_max_age_hours: int
    backup_dir: Path
    backup_max_age_hours: int
    audit_retention_days: int
    session_ttl_hours: int

    def db_path_for_site(self, site: str) -> Path:
        """The default site uses db_path; any other site gets its own store under sites_dir."""
        site = (site or "default").strip()
        if site == "default":
            return self.db_path
        if not _SITE_RE.match(site) or site in {".", ".."}:
            raise ValueError(f"invalid site name: {site!r}")
        return self.sites_dir / site / "background.sqlite3"

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "bgservice")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/bgservice"))
        log_dir = _env_path(_k("LOG_DIR"), data_dir / "logs")
        log_backup_count = _env_int(_k("LOG_BACKUP_COUNT"), 14)

        db_path = _env_path(_k("DB_PATH"), data_dir / "background.sqlite3")
        sites_dir = _env_path(_k("SITES_DIR"), data_dir / "sites")
        app_db_path = _env_optional_path(_k("APP_DB_PATH"))

        pid_file = _env_path(_k("PID_FILE"), data_dir / "bgservice.pid")
        max_runtime_seconds = _env_float(_k("MAX_RUNTIME_SECONDS"), 3600.0)
        sleep_interval_seconds = _env_float(_k("SLEEP_INTERVAL_SECONDS"), 60.0)

        log_cleanup_dirs = [Path(p).expanduser() for p in _env_list(_k("LOG_CLEANUP_DIRS"), [str(log_dir)])]
        log_retention_days = _env_int(_k("LOG_RETENTION_DAYS"), 30)
        cache_dirs = [
            Path(p).expanduser()
            for p in _env_list(
                _k("CACHE_DIRS"),
                [str(data_dir / "cache"), str(Path(tempfile.gettempdir()) / app_name)],
            )
        ]
        cache_max_age_hours = _env_int(_k("CACHE_MAX_AGE_HOURS"), 24)
        backup_dir = _env_path(_k("BACKUP_DIR"), data_dir / "backups")
        backup_max_age_hours = _env_int(_k("BACKUP_MAX_AGE_HOURS"), 24)
        audit_retention_days = _env_int(_k("AUDIT_RETENTION_DAYS"), 180)
        session_ttl_hours = _env_int(_k("SESSION_TTL_HOURS"), 24)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            log_dir=log_dir,
            log_backup_count=log_backup_count,
            data_dir=data_dir,
            db_path=db_path,
            sites_dir=sites_dir,
            app_db_path=app_db_path,
            pid_file=pid_file,
            max_runtime_seconds=max_runtime_seconds,
            sleep_interval_seconds=sleep_interval_seconds,
            log_cleanup_dirs=log_cleanup_dirs,
            log_retention_days=log_retention_days,
            cache_dirs=cache_dirs,
            cache_max_age_hours=cache_max_age_hours,
            backup_dir=backup_dir,
            backup_max_age_hours=backup_max_age_hours,
            audit_retention_days=audit_retention_days,
            session_ttl_hours=session_ttl_hours,
        )


_SETTINGS: Optional[Settings] = None


def get_settings(*, reload: bool = False) -> Settings:
    global _SETTINGS
    if _SETTINGS is None or reload:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
