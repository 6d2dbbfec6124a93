# src/bgservice/cli/main.py

"""
CLI entrypoint.

    bgservice run [site] [service] [force]   one pass (cron mode)
    bgservice daemon [-c ENVFILE]            continuous mode
    bgservice list [--site SITE]             show descriptors
    bgservice release NAME [--site SITE]     clear a stuck claim

`run` keeps the cron argument convention: site defaults to "default",
service "all" means every due service, force "1" bypasses the interval.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from datetime import datetime

from ..config import Settings, get_settings, load_env_file
from ..core.errors import DaemonAlreadyRunning, PidFileError
from ..core.state import DEFAULT_SITE, PassRequest
from ..daemon.controller import BackgroundDaemon
from ..daemon.pidfile import PidFile
from ..logging_setup import setup_logging
from .bootstrap import create_site_runtime

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bgservice", description="Run background maintenance services.")
    sub = parser.add_subparsers(dest="command", required=True)

    p_run = sub.add_parser("run", help="Run one pass over the due services.")
    p_run.add_argument("site", nargs="?", default=DEFAULT_SITE)
    p_run.add_argument("service", nargs="?", default="all")
    p_run.add_argument("force", nargs="?", default="0")

    p_daemon = sub.add_parser("daemon", help="Run passes continuously until stopped.")
    p_daemon.add_argument("-c", "--config", help="Env file loaded on top of the environment.")
    p_daemon.add_argument("--site", default=DEFAULT_SITE)

    p_list = sub.add_parser("list", help="List background services.")
    p_list.add_argument("--site", default=DEFAULT_SITE)

    p_release = sub.add_parser("release", help="Mark a service idle (operator unlock).")
    p_release.add_argument("name")
    p_release.add_argument("--site", default=DEFAULT_SITE)

    return parser


def _configure_logging(settings: Settings) -> None:
    level_name = str(settings.log_level or "INFO").upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(
        log_dir=settings.log_dir,
        console_level=console_level,
        backup_count=settings.log_backup_count,
    )


def _cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    request = PassRequest.from_cli_args(args.site, args.service, args.force)
    runtime = create_site_runtime(settings=settings, site=request.site)
    report = runtime.run_pass(request)
    logger.info(
        "Pass finished site=%s executed=%s failed=%s unresolved=%s",
        request.site,
        report.executed,
        report.failed,
        report.unresolved,
    )
    return 0


def _cmd_daemon(args: argparse.Namespace, settings: Settings) -> int:
    runtime = create_site_runtime(settings=settings, site=args.site)
    request = PassRequest(site=args.site)
    daemon = BackgroundDaemon(
        lambda: runtime.run_pass(request),
        PidFile(settings.pid_file),
        runtime.diagnostics,
        sleep_interval=settings.sleep_interval_seconds,
        max_runtime=settings.max_runtime_seconds,
    )
    try:
        daemon.start()
    except DaemonAlreadyRunning as e:
        logger.error("%s", e)
        return 1
    except PidFileError as e:
        logger.error("%s", e)
        return 1
    return 0


def _fmt_ts(ts: float) -> str:
    if ts <= 0:
        return "-"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def _cmd_list(args: argparse.Namespace, settings: Settings) -> int:
    runtime = create_site_runtime(settings=settings, site=args.site)
    services = runtime.store.list_services()
    if not services:
        print("No background services.")
        return 0
    print(f"{'order':>5}  {'name':<20} {'active':<6} {'running':<7} {'every':>6}  next_run")
    for s in services:
        every = f"{s.interval_minutes}m" if s.interval_minutes > 0 else "force"
        print(
            f"{s.sort_order:>5}  {s.name:<20} {'yes' if s.active else 'no':<6} "
            f"{'yes' if s.is_running else 'no':<7} {every:>6}  {_fmt_ts(s.next_run)}"
        )
    return 0


def _cmd_release(args: argparse.Namespace, settings: Settings) -> int:
    runtime = create_site_runtime(settings=settings, site=args.site, seed=False)
    if runtime.store.get_service(args.name) is None:
        print(f"Unknown service: {args.name}", file=sys.stderr)
        return 2
    runtime.store.release(args.name)
    logger.info("Service %s released by operator", args.name)
    return 0


COMMANDS = {
    "run": _cmd_run,
    "daemon": _cmd_daemon,
    "list": _cmd_list,
    "release": _cmd_release,
}


def main(argv: Sequence[str] | None = None, *, settings: Settings | None = None) -> int:
    args = build_parser().parse_args(argv)

    if settings is None:
        config_path = getattr(args, "config", None)
        if config_path and not load_env_file(config_path):
            print(f"Config file not found: {config_path}", file=sys.stderr)
            return 2
        settings = get_settings(reload=bool(config_path))

    _configure_logging(settings)

    try:
        return COMMANDS[args.command](args, settings)
    except ValueError as e:
        logger.error("%s", e)
        return 2


def cli() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    cli()
