"""
Command line entry point.

Startup is fail-fast and ordered: settings, database check, router,
adapters, application, then the listening socket. uvicorn owns SIGINT and
SIGTERM; the application lifespan closes the database and the
process exits 0.
"""
import argparse
import logging
import signal
import sys
from typing import List, Optional

import uvicorn

from yomitan_local import __version__
from yomitan_local.adapters import SQLiteRelationalAdapter
from yomitan_local.core.config import HostSettings, load_settings, require_database
from yomitan_local.core.errors import ConfigurationError
from yomitan_local.core.logging_config import setup_logging
from yomitan_local.main import create_app
from yomitan_local.ports.router import load_router

logger = logging.getLogger("yomitan_local.cli")

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="yomitan-audio-local",
        description="Run the Yomitan audio worker against local files and SQLite.",
    )
    parser.add_argument("--config", help="Path to the JSON config file (default: local.config.json)")
    parser.add_argument("--host", help="Interface to bind")
    parser.add_argument("--port", type=int, help="Port to listen on (overrides config and PORT)")
    parser.add_argument("--router", help='Router import string, "package.module:attribute"')
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def report_fatal(error: ConfigurationError) -> None:
    logger.error(error.message)
    if error.remediation:
        logger.error(error.remediation)


def _exit_on_signal(signum, frame):
    sys.exit(0)


def serve(app, settings: HostSettings) -> None:
    """
    Run the server until SIGINT or SIGTERM.

    uvicorn runs the lifespan shutdown, then re-raises the signal into the
    handler that was installed before it started, which exits with code 0.
    """
    previous = {sig: signal.signal(sig, _exit_on_signal) for sig in SHUTDOWN_SIGNALS}
    try:
        uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config, host=args.host, port=args.port, router=args.router)
    except ConfigurationError as e:
        setup_logging()
        report_fatal(e)
        return 1

    setup_logging(settings.log_level, settings.log_file)

    try:
        db_file = require_database(settings)
        if not settings.router:
            raise ConfigurationError(
                "No router configured",
                remediation='Set ROUTER (or --router) to "package.module:attribute".',
            )
        router = load_router(settings.router)
        relational = SQLiteRelationalAdapter(db_file)
        app = create_app(settings, router, relational=relational)
    except ConfigurationError as e:
        report_fatal(e)
        return 1

    serve(app, settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
