"""Command-line launcher: ``python -m report_server``."""

from __future__ import annotations

import argparse
import logging

import uvicorn

from . import __version__
from .config import load_config
from .logging_setup import setup_logging
from .main import create_app

logger = logging.getLogger("report_server")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="report-server",
        description="Directory inventory report server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python -m report_server\n"
            "  python -m report_server --port 8080 --db /var/lib/reports/file_reports.db\n"
            "  python -m report_server --audit-log '' --log-level DEBUG\n"
        ),
    )
    parser.add_argument("--host", metavar="ADDR", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--port", "-p", type=int, help="Bind port (default: 5555)")
    parser.add_argument("--db", dest="db_path", metavar="PATH", help="SQLite database path")
    parser.add_argument(
        "--audit-log",
        dest="audit_log_path",
        metavar="PATH",
        help="Text audit log path; pass an empty string to disable",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Operator log level (default: INFO)",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"report-server {__version__}",
    )
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    config = load_config(**vars(args))
    setup_logging(config.log_level)

    logger.info("Server port: %d", config.port)
    logger.info("Endpoints:")
    logger.info("  Ingest:  http://localhost:%d/command", config.port)
    logger.info("  Hosts:   http://localhost:%d/api/hosts", config.port)
    logger.info("  Health:  http://localhost:%d/health", config.port)

    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
