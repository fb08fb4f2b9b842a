"""Server configuration.

Every setting comes from an environment variable with a sensible default, and
can be overridden by keyword (the launcher passes its CLI flags this way).

Environment
-----------
FILE_REPORT_DB
    SQLite database path. Default: ``<package dir>/file_reports.db``
FILE_REPORT_AUDIT_LOG
    Append-only text audit log. Default: ``<package dir>/audit.log``.
    Set to an empty string to disable the text sink.
FILE_REPORT_LOG_LEVEL
    Operator log level (``DEBUG``, ``INFO``, ...). Default: ``INFO``
FILE_REPORT_HOST / FILE_REPORT_PORT
    Bind address for ``python -m report_server``. Default: ``0.0.0.0:5555``
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

_PACKAGE_DIR = Path(__file__).parent

DEFAULT_DB_PATH = str(_PACKAGE_DIR / "file_reports.db")
DEFAULT_AUDIT_LOG_PATH = str(_PACKAGE_DIR / "audit.log")
DEFAULT_PORT = 5555


@dataclass(frozen=True)
class ServerConfig:
    db_path: str = DEFAULT_DB_PATH
    audit_log_path: str | None = DEFAULT_AUDIT_LOG_PATH
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT


def _parse_port(raw: str | None) -> int:
    if not raw:
        return DEFAULT_PORT
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"FILE_REPORT_PORT must be an integer, got {raw!r}") from None


def load_config(**overrides) -> ServerConfig:
    """Build a ServerConfig from the environment, then apply *overrides*.

    Overrides whose value is ``None`` are ignored so that unset CLI flags
    fall through to the environment.
    """
    env = os.environ
    audit_log = env.get("FILE_REPORT_AUDIT_LOG", DEFAULT_AUDIT_LOG_PATH)
    config = ServerConfig(
        db_path=env.get("FILE_REPORT_DB", DEFAULT_DB_PATH),
        audit_log_path=audit_log or None,
        log_level=env.get("FILE_REPORT_LOG_LEVEL", "INFO"),
        host=env.get("FILE_REPORT_HOST", "0.0.0.0"),
        port=_parse_port(env.get("FILE_REPORT_PORT")),
    )
    given = {k: v for k, v in overrides.items() if v is not None}
    return replace(config, **given) if given else config
