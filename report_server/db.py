"""SQLite schema and connection helper.

Schema
------
reports
    Append-only. One row per stored (new or changed) report. ``report_data``
    holds the payload exactly as submitted; totals are deliberately not
    stored and are recomputed from it on every read. ``created_at`` is
    assigned by the server and, together with ``id``, defines ordering.

directory_entries
    One row per directory of a stored report. A report may have fewer rows
    than directories if some inserts failed; ``report_data`` stays
    authoritative.

audit_log
    Append-only. One row per ingestion attempt, whatever its outcome.
"""

from __future__ import annotations

import contextlib
from pathlib import Path
from typing import AsyncGenerator

import aiosqlite

_DDL = """
PRAGMA journal_mode = WAL;
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS reports (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    host_ip           TEXT    NOT NULL,
    host_name         TEXT,
    base_path         TEXT    NOT NULL DEFAULT '',
    total_directories INTEGER NOT NULL DEFAULT 0,   -- as declared by the sender
    timestamp         TEXT,                         -- sender clock, advisory
    report_data       TEXT    NOT NULL,
    created_at        TEXT    NOT NULL
                      DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_reports_host_created
    ON reports (host_ip, created_at DESC, id DESC);

CREATE INDEX IF NOT EXISTS idx_reports_created
    ON reports (created_at DESC);

CREATE TABLE IF NOT EXISTS directory_entries (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    report_id   INTEGER NOT NULL REFERENCES reports (id) ON DELETE CASCADE,
    path        TEXT    NOT NULL,
    file_count  INTEGER NOT NULL DEFAULT 0,
    size_bytes  INTEGER NOT NULL DEFAULT 0,
    size_mb     INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_directory_entries_report
    ON directory_entries (report_id);

CREATE TABLE IF NOT EXISTS audit_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    host_ip     TEXT    NOT NULL,
    action      TEXT    NOT NULL,
    status      TEXT    NOT NULL,
    message     TEXT    NOT NULL DEFAULT '',
    details     TEXT,
    created_at  TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_audit_log_host_created
    ON audit_log (host_ip, created_at DESC);

CREATE INDEX IF NOT EXISTS idx_audit_log_created
    ON audit_log (created_at DESC);
"""


async def init_db(db_path: str) -> None:
    """Create tables if they do not exist. Called once at server startup."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(db_path) as conn:
        await conn.executescript(_DDL)
        await conn.commit()


@contextlib.asynccontextmanager
async def get_db(db_path: str) -> AsyncGenerator[aiosqlite.Connection, None]:
    """Async context manager that yields a configured SQLite connection.

    Usage::

        async with get_db(path) as db:
            await db.execute(...)
            await db.commit()
    """
    async with aiosqlite.connect(db_path) as conn:
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA journal_mode = WAL")
        await conn.execute("PRAGMA foreign_keys = ON")
        yield conn
