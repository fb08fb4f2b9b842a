"""Persistence layer for reports, directory rows and audit events.

``ReportStore`` is the interface the ingestion engine, audit recorder and
query service depend on. ``SQLiteReportStore`` is the aiosqlite
implementation used by the server; tests substitute their own subclasses.

Absent rows are returned as ``None``. Any other database error surfaces as
``StorageFailure``, except directory-row inserts, which are logged and
skipped one by one.
"""

from __future__ import annotations

import contextlib
import logging
from abc import ABC, abstractmethod
from typing import AsyncGenerator, Iterable

import aiosqlite

from .db import get_db, init_db
from .errors import PartialWriteFailure, StorageFailure
from .models import AuditEvent, DirectoryEntry, Report, StoredReport

logger = logging.getLogger(__name__)

_REPORT_COLUMNS = (
    "id, host_ip, host_name, base_path, total_directories, timestamp, "
    "report_data, created_at"
)
_AUDIT_COLUMNS = "id, host_ip, action, status, message, details, created_at"

# Raised by the sqlite3 driver when binding values: integers beyond 64 bits
# and strings that cannot be encoded as UTF-8.
_DRIVER_ERRORS = (aiosqlite.Error, OverflowError, UnicodeError)


class ReportStore(ABC):
    """Storage operations required by the ingestion pipeline and queries.

    ``directory_entries`` is not used by the read paths, which rebuild
    directories from the retained payload; it exists to verify which detail
    rows were written.
    """

    async def init(self) -> None:
        """Prepare the backing store. No-op by default."""

    @abstractmethod
    async def ping(self) -> None: ...

    @abstractmethod
    async def latest_report_for(self, host_ip: str) -> StoredReport | None: ...

    @abstractmethod
    async def insert_report(self, report: Report, report_data: str) -> int: ...

    @abstractmethod
    async def insert_directory_entries(
        self, report_id: int, entries: Iterable[DirectoryEntry]
    ) -> int: ...

    @abstractmethod
    async def directory_entries(self, report_id: int) -> list[DirectoryEntry]: ...

    @abstractmethod
    async def all_latest_per_host(self) -> list[StoredReport]: ...

    @abstractmethod
    async def reports_for_host(self, host_ip: str, limit: int) -> list[StoredReport]: ...

    @abstractmethod
    async def report_by_id(self, report_id: int) -> StoredReport | None: ...

    @abstractmethod
    async def count_reports_for_host(self, host_ip: str) -> int: ...

    @abstractmethod
    async def insert_audit_event(self, event: AuditEvent) -> int: ...

    @abstractmethod
    async def audit_events(
        self,
        action: str | None = None,
        host_ip: str | None = None,
        limit: int = 100,
    ) -> list[AuditEvent]: ...


class SQLiteReportStore(ReportStore):
    """``ReportStore`` backed by a SQLite file.

    Each call opens its own connection, so concurrent requests never share
    cursor state.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    @contextlib.asynccontextmanager
    async def _connect(self, operation: str) -> AsyncGenerator[aiosqlite.Connection, None]:
        try:
            async with get_db(self.db_path) as db:
                yield db
        except _DRIVER_ERRORS as exc:
            raise StorageFailure(f"{operation} failed: {exc}") from exc

    async def init(self) -> None:
        try:
            await init_db(self.db_path)
        except (*_DRIVER_ERRORS, OSError) as exc:
            raise StorageFailure(f"schema creation failed: {exc}") from exc

    async def ping(self) -> None:
        async with self._connect("ping") as db:
            await db.execute("SELECT 1")

    # ── Reports ───────────────────────────────────────────────────────────────

    async def latest_report_for(self, host_ip: str) -> StoredReport | None:
        async with self._connect("latest report lookup") as db:
            cur = await db.execute(
                f"""
                SELECT {_REPORT_COLUMNS}
                FROM reports
                WHERE host_ip = ?
                ORDER BY created_at DESC, id DESC
                LIMIT 1
                """,
                (host_ip,),
            )
            row = await cur.fetchone()
        return StoredReport(**dict(row)) if row else None

    async def insert_report(self, report: Report, report_data: str) -> int:
        async with self._connect("report insert") as db:
            cur = await db.execute(
                """
                INSERT INTO reports
                    (host_ip, host_name, base_path, total_directories, timestamp, report_data)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    report.host_ip,
                    report.host_name,
                    report.base_path,
                    report.declared_directories,
                    report.timestamp,
                    report_data,
                ),
            )
            report_id: int = cur.lastrowid  # type: ignore[assignment]
            await db.commit()
        return report_id

    async def _insert_entry(
        self, db: aiosqlite.Connection, report_id: int, entry: DirectoryEntry
    ) -> None:
        try:
            await db.execute(
                """
                INSERT INTO directory_entries (report_id, path, file_count, size_bytes, size_mb)
                VALUES (?, ?, ?, ?, ?)
                """,
                (report_id, entry.path, entry.file_count, entry.size_bytes, entry.size_mb),
            )
        except _DRIVER_ERRORS as exc:
            raise PartialWriteFailure(
                f"directory {entry.path!r} of report {report_id}: {exc}"
            ) from exc

    async def insert_directory_entries(
        self, report_id: int, entries: Iterable[DirectoryEntry]
    ) -> int:
        written = 0
        async with self._connect("directory insert") as db:
            for entry in entries:
                try:
                    await self._insert_entry(db, report_id, entry)
                except PartialWriteFailure as exc:
                    logger.warning("Failed to insert directory detail: %s", exc)
                    continue
                written += 1
            await db.commit()
        return written

    async def directory_entries(self, report_id: int) -> list[DirectoryEntry]:
        async with self._connect("directory lookup") as db:
            cur = await db.execute(
                """
                SELECT path, file_count, size_bytes, size_mb
                FROM directory_entries
                WHERE report_id = ?
                ORDER BY id
                """,
                (report_id,),
            )
            rows = await cur.fetchall()
        return [DirectoryEntry(**dict(r)) for r in rows]

    async def all_latest_per_host(self) -> list[StoredReport]:
        async with self._connect("latest-per-host query") as db:
            cur = await db.execute(
                f"""
                SELECT {_REPORT_COLUMNS}
                FROM reports AS r
                WHERE r.id = (
                    SELECT r2.id FROM reports AS r2
                    WHERE r2.host_ip = r.host_ip
                    ORDER BY r2.created_at DESC, r2.id DESC
                    LIMIT 1
                )
                ORDER BY r.created_at DESC, r.id DESC
                """
            )
            rows = await cur.fetchall()
        return [StoredReport(**dict(r)) for r in rows]

    async def reports_for_host(self, host_ip: str, limit: int) -> list[StoredReport]:
        async with self._connect("host history query") as db:
            cur = await db.execute(
                f"""
                SELECT {_REPORT_COLUMNS}
                FROM reports
                WHERE host_ip = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (host_ip, limit),
            )
            rows = await cur.fetchall()
        return [StoredReport(**dict(r)) for r in rows]

    async def report_by_id(self, report_id: int) -> StoredReport | None:
        async with self._connect("report lookup") as db:
            cur = await db.execute(
                f"SELECT {_REPORT_COLUMNS} FROM reports WHERE id = ?",
                (report_id,),
            )
            row = await cur.fetchone()
        return StoredReport(**dict(row)) if row else None

    async def count_reports_for_host(self, host_ip: str) -> int:
        async with self._connect("report count") as db:
            cur = await db.execute(
                "SELECT COUNT(*) FROM reports WHERE host_ip = ?", (host_ip,)
            )
            row = await cur.fetchone()
        return int(row[0]) if row else 0

    # ── Audit ─────────────────────────────────────────────────────────────────

    async def insert_audit_event(self, event: AuditEvent) -> int:
        async with self._connect("audit insert") as db:
            cur = await db.execute(
                """
                INSERT INTO audit_log (host_ip, action, status, message, details, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    event.host_ip,
                    event.action,
                    event.status,
                    event.message,
                    event.details,
                    event.created_at,
                ),
            )
            event_id: int = cur.lastrowid  # type: ignore[assignment]
            await db.commit()
        return event_id

    async def audit_events(
        self,
        action: str | None = None,
        host_ip: str | None = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        clauses: list[str] = []
        params: list[object] = []
        if action:
            clauses.append("action = ?")
            params.append(action)
        if host_ip:
            clauses.append("host_ip = ?")
            params.append(host_ip)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit)

        async with self._connect("audit query") as db:
            cur = await db.execute(
                f"""
                SELECT {_AUDIT_COLUMNS}
                FROM audit_log
                {where}
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                params,
            )
            rows = await cur.fetchall()
        return [AuditEvent(**dict(r)) for r in rows]
