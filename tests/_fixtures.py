"""Shared helpers for the async test cases."""

import tempfile
import unittest
from pathlib import Path

from report_server.audit import AuditRecorder
from report_server.errors import StorageFailure
from report_server.ingestion import IngestionEngine
from report_server.models import Report
from report_server.queries import QueryService
from report_server.store import SQLiteReportStore

MB = 1024 * 1024


def make_report(host_ip="10.0.0.5", sizes=(MB,), file_count=10, **extra) -> Report:
    """Report with one directory per entry in *sizes*."""
    return Report(
        host_ip=host_ip,
        base_path="D:\\Shares",
        timestamp="2026-10-18 09:00:00",
        total_directories=len(sizes),
        directories=[
            {
                "path": f"D:\\Shares\\dir{i}",
                "file_count": file_count,
                "size_bytes": size,
                "size_mb": size // MB,
            }
            for i, size in enumerate(sizes)
        ],
        **extra,
    )


class StoreTestCase(unittest.IsolatedAsyncioTestCase):
    """Real SQLite store in a temp dir, with engine, recorder and queries wired up."""

    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        tmp = Path(self._tmp.name)
        self.db_path = str(tmp / "reports.db")
        self.log_path = tmp / "audit.log"
        self.store = SQLiteReportStore(self.db_path)
        await self.store.init()
        self.recorder = AuditRecorder(self.store, str(self.log_path))
        self.engine = IngestionEngine(self.store, self.recorder)
        self.queries = QueryService(self.store)

    async def asyncTearDown(self):
        self._tmp.cleanup()


class BrokenAuditStore(SQLiteReportStore):
    """Store whose audit table rejects every write."""

    async def insert_audit_event(self, event):
        raise StorageFailure("audit table is locked")


class FailingInsertStore(SQLiteReportStore):
    """Store that can read but not append reports."""

    async def insert_report(self, report, report_data):
        raise StorageFailure("disk I/O error")


class FailingReadStore(SQLiteReportStore):
    """Store whose latest-report lookup always fails."""

    async def latest_report_for(self, host_ip):
        raise StorageFailure("database is locked")
