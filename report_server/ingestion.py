"""Report ingestion and deduplication.

For each incoming report the engine compares the host's most recent stored
report with the new one and picks one of three outcomes:

* ``NEW_HOST`` - no report is stored for this host yet; store it.
* ``SKIPPED``  - the total size in bytes is unchanged; nothing is written and
  the id of the existing report is returned.
* ``UPDATED``  - the total size changed; a new report row is appended. Earlier
  rows are kept as history.

Only ``total_size_bytes`` is compared. A report whose directories changed
but whose total size did not is treated as a duplicate and skipped.

Any read or write failure yields ``FAILED``. Every call, whatever its
outcome, records exactly one audit event.

Ingestion for one host is serialized with a per-host lock so that two
concurrent submissions cannot both see the same "latest" row and both
append. Different hosts never wait on each other.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator

from pydantic import ValidationError

from . import audit
from .aggregator import compute_totals
from .audit import AuditRecorder
from .errors import MalformedInput, StorageFailure
from .models import Report
from .store import ReportStore

logger = logging.getLogger(__name__)


class Outcome(str, enum.Enum):
    NEW_HOST = "new_host"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class IngestResult:
    report_id: int | None
    outcome: Outcome
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is not Outcome.FAILED

    @property
    def message(self) -> str:
        if self.outcome is Outcome.NEW_HOST:
            return "New host report saved successfully"
        if self.outcome is Outcome.UPDATED:
            return "File report updated successfully"
        if self.outcome is Outcome.SKIPPED:
            return "Report unchanged, skipped"
        return f"Failed to save report: {self.reason}"


class _HostLocks:
    """One asyncio.Lock per host, dropped once nobody holds or waits for it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @contextlib.asynccontextmanager
    async def hold(self, host_ip: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(host_ip, asyncio.Lock())
        self._users[host_ip] = self._users.get(host_ip, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[host_ip] -= 1
            if not self._users[host_ip]:
                del self._users[host_ip]
                del self._locks[host_ip]

    def __len__(self) -> int:
        return len(self._locks)


def _host_ip_hint(data: Any) -> str:
    """Best-effort host_ip from a payload that failed validation."""
    if isinstance(data, dict):
        host_ip = data.get("host_ip")
        if isinstance(host_ip, str) and host_ip.strip():
            return host_ip
    return "unknown"


class IngestionEngine:
    def __init__(self, store: ReportStore, recorder: AuditRecorder) -> None:
        self.store = store
        self.recorder = recorder
        self._locks = _HostLocks()

    # ── Entry points ──────────────────────────────────────────────────────────

    async def ingest_raw(self, body: bytes | str) -> IngestResult:
        """Parse a transport body into a Report and ingest it.

        Raises:
            MalformedInput: the body is not JSON or does not describe a
                report. The attempt is audited before raising; storage is
                not touched.
        """
        try:
            data = json.loads(body)
        except (ValueError, TypeError) as exc:
            await self._reject("unknown", "Invalid JSON format", str(exc))
            raise MalformedInput(f"Invalid JSON format: {exc}") from exc

        try:
            report = Report.model_validate(data)
        except ValidationError as exc:
            host_ip = _host_ip_hint(data)
            await self._reject(host_ip, "Report failed validation", str(exc))
            raise MalformedInput(f"Invalid report: {exc.error_count()} validation error(s)") from exc

        return await self.ingest(report)

    async def ingest(self, report: Report) -> IngestResult:
        async with self._locks.hold(report.host_ip):
            return await self._ingest_locked(report)

    # ── Pipeline ──────────────────────────────────────────────────────────────

    async def _ingest_locked(self, report: Report) -> IngestResult:
        host_ip = report.host_ip
        new_totals = compute_totals(report.directories)

        try:
            latest = await self.store.latest_report_for(host_ip)
        except StorageFailure as exc:
            return await self._fail(host_ip, audit.ACTION_RECEIVE, "Failed to read latest report", exc)

        if latest is None:
            outcome = Outcome.NEW_HOST
        else:
            try:
                previous = json.loads(latest.report_data)
                previous_totals = compute_totals(previous.get("directories") or [])
            except (ValueError, TypeError, AttributeError) as exc:
                return await self._fail(
                    host_ip,
                    audit.ACTION_RECEIVE,
                    f"Stored report {latest.id} is unreadable",
                    exc,
                )

            if previous_totals.total_size_bytes == new_totals.total_size_bytes:
                result = IngestResult(report_id=latest.id, outcome=Outcome.SKIPPED)
                logger.info(
                    "Report from %s (%s) unchanged - ID: %d - Size: %d MB",
                    report.host_name or "-", host_ip, latest.id, new_totals.total_size_mb,
                )
                await self.recorder.record(
                    host_ip,
                    audit.ACTION_RECEIVE,
                    audit.STATUS_SKIPPED,
                    result.message,
                    details=f"report_id={latest.id} total_size_bytes={new_totals.total_size_bytes}",
                )
                return result
            outcome = Outcome.UPDATED

        try:
            report_id = await self.store.insert_report(report, report.to_payload())
        except StorageFailure as exc:
            return await self._fail(host_ip, audit.ACTION_SAVE, "Failed to save report", exc)

        try:
            written = await self.store.insert_directory_entries(report_id, report.directories)
        except StorageFailure as exc:
            logger.warning("Directory details for report %d not stored: %s", report_id, exc)
        else:
            if written < len(report.directories):
                logger.warning(
                    "Report %d: stored %d of %d directory rows",
                    report_id, written, len(report.directories),
                )

        result = IngestResult(report_id=report_id, outcome=outcome)
        logger.info(
            "Report received from %s (%s) - ID: %d - Files: %d, Size: %d MB",
            report.host_name or "-", host_ip, report_id,
            new_totals.total_files, new_totals.total_size_mb,
        )

        if outcome is Outcome.NEW_HOST:
            await self.recorder.record(
                host_ip, audit.ACTION_SAVE, audit.STATUS_NEW_HOST, result.message,
                details=f"report_id={report_id}",
            )
        else:
            await self.recorder.record(
                host_ip, audit.ACTION_UPDATE, audit.STATUS_SUCCESS, result.message,
                details=(
                    f"report_id={report_id} previous_id={latest.id} "
                    f"total_size_bytes={new_totals.total_size_bytes}"
                ),
            )
        return result

    async def _fail(
        self, host_ip: str, action: str, message: str, exc: Exception
    ) -> IngestResult:
        logger.error("%s for %s: %s", message, host_ip, exc)
        await self.recorder.record(host_ip, action, audit.STATUS_ERROR, message, details=str(exc))
        return IngestResult(report_id=None, outcome=Outcome.FAILED, reason=f"{message}: {exc}")

    async def _reject(self, host_ip: str, message: str, details: str) -> None:
        logger.warning("Rejected report from %s: %s", host_ip, message)
        await self.recorder.record(
            host_ip, audit.ACTION_VALIDATE, audit.STATUS_ERROR, message, details=details
        )
