"""Read side: host summaries, host history, report detail and the audit log.

Totals are always recomputed from each report's retained payload, never read
from a stored column. Report detail is the exception: it returns the payload
untouched.
"""

from __future__ import annotations

import json
import logging

from .aggregator import compute_totals
from .errors import NotFound, StorageFailure
from .models import AuditEvent, DirectoryEntry, HostReport, HostSummary, StoredReport
from .store import ReportStore

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50
DEFAULT_AUDIT_LIMIT = 100


def _payload_directories(stored: StoredReport) -> list[DirectoryEntry]:
    try:
        payload = json.loads(stored.report_data)
        return [DirectoryEntry.model_validate(d) for d in payload.get("directories") or []]
    except (ValueError, TypeError, AttributeError) as exc:
        # pydantic's ValidationError is a ValueError.
        raise StorageFailure(f"stored report {stored.id} is unreadable: {exc}") from exc


class QueryService:
    def __init__(self, store: ReportStore) -> None:
        self.store = store

    async def host_summaries(self) -> list[HostSummary]:
        """One summary per host, built from that host's latest report."""
        summaries = []
        for stored in await self.store.all_latest_per_host():
            totals = compute_totals(_payload_directories(stored))
            summaries.append(HostSummary(
                host_ip=stored.host_ip,
                host_name=stored.host_name,
                last_report=stored.created_at,
                total_files=totals.total_files,
                total_size_mb=totals.total_size_mb,
                total_size_gb=totals.total_size_gb,
                report_count=await self.store.count_reports_for_host(stored.host_ip),
            ))
        logger.debug("Returning %d hosts", len(summaries))
        return summaries

    async def host_history(
        self, host_ip: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[HostReport]:
        """Stored reports for *host_ip*, most recent first."""
        history = []
        for stored in await self.store.reports_for_host(host_ip, limit):
            directories = _payload_directories(stored)
            totals = compute_totals(directories)
            history.append(HostReport(
                id=stored.id,
                host_ip=stored.host_ip,
                timestamp=stored.created_at,
                total_directories=stored.total_directories,
                total_files=totals.total_files,
                total_size_mb=totals.total_size_mb,
                total_size_gb=totals.total_size_gb,
                directories=directories,
            ))
        return history

    async def report_detail(self, report_id: int) -> str:
        """The payload of report *report_id* exactly as it was submitted.

        Raises:
            NotFound: no report has this id.
        """
        stored = await self.store.report_by_id(report_id)
        if stored is None:
            raise NotFound(f"Report {report_id} not found.")
        return stored.report_data

    async def audit_log(
        self,
        action: str | None = None,
        host_ip: str | None = None,
        limit: int = DEFAULT_AUDIT_LIMIT,
    ) -> list[AuditEvent]:
        return await self.store.audit_events(action=action, host_ip=host_ip, limit=limit)
