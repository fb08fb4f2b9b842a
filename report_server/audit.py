"""Audit trail for ingestion attempts.

Every event goes to two sinks: the ``audit_log`` table of the report store
and an append-only text file with one line per event::

    [2026-10-18 09:15:02] 10.0.0.5 | SAVE | NEW_HOST | New host report stored

Both sinks are best-effort and independent of each other. A failing sink is
reported on the operator log and never raised to the caller.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from pathlib import Path

from .errors import StorageFailure
from .models import AuditEvent
from .store import ReportStore

logger = logging.getLogger(__name__)

# Actions and statuses used by the ingestion engine. Both fields are free
# strings in storage.
ACTION_RECEIVE = "RECEIVE"
ACTION_UPDATE = "UPDATE"
ACTION_VALIDATE = "VALIDATE"
ACTION_SAVE = "SAVE"

STATUS_NEW_HOST = "NEW_HOST"
STATUS_SUCCESS = "SUCCESS"
STATUS_SKIPPED = "SKIPPED"
STATUS_ERROR = "ERROR"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _storable(text: str | None) -> str | None:
    """Escape characters that cannot be written as UTF-8 (unpaired surrogates)."""
    if text is None:
        return None
    return text.encode("utf-8", "backslashreplace").decode("utf-8")


def format_log_line(event: AuditEvent) -> str:
    """Render *event* as one line of the text audit log."""
    try:
        stamp = datetime.datetime.fromisoformat(
            event.created_at.replace("Z", "+00:00")
        ).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        stamp = event.created_at
    return f"[{stamp}] {event.host_ip} | {event.action} | {event.status} | {event.message}"


class AuditRecorder:
    def __init__(self, store: ReportStore, log_path: str | None = None) -> None:
        self.store = store
        self.log_path = Path(log_path) if log_path else None

    async def record(
        self,
        host_ip: str,
        action: str,
        status: str,
        message: str,
        details: str | None = None,
    ) -> AuditEvent:
        """Write one event to both sinks and return it.

        ``created_at`` is assigned here so both sinks carry the same time. The
        text-log write runs in a worker thread.
        """
        event = AuditEvent(
            host_ip=_storable(host_ip),
            action=_storable(action),
            status=_storable(status),
            message=_storable(message),
            details=_storable(details),
            created_at=_utcnow().isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        )

        try:
            event.id = await self.store.insert_audit_event(event)
        except StorageFailure as exc:
            logger.error("Audit record for %s not stored: %s", event.host_ip, exc)
        except Exception:
            logger.exception("Audit record for %s not stored", event.host_ip)

        if self.log_path is not None:
            await asyncio.to_thread(self._append_line, event)

        return event

    def _append_line(self, event: AuditEvent) -> None:
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with self.log_path.open("a", encoding="utf-8") as fh:
                fh.write(format_log_line(event) + "\n")
        except OSError as exc:
            logger.error("Audit log %s not writable: %s", self.log_path, exc)
