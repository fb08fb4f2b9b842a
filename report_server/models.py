"""Pydantic models for reports, audit events and query results."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field, field_validator

# SQLite stores integers as signed 64-bit.
INT64_MAX = 2 ** 63 - 1


def _encodable(value: str | None) -> str | None:
    """Reject strings that cannot be stored as UTF-8 (unpaired surrogates)."""
    if value is not None:
        try:
            value.encode("utf-8")
        except UnicodeEncodeError:
            raise ValueError("contains characters that are not valid UTF-8") from None
    return value


# ── Inbound report ────────────────────────────────────────────────────────────

class DirectoryEntry(BaseModel):
    path:       str
    file_count: int = Field(default=0, ge=0)
    size_bytes: int = Field(default=0, ge=0)
    size_mb:    int = 0                       # sender-computed, display only

    model_config = {"extra": "allow"}

    @field_validator("path")
    @classmethod
    def path_is_encodable(cls, value: str) -> str:
        return _encodable(value)


class Report(BaseModel):
    """One inventory snapshot as submitted by an agent.

    ``extra = "allow"`` keeps any additional fields so the retained payload
    reproduces what the agent sent. ``timestamp``, ``total_directories`` and
    ``totals`` are advisory and never checked against ``directories``.
    Values are validated in pydantic's lax mode, so a numeric string such as
    ``"1048576"`` is stored as the integer it denotes.
    """

    host_ip:   str = Field(min_length=1)
    host_name: str | None = None
    base_path: str = ""
    timestamp: str | None = None

    total_directories: int | None = Field(default=None, ge=-INT64_MAX - 1, le=INT64_MAX)
    totals:            dict[str, Any] | None = None

    directories: list[DirectoryEntry] = []

    model_config = {"extra": "allow"}

    @field_validator("host_ip", "host_name", "base_path", "timestamp")
    @classmethod
    def text_is_encodable(cls, value: str | None) -> str | None:
        return _encodable(value)

    @property
    def declared_directories(self) -> int:
        """Directory count as declared by the sender (top level, then totals)."""
        if self.total_directories is not None:
            return self.total_directories
        declared = (self.totals or {}).get("total_directories")
        if isinstance(declared, int) and abs(declared) <= INT64_MAX:
            return declared
        return 0

    def to_payload(self) -> str:
        """Serialize exactly the fields the sender supplied."""
        return json.dumps(self.model_dump(mode="json", exclude_unset=True))


# ── Stored state ──────────────────────────────────────────────────────────────

class StoredReport(BaseModel):
    id:                int
    host_ip:           str
    host_name:         str | None = None
    base_path:         str = ""
    total_directories: int = 0
    timestamp:         str | None = None
    report_data:       str                    # verbatim payload
    created_at:        str


class AuditEvent(BaseModel):
    id:         int | None = None
    host_ip:    str
    action:     str
    status:     str
    message:    str
    details:    str | None = None
    created_at: str


# ── Ingest result ─────────────────────────────────────────────────────────────

class IngestResponse(BaseModel):
    status:    str
    report_id: int
    message:   str
    outcome:   str


# ── Query results ─────────────────────────────────────────────────────────────

class HostSummary(BaseModel):
    host_ip:       str
    host_name:     str | None
    last_report:   str
    total_files:   int
    total_size_mb: int
    total_size_gb: int
    report_count:  int


class HostReport(BaseModel):
    id:                int
    host_ip:           str
    timestamp:         str
    total_directories: int
    total_files:       int
    total_size_mb:     int
    total_size_gb:     int
    directories:       list[DirectoryEntry]


class HealthStatus(BaseModel):
    status:   str
    time:     str
    database: str
