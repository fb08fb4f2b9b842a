"""Exception types shared by the ingestion pipeline and the query layer."""

from __future__ import annotations


class ReportServerError(Exception):
    """Base class for every error raised by report_server."""


class MalformedInput(ReportServerError):
    """The inbound payload cannot be parsed into a Report."""


class NotFound(ReportServerError):
    """A queried host or report id does not exist."""


class StorageFailure(ReportServerError):
    """A persistence read or write failed."""


class PartialWriteFailure(StorageFailure):
    """A directory row failed to insert after its parent report was stored.

    Tolerated: the serialized payload on the report row stays authoritative.
    """
