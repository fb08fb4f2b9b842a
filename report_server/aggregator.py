"""Totals over a report's directory list.

Used on the write path (dedup comparison) and on every read path, where
totals are always recomputed rather than read from storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

BYTES_PER_MB = 1024 ** 2
BYTES_PER_GB = 1024 ** 3


@dataclass(frozen=True)
class Totals:
    total_files: int = 0
    total_size_bytes: int = 0
    total_size_mb: int = 0
    total_size_gb: int = 0


def _field(entry: Any, name: str) -> int:
    if isinstance(entry, Mapping):
        return entry.get(name) or 0
    return getattr(entry, name, 0) or 0


def _truncdiv(value: int, divisor: int) -> int:
    # Truncates toward zero for negative sums as well.
    quotient = abs(value) // divisor
    return quotient if value >= 0 else -quotient


def compute_totals(directories: Iterable[Any]) -> Totals:
    """Sum file counts and sizes over *directories*.

    Entries may be ``DirectoryEntry`` models or plain dicts from a
    deserialized payload. Sizes are truncated to whole MB / GB. Values are not
    validated.
    """
    total_files = 0
    total_bytes = 0
    for entry in directories:
        total_files += _field(entry, "file_count")
        total_bytes += _field(entry, "size_bytes")
    return Totals(
        total_files=total_files,
        total_size_bytes=total_bytes,
        total_size_mb=_truncdiv(total_bytes, BYTES_PER_MB),
        total_size_gb=_truncdiv(total_bytes, BYTES_PER_GB),
    )
