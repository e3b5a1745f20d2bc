# reservecheck/ports/storage.py
from __future__ import annotations

from typing import Iterable, Protocol
from ..domain.models import ReconciliationRecord, UnitStatus


class ReportSink(Protocol):
    """Port for writing the final reconciliation report in one shot."""

    async def write_report(self, records: Iterable[ReconciliationRecord]) -> None:
        """Persist all records; raise on serialization or I/O failure."""


class ManifestSink(Protocol):
    """Port for appending per-unit status records (e.g., JSONL manifest)."""

    async def append(self, rec: UnitStatus) -> None:
        """Append a manifest record atomically (callers handle ordering/locking)."""
