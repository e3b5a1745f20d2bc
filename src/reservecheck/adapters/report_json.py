from __future__ import annotations
import os, json
from typing import Iterable

from ..ports.storage import ReportSink
from ..domain.models import ReconciliationRecord

class JSONReportSink(ReportSink):
    """Pretty-printed JSON array of records, replaced atomically."""
    def __init__(self, path: str = "output.json") -> None:
        self.path = path

    async def write_report(self, records: Iterable[ReconciliationRecord]) -> None:
        text = json.dumps([r.to_json() for r in records], ensure_ascii=False, indent=2) + "\n"
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, self.path)
