from __future__ import annotations
import os, json, asyncio
from datetime import datetime, timezone
from typing import Any

from ..ports.storage import ManifestSink
from ..domain.models import UnitStatus


def unit_status_line(rec: UnitStatus) -> str:
    """One compact JSON object per unit; `reason` only appears on dropped units."""
    obj: dict[str, Any] = {
        "stage": rec.stage,
        "key": rec.key,
        "status": rec.status,
    }
    if rec.reason is not None:
        obj["reason"] = rec.reason
    obj["at"] = datetime.fromtimestamp(rec.updated_at, tz=timezone.utc).isoformat(timespec="milliseconds")
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":")) + "\n"


class JSONLManifest(ManifestSink):
    """
    Append-only per-unit ledger. The parent directory is created on the first
    write, so an unusable path surfaces as a failed append rather than at startup.
    """
    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = asyncio.Lock()
        self._ready = False

    async def append(self, rec: UnitStatus) -> None:
        line = unit_status_line(rec)
        async with self._lock:
            if not self._ready:
                os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
                self._ready = True
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line); f.flush(); os.fsync(f.fileno())
