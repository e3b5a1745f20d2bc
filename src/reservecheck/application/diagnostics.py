from __future__ import annotations
import logging, time
from collections import Counter

from ..domain.models import UnitStatus
from ..domain.value_types import Stage
from ..ports.storage import ManifestSink

logger = logging.getLogger(__name__)

STAGES: tuple[Stage, ...] = ("logs", "discovery", "tokens", "reserves", "balances")


class Diagnostics:
    """
    Per-unit outcome ledger. Every chunk/pool/token unit ends up here as ok or
    dropped, so an absent pool in the report can be told apart from a failed fetch.
    """
    def __init__(self, manifest: ManifestSink | None = None) -> None:
        self.manifest = manifest
        self.records: list[UnitStatus] = []
        self._counts: Counter[str] = Counter()
        self.manifest_errors = 0

    async def _append(self, rec: UnitStatus) -> None:
        self.records.append(rec)
        self._counts[f"{rec.stage}_{rec.status}"] += 1
        if self.manifest is None:
            return
        try:
            await self.manifest.append(rec)
        except Exception as e:
            self.manifest_errors += 1
            logger.error("Error writing manifest entry %s/%s: %s: %s", rec.stage, rec.key, type(e).__name__, e)

    async def ok(self, stage: Stage, key: str) -> None:
        await self._append(UnitStatus(stage=stage, key=key, status="ok", updated_at=time.time()))

    async def dropped(self, stage: Stage, key: str, err: BaseException | str) -> None:
        reason = err if isinstance(err, str) else f"{type(err).__name__}: {err}"
        logger.debug("dropped %s unit %s: %s", stage, key, reason)
        await self._append(UnitStatus(stage=stage, key=key, status="dropped", reason=reason, updated_at=time.time()))

    def dropped_keys(self, stage: Stage) -> set[str]:
        return {r.key for r in self.records if r.stage == stage and r.status == "dropped"}

    def summary(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for s in STAGES:
            out[f"{s}_ok"] = self._counts[f"{s}_ok"]
            out[f"{s}_dropped"] = self._counts[f"{s}_dropped"]
        return out
