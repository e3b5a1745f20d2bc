from __future__ import annotations
import asyncio, logging
from typing import Any

from reservecheck.adapters.manifest_jsonl import JSONLManifest
from reservecheck.adapters.report_json import JSONReportSink
from reservecheck.adapters.rpc_httpx import HttpxRPC
from ..domain.models import ReconciliationRecord
from ..ports.rpc import RPCClient
from ..ports.storage import ManifestSink, ReportSink
from .config import ScanSettings
from .diagnostics import Diagnostics
from .enrichment import TokenInfoResolver, load_pool_balances, load_pool_reserves, load_pool_tokens, new_scratch_sender
from .planning import plan_chunks
from .reconcile import merge_reserves, reconcile_pools
from .scanning import discover_pools, scan_swap_logs

logger = logging.getLogger(__name__)


async def write_report(report: ReportSink, records: list[ReconciliationRecord]) -> bool:
    """Serialization/I/O failures are logged, never raised."""
    try:
        await report.write_report(records)
    except Exception as e:
        logger.error("Error writing report: %s: %s", type(e).__name__, e)
        return False
    return True


async def reconcile_range(
    *,
    rpc: RPCClient,
    report: ReportSink,
    manifest: ManifestSink | None,
    settings: ScanSettings,
    resolver: TokenInfoResolver | None = None,
) -> dict[str, Any]:
    """
    Scan -> discover -> tokens -> (reserves || balances) -> merge -> reconcile -> write.
    Reserves and balances run concurrently on the same immutable snapshot and
    are joined afterwards, so the report never sees a half-merged pool.
    """
    diag = Diagnostics(manifest)
    n = settings.concurrency
    if resolver is None:
        resolver = TokenInfoResolver(rpc, lookup_code=settings.token_info_code, sender=new_scratch_sender())

    ranges = plan_chunks(settings.from_block, settings.to_block, settings.chunk_size)
    logs = await scan_swap_logs(rpc, ranges, concurrency=n, diagnostics=diag)
    touched = await discover_pools(rpc, logs, concurrency=n, diagnostics=diag)
    tokens = await load_pool_tokens(resolver, touched, concurrency=n, diagnostics=diag)

    reserves, balances = await asyncio.gather(
        load_pool_reserves(rpc, touched, reserve_block=settings.reserve_block, concurrency=n, diagnostics=diag),
        load_pool_balances(rpc, touched, concurrency=n, diagnostics=diag),
    )

    records = reconcile_pools(merge_reserves(touched, reserves), balances, tokens)
    strange = sum(1 for r in records if r.strange_reserves)
    logger.info("reconciled %d pools, %d with strange reserves", len(records), strange)

    written = await write_report(report, records)
    return {
        "chunks": len(ranges),
        "logs": len(logs),
        "touched_pools": len(touched),
        "tokens": len(tokens),
        "reserves": len(reserves),
        "balances": len(balances),
        "records": len(records),
        "strange": strange,
        "report_written": int(written),
        "manifest_errors": diag.manifest_errors,
        "token_info_mode": resolver.mode,
        **diag.summary(),
    }


async def run_reconciliation(settings: ScanSettings) -> dict[str, Any]:
    """
    Build adapters from settings and run the whole pipeline.
    Raises ValueError before any RPC traffic if the settings or URL are bad.
    """
    settings.validate()
    rpc = HttpxRPC(settings.rpc_url, timeout_s=settings.timeout_s, max_conn=max(32, 2*settings.concurrency))
    try:
        report = JSONReportSink(settings.out_path)
        manifest = JSONLManifest(settings.manifest_path) if settings.manifest_path else None
        return await reconcile_range(rpc=rpc, report=report, manifest=manifest, settings=settings)
    finally:
        await rpc.aclose()
