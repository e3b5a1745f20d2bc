from __future__ import annotations
import asyncio, logging
from typing import Iterable, Sequence

from ..domain.abi import SWAP_T0, TOKEN0_SELECTOR, TOKEN1_SELECTOR, ZERO_ADDRESS, decode_address
from ..domain.models import BlockRange, PoolDescriptor, SwapLog, TouchedPool
from ..domain.value_types import Address
from ..ports.rpc import RPCClient
from .config import DEFAULT_CONCURRENCY
from .diagnostics import Diagnostics

logger = logging.getLogger(__name__)


async def scan_swap_logs(
    rpc: RPCClient,
    ranges: Sequence[BlockRange],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    diagnostics: Diagnostics | None = None,
) -> list[SwapLog]:
    """
    One eth_getLogs per chunk, any emitter, Swap topic0 only. A failed chunk is
    dropped (its swaps are lost); the rest are merged in completion order.
    """
    diag = diagnostics if diagnostics is not None else Diagnostics()
    sem = asyncio.Semaphore(concurrency)
    merged: list[SwapLog] = []

    async def run_chunk(r: BlockRange) -> None:
        key = f"{r.start}-{r.end}"
        try:
            async with sem:
                logs = await rpc.get_logs([SWAP_T0], r.start, r.end)
        except Exception as e:
            await diag.dropped("logs", key, e)
            return
        merged.extend(logs)
        await diag.ok("logs", key)

    await asyncio.gather(*(asyncio.create_task(run_chunk(r)) for r in ranges))
    logger.info("scanned %d chunks, %d swap logs", len(ranges), len(merged))
    return merged


def latest_sightings(logs: Iterable[SwapLog]) -> dict[Address, int]:
    """Pool address -> highest block it swapped in."""
    out: dict[Address, int] = {}
    for log in logs:
        prev = out.get(log.address)
        if prev is None or log.block_number > prev:
            out[log.address] = log.block_number
    return out


async def read_pair_tokens(rpc: RPCClient, pool: Address) -> tuple[Address, Address]:
    token_a = decode_address(await rpc.eth_call(pool, TOKEN0_SELECTOR))
    token_b = decode_address(await rpc.eth_call(pool, TOKEN1_SELECTOR))
    if ZERO_ADDRESS in (token_a, token_b) or token_a == token_b:
        raise ValueError(f"not a pair: token0={token_a} token1={token_b}")
    return token_a, token_b


async def discover_pools(
    rpc: RPCClient,
    logs: Iterable[SwapLog],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    diagnostics: Diagnostics | None = None,
) -> dict[Address, TouchedPool]:
    """
    Build a TouchedPool per distinct emitter. `action_block` is the greatest
    swap block seen for that pool, whatever order the logs arrived in.
    """
    diag = diagnostics if diagnostics is not None else Diagnostics()
    sem = asyncio.Semaphore(concurrency)
    touched: dict[Address, TouchedPool] = {}

    async def run_pool(address: Address, action_block: int) -> None:
        try:
            async with sem:
                token_a, token_b = await read_pair_tokens(rpc, address)
        except Exception as e:
            await diag.dropped("discovery", address, e)
            return
        touched[address] = TouchedPool(
            pool=PoolDescriptor(address=address, token_a=token_a, token_b=token_b),
            action_block=action_block,
        )
        await diag.ok("discovery", address)

    sightings = latest_sightings(logs)
    await asyncio.gather(*(asyncio.create_task(run_pool(a, b)) for a, b in sightings.items()))
    logger.info("discovered %d/%d touched pools", len(touched), len(sightings))
    return touched
