from __future__ import annotations
import asyncio
from typing import Mapping, Sequence

import pytest
from eth_abi import encode
from eth_utils import to_checksum_address

from reservecheck.adapters.rpc_httpx import RPCError
from reservecheck.application.enrichment import TOKEN_INFO_REQUEST_CONTRACT
from reservecheck.domain.abi import (
    DECIMALS_SELECTOR, GETRESERVES_SELECTOR, NAME_SELECTOR, SYMBOL_SELECTOR,
    TOKEN0_SELECTOR, TOKEN1_SELECTOR, balance_of_calldata, token_info_calldata,
)
from reservecheck.domain.models import SwapLog
from reservecheck.domain.value_types import Address, BlockTag, Topic0


def addr(byte: str) -> Address:
    """addr("11") -> checksum 0x1111...11"""
    return Address(to_checksum_address("0x" + byte * 20))


POOL_1, POOL_2, POOL_3 = addr("a1"), addr("a2"), addr("a3")
WETH, USDC, DAI = addr("e1"), addr("c1"), addr("d1")


class FakeRPC:
    """
    In-memory RPCClient. Responses are keyed by (to, calldata, block); a block of
    None matches any block. Anything unregistered reverts.
    """
    def __init__(self) -> None:
        self.logs: list[SwapLog] = []
        self.failing_ranges: set[tuple[int, int]] = set()
        self.responses: dict[tuple[Address, bytes, BlockTag | None], bytes | Exception] = {}
        self.log_queries: list[tuple[int, int, tuple[str, ...]]] = []
        self.calls: list[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    # --- setup helpers ---
    def add_swap(self, pool: Address, block: int, log_index: int = 0) -> None:
        self.logs.append(SwapLog(address=pool, block_number=block, tx_hash=f"0x{block:064x}", log_index=log_index))

    def respond(self, to: Address, data: bytes, value: bytes | Exception, block: BlockTag | None = None) -> None:
        self.responses[(to, data, block)] = value

    def add_pair(self, pool: Address, token0: Address, token1: Address, reserves: tuple[int, int] | None = None) -> None:
        self.respond(pool, TOKEN0_SELECTOR, encode(["address"], [token0]))
        self.respond(pool, TOKEN1_SELECTOR, encode(["address"], [token1]))
        if reserves is not None:
            self.respond(pool, GETRESERVES_SELECTOR, encode(["uint112", "uint112", "uint32"], [reserves[0], reserves[1], 1_700_000_000]))

    def add_token(self, token: Address, name: str, symbol: str, decimals: int) -> None:
        self.respond(token, NAME_SELECTOR, encode(["string"], [name]))
        self.respond(token, SYMBOL_SELECTOR, encode(["string"], [symbol]))
        self.respond(token, DECIMALS_SELECTOR, encode(["uint8"], [decimals]))

    def add_token_info(self, token: Address, name: str, symbol: str, decimals: int, total_supply: int = 10**24) -> None:
        self.respond(
            TOKEN_INFO_REQUEST_CONTRACT, token_info_calldata(token),
            encode(["string", "string", "uint8", "uint256"], [name, symbol, decimals, total_supply]),
        )

    def add_balance(self, token: Address, owner: Address, amount: int, block: int | None = None) -> None:
        self.respond(token, balance_of_calldata(owner), encode(["uint256"], [amount]), block)

    # --- RPCClient ---
    async def _enter(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)

    async def get_logs(self, topic0s: Sequence[Topic0], from_block: int, to_block: int, address: Address | None = None) -> list[SwapLog]:
        await self._enter()
        try:
            self.log_queries.append((from_block, to_block, tuple(topic0s)))
            if (from_block, to_block) in self.failing_ranges:
                raise RPCError("eth_getLogs RPC error code=-32005 message=query returned more than 10000 results")
            return [l for l in self.logs if from_block <= l.block_number <= to_block]
        finally:
            self.in_flight -= 1

    async def eth_call(
        self,
        to: Address,
        data: bytes,
        *,
        block: BlockTag = "latest",
        sender: Address | None = None,
        state_override: Mapping[Address, bytes] | None = None,
    ) -> bytes:
        await self._enter()
        try:
            self.calls.append({"to": to, "data": data, "block": block, "sender": sender, "state_override": state_override})
            if to == TOKEN_INFO_REQUEST_CONTRACT and not state_override:
                return b""  # nothing deployed there
            value = self.responses.get((to, data, block), self.responses.get((to, data, None)))
            if value is None:
                raise RPCError("eth_call RPC error code=3 message=execution reverted")
            if isinstance(value, Exception):
                raise value
            return value
        finally:
            self.in_flight -= 1

    async def latest_block(self) -> int:
        return max((l.block_number for l in self.logs), default=0)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def rpc() -> FakeRPC:
    return FakeRPC()


@pytest.fixture
def two_pool_rpc() -> FakeRPC:
    """2 swaps, 2 pools, one chunk. POOL_1 is balanced, POOL_2 holds 5 extra USDC."""
    f = FakeRPC()
    f.add_swap(POOL_1, 100)
    f.add_swap(POOL_2, 200)
    f.add_pair(POOL_1, WETH, USDC, reserves=(100, 200))
    f.add_pair(POOL_2, DAI, USDC, reserves=(1_000, 2_000))
    f.add_token(WETH, "Wrapped Ether", "WETH", 18)
    f.add_token(USDC, "USD Coin", "USDC", 6)
    f.add_token(DAI, "Dai Stablecoin", "DAI", 18)
    f.add_balance(WETH, POOL_1, 100, block=100)
    f.add_balance(USDC, POOL_1, 200, block=100)
    f.add_balance(DAI, POOL_2, 1_000, block=200)
    f.add_balance(USDC, POOL_2, 2_005, block=200)
    return f
