from __future__ import annotations
import asyncio, logging, os
from typing import Mapping

from eth_utils import to_checksum_address

from ..domain.abi import (
    DECIMALS_SELECTOR,
    GETRESERVES_SELECTOR,
    NAME_SELECTOR,
    SYMBOL_SELECTOR,
    balance_of_calldata,
    decode_reserves,
    decode_string_or_bytes32,
    decode_token_info,
    decode_uint,
    token_info_calldata,
)
from ..domain.models import PoolReserves, PoolToken, PoolTokenBalances, Token, TouchedPool
from ..domain.value_types import Address, BlockTag
from ..ports.rpc import RPCClient
from .config import DEFAULT_CONCURRENCY, ReserveBlock
from .diagnostics import Diagnostics

logger = logging.getLogger(__name__)

# Scratch address the lookup bytecode is injected at; nothing is ever deployed there.
TOKEN_INFO_REQUEST_CONTRACT = Address(to_checksum_address("0x9ae10196dfe6a01ea76e89d98e601b93e48807df"))


def new_scratch_sender() -> Address:
    """Random throwaway `from` address, created once per run."""
    return Address(to_checksum_address("0x" + os.urandom(20).hex()))


class TokenInfoResolver:
    """
    Resolves (name, symbol, decimals) for a token.

    With `lookup_code` set, runs `getTokenInfo(token)` against the lookup contract
    injected via state override, so tokens with broken/non-standard getters still
    resolve. Without it, falls back to calling name()/symbol()/decimals() directly.
    """
    def __init__(
        self,
        rpc: RPCClient,
        *,
        lookup_code: bytes | None = None,
        sender: Address | None = None,
        lookup_address: Address = TOKEN_INFO_REQUEST_CONTRACT,
    ) -> None:
        self.rpc = rpc
        self.lookup_code = lookup_code
        self.sender = sender if sender is not None else new_scratch_sender()
        self.lookup_address = lookup_address

    @property
    def mode(self) -> str:
        """Which resolution path runs: state-override lookup or the token's own getters."""
        return "lookup" if self.lookup_code else "getters"

    async def resolve(self, token: Address) -> Token:
        if self.lookup_code:
            name, symbol, decimals = await self._via_lookup(token, self.lookup_code)
        else:
            name, symbol, decimals = await self._via_getters(token)
        return Token(address=token, name=name, symbol=symbol, decimals=decimals)

    async def _via_lookup(self, token: Address, code: bytes) -> tuple[str, str, int]:
        out = await self.rpc.eth_call(
            self.lookup_address,
            token_info_calldata(token),
            sender=self.sender,
            state_override={self.lookup_address: code},
        )
        return decode_token_info(out)

    async def _via_getters(self, token: Address) -> tuple[str, str, int]:
        name = decode_string_or_bytes32(await self.rpc.eth_call(token, NAME_SELECTOR, sender=self.sender))
        symbol = decode_string_or_bytes32(await self.rpc.eth_call(token, SYMBOL_SELECTOR, sender=self.sender))
        decimals = decode_uint(await self.rpc.eth_call(token, DECIMALS_SELECTOR, sender=self.sender))
        if decimals > 255:
            raise ValueError(f"decimals out of uint8 range: {decimals}")
        return name, symbol, decimals


async def load_pool_tokens(
    resolver: TokenInfoResolver,
    touched: Mapping[Address, TouchedPool],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    diagnostics: Diagnostics | None = None,
) -> dict[Address, PoolToken]:
    """
    Resolve both sides of every pool. One unit per (pool, side); the same token
    address is looked up once and shared. Result is keyed by token address
    (last write wins). Pool descriptors are left untouched.
    """
    diag = diagnostics if diagnostics is not None else Diagnostics()
    sem = asyncio.Semaphore(concurrency)
    inflight: dict[Address, asyncio.Task[Token]] = {}
    pools_tokens: dict[Address, PoolToken] = {}
    logger.info("resolving token metadata via %s", resolver.mode)

    async def bounded_resolve(token: Address) -> Token:
        async with sem:
            return await resolver.resolve(token)

    def lookup(token: Address) -> asyncio.Task[Token]:
        task = inflight.get(token)
        if task is None:
            task = inflight[token] = asyncio.create_task(bounded_resolve(token))
        return task

    async def run_unit(tp: TouchedPool, side: str, token_address: Address) -> None:
        key = f"{tp.pool.address}:{side}"
        try:
            token = await lookup(token_address)
        except Exception as e:
            await diag.dropped("tokens", key, e)
            return
        pools_tokens[token.address] = PoolToken(pool_address=tp.pool.address, token=token)
        await diag.ok("tokens", key)

    units = []
    for tp in touched.values():
        units.append(run_unit(tp, "a", tp.pool.token_a))
        units.append(run_unit(tp, "b", tp.pool.token_b))
    await asyncio.gather(*units)
    logger.info("resolved %d tokens across %d pools", len(pools_tokens), len(touched))
    return pools_tokens


async def get_pool_reserves(rpc: RPCClient, pool: Address, block: BlockTag = "latest") -> PoolReserves:
    reserve_a, reserve_b = decode_reserves(await rpc.eth_call(pool, GETRESERVES_SELECTOR, block=block))
    return PoolReserves(pool_address=pool, reserve_a=reserve_a, reserve_b=reserve_b)


async def load_pool_reserves(
    rpc: RPCClient,
    touched: Mapping[Address, TouchedPool],
    *,
    reserve_block: ReserveBlock = "latest",
    concurrency: int = DEFAULT_CONCURRENCY,
    diagnostics: Diagnostics | None = None,
) -> dict[Address, PoolReserves]:
    """getReserves() per pool, at the chain head by default. Failed pools are simply absent."""
    diag = diagnostics if diagnostics is not None else Diagnostics()
    sem = asyncio.Semaphore(concurrency)
    reserves: dict[Address, PoolReserves] = {}

    async def run_pool(tp: TouchedPool) -> None:
        address = tp.pool.address
        block: BlockTag = tp.action_block if reserve_block == "action" else "latest"
        try:
            async with sem:
                res = await get_pool_reserves(rpc, address, block)
        except Exception as e:
            await diag.dropped("reserves", address, e)
            return
        reserves[address] = res
        await diag.ok("reserves", address)

    await asyncio.gather(*(asyncio.create_task(run_pool(tp)) for tp in touched.values()))
    logger.info("loaded reserves for %d/%d pools", len(reserves), len(touched))
    return reserves


MAX_BALANCE = 2**128 - 1


def _balance(raw: bytes, token: Address) -> int:
    value = decode_uint(raw)
    if value > MAX_BALANCE:
        raise ValueError(f"balanceOf on {token} exceeds uint128: {value}")
    return value


async def get_pool_token_balances(rpc: RPCClient, tp: TouchedPool) -> PoolTokenBalances:
    pool = tp.pool
    data = balance_of_calldata(pool.address)
    raw_a = await rpc.eth_call(pool.token_a, data, block=tp.action_block)
    raw_b = await rpc.eth_call(pool.token_b, data, block=tp.action_block)
    return PoolTokenBalances(
        pool_address=pool.address,
        token_a_balance=_balance(raw_a, pool.token_a),
        token_b_balance=_balance(raw_b, pool.token_b),
    )


async def load_pool_balances(
    rpc: RPCClient,
    touched: Mapping[Address, TouchedPool],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    diagnostics: Diagnostics | None = None,
) -> dict[Address, PoolTokenBalances]:
    """balanceOf(pool) for both tokens at the pool's action block. Either side failing drops the pool."""
    diag = diagnostics if diagnostics is not None else Diagnostics()
    sem = asyncio.Semaphore(concurrency)
    balances: dict[Address, PoolTokenBalances] = {}

    async def run_pool(tp: TouchedPool) -> None:
        address = tp.pool.address
        try:
            async with sem:
                bal = await get_pool_token_balances(rpc, tp)
        except Exception as e:
            await diag.dropped("balances", address, e)
            return
        balances[address] = bal
        await diag.ok("balances", address)

    await asyncio.gather(*(asyncio.create_task(run_pool(tp)) for tp in touched.values()))
    logger.info("loaded balances for %d/%d pools", len(balances), len(touched))
    return balances
