from __future__ import annotations
from dataclasses import dataclass
from typing import Any
from .value_types import Address, Stage, Status

@dataclass(slots=True, frozen=True)
class BlockRange:
    start: int
    end: int
    def span(self) -> int: return self.end - self.start + 1

@dataclass(slots=True, frozen=True)
class SwapLog:
    address: Address
    block_number: int
    tx_hash: str
    log_index: int

@dataclass(slots=True, frozen=True)
class PoolDescriptor:
    address: Address
    token_a: Address
    token_b: Address
    reserve_a: int = 0      # 0 until reserves are merged in
    reserve_b: int = 0

@dataclass(slots=True, frozen=True)
class TouchedPool:
    pool: PoolDescriptor
    action_block: int

@dataclass(slots=True, frozen=True)
class Token:
    address: Address
    name: str
    symbol: str
    decimals: int

@dataclass(slots=True, frozen=True)
class PoolToken:
    pool_address: Address
    token: Token

@dataclass(slots=True, frozen=True)
class PoolReserves:
    pool_address: Address
    reserve_a: int
    reserve_b: int

@dataclass(slots=True, frozen=True)
class PoolTokenBalances:
    pool_address: Address
    token_a_balance: int
    token_b_balance: int

@dataclass(slots=True, frozen=True)
class UnitStatus:
    stage: Stage
    key: str
    status: Status = "ok"
    reason: str | None = None
    updated_at: float = 0.0

@dataclass(slots=True, frozen=True)
class ReconciliationRecord:
    pair_address: Address
    token0_address: Address
    token1_address: Address
    token0_symbol: str
    token1_symbol: str
    token0_reserve_from_pool: int
    token1_reserve_from_pool: int
    token0_reserve_from_balance: int
    token1_reserve_from_balance: int
    block_num: int
    strange_reserves: bool

    def to_json(self) -> dict[str, Any]:
        return {
            "pairAddress": self.pair_address,
            "token0Address": self.token0_address,
            "token1Address": self.token1_address,
            "token0Symbol": self.token0_symbol,
            "token1Symbol": self.token1_symbol,
            "token0ReserveFromPool": self.token0_reserve_from_pool,
            "token1ReserveFromPool": self.token1_reserve_from_pool,
            "token0ReserveFromBalance": self.token0_reserve_from_balance,
            "token1ReserveFromBalance": self.token1_reserve_from_balance,
            "blockNum": self.block_num,
            "strangeReserves": self.strange_reserves,
        }
