from __future__ import annotations
from dataclasses import replace
from typing import Mapping

from ..domain.models import PoolReserves, PoolToken, PoolTokenBalances, ReconciliationRecord, TouchedPool
from ..domain.value_types import Address


def merge_reserves(
    touched: Mapping[Address, TouchedPool],
    reserves: Mapping[Address, PoolReserves],
) -> dict[Address, TouchedPool]:
    """Fold fetched reserves into the descriptors; pools without an entry keep 0/0."""
    out: dict[Address, TouchedPool] = {}
    for address, tp in touched.items():
        res = reserves.get(address)
        if res is None:
            out[address] = tp
            continue
        pool = replace(tp.pool, reserve_a=res.reserve_a, reserve_b=res.reserve_b)
        out[address] = replace(tp, pool=pool)
    return out


def _symbol(tokens: Mapping[Address, PoolToken], address: Address) -> str:
    pt = tokens.get(address)
    return pt.token.symbol if pt is not None else ""


def reconcile_pools(
    touched: Mapping[Address, TouchedPool],
    balances: Mapping[Address, PoolTokenBalances],
    tokens: Mapping[Address, PoolToken],
) -> list[ReconciliationRecord]:
    """
    One record per touched pool that has balances; others are skipped.
    strange_reserves is an exact tuple comparison of reserves vs balances.
    Records come back sorted by pair address.
    """
    out: list[ReconciliationRecord] = []
    for address in sorted(touched, key=str.lower):
        bal = balances.get(address)
        if bal is None:
            continue
        tp = touched[address]
        pool = tp.pool
        from_pool = (pool.reserve_a, pool.reserve_b)
        from_balance = (bal.token_a_balance, bal.token_b_balance)
        out.append(ReconciliationRecord(
            pair_address=address,
            token0_address=pool.token_a,
            token1_address=pool.token_b,
            token0_symbol=_symbol(tokens, pool.token_a),
            token1_symbol=_symbol(tokens, pool.token_b),
            token0_reserve_from_pool=from_pool[0],
            token1_reserve_from_pool=from_pool[1],
            token0_reserve_from_balance=from_balance[0],
            token1_reserve_from_balance=from_balance[1],
            block_num=tp.action_block,
            strange_reserves=from_pool != from_balance,
        ))
    return out
