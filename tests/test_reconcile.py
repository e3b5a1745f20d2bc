from reservecheck.application.reconcile import merge_reserves, reconcile_pools
from reservecheck.domain.models import (
    PoolDescriptor, PoolReserves, PoolToken, PoolTokenBalances, Token, TouchedPool,
)
from tests.conftest import DAI, POOL_1, POOL_2, POOL_3, USDC, WETH


def _touched(address, token_a, token_b, block, reserves=(0, 0)):
    return TouchedPool(
        pool=PoolDescriptor(address=address, token_a=token_a, token_b=token_b,
                            reserve_a=reserves[0], reserve_b=reserves[1]),
        action_block=block,
    )


def _tokens(*pairs):
    return {t: PoolToken(pool_address=p, token=Token(address=t, name=s, symbol=s, decimals=18)) for p, t, s in pairs}


def test_matching_reserves_are_not_strange():
    touched = {POOL_1: _touched(POOL_1, WETH, USDC, 10, (100, 200))}
    balances = {POOL_1: PoolTokenBalances(POOL_1, 100, 200)}
    [rec] = reconcile_pools(touched, balances, _tokens((POOL_1, WETH, "WETH"), (POOL_1, USDC, "USDC")))
    assert rec.strange_reserves is False
    assert (rec.token0_symbol, rec.token1_symbol) == ("WETH", "USDC")
    assert rec.block_num == 10


def test_any_difference_is_strange():
    touched = {POOL_1: _touched(POOL_1, WETH, USDC, 10, (100, 200))}
    balances = {POOL_1: PoolTokenBalances(POOL_1, 100, 205)}
    [rec] = reconcile_pools(touched, balances, {})
    assert rec.strange_reserves is True
    assert (rec.token0_reserve_from_balance, rec.token1_reserve_from_balance) == (100, 205)


def test_swapped_values_are_strange():
    touched = {POOL_1: _touched(POOL_1, WETH, USDC, 10, (200, 100))}
    [rec] = reconcile_pools(touched, {POOL_1: PoolTokenBalances(POOL_1, 100, 200)}, {})
    assert rec.strange_reserves is True


def test_pools_without_balances_are_skipped():
    touched = {
        POOL_1: _touched(POOL_1, WETH, USDC, 1),
        POOL_2: _touched(POOL_2, DAI, USDC, 2),
        POOL_3: _touched(POOL_3, DAI, WETH, 3),
    }
    balances = {POOL_2: PoolTokenBalances(POOL_2, 0, 0)}
    records = reconcile_pools(touched, balances, {})
    assert [r.pair_address for r in records] == [POOL_2]
    assert len(records) <= len(balances)
    assert {r.pair_address for r in records} <= set(touched)


def test_balance_for_untouched_pool_is_ignored():
    touched = {POOL_1: _touched(POOL_1, WETH, USDC, 1)}
    balances = {POOL_1: PoolTokenBalances(POOL_1, 0, 0), POOL_2: PoolTokenBalances(POOL_2, 1, 1)}
    assert [r.pair_address for r in reconcile_pools(touched, balances, {})] == [POOL_1]


def test_unresolved_token_yields_empty_symbol():
    touched = {POOL_1: _touched(POOL_1, WETH, USDC, 1)}
    [rec] = reconcile_pools(touched, {POOL_1: PoolTokenBalances(POOL_1, 0, 0)}, _tokens((POOL_1, WETH, "WETH")))
    assert rec.token0_symbol == "WETH"
    assert rec.token1_symbol == ""


def test_records_sorted_by_pair_address():
    touched = {a: _touched(a, WETH, USDC, 1) for a in (POOL_3, POOL_1, POOL_2)}
    balances = {a: PoolTokenBalances(a, 0, 0) for a in touched}
    assert [r.pair_address for r in reconcile_pools(touched, balances, {})] == [POOL_1, POOL_2, POOL_3]


def test_merge_reserves_fills_and_defaults_to_zero():
    touched = {POOL_1: _touched(POOL_1, WETH, USDC, 1), POOL_2: _touched(POOL_2, DAI, USDC, 2)}
    merged = merge_reserves(touched, {POOL_1: PoolReserves(POOL_1, 7, 9)})
    assert (merged[POOL_1].pool.reserve_a, merged[POOL_1].pool.reserve_b) == (7, 9)
    assert (merged[POOL_2].pool.reserve_a, merged[POOL_2].pool.reserve_b) == (0, 0)
    assert merged[POOL_1].pool.token_a == WETH and merged[POOL_1].action_block == 1
    # input snapshot untouched
    assert touched[POOL_1].pool.reserve_a == 0


def test_to_json_field_names():
    touched = {POOL_1: _touched(POOL_1, WETH, USDC, 42, (1, 2))}
    [rec] = reconcile_pools(touched, {POOL_1: PoolTokenBalances(POOL_1, 1, 2)}, {})
    assert rec.to_json() == {
        "pairAddress": POOL_1,
        "token0Address": WETH,
        "token1Address": USDC,
        "token0Symbol": "",
        "token1Symbol": "",
        "token0ReserveFromPool": 1,
        "token1ReserveFromPool": 2,
        "token0ReserveFromBalance": 1,
        "token1ReserveFromBalance": 2,
        "blockNum": 42,
        "strangeReserves": False,
    }
