"""
Tests for heuristic trade classification.

Buy/sell from opposite-signed token and quote deltas, wrapped-native preference
over native lamports, proportional quote split across several tokens, the
no-trade cases, and accumulation per (source, wallet) counted by signature.
"""

from __future__ import annotations

import pytest
from conftest import make_tx, token_balance

from backend_holdermap.analytics.trade_signals import (
    SIDE_BUY,
    SIDE_SELL,
    classify_transaction,
    collect_trade_signals,
    extract_owner_asset_deltas,
)
from backend_holdermap.ledger.models import WRAPPED_NATIVE_MINT

GOR = 1_000_000_000
TOKEN_A = "TokenAMint1111111111111111111111111111111111"
TOKEN_B = "TokenBMint1111111111111111111111111111111111"
TRADER = "trader-wallet"
POOL = "pool-wallet"


def _swap_tx(
    signature="sig-1",
    *,
    token_deltas: dict[str, int],
    native_delta: int = 0,
    wgor_delta: int | None = None,
    block_time: int | None = 1_700_000_000,
):
    """TRADER's token accounts move by token_deltas; native balance moves by native_delta lamports."""
    keys = [TRADER, POOL]
    pre, post = [], []
    for mint, delta in token_deltas.items():
        index = len(keys)
        keys.append(f"{TRADER}-{mint[:6]}-ata")
        start = 1_000 if delta < 0 else 0
        pre.append(token_balance(index, mint, TRADER, start))
        post.append(token_balance(index, mint, TRADER, start + delta))
    if wgor_delta is not None:
        index = len(keys)
        keys.append(f"{TRADER}-wgor-ata")
        start = 100 * GOR
        pre.append(token_balance(index, WRAPPED_NATIVE_MINT, TRADER, start, decimals=9))
        post.append(token_balance(index, WRAPPED_NATIVE_MINT, TRADER, start + wgor_delta, decimals=9))
    pre_balances = [100 * GOR, 500 * GOR] + [2_039_280] * (len(keys) - 2)
    post_balances = [100 * GOR + native_delta, 500 * GOR - native_delta] + [2_039_280] * (len(keys) - 2)
    return make_tx(
        signature,
        keys,
        pre_token=pre,
        post_token=post,
        pre_balances=pre_balances,
        post_balances=post_balances,
        block_time=block_time,
    )


def test_buy_with_native_quote():
    """Token up, lamports down is a buy."""
    signals = classify_transaction(_swap_tx(token_deltas={TOKEN_A: 10}, native_delta=-10 * GOR))
    assert len(signals) == 1
    assert signals[0].owner == TRADER
    assert signals[0].side == SIDE_BUY
    assert signals[0].volume == pytest.approx(10.0)


def test_sell_prefers_wrapped_native_over_lamports():
    """wGOR delta is the quote leg when present."""
    tx = _swap_tx(token_deltas={TOKEN_A: -5}, native_delta=-5_000, wgor_delta=3 * GOR)
    signals = classify_transaction(tx)
    assert [(s.side, s.mint) for s in signals] == [(SIDE_SELL, TOKEN_A)]
    assert signals[0].volume == pytest.approx(3.0)


def test_quote_split_proportional_to_token_deltas():
    """Quote volume splits by token delta share."""
    tx = _swap_tx(token_deltas={TOKEN_A: 60, TOKEN_B: 40}, native_delta=-10 * GOR)
    signals = {s.mint: s for s in classify_transaction(tx)}
    assert signals[TOKEN_A].volume == pytest.approx(6.0)
    assert signals[TOKEN_B].volume == pytest.approx(4.0)
    assert signals[TOKEN_A].side == signals[TOKEN_B].side == SIDE_BUY


def test_same_sign_deltas_are_not_a_trade():
    """Token and quote moving the same way is no trade."""
    assert classify_transaction(_swap_tx(token_deltas={TOKEN_A: 10}, native_delta=2 * GOR)) == []
    assert classify_transaction(_swap_tx(token_deltas={TOKEN_A: -10}, native_delta=-2 * GOR)) == []


def test_zero_quote_delta_is_not_a_trade():
    """No quote movement, no trade."""
    assert classify_transaction(_swap_tx(token_deltas={TOKEN_A: 10}, native_delta=0)) == []


def test_no_token_deltas_is_not_a_trade():
    """Quote movement alone is no trade."""
    assert classify_transaction(_swap_tx(token_deltas={}, native_delta=-GOR)) == []


def test_owner_deltas_sum_accounts_and_drop_zero():
    """Deltas are summed per owner and asset; zeros dropped."""
    tx = make_tx(
        "s",
        [TRADER, "ata-1", "ata-2", "ata-3"],
        pre_token=[
            token_balance(1, TOKEN_A, TRADER, 5),
            token_balance(2, TOKEN_A, TRADER, 5),
            token_balance(3, TOKEN_B, TRADER, 7),
        ],
        post_token=[
            token_balance(1, TOKEN_A, TRADER, 0),
            token_balance(2, TOKEN_A, TRADER, 20),
            token_balance(3, TOKEN_B, TRADER, 7),
        ],
    )
    deltas = extract_owner_asset_deltas(tx)
    assert [(d.owner, d.mint, d.delta_raw) for d in deltas] == [(TRADER, TOKEN_A, 10)]


def test_account_closed_in_transaction_counts_full_balance():
    """A pre balance with no post record counts as going to zero."""
    tx = make_tx(
        "s",
        [TRADER, "ata-1"],
        pre_token=[token_balance(1, TOKEN_A, TRADER, 40)],
        post_token=[],
    )
    deltas = extract_owner_asset_deltas(tx)
    assert [(d.mint, d.delta_raw) for d in deltas] == [(TOKEN_A, -40)]


def test_collect_counts_per_signature_not_per_asset():
    """Two tokens bought in one transaction is one buy."""
    accumulator = {}
    tx = _swap_tx("sig-multi", token_deltas={TOKEN_A: 60, TOKEN_B: 40}, native_delta=-10 * GOR)
    legs = collect_trade_signals(tx, {"bang.meme"}, accumulator)
    assert legs == 2
    entry = accumulator[("bang.meme", TRADER)].to_entry()
    assert entry.buy_tx_count == 1
    assert entry.sell_tx_count == 0
    assert entry.token_count == 2
    assert entry.buy_volume == pytest.approx(10.0)
    assert entry.net_volume == pytest.approx(10.0)
    assert entry.last_activity == 1_700_000_000_000


def test_collect_accumulates_across_transactions_and_sources():
    """Volume accumulates per source and wallet."""
    accumulator = {}
    buy = _swap_tx("sig-buy", token_deltas={TOKEN_A: 10}, native_delta=-10 * GOR, block_time=100)
    sell = _swap_tx("sig-sell", token_deltas={TOKEN_A: -4}, native_delta=4 * GOR, block_time=None)
    collect_trade_signals(buy, {"bang.meme", "trashbin.fun"}, accumulator)
    collect_trade_signals(sell, {"bang.meme"}, accumulator)

    bang = accumulator[("bang.meme", TRADER)].to_entry()
    assert bang.buy_volume == pytest.approx(10.0)
    assert bang.sell_volume == pytest.approx(4.0)
    assert bang.total_volume == pytest.approx(14.0)
    assert bang.net_volume == pytest.approx(6.0)
    assert (bang.buy_tx_count, bang.sell_tx_count, bang.token_count) == (1, 1, 1)
    # Unknown block time never clears a known one
    assert bang.last_activity == 100_000

    trash = accumulator[("trashbin.fun", TRADER)].to_entry()
    assert trash.total_volume == pytest.approx(10.0)


def test_collect_without_sources_does_nothing():
    """Untagged transactions are ignored."""
    accumulator = {}
    tx = _swap_tx(token_deltas={TOKEN_A: 10}, native_delta=-10 * GOR)
    assert collect_trade_signals(tx, set(), accumulator) == 0
    assert accumulator == {}
