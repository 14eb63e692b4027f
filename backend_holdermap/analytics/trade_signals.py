"""
Trade signal classification from co-occurring balance deltas.

No program-specific event log is decoded here. Instead, for every owner
touched by a transaction we look at how their holdings moved:

    token up   + quote down  -> buy
    token down + quote up    -> sell
    anything else            -> not a trade (airdrop, fee-only, LP moves, ...)

The quote leg is the owner's wrapped-native (wGOR) delta when one exists in
the transaction, otherwise the native lamport delta of the owner's account.
When one owner moved several tokens against a single quote delta, the quote
volume is split across them in proportion to each token's absolute delta.

This is a heuristic proxy for trading activity and is approximate by design:
the proportional split mixes token units of different mints, and native
deltas include fees. Decoding launch-program events per venue is the
extension point for exact attribution.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Collection, MutableMapping

from backend_holdermap.analytics.models import OwnerAssetDelta, WalletVolume
from backend_holdermap.core.amounts import LAMPORTS_PER_GOR, raw_to_ui
from backend_holdermap.ledger.models import WRAPPED_NATIVE_MINT, ParsedTransaction

# (source tag, owner) -> running volume
VolumeAccumulator = MutableMapping[tuple[str, str], WalletVolume]

SIDE_BUY = "buy"
SIDE_SELL = "sell"


@dataclass(frozen=True)
class TradeCandidate:
    """One non-quote asset delta of an owner that resolved to a consistent direction."""

    mint: str
    side: str
    token_abs: float


@dataclass(frozen=True)
class TradeSignal:
    """Classified trade leg with its share of the owner's quote volume."""

    owner: str
    mint: str
    side: str
    volume: float


@dataclass
class _AccountState:
    owner: str
    mint: str
    decimals: int
    pre: int = 0
    post: int = 0


def extract_owner_asset_deltas(tx: ParsedTransaction) -> list[OwnerAssetDelta]:
    """
    Net (owner, mint) deltas across all of a transaction's token accounts.

    Token accounts are labelled from both pre and post records (an account
    created or closed in the transaction appears on one side only); an owner
    with several accounts of the same mint gets one summed delta. Zero deltas
    are dropped.
    """
    labels: dict[str, tuple[str, str, int]] = {}
    for balance in [*tx.pre_token_balances, *tx.post_token_balances]:
        address = tx.account_key(balance.account_index)
        if not address or not balance.owner or not balance.mint:
            continue
        labels[address] = (balance.owner, balance.mint, balance.decimals)

    states: dict[tuple[str, str], _AccountState] = {}

    def _state_for(account_index: int) -> _AccountState | None:
        address = tx.account_key(account_index)
        label = labels.get(address) if address else None
        if label is None:
            return None
        owner, mint, decimals = label
        state = states.get((owner, mint))
        if state is None:
            state = _AccountState(owner=owner, mint=mint, decimals=decimals)
            states[(owner, mint)] = state
        return state

    for balance in tx.pre_token_balances:
        state = _state_for(balance.account_index)
        if state is not None:
            state.pre += balance.amount_raw
    for balance in tx.post_token_balances:
        state = _state_for(balance.account_index)
        if state is not None:
            state.post += balance.amount_raw

    return [
        OwnerAssetDelta(owner=s.owner, mint=s.mint, delta_raw=s.post - s.pre, decimals=s.decimals)
        for s in states.values()
        if s.post != s.pre
    ]


def extract_native_deltas(tx: ParsedTransaction) -> dict[str, int]:
    """Nonzero lamport delta per account key (the key is the owner of its native balance)."""
    deltas: dict[str, int] = {}
    count = min(len(tx.pre_balances), len(tx.post_balances))
    for index in range(count):
        owner = tx.account_key(index)
        if not owner:
            continue
        delta = tx.post_balances[index] - tx.pre_balances[index]
        if delta != 0:
            deltas[owner] = delta
    return deltas


def quote_delta_for_owner(
    owner_deltas: list[OwnerAssetDelta],
    native_deltas: dict[str, int],
    owner: str,
) -> float:
    """wGOR delta in UI units if the owner has one in this transaction, else native lamports / 1e9."""
    for delta in owner_deltas:
        if delta.mint == WRAPPED_NATIVE_MINT:
            return raw_to_ui(delta.delta_raw, delta.decimals)
    return native_deltas.get(owner, 0) / LAMPORTS_PER_GOR


def classify_candidates(owner_deltas: list[OwnerAssetDelta], quote_delta: float) -> list[TradeCandidate]:
    """Non-quote deltas whose sign is opposite to the quote leg; everything else is discarded."""
    candidates: list[TradeCandidate] = []
    for delta in owner_deltas:
        if delta.mint == WRAPPED_NATIVE_MINT:
            continue
        token_delta = raw_to_ui(delta.delta_raw, delta.decimals)
        if token_delta > 0 and quote_delta < 0:
            side = SIDE_BUY
        elif token_delta < 0 and quote_delta > 0:
            side = SIDE_SELL
        else:
            continue
        candidates.append(TradeCandidate(mint=delta.mint, side=side, token_abs=abs(token_delta)))
    return candidates


def split_quote_volume(candidates: list[TradeCandidate], quote_abs: float) -> list[float]:
    """
    Share of quote_abs per candidate, proportional to its absolute token delta.
    Falls back to an even split if every token delta is zero.
    """
    if not candidates:
        return []
    total_token_abs = sum(c.token_abs for c in candidates)
    if total_token_abs > 0:
        return [quote_abs * (c.token_abs / total_token_abs) for c in candidates]
    return [quote_abs / len(candidates)] * len(candidates)


def classify_transaction(tx: ParsedTransaction) -> list[TradeSignal]:
    """All buy/sell legs in one transaction, grouped by owner in first-seen order."""
    deltas = extract_owner_asset_deltas(tx)
    if not deltas:
        return []
    native_deltas = extract_native_deltas(tx)

    by_owner: dict[str, list[OwnerAssetDelta]] = defaultdict(list)
    for delta in deltas:
        by_owner[delta.owner].append(delta)

    signals: list[TradeSignal] = []
    for owner, owner_deltas in by_owner.items():
        quote_delta = quote_delta_for_owner(owner_deltas, native_deltas, owner)
        if quote_delta == 0:
            continue
        candidates = classify_candidates(owner_deltas, quote_delta)
        shares = split_quote_volume(candidates, abs(quote_delta))
        for candidate, share in zip(candidates, shares):
            signals.append(TradeSignal(owner=owner, mint=candidate.mint, side=candidate.side, volume=share))
    return signals


def collect_trade_signals(
    tx: ParsedTransaction,
    sources: Collection[str],
    accumulator: VolumeAccumulator,
) -> int:
    """
    Classify one transaction and fold the result into the (source, owner)
    accumulator for every source tag the transaction carries.

    Trade counts are per distinct signature, not per asset: an owner buying two
    tokens in one transaction counts one buy. Returns the number of legs found.
    """
    if not sources:
        return 0
    signals = classify_transaction(tx)
    if not signals:
        return 0

    by_owner: dict[str, list[TradeSignal]] = defaultdict(list)
    for signal in signals:
        by_owner[signal.owner].append(signal)

    block_time_ms = tx.block_time_ms
    for source in sources:
        for owner, owner_signals in by_owner.items():
            entry = accumulator.get((source, owner))
            if entry is None:
                entry = WalletVolume(source=source, wallet=owner)
                accumulator[(source, owner)] = entry
            for signal in owner_signals:
                entry.mints.add(signal.mint)
                if signal.side == SIDE_BUY:
                    entry.buy_volume += signal.volume
                    entry.buy_signatures.add(tx.signature)
                else:
                    entry.sell_volume += signal.volume
                    entry.sell_signatures.add(tx.signature)
            entry.touch(block_time_ms)
    return len(signals)
