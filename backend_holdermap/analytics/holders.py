"""
Holder aggregation: token-account balances to ranked per-owner holder nodes.

A single owner may hold several token accounts of the same mint; balances are
summed per owner before ranking. Owners whose summed balance is zero are not
holders and are dropped.
"""

from __future__ import annotations

from typing import Iterable

from backend_holdermap.analytics.models import HolderNode
from backend_holdermap.core.amounts import to_pct_supply, to_ui_amount
from backend_holdermap.ledger.models import HolderBalance


def sum_balances_by_owner(balances: Iterable[HolderBalance]) -> dict[str, int]:
    """Raw totals per owner, in first-seen order."""
    totals: dict[str, int] = {}
    for balance in balances:
        totals[balance.owner] = totals.get(balance.owner, 0) + balance.amount_raw
    return totals


def rank_holders(
    balances: Iterable[HolderBalance],
    *,
    decimals: int,
    supply: float,
    limit: int,
) -> list[HolderNode]:
    """
    Top `limit` owners by balance, descending. Ties keep first-seen order
    (sorted() is stable), so the output is a deterministic total order.
    """
    totals = sum_balances_by_owner(balances)
    ranked = sorted(
        ((owner, raw) for owner, raw in totals.items() if raw > 0),
        key=lambda item: item[1],
        reverse=True,
    )
    nodes: list[HolderNode] = []
    for owner, raw in ranked[: max(0, limit)]:
        balance = to_ui_amount(raw, decimals)
        nodes.append(HolderNode(address=owner, balance=balance, pct_supply=to_pct_supply(balance, supply)))
    return nodes
