"""
Raw ledger integer amounts to UI decimal amounts.

Raw amounts are arbitrary-precision ints. The whole part is produced by
integer division so it never loses precision; only the fractional remainder
goes through float division.
"""

from __future__ import annotations

import math

LAMPORTS_PER_GOR = 1_000_000_000


def to_ui_amount(amount_raw: int, decimals: int) -> float:
    """Unsigned conversion used for balances and transfer sums."""
    if decimals <= 0:
        return float(amount_raw)
    divisor = 10**decimals
    whole, fractional = divmod(amount_raw, divisor)
    return whole + fractional / divisor


def raw_to_ui(value: int, decimals: int) -> float:
    """Signed conversion used for balance deltas; sign applied after converting the magnitude."""
    if value == 0:
        return 0.0
    amount = to_ui_amount(abs(value), max(0, decimals))
    return -amount if value < 0 else amount


def lamports_to_gor(lamports: int) -> float:
    return raw_to_ui(lamports, 9)


def to_pct_supply(balance: float, supply: float) -> float:
    """Share of supply in percent; 0 when supply is non-positive or either side is not finite."""
    if not math.isfinite(balance) or not math.isfinite(supply) or supply <= 0:
        return 0.0
    return balance / supply * 100
