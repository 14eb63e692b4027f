"""
Transfer graph: directed owner-to-owner edges for one mint between included wallets.

Token transfers move balances between token accounts, not wallets. Each
transaction's pre/post token-balance records tell us which owner and mint sit
behind a token account, so a `transfer*` instruction's source and destination
accounts resolve to owner wallets. Contributions are summed per ordered
(from, to) pair.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Collection, Iterable

from backend_holdermap.analytics.models import TransferEdge
from backend_holdermap.core.amounts import to_ui_amount
from backend_holdermap.ledger.models import ParsedTransaction


@dataclass(frozen=True)
class TransferEvent:
    signature: str
    from_owner: str
    to_owner: str
    amount_raw: int


@dataclass
class _AccountInfo:
    mint: str | None = None
    owner: str | None = None


def token_account_index(tx: ParsedTransaction) -> dict[str, _AccountInfo]:
    """Token account address -> (mint, owner) from pre then post balance records; later non-empty values win."""
    accounts: dict[str, _AccountInfo] = {}
    for balance in [*tx.pre_token_balances, *tx.post_token_balances]:
        address = tx.account_key(balance.account_index)
        if not address:
            continue
        existing = accounts.get(address) or _AccountInfo()
        accounts[address] = _AccountInfo(
            mint=balance.mint or existing.mint,
            owner=balance.owner or existing.owner,
        )
    return accounts


def extract_transfer_events(tx: ParsedTransaction, target_mint: str) -> list[TransferEvent]:
    """
    Owner-level transfers of target_mint in one transaction.

    Skipped: non-transfer instructions, missing source/destination, amounts <= 0,
    other mints, token accounts with unknown owners, and self-transfers.
    """
    accounts = token_account_index(tx)
    events: list[TransferEvent] = []
    for ix in tx.all_instructions():
        if not ix.type_name.lower().startswith("transfer"):
            continue
        source, destination = ix.source, ix.destination
        if not source or not destination:
            continue
        amount_raw = ix.amount_raw
        if amount_raw is None or amount_raw <= 0:
            continue

        source_info = accounts.get(source)
        destination_info = accounts.get(destination)
        transfer_mint = (
            ix.mint
            or (source_info.mint if source_info else None)
            or (destination_info.mint if destination_info else None)
        )
        if transfer_mint != target_mint:
            continue

        from_owner = source_info.owner if source_info else None
        to_owner = destination_info.owner if destination_info else None
        if not from_owner or not to_owner or from_owner == to_owner:
            continue
        events.append(
            TransferEvent(signature=tx.signature, from_owner=from_owner, to_owner=to_owner, amount_raw=amount_raw)
        )
    return events


def aggregate_edges(
    events: Iterable[TransferEvent],
    included_wallets: Collection[str],
    *,
    decimals: int,
) -> list[TransferEdge]:
    """
    Sum events per ordered (from, to) pair, keeping only pairs whose endpoints
    are both included. Sorted by amount descending, then tx count descending.
    """
    totals: dict[tuple[str, str], list[int]] = {}
    for event in events:
        if event.from_owner not in included_wallets or event.to_owner not in included_wallets:
            continue
        slot = totals.setdefault((event.from_owner, event.to_owner), [0, 0])
        slot[0] += event.amount_raw
        slot[1] += 1

    edges = [
        TransferEdge(from_=src, to=dst, amount_sum=to_ui_amount(raw, decimals), tx_count=count)
        for (src, dst), (raw, count) in totals.items()
    ]
    edges.sort(key=lambda e: (e.amount_sum, e.tx_count), reverse=True)
    return edges


def build_transfer_edges(
    transactions: Iterable[ParsedTransaction],
    *,
    target_mint: str,
    included_wallets: Collection[str],
    decimals: int,
) -> list[TransferEdge]:
    """Pure function of its inputs. A signature that appears twice is counted once."""
    events: list[TransferEvent] = []
    seen: set[str] = set()
    for tx in transactions:
        if tx.signature in seen:
            continue
        seen.add(tx.signature)
        events.extend(extract_transfer_events(tx, target_mint))
    return aggregate_edges(events, set(included_wallets), decimals=decimals)
