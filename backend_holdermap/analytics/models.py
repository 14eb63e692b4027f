"""
Output models of the aggregation engine.

Snapshot side: HolderNode, TransferEdge, TokenSnapshot.
Board side: OwnerAssetDelta (per-transaction input to classification),
BoardEntry and HighVolumeBoard (ranked output).

to_dict() emits the camelCase keys the visualization front end reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class HolderNode:
    address: str
    balance: float
    pct_supply: float

    def to_dict(self) -> dict[str, Any]:
        return {"address": self.address, "balance": self.balance, "pctSupply": self.pct_supply}


@dataclass(frozen=True)
class TransferEdge:
    """Directed owner-to-owner transfer total; from_ != to always."""

    from_: str
    to: str
    amount_sum: float
    tx_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.from_,
            "to": self.to,
            "amountSum": self.amount_sum,
            "txCount": self.tx_count,
        }


@dataclass(frozen=True)
class TokenSnapshot:
    mint: str
    token_program: str
    token_name: str | None
    token_symbol: str | None
    token_uri: str | None
    supply: float
    decimals: int
    nodes: tuple[HolderNode, ...]
    edges: tuple[TransferEdge, ...]
    timestamp: int
    """Build time, epoch milliseconds."""

    def tracked_wallets(self, limit: int) -> list[str]:
        """Top `limit` holder addresses, in rank order."""
        return [node.address for node in self.nodes[:limit]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "mint": self.mint,
            "tokenProgram": self.token_program,
            "tokenName": self.token_name,
            "tokenSymbol": self.token_symbol,
            "tokenUri": self.token_uri,
            "supply": self.supply,
            "decimals": self.decimals,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class OwnerAssetDelta:
    """Net change of one owner's holdings of one mint within a transaction; never zero."""

    owner: str
    mint: str
    delta_raw: int
    decimals: int


@dataclass
class WalletVolume:
    """
    Running (source, wallet) accumulator. Only the primary quantities are stored;
    net and total volume are derived when the entry is emitted.
    """

    source: str
    wallet: str
    buy_volume: float = 0.0
    sell_volume: float = 0.0
    last_activity: int | None = None
    mints: set[str] = field(default_factory=set)
    buy_signatures: set[str] = field(default_factory=set)
    sell_signatures: set[str] = field(default_factory=set)

    def touch(self, block_time_ms: int | None) -> None:
        """Move last_activity forward; an unknown time never clears a known one."""
        self.last_activity = max(self.last_activity or 0, block_time_ms or 0) or None

    def to_entry(self) -> "BoardEntry":
        return BoardEntry(
            source=self.source,
            wallet=self.wallet,
            buy_volume=self.buy_volume,
            sell_volume=self.sell_volume,
            buy_tx_count=len(self.buy_signatures),
            sell_tx_count=len(self.sell_signatures),
            token_count=len(self.mints),
            last_activity=self.last_activity,
        )


@dataclass(frozen=True)
class BoardEntry:
    source: str
    wallet: str
    buy_volume: float
    sell_volume: float
    buy_tx_count: int
    sell_tx_count: int
    token_count: int
    last_activity: int | None
    """Latest block time seen, epoch milliseconds; None when no transaction carried one."""

    @property
    def net_volume(self) -> float:
        return self.buy_volume - self.sell_volume

    @property
    def total_volume(self) -> float:
        return self.buy_volume + self.sell_volume

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "wallet": self.wallet,
            "buyVolume": self.buy_volume,
            "sellVolume": self.sell_volume,
            "netVolume": self.net_volume,
            "totalVolume": self.total_volume,
            "buyTxCount": self.buy_tx_count,
            "sellTxCount": self.sell_tx_count,
            "tokenCount": self.token_count,
            "lastActivity": self.last_activity,
        }


@dataclass(frozen=True)
class HighVolumeBoard:
    timestamp: int
    entries: tuple[BoardEntry, ...]
    scanned_signatures: int
    scanned_transactions: int
    min_total_gor: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "entries": [e.to_dict() for e in self.entries],
            "scannedSignatures": self.scanned_signatures,
            "scannedTransactions": self.scanned_transactions,
            "minTotalGor": self.min_total_gor,
        }
