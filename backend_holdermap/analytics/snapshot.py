"""
Snapshot assembly: mint metadata -> ranked holders -> transfer edges.

Only the mint metadata and holder balance fetches are single-source: if either
fails the snapshot fails (UpstreamError). Signature and transaction fetches
for the edge pass are best-effort; failures only thin out the edge set.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, fields, replace

from backend_holdermap.analytics.holders import rank_holders
from backend_holdermap.analytics.models import TokenSnapshot
from backend_holdermap.analytics.transfer_graph import build_transfer_edges
from backend_holdermap.config.settings import Settings, get_settings
from backend_holdermap.core.addresses import require_address
from backend_holdermap.core.exceptions import RpcError, UpstreamError
from backend_holdermap.holdermap_logging import get_logger, short_address
from backend_holdermap.ledger.fanout import collect_recent_signatures, fetch_parsed_transactions
from backend_holdermap.ledger.port import LedgerPort

logger = get_logger(__name__)


@dataclass(frozen=True)
class SnapshotOptions:
    """Per-request limits; None fields fall back to Settings."""

    holder_limit: int | None = None
    edge_wallet_limit: int | None = None
    tx_limit: int | None = None
    max_signatures: int | None = None

    def resolve(self, settings: Settings) -> "SnapshotOptions":
        return replace(
            self,
            holder_limit=self.holder_limit if self.holder_limit is not None else settings.holder_limit,
            edge_wallet_limit=(
                self.edge_wallet_limit if self.edge_wallet_limit is not None else settings.edge_wallet_limit
            ),
            tx_limit=self.tx_limit if self.tx_limit is not None else settings.tx_limit,
            max_signatures=self.max_signatures if self.max_signatures is not None else settings.max_signatures,
        )

    def key_parts(self) -> list[str]:
        return [str(getattr(self, f.name)) for f in fields(self)]

    def cache_key(self, mint: str) -> str:
        """Every field that changes the result is part of the key."""
        return ":".join([mint, *self.key_parts()])


def now_ms() -> int:
    return int(time.time() * 1000)


async def build_snapshot(
    ledger: LedgerPort,
    mint: str,
    options: SnapshotOptions | None = None,
    *,
    settings: Settings | None = None,
) -> TokenSnapshot:
    """
    Build the holder graph for one mint.

    Raises InputError for a malformed mint and UpstreamError when mint metadata
    or holder balances cannot be fetched.
    """
    settings = settings or get_settings()
    opts = (options or SnapshotOptions()).resolve(settings)
    mint = require_address(mint)

    try:
        metadata = await ledger.get_mint_metadata(mint)
    except RpcError as e:
        logger.warning("snapshot_mint_metadata_failed", mint=short_address(mint), error=str(e))
        raise UpstreamError(f"Failed to fetch mint metadata: {e.message}") from e

    try:
        balances = await ledger.get_holder_balances(mint, metadata.program_kind)
    except RpcError as e:
        logger.warning("snapshot_holder_balances_failed", mint=short_address(mint), error=str(e))
        raise UpstreamError(f"Failed to fetch holder balances: {e.message}") from e

    nodes = rank_holders(
        balances,
        decimals=metadata.decimals,
        supply=metadata.supply,
        limit=opts.holder_limit,
    )

    edge_wallets = [node.address for node in nodes[: opts.edge_wallet_limit]]
    signatures = await collect_recent_signatures(
        ledger,
        edge_wallets,
        opts.tx_limit,
        opts.max_signatures,
        batch_size=settings.signature_batch_size,
    )
    report = await fetch_parsed_transactions(
        ledger, signatures, chunk_size=settings.transaction_chunk_size
    )
    edges = build_transfer_edges(
        report.transactions,
        target_mint=mint,
        included_wallets={node.address for node in nodes},
        decimals=metadata.decimals,
    )

    snapshot = TokenSnapshot(
        mint=mint,
        token_program=metadata.program_kind,
        token_name=metadata.token_name,
        token_symbol=metadata.token_symbol,
        token_uri=metadata.token_uri,
        supply=metadata.supply,
        decimals=metadata.decimals,
        nodes=tuple(nodes),
        edges=tuple(edges),
        timestamp=now_ms(),
    )
    logger.info(
        "snapshot_built",
        mint=short_address(mint),
        holders=len(balances),
        nodes=len(nodes),
        edges=len(edges),
        signatures=len(signatures),
        transactions=len(report.transactions),
        failed_chunks=report.failed_chunks,
    )
    return snapshot
