"""
Fan-out / fan-in over the Ledger Access Port.

Independent per-wallet (or per-program) fetches run in bounded concurrent
batches; transaction details are fetched in fixed-size chunks, one chunk at a
time. A failed unit (one wallet's signature list, one chunk) contributes
nothing and never aborts its siblings.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Sequence, TypeVar

from backend_holdermap.config.settings import SIGNATURE_BATCH_SIZE, TRANSACTION_CHUNK_SIZE
from backend_holdermap.core.exceptions import RpcError
from backend_holdermap.holdermap_logging import get_logger, short_address
from backend_holdermap.ledger.models import ParsedTransaction, SignatureInfo
from backend_holdermap.ledger.port import LedgerPort

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def run_in_batches(
    items: Sequence[T],
    batch_size: int,
    worker: Callable[[T], Awaitable[R]],
) -> list[R]:
    """Run worker over items, batch_size at a time; batches are sequential, items within a batch concurrent."""
    if batch_size < 1:
        raise ValueError("batch_size must be positive")
    results: list[R] = []
    for i in range(0, len(items), batch_size):
        chunk = items[i : i + batch_size]
        results.extend(await asyncio.gather(*(worker(item) for item in chunk)))
    return results


async def fetch_signatures_safe(
    ledger: LedgerPort, address: str, limit: int
) -> list[SignatureInfo] | None:
    """Signature list for one address, or None when the fetch failed (logged, not raised)."""
    try:
        return await ledger.get_recent_signatures(address, limit)
    except RpcError as e:
        logger.warning(
            "signatures_fetch_failed",
            wallet_id=short_address(address),
            error=str(e),
        )
        return None


async def collect_recent_signatures(
    ledger: LedgerPort,
    wallets: Sequence[str],
    per_wallet_limit: int,
    max_signatures: int,
    *,
    batch_size: int = SIGNATURE_BATCH_SIZE,
) -> list[str]:
    """
    Union of recent signatures across wallets, deduplicated, most recent first.

    A signature seen from several wallets keeps its latest block time; a missing
    block time sorts as 0. Ties keep first-seen order. Capped at max_signatures.
    """
    latest: dict[str, int] = {}

    async def _one(wallet: str) -> None:
        infos = await fetch_signatures_safe(ledger, wallet, per_wallet_limit)
        for info in infos or []:
            block_time = info.block_time or 0
            previous = latest.get(info.signature)
            if previous is None or block_time > previous:
                latest[info.signature] = block_time

    await run_in_batches(list(wallets), batch_size, _one)
    ordered = sorted(latest.items(), key=lambda item: item[1], reverse=True)
    return [sig for sig, _ in ordered[:max_signatures]]


@dataclass
class FetchReport:
    """Parsed transactions that could be retrieved, plus how many chunks failed outright."""

    transactions: list[ParsedTransaction] = field(default_factory=list)
    failed_chunks: int = 0


async def fetch_parsed_transactions(
    ledger: LedgerPort,
    signatures: Sequence[str],
    *,
    chunk_size: int = TRANSACTION_CHUNK_SIZE,
) -> FetchReport:
    """Fetch details chunk by chunk; a rejected chunk is skipped, None entries are dropped."""
    report = FetchReport()
    for index, start in enumerate(range(0, len(signatures), chunk_size)):
        chunk = list(signatures[start : start + chunk_size])
        try:
            parsed_chunk = await ledger.get_parsed_transactions(chunk)
        except RpcError as e:
            report.failed_chunks += 1
            logger.warning(
                "transactions_chunk_failed",
                chunk_index=index,
                chunk_size=len(chunk),
                error=str(e),
            )
            continue
        report.transactions.extend(tx for tx in parsed_chunk if tx is not None)
    return report
