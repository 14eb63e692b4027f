"""
High-volume wallet board: scan launch-program activity, classify trades, rank wallets.

Each tracked program id carries a source tag (the venue). Recent signatures of
every program are collected, each signature remembers every tag it was seen
under, transaction details are fetched in chunks, and trade signals are
accumulated per (source, wallet). Finalizing derives net/total volume,
applies the minimum-total threshold and ranks by total volume.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from backend_holdermap.analytics.models import BoardEntry, HighVolumeBoard, WalletVolume
from backend_holdermap.analytics.snapshot import now_ms
from backend_holdermap.analytics.trade_signals import VolumeAccumulator, collect_trade_signals
from backend_holdermap.config.settings import SIGNATURE_BATCH_SIZE, TRANSACTION_CHUNK_SIZE, Settings
from backend_holdermap.holdermap_logging import get_logger, short_address
from backend_holdermap.ledger.fanout import (
    fetch_parsed_transactions,
    fetch_signatures_safe,
    run_in_batches,
)
from backend_holdermap.ledger.port import LedgerPort

logger = get_logger(__name__)

MIN_PER_PROGRAM_LIMIT = 10


@dataclass(frozen=True)
class ProgramSource:
    source: str
    address: str


@dataclass(frozen=True)
class BoardOptions:
    limit: int
    per_program_limit: int
    min_total_gor: float

    def cache_key(self) -> str:
        return f"{self.limit}:{self.per_program_limit}:{self.min_total_gor:.4f}"


def normalize_board_options(
    settings: Settings,
    limit: int | None = None,
    per_program_limit: int | None = None,
    min_total_gor: float | None = None,
) -> BoardOptions:
    """Missing values come from settings; limit >= 1, per-program >= 10, negative thresholds use the default."""
    safe_limit = max(1, int(limit if limit is not None else settings.board_result_limit))
    safe_per_program = max(
        MIN_PER_PROGRAM_LIMIT,
        int(per_program_limit if per_program_limit is not None else settings.board_per_program_limit),
    )
    if min_total_gor is None or min_total_gor != min_total_gor or min_total_gor < 0:
        safe_min_total = settings.board_min_total_gor
    else:
        safe_min_total = float(min_total_gor)
    return BoardOptions(limit=safe_limit, per_program_limit=safe_per_program, min_total_gor=safe_min_total)


def program_sources(source_programs: Mapping[str, Sequence[str]]) -> list[ProgramSource]:
    return [
        ProgramSource(source=tag, address=address)
        for tag, addresses in source_programs.items()
        for address in addresses
    ]


def _ranking_key(entry: BoardEntry) -> tuple[float, int]:
    return entry.total_volume, entry.last_activity or 0


def rank_entries(
    accumulated: Iterable[WalletVolume],
    *,
    min_total_gor: float,
    limit: int,
) -> list[BoardEntry]:
    """
    Emit entries with total volume >= min_total_gor, ordered by total volume
    descending, then most recent activity first (unknown activity last).
    Total volume is the primary key; net flow is reported but never ranked on.
    """
    entries = [volume.to_entry() for volume in accumulated]
    kept = [entry for entry in entries if entry.total_volume >= min_total_gor]
    kept.sort(key=_ranking_key, reverse=True)
    return kept[: max(1, limit)]


async def collect_program_signatures(
    ledger: LedgerPort,
    programs: Sequence[ProgramSource],
    per_program_limit: int,
    *,
    batch_size: int = SIGNATURE_BATCH_SIZE,
) -> dict[str, set[str]]:
    """signature -> source tags it was seen under. Unavailable programs contribute nothing."""
    signature_sources: dict[str, set[str]] = {}

    async def _one(program: ProgramSource) -> None:
        infos = await fetch_signatures_safe(ledger, program.address, per_program_limit)
        if infos is None:
            logger.debug("board_program_skipped", source=program.source, program=short_address(program.address))
            return
        for info in infos:
            signature_sources.setdefault(info.signature, set()).add(program.source)

    await run_in_batches(list(programs), batch_size, _one)
    return signature_sources


async def build_high_volume_board(
    ledger: LedgerPort,
    programs: Sequence[ProgramSource],
    options: BoardOptions,
    *,
    signature_batch_size: int = SIGNATURE_BATCH_SIZE,
    transaction_chunk_size: int = TRANSACTION_CHUNK_SIZE,
) -> HighVolumeBoard:
    """
    Scan recent activity of every program and rank wallets by classified volume.

    Partial failures (one program's signatures, one transaction chunk) only lower
    scanned_signatures / scanned_transactions; the board is still produced.
    """
    if not programs:
        return HighVolumeBoard(
            timestamp=now_ms(),
            entries=(),
            scanned_signatures=0,
            scanned_transactions=0,
            min_total_gor=options.min_total_gor,
        )

    signature_sources = await collect_program_signatures(
        ledger, programs, options.per_program_limit, batch_size=signature_batch_size
    )
    signatures = list(signature_sources)
    report = await fetch_parsed_transactions(ledger, signatures, chunk_size=transaction_chunk_size)

    accumulator: VolumeAccumulator = {}
    legs = 0
    for tx in report.transactions:
        # Match on the transaction's own signature; batch results may come back in any order.
        sources = signature_sources.get(tx.signature)
        if not sources:
            continue
        legs += collect_trade_signals(tx, sources, accumulator)

    entries = rank_entries(accumulator.values(), min_total_gor=options.min_total_gor, limit=options.limit)
    board = HighVolumeBoard(
        timestamp=now_ms(),
        entries=tuple(entries),
        scanned_signatures=len(signatures),
        scanned_transactions=len(report.transactions),
        min_total_gor=options.min_total_gor,
    )
    logger.info(
        "board_built",
        programs=len(programs),
        scanned_signatures=board.scanned_signatures,
        scanned_transactions=board.scanned_transactions,
        failed_chunks=report.failed_chunks,
        trade_legs=legs,
        wallets=len(accumulator),
        entries=len(entries),
    )
    return board
