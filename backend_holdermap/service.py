"""
HolderMap service: cached snapshots, cached high-volume board, live subscriptions.

One instance per process (or per test). Owns its caches and live hub; nothing
is kept in module globals.
"""

from __future__ import annotations

import time
from typing import Callable

from backend_holdermap.analytics.models import HighVolumeBoard, TokenSnapshot
from backend_holdermap.analytics.snapshot import SnapshotOptions, build_snapshot
from backend_holdermap.analytics.volume_board import (
    build_high_volume_board,
    normalize_board_options,
    program_sources,
)
from backend_holdermap.cache.result_cache import ResultCache
from backend_holdermap.config.settings import Settings, get_settings
from backend_holdermap.core.addresses import require_address
from backend_holdermap.holdermap_logging import get_logger, short_address
from backend_holdermap.ledger.port import LedgerPort
from backend_holdermap.live.controller import ErrorCallback, LiveOptions, LiveSnapshotHub, SnapshotCallback

logger = get_logger(__name__)


class HolderMapService:
    def __init__(
        self,
        ledger: LedgerPort,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ledger = ledger
        self.settings = settings or get_settings()
        self._snapshots: ResultCache[TokenSnapshot] = ResultCache(self.settings.snapshot_ttl_sec, clock=clock)
        self._boards: ResultCache[HighVolumeBoard] = ResultCache(self.settings.board_ttl_sec, clock=clock)
        self.live = LiveSnapshotHub(ledger, settings=self.settings, build=self._build_live, clock=clock)

    async def snapshot(
        self,
        mint: str,
        options: SnapshotOptions | None = None,
        force_refresh: bool = False,
    ) -> TokenSnapshot:
        """Holder graph for a mint, served from cache within the snapshot TTL."""
        mint = require_address(mint)
        opts = (options or SnapshotOptions()).resolve(self.settings)
        key = opts.cache_key(mint)

        async def _compute() -> TokenSnapshot:
            logger.debug("snapshot_cache_miss", mint=short_address(mint), force_refresh=force_refresh)
            return await build_snapshot(self.ledger, mint, opts, settings=self.settings)

        return await self._snapshots.get_or_compute(key, _compute, force_refresh=force_refresh)

    async def _build_live(self, mint: str, options: SnapshotOptions) -> TokenSnapshot:
        # Live refreshes always rebuild but keep the snapshot cache warm.
        snapshot_opts = SnapshotOptions(
            holder_limit=options.holder_limit,
            edge_wallet_limit=options.edge_wallet_limit,
            tx_limit=options.tx_limit,
            max_signatures=options.max_signatures,
        )
        return await self.snapshot(mint, snapshot_opts, force_refresh=True)

    async def high_volume_board(
        self,
        limit: int | None = None,
        per_program_limit: int | None = None,
        min_total_gor: float | None = None,
        force_refresh: bool = False,
    ) -> HighVolumeBoard:
        options = normalize_board_options(
            self.settings,
            limit=limit,
            per_program_limit=per_program_limit,
            min_total_gor=min_total_gor,
        )

        async def _compute() -> HighVolumeBoard:
            return await build_high_volume_board(
                self.ledger,
                program_sources(self.settings.source_programs),
                options,
                signature_batch_size=self.settings.signature_batch_size,
                transaction_chunk_size=self.settings.transaction_chunk_size,
            )

        return await self._boards.get_or_compute(options.cache_key(), _compute, force_refresh=force_refresh)

    def subscribe(
        self,
        mint: str,
        options: LiveOptions | None,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Callable[[], None]:
        return self.live.subscribe(mint, options, on_snapshot, on_error)

    async def close(self) -> None:
        await self.live.close()
