"""
Live snapshot refresh: one polling state per (mint, options), shared by all its subscribers.

Each tick decides whether to rebuild the snapshot:
- no snapshot yet                          -> refresh
- last refresh older than force_refresh_sec -> refresh (staleness ceiling)
- activity fingerprint changed             -> refresh
- otherwise                                -> skip

The fingerprint is the newest signature of each tracked wallet joined with
'|'; a wallet whose lookup fails contributes 'error', a wallet with no
history 'none'. It costs one getSignaturesForAddress(limit=1) per wallet
instead of a full rescan.

Ticks fire on schedule even while a slow refresh is still running; the
is_refreshing flag drops overlapping refreshes so notifications stay in order.
When the last subscriber leaves, the timer is cancelled and the state is
removed at once. A refresh already in flight finishes but has nobody to
deliver to.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable

from backend_holdermap.analytics.models import TokenSnapshot
from backend_holdermap.analytics.snapshot import SnapshotOptions, build_snapshot
from backend_holdermap.config.settings import Settings, get_settings
from backend_holdermap.core.addresses import require_address
from backend_holdermap.core.exceptions import RpcError
from backend_holdermap.holdermap_logging import get_logger, short_address
from backend_holdermap.ledger.fanout import run_in_batches
from backend_holdermap.ledger.port import LedgerPort

logger = get_logger(__name__)

FINGERPRINT_ERROR = "error"
FINGERPRINT_NONE = "none"

SnapshotCallback = Callable[[TokenSnapshot], None]
ErrorCallback = Callable[[Exception], None]
SnapshotBuilder = Callable[[str, SnapshotOptions], Awaitable[TokenSnapshot]]


@dataclass(frozen=True)
class LiveOptions(SnapshotOptions):
    poll_interval_sec: float | None = None
    force_refresh_sec: float | None = None

    def resolve(self, settings: Settings) -> "LiveOptions":
        base = super().resolve(settings)
        return replace(
            base,
            poll_interval_sec=(
                self.poll_interval_sec if self.poll_interval_sec is not None else settings.live_poll_interval_sec
            ),
            force_refresh_sec=(
                self.force_refresh_sec if self.force_refresh_sec is not None else settings.live_force_refresh_sec
            ),
        )

    def state_key(self, mint: str) -> str:
        return self.cache_key(mint)


@dataclass(eq=False)
class LiveSubscriber:
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback | None = None


@dataclass(eq=False)
class LiveState:
    key: str
    mint: str
    options: LiveOptions
    subscribers: list[LiveSubscriber] = field(default_factory=list)
    snapshot: TokenSnapshot | None = None
    activity_fingerprint: str = ""
    last_refresh_at: float = 0.0
    is_refreshing: bool = False
    stopped: bool = False
    timer: asyncio.Task | None = None
    pending: set[asyncio.Task] = field(default_factory=set)

    @property
    def tracked_wallets(self) -> list[str]:
        if self.snapshot is None:
            return []
        return self.snapshot.tracked_wallets(self.options.edge_wallet_limit or 0)


class LiveSnapshotHub:
    """
    Registry of live states. Inject one per process (or per test); nothing here is global.

    subscribe() must be called from a running event loop.
    """

    def __init__(
        self,
        ledger: LedgerPort,
        *,
        settings: Settings | None = None,
        build: SnapshotBuilder | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ledger = ledger
        self._settings = settings or get_settings()
        self._build = build or self._default_build
        self._clock = clock
        self._states: dict[str, LiveState] = {}

    async def _default_build(self, mint: str, options: SnapshotOptions) -> TokenSnapshot:
        return await build_snapshot(self._ledger, mint, options, settings=self._settings)

    def __len__(self) -> int:
        return len(self._states)

    def get_state(self, mint: str, options: LiveOptions | None = None) -> LiveState | None:
        opts = (options or LiveOptions()).resolve(self._settings)
        return self._states.get(opts.state_key(mint))

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(
        self,
        mint: str,
        options: LiveOptions | None,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Callable[[], None]:
        """
        Attach a subscriber and return its unsubscribe callable. If the state
        already holds a snapshot it is replayed to the new subscriber before
        this call returns.
        """
        mint = require_address(mint)
        opts = (options or LiveOptions()).resolve(self._settings)
        state = self._ensure_state(mint, opts)
        subscriber = LiveSubscriber(on_snapshot=on_snapshot, on_error=on_error)
        state.subscribers.append(subscriber)
        logger.debug("live_subscribed", mint=short_address(mint), subscribers=len(state.subscribers))
        if state.snapshot is not None:
            self._deliver(subscriber, state.snapshot)

        def _unsubscribe() -> None:
            if subscriber in state.subscribers:
                state.subscribers.remove(subscriber)
            if not state.subscribers:
                self._stop_state(state)

        return _unsubscribe

    def _ensure_state(self, mint: str, options: LiveOptions) -> LiveState:
        key = options.state_key(mint)
        existing = self._states.get(key)
        if existing is not None:
            return existing
        state = LiveState(key=key, mint=mint, options=options)
        self._states[key] = state
        state.timer = asyncio.get_running_loop().create_task(self._run_timer(state))
        logger.info(
            "live_state_started",
            mint=short_address(mint),
            poll_interval_sec=options.poll_interval_sec,
            force_refresh_sec=options.force_refresh_sec,
        )
        return state

    def _stop_state(self, state: LiveState) -> None:
        state.stopped = True
        if state.timer is not None:
            state.timer.cancel()
            state.timer = None
        in_flight = len(state.pending)
        for task in list(state.pending):
            task.cancel()
        if self._states.get(state.key) is state:
            del self._states[state.key]
        logger.info("live_state_stopped", mint=short_address(state.mint), in_flight=in_flight)

    async def close(self) -> None:
        """Stop every state and wait for its timer and in-flight ticks to unwind."""
        tasks = []
        for state in list(self._states.values()):
            if state.timer is not None:
                tasks.append(state.timer)
            tasks.extend(state.pending)
            self._stop_state(state)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Timer, tick, refresh
    # ------------------------------------------------------------------

    def _spawn(self, state: LiveState, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        state.pending.add(task)
        task.add_done_callback(state.pending.discard)

    async def _run_timer(self, state: LiveState) -> None:
        self._spawn(state, self._refresh(state))
        interval = float(state.options.poll_interval_sec or self._settings.live_poll_interval_sec)
        while not state.stopped:
            await asyncio.sleep(interval)
            self._spawn(state, self._tick(state))

    async def _tick(self, state: LiveState) -> None:
        if state.stopped:
            return
        if state.snapshot is None:
            await self._refresh(state)
            return
        force_after = float(state.options.force_refresh_sec or self._settings.live_force_refresh_sec)
        if self._clock() - state.last_refresh_at >= force_after:
            logger.debug("live_tick_stale", mint=short_address(state.mint))
            await self._refresh(state)
            return
        if state.is_refreshing:
            return

        fingerprint = await self.fetch_activity_fingerprint(state.tracked_wallets)
        if fingerprint != state.activity_fingerprint:
            logger.debug("live_tick_activity", mint=short_address(state.mint))
            await self._refresh(state)

    async def _refresh(self, state: LiveState) -> None:
        if state.is_refreshing or state.stopped:
            return
        state.is_refreshing = True
        try:
            snapshot = await self._build(state.mint, state.options)
            if state.stopped:
                return
            state.snapshot = snapshot
            state.last_refresh_at = self._clock()
            state.activity_fingerprint = await self.fetch_activity_fingerprint(state.tracked_wallets)
            if state.stopped:
                return
            for subscriber in list(state.subscribers):
                self._deliver(subscriber, snapshot)
        except Exception as e:
            # Last-known-good snapshot stays in place for late subscribers.
            logger.warning(
                "live_refresh_failed",
                mint=short_address(state.mint),
                error=str(e),
                error_type=type(e).__name__,
            )
            for subscriber in list(state.subscribers):
                self._deliver_error(subscriber, e)
        finally:
            state.is_refreshing = False

    async def fetch_activity_fingerprint(self, wallets: list[str]) -> str:
        if not wallets:
            return ""

        async def _latest(wallet: str) -> str:
            try:
                infos = await self._ledger.get_recent_signatures(wallet, 1)
            except RpcError:
                return FINGERPRINT_ERROR
            return infos[0].signature if infos else FINGERPRINT_NONE

        tokens = await run_in_batches(wallets, self._settings.signature_batch_size, _latest)
        return "|".join(tokens)

    @staticmethod
    def _deliver(subscriber: LiveSubscriber, snapshot: TokenSnapshot) -> None:
        try:
            subscriber.on_snapshot(snapshot)
        except Exception as e:
            logger.exception("live_subscriber_failed", error=str(e))

    @staticmethod
    def _deliver_error(subscriber: LiveSubscriber, error: Exception) -> None:
        if subscriber.on_error is None:
            return
        try:
            subscriber.on_error(error)
        except Exception as e:
            logger.exception("live_subscriber_failed", error=str(e))
