"""
Live snapshot updates.

Polls the ledger per (mint, options), rebuilds a snapshot only when it is
missing, stale, or the tracked wallets show new activity, and pushes results
to subscribers.
"""

from backend_holdermap.live.controller import LiveOptions, LiveSnapshotHub, LiveState

__all__ = ["LiveOptions", "LiveSnapshotHub", "LiveState"]
