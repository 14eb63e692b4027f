"""
Aggregation engine.

Holder ranking and transfer-graph construction for token snapshots; heuristic
trade classification and volume ranking for the high-volume board.
"""

from backend_holdermap.analytics.models import (
    BoardEntry,
    HighVolumeBoard,
    HolderNode,
    TokenSnapshot,
    TransferEdge,
)
from backend_holdermap.analytics.snapshot import SnapshotOptions, build_snapshot
from backend_holdermap.analytics.volume_board import (
    BoardOptions,
    build_high_volume_board,
    normalize_board_options,
    program_sources,
)

__all__ = [
    "BoardEntry",
    "BoardOptions",
    "HighVolumeBoard",
    "HolderNode",
    "SnapshotOptions",
    "TokenSnapshot",
    "TransferEdge",
    "build_high_volume_board",
    "build_snapshot",
    "normalize_board_options",
    "program_sources",
]
