"""
Backend HolderMap: holder-concentration graph and high-volume wallet board.

Ingests public ledger activity for a token and derives two views: a weighted
transfer graph between the top holders of a mint and a ranked board of
wallets inferred to trade heavily on the tracked launch programs. A live
refresh controller keeps snapshots current without re-scanning the chain
when nothing has changed.
"""

__version__ = "0.1.0"
