"""
Environment variable loading for HolderMap.

- GORBAGANA_RPC_URL: RPC endpoint of the ledger (preferred)
- SOLANA_RPC_URL: fallback RPC endpoint (any Solana-compatible cluster)
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_holdermap/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_RPC_URL = "https://rpc.gorbagana.wtf/"


def load_holdermap_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides set variables."""
    load_dotenv(_ENV_PATH, override=False)


def get_rpc_url() -> str:
    """
    Resolve the ledger RPC URL from env.
    Order: GORBAGANA_RPC_URL > SOLANA_RPC_URL > public Gorbagana endpoint.
    """
    load_holdermap_env()
    for name in ("GORBAGANA_RPC_URL", "SOLANA_RPC_URL"):
        url = (os.getenv(name) or "").strip()
        if url:
            return url
    return DEFAULT_RPC_URL


def masked_rpc_url(url: str) -> str:
    """Hide api keys in an RPC URL before it goes to a log line."""
    if "api-key=" in url:
        return url.split("api-key=")[0] + "api-key=***"
    return url
