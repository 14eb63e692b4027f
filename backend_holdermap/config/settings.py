"""
Application settings and environment configuration.

Responsibilities:
- Load configuration from environment variables and the .env file.
- Clamp numeric limits into their supported ranges; fall back to defaults on bad input.
- Expose typed settings (RPC URL, snapshot limits, live polling cadence,
  board thresholds, tracked launch programs) for the whole package.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

from backend_holdermap.config.env import get_rpc_url, load_holdermap_env
from backend_holdermap.core.addresses import is_valid_address
from backend_holdermap.holdermap_logging import get_logger

logger = get_logger(__name__)

SOURCE_BANG_MEME = "bang.meme"
SOURCE_TRASHBIN_FUN = "trashbin.fun"

DEFAULT_BANG_PROGRAM_IDS = (
    "BANGM1VB3At4Edot22MV5NGCEENcEsdxsURM9X4iQpQf",
    "BANGS1E3rw36jue2sL1xLDp4cMxHm2Cc5bQRSAkz9BGr",
    "BANG11ZNGMexiuLDqqifVoW7mfX2BKLYLwzNPhJrAwnN",
    "6T6Ud5gQWwbcG6b7SixvukR3scT1GTqot37y3ztAG7eH",
    "6YWQdKjPb1m6VZMFCrtuSpYKqubcj7RRt22ePR3GQq2h",
)
DEFAULT_TRASHBIN_PROGRAM_IDS = (
    "BAEZRQHD9aZky1yNeXjv7yHAXXeZ2B8QHtXmy8gn5ETZ",
    "DYgGxvJD8GTYQSGFmT4RUab5TJ7W3m7Vrbg2UueNzAq8",
)

DEFAULT_MIN_TOTAL_GOR = 25_000.0
SIGNATURE_BATCH_SIZE = 8
TRANSACTION_CHUNK_SIZE = 25


def clamp(value: int, lo: int, hi: int) -> int:
    return min(hi, max(lo, value))


def _env_int(name: str, fallback: int, lo: int, hi: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        parsed = int(raw)
    except ValueError:
        parsed = fallback
    return clamp(parsed, lo, hi)


def parse_positive_float(value: str | None, fallback: float) -> float:
    """Parse a strictly positive float; anything else returns fallback."""
    if not value:
        return fallback
    try:
        parsed = float(value)
    except ValueError:
        return fallback
    if parsed != parsed or parsed <= 0 or parsed == float("inf"):
        return fallback
    return parsed


def parse_limit_param(value: str | None, fallback: int, lo: int, hi: int) -> int:
    """Clamp a caller-supplied textual limit; missing or non-integer values use fallback."""
    if not value:
        return fallback
    try:
        parsed = int(value.strip())
    except ValueError:
        return fallback
    return clamp(parsed, lo, hi)


def parse_program_list(value: str | None, defaults: tuple[str, ...]) -> tuple[str, ...]:
    """Comma-separated program ids; empty env keeps the defaults."""
    if not value:
        return defaults
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _valid_programs(tag: str, program_ids: tuple[str, ...]) -> tuple[str, ...]:
    kept: list[str] = []
    for program_id in program_ids:
        if is_valid_address(program_id):
            kept.append(program_id)
        else:
            logger.warning("settings_invalid_program_id", source=tag, program_id=program_id)
    return tuple(kept)


@dataclass(frozen=True)
class Settings:
    """Typed, clamped configuration. Build with get_settings() or directly in tests."""

    rpc_url: str = "https://rpc.gorbagana.wtf/"
    holder_limit: int = 120
    edge_wallet_limit: int = 30
    tx_limit: int = 120
    max_signatures: int = 1500
    snapshot_ttl_sec: float = 30 * 60
    live_poll_interval_sec: float = 8.0
    live_force_refresh_sec: float = 10 * 60
    board_ttl_sec: float = 6.0
    board_result_limit: int = 30
    board_per_program_limit: int = 80
    board_min_total_gor: float = DEFAULT_MIN_TOTAL_GOR
    rpc_timeout_sec: float = 30.0
    rpc_max_retries: int = 3
    signature_batch_size: int = SIGNATURE_BATCH_SIZE
    transaction_chunk_size: int = TRANSACTION_CHUNK_SIZE
    source_programs: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: {
            SOURCE_BANG_MEME: DEFAULT_BANG_PROGRAM_IDS,
            SOURCE_TRASHBIN_FUN: DEFAULT_TRASHBIN_PROGRAM_IDS,
        }
    )


def load_settings() -> Settings:
    """Read every setting from the environment (after loading .env)."""
    load_holdermap_env()
    source_programs = {
        SOURCE_BANG_MEME: _valid_programs(
            SOURCE_BANG_MEME,
            parse_program_list(os.getenv("HIGH_VOLUME_BANG_PROGRAM_IDS"), DEFAULT_BANG_PROGRAM_IDS),
        ),
        SOURCE_TRASHBIN_FUN: _valid_programs(
            SOURCE_TRASHBIN_FUN,
            parse_program_list(os.getenv("HIGH_VOLUME_TRASHBIN_PROGRAM_IDS"), DEFAULT_TRASHBIN_PROGRAM_IDS),
        ),
    }
    return Settings(
        rpc_url=get_rpc_url(),
        holder_limit=_env_int("SNAPSHOT_HOLDER_LIMIT", 120, 20, 300),
        edge_wallet_limit=_env_int("SNAPSHOT_EDGE_WALLET_LIMIT", 30, 5, 80),
        tx_limit=_env_int("SNAPSHOT_TX_LIMIT", 120, 20, 400),
        max_signatures=_env_int("SNAPSHOT_MAX_SIGNATURES", 1500, 100, 5000),
        snapshot_ttl_sec=float(_env_int("SNAPSHOT_TTL_SEC", 30 * 60, 5, 3 * 60 * 60)),
        live_poll_interval_sec=float(_env_int("LIVE_POLL_INTERVAL_SEC", 8, 2, 60)),
        live_force_refresh_sec=float(_env_int("LIVE_FORCE_REFRESH_SEC", 10 * 60, 60, 60 * 60)),
        board_ttl_sec=float(_env_int("HIGH_VOLUME_TTL_SEC", 6, 1, 600)),
        board_result_limit=_env_int("HIGH_VOLUME_RESULT_LIMIT", 30, 1, 100),
        board_per_program_limit=_env_int("HIGH_VOLUME_PER_PROGRAM_LIMIT", 80, 10, 300),
        board_min_total_gor=parse_positive_float(
            os.getenv("HIGH_VOLUME_MIN_TOTAL_GOR"), DEFAULT_MIN_TOTAL_GOR
        ),
        rpc_timeout_sec=float(_env_int("RPC_TIMEOUT_SEC", 30, 1, 120)),
        rpc_max_retries=_env_int("RPC_MAX_RETRIES", 3, 1, 10),
        source_programs=source_programs,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read once."""
    return load_settings()


def reset_settings_cache() -> None:
    """Forget memoised settings. For tests that change the environment."""
    get_settings.cache_clear()
