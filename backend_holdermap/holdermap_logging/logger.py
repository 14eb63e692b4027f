"""
Structured logging for the holder map engine.

Every line is one structlog event: ISO timestamp, level, logger name, a
snake_case event_type and keyword context (mint, wallet counts, timings).
Lines are written to stderr; stdout belongs to command output (the CLI prints
snapshots and boards there as JSON).

LOG_LEVEL picks the threshold (default INFO). LOG_FORMAT=json (default) renders
JSON lines, anything else the structlog console renderer.

Uses only Python stdlib logging and structlog; no backend_holdermap imports to avoid circular imports.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, TextIO

import structlog
from structlog._config import BoundLoggerLazyProxy

DEFAULT_LEVEL = "INFO"
DEFAULT_FORMAT = "json"


def resolve_level(name: str | None = None) -> int:
    """Numeric level for `name` (or LOG_LEVEL); unknown names fall back to INFO."""
    raw = (name or os.getenv("LOG_LEVEL") or DEFAULT_LEVEL).strip().upper()
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else logging.INFO


def resolve_format(name: str | None = None) -> str:
    raw = (name or os.getenv("LOG_FORMAT") or DEFAULT_FORMAT).strip().lower()
    return "json" if raw == "json" else "console"


def _event_type(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Store the event name under event_type."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def configure_logging(
    level: str | None = None,
    log_format: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """
    (Re)configure structlog for the whole process.

    Runs once at import with the environment defaults. Callers may run it
    again, e.g. tests capturing output into a buffer; loggers are resolved
    lazily so the new configuration applies to existing module loggers too.
    """
    out = stream if stream is not None else sys.stderr
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        _event_type,
    ]
    if resolve_format(log_format) == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        isatty = getattr(out, "isatty", None)
        processors.append(structlog.dev.ConsoleRenderer(colors=bool(isatty and isatty())))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(resolve_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> Any:
    """
    Return a structured logger for the given module name.

        logger = get_logger(__name__)
        logger.info("snapshot_built", mint=short_address(mint), nodes=120, edges=14)

    renders as {"logger": "module.name", "mint": "...", "nodes": 120, "edges": 14,
    "level": "info", "timestamp": "...", "event_type": "snapshot_built"}.
    """
    # "logger" collides with wrap_logger's own parameter, so build the lazy
    # proxy get_logger would return with the initial values passed as a dict.
    return BoundLoggerLazyProxy(
        None, logger_factory_args=(name,), initial_values={"logger": name}
    )


def short_address(address: str | None) -> str:
    """Truncate an address for log lines (first 16 chars + '...')."""
    if not address:
        return "?"
    return address[:16] + "..." if len(address) > 16 else address
