"""
Structured logging for Backend HolderMap.

JSON logs on stderr with timestamp, event_type and keyword context.
Use get_logger() in all modules for aggregation-friendly output.
"""

from backend_holdermap.holdermap_logging.logger import configure_logging, get_logger, short_address

__all__ = ["configure_logging", "get_logger", "short_address"]
