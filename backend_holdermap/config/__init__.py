"""
Configuration management for Backend HolderMap.

Loads and validates settings from environment variables and the optional
.env file. Exposes a single source of truth for all service configuration.
"""

from backend_holdermap.config.settings import (  # noqa: F401
    Settings,
    get_settings,
    parse_limit_param,
    reset_settings_cache,
)

__all__ = ["Settings", "get_settings", "parse_limit_param", "reset_settings_cache"]
