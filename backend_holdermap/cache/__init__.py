"""In-memory TTL caching of aggregation results."""

from backend_holdermap.cache.result_cache import ResultCache

__all__ = ["ResultCache"]
