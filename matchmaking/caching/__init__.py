"""Match result caching."""

from .match_cache import MatchCache, InMemoryMatchCache, cache_key, DEFAULT_TTL_SECONDS

__all__ = ["MatchCache", "InMemoryMatchCache", "cache_key", "DEFAULT_TTL_SECONDS"]
