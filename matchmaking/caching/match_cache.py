"""
Short-lived cache of computed matches.

Key format:  <lower id>__<higher id>::<profile id>
TTL:         5 minutes by default, measured with an injectable clock

Graceful degradation: the match engine treats every cache failure as a
miss (get) or a no-op (set), so a broken cache only costs recomputation.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from ..schema import Match, pair_key

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


def cache_key(actor_a: str, actor_b: str, profile_id: str) -> str:
    """Order-independent cache key for a pair under one profile."""
    return f"{pair_key(actor_a, actor_b)}::{profile_id}"


class MatchCache(ABC):
    """Cache of Match results keyed by (actor pair, profile id)."""

    @property
    @abstractmethod
    def ttl_seconds(self) -> float:
        """Lifetime of an entry in seconds."""

    @abstractmethod
    def get(self, actor_a: str, actor_b: str, profile_id: str) -> Optional[Match]:
        """Cached match, or None on a miss or an expired entry."""

    @abstractmethod
    def set(self, actor_a: str, actor_b: str, profile_id: str, match: Match) -> None:
        """Store a match for ttl_seconds."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every entry."""


class InMemoryMatchCache(MatchCache):
    """
    Lock-protected in-process cache with lazy expiry.

    Attributes:
        clock: Callable returning monotonic seconds
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Optional[Callable[[], float]] = None):
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._ttl = ttl_seconds
        self.clock = clock or time.monotonic
        self._entries: Dict[str, Tuple[float, Match]] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, actor_a: str, actor_b: str, profile_id: str) -> Optional[Match]:
        key = cache_key(actor_a, actor_b, profile_id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, match = entry
            if self.clock() >= expires_at:
                del self._entries[key]
                return None
            return match

    def set(self, actor_a: str, actor_b: str, profile_id: str, match: Match) -> None:
        key = cache_key(actor_a, actor_b, profile_id)
        with self._lock:
            self._entries[key] = (self.clock() + self._ttl, match)

    def clear(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.debug(f"Cleared {count} cached matches")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
