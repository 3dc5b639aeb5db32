"""Record types shared across the matching engine."""

from .entities import Actor, ActorType, AvailabilitySlot, BadgeScan, pair_key, to_datetime
from .matches import Contribution, Match, BatchResult, MatchFilters, MatchRequest

__all__ = [
    "Actor",
    "ActorType",
    "AvailabilitySlot",
    "BadgeScan",
    "pair_key",
    "to_datetime",
    "Contribution",
    "Match",
    "BatchResult",
    "MatchFilters",
    "MatchRequest",
]
