"""Similarity signals for actor pairs."""

from .signal_engine import (
    SIGNAL_NAMES,
    CorpusStatistics,
    SignalEngine,
    date_proximity,
    jaccard_similarity,
    levenshtein_similarity,
    bipartite_matching,
    stage_complement,
    get_display_name,
)
from .attendee_signals import ADJUSTMENT_FIELDS, AttendeeSignalEngine

__all__ = [
    "SIGNAL_NAMES",
    "CorpusStatistics",
    "SignalEngine",
    "date_proximity",
    "jaccard_similarity",
    "levenshtein_similarity",
    "bipartite_matching",
    "stage_complement",
    "get_display_name",
    "ADJUSTMENT_FIELDS",
    "AttendeeSignalEngine",
]
