"""
Conference Matchmaking Engine

This package implements the multi-signal entity matching engine that scores
pairs of conference actors (companies, sponsors, attendees) and explains
the resulting compatibility score.

Key Design Decisions:
- Signals are stateless pairwise primitives over corpus statistics
  computed once per corpus snapshot
- Scores are a weighted linear combination of signals, normalized per
  weight profile
- Every match carries its contribution trail, reasons, and a confidence value
- Engines are explicit instances with injected corpus, store and cache
"""

__version__ = "1.0.0"
