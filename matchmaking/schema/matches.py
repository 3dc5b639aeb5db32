"""
Match results, batch summaries and match requests.

A Match is the scored, explainable edge between exactly two distinct
actors for one weight profile. Its edge id is the sorted pair of actor ids,
so (a, b) and (b, a) always address the same document.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Dict, Any, List

from ..exceptions import ValidationError
from .entities import Actor


@dataclass
class Contribution:
    """One signal's share of a match score."""
    key: str
    value: float
    weight: float
    contribution: float
    display_name: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Match:
    """
    Scored relationship between two actors.

    Attributes:
        edge_id: Canonical pair id ("<a>__<b>" with a < b)
        a: Lower actor id
        b: Higher actor id
        profile_id: Weight profile used for scoring
        score: Final score in [0, 1]
        raw_score: Weighted sum before normalization
        metrics: Raw per-signal values
        weights: Snapshot of the profile weights used
        contributions: Contributions ranked by impact
        reasons: Human-readable reasons, strongest first
        confidence: Completeness/consistency of the inputs in [0, 1]
        adjustments: Attendee-only score adjustments that bypass the weighted sum
        created_at: Creation time
        updated_at: Last recomputation time
    """
    edge_id: str
    a: str
    b: str
    profile_id: str
    score: float
    raw_score: float
    metrics: Optional[Dict[str, float]]
    weights: Dict[str, float]
    contributions: List[Contribution]
    reasons: Optional[List[str]]
    confidence: float
    created_at: datetime
    updated_at: datetime
    adjustments: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON-ready document that is persisted."""
        return {
            "edge_id": self.edge_id,
            "a": self.a,
            "b": self.b,
            "profile_id": self.profile_id,
            "score": float(self.score),
            "raw_score": float(self.raw_score),
            "metrics": dict(self.metrics) if self.metrics is not None else None,
            "weights": dict(self.weights),
            "contributions": [c.to_dict() for c in self.contributions],
            "reasons": list(self.reasons) if self.reasons is not None else None,
            "confidence": float(self.confidence),
            "adjustments": dict(self.adjustments),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class BatchResult:
    """Summary of an all-pairs batch computation."""
    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    duration_ms: float = 0.0
    persisted: int = 0
    total_pairs: int = 0
    cancelled: bool = False

    def record_error(self, pair_id: str, error: Exception) -> None:
        self.failed += 1
        self.errors.append({"id": pair_id, "error": str(error)})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MatchFilters:
    """
    Attribute filters applied to candidates before scoring.

    A candidate passes a list filter when it shares at least one value
    with it (case-insensitive). Empty filters pass everything.
    """
    platforms: List[str] = field(default_factory=list)
    markets: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    stages: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "MatchFilters":
        """Create from dictionary, rejecting unknown filter names."""
        d = d or {}
        unknown = set(d) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValidationError(f"Unknown filter(s): {', '.join(sorted(unknown))}")
        return cls(**{k: list(v or []) for k, v in d.items()})

    def is_empty(self) -> bool:
        return not (self.platforms or self.markets or self.categories or self.stages)

    def accepts(self, actor: Actor) -> bool:
        """Check whether an actor passes every declared filter."""
        checks = (
            (self.platforms, actor.platforms),
            (self.markets, actor.markets),
            (self.categories, actor.categories),
            (self.stages, [actor.stage] if actor.stage else []),
        )
        for wanted, values in checks:
            if not wanted:
                continue
            wanted_set = {w.lower() for w in wanted}
            if not wanted_set & {v.lower() for v in values}:
                return False
        return True


@dataclass
class MatchRequest:
    """
    Top-N match request for one actor.

    Attributes:
        actor_id: Source actor id (looked up in the corpus)
        actor: Source actor record (takes precedence over actor_id)
        candidate_ids: Restrict candidates to these ids
        filters: Attribute filters applied before scoring
        profile_id: Weight profile id (system default when None)
        limit: Maximum results (profile top_n when None)
        threshold: Minimum score (profile threshold when None)
        include_metrics: Keep the raw metric map on results
        include_reasons: Keep the reasons list on results
        persist: Write the returned matches to the document store
    """
    actor_id: Optional[str] = None
    actor: Optional[Actor] = None
    candidate_ids: Optional[List[str]] = None
    filters: MatchFilters = field(default_factory=MatchFilters)
    profile_id: Optional[str] = None
    limit: Optional[int] = None
    threshold: Optional[float] = None
    include_metrics: bool = True
    include_reasons: bool = True
    persist: bool = False

    def __post_init__(self):
        if isinstance(self.filters, dict):
            self.filters = MatchFilters.from_dict(self.filters)
        if self.actor is None and not self.actor_id:
            raise ValidationError("MatchRequest needs an actor or an actor_id")
        if self.limit is not None and self.limit < 1:
            raise ValidationError(f"limit must be >= 1, got {self.limit}")
        if self.threshold is not None and not 0 <= self.threshold <= 1:
            raise ValidationError(f"threshold must be in [0, 1], got {self.threshold}")
