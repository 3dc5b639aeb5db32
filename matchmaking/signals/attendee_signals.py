"""
Attendee-specific signals layered on top of the base signal engine.

Conference attendees carry roles, interests, a bio, meeting availability and
preferred meeting locations, and they scan each other's badges. This module
turns those into additional signals for attendee <-> company, attendee <->
sponsor and attendee <-> attendee pairs.

Key Design Decisions:
- Composition: the attendee engine wraps a SignalEngine instead of
  subclassing it, so both share one set of corpus statistics
- Only the most recent badge scan per unordered pair is kept
- scan_boost and availability_overlap are adjustments, not weighted
  signals: the match engine applies them after normalization
- Attendee <-> attendee metrics are averaged over both directions so the
  metric map does not depend on argument order
"""

import logging
import math
import threading
import time
from typing import Callable, Dict, List, Optional, Iterable

from ..schema import Actor, ActorType, AvailabilitySlot, BadgeScan, pair_key
from .signal_engine import SignalEngine, as_set, bipartite_matching
from .tables import (
    ROLE_INTENT,
    ROLE_AFFINITY,
    ROLE_DEFAULT_SCORE,
    ROLE_CONTEXT_BOOSTS,
    LOCATION_PROXIMITY,
    LOCATION_PARTIAL_CREDIT,
    DEFAULT_LOCATIONS,
    SPONSOR_TIER_LOCATIONS,
    SCAN_DECAY,
    BIO_COUNTERPARTY_FIELDS,
    REASON_TEMPLATES,
)

logger = logging.getLogger(__name__)

MS_PER_HOUR = 60 * 60 * 1000

# Fields applied as score adjustments rather than weighted signals
ADJUSTMENT_FIELDS = ("scan_boost", "availability_overlap")

# Attendee signals that depend on which side is the attendee
DIRECTIONAL_SIGNALS = ("role_intent", "location_fit", "bio_similarity", "interest_capability_match")


def current_time_ms() -> int:
    return int(time.time() * 1000)


class AttendeeSignalEngine:
    """
    Signal engine for pairs involving at least one attendee.

    Attributes:
        base: Wrapped SignalEngine (shares corpus statistics)
        scan_decay: Dict with horizon_hours, temperature and max_boost
        clock: Callable returning the current time in epoch milliseconds
    """

    def __init__(
        self,
        base: SignalEngine,
        scan_decay: Optional[Dict[str, float]] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.base = base
        self.scan_decay = {**SCAN_DECAY, **(scan_decay or {})}
        self.clock = clock or current_time_ms
        self._scans: Dict[str, BadgeScan] = {}
        self._scan_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Badge scans
    # ------------------------------------------------------------------

    def initialize_scans(self, scans: Iterable[BadgeScan]) -> None:
        """Index badge scans by unordered pair, keeping the most recent."""
        count = 0
        for scan in scans:
            self.add_scan(scan)
            count += 1
        logger.info(f"Indexed {count} badge scans into {len(self._scans)} pairs")

    def add_scan(self, scan: BadgeScan) -> None:
        key = scan.pair_key
        with self._scan_lock:
            existing = self._scans.get(key)
            if existing is None or scan.ts > existing.ts:
                self._scans[key] = scan

    def latest_scan(self, actor_a: str, actor_b: str) -> Optional[BadgeScan]:
        with self._scan_lock:
            return self._scans.get(pair_key(actor_a, actor_b))

    def scan_recency_boost(self, actor_a: str, actor_b: str, now_ms: Optional[int] = None) -> float:
        """
        Score boost from the most recent badge scan between two actors.

        boost = max_boost * exp(-age_hours / temperature) within the horizon,
        0 beyond it or when the pair never scanned. Scans dated in the future
        count as age 0.

        Args:
            actor_a: First actor id
            actor_b: Second actor id
            now_ms: Current time in epoch milliseconds (clock when None)

        Returns:
            Boost in [0, max_boost]
        """
        scan = self.latest_scan(actor_a, actor_b)
        if scan is None:
            return 0.0

        now_ms = self.clock() if now_ms is None else now_ms
        scan_ms = scan.ts.timestamp() * 1000
        age_hours = max(0.0, now_ms - scan_ms) / MS_PER_HOUR
        if age_hours > self.scan_decay["horizon_hours"]:
            return 0.0
        return self.scan_decay["max_boost"] * math.exp(-age_hours / self.scan_decay["temperature"])

    # ------------------------------------------------------------------
    # Attendee primitives
    # ------------------------------------------------------------------

    def role_intent_score(
        self,
        roles: List[str],
        counterparty_type: ActorType,
        counterparty: Optional[Actor] = None
    ) -> float:
        """
        Mean intent of an attendee's roles towards a counterparty.

        Against another attendee with roles, role-to-role affinity is used
        instead of role-to-type intent. Context boost rules are applied on
        top and the result is capped at 1.

        Args:
            roles: Attendee roles
            counterparty_type: ActorType of the counterparty
            counterparty: Counterparty record (for affinity and context boosts)

        Returns:
            Score in [0, 1]
        """
        role_set = sorted(as_set(roles))
        if not role_set:
            return ROLE_DEFAULT_SCORE

        other_roles = sorted(as_set(counterparty.roles)) if counterparty is not None else []
        use_affinity = counterparty_type is ActorType.ATTENDEE and bool(other_roles)

        scores = []
        for role in role_set:
            if use_affinity:
                row = ROLE_AFFINITY.get(role, {})
                role_score = sum(row.get(o, ROLE_DEFAULT_SCORE) for o in other_roles) / len(other_roles)
            else:
                role_score = ROLE_INTENT.get(role, {}).get(counterparty_type.value, ROLE_DEFAULT_SCORE)
            scores.append(role_score)
        score = sum(scores) / len(scores)

        if counterparty is not None and counterparty_type is not ActorType.ATTENDEE:
            for role, field_path, expected, multiplier in ROLE_CONTEXT_BOOSTS:
                if role in role_set and self._context_matches(counterparty, field_path, expected):
                    score *= multiplier

        return min(1.0, score)

    @staticmethod
    def _context_matches(actor: Actor, field_path: str, expected) -> bool:
        """Evaluate one context boost rule against a counterparty."""
        if field_path.startswith("dates."):
            present = actor.dates.get(field_path.split(".", 1)[1]) is not None
            return not present if expected is None else present

        value = getattr(actor, field_path, None)
        if expected is None:
            return not value
        if isinstance(value, list):
            return expected in as_set(value)
        return value is not None and str(value).strip().lower() == expected

    def availability_overlap(
        self,
        slots_a: List[AvailabilitySlot],
        slots_b: List[AvailabilitySlot]
    ) -> float:
        """Jaccard similarity over (day, time slot) pairs."""
        pairs_a = {(s.day.lower(), t.lower()) for s in slots_a for t in s.slots}
        pairs_b = {(s.day.lower(), t.lower()) for s in slots_b for t in s.slots}
        union = pairs_a | pairs_b
        if not union:
            return 0.0
        return len(pairs_a & pairs_b) / len(union)

    def location_preference_fit(self, preferred: List[str], location: str) -> float:
        """
        How well a location suits an attendee's preferred meeting spots.

        Args:
            preferred: Attendee's preferred locations
            location: Where the counterparty can be met

        Returns:
            1.0 on an exact match, partial credit for a nearby location, else 0
        """
        target = location.strip().lower()
        best = 0.0
        for pref in as_set(preferred):
            if pref == target:
                return 1.0
            nearby = LOCATION_PROXIMITY.get(pref, []) + LOCATION_PROXIMITY.get(target, [])
            if target in nearby or pref in nearby:
                best = max(best, LOCATION_PARTIAL_CREDIT)
        return best

    @staticmethod
    def counterparty_location(actor: Actor) -> Optional[str]:
        """Where an actor can be met: declared location, else derived from its type."""
        if actor.location:
            return actor.location
        if actor.actor_type is ActorType.SPONSOR and actor.sponsor_tier:
            tier_location = SPONSOR_TIER_LOCATIONS.get(actor.sponsor_tier.strip().lower())
            if tier_location:
                return tier_location
        return DEFAULT_LOCATIONS.get(actor.actor_type.value)

    @staticmethod
    def counterparty_text(actor: Actor) -> str:
        """Text compared against an attendee bio."""
        if actor.is_attendee:
            return actor.bio
        return " ".join(actor.text[f] for f in BIO_COUNTERPARTY_FIELDS if actor.text.get(f))

    def bio_similarity(self, attendee: Actor, counterparty: Actor) -> float:
        return self.base.text_cosine_for_texts(attendee.bio, self.counterparty_text(counterparty))

    def interest_capability_match(self, attendee: Actor, counterparty: Actor) -> float:
        """Fraction of the attendee's interests covered by counterparty capabilities."""
        return bipartite_matching(counterparty.capabilities, attendee.interests)

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def _directional_metrics(self, attendee: Actor, counterparty: Actor, counterparty_type: ActorType) -> Dict[str, float]:
        """Attendee signals as seen from the attendee side."""
        metrics = {}

        if attendee.roles:
            metrics["role_intent"] = self.role_intent_score(attendee.roles, counterparty_type, counterparty)

        if attendee.meeting_locations:
            location = self.counterparty_location(counterparty)
            if location:
                metrics["location_fit"] = self.location_preference_fit(attendee.meeting_locations, location)
            elif counterparty.meeting_locations:
                metrics["location_fit"] = max(
                    self.location_preference_fit(attendee.meeting_locations, loc)
                    for loc in counterparty.meeting_locations
                )

        if (
            self.base.stats.vectorizer is not None
            and attendee.bio and self.counterparty_text(counterparty)
        ):
            metrics["bio_similarity"] = self.bio_similarity(attendee, counterparty)

        if attendee.interests and counterparty.capabilities:
            metrics["interest_capability_match"] = self.interest_capability_match(attendee, counterparty)

        return metrics

    def calculate_attendee_metrics(
        self,
        attendee: Actor,
        counterparty: Actor,
        counterparty_type: Optional[ActorType] = None,
        now_ms: Optional[int] = None
    ) -> Dict[str, float]:
        """
        Compute base and attendee signals for a pair involving an attendee.

        Args:
            attendee: The attendee side of the pair
            counterparty: Company, sponsor or attendee
            counterparty_type: Counterparty ActorType (from the record when None)
            now_ms: Current time in epoch milliseconds (clock when None)

        Returns:
            Dict of signal name -> value, including the scan_boost and
            availability_overlap adjustment fields
        """
        counterparty_type = counterparty_type or counterparty.actor_type
        metrics = self.base.calculate_metrics(attendee, counterparty)

        directional = self._directional_metrics(attendee, counterparty, counterparty_type)
        if counterparty_type is ActorType.ATTENDEE and attendee.is_attendee:
            reverse = self._directional_metrics(counterparty, attendee, attendee.actor_type)
            for key in DIRECTIONAL_SIGNALS:
                values = [d[key] for d in (directional, reverse) if key in d]
                if values:
                    metrics[key] = sum(values) / len(values)
        else:
            metrics.update(directional)

        if attendee.availability and counterparty.availability:
            metrics["availability_overlap"] = self.availability_overlap(
                attendee.availability, counterparty.availability
            )

        metrics["scan_boost"] = self.scan_recency_boost(attendee.id, counterparty.id, now_ms)
        return metrics

    def generate_reasons(self, metrics: Dict[str, float], top_n: int = 3) -> List[str]:
        """
        Reasons for an attendee pair: a recent badge scan first, then the
        strongest weighted signals.
        """
        weighted = {k: v for k, v in metrics.items() if k not in ADJUSTMENT_FIELDS}
        reasons = self.base.generate_reasons(weighted, top_n)
        if metrics.get("scan_boost", 0.0) > 0:
            reasons.insert(0, REASON_TEMPLATES["scan_boost"])
        return reasons[:top_n]

