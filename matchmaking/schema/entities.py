"""
Actor and badge-scan records consumed by the matching engine.

Actors are supplied by the ingestion subsystem (companies, sponsors and
attendees unified under one record type). Badge scans come from the event
capture feed and are only used for recency decay.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List, Iterable

from ..exceptions import ValidationError


class ActorType(Enum):
    """Kinds of actor that can be matched."""
    COMPANY = "company"
    SPONSOR = "sponsor"
    ATTENDEE = "attendee"


LIST_FIELDS = ("categories", "platforms", "markets", "capabilities", "needs", "tags")
ATTENDEE_LIST_FIELDS = ("roles", "interests", "meeting_locations")


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Coerce a date-like value into a timezone-aware datetime.

    Accepts datetime, date, ISO-8601 strings and epoch milliseconds.
    Naive values are interpreted as UTC.

    Args:
        value: Date-like value or None

    Returns:
        Aware datetime, or None when value is empty

    Raises:
        ValidationError: If the value cannot be interpreted as a date
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid date value: {value!r}")
    else:
        raise ValidationError(f"Unsupported date type: {type(value).__name__}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def clean_list(values: Optional[Iterable[str]]) -> List[str]:
    """
    Trim and deduplicate a list field case-insensitively.

    The first spelling of each value is kept for display.
    """
    if not values:
        return []
    if isinstance(values, str):
        values = [values]

    seen = set()
    cleaned = []
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if not text or text.lower() in seen:
            continue
        seen.add(text.lower())
        cleaned.append(text)
    return cleaned


@dataclass
class AvailabilitySlot:
    """
    Meeting availability for one conference day.

    Attributes:
        day: Day label (e.g. "2025-08-20" or "day1")
        slots: Time-slot labels on that day (e.g. "09:00", "morning")
    """
    day: str
    slots: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.day = str(self.day).strip()
        self.slots = clean_list(self.slots)

    def to_dict(self) -> Dict[str, Any]:
        return {"day": self.day, "slots": list(self.slots)}


@dataclass
class Actor:
    """
    A matchable record: company, sponsor, or conference attendee.

    List fields are treated as case-insensitive sets for similarity
    purposes. Text fields are concatenated for term weighting.

    Attributes:
        id: Unique actor identifier
        name: Display name
        actor_type: ActorType of the record
        stage: Maturity / funding stage (e.g. "Startup", "Scale", "Enterprise")
        categories, platforms, markets, capabilities, needs, tags: List fields
        text: Free-text fields (title, description, abstract, ...)
        numeric: Numeric fields (rating, price, team, ...)
        dates: Date fields (created, released, ...)
        embedding: Optional precomputed embedding vector
        roles: Attendee professional roles (e.g. "Developer", "Investor")
        interests: Attendee interests
        bio: Attendee biography
        availability: Attendee meeting availability
        meeting_locations: Attendee preferred meeting locations
        sponsor_tier: Sponsor tier (e.g. "Platinum")
        location: Where the actor can be met, if known
    """
    id: str
    name: str = ""
    actor_type: ActorType = ActorType.COMPANY
    stage: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    platforms: List[str] = field(default_factory=list)
    markets: List[str] = field(default_factory=list)
    capabilities: List[str] = field(default_factory=list)
    needs: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    text: Dict[str, str] = field(default_factory=dict)
    numeric: Dict[str, float] = field(default_factory=dict)
    dates: Dict[str, datetime] = field(default_factory=dict)
    embedding: Optional[List[float]] = None
    roles: List[str] = field(default_factory=list)
    interests: List[str] = field(default_factory=list)
    bio: str = ""
    availability: List[AvailabilitySlot] = field(default_factory=list)
    meeting_locations: List[str] = field(default_factory=list)
    sponsor_tier: Optional[str] = None
    location: Optional[str] = None

    def __post_init__(self):
        """Validate identity and normalize field types."""
        if not self.id or not str(self.id).strip():
            raise ValidationError("Actor id must be a non-empty string")
        self.id = str(self.id).strip()

        if isinstance(self.actor_type, str):
            try:
                self.actor_type = ActorType(self.actor_type.lower())
            except ValueError:
                raise ValidationError(f"Unknown actor type: {self.actor_type}")

        for name in LIST_FIELDS + ATTENDEE_LIST_FIELDS:
            setattr(self, name, clean_list(getattr(self, name)))

        self.text = {k: str(v) for k, v in (self.text or {}).items() if v}
        try:
            self.numeric = {
                k: float(v) for k, v in (self.numeric or {}).items() if v is not None
            }
        except (TypeError, ValueError):
            raise ValidationError(f"Numeric fields of actor {self.id} must be numbers: {self.numeric!r}")
        self.dates = {
            k: dt for k, dt in
            ((k, to_datetime(v)) for k, v in (self.dates or {}).items())
            if dt is not None
        }
        self.availability = [
            slot if isinstance(slot, AvailabilitySlot) else AvailabilitySlot(**slot)
            for slot in (self.availability or [])
        ]
        if self.embedding is not None:
            self.embedding = [float(v) for v in self.embedding]
        self.bio = self.bio or ""

    @property
    def is_attendee(self) -> bool:
        return self.actor_type is ActorType.ATTENDEE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "actor_type": self.actor_type.value,
            "stage": self.stage,
            "categories": list(self.categories),
            "platforms": list(self.platforms),
            "markets": list(self.markets),
            "capabilities": list(self.capabilities),
            "needs": list(self.needs),
            "tags": list(self.tags),
            "text": dict(self.text),
            "numeric": dict(self.numeric),
            "dates": {k: v.isoformat() for k, v in self.dates.items()},
            "embedding": list(self.embedding) if self.embedding is not None else None,
            "roles": list(self.roles),
            "interests": list(self.interests),
            "bio": self.bio,
            "availability": [slot.to_dict() for slot in self.availability],
            "meeting_locations": list(self.meeting_locations),
            "sponsor_tier": self.sponsor_tier,
            "location": self.location,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Actor":
        """Create from dictionary, ignoring unknown keys."""
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class BadgeScan:
    """
    One badge-scan event between two actors.

    Attributes:
        from_actor_id: Scanning actor
        to_actor_id: Scanned actor
        ts: When the scan happened
        context: Venue or session where the scan happened
    """
    from_actor_id: str
    to_actor_id: str
    ts: datetime
    context: str = ""

    def __post_init__(self):
        self.ts = to_datetime(self.ts)
        if self.ts is None:
            raise ValidationError("Badge scan timestamp is required")

    @property
    def pair_key(self) -> str:
        return pair_key(self.from_actor_id, self.to_actor_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_actor_id": self.from_actor_id,
            "to_actor_id": self.to_actor_id,
            "ts": self.ts.isoformat(),
            "context": self.context,
        }


def pair_key(actor_a: str, actor_b: str) -> str:
    """Canonical id for an unordered actor pair."""
    first, second = sorted((actor_a, actor_b))
    return f"{first}__{second}"
