"""
Static lookup tables used by the signal engines.

Tunable business rules live here as data so the scoring code never
branches on category values. All keys are lower-case.
"""

from typing import Dict, List, Tuple

# Stage complementarity (row = actor A stage, column = actor B stage)
STAGE_COMPLEMENT: Dict[str, Dict[str, float]] = {
    "startup": {"startup": 0.5, "scale": 0.8, "enterprise": 1.0},
    "scale": {"startup": 0.8, "scale": 0.7, "enterprise": 0.9},
    "enterprise": {"startup": 1.0, "scale": 0.9, "enterprise": 0.6},
}
STAGE_COMPLEMENT_DEFAULT = 0.5

# Date fields compared by proximity, with their horizon in days
DATE_HORIZONS: Dict[str, int] = {
    "created": 365,
    "released": 180,
}

# Numeric fields for which corpus statistics are computed
NUMERIC_FIELDS: List[str] = ["rating", "price", "cost", "team", "float1", "float2", "int1"]

# Numeric fields compared with z-exponential similarity
COMPARED_NUMERIC_FIELDS: List[str] = ["rating", "team", "price"]

# Free-text fields concatenated for term weighting
TEXT_FIELDS: List[str] = ["title", "description", "abstract", "sentence1", "sentence2"]

# Text used as the counterparty side of bio similarity
BIO_COUNTERPARTY_FIELDS: List[str] = ["description", "abstract"]

DISPLAY_NAMES: Dict[str, str] = {
    "created_proximity": "Founded Timeline",
    "released_proximity": "Release Timeline",
    "platforms_jaccard": "Platform Alignment",
    "markets_jaccard": "Market Overlap",
    "categories_jaccard": "Category Match",
    "tags_jaccard": "Tag Similarity",
    "rating_zexp": "Rating Alignment",
    "team_zexp": "Team Size Match",
    "price_zexp": "Price Range Match",
    "name_levenshtein": "Name Similarity",
    "text_cosine": "Content Similarity",
    "bipartite": "Capability-Need Fit",
    "platform_overlap": "Platform Context",
    "market_overlap": "Market Context",
    "stage_complement": "Stage Synergy",
    "embedding_cosine": "Profile Embedding Similarity",
    "role_intent": "Role Alignment",
    "scan_boost": "Recent Badge Scan",
    "availability_overlap": "Schedule Overlap",
    "location_fit": "Meeting Location Fit",
    "bio_similarity": "Profile Content Alignment",
    "interest_capability_match": "Interest-Capability Synergy",
}

# Reason templates; "{pct}" is the signal value as a whole percentage
REASON_TEMPLATES: Dict[str, str] = {
    "created_proximity": "Similar founding timeline ({pct}% proximity)",
    "released_proximity": "Similar release timeline ({pct}% proximity)",
    "platforms_jaccard": "Strong platform alignment ({pct}% match)",
    "markets_jaccard": "Overlapping target markets ({pct}% similarity)",
    "categories_jaccard": "Shared business categories ({pct}% overlap)",
    "tags_jaccard": "Common interest tags ({pct}% match)",
    "rating_zexp": "Similar quality ratings ({pct}% alignment)",
    "team_zexp": "Comparable team sizes ({pct}% alignment)",
    "price_zexp": "Comparable price points ({pct}% alignment)",
    "name_levenshtein": "Similar names ({pct}% similarity)",
    "text_cosine": "Strong content similarity ({pct}% match)",
    "bipartite": "Complementary capabilities and needs ({pct}% fit)",
    "platform_overlap": "Platform focus alignment ({pct}%)",
    "market_overlap": "Target market overlap ({pct}%)",
    "stage_complement": "Compatible company stages ({pct}% synergy)",
    "embedding_cosine": "Similar overall profiles ({pct}% similarity)",
    "role_intent": "Strong role alignment ({pct}% match)",
    "scan_boost": "Recent badge scan interaction",
    "availability_overlap": "Schedule availability overlap ({pct}%)",
    "location_fit": "Preferred meeting location match",
    "bio_similarity": "Profile content alignment ({pct}%)",
    "interest_capability_match": "Interest-capability synergy ({pct}%)",
}

# Intent of an attendee role towards a counterparty type
ROLE_INTENT: Dict[str, Dict[str, float]] = {
    "developer": {"company": 0.7, "sponsor": 0.9, "attendee": 0.5},
    "publisher": {"company": 0.9, "sponsor": 0.6, "attendee": 0.5},
    "investor": {"company": 0.95, "sponsor": 0.4, "attendee": 0.6},
    "tooling": {"company": 0.8, "sponsor": 0.7, "attendee": 0.9},
    "brand": {"company": 0.7, "sponsor": 0.8, "attendee": 0.5},
}

# Affinity between two attendee roles (row = attendee, column = counterparty)
ROLE_AFFINITY: Dict[str, Dict[str, float]] = {
    "developer": {"developer": 0.4, "publisher": 0.9, "investor": 0.85, "tooling": 0.7, "brand": 0.6},
    "publisher": {"developer": 0.9, "publisher": 0.3, "investor": 0.6, "tooling": 0.5, "brand": 0.7},
    "investor": {"developer": 0.85, "publisher": 0.6, "investor": 0.3, "tooling": 0.6, "brand": 0.4},
    "tooling": {"developer": 0.9, "publisher": 0.6, "investor": 0.5, "tooling": 0.3, "brand": 0.4},
    "brand": {"developer": 0.6, "publisher": 0.7, "investor": 0.4, "tooling": 0.4, "brand": 0.3},
}
ROLE_DEFAULT_SCORE = 0.3

# (role, counterparty field, expected value, multiplier)
# A value of None means "field is missing" (e.g. no release date yet).
ROLE_CONTEXT_BOOSTS: List[Tuple[str, str, object, float]] = [
    ("developer", "categories", "gaming", 1.2),
    ("investor", "stage", "startup", 1.3),
    ("publisher", "dates.released", None, 1.2),
]

# Meeting locations considered close to each preferred location
LOCATION_PROXIMITY: Dict[str, List[str]] = {
    "expo floor": ["expo", "booth", "stand"],
    "cabanas": ["quiet zone", "meeting rooms"],
    "quiet zone": ["cabanas", "meeting rooms"],
    "meeting rooms": ["quiet zone", "cabanas"],
    "lounge": ["coffee area"],
    "coffee area": ["lounge"],
}
LOCATION_PARTIAL_CREDIT = 0.7

# Where a counterparty is met when it declares no location
DEFAULT_LOCATIONS: Dict[str, str] = {
    "company": "Expo Floor",
    "sponsor": "Expo Floor",
}
SPONSOR_TIER_LOCATIONS: Dict[str, str] = {
    "platinum": "Cabanas",
}

# Badge-scan recency decay, shared process-wide
SCAN_DECAY: Dict[str, float] = {
    "horizon_hours": 72.0,
    "temperature": 24.0,
    "max_boost": 0.2,
}

STOP_WORDS = frozenset([
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "be",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "can", "shall", "it", "this", "that",
])
