"""
Persona weight templates.

Each template is the starting point for the persona's default profile and
is merged underneath user-supplied weights when a profile is created.
"""

from typing import Dict, Any

GENERAL_WEIGHTS: Dict[str, float] = {
    "created_proximity": 1.0,
    "released_proximity": 1.0,
    "platforms_jaccard": 2.0,
    "markets_jaccard": 2.0,
    "categories_jaccard": 1.5,
    "tags_jaccard": 1.0,
    "rating_zexp": 1.0,
    "team_zexp": 0.5,
    "price_zexp": 0.5,
    "name_levenshtein": 0.1,
    "text_cosine": 1.5,
    "bipartite": 3.0,
    "platform_overlap": 1.5,
    "market_overlap": 1.5,
    "stage_complement": 2.0,
    "role_intent": 2.0,
    "location_fit": 0.5,
    "bio_similarity": 1.0,
    "interest_capability_match": 2.0,
}

PERSONA_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "general": {
        "name": "General Matching",
        "description": "Balanced weights for general business matching",
        "weights": GENERAL_WEIGHTS,
        "normalize": {"method": "zexp", "temperature": 1.0},
        "top_n": 10,
        "threshold": 0.3,
    },
    "developer": {
        "name": "Developer Focus",
        "description": "Platform fit and publishing or tooling partners for game developers",
        "weights": {
            **GENERAL_WEIGHTS,
            "platforms_jaccard": 3.0,
            "platform_overlap": 2.5,
            "bipartite": 3.5,
            "stage_complement": 1.0,
            "price_zexp": 0.2,
            "interest_capability_match": 2.5,
        },
        "normalize": {"method": "zexp", "temperature": 1.0},
        "top_n": 10,
        "threshold": 0.3,
    },
    "publisher": {
        "name": "Publisher Focus",
        "description": "Content quality, release timing and market reach for publishers",
        "weights": {
            **GENERAL_WEIGHTS,
            "released_proximity": 2.0,
            "rating_zexp": 2.0,
            "markets_jaccard": 2.5,
            "text_cosine": 2.0,
            "categories_jaccard": 2.0,
        },
        "normalize": {"method": "zexp", "temperature": 1.0},
        "top_n": 15,
        "threshold": 0.3,
    },
    "investor": {
        "name": "Investor Focus",
        "description": "Stage and market opportunity for investors",
        "weights": {
            **GENERAL_WEIGHTS,
            "stage_complement": 3.5,
            "team_zexp": 1.0,
            "markets_jaccard": 2.5,
            "created_proximity": 0.5,
            "name_levenshtein": 0.0,
            "role_intent": 2.5,
        },
        "normalize": {"method": "zscore", "temperature": 1.0},
        "top_n": 20,
        "threshold": 0.35,
    },
    "sponsor": {
        "name": "Sponsor Focus",
        "description": "Audience and brand alignment for event sponsors",
        "weights": {
            **GENERAL_WEIGHTS,
            "categories_jaccard": 2.5,
            "tags_jaccard": 2.0,
            "market_overlap": 2.5,
            "location_fit": 1.5,
            "stage_complement": 1.0,
        },
        "normalize": {"method": "minmax", "temperature": 1.0},
        "top_n": 25,
        "threshold": 0.25,
    },
}

PERSONAS = list(PERSONA_TEMPLATES)


def get_persona_template(persona: str) -> Dict[str, Any]:
    """Template for a persona, falling back to the general template."""
    return PERSONA_TEMPLATES.get(persona, PERSONA_TEMPLATES["general"])
