"""Weight profiles and their management."""

from .profiles import WeightProfile, NormalizeConfig, NORMALIZE_METHODS, KNOWN_SIGNALS
from .personas import PERSONA_TEMPLATES, PERSONAS, get_persona_template
from .manager import WeightsManager, SYSTEM_DEFAULT_ID, PROFILES_COLLECTION

__all__ = [
    "WeightProfile",
    "NormalizeConfig",
    "NORMALIZE_METHODS",
    "KNOWN_SIGNALS",
    "PERSONA_TEMPLATES",
    "PERSONAS",
    "get_persona_template",
    "WeightsManager",
    "SYSTEM_DEFAULT_ID",
    "PROFILES_COLLECTION",
]
