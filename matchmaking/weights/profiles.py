"""
Weight profiles: named, persona-specific signal weightings.

A profile maps signal names to weights (negative weights penalize a
signal) and carries the normalization used to turn the weighted sum into a
score in [0, 1], plus the default result limit and score threshold.
"""

import hashlib
import logging
import math
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, Any, List, Optional
import json

from ..exceptions import ValidationError
from ..schema import to_datetime
from ..signals import SIGNAL_NAMES, ADJUSTMENT_FIELDS
from ..signals.attendee_signals import DIRECTIONAL_SIGNALS

logger = logging.getLogger(__name__)

NORMALIZE_METHODS = ["zexp", "zscore", "minmax"]

# Signal names a weight can refer to
KNOWN_SIGNALS = frozenset(SIGNAL_NAMES) | frozenset(DIRECTIONAL_SIGNALS)


@dataclass
class NormalizeConfig:
    """
    Normalization of the weighted sum.

    Attributes:
        method: "zexp" (logistic), "zscore" (normal CDF) or "minmax"
        temperature: Logistic temperature for zexp
    """
    method: str = "zexp"
    temperature: float = 1.0

    def validate(self) -> None:
        """Validate configuration values."""
        if self.method not in NORMALIZE_METHODS:
            raise ValidationError(f"Unknown normalize method: {self.method}")
        if not isinstance(self.temperature, (int, float)) or not self.temperature > 0:
            raise ValidationError(f"temperature must be positive, got {self.temperature}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "NormalizeConfig":
        d = d or {}
        return cls(method=d.get("method", "zexp"), temperature=d.get("temperature", 1.0))


@dataclass
class WeightProfile:
    """
    Named set of signal weights for one persona.

    Attributes:
        id: Profile identifier (document id in the store)
        name: Display name
        persona: Persona the weights are tuned for
        description: Free-text description
        weights: Dict of signal name -> weight
        normalize: NormalizeConfig for the weighted sum
        top_n: Default number of results
        threshold: Default minimum score in [0, 1]
        is_default: Whether this is the persona's (undeletable) default
        created_by: Creator identifier
        created_at: Creation time
        updated_at: Last update time
    """
    id: str
    name: str
    persona: str = "general"
    description: str = ""
    weights: Dict[str, float] = field(default_factory=dict)
    normalize: NormalizeConfig = field(default_factory=NormalizeConfig)
    top_n: int = 10
    threshold: float = 0.3
    is_default: bool = False
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.normalize, dict):
            self.normalize = NormalizeConfig.from_dict(self.normalize)
        self.created_at = to_datetime(self.created_at)
        self.updated_at = to_datetime(self.updated_at)

    def validate(self) -> List[str]:
        """
        Validate the profile.

        Returns:
            Warnings for weights that the engine will ignore

        Raises:
            ValidationError: If a value makes the profile unusable
        """
        if not self.name:
            raise ValidationError("Profile name is required")
        if not self.persona:
            raise ValidationError("Profile persona is required")

        for key, value in self.weights.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"Weight '{key}' must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ValidationError(f"Weight '{key}' must be finite, got {value}")

        self.normalize.validate()

        if isinstance(self.top_n, bool) or not isinstance(self.top_n, int) or self.top_n < 1:
            raise ValidationError(f"top_n must be an integer >= 1, got {self.top_n}")
        if not isinstance(self.threshold, (int, float)) or not 0 <= self.threshold <= 1:
            raise ValidationError(f"threshold must be in [0, 1], got {self.threshold}")

        warnings = []
        for key in sorted(self.weights):
            if key in ADJUSTMENT_FIELDS:
                warnings.append(f"'{key}' is applied as a score adjustment; its weight is ignored")
            elif key not in KNOWN_SIGNALS:
                warnings.append(f"Unknown signal '{key}' will be ignored")
        return warnings

    def weight_snapshot(self) -> Dict[str, float]:
        return {k: float(v) for k, v in self.weights.items()}

    def scoring_fingerprint(self) -> str:
        """Digest of every setting that changes a score (weights and normalization)."""
        payload = json.dumps(
            {"weights": self.weight_snapshot(), "normalize": self.normalize.to_dict()},
            sort_keys=True
        )
        return hashlib.sha1(payload.encode("utf-8")).hexdigest()[:12]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "persona": self.persona,
            "description": self.description,
            "weights": self.weight_snapshot(),
            "normalize": self.normalize.to_dict(),
            "top_n": self.top_n,
            "threshold": self.threshold,
            "is_default": self.is_default,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WeightProfile":
        """Create from dictionary, ignoring unknown keys."""
        known = set(cls.__dataclass_fields__)
        return cls(**{k: v for k, v in d.items() if k in known})

    def save(self, filepath: str) -> None:
        """Save to JSON file."""
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Saved weight profile {self.id} to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> "WeightProfile":
        """Load from JSON file."""
        with open(filepath, "r") as f:
            d = json.load(f)
        return cls.from_dict(d)
