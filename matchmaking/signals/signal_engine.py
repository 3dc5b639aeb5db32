"""
Pairwise similarity signals for actor matching.

This module computes signals that represent the relationship between two
actors (Actor A and Actor B) across heterogeneous attributes.

Signal Types:
- Date proximity: exp(-|days| / horizon) (captures timeline closeness)
- Jaccard: |A & B| / |A | B| over list fields (captures shared tags)
- Z-exponential: exp(-|zA - zB| / T) over corpus-normalized numerics
- Levenshtein: 1 - edit distance / max length (captures name similarity)
- TF-IDF cosine: cosine of corpus-weighted term vectors (captures content)
- Bipartite: fraction of needs met by capabilities (captures complementarity)
- Stage complement: fixed lookup over maturity stages

All signals are in [0, 1]. A signal whose input is missing on either side
is omitted from the metric map rather than defaulted to 0.
"""

import logging
import math
import threading
from typing import Dict, List, Optional, Iterable, Set

import joblib
import numpy as np
from scipy.sparse import csr_matrix
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.preprocessing import StandardScaler

from ..exceptions import ComputationError
from ..schema import Actor
from .tables import (
    STAGE_COMPLEMENT,
    STAGE_COMPLEMENT_DEFAULT,
    DATE_HORIZONS,
    NUMERIC_FIELDS,
    COMPARED_NUMERIC_FIELDS,
    TEXT_FIELDS,
    DISPLAY_NAMES,
    REASON_TEMPLATES,
    STOP_WORDS,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60

# Every signal the base engine can emit
SIGNAL_NAMES: List[str] = (
    [f"{name}_proximity" for name in DATE_HORIZONS]
    + ["platforms_jaccard", "markets_jaccard", "categories_jaccard", "tags_jaccard"]
    + [f"{name}_zexp" for name in COMPARED_NUMERIC_FIELDS]
    + [
        "name_levenshtein",
        "text_cosine",
        "bipartite",
        "platform_overlap",
        "market_overlap",
        "stage_complement",
        "embedding_cosine",
    ]
)


def as_set(values: Optional[Iterable[str]]) -> Set[str]:
    """Case-insensitive, trimmed, deduplicated view of a list field."""
    if not values:
        return set()
    return {str(v).strip().lower() for v in values if v is not None and str(v).strip()}


def date_proximity(date_a, date_b, horizon_days: float = 365) -> float:
    """
    Exponential-decay similarity of two dates.

    Args:
        date_a: First datetime
        date_b: Second datetime
        horizon_days: Distance in days at which similarity falls to exp(-1)

    Returns:
        Similarity in [0, 1]
    """
    if horizon_days <= 0:
        raise ValueError(f"horizon_days must be positive, got {horizon_days}")
    delta_days = abs((date_a - date_b).total_seconds()) / SECONDS_PER_DAY
    return float(np.clip(math.exp(-delta_days / horizon_days), 0.0, 1.0))


def jaccard_similarity(list_a: Optional[Iterable[str]], list_b: Optional[Iterable[str]]) -> float:
    """
    Jaccard similarity of two list fields treated as sets.

    Both lists empty is defined as 0: absence of a shared signal is not
    full agreement.
    """
    set_a = as_set(list_a)
    set_b = as_set(list_b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def levenshtein_distance(str_a: str, str_b: str) -> int:
    """Edit distance (insertions, deletions, substitutions) between two strings."""
    if len(str_a) < len(str_b):
        str_a, str_b = str_b, str_a

    previous = list(range(len(str_b) + 1))
    for i, char_a in enumerate(str_a, start=1):
        current = [i]
        for j, char_b in enumerate(str_b, start=1):
            current.append(min(
                previous[j - 1] + (char_a != char_b),  # substitution
                current[j - 1] + 1,                    # insertion
                previous[j] + 1,                       # deletion
            ))
        previous = current
    return previous[-1]


def levenshtein_similarity(str_a: Optional[str], str_b: Optional[str]) -> float:
    """
    Normalized Levenshtein similarity: 1 - distance / max(len).

    Both empty gives 1, exactly one empty gives 0.
    """
    str_a = str_a or ""
    str_b = str_b or ""
    if not str_a and not str_b:
        return 1.0
    if not str_a or not str_b:
        return 0.0
    if str_a == str_b:
        return 1.0
    return 1.0 - levenshtein_distance(str_a, str_b) / max(len(str_a), len(str_b))


def bipartite_matching(capabilities_a: Optional[Iterable[str]], needs_b: Optional[Iterable[str]]) -> float:
    """
    Fraction of B's needs satisfied by A's capabilities.

    A need is satisfied when a capability equals it or either contains the
    other (case-insensitive). Directional: swap arguments for the reverse.
    """
    capabilities = as_set(capabilities_a)
    needs = as_set(needs_b)
    if not needs or not capabilities:
        return 0.0

    satisfied = sum(
        1 for need in needs
        if any(need == cap or need in cap or cap in need for cap in capabilities)
    )
    return satisfied / len(needs)


def stage_complement(stage_a: str, stage_b: str) -> float:
    """Lookup stage complementarity; unknown combinations score the default."""
    row = STAGE_COMPLEMENT.get(stage_a.strip().lower(), {})
    return row.get(stage_b.strip().lower(), STAGE_COMPLEMENT_DEFAULT)


def cosine_similarity_sparse(a: csr_matrix, b: csr_matrix) -> float:
    """
    Cosine similarity between two sparse row vectors.

    A zero vector on either side gives 0.
    """
    norm_a = math.sqrt(a.multiply(a).sum())
    norm_b = math.sqrt(b.multiply(b).sum())
    if norm_a == 0 or norm_b == 0:
        return 0.0
    dot_product = a.multiply(b).sum()
    return float(np.clip(dot_product / (norm_a * norm_b), 0.0, 1.0))


def actor_document(actor: Actor) -> str:
    """Concatenate an actor's text fields, tags and bio into one document."""
    parts = [actor.text.get(name, "") for name in TEXT_FIELDS]
    parts.extend(v for k, v in sorted(actor.text.items()) if k not in TEXT_FIELDS)
    parts.extend(actor.tags)
    parts.append(actor.bio)
    return " ".join(p for p in parts if p).strip()


class CorpusStatistics:
    """
    Corpus-level statistics required by normalized signals.

    Holds per-numeric-field mean/std and a TF-IDF model fitted over every
    actor's concatenated text. Computed once per corpus snapshot.

    Attributes:
        numeric_stats: Dict of field -> (mean, std), std of 0 stored as 1
        vectorizer: Fitted TfidfVectorizer (None when the corpus has no text)
        text_matrix: TF-IDF rows for corpus actors
        row_index: Dict of actor id -> row in text_matrix
        n_actors: Number of actors the statistics were fitted on
    """

    def __init__(self):
        self.numeric_stats: Dict[str, tuple] = {}
        self.vectorizer: Optional[TfidfVectorizer] = None
        self.text_matrix: Optional[csr_matrix] = None
        self.row_index: Dict[str, int] = {}
        self.n_actors = 0

    @classmethod
    def fit(cls, corpus: List[Actor], numeric_fields: Optional[List[str]] = None) -> "CorpusStatistics":
        """
        Compute statistics over a corpus.

        Args:
            corpus: All actors of the snapshot
            numeric_fields: Numeric fields to normalize (default: NUMERIC_FIELDS)

        Returns:
            Fitted CorpusStatistics
        """
        stats = cls()
        stats.n_actors = len(corpus)
        stats._fit_numeric(corpus, numeric_fields or NUMERIC_FIELDS)
        stats._fit_text(corpus)
        logger.info(
            f"Fitted corpus statistics: {len(stats.numeric_stats)} numeric fields, "
            f"{len(stats.row_index)} text documents"
        )
        return stats

    def _fit_numeric(self, corpus: List[Actor], numeric_fields: List[str]) -> None:
        """Fit one scaler per numeric field over the values that are present."""
        for name in numeric_fields:
            values = [a.numeric[name] for a in corpus if name in a.numeric]
            if not values:
                continue
            scaler = StandardScaler().fit(np.asarray(values, dtype=float).reshape(-1, 1))
            # StandardScaler already maps a zero deviation to a scale of 1
            self.numeric_stats[name] = (float(scaler.mean_[0]), float(scaler.scale_[0]))

    def _fit_text(self, corpus: List[Actor]) -> None:
        """Fit TF-IDF weights over the corpus documents."""
        documents = []
        ids = []
        for actor in corpus:
            doc = actor_document(actor)
            if doc:
                documents.append(doc)
                ids.append(actor.id)

        if not documents:
            logger.info("No text in corpus, text signals disabled")
            return

        vectorizer = TfidfVectorizer(lowercase=True, stop_words=sorted(STOP_WORDS))
        try:
            matrix = vectorizer.fit_transform(documents)
        except ValueError as e:
            # Raised when every document consists of stop words only
            logger.warning(f"Could not fit TF-IDF vocabulary: {e}")
            return

        self.vectorizer = vectorizer
        self.text_matrix = csr_matrix(matrix)
        self.row_index = {actor_id: i for i, actor_id in enumerate(ids)}

    def z_score(self, value: float, field: str) -> Optional[float]:
        """Z-normalize a value with the corpus stats of a field."""
        if field not in self.numeric_stats:
            return None
        mean, std = self.numeric_stats[field]
        return (value - mean) / std

    def vectorize(self, text: str) -> Optional[csr_matrix]:
        """TF-IDF vector for arbitrary text (None when text model is absent)."""
        if self.vectorizer is None or not text:
            return None
        return csr_matrix(self.vectorizer.transform([text]))

    def document_vector(self, actor: Actor) -> Optional[csr_matrix]:
        """TF-IDF vector for an actor, reusing the fitted row when available."""
        if self.vectorizer is None:
            return None
        row = self.row_index.get(actor.id)
        if row is not None:
            return self.text_matrix[row]
        return self.vectorize(actor_document(actor))

    def save(self, filepath: str) -> None:
        """Save fitted statistics with joblib."""
        joblib.dump(self, filepath)
        logger.info(f"Saved corpus statistics to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> "CorpusStatistics":
        """Load statistics saved with save()."""
        stats = joblib.load(filepath)
        if not isinstance(stats, cls):
            raise ComputationError(f"{filepath} does not contain corpus statistics")
        return stats


class SignalEngine:
    """
    Engine computing all base similarity signals for actor pairs.

    initialize() is a one-time barrier: it computes corpus statistics once
    and every comparison before it completes raises ComputationError.

    Attributes:
        stats: CorpusStatistics (after initialize)
        zexp_temperature: Temperature for z-exponential numeric similarity
        date_horizons: Dict of date field -> horizon in days
    """

    def __init__(
        self,
        zexp_temperature: float = 1.0,
        date_horizons: Optional[Dict[str, float]] = None,
        numeric_fields: Optional[List[str]] = None,
    ):
        if zexp_temperature <= 0:
            raise ValueError(f"zexp_temperature must be positive, got {zexp_temperature}")
        self.zexp_temperature = zexp_temperature
        self.date_horizons = dict(date_horizons or DATE_HORIZONS)
        self.numeric_fields = numeric_fields or NUMERIC_FIELDS
        self.stats: Optional[CorpusStatistics] = None
        self._init_lock = threading.Lock()
        self._ready = threading.Event()

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def initialize(self, corpus: List[Actor]) -> CorpusStatistics:
        """
        Compute corpus statistics exactly once.

        Later calls return the existing statistics without recomputing.

        Args:
            corpus: All actors of the snapshot

        Returns:
            The fitted CorpusStatistics
        """
        if self._ready.is_set():
            logger.debug("Signal engine already initialized")
            return self.stats

        with self._init_lock:
            if not self._ready.is_set():
                self.stats = CorpusStatistics.fit(list(corpus), self.numeric_fields)
                self._ready.set()
                logger.info(f"Initialized signal engine with {len(corpus)} actors")
        return self.stats

    def initialize_from_statistics(self, stats: CorpusStatistics) -> None:
        """Initialize from precomputed (e.g. loaded) statistics."""
        with self._init_lock:
            if self._ready.is_set():
                raise ComputationError("Signal engine is already initialized")
            self.stats = stats
            self._ready.set()

    def _require_ready(self) -> CorpusStatistics:
        if not self._ready.is_set():
            raise ComputationError("Signal engine used before initialize() completed")
        return self.stats

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def date_proximity(self, date_a, date_b, horizon_days: float = 365) -> float:
        return date_proximity(date_a, date_b, horizon_days)

    def jaccard_similarity(self, list_a, list_b) -> float:
        return jaccard_similarity(list_a, list_b)

    def z_exp_similarity(
        self,
        value_a: float,
        value_b: float,
        field: str,
        temperature: Optional[float] = None
    ) -> Optional[float]:
        """
        Z-exponential similarity of two numeric values.

        Returns None when the corpus has no statistics for the field.
        """
        stats = self._require_ready()
        temperature = temperature or self.zexp_temperature
        z_a = stats.z_score(value_a, field)
        z_b = stats.z_score(value_b, field)
        if z_a is None or z_b is None:
            return None
        return math.exp(-abs(z_a - z_b) / temperature)

    def levenshtein_similarity(self, str_a, str_b) -> float:
        return levenshtein_similarity(str_a, str_b)

    def text_cosine_similarity(self, actor_a: Actor, actor_b: Actor) -> float:
        """TF-IDF cosine similarity of two actors' concatenated text."""
        stats = self._require_ready()
        vec_a = stats.document_vector(actor_a)
        vec_b = stats.document_vector(actor_b)
        if vec_a is None or vec_b is None:
            return 0.0
        return cosine_similarity_sparse(vec_a, vec_b)

    def text_cosine_for_texts(self, text_a: str, text_b: str) -> float:
        """TF-IDF cosine similarity of two arbitrary texts."""
        stats = self._require_ready()
        vec_a = stats.vectorize(text_a)
        vec_b = stats.vectorize(text_b)
        if vec_a is None or vec_b is None:
            return 0.0
        return cosine_similarity_sparse(vec_a, vec_b)

    def bipartite_matching(self, capabilities_a, needs_b) -> float:
        return bipartite_matching(capabilities_a, needs_b)

    def bidirectional_bipartite(self, actor_a: Actor, actor_b: Actor) -> float:
        """Mean of both bipartite directions, symmetric in its arguments."""
        a_to_b = bipartite_matching(actor_a.capabilities, actor_b.needs)
        b_to_a = bipartite_matching(actor_b.capabilities, actor_a.needs)
        return (a_to_b + b_to_a) / 2

    def platform_overlap(self, platforms_a, platforms_b) -> float:
        return jaccard_similarity(platforms_a, platforms_b)

    def market_overlap(self, markets_a, markets_b) -> float:
        return jaccard_similarity(markets_a, markets_b)

    def stage_complement(self, stage_a: str, stage_b: str) -> float:
        return stage_complement(stage_a, stage_b)

    def embedding_similarity(self, embedding_a: List[float], embedding_b: List[float]) -> float:
        """Cosine of two embeddings mapped from [-1, 1] to [0, 1]."""
        a = np.asarray(embedding_a, dtype=float)
        b = np.asarray(embedding_b, dtype=float)
        norm_a = np.linalg.norm(a)
        norm_b = np.linalg.norm(b)
        if norm_a == 0 or norm_b == 0:
            return 0.0
        cos = float(np.dot(a, b) / (norm_a * norm_b))
        return float(np.clip((cos + 1) / 2, 0.0, 1.0))

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def calculate_metrics(self, actor_a: Actor, actor_b: Actor) -> Dict[str, float]:
        """
        Run every applicable signal for an actor pair.

        Args:
            actor_a: First actor
            actor_b: Second actor

        Returns:
            Dict of signal name -> value, without signals whose inputs are missing
        """
        stats = self._require_ready()
        metrics: Dict[str, float] = {}

        for name, horizon in self.date_horizons.items():
            date_a = actor_a.dates.get(name)
            date_b = actor_b.dates.get(name)
            if date_a is not None and date_b is not None:
                metrics[f"{name}_proximity"] = date_proximity(date_a, date_b, horizon)

        for name in ("platforms", "markets", "categories", "tags"):
            list_a = getattr(actor_a, name)
            list_b = getattr(actor_b, name)
            if list_a and list_b:
                metrics[f"{name}_jaccard"] = jaccard_similarity(list_a, list_b)

        for name in COMPARED_NUMERIC_FIELDS:
            if name in actor_a.numeric and name in actor_b.numeric:
                value = self.z_exp_similarity(actor_a.numeric[name], actor_b.numeric[name], name)
                if value is not None:
                    metrics[f"{name}_zexp"] = value

        if actor_a.name and actor_b.name:
            metrics["name_levenshtein"] = levenshtein_similarity(
                actor_a.name.lower(), actor_b.name.lower()
            )

        if stats.vectorizer is not None and actor_document(actor_a) and actor_document(actor_b):
            metrics["text_cosine"] = self.text_cosine_similarity(actor_a, actor_b)

        if (actor_a.capabilities and actor_b.needs) or (actor_b.capabilities and actor_a.needs):
            metrics["bipartite"] = self.bidirectional_bipartite(actor_a, actor_b)

        if actor_a.platforms and actor_b.platforms:
            metrics["platform_overlap"] = self.platform_overlap(actor_a.platforms, actor_b.platforms)
        if actor_a.markets and actor_b.markets:
            metrics["market_overlap"] = self.market_overlap(actor_a.markets, actor_b.markets)

        if actor_a.stage and actor_b.stage:
            # Average both directions so asymmetric table rows stay symmetric
            metrics["stage_complement"] = (
                stage_complement(actor_a.stage, actor_b.stage)
                + stage_complement(actor_b.stage, actor_a.stage)
            ) / 2

        if (
            actor_a.embedding and actor_b.embedding
            and len(actor_a.embedding) == len(actor_b.embedding)
        ):
            metrics["embedding_cosine"] = self.embedding_similarity(
                actor_a.embedding, actor_b.embedding
            )

        return {k: float(v) for k, v in metrics.items() if not math.isnan(v)}

    def generate_reasons(self, metrics: Dict[str, float], top_n: int = 3) -> List[str]:
        """
        Render the strongest signals as human-readable reasons.

        Args:
            metrics: Dict of signal name -> value
            top_n: Number of reasons to return

        Returns:
            Reasons, strongest first (signals with value 0 produce none)
        """
        ranked = sorted(
            ((k, v) for k, v in metrics.items() if v > 0),
            key=lambda item: (-item[1], item[0])
        )[:top_n]

        reasons = []
        for key, value in ranked:
            pct = int(round(value * 100))
            template = REASON_TEMPLATES.get(key)
            if template is None:
                label = DISPLAY_NAMES.get(key, key)
                reasons.append(f"{label} compatibility: {pct}%")
            else:
                reasons.append(template.format(pct=pct))
        return reasons


def get_display_name(key: str) -> str:
    """Display name for a signal, falling back to the signal key."""
    return DISPLAY_NAMES.get(key, key)
