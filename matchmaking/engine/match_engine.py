"""
Match Engine: explainable pair scoring, top-N search and all-pairs batches.

The engine is an explicit instance holding a corpus snapshot and its
collaborators (weights manager, document store, match cache, badge scans).
It routes each pair to the base or attendee signal engine, aggregates the
metrics under a weight profile and records why the pair scored as it did.

Key Design Decisions:
- Pairs are scored in canonical id order, so (A, B) and (B, A) produce the
  same Match with the same edge id
- Cached matches are keyed on a fingerprint of the profile weights and
  normalization, so an edited profile never reuses a stale score
- Batch runs work on the snapshot taken when they start; workers only
  compute, the calling thread buffers results and writes them in batches
- Timeouts and cancellation stop pending chunks; finished results are
  still written (best effort)
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait, FIRST_COMPLETED, Future
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from typing import Callable, Dict, Any, List, Optional, Iterable, Tuple

from ..caching import MatchCache, InMemoryMatchCache, DEFAULT_TTL_SECONDS
from ..exceptions import ComputationError, MatchmakingError, NotFoundError, ValidationError
from ..schema import Actor, BadgeScan, BatchResult, Match, MatchRequest, pair_key
from ..signals import SignalEngine, AttendeeSignalEngine, ADJUSTMENT_FIELDS
from ..signals.attendee_signals import current_time_ms
from ..signals.tables import STAGE_COMPLEMENT, SCAN_DECAY, DATE_HORIZONS
from ..storage import DocumentStore
from ..weights import WeightProfile, WeightsManager
from .pairs import PairGenerator
from .scoring import ScoreAggregator, ScoringConfig

logger = logging.getLogger(__name__)

MATCHES_COLLECTION = "matches"

# How often the batch loop checks for cancellation while waiting
POLL_INTERVAL_SECONDS = 0.1


@dataclass
class EngineConfig:
    """
    Configuration for the match engine.

    Attributes:
        zexp_temperature: Temperature of z-exponential numeric similarity
        date_horizons: Date field -> proximity horizon in days
        reasons_top_n: Number of reasons attached to a match
        consistency_weight: Share of confidence driven by consistency
        availability_influence: Maximum score reduction for zero schedule overlap
        scan_horizon_hours: Badge scans older than this give no boost
        scan_temperature_hours: Decay temperature of the scan boost
        scan_max_boost: Boost of a scan made right now
        cache_ttl_seconds: Lifetime of cached matches
        batch_size: Documents per batched write
        chunk_size: Pairs per worker task
        max_workers: Worker threads for batch runs
        max_pairs: Cap on pairs per batch run (None for all pairs)
        random_seed: Seed for sampling under max_pairs
        timeout_seconds: Default batch timeout (None for no timeout)
        matches_collection: Collection prefix for match documents
    """
    zexp_temperature: float = 1.0
    date_horizons: Dict[str, float] = field(default_factory=lambda: dict(DATE_HORIZONS))
    reasons_top_n: int = 3
    consistency_weight: float = 0.5
    availability_influence: float = 0.25
    scan_horizon_hours: float = SCAN_DECAY["horizon_hours"]
    scan_temperature_hours: float = SCAN_DECAY["temperature"]
    scan_max_boost: float = SCAN_DECAY["max_boost"]
    cache_ttl_seconds: float = DEFAULT_TTL_SECONDS
    batch_size: int = 400
    chunk_size: int = 200
    max_workers: int = 4
    max_pairs: Optional[int] = None
    random_seed: Optional[int] = None
    timeout_seconds: Optional[float] = None
    matches_collection: str = MATCHES_COLLECTION

    def validate(self) -> None:
        """Validate configuration values."""
        if self.zexp_temperature <= 0:
            raise ValidationError(f"zexp_temperature must be positive, got {self.zexp_temperature}")
        for name, horizon in self.date_horizons.items():
            if horizon <= 0:
                raise ValidationError(f"date horizon for {name} must be positive, got {horizon}")
        if self.reasons_top_n < 1:
            raise ValidationError(f"reasons_top_n must be >= 1, got {self.reasons_top_n}")
        if self.scan_horizon_hours <= 0 or self.scan_temperature_hours <= 0:
            raise ValidationError("Scan horizon and temperature must be positive")
        if not 0 <= self.scan_max_boost <= 1:
            raise ValidationError(f"scan_max_boost must be in [0, 1], got {self.scan_max_boost}")
        if self.cache_ttl_seconds <= 0:
            raise ValidationError(f"cache_ttl_seconds must be positive, got {self.cache_ttl_seconds}")
        for name in ("batch_size", "chunk_size", "max_workers"):
            if getattr(self, name) < 1:
                raise ValidationError(f"{name} must be >= 1, got {getattr(self, name)}")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValidationError(f"timeout_seconds must be positive, got {self.timeout_seconds}")
        ScoringConfig(self.consistency_weight, self.availability_influence).validate()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EngineConfig":
        """Create from dictionary."""
        return cls(**d)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "EngineConfig":
        """Create from main config dictionary."""
        signals_config = config.get("signals", {})
        attendee_config = config.get("attendee", {})
        engine_config = config.get("engine", {})
        cache_config = config.get("cache", {})
        batch_config = config.get("batch", {})

        return cls(
            zexp_temperature=signals_config.get("zexp_temperature", 1.0),
            date_horizons=signals_config.get("date_horizons", dict(DATE_HORIZONS)),
            reasons_top_n=engine_config.get("reasons_top_n", 3),
            consistency_weight=engine_config.get("consistency_weight", 0.5),
            availability_influence=attendee_config.get("availability_influence", 0.25),
            scan_horizon_hours=attendee_config.get("scan_horizon_hours", SCAN_DECAY["horizon_hours"]),
            scan_temperature_hours=attendee_config.get("scan_temperature_hours", SCAN_DECAY["temperature"]),
            scan_max_boost=attendee_config.get("scan_max_boost", SCAN_DECAY["max_boost"]),
            cache_ttl_seconds=cache_config.get("ttl_seconds", DEFAULT_TTL_SECONDS),
            batch_size=batch_config.get("batch_size", 400),
            chunk_size=batch_config.get("chunk_size", 200),
            max_workers=batch_config.get("max_workers", 4),
            max_pairs=batch_config.get("max_pairs"),
            random_seed=config.get("global", {}).get("random_seed"),
            timeout_seconds=batch_config.get("timeout_seconds"),
            matches_collection=engine_config.get("matches_collection", MATCHES_COLLECTION),
        )


@dataclass
class _ChunkResult:
    """Outcome of one worker chunk."""
    matches: List[Match]
    skipped: int
    errors: List[Tuple[str, Exception]]
    processed: bool = True


class MatchEngine:
    """
    Engine computing explainable matches over a corpus snapshot.

    Attributes:
        config: EngineConfig
        weights: WeightsManager supplying profiles
        store: DocumentStore receiving persisted matches
        cache: MatchCache for recently computed pairs
        signals: Base SignalEngine
        attendee_signals: AttendeeSignalEngine wrapping signals
        clock: Callable returning the current time in epoch milliseconds
    """

    def __init__(
        self,
        corpus: Iterable[Actor],
        weights: WeightsManager,
        store: DocumentStore,
        cache: Optional[MatchCache] = None,
        scans: Optional[Iterable[BadgeScan]] = None,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.config = config or EngineConfig()
        self.config.validate()
        self.weights = weights
        self.store = store
        self.cache = cache if cache is not None else InMemoryMatchCache(self.config.cache_ttl_seconds)
        self.clock = clock or current_time_ms

        self._corpus = list(corpus)
        self._actors_by_id: Dict[str, Actor] = {}
        for actor in self._corpus:
            self._actors_by_id.setdefault(actor.id, actor)
        self._scans = list(scans or [])

        self.signals = SignalEngine(
            zexp_temperature=self.config.zexp_temperature,
            date_horizons=self.config.date_horizons,
        )
        self.attendee_signals = AttendeeSignalEngine(
            self.signals,
            scan_decay={
                "horizon_hours": self.config.scan_horizon_hours,
                "temperature": self.config.scan_temperature_hours,
                "max_boost": self.config.scan_max_boost,
            },
            clock=self.clock,
        )
        self.aggregator = ScoreAggregator(
            ScoringConfig(self.config.consistency_weight, self.config.availability_influence)
        )

        self._init_lock = threading.Lock()
        self._ready = threading.Event()

    # ------------------------------------------------------------------
    # Initialization and lookups
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Compute corpus statistics and index badge scans, once.

        Concurrent callers block until the first initialization finishes.
        """
        if self._ready.is_set():
            return
        with self._init_lock:
            if self._ready.is_set():
                return
            start = time.monotonic()
            self.signals.initialize(self._corpus)
            self.attendee_signals.initialize_scans(self._scans)
            self._ready.set()
            logger.info(
                f"Match engine initialized with {len(self._actors_by_id)} actors "
                f"in {(time.monotonic() - start) * 1000:.1f}ms"
            )

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    @property
    def corpus(self) -> List[Actor]:
        return list(self._corpus)

    def get_actor(self, actor_id: str) -> Actor:
        """
        Look up an actor of the snapshot.

        Raises:
            NotFoundError: If the id is not in the corpus
        """
        actor = self._actors_by_id.get(actor_id)
        if actor is None:
            raise NotFoundError(f"Actor not found: {actor_id}")
        return actor

    def get_weight_profile(self, profile_id: Optional[str] = None) -> WeightProfile:
        """
        Resolve a weight profile.

        Args:
            profile_id: Profile id, or None for the system default

        Raises:
            NotFoundError: If an explicit id does not exist
        """
        if profile_id is None:
            return self.weights.get_system_default()
        return self.weights.get_profile(profile_id)

    def add_scan(self, scan: BadgeScan) -> None:
        """Register a new badge scan; cached matches of the pair are invalidated."""
        self.attendee_signals.add_scan(scan)
        self.clear_cache()

    # ------------------------------------------------------------------
    # Pair scoring
    # ------------------------------------------------------------------

    def calculate_match(
        self,
        actor_a: Actor,
        actor_b: Actor,
        profile: Optional[WeightProfile] = None,
        use_cache: bool = True
    ) -> Match:
        """
        Score one pair of actors.

        Args:
            actor_a: First actor
            actor_b: Second actor
            profile: WeightProfile (system default when None)
            use_cache: Read and write the match cache

        Returns:
            Match with score, contributions, reasons and confidence

        Raises:
            ValidationError: If both actors have the same id
            ComputationError: If a signal cannot be computed
        """
        if actor_a.id == actor_b.id:
            raise ValidationError(f"Cannot match an actor with itself: {actor_a.id}")

        self.initialize()
        profile = profile or self.get_weight_profile()

        if use_cache:
            cached = self._cache_get(actor_a.id, actor_b.id, profile)
            if cached is not None:
                return cached

        first, second = sorted((actor_a, actor_b), key=lambda actor: actor.id)
        try:
            metrics = self._calculate_metrics(first, second)
        except MatchmakingError:
            raise
        except (ValueError, TypeError, ArithmeticError) as e:
            raise ComputationError(f"Failed to compute signals for {first.id}/{second.id}: {e}") from e

        breakdown = self.aggregator.aggregate(metrics, profile)
        reasons = self._generate_reasons(metrics, breakdown.contributions, first, second)

        now = datetime.fromtimestamp(self.clock() / 1000.0, tz=timezone.utc)
        match = Match(
            edge_id=pair_key(first.id, second.id),
            a=first.id,
            b=second.id,
            profile_id=profile.id,
            score=breakdown.score,
            raw_score=breakdown.raw_score,
            metrics=metrics,
            weights=profile.weight_snapshot(),
            contributions=breakdown.contributions,
            reasons=reasons,
            confidence=breakdown.confidence,
            created_at=now,
            updated_at=now,
            adjustments=breakdown.adjustments,
        )

        if use_cache:
            self._cache_set(match, profile)
        return match

    def _calculate_metrics(self, first: Actor, second: Actor) -> Dict[str, float]:
        """Route a canonical pair to the right signal engine."""
        if first.is_attendee:
            return self.attendee_signals.calculate_attendee_metrics(first, second)
        if second.is_attendee:
            return self.attendee_signals.calculate_attendee_metrics(second, first)
        return self.signals.calculate_metrics(first, second)

    def _generate_reasons(self, metrics, contributions, first: Actor, second: Actor) -> List[str]:
        """Reasons from the signals that pushed the score up."""
        positive = {c.key: c.value for c in contributions if c.contribution > 0}
        if first.is_attendee or second.is_attendee:
            positive.update({k: metrics[k] for k in ADJUSTMENT_FIELDS if k in metrics})
            return self.attendee_signals.generate_reasons(positive, self.config.reasons_top_n)
        return self.signals.generate_reasons(positive, self.config.reasons_top_n)

    # ------------------------------------------------------------------
    # Top-N search
    # ------------------------------------------------------------------

    def find_matches(self, request: MatchRequest) -> List[Match]:
        """
        Find the best matches for one actor.

        Args:
            request: MatchRequest

        Returns:
            Matches with score >= threshold, best first (ties by edge id),
            at most limit long

        Raises:
            NotFoundError: If the source actor, a candidate or the profile is unknown
            ValidationError: If a filter value is invalid
        """
        self.initialize()
        start = time.monotonic()
        profile = self.get_weight_profile(request.profile_id)
        source = request.actor if request.actor is not None else self.get_actor(request.actor_id)

        unknown_stages = [s for s in request.filters.stages if s.strip().lower() not in STAGE_COMPLEMENT]
        if unknown_stages:
            raise ValidationError(f"Unknown stage filter value(s): {', '.join(unknown_stages)}")

        if request.candidate_ids is not None:
            candidates = [self.get_actor(actor_id) for actor_id in request.candidate_ids]
        else:
            candidates = list(self._corpus)

        seen = {source.id}
        eligible = []
        for candidate in candidates:
            if candidate.id in seen or not request.filters.accepts(candidate):
                continue
            seen.add(candidate.id)
            eligible.append(candidate)

        threshold = profile.threshold if request.threshold is None else request.threshold
        limit = profile.top_n if request.limit is None else request.limit

        matches = [self.calculate_match(source, candidate, profile) for candidate in eligible]
        results = sorted(
            (m for m in matches if m.score >= threshold),
            key=lambda m: (-m.score, m.edge_id)
        )[:limit]

        if request.persist and results:
            self.store.batch_write(self._collection(profile.id), [(m.edge_id, m.to_dict()) for m in results])

        if not request.include_metrics:
            results = [replace(m, metrics=None) for m in results]
        if not request.include_reasons:
            results = [replace(m, reasons=None) for m in results]

        logger.info(
            f"Found {len(results)} matches for {source.id} among {len(eligible)} candidates "
            f"(profile={profile.id}, threshold={threshold}) in {(time.monotonic() - start) * 1000:.1f}ms"
        )
        return results

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def compute_all_matches(
        self,
        profile_id: Optional[str] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> BatchResult:
        """
        Score every distinct pair of the corpus and persist good matches.

        Args:
            profile_id: Profile id (system default when None)
            timeout: Seconds before pending work is abandoned
                (config timeout_seconds when None)
            cancel_event: Event that stops the run when set

        Returns:
            BatchResult with counts, captured errors and duration
        """
        self.initialize()
        start = time.monotonic()
        profile = self.get_weight_profile(profile_id)
        timeout = self.config.timeout_seconds if timeout is None else timeout
        deadline = start + timeout if timeout is not None else None

        generator = PairGenerator(max_pairs=self.config.max_pairs, random_seed=self.config.random_seed)
        actors, _ = generator.unique_actors(list(self._corpus))
        indices_a, indices_b = generator.generate_pairs(len(actors))

        result = BatchResult(total_pairs=len(indices_a))
        collection = self._collection(profile.id)
        stop_event = threading.Event()
        buffer: List[Match] = []

        logger.info(
            f"Starting batch: {result.total_pairs} pairs, profile={profile.id}, "
            f"workers={self.config.max_workers}"
        )

        executor = ThreadPoolExecutor(max_workers=self.config.max_workers)
        try:
            pending = {
                executor.submit(self._process_chunk, chunk, profile, stop_event)
                for chunk in generator.iter_chunks(actors, indices_a, indices_b, self.config.chunk_size)
            }

            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    logger.warning("Batch cancelled")
                    result.cancelled = True
                elif deadline is not None and time.monotonic() >= deadline:
                    logger.warning(f"Batch timed out after {timeout}s")
                    result.cancelled = True
                if result.cancelled:
                    break

                wait_for = POLL_INTERVAL_SECONDS
                if deadline is not None:
                    wait_for = max(0.0, min(wait_for, deadline - time.monotonic()))
                done, pending = wait(pending, timeout=wait_for, return_when=FIRST_COMPLETED)

                for future in done:
                    self._consume_chunk(future, result, buffer)
                while len(buffer) >= self.config.batch_size:
                    self._flush(collection, buffer[:self.config.batch_size], result)
                    del buffer[:self.config.batch_size]

            if result.cancelled:
                stop_event.set()
                for future in pending:
                    if future.done():
                        self._consume_chunk(future, result, buffer)
                    else:
                        future.cancel()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        for i in range(0, len(buffer), self.config.batch_size):
            self._flush(collection, buffer[i:i + self.config.batch_size], result)

        result.duration_ms = (time.monotonic() - start) * 1000
        logger.info(
            f"Batch finished: success={result.success}, failed={result.failed}, "
            f"skipped={result.skipped}, persisted={result.persisted}, "
            f"cancelled={result.cancelled}, duration={result.duration_ms:.0f}ms"
        )
        return result

    def _process_chunk(
        self,
        chunk: List[Tuple[Actor, Actor]],
        profile: WeightProfile,
        stop_event: threading.Event
    ) -> _ChunkResult:
        """Score a chunk of pairs; per-pair errors are captured, not raised."""
        if stop_event.is_set():
            return _ChunkResult(matches=[], skipped=0, errors=[], processed=False)

        matches = []
        skipped = 0
        errors = []
        for actor_a, actor_b in chunk:
            try:
                match = self.calculate_match(actor_a, actor_b, profile, use_cache=False)
            except Exception as e:
                errors.append((pair_key(actor_a.id, actor_b.id), e))
                continue
            if match.score >= profile.threshold:
                matches.append(match)
            else:
                skipped += 1
        return _ChunkResult(matches=matches, skipped=skipped, errors=errors)

    @staticmethod
    def _consume_chunk(future: Future, result: BatchResult, buffer: List[Match]) -> None:
        if future.cancelled():
            return
        try:
            chunk_result = future.result()
        except Exception as e:
            logger.error(f"Batch chunk failed: {e}")
            result.record_error("chunk", e)
            return

        if not chunk_result.processed:
            return
        buffer.extend(chunk_result.matches)
        result.success += len(chunk_result.matches) + chunk_result.skipped
        result.skipped += chunk_result.skipped
        for pair_id, error in chunk_result.errors:
            logger.debug(f"Pair {pair_id} failed: {error}")
            result.record_error(pair_id, error)

    def _flush(self, collection: str, matches: List[Match], result: BatchResult) -> None:
        """Write one batch of matches; write failures are recorded, not raised."""
        if not matches:
            return
        try:
            written = self.store.batch_write(collection, [(m.edge_id, m.to_dict()) for m in matches])
        except Exception as e:
            logger.error(f"Failed to write {len(matches)} matches to {collection}: {e}")
            result.errors.append({"id": f"write:{matches[0].edge_id}", "error": str(e)})
            return
        result.persisted += written
        logger.debug(f"Persisted {written} matches to {collection}")

    # ------------------------------------------------------------------
    # Persistence and cache
    # ------------------------------------------------------------------

    def save_match(self, match: Match) -> None:
        """Persist one match, overwriting the pair's previous document."""
        self.store.put(self._collection(match.profile_id), match.edge_id, match.to_dict())

    def clear_cache(self) -> None:
        try:
            self.cache.clear()
        except Exception as e:
            logger.debug(f"Match cache clear failed: {e}")

    def _collection(self, profile_id: str) -> str:
        return f"{self.config.matches_collection}/{profile_id}"

    @staticmethod
    def _cache_profile_key(profile: WeightProfile) -> str:
        # Profile ids survive edits; the fingerprint does not
        return f"{profile.id}@{profile.scoring_fingerprint()}"

    def _cache_get(self, actor_a: str, actor_b: str, profile: WeightProfile) -> Optional[Match]:
        try:
            return self.cache.get(actor_a, actor_b, self._cache_profile_key(profile))
        except Exception as e:
            logger.debug(f"Match cache read failed, recomputing: {e}")
            return None

    def _cache_set(self, match: Match, profile: WeightProfile) -> None:
        try:
            self.cache.set(match.a, match.b, self._cache_profile_key(profile), match)
        except Exception as e:
            logger.debug(f"Match cache write failed: {e}")


def create_engine_from_config(
    config: Dict[str, Any],
    corpus: Iterable[Actor],
    weights: WeightsManager,
    store: DocumentStore,
    scans: Optional[Iterable[BadgeScan]] = None,
    clock: Optional[Callable[[], int]] = None,
) -> MatchEngine:
    """
    Factory function to create a MatchEngine from config.

    Args:
        config: Main configuration dictionary
        corpus: Actor snapshot
        weights: WeightsManager
        store: DocumentStore
        scans: Badge scans
        clock: Epoch-millisecond clock

    Returns:
        Configured MatchEngine
    """
    engine_config = EngineConfig.from_config(config)
    cache = InMemoryMatchCache(ttl_seconds=engine_config.cache_ttl_seconds)
    return MatchEngine(corpus, weights, store, cache=cache, scans=scans, config=engine_config, clock=clock)
