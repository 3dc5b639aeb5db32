"""
Wiring of the matching system from a configuration file.

Builds the document store, weights manager, match engine and taxonomy
analyzer for one corpus snapshot, seeds the persona default profiles and
runs the engine's one-time initialization.

Usage:
    config = load_config("configs/config.yaml")
    system = build_system(config, actors, scans)
    matches = system.engine.find_matches(MatchRequest(actor_id="c1"))
"""

import logging
from dataclasses import dataclass
from typing import Dict, Any, Callable, Iterable, Optional

from .configs import validate_config
from .engine import MatchEngine, create_engine_from_config
from .schema import Actor, BadgeScan
from .storage import DocumentStore, InMemoryDocumentStore
from .taxonomy import TaxonomyAnalyzer
from .weights import WeightsManager, PROFILES_COLLECTION

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_level: str = "INFO") -> None:
    """Configure root logging with the standard format and level."""
    level = getattr(logging, str(log_level).upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


@dataclass
class MatchmakingSystem:
    """Collaborators built for one corpus snapshot."""
    config: Dict[str, Any]
    store: DocumentStore
    weights: WeightsManager
    engine: MatchEngine
    taxonomy: TaxonomyAnalyzer


def build_system(
    config: Dict[str, Any],
    corpus: Iterable[Actor],
    scans: Optional[Iterable[BadgeScan]] = None,
    store: Optional[DocumentStore] = None,
    clock: Optional[Callable[[], int]] = None,
    initialize: bool = True,
) -> MatchmakingSystem:
    """
    Build and initialize the matching system.

    Args:
        config: Main configuration dictionary
        corpus: Actor snapshot
        scans: Badge scans
        store: DocumentStore (in-memory when None)
        clock: Epoch-millisecond clock for the engine
        initialize: Seed default profiles and initialize the engine

    Returns:
        MatchmakingSystem
    """
    issues = validate_config(config)
    for issue in issues:
        logger.warning(f"Config issue: {issue}")

    setup_logging(config.get("global", {}).get("log_level", "INFO"))

    corpus = list(corpus)
    store = store if store is not None else InMemoryDocumentStore()
    weights_config = config.get("weights", {})
    weights = WeightsManager(store, collection=weights_config.get("collection", PROFILES_COLLECTION))
    engine = create_engine_from_config(config, corpus, weights, store, scans=scans, clock=clock)
    taxonomy_config = config.get("taxonomy", {})
    taxonomy = TaxonomyAnalyzer(
        corpus,
        network_min_share=taxonomy_config.get("network_min_share", 0.02),
        top_values=taxonomy_config.get("top_values", 20),
    )

    if initialize:
        if weights_config.get("seed_defaults", True):
            profiles = weights.initialize_default_profiles()
            logger.info(f"Default weight profiles ready: {[p.id for p in profiles]}")
        engine.initialize()

    return MatchmakingSystem(config=config, store=store, weights=weights, engine=engine, taxonomy=taxonomy)
