"""Tests for pair scoring and top-N search."""

from dataclasses import replace

import pytest

from matchmaking.caching import MatchCache
from matchmaking.engine import MatchEngine
from matchmaking.exceptions import NotFoundError, ValidationError
from matchmaking.schema import Actor, MatchRequest
from matchmaking.storage import InMemoryDocumentStore
from matchmaking.weights import WeightsManager

from conftest import NOW


class BrokenCache(MatchCache):
    """Cache whose backend is always down."""

    @property
    def ttl_seconds(self):
        return 60

    def get(self, actor_a, actor_b, profile_id):
        raise ConnectionError("cache unavailable")

    def set(self, actor_a, actor_b, profile_id, match):
        raise ConnectionError("cache unavailable")

    def clear(self):
        raise ConnectionError("cache unavailable")


@pytest.fixture
def complement_engine(clock_ms):
    """Three actors where A and B complement each other and C has nothing."""
    corpus = [
        Actor(id="A", name="Alpha", capabilities=["publishing", "localization"], needs=["funding"]),
        Actor(id="B", name="Beta", capabilities=["funding"], needs=["publishing"]),
        Actor(id="C", name="Gamma"),
    ]
    store = InMemoryDocumentStore()
    weights = WeightsManager(store, clock=lambda: NOW)
    profile = weights.create_profile(
        {"name": "Fit only", "persona": "general", "weights": {"bipartite": 1.0}},
        merge_template=False,
    )
    engine = MatchEngine(corpus, weights, store, clock=clock_ms)
    engine.initialize()
    return engine, profile


class TestCalculateMatch:
    """Test single pair scoring."""

    def test_complementary_pair(self, complement_engine):
        engine, profile = complement_engine
        match = engine.calculate_match(engine.get_actor("A"), engine.get_actor("B"), profile)
        assert match.metrics["bipartite"] > 0
        assert match.score > 0.5
        assert match.confidence == pytest.approx(1.0)
        assert match.reasons == ["Complementary capabilities and needs (100% fit)"]

    def test_pair_without_inputs(self, complement_engine):
        """Missing inputs on C leave nothing to score and no confidence."""
        engine, profile = complement_engine
        match = engine.calculate_match(engine.get_actor("A"), engine.get_actor("C"), profile)
        assert "bipartite" not in match.metrics
        assert match.score == 0.0
        assert match.confidence == 0.0
        assert match.contributions == []

    def test_symmetric_and_canonical(self, engine):
        c1, c2 = engine.get_actor("c1"), engine.get_actor("c2")
        forward = engine.calculate_match(c1, c2, use_cache=False)
        backward = engine.calculate_match(c2, c1, use_cache=False)
        assert forward.edge_id == backward.edge_id == "c1__c2"
        assert (forward.a, forward.b) == ("c1", "c2")
        assert forward.score == pytest.approx(backward.score)
        assert forward.to_dict() == backward.to_dict()

    def test_deterministic_across_engines(self, corpus, scans, clock_ms, engine_config):
        """Same snapshot, profile and clock give the same document."""
        results = []
        for _ in range(2):
            store = InMemoryDocumentStore()
            weights = WeightsManager(store, clock=lambda: NOW)
            engine = MatchEngine(corpus, weights, store, scans=scans, config=engine_config, clock=clock_ms)
            match = engine.calculate_match(engine.get_actor("c1"), engine.get_actor("s1"))
            results.append(match.to_dict())
        assert results[0] == results[1]

    def test_self_pair_rejected(self, engine):
        c1 = engine.get_actor("c1")
        with pytest.raises(ValidationError):
            engine.calculate_match(c1, c1)

    def test_score_and_confidence_bounds(self, engine):
        actors = engine.corpus
        for i, actor_a in enumerate(actors):
            for actor_b in actors[i + 1:]:
                match = engine.calculate_match(actor_a, actor_b)
                assert 0.0 <= match.score <= 1.0
                assert 0.0 <= match.confidence <= 1.0
                impacts = [c.contribution for c in match.contributions]
                assert impacts == sorted(impacts, reverse=True)

    def test_match_records_profile(self, engine):
        match = engine.calculate_match(engine.get_actor("c1"), engine.get_actor("c3"))
        assert match.profile_id == "default"
        assert match.weights == engine.get_weight_profile().weight_snapshot()
        assert match.created_at == NOW

    def test_scan_adjustment_and_reason(self, engine):
        """A recent badge scan boosts the score and leads the reasons."""
        match = engine.calculate_match(engine.get_actor("a1"), engine.get_actor("c2"))
        assert match.adjustments["scan_boost"] > 0
        assert match.reasons[0] == "Recent badge scan interaction"
        assert all(c.key != "scan_boost" for c in match.contributions)

    def test_availability_adjustment(self, engine):
        match = engine.calculate_match(engine.get_actor("a1"), engine.get_actor("a2"))
        assert match.adjustments["availability_factor"] == pytest.approx(1 - 0.25 * (1 - 1 / 3))

    def test_unknown_actor(self, engine):
        with pytest.raises(NotFoundError):
            engine.get_actor("nope")


class TestMatchCache:
    """Test reuse and invalidation of cached matches."""

    def test_cached_match_reused(self, engine):
        c1, c2 = engine.get_actor("c1"), engine.get_actor("c2")
        first = engine.calculate_match(c1, c2)
        assert engine.calculate_match(c2, c1) is first

    def test_changed_weights_invalidate(self, engine, weights_manager):
        c1, c2 = engine.get_actor("c1"), engine.get_actor("c2")
        first = engine.calculate_match(c1, c2)
        weights_manager.update_profile("default", {"weights": {"bipartite": 1.0}})
        second = engine.calculate_match(c1, c2)
        assert second is not first
        assert second.weights == {"bipartite": 1.0}

    def test_changed_normalization_invalidates(self, engine, weights_manager):
        """Editing only the normalization must not serve the old score."""
        c1, c2 = engine.get_actor("c1"), engine.get_actor("c2")
        first = engine.calculate_match(c1, c2)
        weights_manager.update_profile("default", {"normalize": {"method": "minmax"}})
        second = engine.calculate_match(c1, c2)
        assert second is not first
        assert second.score == engine.calculate_match(c1, c2, use_cache=False).score
        assert engine.calculate_match(c2, c1) is second

    def test_broken_cache_degrades(self, corpus, weights_manager, store, clock_ms):
        """Cache failures only cost a recomputation."""
        engine = MatchEngine(corpus, weights_manager, store, cache=BrokenCache(), clock=clock_ms)
        match = engine.calculate_match(engine.get_actor("c1"), engine.get_actor("c2"))
        assert 0.0 <= match.score <= 1.0
        engine.clear_cache()


class TestSaveMatch:
    """Test persisting single matches."""

    def test_save_overwrites_in_place(self, engine, store):
        match = engine.calculate_match(engine.get_actor("c1"), engine.get_actor("c2"))
        engine.save_match(match)
        engine.save_match(replace(match, score=0.99))
        assert store.count("matches/default") == 1
        assert store.get("matches/default", match.edge_id)["score"] == 0.99


class TestFindMatches:
    """Test top-N search."""

    def test_excludes_source_and_sorts(self, engine):
        results = engine.find_matches(MatchRequest(actor_id="c1", threshold=0.0, limit=100))
        ids = [m.b if m.a == "c1" else m.a for m in results]
        assert "c1" not in ids
        assert len(ids) == len(set(ids)) == 5
        keys = [(-m.score, m.edge_id) for m in results]
        assert keys == sorted(keys)

    def test_threshold_and_limit(self, engine):
        all_results = engine.find_matches(MatchRequest(actor_id="c1", threshold=0.0, limit=100))
        threshold = all_results[2].score
        results = engine.find_matches(MatchRequest(actor_id="c1", threshold=threshold, limit=100))
        assert all(m.score >= threshold for m in results)
        assert len(engine.find_matches(MatchRequest(actor_id="c1", threshold=0.0, limit=2))) == 2

    def test_profile_defaults(self, engine):
        """Without a threshold the profile's threshold applies."""
        profile = engine.get_weight_profile()
        results = engine.find_matches(MatchRequest(actor_id="c1"))
        assert len(results) <= profile.top_n
        assert all(m.score >= profile.threshold for m in results)

    def test_filters(self, engine):
        request = MatchRequest(actor_id="c1", threshold=0.0, filters={"platforms": ["mobile"]})
        results = engine.find_matches(request)
        assert [m.edge_id for m in results] == ["c1__c2"]

    def test_stage_filter(self, engine):
        request = MatchRequest(actor_id="c1", threshold=0.0, filters={"stages": ["Enterprise"]})
        results = engine.find_matches(request)
        assert sorted(m.edge_id for m in results) == ["c1__c2", "c1__s1"]

    def test_unknown_stage_filter(self, engine):
        with pytest.raises(ValidationError):
            engine.find_matches(MatchRequest(actor_id="c1", filters={"stages": ["Seed"]}))

    def test_unknown_filter_name(self):
        with pytest.raises(ValidationError):
            MatchRequest(actor_id="c1", filters={"colour": ["red"]})

    def test_candidate_ids(self, engine):
        request = MatchRequest(actor_id="c1", threshold=0.0, candidate_ids=["c3", "c1", "c3"])
        results = engine.find_matches(request)
        assert [m.edge_id for m in results] == ["c1__c3"]

    def test_unknown_candidate(self, engine):
        with pytest.raises(NotFoundError):
            engine.find_matches(MatchRequest(actor_id="c1", candidate_ids=["ghost"]))

    def test_unknown_source(self, engine):
        with pytest.raises(NotFoundError):
            engine.find_matches(MatchRequest(actor_id="ghost"))

    def test_unknown_profile(self, engine):
        with pytest.raises(NotFoundError):
            engine.find_matches(MatchRequest(actor_id="c1", profile_id="missing"))

    def test_trimmed_output(self, engine):
        request = MatchRequest(
            actor_id="c1", threshold=0.0, include_metrics=False, include_reasons=False
        )
        results = engine.find_matches(request)
        assert results
        assert all(m.metrics is None and m.reasons is None for m in results)

    def test_persist(self, engine, store):
        results = engine.find_matches(MatchRequest(actor_id="c1", threshold=0.0, persist=True))
        docs = store.list("matches/default")
        assert sorted(d["edge_id"] for d in docs) == sorted(m.edge_id for m in results)

    def test_persist_keeps_full_documents(self, engine, store):
        """Trimming applies to the returned matches, never to stored documents."""
        engine.compute_all_matches()
        before = store.count("matches/default")
        request = MatchRequest(
            actor_id="c1", threshold=0.0, persist=True, include_metrics=False, include_reasons=False
        )
        results = engine.find_matches(request)
        assert all(m.metrics is None and m.reasons is None for m in results)

        docs = {d["edge_id"]: d for d in store.list("matches/default")}
        assert len(docs) >= before
        for match in results:
            assert docs[match.edge_id]["metrics"] is not None
            assert docs[match.edge_id]["reasons"] is not None

    def test_external_actor(self, engine):
        """A source record outside the snapshot can still be matched."""
        visitor = Actor(id="v1", name="Visitor", platforms=["PC"], needs=["publishing"])
        results = engine.find_matches(MatchRequest(actor=visitor, threshold=0.0, limit=3))
        assert len(results) == 3
