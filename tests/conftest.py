"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from matchmaking.engine import EngineConfig, MatchEngine
from matchmaking.schema import Actor, BadgeScan
from matchmaking.signals import SignalEngine, AttendeeSignalEngine
from matchmaking.storage import InMemoryDocumentStore
from matchmaking.weights import WeightsManager

NOW = datetime(2025, 8, 20, 12, 0, tzinfo=timezone.utc)
NOW_MS = int(NOW.timestamp() * 1000)


@pytest.fixture
def clock_ms():
    """Fixed epoch-millisecond clock."""
    return lambda: NOW_MS


@pytest.fixture
def companies() -> List[Actor]:
    """Companies and a sponsor with overlapping attributes."""
    return [
        Actor(
            id="c1",
            name="Pixel Forge",
            actor_type="company",
            stage="Startup",
            categories=["Gaming", "Technology"],
            platforms=["PC", "Console"],
            markets=["NA", "EU"],
            capabilities=["game development", "unity"],
            needs=["publishing", "funding"],
            tags=["indie", "rpg"],
            text={"description": "Indie studio building a fantasy RPG for PC and console"},
            numeric={"rating": 4.5, "team": 12, "price": 20},
            dates={"created": "2021-03-01", "released": "2025-10-01"},
        ),
        Actor(
            id="c2",
            name="Nova Publishing",
            actor_type="company",
            stage="Enterprise",
            categories=["Gaming", "Media"],
            platforms=["PC", "Console", "Mobile"],
            markets=["NA", "EU", "Asia"],
            capabilities=["publishing", "marketing", "localization"],
            needs=["game development", "rpg content"],
            tags=["publisher", "rpg"],
            text={"description": "Global publisher of RPG and strategy games for console and PC"},
            numeric={"rating": 4.2, "team": 300, "price": 40},
            dates={"created": "2005-06-15"},
        ),
        Actor(
            id="c3",
            name="Cloud Stack",
            actor_type="company",
            stage="Scale",
            categories=["Technology"],
            platforms=["Web"],
            markets=["NA"],
            capabilities=["hosting", "analytics"],
            needs=["customers"],
            tags=["saas"],
            text={"description": "Cloud hosting and analytics for online games"},
            numeric={"rating": 3.9, "team": 80, "price": 99},
            dates={"created": "2015-01-10"},
        ),
        Actor(
            id="s1",
            name="Mega Sponsor",
            actor_type="sponsor",
            stage="Enterprise",
            sponsor_tier="Platinum",
            categories=["Gaming"],
            markets=["NA", "EU"],
            capabilities=["funding", "marketing"],
            needs=["brand exposure"],
            text={"description": "Investment fund backing game studios"},
        ),
    ]


@pytest.fixture
def attendees() -> List[Actor]:
    """Two attendees with one shared time slot."""
    return [
        Actor(
            id="a1",
            name="Dana Dev",
            actor_type="attendee",
            roles=["Developer"],
            interests=["publishing", "funding"],
            bio="Indie developer building RPG games",
            availability=[{"day": "day1", "slots": ["09:00", "10:00"]}],
            meeting_locations=["Expo Floor"],
        ),
        Actor(
            id="a2",
            name="Ira Investor",
            actor_type="attendee",
            roles=["Investor"],
            interests=["game development"],
            bio="Early stage investor in game studios",
            availability=[{"day": "day1", "slots": ["10:00", "11:00"]}],
            meeting_locations=["Cabanas"],
        ),
    ]


@pytest.fixture
def corpus(companies, attendees) -> List[Actor]:
    return companies + attendees


@pytest.fixture
def scans() -> List[BadgeScan]:
    """a1 scanned c2 twice (latest 2h ago); a2 scanned s1 beyond the horizon."""
    return [
        BadgeScan("a1", "c2", NOW - timedelta(hours=100), "booth"),
        BadgeScan("c2", "a1", NOW - timedelta(hours=2), "booth"),
        BadgeScan("a2", "s1", NOW - timedelta(hours=100), "lounge"),
    ]


@pytest.fixture
def signal_engine(corpus) -> SignalEngine:
    engine = SignalEngine()
    engine.initialize(corpus)
    return engine


@pytest.fixture
def attendee_engine(signal_engine, scans, clock_ms) -> AttendeeSignalEngine:
    engine = AttendeeSignalEngine(signal_engine, clock=clock_ms)
    engine.initialize_scans(scans)
    return engine


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def weights_manager(store) -> WeightsManager:
    return WeightsManager(store, clock=lambda: NOW)


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(max_workers=2, chunk_size=3, batch_size=4)


@pytest.fixture
def engine(corpus, weights_manager, store, scans, clock_ms, engine_config) -> MatchEngine:
    match_engine = MatchEngine(
        corpus,
        weights_manager,
        store,
        scans=scans,
        config=engine_config,
        clock=clock_ms,
    )
    match_engine.initialize()
    return match_engine
