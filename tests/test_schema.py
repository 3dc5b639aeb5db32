"""Tests for actor records and match request types."""

from datetime import datetime, timezone

import pytest

from matchmaking.exceptions import ValidationError
from matchmaking.schema import (
    Actor,
    ActorType,
    BadgeScan,
    BatchResult,
    MatchFilters,
    MatchRequest,
    pair_key,
    to_datetime,
)


class TestActor:
    """Test actor normalization."""

    def test_lists_are_cleaned(self):
        actor = Actor(id=" x ", platforms=["PC", "pc", " Console ", "", None])
        assert actor.id == "x"
        assert actor.platforms == ["PC", "Console"]

    def test_actor_type_from_string(self):
        assert Actor(id="x", actor_type="Sponsor").actor_type is ActorType.SPONSOR
        with pytest.raises(ValidationError):
            Actor(id="x", actor_type="robot")

    def test_id_required(self):
        with pytest.raises(ValidationError):
            Actor(id="  ")

    def test_dates_parsed(self):
        actor = Actor(id="x", dates={"created": "2024-05-01", "released": None})
        assert actor.dates == {"created": datetime(2024, 5, 1, tzinfo=timezone.utc)}

    def test_invalid_date(self):
        with pytest.raises(ValidationError):
            Actor(id="x", dates={"created": "last spring"})

    def test_invalid_numeric(self):
        with pytest.raises(ValidationError):
            Actor(id="x", numeric={"team_size": "n/a"})

    def test_dict_round_trip(self):
        actor = Actor(
            id="a1", actor_type="attendee", roles=["Developer"],
            availability=[{"day": "day1", "slots": ["09:00"]}],
        )
        restored = Actor.from_dict({**actor.to_dict(), "unknown": 1})
        assert restored == actor


class TestHelpers:
    """Test pair keys, dates and badge scans."""

    def test_pair_key_is_canonical(self):
        assert pair_key("b", "a") == pair_key("a", "b") == "a__b"

    def test_epoch_milliseconds(self):
        assert to_datetime(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_scan_requires_timestamp(self):
        with pytest.raises(ValidationError):
            BadgeScan("a", "b", None)

    def test_batch_result_errors(self):
        result = BatchResult()
        result.record_error("a__b", ValueError("boom"))
        assert result.failed == 1
        assert result.to_dict()["errors"] == [{"id": "a__b", "error": "boom"}]


class TestMatchRequest:
    """Test request and filter validation."""

    def test_filters_accept(self):
        filters = MatchFilters(platforms=["PC"], stages=["startup"])
        assert filters.accepts(Actor(id="x", platforms=["pc"], stage="Startup"))
        assert not filters.accepts(Actor(id="y", platforms=["pc"]))
        assert MatchFilters().is_empty()

    @pytest.mark.parametrize("kwargs", [
        {},
        {"actor_id": "x", "limit": 0},
        {"actor_id": "x", "threshold": 1.5},
    ])
    def test_invalid_requests(self, kwargs):
        with pytest.raises(ValidationError):
            MatchRequest(**kwargs)
