"""Tests for weight profile management."""

import pytest

from matchmaking.exceptions import NotFoundError, ValidationError
from matchmaking.weights import PERSONAS, PERSONA_TEMPLATES, WeightProfile

from conftest import NOW


@pytest.fixture
def custom_profile(weights_manager):
    return weights_manager.create_profile(
        {"name": "Booth Scouting", "persona": "publisher", "weights": {"text_cosine": 4.0}},
        created_by="ops",
    )


class TestDefaults:
    """Test persona default profiles."""

    def test_list_seeds_defaults(self, weights_manager):
        profiles = weights_manager.list_profiles()
        assert {p.persona for p in profiles} == set(PERSONAS)
        assert all(p.is_default for p in profiles)

    def test_system_default(self, weights_manager):
        profile = weights_manager.get_system_default()
        assert profile.id == "default"
        assert profile.persona == "general"
        assert profile.weights == PERSONA_TEMPLATES["general"]["weights"]

    def test_persona_default_created_once(self, weights_manager, store):
        first = weights_manager.get_default_profile_for_persona("investor")
        second = weights_manager.get_default_profile_for_persona("investor")
        assert first.id == second.id == "default_investor"
        assert store.count("weight_profiles") == 1

    def test_unknown_persona(self, weights_manager):
        with pytest.raises(ValidationError):
            weights_manager.get_default_profile_for_persona("astronaut")

    def test_defaults_cannot_be_deleted(self, weights_manager):
        weights_manager.initialize_default_profiles()
        with pytest.raises(ValidationError):
            weights_manager.delete_profile("default")

    def test_list_orders_defaults_first(self, weights_manager, custom_profile):
        weights_manager.initialize_default_profiles()
        profiles = weights_manager.list_profiles()
        assert profiles[-1].id == custom_profile.id
        assert [p.id for p in weights_manager.list_profiles("publisher")] == ["default_publisher", custom_profile.id]


class TestCrud:
    """Test creating, reading, updating and deleting profiles."""

    def test_create_merges_template(self, custom_profile):
        template = PERSONA_TEMPLATES["publisher"]
        assert custom_profile.weights["text_cosine"] == 4.0
        assert custom_profile.weights["bipartite"] == template["weights"]["bipartite"]
        assert custom_profile.top_n == template["top_n"]
        assert not custom_profile.is_default
        assert custom_profile.created_by == "ops"
        assert custom_profile.created_at == NOW

    def test_create_requires_name_and_persona(self, weights_manager):
        with pytest.raises(ValidationError):
            weights_manager.create_profile({"persona": "general"})
        with pytest.raises(ValidationError):
            weights_manager.create_profile({"name": "No persona"})

    def test_create_ignores_supplied_id(self, weights_manager):
        profile = weights_manager.create_profile({"id": "default", "name": "Sneaky", "persona": "general"})
        assert profile.id != "default"

    def test_get_unknown(self, weights_manager):
        with pytest.raises(NotFoundError):
            weights_manager.get_profile("missing")

    def test_update(self, weights_manager, custom_profile):
        updated = weights_manager.update_profile(
            custom_profile.id, {"threshold": 0.5, "is_default": True, "created_by": "mallory"}
        )
        assert updated.threshold == 0.5
        assert not updated.is_default
        assert updated.created_by == "ops"
        assert weights_manager.get_profile(custom_profile.id).threshold == 0.5

    def test_update_rejects_invalid(self, weights_manager, custom_profile):
        with pytest.raises(ValidationError):
            weights_manager.update_profile(custom_profile.id, {"threshold": 1.5})
        assert weights_manager.get_profile(custom_profile.id).threshold == custom_profile.threshold

    def test_delete(self, weights_manager, custom_profile):
        weights_manager.delete_profile(custom_profile.id)
        with pytest.raises(NotFoundError):
            weights_manager.get_profile(custom_profile.id)

    def test_duplicate(self, weights_manager, custom_profile):
        copy = weights_manager.duplicate_profile(custom_profile.id, "Scouting v2")
        assert copy.id != custom_profile.id
        assert copy.name == "Scouting v2"
        assert copy.description == "Copy of Booth Scouting"
        assert copy.weights == custom_profile.weights
        assert not copy.is_default


class TestValidation:
    """Test hard errors and warnings."""

    def test_unknown_signal_warns(self, weights_manager):
        warnings = weights_manager.validate_profile(
            {"name": "X", "persona": "general", "weights": {"vibes": 1.0, "bipartite": 1.0}}
        )
        assert len(warnings) == 1
        assert "vibes" in warnings[0]

    def test_adjustment_field_warns(self, weights_manager):
        warnings = weights_manager.validate_profile(
            {"name": "X", "persona": "general", "weights": {"scan_boost": 1.0}}
        )
        assert "scan_boost" in warnings[0]

    @pytest.mark.parametrize("changes", [
        {"weights": {"bipartite": "heavy"}},
        {"weights": {"bipartite": float("nan")}},
        {"weights": {"bipartite": True}},
        {"threshold": -0.1},
        {"top_n": 0},
        {"normalize": {"method": "softmax"}},
        {"normalize": {"method": "zexp", "temperature": 0}},
    ])
    def test_hard_errors(self, weights_manager, changes):
        with pytest.raises(ValidationError):
            weights_manager.create_profile({"name": "Bad", "persona": "general", **changes})

    def test_negative_weights_allowed(self, weights_manager):
        profile = weights_manager.create_profile(
            {"name": "Penalize names", "persona": "general", "weights": {"name_levenshtein": -1.0}}
        )
        assert profile.weights["name_levenshtein"] == -1.0


class TestExchange:
    """Test export, import and experiment variants."""

    def test_export_format(self, weights_manager, custom_profile):
        exported = weights_manager.export_profile(custom_profile.id)
        assert exported["version"] == "1.0"
        assert exported["exported_at"] == NOW.isoformat()
        assert set(exported["profile"]) == {
            "name", "description", "persona", "weights", "normalize", "top_n", "threshold"
        }

    def test_export_import_preserves_settings(self, weights_manager, custom_profile):
        imported = weights_manager.import_profile(weights_manager.export_profile(custom_profile.id))
        assert imported.id != custom_profile.id
        for name in ("name", "description", "persona", "weights", "top_n", "threshold"):
            assert getattr(imported, name) == getattr(custom_profile, name)
        assert imported.normalize == custom_profile.normalize
        assert not imported.is_default

    def test_import_rejects_bad_format(self, weights_manager):
        with pytest.raises(ValidationError):
            weights_manager.import_profile({"name": "flat"})
        with pytest.raises(ValidationError):
            weights_manager.import_profile({"profile": {"name": "no version"}})

    def test_test_variants(self, weights_manager, custom_profile):
        variants = weights_manager.generate_test_variants(custom_profile.id, [
            {"name": "More text", "adjustments": {"text_cosine": 6.0}},
            {"name": "No stage", "adjustments": {"stage_complement": 0.0}},
        ])
        assert [v.name for v in variants] == ["Booth Scouting - More text", "Booth Scouting - No stage"]
        assert variants[0].weights["text_cosine"] == 6.0
        assert variants[1].weights["stage_complement"] == 0.0
        assert variants[1].weights["text_cosine"] == 4.0
        assert len({v.id for v in variants}) == 2

    def test_variant_needs_name(self, weights_manager, custom_profile):
        with pytest.raises(ValidationError):
            weights_manager.generate_test_variants(custom_profile.id, [{"adjustments": {}}])

    def test_profile_file_round_trip(self, tmp_path, custom_profile):
        path = tmp_path / "profile.json"
        custom_profile.save(str(path))
        loaded = WeightProfile.load(str(path))
        assert loaded.to_dict() == custom_profile.to_dict()
