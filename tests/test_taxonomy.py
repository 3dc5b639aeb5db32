"""Tests for taxonomy analytics."""

import pytest

from matchmaking.exceptions import NotFoundError, ValidationError
from matchmaking.taxonomy import TaxonomyAnalyzer, TaxonomyRequest, value_group

from conftest import NOW


@pytest.fixture
def analyzer(corpus):
    return TaxonomyAnalyzer(corpus, clock=lambda: NOW)


class TestRequests:
    """Test request validation and filtering."""

    def test_metadata(self, analyzer):
        result = analyzer.generate_visualization(TaxonomyRequest("distribution", "category"))
        assert result["dimension"] == "category"
        assert result["visualization"] == "distribution"
        assert result["metadata"]["total_actors"] == 6
        assert result["metadata"]["unique_values"] == 3
        assert result["metadata"]["coverage"] == pytest.approx(4 / 6 * 100)
        assert result["metadata"]["generated_at"] == NOW.isoformat()

    @pytest.mark.parametrize("request_args", [
        {"visualization": "pie_chart"},
        {"visualization": "heatmap", "dimension": "colour"},
        {"visualization": "heatmap", "filters": {"planet": ["mars"]}},
        {"visualization": "heatmap", "top_n": 0},
    ])
    def test_invalid_requests(self, analyzer, request_args):
        with pytest.raises(ValidationError):
            analyzer.generate_visualization(TaxonomyRequest(**request_args))

    def test_filters(self, analyzer):
        result = analyzer.generate_visualization(
            TaxonomyRequest("distribution", "category", filters={"actor_type": ["Sponsor"]})
        )
        assert result["metadata"]["total_actors"] == 1
        assert [row["value"] for row in result["data"]["data"]] == ["gaming"]

    def test_no_matching_actors(self, analyzer):
        with pytest.raises(NotFoundError):
            analyzer.generate_visualization(
                TaxonomyRequest("heatmap", filters={"category": ["finance"]})
            )


class TestVisualizations:
    """Test each visualization over the shared corpus."""

    def test_distribution(self, analyzer):
        data = analyzer.generate_visualization(TaxonomyRequest("distribution", "category"))["data"]
        rows = data["data"]
        assert [(r["rank"], r["value"], r["count"]) for r in rows] == [
            (1, "gaming", 3), (2, "technology", 2), (3, "media", 1)
        ]
        assert rows[0]["percentage"] == pytest.approx(50.0)
        assert [e["id"] for e in rows[0]["examples"]] == ["c1", "c2", "s1"]
        assert data["statistics"] == {
            "total_values": 3,
            "total_occurrences": 6,
            "mean": 2.0,
            "median": 2.0,
            "max": 3,
            "min": 1,
            "range": 2,
        }

    def test_distribution_long_tail(self, corpus):
        analyzer = TaxonomyAnalyzer(corpus, top_values=2)
        data = analyzer.generate_visualization(TaxonomyRequest("distribution", "category"))["data"]
        assert len(data["top_values"]) == 2
        assert [r["value"] for r in data["long_tail"]] == ["media"]

    def test_heatmap(self, analyzer):
        data = analyzer.generate_visualization(TaxonomyRequest("heatmap", "category"))["data"]
        assert data["labels"] == ["gaming", "media", "technology"]
        assert data["matrix"] == [[3, 1, 1], [1, 1, 0], [1, 0, 2]]
        assert data["max_value"] == 3
        assert len(data["cells"]) == 9

    def test_heatmap_top_n(self, analyzer):
        data = analyzer.generate_visualization(TaxonomyRequest("heatmap", "category", top_n=2))["data"]
        assert data["labels"] == ["gaming", "technology"]
        assert data["matrix"] == [[3, 1], [1, 2]]

    def test_capability_need_heatmap(self, analyzer):
        data = analyzer.generate_visualization(TaxonomyRequest("capability_need_heatmap"))["data"]
        supply = {row["need"]: row["supply"] for row in data["supply_demand"]}
        assert supply["publishing"] == 1
        assert supply["funding"] == 1
        assert data["unmet_needs"] == ["brand exposure", "customers", "rpg content"]
        assert len(data["matrix"]) == len(data["capabilities"])

    def test_network_graph(self, analyzer):
        data = analyzer.generate_visualization(TaxonomyRequest("network_graph", "category"))["data"]
        assert data["min_weight"] == 1
        assert [n["name"] for n in data["nodes"]] == ["gaming", "media", "technology"]
        assert [n["group"] for n in data["nodes"]] == ["gaming", "media", "technology"]
        assert {(e["source"], e["target"]) for e in data["edges"]} == {(0, 1), (0, 2)}

    def test_network_min_weight(self, corpus):
        """A higher floor drops edges supported by a single actor."""
        analyzer = TaxonomyAnalyzer(corpus, network_min_share=0.5)
        data = analyzer.generate_visualization(TaxonomyRequest("network_graph", "category"))["data"]
        assert data["min_weight"] == 3
        assert data["edges"] == []

    def test_correlation(self, analyzer):
        data = analyzer.generate_visualization(TaxonomyRequest("correlation", "category"))["data"]
        assert data["primary_dimension"] == "category"
        strengths = [c["strength"] for c in data["correlations"]]
        assert strengths == sorted(strengths, reverse=True)
        for entry in data["correlations"]:
            assert entry["dimension"] != "category"
            assert 0.0 <= entry["strength"] <= 1.0
            assert len(entry["significant_pairs"]) <= 10
            assert all(p["jaccard"] > 0.1 for p in entry["significant_pairs"])


class TestValueGroups:
    """Test network node grouping."""

    def test_keyword_groups(self):
        assert value_group("Mobile Games", "platform") == "mobile"
        assert value_group("xbox", "platform") == "console"
        assert value_group("finance", "category") == "other"

    def test_alphabet_groups(self):
        assert value_group("analytics", "capability") == "a-f"
        assert value_group("zebra", "tag") == "s-z"
        assert value_group("42", "tag") == "other"
