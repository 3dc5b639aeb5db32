"""
Taxonomy analytics over the actor corpus.

Read-only reporting on how categorical values (categories, platforms,
markets, capabilities, needs, ...) are distributed and how they co-occur.
Each visualization returns a JSON-ready dict plus common metadata.

Visualizations:
- heatmap: co-occurrence of values of one dimension within actors
- capability_need_heatmap: capabilities x needs co-occurrence, with supply
  and demand per need
- network_graph: values as nodes, co-occurrence above a floor as edges
- distribution: value counts, percentages and summary statistics
- correlation: association of one dimension with every other dimension
  (Cramer's V and the strongest Jaccard value pairs)

Values are compared case-insensitively and reported in lower case.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Any, List, Optional, Iterable

import numpy as np
import pandas as pd
from scipy.stats import chi2_contingency
from sklearn.preprocessing import MultiLabelBinarizer

from ..exceptions import NotFoundError, ValidationError
from ..schema import Actor

logger = logging.getLogger(__name__)

# Dimension name -> Actor attribute
DIMENSIONS: Dict[str, str] = {
    "category": "categories",
    "platform": "platforms",
    "market": "markets",
    "capability": "capabilities",
    "need": "needs",
    "tag": "tags",
    "stage": "stage",
    "role": "roles",
    "interest": "interests",
    "actor_type": "actor_type",
}

# Dimensions compared against the primary one in correlation reports
CORRELATION_DIMENSIONS = ["category", "platform", "market", "capability", "need", "tag", "stage"]

# Filter name -> dimension
FILTERS: Dict[str, str] = {
    "actor_type": "actor_type",
    "stage": "stage",
    "platform": "platform",
    "market": "market",
    "category": "category",
}

VISUALIZATIONS = ["heatmap", "capability_need_heatmap", "network_graph", "distribution", "correlation"]

# Keyword groups for network node colouring; first matching group wins
VALUE_GROUPS: Dict[str, List[tuple]] = {
    "category": [
        ("gaming", ("game", "gaming")),
        ("technology", ("tech", "software")),
        ("media", ("media", "entertainment")),
    ],
    "platform": [
        ("mobile", ("mobile", "ios", "android")),
        ("pc", ("pc", "steam", "epic")),
        ("console", ("console", "playstation", "xbox", "nintendo")),
        ("web", ("web", "browser")),
    ],
}

ALPHABET_GROUPS = [("a", "f"), ("g", "l"), ("m", "r"), ("s", "z")]

NETWORK_MIN_SHARE = 0.02
CORRELATION_MIN_JACCARD = 0.1
SIGNIFICANT_STRENGTH = 0.3
TOP_VALUES = 20


def value_group(value: str, dimension: str) -> str:
    """
    Deterministic group of a value for network visualization.

    Keyword rules for categories and platforms, alphabetical buckets
    otherwise; values matching nothing fall into "other".
    """
    lowered = value.lower()
    rules = VALUE_GROUPS.get(dimension)
    if rules is not None:
        for group, keywords in rules:
            if any(k in lowered for k in keywords):
                return group
        return "other"

    first = lowered[:1]
    for start, end in ALPHABET_GROUPS:
        if start <= first <= end:
            return f"{start}-{end}"
    return "other"


@dataclass
class TaxonomyRequest:
    """
    Taxonomy visualization request.

    Attributes:
        visualization: One of VISUALIZATIONS
        dimension: Primary dimension (key of DIMENSIONS)
        filters: Filter name -> accepted values (any match passes)
        top_n: Restrict heatmaps to the most frequent values (None for all)
    """
    visualization: str
    dimension: str = "category"
    filters: Dict[str, List[str]] = field(default_factory=dict)
    top_n: Optional[int] = None

    def validate(self) -> None:
        """Validate the request."""
        if self.visualization not in VISUALIZATIONS:
            raise ValidationError(f"Unsupported visualization type: {self.visualization}")
        if self.dimension not in DIMENSIONS:
            raise ValidationError(f"Unknown dimension: {self.dimension}")
        unknown = set(self.filters) - set(FILTERS)
        if unknown:
            raise ValidationError(f"Unknown taxonomy filter(s): {', '.join(sorted(unknown))}")
        if self.top_n is not None and self.top_n < 1:
            raise ValidationError(f"top_n must be >= 1, got {self.top_n}")


class TaxonomyAnalyzer:
    """
    Analyzer producing taxonomy visualizations from a corpus snapshot.

    Attributes:
        clock: Callable returning the current aware datetime
        network_min_share: Minimum co-occurrence for a network edge, as a share of actors
        top_values: Number of values listed before the long tail in distributions
    """

    def __init__(
        self,
        corpus: Iterable[Actor],
        clock: Optional[Callable[[], datetime]] = None,
        network_min_share: float = NETWORK_MIN_SHARE,
        top_values: int = TOP_VALUES,
    ):
        if not 0 <= network_min_share <= 1:
            raise ValidationError(f"network_min_share must be in [0, 1], got {network_min_share}")
        self._frame = self._build_frame(list(corpus))
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.network_min_share = network_min_share
        self.top_values = top_values

    @staticmethod
    def _build_frame(actors: List[Actor]) -> pd.DataFrame:
        """One row per actor, one column per dimension holding a list of values."""
        rows = []
        for actor in actors:
            row = {"id": actor.id, "name": actor.name}
            for dimension, attr in DIMENSIONS.items():
                value = getattr(actor, attr)
                if attr == "actor_type":
                    values = [value.value]
                elif isinstance(value, list):
                    values = value
                else:
                    values = [value] if value else []
                row[dimension] = sorted({str(v).strip().lower() for v in values if str(v).strip()})
            rows.append(row)
        return pd.DataFrame(rows, columns=["id", "name"] + list(DIMENSIONS))

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def generate_visualization(self, request: TaxonomyRequest) -> Dict[str, Any]:
        """
        Build one visualization.

        Args:
            request: TaxonomyRequest

        Returns:
            Dict with dimension, visualization, data and metadata

        Raises:
            ValidationError: If the visualization, dimension or a filter is unknown
            NotFoundError: If no actor passes the filters
        """
        request.validate()
        frame = self.filter_actors(request.filters)
        if frame.empty:
            raise NotFoundError("No actors found matching the specified filters")

        builders = {
            "heatmap": lambda: self.heatmap(frame, request.dimension, request.top_n),
            "capability_need_heatmap": lambda: self.capability_need_heatmap(frame, request.top_n),
            "network_graph": lambda: self.network_graph(frame, request.dimension),
            "distribution": lambda: self.distribution(frame, request.dimension),
            "correlation": lambda: self.correlation(frame, request.dimension),
        }
        data = builders[request.visualization]()

        logger.info(
            f"Generated {request.visualization} for {request.dimension} over {len(frame)} actors"
        )
        return {
            "dimension": request.dimension,
            "visualization": request.visualization,
            "data": data,
            "metadata": {
                "total_actors": int(len(frame)),
                "unique_values": int(self._long(frame, request.dimension)["value"].nunique()),
                "coverage": self.coverage(frame, request.dimension),
                "generated_at": self.clock().isoformat(),
            },
        }

    def filter_actors(self, filters: Optional[Dict[str, List[str]]] = None) -> pd.DataFrame:
        """Actors passing every filter (an actor passes when any value matches)."""
        frame = self._frame
        for name, wanted in (filters or {}).items():
            if not wanted:
                continue
            wanted_set = {str(w).strip().lower() for w in wanted}
            dimension = FILTERS[name]
            mask = frame[dimension].apply(lambda values: bool(wanted_set.intersection(values)))
            frame = frame[mask]
        return frame

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _long(frame: pd.DataFrame, dimension: str) -> pd.DataFrame:
        """Long format (id, value) for a dimension."""
        long = frame[["id", dimension]].explode(dimension).dropna()
        return long.rename(columns={dimension: "value"}).reset_index(drop=True)

    @staticmethod
    def _binarize(frame: pd.DataFrame, dimension: str, classes: Optional[List[str]] = None):
        """Actor x value indicator matrix and its value labels."""
        mlb = MultiLabelBinarizer(classes=classes)
        matrix = mlb.fit_transform(frame[dimension])
        return matrix, [str(c) for c in mlb.classes_]

    def _top_values(self, frame: pd.DataFrame, dimension: str, top_n: Optional[int]) -> List[str]:
        counts = self._value_counts(frame, dimension)
        labels = list(counts.index)
        if top_n is not None:
            labels = labels[:top_n]
        return sorted(labels)

    def _value_counts(self, frame: pd.DataFrame, dimension: str) -> pd.Series:
        """Actors per value, most frequent first (ties alphabetical)."""
        counts = self._long(frame, dimension)["value"].value_counts()
        order = sorted(counts.index, key=lambda v: (-counts[v], v))
        return counts.reindex(order)

    def coverage(self, frame: pd.DataFrame, dimension: str) -> float:
        """Percentage of actors with at least one value in the dimension."""
        if frame.empty:
            return 0.0
        return float(frame[dimension].apply(bool).mean() * 100)

    # ------------------------------------------------------------------
    # Visualizations
    # ------------------------------------------------------------------

    def heatmap(self, frame: pd.DataFrame, dimension: str, top_n: Optional[int] = None) -> Dict[str, Any]:
        """Co-occurrence matrix of a dimension's values within actors."""
        labels = self._top_values(frame, dimension, top_n)
        if not labels:
            return {"type": "heatmap", "labels": [], "matrix": [], "cells": [], "max_value": 0}

        indicator, labels = self._binarize(frame, dimension, labels)
        co_occurrence = indicator.T @ indicator
        max_value = int(co_occurrence.max())

        cells = [
            {
                "x": j,
                "y": i,
                "value": int(co_occurrence[i, j]),
                "percentage": float(co_occurrence[i, j] / max_value * 100) if max_value else 0.0,
                "x_label": labels[j],
                "y_label": labels[i],
            }
            for i in range(len(labels))
            for j in range(len(labels))
        ]
        return {
            "type": "heatmap",
            "labels": labels,
            "matrix": co_occurrence.astype(int).tolist(),
            "cells": cells,
            "max_value": max_value,
        }

    def capability_need_heatmap(self, frame: pd.DataFrame, top_n: Optional[int] = None) -> Dict[str, Any]:
        """
        Capabilities x needs co-occurrence plus supply and demand per need.

        Supply of a need counts actors with a capability that equals or
        contains it (either way); needs without supply are reported as unmet.
        """
        capabilities = self._top_values(frame, "capability", top_n)
        needs = self._top_values(frame, "need", top_n)
        if not capabilities or not needs:
            return {
                "type": "capability_need_heatmap",
                "capabilities": capabilities,
                "needs": needs,
                "matrix": [],
                "supply_demand": [],
                "unmet_needs": [],
            }

        cap_matrix, capabilities = self._binarize(frame, "capability", capabilities)
        need_matrix, needs = self._binarize(frame, "need", needs)
        co_occurrence = cap_matrix.T @ need_matrix

        supply_demand = []
        for need in needs:
            demand = int(frame["need"].apply(lambda values: need in values).sum())
            supply = int(frame["capability"].apply(
                lambda values: any(need == c or need in c or c in need for c in values)
            ).sum())
            supply_demand.append({"need": need, "demand": demand, "supply": supply})

        return {
            "type": "capability_need_heatmap",
            "capabilities": capabilities,
            "needs": needs,
            "matrix": co_occurrence.astype(int).tolist(),
            "supply_demand": supply_demand,
            "unmet_needs": [row["need"] for row in supply_demand if row["supply"] == 0],
        }

    def network_graph(self, frame: pd.DataFrame, dimension: str) -> Dict[str, Any]:
        """Values as nodes sized by actor count, co-occurrences as weighted edges."""
        counts = self._value_counts(frame, dimension)
        labels = sorted(counts.index)
        min_weight = max(1, math.floor(len(frame) * self.network_min_share))

        nodes = [
            {
                "id": i,
                "name": label,
                "size": int(counts[label]),
                "group": value_group(label, dimension),
            }
            for i, label in enumerate(labels)
        ]

        edges = []
        if labels:
            indicator, labels = self._binarize(frame, dimension, labels)
            co_occurrence = indicator.T @ indicator
            for i, j in zip(*np.triu_indices(len(labels), k=1)):
                weight = int(co_occurrence[i, j])
                if weight >= min_weight:
                    edges.append({
                        "source": int(i),
                        "target": int(j),
                        "weight": weight,
                        "label": f"{weight} actors",
                    })

        return {
            "type": "network_graph",
            "nodes": nodes,
            "edges": edges,
            "total_nodes": len(nodes),
            "total_edges": len(edges),
            "min_weight": min_weight,
        }

    def distribution(self, frame: pd.DataFrame, dimension: str) -> Dict[str, Any]:
        """Value frequencies with percentages, examples and summary statistics."""
        counts = self._value_counts(frame, dimension)
        long = self._long(frame, dimension).merge(frame[["id", "name"]], on="id")
        total = len(frame)

        data = []
        for rank, (value, count) in enumerate(counts.items(), start=1):
            examples = long[long["value"] == value].sort_values("id").head(5)
            data.append({
                "rank": rank,
                "value": value,
                "count": int(count),
                "percentage": float(count / total * 100),
                "examples": [{"id": r.id, "name": r.name} for r in examples.itertuples()],
            })

        if len(counts):
            statistics = {
                "total_values": int(len(counts)),
                "total_occurrences": int(counts.sum()),
                "mean": round(float(counts.mean()), 2),
                "median": float(counts.median()),
                "max": int(counts.max()),
                "min": int(counts.min()),
                "range": int(counts.max() - counts.min()),
            }
        else:
            statistics = {
                "total_values": 0, "total_occurrences": 0, "mean": 0.0,
                "median": 0.0, "max": 0, "min": 0, "range": 0,
            }

        return {
            "type": "distribution",
            "data": data,
            "statistics": statistics,
            "coverage": self.coverage(frame, dimension),
            "top_values": data[:self.top_values],
            "long_tail": data[self.top_values:],
        }

    def correlation(self, frame: pd.DataFrame, dimension: str) -> Dict[str, Any]:
        """Association of a dimension with each other correlation dimension."""
        correlations = []
        for other in CORRELATION_DIMENSIONS:
            if other == dimension:
                continue
            result = self._dimension_correlation(frame, dimension, other)
            if result is not None:
                correlations.append(result)

        correlations.sort(key=lambda c: (-c["strength"], c["dimension"]))
        return {
            "type": "correlation",
            "primary_dimension": dimension,
            "correlations": correlations,
            "total_actors": int(len(frame)),
            "significant_correlations": [c for c in correlations if c["strength"] > SIGNIFICANT_STRENGTH],
        }

    def _dimension_correlation(self, frame: pd.DataFrame, primary: str, secondary: str) -> Optional[Dict[str, Any]]:
        """Cramer's V and top Jaccard value pairs between two dimensions."""
        values_1 = sorted(self._long(frame, primary)["value"].unique())
        values_2 = sorted(self._long(frame, secondary)["value"].unique())
        if len(values_1) < 2 or len(values_2) < 2:
            return None

        pairs = self._long(frame, primary).merge(self._long(frame, secondary), on="id", suffixes=("_1", "_2"))
        table = pd.crosstab(pairs["value_1"], pairs["value_2"])
        cramers_v = None
        if table.shape[0] >= 2 and table.shape[1] >= 2:
            try:
                chi2, p_value, _, _ = chi2_contingency(table.values)
                n = table.values.sum()
                cramers_v = float(math.sqrt(chi2 / (n * (min(table.shape) - 1))))
            except ValueError as e:
                logger.debug(f"Chi-square failed for {primary} x {secondary}: {e}")

        matrix_1, values_1 = self._binarize(frame, primary, values_1)
        matrix_2, values_2 = self._binarize(frame, secondary, values_2)
        intersection = matrix_1.T @ matrix_2
        counts_1 = matrix_1.sum(axis=0)
        counts_2 = matrix_2.sum(axis=0)
        union = counts_1[:, None] + counts_2[None, :] - intersection
        jaccard = np.divide(intersection, union, out=np.zeros(intersection.shape), where=union > 0)

        significant = [
            {
                "value1": values_1[i],
                "value2": values_2[j],
                "jaccard": float(jaccard[i, j]),
                "shared_actors": int(intersection[i, j]),
                "count1": int(counts_1[i]),
                "count2": int(counts_2[j]),
            }
            for i, j in zip(*np.nonzero(jaccard > CORRELATION_MIN_JACCARD))
        ]
        significant.sort(key=lambda p: (-p["jaccard"], p["value1"], p["value2"]))

        return {
            "dimension": secondary,
            "strength": float(np.mean([p["jaccard"] for p in significant])) if significant else 0.0,
            "cramers_v": cramers_v,
            "significant_pairs": significant[:10],
            "total_pairs": len(significant),
        }
