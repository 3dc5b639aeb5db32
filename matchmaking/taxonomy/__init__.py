"""Taxonomy analytics over the actor corpus."""

from .analyzer import TaxonomyAnalyzer, TaxonomyRequest, DIMENSIONS, VISUALIZATIONS, value_group

__all__ = ["TaxonomyAnalyzer", "TaxonomyRequest", "DIMENSIONS", "VISUALIZATIONS", "value_group"]
