"""
Confidence scoring for object and feature hypotheses.
"""

from .confidence import ConfidenceAggregator, log_gaussian_prob, ALL_NODES

__all__ = ["ConfidenceAggregator", "log_gaussian_prob", "ALL_NODES"]
