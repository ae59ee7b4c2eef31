"""
Feature association.

Keeps a stable, bounded set of tracked 2D points across frames while
excluding points inside known object regions.
"""

from .associator import FeatureAssociator, build_pool
from .grouping import group_boxes, build_exclusion_zones

__all__ = [
    "FeatureAssociator",
    "build_pool",
    "group_boxes",
    "build_exclusion_zones",
]
