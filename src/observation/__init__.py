"""
Observation layer for pluggable detectors and feature sources.

Each detector implements the ObservationNode interface. The
ObservationManager owns the nodes, broadcasts frame data to them and
answers the scoring queries of the multi-target tracker.
"""

from .base import ObservationNode
from .manager import ObservationManager, MANAGER_DATA_KEYS, create_manager_from_config

__all__ = [
    "ObservationNode",
    "ObservationManager",
    "MANAGER_DATA_KEYS",
    "create_manager_from_config",
]
