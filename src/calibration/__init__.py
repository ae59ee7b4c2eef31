"""
Camera calibration.

Horizon auto-calibration driven by vanishing-point evidence and the
horizon votes of the current detections.
"""

from .horizon import HorizonCalibrator, MAX_VOTE_PENALTY
from .vanishing_point import VanishingPointEstimator

__all__ = [
    "HorizonCalibrator",
    "MAX_VOTE_PENALTY",
    "VanishingPointEstimator",
]
