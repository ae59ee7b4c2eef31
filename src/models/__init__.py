"""
Typed models for the observation scoring engine.

These are plain values exchanged between the observation manager, the
feature associator, the confidence aggregator and the horizon calibrator.
"""

from .detection import BoundingBox, HorizonVote, point_in_any_box
from .features import FeaturePoint, FeatureSet, AssociationResult
from .config import Config, ObservationParams, ObjectType, HeightPrior
from .errors import (
    ObservationError,
    ConfigurationError,
    UnsupportedCameraError,
    MissingFeatureTrackerError,
    CalibrationFileError,
    FeatureNotFoundError,
)

__all__ = [
    # Detection
    "BoundingBox",
    "HorizonVote",
    "point_in_any_box",
    # Features
    "FeaturePoint",
    "FeatureSet",
    "AssociationResult",
    # Config
    "Config",
    "ObservationParams",
    "ObjectType",
    "HeightPrior",
    # Errors
    "ObservationError",
    "ConfigurationError",
    "UnsupportedCameraError",
    "MissingFeatureTrackerError",
    "CalibrationFileError",
    "FeatureNotFoundError",
]
