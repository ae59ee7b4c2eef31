"""
Error types raised by the observation layer.

These cover programmer and configuration mistakes only. Numerical
degeneracies and lost features are reported through return values.
"""

from __future__ import annotations


class ObservationError(RuntimeError):
    """Base class for fatal observation-layer errors."""


class ConfigurationError(ObservationError, ValueError):
    """A configuration value is missing or cannot be parsed."""


class UnsupportedCameraError(ObservationError):
    """The camera state uses a parametrization this operation does not handle."""

    def __init__(self, state_type: str, operation: str):
        super().__init__(f"{operation} is not implemented for camera state type '{state_type}'")
        self.state_type = state_type
        self.operation = operation


class MissingFeatureTrackerError(ObservationError):
    """A feature tracker is required but none has been set."""


class CalibrationFileError(ObservationError):
    """A vanishing-point calibration file could not be loaded."""


class FeatureNotFoundError(ObservationError, LookupError):
    """No feature with the requested identifier is currently selected."""
