"""
Vanishing-point based horizon confidence.

The estimator reads a preprocessed calibration file listing candidate
horizon rows and their log confidence, e.g.:

    horizon_rows: [180, 200, 220, 240]
    log_confidence: [-4.0, -1.5, -0.2, -2.5]

Rows between samples are linearly interpolated; rows outside the sampled
range take the value of the nearest end.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Sequence

import numpy as np
import yaml

from models.errors import CalibrationFileError


class VanishingPointEstimator:
    """Confidence over candidate horizon rows, loaded from a preprocessed file."""

    def __init__(self, rows: Optional[Sequence[float]] = None, log_confidence: Optional[Sequence[float]] = None):
        self._rows = np.array([], dtype=float)
        self._log_conf = np.array([], dtype=float)
        self._path: Optional[str] = None
        if rows is not None or log_confidence is not None:
            self._set_samples([] if rows is None else rows, [] if log_confidence is None else log_confidence)

    @property
    def is_loaded(self) -> bool:
        return len(self._rows) > 0

    @property
    def path(self) -> Optional[str]:
        return self._path

    def read_preprocessed_file(self, path: str) -> None:
        """
        Load horizon samples from a YAML file.

        Raises:
            CalibrationFileError: If the file is missing or malformed.
        """
        if not os.path.exists(path):
            raise CalibrationFileError(f"Vanishing point file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise CalibrationFileError(f"Failed to read vanishing point file {path}: {e}") from e

        if not isinstance(data, dict) or "horizon_rows" not in data or "log_confidence" not in data:
            raise CalibrationFileError(f"{path} must define horizon_rows and log_confidence")
        self._set_samples(data["horizon_rows"], data["log_confidence"], source=path)
        self._path = path
        logging.info(f"Loaded vanishing point estimate from {path} ({len(self._rows)} horizon samples)")

    def get_horizon_confidence(self, horizon_row: float) -> float:
        """Log confidence of a horizon row. 0 when nothing is loaded."""
        if not self.is_loaded:
            return 0.0
        return float(np.interp(horizon_row, self._rows, self._log_conf))

    def _set_samples(self, rows: Sequence[float], log_confidence: Sequence[float], source: str = "samples") -> None:
        try:
            rows_arr = np.asarray(rows, dtype=float)
            conf_arr = np.asarray(log_confidence, dtype=float)
        except (TypeError, ValueError) as e:
            raise CalibrationFileError(f"{source}: horizon samples must be numeric") from e
        if rows_arr.ndim != 1 or rows_arr.shape != conf_arr.shape or len(rows_arr) == 0:
            raise CalibrationFileError(
                f"{source}: horizon_rows and log_confidence must be non-empty lists of equal length"
            )
        if np.any(np.diff(rows_arr) <= 0):
            raise CalibrationFileError(f"{source}: horizon_rows must be strictly increasing")
        self._rows = rows_arr
        self._log_conf = conf_arr
