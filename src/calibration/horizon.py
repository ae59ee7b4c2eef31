"""
Camera horizon auto-calibration.

Refines the horizon row of a simplified camera by exhaustive search over a
window around its current value, maximising a fused confidence made of:
- the vanishing-point confidence of the candidate row
- the agreement between the candidate and the horizon votes of the
  current detections (each vote's penalty is capped)
- an optional Gaussian prior on the horizon row
"""

from __future__ import annotations

import logging
import math
import sys
from typing import TYPE_CHECKING

from models.errors import ConfigurationError, UnsupportedCameraError
from models.interfaces import CAMERA_HEIGHT_INDEX, HORIZON_INDEX, SIMPLIFIED_CAMERA, CameraState

if TYPE_CHECKING:
    from observation.manager import ObservationManager


# Upper bound on one detection's squared normalized deviation from the horizon.
MAX_VOTE_PENALTY = 9.0


class HorizonCalibrator:
    """
    Horizon search for cameras exposing a horizon element.

    Only the "simplified_camera" parametrization is supported; any other
    camera type raises UnsupportedCameraError.
    """

    def __init__(self, manager: "ObservationManager"):
        self._manager = manager

    def camera_confidence(self, cam_state: CameraState) -> float:
        """
        Fused confidence of a camera's horizon row.

        Raises:
            UnsupportedCameraError: If the camera has no horizon element.
            ConfigurationError: If a horizon prior is set without a positive std_horizon.
        """
        self._require_horizon(cam_state, "camera_confidence")
        params = self._manager.params
        if params.has_horizon_prior and params.std_horizon <= 0:
            raise ConfigurationError(
                f"std_horizon must be positive when mean_horizon is set (got {params.std_horizon})"
            )
        horizon = cam_state.get_element(HORIZON_INDEX)

        ret = self._manager.vp_estimator.get_horizon_confidence(horizon)
        for vote in self._manager.aggregator.horizon_votes(cam_state.get_element(CAMERA_HEIGHT_INDEX)):
            diff = vote.row - horizon
            if vote.std > 0:
                ret -= min((diff / vote.std) ** 2, MAX_VOTE_PENALTY)
            else:
                ret -= MAX_VOTE_PENALTY
        if params.has_horizon_prior:
            ret -= ((horizon - params.mean_horizon) / params.std_horizon) ** 2
        return ret

    def calibrate_horizon(self, cam_state: CameraState) -> CameraState:
        """
        Move the horizon to the best row in [floor(h) - radius, floor(h) + radius).

        Candidates are probed on a clone; only the winning row is written back
        into `cam_state`, which is returned. The current row is not used as a
        baseline, so the horizon always ends up inside the window.

        Raises:
            UnsupportedCameraError: If the camera has no horizon element.
            ConfigurationError: If a horizon prior is set without a positive std_horizon.
        """
        self._require_horizon(cam_state, "calibrate_horizon")
        radius = self._manager.params.horizon_search_radius
        current = math.floor(cam_state.get_element(HORIZON_INDEX))
        probe = cam_state.clone()

        best_row = None
        best_conf = -sys.float_info.max
        for row in range(current - radius, current + radius):
            probe.set_element(HORIZON_INDEX, float(row))
            conf = self.camera_confidence(probe)
            if best_row is None or conf > best_conf:
                best_row = row
                best_conf = conf

        if best_row is not None:
            cam_state.set_element(HORIZON_INDEX, float(best_row))
            logging.debug(f"Horizon calibrated: {current} -> {best_row} (confidence {best_conf:.3f})")
        return cam_state

    @staticmethod
    def _require_horizon(cam_state: CameraState, operation: str) -> None:
        state_type = cam_state.get_state_type()
        if state_type != SIMPLIFIED_CAMERA:
            raise UnsupportedCameraError(state_type, operation)
