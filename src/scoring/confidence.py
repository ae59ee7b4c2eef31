"""
Confidence scoring for object and feature hypotheses.

Object hypotheses are scored by projecting them into the image and summing
the confidences of the observation nodes. Feature hypotheses are scored by
the reprojection log-likelihood ratio of the observed feature point. The
horizon votes implied by the current detections are also computed here,
for use by the horizon calibrator.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any, List

import numpy as np

from models.detection import HorizonVote
from models.errors import FeatureNotFoundError
from models.interfaces import OBJECT_HEIGHT_INDEX, CameraState, ObjectState

if TYPE_CHECKING:
    from observation.manager import ObservationManager


ALL_NODES = "all"

# Offset, in standard deviations, at which the outlier hypothesis is as likely as a valid association.
OUTLIER_OFFSET_SIGMAS = 1.4

_LOG_SQRT_2PI = 0.5 * math.log(2.0 * math.pi)


def log_gaussian_prob(x: float, mean: float, std: float) -> float:
    """
    Log density of N(mean, std^2) at x.

    Degenerate inputs (std == 0, non-finite values) yield nan or inf instead
    of raising.
    """
    with np.errstate(divide="ignore", invalid="ignore"):
        std = np.float64(std)
        diff = np.float64(x) - np.float64(mean)
        return float(-_LOG_SQRT_2PI - np.log(std) - diff * diff / (2.0 * std * std))


def _round_half_away(x: float) -> float:
    return math.copysign(math.floor(abs(x) + 0.5), x)


class ConfidenceAggregator:
    """
    Fuses node confidences and feature reprojections into log-likelihood scores.

    The aggregator reads nodes, parameters, detections and the current
    feature set from the manager it is attached to; it holds no state of
    its own.
    """

    def __init__(self, manager: "ObservationManager"):
        self._manager = manager

    def object_confidence(self, obj_state: ObjectState, cam_state: CameraState, type_filter: str = ALL_NODES) -> float:
        """
        Score an object hypothesis.

        Objects whose height lies outside [min_height, max_height] get the
        fixed out-of-height penalty without consulting any node.

        Args:
            obj_state: Object hypothesis; element 1 is its height.
            cam_state: Camera used to project the object into the image.
            type_filter: Only sum nodes of this type; "all" sums every node.
        """
        params = self._manager.params
        height = obj_state.get_element(OBJECT_HEIGHT_INDEX)
        if height < params.min_height or height > params.max_height:
            return params.out_of_height_penalty

        rect = cam_state.project(obj_state)
        total = 0.0
        for node in self._manager.nodes:
            if type_filter == ALL_NODES or node.get_type() == type_filter:
                total += node.get_confidence(rect)
        return total * params.total_weight

    def feature_confidence(
        self,
        feat_state: Any,
        feat_idx: int,
        cam_state: CameraState,
        type_filter: str = ALL_NODES,
    ) -> float:
        """
        Log-likelihood ratio of a feature hypothesis against its observation.

        Compares "valid association" against "outlier": the observation's
        log density around the projection minus the log density at 1.4
        standard deviations on each axis. A nan result is replaced by the
        configured penalty.

        Args:
            feat_state: Feature hypothesis.
            feat_idx: Position of the observed feature in the current feature set.
            cam_state: Camera used to project the feature.
            type_filter: Accepted for symmetry with object_confidence; features
                are not scored per node type.

        Raises:
            FeatureNotFoundError: If `feat_idx` is outside the current feature set.
        """
        params = self._manager.params
        features = self._manager.features
        if not 0 <= feat_idx < len(features):
            raise FeatureNotFoundError(f"Feature index {feat_idx} is outside the current {len(features)} features")
        proj = cam_state.project_feature(feat_state)
        obs = features[feat_idx]

        sigma_u, sigma_v = params.feat_sigma_u, params.feat_sigma_v
        ret = log_gaussian_prob(obs.x, proj[0], sigma_u)
        ret += log_gaussian_prob(obs.y, proj[1], sigma_v)
        ret -= (
            log_gaussian_prob(OUTLIER_OFFSET_SIGMAS * sigma_u, 0.0, sigma_u)
            + log_gaussian_prob(OUTLIER_OFFSET_SIGMAS * sigma_v, 0.0, sigma_v)
        )
        if math.isnan(ret):
            logging.debug(f"Undefined likelihood for feature {obs.track_id}, projection {proj}")
            return params.feature_nan_penalty
        return ret

    def horizon_votes(self, camera_height: float) -> List[HorizonVote]:
        """
        Horizon rows implied by the current detections.

        A detection of pixel height h whose bottom rests on the ground puts
        the horizon at y1 + h * (mean - camera_height) / mean, where mean is
        the object class's mean real-world height.

        Args:
            camera_height: Candidate camera height (same units as the height prior).
        """
        prior = self._manager.params.height_prior(self._manager.obj_type)
        votes: List[HorizonVote] = []
        for det in self._manager.get_detections():
            h = det.height
            row = int(det.y1 + _round_half_away(h * (prior.mean - camera_height) / prior.mean))
            votes.append(HorizonVote(row=row, std=h / prior.mean * prior.std))
        return votes

    def initial_feature_state(self, track_id: int, cam_state: CameraState) -> Any:
        """
        Back-project the current observation of a feature into a feature state.

        Raises:
            FeatureNotFoundError: If no current feature carries `track_id`.
        """
        features = self._manager.features
        try:
            feat = features[features.index_of(track_id)]
        except ValueError as e:
            raise FeatureNotFoundError(f"Feature {track_id} is not in the current feature set") from e
        return cam_state.inverse_project(feat.position)
