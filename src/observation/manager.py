"""
Observation manager.

Owns the observation nodes, broadcasts frame data and parameters to them,
runs their per-frame preprocessing, and exposes the scoring operations the
external tracker calls:
- feature selection (FeatureAssociator)
- object / feature confidence (ConfidenceAggregator)
- horizon calibration (HorizonCalibrator)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from calibration.horizon import HorizonCalibrator
from calibration.vanishing_point import VanishingPointEstimator
from features.associator import FeatureAssociator, build_pool
from features.grouping import build_exclusion_zones
from models.config import Config, ObjectType, ObservationParams
from models.detection import BoundingBox, HorizonVote
from models.errors import ConfigurationError, MissingFeatureTrackerError
from models.features import FeatureSet
from models.interfaces import CameraState, FeatureTracker, ObjectState, tracked_features
from scoring.confidence import ALL_NODES, ConfidenceAggregator
from .base import ObservationNode


# Data keys the manager keeps for itself, mapped to the attribute they set.
# All of them are also forwarded to the nodes.
MANAGER_DATA_KEYS = {
    "image_mono": "img_mono",
    "image_color": "img_color",
    "time_sec": "time_sec",
    "feat_tracker": "feat_tracker",
    "vp_estimate_file": None,
}


class ObservationManager:
    """
    Registry of observation nodes and entry point for scoring queries.

    Nodes are kept in insertion order. That order is used for every
    broadcast, for concatenating detections, and as the tie-break when
    looking a node up by type.

    Example:
        manager = ObservationManager(ObservationParams(min_height=1.2))
        manager.insert_node(PedestrianNode())
        manager.set_data("feat_tracker", tracker)

        # Each frame:
        manager.set_data("image_mono", gray)
        manager.set_data("time_sec", ts)
        manager.preprocess()
        dropped = manager.select_features(prev_ids, max_count=40, targets=boxes)
        score = manager.object_confidence(obj, camera)
    """

    def __init__(self, params: Optional[ObservationParams] = None):
        self.params = params.copy() if params is not None else ObservationParams()
        self._nodes: List[ObservationNode] = []

        self.img_mono: Optional[np.ndarray] = None
        self.img_color: Optional[np.ndarray] = None
        self.time_sec: float = 0.0
        self.feat_tracker: Optional[FeatureTracker] = None
        self.vp_estimator = VanishingPointEstimator()

        self._features = FeatureSet()
        self.associator = FeatureAssociator()
        self.aggregator = ConfidenceAggregator(self)
        self.calibrator = HorizonCalibrator(self)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> Tuple[ObservationNode, ...]:
        """Registered nodes in insertion order."""
        return tuple(self._nodes)

    @property
    def obj_type(self) -> ObjectType:
        return self.params.object_type

    @property
    def features(self) -> FeatureSet:
        """Features selected by the most recent select_features() call."""
        return self._features

    def insert_node(self, node: ObservationNode) -> None:
        """Take ownership of a node. It receives the current object type."""
        node.set_obj_type(self.params.object_type)
        self._nodes.append(node)
        logging.info(f"Observation node registered: {node.get_type()} ({len(self._nodes)} total)")

    def get_node(self, node_type: str) -> Optional[ObservationNode]:
        """First registered node of the given type, or None."""
        for node in self._nodes:
            if node.get_type() == node_type:
                return node
        return None

    def release_nodes(self) -> None:
        """Drop every registered node."""
        self._nodes.clear()

    # ------------------------------------------------------------------
    # Broadcast
    # ------------------------------------------------------------------

    def set_data(self, key: str, payload: Any) -> None:
        """
        Update manager state for recognized keys and forward to every node.

        Raises:
            CalibrationFileError: If `vp_estimate_file` cannot be loaded.
        """
        if key == "vp_estimate_file":
            self.vp_estimator.read_preprocessed_file(payload)
        elif key in MANAGER_DATA_KEYS:
            setattr(self, MANAGER_DATA_KEYS[key], payload)

        for node in self._nodes:
            node.set_data(key, payload)

    def set_parameter(self, name: str, value: Any) -> None:
        """
        Parse recognized manager parameters and forward every parameter to the nodes.

        Raises:
            ConfigurationError: If a recognized parameter is not a number.
        """
        self.params = self.params.with_parameter(name, value)
        for node in self._nodes:
            node.set_parameter(name, value)

    def configure(self, params: ObservationParams) -> None:
        """Replace all parameters with a copy of `params` and broadcast them to the nodes."""
        self.params = params.copy()
        for name, value in self.params.manager_parameters().items():
            for node in self._nodes:
                node.set_parameter(name, value)
        for node in self._nodes:
            node.set_obj_type(self.params.object_type)

    def set_obj_type(self, obj_type: ObjectType) -> None:
        """
        Switch the object class and tell every node.

        Raises:
            ConfigurationError: If `obj_type` is not a known object class.
        """
        self.params = self.params.with_object_type(obj_type)
        for node in self._nodes:
            node.set_obj_type(self.params.object_type)

    def query_data(self, name: str, sink: Any) -> None:
        """Let every node write its data named `name` into `sink`."""
        for node in self._nodes:
            node.query_data(name, sink)

    def get_detections(self) -> List[BoundingBox]:
        """Detections of every node, concatenated in node order."""
        detections: List[BoundingBox] = []
        for node in self._nodes:
            detections.extend(node.get_detections())
        return detections

    # ------------------------------------------------------------------
    # Per-frame processing
    # ------------------------------------------------------------------

    def preprocess(self) -> None:
        """
        Preprocess every node, then feed the lower half of the frame to the feature tracker.

        Raises:
            MissingFeatureTrackerError: If no feature tracker has been set.
            ConfigurationError: If no monochrome frame has been set.
        """
        if self.params.parallel_preprocess and len(self._nodes) > 1:
            with ThreadPoolExecutor(max_workers=self.params.max_workers) as executor:
                list(executor.map(lambda node: node.preprocess(), self._nodes))
        else:
            for node in self._nodes:
                node.preprocess()

        tracker = self._require_tracker()
        img = self._require_frame()
        half = img.shape[0] // 2
        tracker.set_detector_type(self.params.feature_detector)
        tracker.set_new_image(img[half:half + half], self.time_sec)
        tracker.process_tracking()

    def select_features(
        self,
        prev_ids: Sequence[int],
        max_count: int,
        targets: Iterable[BoundingBox] = (),
    ) -> List[int]:
        """
        Recompute the current feature set and return the dropped indices.

        Args:
            prev_ids: Identifiers kept in the previous cycle, in selection order.
            max_count: Maximum number of features to keep.
            targets: Hypothesis regions of the current frame; features inside
                them (or inside current detections) are excluded.

        Returns:
            Indices into `prev_ids` of features that were lost or excluded.
        """
        tracker = self._require_tracker()
        img = self._require_frame()

        points, responses, ids = tracked_features(tracker, self.time_sec)
        pool = build_pool(points, responses, ids, row_offset=img.shape[0] // 2)
        zones = build_exclusion_zones(targets, self.get_detections())

        result = self.associator.associate(pool, prev_ids, max_count, zones)
        self._features = result.features
        return result.dropped

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def object_confidence(self, obj_state: ObjectState, cam_state: CameraState, type_filter: str = ALL_NODES) -> float:
        return self.aggregator.object_confidence(obj_state, cam_state, type_filter)

    def feature_confidence(
        self,
        feat_state: Any,
        feat_idx: int,
        cam_state: CameraState,
        type_filter: str = ALL_NODES,
    ) -> float:
        return self.aggregator.feature_confidence(feat_state, feat_idx, cam_state, type_filter)

    def horizon_votes(self, camera_height: float) -> List[HorizonVote]:
        return self.aggregator.horizon_votes(camera_height)

    def initial_feature_state(self, track_id: int, cam_state: CameraState) -> Any:
        return self.aggregator.initial_feature_state(track_id, cam_state)

    def camera_confidence(self, cam_state: CameraState) -> float:
        return self.calibrator.camera_confidence(cam_state)

    def calibrate_horizon(self, cam_state: CameraState) -> CameraState:
        return self.calibrator.calibrate_horizon(cam_state)

    # ------------------------------------------------------------------

    def _require_tracker(self) -> FeatureTracker:
        if self.feat_tracker is None:
            raise MissingFeatureTrackerError("A feature tracker must be set (data key 'feat_tracker')")
        return self.feat_tracker

    def _require_frame(self) -> np.ndarray:
        if self.img_mono is None:
            raise ConfigurationError("A monochrome frame must be set (data key 'image_mono')")
        return self.img_mono


def create_manager_from_config(config: Config, nodes: Iterable[ObservationNode] = ()) -> ObservationManager:
    """
    Build an ObservationManager from the typed application config.

    Args:
        config: Loaded application configuration.
        nodes: Nodes to register, in lookup order.
    """
    manager = ObservationManager(config.observation)
    for node in nodes:
        manager.insert_node(node)
    manager.configure(config.observation)
    if config.vp_estimate_file:
        manager.set_data("vp_estimate_file", config.vp_estimate_file)
    return manager
