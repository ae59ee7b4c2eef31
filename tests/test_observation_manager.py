"""
Tests for the observation manager (node registry, broadcast, preprocessing, feature selection).
"""

import numpy as np
import pytest

from conftest import FakeNode, FakeTracker
from models.config import Config, ObjectType, ObservationParams
from models.detection import BoundingBox
from models.errors import CalibrationFileError, ConfigurationError, MissingFeatureTrackerError
from observation.base import ObservationNode
from observation.manager import MANAGER_DATA_KEYS, ObservationManager, create_manager_from_config


class TestObservationNode:
    def test_cannot_instantiate_abstract(self):
        with pytest.raises(TypeError):
            ObservationNode()

    def test_default_hooks_are_noops(self):
        class MinimalNode(ObservationNode):
            def get_type(self):
                return "minimal"

            def preprocess(self):
                pass

            def get_detections(self):
                return []

            def get_confidence(self, rect):
                return 0.0

        node = MinimalNode()
        node.set_data("image_mono", None)
        node.set_parameter("min_height", "1.0")
        node.query_data("anything", {})
        assert node.obj_type == ObjectType.PERSON
        node.set_obj_type(ObjectType.CAR)
        assert node.obj_type == ObjectType.CAR


class TestRegistry:
    def test_insert_preserves_order(self, manager):
        a, b = FakeNode("a"), FakeNode("b")
        manager.insert_node(a)
        manager.insert_node(b)
        assert manager.nodes == (a, b)

    def test_lookup_returns_first_match(self, manager):
        first, second = FakeNode("hog"), FakeNode("hog")
        manager.insert_node(first)
        manager.insert_node(second)
        assert manager.get_node("hog") is first

    def test_lookup_missing(self, manager):
        manager.insert_node(FakeNode("hog"))
        assert manager.get_node("depth") is None

    def test_release_nodes(self, manager):
        manager.insert_node(FakeNode())
        manager.release_nodes()
        assert manager.nodes == ()

    def test_inserted_node_receives_object_type(self):
        manager = ObservationManager(ObservationParams(object_type=ObjectType.CAR))
        node = FakeNode()
        manager.insert_node(node)
        assert node.obj_type == ObjectType.CAR

    def test_detections_concatenated_in_node_order(self, manager):
        a = FakeNode("a", detections=[BoundingBox(0, 0, 1, 1)])
        b = FakeNode("b", detections=[BoundingBox(2, 2, 3, 3), BoundingBox(4, 4, 5, 5)])
        manager.insert_node(a)
        manager.insert_node(b)
        assert manager.get_detections() == a.detections + b.detections


class TestBroadcast:
    def test_manager_data_keys_update_state(self, manager, tracker, gray_frame):
        manager.set_data("image_mono", gray_frame)
        manager.set_data("image_color", "color")
        manager.set_data("time_sec", 12.5)
        manager.set_data("feat_tracker", tracker)
        assert manager.img_mono is gray_frame
        assert manager.img_color == "color"
        assert manager.time_sec == 12.5
        assert manager.feat_tracker is tracker

    def test_every_data_key_reaches_every_node(self, manager):
        nodes = [FakeNode("a"), FakeNode("b")]
        for node in nodes:
            manager.insert_node(node)
        manager.set_data("time_sec", 1.0)
        manager.set_data("depth_map", "payload")
        for node in nodes:
            assert node.data == [("time_sec", 1.0), ("depth_map", "payload")]

    def test_vp_file_loaded_and_forwarded(self, manager, vp_file):
        node = FakeNode()
        manager.insert_node(node)
        manager.set_data("vp_estimate_file", vp_file)
        assert manager.vp_estimator.is_loaded
        assert node.data == [("vp_estimate_file", vp_file)]

    def test_vp_file_failure_is_fatal(self, manager, tmp_path):
        with pytest.raises(CalibrationFileError):
            manager.set_data("vp_estimate_file", str(tmp_path / "missing.yaml"))

    def test_manager_parameters_parsed(self, manager):
        manager.set_parameter("min_height", "1.1")
        manager.set_parameter("max_height", 2.0)
        manager.set_parameter("total_weight", "0.5")
        manager.set_parameter("feat_sigma_u", "3")
        manager.set_parameter("feat_sigma_v", "4")
        manager.set_parameter("mean_horizon", "240")
        manager.set_parameter("std_horizon", "15")
        p = manager.params
        assert (p.min_height, p.max_height, p.total_weight) == (1.1, 2.0, 0.5)
        assert (p.feat_sigma_u, p.feat_sigma_v) == (3.0, 4.0)
        assert (p.mean_horizon, p.std_horizon) == (240.0, 15.0)

    def test_every_parameter_reaches_every_node(self, manager):
        node = FakeNode()
        manager.insert_node(node)
        manager.set_parameter("min_height", "1.1")
        manager.set_parameter("hog_threshold", "0.3")
        assert node.params == [("min_height", "1.1"), ("hog_threshold", "0.3")]

    def test_unparsable_parameter_is_fatal(self, manager):
        with pytest.raises(ConfigurationError):
            manager.set_parameter("total_weight", "heavy")

    def test_configure_broadcasts_typed_params(self, manager):
        node = FakeNode()
        manager.insert_node(node)
        params = ObservationParams(min_height=1.0, object_type=ObjectType.CAR)
        manager.configure(params)
        assert manager.params == params
        assert manager.params is not params
        assert ("min_height", 1.0) in node.params
        assert {name for name, _ in node.params} == set(params.manager_parameters())
        assert node.obj_type == ObjectType.CAR

    def test_set_obj_type(self, manager):
        node = FakeNode()
        manager.insert_node(node)
        manager.set_obj_type(ObjectType.CAR)
        assert manager.obj_type == ObjectType.CAR
        assert node.obj_type == ObjectType.CAR

    def test_set_obj_type_rejects_unknown_class(self, manager):
        with pytest.raises(ConfigurationError, match="bicycle"):
            manager.set_obj_type("bicycle")
        assert manager.obj_type == ObjectType.PERSON

    def test_set_obj_type_leaves_caller_params_alone(self):
        params = ObservationParams()
        manager = ObservationManager(params)
        manager.set_obj_type(ObjectType.CAR)
        assert params.object_type == ObjectType.PERSON

    def test_query_data_visits_every_node(self, manager):
        manager.insert_node(FakeNode("a"))
        manager.insert_node(FakeNode("b"))
        sink = {}
        manager.query_data("debug_image", sink)
        assert sink == {"debug_image": ["a", "b"]}

    def test_data_keys_constant(self):
        assert set(MANAGER_DATA_KEYS) == {"image_mono", "image_color", "time_sec", "feat_tracker", "vp_estimate_file"}

    def test_data_keys_map_to_manager_attributes(self, manager):
        for key, attr in MANAGER_DATA_KEYS.items():
            if attr is not None:
                manager.set_data(key, key.upper())
                assert getattr(manager, attr) == key.upper()


class TestPreprocess:
    def _ready(self, manager, tracker, frame):
        manager.set_data("feat_tracker", tracker)
        manager.set_data("image_mono", frame)
        manager.set_data("time_sec", 3.0)

    def test_all_nodes_preprocessed(self, manager, tracker, gray_frame):
        nodes = [FakeNode(str(i)) for i in range(3)]
        for node in nodes:
            manager.insert_node(node)
        self._ready(manager, tracker, gray_frame)
        manager.preprocess()
        assert all(len(node.preprocess_threads) == 1 for node in nodes)

    def test_parallel_preprocess(self, tracker, gray_frame):
        manager = ObservationManager(ObservationParams(parallel_preprocess=True, max_workers=4))
        nodes = [FakeNode(str(i)) for i in range(6)]
        for node in nodes:
            manager.insert_node(node)
        self._ready(manager, tracker, gray_frame)
        manager.preprocess()
        assert all(len(node.preprocess_threads) == 1 for node in nodes)
        assert tracker.process_calls == 1

    def test_parallel_preprocess_propagates_errors(self, tracker, gray_frame):
        class FailingNode(FakeNode):
            def preprocess(self):
                raise RuntimeError("detector crashed")

        manager = ObservationManager(ObservationParams(parallel_preprocess=True))
        manager.insert_node(FakeNode())
        manager.insert_node(FailingNode())
        self._ready(manager, tracker, gray_frame)
        with pytest.raises(RuntimeError, match="detector crashed"):
            manager.preprocess()

    def test_lower_half_sent_to_tracker(self, manager, tracker):
        frame = np.arange(11 * 4, dtype=np.uint8).reshape(11, 4)
        self._ready(manager, tracker, frame)
        manager.preprocess()
        image, timestamp = tracker.images[0]
        np.testing.assert_array_equal(image, frame[5:10])
        assert timestamp == 3.0
        assert tracker.detector_types == ["SURF"]
        assert tracker.process_calls == 1

    def test_missing_tracker_is_fatal(self, manager, gray_frame):
        manager.set_data("image_mono", gray_frame)
        with pytest.raises(MissingFeatureTrackerError):
            manager.preprocess()

    def test_missing_frame_is_fatal(self, manager, tracker):
        manager.set_data("feat_tracker", tracker)
        with pytest.raises(ConfigurationError):
            manager.preprocess()


class TestSelectFeatures:
    def _ready(self, manager, features, frame):
        tracker = FakeTracker(features)
        manager.set_data("feat_tracker", tracker)
        manager.set_data("image_mono", frame)
        return tracker

    def test_points_shifted_to_full_frame(self, manager, gray_frame):
        self._ready(manager, [(10.0, 5.0, 1.0, 1)], gray_frame)
        dropped = manager.select_features([], max_count=10)
        assert dropped == []
        assert manager.features[0].position == (10.0, 55.0)

    def test_detections_exclude_features(self, manager, gray_frame):
        manager.insert_node(FakeNode(detections=[BoundingBox(0, 50, 20, 70)]))
        self._ready(manager, [(10.0, 5.0, 9.0, 1), (100.0, 5.0, 1.0, 2)], gray_frame)
        dropped = manager.select_features([1], max_count=10)
        assert dropped == [0]
        assert manager.features.ids == [2]

    def test_targets_exclude_features(self, manager, gray_frame):
        self._ready(manager, [(10.0, 5.0, 9.0, 1), (100.0, 5.0, 1.0, 2)], gray_frame)
        manager.select_features([], max_count=10, targets=[BoundingBox(90, 40, 120, 80)])
        assert manager.features.ids == [1]

    def test_feature_set_replaced_each_cycle(self, manager, gray_frame):
        tracker = self._ready(manager, [(1.0, 1.0, 1.0, 1), (2.0, 2.0, 2.0, 2)], gray_frame)
        manager.select_features([], max_count=2)
        first = manager.features
        tracker.features = [(2.0, 3.0, 2.0, 2), (4.0, 4.0, 4.0, 4)]
        dropped = manager.select_features(first.ids, max_count=2)
        assert manager.features is not first
        assert first.ids == [2, 1]
        assert manager.features.ids == [2, 4]
        assert dropped == [1]

    def test_requires_tracker(self, manager, gray_frame):
        manager.set_data("image_mono", gray_frame)
        with pytest.raises(MissingFeatureTrackerError):
            manager.select_features([], max_count=1)


class TestCreateManagerFromConfig:
    def test_builds_configured_manager(self, vp_file):
        node = FakeNode()
        config = Config(observation=ObservationParams(min_height=1.0), vp_estimate_file=vp_file)
        manager = create_manager_from_config(config, nodes=[node])
        assert manager.nodes == (node,)
        assert manager.params.min_height == 1.0
        assert manager.vp_estimator.path == vp_file
        assert ("min_height", 1.0) in node.params

    def test_managers_do_not_share_config(self):
        config = Config()
        first = create_manager_from_config(config)
        second = create_manager_from_config(config)
        first.set_obj_type(ObjectType.CAR)
        first.set_parameter("min_height", "1.0")
        assert second.obj_type == ObjectType.PERSON
        assert config.observation.object_type == ObjectType.PERSON
        assert config.observation.min_height == 1.3
