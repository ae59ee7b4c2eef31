"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import threading

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.config import ObservationParams  # noqa: E402
from models.detection import BoundingBox  # noqa: E402
from models.interfaces import SIMPLIFIED_CAMERA  # noqa: E402
from observation.base import ObservationNode  # noqa: E402
from observation.manager import ObservationManager  # noqa: E402


class FakeNode(ObservationNode):
    """Observation node returning fixed detections and confidence."""

    def __init__(self, type_name="fake", detections=None, confidence=0.0):
        super().__init__()
        self.type_name = type_name
        self.detections = list(detections or [])
        self.confidence = confidence
        self.data = []
        self.params = []
        self.queries = []
        self.preprocess_threads = []
        self.confidence_rects = []

    def get_type(self):
        return self.type_name

    def set_data(self, key, payload):
        self.data.append((key, payload))

    def set_parameter(self, name, value):
        self.params.append((name, value))

    def query_data(self, name, sink):
        self.queries.append(name)
        sink.setdefault(name, []).append(self.type_name)

    def preprocess(self):
        self.preprocess_threads.append(threading.current_thread().name)

    def get_detections(self):
        return list(self.detections)

    def get_confidence(self, rect):
        self.confidence_rects.append(rect)
        return self.confidence


class FakeTracker:
    """Feature tracker reporting a fixed list of (x, y, response, id) features."""

    def __init__(self, features=None):
        self.features = list(features or [])
        self.detector_types = []
        self.images = []
        self.process_calls = 0

    def set_detector_type(self, name):
        self.detector_types.append(name)

    def set_new_image(self, image, timestamp):
        self.images.append((image, timestamp))

    def process_tracking(self):
        self.process_calls += 1

    def get_features(self, timestamp):
        points = [(x, y) for x, y, _, _ in self.features]
        responses = [r for _, _, r, _ in self.features]
        ids = [i for _, _, _, i in self.features]
        return points, responses, ids


class FakeCamera:
    """Camera state with an element vector and fixed projections."""

    def __init__(self, state_type=SIMPLIFIED_CAMERA, camera_height=1.0, horizon=250.0,
                 rect=None, feature_projection=(0.0, 0.0, 1.0)):
        self.state_type = state_type
        self.elements = [0.0] * 9
        self.elements[3] = camera_height
        self.elements[7] = horizon
        self.rect = rect or BoundingBox(10, 10, 50, 100)
        self.feature_projection = feature_projection
        self.set_calls = []
        self.clones = []

    def get_state_type(self):
        return self.state_type

    def get_element(self, index):
        return self.elements[index]

    def set_element(self, index, value):
        self.set_calls.append((index, value))
        self.elements[index] = value

    def clone(self):
        other = FakeCamera(self.state_type, rect=self.rect, feature_projection=self.feature_projection)
        other.elements = list(self.elements)
        self.clones.append(other)
        return other

    def project(self, obj_state):
        return self.rect

    def project_feature(self, feat_state):
        return self.feature_projection

    def inverse_project(self, point):
        return ("feature_state", point)


class FakeObject:
    """Object state whose element 1 is its height."""

    def __init__(self, height=1.7):
        self.elements = [0.0, height, 5.0]

    def get_element(self, index):
        return self.elements[index]


@pytest.fixture
def params():
    return ObservationParams()


@pytest.fixture
def manager(params):
    return ObservationManager(params)


@pytest.fixture
def tracker():
    return FakeTracker()


@pytest.fixture
def camera():
    return FakeCamera()


@pytest.fixture
def gray_frame():
    """A 100x120 monochrome frame."""
    return np.zeros((100, 120), dtype=np.uint8)


@pytest.fixture
def vp_file(tmp_path):
    """A vanishing-point file peaking at row 200."""
    path = tmp_path / "vp.yaml"
    path.write_text(
        "horizon_rows: [100, 200, 300]\n"
        "log_confidence: [-10.0, 0.0, -10.0]\n"
    )
    return str(path)


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
observation:
  min_height: 1.3
  max_height: 2.3
  total_weight: 1.0
  feat_sigma_u: 2.0
  feat_sigma_v: 2.0
  object_type: "person"

log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "observation": {
            "min_height": 1.3,
            "max_height": 2.3,
            "total_weight": 1.0,
            "feat_sigma_u": 2.0,
            "feat_sigma_v": 3.0,
            "mean_horizon": 240.0,
            "std_horizon": 20.0,
            "horizon_search_radius": 200,
            "object_type": "person",
            "height_priors": {"person": {"mean": 1.7, "std": 0.1}},
        },
        "log_level": "INFO",
    }
