"""
Collaborator interfaces.

The feature tracker and the camera/object/feature state classes live
outside this project. The observation layer only depends on the methods
below.
"""

from __future__ import annotations

from typing import Any, List, Protocol, Sequence, Tuple

import numpy as np

from .detection import BoundingBox


# Camera parametrization that exposes a horizon element.
SIMPLIFIED_CAMERA = "simplified_camera"

# Element indices of the simplified camera state.
CAMERA_HEIGHT_INDEX = 3
HORIZON_INDEX = 7

# Element index of the height attribute of an object state.
OBJECT_HEIGHT_INDEX = 1


class FeatureTracker(Protocol):
    def set_detector_type(self, name: str) -> None:
        ...

    def set_new_image(self, image: np.ndarray, timestamp: float) -> None:
        ...

    def process_tracking(self) -> None:
        ...

    def get_features(self, timestamp: float) -> Tuple[Sequence[Tuple[float, float]], Sequence[float], Sequence[int]]:
        """Return (points, responses, identifiers) of the currently tracked features."""
        ...


class ObjectState(Protocol):
    def get_element(self, index: int) -> float:
        ...


class CameraState(Protocol):
    def get_state_type(self) -> str:
        ...

    def get_element(self, index: int) -> float:
        ...

    def set_element(self, index: int, value: float) -> None:
        ...

    def clone(self) -> "CameraState":
        ...

    def project(self, obj_state: Any) -> BoundingBox:
        """Project an object hypothesis to an image rectangle."""
        ...

    def project_feature(self, feat_state: Any) -> Tuple[float, float, float]:
        """Project a feature hypothesis to (u, v, depth)."""
        ...

    def inverse_project(self, point: Tuple[float, float]) -> Any:
        """Back-project an image point to a feature state."""
        ...


def tracked_features(tracker: FeatureTracker, timestamp: float) -> Tuple[List[Tuple[float, float]], List[float], List[int]]:
    """Query a tracker and normalise its output to plain lists."""
    points, responses, ids = tracker.get_features(timestamp)
    points = [(float(p[0]), float(p[1])) for p in points]
    responses = [float(r) for r in responses]
    ids = [int(i) for i in ids]
    if not (len(points) == len(responses) == len(ids)):
        raise ValueError(
            f"Feature tracker returned mismatched lengths: "
            f"{len(points)} points, {len(responses)} responses, {len(ids)} ids"
        )
    return points, responses, ids
