"""
ObservationNode interface for pluggable detectors and feature sources.

This defines the contract that every observation node must implement,
enabling the observation manager to fuse evidence from any detector:
- pedestrian / vehicle detectors
- depth or motion based detectors
- any other source that scores image rectangles

Nodes receive frame data and parameters by broadcast from the manager,
preprocess each frame, and then answer confidence queries for projected
object hypotheses.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List

from models.config import ObjectType
from models.detection import BoundingBox


class ObservationNode(ABC):
    """
    Abstract base class for observation nodes.

    Lifecycle, per frame:
        1. set_data() / set_parameter() broadcast by the manager
        2. preprocess(), possibly on a worker thread
        3. get_detections() and get_confidence() queries

    preprocess() may run concurrently with other nodes' preprocess(), so a
    node must not touch state shared with another node during it.
    """

    def __init__(self):
        self._obj_type = ObjectType.PERSON

    @property
    def obj_type(self) -> ObjectType:
        """Object class the node is currently scoring."""
        return self._obj_type

    def set_data(self, key: str, payload: Any) -> None:
        """
        Receive a broadcast data item (frame, timestamp, tracker, ...).

        Keys a node does not use are ignored.
        """

    def set_parameter(self, name: str, value: Any) -> None:
        """
        Receive a broadcast configuration parameter.

        Keys a node does not use are ignored.
        """

    def query_data(self, name: str, sink: Any) -> None:
        """Write node-specific data named `name` into `sink`, if the node has it."""

    def set_obj_type(self, obj_type: ObjectType) -> None:
        """Switch the object class the node scores."""
        self._obj_type = obj_type

    @abstractmethod
    def get_type(self) -> str:
        """Node type name, used for lookup and confidence filtering."""
        pass

    @abstractmethod
    def preprocess(self) -> None:
        """Prepare per-frame state from the data received since the last frame."""
        pass

    @abstractmethod
    def get_detections(self) -> List[BoundingBox]:
        """Detections for the current frame, in full-frame pixel coordinates."""
        pass

    @abstractmethod
    def get_confidence(self, rect: BoundingBox) -> float:
        """
        Log-confidence that an object occupies `rect` in the current frame.

        Args:
            rect: Image-space projection of an object hypothesis.
        """
        pass
