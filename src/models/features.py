"""
Feature models for tracked 2D points.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Sequence, Tuple


@dataclass(frozen=True)
class FeaturePoint:
    """
    A tracked 2D feature observation.

    Attributes:
        x: Column in full-frame pixel coordinates.
        y: Row in full-frame pixel coordinates.
        track_id: Persistent identifier assigned by the feature tracker.
        response: Detector response (quality) of the point.
    """
    x: float
    y: float
    track_id: int
    response: float = 0.0

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class FeatureSet:
    """
    The ordered set of features selected in one association cycle.

    A FeatureSet is never mutated; each cycle produces a new one. Identifiers
    are unique within a set.
    """
    points: Tuple[FeaturePoint, ...] = ()

    def __post_init__(self):
        ids = [p.track_id for p in self.points]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate feature identifiers in {ids}")

    @classmethod
    def from_points(cls, points: Sequence[FeaturePoint]) -> "FeatureSet":
        return cls(points=tuple(points))

    @property
    def ids(self) -> List[int]:
        """Identifiers in selection order."""
        return [p.track_id for p in self.points]

    def index_of(self, track_id: int) -> int:
        """
        Position of the feature with the given identifier.

        Raises:
            ValueError: If no feature carries that identifier.
        """
        for i, p in enumerate(self.points):
            if p.track_id == track_id:
                return i
        raise ValueError(f"No feature with identifier {track_id}")

    def __contains__(self, track_id: object) -> bool:
        return any(p.track_id == track_id for p in self.points)

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[FeaturePoint]:
        return iter(self.points)

    def __getitem__(self, index: int) -> FeaturePoint:
        return self.points[index]


@dataclass(frozen=True)
class AssociationResult:
    """
    Outcome of one association cycle.

    Attributes:
        features: The newly selected features (carried forward first, then replenished).
        dropped: Indices into the previous identifier list of features that were
            not carried forward, either because they were lost or excluded.
    """
    features: FeatureSet = field(default_factory=FeatureSet)
    dropped: List[int] = field(default_factory=list)
