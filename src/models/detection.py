"""
Detection models for detector outputs and the values derived from them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence


@dataclass(frozen=True)
class BoundingBox:
    """
    An axis-aligned box in pixel coordinates.

    Containment follows the OpenCV rect convention: the left and top edges
    are inside the box, the right and bottom edges are not.

    Attributes:
        x1: Left edge x coordinate.
        y1: Top edge y coordinate.
        x2: Right edge x coordinate.
        y2: Bottom edge y coordinate.
    """
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    def contains(self, x: float, y: float) -> bool:
        """Whether the point (x, y) lies inside the box."""
        return self.x1 <= x < self.x2 and self.y1 <= y < self.y2

    def as_xywh(self) -> List[int]:
        """Return as integer [x, y, width, height], the layout OpenCV expects."""
        return [int(round(self.x1)), int(round(self.y1)), int(round(self.width)), int(round(self.height))]

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "BoundingBox":
        """Create from (x, y, width, height) format."""
        return cls(x1=x, y1=y, x2=x + w, y2=y + h)


@dataclass(frozen=True)
class HorizonVote:
    """
    The horizon row implied by one detection.

    Attributes:
        row: Image row where the horizon would lie for the candidate camera height.
        std: Uncertainty of the row, proportional to the detection's pixel height.
    """
    row: int
    std: float


def point_in_any_box(boxes: Iterable[BoundingBox], x: float, y: float) -> bool:
    """Whether (x, y) lies inside at least one of the boxes."""
    return any(box.contains(x, y) for box in boxes)


def boxes_to_xywh(boxes: Sequence[BoundingBox]) -> List[List[int]]:
    """Adapter: Convert boxes to a list of integer [x, y, w, h] rows."""
    return [box.as_xywh() for box in boxes]
