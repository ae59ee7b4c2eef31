"""
Rectangle grouping helpers for building feature exclusion zones.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

import cv2

from models.detection import BoundingBox, boxes_to_xywh


# Minimum cluster size and relative similarity used for exclusion zones.
GROUP_THRESHOLD = 1
GROUP_EPS = 0.2


def group_boxes(
    boxes: Iterable[BoundingBox],
    group_threshold: int = GROUP_THRESHOLD,
    eps: float = GROUP_EPS,
) -> List[BoundingBox]:
    """
    Merge similar boxes with cv2.groupRectangles.

    Every box is entered twice so that a cluster of one still has two members
    and survives the `group_threshold` cut. Isolated boxes are therefore kept
    as they are; only boxes that are similar within `eps` are averaged.

    Args:
        boxes: Boxes to merge.
        group_threshold: Clusters with this many members or fewer are discarded
            (counted after duplication).
        eps: Relative difference between box sides under which boxes merge.

    Returns:
        The merged boxes.
    """
    rects: List[List[int]] = []
    for rect in boxes_to_xywh(list(boxes)):
        rects.append(rect)
        rects.append(list(rect))
    if not rects:
        return []

    grouped, _ = cv2.groupRectangles(rects, group_threshold, eps)
    merged = [BoundingBox.from_xywh(float(x), float(y), float(w), float(h)) for x, y, w, h in grouped]
    logging.debug(f"Grouped {len(rects) // 2} boxes into {len(merged)} exclusion zones")
    return merged


def build_exclusion_zones(targets: Iterable[BoundingBox], detections: Iterable[BoundingBox]) -> List[BoundingBox]:
    """Exclusion zones from the current hypothesis regions and detections."""
    return group_boxes(list(targets) + list(detections))
