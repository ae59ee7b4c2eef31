"""
Feature association across frames.

Selects a bounded set of tracked feature points for the current frame:
features that were selected in the previous cycle are carried forward when
the tracker still reports them and they lie outside every exclusion zone;
the remaining quota is filled with the strongest new responses.

Lost and excluded features are reported as dropped. Drops are a normal
outcome of every cycle, not an error.
"""

from __future__ import annotations

import logging
from typing import List, Sequence, Set

from models.detection import BoundingBox, point_in_any_box
from models.features import AssociationResult, FeaturePoint, FeatureSet


class FeatureAssociator:
    """
    Bounded carry-forward / replenish feature selection.

    The associator holds no per-frame state; every call builds a new
    FeatureSet from its inputs.

    Example:
        associator = FeatureAssociator()
        result = associator.associate(pool, prev_ids, max_count=40, exclusion_zones=zones)
        features, dropped = result.features, result.dropped
    """

    def associate(
        self,
        pool: Sequence[FeaturePoint],
        prev_ids: Sequence[int],
        max_count: int,
        exclusion_zones: Sequence[BoundingBox] = (),
    ) -> AssociationResult:
        """
        Select up to `max_count` features from `pool`.

        Args:
            pool: All features currently reported by the tracker.
            prev_ids: Identifiers selected in the previous cycle, in selection order.
            max_count: Maximum number of features to select.
            exclusion_zones: Regions in which no feature may be selected.

        Returns:
            AssociationResult with the selected features and the indices into
            `prev_ids` of the features that were dropped.

        Raises:
            ValueError: If max_count is negative.
        """
        if max_count < 0:
            raise ValueError(f"max_count must be non-negative, got {max_count}")

        remaining: List[FeaturePoint] = list(pool)
        selected: List[FeaturePoint] = []
        dropped: List[int] = []

        # Carry forward previous features in their original order
        for i, track_id in enumerate(prev_ids):
            if len(selected) >= max_count:
                break
            idx = self._find(remaining, track_id)
            if idx is None:
                dropped.append(i)
                continue
            feat = remaining.pop(idx)
            if point_in_any_box(exclusion_zones, feat.x, feat.y):
                dropped.append(i)
            else:
                selected.append(feat)
        carried = len(selected)

        # Replenish with the strongest remaining responses
        while len(selected) < max_count and remaining:
            idx = max(range(len(remaining)), key=lambda k: remaining[k].response)
            feat = remaining.pop(idx)
            if not point_in_any_box(exclusion_zones, feat.x, feat.y):
                selected.append(feat)

        logging.debug(
            f"Feature association: carried={carried} new={len(selected) - carried} "
            f"dropped={len(dropped)} pool={len(pool)} zones={len(exclusion_zones)}"
        )
        return AssociationResult(features=FeatureSet.from_points(selected), dropped=dropped)

    @staticmethod
    def _find(points: Sequence[FeaturePoint], track_id: int):
        for idx, feat in enumerate(points):
            if feat.track_id == track_id:
                return idx
        return None


def build_pool(
    points: Sequence[Sequence[float]],
    responses: Sequence[float],
    ids: Sequence[int],
    row_offset: float = 0.0,
) -> List[FeaturePoint]:
    """
    Adapter: Convert tracker output to FeaturePoints.

    Args:
        points: (x, y) per feature, as reported by the tracker.
        responses: Detector response per feature.
        ids: Track identifier per feature.
        row_offset: Added to every y, to map crop coordinates back to the full frame.
    """
    seen: Set[int] = set()
    pool: List[FeaturePoint] = []
    for (x, y), response, track_id in zip(points, responses, ids):
        if track_id in seen:
            logging.warning(f"Feature tracker reported identifier {track_id} twice; keeping the first")
            continue
        seen.add(track_id)
        pool.append(FeaturePoint(x=float(x), y=float(y) + row_offset, track_id=int(track_id), response=float(response)))
    return pool
