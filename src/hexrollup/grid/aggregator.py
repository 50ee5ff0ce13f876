"""Aggregator: group point observations by cell at one resolution.

Points landing in the same cell are combined with a merge policy
(``MAX_MERGE`` by default: peak visit count, latest visit time). Points
with invalid coordinates or a negative visit count are dropped with a
warning under ``FailurePolicy.SKIP_POINT`` so one bad row never sinks a
batch.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from hexrollup.contracts.failure import FailurePolicy, InvalidCoordinate
from hexrollup.grid.indexer import index_of, validate_resolution
from hexrollup.grid.merge_policy import MAX_MERGE, MergePolicy
from hexrollup.grid.models import AggregateRecord, PointObservation

__all__ = [
    'ExclusionPolicy',
    'KEEP_ALL',
    'ACTIVE_ONLY',
    'AggregationStats',
    'VisitAggregator',
    'aggregate',
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExclusionPolicy:
    """Which observations are dropped before aggregation.

    Attributes
    ----------
    min_visits : int or None
        If set, points with a missing visit count or a count below this
        value are excluded. If None, nothing is excluded on visits and a
        missing count is treated as 0.
    require_last_visit : bool
        If True, points without a last-visit time are excluded.
    """
    min_visits: Optional[int] = None
    require_last_visit: bool = False

    def excludes(self, point: PointObservation) -> bool:
        if self.min_visits is not None:
            if point.visit_count is None or point.visit_count < self.min_visits:
                return True
        if self.require_last_visit and point.last_visit is None:
            return True
        return False


KEEP_ALL = ExclusionPolicy()
ACTIVE_ONLY = ExclusionPolicy(min_visits=1, require_last_visit=True)


@dataclass
class AggregationStats:
    """Counters from the most recent ``aggregate()`` call."""
    seen: int = 0
    excluded: int = 0
    invalid: int = 0
    cells: int = 0


class VisitAggregator:
    """Groups points into one ``AggregateRecord`` per cell.

    Parameters
    ----------
    policy : MergePolicy
        How two points in the same cell combine. Default ``MAX_MERGE``.
    exclusion : ExclusionPolicy
        Which points are dropped up front. Default ``KEEP_ALL``.
    failure_policy : FailurePolicy
        ``SKIP_POINT`` (default) logs and drops points with invalid
        coordinates or a negative visit count; ``FAIL_FAST`` raises instead.

    Examples
    --------
    >>> agg = VisitAggregator()
    >>> cells = agg.aggregate(points, resolution=7)
    >>> agg.stats.invalid
    0
    """

    def __init__(self, policy: MergePolicy = MAX_MERGE,
                 exclusion: ExclusionPolicy = KEEP_ALL,
                 failure_policy: FailurePolicy = FailurePolicy.SKIP_POINT):
        self.policy = policy
        self.exclusion = exclusion
        self.failure_policy = FailurePolicy(failure_policy)
        self.stats = AggregationStats()

    def aggregate(self, points: Iterable[PointObservation],
                  resolution: int) -> Dict[str, AggregateRecord]:
        """Aggregate ``points`` into cells at ``resolution``.

        Returns
        -------
        dict
            ``{cell_id: AggregateRecord}``. Empty input gives an empty dict.

        Raises
        ------
        InvalidResolution
            If resolution is outside 0..15.
        InvalidCoordinate
            Only under ``FailurePolicy.FAIL_FAST``.
        ValueError
            For a negative visit count, only under ``FailurePolicy.FAIL_FAST``.
        """
        validate_resolution(resolution)
        stats = AggregationStats()
        self.stats = stats
        result: Dict[str, AggregateRecord] = {}

        for point in points:
            stats.seen += 1

            if self.exclusion.excludes(point):
                stats.excluded += 1
                continue

            try:
                cell_id = index_of(point.latitude, point.longitude, resolution)
            except InvalidCoordinate as e:
                if self.failure_policy == FailurePolicy.FAIL_FAST:
                    raise
                stats.invalid += 1
                logger.warning("Skipping point: %s", e)
                continue

            if point.visit_count is not None and point.visit_count < 0:
                if self.failure_policy == FailurePolicy.FAIL_FAST:
                    raise ValueError(
                        f"Negative visit count {point.visit_count} at "
                        f"({point.latitude}, {point.longitude})"
                    )
                stats.invalid += 1
                logger.warning("Skipping point at (%s, %s): negative visit count %d",
                               point.latitude, point.longitude, point.visit_count)
                continue

            incoming = AggregateRecord(
                cell_id=cell_id,
                visit_count=point.visit_count if point.visit_count is not None else 0,
                last_visit=point.last_visit,
            )
            existing = result.get(cell_id)
            result[cell_id] = incoming if existing is None else self.policy(existing, incoming)

        stats.cells = len(result)
        logger.debug(
            "Aggregated res %d: seen=%d excluded=%d invalid=%d cells=%d",
            resolution, stats.seen, stats.excluded, stats.invalid, stats.cells,
        )
        return result


def aggregate(points: Iterable[PointObservation], resolution: int,
              exclusion: ExclusionPolicy = KEEP_ALL) -> Dict[str, AggregateRecord]:
    """Aggregate with the default max-merge policy (convenience wrapper)."""
    return VisitAggregator(exclusion=exclusion).aggregate(points, resolution)
