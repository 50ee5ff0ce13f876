"""Pure grid stages: indexing, region filtering, aggregation, rollup.

Submodules:
- models: PointObservation, AggregateRecord, timestamp helpers
- indexer: lat/lon -> H3 cell, ancestors, boundaries, centroids
- region: optional bounding boxes per level
- merge_policy: MAX_MERGE, SUM_ROLLUP, REPLACE
- aggregator: points -> one record per cell
- rollup: fine cells -> summed ancestor cells
"""

from hexrollup.grid.models import AggregateRecord, PointObservation
from hexrollup.grid.indexer import (
    CellBoundary,
    ancestor_of,
    boundary_of,
    centroid_of,
    index_of,
    is_valid_cell,
    resolution_of,
)
from hexrollup.grid.region import BoundingBox, filter_points, include
from hexrollup.grid.merge_policy import MAX_MERGE, REPLACE, SUM_ROLLUP, MergePolicy, get_policy
from hexrollup.grid.aggregator import (
    ACTIVE_ONLY,
    KEEP_ALL,
    ExclusionPolicy,
    VisitAggregator,
    aggregate,
)
from hexrollup.grid.rollup import HierarchicalRollup, roll_up, roll_up_chain

__all__ = [
    'AggregateRecord',
    'PointObservation',
    'CellBoundary',
    'ancestor_of',
    'boundary_of',
    'centroid_of',
    'index_of',
    'is_valid_cell',
    'resolution_of',
    'BoundingBox',
    'filter_points',
    'include',
    'MAX_MERGE',
    'REPLACE',
    'SUM_ROLLUP',
    'MergePolicy',
    'get_policy',
    'ACTIVE_ONLY',
    'KEEP_ALL',
    'ExclusionPolicy',
    'VisitAggregator',
    'aggregate',
    'HierarchicalRollup',
    'roll_up',
    'roll_up_chain',
]
