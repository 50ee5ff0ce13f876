"""GeoJSON rendering of level cells and their parents.

Each cell becomes a Polygon feature built from its closed boundary ring.
``SeenCells`` is an explicit per-run cache: cells already rendered earlier
in the same run are flagged ``is_new = False``, so a map can highlight what
this run added. The cache is created by the caller and passed in; nothing
is remembered between runs.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional, Set

from hexrollup.grid.indexer import ancestor_of, boundary_of, resolution_of
from hexrollup.grid.models import AggregateRecord, format_timestamp

__all__ = [
    'SeenCells',
    'cell_feature',
    'feature_collection',
    'parent_feature_collection',
    'write_geojson',
]

logger = logging.getLogger(__name__)


class SeenCells:
    """Cells already rendered in the current run.

    Examples
    --------
    >>> seen = SeenCells()
    >>> seen.mark("871fb4662ffffff")
    True
    >>> seen.mark("871fb4662ffffff")
    False
    """

    def __init__(self, cells: Iterable[str] = ()):
        self._cells: Set[str] = set(cells)

    def mark(self, cell_id: str) -> bool:
        """Record ``cell_id``; True if it had not been seen before."""
        if cell_id in self._cells:
            return False
        self._cells.add(cell_id)
        return True

    def __contains__(self, cell_id) -> bool:
        return cell_id in self._cells

    def __len__(self) -> int:
        return len(self._cells)


def cell_feature(cell_id: str, properties: Optional[dict] = None) -> dict:
    """Polygon feature for one cell with ``h3cell`` plus extra properties."""
    props = {"h3cell": cell_id}
    if properties:
        props.update(properties)
    return {
        "type": "Feature",
        "geometry": {
            "type": "Polygon",
            "coordinates": [[list(vertex) for vertex in boundary_of(cell_id)]],
        },
        "properties": props,
    }


def feature_collection(records: Mapping[str, AggregateRecord],
                       seen: Optional[SeenCells] = None) -> dict:
    """FeatureCollection of ``records`` with visits, last visit and new-cell flag.

    Parameters
    ----------
    records : mapping
        ``{cell_id: AggregateRecord}``.
    seen : SeenCells, optional
        Per-run cache. When given, each feature's ``is_new`` reflects whether
        the cell was already rendered earlier in this run; otherwise every
        feature is marked new.
    """
    features = []
    for cell_id in sorted(records):
        record = records[cell_id]
        is_new = seen.mark(cell_id) if seen is not None else True
        features.append(cell_feature(cell_id, {
            "visits": record.visit_count,
            "last_visit": format_timestamp(record.last_visit),
            "is_new": is_new,
        }))
    return {"type": "FeatureCollection", "features": features}


def parent_feature_collection(cells: Iterable[str], parent_resolution: int) -> dict:
    """Deduplicated FeatureCollection of the parents of ``cells``.

    Cells already at or above ``parent_resolution`` are skipped.
    """
    parents = set()
    for cell_id in cells:
        if resolution_of(cell_id) > parent_resolution:
            parents.add(ancestor_of(cell_id, parent_resolution))
    features = [cell_feature(parent) for parent in sorted(parents)]
    return {"type": "FeatureCollection", "features": features}


def write_geojson(collection: dict, path: Path | str) -> Path:
    """Write a FeatureCollection to ``path`` and return it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(collection, f)
    logger.info("✓ GeoJSON saved: %s (%d features)", path, len(collection["features"]))
    return path
