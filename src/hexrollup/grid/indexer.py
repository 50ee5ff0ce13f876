"""Cell indexer: map coordinates onto the H3 hexagonal grid.

Thin, validated wrapper over the ``h3`` v4 API. All functions are pure and
deterministic: the same inputs always produce the same cell id.

Coordinate order
----------------
- ``index_of`` takes (lat, lon), the same order as ``h3.latlng_to_cell``
- ``boundary_of`` yields (lon, lat) pairs, the GeoJSON order
- ``centroid_of`` returns (lat, lon)
"""

import math
from typing import Iterator, Tuple

import h3

from hexrollup.contracts.failure import InvalidCellId, InvalidCoordinate, InvalidResolution

__all__ = [
    'MIN_RESOLUTION',
    'MAX_RESOLUTION',
    'CellBoundary',
    'index_of',
    'ancestor_of',
    'boundary_of',
    'centroid_of',
    'resolution_of',
    'is_valid_cell',
    'is_cell_at_resolution',
    'validate_resolution',
]

MIN_RESOLUTION = 0
MAX_RESOLUTION = 15


def validate_resolution(resolution) -> int:
    """Return ``resolution`` if it is an int in 0..15, else raise InvalidResolution."""
    if isinstance(resolution, bool) or not isinstance(resolution, int):
        raise InvalidResolution(f"Resolution must be an int, got {resolution!r}")
    if not MIN_RESOLUTION <= resolution <= MAX_RESOLUTION:
        raise InvalidResolution(
            f"Resolution {resolution} outside {MIN_RESOLUTION}..{MAX_RESOLUTION}"
        )
    return resolution


def _validate_coordinate(lat, lon) -> Tuple[float, float]:
    try:
        lat_f = float(lat)
        lon_f = float(lon)
    except (TypeError, ValueError):
        raise InvalidCoordinate(lat, lon, "not a number") from None

    if not (math.isfinite(lat_f) and math.isfinite(lon_f)):
        raise InvalidCoordinate(lat, lon, "non-finite")
    if not -90.0 <= lat_f <= 90.0:
        raise InvalidCoordinate(lat, lon, "latitude outside -90..90")
    if not -180.0 <= lon_f <= 180.0:
        raise InvalidCoordinate(lat, lon, "longitude outside -180..180")
    return lat_f, lon_f


def is_valid_cell(cell_id) -> bool:
    """True if ``cell_id`` is a valid H3 cell string."""
    if not isinstance(cell_id, str) or not cell_id:
        return False
    try:
        return bool(h3.is_valid_cell(cell_id))
    except (ValueError, TypeError):
        return False


def _require_cell(cell_id) -> str:
    if not is_valid_cell(cell_id):
        raise InvalidCellId(f"Not a valid H3 cell: {cell_id!r}")
    return cell_id


def resolution_of(cell_id: str) -> int:
    """Resolution encoded in ``cell_id``."""
    return h3.get_resolution(_require_cell(cell_id))


def is_cell_at_resolution(cell_id, resolution: int) -> bool:
    """True if ``cell_id`` is a valid cell at exactly ``resolution``."""
    return is_valid_cell(cell_id) and h3.get_resolution(cell_id) == resolution


def index_of(lat: float, lon: float, resolution: int) -> str:
    """Cell id containing (lat, lon) at ``resolution``.

    Parameters
    ----------
    lat : float
        Latitude in degrees, -90..90.
    lon : float
        Longitude in degrees, -180..180.
    resolution : int
        H3 resolution, 0 (coarsest) to 15 (finest).

    Returns
    -------
    str
        Canonical lowercase H3 cell id.

    Raises
    ------
    InvalidCoordinate
        If lat/lon are non-finite or out of range.
    InvalidResolution
        If resolution is not an int in 0..15.
    """
    lat_f, lon_f = _validate_coordinate(lat, lon)
    validate_resolution(resolution)
    return h3.latlng_to_cell(lat_f, lon_f, resolution).lower()


def ancestor_of(cell_id: str, ancestor_resolution: int) -> str:
    """Ancestor of ``cell_id`` at a strictly coarser resolution.

    Raises
    ------
    InvalidCellId
        If ``cell_id`` is not a valid H3 cell.
    InvalidResolution
        If ``ancestor_resolution`` is negative or not strictly coarser.
    """
    current = resolution_of(cell_id)
    validate_resolution(ancestor_resolution)
    if ancestor_resolution >= current:
        raise InvalidResolution(
            f"Ancestor resolution {ancestor_resolution} must be coarser than "
            f"cell resolution {current} ({cell_id})"
        )
    return h3.cell_to_parent(cell_id, ancestor_resolution)


class CellBoundary:
    """Lazy, restartable closed ring of (lon, lat) vertices for one cell.

    Nothing is computed until the first iteration. Every iteration yields
    the same ring, and the first vertex is repeated as the last so the ring
    can be written straight into a GeoJSON Polygon.

    Examples
    --------
    >>> ring = boundary_of("871fb4662ffffff")
    >>> coords = list(ring)
    >>> coords[0] == coords[-1]
    True
    """

    def __init__(self, cell_id: str):
        self.cell_id = _require_cell(cell_id)
        self._vertices = None

    def _load(self):
        if self._vertices is None:
            # h3 returns (lat, lng); flip to (lon, lat)
            self._vertices = tuple(
                (lng, lat) for lat, lng in h3.cell_to_boundary(self.cell_id)
            )
        return self._vertices

    def __iter__(self) -> Iterator[Tuple[float, float]]:
        vertices = self._load()
        yield from vertices
        if vertices:
            yield vertices[0]

    def __len__(self) -> int:
        return len(self._load()) + 1

    def __repr__(self) -> str:
        return f"CellBoundary({self.cell_id!r})"


def boundary_of(cell_id: str) -> CellBoundary:
    """Closed polygon ring of ``cell_id`` as (lon, lat) pairs (lazy)."""
    return CellBoundary(cell_id)


def centroid_of(cell_id: str) -> Tuple[float, float]:
    """Center of ``cell_id`` as (lat, lon)."""
    lat, lng = h3.cell_to_latlng(_require_cell(cell_id))
    return lat, lng
