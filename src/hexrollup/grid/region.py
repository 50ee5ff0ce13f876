"""Region filter: optional rectangular lat/lon bounds per resolution level.

"No filter" is expressed as ``None``, never as a zeroed box. A box whose
edges are all zero is a legitimate degenerate box containing only (0, 0).
"""

from typing import Iterable, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hexrollup.grid.models import PointObservation

__all__ = ['BoundingBox', 'include', 'filter_points']


class BoundingBox(BaseModel):
    """Inclusive rectangle in degrees.

    Boxes crossing the antimeridian are not supported; ``west`` must not
    exceed ``east``.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    north: float = Field(..., ge=-90.0, le=90.0)
    west: float = Field(..., ge=-180.0, le=180.0)
    south: float = Field(..., ge=-90.0, le=90.0)
    east: float = Field(..., ge=-180.0, le=180.0)

    @model_validator(mode="after")
    def check_ordering(self):
        if self.south > self.north:
            raise ValueError(f"south ({self.south}) must be <= north ({self.north})")
        if self.west > self.east:
            raise ValueError(f"west ({self.west}) must be <= east ({self.east})")
        return self

    def contains(self, lat: float, lon: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lon <= self.east


def include(lat: float, lon: float, box: Optional[BoundingBox]) -> bool:
    """True if (lat, lon) lies inside ``box``, edges inclusive.

    ``box=None`` means the level has no region restriction and every point
    is included.
    """
    if box is None:
        return True
    return box.contains(lat, lon)


def filter_points(points: Iterable[PointObservation],
                  box: Optional[BoundingBox]) -> Iterator[PointObservation]:
    """Yield only the points that fall inside ``box``."""
    for point in points:
        if include(point.latitude, point.longitude, box):
            yield point
