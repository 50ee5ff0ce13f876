"""Value types shared by the grid, storage, and export stages.

Timestamps are always timezone-aware UTC. Naive datetimes coming from
sources that do not carry a zone are taken to be UTC.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

__all__ = [
    'PointObservation',
    'AggregateRecord',
    'to_utc',
    'parse_timestamp',
    'format_timestamp',
]


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to timezone-aware UTC (None passes through)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse a stored ISO timestamp (or pass a datetime through) as UTC.

    Accepts the trailing 'Z' form and the space-separated form SQLite's
    CURRENT_TIMESTAMP produces. Empty strings are treated as missing.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    text = str(value).strip()
    if not text:
        return None
    return to_utc(datetime.fromisoformat(text.replace('Z', '+00:00')))


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as ISO-8601 UTC text for storage."""
    if value is None:
        return None
    return to_utc(value).isoformat()


@dataclass(frozen=True)
class PointObservation:
    """One geographic observation from the point source.

    Attributes
    ----------
    latitude, longitude : float
        Degrees, WGS84.
    visit_count : int or None
        Visits recorded for this point. None when the source has no value.
    last_visit : datetime or None
        Most recent visit, UTC. None when never recorded.
    """
    latitude: float
    longitude: float
    visit_count: Optional[int] = None
    last_visit: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, 'last_visit', to_utc(self.last_visit))


@dataclass(frozen=True)
class AggregateRecord:
    """Merged state of one cell at one resolution."""
    cell_id: str
    visit_count: int
    last_visit: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, 'last_visit', to_utc(self.last_visit))
