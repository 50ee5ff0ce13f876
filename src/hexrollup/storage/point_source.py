"""Point sources: where observations come from.

``SQLitePointSource`` reads an observations table with pandas and pushes
the level's bounding box down into SQL. ``InMemoryPointSource`` serves a
fixed list and is used in tests and when embedding the pipeline.
"""

import logging
import re
import sqlite3
from pathlib import Path
from typing import Iterable, List, Optional, Protocol

import pandas as pd

from hexrollup.contracts.failure import StorageFailure
from hexrollup.grid.models import PointObservation
from hexrollup.grid.region import BoundingBox, filter_points

__all__ = ['PointSource', 'SQLitePointSource', 'InMemoryPointSource', 'frame_to_points']

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PointSource(Protocol):
    def fetch(self, box: Optional[BoundingBox] = None) -> List[PointObservation]:
        ...


def frame_to_points(df: pd.DataFrame) -> List[PointObservation]:
    """Convert a frame with latitude/longitude/visits/last_visit columns.

    Missing visit counts become None. Unparseable or missing timestamps
    become None. Rows with missing coordinates are dropped.
    """
    if df.empty:
        return []

    df = df.dropna(subset=["latitude", "longitude"])
    visits = df["visits"].astype("object").where(df["visits"].notna(), None)
    if "last_visit" in df.columns:
        times = pd.to_datetime(df["last_visit"], utc=True, errors="coerce", format="ISO8601")
    else:
        times = pd.Series(pd.NaT, index=df.index)

    points = []
    for lat, lon, count, ts in zip(df["latitude"], df["longitude"], visits, times):
        points.append(PointObservation(
            latitude=float(lat),
            longitude=float(lon),
            visit_count=int(count) if count is not None else None,
            last_visit=None if pd.isna(ts) else ts.to_pydatetime(),
        ))
    return points


class SQLitePointSource:
    """Read observations from a SQLite table.

    Parameters
    ----------
    db_path : Path or str
        Source database. Must exist.
    table : str
        Observations table (default ``cities_with_users``).
    latitude_column, longitude_column, visits_column : str
        Column names in the source table.
    last_visit_column : str or None
        Column holding the last visit time. None if the source has none.
    """

    def __init__(self, db_path: Path | str, table: str = "cities_with_users",
                 latitude_column: str = "latitude",
                 longitude_column: str = "longitude",
                 visits_column: str = "visits",
                 last_visit_column: Optional[str] = "last_visit"):
        self.db_path = Path(db_path)
        for name in (table, latitude_column, longitude_column, visits_column, last_visit_column):
            if name is not None and not _IDENTIFIER.match(name):
                raise ValueError(f"Invalid SQL identifier: {name!r}")
        self.table = table
        self.latitude_column = latitude_column
        self.longitude_column = longitude_column
        self.visits_column = visits_column
        self.last_visit_column = last_visit_column

    def _query(self, box: Optional[BoundingBox]):
        last_visit = (f"{self.last_visit_column} AS last_visit"
                      if self.last_visit_column else "NULL AS last_visit")
        sql = (
            f"SELECT {self.latitude_column} AS latitude, "
            f"{self.longitude_column} AS longitude, "
            f"{self.visits_column} AS visits, {last_visit} "
            f"FROM {self.table} "
            f"WHERE {self.latitude_column} IS NOT NULL AND {self.longitude_column} IS NOT NULL"
        )
        params = []
        if box is not None:
            sql += (f" AND {self.latitude_column} BETWEEN ? AND ?"
                    f" AND {self.longitude_column} BETWEEN ? AND ?")
            params = [box.south, box.north, box.west, box.east]
        return sql, params

    def fetch(self, box: Optional[BoundingBox] = None) -> List[PointObservation]:
        """All observations inside ``box`` (everything if None).

        Raises
        ------
        StorageFailure
            If the database is missing or the query fails.
        """
        if not self.db_path.exists():
            raise StorageFailure(f"Source database not found: {self.db_path}")

        sql, params = self._query(box)
        conn = sqlite3.connect(str(self.db_path))
        try:
            df = pd.read_sql_query(sql, conn, params=params)
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            raise StorageFailure(f"Source query failed on {self.table}: {e}") from e
        finally:
            conn.close()

        points = frame_to_points(df)
        logger.info("Fetched %d points from %s%s", len(points), self.table,
                    f" within {box.model_dump()}" if box else "")
        return points


class InMemoryPointSource:
    """Serve a fixed list of observations, filtered by box."""

    def __init__(self, points: Iterable[PointObservation]):
        self.points = list(points)

    def fetch(self, box: Optional[BoundingBox] = None) -> List[PointObservation]:
        return list(filter_points(self.points, box))
