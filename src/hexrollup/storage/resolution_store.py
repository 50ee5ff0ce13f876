"""SQLite-backed per-resolution cell tables.

One database file holds one table per H3 resolution, named from a pattern
(default ``h3_level_{resolution}``). Each table has the schema::

    h3_index   TEXT PRIMARY KEY
    visits     INTEGER NOT NULL
    last_visit TEXT            -- ISO-8601 UTC, NULL when never recorded

Tables are created lazily on first write. A table created before the
``last_visit`` column existed gets it added in place.

Only the upsert engine writes through this module; everything else reads.
"""

import logging
import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from hexrollup.contracts.failure import StorageFailure
from hexrollup.grid.indexer import validate_resolution
from hexrollup.grid.models import AggregateRecord, format_timestamp, parse_timestamp

__all__ = ['ResolutionStore', 'ResolutionTable', 'table_name_for']

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def table_name_for(resolution: int, pattern: str = "h3_level_{resolution}") -> str:
    """Table name for ``resolution``, validated as a plain SQL identifier."""
    name = pattern.format(resolution=validate_resolution(resolution))
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid table name from pattern {pattern!r}: {name!r}")
    return name


class ResolutionTable:
    """One resolution's cell table inside a ``ResolutionStore``.

    Parameters
    ----------
    store : ResolutionStore
        Owning store (provides the connection).
    resolution : int
        H3 resolution of every cell in this table.
    name : str
        SQL table name.
    """

    def __init__(self, store: "ResolutionStore", resolution: int, name: str):
        self.store = store
        self.resolution = resolution
        self.name = name
        self._in_transaction = False

    def __repr__(self) -> str:
        return f"ResolutionTable({self.name!r}, resolution={self.resolution})"

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self.store.connection.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageFailure(f"{self.name}: {e}", table=self.name) from e

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        row = self._execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name = ?",
            (self.name,)
        ).fetchone()
        return row is not None

    def ensure_table(self):
        """Create the table if absent and add ``last_visit`` if missing."""
        self._execute(f"""
            CREATE TABLE IF NOT EXISTS {self.name} (
                h3_index TEXT PRIMARY KEY,
                visits INTEGER NOT NULL DEFAULT 0,
                last_visit TEXT
            )
        """)
        columns = {row["name"] for row in self._execute(f"PRAGMA table_info({self.name})")}
        if "last_visit" not in columns:
            self._execute(f"ALTER TABLE {self.name} ADD COLUMN last_visit TEXT")
            logger.info("Added last_visit column to %s", self.name)

    # ------------------------------------------------------------------
    # Row access
    # ------------------------------------------------------------------

    def _to_record(self, row: sqlite3.Row) -> AggregateRecord:
        return AggregateRecord(
            cell_id=row["h3_index"],
            visit_count=int(row["visits"]),
            last_visit=parse_timestamp(row["last_visit"]),
        )

    def get(self, cell_id: str) -> Optional[AggregateRecord]:
        row = self._execute(
            f"SELECT h3_index, visits, last_visit FROM {self.name} WHERE h3_index = ?",
            (cell_id,)
        ).fetchone()
        return self._to_record(row) if row else None

    def insert(self, record: AggregateRecord):
        self._execute(
            f"INSERT INTO {self.name} (h3_index, visits, last_visit) VALUES (?, ?, ?)",
            (record.cell_id, record.visit_count, format_timestamp(record.last_visit))
        )

    def update(self, record: AggregateRecord):
        self._execute(
            f"UPDATE {self.name} SET visits = ?, last_visit = ? WHERE h3_index = ?",
            (record.visit_count, format_timestamp(record.last_visit), record.cell_id)
        )

    def delete_all(self) -> int:
        """Delete every row; returns the number removed."""
        cursor = self._execute(f"DELETE FROM {self.name}")
        return cursor.rowcount

    def count(self) -> int:
        """Row count (0 if the table has not been created yet)."""
        if not self.exists():
            return 0
        return self._execute(f"SELECT COUNT(*) AS n FROM {self.name}").fetchone()["n"]

    def records(self) -> Dict[str, AggregateRecord]:
        """All rows keyed by cell id (empty if the table does not exist)."""
        if not self.exists():
            return {}
        rows = self._execute(
            f"SELECT h3_index, visits, last_visit FROM {self.name} ORDER BY h3_index"
        ).fetchall()
        return {row["h3_index"]: self._to_record(row) for row in rows}

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["ResolutionTable"]:
        """Run the enclosed writes as one atomic unit.

        Commits on normal exit. Any exception, a failed COMMIT included, rolls
        everything back and is re-raised; raw ``sqlite3.Error`` is re-raised
        as ``StorageFailure``.

        Examples
        --------
        >>> with table.transaction():
        ...     table.delete_all()
        ...     table.insert(record)
        """
        if self._in_transaction:
            raise StorageFailure(f"{self.name}: nested transactions are not supported",
                                 table=self.name)

        conn = self.store.connection
        self._execute("BEGIN IMMEDIATE")
        self._in_transaction = True
        try:
            yield self
            self._execute("COMMIT")
        except BaseException as e:
            # A failed COMMIT leaves the transaction open
            if conn.in_transaction:
                try:
                    conn.execute("ROLLBACK")
                except sqlite3.Error:
                    logger.exception("Rollback failed on %s", self.name)
            logger.warning("Rolled back batch on %s: %s", self.name, e)
            if isinstance(e, sqlite3.Error):
                raise StorageFailure(f"{self.name}: {e}", table=self.name) from e
            raise
        finally:
            self._in_transaction = False


class ResolutionStore:
    """SQLite database holding one cell table per resolution.

    Parameters
    ----------
    db_path : Path or str
        SQLite file. Parent directories are created; the file itself is only
        written when a table is first populated.
    table_pattern : str
        Format string with a ``{resolution}`` field.
    timeout : float
        Seconds to wait on a locked database before failing.

    Examples
    --------
    >>> with ResolutionStore("output/db/hex_levels.db") as store:
    ...     table = store.table(7)
    ...     print(table.count())
    """

    def __init__(self, db_path: Path | str,
                 table_pattern: str = "h3_level_{resolution}",
                 timeout: float = 30.0):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.table_pattern = table_pattern
        self.timeout = timeout
        self._conn = None
        self._tables: Dict[int, ResolutionTable] = {}

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                # Autocommit mode; transactions are explicit BEGIN/COMMIT
                self._conn = sqlite3.connect(
                    str(self.db_path), timeout=self.timeout, isolation_level=None
                )
            except sqlite3.Error as e:
                raise StorageFailure(f"Cannot open {self.db_path}: {e}") from e
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def table(self, resolution: int) -> ResolutionTable:
        if resolution not in self._tables:
            name = table_name_for(resolution, self.table_pattern)
            self._tables[resolution] = ResolutionTable(self, resolution, name)
        return self._tables[resolution]

    def table_names(self) -> List[str]:
        rows = self.connection.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        ).fetchall()
        return [row["name"] for row in rows]

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
