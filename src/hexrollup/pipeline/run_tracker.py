"""SQLite-based per-level run ledger.

Records each level of each run as it moves through the pipeline
(pending -> processing -> completed / failed / skipped) together with row
counts before and after the write. Enables progress reporting, failure
inspection, and resuming a run from a given level.
"""

import sqlite3
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Dict, List

logger = logging.getLogger(__name__)

VALID_STATUSES = ('pending', 'processing', 'completed', 'failed', 'skipped')


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RunTracker:
    """Tracks level processing state for every pipeline run.

    **Database Schema:**

    SQLite table `level_runs`, one row per (run_id, resolution):

    - run_id: Identifier of the pipeline run (e.g., 20250305T101500Z)
    - resolution, table_name, policy: What was written where
    - status: pending, processing, completed, failed, skipped
    - Counters: points_seen, points_excluded, points_invalid, cells,
      inserted, updated, unchanged, deleted
    - rows_before / rows_after: Table size around the write
    - error_message, started_at, finished_at

    **Typical Usage:**

    Called by the orchestrator. Can also be queried afterwards::

        tracker = RunTracker(db_path)
        for row in tracker.get_run(run_id):
            print(row["resolution"], row["status"], row["rows_after"])
        tracker.close()
    """

    def __init__(self, db_path: Path | str):
        """Initialize tracker.

        Parameters
        ----------
        db_path : Path or str
            Path to SQLite database file. Created if doesn't exist.
            Typically: output_dirs["db"] / "run_ledger.db"
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = None

        self._init_database()
        logger.info(f" Run tracker initialized: {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row  # Enable dict-like access
        return self._conn

    def _init_database(self):
        """Create database schema if it doesn't exist."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS level_runs (
                run_id TEXT NOT NULL,
                resolution INTEGER NOT NULL,
                table_name TEXT NOT NULL,
                policy TEXT NOT NULL,

                status TEXT DEFAULT 'pending',
                error_message TEXT,

                points_seen INTEGER,
                points_excluded INTEGER,
                points_invalid INTEGER,
                cells INTEGER,
                inserted INTEGER,
                updated INTEGER,
                unchanged INTEGER,
                deleted INTEGER,
                rows_before INTEGER,
                rows_after INTEGER,

                started_at TEXT,
                finished_at TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,

                PRIMARY KEY (run_id, resolution)
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_level_status ON level_runs(status)")
        conn.commit()

    def register_level(self, run_id: str, resolution: int,
                       table_name: str, policy: str) -> bool:
        """Register a level for a run.

        Returns
        -------
        bool
            True if newly registered, False if already in the ledger.
        """
        conn = self._get_connection()
        cursor = conn.execute(
            "SELECT status FROM level_runs WHERE run_id = ? AND resolution = ?",
            (run_id, resolution)
        )
        if cursor.fetchone():
            return False

        conn.execute("""
            INSERT INTO level_runs (run_id, resolution, table_name, policy, status)
            VALUES (?, ?, ?, ?, 'pending')
        """, (run_id, resolution, table_name, policy))
        conn.commit()

        logger.debug(f"Registered level {resolution} for run {run_id}")
        return True

    def mark_started(self, run_id: str, resolution: int, rows_before: int):
        conn = self._get_connection()
        conn.execute("""
            UPDATE level_runs
            SET status = 'processing', rows_before = ?, started_at = ?, error_message = NULL
            WHERE run_id = ? AND resolution = ?
        """, (rows_before, _now(), run_id, resolution))
        conn.commit()

    def mark_complete(self, run_id: str, resolution: int, *,
                      inserted: int = 0, updated: int = 0,
                      unchanged: int = 0, deleted: int = 0,
                      points_seen: Optional[int] = None,
                      points_excluded: Optional[int] = None,
                      points_invalid: Optional[int] = None,
                      cells: Optional[int] = None,
                      rows_after: Optional[int] = None):
        """Mark a level as completed with its write and aggregation counters."""
        conn = self._get_connection()
        conn.execute("""
            UPDATE level_runs
            SET status = 'completed',
                inserted = ?, updated = ?, unchanged = ?, deleted = ?,
                points_seen = ?, points_excluded = ?, points_invalid = ?, cells = ?,
                rows_after = ?, finished_at = ?
            WHERE run_id = ? AND resolution = ?
        """, (
            inserted, updated, unchanged, deleted,
            points_seen, points_excluded, points_invalid, cells,
            rows_after, _now(),
            run_id, resolution
        ))
        conn.commit()
        logger.debug(f"Marked level {resolution} complete for run {run_id}")

    def mark_failed(self, run_id: str, resolution: int, error: str):
        conn = self._get_connection()
        conn.execute("""
            UPDATE level_runs
            SET status = 'failed', error_message = ?, finished_at = ?
            WHERE run_id = ? AND resolution = ?
        """, (error, _now(), run_id, resolution))
        conn.commit()
        logger.debug(f"Marked level {resolution} failed for run {run_id}: {error}")

    def mark_skipped(self, run_id: str, resolution: int, reason: str):
        conn = self._get_connection()
        conn.execute("""
            UPDATE level_runs
            SET status = 'skipped', error_message = ?, finished_at = ?
            WHERE run_id = ? AND resolution = ?
        """, (reason, _now(), run_id, resolution))
        conn.commit()

    def get_level_status(self, run_id: str, resolution: int) -> Optional[Dict]:
        """Full ledger row for one level of one run, or None."""
        conn = self._get_connection()
        row = conn.execute(
            "SELECT * FROM level_runs WHERE run_id = ? AND resolution = ?",
            (run_id, resolution)
        ).fetchone()
        return dict(row) if row else None

    def get_run(self, run_id: str) -> List[Dict]:
        """All levels of a run, coarse to fine."""
        conn = self._get_connection()
        rows = conn.execute(
            "SELECT * FROM level_runs WHERE run_id = ? ORDER BY resolution",
            (run_id,)
        ).fetchall()
        return [dict(row) for row in rows]

    def should_process(self, run_id: str, resolution: int) -> bool:
        """True unless the level already completed in this run."""
        status = self.get_level_status(run_id, resolution)
        return status is None or status["status"] != 'completed'

    def reset_failed(self, run_id: Optional[str] = None) -> int:
        """Reset failed levels back to pending; returns how many were reset."""
        conn = self._get_connection()
        if run_id is None:
            cursor = conn.execute(
                "UPDATE level_runs SET status = 'pending', error_message = NULL "
                "WHERE status = 'failed'"
            )
        else:
            cursor = conn.execute(
                "UPDATE level_runs SET status = 'pending', error_message = NULL "
                "WHERE status = 'failed' AND run_id = ?",
                (run_id,)
            )
        conn.commit()
        if cursor.rowcount:
            logger.info(f"Reset {cursor.rowcount} failed levels to pending")
        return cursor.rowcount

    def get_statistics(self, run_id: Optional[str] = None) -> Dict:
        """Level counts by status plus total inserted/updated rows."""
        conn = self._get_connection()
        where = "WHERE run_id = ?" if run_id else ""
        params = (run_id,) if run_id else ()
        row = conn.execute(f"""
            SELECT
                COUNT(*) AS total,
                SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END) AS completed,
                SUM(CASE WHEN status = 'failed' THEN 1 ELSE 0 END) AS failed,
                SUM(CASE WHEN status = 'skipped' THEN 1 ELSE 0 END) AS skipped,
                SUM(CASE WHEN status = 'pending' THEN 1 ELSE 0 END) AS pending,
                SUM(COALESCE(inserted, 0)) AS inserted,
                SUM(COALESCE(updated, 0)) AS updated
            FROM level_runs {where}
        """, params).fetchone()
        return {key: (row[key] or 0) for key in row.keys()}

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
