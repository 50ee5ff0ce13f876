"""Watermark upsert engine: merge fresh aggregates into stored state.

Merge mode reads each stored row, combines it with the incoming record
using ``MAX_MERGE`` and writes it back, all inside one transaction. Stored
visit counts and last-visit times therefore never move backwards, and
re-running the same batch is a no-op.

Replace mode deletes every row and inserts the fresh set in one
transaction. It gives up the watermark guarantee and is only meant for
coarse levels that are rebuilt from scratch each run.
"""

import logging
import time
from dataclasses import dataclass
from typing import Mapping

from hexrollup.contracts import assert_aggregates_valid, assert_monotonic_merge
from hexrollup.contracts.failure import StorageFailure
from hexrollup.grid.merge_policy import MAX_MERGE, MergePolicy
from hexrollup.grid.models import AggregateRecord
from hexrollup.storage.resolution_store import ResolutionTable

__all__ = ['MergeResult', 'WatermarkUpsertEngine']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeResult:
    """Outcome of one batch write.

    ``updated`` counts only rows whose stored values actually changed;
    rows the merge left as they were are counted in ``unchanged``.
    ``deleted`` is only non-zero in replace mode.
    """
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    deleted: int = 0

    @property
    def written(self) -> int:
        return self.inserted + self.updated


class WatermarkUpsertEngine:
    """Sole writer of resolution tables.

    Parameters
    ----------
    max_retries : int
        Attempts made by ``write_with_retry`` before giving up.
    retry_delay_sec : float
        Base delay; attempt ``n`` waits ``retry_delay_sec * n`` seconds.
    """

    def __init__(self, max_retries: int = 3, retry_delay_sec: float = 0.5):
        self.max_retries = max(1, max_retries)
        self.retry_delay_sec = retry_delay_sec

    def merge(self, table: ResolutionTable,
              aggregates: Mapping[str, AggregateRecord]) -> MergeResult:
        """Max-merge ``aggregates`` into ``table`` atomically.

        Parameters
        ----------
        table : ResolutionTable
            Destination table; created if it does not exist yet.
        aggregates : mapping
            ``{cell_id: AggregateRecord}`` at the table's resolution.

        Returns
        -------
        MergeResult
            Inserted, updated, and unchanged counts. An empty batch returns
            all zeros without touching storage.

        Raises
        ------
        StorageFailure
            On any storage error. The whole batch has been rolled back.
        ContractViolation
            If a cell id is not valid at the table's resolution.
        """
        if not aggregates:
            logger.debug("Empty batch for %s, nothing to merge", table.name)
            return MergeResult()

        assert_aggregates_valid(aggregates, table.resolution)

        inserted = updated = unchanged = 0
        with table.transaction():
            table.ensure_table()
            for cell_id in sorted(aggregates):
                incoming = aggregates[cell_id]
                stored = table.get(cell_id)
                if stored is None:
                    table.insert(incoming)
                    inserted += 1
                    continue

                merged = MAX_MERGE(stored, incoming)
                assert_monotonic_merge(stored, merged)
                if merged == stored:
                    unchanged += 1
                    continue

                if merged.last_visit != stored.last_visit:
                    logger.debug("Cell %s updated from %s to %s",
                                 cell_id, stored.last_visit, merged.last_visit)
                table.update(merged)
                updated += 1

        result = MergeResult(inserted=inserted, updated=updated, unchanged=unchanged)
        logger.info("%s: %d inserted, %d updated, %d unchanged",
                    table.name, result.inserted, result.updated, result.unchanged)
        return result

    def replace(self, table: ResolutionTable,
                aggregates: Mapping[str, AggregateRecord]) -> MergeResult:
        """Atomically purge ``table`` and insert ``aggregates``.

        Does not preserve the watermark. An empty ``aggregates`` leaves the
        table untouched rather than wiping it.
        """
        if not aggregates:
            logger.warning("Replace on %s with an empty set skipped; table left as is",
                           table.name)
            return MergeResult()

        assert_aggregates_valid(aggregates, table.resolution)
        logger.warning("Replacing all rows of %s with %d cells (watermark not preserved)",
                       table.name, len(aggregates))

        with table.transaction():
            table.ensure_table()
            deleted = table.delete_all()
            for cell_id in sorted(aggregates):
                table.insert(aggregates[cell_id])

        result = MergeResult(inserted=len(aggregates), deleted=deleted)
        logger.info("%s: purged %d rows, inserted %d", table.name, deleted, result.inserted)
        return result

    def write(self, table: ResolutionTable,
              aggregates: Mapping[str, AggregateRecord],
              policy: MergePolicy = MAX_MERGE) -> MergeResult:
        """Write a batch in the storage mode ``policy`` pairs with."""
        if policy.storage_mode == "replace":
            return self.replace(table, aggregates)
        if policy.storage_mode == "merge":
            return self.merge(table, aggregates)
        raise ValueError(f"Policy {policy.name} cannot be written to a level table")

    def write_with_retry(self, table: ResolutionTable,
                         aggregates: Mapping[str, AggregateRecord],
                         policy: MergePolicy = MAX_MERGE) -> MergeResult:
        """``write`` with bounded retry and linear backoff on StorageFailure.

        Safe because each failed attempt was rolled back in full and merge
        is idempotent.
        """
        for attempt in range(self.max_retries):
            try:
                return self.write(table, aggregates, policy)
            except StorageFailure as e:
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay_sec * (attempt + 1)
                    logger.warning("Write to %s failed (attempt %d/%d): %s; retrying in %.1fs",
                                   table.name, attempt + 1, self.max_retries, e, delay)
                    time.sleep(delay)
                else:
                    logger.error("Write to %s failed after %d attempts: %s",
                                 table.name, self.max_retries, e)
                    raise
