"""Cell-level stage contracts.

Enforce the guarantees each stage promises about the cells it hands on:
aggregates are valid at their declared resolution, merges never move a
watermark backwards, and rollups conserve visits.
"""

from collections import defaultdict
from typing import Mapping

import h3

from hexrollup.contracts.base import require


def _is_cell_at(cell_id, resolution: int) -> bool:
    if not isinstance(cell_id, str):
        return False
    try:
        return bool(h3.is_valid_cell(cell_id)) and h3.get_resolution(cell_id) == resolution
    except (ValueError, TypeError):
        return False


def assert_aggregates_valid(aggregates: Mapping, resolution: int) -> None:
    """Enforce aggregation stage contract.

    Called before a batch is handed to the upsert engine. Verifies every key
    is a valid H3 cell at ``resolution``, matches its record, and carries a
    non-negative visit count.

    Parameters
    ----------
    aggregates : mapping
        ``{cell_id: AggregateRecord}`` as produced by the aggregator.
    resolution : int
        Resolution of the destination table.

    Raises
    ------
    ContractViolation
        If any record breaks the contract.
    """
    for cell_id, record in aggregates.items():
        require(
            _is_cell_at(cell_id, resolution),
            f"Aggregate contract violated: {cell_id!r} is not a cell at resolution {resolution}"
        )
        require(
            record.cell_id == cell_id,
            f"Aggregate contract violated: key {cell_id} holds record for {record.cell_id}"
        )
        require(
            record.visit_count >= 0,
            f"Aggregate contract violated: {cell_id} has negative visits ({record.visit_count})"
        )


def assert_monotonic_merge(stored, merged) -> None:
    """Enforce the watermark contract for one cell.

    ``merged`` must not have fewer visits or an older last visit than
    ``stored``.
    """
    require(
        merged.visit_count >= stored.visit_count,
        f"Merge contract violated: {stored.cell_id} visits "
        f"{stored.visit_count} -> {merged.visit_count}"
    )
    if stored.last_visit is not None:
        require(
            merged.last_visit is not None and merged.last_visit >= stored.last_visit,
            f"Merge contract violated: {stored.cell_id} last_visit "
            f"{stored.last_visit} -> {merged.last_visit}"
        )


def assert_rollup_conserved(fine: Mapping, coarse: Mapping, target_resolution: int) -> None:
    """Enforce rollup stage contract.

    The visits of all fine cells under each ancestor must add up to that
    ancestor's rolled-up count, and every coarse cell must sit at
    ``target_resolution``.
    """
    expected = defaultdict(int)
    for cell_id, record in fine.items():
        expected[h3.cell_to_parent(cell_id, target_resolution)] += record.visit_count

    require(
        set(expected) == set(coarse),
        f"Rollup contract violated: ancestor set mismatch at resolution {target_resolution}"
    )
    for cell_id, record in coarse.items():
        require(
            _is_cell_at(cell_id, target_resolution),
            f"Rollup contract violated: {cell_id!r} is not at resolution {target_resolution}"
        )
        require(
            record.visit_count == expected[cell_id],
            f"Rollup contract violated: {cell_id} has {record.visit_count} visits, "
            f"children sum to {expected[cell_id]}"
        )
