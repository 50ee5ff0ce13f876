"""Hierarchical rollup: fold fine cells into their coarser ancestors.

Visit counts are summed into each ancestor bucket (``SUM_ROLLUP``), so the
total number of visits is conserved from one level to the next. A chain
such as 3 -> 2 -> 1 feeds each step's output into the next step.
"""

import logging
from collections.abc import Mapping
from typing import Dict, Iterable, Sequence, Tuple, Union

from hexrollup.contracts.failure import InvalidResolution
from hexrollup.grid.indexer import ancestor_of, resolution_of, validate_resolution
from hexrollup.grid.merge_policy import SUM_ROLLUP
from hexrollup.grid.models import AggregateRecord

__all__ = ['HierarchicalRollup', 'roll_up', 'roll_up_chain']

logger = logging.getLogger(__name__)

FineInput = Union[
    Mapping,
    Iterable[AggregateRecord],
    Iterable[Tuple[str, int]],
]


def _as_records(fine_records: FineInput) -> list:
    if isinstance(fine_records, Mapping):
        items = fine_records.items()
        records = []
        for cell_id, value in items:
            if isinstance(value, AggregateRecord):
                records.append(value)
            else:
                records.append(AggregateRecord(cell_id, int(value)))
        return records

    records = []
    for item in fine_records:
        if isinstance(item, AggregateRecord):
            records.append(item)
        else:
            cell_id, visits = item
            records.append(AggregateRecord(cell_id, int(visits)))
    return records


class HierarchicalRollup:
    """Sums fine-resolution records into ancestor cells."""

    def __init__(self):
        self.policy = SUM_ROLLUP

    def roll_up(self, fine_records: FineInput,
                target_resolution: int) -> Dict[str, AggregateRecord]:
        """Roll ``fine_records`` up to ``target_resolution``.

        Parameters
        ----------
        fine_records : mapping, iterable of AggregateRecord, or (cell_id, visits) pairs
            Records at one common resolution.
        target_resolution : int
            Strictly coarser than the input resolution.

        Returns
        -------
        dict
            ``{ancestor_id: AggregateRecord}`` with summed visit counts and
            the latest last-visit of the contributing cells.

        Raises
        ------
        InvalidResolution
            If inputs mix resolutions or the target is not strictly coarser.
        InvalidCellId
            If an input cell id is malformed.
        """
        validate_resolution(target_resolution)
        records = _as_records(fine_records)
        if not records:
            return {}

        source_resolution = None
        result: Dict[str, AggregateRecord] = {}
        for record in records:
            res = resolution_of(record.cell_id)
            if source_resolution is None:
                source_resolution = res
            elif res != source_resolution:
                raise InvalidResolution(
                    f"Rollup input mixes resolutions {source_resolution} and {res}"
                )

            parent = ancestor_of(record.cell_id, target_resolution)
            incoming = AggregateRecord(parent, record.visit_count, record.last_visit)
            existing = result.get(parent)
            result[parent] = incoming if existing is None else self.policy(existing, incoming)

        logger.debug("Rolled up %d cells at res %d into %d cells at res %d",
                     len(records), source_resolution, len(result), target_resolution)
        return result

    def roll_up_chain(self, fine_records: FineInput,
                      target_resolutions: Sequence[int]) -> Dict[int, Dict[str, AggregateRecord]]:
        """Run successive rollups, each consuming the previous output.

        ``target_resolutions`` must be strictly decreasing, e.g. ``[2, 1]``.
        Returns ``{resolution: {cell_id: AggregateRecord}}``.
        """
        targets = list(target_resolutions)
        for prev, nxt in zip(targets, targets[1:]):
            if nxt >= prev:
                raise InvalidResolution(
                    f"Rollup chain must be strictly decreasing, got {targets}"
                )

        levels: Dict[int, Dict[str, AggregateRecord]] = {}
        current = _as_records(fine_records)
        for target in targets:
            rolled = self.roll_up(current, target)
            levels[target] = rolled
            current = list(rolled.values())
        return levels


def roll_up(fine_records: FineInput, target_resolution: int) -> Dict[str, AggregateRecord]:
    """Module-level shortcut for ``HierarchicalRollup().roll_up``."""
    return HierarchicalRollup().roll_up(fine_records, target_resolution)


def roll_up_chain(fine_records: FineInput,
                  target_resolutions: Sequence[int]) -> Dict[int, Dict[str, AggregateRecord]]:
    """Module-level shortcut for ``HierarchicalRollup().roll_up_chain``."""
    return HierarchicalRollup().roll_up_chain(fine_records, target_resolutions)
