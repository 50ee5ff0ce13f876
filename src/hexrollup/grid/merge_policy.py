"""Merge policies: how two records for the same cell combine.

One capability, three named instances:

- ``MAX_MERGE``: field-wise max, the watermark merge used for ingestion
  and for merging into stored state
- ``SUM_ROLLUP``: visit counts add up, last visit takes the max; used
  when folding fine cells into their ancestor
- ``REPLACE``: the whole record with the most visits wins; paired with
  the purge-and-insert storage mode

A missing ``last_visit`` is treated as older than any real timestamp.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Literal, Optional

from hexrollup.grid.models import AggregateRecord

__all__ = [
    'MergePolicy',
    'MAX_MERGE',
    'SUM_ROLLUP',
    'REPLACE',
    'get_policy',
    'latest',
]


def latest(a: Optional[datetime], b: Optional[datetime]) -> Optional[datetime]:
    """Later of two optional timestamps (None is the minimum)."""
    if a is None:
        return b
    if b is None:
        return a
    return a if a >= b else b


def _max_merge(existing: AggregateRecord, incoming: AggregateRecord) -> AggregateRecord:
    return AggregateRecord(
        cell_id=existing.cell_id,
        visit_count=max(existing.visit_count, incoming.visit_count),
        last_visit=latest(existing.last_visit, incoming.last_visit),
    )


def _sum_rollup(existing: AggregateRecord, incoming: AggregateRecord) -> AggregateRecord:
    return AggregateRecord(
        cell_id=existing.cell_id,
        visit_count=existing.visit_count + incoming.visit_count,
        last_visit=latest(existing.last_visit, incoming.last_visit),
    )


def _replace(existing: AggregateRecord, incoming: AggregateRecord) -> AggregateRecord:
    # Ties keep the record seen first
    if incoming.visit_count > existing.visit_count:
        return AggregateRecord(existing.cell_id, incoming.visit_count, incoming.last_visit)
    return existing


@dataclass(frozen=True)
class MergePolicy:
    """Named combine function plus the storage mode it pairs with.

    Attributes
    ----------
    name : str
        Config-facing name ("max_merge", "sum_rollup", "replace").
    combine : callable
        ``combine(existing, incoming) -> AggregateRecord`` for the same cell.
    storage_mode : {"merge", "replace"} or None
        How the upsert engine writes a batch produced under this policy.
        None for policies whose output is never written to a level table.
    """
    name: str
    combine: Callable[[AggregateRecord, AggregateRecord], AggregateRecord]
    storage_mode: Optional[Literal["merge", "replace"]]

    def __call__(self, existing: AggregateRecord, incoming: AggregateRecord) -> AggregateRecord:
        if existing.cell_id != incoming.cell_id:
            raise ValueError(
                f"Cannot merge records for different cells: "
                f"{existing.cell_id} vs {incoming.cell_id}"
            )
        return self.combine(existing, incoming)


MAX_MERGE = MergePolicy("max_merge", _max_merge, "merge")
SUM_ROLLUP = MergePolicy("sum_rollup", _sum_rollup, None)
REPLACE = MergePolicy("replace", _replace, "replace")

_POLICIES = {p.name: p for p in (MAX_MERGE, SUM_ROLLUP, REPLACE)}


def get_policy(name: str) -> MergePolicy:
    """Look up a policy by its config name."""
    try:
        return _POLICIES[name.lower().strip()]
    except KeyError:
        raise ValueError(
            f"Unknown merge policy: {name}. Must be one of {sorted(_POLICIES)}"
        ) from None
