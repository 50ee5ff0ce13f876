"""Tabular exports of level contents."""

import logging
from pathlib import Path
from typing import Mapping

import pandas as pd

from hexrollup.grid.models import AggregateRecord

__all__ = ['records_to_frame', 'write_level_json']

logger = logging.getLogger(__name__)


def records_to_frame(records: Mapping[str, AggregateRecord]) -> pd.DataFrame:
    """DataFrame with columns h3_index, visits, last_visit (sorted by cell)."""
    rows = [
        {
            "h3_index": cell_id,
            "visits": record.visit_count,
            "last_visit": record.last_visit,
        }
        for cell_id, record in sorted(records.items())
    ]
    return pd.DataFrame(rows, columns=["h3_index", "visits", "last_visit"])


def write_level_json(records: Mapping[str, AggregateRecord], path: Path | str) -> Path:
    """Write ``[{"h3_index": ..., "visits": ...}, ...]`` for one level."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = records_to_frame(records)[["h3_index", "visits"]]
    df.to_json(path, orient="records")
    logger.info("✓ Level JSON saved: %s (%d cells)", path, len(df))
    return path
