"""Persistence: per-resolution tables, the upsert engine, point sources."""

from hexrollup.storage.resolution_store import ResolutionStore, ResolutionTable, table_name_for
from hexrollup.storage.upsert import MergeResult, WatermarkUpsertEngine
from hexrollup.storage.point_source import InMemoryPointSource, PointSource, SQLitePointSource

__all__ = [
    'ResolutionStore',
    'ResolutionTable',
    'table_name_for',
    'MergeResult',
    'WatermarkUpsertEngine',
    'InMemoryPointSource',
    'PointSource',
    'SQLitePointSource',
]
