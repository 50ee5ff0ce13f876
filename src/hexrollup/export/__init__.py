"""Derived outputs: level JSON, GeoJSON, and static hex maps."""

from hexrollup.export.geojson import (
    SeenCells,
    cell_feature,
    feature_collection,
    parent_feature_collection,
    write_geojson,
)
from hexrollup.export.tables import records_to_frame, write_level_json
from hexrollup.export.plotter import HexMapPlotter

__all__ = [
    'SeenCells',
    'cell_feature',
    'feature_collection',
    'parent_feature_collection',
    'write_geojson',
    'records_to_frame',
    'write_level_json',
    'HexMapPlotter',
]
