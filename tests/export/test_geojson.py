"""Tests for GeoJSON, level JSON and hex map exports."""

import json

import pytest

pytestmark = pytest.mark.unit

from hexrollup.export import (
    HexMapPlotter,
    SeenCells,
    cell_feature,
    feature_collection,
    parent_feature_collection,
    records_to_frame,
    write_geojson,
    write_level_json,
)
from hexrollup.grid.indexer import ancestor_of, index_of
from hexrollup.grid.models import AggregateRecord


@pytest.fixture
def records(times):
    t1, t2, _ = times
    paris = index_of(48.85, 2.35, 5)
    madrid = index_of(40.4168, -3.7038, 5)
    return {
        paris: AggregateRecord(paris, 9, t2),
        madrid: AggregateRecord(madrid, 3, None),
    }


class TestSeenCells:

    def test_mark_reports_first_sighting(self):
        seen = SeenCells()
        assert seen.mark("a") is True
        assert seen.mark("a") is False
        assert "a" in seen
        assert len(seen) == 1

    def test_seeded_cells_are_not_new(self):
        seen = SeenCells(["a", "b"])
        assert seen.mark("a") is False
        assert seen.mark("c") is True


class TestFeatures:

    def test_cell_feature_is_closed_polygon(self):
        cell = index_of(48.85, 2.35, 5)
        feature = cell_feature(cell, {"visits": 2})

        ring = feature["geometry"]["coordinates"][0]
        assert feature["geometry"]["type"] == "Polygon"
        assert ring[0] == ring[-1]
        assert feature["properties"] == {"h3cell": cell, "visits": 2}

    def test_coordinates_are_lon_lat(self):
        ring = cell_feature(index_of(48.85, 2.35, 5))["geometry"]["coordinates"][0]
        lon, lat = ring[0]
        assert abs(lon - 2.35) < 1
        assert abs(lat - 48.85) < 1

    def test_feature_collection_properties(self, records):
        collection = feature_collection(records)
        assert collection["type"] == "FeatureCollection"

        props = {f["properties"]["h3cell"]: f["properties"] for f in collection["features"]}
        paris = index_of(48.85, 2.35, 5)
        assert props[paris]["visits"] == 9
        assert props[paris]["last_visit"] == "2024-06-01T12:00:00+00:00"
        assert props[index_of(40.4168, -3.7038, 5)]["last_visit"] is None
        assert all(p["is_new"] for p in props.values())

    def test_seen_cells_flag_old_cells(self, records):
        paris = index_of(48.85, 2.35, 5)
        seen = SeenCells([paris])
        collection = feature_collection(records, seen)

        flags = {f["properties"]["h3cell"]: f["properties"]["is_new"]
                 for f in collection["features"]}
        assert flags[paris] is False
        assert flags[index_of(40.4168, -3.7038, 5)] is True
        assert len(seen) == 2

    def test_empty_collection(self):
        assert feature_collection({}) == {"type": "FeatureCollection", "features": []}

    def test_parent_collection_deduplicates(self, sibling_cells):
        parent, children = sibling_cells(n=3, res=5, parent_res=4)
        collection = parent_feature_collection(children, 4)
        assert [f["properties"]["h3cell"] for f in collection["features"]] == [parent]

    def test_parent_collection_skips_coarse_cells(self):
        fine = index_of(48.85, 2.35, 5)
        coarse = index_of(40.4, -3.7, 2)
        collection = parent_feature_collection([fine, coarse], 3)
        assert [f["properties"]["h3cell"] for f in collection["features"]] == [
            ancestor_of(fine, 3)
        ]


class TestWriters:

    def test_write_geojson(self, records, temp_dir):
        path = write_geojson(feature_collection(records), temp_dir / "nested" / "out.geojson")
        data = json.loads(path.read_text())
        assert len(data["features"]) == 2

    def test_level_json_shape(self, records, temp_dir):
        path = write_level_json(records, temp_dir / "h3_level_5.json")
        rows = json.loads(path.read_text())
        assert rows == sorted(
            [{"h3_index": c, "visits": r.visit_count} for c, r in records.items()],
            key=lambda row: row["h3_index"],
        )

    def test_level_json_empty(self, temp_dir):
        path = write_level_json({}, temp_dir / "empty.json")
        assert json.loads(path.read_text()) == []

    def test_records_to_frame(self, records):
        df = records_to_frame(records)
        assert list(df.columns) == ["h3_index", "visits", "last_visit"]
        assert df["visits"].sum() == 12


class TestHexMapPlotter:

    def test_plot_level_writes_png(self, records, internal_config, temp_dir):
        plotter = HexMapPlotter(internal_config)
        paris = index_of(48.85, 2.35, 5)
        out = plotter.plot_level(records, 5, temp_dir / "plots" / "h3_level_5",
                                 new_cells=[paris])
        assert out.endswith("h3_level_5.png")
        assert (temp_dir / "plots" / "h3_level_5.png").exists()

    def test_plot_empty_level(self, internal_config, temp_dir):
        plotter = HexMapPlotter(internal_config)
        assert plotter.plot_level({}, 5, temp_dir / "x") is None
        assert not (temp_dir / "x.png").exists()

    def test_antimeridian_cell_unwrapped(self, internal_config):
        cell = index_of(0.0, 179.99, 2)
        (ring,) = HexMapPlotter(internal_config)._polygons([cell])
        assert ring[:, 0].max() - ring[:, 0].min() < 180
