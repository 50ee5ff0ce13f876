"""Tests for the per-resolution SQLite store."""

import sqlite3

import pytest

pytestmark = [pytest.mark.unit, pytest.mark.storage]

from hexrollup.contracts import InvalidResolution, StorageFailure
from hexrollup.grid.indexer import index_of
from hexrollup.grid.models import AggregateRecord
from hexrollup.storage.resolution_store import ResolutionStore, table_name_for


@pytest.fixture
def store(temp_dir):
    s = ResolutionStore(temp_dir / "db" / "levels.db")
    yield s
    s.close()


class TestTableNames:

    def test_default_pattern(self):
        assert table_name_for(7) == "h3_level_7"

    def test_custom_pattern(self):
        assert table_name_for(3, "hex_r{resolution}") == "hex_r3"

    def test_unsafe_pattern_rejected(self):
        with pytest.raises(ValueError, match="Invalid table name"):
            table_name_for(3, "t{resolution}; DROP TABLE x")

    def test_bad_resolution_rejected(self):
        with pytest.raises(InvalidResolution):
            table_name_for(16)


class TestResolutionTable:
    """Test schema handling and row access."""

    def test_table_created_lazily(self, store):
        table = store.table(7)
        assert not table.exists()
        assert table.count() == 0
        assert table.records() == {}

        table.ensure_table()
        assert table.exists()
        assert "h3_level_7" in store.table_names()

    def test_table_objects_cached(self, store):
        assert store.table(5) is store.table(5)

    def test_insert_get_update(self, store, times):
        t1, t2, _ = times
        table = store.table(7)
        cell = index_of(48.85, 2.35, 7)
        table.ensure_table()

        table.insert(AggregateRecord(cell, 3, t1))
        assert table.get(cell) == AggregateRecord(cell, 3, t1)

        table.update(AggregateRecord(cell, 7, t2))
        assert table.get(cell) == AggregateRecord(cell, 7, t2)
        assert table.get("8f283080dcb019d") is None

    def test_null_last_visit_round_trips(self, store):
        table = store.table(4)
        cell = index_of(0.0, 0.0, 4)
        table.ensure_table()
        table.insert(AggregateRecord(cell, 1, None))
        assert table.get(cell).last_visit is None

    def test_timestamps_stored_as_iso_utc(self, store, times):
        t1, _, _ = times
        table = store.table(4)
        cell = index_of(0.0, 0.0, 4)
        table.ensure_table()
        table.insert(AggregateRecord(cell, 1, t1))
        raw = store.connection.execute("SELECT last_visit FROM h3_level_4").fetchone()[0]
        assert raw == "2024-05-01T12:00:00+00:00"

    def test_last_visit_column_added_to_legacy_table(self, temp_dir):
        db = temp_dir / "legacy.db"
        cell = index_of(48.85, 2.35, 6)
        with sqlite3.connect(db) as conn:
            conn.execute("CREATE TABLE h3_level_6 (h3_index TEXT PRIMARY KEY, visits INTEGER)")
            conn.execute("INSERT INTO h3_level_6 VALUES (?, ?)", (cell, 4))
        conn.close()

        with ResolutionStore(db) as store:
            table = store.table(6)
            table.ensure_table()
            columns = [row["name"] for row in
                       store.connection.execute("PRAGMA table_info(h3_level_6)")]
            assert "last_visit" in columns
            assert table.get(cell) == AggregateRecord(cell, 4, None)

    def test_delete_all_returns_count(self, store):
        table = store.table(3)
        table.ensure_table()
        for lat in (10.0, 30.0, 50.0):
            table.insert(AggregateRecord(index_of(lat, 0.0, 3), 1))
        assert table.delete_all() == 3
        assert table.count() == 0

    def test_records_sorted_by_cell(self, store):
        table = store.table(3)
        table.ensure_table()
        cells = [index_of(lat, 10.0, 3) for lat in (50.0, 10.0, 30.0)]
        for cell in cells:
            table.insert(AggregateRecord(cell, 1))
        assert list(table.records()) == sorted(cells)


class TestTransactions:
    """Test atomicity of explicit transactions."""

    def test_commit_on_success(self, store):
        table = store.table(3)
        cell = index_of(10.0, 10.0, 3)
        with table.transaction():
            table.ensure_table()
            table.insert(AggregateRecord(cell, 2))
        assert table.count() == 1

    def test_rollback_on_error(self, store):
        table = store.table(3)
        table.ensure_table()
        with pytest.raises(RuntimeError, match="boom"):
            with table.transaction():
                table.insert(AggregateRecord(index_of(10.0, 10.0, 3), 2))
                raise RuntimeError("boom")
        assert table.count() == 0

    def test_sqlite_error_becomes_storage_failure(self, store):
        table = store.table(3)
        table.ensure_table()
        with pytest.raises(StorageFailure):
            with table.transaction():
                store.connection.execute("INSERT INTO missing_table VALUES (1)")

    def test_duplicate_insert_is_storage_failure(self, store):
        table = store.table(3)
        cell = index_of(10.0, 10.0, 3)
        table.ensure_table()
        table.insert(AggregateRecord(cell, 1))
        with pytest.raises(StorageFailure) as exc_info:
            table.insert(AggregateRecord(cell, 1))
        assert exc_info.value.table == "h3_level_3"

    def test_nested_transaction_rejected(self, store):
        table = store.table(3)
        table.ensure_table()
        with pytest.raises(StorageFailure, match="nested"):
            with table.transaction():
                with table.transaction():
                    pass

    def test_usable_after_rollback(self, store):
        table = store.table(3)
        table.ensure_table()
        with pytest.raises(RuntimeError):
            with table.transaction():
                raise RuntimeError("first")
        with table.transaction():
            table.insert(AggregateRecord(index_of(10.0, 10.0, 3), 1))
        assert table.count() == 1
