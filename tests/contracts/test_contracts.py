"""Tests for pipeline contracts.

These tests verify that contracts are enforced at stage boundaries.
"""

import pytest

import h3

pytestmark = pytest.mark.unit

from hexrollup.contracts import (
    ContractViolation,
    FailurePolicy,
    InvalidCoordinate,
    StorageFailure,
    assert_aggregates_valid,
    assert_monotonic_merge,
    assert_rollup_conserved,
    require,
)
from hexrollup.contracts.invariants import PIPELINE_INVARIANTS, STAGE_REQUIREMENTS
from hexrollup.grid.models import AggregateRecord


class TestRequire:
    """Test the single enforcement primitive."""

    def test_require_passes_on_true(self):
        require(True, "never raised")

    def test_require_raises_contract_violation(self):
        with pytest.raises(ContractViolation, match="boom"):
            require(False, "boom")

    def test_contract_violation_is_runtime_error(self):
        assert issubclass(ContractViolation, RuntimeError)


class TestAggregateContract:
    """Test aggregation stage contract."""

    def test_passes_for_cells_at_resolution(self):
        cell = h3.latlng_to_cell(48.85, 2.35, 7)
        assert_aggregates_valid({cell: AggregateRecord(cell, 3)}, 7)

    def test_fails_for_wrong_resolution(self):
        cell = h3.latlng_to_cell(48.85, 2.35, 6)
        with pytest.raises(ContractViolation, match="resolution 7"):
            assert_aggregates_valid({cell: AggregateRecord(cell, 3)}, 7)

    def test_fails_for_garbage_cell(self):
        with pytest.raises(ContractViolation, match="not a cell"):
            assert_aggregates_valid({"nope": AggregateRecord("nope", 1)}, 7)

    def test_fails_when_key_and_record_disagree(self):
        a = h3.latlng_to_cell(48.85, 2.35, 7)
        b = h3.latlng_to_cell(40.4, -3.7, 7)
        with pytest.raises(ContractViolation, match="holds record"):
            assert_aggregates_valid({a: AggregateRecord(b, 1)}, 7)

    def test_empty_mapping_passes(self):
        assert_aggregates_valid({}, 7)


class TestMergeContract:
    """Test watermark monotonicity contract."""

    def test_passes_when_values_grow(self, times):
        t1, t2, _ = times
        stored = AggregateRecord("c", 3, t1)
        assert_monotonic_merge(stored, AggregateRecord("c", 4, t2))

    def test_fails_when_visits_drop(self, times):
        t1, _, _ = times
        with pytest.raises(ContractViolation, match="visits"):
            assert_monotonic_merge(AggregateRecord("c", 5, t1), AggregateRecord("c", 4, t1))

    def test_fails_when_last_visit_cleared(self, times):
        t1, _, _ = times
        with pytest.raises(ContractViolation, match="last_visit"):
            assert_monotonic_merge(AggregateRecord("c", 5, t1), AggregateRecord("c", 5, None))


class TestRollupContract:
    """Test rollup conservation contract."""

    def test_passes_when_conserved(self, sibling_cells):
        parent, children = sibling_cells(n=2)
        fine = {c: AggregateRecord(c, 2) for c in children}
        coarse = {parent: AggregateRecord(parent, 4)}
        assert_rollup_conserved(fine, coarse, 2)

    def test_fails_when_sum_differs(self, sibling_cells):
        parent, children = sibling_cells(n=2)
        fine = {c: AggregateRecord(c, 2) for c in children}
        coarse = {parent: AggregateRecord(parent, 3)}
        with pytest.raises(ContractViolation, match="children sum to 4"):
            assert_rollup_conserved(fine, coarse, 2)

    def test_fails_on_missing_ancestor(self, sibling_cells):
        _, children = sibling_cells(n=2)
        fine = {c: AggregateRecord(c, 2) for c in children}
        with pytest.raises(ContractViolation, match="ancestor set mismatch"):
            assert_rollup_conserved(fine, {}, 2)


class TestFailureTaxonomy:
    """Error types carry what callers need."""

    def test_invalid_coordinate_is_value_error(self):
        err = InvalidCoordinate(95.0, 2.0, "latitude outside -90..90")
        assert isinstance(err, ValueError)
        assert err.latitude == 95.0
        assert "95.0" in str(err)

    def test_storage_failure_keeps_table(self):
        err = StorageFailure("disk full", table="h3_level_7")
        assert err.table == "h3_level_7"

    def test_failure_policy_values(self):
        assert FailurePolicy("skip_point") is FailurePolicy.SKIP_POINT
        assert FailurePolicy.FAIL_FAST == "fail_fast"

    def test_every_stage_has_invariants(self):
        assert set(STAGE_REQUIREMENTS) == set(PIPELINE_INVARIANTS)
