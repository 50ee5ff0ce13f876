"""Tests for hierarchical rollup."""

import pytest

pytestmark = pytest.mark.unit

from hexrollup.contracts import InvalidCellId, InvalidResolution
from hexrollup.grid.indexer import ancestor_of, index_of
from hexrollup.grid.models import AggregateRecord
from hexrollup.grid.rollup import HierarchicalRollup, roll_up, roll_up_chain


class TestRollUp:
    """Single rollup step."""

    def test_siblings_sum_into_parent(self, sibling_cells, times):
        t1, t2, _ = times
        parent, (a, b, c) = sibling_cells(n=3)
        fine = {
            a: AggregateRecord(a, 2, t1),
            b: AggregateRecord(b, 5, t2),
            c: AggregateRecord(c, 1, None),
        }
        assert roll_up(fine, 2) == {parent: AggregateRecord(parent, 8, t2)}

    def test_accepts_int_mapping(self, sibling_cells):
        parent, (a, b) = sibling_cells(n=2)
        result = roll_up({a: 3, b: 4}, 2)
        assert result[parent].visit_count == 7

    def test_accepts_pairs_and_records(self, sibling_cells):
        parent, (a, b) = sibling_cells(n=2)
        assert roll_up([(a, 1), (b, 1)], 2)[parent].visit_count == 2
        assert roll_up([AggregateRecord(a, 1)], 2)[parent].visit_count == 1

    def test_conserves_total(self):
        cells = {index_of(lat, lon, 3) for lat, lon in
                 [(48.85, 2.35), (40.4, -3.7), (41.9, 12.5), (52.5, 13.4), (-33.9, 151.2)]}
        fine = {c: AggregateRecord(c, i + 1) for i, c in enumerate(sorted(cells))}
        coarse = roll_up(fine, 1)
        assert sum(r.visit_count for r in coarse.values()) == sum(r.visit_count for r in fine.values())
        for cell in fine:
            assert ancestor_of(cell, 1) in coarse

    def test_empty_input(self):
        assert roll_up({}, 2) == {}
        assert roll_up([], 0) == {}

    def test_target_not_coarser_raises(self, sibling_cells):
        _, (a,) = sibling_cells(n=1)
        with pytest.raises(InvalidResolution):
            roll_up({a: 1}, 3)

    def test_mixed_resolutions_raise(self):
        a = index_of(48.85, 2.35, 3)
        b = index_of(48.85, 2.35, 4)
        with pytest.raises(InvalidResolution, match="mixes resolutions"):
            roll_up({a: 1, b: 1}, 2)

    def test_bad_cell_raises(self):
        with pytest.raises(InvalidCellId):
            roll_up({"garbage": 1}, 2)

    def test_invalid_target_raises(self, sibling_cells):
        _, (a,) = sibling_cells(n=1)
        with pytest.raises(InvalidResolution):
            roll_up({a: 1}, -1)


class TestRollUpChain:
    """Chained rollups (3 -> 2 -> 1)."""

    def test_chain_feeds_forward(self, sibling_cells):
        parent, children = sibling_cells(n=4)
        fine = {c: AggregateRecord(c, 2) for c in children}
        levels = roll_up_chain(fine, [2, 1])

        assert set(levels) == {2, 1}
        assert levels[2] == {parent: AggregateRecord(parent, 8)}
        grandparent = ancestor_of(parent, 1)
        assert levels[1] == {grandparent: AggregateRecord(grandparent, 8)}

    def test_chain_equals_direct_rollup(self):
        cells = {index_of(lat, lon, 3) for lat, lon in
                 [(48.85, 2.35), (45.76, 4.83), (43.3, 5.37), (50.63, 3.06)]}
        fine = {c: AggregateRecord(c, 3) for c in cells}
        chained = roll_up_chain(fine, [2, 1])[1]
        assert chained == roll_up(fine, 1)

    def test_chain_must_decrease(self, sibling_cells):
        _, children = sibling_cells(n=1)
        with pytest.raises(InvalidResolution, match="strictly decreasing"):
            HierarchicalRollup().roll_up_chain({children[0]: 1}, [1, 2])

    def test_empty_chain_input(self):
        assert roll_up_chain({}, [2, 1]) == {2: {}, 1: {}}
