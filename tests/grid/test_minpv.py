"""
Tests for MINPV processing.

Tests cover:
1. No-op cases: nothing below threshold, already inactive cells
2. Standard policy: collapse to top and close the gap below
3. Stacked collapses within one column
4. Flattening of thin inactive cells (z_tolerance)
5. Alternate policy: merge into nearest active neighbour
6. Depth monotonicity and idempotence on random grids
"""

import numpy as np
import pytest

from cpgrid.grid import MinpvProcessor, box_descriptor, vertical_inversions


def run_minpv(grid, pv, threshold, standard=True, z_tolerance=0.0):
    """Run MinpvProcessor on a descriptor's own buffers."""
    mp = MinpvProcessor(*grid.dims)
    with grid.borrow_mut() as (actnum, zcorn):
        return mp.process(pv, threshold, actnum, standard, zcorn, z_tolerance=z_tolerance)


def column_depths(grid, i=0, j=0):
    """(top, bottom) depth of corner 0 of every layer in column (i, j)."""
    z = grid.zcorn_block()
    return [(z[2 * k, 2 * j, 2 * i], z[2 * k + 1, 2 * j, 2 * i]) for k in range(grid.nz)]


class TestNoOp:
    """Inputs that must leave ACTNUM and ZCORN unchanged."""

    def test_all_above_threshold(self, box_2x2x2):
        zcorn_before = box_2x2x2.zcorn.copy()
        n = run_minpv(box_2x2x2, np.full(8, 5.0), 1.0)

        assert n == 0
        np.testing.assert_array_equal(box_2x2x2.actnum, np.ones(8))
        np.testing.assert_array_equal(box_2x2x2.zcorn, zcorn_before)

    def test_threshold_equal_to_pore_volume_keeps_cell(self, column_3):
        n = run_minpv(column_3, np.array([1.0, 1.0, 1.0]), 1.0)
        assert n == 0

    def test_inactive_cells_not_counted(self, column_3):
        column_3.actnum = np.array([0, 1, 1], dtype=np.int32)
        zcorn_before = column_3.zcorn.copy()

        n = run_minpv(column_3, np.array([0.0, 5.0, 5.0]), 1.0)

        assert n == 0
        np.testing.assert_array_equal(column_3.zcorn, zcorn_before)

    def test_zero_threshold(self, column_3):
        assert run_minpv(column_3, np.zeros(3), 0.0) == 0


class TestStandardMode:
    """Collapse onto the cell top and close the gap below."""

    def test_single_cell_in_box(self, box_2x2x2):
        pv = np.array([0, 5, 5, 5, 5, 5, 5, 5], dtype=float)
        n = run_minpv(box_2x2x2, pv, 1.0)

        assert n == 1
        np.testing.assert_array_equal(box_2x2x2.actnum, [0, 1, 1, 1, 1, 1, 1, 1])
        # Collapsed cell is a slab at depth 0
        np.testing.assert_array_equal(box_2x2x2.cell_zcorn(0, 0, 0), np.zeros(8))
        # Cell below now starts at depth 0
        np.testing.assert_array_equal(box_2x2x2.cell_zcorn(0, 0, 1), [0, 0, 0, 0, 2, 2, 2, 2])
        # Other columns untouched
        np.testing.assert_array_equal(box_2x2x2.cell_zcorn(1, 0, 0), [0, 0, 0, 0, 1, 1, 1, 1])

    def test_bottom_layer_has_nothing_below(self, column_3):
        n = run_minpv(column_3, np.array([5.0, 5.0, 0.0]), 1.0)

        assert n == 1
        assert column_depths(column_3) == [(0.0, 1.0), (1.0, 2.0), (2.0, 2.0)]

    def test_stacked_cells(self, column_3):
        n = run_minpv(column_3, np.array([0.0, 0.0, 5.0]), 1.0)

        assert n == 2
        np.testing.assert_array_equal(column_3.actnum, [0, 0, 1])
        assert column_depths(column_3) == [(0.0, 0.0), (0.0, 0.0), (0.0, 3.0)]

    def test_all_cells_below_threshold(self, row_3):
        n = run_minpv(row_3, np.full(3, 0.1), 1.0)

        assert n == 3
        np.testing.assert_array_equal(row_3.actnum, [0, 0, 0])

    def test_gap_closed_below_thick_inactive_cell(self):
        grid = box_descriptor(1, 1, 4, thickness=[1.0, 0.01, 1.0, 1.0], actnum=[1, 0, 1, 1])
        n = run_minpv(grid, np.array([0.0, 5.0, 5.0, 5.0]), 1.0, z_tolerance=0.0)

        assert n == 1
        depths = column_depths(grid)
        assert depths[0] == (0.0, 0.0)
        # Inactive cell is thicker than the tolerance: only its top moves
        assert depths[1] == pytest.approx((0.0, 1.01))
        assert depths[2] == pytest.approx((1.01, 2.01))

    def test_thin_inactive_cells_flattened(self):
        grid = box_descriptor(1, 1, 4, thickness=[1.0, 0.01, 1.0, 1.0], actnum=[1, 0, 1, 1])
        n = run_minpv(grid, np.array([0.0, 5.0, 5.0, 5.0]), 1.0, z_tolerance=0.05)

        assert n == 1
        depths = column_depths(grid)
        assert depths[0] == (0.0, 0.0)
        assert depths[1] == (0.0, 0.0)
        assert depths[2] == pytest.approx((0.0, 2.01))
        assert depths[3] == pytest.approx((2.01, 3.01))


class TestNearestMode:
    """Merge into the nearest active neighbour."""

    def test_tie_goes_below(self, column_3):
        n = run_minpv(column_3, np.array([5.0, 0.0, 5.0]), 1.0, standard=False)

        assert n == 1
        assert column_depths(column_3) == [(0.0, 1.0), (1.0, 1.0), (1.0, 3.0)]

    def test_gapless_column_always_merges_below(self, layered_column):
        # Thickness of the neighbours plays no part, only face gaps do
        pv = np.array([5.0, 5.0, 5.0, 0.0, 5.0])
        n = run_minpv(layered_column, pv, 1.0, standard=False)

        assert n == 1
        depths = column_depths(layered_column)
        assert depths[2] == (101.5, 103.5)
        assert depths[3] == (103.5, 103.5)
        assert depths[4] == (103.5, 104.75)

    def test_merges_up_when_closer(self, column_3):
        # Gap of 0.5 between layers 1 and 2, none between 0 and 1
        z = column_3.zcorn_block()
        z[4] = 2.5
        n = run_minpv(column_3, np.array([5.0, 0.0, 5.0]), 1.0, standard=False)

        assert n == 1
        assert column_depths(column_3) == [(0.0, 2.0), (2.0, 2.0), (2.5, 3.0)]

    def test_bottom_cell_merges_up(self, column_3):
        n = run_minpv(column_3, np.array([5.0, 5.0, 0.0]), 1.0, standard=False)

        assert n == 1
        assert column_depths(column_3) == [(0.0, 1.0), (1.0, 3.0), (3.0, 3.0)]

    def test_no_active_neighbour(self, column_3):
        column_3.actnum = np.array([0, 1, 0], dtype=np.int32)
        n = run_minpv(column_3, np.array([5.0, 0.0, 5.0]), 1.0, standard=False)

        assert n == 1
        assert column_depths(column_3) == [(0.0, 1.0), (1.0, 1.0), (2.0, 3.0)]


class TestInvariants:
    """Depth monotonicity and idempotence."""

    @pytest.fixture
    def random_case(self):
        rng = np.random.default_rng(1234)
        nx, ny, nz = 4, 3, 6
        thickness = rng.uniform(0.0, 2.0, size=(nz, ny, nx))
        tops = rng.uniform(1000.0, 1010.0, size=(ny, nx))
        grid = box_descriptor(nx, ny, nz, tops=tops, thickness=thickness)
        pv = rng.uniform(0.0, 10.0, size=nx * ny * nz)
        return grid, pv

    @pytest.mark.parametrize("standard", [True, False])
    def test_no_vertical_inversions(self, random_case, standard):
        grid, pv = random_case
        assert grid.vertical_inversions() == 0

        n = run_minpv(grid, pv, 5.0, standard=standard)

        assert n > 0
        assert grid.vertical_inversions() == 0

    @pytest.mark.parametrize("standard", [True, False])
    def test_idempotent(self, random_case, standard):
        grid, pv = random_case
        run_minpv(grid, pv, 5.0, standard=standard)
        actnum_once = grid.actnum.copy()
        zcorn_once = grid.zcorn.copy()

        n = run_minpv(grid, pv, 5.0, standard=standard)

        assert n == 0
        np.testing.assert_array_equal(grid.actnum, actnum_once)
        np.testing.assert_array_equal(grid.zcorn, zcorn_once)

    def test_only_cells_below_threshold_deactivated(self, random_case):
        grid, pv = random_case
        n = run_minpv(grid, pv, 5.0)

        assert n == int(np.count_nonzero(pv < 5.0))
        np.testing.assert_array_equal(grid.actnum == 0, pv < 5.0)

    def test_count_helper_detects_inversion(self, column_3):
        z = column_3.zcorn_block()
        z[2] = 0.5     # top of layer 1 above bottom of layer 0
        assert vertical_inversions(column_3.zcorn, column_3.dims) == 4


class TestBufferHandling:
    """Caller buffers are updated in place."""

    def test_python_lists_updated(self):
        grid = box_descriptor(1, 1, 2)
        actnum = [1, 1]
        zcorn = list(grid.zcorn)

        n = MinpvProcessor(1, 1, 2).process([0.0, 5.0], 1.0, actnum, True, zcorn)

        assert n == 1
        assert list(actnum) == [0, 1]
        assert zcorn[:8] == [0.0] * 8
        assert zcorn[8:12] == [0.0] * 4

    def test_numpy_buffers_shared(self, column_3):
        actnum = np.ones(3, dtype=np.int32)
        zcorn = column_3.zcorn

        MinpvProcessor(1, 1, 3).process(np.array([0.0, 5.0, 5.0]), 1.0, actnum, True, zcorn)

        assert actnum[0] == 0
        assert column_3.zcorn[4] == 0.0
