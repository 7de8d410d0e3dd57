"""
Tests for the MINPV cross-section plot.
"""

from pathlib import Path

import numpy as np
import pytest

from cpgrid.grid import MinpvProcessor, box_descriptor
from cpgrid.io import plot_row_section


@pytest.fixture
def before_after():
    before = box_descriptor(4, 2, 3, thickness=[1.0, 0.2, 1.5])
    after = before.copy()
    pv = np.full(after.num_cells, 5.0)
    pv[after.cell_index(1, 0, 1)] = 0.0
    with after.borrow_mut() as (actnum, zcorn):
        MinpvProcessor(*after.dims).process(pv, 1.0, actnum, True, zcorn)
    return before, after


class TestPlotRowSection:

    def test_writes_png(self, tmp_path, before_after):
        before, after = before_after
        path = plot_row_section(before, after, tmp_path / "plots", j=0, case_name="case")

        assert Path(path).name == "case_row0.png"
        assert Path(path).stat().st_size > 0

    def test_dims_mismatch(self, tmp_path, before_after):
        before, _ = before_after
        with pytest.raises(ValueError):
            plot_row_section(before, box_descriptor(1, 1, 1), tmp_path)

    def test_row_out_of_range(self, tmp_path, before_after):
        before, after = before_after
        with pytest.raises(IndexError):
            plot_row_section(before, after, tmp_path, j=2)
