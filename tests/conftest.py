"""
Shared pytest fixtures for the test suite.

Provides small box-shaped corner-point grids and a builder that counts
how often grids are released.
"""

import matplotlib
matplotlib.use('Agg')

import pytest

from cpgrid.grid import CornerPointBuilder, box_descriptor


# =============================================================================
# Corner-point boxes
# =============================================================================

@pytest.fixture
def box_2x2x2():
    """Unit cells, 2 x 2 x 2, all active, top at depth 0."""
    return box_descriptor(2, 2, 2)


@pytest.fixture
def column_3():
    """A single column of three unit cells."""
    return box_descriptor(1, 1, 3)


@pytest.fixture
def row_3():
    """A single layer of three unit cells along I."""
    return box_descriptor(3, 1, 1)


@pytest.fixture
def layered_column():
    """
    One column of five layers with uneven thickness.

    Layer thicknesses 1, 0.5, 2, 0.25, 1 starting at depth 100.
    """
    return box_descriptor(1, 1, 5, tops=100.0, thickness=[1.0, 0.5, 2.0, 0.25, 1.0])


# =============================================================================
# Builders
# =============================================================================

class CountingBuilder(CornerPointBuilder):
    """CornerPointBuilder that records every destroy() call."""

    def __init__(self):
        self.destroyed = []

    def destroy(self, grid):
        self.destroyed.append(grid)
        super().destroy(grid)


class RejectingBuilder(CornerPointBuilder):
    """Builder whose corner-point construction always fails."""

    def create_grid_cornerpoint(self, view, z_tolerance=0.0):
        return None


@pytest.fixture
def counting_builder():
    return CountingBuilder()


@pytest.fixture
def rejecting_builder():
    return RejectingBuilder()
