"""
Tests for the ASCII grid file reader and writer.
"""

import numpy as np
import pytest

from cpgrid.errors import ContractViolation
from cpgrid.grid import CornerPointBuilder, attach_zcorn_copy, box_descriptor, read_grid, write_grid


@pytest.fixture
def cornerpoint_grid():
    g = box_descriptor(2, 2, 1, actnum=[1, 1, 0, 1])
    grid = CornerPointBuilder().create_grid_cornerpoint(g.view())
    attach_zcorn_copy(grid, g.zcorn)
    return grid


class TestRoundTrip:

    def test_cornerpoint_grid(self, tmp_path, cornerpoint_grid):
        path = write_grid(cornerpoint_grid, tmp_path / "cp.grid")
        loaded = read_grid(path)

        assert loaded.dimensions == 3
        assert loaded.cartdims == (2, 2, 1)
        np.testing.assert_allclose(loaded.node_coordinates, cornerpoint_grid.node_coordinates)
        np.testing.assert_array_equal(loaded.face_nodepos, cornerpoint_grid.face_nodepos)
        np.testing.assert_array_equal(loaded.face_nodes, cornerpoint_grid.face_nodes)
        np.testing.assert_array_equal(loaded.face_cells, cornerpoint_grid.face_cells)
        np.testing.assert_array_equal(loaded.cell_facepos, cornerpoint_grid.cell_facepos)
        np.testing.assert_array_equal(loaded.cell_faces, cornerpoint_grid.cell_faces)
        np.testing.assert_array_equal(loaded.cell_nodes, cornerpoint_grid.cell_nodes)
        np.testing.assert_array_equal(loaded.global_cell, [0, 1, 3])
        np.testing.assert_allclose(loaded.zcorn, cornerpoint_grid.zcorn)

    def test_structured_2d_without_global_cell(self, tmp_path):
        grid = CornerPointBuilder().create_grid_cart2d(3, 1, 0.5, 0.25)
        loaded = read_grid(write_grid(grid, tmp_path / "sub" / "cart.grid"))

        assert loaded.dimensions == 2
        assert loaded.global_cell is None
        assert loaded.zcorn is None
        assert loaded.number_of_faces == grid.number_of_faces
        np.testing.assert_array_equal(loaded.cell_nodes, grid.cell_nodes)
        np.testing.assert_allclose(loaded.node_coordinates, grid.node_coordinates)

    def test_empty_grid(self, tmp_path):
        g = box_descriptor(1, 1, 1, actnum=[0])
        grid = CornerPointBuilder().create_grid_cornerpoint(g.view())
        loaded = read_grid(write_grid(grid, tmp_path / "empty.grid"))

        assert loaded.number_of_cells == 0
        assert loaded.global_cell.size == 0
        assert loaded.cell_nodes.shape == (0, 8)


class TestMalformed:

    def test_missing_file(self, tmp_path):
        assert read_grid(tmp_path / "nope.grid") is None

    def test_wrong_magic(self, tmp_path):
        path = tmp_path / "bad.grid"
        path.write_text("GRID 1\n")
        assert read_grid(path) is None

    def test_wrong_version(self, tmp_path, cornerpoint_grid):
        path = write_grid(cornerpoint_grid, tmp_path / "v.grid")
        path.write_text(path.read_text().replace("CPGRID 1", "CPGRID 2"))
        assert read_grid(path) is None

    def test_truncated(self, tmp_path, cornerpoint_grid):
        path = write_grid(cornerpoint_grid, tmp_path / "t.grid")
        path.write_text(path.read_text().split("FACES")[0])
        assert read_grid(path) is None

    def test_node_index_out_of_range(self, tmp_path):
        grid = CornerPointBuilder().create_grid_cart2d(1, 1)
        path = write_grid(grid, tmp_path / "r.grid")
        text = path.read_text().replace("NODES 4", "NODES 3", 1)
        # Drop one coordinate pair so the token stream stays aligned
        lines = text.splitlines()
        idx = lines.index("NODES 3")
        del lines[idx + 4]
        path.write_text("\n".join(lines) + "\n")
        assert read_grid(path) is None

    def test_cell_below_no_cell(self, tmp_path):
        grid = CornerPointBuilder().create_grid_cart2d(1, 1)
        path = write_grid(grid, tmp_path / "c.grid")
        lines = path.read_text().splitlines()
        first_face = lines.index("FACES 4") + 1
        lines[first_face] = lines[first_face].rsplit(" ", 1)[0] + " -2"
        path.write_text("\n".join(lines) + "\n")
        assert read_grid(path) is None

    def test_short_global_cell_list(self, tmp_path, cornerpoint_grid):
        cornerpoint_grid.zcorn = None
        cornerpoint_grid.cell_nodes = None
        path = write_grid(cornerpoint_grid, tmp_path / "g.grid")
        path.write_text(path.read_text().replace("GLOBALCELL 1\n0 1 3\n", "GLOBALCELL 1\n0 1\n"))
        assert read_grid(path) is None

    def test_cell_nodes_out_of_range(self, tmp_path):
        grid = CornerPointBuilder().create_grid_cart2d(1, 1)
        path = write_grid(grid, tmp_path / "n.grid")
        text = path.read_text().replace("CELLNODES 1 4\n0 1 2 3", "CELLNODES 1 4\n0 1 2 4")
        path.write_text(text)
        assert read_grid(path) is None

    def test_cell_nodes_wrong_shape(self, tmp_path):
        grid = CornerPointBuilder().create_grid_cart2d(1, 1)
        path = write_grid(grid, tmp_path / "s.grid")
        path.write_text(path.read_text().replace("CELLNODES 1 4\n0 1 2 3", "CELLNODES 2 2\n0 1 2 3"))
        assert read_grid(path) is None

    def test_released_grid_not_written(self, tmp_path, cornerpoint_grid):
        CornerPointBuilder().destroy(cornerpoint_grid)
        with pytest.raises(ContractViolation):
            write_grid(cornerpoint_grid, tmp_path / "gone.grid")
        assert not (tmp_path / "gone.grid").exists()
