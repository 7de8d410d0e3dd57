"""
Unstructured grid topology from corner-point and cartesian input.

This module provides the mesh handle (UnstructuredGrid) and a reference
topology builder that turns the final COORD/ZCORN/ACTNUM arrays into a
cell/face/node graph.

Grid Layout:
    - Nodes are corner points; coincident corners on the same pillar are
      merged (within z_tolerance for corner-point grids)
    - Each active cell thicker than z_tolerance becomes a hexahedron;
      thinner active cells are pinched out, which connects the cells
      above and below them
    - Faces are shared between the two cells whose corner nodes coincide;
      boundary faces have NO_CELL (-1) as second neighbour
    - Partially overlapping faces across faults are not split; they end up
      as boundary faces of both cells
"""

from dataclasses import dataclass, field
from typing import Optional, Protocol, Tuple

import numpy as np
from numba import njit
from loguru import logger

from ..constants import NO_CELL, cell_count, coord_length, zcorn_length
from ..errors import ContractViolation
from .descriptor import GridView, zcorn_block
from .geometry import HEX_FACES, corner_points

# Local corner l = di + 2*dj of a quadrilateral, grouped by edge (I-, I+, J-, J+)
QUAD_FACES = np.array([
    [0, 2],
    [1, 3],
    [0, 1],
    [2, 3],
], dtype=np.int64)


@dataclass
class UnstructuredGrid:
    """
    Cell/face/node graph of an assembled grid.

    Connectivity is stored in compressed (CSR) form:
    - face f has nodes face_nodes[face_nodepos[f]:face_nodepos[f+1]]
    - cell c has faces cell_faces[cell_facepos[c]:cell_facepos[c+1]]
    """

    dimensions: int
    cartdims: Tuple[int, int, int]
    node_coordinates: np.ndarray    # (nn, dimensions)
    face_nodepos: np.ndarray        # (nf+1,)
    face_nodes: np.ndarray          # (face_nodepos[-1],)
    face_cells: np.ndarray          # (nf, 2), NO_CELL on the boundary
    cell_facepos: np.ndarray        # (nc+1,)
    cell_faces: np.ndarray          # (cell_facepos[-1],)
    cell_nodes: Optional[np.ndarray] = None     # (nc, 2**dimensions) lattice corners
    global_cell: Optional[np.ndarray] = None    # (nc,) cartesian index, None = identity
    zcorn: Optional[np.ndarray] = None          # post-MINPV ZCORN copy
    released: bool = field(default=False, compare=False)

    @property
    def number_of_cells(self) -> int:
        self.check_live()
        return self.cell_facepos.size - 1

    @property
    def number_of_faces(self) -> int:
        self.check_live()
        return self.face_cells.shape[0]

    @property
    def number_of_nodes(self) -> int:
        self.check_live()
        return self.node_coordinates.shape[0]

    def cartesian_index(self) -> np.ndarray:
        """Cartesian (row-major) index of every cell."""
        if self.global_cell is None:
            return np.arange(self.number_of_cells)
        return self.global_cell

    def check_live(self) -> None:
        """Raise ContractViolation if the grid has been released."""
        if self.released:
            raise ContractViolation("grid has been released")

    def release(self) -> None:
        """Drop all arrays. Any later use of the grid raises ContractViolation."""
        self.node_coordinates = None
        self.face_nodepos = None
        self.face_nodes = None
        self.face_cells = None
        self.cell_facepos = None
        self.cell_faces = None
        self.cell_nodes = None
        self.global_cell = None
        self.zcorn = None
        self.released = True


class TopologyBuilder(Protocol):
    """Geometric kernel producing UnstructuredGrid handles. Failure is ``None``."""

    def create_grid_cornerpoint(self, view: GridView,
                                z_tolerance: float) -> Optional[UnstructuredGrid]: ...

    def create_grid_cart2d(self, nx: int, ny: int,
                           dx: float, dy: float) -> Optional[UnstructuredGrid]: ...

    def create_grid_cart3d(self, nx: int, ny: int, nz: int) -> Optional[UnstructuredGrid]: ...

    def create_grid_hexa3d(self, nx: int, ny: int, nz: int,
                           dx: float, dy: float, dz: float) -> Optional[UnstructuredGrid]: ...

    def destroy(self, grid: UnstructuredGrid) -> None: ...


def attach_zcorn_copy(grid: UnstructuredGrid, zcorn: np.ndarray) -> None:
    """Store a private copy of (post-MINPV) ZCORN on the grid."""
    grid.zcorn = np.array(zcorn, dtype=np.float64, copy=True)


@njit(cache=True)
def _cluster_depths(pillar: np.ndarray, depth: np.ndarray, tol: float) -> np.ndarray:
    """
    Node id for each (pillar, depth) entry, sorted by pillar then depth.

    A new node starts when the pillar changes or the depth exceeds the
    first depth of the current node by more than ``tol``.
    """
    n = pillar.size
    ids = np.empty(n, dtype=np.int64)
    node = -1
    start = 0.0
    for e in range(n):
        if e == 0 or pillar[e] != pillar[e - 1] or depth[e] - start > tol:
            node += 1
            start = depth[e]
        ids[e] = node
    return ids


def _empty_grid(dimensions: int, cartdims: Tuple[int, int, int]) -> UnstructuredGrid:
    return UnstructuredGrid(
        dimensions=dimensions,
        cartdims=cartdims,
        node_coordinates=np.zeros((0, dimensions)),
        face_nodepos=np.zeros(1, dtype=np.int64),
        face_nodes=np.zeros(0, dtype=np.int64),
        face_cells=np.zeros((0, 2), dtype=np.int64),
        cell_facepos=np.zeros(1, dtype=np.int64),
        cell_faces=np.zeros(0, dtype=np.int64),
        cell_nodes=np.zeros((0, 2 ** dimensions), dtype=np.int64),
        global_cell=np.zeros(0, dtype=np.int64),
    )


def connect_cells(node_coordinates: np.ndarray, cell_nodes: np.ndarray,
                  local_faces: np.ndarray, cartdims: Tuple[int, int, int],
                  global_cell: Optional[np.ndarray] = None) -> Optional[UnstructuredGrid]:
    """
    Build faces and cell/face connectivity from per-cell corner nodes.

    Parameters
    ----------
    node_coordinates : ndarray, shape (nn, d)
    cell_nodes : ndarray, shape (nc, 2**d)
    local_faces : ndarray, shape (n_local_faces, nodes_per_face)
        Local corner numbers of each cell face, listed cyclically.
    cartdims : (nx, ny, nz)
    global_cell : ndarray, optional

    Returns
    -------
    UnstructuredGrid or None
        None if a face is claimed by more than two cells.
    """
    d = node_coordinates.shape[1]
    nc = cell_nodes.shape[0]
    if nc == 0:
        grid = _empty_grid(d, cartdims)
        grid.node_coordinates = node_coordinates
        return grid

    n_local = local_faces.shape[0]
    faces = cell_nodes[:, local_faces].reshape(nc * n_local, -1)
    owner = np.repeat(np.arange(nc), n_local)

    # Drop faces collapsed by node merging (edges in 2D need 2 nodes, polygons 3)
    keys = np.sort(faces, axis=1)
    distinct = 1 + np.count_nonzero(np.diff(keys, axis=1), axis=1)
    keep = distinct >= min(3, faces.shape[1])
    faces, owner, keys = faces[keep], owner[keep], keys[keep]

    uniq, first, inv = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inv = inv.reshape(-1)
    nf = uniq.shape[0]
    counts = np.bincount(inv, minlength=nf)
    if np.any(counts > 2):
        logger.debug(f"{int(np.count_nonzero(counts > 2))} faces shared by more than two cells")
        return None

    # Number faces by first appearance
    perm = np.argsort(first, kind='stable')
    rank = np.empty(nf, dtype=np.int64)
    rank[perm] = np.arange(nf)

    order = np.argsort(inv, kind='stable')
    starts = np.concatenate([[0], np.cumsum(counts)[:-1]])
    face_cells = np.full((nf, 2), NO_CELL, dtype=np.int64)
    face_cells[rank, 0] = owner[order[starts]]
    shared = counts == 2
    face_cells[rank[shared], 1] = owner[order[starts[shared] + 1]]

    # Face nodes from the first owner, without repeated consecutive nodes
    rows = faces[first[perm]]
    distinct_node = rows != np.roll(rows, 1, axis=1)
    face_nodepos = np.concatenate([[0], np.cumsum(distinct_node.sum(axis=1))]).astype(np.int64)
    face_nodes = rows[distinct_node].astype(np.int64)

    cell_facepos = np.concatenate([[0], np.cumsum(np.bincount(owner, minlength=nc))]).astype(np.int64)
    cell_faces = rank[inv]

    return UnstructuredGrid(
        dimensions=d,
        cartdims=cartdims,
        node_coordinates=node_coordinates,
        face_nodepos=face_nodepos,
        face_nodes=face_nodes,
        face_cells=face_cells,
        cell_facepos=cell_facepos,
        cell_faces=cell_faces,
        cell_nodes=cell_nodes,
        global_cell=global_cell,
    )


class CornerPointBuilder:
    """
    Reference topology builder for corner-point and cartesian grids.

    Example
    -------
    >>> builder = CornerPointBuilder()
    >>> grid = builder.create_grid_cornerpoint(descriptor.view(), 0.0)
    """

    def create_grid_cornerpoint(self, view: GridView,
                                z_tolerance: float = 0.0) -> Optional[UnstructuredGrid]:
        nx, ny, nz = view.dims
        n = cell_count(nx, ny, nz)
        if min(view.dims) < 1 or n == 0:
            logger.debug(f"Corner-point grid has no cells: dims {view.dims}")
            return None
        if (view.coord.size != coord_length(nx, ny)
                or view.zcorn.size != zcorn_length(nx, ny, nz)
                or view.actnum.size not in (0, n)):
            logger.debug("Corner-point arrays are inconsistent with dims")
            return None
        if z_tolerance < 0.0 or not np.all(np.isfinite(view.zcorn)) \
                or not np.all(np.isfinite(view.coord)):
            return None

        if view.actnum.size == 0:
            active = np.ones((nz, ny, nx), dtype=bool)
        else:
            active = view.actnum.reshape((nz, ny, nx)) != 0

        z = zcorn_block(view.zcorn, view.dims)
        h = (z[1::2] - z[0::2]).reshape((nz, ny, 2, nx, 2))
        h_min = h.min(axis=(2, 4))
        h_max = h.max(axis=(2, 4))
        if np.any(h_min[active] < 0.0):
            logger.debug(f"{int(np.count_nonzero(h_min[active] < 0.0))} active cells are inverted")
            return None

        keep = active & (h_max > z_tolerance)
        cells = np.flatnonzero(keep.ravel())
        n_pinched = int(np.count_nonzero(active)) - cells.size
        if n_pinched:
            logger.debug(f"{n_pinched} active cells thinner than {z_tolerance} pinched out")
        if cells.size == 0:
            return _empty_grid(3, view.dims)

        k, j, i = np.unravel_index(cells, (nz, ny, nx))
        pillar = np.empty((cells.size, 8), dtype=np.int64)
        depth = np.empty((cells.size, 8))
        for dk in range(2):
            for dj in range(2):
                for di in range(2):
                    l = di + 2 * dj + 4 * dk
                    pillar[:, l] = (i + di) + (nx + 1) * (j + dj)
                    depth[:, l] = z[2 * k + dk, 2 * j + dj, 2 * i + di]

        corners = corner_points(view.dims, view.coord, view.zcorn, view.mapaxes)
        corners = corners.reshape((n, 8, 3))[cells].reshape((-1, 3))

        pillar = pillar.reshape(-1)
        depth = depth.reshape(-1)
        order = np.lexsort((depth, pillar))
        ids_sorted = _cluster_depths(pillar[order], depth[order], float(z_tolerance))
        node_of_entry = np.empty_like(ids_sorted)
        node_of_entry[order] = ids_sorted

        is_first = np.ones(order.size, dtype=bool)
        is_first[1:] = ids_sorted[1:] != ids_sorted[:-1]
        node_coordinates = corners[order[is_first]]

        return connect_cells(
            node_coordinates,
            node_of_entry.reshape((cells.size, 8)),
            HEX_FACES,
            view.dims,
            global_cell=cells.astype(np.int64),
        )

    def create_grid_hexa3d(self, nx: int, ny: int, nz: int,
                           dx: float = 1.0, dy: float = 1.0,
                           dz: float = 1.0) -> Optional[UnstructuredGrid]:
        if min(nx, ny, nz) < 1 or min(dx, dy, dz) <= 0.0:
            return None

        x = np.arange(nx + 1) * dx
        y = np.arange(ny + 1) * dy
        zz = np.arange(nz + 1) * dz
        Z, Y, X = np.meshgrid(zz, y, x, indexing='ij')
        nodes = np.stack([X.ravel(), Y.ravel(), Z.ravel()], axis=1)

        k, j, i = np.unravel_index(np.arange(nx * ny * nz), (nz, ny, nx))
        cell_nodes = np.empty((nx * ny * nz, 8), dtype=np.int64)
        for dk in range(2):
            for dj in range(2):
                for di in range(2):
                    cell_nodes[:, di + 2 * dj + 4 * dk] = (
                        (i + di) + (nx + 1) * ((j + dj) + (ny + 1) * (k + dk))
                    )
        return connect_cells(nodes, cell_nodes, HEX_FACES, (nx, ny, nz))

    def create_grid_cart3d(self, nx: int, ny: int, nz: int) -> Optional[UnstructuredGrid]:
        return self.create_grid_hexa3d(nx, ny, nz, 1.0, 1.0, 1.0)

    def create_grid_cart2d(self, nx: int, ny: int,
                           dx: float = 1.0, dy: float = 1.0) -> Optional[UnstructuredGrid]:
        if min(nx, ny) < 1 or min(dx, dy) <= 0.0:
            return None

        x = np.arange(nx + 1) * dx
        y = np.arange(ny + 1) * dy
        Y, X = np.meshgrid(y, x, indexing='ij')
        nodes = np.stack([X.ravel(), Y.ravel()], axis=1)

        j, i = np.unravel_index(np.arange(nx * ny), (ny, nx))
        cell_nodes = np.empty((nx * ny, 4), dtype=np.int64)
        for dj in range(2):
            for di in range(2):
                cell_nodes[:, di + 2 * dj] = (i + di) + (nx + 1) * (j + dj)
        return connect_cells(nodes, cell_nodes, QUAD_FACES, (nx, ny, 1))

    def destroy(self, grid: UnstructuredGrid) -> None:
        grid.release()
