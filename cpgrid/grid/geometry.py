"""
Geometric quantities for corner-point and unstructured grids.

Corner positions are found by interpolating along pillars at the ZCORN
depth. Volumes use the divergence theorem on triangulated faces: each face
is fanned around its centroid and every triangle forms a tetrahedron with
the cell reference point (mean of face centroids).
"""

from typing import Optional, Tuple, TYPE_CHECKING

import numpy as np

from ..constants import MAPAXES_LENGTH
from .descriptor import GridDescriptor, zcorn_block
from ..errors import ContractViolation

if TYPE_CHECKING:
    from .topology import UnstructuredGrid


# Local corner l = di + 2*dj + 4*dk of a hexahedron, grouped by face
# (I-, I+, J-, J+, K- top, K+ bottom). Nodes are listed cyclically.
HEX_FACES = np.array([
    [0, 4, 6, 2],
    [1, 3, 7, 5],
    [0, 1, 5, 4],
    [2, 6, 7, 3],
    [0, 2, 3, 1],
    [4, 5, 7, 6],
], dtype=np.int64)


def apply_mapaxes(xy: np.ndarray, mapaxes: Optional[np.ndarray]) -> np.ndarray:
    """
    Transform local (x, y) into the map frame given by MAPAXES.

    MAPAXES is (x1, y1, x0, y0, x2, y2): a point on the y-axis, the origin,
    and a point on the x-axis. ``None`` leaves coordinates unchanged.
    """
    if mapaxes is None:
        return xy
    m = np.asarray(mapaxes, dtype=np.float64)
    if m.size != MAPAXES_LENGTH:
        raise ContractViolation(f"mapaxes has {m.size} entries, expected {MAPAXES_LENGTH}")
    origin = m[2:4]
    ex = m[4:6] - origin
    ey = m[0:2] - origin
    ex = ex / np.linalg.norm(ex)
    ey = ey / np.linalg.norm(ey)
    out = np.empty_like(xy)
    out[..., 0] = origin[0] + xy[..., 0] * ex[0] + xy[..., 1] * ey[0]
    out[..., 1] = origin[1] + xy[..., 0] * ex[1] + xy[..., 1] * ey[1]
    return out


def corner_points(dims: Tuple[int, int, int], coord: np.ndarray, zcorn: np.ndarray,
                  mapaxes: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Compute the 3D position of every cell corner.

    Parameters
    ----------
    dims : (nx, ny, nz)
    coord : ndarray, shape (6*(nx+1)*(ny+1),)
    zcorn : ndarray, shape (8*nx*ny*nz,)
    mapaxes : ndarray, optional

    Returns
    -------
    ndarray, shape (nz, ny, nx, 8, 3)
        Corner l = di + 2*dj + 4*dk of each cell.
    """
    nx, ny, nz = dims
    p = np.asarray(coord, dtype=np.float64).reshape((ny + 1, nx + 1, 2, 3))
    z = zcorn_block(np.asarray(zcorn, dtype=np.float64), dims)

    out = np.empty((nz, ny, nx, 8, 3))
    for dk in range(2):
        for dj in range(2):
            for di in range(2):
                l = di + 2 * dj + 4 * dk
                top = p[dj:dj + ny, di:di + nx, 0, :]      # (ny, nx, 3)
                bot = p[dj:dj + ny, di:di + nx, 1, :]
                depth = z[dk::2, dj::2, di::2]              # (nz, ny, nx)
                dz = bot[..., 2] - top[..., 2]
                # Horizontal pillars cannot be interpolated in z; take the top point
                safe = np.where(dz == 0.0, 1.0, dz)
                t = np.where(dz == 0.0, 0.0, (depth - top[None, ..., 2]) / safe[None])
                out[:, :, :, l, 0] = top[None, ..., 0] + t * (bot[..., 0] - top[..., 0])[None]
                out[:, :, :, l, 1] = top[None, ..., 1] + t * (bot[..., 1] - top[..., 1])[None]
                out[:, :, :, l, 2] = depth
    out[..., :2] = apply_mapaxes(out[..., :2], mapaxes)
    return out


def hexahedron_volumes(corners: np.ndarray) -> np.ndarray:
    """
    Volumes of hexahedra given their 8 corners.

    Parameters
    ----------
    corners : ndarray, shape (..., 8, 3)

    Returns
    -------
    ndarray, shape (...)
    """
    faces = corners[..., HEX_FACES, :]              # (..., 6, 4, 3)
    fc = faces.mean(axis=-2, keepdims=True)         # (..., 6, 1, 3)
    ref = fc.mean(axis=-3, keepdims=True)           # (..., 1, 1, 3)
    a = faces
    b = np.roll(faces, -1, axis=-2)
    tet = np.sum((fc - ref) * np.cross(a - ref, b - ref), axis=-1)
    return np.abs(tet).sum(axis=(-1, -2)) / 6.0


def cell_volumes(grid: GridDescriptor) -> np.ndarray:
    """Bulk volume of every cartesian cell, active or not, in row-major order."""
    corners = corner_points(grid.dims, grid.coord, grid.zcorn, grid.mapaxes)
    return hexahedron_volumes(corners).reshape(-1)


def pore_volumes_from_porosity(grid: GridDescriptor, porosity,
                               ntg=None, multpv=None) -> np.ndarray:
    """
    Estimate pore volumes as bulk volume * porosity [* NTG] [* MULTPV].

    All property arrays are per cartesian cell in row-major order.
    """
    bulk = cell_volumes(grid)
    pv = bulk * _cell_property(grid, porosity, "porosity")
    if ntg is not None:
        pv = pv * _cell_property(grid, ntg, "ntg")
    if multpv is not None:
        pv = pv * _cell_property(grid, multpv, "multpv")
    return pv


def _cell_property(grid: GridDescriptor, values, name: str) -> np.ndarray:
    a = np.asarray(values, dtype=np.float64)
    if a.ndim == 0:
        return np.full(grid.num_cells, float(a))
    a = a.reshape(-1)
    if a.size != grid.num_cells:
        raise ContractViolation(
            f"{name} has {a.size} entries, expected {grid.num_cells} for dims {grid.dims}"
        )
    if np.any(a < 0.0):
        raise ContractViolation(f"{name} must be non-negative")
    return a


def compute_geometry(grid: 'UnstructuredGrid') -> Tuple[np.ndarray, np.ndarray]:
    """
    Cell volumes (areas in 2D) and centroids of an unstructured grid.

    Returns
    -------
    volumes : ndarray, shape (nc,)
    centroids : ndarray, shape (nc, d)
    """
    nc = grid.number_of_cells
    d = grid.dimensions
    if nc == 0:
        return np.zeros(0), np.zeros((0, d))

    coords = grid.node_coordinates
    nodepos = grid.face_nodepos
    counts = np.diff(nodepos)
    nf = counts.size

    face_of_entry = np.repeat(np.arange(nf), counts)
    face_centroids = np.zeros((nf, d))
    np.add.at(face_centroids, face_of_entry, coords[grid.face_nodes])
    face_centroids /= counts[:, None]

    # Cell reference point: mean of its face centroids
    cf_counts = np.diff(grid.cell_facepos)
    cell_of_cf = np.repeat(np.arange(nc), cf_counts)
    ref = np.zeros((nc, d))
    np.add.at(ref, cell_of_cf, face_centroids[grid.cell_faces])
    ref /= cf_counts[:, None]

    if d == 2:
        # Faces are edges; triangles (ref, n0, n1)
        f = grid.cell_faces
        p0 = ref[cell_of_cf]
        p1 = coords[grid.face_nodes[nodepos[f]]]
        p2 = coords[grid.face_nodes[nodepos[f] + 1]]
        e1 = p1 - p0
        e2 = p2 - p0
        area = 0.5 * np.abs(e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0])
        vol = np.bincount(cell_of_cf, weights=area, minlength=nc)
        tri_c = (p0 + p1 + p2) / 3.0
        cen = np.stack([
            np.bincount(cell_of_cf, weights=area * tri_c[:, a], minlength=nc) for a in range(d)
        ], axis=1)
    else:
        # Expand every (cell, face) pair into the edges of that face
        f = grid.cell_faces
        n_per = counts[f]
        pair = np.repeat(np.arange(f.size), n_per)
        offs = np.arange(n_per.sum()) - np.repeat(np.cumsum(n_per) - n_per, n_per)
        entry = nodepos[f][pair] + offs
        nxt = entry + 1
        wrap = nxt == nodepos[f][pair] + n_per[pair]
        nxt[wrap] = nodepos[f][pair][wrap]

        cell = cell_of_cf[pair]
        p0 = ref[cell]
        p1 = face_centroids[f[pair]]
        p2 = coords[grid.face_nodes[entry]]
        p3 = coords[grid.face_nodes[nxt]]
        tet = np.abs(np.einsum('ij,ij->i', p1 - p0, np.cross(p2 - p0, p3 - p0))) / 6.0
        vol = np.bincount(cell, weights=tet, minlength=nc)
        tet_c = (p0 + p1 + p2 + p3) / 4.0
        cen = np.stack([
            np.bincount(cell, weights=tet * tet_c[:, a], minlength=nc) for a in range(d)
        ], axis=1)

    with np.errstate(invalid='ignore', divide='ignore'):
        cen = np.where(vol[:, None] > 0.0, cen / vol[:, None], ref)
    return vol, cen
