"""
Minimum Pore Volume (MINPV) Processing for Corner-Point Grids.

Cells whose pore volume is below a threshold are deactivated and collapsed
to zero thickness. Collapsed cells stay in the (i, j, k) index space so the
row-major numbering the topology builder expects is unchanged; only their
ZCORN depths are rewritten.

Collapse Policies:
- Standard (default): the cell becomes a slab at its own top. The gap left
  below is closed by moving the top of the next cell down the column up to
  that slab, flattening any zero-thickness inactive cells in between.
- Alternate: the cell is merged into the nearest active neighbour directly
  above or below, whichever has the smaller mean vertical gap over the 4
  pillar corners (ties go below). On a grid without vertical gaps both
  gaps are 0, so every interior cell is merged into the cell below.

Both policies keep depths non-decreasing along every pillar corner when the
input already is. Columns are independent; cells are visited top to bottom.

Design: flat arrays and @njit kernels over the (2*nz, 2*ny, 2*nx) ZCORN
block, same layout as GridDescriptor.
"""

import numpy as np
from numba import njit
from loguru import logger

from .descriptor import vertical_inversions


@njit(cache=True)
def _max_thickness(z: np.ndarray, i: int, j: int, k: int) -> float:
    """Largest bottom-minus-top depth over the 4 pillar corners of a cell."""
    h = -np.inf
    for dj in range(2):
        for di in range(2):
            d = z[2 * k + 1, 2 * j + dj, 2 * i + di] - z[2 * k, 2 * j + dj, 2 * i + di]
            if d > h:
                h = d
    return h


@njit(cache=True)
def _collapse_to_top(z: np.ndarray, i: int, j: int, k: int) -> None:
    """Move the 4 bottom corners of a cell onto its 4 top corners."""
    for dj in range(2):
        for di in range(2):
            z[2 * k + 1, 2 * j + dj, 2 * i + di] = z[2 * k, 2 * j + dj, 2 * i + di]


@njit(cache=True)
def _collapse_to_bottom(z: np.ndarray, i: int, j: int, k: int) -> None:
    """Move the 4 top corners of a cell onto its 4 bottom corners."""
    for dj in range(2):
        for di in range(2):
            z[2 * k, 2 * j + dj, 2 * i + di] = z[2 * k + 1, 2 * j + dj, 2 * i + di]


@njit(cache=True)
def _process_standard(z: np.ndarray, actnum: np.ndarray, pv: np.ndarray,
                      threshold: float, z_tolerance: float) -> int:
    """
    Collapse cells below threshold onto their own top face.

    Parameters
    ----------
    z : ndarray, shape (2*nz, 2*ny, 2*nx)
        ZCORN block, modified in place.
    actnum : ndarray, shape (nx*ny*nz,)
        Active flags, modified in place.
    pv : ndarray, shape (nx*ny*nz,)
        Pore volumes.
    threshold : float
        Cells with pv < threshold are collapsed.
    z_tolerance : float
        Inactive cells at most this thick are flattened onto the collapse
        plane when closing the gap below.

    Returns
    -------
    int
        Number of cells deactivated.
    """
    nz = z.shape[0] // 2
    ny = z.shape[1] // 2
    nx = z.shape[2] // 2
    modified = 0

    for k in range(nz):
        for j in range(ny):
            for i in range(nx):
                c = i + nx * (j + ny * k)
                if actnum[c] == 0 or not (pv[c] < threshold):
                    continue

                actnum[c] = 0
                modified += 1
                _collapse_to_top(z, i, j, k)

                # Walk down past thin inactive cells, then close the gap
                kb = k + 1
                while kb < nz:
                    cb = i + nx * (j + ny * kb)
                    if actnum[cb] != 0 or _max_thickness(z, i, j, kb) > z_tolerance:
                        break
                    for dj in range(2):
                        for di in range(2):
                            t = z[2 * k, 2 * j + dj, 2 * i + di]
                            z[2 * kb, 2 * j + dj, 2 * i + di] = t
                            z[2 * kb + 1, 2 * j + dj, 2 * i + di] = t
                    kb += 1

                if kb < nz:
                    for dj in range(2):
                        for di in range(2):
                            z[2 * kb, 2 * j + dj, 2 * i + di] = z[2 * k, 2 * j + dj, 2 * i + di]

    return modified


@njit(cache=True)
def _process_nearest(z: np.ndarray, actnum: np.ndarray, pv: np.ndarray,
                     threshold: float) -> int:
    """
    Merge cells below threshold into the nearest active vertical neighbour.

    Proximity is the mean over the 4 pillar corners of the gap between the
    cell face and the facing neighbour face. Only the direct neighbours
    k-1 and k+1 are candidates; ties go to the cell below, which is every
    interior cell when the column has no gaps.

    Returns
    -------
    int
        Number of cells deactivated.
    """
    nz = z.shape[0] // 2
    ny = z.shape[1] // 2
    nx = z.shape[2] // 2
    layer = nx * ny
    modified = 0

    for k in range(nz):
        for j in range(ny):
            for i in range(nx):
                c = i + nx * (j + ny * k)
                if actnum[c] == 0 or not (pv[c] < threshold):
                    continue

                actnum[c] = 0
                modified += 1

                has_above = k > 0 and actnum[c - layer] != 0
                has_below = k < nz - 1 and actnum[c + layer] != 0

                merge_up = False
                if has_above and has_below:
                    gap_above = 0.0
                    gap_below = 0.0
                    for dj in range(2):
                        for di in range(2):
                            jj = 2 * j + dj
                            ii = 2 * i + di
                            gap_above += z[2 * k, jj, ii] - z[2 * k - 1, jj, ii]
                            gap_below += z[2 * k + 2, jj, ii] - z[2 * k + 1, jj, ii]
                    merge_up = gap_above < gap_below
                elif has_above:
                    merge_up = True

                if merge_up:
                    _collapse_to_bottom(z, i, j, k)
                    for dj in range(2):
                        for di in range(2):
                            z[2 * k - 1, 2 * j + dj, 2 * i + di] = z[2 * k + 1, 2 * j + dj, 2 * i + di]
                else:
                    _collapse_to_top(z, i, j, k)
                    if has_below:
                        for dj in range(2):
                            for di in range(2):
                                z[2 * k + 2, 2 * j + dj, 2 * i + di] = z[2 * k, 2 * j + dj, 2 * i + di]

    return modified


class MinpvProcessor:
    """
    Deactivate and collapse cells with pore volume below a threshold.

    Example
    -------
    >>> mp = MinpvProcessor(nx, ny, nz)
    >>> n = mp.process(pore_volumes, 1.0e-3, actnum, True, zcorn)
    """

    def __init__(self, nx: int, ny: int, nz: int):
        self.dims = (int(nx), int(ny), int(nz))

    def process(self, pore_volumes, threshold: float, actnum,
                use_standard_mode: bool, zcorn, z_tolerance: float = 0.0) -> int:
        """
        Collapse all active cells with pore volume below ``threshold``.

        Parameters
        ----------
        pore_volumes : array_like, shape (nx*ny*nz,)
            Pore volume per cell.
        threshold : float
            Minimum pore volume for a cell to stay active.
        actnum : ndarray or list, shape (nx*ny*nz,)
            Active flags, updated in place.
        use_standard_mode : bool
            True collapses onto the cell top and fills the gap below;
            False merges into the nearest active neighbour.
        zcorn : ndarray or list, shape (8*nx*ny*nz,)
            Corner depths, updated in place.
        z_tolerance : float
            Thickness at or below which inactive cells under a collapsed
            cell are flattened together with it (standard mode only).

        Returns
        -------
        int
            Number of cells flipped from active to inactive.

        Notes
        -----
        Lengths and signs are not checked here; GridManager validates its
        inputs before calling.
        """
        nx, ny, nz = self.dims
        pv = np.ascontiguousarray(pore_volumes, dtype=np.float64)
        act = np.ascontiguousarray(actnum, dtype=np.int32)
        zc = np.ascontiguousarray(zcorn, dtype=np.float64)
        z = zc.reshape((2 * nz, 2 * ny, 2 * nx))

        inversions_before = vertical_inversions(zc, self.dims)

        if use_standard_mode:
            modified = _process_standard(z, act, pv, float(threshold), float(z_tolerance))
        else:
            modified = _process_nearest(z, act, pv, float(threshold))
        modified = int(modified)

        # Copy back when the caller's buffers could not be used directly
        if act is not actnum:
            actnum[:] = act
        if zc is not zcorn:
            zcorn[:] = zc

        inversions_after = vertical_inversions(zc, self.dims)
        if inversions_after > inversions_before:
            logger.warning(
                f"MINPV collapse introduced {inversions_after - inversions_before} "
                f"vertical inversions"
            )
        elif inversions_before:
            logger.debug(f"Input ZCORN already has {inversions_before} vertical inversions")

        policy = "standard" if use_standard_mode else "nearest-neighbour"
        logger.info(
            f"MINPV ({policy}): {modified} of {nx * ny * nz} cells below "
            f"threshold {threshold:.4e} collapsed"
        )
        return modified
