"""
Corner-point grid descriptor.

Owned, bounds-checked container for the COORD/ZCORN/ACTNUM/MAPAXES arrays
of an Eclipse-style corner-point grid.

Index Conventions:
    - Cells are numbered row-major: idx = i + nx*(j + ny*k)
    - COORD holds (ny+1)*(nx+1) pillars, each as (x_top, y_top, z_top,
      x_bot, y_bot, z_bot), pillar (i, j) at position i + (nx+1)*j
    - ZCORN is a C-ordered (2*nz, 2*ny, 2*nx) block. Cell (i,j,k) owns
      z[2k+dk, 2j+dj, 2i+di] with dk=0 the top face and dk=1 the bottom
      face. Corner c of a face has di = c % 2, dj = c // 2.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np

from ..constants import (
    MAPAXES_LENGTH,
    cell_count,
    coord_length,
    zcorn_length,
)
from ..errors import ContractViolation, InvalidDimensions

ArrayLike = Union[Sequence[float], np.ndarray]


class GridView(NamedTuple):
    """Read-only view of a descriptor, handed to the topology builder."""

    dims: Tuple[int, int, int]
    coord: np.ndarray               # (6*(nx+1)*(ny+1),) read-only
    zcorn: np.ndarray               # (8*nx*ny*nz,) read-only
    actnum: np.ndarray              # (nx*ny*nz,) or (0,) read-only
    mapaxes: Optional[np.ndarray]   # (6,) read-only or None

    @property
    def num_cells(self) -> int:
        return cell_count(*self.dims)


def _readonly(a: Optional[np.ndarray]) -> Optional[np.ndarray]:
    if a is None:
        return None
    v = a.view()
    v.flags.writeable = False
    return v


def check_dims(nx, ny, nz=1) -> Tuple[int, int, int]:
    """Validate cartesian dimensions, raising InvalidDimensions if any is < 1."""
    dims = []
    for name, n in (("nx", nx), ("ny", ny), ("nz", nz)):
        try:
            integral = not isinstance(n, bool) and int(n) == n
        except (TypeError, ValueError, OverflowError) as e:
            raise InvalidDimensions(f"{name} must be an integer, got {n!r}") from e
        if not integral:
            raise InvalidDimensions(f"{name} must be an integer, got {n!r}")
        if n < 1:
            raise InvalidDimensions(f"{name} must be >= 1, got {n}")
        dims.append(int(n))
    return dims[0], dims[1], dims[2]


def zcorn_block(zcorn: np.ndarray, dims: Tuple[int, int, int]) -> np.ndarray:
    """
    Reshape flat ZCORN into its (2*nz, 2*ny, 2*nx) block.

    The result is a view; writing through it mutates ``zcorn``.
    """
    nx, ny, nz = dims
    return zcorn.reshape((2 * nz, 2 * ny, 2 * nx))


def vertical_inversions(zcorn: np.ndarray, dims: Tuple[int, int, int]) -> int:
    """
    Count positions where depth decreases going down a pillar corner.

    Each (2j+dj, 2i+di) column of the ZCORN block follows one corner of one
    cell column from the top of layer 0 to the bottom of layer nz-1. A
    consistent grid has non-decreasing depths along every such column.
    """
    z = zcorn_block(np.asarray(zcorn), dims)
    return int(np.count_nonzero(np.diff(z, axis=0) < 0.0))


@dataclass
class GridDescriptor:
    """
    Corner-point geometry for one assembly operation.

    Arrays are copied on construction so the descriptor is their single
    owner. Mutable access to ``actnum``/``zcorn`` is lent through
    :meth:`borrow_mut`; the topology builder only ever sees :meth:`view`.

    Example
    -------
    >>> g = GridDescriptor((2, 1, 1), coord, zcorn)
    >>> with g.borrow_mut() as (actnum, zcorn):
    ...     actnum[0] = 0
    """

    dims: Tuple[int, int, int]
    coord: np.ndarray
    zcorn: np.ndarray
    actnum: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int32))
    mapaxes: Optional[np.ndarray] = None
    _borrowed: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self):
        if len(self.dims) != 3:
            raise InvalidDimensions(f"dims must have 3 entries, got {tuple(self.dims)}")
        self.dims = check_dims(*self.dims)
        nx, ny, nz = self.dims

        self.coord = np.array(self.coord, dtype=np.float64).ravel()
        self.zcorn = np.array(self.zcorn, dtype=np.float64).ravel()
        self.actnum = np.array(self.actnum, dtype=np.int32).ravel()

        if self.coord.size != coord_length(nx, ny):
            raise ContractViolation(
                f"coord has {self.coord.size} entries, expected "
                f"{coord_length(nx, ny)} for dims {self.dims}"
            )
        if self.zcorn.size != zcorn_length(nx, ny, nz):
            raise ContractViolation(
                f"zcorn has {self.zcorn.size} entries, expected "
                f"{zcorn_length(nx, ny, nz)} for dims {self.dims}"
            )
        if self.actnum.size not in (0, cell_count(nx, ny, nz)):
            raise ContractViolation(
                f"actnum has {self.actnum.size} entries, expected "
                f"{cell_count(nx, ny, nz)} for dims {self.dims}"
            )
        if self.mapaxes is not None:
            self.mapaxes = np.array(self.mapaxes, dtype=np.float64).ravel()
            if self.mapaxes.size == 0:
                self.mapaxes = None
            elif self.mapaxes.size != MAPAXES_LENGTH:
                raise ContractViolation(
                    f"mapaxes has {self.mapaxes.size} entries, expected {MAPAXES_LENGTH}"
                )

    # ------------------------------------------------------------------
    # Shape helpers
    # ------------------------------------------------------------------

    @property
    def nx(self) -> int:
        return self.dims[0]

    @property
    def ny(self) -> int:
        return self.dims[1]

    @property
    def nz(self) -> int:
        return self.dims[2]

    @property
    def num_cells(self) -> int:
        return cell_count(*self.dims)

    def cell_index(self, i: int, j: int, k: int) -> int:
        """Row-major cell index of (i, j, k)."""
        nx, ny, nz = self.dims
        if not (0 <= i < nx and 0 <= j < ny and 0 <= k < nz):
            raise IndexError(f"cell ({i}, {j}, {k}) outside dims {self.dims}")
        return i + nx * (j + ny * k)

    def zcorn_block(self) -> np.ndarray:
        return zcorn_block(self.zcorn, self.dims)

    def pillars(self) -> np.ndarray:
        """COORD as a (ny+1, nx+1, 2, 3) array of pillar end points."""
        return self.coord.reshape((self.ny + 1, self.nx + 1, 2, 3))

    def cell_zcorn(self, i: int, j: int, k: int) -> np.ndarray:
        """The 8 corner depths of a cell: 4 top corners then 4 bottom corners."""
        self.cell_index(i, j, k)
        z = self.zcorn_block()
        return z[2 * k:2 * k + 2, 2 * j:2 * j + 2, 2 * i:2 * i + 2].reshape(8).copy()

    def is_active(self, idx: int) -> bool:
        return self.actnum.size == 0 or bool(self.actnum[idx])

    @property
    def num_active(self) -> int:
        if self.actnum.size == 0:
            return self.num_cells
        return int(np.count_nonzero(self.actnum))

    def materialize_actnum(self) -> np.ndarray:
        """Replace an empty ACTNUM by an explicit all-active mask."""
        if self.actnum.size == 0:
            self.actnum = np.ones(self.num_cells, dtype=np.int32)
        return self.actnum

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    @contextmanager
    def borrow_mut(self) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        """
        Lend exclusive mutable access to (actnum, zcorn).

        ACTNUM is materialized first so that cells can be deactivated.
        Nested borrows and views taken during the borrow are refused.
        """
        if self._borrowed:
            raise ContractViolation("descriptor arrays are already borrowed")
        self.materialize_actnum()
        self._borrowed = True
        try:
            yield self.actnum, self.zcorn
        finally:
            self._borrowed = False

    def view(self) -> GridView:
        """Read-only view sharing memory with this descriptor."""
        if self._borrowed:
            raise ContractViolation("cannot view descriptor while it is mutably borrowed")
        return GridView(
            dims=self.dims,
            coord=_readonly(self.coord),
            zcorn=_readonly(self.zcorn),
            actnum=_readonly(self.actnum),
            mapaxes=_readonly(self.mapaxes),
        )

    def copy(self) -> "GridDescriptor":
        return GridDescriptor(
            dims=self.dims,
            coord=self.coord,
            zcorn=self.zcorn,
            actnum=self.actnum,
            mapaxes=self.mapaxes,
        )

    def vertical_inversions(self) -> int:
        return vertical_inversions(self.zcorn, self.dims)


def box_descriptor(
    nx: int, ny: int, nz: int,
    dx: float = 1.0, dy: float = 1.0,
    tops: Optional[ArrayLike] = None,
    thickness: Union[float, ArrayLike] = 1.0,
    actnum: Optional[ArrayLike] = None,
) -> GridDescriptor:
    """
    Build a descriptor for a box of vertical pillars.

    Parameters
    ----------
    nx, ny, nz : int
        Number of cells.
    dx, dy : float
        Horizontal cell size.
    tops : array_like, optional
        Depth of the top of layer 0, scalar or shape (ny, nx). Default 0.
    thickness : float or array_like
        Layer thickness, scalar, shape (nz,) or shape (nz, ny, nx).
    actnum : array_like, optional
        Active-cell flags, length nx*ny*nz.
    """
    nx, ny, nz = check_dims(nx, ny, nz)

    xs = np.arange(nx + 1) * dx
    ys = np.arange(ny + 1) * dy
    X, Y = np.meshgrid(xs, ys, indexing='xy')   # (ny+1, nx+1)

    h = np.broadcast_to(
        np.asarray(thickness, dtype=np.float64).reshape(
            (-1, 1, 1) if np.ndim(thickness) == 1 else np.shape(thickness)
        ),
        (nz, ny, nx),
    )
    top0 = np.broadcast_to(np.asarray(0.0 if tops is None else tops, dtype=np.float64), (ny, nx))
    # Each layer top is the bottom above it, bit for bit
    layer_bots = top0[None, :, :] + np.cumsum(h, axis=0)
    layer_tops = np.concatenate([top0[None, :, :], layer_bots[:-1]], axis=0)
    z_min = float(np.min(layer_tops))
    z_max = float(np.max(layer_bots))

    coord = np.zeros((ny + 1, nx + 1, 2, 3))
    coord[:, :, 0, 0] = X
    coord[:, :, 0, 1] = Y
    coord[:, :, 0, 2] = z_min
    coord[:, :, 1, 0] = X
    coord[:, :, 1, 1] = Y
    coord[:, :, 1, 2] = z_max

    z = np.zeros((2 * nz, 2 * ny, 2 * nx))
    for dj in range(2):
        for di in range(2):
            z[0::2, dj::2, di::2] = layer_tops
            z[1::2, dj::2, di::2] = layer_bots

    return GridDescriptor(
        dims=(nx, ny, nz),
        coord=coord.ravel(),
        zcorn=z.ravel(),
        actnum=np.zeros(0, dtype=np.int32) if actnum is None else actnum,
    )
