"""
Grid manager: assembles and owns an UnstructuredGrid.

GridManager is the single owner of the mesh handle it creates, whichever
construction path was used (corner-point geometry, cartesian, hexahedral
or grid file). The handle is released exactly once, on close(), on leaving
a ``with`` block, or when the manager is garbage collected.

Corner-point assembly:
    1. Validate pore volumes, MINPV threshold and merge tolerance
    2. If pore volumes are given and MINPV is enabled, lend ACTNUM/ZCORN to
       MinpvProcessor, which collapses cells in place
    3. Hand a read-only view of the arrays to the topology builder
    4. If any cell was collapsed, attach a copy of the new ZCORN to the grid
"""

import weakref
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
from loguru import logger

from ..config.schema import AssemblyConfig, MinpvConfig, MinpvMode
from ..errors import ConstructionFailed, ContractViolation, FileReadFailed, InvalidDimensions
from .descriptor import GridDescriptor, check_dims
from .gridfile import read_grid, write_grid
from .minpv import MinpvProcessor
from .source import GeometrySource
from .topology import CornerPointBuilder, TopologyBuilder, UnstructuredGrid, attach_zcorn_copy


def _release(builder: TopologyBuilder, grid: UnstructuredGrid) -> None:
    builder.destroy(grid)


def _check_pore_volumes(pore_volumes, num_cells: int) -> np.ndarray:
    pv = np.asarray(pore_volumes if pore_volumes is not None else (), dtype=np.float64).ravel()
    if pv.size not in (0, num_cells):
        raise ContractViolation(
            f"pore volume vector has {pv.size} entries, expected 0 or {num_cells}"
        )
    if pv.size and not np.all(pv >= 0.0):
        raise ContractViolation("pore volumes must be non-negative")
    return pv


class GridManager:
    """
    Owner of an assembled grid.

    Example
    -------
    >>> with GridManager.from_geometry(input_grid, pore_volumes) as gm:
    ...     grid = gm.grid
    ...     print(grid.number_of_cells, gm.cells_modified)
    """

    def __init__(self, grid: UnstructuredGrid, builder: Optional[TopologyBuilder] = None,
                 cells_modified: int = 0):
        self._builder = builder if builder is not None else CornerPointBuilder()
        self._grid = grid
        self._cells_modified = int(cells_modified)
        self._finalizer = weakref.finalize(self, _release, self._builder, grid)

    # ------------------------------------------------------------------
    # Corner-point construction
    # ------------------------------------------------------------------

    @classmethod
    def assemble(cls, geometry: GridDescriptor,
                 pore_volumes: Sequence[float] = (),
                 minpv_config: Optional[MinpvConfig] = None,
                 pinch_tolerance: float = 0.0,
                 builder: Optional[TopologyBuilder] = None) -> "GridManager":
        """
        Assemble a corner-point grid, collapsing low pore volume cells first.

        Parameters
        ----------
        geometry : GridDescriptor
            Corner-point arrays. ACTNUM and ZCORN are modified in place when
            cells are collapsed.
        pore_volumes : array_like
            Empty, or one non-negative value per cartesian cell.
        minpv_config : MinpvConfig, optional
            Threshold and policy. Defaults to MINPV switched off.
        pinch_tolerance : float
            Vertical merge tolerance; 0 disables merging.
        builder : TopologyBuilder, optional
            Geometric kernel. Defaults to CornerPointBuilder.

        Returns
        -------
        GridManager
            Owner of the new grid.

        Raises
        ------
        ContractViolation
            Bad pore volume vector, negative threshold or tolerance.
        ConstructionFailed
            The builder could not produce a grid.
        """
        minpv_config = minpv_config if minpv_config is not None else MinpvConfig()
        builder = builder if builder is not None else CornerPointBuilder()

        pv = _check_pore_volumes(pore_volumes, geometry.num_cells)
        minpv_config.validate()
        if not pinch_tolerance >= 0.0:
            raise ContractViolation(f"pinch tolerance must be >= 0, got {pinch_tolerance}")

        logger.info(f"Assembling corner-point grid: {geometry.nx} x {geometry.ny} x {geometry.nz} cells")

        cells_modified = 0
        if pv.size and minpv_config.enabled:
            if minpv_config.mode == MinpvMode.OPMFIL:
                logger.debug("Legacy MINPV mode OPMFIL handled as PROCESS")
            mp = MinpvProcessor(*geometry.dims)
            with geometry.borrow_mut() as (actnum, zcorn):
                cells_modified = mp.process(
                    pv,
                    minpv_config.threshold,
                    actnum,
                    minpv_config.use_standard_mode,
                    zcorn,
                    z_tolerance=pinch_tolerance,
                )

        grid = builder.create_grid_cornerpoint(geometry.view(), pinch_tolerance)
        if grid is None:
            logger.error(f"Topology builder rejected grid with dims {geometry.dims}")
            raise ConstructionFailed("Failed to construct grid.")

        if cells_modified > 0:
            attach_zcorn_copy(grid, geometry.zcorn)

        logger.info(
            f"Grid assembled: {grid.number_of_cells} cells, {grid.number_of_faces} faces, "
            f"{grid.number_of_nodes} nodes"
        )
        return cls(grid, builder, cells_modified)

    @classmethod
    def from_geometry(cls, source: GeometrySource,
                      pore_volumes: Sequence[float] = (),
                      builder: Optional[TopologyBuilder] = None) -> "GridManager":
        """Construct a corner-point grid from a geometry source."""
        geometry = GridDescriptor(
            dims=tuple(source.dims),
            coord=source.export_coord(),
            zcorn=source.export_zcorn(),
            actnum=source.export_actnum(),
            mapaxes=source.export_mapaxes(),
        )
        minpv_config = MinpvConfig(
            threshold=source.minpv_value,
            mode=MinpvMode.parse(source.minpv_mode),
            # Only the standard policy is wired to input decks
            use_standard_mode=True,
        )
        z_tolerance = source.pinch_threshold_thickness if source.pinch_active else 0.0
        return cls.assemble(geometry, pore_volumes, minpv_config, z_tolerance, builder)

    @classmethod
    def from_config(cls, geometry: GridDescriptor, config: AssemblyConfig,
                    pore_volumes: Sequence[float] = (),
                    builder: Optional[TopologyBuilder] = None) -> "GridManager":
        """Construct a corner-point grid with settings from an AssemblyConfig."""
        config.validate()
        return cls.assemble(geometry, pore_volumes, config.minpv, config.pinch.tolerance, builder)

    # ------------------------------------------------------------------
    # Structured and file construction
    # ------------------------------------------------------------------

    @classmethod
    def _structured(cls, grid: Optional[UnstructuredGrid], builder: TopologyBuilder) -> "GridManager":
        if grid is None:
            raise ConstructionFailed("Failed to construct grid.")
        return cls(grid, builder)

    @classmethod
    def cartesian_2d(cls, nx: int, ny: int, dx: float = 1.0, dy: float = 1.0,
                     builder: Optional[TopologyBuilder] = None) -> "GridManager":
        """2D cartesian grid of nx x ny cells of size dx x dy."""
        nx, ny, _ = check_dims(nx, ny)
        _check_cell_size(dx, dy)
        builder = builder if builder is not None else CornerPointBuilder()
        return cls._structured(builder.create_grid_cart2d(nx, ny, dx, dy), builder)

    @classmethod
    def cartesian_3d(cls, nx: int, ny: int, nz: int,
                     builder: Optional[TopologyBuilder] = None) -> "GridManager":
        """3D cartesian grid of unit cells."""
        nx, ny, nz = check_dims(nx, ny, nz)
        builder = builder if builder is not None else CornerPointBuilder()
        return cls._structured(builder.create_grid_cart3d(nx, ny, nz), builder)

    @classmethod
    def hexahedral_3d(cls, nx: int, ny: int, nz: int,
                      dx: float, dy: float, dz: float,
                      builder: Optional[TopologyBuilder] = None) -> "GridManager":
        """3D cartesian grid of cells of size [dx, dy, dz]."""
        nx, ny, nz = check_dims(nx, ny, nz)
        _check_cell_size(dx, dy, dz)
        builder = builder if builder is not None else CornerPointBuilder()
        return cls._structured(builder.create_grid_hexa3d(nx, ny, nz, dx, dy, dz), builder)

    @classmethod
    def from_file(cls, filename: Union[str, Path],
                  builder: Optional[TopologyBuilder] = None) -> "GridManager":
        """Read a grid written by :meth:`save`."""
        grid = read_grid(filename)
        if grid is None:
            raise FileReadFailed(f"Failed to read grid from file {filename}")
        logger.info(f"Grid loaded from {filename}: {grid.number_of_cells} cells")
        return cls(grid, builder)

    # ------------------------------------------------------------------
    # Access and ownership
    # ------------------------------------------------------------------

    @property
    def grid(self) -> UnstructuredGrid:
        """The managed grid. Raises ContractViolation after close()."""
        if not self._finalizer.alive:
            raise ContractViolation("grid has been released")
        return self._grid

    def c_grid(self) -> UnstructuredGrid:
        """Alias of :attr:`grid`."""
        return self.grid

    @property
    def cells_modified(self) -> int:
        """Number of cells deactivated by MINPV during assembly."""
        return self._cells_modified

    @property
    def released(self) -> bool:
        return not self._finalizer.alive

    def close(self) -> None:
        """Release the grid. Safe to call more than once."""
        self._finalizer()

    def save(self, filename: Union[str, Path]) -> Path:
        """Write the grid to a file readable by :meth:`from_file`."""
        return write_grid(self.grid, filename)

    def __enter__(self) -> "GridManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _check_cell_size(*sizes: float) -> None:
    for s in sizes:
        try:
            ok = not isinstance(s, bool) and bool(np.isfinite(s)) and s > 0.0
        except TypeError as e:
            raise InvalidDimensions(f"cell sizes must be positive numbers, got {sizes}") from e
        if not ok:
            raise InvalidDimensions(f"cell sizes must be positive and finite, got {sizes}")
