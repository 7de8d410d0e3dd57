"""
VTK Output Writer for Assembled Grids.

Writes an UnstructuredGrid to a legacy VTK ASCII file (.vtk) for inspection
in ParaView or other VTK-compatible viewers.

Supports:
- 3D hexahedral grids (VTK_HEXAHEDRON) and 2D quad grids (VTK_QUAD)
- Cell data: cartesian cell index, cell volume, optional extra scalars
"""

from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
from loguru import logger

from ..grid.geometry import compute_geometry
from ..grid.topology import UnstructuredGrid

VTK_QUAD = 9
VTK_HEXAHEDRON = 12

# Local lattice corner l = di + 2*dj (+ 4*dk) reordered to VTK's cyclic order
_VTK_ORDER = {
    2: np.array([0, 1, 3, 2]),
    3: np.array([0, 1, 3, 2, 4, 5, 7, 6]),
}


def write_vtk(filename: Union[str, Path],
              grid: UnstructuredGrid,
              additional_scalars: Optional[Dict[str, np.ndarray]] = None) -> str:
    """
    Write an assembled grid to a VTK file.

    Parameters
    ----------
    filename : str or Path
        Output filename (will add .vtk extension if not present).
    grid : UnstructuredGrid
        Grid with ``cell_nodes`` (as produced by CornerPointBuilder).
    additional_scalars : dict, optional
        Extra cell fields, name -> array of shape (number_of_cells,).

    Returns
    -------
    str
        Path to the written file.
    """
    grid.check_live()
    if grid.cell_nodes is None:
        raise ValueError("grid has no cell_nodes; only lattice grids can be written")

    path = Path(filename)
    if path.suffix != '.vtk':
        path = path.with_suffix('.vtk')
    path.parent.mkdir(parents=True, exist_ok=True)

    nc = grid.number_of_cells
    d = grid.dimensions
    nn = grid.number_of_nodes
    conn = grid.cell_nodes[:, _VTK_ORDER[d]]
    cell_type = VTK_HEXAHEDRON if d == 3 else VTK_QUAD
    volume, _ = compute_geometry(grid)

    with open(path, 'w') as f:
        f.write("# vtk DataFile Version 3.0\n")
        f.write(f"Corner-point grid {grid.cartdims[0]}x{grid.cartdims[1]}x{grid.cartdims[2]}\n")
        f.write("ASCII\n")
        f.write("DATASET UNSTRUCTURED_GRID\n")

        f.write(f"POINTS {nn} double\n")
        for p in grid.node_coordinates:
            x, y = p[0], p[1]
            z = p[2] if d == 3 else 0.0
            f.write(f"{x:.10e} {y:.10e} {z:.10e}\n")

        n_per = conn.shape[1] if nc else 0
        f.write(f"\nCELLS {nc} {nc * (n_per + 1)}\n")
        for row in conn:
            f.write(f"{row.size} " + " ".join(str(n) for n in row) + "\n")

        f.write(f"\nCELL_TYPES {nc}\n")
        for _ in range(nc):
            f.write(f"{cell_type}\n")

        f.write(f"\nCELL_DATA {nc}\n")
        _write_scalar_field(f, "global_cell", grid.cartesian_index().astype(np.float64))
        _write_scalar_field(f, "volume", volume)

        if additional_scalars:
            for name, data in additional_scalars.items():
                data = np.asarray(data, dtype=np.float64).ravel()
                if data.size != nc:
                    raise ValueError(f"field {name!r} has {data.size} values, expected {nc}")
                _write_scalar_field(f, name, data)

    logger.info(f"Saved VTK file to: {path}")
    return str(path)


def _write_scalar_field(f, name: str, data: np.ndarray) -> None:
    """Write a scalar cell field to VTK file."""
    f.write(f"\nSCALARS {name} double 1\n")
    f.write("LOOKUP_TABLE default\n")
    for v in data:
        f.write(f"{v:.10e}\n")
