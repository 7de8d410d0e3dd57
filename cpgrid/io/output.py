"""
Write the outputs requested by an OutputConfig section.
"""

from pathlib import Path
from typing import List

from ..config.schema import OutputConfig
from ..grid.gridfile import write_grid
from ..grid.topology import UnstructuredGrid
from .vtk import write_vtk


def write_outputs(grid: UnstructuredGrid, config: OutputConfig) -> List[str]:
    """
    Save ``grid`` as configured.

    Returns
    -------
    list of str
        Paths of the files written (empty if no output is enabled).
    """
    out_dir = Path(config.directory)
    written = []
    if config.write_grid_file:
        written.append(str(write_grid(grid, out_dir / f"{config.case_name}.grid")))
    if config.write_vtk:
        written.append(write_vtk(out_dir / f"{config.case_name}.vtk", grid))
    return written
