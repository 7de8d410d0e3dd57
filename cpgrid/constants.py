"""
Global constants for corner-point grid handling.

This module defines constants used throughout the codebase to ensure
consistency in array lengths and indexing of the COORD/ZCORN/ACTNUM
keyword arrays.
"""

# Two 3D points (top and bottom) per pillar
COORD_PER_PILLAR = 6

# 4 top-face + 4 bottom-face depths per cell
ZCORN_PER_CELL = 8
CORNERS_PER_FACE = 4

# MAPAXES: (x1, y1) on the y-axis, (x0, y0) origin, (x2, y2) on the x-axis
MAPAXES_LENGTH = 6

# Neighbour value for boundary faces in face_cells
NO_CELL = -1


def cell_count(nx: int, ny: int, nz: int) -> int:
    """Number of cells in a (nx, ny, nz) cartesian box."""
    return nx * ny * nz


def coord_length(nx: int, ny: int) -> int:
    """
    Expected length of the COORD array.

    Parameters
    ----------
    nx, ny : int
        Number of cells in I and J directions.

    Returns
    -------
    int
        6 * (nx + 1) * (ny + 1)
    """
    return COORD_PER_PILLAR * (nx + 1) * (ny + 1)


def zcorn_length(nx: int, ny: int, nz: int) -> int:
    """Expected length of the ZCORN array: 8 * nx * ny * nz."""
    return ZCORN_PER_CELL * nx * ny * nz
