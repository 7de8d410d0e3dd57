"""
Visualization utilities for corner-point grids.

This module provides a cross-section plot of corner depths, used to check
the effect of MINPV collapsing on a row of cells.
"""

from pathlib import Path
from typing import Optional, Union

import numpy as np

from ..grid.descriptor import GridDescriptor

# Lazy import matplotlib to avoid issues when not installed
_plt = None


def _ensure_matplotlib():
    """Ensure matplotlib is available and configured."""
    global _plt
    if _plt is None:
        import matplotlib
        matplotlib.use('Agg')  # Non-interactive backend
        import matplotlib.pyplot as plt
        _plt = plt
    return _plt


def _draw_section(ax, grid: GridDescriptor, j: int, title: str) -> None:
    from matplotlib.collections import PolyCollection

    z = grid.zcorn_block()
    polys = []
    colors = []
    for k in range(grid.nz):
        for i in range(grid.nx):
            polys.append([
                (i, z[2 * k, 2 * j, 2 * i]),
                (i + 1, z[2 * k, 2 * j, 2 * i + 1]),
                (i + 1, z[2 * k + 1, 2 * j, 2 * i + 1]),
                (i, z[2 * k + 1, 2 * j, 2 * i]),
            ])
            colors.append('tab:blue' if grid.is_active(grid.cell_index(i, j, k)) else 'lightgray')

    ax.add_collection(PolyCollection(polys, facecolors=colors, edgecolors='k', linewidths=0.5))
    ax.set_xlim(0, grid.nx)
    ax.set_ylim(float(z[:, 2 * j:2 * j + 2, :].max()), float(z[:, 2 * j:2 * j + 2, :].min()))
    ax.set_xlabel('i')
    ax.set_ylabel('depth')
    ax.set_title(title)


def plot_row_section(before: GridDescriptor, after: GridDescriptor,
                     output_dir: Union[str, Path], j: int = 0,
                     case_name: str = "minpv") -> str:
    """
    Plot corner depths along row j before and after MINPV processing.

    Active cells are blue, inactive cells grey. Depth increases downwards.

    Parameters
    ----------
    before, after : GridDescriptor
        Geometry before and after collapsing (same dims).
    output_dir : str or Path
        Output directory for the PNG file.
    j : int
        Row index.
    case_name : str
        Base name for the output file.

    Returns
    -------
    output_path : str
        Path to saved PNG file.
    """
    if before.dims != after.dims:
        raise ValueError(f"dims differ: {before.dims} vs {after.dims}")
    if not 0 <= j < before.ny:
        raise IndexError(f"row {j} outside 0..{before.ny - 1}")

    plt = _ensure_matplotlib()

    fig, axes = plt.subplots(1, 2, figsize=(14, 5), sharey=True)
    _draw_section(axes[0], before, j, f"Before MINPV (j={j})")
    _draw_section(axes[1], after, j, f"After MINPV (j={j})")
    plt.tight_layout()

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    output_path = out / f"{case_name}_row{j}.png"
    plt.savefig(output_path, dpi=100)
    plt.close(fig)

    return str(output_path)
