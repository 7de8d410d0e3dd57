"""
I/O module for grid assembly.

Provides VTK export, configured output writing and diagnostic plots.
"""

from .vtk import write_vtk
from .output import write_outputs
from .plotting import plot_row_section

__all__ = ['write_vtk', 'write_outputs', 'plot_row_section']
