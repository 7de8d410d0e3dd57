"""
Corner-point grid processing module.

This module provides tools for:
- Holding and validating corner-point geometry (COORD/ZCORN/ACTNUM/MAPAXES)
- Collapsing cells below a minimum pore volume (MINPV)
- Building unstructured cell/face/node topology from corner points
- Assembling and owning grids through GridManager
- Reading and writing grid files
"""

from ..errors import (
    GridError,
    InvalidDimensions,
    FileReadFailed,
    ConstructionFailed,
    ContractViolation,
)

from .descriptor import (
    GridDescriptor,
    GridView,
    box_descriptor,
    check_dims,
    vertical_inversions,
    zcorn_block,
)

from .minpv import MinpvProcessor

from .geometry import (
    corner_points,
    cell_volumes,
    compute_geometry,
    pore_volumes_from_porosity,
)

from .topology import (
    UnstructuredGrid,
    TopologyBuilder,
    CornerPointBuilder,
    attach_zcorn_copy,
)

from .gridfile import read_grid, write_grid

from .source import GeometrySource, InputGrid

from .manager import GridManager

__all__ = [
    # Errors
    'GridError',
    'InvalidDimensions',
    'FileReadFailed',
    'ConstructionFailed',
    'ContractViolation',
    # Descriptor
    'GridDescriptor',
    'GridView',
    'box_descriptor',
    'check_dims',
    'vertical_inversions',
    'zcorn_block',
    # MINPV
    'MinpvProcessor',
    # Geometry
    'corner_points',
    'cell_volumes',
    'compute_geometry',
    'pore_volumes_from_porosity',
    # Topology
    'UnstructuredGrid',
    'TopologyBuilder',
    'CornerPointBuilder',
    'attach_zcorn_copy',
    # Grid files
    'read_grid',
    'write_grid',
    # Sources
    'GeometrySource',
    'InputGrid',
    # Manager
    'GridManager',
]
