"""
cpgrid: corner-point grid assembly with minimum pore volume processing.
"""

from .errors import (
    GridError,
    InvalidDimensions,
    FileReadFailed,
    ConstructionFailed,
    ContractViolation,
)
from .config import AssemblyConfig, MinpvConfig, MinpvMode, PinchConfig
from .grid import (
    GridDescriptor,
    GridManager,
    InputGrid,
    MinpvProcessor,
    UnstructuredGrid,
)

from .utils import setup_logging

__version__ = "0.1.0"

__all__ = [
    'GridError',
    'InvalidDimensions',
    'FileReadFailed',
    'ConstructionFailed',
    'ContractViolation',
    'AssemblyConfig',
    'MinpvConfig',
    'MinpvMode',
    'PinchConfig',
    'GridDescriptor',
    'GridManager',
    'InputGrid',
    'MinpvProcessor',
    'UnstructuredGrid',
    'setup_logging',
]
