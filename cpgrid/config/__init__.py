"""
Configuration module for grid assembly.

Provides YAML-based configuration with dataclass schema.
"""

from .schema import (
    AssemblyConfig,
    MinpvConfig,
    MinpvMode,
    PinchConfig,
    LoggingConfig,
    OutputConfig,
    no_minpv_preset,
    minpv_preset,
    pinch_preset,
)

from .loader import (
    load_yaml,
    from_dict,
    save_yaml,
)

__all__ = [
    # Schema classes
    'AssemblyConfig',
    'MinpvConfig',
    'MinpvMode',
    'PinchConfig',
    'LoggingConfig',
    'OutputConfig',
    # Presets
    'no_minpv_preset',
    'minpv_preset',
    'pinch_preset',
    # Loader functions
    'load_yaml',
    'from_dict',
    'save_yaml',
]
