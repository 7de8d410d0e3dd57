"""
YAML configuration loader with validation.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Union
from dataclasses import fields, is_dataclass

from .schema import (
    AssemblyConfig, MinpvConfig, MinpvMode, PinchConfig,
    LoggingConfig, OutputConfig,
    no_minpv_preset, minpv_preset, pinch_preset,
)

_PRESETS = {
    'none': no_minpv_preset,
    'minpv': minpv_preset,
    'pinch': pinch_preset,
}


def _merge_dict(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def _coerce_type(value, field_type):
    """Coerce value to the expected field type."""
    # Annotations may be strings or real types depending on how the schema was defined
    name = field_type if isinstance(field_type, str) else getattr(field_type, '__name__', '')
    # Handle string representations of numbers (e.g., "1e-3")
    if name == 'float' and isinstance(value, (str, int)) and not isinstance(value, bool):
        try:
            return float(value)
        except ValueError:
            return value
    if name == 'int' and isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return value
    if name == 'bool' and isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    if name == 'MinpvMode':
        return MinpvMode.parse(value)
    return value


def _dict_to_dataclass(cls, data: dict):
    """Convert a flat dictionary to a dataclass instance."""
    if not is_dataclass(cls):
        return data

    field_types = {f.name: f.type for f in fields(cls)}
    kwargs = {}

    for key, value in data.items():
        if key not in field_types:
            continue  # Skip unknown fields
        kwargs[key] = _coerce_type(value, field_types[key])

    return cls(**kwargs)


def load_yaml(path: Union[str, Path]) -> AssemblyConfig:
    """
    Load grid assembly configuration from a YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        AssemblyConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ContractViolation: If a threshold is negative
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f)

    if data is None:
        data = {}

    return from_dict(data)


def from_dict(data: Dict[str, Any]) -> AssemblyConfig:
    """
    Create AssemblyConfig from a dictionary.

    Handles nested structures and applies defaults for missing values.
    """
    data = dict(data)

    # Check for preset
    preset = data.pop('preset', None)
    if preset:
        factory = _PRESETS.get(preset)
        if factory is None:
            raise ValueError(f"Unknown preset: {preset!r}")
        data = _merge_dict(factory().to_dict(), data)

    sections = {
        'minpv': MinpvConfig,
        'pinch': PinchConfig,
        'logging': LoggingConfig,
        'output': OutputConfig,
    }
    config_dict = {}
    for name, cls in sections.items():
        if name in data and data[name] is not None:
            config_dict[name] = _dict_to_dataclass(cls, data[name])

    return AssemblyConfig(**config_dict).validate()


def save_yaml(config: AssemblyConfig, path: Union[str, Path]) -> None:
    """Save configuration to a YAML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'w') as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
