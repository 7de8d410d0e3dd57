"""
Configuration schema for corner-point grid assembly.

Dataclass-based configuration that can be loaded from YAML or constructed programmatically.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum

from ..errors import ContractViolation


class MinpvMode(Enum):
    """How cells below the MINPV threshold are handled."""

    INACTIVE = "inactive"   # MINPV processing switched off
    PROCESS = "process"     # Deactivate and collapse (Eclipse standard)
    OPMFIL = "opmfil"       # Legacy alternate mode, accepted for compatibility

    @classmethod
    def parse(cls, value) -> "MinpvMode":
        """Accept enum members, values or names in any case ("EclSTD" maps to PROCESS)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        aliases = {"eclstd": cls.PROCESS, "ecl_std": cls.PROCESS, "off": cls.INACTIVE}
        if text in aliases:
            return aliases[text]
        for member in cls:
            if text in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown MINPV mode: {value!r}")


@dataclass
class MinpvConfig:
    """Minimum pore volume configuration."""

    threshold: float = 0.0              # Cells with pore volume below this are collapsed
    mode: MinpvMode = MinpvMode.INACTIVE
    use_standard_mode: bool = True      # False: merge into nearest active neighbour

    def __post_init__(self):
        self.mode = self._parse_mode(self.mode)

    @staticmethod
    def _parse_mode(value) -> MinpvMode:
        try:
            return MinpvMode.parse(value)
        except ValueError as e:
            raise ContractViolation(str(e)) from e

    @property
    def enabled(self) -> bool:
        return self.mode != MinpvMode.INACTIVE

    def validate(self) -> None:
        self.mode = self._parse_mode(self.mode)
        if not self.threshold >= 0.0:
            raise ContractViolation(f"MINPV threshold must be >= 0, got {self.threshold}")


@dataclass
class PinchConfig:
    """Vertical merging of thin cells (PINCH)."""

    active: bool = False
    threshold_thickness: float = 0.001  # Gap treated as zero thickness

    @property
    def tolerance(self) -> float:
        """Merge tolerance handed to the topology builder (0 disables merging)."""
        return self.threshold_thickness if self.active else 0.0

    def validate(self) -> None:
        if not self.threshold_thickness >= 0.0:
            raise ContractViolation(
                f"PINCH threshold thickness must be >= 0, got {self.threshold_thickness}"
            )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    show_time: bool = True


@dataclass
class OutputConfig:
    """Output configuration."""

    directory: str = "output/grid"
    case_name: str = "grid"
    write_vtk: bool = False
    write_grid_file: bool = False


@dataclass
class AssemblyConfig:
    """Complete grid assembly configuration."""

    minpv: MinpvConfig = field(default_factory=MinpvConfig)
    pinch: PinchConfig = field(default_factory=PinchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def validate(self) -> "AssemblyConfig":
        self.minpv.validate()
        self.pinch.validate()
        return self

    def to_dict(self) -> dict:
        """Convert to nested dictionary (enums as their string values)."""
        d = asdict(self)
        d['minpv']['mode'] = self.minpv.mode.value
        return d


# Preset configurations
def no_minpv_preset() -> AssemblyConfig:
    """Plain corner-point assembly, no MINPV, no pinch."""
    return AssemblyConfig()


def minpv_preset(threshold: float = 1.0e-6) -> AssemblyConfig:
    """MINPV collapsing with the standard policy."""
    return AssemblyConfig(
        minpv=MinpvConfig(threshold=threshold, mode=MinpvMode.PROCESS),
    )


def pinch_preset(thickness: float = 0.001, threshold: float = 1.0e-6) -> AssemblyConfig:
    """MINPV collapsing plus vertical merging of thin layers."""
    return AssemblyConfig(
        minpv=MinpvConfig(threshold=threshold, mode=MinpvMode.PROCESS),
        pinch=PinchConfig(active=True, threshold_thickness=thickness),
    )
