"""
Geometry sources for corner-point grid assembly.

A geometry source supplies the raw keyword arrays (COORD, ZCORN, ACTNUM,
MAPAXES), the cartesian dimensions and the MINPV/PINCH settings. Deck
parsing lives elsewhere; InputGrid is an in-memory source built from
arrays that were already read.
"""

from dataclasses import dataclass, field
from typing import Optional, Protocol, Tuple

import numpy as np

from ..config.schema import AssemblyConfig, MinpvMode
from .descriptor import GridDescriptor


class GeometrySource(Protocol):
    """What GridManager.from_geometry needs from an input grid."""

    @property
    def dims(self) -> Tuple[int, int, int]: ...

    def export_coord(self) -> np.ndarray: ...

    def export_zcorn(self) -> np.ndarray: ...

    def export_actnum(self) -> np.ndarray: ...

    def export_mapaxes(self) -> Optional[np.ndarray]: ...

    @property
    def minpv_mode(self) -> MinpvMode: ...

    @property
    def minpv_value(self) -> float: ...

    @property
    def pinch_active(self) -> bool: ...

    @property
    def pinch_threshold_thickness(self) -> float: ...


@dataclass
class InputGrid:
    """
    In-memory geometry source.

    Every export returns a fresh copy so the assembler owns what it mutates.
    """

    dims: Tuple[int, int, int]
    coord: np.ndarray
    zcorn: np.ndarray
    actnum: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int32))
    mapaxes: Optional[np.ndarray] = None
    minpv_mode: MinpvMode = MinpvMode.INACTIVE
    minpv_value: float = 0.0
    pinch_active: bool = False
    pinch_threshold_thickness: float = 0.0

    @classmethod
    def from_descriptor(cls, grid: GridDescriptor,
                        config: Optional[AssemblyConfig] = None) -> "InputGrid":
        """Wrap a descriptor's arrays together with MINPV/PINCH settings."""
        config = config if config is not None else AssemblyConfig()
        return cls(
            dims=grid.dims,
            coord=grid.coord.copy(),
            zcorn=grid.zcorn.copy(),
            actnum=grid.actnum.copy(),
            mapaxes=None if grid.mapaxes is None else grid.mapaxes.copy(),
            minpv_mode=config.minpv.mode,
            minpv_value=config.minpv.threshold,
            pinch_active=config.pinch.active,
            pinch_threshold_thickness=config.pinch.threshold_thickness,
        )

    def export_coord(self) -> np.ndarray:
        return np.array(self.coord, dtype=np.float64)

    def export_zcorn(self) -> np.ndarray:
        return np.array(self.zcorn, dtype=np.float64)

    def export_actnum(self) -> np.ndarray:
        return np.array(self.actnum, dtype=np.int32)

    def export_mapaxes(self) -> Optional[np.ndarray]:
        if self.mapaxes is None:
            return None
        return np.array(self.mapaxes, dtype=np.float64)
