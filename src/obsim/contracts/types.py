"""Type definitions for observed data, simulated data and plot series."""

from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union
import numpy as np


class SeriesKind(str, Enum):
    """Data source of a series."""

    OBSERVED = "observed"
    SIMULATED = "simulated"


class AxisScale(str, Enum):
    """Scale of a plot axis."""

    LINEAR = "linear"
    LOG = "log"


class PlotType(str, Enum):
    """Plot types supported by the renderer."""

    TIME_PROFILE = "time_profile"
    OBS_VS_PRED = "obs_vs_pred"
    RESIDUALS_VS_TIME = "residuals_vs_time"
    RESIDUALS_BOXPLOT = "residuals_boxplot"


@dataclass(frozen=True)
class Observation:
    """One measured data point."""

    group: str
    """Group identifier used to join against simulated samples"""

    time: float
    """Measurement time"""

    value: float
    """Measured value"""

    error: Optional[float] = None
    """Measurement uncertainty, None when not reported"""

    matched_simulation_time: Optional[float] = None
    """Time of the simulated sample matched by alignment"""

    matched_simulation_value: Optional[float] = None
    """Value of the simulated sample matched by alignment"""

    residual: Optional[float] = None
    """Matched simulated value minus measured value"""

    @property
    def is_matched(self) -> bool:
        return self.matched_simulation_value is not None


@dataclass(frozen=True)
class SimulationSample:
    """One simulated output point."""

    individual_id: Union[int, str]
    time: float
    value: float
    group: str


@dataclass(frozen=True)
class VisualEncoding:
    """Colour, marker and line style shared by the series of one group."""

    color: str
    shape: str = "o"
    linetype: str = "-"
    fill: bool = True


def _new_series_id() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False)
class Series:
    """Named, grouped sequence of (x, y) pairs owned by a data mapping.

    The identifier is assigned at creation and never changes; ``label`` is a
    display attribute and may be renamed freely.
    """

    label: str
    group: str
    kind: SeriesKind
    x: np.ndarray
    y: np.ndarray
    y_min: Optional[np.ndarray] = None
    y_max: Optional[np.ndarray] = None
    y_error: Optional[np.ndarray] = None
    y_matched: Optional[np.ndarray] = None
    path: Optional[str] = None
    _id: str = field(default_factory=_new_series_id, repr=False)

    def __post_init__(self):
        self.x = np.array(self.x, dtype=float)
        self.y = np.array(self.y, dtype=float)
        if self.x.shape != self.y.shape:
            raise ValueError(
                f"x and y must have the same shape, got {self.x.shape} and {self.y.shape}"
            )
        for name in ("y_min", "y_max", "y_error", "y_matched"):
            values = getattr(self, name)
            if values is None:
                continue
            values = np.array(values, dtype=float)
            if values.shape != self.y.shape:
                raise ValueError(f"{name} must have the same shape as y")
            setattr(self, name, values)

    @property
    def series_id(self) -> str:
        """Opaque identifier of this series."""
        return self._id

    def __len__(self) -> int:
        return len(self.x)
