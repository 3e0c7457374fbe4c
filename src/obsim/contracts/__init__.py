"""Core contracts and interfaces."""

from .errors import (
    ObsimError,
    ConfigError,
    ValidationError,
    DataImportError,
    AlignmentError,
    NoMatchError,
    UnitMismatchError,
    MappingError,
    DuplicateLabelError,
    ArityMismatchError,
    UnknownSeriesError,
    NonPositiveLogValueError,
)
from .renderer import Renderer, RenderRequest
from .types import (
    AxisScale,
    Observation,
    PlotType,
    Series,
    SeriesKind,
    SimulationSample,
    VisualEncoding,
)

__all__ = [
    "ObsimError",
    "ConfigError",
    "ValidationError",
    "DataImportError",
    "AlignmentError",
    "NoMatchError",
    "UnitMismatchError",
    "MappingError",
    "DuplicateLabelError",
    "ArityMismatchError",
    "UnknownSeriesError",
    "NonPositiveLogValueError",
    "Renderer",
    "RenderRequest",
    "AxisScale",
    "Observation",
    "PlotType",
    "Series",
    "SeriesKind",
    "SimulationSample",
    "VisualEncoding",
]
