"""Observed-vs-simulated data mapping and comparison plots."""

import importlib.metadata

from .contracts.types import Observation, PlotType, Series, SeriesKind, SimulationSample
from .legend import LegendEntry, LegendTable, build_legend, reconcile_legend
from .mapping import DataMapping, SeriesTransform

__version__ = importlib.metadata.version("obsim")

__all__ = [
    "DataMapping",
    "LegendEntry",
    "LegendTable",
    "Observation",
    "PlotType",
    "Series",
    "SeriesKind",
    "SeriesTransform",
    "SimulationSample",
    "build_legend",
    "reconcile_legend",
]
