"""Renderer protocol definition."""

from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import pandas as pd

from .types import PlotType

if TYPE_CHECKING:
    from ..config.model import AxisConfig, PlotConfiguration
    from ..legend import LegendTable


@dataclass(frozen=True)
class RenderRequest:
    """Everything a renderer needs to draw one plot of a data mapping."""

    plot_type: PlotType

    data: pd.DataFrame
    """Tidy series data with display transforms applied (see ``DataMapping.to_frame``)"""

    x_axis: "AxisConfig"
    y_axis: "AxisConfig"

    legend: "LegendTable"
    """Encoding and visibility of every series, keyed by series label"""

    config: "PlotConfiguration"
    """Styling and output settings for this render call"""


@runtime_checkable
class Renderer(Protocol):
    """Protocol for plot renderers.

    A renderer turns a :class:`RenderRequest` into a figure object. It must
    draw every series with the encoding of its legend entry and list only
    visible entries in the legend.
    """

    def render(self, request: RenderRequest) -> Any:
        """Draw the requested plot.

        Args:
            request: Data, axes, legend and configuration of the plot

        Returns:
            Backend-specific figure object
        """
        ...
