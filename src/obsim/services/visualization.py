"""Matplotlib renderer for data mappings."""

from __future__ import annotations
from pathlib import Path
from typing import Callable, Dict, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
import structlog
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from ..config.model import AxisConfig, PlotConfiguration
from ..contracts.renderer import RenderRequest
from ..contracts.types import AxisScale, PlotType, SeriesKind
from ..legend import LegendEntry

logger = structlog.get_logger()

_NO_LEGEND = "_nolegend_"


class MatplotlibRenderer:
    """Draws time profiles, observed-vs-predicted and residual plots."""

    def __init__(self):
        self._dispatch: Dict[PlotType, Callable[[Axes, RenderRequest], None]] = {
            PlotType.TIME_PROFILE: self._plot_time_profile,
            PlotType.OBS_VS_PRED: self._plot_obs_vs_pred,
            PlotType.RESIDUALS_VS_TIME: self._plot_residuals_vs_time,
            PlotType.RESIDUALS_BOXPLOT: self._plot_residuals_boxplot,
        }

    def render(self, request: RenderRequest) -> Figure:
        """Draw ``request`` on a new figure and save it when configured."""
        config = request.config
        fig, ax = plt.subplots(figsize=config.figsize, dpi=config.dpi)

        if request.data.empty:
            ax.text(0.5, 0.5, 'No data available',
                    ha='center', va='center', transform=ax.transAxes)
        else:
            self._dispatch[request.plot_type](ax, request)

        if config.title:
            ax.set_title(config.title)
        if config.show_legend and request.plot_type != PlotType.RESIDUALS_BOXPLOT:
            handles, labels = ax.get_legend_handles_labels()
            if handles:
                ax.legend(handles, labels)
        ax.grid(True, alpha=0.3)
        fig.tight_layout()

        if config.save_path:
            self._save_figure(fig, request.plot_type.value, config)

        return fig

    # ---- Encoding helpers ----
    @staticmethod
    def _entry(request: RenderRequest, label: str, kind: str, index: int) -> LegendEntry:
        entry = request.legend.find(label)
        if entry is not None:
            return entry
        config = request.config
        observed = kind == SeriesKind.OBSERVED.value
        return LegendEntry(
            name=label,
            label=label,
            color=config.colors[index % len(config.colors)],
            shape=config.shapes[index % len(config.shapes)] if observed else "",
            linetype="" if observed else config.linetypes[index % len(config.linetypes)],
        )

    @staticmethod
    def _legend_label(entry: LegendEntry) -> str:
        return entry.label if entry.visible else _NO_LEGEND

    @staticmethod
    def _apply_axis(ax: Axes, axis: str, settings: AxisConfig, default_label: str) -> None:
        set_label = ax.set_xlabel if axis == "x" else ax.set_ylabel
        set_scale = ax.set_xscale if axis == "x" else ax.set_yscale
        set_lim = ax.set_xlim if axis == "x" else ax.set_ylim
        set_label(settings.label or default_label)
        if settings.scale == AxisScale.LOG:
            set_scale('log')
        if settings.limits is not None:
            set_lim(*settings.limits)

    def _series_groups(self, data: pd.DataFrame):
        for index, (label, sdf) in enumerate(data.groupby("label", sort=False)):
            yield index, label, sdf

    # ---- Plot types ----
    def _plot_time_profile(self, ax: Axes, request: RenderRequest) -> None:
        """Observed data as markers with error bars, simulations as lines and bands."""
        for i, label, sdf in self._series_groups(request.data):
            kind = sdf["kind"].iat[0]
            entry = self._entry(request, label, kind, i)
            x = sdf["x"].to_numpy()
            y = sdf["y"].to_numpy()

            if kind == SeriesKind.OBSERVED.value:
                yerr = sdf["y_error"].to_numpy()
                has_err = bool(np.nansum(yerr) > 0)
                ax.errorbar(
                    x, y,
                    yerr=np.nan_to_num(yerr) if has_err else None,
                    fmt=entry.shape or 'o',
                    linestyle=entry.linetype or 'none',
                    color=entry.color,
                    markerfacecolor=entry.color if entry.fill else 'none',
                    capsize=3,
                    label=self._legend_label(entry),
                )
            else:
                ax.plot(
                    x, y,
                    linestyle=entry.linetype or '-',
                    marker=entry.shape or None,
                    color=entry.color,
                    linewidth=2,
                    label=self._legend_label(entry),
                )
                if sdf["y_min"].notna().any() and sdf["y_max"].notna().any():
                    ax.fill_between(
                        x, sdf["y_min"].to_numpy(), sdf["y_max"].to_numpy(),
                        color=entry.color, alpha=0.2 if entry.fill else 0.0,
                        label=_NO_LEGEND,
                    )

        self._apply_axis(ax, "x", request.x_axis, "Time")
        self._apply_axis(ax, "y", request.y_axis, "Value")

    def _matched_rows(self, data: pd.DataFrame) -> pd.DataFrame:
        observed = data[data["kind"] == SeriesKind.OBSERVED.value]
        return observed[observed["y_matched"].notna()]

    def _plot_obs_vs_pred(self, ax: Axes, request: RenderRequest) -> None:
        """Observed against matched simulated values with identity and fold lines."""
        matched = self._matched_rows(request.data)
        for i, label, sdf in self._series_groups(matched):
            entry = self._entry(request, label, SeriesKind.OBSERVED.value, i)
            ax.plot(
                sdf["y"], sdf["y_matched"],
                linestyle='none',
                marker=entry.shape or 'o',
                color=entry.color,
                markerfacecolor=entry.color if entry.fill else 'none',
                label=self._legend_label(entry),
            )

        if not matched.empty:
            values = np.concatenate([matched["y"].to_numpy(), matched["y_matched"].to_numpy()])
            if request.y_axis.limits is not None:
                lo, hi = request.y_axis.limits
            else:
                lo, hi = float(np.nanmin(values)), float(np.nanmax(values))
            if request.y_axis.scale == AxisScale.LOG:
                line = np.geomspace(max(lo, np.finfo(float).tiny), hi, 100)
            else:
                line = np.linspace(lo, hi, 100)
            ax.plot(line, line, color='black', linewidth=1, label=_NO_LEGEND)
            fold = request.config.fold_distance
            if fold is not None:
                ax.plot(line, line * fold, color='grey', linestyle='--', linewidth=1,
                        label=f'{fold:g}-fold')
                ax.plot(line, line / fold, color='grey', linestyle='--', linewidth=1,
                        label=_NO_LEGEND)

        y_label = request.y_axis.label
        self._apply_axis(ax, "x", request.y_axis.model_copy(update={"label": None}),
                         f"Observed {y_label}" if y_label else "Observed values")
        self._apply_axis(ax, "y", request.y_axis.model_copy(update={"label": None}),
                         f"Simulated {y_label}" if y_label else "Simulated values")

    def _plot_residuals_vs_time(self, ax: Axes, request: RenderRequest) -> None:
        """Residuals (simulated minus observed) over time."""
        matched = self._matched_rows(request.data)
        for i, label, sdf in self._series_groups(matched):
            entry = self._entry(request, label, SeriesKind.OBSERVED.value, i)
            ax.plot(
                sdf["x"], sdf["residual"],
                linestyle='none',
                marker=entry.shape or 'o',
                color=entry.color,
                markerfacecolor=entry.color if entry.fill else 'none',
                label=self._legend_label(entry),
            )
        ax.axhline(0.0, color='black', linewidth=1)
        self._apply_axis(ax, "x", request.x_axis, "Time")
        ax.set_ylabel("Residual (simulated - observed)")

    def _plot_residuals_boxplot(self, ax: Axes, request: RenderRequest) -> None:
        """Box-and-whisker plot of residuals per group."""
        matched = self._matched_rows(request.data)
        if matched.empty:
            ax.text(0.5, 0.5, 'No matched observations',
                    ha='center', va='center', transform=ax.transAxes)
            return

        palette = {}
        for i, label, sdf in self._series_groups(matched):
            group = sdf["group"].iat[0]
            palette.setdefault(group, self._entry(request, label, SeriesKind.OBSERVED.value, i).color)

        sns.boxplot(
            data=matched, x="group", y="residual", hue="group",
            palette=palette, dodge=False, ax=ax,
        )
        if ax.get_legend() is not None:
            ax.get_legend().remove()
        ax.axhline(0.0, color='black', linewidth=1, linestyle='--')
        ax.set_xlabel("Group")
        ax.set_ylabel("Residual (simulated - observed)")

    def _save_figure(self, fig: Figure, filename: str, config: PlotConfiguration) -> Path:
        """Save figure to the configured directory."""
        save_path = Path(config.save_path)
        save_path.mkdir(parents=True, exist_ok=True)

        full_path = save_path / f"{filename}.{config.save_format}"
        fig.savefig(full_path, dpi=config.dpi, bbox_inches='tight')
        logger.info("Plot saved", path=str(full_path))
        return full_path


def plot_time_profile(mapping, config: Optional[PlotConfiguration] = None, legend=None) -> Figure:
    """Quick function to plot a time profile of a data mapping."""
    return mapping.plot(PlotType.TIME_PROFILE, config=config, legend=legend)


def plot_obs_vs_pred(mapping, config: Optional[PlotConfiguration] = None, legend=None) -> Figure:
    """Quick function to plot observed against predicted values."""
    return mapping.plot(PlotType.OBS_VS_PRED, config=config, legend=legend)


def plot_residuals(mapping, config: Optional[PlotConfiguration] = None,
                   boxplot: bool = False, legend=None) -> Figure:
    """Quick function to plot residuals over time or as a box plot per group."""
    plot_type = PlotType.RESIDUALS_BOXPLOT if boxplot else PlotType.RESIDUALS_VS_TIME
    return mapping.plot(plot_type, config=config, legend=legend)
