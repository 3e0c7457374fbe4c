"""Main API facade for obsim.

The CLI and notebooks go through these functions: load configuration and
data, align observed rows with simulated output, build the data mapping and
render the comparison plots.
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

import pandas as pd
import structlog

from .config import AppConfig, default_config, load_config, validate_config
from .config.constants import TIME_UNIT_ATTR
from .config.model import PlotConfiguration
from .contracts.types import PlotType
from .mapping import DataMapping
from .services.alignment import match_simulated_to_observed, to_time_unit
from .services.analysis import summarize_residuals
from .services.data_import import load_observed, load_simulated

logger = structlog.get_logger()


@dataclass
class ComparisonResult:
    """Outputs of one observed-vs-simulated comparison."""

    observed: pd.DataFrame
    simulated: pd.DataFrame
    aligned: pd.DataFrame
    mapping: DataMapping
    summary: pd.DataFrame


def load_config_from_file(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """Load and validate configuration from file.

    Without ``path`` the standard locations are searched and
    ``OBSIM_<SECTION>_<KEY>`` environment overrides are applied.

    Raises:
        ConfigError: If configuration cannot be loaded or is invalid
    """
    config = load_config(path)
    validate_config(config)
    return config


def align(observed: pd.DataFrame, simulated: pd.DataFrame, config: Optional[AppConfig] = None) -> pd.DataFrame:
    """Match simulated values to observed rows using the alignment settings."""
    config = config or default_config()
    return match_simulated_to_observed(
        observed,
        simulated,
        on_missing=config.alignment.on_missing,
        check_units=config.alignment.check_units,
    )


def compare(
    observed_path: Union[str, Path],
    simulated_path: Union[str, Path],
    config: Optional[AppConfig] = None,
) -> ComparisonResult:
    """Load observed and simulated data, align them and build the data mapping.

    Args:
        observed_path: CSV or Excel file with observed data
        simulated_path: CSV simulation result export
        config: Application configuration, defaults to :func:`default_config`

    Returns:
        Loaded tables, aligned observations, data mapping and residual summary
    """
    config = config or default_config()
    observed = load_observed(observed_path, config.observed)
    simulated = load_simulated(simulated_path, config.simulated)
    aligned = align(observed, simulated, config)
    observed_unit = observed.attrs.get(TIME_UNIT_ATTR)
    if config.alignment.check_units and observed_unit:
        simulated = to_time_unit(simulated, observed_unit)
    mapping = DataMapping.from_alignment(aligned, simulated, config=config.plot)
    summary = summarize_residuals(aligned)
    logger.info("Comparison built", n_series=len(mapping), groups=mapping.groups())
    return ComparisonResult(
        observed=observed,
        simulated=simulated,
        aligned=aligned,
        mapping=mapping,
        summary=summary,
    )


def render_plots(
    mapping: DataMapping,
    plot_types: Iterable[Union[str, PlotType]] = tuple(PlotType),
    config: Optional[PlotConfiguration] = None,
) -> Dict[PlotType, object]:
    """Render several plot types of one mapping with the same configuration."""
    config = config or PlotConfiguration()
    figures = {}
    for plot_type in plot_types:
        plot_type = PlotType(plot_type)
        figures[plot_type] = mapping.plot(plot_type, config=config)
    return figures
