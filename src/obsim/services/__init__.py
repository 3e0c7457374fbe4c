"""Services for data import, alignment, analysis and visualization."""

from .alignment import (
    align_observations,
    match_simulated_to_observed,
    nearest_indices,
    to_time_unit,
)
from .analysis import aggregate_by_time, summarize_residuals
from .data_import import (
    load_observed,
    load_simulated,
    observations_from_frame,
    observed_from_frame,
    samples_from_frame,
    simulated_from_frame,
)
from .visualization import (
    MatplotlibRenderer,
    plot_obs_vs_pred,
    plot_residuals,
    plot_time_profile,
)

__all__ = [
    # Alignment
    'align_observations',
    'match_simulated_to_observed',
    'nearest_indices',
    'to_time_unit',
    # Analysis
    'aggregate_by_time',
    'summarize_residuals',
    # Data import
    'load_observed',
    'load_simulated',
    'observations_from_frame',
    'observed_from_frame',
    'samples_from_frame',
    'simulated_from_frame',
    # Visualization
    'MatplotlibRenderer',
    'plot_obs_vs_pred',
    'plot_residuals',
    'plot_time_profile',
]
