"""Residual statistics for aligned observed data."""

from __future__ import annotations

import numpy as np
import pandas as pd

from ..config.constants import GROUP_COL, RESIDUAL_COL, TIME_COL, VALUE_COL

OVERALL_LABEL = "overall"


def _residual_stats(residuals: np.ndarray) -> dict:
    residuals = residuals[~np.isnan(residuals)]
    n = residuals.size
    if n == 0:
        return {"n": 0, "mean_residual": np.nan, "mean_abs_residual": np.nan, "rmse": np.nan}
    return {
        "n": int(n),
        "mean_residual": float(np.mean(residuals)),
        "mean_abs_residual": float(np.mean(np.abs(residuals))),
        "rmse": float(np.sqrt(np.mean(residuals ** 2))),
    }


def aggregate_by_time(
    simulated: pd.DataFrame,
    lower_quantile: float = 0.05,
    upper_quantile: float = 0.95,
) -> pd.DataFrame:
    """Population median and quantile band per time point.

    Returns:
        DataFrame with ``time, median, lower, upper`` columns sorted by time
    """
    if not 0.0 <= lower_quantile < upper_quantile <= 1.0:
        raise ValueError("quantiles must satisfy 0 <= lower < upper <= 1")
    grouped = simulated.groupby(TIME_COL, sort=True)[VALUE_COL]
    out = pd.DataFrame({
        "median": grouped.median(),
        "lower": grouped.quantile(lower_quantile),
        "upper": grouped.quantile(upper_quantile),
    })
    return out.rename_axis(TIME_COL).reset_index()


def summarize_residuals(aligned: pd.DataFrame, include_overall: bool = True) -> pd.DataFrame:
    """Summarise residuals per group.

    Unmatched rows (NaN residual) are not counted.

    Args:
        aligned: Output of :func:`obsim.services.alignment.match_simulated_to_observed`
        include_overall: Append a row pooling all groups

    Returns:
        DataFrame indexed by group with ``n, mean_residual,
        mean_abs_residual, rmse`` columns
    """
    if RESIDUAL_COL not in aligned.columns:
        raise ValueError("aligned data has no residual column, run alignment first")

    rows = {}
    for group, gdf in aligned.groupby(GROUP_COL, sort=True):
        rows[str(group)] = _residual_stats(gdf[RESIDUAL_COL].to_numpy(dtype=float))
    if include_overall:
        rows[OVERALL_LABEL] = _residual_stats(aligned[RESIDUAL_COL].to_numpy(dtype=float))

    summary = pd.DataFrame.from_dict(
        rows, orient="index", columns=["n", "mean_residual", "mean_abs_residual", "rmse"]
    )
    summary.index.name = GROUP_COL
    return summary
