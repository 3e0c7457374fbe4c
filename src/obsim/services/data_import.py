"""Data import helpers for observed and simulated datasets.

Observed data comes from spreadsheets or CSV files with one row per
measurement. Simulated data comes from a simulation result export with one
row per (individual, time) and one column per output path, named
``"<path> [<unit>]"``. Both are normalised into long tables with the
canonical columns from :mod:`obsim.config.constants`; units are kept in
``DataFrame.attrs``.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd
import structlog

from ..config.constants import (
    DEFAULT_ERROR_VALUE,
    ERROR_COL,
    GROUP_COL,
    INDIVIDUAL_COL,
    OBSERVED_COLUMNS,
    PATH_COL,
    SIMULATED_COLUMNS,
    TIME_COL,
    TIME_UNIT_ATTR,
    UNIT_COL,
    VALUE_COL,
    VALUE_UNIT_ATTR,
)
from ..config.model import ObservedDataConfig, SimulatedDataConfig
from ..contracts.errors import DataImportError
from ..contracts.types import Observation, SimulationSample
from ..domain.units import parse_column_header

logger = structlog.get_logger()

_EXCEL_SUFFIXES = {".xlsx", ".xls", ".xlsm"}


def _read_table(path: Union[str, Path], sheet: Optional[Union[str, int]] = None) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise DataImportError(f"Data file not found: {path}", {"path": str(path)})
    try:
        if path.suffix.lower() in _EXCEL_SUFFIXES:
            return pd.read_excel(path, sheet_name=0 if sheet is None else sheet)
        return pd.read_csv(path)
    except Exception as e:
        raise DataImportError(f"Failed to read {path}: {e}", {"path": str(path)}) from e


def _require_columns(df: pd.DataFrame, columns: List[str], source: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise DataImportError(
            f"{source} is missing columns: {missing}",
            {"missing": missing, "available": list(df.columns)},
        )


def observed_from_frame(df: pd.DataFrame, config: Optional[ObservedDataConfig] = None) -> pd.DataFrame:
    """Normalise a raw observed table.

    Keeps the configured groups, renames groups, and replaces missing
    uncertainties with a neutral value so that group-based legends are not
    split by nulls.

    Args:
        df: Raw table with one row per measurement
        config: Column layout and filtering, defaults to canonical names

    Returns:
        Table with ``group, time, value, error`` columns
    """
    config = config or ObservedDataConfig()
    required = [config.group_col, config.time_col, config.value_col]
    _require_columns(df, required, "Observed data")

    out = pd.DataFrame({
        GROUP_COL: df[config.group_col].astype(str).to_numpy(),
        TIME_COL: pd.to_numeric(df[config.time_col], errors="coerce").to_numpy(dtype=float),
        VALUE_COL: pd.to_numeric(df[config.value_col], errors="coerce").to_numpy(dtype=float),
    })
    if config.error_col is not None and config.error_col in df.columns:
        errors = pd.to_numeric(df[config.error_col], errors="coerce").to_numpy(dtype=float)
    else:
        errors = np.full(len(out), np.nan)
    out[ERROR_COL] = errors

    n_invalid = int(out[[TIME_COL, VALUE_COL]].isna().any(axis=1).sum())
    if n_invalid:
        logger.warning("Dropping observed rows without numeric time or value", n_rows=n_invalid)
        out = out.dropna(subset=[TIME_COL, VALUE_COL])

    out[ERROR_COL] = out[ERROR_COL].fillna(DEFAULT_ERROR_VALUE)

    if config.groups is not None:
        out = out[out[GROUP_COL].isin([str(g) for g in config.groups])].copy()
    if config.rename_groups:
        out[GROUP_COL] = out[GROUP_COL].replace(config.rename_groups)

    out = out.reset_index(drop=True)[list(OBSERVED_COLUMNS)]
    out.attrs[TIME_UNIT_ATTR] = config.time_unit
    out.attrs[VALUE_UNIT_ATTR] = config.value_unit
    return out


def load_observed(path: Union[str, Path], config: Optional[ObservedDataConfig] = None) -> pd.DataFrame:
    """Load observed data from a CSV or Excel file."""
    config = config or ObservedDataConfig()
    raw = _read_table(path, config.sheet)
    observed = observed_from_frame(raw, config)
    logger.info(
        "Observed data loaded",
        path=str(path),
        n_rows=len(observed),
        groups=sorted(observed[GROUP_COL].unique().tolist()),
    )
    return observed


def simulated_from_frame(df: pd.DataFrame, config: Optional[SimulatedDataConfig] = None) -> pd.DataFrame:
    """Reshape a wide simulation result export into a long table.

    Args:
        df: Wide table with individual, time and one column per output path
        config: Column layout, path selection and path-to-group mapping

    Returns:
        Table with ``individual_id, time, value, group, path, unit`` columns
    """
    config = config or SimulatedDataConfig()
    _require_columns(df, [config.individual_col, config.time_col], "Simulated data")

    _, header_time_unit = parse_column_header(config.time_col)
    time_unit = config.time_unit or header_time_unit

    output_cols = [c for c in df.columns if c not in (config.individual_col, config.time_col)]
    frames = []
    selected_paths = []
    for col in output_cols:
        path, unit = parse_column_header(str(col))
        if config.paths is not None and path not in config.paths:
            continue
        selected_paths.append(path)
        frames.append(pd.DataFrame({
            INDIVIDUAL_COL: df[config.individual_col].to_numpy(),
            TIME_COL: pd.to_numeric(df[config.time_col], errors="coerce").to_numpy(dtype=float),
            VALUE_COL: pd.to_numeric(df[col], errors="coerce").to_numpy(dtype=float),
            GROUP_COL: config.path_groups.get(path, path),
            PATH_COL: path,
            UNIT_COL: unit,
        }))

    if config.paths is not None:
        missing = [p for p in config.paths if p not in selected_paths]
        if missing:
            raise DataImportError(
                f"Simulated data has no output paths {missing}",
                {"missing": missing},
            )

    if frames:
        out = pd.concat(frames, ignore_index=True)
    else:
        out = pd.DataFrame(columns=[*SIMULATED_COLUMNS, UNIT_COL])
    out = out.dropna(subset=[TIME_COL, VALUE_COL]).reset_index(drop=True)

    units = out[UNIT_COL].dropna().unique().tolist()
    out.attrs[TIME_UNIT_ATTR] = time_unit
    out.attrs[VALUE_UNIT_ATTR] = units[0] if len(units) == 1 else None
    return out


def load_simulated(path: Union[str, Path], config: Optional[SimulatedDataConfig] = None) -> pd.DataFrame:
    """Load a simulation result export (CSV)."""
    config = config or SimulatedDataConfig()
    raw = _read_table(path)
    simulated = simulated_from_frame(raw, config)
    logger.info(
        "Simulated data loaded",
        path=str(path),
        n_rows=len(simulated),
        paths=sorted(simulated[PATH_COL].unique().tolist()),
    )
    return simulated


def observations_from_frame(df: pd.DataFrame) -> List[Observation]:
    """Convert a canonical observed table into :class:`Observation` objects."""
    _require_columns(df, [GROUP_COL, TIME_COL, VALUE_COL], "Observed data")
    has_error = ERROR_COL in df.columns
    observations = []
    for row in df.itertuples(index=False):
        error = getattr(row, ERROR_COL) if has_error else None
        observations.append(Observation(
            group=str(getattr(row, GROUP_COL)),
            time=float(getattr(row, TIME_COL)),
            value=float(getattr(row, VALUE_COL)),
            error=None if error is None or pd.isna(error) else float(error),
        ))
    return observations


def samples_from_frame(df: pd.DataFrame) -> List[SimulationSample]:
    """Convert a canonical simulated table into :class:`SimulationSample` objects."""
    _require_columns(df, [TIME_COL, VALUE_COL, GROUP_COL], "Simulated data")
    has_individual = INDIVIDUAL_COL in df.columns
    return [
        SimulationSample(
            individual_id=getattr(row, INDIVIDUAL_COL) if has_individual else 0,
            time=float(getattr(row, TIME_COL)),
            value=float(getattr(row, VALUE_COL)),
            group=str(getattr(row, GROUP_COL)),
        )
        for row in df.itertuples(index=False)
    ]
