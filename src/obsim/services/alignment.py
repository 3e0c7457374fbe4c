"""Time alignment of observed data against simulated output.

Every observation is matched to the simulated sample of the same group whose
time is closest in absolute difference. Ties go to the sample that comes
first in simulated order. The matched value is copied onto the observation
and the residual ``matched - measured`` is computed.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Literal, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import structlog

from ..config.constants import (
    GROUP_COL,
    MATCHED_TIME_COL,
    MATCHED_VALUE_COL,
    RESIDUAL_COL,
    TIME_COL,
    TIME_UNIT_ATTR,
    UNIT_COL,
    VALUE_COL,
    VALUE_UNIT_ATTR,
)
from ..contracts.errors import AlignmentError, NoMatchError, UnitMismatchError
from ..contracts.types import Observation, SimulationSample
from ..domain.units import check_value_units, convert_time, resolve_time_units

logger = structlog.get_logger()

OnMissing = Literal["raise", "skip"]


def nearest_indices(observed_times: np.ndarray, simulated_times: np.ndarray) -> np.ndarray:
    """Index of the nearest simulated time for every observed time.

    ``np.argmin`` returns the first minimum, so ties resolve to the earliest
    sample in simulated order. Simulated times that are not finite are never
    chosen.

    Args:
        observed_times: Times to match, shape (n,)
        simulated_times: Candidate times, shape (m,) with m >= 1

    Returns:
        Integer indices into ``simulated_times``, shape (n,)
    """
    observed_times = np.asarray(observed_times, dtype=float)
    simulated_times = np.asarray(simulated_times, dtype=float)
    if simulated_times.size == 0:
        raise ValueError("simulated_times must not be empty")
    if not np.isfinite(simulated_times).any():
        raise ValueError("simulated_times has no finite values")
    distances = np.abs(observed_times[:, None] - simulated_times[None, :])
    distances = np.where(np.isnan(distances), np.inf, distances)
    return np.argmin(distances, axis=1)


def _missing_group(group: str, n_observations: int, on_missing: OnMissing) -> None:
    if on_missing == "raise":
        raise NoMatchError(
            f"Group {group!r} has {n_observations} observations but no simulated samples",
            {"group": group, "n_observations": n_observations},
        )
    logger.warning(
        "Skipping group without simulated samples",
        group=group,
        n_observations=n_observations,
    )


def _check_group_units(group: str, observed_unit: Optional[str], units: np.ndarray) -> None:
    tagged = sorted({str(u).strip() for u in units if u is not None and not pd.isna(u)})
    if len(tagged) > 1:
        raise UnitMismatchError(
            f"Simulated outputs of group {group!r} use several value units: {tagged}",
            {"group": group, "simulated_value_units": tagged},
        )
    if tagged:
        try:
            check_value_units(observed_unit, tagged[0])
        except UnitMismatchError as e:
            raise UnitMismatchError(f"Group {group!r}: {e.message}", {"group": group, **e.details}) from e


def to_time_unit(df: pd.DataFrame, unit: str) -> pd.DataFrame:
    """Copy of a canonical table with its time column expressed in ``unit``."""
    current = df.attrs.get(TIME_UNIT_ATTR) or unit
    result = df.copy()
    result.attrs = dict(df.attrs)
    result[TIME_COL] = convert_time(df[TIME_COL].to_numpy(dtype=float), current, unit)
    result.attrs[TIME_UNIT_ATTR] = unit
    return result


def match_simulated_to_observed(
    observed: pd.DataFrame,
    simulated: pd.DataFrame,
    *,
    on_missing: OnMissing = "raise",
    check_units: bool = True,
    observed_time_unit: Optional[str] = None,
    simulated_time_unit: Optional[str] = None,
    observed_value_unit: Optional[str] = None,
    simulated_value_unit: Optional[str] = None,
) -> pd.DataFrame:
    """Match simulated values to observed rows, group by group.

    Units default to the ``time_unit``/``value_unit`` entries of each
    frame's ``attrs``. With ``check_units`` simulated times are converted to
    the observed time unit and value units must agree.

    Args:
        observed: Canonical observed table (``group, time, value``)
        simulated: Canonical simulated table (``group, time, value``)
        on_missing: ``"raise"`` to fail on a group without simulated
            samples, ``"skip"`` to leave its rows unmatched (NaN)
        check_units: Validate and convert units before matching

    Returns:
        Copy of ``observed`` with ``matched_simulation_time``,
        ``matched_simulation_value`` and ``residual`` columns

    Raises:
        NoMatchError: A group has observations but no simulated samples
        UnitMismatchError: Units are unknown or inconsistent
    """
    if on_missing not in ("raise", "skip"):
        raise ValueError(f"on_missing must be 'raise' or 'skip', got {on_missing!r}")
    for name, df in (("observed", observed), ("simulated", simulated)):
        missing = [c for c in (GROUP_COL, TIME_COL, VALUE_COL) if c not in df.columns]
        if missing:
            raise AlignmentError(f"{name} data is missing columns: {missing}", {"missing": missing})

    sim_times = simulated[TIME_COL].to_numpy(dtype=float)
    observed_value_unit = observed_value_unit or observed.attrs.get(VALUE_UNIT_ATTR)
    observed_time_unit = observed_time_unit or observed.attrs.get(TIME_UNIT_ATTR)
    simulated_time_unit = simulated_time_unit or simulated.attrs.get(TIME_UNIT_ATTR)
    if check_units:
        obs_unit, sim_unit = resolve_time_units(observed_time_unit, simulated_time_unit)
        if obs_unit != sim_unit:
            logger.info("Converting simulated time unit", from_unit=sim_unit, to_unit=obs_unit)
            sim_times = convert_time(sim_times, sim_unit, obs_unit)
        check_value_units(
            observed_value_unit,
            simulated_value_unit or simulated.attrs.get(VALUE_UNIT_ATTR),
        )

    sim_units = (
        simulated[UNIT_COL].to_numpy(dtype=object)
        if check_units and UNIT_COL in simulated.columns else None
    )

    sim_values = simulated[VALUE_COL].to_numpy(dtype=float)
    sim_groups = simulated[GROUP_COL].astype(str).to_numpy()
    obs_groups = observed[GROUP_COL].astype(str).to_numpy()
    obs_times = observed[TIME_COL].to_numpy(dtype=float)

    matched_time = np.full(len(observed), np.nan)
    matched_value = np.full(len(observed), np.nan)

    n_groups = 0
    for group in pd.unique(obs_groups):
        obs_pos = np.flatnonzero(obs_groups == group)
        sim_pos = np.flatnonzero(sim_groups == group)
        sim_pos = sim_pos[np.isfinite(sim_times[sim_pos]) & ~np.isnan(sim_values[sim_pos])]
        if sim_pos.size == 0:
            _missing_group(group, obs_pos.size, on_missing)
            continue

        if sim_units is not None:
            _check_group_units(group, observed_value_unit, sim_units[sim_pos])

        valid = ~np.isnan(obs_times[obs_pos])
        obs_pos = obs_pos[valid]
        nearest = sim_pos[nearest_indices(obs_times[obs_pos], sim_times[sim_pos])]
        matched_time[obs_pos] = sim_times[nearest]
        matched_value[obs_pos] = sim_values[nearest]
        n_groups += 1

    result = observed.copy()
    result[MATCHED_TIME_COL] = matched_time
    result[MATCHED_VALUE_COL] = matched_value
    result[RESIDUAL_COL] = matched_value - observed[VALUE_COL].to_numpy(dtype=float)
    result.attrs = dict(observed.attrs)

    logger.info(
        "Alignment completed",
        n_groups=n_groups,
        n_observations=len(observed),
        n_matched=int(np.count_nonzero(~np.isnan(matched_value))),
    )
    return result


def align_observations(
    observations: Sequence[Observation],
    samples: Sequence[SimulationSample],
    *,
    on_missing: OnMissing = "raise",
) -> List[Observation]:
    """Match simulated samples to :class:`Observation` objects.

    Observations and samples are assumed to share time units. Returns new
    observations with ``matched_simulation_time``,
    ``matched_simulation_value`` and ``residual`` set; unmatched
    observations (``on_missing="skip"``) are returned unchanged.
    """
    by_group: Dict[str, Tuple[List[float], List[float]]] = {}
    for sample in samples:
        if not np.isfinite(sample.time) or np.isnan(sample.value):
            continue
        times, values = by_group.setdefault(sample.group, ([], []))
        times.append(sample.time)
        values.append(sample.value)

    obs_by_group: Dict[str, List[int]] = {}
    for i, obs in enumerate(observations):
        obs_by_group.setdefault(obs.group, []).append(i)

    aligned = list(observations)
    for group, positions in obs_by_group.items():
        if group not in by_group:
            _missing_group(group, len(positions), on_missing)
            continue
        times = np.asarray(by_group[group][0], dtype=float)
        values = np.asarray(by_group[group][1], dtype=float)
        nearest = nearest_indices([observations[i].time for i in positions], times)
        for i, j in zip(positions, nearest):
            obs = observations[i]
            aligned[i] = replace(
                obs,
                matched_simulation_time=float(times[j]),
                matched_simulation_value=float(values[j]),
                residual=float(values[j]) - obs.value,
            )
    return aligned
