"""Unit tags and conversions for observed and simulated tables.

Time values are converted through minutes. Value units are only compared,
never converted: observed and simulated values must share one unit before
they can be matched.
"""

from __future__ import annotations
import re
from typing import Dict, Optional, Tuple
import numpy as np

from ..contracts.errors import UnitMismatchError


# Minutes per unit
TIME_UNIT_FACTORS: Dict[str, float] = {
    "s": 1.0 / 60.0,
    "min": 1.0,
    "h": 60.0,
    "day": 1440.0,
    "week": 10080.0,
}

_TIME_UNIT_ALIASES: Dict[str, str] = {
    "sec": "s",
    "second": "s",
    "seconds": "s",
    "minute": "min",
    "minutes": "min",
    "hour": "h",
    "hours": "h",
    "hr": "h",
    "d": "day",
    "days": "day",
    "weeks": "week",
}

_HEADER_PATTERN = re.compile(r"^\s*(?P<name>.*?)\s*\[(?P<unit>[^\]]*)\]\s*$")


def parse_time_unit(unit: str) -> str:
    """Return the canonical name of a time unit.

    Raises:
        ValueError: If the unit is not a known time unit
    """
    key = unit.strip()
    if key in TIME_UNIT_FACTORS:
        return key
    key = key.lower()
    key = _TIME_UNIT_ALIASES.get(key, key)
    if key not in TIME_UNIT_FACTORS:
        raise ValueError(f"Unknown time unit: {unit}")
    return key


def convert_time(values: np.ndarray, from_unit: str, to_unit: str) -> np.ndarray:
    """Convert time values between units."""
    source = parse_time_unit(from_unit)
    target = parse_time_unit(to_unit)
    values = np.asarray(values, dtype=float)
    if source == target:
        return values
    return values * (TIME_UNIT_FACTORS[source] / TIME_UNIT_FACTORS[target])


def parse_column_header(header: str) -> Tuple[str, Optional[str]]:
    """Split a ``"Name [unit]"`` column header into name and unit.

    Headers without a bracketed unit return ``(header, None)``.
    """
    match = _HEADER_PATTERN.match(header)
    if match is None:
        return header.strip(), None
    unit = match.group("unit").strip() or None
    return match.group("name"), unit


def resolve_time_units(observed_unit: Optional[str], simulated_unit: Optional[str]) -> Tuple[str, str]:
    """Validate a pair of time units for matching.

    An untagged side is assumed to use the unit of the other side.

    Raises:
        UnitMismatchError: If a unit is not a known time unit
    """
    if observed_unit is None and simulated_unit is None:
        return "min", "min"
    observed_unit = observed_unit or simulated_unit
    simulated_unit = simulated_unit or observed_unit
    try:
        return parse_time_unit(observed_unit), parse_time_unit(simulated_unit)
    except ValueError as e:
        raise UnitMismatchError(
            str(e),
            {"observed_time_unit": observed_unit, "simulated_time_unit": simulated_unit},
        ) from e


def check_value_units(observed_unit: Optional[str], simulated_unit: Optional[str]) -> None:
    """Check that observed and simulated values share a unit.

    Raises:
        UnitMismatchError: If both units are tagged and differ
    """
    if observed_unit is None or simulated_unit is None:
        return
    if observed_unit.strip() != simulated_unit.strip():
        raise UnitMismatchError(
            f"Observed values are in {observed_unit!r} but simulated values are in "
            f"{simulated_unit!r}",
            {"observed_value_unit": observed_unit, "simulated_value_unit": simulated_unit},
        )
