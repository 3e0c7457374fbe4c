"""Domain helpers."""

from .units import (
    TIME_UNIT_FACTORS,
    check_value_units,
    convert_time,
    parse_column_header,
    parse_time_unit,
    resolve_time_units,
)

__all__ = [
    "TIME_UNIT_FACTORS",
    "check_value_units",
    "convert_time",
    "parse_column_header",
    "parse_time_unit",
    "resolve_time_units",
]
