"""Global constants for obsim."""

from __future__ import annotations

# Canonical observed table columns
GROUP_COL = "group"
TIME_COL = "time"
VALUE_COL = "value"
ERROR_COL = "error"

# Canonical simulated table columns
INDIVIDUAL_COL = "individual_id"
PATH_COL = "path"
UNIT_COL = "unit"

# Columns added by time alignment
MATCHED_TIME_COL = "matched_simulation_time"
MATCHED_VALUE_COL = "matched_simulation_value"
RESIDUAL_COL = "residual"

OBSERVED_COLUMNS = (GROUP_COL, TIME_COL, VALUE_COL, ERROR_COL)
SIMULATED_COLUMNS = (INDIVIDUAL_COL, TIME_COL, VALUE_COL, GROUP_COL, PATH_COL)

# Neutral uncertainty used when a measurement reports none
DEFAULT_ERROR_VALUE = 0.0

# Unit attribute keys stored in DataFrame.attrs
TIME_UNIT_ATTR = "time_unit"
VALUE_UNIT_ATTR = "value_unit"
