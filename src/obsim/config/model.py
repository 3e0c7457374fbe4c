"""Configuration data models."""

from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional, Tuple, Union
from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..contracts.types import AxisScale


class AxisConfig(BaseModel):
    """Display settings of one plot axis."""

    model_config = ConfigDict(frozen=True)

    label: Optional[str] = None
    limits: Optional[Tuple[float, float]] = None
    scale: AxisScale = AxisScale.LINEAR

    @field_validator("limits")
    @classmethod
    def validate_limits(cls, v: Optional[Tuple[float, float]]) -> Optional[Tuple[float, float]]:
        if v is not None and not v[0] < v[1]:
            raise ValueError("limits must be an increasing (lower, upper) pair")
        return v


class ObservedDataConfig(BaseModel):
    """Column layout and filtering of an observed data table."""

    group_col: str = "group"
    time_col: str = "time"
    value_col: str = "value"
    error_col: Optional[str] = "error"
    time_unit: str = "min"
    value_unit: Optional[str] = "%"
    sheet: Optional[Union[str, int]] = Field(None, description="Excel sheet to read")
    groups: Optional[List[str]] = Field(None, description="Groups to keep, all when unset")
    rename_groups: Dict[str, str] = Field(default_factory=dict)


class SimulatedDataConfig(BaseModel):
    """Column layout of a simulation result export."""

    individual_col: str = "IndividualId"
    time_col: str = "Time [min]"
    time_unit: Optional[str] = Field(
        None, description="Time unit, parsed from the time column header when unset"
    )
    paths: Optional[List[str]] = Field(None, description="Output paths to keep, all when unset")
    path_groups: Dict[str, str] = Field(
        default_factory=dict, description="Output path to group label"
    )


class AlignmentConfig(BaseModel):
    """Time-alignment settings."""

    on_missing: Literal["raise", "skip"] = "raise"
    check_units: bool = True


class PlotConfiguration(BaseModel):
    """Immutable plot styling and output settings.

    Each render call receives its own snapshot. Use :meth:`with_updates` to
    derive a modified configuration instead of editing a shared instance.
    """

    model_config = ConfigDict(frozen=True)

    title: Optional[str] = None
    figsize: Tuple[float, float] = (10.0, 6.0)
    dpi: int = Field(150, gt=0)
    colors: Tuple[str, ...] = (
        '#1f77b4', '#ff7f0e', '#2ca02c', '#d62728',
        '#9467bd', '#8c564b', '#e377c2', '#7f7f7f',
    )
    shapes: Tuple[str, ...] = ("o", "s", "^", "D", "v", "P", "X")
    linetypes: Tuple[str, ...] = ("-", "--", "-.", ":")
    x_axis: AxisConfig = Field(default_factory=AxisConfig)
    y_axis: AxisConfig = Field(default_factory=AxisConfig)
    fold_distance: Optional[float] = Field(
        2.0, description="Fold-error lines on observed-vs-predicted plots"
    )
    show_legend: bool = True
    save_format: str = "png"
    save_path: Optional[str] = None

    @field_validator("colors", "shapes", "linetypes")
    @classmethod
    def validate_non_empty(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v:
            raise ValueError("palette lists must not be empty")
        return v

    @field_validator("fold_distance")
    @classmethod
    def validate_fold_distance(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 1.0:
            raise ValueError("fold_distance must be greater than 1")
        return v

    def with_updates(self, **updates: Any) -> "PlotConfiguration":
        """Return a new validated configuration with ``updates`` applied.

        Dict values for nested models are merged into the current values.
        """
        data = self.model_dump()
        for key, value in updates.items():
            if isinstance(value, BaseModel):
                value = value.model_dump()
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value
        return PlotConfiguration.model_validate(data)


class AppConfig(BaseModel):
    """Complete application configuration."""

    observed: ObservedDataConfig = Field(default_factory=ObservedDataConfig)
    simulated: SimulatedDataConfig = Field(default_factory=SimulatedDataConfig)
    alignment: AlignmentConfig = Field(default_factory=AlignmentConfig)
    plot: PlotConfiguration = Field(default_factory=PlotConfiguration)

    @classmethod
    def from_toml_file(cls, path: Union[Path, str]) -> "AppConfig":
        """Load configuration from TOML file."""
        try:
            import tomllib
        except ImportError:
            import tomli as tomllib

        with open(path, "rb") as f:
            data = tomllib.load(f)
        return cls.model_validate(data)
