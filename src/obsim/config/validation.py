"""Configuration validation utilities."""

from typing import List
import structlog

from ..contracts.errors import ValidationError
from ..contracts.types import AxisScale
from ..domain.units import TIME_UNIT_FACTORS, parse_time_unit
from .model import AppConfig

logger = structlog.get_logger()


def validate_config(config: AppConfig) -> None:
    """Validate configuration for common issues and conflicts.

    Args:
        config: Configuration to validate

    Raises:
        ValidationError: If configuration is invalid
    """
    errors: List[str] = []
    warnings: List[str] = []

    _validate_units(config, errors)
    _validate_groups(config, errors, warnings)
    _validate_axes(config, warnings)

    for warning in warnings:
        logger.warning(warning)

    if errors:
        raise ValidationError(
            f"Configuration validation failed: {'; '.join(errors)}",
            {"errors": errors},
        )


def _validate_units(config: AppConfig, errors: List[str]) -> None:
    """Check that configured time units are known."""
    for section, unit in (
        ("observed", config.observed.time_unit),
        ("simulated", config.simulated.time_unit),
    ):
        if unit is None:
            continue
        try:
            parse_time_unit(unit)
        except ValueError:
            errors.append(
                f"{section}.time_unit={unit!r} is not one of {sorted(TIME_UNIT_FACTORS)}"
            )


def _validate_groups(config: AppConfig, errors: List[str], warnings: List[str]) -> None:
    """Check group filtering and renaming settings."""
    observed = config.observed

    if observed.groups is not None and not observed.groups:
        errors.append("observed.groups is empty, no observations would be kept")

    if observed.groups:
        unknown = set(observed.rename_groups) - set(observed.groups)
        if unknown:
            warnings.append(
                f"observed.rename_groups refers to filtered-out groups: {sorted(unknown)}"
            )

    renamed = list(observed.rename_groups.values())
    if len(renamed) != len(set(renamed)):
        warnings.append("observed.rename_groups merges several groups into one")

    simulated_groups = set(config.simulated.path_groups.values())
    if simulated_groups and observed.groups:
        observed_groups = {observed.rename_groups.get(g, g) for g in observed.groups}
        unmatched = observed_groups - simulated_groups
        if unmatched and config.alignment.on_missing == "raise":
            warnings.append(
                f"Observed groups without simulated output will fail alignment: {sorted(unmatched)}"
            )


def _validate_axes(config: AppConfig, warnings: List[str]) -> None:
    """Check axis settings that commonly produce empty plots."""
    for name, axis in (("x_axis", config.plot.x_axis), ("y_axis", config.plot.y_axis)):
        if axis.scale == AxisScale.LOG and axis.limits is not None and axis.limits[0] <= 0:
            warnings.append(f"plot.{name} is log scaled but its lower limit is not positive")
