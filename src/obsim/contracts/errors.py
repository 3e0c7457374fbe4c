"""Error definitions for the obsim package."""

from __future__ import annotations
from typing import Dict, Optional


class ObsimError(Exception):
    """Base exception for all obsim package errors."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigError(ObsimError):
    """Configuration-related errors."""
    pass


class ValidationError(ConfigError):
    """Input validation errors."""
    pass


class DataImportError(ObsimError):
    """Observed or simulated data could not be loaded."""
    pass


class AlignmentError(ObsimError):
    """Time alignment between observed and simulated data failed."""
    pass


class NoMatchError(AlignmentError):
    """A group has observations but no simulated samples to match against."""
    pass


class UnitMismatchError(AlignmentError):
    """Time or value units differ between observed and simulated data."""
    pass


class MappingError(ObsimError):
    """Series aggregation errors."""
    pass


class DuplicateLabelError(MappingError):
    """A series label is already used in the data mapping."""
    pass


class ArityMismatchError(MappingError):
    """Parallel argument lists do not have matching lengths."""
    pass


class UnknownSeriesError(MappingError):
    """A series or legend entry could not be found by label or id."""
    pass


class NonPositiveLogValueError(MappingError):
    """A log-scaled axis contains zero or negative values."""
    pass
