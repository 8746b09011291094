"""Utility modules for GeoFold."""

from geofold.utils.errors import (
    ConvergenceWarning,
    DataValidationError,
    GeoFoldError,
    InputError,
    ParameterError,
    describe_data_error,
    describe_option_error,
    raise_data_error,
    raise_option_error,
)

__all__ = [
    "ConvergenceWarning",
    "DataValidationError",
    "GeoFoldError",
    "InputError",
    "ParameterError",
    "describe_data_error",
    "describe_option_error",
    "raise_data_error",
    "raise_option_error",
]
