"""Standardized errors and warnings for GeoFold.

Every failed precondition of fold assignment surfaces as an InputError
whose message names the offending value; search shortfalls are warnings.
"""

from typing import Any, Optional


class GeoFoldError(Exception):
    """Base exception for GeoFold errors."""

    def __init__(
        self,
        message: str,
        suggestion: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        """Initialize GeoFold error.

        Args:
            message: Primary error message.
            suggestion: Optional suggestion for fixing the error.
            details: Optional dictionary with additional error details.
        """
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        """Message followed by the hint, when there is one."""
        if self.suggestion:
            return f"{self.message}\nHint: {self.suggestion}"
        return self.message


class InputError(GeoFoldError, ValueError):
    """Error raised when an input precondition of fold assignment fails."""

    pass


class DataValidationError(InputError):
    """Error raised when sample or domain data fails validation."""

    pass


class ParameterError(InputError):
    """Error raised when parameters are invalid."""

    pass


class ConvergenceWarning(UserWarning):
    """Fold search ended without matching the target distance distribution.

    The best assignment found is still returned; inspect its ``divergence``
    to decide whether to proceed.
    """

    pass


def describe_data_error(
    message: str,
    expected: Optional[str] = None,
    received: Optional[str] = None,
) -> str:
    """Message for a sample, domain or fold table that cannot be used.

    The offending shape or count is appended on one line, e.g.
    ``"k=7 exceeds ... (need k <= 4, got k=7)"``.
    """
    found = []
    if expected:
        found.append(f"need {expected}")
    if received:
        found.append(f"got {received}")
    if not found:
        return message
    return f"{message} ({', '.join(found)})"


def describe_option_error(
    name: str,
    value: Any,
    valid_values: Optional[list[str]] = None,
    constraint: Optional[str] = None,
) -> str:
    """Message for a fold search option or argument with a bad value."""
    message = f"{name}={value!r} is not a usable value"
    if valid_values:
        message += f"; choose one of {', '.join(map(str, valid_values))}"
    if constraint:
        message += f"; {constraint}"
    return message


def raise_data_error(
    message: str,
    expected: Optional[str] = None,
    received: Optional[str] = None,
    suggestion: Optional[str] = None,
) -> None:
    """Raise DataValidationError for unusable samples, domains or folds.

    Raises:
        DataValidationError: Always.
    """
    raise DataValidationError(
        describe_data_error(message, expected, received),
        suggestion=suggestion,
    )


def raise_option_error(
    name: str,
    value: Any,
    valid_values: Optional[list[str]] = None,
    constraint: Optional[str] = None,
    suggestion: Optional[str] = None,
) -> None:
    """Raise ParameterError naming the option and its rejected value.

    Raises:
        ParameterError: Always, with ``details={"parameter", "value"}``.
    """
    raise ParameterError(
        describe_option_error(name, value, valid_values, constraint),
        suggestion=suggestion,
        details={"parameter": name, "value": value},
    )
