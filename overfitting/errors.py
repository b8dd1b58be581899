"""
Error Definitions

Every precondition the analytics check has its own exception type, so the
caller (usually a reporting or decision layer) can tell a short sample from
a degenerate variance without parsing messages.

All errors carry a ``details`` dict with the offending values.

Example:
    from overfitting.errors import UndefinedSharpeRatioError

    try:
        result = compute_dsr(returns, k_effective=8, sr_variance=var)
    except UndefinedSharpeRatioError as e:
        logger.warning(f"Skipping flat strategy: {e.details}")
"""

from typing import Any, Dict, Optional


class OverfittingError(Exception):
    """Base exception for all overfitting analytics errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'details': self.details,
        }


class InsufficientDataError(OverfittingError):
    """Raised when there are too few strategies or observations."""

    def __init__(
        self,
        message: str,
        available: Optional[int] = None,
        required: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if available is not None:
            details['available'] = available
        if required is not None:
            details['required'] = required
        super().__init__(message, details)


class UndefinedSharpeRatioError(OverfittingError):
    """
    Raised when a return series has zero standard deviation.

    A flat series has no Sharpe ratio; it is never reported as 0.
    """

    pass


class InvalidTrialCountError(OverfittingError):
    """
    Raised when the effective number of trials cannot be used.

    The expected maximum of K draws needs K > 1: at K = 1 the quantile
    Phi^{-1}(1 - 1/K) is -inf.
    """

    def __init__(
        self,
        message: str,
        k_effective: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if k_effective is not None:
            details['k_effective'] = k_effective
        super().__init__(message, details)


class DegenerateVarianceError(OverfittingError):
    """
    Raised when a variance term is not positive.

    The DSR denominator 1 - skew*SR + (kurt/4)*SR^2 can go negative for
    strongly skewed, fat-tailed series with a large Sharpe ratio. The
    value is reported, not clamped.
    """

    pass


class InvalidReturnsError(OverfittingError):
    """Raised when returns are non-finite, mis-shaped or constant where correlation is needed."""

    pass


class InvalidProbabilityError(OverfittingError):
    """Raised when a probability argument is outside its domain."""

    def __init__(
        self,
        message: str,
        name: Optional[str] = None,
        value: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if name is not None:
            details['name'] = name
        if value is not None:
            details['value'] = value
        super().__init__(message, details)
