"""Custom exceptions for the funding rate arbitrage backtester.

All data, signal, and portfolio exceptions live here to avoid circular
imports between modules. Configuration and data errors are fatal and raised
before the replay starts; the rest are caught per symbol inside the replay
loop and logged.
"""


class ArbSimError(Exception):
    """Base exception for all backtester errors."""


class ConfigValidationError(ArbSimError):
    """Raised when a BacktestConfig is invalid (window, capital, limits)."""


class DataNotFoundError(ArbSimError):
    """Raised when no cached dataset covers the requested window."""


class DataValidationError(ArbSimError):
    """Raised when a dataset payload is malformed or a series is unsorted."""


class InsufficientHistoryError(ArbSimError):
    """Raised when trailing history is too short to build features."""


class ModelUnavailableError(ArbSimError):
    """Raised when the learned signal model cannot be trained."""


class PriceUnavailableError(ArbSimError):
    """Raised when a spot or perp price is unavailable at a timestamp."""


class PositionStateError(ArbSimError):
    """Raised when an operation is not valid for the position's status."""
