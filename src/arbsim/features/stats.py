"""Small statistics helpers shared by the feature extractor and signals.

Operate on plain float sequences. Standard deviations are population
(N denominator) throughout.
"""

from collections.abc import Sequence

import numpy as np


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(np.mean(values))


def pstdev(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(np.std(values))


def linear_slope(values: Sequence[float]) -> float:
    """Ordinary least squares slope of values against their index.

    Returns 0.0 for fewer than two points.
    """
    n = len(values)
    if n < 2:
        return 0.0
    x = np.arange(n, dtype=float)
    y = np.asarray(values, dtype=float)
    x_centered = x - x.mean()
    return float((x_centered * (y - y.mean())).sum() / (x_centered**2).sum())


def percentile_rank(value: float, history: Sequence[float] | np.ndarray) -> float:
    """Percentile (0-100) of value within history.

    A value greater than or equal to every element maps to 100; otherwise the
    result is the share of elements strictly below value.
    """
    arr = np.asarray(history, dtype=float)
    if arr.size == 0:
        return 100.0
    if value >= arr.max():
        return 100.0
    return float(np.count_nonzero(arr < value)) / arr.size * 100


def simple_returns(closes: Sequence[float]) -> list[float]:
    """Period-over-period simple returns (fractional)."""
    return [
        (closes[i] - closes[i - 1]) / closes[i - 1]
        for i in range(1, len(closes))
        if closes[i - 1]
    ]


def pct_change(current: float, previous: float) -> float:
    """Percent change from previous to current; 0.0 when previous is zero."""
    if not previous:
        return 0.0
    return (current - previous) / previous * 100


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))
