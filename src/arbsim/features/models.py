"""Feature vector model for signal scoring and classifier training.

Features are floats: they are consumed by numpy and scikit-learn, not by
money arithmetic.
"""

from dataclasses import astuple, dataclass, fields

import numpy as np

from arbsim.data.view import VOLATILITY_WINDOW

RATE_WINDOW = 5  # trailing funding records per vector
MIN_CANDLES = VOLATILITY_WINDOW + 1  # also spans the 24h price change


@dataclass(frozen=True)
class FeatureVector:
    """Point-in-time features for one symbol.

    The trailing APR window is flattened into apr_1 (oldest) .. apr_5
    (latest) so field order is fixed and matches FEATURE_NAMES.
    """

    current_apr: float  # annualized funding rate, percent
    apr_1: float
    apr_2: float
    apr_3: float
    apr_4: float
    apr_5: float
    apr_mean: float
    apr_std: float
    apr_slope: float  # OLS slope over the trailing window, APR points per period
    apr_percentile: float  # 0-100, against all funding history up to now
    price_change_1h: float  # percent
    price_change_4h: float
    price_change_24h: float
    volatility: float  # stddev of hourly returns, percent
    volatility_percentile: float  # 0-100, against past rolling volatilities
    hour_of_day: int  # UTC
    hours_since_funding: float

    @property
    def apr_window(self) -> tuple[float, ...]:
        return (self.apr_1, self.apr_2, self.apr_3, self.apr_4, self.apr_5)

    def to_array(self) -> np.ndarray:
        """Feature values in FEATURE_NAMES order."""
        return np.asarray(astuple(self), dtype=float)

    def to_dict(self) -> dict[str, float]:
        return {name: float(value) for name, value in zip(FEATURE_NAMES, astuple(self))}


FEATURE_NAMES: tuple[str, ...] = tuple(f.name for f in fields(FeatureVector))
