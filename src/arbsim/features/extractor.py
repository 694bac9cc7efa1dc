"""Point-in-time feature extraction from funding and spot price history.

Builds a FeatureVector for a symbol at a simulated timestamp using only data
visible at that time through HistoricalDataView. When the trailing history is
too short the extractor returns None; callers skip the symbol rather than
substituting defaults.
"""

from datetime import datetime, timezone
from decimal import Decimal

import numpy as np

from arbsim.data.view import HistoricalDataView
from arbsim.exceptions import InsufficientHistoryError
from arbsim.features import stats
from arbsim.features.models import MIN_CANDLES, RATE_WINDOW, FeatureVector
from arbsim.funding import HOUR_MS, payments_per_day, rate_to_apr

NEUTRAL_PERCENTILE = 50.0


class FeatureExtractor:
    """Computes FeatureVectors from a HistoricalDataView.

    Args:
        view: Point-in-time data accessor.
        funding_interval_hours: Settlement interval used for APR conversion.
    """

    def __init__(
        self,
        view: HistoricalDataView,
        funding_interval_hours: int = 8,
    ) -> None:
        self._view = view
        self._per_day = payments_per_day(funding_interval_hours)
        self._apr_history: dict[str, np.ndarray] = {}

    @property
    def view(self) -> HistoricalDataView:
        return self._view

    def apr(self, rate: Decimal) -> float:
        return float(rate_to_apr(rate, self._per_day))

    def _aprs_until(self, symbol: str, timestamp_ms: int) -> np.ndarray:
        aprs = self._apr_history.get(symbol)
        series = self._view.funding_series(symbol)
        if aprs is None:
            aprs = np.array([self.apr(r.rate) for r in series], dtype=float)
            self._apr_history[symbol] = aprs
        return aprs[: series.count_until(timestamp_ms)]

    def extract(self, symbol: str, timestamp_ms: int) -> FeatureVector | None:
        """Build the feature vector for symbol at timestamp_ms.

        Requires at least RATE_WINDOW trailing funding records and
        MIN_CANDLES trailing hourly spot candles.

        Returns:
            FeatureVector, or None when history is insufficient.
        """
        rates = self._view.trailing_rates(symbol, timestamp_ms, RATE_WINDOW)
        if len(rates) < RATE_WINDOW:
            return None

        candles = self._view.trailing_candles(symbol, timestamp_ms, MIN_CANDLES)
        if len(candles) < MIN_CANDLES:
            return None

        aprs = [self.apr(r.rate) for r in rates]
        current_apr = aprs[-1]
        apr_history = self._aprs_until(symbol, timestamp_ms)

        closes = [float(c.close) for c in candles]
        volatility = stats.pstdev(stats.simple_returns(closes)) * 100

        vol_history = self._view.volatility_history(symbol, timestamp_ms)
        if vol_history.size == 0:
            vol_percentile = NEUTRAL_PERCENTILE
        else:
            vol_percentile = stats.percentile_rank(volatility, vol_history)

        when = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)

        return FeatureVector(
            current_apr=current_apr,
            apr_1=aprs[-5],
            apr_2=aprs[-4],
            apr_3=aprs[-3],
            apr_4=aprs[-2],
            apr_5=aprs[-1],
            apr_mean=stats.mean(aprs),
            apr_std=stats.pstdev(aprs),
            apr_slope=stats.linear_slope(aprs),
            apr_percentile=stats.percentile_rank(current_apr, apr_history),
            price_change_1h=stats.pct_change(closes[-1], closes[-2]),
            price_change_4h=stats.pct_change(closes[-1], closes[-5]),
            price_change_24h=stats.pct_change(closes[-1], closes[-25]),
            volatility=volatility,
            volatility_percentile=vol_percentile,
            hour_of_day=when.hour,
            hours_since_funding=(timestamp_ms - rates[-1].timestamp_ms) / HOUR_MS,
        )

    def require(self, symbol: str, timestamp_ms: int) -> FeatureVector:
        """Like extract, but raises InsufficientHistoryError instead of returning None."""
        features = self.extract(symbol, timestamp_ms)
        if features is None:
            raise InsufficientHistoryError(
                f"Not enough history for {symbol} at {timestamp_ms}"
            )
        return features
