"""Point-in-time view over a historical dataset.

Every query takes the simulated timestamp and only returns data with
timestamp_ms <= that time, so the feature extractor and portfolio logic cannot
see the future. Series are indexed once at construction.
"""

from decimal import Decimal

import numpy as np

from arbsim.data.models import Candle, FundingRateRecord, HistoricalDataSet
from arbsim.data.series import TimeSeries

VOLATILITY_WINDOW = 24  # hourly returns per realized volatility window


def rolling_volatility(closes: np.ndarray, window: int = VOLATILITY_WINDOW) -> np.ndarray:
    """Population stddev (in %) of simple returns over each trailing window.

    Element k is the volatility of the window ending at candle k + window,
    i.e. the result is aligned to candles[window:].
    """
    if len(closes) <= window:
        return np.empty(0)
    returns = np.diff(closes) / closes[:-1]
    windows = np.lib.stride_tricks.sliding_window_view(returns, window)
    return windows.std(axis=1) * 100


class HistoricalDataView:
    """Time-bounded accessor for funding rates and candles.

    Args:
        dataset: The dataset to index.
        volatility_window: Hourly returns per realized volatility window.
    """

    def __init__(
        self,
        dataset: HistoricalDataSet,
        volatility_window: int = VOLATILITY_WINDOW,
    ) -> None:
        self._dataset = dataset
        self._volatility_window = volatility_window
        self._rates = {s: TimeSeries(r) for s, r in dataset.funding_rates.items()}
        self._spot = {s: TimeSeries(c) for s, c in dataset.spot_candles.items()}
        self._perp = {s: TimeSeries(c) for s, c in dataset.perp_candles.items()}
        self._volatility: dict[str, np.ndarray] = {}

    @property
    def dataset(self) -> HistoricalDataSet:
        return self._dataset

    @property
    def symbols(self) -> list[str]:
        return sorted(self._rates)

    def funding_series(self, symbol: str) -> TimeSeries[FundingRateRecord]:
        return self._rates.get(symbol, TimeSeries(()))

    def spot_series(self, symbol: str) -> TimeSeries[Candle]:
        return self._spot.get(symbol, TimeSeries(()))

    def funding_rate_at(self, symbol: str, timestamp_ms: int) -> FundingRateRecord | None:
        """Funding record in force at timestamp_ms (latest at or before it)."""
        return self.funding_series(symbol).as_of(timestamp_ms)

    def settlement_rate_at(self, symbol: str, timestamp_ms: int) -> FundingRateRecord | None:
        """Rate settled at timestamp_ms: the record in force over the elapsed interval."""
        return self.funding_series(symbol).before(timestamp_ms)

    def spot_price_at(self, symbol: str, timestamp_ms: int) -> Decimal | None:
        candle = self.spot_series(symbol).as_of(timestamp_ms)
        return candle.close if candle is not None else None

    def perp_price_at(self, symbol: str, timestamp_ms: int) -> Decimal | None:
        series = self._perp.get(symbol)
        if series is None:
            return None
        candle = series.as_of(timestamp_ms)
        return candle.close if candle is not None else None

    def prices_at(self, symbol: str, timestamp_ms: int) -> tuple[Decimal, Decimal] | None:
        """(spot, perp) closes at timestamp_ms, or None if either leg is missing."""
        spot = self.spot_price_at(symbol, timestamp_ms)
        perp = self.perp_price_at(symbol, timestamp_ms)
        if spot is None or perp is None:
            return None
        return spot, perp

    def trailing_rates(
        self, symbol: str, timestamp_ms: int, count: int
    ) -> tuple[FundingRateRecord, ...]:
        return self.funding_series(symbol).trailing(timestamp_ms, count)

    def rate_history(self, symbol: str, timestamp_ms: int) -> tuple[FundingRateRecord, ...]:
        return self.funding_series(symbol).until(timestamp_ms)

    def trailing_candles(
        self, symbol: str, timestamp_ms: int, count: int
    ) -> tuple[Candle, ...]:
        return self.spot_series(symbol).trailing(timestamp_ms, count)

    def volatility_history(self, symbol: str, timestamp_ms: int) -> np.ndarray:
        """Rolling spot volatilities of windows ending strictly before the latest candle.

        The latest candle at or before timestamp_ms closes the "current"
        window; it is excluded so the current value is ranked against the
        past only.
        """
        vols = self._volatility.get(symbol)
        if vols is None:
            closes = np.array(
                [float(c.close) for c in self.spot_series(symbol)], dtype=float
            )
            vols = rolling_volatility(closes, self._volatility_window)
            self._volatility[symbol] = vols
        current_idx = self.spot_series(symbol).count_until(timestamp_ms) - 1
        # vols[k] belongs to the window ending at candle k + window
        end = max(0, current_idx - self._volatility_window)
        return vols[:end]
