"""Tests for point-in-time feature extraction."""

from dataclasses import replace
from decimal import Decimal

import pytest

from arbsim.data.view import HistoricalDataView
from arbsim.exceptions import InsufficientHistoryError
from arbsim.features.extractor import NEUTRAL_PERCENTILE, FeatureExtractor
from arbsim.features.models import FEATURE_NAMES, FeatureVector
from arbsim.funding import HOUR_MS

T0 = 1_704_067_200_000
BTC = "BTC/USDT:USDT"
RISING = [Decimal(n) / Decimal("10000") for n in range(1, 11)]  # 0.0001 .. 0.0010


def _extractor(dataset) -> FeatureExtractor:
    return FeatureExtractor(HistoricalDataView(dataset))


@pytest.fixture
def extractor(make_dataset, price_fn) -> FeatureExtractor:
    return _extractor(
        make_dataset({BTC: RISING}, price_fn=price_fn, candle_hours_before=24)
    )


class TestExtract:
    """Feature values at a settlement timestamp."""

    def test_apr_window_oldest_first(self, extractor: FeatureExtractor) -> None:
        features = extractor.extract(BTC, T0 + 32 * HOUR_MS)
        assert features is not None
        assert features.apr_window == pytest.approx((10.95, 21.9, 32.85, 43.8, 54.75))
        assert features.current_apr == pytest.approx(54.75)

    def test_window_statistics(self, extractor: FeatureExtractor) -> None:
        features = extractor.extract(BTC, T0 + 32 * HOUR_MS)
        assert features.apr_mean == pytest.approx(32.85)
        assert features.apr_slope == pytest.approx(10.95)
        assert features.apr_std == pytest.approx(10.95 * 2**0.5)

    def test_rising_apr_ranks_at_top(self, extractor: FeatureExtractor) -> None:
        features = extractor.extract(BTC, T0 + 32 * HOUR_MS)
        assert features.apr_percentile == 100.0

    def test_time_features(self, extractor: FeatureExtractor) -> None:
        features = extractor.extract(BTC, T0 + 36 * HOUR_MS)
        assert features.hour_of_day == 12
        assert features.hours_since_funding == pytest.approx(4.0)

    def test_price_changes(self, extractor: FeatureExtractor, price_fn) -> None:
        ts = T0 + 32 * HOUR_MS
        features = extractor.extract(BTC, ts)
        now = float(price_fn(BTC, ts))
        hour_ago = float(price_fn(BTC, ts - HOUR_MS))
        day_ago = float(price_fn(BTC, ts - 24 * HOUR_MS))
        assert features.price_change_1h == pytest.approx((now - hour_ago) / hour_ago * 100)
        assert features.price_change_24h == pytest.approx((now - day_ago) / day_ago * 100)

    def test_flat_prices(self, make_dataset) -> None:
        extractor = _extractor(make_dataset({BTC: RISING}, candle_hours_before=24))
        features = extractor.extract(BTC, T0 + 32 * HOUR_MS)
        assert features.volatility == 0.0
        assert features.price_change_4h == 0.0

    def test_vector_layout(self, extractor: FeatureExtractor) -> None:
        features = extractor.extract(BTC, T0 + 32 * HOUR_MS)
        array = features.to_array()
        assert array.shape == (len(FEATURE_NAMES),)
        assert array[FEATURE_NAMES.index("current_apr")] == pytest.approx(54.75)
        assert list(features.to_dict()) == list(FEATURE_NAMES)


class TestInsufficientHistory:
    """Short history yields no vector rather than zero-filled defaults."""

    def test_too_few_funding_records(self, extractor: FeatureExtractor) -> None:
        assert extractor.extract(BTC, T0 + 24 * HOUR_MS) is None

    def test_no_spot_candles(self, make_dataset) -> None:
        extractor = _extractor(make_dataset({BTC: RISING}, spot_symbols=()))
        assert extractor.extract(BTC, T0 + 32 * HOUR_MS) is None

    def test_require_raises(self, extractor: FeatureExtractor) -> None:
        with pytest.raises(InsufficientHistoryError):
            extractor.require(BTC, T0)

    def test_neutral_volatility_percentile_without_history(self, make_dataset, price_fn) -> None:
        """Exactly one volatility window available: ranked as neutral."""
        dataset = make_dataset({BTC: RISING}, price_fn=price_fn)
        dataset = replace(dataset, spot_candles={BTC: dataset.spot_candles[BTC][8:]})
        features = _extractor(dataset).extract(BTC, T0 + 32 * HOUR_MS)
        assert isinstance(features, FeatureVector)
        assert features.volatility_percentile == NEUTRAL_PERCENTILE


class TestNoLookahead:
    """Features at time t do not depend on data after t."""

    def test_future_data_does_not_change_features(self, make_dataset, price_fn) -> None:
        cutoff = T0 + 40 * HOUR_MS

        def shocked_price(symbol: str, ts: int) -> Decimal:
            base = price_fn(symbol, ts)
            return base * 3 if ts > cutoff else base

        future_rates = RISING[:6] + [Decimal("-0.002")] * 4
        a = _extractor(make_dataset({BTC: RISING}, price_fn=price_fn, candle_hours_before=24))
        b = _extractor(
            make_dataset({BTC: future_rates}, price_fn=shocked_price, candle_hours_before=24)
        )
        assert a.extract(BTC, cutoff) == b.extract(BTC, cutoff)
