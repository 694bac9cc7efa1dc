"""Tests for the point-in-time HistoricalDataView."""

from decimal import Decimal

import numpy as np
import pytest

from arbsim.data.view import VOLATILITY_WINDOW, HistoricalDataView, rolling_volatility
from arbsim.funding import HOUR_MS

T0 = 1_704_067_200_000
BTC = "BTC/USDT:USDT"
RATES = [Decimal("0.0001"), Decimal("0.0002"), Decimal("0.0003")]


@pytest.fixture
def view(make_dataset, price_fn) -> HistoricalDataView:
    return HistoricalDataView(make_dataset({BTC: RATES}, price_fn=price_fn))


class TestFundingLookups:
    """Funding rate queries never look past the requested timestamp."""

    def test_rate_in_force_at_settlement(self, view: HistoricalDataView) -> None:
        assert view.funding_rate_at(BTC, T0 + 8 * HOUR_MS).rate == Decimal("0.0002")

    def test_rate_in_force_between_settlements(self, view: HistoricalDataView) -> None:
        assert view.funding_rate_at(BTC, T0 + 15 * HOUR_MS).rate == Decimal("0.0002")

    def test_settlement_rate_uses_previous_record(self, view: HistoricalDataView) -> None:
        """At a settlement tick the payment uses the rate of the elapsed interval."""
        assert view.settlement_rate_at(BTC, T0 + 8 * HOUR_MS).rate == Decimal("0.0001")
        assert view.settlement_rate_at(BTC, T0) is None

    def test_before_first_record(self, view: HistoricalDataView) -> None:
        assert view.funding_rate_at(BTC, T0 - 1) is None

    def test_unknown_symbol(self, view: HistoricalDataView) -> None:
        assert view.funding_rate_at("DOGE/USDT:USDT", T0) is None
        assert view.prices_at("DOGE/USDT:USDT", T0) is None

    def test_history_bounded_by_timestamp(self, view: HistoricalDataView) -> None:
        history = view.rate_history(BTC, T0 + 9 * HOUR_MS)
        assert [r.rate for r in history] == RATES[:2]
        assert [r.rate for r in view.trailing_rates(BTC, T0 + 16 * HOUR_MS, 2)] == RATES[1:]


class TestPriceLookups:
    """Spot/perp price queries."""

    def test_prices_at_returns_both_legs(self, view: HistoricalDataView, price_fn) -> None:
        ts = T0 + 5 * HOUR_MS
        assert view.prices_at(BTC, ts) == (price_fn(BTC, ts), price_fn(BTC, ts))

    def test_price_as_of_latest_candle(self, view: HistoricalDataView, price_fn) -> None:
        ts = T0 + 5 * HOUR_MS
        assert view.spot_price_at(BTC, ts + HOUR_MS // 2) == price_fn(BTC, ts)

    def test_missing_spot_leg_returns_none(self, make_dataset) -> None:
        view = HistoricalDataView(make_dataset({BTC: RATES}, spot_symbols=()))
        assert view.spot_price_at(BTC, T0) is None
        assert view.perp_price_at(BTC, T0) == Decimal("100")
        assert view.prices_at(BTC, T0) is None

    def test_trailing_candles(self, view: HistoricalDataView) -> None:
        candles = view.trailing_candles(BTC, T0 + 10 * HOUR_MS, 3)
        assert [c.timestamp_ms for c in candles] == [
            T0 + 8 * HOUR_MS,
            T0 + 9 * HOUR_MS,
            T0 + 10 * HOUR_MS,
        ]


class TestVolatility:
    """Rolling volatility and the history used for its percentile."""

    def test_flat_prices_have_zero_volatility(self) -> None:
        closes = np.full(30, 100.0)
        vols = rolling_volatility(closes, 24)
        assert len(vols) == 6
        assert np.allclose(vols, 0.0)

    def test_too_few_closes(self) -> None:
        assert rolling_volatility(np.full(24, 100.0), 24).size == 0

    def test_known_window(self) -> None:
        """Alternating +1%/-1% style returns have a known population stddev."""
        closes = np.array([100.0, 101.0, 100.0])
        vols = rolling_volatility(closes, 2)
        returns = np.array([0.01, -1.0 / 101.0])
        assert vols[0] == pytest.approx(returns.std() * 100)

    def test_history_excludes_current_window(self, view: HistoricalDataView) -> None:
        """At candle index k the history holds windows ending at candles < k."""
        ts = T0 + 16 * HOUR_MS  # candle index 16
        assert view.volatility_history(BTC, ts).size == 0

    def test_history_grows_with_time(self, make_dataset, price_fn) -> None:
        view = HistoricalDataView(
            make_dataset({BTC: [Decimal("0.0001")] * 10}, price_fn=price_fn)
        )
        ts = T0 + 40 * HOUR_MS  # candle index 40
        history = view.volatility_history(BTC, ts)
        assert history.size == 40 - VOLATILITY_WINDOW
        assert view.volatility_history(BTC, ts + HOUR_MS).size == history.size + 1
