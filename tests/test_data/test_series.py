"""Tests for TimeSeries as-of lookups."""

from decimal import Decimal

from arbsim.data.models import FundingRateRecord
from arbsim.data.series import TimeSeries


def _series(*timestamps: int) -> TimeSeries[FundingRateRecord]:
    return TimeSeries(
        [
            FundingRateRecord(symbol="BTC/USDT:USDT", timestamp_ms=ts, rate=Decimal(ts))
            for ts in timestamps
        ]
    )


class TestAsOf:
    """Tests for as_of / before lookups."""

    def test_before_first_record_returns_none(self) -> None:
        assert _series(10, 20, 30).as_of(5) is None

    def test_exact_timestamp_matches(self) -> None:
        assert _series(10, 20, 30).as_of(20).timestamp_ms == 20

    def test_between_records_returns_latest_earlier(self) -> None:
        assert _series(10, 20, 30).as_of(29).timestamp_ms == 20

    def test_after_last_record_returns_last(self) -> None:
        assert _series(10, 20, 30).as_of(1000).timestamp_ms == 30

    def test_empty_series(self) -> None:
        assert _series().as_of(10) is None

    def test_before_is_strict(self) -> None:
        series = _series(10, 20, 30)
        assert series.before(20).timestamp_ms == 10
        assert series.before(10) is None


class TestWindows:
    """Tests for until, trailing and between."""

    def test_until_is_inclusive(self) -> None:
        series = _series(10, 20, 30)
        assert [r.timestamp_ms for r in series.until(20)] == [10, 20]

    def test_trailing_returns_latest_n(self) -> None:
        series = _series(10, 20, 30, 40)
        assert [r.timestamp_ms for r in series.trailing(35, 2)] == [20, 30]

    def test_trailing_shorter_than_requested(self) -> None:
        series = _series(10, 20)
        assert len(series.trailing(20, 5)) == 2

    def test_between_bounds_inclusive(self) -> None:
        series = _series(10, 20, 30, 40)
        assert [r.timestamp_ms for r in series.between(20, 30)] == [20, 30]

    def test_counts(self) -> None:
        series = _series(10, 20, 30)
        assert series.count_until(20) == 2
        assert series.count_before(20) == 1
        assert len(series) == 3
