"""Data models for historical funding rate and candle data.

A HistoricalDataSet is the typed, validated form of a cached data file. Every
per-symbol series is sorted ascending by timestamp with no duplicates; this is
checked once at construction so the rest of the engine can rely on it.

CRITICAL: All monetary values use Decimal. Never use float for prices, quantities, or rates.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from arbsim.exceptions import DataValidationError


@dataclass(frozen=True)
class FundingRateRecord:
    """A single historical funding rate settlement for a perpetual symbol."""

    symbol: str
    timestamp_ms: int
    rate: Decimal
    funding_time_ms: int | None = None  # next settlement time as reported by the exchange


@dataclass(frozen=True)
class Candle:
    """A single hourly OHLCV candle.

    All price and volume fields use Decimal for precision.
    """

    timestamp_ms: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal("0")


@dataclass(frozen=True)
class DataSetMetadata:
    """Covered range and symbol universe of a dataset."""

    start_ms: int
    end_ms: int
    symbols: tuple[str, ...] = ()
    fetched_at_ms: int = 0

    def covers(self, start_ms: int, end_ms: int, tolerance_ms: int = 0) -> bool:
        """Whether [start_ms, end_ms] lies inside this range, give or take tolerance_ms."""
        return (
            start_ms >= self.start_ms - tolerance_ms
            and end_ms <= self.end_ms + tolerance_ms
        )


def _check_series(kind: str, symbol: str, series: Sequence[Any]) -> None:
    """Raise DataValidationError unless timestamps are strictly increasing."""
    previous: int | None = None
    for record in series:
        ts = record.timestamp_ms
        if previous is not None and ts <= previous:
            reason = "duplicate" if ts == previous else "unsorted"
            raise DataValidationError(
                f"{kind} series for {symbol} has {reason} timestamp {ts}"
            )
        previous = ts


@dataclass(frozen=True)
class HistoricalDataSet:
    """Read-only bundle of funding rates and spot/perp candles per symbol.

    Series are keyed by the perpetual symbol (e.g., "BTC/USDT:USDT"); the
    matching spot candles are stored under the same key.
    """

    funding_rates: Mapping[str, tuple[FundingRateRecord, ...]]
    spot_candles: Mapping[str, tuple[Candle, ...]]
    perp_candles: Mapping[str, tuple[Candle, ...]]
    metadata: DataSetMetadata = field(default_factory=lambda: DataSetMetadata(0, 0))

    def __post_init__(self) -> None:
        for kind, by_symbol in (
            ("funding", self.funding_rates),
            ("spot", self.spot_candles),
            ("perp", self.perp_candles),
        ):
            for symbol, series in by_symbol.items():
                _check_series(kind, symbol, series)

    @property
    def symbols(self) -> list[str]:
        """Symbols with funding data, sorted for deterministic iteration."""
        return sorted(self.funding_rates)

    def record_count(self) -> dict[str, int]:
        """Total records per series type."""
        return {
            "funding_rates": sum(len(s) for s in self.funding_rates.values()),
            "spot_candles": sum(len(s) for s in self.spot_candles.values()),
            "perp_candles": sum(len(s) for s in self.perp_candles.values()),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> HistoricalDataSet:
        """Validate and build a dataset from its JSON-serializable form."""
        from arbsim.data.schema import parse_dataset

        return parse_dataset(payload)

    def to_dict(self) -> dict:
        """Serialize to the JSON-serializable cache form (Decimals as str)."""
        from arbsim.data.schema import dump_dataset

        return dump_dataset(self)
