"""Shared test fixtures for the funding rate arbitrage backtester.

Synthetic datasets are built from per-symbol lists of funding rates, one
record per 8h settlement starting at T0, with hourly spot and perp candles
covering the same span.
"""

from collections.abc import Callable, Sequence
from decimal import Decimal

import pytest

from arbsim.config import FeeSettings, MLSettings, SignalSettings
from arbsim.data.models import Candle, DataSetMetadata, FundingRateRecord, HistoricalDataSet
from arbsim.funding import HOUR_MS

T0 = 1_704_067_200_000  # 2024-01-01 00:00 UTC, on an 8h boundary
INTERVAL_MS = 8 * HOUR_MS

PriceFn = Callable[[str, int], Decimal]


def build_dataset(
    rates: dict[str, Sequence[Decimal]],
    start_ms: int = T0,
    price: Decimal = Decimal("100"),
    price_fn: PriceFn | None = None,
    spot_symbols: Sequence[str] | None = None,
    candle_hours_before: int = 0,
) -> HistoricalDataSet:
    """Build a dataset with one funding record per 8h and hourly candles.

    Args:
        rates: Funding rates per symbol, one per settlement from start_ms.
        start_ms: First settlement timestamp.
        price: Flat close price when price_fn is not given.
        price_fn: Close price per (symbol, timestamp); used for spot and perp.
        spot_symbols: Symbols that get spot candles (default: all).
        candle_hours_before: Extra hourly candles before start_ms.
    """
    funding: dict[str, tuple[FundingRateRecord, ...]] = {}
    spot: dict[str, tuple[Candle, ...]] = {}
    perp: dict[str, tuple[Candle, ...]] = {}
    end_ms = start_ms

    for symbol, symbol_rates in rates.items():
        records = tuple(
            FundingRateRecord(
                symbol=symbol,
                timestamp_ms=start_ms + i * INTERVAL_MS,
                rate=rate,
                funding_time_ms=start_ms + (i + 1) * INTERVAL_MS,
            )
            for i, rate in enumerate(symbol_rates)
        )
        funding[symbol] = records
        last_ms = records[-1].timestamp_ms
        end_ms = max(end_ms, last_ms)

        candles = []
        ts = start_ms - candle_hours_before * HOUR_MS
        while ts <= last_ms:
            close = price_fn(symbol, ts) if price_fn is not None else price
            candles.append(
                Candle(
                    timestamp_ms=ts,
                    open=close,
                    high=close,
                    low=close,
                    close=close,
                    volume=Decimal("1000"),
                )
            )
            ts += HOUR_MS
        perp[symbol] = tuple(candles)
        if spot_symbols is None or symbol in spot_symbols:
            spot[symbol] = tuple(candles)

    return HistoricalDataSet(
        funding_rates=funding,
        spot_candles=spot,
        perp_candles=perp,
        metadata=DataSetMetadata(
            start_ms=start_ms - candle_hours_before * HOUR_MS,
            end_ms=end_ms,
            symbols=tuple(sorted(rates)),
        ),
    )


def wavy_price(symbol: str, timestamp_ms: int) -> Decimal:
    """Deterministic oscillating price with a different phase per symbol."""
    hour = timestamp_ms // HOUR_MS + len(symbol)
    return Decimal("100") + Decimal((hour * 7) % 13) / Decimal("10")


def cycling_rates(count: int, offset: int = 0) -> list[Decimal]:
    """Funding rates that rise and then collapse, so sharp declines recur."""
    cycle = [
        Decimal("0.0001"),
        Decimal("0.00015"),
        Decimal("0.0002"),
        Decimal("0.00025"),
        Decimal("0.0003"),
        Decimal("0.00012"),
        Decimal("0.00005"),
    ]
    return [cycle[(i + offset) % len(cycle)] for i in range(count)]


@pytest.fixture
def make_dataset() -> Callable[..., HistoricalDataSet]:
    """Factory for synthetic datasets (see build_dataset)."""
    return build_dataset


@pytest.fixture
def price_fn() -> PriceFn:
    return wavy_price


@pytest.fixture
def make_rates() -> Callable[..., list[Decimal]]:
    return cycling_rates


@pytest.fixture
def fee_settings() -> FeeSettings:
    """Default Non-VIP fee settings."""
    return FeeSettings()


@pytest.fixture
def signal_settings() -> SignalSettings:
    return SignalSettings()


@pytest.fixture
def ml_settings() -> MLSettings:
    return MLSettings()
