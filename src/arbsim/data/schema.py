"""Wire schema for cached historical data files.

Cache files are produced by an external fetcher and use camelCase keys:

    {
      "metadata": {"version": "1.0", "createdAt": ..., "dataRange": {"start": ..., "end": ...},
                   "symbols": [...]},
      "fundingRates": {"BTC/USDT:USDT": [{"timestamp": ..., "rate": 0.0001, "fundingTime": ...}]},
      "spotPrices": {"BTC/USDT:USDT": [{"timestamp": ..., "open": ..., "close": ..., ...}]},
      "perpPrices": {...}
    }

The pydantic models below validate that shape so untyped payloads never reach
the feature extractor; parse_dataset converts them into HistoricalDataSet.
"""

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from arbsim.data.models import Candle, DataSetMetadata, FundingRateRecord, HistoricalDataSet
from arbsim.exceptions import DataValidationError

CACHE_VERSION = "1.0"


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class FundingRatePayload(_Payload):
    timestamp: int
    rate: Decimal
    symbol: str | None = None
    funding_time: int | None = Field(default=None, alias="fundingTime")


class CandlePayload(_Payload):
    timestamp: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal = Field(gt=0)
    volume: Decimal = Decimal("0")


class DataRangePayload(_Payload):
    start: int
    end: int


class MetadataPayload(_Payload):
    version: str = CACHE_VERSION
    created_at: int = Field(default=0, alias="createdAt")
    data_range: DataRangePayload = Field(alias="dataRange")
    symbols: list[str] = Field(default_factory=list)
    record_count: dict[str, int] | None = Field(default=None, alias="recordCount")


class DataSetPayload(_Payload):
    metadata: MetadataPayload
    funding_rates: dict[str, list[FundingRatePayload]] = Field(alias="fundingRates")
    # older fetcher versions wrote spotCandles/perpCandles
    spot_prices: dict[str, list[CandlePayload]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("spotPrices", "spotCandles"),
        serialization_alias="spotPrices",
    )
    perp_prices: dict[str, list[CandlePayload]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("perpPrices", "perpCandles"),
        serialization_alias="perpPrices",
    )


def _candles(rows: list[CandlePayload]) -> tuple[Candle, ...]:
    return tuple(
        Candle(
            timestamp_ms=row.timestamp,
            open=row.open,
            high=row.high,
            low=row.low,
            close=row.close,
            volume=row.volume,
        )
        for row in rows
    )


def parse_dataset(payload: Mapping[str, Any]) -> HistoricalDataSet:
    """Validate a cache payload and build a typed HistoricalDataSet.

    Args:
        payload: Decoded JSON object.

    Returns:
        HistoricalDataSet with Decimal rates and prices.

    Raises:
        DataValidationError: If the payload shape is invalid or a series is
            unsorted or has duplicate timestamps.
    """
    try:
        parsed = DataSetPayload.model_validate(payload)
    except ValidationError as e:
        raise DataValidationError(f"Invalid dataset payload: {e}") from e

    funding_rates = {
        symbol: tuple(
            FundingRateRecord(
                symbol=symbol,
                timestamp_ms=row.timestamp,
                rate=row.rate,
                funding_time_ms=row.funding_time,
            )
            for row in rows
        )
        for symbol, rows in parsed.funding_rates.items()
    }

    meta = parsed.metadata
    metadata = DataSetMetadata(
        start_ms=meta.data_range.start,
        end_ms=meta.data_range.end,
        symbols=tuple(meta.symbols or sorted(funding_rates)),
        fetched_at_ms=meta.created_at,
    )

    return HistoricalDataSet(
        funding_rates=funding_rates,
        spot_candles={s: _candles(rows) for s, rows in parsed.spot_prices.items()},
        perp_candles={s: _candles(rows) for s, rows in parsed.perp_prices.items()},
        metadata=metadata,
    )


def _candle_payloads(candles: tuple[Candle, ...]) -> list[CandlePayload]:
    return [
        CandlePayload(
            timestamp=c.timestamp_ms,
            open=c.open,
            high=c.high,
            low=c.low,
            close=c.close,
            volume=c.volume,
        )
        for c in candles
    ]


def dump_dataset(dataset: HistoricalDataSet) -> dict:
    """Serialize a dataset to its camelCase cache form.

    Decimal values are emitted as strings so a save/load cycle is lossless.
    """
    payload = DataSetPayload(
        metadata=MetadataPayload(
            version=CACHE_VERSION,
            created_at=dataset.metadata.fetched_at_ms,
            data_range=DataRangePayload(
                start=dataset.metadata.start_ms,
                end=dataset.metadata.end_ms,
            ),
            symbols=list(dataset.metadata.symbols),
            record_count=dataset.record_count(),
        ),
        funding_rates={
            symbol: [
                FundingRatePayload(
                    timestamp=r.timestamp_ms,
                    rate=r.rate,
                    symbol=symbol,
                    funding_time=r.funding_time_ms,
                )
                for r in records
            ]
            for symbol, records in sorted(dataset.funding_rates.items())
        },
        spot_prices={
            s: _candle_payloads(c) for s, c in sorted(dataset.spot_candles.items())
        },
        perp_prices={
            s: _candle_payloads(c) for s, c in sorted(dataset.perp_candles.items())
        },
    )
    return payload.model_dump(mode="json", by_alias=True)
