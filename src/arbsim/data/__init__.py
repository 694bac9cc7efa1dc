"""Historical data package.

Provides validated dataset models, the cache-backed data store with range
extraction, sorted time series with as-of lookups, and the point-in-time view
used by the backtest engine.
"""

from arbsim.data.models import Candle, DataSetMetadata, FundingRateRecord, HistoricalDataSet
from arbsim.data.series import TimeSeries
from arbsim.data.store import HistoricalDataStore, extract_range
from arbsim.data.view import HistoricalDataView

__all__ = [
    "Candle",
    "DataSetMetadata",
    "FundingRateRecord",
    "HistoricalDataSet",
    "HistoricalDataStore",
    "HistoricalDataView",
    "TimeSeries",
    "extract_range",
]
