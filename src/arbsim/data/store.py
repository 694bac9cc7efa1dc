"""Historical data store backed by cached JSON dataset files.

Cached files are supersets fetched by an external tool and named
`cache_{start}_to_{end}.json`. A backtest window is served from the narrowest
cached dataset that covers it (within a tolerance that absorbs small
fetch-boundary drift) by extracting a time-filtered subset.

The store is passed explicitly to the runner and engine; there is no module
level cache.
"""

import json
from collections.abc import Iterable
from pathlib import Path

from arbsim.config import BacktestSettings
from arbsim.data.models import DataSetMetadata, HistoricalDataSet
from arbsim.data.series import TimeSeries
from arbsim.exceptions import DataNotFoundError, DataValidationError
from arbsim.funding import HOUR_MS
from arbsim.logging import get_logger

logger = get_logger(__name__)

CACHE_GLOB = "cache_*.json"


def _filter(by_symbol: dict, start_ms: int, end_ms: int) -> dict:
    filtered = {}
    for symbol, series in sorted(by_symbol.items()):
        subset = TimeSeries(series).between(start_ms, end_ms)
        if subset:
            filtered[symbol] = subset
    return filtered


def extract_range(
    dataset: HistoricalDataSet,
    start_ms: int,
    end_ms: int,
    tolerance_ms: int = 0,
) -> HistoricalDataSet:
    """Return a new dataset restricted to timestamps in [start_ms, end_ms].

    Order is preserved and series left empty by the filter are dropped.

    Args:
        dataset: Source dataset (usually a cached superset).
        start_ms: Window start (inclusive).
        end_ms: Window end (inclusive).
        tolerance_ms: How far the window may exceed the dataset's range.

    Returns:
        Filtered HistoricalDataSet whose metadata reports the requested window.

    Raises:
        ValueError: If start_ms > end_ms.
        DataNotFoundError: If the dataset does not cover the window.
    """
    if start_ms > end_ms:
        raise ValueError(f"start_ms {start_ms} is after end_ms {end_ms}")

    meta = dataset.metadata
    if not meta.covers(start_ms, end_ms, tolerance_ms):
        raise DataNotFoundError(
            f"Dataset range [{meta.start_ms}, {meta.end_ms}] does not cover "
            f"[{start_ms}, {end_ms}] (tolerance {tolerance_ms} ms)"
        )

    funding_rates = _filter(dict(dataset.funding_rates), start_ms, end_ms)
    return HistoricalDataSet(
        funding_rates=funding_rates,
        spot_candles=_filter(dict(dataset.spot_candles), start_ms, end_ms),
        perp_candles=_filter(dict(dataset.perp_candles), start_ms, end_ms),
        metadata=DataSetMetadata(
            start_ms=start_ms,
            end_ms=end_ms,
            symbols=tuple(funding_rates),
            fetched_at_ms=meta.fetched_at_ms,
        ),
    )


def cache_file_name(start_ms: int, end_ms: int) -> str:
    """File name used for a cached dataset covering [start_ms, end_ms]."""
    return f"cache_{start_ms}_to_{end_ms}.json"


class HistoricalDataStore:
    """In-memory collection of cached datasets answering range queries.

    Args:
        datasets: Cached superset datasets.
        tolerance_hours: Allowed drift between a requested window and a
            cached range before the cache is considered not covering.
            Defaults to BacktestSettings.data_tolerance_hours.
    """

    def __init__(
        self,
        datasets: Iterable[HistoricalDataSet] = (),
        tolerance_hours: int | None = None,
    ) -> None:
        if tolerance_hours is None:
            tolerance_hours = BacktestSettings().data_tolerance_hours
        self._datasets: list[HistoricalDataSet] = list(datasets)
        self._tolerance_ms = tolerance_hours * HOUR_MS

    @property
    def tolerance_ms(self) -> int:
        return self._tolerance_ms

    @classmethod
    def from_directory(
        cls,
        directory: str | Path | None = None,
        tolerance_hours: int | None = None,
    ) -> "HistoricalDataStore":
        """Load every `cache_*.json` file in a directory.

        The directory defaults to BacktestSettings.cache_dir.

        Files that fail validation are logged and skipped so one corrupt cache
        does not hide the others.

        Raises:
            DataNotFoundError: If the directory does not exist.
        """
        if directory is None:
            directory = BacktestSettings().cache_dir
        path = Path(directory)
        if not path.is_dir():
            raise DataNotFoundError(f"Cache directory not found: {path}")

        store = cls(tolerance_hours=tolerance_hours)
        for file in sorted(path.glob(CACHE_GLOB)):
            try:
                payload = json.loads(file.read_text(encoding="utf-8"))
                dataset = HistoricalDataSet.from_dict(payload)
            except (OSError, json.JSONDecodeError, DataValidationError) as e:
                logger.warning("cache_file_invalid", file=str(file), error=str(e))
                continue
            store.add(dataset)
            logger.debug(
                "cache_file_loaded",
                file=str(file),
                start_ms=dataset.metadata.start_ms,
                end_ms=dataset.metadata.end_ms,
                symbols=len(dataset.symbols),
            )

        logger.info("data_store_loaded", directory=str(path), datasets=len(store))
        return store

    def __len__(self) -> int:
        return len(self._datasets)

    def add(self, dataset: HistoricalDataSet) -> None:
        """Register a dataset with the store."""
        self._datasets.append(dataset)

    def cached_ranges(self) -> list[DataSetMetadata]:
        """Metadata of every cached dataset, ordered by start time."""
        return sorted(
            (d.metadata for d in self._datasets),
            key=lambda m: (m.start_ms, m.end_ms),
        )

    def find_covering(self, start_ms: int, end_ms: int) -> HistoricalDataSet | None:
        """Narrowest cached dataset covering [start_ms, end_ms], or None."""
        covering = [
            d for d in self._datasets
            if d.metadata.covers(start_ms, end_ms, self._tolerance_ms)
        ]
        if not covering:
            return None
        return min(
            covering,
            key=lambda d: (
                d.metadata.end_ms - d.metadata.start_ms,
                d.metadata.start_ms,
            ),
        )

    def load_range(
        self,
        start_ms: int,
        end_ms: int,
        lookback_ms: int = 0,
    ) -> HistoricalDataSet:
        """Return the data for a backtest window plus trailing history.

        The window [start_ms, end_ms] must be covered by a cached dataset;
        the lookback is clipped to whatever history that dataset holds.

        Args:
            start_ms: Evaluation window start.
            end_ms: Evaluation window end.
            lookback_ms: Extra history to include before start_ms for
                feature warmup and model training.

        Returns:
            Subset dataset spanning [max(cache_start, start - lookback), end].

        Raises:
            DataNotFoundError: If no cached dataset covers the window.
        """
        dataset = self.find_covering(start_ms, end_ms)
        if dataset is None:
            logger.warning(
                "no_covering_cache",
                start_ms=start_ms,
                end_ms=end_ms,
                cached=len(self._datasets),
            )
            raise DataNotFoundError(
                f"No cached dataset covers [{start_ms}, {end_ms}]"
            )

        load_start = min(
            start_ms, max(dataset.metadata.start_ms, start_ms - lookback_ms)
        )
        subset = extract_range(dataset, load_start, end_ms, self._tolerance_ms)
        logger.debug(
            "data_range_loaded",
            start_ms=load_start,
            end_ms=end_ms,
            symbols=len(subset.symbols),
            **subset.record_count(),
        )
        return subset

    def save(self, dataset: HistoricalDataSet, directory: str | Path) -> Path:
        """Write a dataset as a cache file and register it with the store."""
        path = Path(directory)
        path.mkdir(parents=True, exist_ok=True)
        file = path / cache_file_name(dataset.metadata.start_ms, dataset.metadata.end_ms)
        file.write_text(json.dumps(dataset.to_dict(), indent=2), encoding="utf-8")
        self.add(dataset)
        logger.info("cache_file_saved", file=str(file), symbols=len(dataset.symbols))
        return file
