"""Sorted time series with O(log n) as-of lookups.

Wraps a pre-sorted tuple of records (anything with a `timestamp_ms`) and a
parallel list of timestamps searched with bisect, so every point-in-time query
costs a binary search instead of a scan.
"""

from bisect import bisect_left, bisect_right
from collections.abc import Iterator, Sequence
from typing import Generic, Protocol, TypeVar


class _Timestamped(Protocol):
    @property
    def timestamp_ms(self) -> int: ...


T = TypeVar("T", bound=_Timestamped)


class TimeSeries(Generic[T]):
    """Immutable, timestamp-indexed view over sorted records.

    Args:
        records: Records sorted ascending by timestamp_ms without duplicates.
    """

    def __init__(self, records: Sequence[T]) -> None:
        self._records: tuple[T, ...] = tuple(records)
        self._timestamps: list[int] = [r.timestamp_ms for r in self._records]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[T]:
        return iter(self._records)

    def __getitem__(self, index: int) -> T:
        return self._records[index]

    @property
    def records(self) -> tuple[T, ...]:
        return self._records

    @property
    def timestamps(self) -> list[int]:
        return self._timestamps

    def count_until(self, timestamp_ms: int) -> int:
        """Number of records with timestamp <= timestamp_ms."""
        return bisect_right(self._timestamps, timestamp_ms)

    def count_before(self, timestamp_ms: int) -> int:
        """Number of records with timestamp < timestamp_ms."""
        return bisect_left(self._timestamps, timestamp_ms)

    def as_of(self, timestamp_ms: int) -> T | None:
        """Last record at or before timestamp_ms, or None if it precedes the series."""
        idx = self.count_until(timestamp_ms)
        if idx == 0:
            return None
        return self._records[idx - 1]

    def before(self, timestamp_ms: int) -> T | None:
        """Last record strictly before timestamp_ms."""
        idx = self.count_before(timestamp_ms)
        if idx == 0:
            return None
        return self._records[idx - 1]

    def until(self, timestamp_ms: int) -> tuple[T, ...]:
        """All records at or before timestamp_ms."""
        return self._records[: self.count_until(timestamp_ms)]

    def trailing(self, timestamp_ms: int, count: int) -> tuple[T, ...]:
        """The last `count` records at or before timestamp_ms (fewer if not available)."""
        end = self.count_until(timestamp_ms)
        return self._records[max(0, end - count):end]

    def between(self, start_ms: int, end_ms: int) -> tuple[T, ...]:
        """Records with start_ms <= timestamp <= end_ms."""
        lo = bisect_left(self._timestamps, start_ms)
        hi = bisect_right(self._timestamps, end_ms)
        return self._records[lo:hi]
