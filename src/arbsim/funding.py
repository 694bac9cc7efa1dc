"""Funding rate conversions and settlement schedule helpers.

Funding is settled every `interval_hours` on UTC boundaries (00:00, 08:00,
16:00 for the common 8h cadence). A positive rate means longs pay shorts, so
the long spot / short perp position collects when the rate is positive.

All rate math uses Decimal.
"""

from decimal import Decimal

HOUR_MS = 3_600_000
DAY_MS = 24 * HOUR_MS
DAYS_PER_YEAR = Decimal("365")


def payments_per_day(interval_hours: int = 8) -> Decimal:
    """Number of funding settlements per day for the given interval."""
    if interval_hours <= 0:
        raise ValueError(f"interval_hours must be positive, got {interval_hours}")
    return Decimal(24) / Decimal(interval_hours)


def rate_to_apr(rate: Decimal, per_day: Decimal = Decimal("3")) -> Decimal:
    """Annualize a per-period funding rate as a percentage.

    APR = rate * payments_per_day * 365 * 100. Strictly increasing in rate
    for a fixed payments_per_day.
    """
    return rate * per_day * DAYS_PER_YEAR * Decimal("100")


def apr_to_rate(apr: Decimal, per_day: Decimal = Decimal("3")) -> Decimal:
    """Inverse of rate_to_apr."""
    return apr / (per_day * DAYS_PER_YEAR * Decimal("100"))


def generate_funding_timestamps(
    start_ms: int,
    end_ms: int,
    interval_hours: int = 8,
) -> list[int]:
    """Return interval-aligned settlement timestamps within [start_ms, end_ms].

    Args:
        start_ms: Window start (inclusive).
        end_ms: Window end (inclusive).
        interval_hours: Funding interval in hours.

    Returns:
        Ascending list of UTC-aligned settlement timestamps in milliseconds.
    """
    step = interval_hours * HOUR_MS
    first = -(-start_ms // step) * step  # ceil to the next boundary
    return list(range(first, end_ms + 1, step))
