"""Performance metrics for completed backtests.

Pure Decimal analytics over the equity curve and closed positions: total
return, win rate, max drawdown, Sharpe ratio, per-symbol and per-month
breakdowns, and entry signal accuracy. Percentages are quantized to two
decimal places with ROUND_HALF_UP.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from arbsim.analytics.models import (
    BacktestSummary,
    EquityPoint,
    MonthlyStats,
    SignalAccuracy,
    SymbolStats,
)
from arbsim.funding import DAY_MS
from arbsim.portfolio.models import Position

if TYPE_CHECKING:
    from arbsim.backtest.models import BacktestConfig

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


def _pct(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def total_return_pct(initial: Decimal, final: Decimal) -> Decimal:
    """(final - initial) / initial * 100, 2dp."""
    if initial == 0:
        return _pct(ZERO)
    return _pct((final - initial) / initial * HUNDRED)


def win_rate_pct(positions: Sequence[Position]) -> Decimal:
    """Share of positions with positive realized P&L, in percent (0 when empty)."""
    if not positions:
        return _pct(ZERO)
    wins = sum(1 for p in positions if p.is_win)
    return _pct(Decimal(wins) / Decimal(len(positions)) * HUNDRED)


def max_drawdown_pct(equity_curve: Sequence[EquityPoint], initial: Decimal | None = None) -> Decimal:
    """Largest peak-to-trough decline of the equity curve, in percent (0-100).

    Args:
        equity_curve: Equity points in time order.
        initial: Starting equity, used as the first peak when given.
    """
    peak = initial
    max_dd = ZERO
    for point in equity_curve:
        if peak is None or point.equity > peak:
            peak = point.equity
        if peak > 0:
            dd = (peak - point.equity) / peak
            if dd > max_dd:
                max_dd = dd
    return _pct(min(max_dd, Decimal("1")) * HUNDRED)


def sharpe_ratio(
    equity_curve: Sequence[EquityPoint],
    periods_per_year: int = 1095,
) -> Decimal | None:
    """Annualized Sharpe ratio of per-tick equity returns (risk-free 0).

    Sharpe = mean / sample_std * sqrt(periods_per_year). Default 1095 =
    3 settlements/day * 365.

    Returns:
        Sharpe ratio, or None with fewer than 2 returns or zero std dev.
    """
    returns = [
        (curr.equity - prev.equity) / prev.equity
        for prev, curr in zip(equity_curve, equity_curve[1:])
        if prev.equity != 0
    ]
    if len(returns) < 2:
        return None

    n = Decimal(len(returns))
    mean = sum(returns, ZERO) / n
    variance = sum((r - mean) ** 2 for r in returns) / (n - Decimal("1"))
    std_dev = variance.sqrt()
    if std_dev == 0:
        return None
    sharpe = mean / std_dev * Decimal(periods_per_year).sqrt()
    return sharpe.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


def total_days(start_ms: int, end_ms: int) -> int:
    return math.ceil((end_ms - start_ms) / DAY_MS)


def summarize(
    equity_curve: Sequence[EquityPoint],
    positions: Sequence[Position],
    config: BacktestConfig,
) -> BacktestSummary:
    """Build the run summary from the equity curve and closed positions."""
    initial = config.initial_capital
    final = equity_curve[-1].equity if equity_curve else initial
    periods_per_year = 365 * 24 // config.funding_interval_hours

    return BacktestSummary(
        initial_capital=initial,
        final_capital=final,
        total_return=total_return_pct(initial, final),
        total_return_dollars=final - initial,
        number_of_trades=len(positions),
        winning_trades=sum(1 for p in positions if p.is_win),
        win_rate=win_rate_pct(positions),
        max_drawdown=max_drawdown_pct(equity_curve, initial),
        total_days=total_days(config.start_ms, config.end_ms),
        total_funding=sum((p.total_funding for p in positions), ZERO),
        total_fees=sum((p.total_fees for p in positions), ZERO),
        sharpe_ratio=sharpe_ratio(equity_curve, periods_per_year),
    )


def symbol_stats(positions: Sequence[Position]) -> list[SymbolStats]:
    """Per-symbol statistics, sorted by symbol."""
    grouped: dict[str, list[Position]] = defaultdict(list)
    for position in positions:
        grouped[position.symbol].append(position)

    stats: list[SymbolStats] = []
    for symbol in sorted(grouped):
        group = grouped[symbol]
        n = Decimal(len(group))
        total_pnl = sum((p.realized_pnl for p in group), ZERO)
        holding = sum((p.holding_period_hours or ZERO for p in group), ZERO)
        stats.append(
            SymbolStats(
                symbol=symbol,
                trades=len(group),
                total_pnl=total_pnl,
                avg_pnl=total_pnl / n,
                win_rate=win_rate_pct(group),
                avg_entry_apr=sum((p.entry_apr for p in group), ZERO) / n,
                avg_holding_hours=holding / n,
                total_funding=sum((p.total_funding for p in group), ZERO),
            )
        )
    return stats


def _month(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).strftime("%Y-%m")


def monthly_stats(
    positions: Sequence[Position],
    equity_curve: Sequence[EquityPoint],
    initial_capital: Decimal,
) -> list[MonthlyStats]:
    """Closed positions grouped by exit month.

    Monthly return is the month's realized profit relative to equity at the
    first equity point of that month (initial capital if there is none).
    """
    grouped: dict[str, list[Position]] = defaultdict(list)
    for position in positions:
        if position.exit_time_ms is not None:
            grouped[_month(position.exit_time_ms)].append(position)

    month_open: dict[str, Decimal] = {}
    for point in equity_curve:
        month_open.setdefault(_month(point.timestamp_ms), point.equity)

    stats: list[MonthlyStats] = []
    for month in sorted(grouped):
        group = grouped[month]
        profit = sum((p.realized_pnl for p in group), ZERO)
        base = month_open.get(month, initial_capital)
        stats.append(
            MonthlyStats(
                month=month,
                trades=len(group),
                profit=profit,
                return_pct=_pct(profit / base * HUNDRED) if base else _pct(ZERO),
                win_rate=win_rate_pct(group),
            )
        )
    return stats


def signal_accuracy(positions: Sequence[Position]) -> SignalAccuracy | None:
    """Directional accuracy of entry signals; None when no position carried one."""
    scored = [p for p in positions if p.entry_signal is not None]
    if not scored:
        return None
    correct = sum(1 for p in scored if p.entry_signal.will_decline != p.is_win)
    return SignalAccuracy(
        evaluated=len(scored),
        correct=correct,
        accuracy=_pct(Decimal(correct) / Decimal(len(scored)) * HUNDRED),
    )
