"""Entry and exit decision rules.

Entry: a symbol qualifies when its current APR is at least min_apr and it has
no open position. When ML signals or filters are enabled the candidate's
signal must also pass them. Qualifying candidates are admitted in order of
APR descending (symbol ascending on ties) while slots and cash remain.

Exit, checked in order:
  1. NEGATIVE_RATE  current rate < 0 (when exit_on_negative_rate)
  2. APR_DECAY      current APR < min_apr / 2
  3. SIGNAL_EXIT    ML signals enabled and the exit signal says exit_now
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from arbsim.portfolio.models import ExitReason
from arbsim.signals.models import MomentumTrend, Recommendation, Signal

if TYPE_CHECKING:
    from arbsim.backtest.models import BacktestConfig


@dataclass(frozen=True)
class EntryCandidate:
    """A symbol eligible for entry at one tick."""

    symbol: str
    rate: Decimal
    apr: Decimal
    spot_price: Decimal
    perp_price: Decimal
    signal: Signal | None = None


def rank_candidates(candidates: list[EntryCandidate]) -> list[EntryCandidate]:
    """Highest APR first; equal APRs ordered by symbol ascending."""
    return sorted(candidates, key=lambda c: (-c.apr, c.symbol))


def needs_entry_signal(config: BacktestConfig) -> bool:
    return (
        config.use_ml_signals
        or config.volatility_filter_enabled
        or config.momentum_filter_enabled
    )


def meets_min_apr(apr: Decimal, config: BacktestConfig) -> bool:
    return apr >= config.min_apr


def entry_rejection(signal: Signal | None, config: BacktestConfig) -> str | None:
    """Why a signal blocks entry, or None when it passes every enabled filter."""
    if not needs_entry_signal(config):
        return None
    if signal is None:
        return "no_signal"
    if config.use_ml_signals:
        if signal.recommendation != Recommendation.ENTER:
            return f"recommendation_{signal.recommendation.value}"
        if Decimal(str(signal.risk_score)) > config.risk_threshold:
            return "risk_above_threshold"
    if config.volatility_filter_enabled and not signal.volatility.is_low_vol:
        return "high_volatility"
    if config.momentum_filter_enabled and signal.momentum.trend == MomentumTrend.DECLINING:
        return "declining_momentum"
    return None


def exit_reason(
    rate: Decimal,
    apr: Decimal,
    config: BacktestConfig,
    signal: Signal | None = None,
) -> ExitReason | None:
    """First exit condition met for an open position, or None to keep holding."""
    if config.exit_on_negative_rate and rate < 0:
        return ExitReason.NEGATIVE_RATE
    if apr < config.min_apr / Decimal("2"):
        return ExitReason.APR_DECAY
    if (
        config.use_ml_signals
        and signal is not None
        and signal.recommendation == Recommendation.EXIT_NOW
    ):
        return ExitReason.SIGNAL_EXIT
    return None
