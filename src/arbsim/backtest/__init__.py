"""Backtest engine package.

Provides the deterministic replay engine for funding rate arbitrage over
cached historical data, the store-backed runner entry points, and the
parameter sweep for grid search optimization.
"""

from arbsim.backtest.engine import BacktestEngine
from arbsim.backtest.models import (
    BacktestConfig,
    BacktestResult,
    BacktestSummary,
    EquityPoint,
    SweepResult,
)
from arbsim.backtest.runner import run_backtest, run_backtest_from_dates, run_comparison
from arbsim.backtest.sweep import ParameterSweep, format_sweep_summary

__all__ = [
    "BacktestConfig",
    "BacktestEngine",
    "BacktestResult",
    "BacktestSummary",
    "EquityPoint",
    "ParameterSweep",
    "SweepResult",
    "format_sweep_summary",
    "run_backtest",
    "run_backtest_from_dates",
    "run_comparison",
]
