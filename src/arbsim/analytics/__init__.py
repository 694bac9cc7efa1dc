"""Performance analytics for backtest results."""

from arbsim.analytics.metrics import (
    max_drawdown_pct,
    monthly_stats,
    sharpe_ratio,
    signal_accuracy,
    summarize,
    symbol_stats,
    total_return_pct,
    win_rate_pct,
)

__all__ = [
    "max_drawdown_pct",
    "monthly_stats",
    "sharpe_ratio",
    "signal_accuracy",
    "summarize",
    "symbol_stats",
    "total_return_pct",
    "win_rate_pct",
]
