"""High-level entry points for running backtests.

Provides run_backtest() for single backtest execution against a
HistoricalDataStore, run_backtest_from_dates() for date-string input, and
run_comparison() for a heuristic vs. learned side-by-side run on the same
window.
"""

import time
from datetime import datetime, timezone

from arbsim.backtest.engine import BacktestEngine
from arbsim.backtest.models import BacktestConfig, BacktestResult
from arbsim.config import BacktestSettings, FeeSettings, MLSettings, SignalSettings
from arbsim.data.store import HistoricalDataStore
from arbsim.funding import DAY_MS, HOUR_MS
from arbsim.logging import get_logger, run_context

logger = get_logger(__name__)


def history_lookback_ms(
    config: BacktestConfig,
    backtest_settings: BacktestSettings,
    ml_settings: MLSettings,
) -> int:
    """History to load ahead of config.start_ms.

    The learned tier trains on training_lookback_days before the window and
    its earliest samples still need warmup history for their own features.
    """
    warmup_ms = backtest_settings.warmup_hours * HOUR_MS
    if config.use_ml_signals:
        return ml_settings.training_lookback_days * DAY_MS + warmup_ms
    return warmup_ms


def run_backtest(
    config: BacktestConfig,
    store: HistoricalDataStore,
    fee_settings: FeeSettings | None = None,
    backtest_settings: BacktestSettings | None = None,
    signal_settings: SignalSettings | None = None,
    ml_settings: MLSettings | None = None,
) -> BacktestResult:
    """Run a single backtest with the given configuration.

    Loads the window plus trailing history from the store, creates the
    engine, runs it and returns the result.

    Args:
        config: Backtest configuration (window, capital, limits, signals).
        store: Cached historical datasets.
        fee_settings: Fee rates. Defaults to Non-VIP taker rates.
        backtest_settings: Warmup and tolerance defaults.
        signal_settings: Heuristic signal thresholds.
        ml_settings: Learned tier settings.

    Returns:
        BacktestResult with equity curve, positions and summary.

    Raises:
        ConfigValidationError: If the configuration is invalid.
        DataNotFoundError: If no cached dataset covers the window.
    """
    if fee_settings is None:
        fee_settings = FeeSettings()
    if backtest_settings is None:
        backtest_settings = BacktestSettings()
    if ml_settings is None:
        ml_settings = MLSettings()

    config.validate()
    start_time = time.monotonic()
    lookback_ms = history_lookback_ms(config, backtest_settings, ml_settings)

    logger.info(
        "run_backtest_starting",
        start_ms=config.start_ms,
        end_ms=config.end_ms,
        use_ml_signals=config.use_ml_signals,
        lookback_hours=lookback_ms // HOUR_MS,
    )

    dataset = store.load_range(config.start_ms, config.end_ms, lookback_ms)
    engine = BacktestEngine(
        config=config,
        dataset=dataset,
        fee_settings=fee_settings,
        signal_settings=signal_settings,
        ml_settings=ml_settings,
    )
    result = engine.run()

    elapsed = time.monotonic() - start_time

    logger.info(
        "run_backtest_complete",
        total_trades=result.summary.number_of_trades,
        total_return=str(result.summary.total_return),
        equity_points=len(result.equity_curve),
        elapsed_seconds=round(elapsed, 2),
    )

    return result


def date_to_ms(value: str) -> int:
    """'YYYY-MM-DD' (UTC midnight) or a full ISO 8601 timestamp to epoch ms."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def run_backtest_from_dates(
    start_date: str,
    end_date: str,
    store: HistoricalDataStore,
    **overrides: object,
) -> BacktestResult:
    """Convenience entry point taking date strings.

    Args:
        start_date: Start as "YYYY-MM-DD" or ISO timestamp (UTC when naive).
        end_date: End as "YYYY-MM-DD" or ISO timestamp (UTC when naive).
        store: Cached historical datasets.
        **overrides: BacktestConfig fields (e.g. min_apr, use_ml_signals).
            Fields not given come from BacktestSettings.

    Returns:
        BacktestResult for the window.
    """
    backtest_settings = BacktestSettings()
    config = BacktestConfig.from_settings(
        date_to_ms(start_date),
        date_to_ms(end_date),
        backtest_settings,
        **overrides,
    )
    result = run_backtest(config, store, backtest_settings=backtest_settings)

    s = result.summary
    logger.info(
        "backtest_cli_summary",
        start_date=start_date,
        end_date=end_date,
        trades=s.number_of_trades,
        total_return=str(s.total_return),
        win_rate=str(s.win_rate),
        max_drawdown=str(s.max_drawdown),
        sharpe=str(s.sharpe_ratio) if s.sharpe_ratio is not None else "N/A",
    )
    return result


def run_comparison(
    config: BacktestConfig,
    store: HistoricalDataStore,
    fee_settings: FeeSettings | None = None,
    backtest_settings: BacktestSettings | None = None,
    signal_settings: SignalSettings | None = None,
    ml_settings: MLSettings | None = None,
) -> tuple[BacktestResult, BacktestResult]:
    """Run the heuristic and the learned tier on the same window.

    Both runs share every config field except use_ml_signals.

    Returns:
        Tuple of (heuristic_result, learned_result).
    """
    heuristic_config = config.with_overrides(use_ml_signals=False)
    learned_config = config.with_overrides(use_ml_signals=True)

    logger.info(
        "run_comparison_starting",
        start_ms=config.start_ms,
        end_ms=config.end_ms,
    )
    start_time = time.monotonic()

    with run_context(comparison_leg="heuristic"):
        heuristic_result = run_backtest(
            heuristic_config, store, fee_settings, backtest_settings, signal_settings, ml_settings
        )
    with run_context(comparison_leg="learned"):
        learned_result = run_backtest(
            learned_config, store, fee_settings, backtest_settings, signal_settings, ml_settings
        )

    elapsed = time.monotonic() - start_time
    status = learned_result.signal_status

    logger.info(
        "run_comparison_complete",
        heuristic_trades=heuristic_result.summary.number_of_trades,
        heuristic_return=str(heuristic_result.summary.total_return),
        learned_trades=learned_result.summary.number_of_trades,
        learned_return=str(learned_result.summary.total_return),
        learned_degraded=status.degraded if status is not None else None,
        elapsed_seconds=round(elapsed, 2),
    )

    return heuristic_result, learned_result
