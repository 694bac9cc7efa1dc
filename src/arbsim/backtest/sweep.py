"""Parameter sweep engine for grid search over backtest configurations.

Generates all combinations of parameter values via itertools.product,
runs a backtest for each, and returns a SweepResult with summaries.

Memory management: Only the best result (highest total return) retains its
full equity curve and positions. All other results keep their summary and
per-symbol/per-month statistics only.

CRITICAL: All monetary values use Decimal. Never use float for prices, quantities, or fees.
"""

from collections.abc import Callable
from decimal import Decimal
from itertools import product

from arbsim.backtest.models import CONFIG_FIELDS, BacktestConfig, BacktestResult, SweepResult
from arbsim.backtest.runner import run_backtest
from arbsim.config import BacktestSettings, FeeSettings, MLSettings, SignalSettings
from arbsim.data.store import HistoricalDataStore
from arbsim.exceptions import ConfigValidationError
from arbsim.logging import get_logger, run_context

logger = get_logger(__name__)

# Fields that identify the run rather than tune it
FIXED_FIELDS = frozenset({"start_ms", "end_ms"})


class ParameterSweep:
    """Grid search engine for parameter optimization.

    Args:
        store: Cached historical datasets shared by every run.
        fee_settings: Fee rates. Defaults to Non-VIP taker rates.
        backtest_settings: Warmup and tolerance defaults.
        signal_settings: Heuristic signal thresholds.
        ml_settings: Learned tier settings.
    """

    def __init__(
        self,
        store: HistoricalDataStore,
        fee_settings: FeeSettings | None = None,
        backtest_settings: BacktestSettings | None = None,
        signal_settings: SignalSettings | None = None,
        ml_settings: MLSettings | None = None,
    ) -> None:
        self._store = store
        self._fee_settings = fee_settings
        self._backtest_settings = backtest_settings
        self._signal_settings = signal_settings
        self._ml_settings = ml_settings

    def run(
        self,
        base_config: BacktestConfig,
        param_grid: dict[str, list],
        progress_callback: Callable | None = None,
    ) -> SweepResult:
        """Run backtests for all parameter combinations in the grid.

        Args:
            base_config: Base configuration to override with each combination.
            param_grid: Dict mapping BacktestConfig field names to value lists.
            progress_callback: Optional callback(current_index, total, params, result).

        Returns:
            SweepResult with every combination in grid order.

        Raises:
            ConfigValidationError: If a key is not a tunable BacktestConfig
                field or a value list is empty.
        """
        for key, values in param_grid.items():
            if key not in CONFIG_FIELDS or key in FIXED_FIELDS:
                raise ConfigValidationError(
                    f"Invalid parameter '{key}': not a tunable BacktestConfig field"
                )
            if not values:
                raise ConfigValidationError(f"Parameter '{key}' has no values")

        keys = list(param_grid.keys())
        combinations = list(product(*param_grid.values()))
        total = len(combinations)

        logger.info("sweep_starting", parameters=keys, total_combinations=total)

        results: list[tuple[dict, BacktestResult]] = []
        best_return: Decimal | None = None
        best_index = -1

        for idx, combo in enumerate(combinations):
            params = dict(zip(keys, combo))

            converted: dict[str, object] = {}
            for k, v in params.items():
                if isinstance(getattr(base_config, k), Decimal) and not isinstance(v, Decimal):
                    converted[k] = Decimal(str(v))
                else:
                    converted[k] = v

            config = base_config.with_overrides(**converted)
            with run_context(sweep_index=idx + 1, sweep_total=total):
                result = run_backtest(
                    config,
                    self._store,
                    self._fee_settings,
                    self._backtest_settings,
                    self._signal_settings,
                    self._ml_settings,
                )

            total_return = result.summary.total_return
            if best_return is None or total_return > best_return:
                if best_index >= 0:
                    prev_params, prev = results[best_index]
                    results[best_index] = (prev_params, prev.without_detail())
                best_return = total_return
                best_index = len(results)
                results.append((params, result))
            else:
                results.append((params, result.without_detail()))

            if progress_callback is not None:
                progress_callback(idx + 1, total, params, result)

            logger.debug(
                "sweep_run_complete",
                index=idx + 1,
                total=total,
                params={k: str(v) for k, v in params.items()},
                total_return=str(total_return),
            )

        logger.info(
            "sweep_complete",
            total_combinations=total,
            best_return=str(best_return) if best_return is not None else None,
        )

        return SweepResult(param_grid=param_grid, results=results)

    @staticmethod
    def generate_default_grid(use_ml_signals: bool = False) -> dict[str, list]:
        """Default grid over entry threshold and sizing.

        With ML signals the risk threshold is swept instead of the
        concurrency limit.
        """
        grid: dict[str, list] = {
            "min_apr": [Decimal("5"), Decimal("8"), Decimal("10"), Decimal("15")],
            "position_size_percent": [Decimal("10"), Decimal("20"), Decimal("30")],
        }
        if use_ml_signals:
            grid["risk_threshold"] = [Decimal("0.4"), Decimal("0.6"), Decimal("0.8")]
        else:
            grid["max_concurrent_positions"] = [3, 5]
        return grid


def _fmt_param(value: object) -> str:
    return str(value) if value is not None else "-"


def _tier_label(result: BacktestResult) -> str:
    status = result.signal_status
    if status is None:
        return "-"
    return f"{status.tier.value}*" if status.degraded else status.tier.value


def format_sweep_summary(sweep_result: SweepResult) -> str:
    """Render sweep results as a fixed-width text table, best total return first.

    The tier column shows which signal tier ran; a trailing "*" marks a
    learned tier that degraded to heuristic scoring.
    """
    if not sweep_result.results:
        return "No sweep results to display."

    ranked = sorted(
        sweep_result.results,
        key=lambda item: item[1].summary.total_return,
        reverse=True,
    )
    names = list(sweep_result.param_grid)
    width = max([len(n) for n in names] + [10])

    columns = [f"{n:>{width}}" for n in names] + [
        f"{'Return %':>9}",
        f"{'Final':>12}",
        f"{'Trades':>6}",
        f"{'Win %':>7}",
        f"{'MaxDD %':>8}",
        f"{'Sharpe':>8}",
        f"{'Tier':>10}",
    ]
    header = " | ".join(columns)
    rule = "=" * len(header)

    out = [rule, "PARAMETER SWEEP RESULTS", rule]
    out.append(f"Total combinations: {len(ranked)}")
    out.append("")
    out.append(header)
    out.append("-" * len(header))

    for position, (params, result) in enumerate(ranked):
        s = result.summary
        sharpe = f"{s.sharpe_ratio:.2f}" if s.sharpe_ratio is not None else "N/A"
        cells = [f"{_fmt_param(params.get(n)):>{width}}" for n in names] + [
            f"{s.total_return:>9.2f}",
            f"{s.final_capital:>12.2f}",
            f"{s.number_of_trades:>6d}",
            f"{s.win_rate:>7.2f}",
            f"{s.max_drawdown:>8.2f}",
            f"{sharpe:>8}",
            f"{_tier_label(result):>10}",
        ]
        line = " | ".join(cells)
        out.append(f"{line}  <-- BEST" if position == 0 else line)

    best_params, best = ranked[0]
    out.append("")
    out.append(rule)
    out.append("BEST PARAMETERS:")
    out.extend(f"  {n}: {_fmt_param(best_params.get(n))}" for n in names)
    out.append(
        f"  Return {best.summary.total_return}% over {best.summary.total_days} days, "
        f"{best.summary.number_of_trades} trades, "
        f"max drawdown {best.summary.max_drawdown}%"
    )
    out.append(rule)
    return "\n".join(out)
