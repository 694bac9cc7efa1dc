"""Data models for the backtest engine.

Defines the run configuration, the immutable result container for single
backtest runs, and the parameter sweep result. Equity curve and summary
statistics models live in arbsim.analytics.models and are re-exported here.

Serialized output uses camelCase keys (consumed by downstream report
renderers) and Decimals as strings, and is deterministic: identical inputs
produce byte-identical to_json() output.

CRITICAL: All monetary values use Decimal. Never use float for prices, quantities, or fees.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from decimal import Decimal

from arbsim.analytics.models import (
    BacktestSummary,
    EquityPoint,
    MonthlyStats,
    SignalAccuracy,
    SymbolStats,
)
from arbsim.config import BacktestSettings
from arbsim.exceptions import ConfigValidationError
from arbsim.portfolio.models import Position
from arbsim.signals.models import SignalStatus


@dataclass
class BacktestConfig:
    """Configuration for a single backtest run.

    Percent-valued fields (min_apr, position_size_percent) are in percent,
    e.g. min_apr=Decimal("8") means 8% APR.
    """

    # Required fields
    start_ms: int  # evaluation window start, inclusive
    end_ms: int  # evaluation window end, inclusive

    initial_capital: Decimal = Decimal("10000")
    min_apr: Decimal = Decimal("8")
    max_concurrent_positions: int = 5
    position_size_percent: Decimal = Decimal("20")

    # Signal layer
    use_ml_signals: bool = False
    risk_threshold: Decimal = Decimal("0.6")  # max signal risk score for ML entries
    volatility_filter_enabled: bool = False
    momentum_filter_enabled: bool = False

    exit_on_negative_rate: bool = True
    funding_interval_hours: int = 8

    # Optional symbol universe; None means every symbol in the dataset
    symbols: tuple[str, ...] | None = None

    @classmethod
    def from_settings(
        cls,
        start_ms: int,
        end_ms: int,
        settings: BacktestSettings | None = None,
        **overrides: object,
    ) -> BacktestConfig:
        """Build a config whose defaults come from BacktestSettings (BACKTEST_ env vars).

        Explicit overrides win over the settings.
        """
        if settings is None:
            settings = BacktestSettings()
        values: dict[str, object] = {
            "initial_capital": settings.default_initial_capital,
            "min_apr": settings.min_apr,
            "max_concurrent_positions": settings.max_concurrent_positions,
            "position_size_percent": settings.position_size_percent,
            "exit_on_negative_rate": settings.exit_on_negative_rate,
            "funding_interval_hours": settings.funding_interval_hours,
        }
        values.update(overrides)
        return cls(start_ms=start_ms, end_ms=end_ms, **values)

    def with_overrides(self, **kwargs: object) -> BacktestConfig:
        """Return a new BacktestConfig with specified fields overridden."""
        return replace(self, **kwargs)

    def validate(self) -> None:
        """Check the configuration before a run.

        Raises:
            ConfigValidationError: On an empty or inverted window, non-positive
                capital, or out-of-range limits.
        """
        if self.end_ms <= self.start_ms:
            raise ConfigValidationError(
                f"end_ms ({self.end_ms}) must be after start_ms ({self.start_ms})"
            )
        if self.initial_capital <= 0:
            raise ConfigValidationError(
                f"initial_capital must be positive, got {self.initial_capital}"
            )
        if self.min_apr < 0:
            raise ConfigValidationError(f"min_apr must be >= 0, got {self.min_apr}")
        if self.max_concurrent_positions < 1:
            raise ConfigValidationError(
                f"max_concurrent_positions must be >= 1, got {self.max_concurrent_positions}"
            )
        if not Decimal("0") < self.position_size_percent <= Decimal("100"):
            raise ConfigValidationError(
                f"position_size_percent must be in (0, 100], got {self.position_size_percent}"
            )
        if not Decimal("0") <= self.risk_threshold <= Decimal("1"):
            raise ConfigValidationError(
                f"risk_threshold must be in [0, 1], got {self.risk_threshold}"
            )
        if self.funding_interval_hours <= 0 or 24 % self.funding_interval_hours:
            raise ConfigValidationError(
                f"funding_interval_hours must divide 24, got {self.funding_interval_hours}"
            )
        if self.symbols is not None and not self.symbols:
            raise ConfigValidationError("symbols must be None or non-empty")

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output. Decimals as strings."""
        return {
            "startTime": self.start_ms,
            "endTime": self.end_ms,
            "initialCapital": str(self.initial_capital),
            "minAPR": str(self.min_apr),
            "maxConcurrentPositions": self.max_concurrent_positions,
            "positionSizePercent": str(self.position_size_percent),
            "useMLSignals": self.use_ml_signals,
            "riskThreshold": str(self.risk_threshold),
            "volatilityFilterEnabled": self.volatility_filter_enabled,
            "momentumFilterEnabled": self.momentum_filter_enabled,
            "exitOnNegativeRate": self.exit_on_negative_rate,
            "fundingIntervalHours": self.funding_interval_hours,
            "symbols": list(self.symbols) if self.symbols is not None else None,
        }


CONFIG_FIELDS = frozenset(f.name for f in fields(BacktestConfig))


@dataclass(frozen=True)
class BacktestResult:
    """Complete, immutable result of a single backtest run."""

    config: BacktestConfig
    summary: BacktestSummary
    equity_curve: tuple[EquityPoint, ...]
    positions: tuple[Position, ...]
    symbol_stats: tuple[SymbolStats, ...] = ()
    monthly_stats: tuple[MonthlyStats, ...] = ()
    signal_status: SignalStatus | None = None
    signal_accuracy: SignalAccuracy | None = None
    skipped: dict[str, int] = field(default_factory=dict)  # skip reason -> count

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output."""
        return {
            "config": self.config.to_dict(),
            "summary": self.summary.to_dict(),
            "equityCurve": [p.to_dict() for p in self.equity_curve],
            "positions": [p.to_dict() for p in self.positions],
            "symbolStats": [s.to_dict() for s in self.symbol_stats],
            "monthlyStats": [m.to_dict() for m in self.monthly_stats],
            "signalStatus": self.signal_status.to_dict() if self.signal_status else None,
            "signalAccuracy": (
                self.signal_accuracy.to_dict() if self.signal_accuracy else None
            ),
            "skipped": dict(sorted(self.skipped.items())),
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    def without_detail(self) -> BacktestResult:
        """Copy with the equity curve and positions dropped (summary kept)."""
        return replace(self, equity_curve=(), positions=())


@dataclass
class SweepResult:
    """Result of a parameter sweep across multiple backtest configurations.

    Attributes:
        param_grid: The parameter grid that was swept (param_name -> list of values).
        results: List of (param_combination_dict, BacktestResult) pairs. Only the
            best run keeps its equity curve and positions.
    """

    param_grid: dict[str, list]
    results: list[tuple[dict, BacktestResult]]

    @property
    def best(self) -> tuple[dict, BacktestResult] | None:
        if not self.results:
            return None
        return max(self.results, key=lambda r: r[1].summary.total_return)

    def to_dict(self) -> dict:
        return {
            "paramGrid": {
                k: [str(v) if isinstance(v, Decimal) else v for v in vals]
                for k, vals in self.param_grid.items()
            },
            "results": [
                {
                    "params": {
                        k: str(v) if isinstance(v, Decimal) else v
                        for k, v in params.items()
                    },
                    "summary": result.summary.to_dict(),
                }
                for params, result in self.results
            ],
        }
