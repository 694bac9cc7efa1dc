"""Core backtest engine with deterministic historical replay.

Walks interval-aligned funding timestamps between config.start_ms and
config.end_ms. Per tick, in fixed order:

  1. settle funding on every OPEN position (rate in force over the elapsed interval)
  2. evaluate and execute exits
  3. evaluate and execute entries (not on the final tick)
  4. record one EquityPoint

At the final tick every remaining OPEN position is force-closed at the last
available prices before the equity point is recorded.

No look-ahead: every query goes through HistoricalDataView with the tick
timestamp, and the learned signal tier trains only on data before start_ms.
No I/O, no retries. A failure for one symbol at one tick is logged and that
symbol is skipped for that tick only.

CRITICAL: All monetary values use Decimal. Never use float for prices, quantities, or fees.
CRITICAL: Never use time.time() -- always use simulated timestamps.
"""

from collections import Counter
from decimal import Decimal

from arbsim.analytics.metrics import monthly_stats, signal_accuracy, summarize, symbol_stats
from arbsim.backtest.models import BacktestConfig, BacktestResult, EquityPoint
from arbsim.config import FeeSettings, MLSettings, SignalSettings
from arbsim.data.models import HistoricalDataSet
from arbsim.data.view import HistoricalDataView
from arbsim.exceptions import (
    ConfigValidationError,
    InsufficientHistoryError,
    PositionStateError,
    PriceUnavailableError,
)
from arbsim.features.extractor import FeatureExtractor
from arbsim.funding import generate_funding_timestamps, payments_per_day, rate_to_apr
from arbsim.logging import get_logger
from arbsim.portfolio.fees import FeeCalculator
from arbsim.portfolio.manager import PortfolioManager
from arbsim.portfolio.models import ExitReason
from arbsim.portfolio.rules import (
    EntryCandidate,
    entry_rejection,
    exit_reason,
    meets_min_apr,
    needs_entry_signal,
    rank_candidates,
)
from arbsim.signals.base import SignalGenerator
from arbsim.signals.models import Signal
from arbsim.signals.selector import build_signal_generator

logger = get_logger(__name__)


class BacktestEngine:
    """Deterministic replay engine for funding rate arbitrage backtests.

    Args:
        config: Run configuration (window, capital, limits, signal options).
        dataset: Historical data covering the window plus any warmup history.
        fee_settings: Taker fee rates for both legs.
        signal_generator: Signal tier to use. Built from config.use_ml_signals
            when omitted.
        signal_settings: Heuristic thresholds (used when building the generator).
        ml_settings: Learned tier settings (used when building the generator).
    """

    def __init__(
        self,
        config: BacktestConfig,
        dataset: HistoricalDataSet,
        fee_settings: FeeSettings | None = None,
        signal_generator: SignalGenerator | None = None,
        signal_settings: SignalSettings | None = None,
        ml_settings: MLSettings | None = None,
    ) -> None:
        self._config = config
        self._view = HistoricalDataView(dataset)
        self._fee_calculator = FeeCalculator(fee_settings or FeeSettings())
        self._per_day = payments_per_day(config.funding_interval_hours)

        if signal_generator is None:
            extractor = FeatureExtractor(self._view, config.funding_interval_hours)
            signal_generator = build_signal_generator(
                extractor, config.use_ml_signals, signal_settings, ml_settings
            )
        self._signals = signal_generator

        self._portfolio = PortfolioManager(config.initial_capital, self._fee_calculator)
        self._last_prices: dict[str, tuple[Decimal, Decimal]] = {}
        self._skipped: Counter[str] = Counter()

    @property
    def portfolio(self) -> PortfolioManager:
        return self._portfolio

    def _symbols(self) -> list[str]:
        available = self._view.symbols
        if self._config.symbols is None:
            return available
        missing = sorted(set(self._config.symbols) - set(available))
        if missing:
            logger.warning("symbols_without_data", symbols=missing)
        return sorted(set(self._config.symbols) & set(available))

    def _apr(self, rate: Decimal) -> Decimal:
        return rate_to_apr(rate, self._per_day)

    def _prices(self, symbol: str, timestamp_ms: int) -> tuple[Decimal, Decimal] | None:
        prices = self._view.prices_at(symbol, timestamp_ms)
        if prices is not None:
            self._last_prices[symbol] = prices
        return prices

    def _skip(self, reason: str, symbol: str, timestamp_ms: int, **context: object) -> None:
        self._skipped[reason] += 1
        logger.debug(
            "backtest_symbol_skipped",
            reason=reason,
            symbol=symbol,
            timestamp_ms=timestamp_ms,
            **context,
        )

    def run(self) -> BacktestResult:
        """Execute the backtest and return the immutable result.

        Raises:
            ConfigValidationError: If the config is invalid or the window
                contains no funding timestamps.
        """
        self._config.validate()
        ticks = generate_funding_timestamps(
            self._config.start_ms,
            self._config.end_ms,
            self._config.funding_interval_hours,
        )
        if not ticks:
            raise ConfigValidationError(
                f"No {self._config.funding_interval_hours}h funding timestamps in "
                f"[{self._config.start_ms}, {self._config.end_ms}]"
            )

        symbols = self._symbols()
        status = self._signals.prepare(symbols, self._config.start_ms)

        logger.info(
            "backtest_starting",
            symbols=len(symbols),
            ticks=len(ticks),
            start_ms=self._config.start_ms,
            end_ms=self._config.end_ms,
            initial_capital=str(self._config.initial_capital),
            signal_tier=status.tier.value,
            signals_degraded=status.degraded,
        )

        equity_curve: list[EquityPoint] = []
        final_tick = ticks[-1]

        for tick in ticks:
            self._settle_funding(tick)
            self._process_exits(tick)
            if tick == final_tick:
                self._close_all(tick)
            else:
                self._process_entries(tick, symbols)

            equity = self._portfolio.equity(self._last_prices)
            equity_curve.append(EquityPoint(timestamp_ms=tick, equity=equity))

        positions = self._portfolio.closed_positions
        summary = summarize(equity_curve, positions, self._config)

        logger.info(
            "backtest_complete",
            total_trades=summary.number_of_trades,
            final_capital=str(summary.final_capital),
            total_return=str(summary.total_return),
            max_drawdown=str(summary.max_drawdown),
            equity_points=len(equity_curve),
            skipped=sum(self._skipped.values()),
        )

        return BacktestResult(
            config=self._config,
            summary=summary,
            equity_curve=tuple(equity_curve),
            positions=tuple(positions),
            symbol_stats=tuple(symbol_stats(positions)),
            monthly_stats=tuple(
                monthly_stats(positions, equity_curve, self._config.initial_capital)
            ),
            signal_status=status,
            signal_accuracy=signal_accuracy(positions),
            skipped=dict(self._skipped),
        )

    def _settle_funding(self, tick: int) -> None:
        for symbol in sorted(self._portfolio.open_positions):
            record = self._view.settlement_rate_at(symbol, tick)
            if record is None:
                self._skip("no_settlement_rate", symbol, tick)
                continue
            try:
                self._portfolio.apply_funding(symbol, tick, record.rate)
            except PositionStateError as e:
                logger.warning("funding_settlement_error", symbol=symbol, error=str(e))

    def _exit_signal(self, symbol: str, tick: int, apr: Decimal) -> Signal | None:
        if not self._config.use_ml_signals:
            return None
        try:
            return self._signals.score(symbol, tick, apr, for_exit=True)
        except InsufficientHistoryError:
            self._skip("insufficient_history_exit", symbol, tick)
            return None

    def _process_exits(self, tick: int) -> None:
        for symbol, position in sorted(self._portfolio.open_positions.items()):
            # marks refresh even when this symbol is skipped below
            prices = self._prices(symbol, tick)
            record = self._view.funding_rate_at(symbol, tick)
            if record is None:
                self._skip("no_funding_rate", symbol, tick)
                continue
            if prices is None:
                self._skip("missing_price_exit", symbol, tick)
                continue

            apr = self._apr(record.rate)
            signal = self._exit_signal(symbol, tick, apr)
            reason = exit_reason(record.rate, apr, self._config, signal)
            if reason is None:
                continue

            spot, perp = prices
            closed = self._portfolio.close_position(
                symbol, tick, spot, perp, reason, rate=record.rate, apr=apr
            )
            logger.info(
                "backtest_position_closed",
                symbol=symbol,
                timestamp_ms=tick,
                reason=reason.value,
                apr=str(apr),
                realized_pnl=str(closed.realized_pnl),
                held_periods=len(position.funding_payments),
            )

    def _entry_candidates(self, tick: int, symbols: list[str]) -> list[EntryCandidate]:
        candidates: list[EntryCandidate] = []
        for symbol in symbols:
            if self._portfolio.has_open(symbol):
                continue
            record = self._view.funding_rate_at(symbol, tick)
            if record is None:
                continue
            apr = self._apr(record.rate)
            if not meets_min_apr(apr, self._config):
                continue
            prices = self._prices(symbol, tick)
            if prices is None:
                self._skip("missing_price_entry", symbol, tick)
                continue

            signal: Signal | None = None
            if needs_entry_signal(self._config):
                try:
                    signal = self._signals.score(symbol, tick, apr)
                except InsufficientHistoryError:
                    self._skip("insufficient_history_entry", symbol, tick)
                    continue
                rejection = entry_rejection(signal, self._config)
                if rejection is not None:
                    self._skip(f"filtered_{rejection}", symbol, tick, apr=str(apr))
                    continue

            spot, perp = prices
            candidates.append(
                EntryCandidate(
                    symbol=symbol,
                    rate=record.rate,
                    apr=apr,
                    spot_price=spot,
                    perp_price=perp,
                    signal=signal,
                )
            )
        return rank_candidates(candidates)

    def _process_entries(self, tick: int, symbols: list[str]) -> None:
        max_positions = self._config.max_concurrent_positions
        for candidate in self._entry_candidates(tick, symbols):
            open_count = self._portfolio.open_count
            if open_count >= max_positions or self._portfolio.cash <= 0:
                break
            try:
                position = self._portfolio.open_position(
                    symbol=candidate.symbol,
                    timestamp_ms=tick,
                    spot_price=candidate.spot_price,
                    perp_price=candidate.perp_price,
                    rate=candidate.rate,
                    apr=candidate.apr,
                    position_size_percent=self._config.position_size_percent,
                    remaining_slots=max_positions - open_count,
                    signal=candidate.signal,
                )
            except (PositionStateError, PriceUnavailableError) as e:
                logger.warning("backtest_open_error", symbol=candidate.symbol, error=str(e))
                continue
            if position is None:
                break
            logger.info(
                "backtest_position_opened",
                symbol=candidate.symbol,
                timestamp_ms=tick,
                apr=str(candidate.apr),
                notional=str(position.notional_value),
                cash=str(self._portfolio.cash),
            )

    def _close_all(self, tick: int) -> None:
        """Force-close every open position at the last available prices."""
        for symbol, position in sorted(self._portfolio.open_positions.items()):
            prices = self._prices(symbol, tick) or self._last_prices.get(symbol)
            if prices is None:
                prices = (position.spot_entry_price, position.perp_entry_price)
                logger.warning("final_close_at_entry_prices", symbol=symbol)
            record = self._view.funding_rate_at(symbol, tick)
            rate = record.rate if record is not None else None
            apr = self._apr(rate) if rate is not None else None
            spot, perp = prices
            self._portfolio.close_position(
                symbol, tick, spot, perp, ExitReason.END_OF_BACKTEST, rate=rate, apr=apr
            )
            logger.debug("backtest_final_close", symbol=symbol, timestamp_ms=tick)
