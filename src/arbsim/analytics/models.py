"""Result statistics models: equity curve points, run summary and breakdowns.

CRITICAL: All monetary values use Decimal. Never use float for prices, quantities, or fees.
"""

from dataclasses import dataclass
from decimal import Decimal


def _fmt(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


@dataclass(frozen=True)
class EquityPoint:
    """A single point on the equity curve: cash plus open positions marked to market."""

    timestamp_ms: int
    equity: Decimal

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp_ms, "equity": str(self.equity)}


@dataclass(frozen=True)
class BacktestSummary:
    """Headline statistics for a completed run.

    Percentages (total_return, win_rate, max_drawdown) are quantized to two
    decimal places. sharpe_ratio is None when it cannot be computed.
    """

    initial_capital: Decimal
    final_capital: Decimal
    total_return: Decimal
    total_return_dollars: Decimal
    number_of_trades: int
    winning_trades: int
    win_rate: Decimal
    max_drawdown: Decimal
    total_days: int
    total_funding: Decimal
    total_fees: Decimal
    sharpe_ratio: Decimal | None = None

    def to_dict(self) -> dict:
        return {
            "initialCapital": str(self.initial_capital),
            "finalCapital": str(self.final_capital),
            "totalReturn": str(self.total_return),
            "totalReturnDollars": str(self.total_return_dollars),
            "numberOfTrades": self.number_of_trades,
            "winningTrades": self.winning_trades,
            "winRate": str(self.win_rate),
            "maxDrawdown": str(self.max_drawdown),
            "totalDays": self.total_days,
            "totalFunding": str(self.total_funding),
            "totalFees": str(self.total_fees),
            "sharpeRatio": _fmt(self.sharpe_ratio),
        }


@dataclass(frozen=True)
class SymbolStats:
    """Per-symbol breakdown of closed positions."""

    symbol: str
    trades: int
    total_pnl: Decimal
    avg_pnl: Decimal
    win_rate: Decimal  # percent, 2dp
    avg_entry_apr: Decimal
    avg_holding_hours: Decimal
    total_funding: Decimal

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "trades": self.trades,
            "totalPnL": str(self.total_pnl),
            "avgPnL": str(self.avg_pnl),
            "winRate": str(self.win_rate),
            "avgFundingAPR": str(self.avg_entry_apr),
            "avgHoldingHours": str(self.avg_holding_hours),
            "totalFunding": str(self.total_funding),
        }


@dataclass(frozen=True)
class MonthlyStats:
    """Closed positions grouped by UTC exit month ("YYYY-MM")."""

    month: str
    trades: int
    profit: Decimal
    return_pct: Decimal  # profit relative to equity at the start of the month, 2dp
    win_rate: Decimal  # percent, 2dp

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "trades": self.trades,
            "profit": str(self.profit),
            "return": str(self.return_pct),
            "winRate": str(self.win_rate),
        }


@dataclass(frozen=True)
class SignalAccuracy:
    """How often the entry signal's direction matched the realized outcome.

    A prediction counts as correct when a signal expecting no decline led to
    a profitable position, or a signal expecting a decline led to a loss.
    """

    evaluated: int
    correct: int
    accuracy: Decimal | None  # percent, 2dp

    def to_dict(self) -> dict:
        return {
            "evaluated": self.evaluated,
            "correct": self.correct,
            "accuracy": _fmt(self.accuracy),
        }

