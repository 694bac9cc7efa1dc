"""Position data models for delta-neutral (long spot + short perp) positions.

A Position is OPEN from entry until close_position() records exit prices and
fees; after that it is CLOSED and every mutating method raises
PositionStateError.

CRITICAL: All monetary values use Decimal. Never use float for prices, quantities, or fees.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from arbsim.exceptions import PositionStateError
from arbsim.funding import HOUR_MS
from arbsim.signals.models import Signal


class PositionStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class ExitReason(str, Enum):
    """Why a position was closed."""

    NEGATIVE_RATE = "negative_rate"
    APR_DECAY = "apr_decay"
    SIGNAL_EXIT = "signal_exit"
    END_OF_BACKTEST = "end_of_backtest"


@dataclass(frozen=True)
class FundingPayment:
    """Record of a single funding settlement for a position.

    Positive amount = income (short perp collects when the rate is positive).
    """

    timestamp_ms: int
    rate: Decimal
    amount: Decimal


def _fmt(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


@dataclass
class Position:
    """A delta-neutral position: quantity units long spot and short perp."""

    symbol: str
    entry_time_ms: int
    spot_entry_price: Decimal
    perp_entry_price: Decimal
    quantity: Decimal
    notional_value: Decimal  # quote currency committed at entry (spot leg)
    entry_fees: Decimal
    entry_rate: Decimal
    entry_apr: Decimal
    entry_signal: Signal | None = None
    concurrent_positions: int = 1  # open positions including this one, at entry
    margin_drawn: Decimal = Decimal("0")  # funding debits cash could not cover
    funding_payments: list[FundingPayment] = field(default_factory=list)
    status: PositionStatus = PositionStatus.OPEN
    exit_time_ms: int | None = None
    spot_exit_price: Decimal | None = None
    perp_exit_price: Decimal | None = None
    exit_fees: Decimal | None = None
    exit_rate: Decimal | None = None
    exit_apr: Decimal | None = None
    exit_reason: ExitReason | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise PositionStateError(
                f"Position quantity must be positive, got {self.quantity}"
            )

    @property
    def is_open(self) -> bool:
        return self.status == PositionStatus.OPEN

    def _require_open(self, action: str) -> None:
        if not self.is_open:
            raise PositionStateError(f"Cannot {action} closed position {self.symbol}")

    def add_funding(self, payment: FundingPayment) -> None:
        self._require_open("add funding to")
        self.funding_payments.append(payment)

    def draw_margin(self, amount: Decimal) -> None:
        """Fund a debit out of the committed capital; repaid from the close proceeds."""
        self._require_open("draw margin from")
        self.margin_drawn += amount

    def close(
        self,
        timestamp_ms: int,
        spot_exit_price: Decimal,
        perp_exit_price: Decimal,
        exit_fees: Decimal,
        reason: ExitReason,
        exit_rate: Decimal | None = None,
        exit_apr: Decimal | None = None,
    ) -> None:
        """Record exit details and mark the position CLOSED."""
        self._require_open("close")
        self.exit_time_ms = timestamp_ms
        self.spot_exit_price = spot_exit_price
        self.perp_exit_price = perp_exit_price
        self.exit_fees = exit_fees
        self.exit_reason = reason
        self.exit_rate = exit_rate
        self.exit_apr = exit_apr
        self.status = PositionStatus.CLOSED

    def spot_pnl_at(self, spot_price: Decimal) -> Decimal:
        return (spot_price - self.spot_entry_price) * self.quantity

    def perp_pnl_at(self, perp_price: Decimal) -> Decimal:
        return (self.perp_entry_price - perp_price) * self.quantity

    def mark_to_market(self, spot_price: Decimal, perp_price: Decimal) -> Decimal:
        """Value of the position's committed capital at current prices."""
        return (
            self.notional_value
            - self.margin_drawn
            + self.spot_pnl_at(spot_price)
            + self.perp_pnl_at(perp_price)
        )

    @property
    def total_funding(self) -> Decimal:
        return sum((p.amount for p in self.funding_payments), Decimal("0"))

    @property
    def spot_pnl(self) -> Decimal:
        if self.spot_exit_price is None:
            return Decimal("0")
        return self.spot_pnl_at(self.spot_exit_price)

    @property
    def perp_pnl(self) -> Decimal:
        if self.perp_exit_price is None:
            return Decimal("0")
        return self.perp_pnl_at(self.perp_exit_price)

    @property
    def total_fees(self) -> Decimal:
        return self.entry_fees + (self.exit_fees or Decimal("0"))

    @property
    def realized_pnl(self) -> Decimal:
        """Spot P&L + perp P&L + funding - entry fees - exit fees (0 price P&L while open)."""
        return self.spot_pnl + self.perp_pnl + self.total_funding - self.total_fees

    @property
    def is_win(self) -> bool:
        return self.realized_pnl > 0

    @property
    def holding_period_hours(self) -> Decimal | None:
        if self.exit_time_ms is None:
            return None
        return Decimal(self.exit_time_ms - self.entry_time_ms) / Decimal(HOUR_MS)

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output. Decimals as strings."""
        return {
            "symbol": self.symbol,
            "status": self.status.value,
            "entryTime": self.entry_time_ms,
            "exitTime": self.exit_time_ms,
            "entrySpotPrice": str(self.spot_entry_price),
            "entryPerpPrice": str(self.perp_entry_price),
            "exitSpotPrice": _fmt(self.spot_exit_price),
            "exitPerpPrice": _fmt(self.perp_exit_price),
            "quantity": str(self.quantity),
            "notionalValue": str(self.notional_value),
            "marginDrawn": str(self.margin_drawn),
            "entryFundingRate": str(self.entry_rate),
            "entryFundingAPR": str(self.entry_apr),
            "exitFundingRate": _fmt(self.exit_rate),
            "exitFundingAPR": _fmt(self.exit_apr),
            "exitReason": self.exit_reason.value if self.exit_reason else None,
            "concurrentPositions": self.concurrent_positions,
            "holdingPeriodHours": _fmt(self.holding_period_hours),
            "fundingPeriodsHeld": len(self.funding_payments),
            "fundingPayments": [
                {
                    "timestamp": p.timestamp_ms,
                    "rate": str(p.rate),
                    "amount": str(p.amount),
                }
                for p in self.funding_payments
            ],
            "spotPnL": str(self.spot_pnl),
            "perpPnL": str(self.perp_pnl),
            "totalFunding": str(self.total_funding),
            "entryFees": str(self.entry_fees),
            "exitFees": _fmt(self.exit_fees),
            "totalPnL": str(self.realized_pnl),
            "entrySignal": self.entry_signal.to_dict() if self.entry_signal else None,
        }
