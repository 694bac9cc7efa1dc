"""Portfolio state: cash, open positions and closed history.

Cash accounting keeps equity and realized P&L consistent:
  - open:    cash -= notional + entry_fee
  - funding: cash += notional * rate; a debit larger than cash empties cash and
             the rest is drawn from the position (margin_drawn)
  - close:   cash += notional - margin_drawn + spot_pnl + perp_pnl - exit_fee

So over a position's life the cash change equals its realized P&L, and at any
time equity = cash + sum(mark_to_market(open positions)).

CRITICAL: All monetary values use Decimal. Never use float for prices, quantities, or fees.
"""

from decimal import Decimal

from arbsim.exceptions import PositionStateError, PriceUnavailableError
from arbsim.logging import get_logger
from arbsim.portfolio.fees import FeeCalculator
from arbsim.portfolio.models import ExitReason, FundingPayment, Position
from arbsim.portfolio.sizing import PositionSizer
from arbsim.signals.models import Signal

logger = get_logger(__name__)


class PortfolioManager:
    """Owns cash and positions for one backtest run.

    At most one OPEN position per symbol. Closed positions are kept in close
    order and are never mutated again.

    Args:
        initial_capital: Starting cash.
        fee_calculator: Entry/exit fee and funding computations.
        position_sizer: Notional sizing. Defaults to PositionSizer().
    """

    def __init__(
        self,
        initial_capital: Decimal,
        fee_calculator: FeeCalculator,
        position_sizer: PositionSizer | None = None,
    ) -> None:
        self._initial_capital = initial_capital
        self._cash = initial_capital
        self._fees = fee_calculator
        self._sizer = position_sizer or PositionSizer()
        self._open: dict[str, Position] = {}
        self._closed: list[Position] = []

    @property
    def initial_capital(self) -> Decimal:
        return self._initial_capital

    @property
    def cash(self) -> Decimal:
        return self._cash

    @property
    def open_positions(self) -> dict[str, Position]:
        """Open positions keyed by symbol (a copy; mutate through the manager)."""
        return dict(self._open)

    @property
    def closed_positions(self) -> list[Position]:
        return list(self._closed)

    @property
    def open_count(self) -> int:
        return len(self._open)

    def has_open(self, symbol: str) -> bool:
        return symbol in self._open

    def open_position(
        self,
        symbol: str,
        timestamp_ms: int,
        spot_price: Decimal,
        perp_price: Decimal,
        rate: Decimal,
        apr: Decimal,
        position_size_percent: Decimal,
        remaining_slots: int,
        signal: Signal | None = None,
    ) -> Position | None:
        """Open a delta-neutral position sized from current cash.

        Returns:
            The new Position, or None if no notional can be allocated.

        Raises:
            PositionStateError: If the symbol already has an open position.
            PriceUnavailableError: If a price is not positive.
        """
        if symbol in self._open:
            raise PositionStateError(f"{symbol} already has an open position")
        if spot_price <= 0 or perp_price <= 0:
            raise PriceUnavailableError(
                f"Invalid prices for {symbol}: spot={spot_price} perp={perp_price}"
            )

        fee_rate = self._fees.effective_rate(spot_price, perp_price)
        notional = self._sizer.calculate_notional(
            self._cash, position_size_percent, remaining_slots, fee_rate
        )
        if notional is None:
            logger.debug(
                "position_size_unavailable",
                symbol=symbol,
                cash=str(self._cash),
                remaining_slots=remaining_slots,
            )
            return None

        quantity = notional / spot_price
        entry_fee = self._fees.calculate_entry_fee(quantity, spot_price, perp_price)
        if notional + entry_fee > self._cash:
            # Decimal division dust when the whole balance is allocated
            entry_fee = self._cash - notional

        position = Position(
            symbol=symbol,
            entry_time_ms=timestamp_ms,
            spot_entry_price=spot_price,
            perp_entry_price=perp_price,
            quantity=quantity,
            notional_value=notional,
            entry_fees=entry_fee,
            entry_rate=rate,
            entry_apr=apr,
            entry_signal=signal,
            concurrent_positions=len(self._open) + 1,
        )
        self._cash -= notional + entry_fee
        self._open[symbol] = position

        logger.debug(
            "position_opened",
            symbol=symbol,
            timestamp_ms=timestamp_ms,
            notional=str(notional),
            quantity=str(quantity),
            entry_fee=str(entry_fee),
            apr=str(apr),
        )
        return position

    def apply_funding(self, symbol: str, timestamp_ms: int, rate: Decimal) -> FundingPayment:
        """Settle one funding period for an open position.

        Cash never goes negative: the part of a debit cash cannot cover is
        drawn from the position's committed capital.

        Raises:
            PositionStateError: If the symbol has no open position.
        """
        position = self._require_open(symbol)
        amount = self._fees.calculate_funding_payment(position.notional_value, rate)
        payment = FundingPayment(timestamp_ms=timestamp_ms, rate=rate, amount=amount)
        position.add_funding(payment)
        self._cash += amount
        if self._cash < 0:
            shortfall = -self._cash
            position.draw_margin(shortfall)
            self._cash = Decimal("0")
            logger.warning(
                "funding_debit_drawn_from_position",
                symbol=symbol,
                timestamp_ms=timestamp_ms,
                shortfall=str(shortfall),
                margin_drawn=str(position.margin_drawn),
            )
        return payment

    def close_position(
        self,
        symbol: str,
        timestamp_ms: int,
        spot_price: Decimal,
        perp_price: Decimal,
        reason: ExitReason,
        rate: Decimal | None = None,
        apr: Decimal | None = None,
    ) -> Position:
        """Close an open position at the given prices.

        Raises:
            PositionStateError: If the symbol has no open position.
        """
        position = self._require_open(symbol)
        exit_fee = self._fees.calculate_exit_fee(position.quantity, spot_price, perp_price)
        position.close(
            timestamp_ms=timestamp_ms,
            spot_exit_price=spot_price,
            perp_exit_price=perp_price,
            exit_fees=exit_fee,
            reason=reason,
            exit_rate=rate,
            exit_apr=apr,
        )
        self._cash += (
            position.notional_value
            - position.margin_drawn
            + position.spot_pnl
            + position.perp_pnl
            - exit_fee
        )
        del self._open[symbol]
        self._closed.append(position)

        logger.debug(
            "position_closed",
            symbol=symbol,
            timestamp_ms=timestamp_ms,
            reason=reason.value,
            realized_pnl=str(position.realized_pnl),
            funding_periods=len(position.funding_payments),
        )
        return position

    def mark_to_market(self, symbol: str, spot_price: Decimal, perp_price: Decimal) -> Decimal:
        return self._require_open(symbol).mark_to_market(spot_price, perp_price)

    def equity(self, prices: dict[str, tuple[Decimal, Decimal]]) -> Decimal:
        """cash + sum of open positions marked at the given (spot, perp) prices.

        Symbols missing from prices are marked at their entry prices.
        """
        total = self._cash
        for symbol, position in sorted(self._open.items()):
            spot, perp = prices.get(
                symbol, (position.spot_entry_price, position.perp_entry_price)
            )
            total += position.mark_to_market(spot, perp)
        return total

    def _require_open(self, symbol: str) -> Position:
        position = self._open.get(symbol)
        if position is None:
            raise PositionStateError(f"No open position for {symbol}")
        return position
