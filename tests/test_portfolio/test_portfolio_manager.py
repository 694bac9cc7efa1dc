"""Tests for PortfolioManager cash accounting and position lifecycle."""

from decimal import Decimal

import pytest

from arbsim.config import FeeSettings
from arbsim.exceptions import PositionStateError, PriceUnavailableError
from arbsim.portfolio.fees import FeeCalculator
from arbsim.portfolio.manager import PortfolioManager
from arbsim.portfolio.models import ExitReason, PositionStatus

T0 = 1_704_067_200_000
EIGHT_HOURS = 8 * 3_600_000
BTC = "BTC/USDT:USDT"
ETH = "ETH/USDT:USDT"


@pytest.fixture
def manager(fee_settings: FeeSettings) -> PortfolioManager:
    return PortfolioManager(Decimal("10000"), FeeCalculator(fee_settings))


def _open(manager: PortfolioManager, symbol: str = BTC, price: Decimal = Decimal("100"), slots: int = 5):
    return manager.open_position(
        symbol=symbol,
        timestamp_ms=T0,
        spot_price=price,
        perp_price=price,
        rate=Decimal("0.0001"),
        apr=Decimal("10.95"),
        position_size_percent=Decimal("20"),
        remaining_slots=slots,
    )


class TestOpenPosition:
    """Opening deducts notional plus entry fee from cash."""

    def test_open_deducts_notional_and_fee(self, manager: PortfolioManager) -> None:
        position = _open(manager)
        # notional 2000, quantity 20, fee 20 * 100 * 0.00155 = 3.1
        assert position.notional_value == Decimal("2000")
        assert position.quantity == Decimal("20")
        assert position.entry_fees == Decimal("3.1")
        assert manager.cash == Decimal("7996.9")
        assert manager.has_open(BTC)
        assert manager.open_count == 1

    def test_duplicate_symbol_rejected(self, manager: PortfolioManager) -> None:
        _open(manager)
        with pytest.raises(PositionStateError):
            _open(manager)

    def test_non_positive_price_rejected(self, manager: PortfolioManager) -> None:
        with pytest.raises(PriceUnavailableError):
            _open(manager, price=Decimal("0"))

    def test_no_cash_returns_none(self, fee_settings: FeeSettings) -> None:
        manager = PortfolioManager(Decimal("0"), FeeCalculator(fee_settings))
        assert _open(manager) is None
        assert manager.open_count == 0

    def test_full_allocation_never_overdraws(self, manager: PortfolioManager) -> None:
        """One slot at 100% sizing spends everything but never goes negative."""
        position = manager.open_position(
            BTC, T0, Decimal("100"), Decimal("100.5"), Decimal("0.0001"), Decimal("10.95"),
            position_size_percent=Decimal("100"), remaining_slots=1,
        )
        assert position is not None
        assert manager.cash >= 0
        assert manager.cash < Decimal("0.01")

    def test_concurrent_positions_recorded(self, manager: PortfolioManager) -> None:
        _open(manager, BTC)
        second = _open(manager, ETH, slots=4)
        assert second.concurrent_positions == 2

    def test_open_positions_is_a_copy(self, manager: PortfolioManager) -> None:
        _open(manager)
        manager.open_positions.clear()
        assert manager.has_open(BTC)


class TestFundingAndClose:
    """Funding settlement and closing."""

    def test_apply_funding_credits_cash(self, manager: PortfolioManager) -> None:
        _open(manager)
        payment = manager.apply_funding(BTC, T0 + EIGHT_HOURS, Decimal("0.0001"))
        assert payment.amount == Decimal("0.2")
        assert manager.cash == Decimal("7997.1")
        assert manager.open_positions[BTC].total_funding == Decimal("0.2")

    def test_negative_funding_debits_cash(self, manager: PortfolioManager) -> None:
        _open(manager)
        manager.apply_funding(BTC, T0 + EIGHT_HOURS, Decimal("-0.0001"))
        assert manager.cash == Decimal("7996.7")

    def test_funding_without_position_raises(self, manager: PortfolioManager) -> None:
        with pytest.raises(PositionStateError):
            manager.apply_funding(BTC, T0, Decimal("0.0001"))

    def test_close_realizes_pnl(self, manager: PortfolioManager) -> None:
        """Flat prices: realized P&L is funding minus both fees."""
        _open(manager)
        manager.apply_funding(BTC, T0 + EIGHT_HOURS, Decimal("0.0001"))
        manager.apply_funding(BTC, T0 + 2 * EIGHT_HOURS, Decimal("0.0001"))
        closed = manager.close_position(
            BTC, T0 + 2 * EIGHT_HOURS, Decimal("100"), Decimal("100"), ExitReason.APR_DECAY
        )

        assert closed.status == PositionStatus.CLOSED
        assert closed.exit_fees == Decimal("3.1")
        assert closed.realized_pnl == Decimal("0.4") - Decimal("6.2")
        assert manager.cash == Decimal("10000") + closed.realized_pnl
        assert manager.closed_positions == [closed]
        assert not manager.has_open(BTC)

    def test_price_moves_are_hedged(self, manager: PortfolioManager) -> None:
        """Equal spot and perp moves cancel; only fees and funding remain."""
        position = _open(manager)
        closed = manager.close_position(
            BTC, T0 + EIGHT_HOURS, Decimal("110"), Decimal("110"), ExitReason.NEGATIVE_RATE
        )
        assert closed.spot_pnl == Decimal("200")
        assert closed.perp_pnl == Decimal("-200")
        assert closed.realized_pnl == -(position.entry_fees + closed.exit_fees)

    def test_basis_change_realized(self, manager: PortfolioManager) -> None:
        _open(manager)
        closed = manager.close_position(
            BTC, T0 + EIGHT_HOURS, Decimal("101"), Decimal("100"), ExitReason.SIGNAL_EXIT
        )
        assert closed.spot_pnl + closed.perp_pnl == Decimal("20")

    def test_close_without_position_raises(self, manager: PortfolioManager) -> None:
        with pytest.raises(PositionStateError):
            manager.close_position(BTC, T0, Decimal("100"), Decimal("100"), ExitReason.APR_DECAY)


class TestEquity:
    """equity = cash + sum of open positions marked to market."""

    def test_equity_at_entry_prices(self, manager: PortfolioManager) -> None:
        _open(manager)
        prices = {BTC: (Decimal("100"), Decimal("100"))}
        assert manager.equity(prices) == Decimal("10000") - Decimal("3.1")

    def test_equity_matches_cash_plus_mark_to_market(self, manager: PortfolioManager) -> None:
        _open(manager, BTC)
        _open(manager, ETH, price=Decimal("50"), slots=4)
        prices = {
            BTC: (Decimal("105"), Decimal("104")),
            ETH: (Decimal("48"), Decimal("49")),
        }
        expected = manager.cash + sum(
            manager.mark_to_market(symbol, *prices[symbol]) for symbol in (BTC, ETH)
        )
        assert manager.equity(prices) == expected

    def test_missing_price_marks_at_entry(self, manager: PortfolioManager) -> None:
        _open(manager)
        assert manager.equity({}) == manager.cash + Decimal("2000")

    def test_conservation_over_lifecycle(self, manager: PortfolioManager) -> None:
        """After all positions close, cash - initial == sum of realized P&L."""
        _open(manager, BTC)
        _open(manager, ETH, price=Decimal("50"), slots=4)
        for i in range(1, 4):
            manager.apply_funding(BTC, T0 + i * EIGHT_HOURS, Decimal("0.00012"))
            manager.apply_funding(ETH, T0 + i * EIGHT_HOURS, Decimal("-0.00003"))
        a = manager.close_position(BTC, T0 + 4 * EIGHT_HOURS, Decimal("97"), Decimal("96.5"), ExitReason.APR_DECAY)
        b = manager.close_position(ETH, T0 + 4 * EIGHT_HOURS, Decimal("52"), Decimal("52.2"), ExitReason.NEGATIVE_RATE)

        diff = manager.cash - manager.initial_capital - (a.realized_pnl + b.realized_pnl)
        assert abs(diff) < Decimal("1e-12")


class TestFundingShortfall:
    """A debit larger than cash is drawn from the position, never from negative cash."""

    @pytest.fixture
    def all_in(self, manager: PortfolioManager):
        return manager.open_position(
            BTC, T0, Decimal("100"), Decimal("100"), Decimal("0.0001"), Decimal("10.95"),
            position_size_percent=Decimal("100"), remaining_slots=1,
        )

    def test_cash_floored_at_zero(self, manager: PortfolioManager, all_in) -> None:
        cash_before = manager.cash
        payment = manager.apply_funding(BTC, T0 + EIGHT_HOURS, Decimal("-0.0001"))

        assert payment.amount < 0
        assert manager.cash == Decimal("0")
        assert all_in.margin_drawn == -(cash_before + payment.amount)
        assert all_in.total_funding == payment.amount

    def test_equity_drops_by_full_debit(self, manager: PortfolioManager, all_in) -> None:
        prices = {BTC: (Decimal("100"), Decimal("100"))}
        before = manager.equity(prices)
        payment = manager.apply_funding(BTC, T0 + EIGHT_HOURS, Decimal("-0.0001"))
        assert abs(manager.equity(prices) - (before + payment.amount)) < Decimal("1e-12")

    def test_repeated_debits_stay_non_negative(self, manager: PortfolioManager, all_in) -> None:
        for i, rate in enumerate(["-0.0001", "0.00005", "-0.0005", "-0.0002"], start=1):
            manager.apply_funding(BTC, T0 + i * EIGHT_HOURS, Decimal(rate))
            assert manager.cash >= 0

    def test_close_repays_drawn_margin(self, manager: PortfolioManager, all_in) -> None:
        manager.apply_funding(BTC, T0 + EIGHT_HOURS, Decimal("-0.0005"))
        closed = manager.close_position(
            BTC, T0 + 2 * EIGHT_HOURS, Decimal("100"), Decimal("100"), ExitReason.NEGATIVE_RATE
        )

        assert manager.cash >= 0
        diff = manager.cash - manager.initial_capital - closed.realized_pnl
        assert abs(diff) < Decimal("1e-12")
        assert closed.to_dict()["marginDrawn"] == str(closed.margin_drawn)
