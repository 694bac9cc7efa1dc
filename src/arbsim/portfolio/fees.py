"""Fee computation for delta-neutral positions.

All calculations use Decimal arithmetic exclusively -- no float conversions anywhere.

Fee rates are sourced from FeeSettings (Non-VIP base tier defaults):
  - Spot taker: 0.1% (0.001)
  - Perp taker: 0.055% (0.00055)

Funding convention:
  - Positive funding rate = longs pay shorts
  - Our position (long spot + short perp) COLLECTS when rate > 0
"""

from decimal import Decimal

from arbsim.config import FeeSettings


class FeeCalculator:
    """Calculates trading fees and funding payments.

    Both legs are traded as taker orders on entry and exit. All methods
    return Decimal values with full precision -- no rounding is applied.

    Args:
        fee_settings: Fee rate configuration (spot/perp taker rates).
    """

    def __init__(self, fee_settings: FeeSettings | None = None) -> None:
        self._fees = fee_settings or FeeSettings()

    @property
    def fee_rate(self) -> Decimal:
        """Combined taker rate for both legs when spot and perp trade at the same price."""
        return self._fees.spot_taker + self._fees.perp_taker

    def effective_rate(self, spot_price: Decimal, perp_price: Decimal) -> Decimal:
        """Fee per unit of spot notional when the perp leg trades at perp_price.

        For quantity q = notional / spot_price the two legs cost
        notional * spot_taker + q * perp_price * perp_taker.
        """
        return self._fees.spot_taker + self._fees.perp_taker * perp_price / spot_price

    def calculate_entry_fee(
        self,
        quantity: Decimal,
        spot_price: Decimal,
        perp_price: Decimal,
    ) -> Decimal:
        """Entry = buy spot (taker) + sell perp (taker)."""
        spot_fee = quantity * spot_price * self._fees.spot_taker
        perp_fee = quantity * perp_price * self._fees.perp_taker
        return spot_fee + perp_fee

    def calculate_exit_fee(
        self,
        quantity: Decimal,
        spot_price: Decimal,
        perp_price: Decimal,
    ) -> Decimal:
        """Exit = sell spot (taker) + buy-to-close perp (taker)."""
        spot_fee = quantity * spot_price * self._fees.spot_taker
        perp_fee = quantity * perp_price * self._fees.perp_taker
        return spot_fee + perp_fee

    def calculate_funding_payment(self, notional: Decimal, funding_rate: Decimal) -> Decimal:
        """Funding received by the short perp leg for one settlement.

        Positive rate = income, negative rate = expense.
        """
        return notional * funding_rate
