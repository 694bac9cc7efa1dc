"""Position size calculation.

All calculations use Decimal arithmetic exclusively -- no float conversions.

Sizing flow:
1. target = min(cash * position_size_percent / 100, cash / remaining_slots)
2. If target plus its entry fee exceeds cash, shrink to cash / (1 + fee_rate)
3. Return None when nothing can be allocated
"""

from decimal import Decimal


class PositionSizer:
    """Splits available cash across the remaining position slots."""

    def calculate_notional(
        self,
        cash: Decimal,
        position_size_percent: Decimal,
        remaining_slots: int,
        fee_rate: Decimal,
    ) -> Decimal | None:
        """Calculate the quote notional for a new position.

        Args:
            cash: Uncommitted cash.
            position_size_percent: Max share of cash per position, in percent.
            remaining_slots: Position slots still free (>= 1).
            fee_rate: Entry fee per unit of notional.

        Returns:
            Notional in quote currency, or None if cash or slots are exhausted.
        """
        if cash <= 0 or remaining_slots <= 0:
            return None

        by_percent = cash * position_size_percent / Decimal("100")
        by_slots = cash / Decimal(remaining_slots)
        notional = min(by_percent, by_slots)

        if notional * (Decimal("1") + fee_rate) > cash:
            notional = cash / (Decimal("1") + fee_rate)

        if notional <= 0:
            return None
        return notional
