"""Abstract signal generator interface.

Defines the contract for predictive signal generation. Both the heuristic and
the learned tier implement this ABC so the backtest engine is identical
regardless of which tier BacktestConfig.use_ml_signals selects.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from arbsim.signals.models import Signal, SignalStatus


class SignalGenerator(ABC):
    """Abstract base class for signal generators.

    The engine calls prepare() once before the replay with the evaluation
    start as the training boundary, then score() for each candidate or open
    position at each tick.
    """

    @abstractmethod
    def prepare(self, symbols: list[str], training_end_ms: int) -> SignalStatus:
        """Prepare the generator before the replay starts.

        Args:
            symbols: Symbol universe of the run.
            training_end_ms: No data at or after this timestamp may be used
                for fitting.

        Returns:
            SignalStatus describing the active tier.
        """
        ...

    @abstractmethod
    def score(
        self,
        symbol: str,
        timestamp_ms: int,
        current_apr: Decimal | float | None = None,
        *,
        for_exit: bool = False,
    ) -> Signal:
        """Score a symbol at a timestamp.

        Args:
            symbol: Perpetual symbol.
            timestamp_ms: Simulated time; only data at or before it is used.
            current_apr: APR of the funding rate in force (percent). Defaults
                to the APR of the latest funding record.
            for_exit: Map the risk score to hold/exit recommendations
                instead of enter/wait/avoid.

        Returns:
            Signal for the symbol.

        Raises:
            InsufficientHistoryError: If features cannot be built.
        """
        ...

    @property
    @abstractmethod
    def status(self) -> SignalStatus:
        """Current tier status (populated by prepare)."""
        ...
