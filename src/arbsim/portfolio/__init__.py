"""Position and portfolio management package.

Provides delta-neutral position models, fee computation, cash-based position
sizing, the PortfolioManager that keeps cash and positions consistent, and
the entry/exit decision rules used by the backtest engine.
"""

from arbsim.portfolio.fees import FeeCalculator
from arbsim.portfolio.manager import PortfolioManager
from arbsim.portfolio.models import ExitReason, FundingPayment, Position, PositionStatus
from arbsim.portfolio.rules import (
    EntryCandidate,
    entry_rejection,
    exit_reason,
    rank_candidates,
)
from arbsim.portfolio.sizing import PositionSizer

__all__ = [
    "EntryCandidate",
    "ExitReason",
    "FeeCalculator",
    "FundingPayment",
    "PortfolioManager",
    "Position",
    "PositionSizer",
    "PositionStatus",
    "entry_rejection",
    "exit_reason",
    "rank_candidates",
]
