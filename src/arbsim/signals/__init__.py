"""Predictive signal package.

Provides the SignalGenerator interface with two tiers: a heuristic tier
(momentum, volatility regime and APR level combined into a risk score) and a
learned tier (random forest decline classifier over the heuristic signal),
plus the selector that picks one from the run configuration.
"""

from arbsim.signals.base import SignalGenerator
from arbsim.signals.heuristic import (
    HeuristicSignalGenerator,
    compute_risk_score,
    entry_recommendation,
    exit_recommendation,
)
from arbsim.signals.learned import LearnedSignalGenerator, TrainingSet, build_training_set
from arbsim.signals.models import (
    MomentumSignal,
    MomentumTrend,
    Recommendation,
    Signal,
    SignalStatus,
    SignalTier,
    VolatilityMetrics,
)
from arbsim.signals.momentum import analyze_momentum
from arbsim.signals.selector import build_signal_generator
from arbsim.signals.volatility import analyze_volatility

__all__ = [
    "HeuristicSignalGenerator",
    "LearnedSignalGenerator",
    "MomentumSignal",
    "MomentumTrend",
    "Recommendation",
    "Signal",
    "SignalGenerator",
    "SignalStatus",
    "SignalTier",
    "TrainingSet",
    "VolatilityMetrics",
    "analyze_momentum",
    "analyze_volatility",
    "build_signal_generator",
    "build_training_set",
    "compute_risk_score",
    "entry_recommendation",
    "exit_recommendation",
]
