"""Predictive signal data models.

Scores are floats in the 0-1 range (risk, confidence, momentum); expected
return is a percentage. Money never flows through these types.
"""

from dataclasses import dataclass, field
from enum import Enum


class Recommendation(str, Enum):
    """Action suggested by a signal. Entry and exit mappings use disjoint values."""

    ENTER = "enter"
    WAIT = "wait"
    AVOID = "avoid"
    HOLD = "hold"
    EXIT_SOON = "exit_soon"
    EXIT_NOW = "exit_now"


class MomentumTrend(str, Enum):
    """Direction of the trailing funding APR window."""

    DECLINING = "declining"
    STABLE = "stable"
    RISING = "rising"


class SignalTier(str, Enum):
    """Which generator produced a signal."""

    HEURISTIC = "heuristic"
    LEARNED = "learned"


@dataclass(frozen=True)
class MomentumSignal:
    """Momentum classification of the trailing APR window."""

    trend: MomentumTrend
    strength: float  # 0-1
    avg_decline: float  # mean of (previous - current) APR, points per period
    decline_count: int


@dataclass(frozen=True)
class VolatilityMetrics:
    """Realized spot volatility and its rank against the symbol's history."""

    current: float  # percent
    percentile: float  # 0-100
    is_low_vol: bool


@dataclass(frozen=True)
class Signal:
    """Complete predictive signal for one symbol at one timestamp."""

    symbol: str
    timestamp_ms: int
    recommendation: Recommendation
    confidence: float
    risk_score: float
    expected_return: float  # percent; negative when a decline is expected
    momentum_score: float
    momentum: MomentumSignal
    volatility: VolatilityMetrics
    will_decline: bool
    tier: SignalTier = SignalTier.HEURISTIC
    decline_probability: float | None = None  # learned tier only

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "timestamp": self.timestamp_ms,
            "recommendation": self.recommendation.value,
            "confidence": round(self.confidence, 6),
            "riskScore": round(self.risk_score, 6),
            "expectedReturn": round(self.expected_return, 6),
            "momentumScore": round(self.momentum_score, 6),
            "momentumTrend": self.momentum.trend.value,
            "momentumStrength": round(self.momentum.strength, 6),
            "volatilityPercentile": round(self.volatility.percentile, 6),
            "isLowVol": self.volatility.is_low_vol,
            "willDecline": self.will_decline,
            "declineProbability": (
                round(self.decline_probability, 6)
                if self.decline_probability is not None
                else None
            ),
            "tier": self.tier.value,
        }


@dataclass
class SignalStatus:
    """Which tier is active and, when degraded, why.

    Attributes:
        tier: Requested tier.
        model_trained: True if the learned model was fitted.
        degraded: True if the learned tier was requested but unavailable.
        reason: Why the learned tier is unavailable.
        training_samples: Samples used (or found) for training.
        label_balance: Share of positive (decline) labels in the training set.
        feature_importance: Classifier importances by feature name.
    """

    tier: SignalTier
    model_trained: bool = False
    degraded: bool = False
    reason: str | None = None
    training_samples: int = 0
    label_balance: float | None = None
    feature_importance: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "tier": self.tier.value,
            "modelTrained": self.model_trained,
            "degraded": self.degraded,
            "reason": self.reason,
            "trainingSamples": self.training_samples,
            "labelBalance": (
                round(self.label_balance, 6) if self.label_balance is not None else None
            ),
            "featureImportance": {
                k: round(v, 6) for k, v in sorted(self.feature_importance.items())
            },
        }
