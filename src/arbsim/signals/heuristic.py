"""Heuristic signal tier: momentum, volatility and APR level combined into a risk score.

Risk score (0-1):
  + momentum strength * risk_weight_momentum     if momentum is declining
  + vol percentile / 100 * risk_weight_volatility if volatility is not low
  + risk_extreme_apr_penalty                      if APR > extreme_apr (likely to revert)

Entry mapping: enter when risk is low, volatility is low and APR is positive
enough; wait when risk is moderate and APR is attractive; otherwise avoid.
Exit mapping: exit_now on strong declining momentum; exit_soon on high risk or
near-zero APR; otherwise hold.
"""

from decimal import Decimal

from arbsim.config import SignalSettings
from arbsim.features.extractor import FeatureExtractor
from arbsim.features.models import FeatureVector
from arbsim.features.stats import clamp
from arbsim.logging import get_logger
from arbsim.signals.base import SignalGenerator
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
from arbsim.signals.volatility import analyze_volatility

logger = get_logger(__name__)


def compute_risk_score(
    momentum: MomentumSignal,
    volatility: VolatilityMetrics,
    current_apr: float,
    settings: SignalSettings,
) -> float:
    """Combine momentum, volatility and APR level into a 0-1 risk score."""
    risk = 0.0
    if momentum.trend == MomentumTrend.DECLINING:
        risk += momentum.strength * settings.risk_weight_momentum
    if not volatility.is_low_vol:
        risk += volatility.percentile / 100 * settings.risk_weight_volatility
    if current_apr > settings.extreme_apr:
        risk += settings.risk_extreme_apr_penalty
    return clamp(risk)


def entry_recommendation(
    risk_score: float,
    volatility: VolatilityMetrics,
    current_apr: float,
    settings: SignalSettings,
) -> Recommendation:
    if (
        risk_score < settings.enter_max_risk
        and volatility.is_low_vol
        and current_apr > settings.enter_min_apr
    ):
        return Recommendation.ENTER
    if risk_score < settings.wait_max_risk and current_apr > settings.wait_min_apr:
        return Recommendation.WAIT
    return Recommendation.AVOID


def exit_recommendation(
    risk_score: float,
    momentum: MomentumSignal,
    current_apr: float,
    settings: SignalSettings,
) -> Recommendation:
    if (
        momentum.trend == MomentumTrend.DECLINING
        and momentum.strength > settings.exit_now_min_strength
    ):
        return Recommendation.EXIT_NOW
    if risk_score > settings.exit_soon_min_risk or current_apr < settings.exit_soon_max_apr:
        return Recommendation.EXIT_SOON
    return Recommendation.HOLD


def expected_return(current_apr: float, confidence: float, will_decline: bool) -> float:
    """Expected return (percent) scaled by confidence; negative when a decline is expected."""
    base = current_apr * 0.01 * confidence
    return -base if will_decline else base


class HeuristicSignalGenerator(SignalGenerator):
    """Rule-based signal generator. Needs no training.

    Args:
        extractor: Feature extractor bound to the run's data view.
        settings: Thresholds and weights.
    """

    def __init__(
        self,
        extractor: FeatureExtractor,
        settings: SignalSettings | None = None,
    ) -> None:
        self._extractor = extractor
        self._settings = settings or SignalSettings()
        self._status = SignalStatus(tier=SignalTier.HEURISTIC)

    @property
    def status(self) -> SignalStatus:
        return self._status

    @property
    def extractor(self) -> FeatureExtractor:
        return self._extractor

    def prepare(self, symbols: list[str], training_end_ms: int) -> SignalStatus:
        logger.debug("heuristic_signals_ready", symbols=len(symbols))
        return self._status

    def score(
        self,
        symbol: str,
        timestamp_ms: int,
        current_apr: Decimal | float | None = None,
        *,
        for_exit: bool = False,
    ) -> Signal:
        features = self._extractor.require(symbol, timestamp_ms)
        return self.score_features(
            symbol, timestamp_ms, features, current_apr, for_exit=for_exit
        )

    def score_features(
        self,
        symbol: str,
        timestamp_ms: int,
        features: FeatureVector,
        current_apr: Decimal | float | None = None,
        *,
        for_exit: bool = False,
    ) -> Signal:
        """Heuristic signal from an already extracted feature vector."""
        s = self._settings
        apr = features.current_apr if current_apr is None else float(current_apr)

        momentum = analyze_momentum(features.apr_window, s)
        volatility = analyze_volatility(features, s)
        risk = compute_risk_score(momentum, volatility, apr, s)

        if for_exit:
            recommendation = exit_recommendation(risk, momentum, apr, s)
        else:
            recommendation = entry_recommendation(risk, volatility, apr, s)

        confidence = min(abs(features.apr_slope) * 0.5 + s.confidence_floor, s.confidence_cap)
        will_decline = momentum.trend == MomentumTrend.DECLINING

        return Signal(
            symbol=symbol,
            timestamp_ms=timestamp_ms,
            recommendation=recommendation,
            confidence=confidence,
            risk_score=risk,
            expected_return=expected_return(apr, confidence, will_decline),
            momentum_score=clamp((features.apr_slope + 1) / 2),
            momentum=momentum,
            volatility=volatility,
            will_decline=will_decline,
            tier=SignalTier.HEURISTIC,
        )
