"""Volatility regime classification from extracted features."""

from arbsim.config import SignalSettings
from arbsim.features.models import FeatureVector
from arbsim.signals.models import VolatilityMetrics


def analyze_volatility(
    features: FeatureVector,
    settings: SignalSettings | None = None,
) -> VolatilityMetrics:
    """Low volatility means the current realized vol ranks below low_vol_percentile."""
    s = settings or SignalSettings()
    return VolatilityMetrics(
        current=features.volatility,
        percentile=features.volatility_percentile,
        is_low_vol=features.volatility_percentile < s.low_vol_percentile,
    )
