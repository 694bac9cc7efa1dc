"""Signal tier selection."""

from arbsim.config import MLSettings, SignalSettings
from arbsim.features.extractor import FeatureExtractor
from arbsim.signals.base import SignalGenerator
from arbsim.signals.heuristic import HeuristicSignalGenerator
from arbsim.signals.learned import LearnedSignalGenerator


def build_signal_generator(
    extractor: FeatureExtractor,
    use_ml_signals: bool,
    signal_settings: SignalSettings | None = None,
    ml_settings: MLSettings | None = None,
) -> SignalGenerator:
    """Return the learned tier when ML signals are enabled, else the heuristic tier."""
    if use_ml_signals:
        return LearnedSignalGenerator(extractor, signal_settings, ml_settings)
    return HeuristicSignalGenerator(extractor, signal_settings)
