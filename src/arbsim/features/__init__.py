"""Feature extraction package.

Builds point-in-time FeatureVectors (funding APR window statistics, price
changes, realized volatility and their percentiles) for signal scoring and
classifier training.
"""

from arbsim.features.extractor import FeatureExtractor
from arbsim.features.models import FEATURE_NAMES, MIN_CANDLES, RATE_WINDOW, FeatureVector

__all__ = [
    "FEATURE_NAMES",
    "FeatureExtractor",
    "FeatureVector",
    "MIN_CANDLES",
    "RATE_WINDOW",
]
