"""Learned signal tier backed by a scikit-learn random forest.

The classifier predicts whether a symbol's funding APR will fall by more than
decline_threshold_pct within the next label_horizon_periods settlements.
Training samples come strictly from before the evaluation start: a sample at
time t is only used when t and every settlement in its label horizon precede
training_end_ms, so no label leaks information from the evaluated window.

When the model cannot be trained (too few samples, or only one label class)
the generator degrades to the heuristic tier and reports why through
SignalStatus. Learned predictions overlay the heuristic signal: a confident
decline vetoes entries and escalates exits.
"""

from dataclasses import dataclass, replace
from decimal import Decimal

import numpy as np
from sklearn.ensemble import RandomForestClassifier

from arbsim.config import MLSettings, SignalSettings
from arbsim.exceptions import ModelUnavailableError
from arbsim.features.extractor import FeatureExtractor
from arbsim.features.models import FEATURE_NAMES
from arbsim.funding import DAY_MS
from arbsim.logging import get_logger
from arbsim.signals.base import SignalGenerator
from arbsim.signals.heuristic import HeuristicSignalGenerator, expected_return
from arbsim.signals.models import Recommendation, Signal, SignalStatus, SignalTier

logger = get_logger(__name__)


@dataclass
class TrainingSet:
    """Feature matrix and decline labels for classifier training."""

    features: np.ndarray  # shape (n_samples, len(FEATURE_NAMES))
    labels: np.ndarray  # 1 = APR declined past the threshold
    timestamps: list[int]
    symbols: list[str]

    def __len__(self) -> int:
        return len(self.labels)

    @property
    def positive_share(self) -> float | None:
        if not len(self):
            return None
        return float(self.labels.mean())


def decline_pct(current_apr: float, future_apr: float) -> float:
    """Percent drop from current to future APR, relative to |current|."""
    return (current_apr - future_apr) / abs(current_apr) * 100


def build_training_set(
    extractor: FeatureExtractor,
    symbols: list[str],
    training_start_ms: int,
    training_end_ms: int,
    settings: MLSettings,
) -> TrainingSet:
    """Collect (features, label) pairs from settlements before training_end_ms.

    Args:
        extractor: Feature extractor bound to the run's data view.
        symbols: Symbols to sample.
        training_start_ms: Earliest sample timestamp.
        training_end_ms: Exclusive upper bound for samples and label horizons.
        settings: Label threshold and horizon.

    Returns:
        TrainingSet (possibly empty).
    """
    rows: list[np.ndarray] = []
    labels: list[int] = []
    timestamps: list[int] = []
    sample_symbols: list[str] = []
    horizon = settings.label_horizon_periods

    for symbol in sorted(symbols):
        series = extractor.view.funding_series(symbol)
        eligible = series.records[: series.count_before(training_end_ms)]
        for i, record in enumerate(eligible):
            if record.timestamp_ms < training_start_ms:
                continue
            if i + horizon >= len(eligible):
                break

            current = extractor.apr(record.rate)
            if current == 0:
                continue

            features = extractor.extract(symbol, record.timestamp_ms)
            if features is None:
                continue

            future = [extractor.apr(r.rate) for r in eligible[i + 1:i + 1 + horizon]]
            declined = any(
                decline_pct(current, f) > settings.decline_threshold_pct for f in future
            )

            rows.append(features.to_array())
            labels.append(1 if declined else 0)
            timestamps.append(record.timestamp_ms)
            sample_symbols.append(symbol)

    matrix = np.vstack(rows) if rows else np.empty((0, len(FEATURE_NAMES)))
    return TrainingSet(
        features=matrix,
        labels=np.asarray(labels, dtype=int),
        timestamps=timestamps,
        symbols=sample_symbols,
    )


class LearnedSignalGenerator(SignalGenerator):
    """Random forest decline predictor layered over the heuristic tier.

    Args:
        extractor: Feature extractor bound to the run's data view.
        signal_settings: Heuristic thresholds used for the base signal.
        ml_settings: Classifier and labelling parameters.
    """

    def __init__(
        self,
        extractor: FeatureExtractor,
        signal_settings: SignalSettings | None = None,
        ml_settings: MLSettings | None = None,
    ) -> None:
        self._extractor = extractor
        self._heuristic = HeuristicSignalGenerator(extractor, signal_settings)
        self._ml = ml_settings or MLSettings()
        self._model: RandomForestClassifier | None = None
        self._decline_index = 1
        self._status = SignalStatus(tier=SignalTier.LEARNED)

    @property
    def status(self) -> SignalStatus:
        return self._status

    @property
    def model(self) -> RandomForestClassifier | None:
        return self._model

    def fit(self, symbols: list[str], training_end_ms: int) -> TrainingSet:
        """Train the classifier on data strictly before training_end_ms.

        Raises:
            ModelUnavailableError: If there are fewer than
                min_training_samples samples or only one label class.
        """
        training_start_ms = training_end_ms - self._ml.training_lookback_days * DAY_MS
        training = build_training_set(
            self._extractor, symbols, training_start_ms, training_end_ms, self._ml
        )
        self._status.training_samples = len(training)
        self._status.label_balance = training.positive_share

        if len(training) < self._ml.min_training_samples:
            raise ModelUnavailableError(
                f"Only {len(training)} training samples "
                f"(need {self._ml.min_training_samples})"
            )
        if len(np.unique(training.labels)) < 2:
            raise ModelUnavailableError(
                f"Training labels contain a single class ({int(training.labels[0])})"
            )

        model = RandomForestClassifier(
            n_estimators=self._ml.n_estimators,
            max_depth=self._ml.max_depth,
            min_samples_leaf=self._ml.min_samples_leaf,
            random_state=self._ml.random_state,
        )
        model.fit(training.features, training.labels)

        self._model = model
        self._decline_index = list(model.classes_).index(1)
        self._status.model_trained = True
        self._status.feature_importance = dict(
            zip(FEATURE_NAMES, (float(v) for v in model.feature_importances_))
        )

        logger.info(
            "learned_model_trained",
            samples=len(training),
            positive_share=training.positive_share,
            training_start_ms=training_start_ms,
            training_end_ms=training_end_ms,
        )
        return training

    def prepare(self, symbols: list[str], training_end_ms: int) -> SignalStatus:
        try:
            self.fit(symbols, training_end_ms)
        except ModelUnavailableError as e:
            self._model = None
            self._status.degraded = True
            self._status.reason = str(e)
            logger.warning(
                "learned_signals_degraded",
                reason=str(e),
                training_samples=self._status.training_samples,
            )
        return self._status

    def decline_probability(self, features_row: np.ndarray) -> float:
        """Probability of a threshold decline for one feature vector."""
        if self._model is None:
            raise ModelUnavailableError("Model has not been trained")
        proba = self._model.predict_proba(features_row.reshape(1, -1))
        return float(proba[0, self._decline_index])

    def score(
        self,
        symbol: str,
        timestamp_ms: int,
        current_apr: Decimal | float | None = None,
        *,
        for_exit: bool = False,
    ) -> Signal:
        features = self._extractor.require(symbol, timestamp_ms)
        base = self._heuristic.score_features(
            symbol, timestamp_ms, features, current_apr, for_exit=for_exit
        )
        if self._model is None:
            return base

        p_decline = self.decline_probability(features.to_array())
        will_decline = p_decline >= 0.5
        confidence = max(p_decline, 1 - p_decline)
        apr = features.current_apr if current_apr is None else float(current_apr)

        recommendation = base.recommendation
        if for_exit:
            if p_decline >= self._ml.exit_confidence:
                recommendation = Recommendation.EXIT_NOW
        elif p_decline >= self._ml.veto_confidence:
            recommendation = Recommendation.AVOID

        return replace(
            base,
            recommendation=recommendation,
            confidence=confidence,
            expected_return=expected_return(apr, confidence, will_decline),
            will_decline=will_decline,
            tier=SignalTier.LEARNED,
            decline_probability=p_decline,
        )
