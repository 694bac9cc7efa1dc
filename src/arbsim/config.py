"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class FeeSettings(BaseSettings):
    """Taker fee structure applied to both legs of a position (Non-VIP base tier)."""

    model_config = SettingsConfigDict(env_prefix="FEES_")

    spot_taker: Decimal = Decimal("0.001")  # 0.1%
    perp_taker: Decimal = Decimal("0.00055")  # 0.055%


class BacktestSettings(BaseSettings):
    """Backtest engine configuration.

    Controls defaults for backtest runs: capital, funding cadence, how much
    fetch-boundary drift the data store absorbs, and how much history is
    loaded ahead of the evaluation window for feature warmup.
    All fields configurable via BACKTEST_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="BACKTEST_")

    default_initial_capital: Decimal = Decimal("10000")
    funding_interval_hours: int = 8
    data_tolerance_hours: int = 24  # cached range may miss the window edges by this much
    warmup_hours: int = 48  # history loaded before start_ms for heuristic features
    cache_dir: str = "data/historical"
    min_apr: Decimal = Decimal("8")  # percent
    max_concurrent_positions: int = 5
    position_size_percent: Decimal = Decimal("20")  # percent of cash per position
    exit_on_negative_rate: bool = True


class SignalSettings(BaseSettings):
    """Heuristic signal configuration.

    Controls momentum and volatility classification, the risk score weights,
    and the thresholds that map a risk score onto a recommendation. Scores
    are plain floats in the 0-1 range.
    All fields configurable via SIGNAL_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="SIGNAL_")

    # Momentum classification (APR points)
    momentum_min_declines: int = 3
    momentum_max_declines_for_rise: int = 1
    momentum_decline_threshold: float = 1.0  # avg APR drop per period
    momentum_strength_scale: float = 5.0
    momentum_stable_strength: float = 0.1

    # Volatility classification
    low_vol_percentile: float = 75.0

    # Risk score
    risk_weight_momentum: float = 0.5
    risk_weight_volatility: float = 0.3
    risk_extreme_apr_penalty: float = 0.2
    extreme_apr: float = 15.0  # percent

    # Entry mapping
    enter_max_risk: float = 0.3
    enter_min_apr: float = 5.0
    wait_max_risk: float = 0.6
    wait_min_apr: float = 8.0

    # Exit mapping
    exit_now_min_strength: float = 0.5
    exit_soon_min_risk: float = 0.6
    exit_soon_max_apr: float = 2.0

    # Confidence
    confidence_floor: float = 0.3
    confidence_cap: float = 0.8


class MLSettings(BaseSettings):
    """Learned signal tier configuration.

    The classifier predicts whether the funding APR will fall by more than
    decline_threshold_pct within the next label_horizon_periods settlements.
    All fields configurable via ML_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="ML_")

    n_estimators: int = 50
    max_depth: int | None = 10
    min_samples_leaf: int = 2
    random_state: int = 42
    min_training_samples: int = 50
    decline_threshold_pct: float = 30.0
    label_horizon_periods: int = 2
    training_lookback_days: int = 30
    veto_confidence: float = 0.6  # decline probability that blocks an entry
    exit_confidence: float = 0.75  # decline probability that forces an exit


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    fees: FeeSettings = FeeSettings()
    backtest: BacktestSettings = BacktestSettings()
    signal: SignalSettings = SignalSettings()
    ml: MLSettings = MLSettings()
