"""Tests for settings groups and structured logging setup."""

import logging
from decimal import Decimal

import structlog

from arbsim.config import AppSettings, BacktestSettings, FeeSettings, MLSettings, SignalSettings
from arbsim.logging import get_logger, run_context, setup_logging


class TestSettings:
    """Each settings group reads its own environment prefix."""

    def test_defaults(self) -> None:
        settings = AppSettings()
        assert settings.fees.spot_taker == Decimal("0.001")
        assert settings.backtest.warmup_hours == 48
        assert settings.signal.low_vol_percentile == 75.0
        assert settings.ml.min_training_samples == 50

    def test_fee_env_prefix(self, monkeypatch) -> None:
        monkeypatch.setenv("FEES_SPOT_TAKER", "0.0008")
        assert FeeSettings().spot_taker == Decimal("0.0008")

    def test_backtest_env_prefix(self, monkeypatch) -> None:
        monkeypatch.setenv("BACKTEST_DATA_TOLERANCE_HOURS", "12")
        assert BacktestSettings().data_tolerance_hours == 12

    def test_signal_and_ml_env_prefix(self, monkeypatch) -> None:
        monkeypatch.setenv("SIGNAL_EXTREME_APR", "20")
        monkeypatch.setenv("ML_RANDOM_STATE", "7")
        assert SignalSettings().extreme_apr == 20.0
        assert MLSettings().random_state == 7


class TestLogging:
    def test_setup_sets_root_level_and_single_handler(self) -> None:
        setup_logging("DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)

    def test_json_format(self, monkeypatch) -> None:
        monkeypatch.setenv("LOG_FORMAT", "json")
        setup_logging("warning")
        assert logging.getLogger().level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging("chatty")
        assert logging.getLogger().level == logging.INFO

    def test_get_logger_logs_events(self) -> None:
        setup_logging("INFO")
        logger = get_logger("arbsim.test")
        logger.info("test_event", value=str(Decimal("1.5")))

    def test_explicit_format_overrides_env(self, monkeypatch) -> None:
        monkeypatch.setenv("LOG_FORMAT", "console")
        setup_logging("INFO", log_format="json")
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter.processors[-1], structlog.processors.JSONRenderer)

    def test_noisy_loggers_quieted(self) -> None:
        setup_logging("DEBUG")
        assert logging.getLogger("joblib").level == logging.WARNING

    def test_run_context_binds_and_unbinds(self) -> None:
        with run_context(sweep_index=3):
            assert structlog.contextvars.get_contextvars()["sweep_index"] == 3
        assert "sweep_index" not in structlog.contextvars.get_contextvars()
