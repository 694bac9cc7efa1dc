"""Funding rate arbitrage backtest engine."""

__version__ = "0.1.0"
