"""driftguard - backtest simulation and live strategy drift monitoring."""

__version__ = "0.1.0"
