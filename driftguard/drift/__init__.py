"""Drift detection for live deployments.

Five detectors compare the latest live metric against backtest baselines:
- Sharpe ratio: relative degradation (30% / 50% / 70%)
- Cumulative return: relative underperformance (40% / 60% / 80%)
- Max drawdown: relative exceedance (25% / 50% / 75%)
- Win rate: percentage-point drop (15 / 25 / 40)
- Volatility: relative increase (50% / 100% / 150%)
"""

from driftguard.drift.base import BaseDriftDetector
from driftguard.drift.detector import DriftDetectorService, default_detectors
from driftguard.drift.drawdown import DrawdownDriftDetector
from driftguard.drift.returns import ReturnDriftDetector
from driftguard.drift.sharpe import SharpeDriftDetector
from driftguard.drift.volatility import VolatilityDriftDetector
from driftguard.drift.win_rate import WinRateDriftDetector

__all__ = [
    "BaseDriftDetector",
    "DriftDetectorService",
    "default_detectors",
    "SharpeDriftDetector",
    "ReturnDriftDetector",
    "DrawdownDriftDetector",
    "WinRateDriftDetector",
    "VolatilityDriftDetector",
]
