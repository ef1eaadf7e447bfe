"""Volatility drift detector."""
from typing import Optional

from driftguard.core.models import (Deployment, DriftAlert, DriftSeverity,
                                    DriftType, PerformanceMetric)
from driftguard.drift.base import BaseDriftDetector


class VolatilityDriftDetector(BaseDriftDetector):
    """
    Detects live volatility well above the backtest's.

    Thresholds (relative increase vs expected annualized volatility):
    - < 50%: No alert
    - 50-100%: Medium
    - 100-150%: High
    - >= 150%: Critical
    """

    drift_type = DriftType.VOLATILITY
    name = "volatility"

    MEDIUM_THRESHOLD = 0.50
    HIGH_THRESHOLD = 1.00
    CRITICAL_THRESHOLD = 1.50

    DEFAULT_EXPECTED_VOLATILITY = 0.50

    RECOMMENDATIONS = {
        DriftSeverity.CRITICAL: "Consider immediate demotion - volatility far exceeds backtest",
        DriftSeverity.HIGH: "Reduce position sizes to control risk",
        DriftSeverity.MEDIUM: "Monitor market conditions - volatility elevated",
    }

    def detect(
        self,
        deployment: Deployment,
        latest_metric: PerformanceMetric
    ) -> Optional[DriftAlert]:
        if latest_metric.volatility is None:
            return None

        expected = deployment.baseline.volatility
        if expected is None:
            expected = self.DEFAULT_EXPECTED_VOLATILITY
        if expected <= 0:
            return None

        actual = latest_metric.volatility
        spike = (actual - expected) / expected

        severity = self.classify_severity(spike)
        if severity is None:
            return None

        return self.build_alert(
            deployment,
            severity,
            expected=expected,
            actual=actual,
            deviation_percent=spike * 100,
            message=(
                f"Volatility increased from {expected * 100:.1f}% to {actual * 100:.1f}% "
                f"({spike * 100:.1f}% above backtest)"
            ),
            metadata={"sharpe_ratio": latest_metric.sharpe_ratio}
        )
