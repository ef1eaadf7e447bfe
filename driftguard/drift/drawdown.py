"""Max drawdown drift detector."""
from typing import Optional

from driftguard.core.models import (Deployment, DriftAlert, DriftSeverity,
                                    DriftType, PerformanceMetric)
from driftguard.drift.base import BaseDriftDetector


class DrawdownDriftDetector(BaseDriftDetector):
    """
    Detects live drawdowns deeper than the backtest produced.

    Thresholds (relative exceedance of backtest max drawdown):
    - < 25%: No alert
    - 25-50%: Medium
    - 50-75%: High
    - >= 75% or drawdown at/over the deployment's hard limit: Critical
    """

    drift_type = DriftType.DRAWDOWN
    name = "drawdown"

    MEDIUM_THRESHOLD = 0.25
    HIGH_THRESHOLD = 0.50
    CRITICAL_THRESHOLD = 0.75

    DEFAULT_EXPECTED_DRAWDOWN = 0.20

    RECOMMENDATIONS = {
        DriftSeverity.CRITICAL: "Consider immediate demotion - drawdown limit breached",
        DriftSeverity.HIGH: "Reduce position sizes - drawdown significantly exceeds backtest",
        DriftSeverity.MEDIUM: "Monitor risk exposure - drawdown above backtest expectations",
    }

    def detect(
        self,
        deployment: Deployment,
        latest_metric: PerformanceMetric
    ) -> Optional[DriftAlert]:
        expected = deployment.baseline.max_drawdown
        if expected is None:
            expected = self.DEFAULT_EXPECTED_DRAWDOWN

        actual = latest_metric.max_drawdown
        limit = deployment.max_drawdown_limit
        exceedance = (actual - expected) / expected if expected > 0 else None

        if actual >= limit:
            deviation = exceedance if exceedance is not None else 0.0
            return self.build_alert(
                deployment,
                DriftSeverity.CRITICAL,
                expected=expected,
                actual=actual,
                deviation_percent=deviation * 100,
                message=(
                    f"CRITICAL: Drawdown {actual * 100:.1f}% reached hard limit "
                    f"of {limit * 100:.1f}%"
                ),
                metadata={
                    "hard_override": "drawdown_limit",
                    "max_drawdown_limit": limit,
                    "current_drawdown": latest_metric.drawdown,
                }
            )

        if exceedance is None:
            return None

        severity = self.classify_severity(exceedance)
        if severity is None:
            return None

        return self.build_alert(
            deployment,
            severity,
            expected=expected,
            actual=actual,
            deviation_percent=exceedance * 100,
            message=(
                f"Max drawdown {actual * 100:.1f}% exceeds backtest {expected * 100:.1f}% "
                f"by {exceedance * 100:.1f}%"
            ),
            metadata={
                "max_drawdown_limit": limit,
                "current_drawdown": latest_metric.drawdown,
            }
        )
