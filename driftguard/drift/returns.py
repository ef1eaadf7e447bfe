"""Cumulative return drift detector."""
from typing import Optional

from driftguard.core.models import (Deployment, DriftAlert, DriftSeverity,
                                    DriftType, PerformanceMetric)
from driftguard.drift.base import BaseDriftDetector


class ReturnDriftDetector(BaseDriftDetector):
    """
    Detects live returns falling short of backtest expectations.

    Thresholds (relative underperformance vs expected return):
    - < 40%: No alert
    - 40-60%: Medium
    - 60-80%: High
    - >= 80% or any negative cumulative return: Critical
    """

    drift_type = DriftType.RETURN
    name = "return"

    MEDIUM_THRESHOLD = 0.40
    HIGH_THRESHOLD = 0.60
    CRITICAL_THRESHOLD = 0.80

    DEFAULT_EXPECTED_RETURN = 0.10

    RECOMMENDATIONS = {
        DriftSeverity.CRITICAL: "Consider immediate demotion - returns critically below expectations",
        DriftSeverity.HIGH: "Reduce allocation - returns significantly below backtest",
        DriftSeverity.MEDIUM: "Monitor returns - underperforming backtest expectations",
    }

    def detect(
        self,
        deployment: Deployment,
        latest_metric: PerformanceMetric
    ) -> Optional[DriftAlert]:
        expected = deployment.baseline.cumulative_return
        if expected is None:
            expected = self.DEFAULT_EXPECTED_RETURN

        actual = latest_metric.cumulative_return
        underperformance = (expected - actual) / abs(expected) if expected != 0 else None

        if actual < 0:
            deviation = underperformance if underperformance is not None else 0.0
            return self.build_alert(
                deployment,
                DriftSeverity.CRITICAL,
                expected=expected,
                actual=actual,
                deviation_percent=deviation * 100,
                message=(
                    f"CRITICAL: Cumulative return is negative ({actual * 100:.2f}%) "
                    f"vs expected {expected * 100:.2f}%"
                ),
                metadata={
                    "hard_override": "negative_return",
                    "cumulative_pnl": latest_metric.cumulative_pnl,
                }
            )

        if underperformance is None:
            return None

        severity = self.classify_severity(underperformance)
        if severity is None:
            return None

        return self.build_alert(
            deployment,
            severity,
            expected=expected,
            actual=actual,
            deviation_percent=underperformance * 100,
            message=(
                f"Cumulative return {actual * 100:.2f}% is {underperformance * 100:.1f}% "
                f"below expected {expected * 100:.2f}%"
            ),
            metadata={"cumulative_pnl": latest_metric.cumulative_pnl}
        )
