"""Sharpe ratio drift detector."""
from typing import Optional

from driftguard.core.models import (Deployment, DriftAlert, DriftSeverity,
                                    DriftType, PerformanceMetric)
from driftguard.drift.base import BaseDriftDetector


class SharpeDriftDetector(BaseDriftDetector):
    """
    Detects degradation of risk-adjusted returns.

    Thresholds (relative degradation vs expected Sharpe):
    - < 30%: No alert
    - 30-50%: Medium
    - 50-70%: High
    - >= 70%: Critical

    The baseline is the backtest Sharpe; without one, the deployment's own
    live Sharpe ratio is used. With neither there is nothing to compare.
    """

    drift_type = DriftType.SHARPE_RATIO
    name = "sharpe"

    MEDIUM_THRESHOLD = 0.30
    HIGH_THRESHOLD = 0.50
    CRITICAL_THRESHOLD = 0.70

    RECOMMENDATIONS = {
        DriftSeverity.CRITICAL: "Consider immediate demotion - risk-adjusted returns severely degraded",
        DriftSeverity.HIGH: "Reduce allocation and review strategy parameters",
        DriftSeverity.MEDIUM: "Monitor closely - Sharpe ratio below expectations",
    }

    def detect(
        self,
        deployment: Deployment,
        latest_metric: PerformanceMetric
    ) -> Optional[DriftAlert]:
        if latest_metric.sharpe_ratio is None:
            return None

        if deployment.baseline.sharpe is not None:
            expected = deployment.baseline.sharpe
            source = "backtest"
        elif deployment.live_sharpe_ratio is not None:
            expected = deployment.live_sharpe_ratio
            source = "live"
        else:
            return None

        if expected == 0:
            return None

        actual = latest_metric.sharpe_ratio
        degradation = (expected - actual) / abs(expected)

        severity = self.classify_severity(degradation)
        if severity is None:
            return None

        return self.build_alert(
            deployment,
            severity,
            expected=expected,
            actual=actual,
            deviation_percent=degradation * 100,
            message=(
                f"Sharpe ratio degraded from {expected:.2f} to {actual:.2f} "
                f"({degradation * 100:.1f}% degradation)"
            ),
            metadata={
                "baseline_source": source,
                "volatility": latest_metric.volatility,
                "cumulative_return": latest_metric.cumulative_return,
            }
        )
