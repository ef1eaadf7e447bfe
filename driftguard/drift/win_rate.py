"""Win rate drift detector."""
from typing import Optional

from driftguard.core.models import (Deployment, DriftAlert, DriftSeverity,
                                    DriftType, PerformanceMetric)
from driftguard.drift.base import BaseDriftDetector


class WinRateDriftDetector(BaseDriftDetector):
    """
    Detects a drop in the share of profitable trades.

    Thresholds (absolute percentage points below expected):
    - < 15 points: No alert
    - 15-25 points: Medium
    - 25-40 points: High
    - >= 40 points or win rate below 40%: Critical

    Win rate measures consistency; a significant drop suggests entry/exit
    logic no longer works as it did in the backtest.
    """

    drift_type = DriftType.WIN_RATE
    name = "win_rate"

    MEDIUM_THRESHOLD = 0.15
    HIGH_THRESHOLD = 0.25
    CRITICAL_THRESHOLD = 0.40
    MINIMUM_WIN_RATE = 0.40

    DEFAULT_EXPECTED_WIN_RATE = 0.55

    RECOMMENDATIONS = {
        DriftSeverity.CRITICAL: "Consider immediate demotion - strategy entry/exit logic may need review",
        DriftSeverity.HIGH: "Monitor trade quality - win rate declining",
        DriftSeverity.MEDIUM: "Monitor trade quality - win rate declining",
    }

    def detect(
        self,
        deployment: Deployment,
        latest_metric: PerformanceMetric
    ) -> Optional[DriftAlert]:
        # A zero win rate with no trades is indistinguishable from no data
        if latest_metric.win_rate is None or (
            latest_metric.win_rate == 0 and latest_metric.cumulative_trades_count == 0
        ):
            return None

        expected = deployment.baseline.win_rate
        if expected is None:
            expected = self.DEFAULT_EXPECTED_WIN_RATE

        actual = latest_metric.win_rate
        degradation = expected - actual

        trade_counts = {
            "total_trades": latest_metric.cumulative_trades_count,
            "winning_trades": latest_metric.winning_trades,
            "losing_trades": latest_metric.losing_trades,
        }

        if actual < self.MINIMUM_WIN_RATE:
            return self.build_alert(
                deployment,
                DriftSeverity.CRITICAL,
                expected=expected,
                actual=actual,
                deviation_percent=degradation * 100,
                message=(
                    f"CRITICAL: Win rate {actual * 100:.1f}% below minimum threshold "
                    f"of {self.MINIMUM_WIN_RATE * 100:.0f}%"
                ),
                metadata={
                    **trade_counts,
                    "hard_override": "minimum_win_rate",
                    "minimum_win_rate": self.MINIMUM_WIN_RATE,
                }
            )

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
                f"Win rate degraded from {expected * 100:.1f}% to {actual * 100:.1f}% "
                f"({degradation * 100:.1f} percentage points)"
            ),
            metadata={**trade_counts, "profit_factor": latest_metric.profit_factor}
        )
