"""Base class for drift detectors."""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import structlog

from driftguard.core.models import (Deployment, DriftAlert, DriftSeverity,
                                    DriftType, PerformanceMetric)

logger = structlog.get_logger(__name__)


class BaseDriftDetector(ABC):
    """
    Stateless comparator of one live metric against its backtest baseline.

    Subclasses define the three escalation thresholds (fractional deviation,
    or percentage points for win rate) and implement detect(). A deviation
    below MEDIUM_THRESHOLD is no finding: detect() returns None rather than
    a low-severity alert. Missing data also yields None.
    """

    drift_type: DriftType
    name: str = "base"

    MEDIUM_THRESHOLD: float
    HIGH_THRESHOLD: float
    CRITICAL_THRESHOLD: float

    RECOMMENDATIONS: Dict[DriftSeverity, str] = {}

    def __init__(self):
        self.logger = logger.bind(detector=self.name)

    @abstractmethod
    def detect(
        self,
        deployment: Deployment,
        latest_metric: PerformanceMetric
    ) -> Optional[DriftAlert]:
        """
        Compare the latest live metric against the deployment baseline.

        Args:
            deployment: Deployment carrying the baseline and risk limits
            latest_metric: Most recent daily performance metric

        Returns:
            DriftAlert if the deviation reaches the medium threshold, else None
        """

    def classify_severity(self, deviation: float) -> Optional[DriftSeverity]:
        """Map a non-negative degradation to a severity tier."""
        if deviation >= self.CRITICAL_THRESHOLD:
            return DriftSeverity.CRITICAL
        if deviation >= self.HIGH_THRESHOLD:
            return DriftSeverity.HIGH
        if deviation >= self.MEDIUM_THRESHOLD:
            return DriftSeverity.MEDIUM
        return None

    def recommendation_for(self, severity: DriftSeverity) -> str:
        """Severity-conditioned recommendation text."""
        if severity in self.RECOMMENDATIONS:
            return self.RECOMMENDATIONS[severity]
        return self.RECOMMENDATIONS[DriftSeverity.MEDIUM]

    def build_alert(
        self,
        deployment: Deployment,
        severity: DriftSeverity,
        expected: float,
        actual: float,
        deviation_percent: float,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> DriftAlert:
        """Assemble an alert with the standard fields filled in."""
        details = dict(metadata or {})
        details["recommendation"] = self.recommendation_for(severity)

        alert = DriftAlert(
            deployment_id=deployment.id,
            drift_type=self.drift_type,
            severity=severity,
            expected_value=expected,
            actual_value=actual,
            deviation_percent=deviation_percent,
            threshold=self.MEDIUM_THRESHOLD,
            message=message,
            metadata=details
        )

        self.logger.debug(
            "drift.alert_built",
            deployment_id=deployment.id,
            severity=severity.value,
            deviation_percent=round(deviation_percent, 2)
        )
        return alert
