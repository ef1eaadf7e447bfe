"""Drift detection orchestrator."""
import asyncio
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog

from driftguard.core.models import (AuditEventType, Deployment, DriftAlert,
                                    DriftSeverity, ResolutionType)
from driftguard.drift.base import BaseDriftDetector
from driftguard.drift.drawdown import DrawdownDriftDetector
from driftguard.drift.returns import ReturnDriftDetector
from driftguard.drift.sharpe import SharpeDriftDetector
from driftguard.drift.volatility import VolatilityDriftDetector
from driftguard.drift.win_rate import WinRateDriftDetector
from driftguard.monitoring.service import MonitoringService
from driftguard.storage.audit import AuditService
from driftguard.storage.database import Database

logger = structlog.get_logger(__name__)


def default_detectors() -> List[BaseDriftDetector]:
    """The standard detector set, in evaluation order."""
    return [
        SharpeDriftDetector(),
        ReturnDriftDetector(),
        DrawdownDriftDetector(),
        WinRateDriftDetector(),
        VolatilityDriftDetector(),
    ]


class DriftDetectorService:
    """
    Runs every drift detector against a deployment's latest live metric.

    Workflow:
    1. Load the deployment (skip if missing or not active)
    2. Load the latest performance metric (skip if none)
    3. Run each detector; a failing detector is logged and skipped
    4. Persist alerts, update the deployment's drift state, audit the pass

    Calls for the same deployment are serialized with a per-deployment lock
    because the drift state update overwrites rather than merges.
    """

    def __init__(
        self,
        database: Database,
        monitoring_service: MonitoringService,
        audit_service: AuditService,
        detectors: Optional[List[BaseDriftDetector]] = None
    ):
        self.database = database
        self.monitoring_service = monitoring_service
        self.audit_service = audit_service
        self.detectors = detectors if detectors is not None else default_detectors()

        # Locks live only while a call for the deployment holds or awaits them
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    async def detect_drift(self, deployment_id: str) -> List[DriftAlert]:
        """
        Detect drift for a deployment across all metrics.

        Returns:
            Alerts raised in this pass (empty when skipped or nothing found)
        """
        lock = self._locks.setdefault(deployment_id, asyncio.Lock())
        self._lock_users[deployment_id] = self._lock_users.get(deployment_id, 0) + 1
        try:
            async with lock:
                return await self._detect_drift(deployment_id)
        finally:
            self._lock_users[deployment_id] -= 1
            if self._lock_users[deployment_id] == 0:
                del self._lock_users[deployment_id]
                del self._locks[deployment_id]

    async def _detect_drift(self, deployment_id: str) -> List[DriftAlert]:
        logger.info("drift.detection_starting", deployment_id=deployment_id)

        deployment = await self.database.get_deployment(deployment_id)
        if deployment is None or not deployment.is_active:
            logger.warning("drift.deployment_not_active", deployment_id=deployment_id)
            return []

        latest_metric = await self.monitoring_service.get_latest_metric(deployment_id)
        if latest_metric is None:
            logger.warning("drift.no_metrics", deployment_id=deployment_id)
            return []

        alerts: List[DriftAlert] = []

        for detector in self.detectors:
            try:
                alert = detector.detect(deployment, latest_metric)
            except Exception as e:
                logger.error(
                    "drift.detector_failed",
                    deployment_id=deployment_id,
                    detector=detector.name,
                    error=str(e),
                    exc_info=True
                )
                continue

            if alert is None:
                continue

            await self.database.save_drift_alert(alert)
            alerts.append(alert)

            logger.warning(
                "drift.detected",
                deployment_id=deployment_id,
                detector=detector.name,
                severity=alert.severity.value,
                message=alert.message
            )

        if alerts:
            before_count = deployment.drift_alert_count
            updated = await self._update_deployment_drift_status(deployment, alerts)

            await self.monitoring_service.record_metric(latest_metric.model_copy(update={
                "drift_detected": True,
                "drift_details": {
                    "drift_types": [a.drift_type.value for a in alerts],
                    "severities": [a.severity.value for a in alerts],
                },
            }))

            await self.audit_service.record(
                AuditEventType.DRIFT_DETECTED,
                entity_type="Deployment",
                entity_id=deployment_id,
                before_state={"drift_alert_count": before_count},
                after_state={"drift_alert_count": updated.drift_alert_count},
                metadata={
                    "new_alerts": len(alerts),
                    "drift_types": [a.drift_type.value for a in alerts],
                    "severities": [a.severity.value for a in alerts],
                }
            )

        logger.info(
            "drift.detection_complete",
            deployment_id=deployment_id,
            alerts_generated=len(alerts)
        )
        return alerts

    async def _update_deployment_drift_status(
        self,
        deployment: Deployment,
        alerts: List[DriftAlert]
    ) -> Deployment:
        """Replace the deployment's drift summary with this pass's findings."""
        new_count = deployment.drift_alert_count + len(alerts)

        updated = deployment.model_copy(update={
            "drift_alert_count": new_count,
            "last_drift_detected_at": datetime.utcnow(),
            "drift_metrics": {
                "total_alerts": new_count,
                "critical_alerts": sum(1 for a in alerts if a.is_critical),
                "latest_alerts": [
                    {
                        "type": a.drift_type.value,
                        "severity": a.severity.value,
                        "deviation": a.deviation_percent,
                        "message": a.message,
                    }
                    for a in alerts
                ],
            },
        })

        await self.database.save_deployment(updated)
        return updated

    async def get_active_drift_alerts(self, deployment_id: str) -> List[DriftAlert]:
        """Unresolved alerts, newest first."""
        return await self.database.get_drift_alerts(deployment_id, resolved=False)

    async def get_all_drift_alerts(self, deployment_id: str) -> List[DriftAlert]:
        """All alerts, newest first."""
        return await self.database.get_drift_alerts(deployment_id)

    async def resolve_drift_alert(
        self,
        alert_id: str,
        resolution_type: ResolutionType,
        notes: Optional[str] = None
    ) -> DriftAlert:
        """
        Resolve a drift alert.

        Raises:
            ValueError: If the alert does not exist
        """
        alert = await self.database.get_drift_alert(alert_id)
        if alert is None:
            raise ValueError(f"Drift alert {alert_id} not found")

        was_resolved = alert.resolved
        alert.resolve(resolution_type, notes)
        await self.database.save_drift_alert(alert)

        await self.audit_service.record(
            AuditEventType.DRIFT_ALERT_RESOLVED,
            entity_type="DriftAlert",
            entity_id=alert_id,
            before_state={"resolved": was_resolved},
            after_state={"resolved": True, "resolution_type": alert.resolution_type},
            metadata={"deployment_id": alert.deployment_id, "notes": notes}
        )

        logger.info(
            "drift.alert_resolved",
            alert_id=alert_id,
            deployment_id=alert.deployment_id,
            resolution_type=alert.resolution_type
        )
        return alert

    async def get_drift_summary(self, deployment_id: str) -> Dict[str, Any]:
        """Counts by severity, drift-type histogram and active alert age range."""
        all_alerts = await self.get_all_drift_alerts(deployment_id)
        active = [a for a in all_alerts if not a.resolved]

        severities = Counter(a.severity for a in active)
        drift_types = Counter(a.drift_type.value for a in active)

        # Newest first
        newest = active[0].created_at if active else None
        oldest = active[-1].created_at if active else None

        return {
            "deployment_id": deployment_id,
            "total_alerts": len(all_alerts),
            "active_alerts": len(active),
            "resolved_alerts": len(all_alerts) - len(active),
            "breakdown": {
                "critical": severities[DriftSeverity.CRITICAL],
                "high": severities[DriftSeverity.HIGH],
                "medium": severities[DriftSeverity.MEDIUM],
                "low": severities[DriftSeverity.LOW],
            },
            "drift_types": dict(drift_types),
            "oldest_active_alert": oldest,
            "newest_active_alert": newest,
        }
