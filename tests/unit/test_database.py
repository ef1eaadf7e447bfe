"""Unit tests for database operations."""
from datetime import date, datetime, timedelta

import pytest

from driftguard.core.models import (AuditEvent, AuditEventType,
                                    BacktestBaseline, Deployment,
                                    DeploymentStatus, DriftAlert,
                                    DriftSeverity, DriftType)


def make_alert(deployment_id="dep-1", created_at=None, severity=DriftSeverity.MEDIUM):
    return DriftAlert(
        deployment_id=deployment_id,
        drift_type=DriftType.SHARPE_RATIO,
        severity=severity,
        expected_value=2.0,
        actual_value=1.2,
        deviation_percent=40.0,
        threshold=0.3,
        message="Sharpe ratio degraded",
        metadata={"recommendation": "Monitor closely - Sharpe ratio below expectations"},
        created_at=created_at or datetime.utcnow()
    )


# =============================================================================
# Deployment Tests
# =============================================================================

class TestDeploymentOperations:
    """Test deployment persistence."""

    @pytest.mark.asyncio
    async def test_save_and_get(self, test_database, deployment):
        await test_database.save_deployment(deployment)
        loaded = await test_database.get_deployment(deployment.id)

        assert loaded.id == deployment.id
        assert loaded.strategy_name == "momentum"
        assert loaded.status == DeploymentStatus.ACTIVE
        assert loaded.baseline == deployment.baseline

    @pytest.mark.asyncio
    async def test_get_missing(self, test_database):
        assert await test_database.get_deployment("missing") is None

    @pytest.mark.asyncio
    async def test_update_drift_state(self, test_database, deployment):
        await test_database.save_deployment(deployment)

        updated = deployment.model_copy(update={
            "drift_alert_count": 3,
            "drift_metrics": {"total_alerts": 3, "critical_alerts": 1, "latest_alerts": []},
        })
        await test_database.save_deployment(updated)
        loaded = await test_database.get_deployment(deployment.id)

        assert loaded.drift_alert_count == 3
        assert loaded.drift_metrics["critical_alerts"] == 1

    @pytest.mark.asyncio
    async def test_active_deployments(self, test_database, deployment):
        paused = Deployment(id="dep-2", status=DeploymentStatus.PAUSED,
                            baseline=BacktestBaseline(sharpe=1.0))
        await test_database.save_deployment(deployment)
        await test_database.save_deployment(paused)

        active = await test_database.get_active_deployments()

        assert [d.id for d in active] == ["dep-1"]


# =============================================================================
# Performance Metric Tests
# =============================================================================

class TestPerformanceMetricOperations:
    """Test performance metric persistence."""

    @pytest.mark.asyncio
    async def test_metrics_ordered_ascending(self, test_database, series_factory):
        metrics = series_factory("dep-1", [0.01, 0.02, -0.01])
        for metric in reversed(metrics):
            await test_database.save_performance_metric(metric)

        loaded = await test_database.get_performance_metrics("dep-1")

        assert [m.date for m in loaded] == [m.date for m in metrics]

    @pytest.mark.asyncio
    async def test_date_bounds(self, test_database, series_factory):
        for metric in series_factory("dep-1", [0.01] * 5):
            await test_database.save_performance_metric(metric)

        loaded = await test_database.get_performance_metrics(
            "dep-1", start_date=date(2024, 1, 2), end_date=date(2024, 1, 4)
        )

        assert len(loaded) == 3

    @pytest.mark.asyncio
    async def test_one_metric_per_day(self, test_database, metric_factory):
        await test_database.save_performance_metric(metric_factory(sharpe_ratio=1.0))
        await test_database.save_performance_metric(metric_factory(sharpe_ratio=1.5))

        loaded = await test_database.get_performance_metrics("dep-1")

        assert len(loaded) == 1
        assert loaded[0].sharpe_ratio == 1.5

    @pytest.mark.asyncio
    async def test_latest_metric(self, test_database, series_factory):
        for metric in series_factory("dep-1", [0.01, 0.02, 0.03]):
            await test_database.save_performance_metric(metric)

        latest = await test_database.get_latest_metric("dep-1")

        assert latest.date == date(2024, 1, 3)
        assert await test_database.get_latest_metric("dep-2") is None


# =============================================================================
# Drift Alert Tests
# =============================================================================

class TestDriftAlertOperations:
    """Test drift alert persistence."""

    @pytest.mark.asyncio
    async def test_save_and_get(self, test_database):
        alert = make_alert()
        await test_database.save_drift_alert(alert)

        loaded = await test_database.get_drift_alert(alert.id)

        assert loaded.drift_type == DriftType.SHARPE_RATIO
        assert loaded.severity == DriftSeverity.MEDIUM
        assert loaded.recommendation == "Monitor closely - Sharpe ratio below expectations"
        assert loaded.resolved is False

    @pytest.mark.asyncio
    async def test_newest_first_and_resolved_filter(self, test_database):
        now = datetime.utcnow()
        old = make_alert(created_at=now - timedelta(days=2))
        new = make_alert(created_at=now)
        resolved = make_alert(created_at=now - timedelta(days=1))
        resolved.resolve("acknowledged")

        for alert in (old, new, resolved):
            await test_database.save_drift_alert(alert)

        all_alerts = await test_database.get_drift_alerts("dep-1")
        active = await test_database.get_drift_alerts("dep-1", resolved=False)

        assert [a.id for a in all_alerts] == [new.id, resolved.id, old.id]
        assert [a.id for a in active] == [new.id, old.id]

    @pytest.mark.asyncio
    async def test_update_resolution(self, test_database):
        alert = make_alert()
        await test_database.save_drift_alert(alert)

        alert.resolve("false_positive", "noise")
        await test_database.save_drift_alert(alert)
        loaded = await test_database.get_drift_alert(alert.id)

        assert loaded.resolved
        assert loaded.resolution_type == "false_positive"
        assert loaded.resolution_notes == "noise"


# =============================================================================
# Audit Tests
# =============================================================================

class TestAuditOperations:
    """Test audit event persistence."""

    @pytest.mark.asyncio
    async def test_save_and_filter(self, test_database):
        detected = AuditEvent(
            event_type=AuditEventType.DRIFT_DETECTED,
            entity_type="Deployment",
            entity_id="dep-1",
            before_state={"drift_alert_count": 0},
            after_state={"drift_alert_count": 2},
            metadata={"new_alerts": 2}
        )
        other = AuditEvent(
            event_type=AuditEventType.DRIFT_ALERT_RESOLVED,
            entity_type="DriftAlert",
            entity_id="alert-1"
        )
        await test_database.save_audit_event(detected)
        await test_database.save_audit_event(other)

        events = await test_database.get_audit_events(entity_id="dep-1")

        assert len(events) == 1
        assert events[0].after_state == {"drift_alert_count": 2}
        assert events[0].metadata["new_alerts"] == 2

        resolved = await test_database.get_audit_events(
            event_type=AuditEventType.DRIFT_ALERT_RESOLVED
        )
        assert [e.entity_id for e in resolved] == ["alert-1"]
