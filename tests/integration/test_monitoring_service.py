"""Integration tests for MonitoringService over a real (in-memory) database."""
import math
from datetime import date

import pytest

from driftguard.core.config import MonitoringConfig
from driftguard.core.models import BacktestBaseline
from driftguard.monitoring.service import MonitoringService
from driftguard.monitoring.statistics import PerformanceTrend


# =============================================================================
# Performance Summary Tests
# =============================================================================

class TestPerformanceSummary:
    """Test get_performance_summary."""

    @pytest.mark.asyncio
    async def test_unknown_deployment_raises(self, monitoring_service):
        with pytest.raises(ValueError, match="not found"):
            await monitoring_service.get_performance_summary("missing")

    @pytest.mark.asyncio
    async def test_no_data(self, monitoring_service, test_database, deployment):
        await test_database.save_deployment(deployment)

        summary = await monitoring_service.get_performance_summary(deployment.id)

        assert summary["status"] == "no_data"

    @pytest.mark.asyncio
    async def test_summary(self, monitoring_service, test_database, deployment, series_factory):
        await test_database.save_deployment(deployment)
        for metric in series_factory(deployment.id, [0.01, -0.02, 0.03]):
            await monitoring_service.record_metric(metric)

        summary = await monitoring_service.get_performance_summary(deployment.id)

        assert summary["status"] == "active"
        assert summary["strategy_name"] == "momentum"
        assert summary["total_days"] == 3
        assert summary["profitable_days"] == 2
        assert summary["losing_days"] == 1
        assert summary["best_day"]["date"] == date(2024, 1, 3)
        assert summary["worst_day"]["date"] == date(2024, 1, 2)
        assert summary["cumulative_return"] == pytest.approx(0.02)
        assert summary["total_trades"] == 50
        assert summary["drift_detected"] is False


# =============================================================================
# Backtest Comparison Tests
# =============================================================================

class TestCompareToBacktest:
    """Test compare_to_backtest."""

    @pytest.mark.asyncio
    async def test_no_metrics_raises(self, monitoring_service, test_database, deployment):
        await test_database.save_deployment(deployment)

        with pytest.raises(ValueError, match="No performance metrics"):
            await monitoring_service.compare_to_backtest(deployment.id)

    @pytest.mark.asyncio
    async def test_in_line_with_backtest(
        self, monitoring_service, test_database, deployment, healthy_metric
    ):
        await test_database.save_deployment(deployment)
        await monitoring_service.record_metric(healthy_metric)

        result = await monitoring_service.compare_to_backtest(deployment.id)

        assert {c["status"] for c in result["comparison"].values()} == {"similar"}
        assert result["comparison"]["sharpe_ratio"]["deviation_percent"] == pytest.approx(0.0)
        assert result["overall_status"] == "excellent"
        assert result["days_live"] == 30

    @pytest.mark.asyncio
    async def test_mixed_statuses(
        self, monitoring_service, test_database, deployment, metric_factory
    ):
        await test_database.save_deployment(deployment)
        await monitoring_service.record_metric(
            metric_factory(sharpe_ratio=0.5, max_drawdown=0.04, volatility=0.9)
        )

        comparison = (await monitoring_service.compare_to_backtest(deployment.id))["comparison"]

        assert comparison["sharpe_ratio"]["status"] == "worse"
        assert comparison["max_drawdown"]["status"] == "better"
        assert comparison["volatility"]["status"] == "worse"
        assert comparison["cumulative_return"]["status"] == "similar"
        assert comparison["sharpe_ratio"]["deviation_percent"] == pytest.approx(-75.0)

    @pytest.mark.asyncio
    async def test_missing_baseline(
        self, monitoring_service, test_database, deployment, healthy_metric
    ):
        bare = deployment.model_copy(update={"baseline": BacktestBaseline()})
        await test_database.save_deployment(bare)
        await monitoring_service.record_metric(healthy_metric)

        comparison = (await monitoring_service.compare_to_backtest(bare.id))["comparison"]

        assert {c["status"] for c in comparison.values()} == {"no_baseline"}
        assert all(c["deviation_percent"] is None for c in comparison.values())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides,expected", [
        ({"drift_detected": True}, "drifting"),
        ({"drawdown": 0.35}, "at_risk"),
        ({"cumulative_return": -0.05}, "losing"),
        ({"sharpe_ratio": 1.2}, "good"),
        ({"sharpe_ratio": 0.8}, "acceptable"),
    ])
    async def test_overall_status(
        self, monitoring_service, test_database, deployment, metric_factory, overrides, expected
    ):
        await test_database.save_deployment(deployment)
        await monitoring_service.record_metric(metric_factory(**overrides))

        result = await monitoring_service.compare_to_backtest(deployment.id)

        assert result["overall_status"] == expected


# =============================================================================
# Rolling Statistics and Trend Tests
# =============================================================================

class TestRollingStatistics:
    """Test get_rolling_statistics."""

    @pytest.mark.asyncio
    async def test_full_window(self, monitoring_service, series_factory):
        for metric in series_factory("dep-1", [0.01, -0.01] * 5):
            await monitoring_service.record_metric(metric)

        stats = await monitoring_service.get_rolling_statistics("dep-1")

        assert stats.data_points == 10
        assert stats.end_date == date(2024, 1, 10)
        assert stats.avg_daily_return == pytest.approx(0.0, abs=1e-12)
        assert stats.volatility == pytest.approx(0.01 * math.sqrt(252))
        assert stats.win_rate == 0.5
        assert stats.max_drawdown == 0.0

    @pytest.mark.asyncio
    async def test_window_is_bounded(self, monitoring_service, series_factory):
        for metric in series_factory("dep-1", [0.01] * 10):
            await monitoring_service.record_metric(metric)

        stats = await monitoring_service.get_rolling_statistics("dep-1", window_days=3)

        assert stats.data_points == 4
        assert stats.start_date == date(2024, 1, 7)

    @pytest.mark.asyncio
    async def test_empty_window(self, monitoring_service, series_factory):
        assert await monitoring_service.get_rolling_statistics("dep-1") is None

        for metric in series_factory("dep-1", [0.01] * 3):
            await monitoring_service.record_metric(metric)

        stats = await monitoring_service.get_rolling_statistics("dep-1", as_of=date(2023, 6, 1))
        assert stats is None

    @pytest.mark.asyncio
    async def test_configured_annualization(self, test_database, series_factory):
        service = MonitoringService(test_database, MonitoringConfig(annualization_days=365))
        for metric in series_factory("dep-1", [0.01, -0.01] * 5):
            await service.record_metric(metric)

        stats = await service.get_rolling_statistics("dep-1")

        assert stats.volatility == pytest.approx(0.01 * math.sqrt(365))


class TestPerformanceTrend:
    """Test get_performance_trend."""

    @pytest.mark.asyncio
    async def test_insufficient_data(self, monitoring_service):
        trend = await monitoring_service.get_performance_trend("dep-1")
        assert trend == PerformanceTrend.INSUFFICIENT_DATA

    @pytest.mark.asyncio
    async def test_improving(self, monitoring_service, series_factory):
        returns = [0.01, -0.01] * 16 + [0.02, 0.01] * 4
        for metric in series_factory("dep-1", returns):
            await monitoring_service.record_metric(metric)

        assert await monitoring_service.get_performance_trend("dep-1") == PerformanceTrend.IMPROVING

    @pytest.mark.asyncio
    async def test_degrading(self, monitoring_service, series_factory):
        returns = [0.01, -0.01] * 16 + [-0.02, -0.01] * 4
        for metric in series_factory("dep-1", returns):
            await monitoring_service.record_metric(metric)

        assert await monitoring_service.get_performance_trend("dep-1") == PerformanceTrend.DEGRADING

    @pytest.mark.asyncio
    async def test_stable(self, monitoring_service, series_factory):
        for metric in series_factory("dep-1", [0.0] * 40):
            await monitoring_service.record_metric(metric)

        assert await monitoring_service.get_performance_trend("dep-1") == PerformanceTrend.STABLE
