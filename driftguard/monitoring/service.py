"""Monitoring service for live deployment performance."""
from datetime import date
from typing import Any, Dict, List, Optional

import structlog

from driftguard.core.config import MonitoringConfig, monitoring_config
from driftguard.core.models import PerformanceMetric
from driftguard.monitoring.statistics import (PerformanceTrend,
                                              RollingStatistics,
                                              calculate_rolling_statistics,
                                              classify_trend,
                                              comparison_status,
                                              determine_overall_status,
                                              summarize_daily_performance)
from driftguard.storage.database import Database

logger = structlog.get_logger(__name__)


class MonitoringService:
    """
    Tracks and analyzes daily performance metrics of live deployments.

    Provides performance summaries, backtest comparisons, rolling statistics
    and trend classification on top of the stored metric series. The drift
    detector reads the latest metric through this service.
    """

    # (baseline field, metric field, tolerance, lower is better)
    COMPARISONS = {
        "sharpe_ratio": ("sharpe", "sharpe_ratio", 0.5, False),
        "cumulative_return": ("cumulative_return", "cumulative_return", 0.4, False),
        "max_drawdown": ("max_drawdown", "max_drawdown", 0.5, True),
        "volatility": ("volatility", "volatility", 1.0, True),
        "win_rate": ("win_rate", "win_rate", 0.25, False),
    }

    def __init__(self, database: Database, config: Optional[MonitoringConfig] = None):
        self.database = database
        self.config = config or monitoring_config

    async def record_metric(self, metric: PerformanceMetric):
        """Store a daily metric (replaces any existing record for that day)."""
        await self.database.save_performance_metric(metric)
        logger.debug(
            "monitoring.metric_recorded",
            deployment_id=metric.deployment_id,
            date=metric.date.isoformat()
        )

    async def get_performance_metrics(
        self,
        deployment_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> List[PerformanceMetric]:
        """Get metrics in ascending date order, optionally bounded."""
        return await self.database.get_performance_metrics(deployment_id, start_date, end_date)

    async def get_latest_metric(self, deployment_id: str) -> Optional[PerformanceMetric]:
        """Get the most recent daily metric."""
        return await self.database.get_latest_metric(deployment_id)

    async def get_performance_summary(self, deployment_id: str) -> Dict[str, Any]:
        """
        Performance summary for a deployment.

        Raises:
            ValueError: If the deployment does not exist
        """
        deployment = await self._require_deployment(deployment_id)
        metrics = await self.get_performance_metrics(deployment_id)

        if not metrics:
            return {
                "deployment_id": deployment_id,
                "status": "no_data",
                "message": "No performance data available yet",
            }

        latest = metrics[-1]
        daily = summarize_daily_performance(metrics)

        return {
            "deployment_id": deployment_id,
            "strategy_name": deployment.strategy_name,
            "status": deployment.status.value,
            "days_live": deployment.days_live,

            # Performance
            "cumulative_return": latest.cumulative_return,
            "cumulative_pnl": latest.cumulative_pnl,
            "current_drawdown": latest.drawdown,
            "max_drawdown": latest.max_drawdown,
            "sharpe_ratio": latest.sharpe_ratio,
            "volatility": latest.volatility,

            # Trades
            "total_trades": latest.cumulative_trades_count,
            "win_rate": latest.win_rate,
            "profit_factor": latest.profit_factor,

            # Daily statistics
            **daily,

            # Current exposure
            "open_positions": latest.open_positions,
            "exposure_amount": latest.exposure_amount,
            "utilization": latest.utilization,

            "drift_detected": latest.drift_detected,
            "drift_details": latest.drift_details,
            "last_updated": latest.snapshot_at,
        }

    async def compare_to_backtest(self, deployment_id: str) -> Dict[str, Any]:
        """
        Compare the latest live metric against the backtest baseline.

        Raises:
            ValueError: If the deployment does not exist or has no metrics
        """
        deployment = await self._require_deployment(deployment_id)
        latest = await self.get_latest_metric(deployment_id)

        if latest is None:
            raise ValueError("No performance metrics available for comparison")

        comparison = {}
        for name, (baseline_field, metric_field, tolerance, lower_is_better) in self.COMPARISONS.items():
            expected = getattr(deployment.baseline, baseline_field)
            actual = getattr(latest, metric_field)

            deviation = None
            if expected and actual is not None:
                deviation = (actual - expected) / abs(expected) * 100

            comparison[name] = {
                "backtest": expected,
                "live": actual,
                "deviation_percent": deviation,
                "status": comparison_status(expected, actual, tolerance, lower_is_better).value,
            }

        return {
            "deployment_id": deployment_id,
            "comparison": comparison,
            "overall_status": determine_overall_status(deployment, latest).value,
            "days_live": deployment.days_live,
        }

    async def get_rolling_statistics(
        self,
        deployment_id: str,
        window_days: Optional[int] = None,
        as_of: Optional[date] = None
    ) -> Optional[RollingStatistics]:
        """Rolling statistics over the trailing window, or None without data."""
        metrics = await self.get_performance_metrics(deployment_id)
        return calculate_rolling_statistics(
            metrics,
            window_days=window_days or self.config.rolling_window_days,
            as_of=as_of,
            annualization_days=self.config.annualization_days
        )

    async def get_performance_trend(self, deployment_id: str) -> PerformanceTrend:
        """Classify the short window against the long window."""
        metrics = await self.get_performance_metrics(deployment_id)
        if not metrics:
            return PerformanceTrend.INSUFFICIENT_DATA

        as_of = metrics[-1].date
        recent = calculate_rolling_statistics(
            metrics, self.config.trend_short_window_days, as_of, self.config.annualization_days
        )
        historical = calculate_rolling_statistics(
            metrics, self.config.trend_long_window_days, as_of, self.config.annualization_days
        )

        trend = classify_trend(recent, historical, self.config.trend_sharpe_delta)
        logger.debug("monitoring.trend", deployment_id=deployment_id, trend=trend.value)
        return trend

    async def _require_deployment(self, deployment_id: str):
        deployment = await self.database.get_deployment(deployment_id)
        if deployment is None:
            raise ValueError(f"Deployment {deployment_id} not found")
        return deployment
