"""Post-hoc statistics over a deployment's daily performance metrics.

All functions are pure and operate on a list of PerformanceMetric rows
ordered by ascending date.
"""
import math
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np
from pydantic import BaseModel

from driftguard.core.models import Deployment, PerformanceMetric

ANNUALIZATION_DAYS = 252


class PerformanceTrend(str, Enum):
    """Direction of recent performance relative to the longer window."""
    IMPROVING = "improving"
    DEGRADING = "degrading"
    STABLE = "stable"
    INSUFFICIENT_DATA = "insufficient_data"


class ComparisonStatus(str, Enum):
    """Live value relative to its backtest expectation."""
    WORSE = "worse"
    BETTER = "better"
    SIMILAR = "similar"
    NO_BASELINE = "no_baseline"


class OverallStatus(str, Enum):
    """Coarse health label for a deployment."""
    DRIFTING = "drifting"
    AT_RISK = "at_risk"
    LOSING = "losing"
    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"


class RollingStatistics(BaseModel):
    """Statistics over one rolling window of daily metrics."""

    window_days: int
    data_points: int
    start_date: date
    end_date: date
    avg_daily_return: float
    volatility: float
    annualized_return: float
    sharpe_ratio: float
    total_return: float
    max_drawdown: float
    win_rate: float


def summarize_daily_performance(metrics: List[PerformanceMetric]) -> Optional[Dict[str, Any]]:
    """
    Day-level summary: profitable/losing day counts, average daily return,
    and the best and worst days.

    Returns:
        Summary dictionary, or None when there are no metrics
    """
    if not metrics:
        return None

    total_days = len(metrics)
    profitable_days = sum(1 for m in metrics if m.is_profitable)
    losing_days = sum(1 for m in metrics if m.is_loss)

    # First occurrence wins on ties
    best = metrics[0]
    worst = metrics[0]
    for m in metrics[1:]:
        if m.daily_return > best.daily_return:
            best = m
        if m.daily_return < worst.daily_return:
            worst = m

    return {
        "total_days": total_days,
        "profitable_days": profitable_days,
        "losing_days": losing_days,
        "profitable_days_percent": profitable_days / total_days * 100,
        "avg_daily_return": sum(m.daily_return for m in metrics) / total_days,
        "best_day": {"date": best.date, "return": best.daily_return, "pnl": best.daily_pnl},
        "worst_day": {"date": worst.date, "return": worst.daily_return, "pnl": worst.daily_pnl},
    }


def calculate_rolling_statistics(
    metrics: List[PerformanceMetric],
    window_days: int = 30,
    as_of: Optional[date] = None,
    annualization_days: int = ANNUALIZATION_DAYS
) -> Optional[RollingStatistics]:
    """
    Calculate statistics over the trailing window ending at as_of.

    The window holds metrics dated within [as_of - window_days, as_of].
    as_of defaults to the latest metric's date. Volatility uses the
    population standard deviation of daily returns, annualized over
    annualization_days.

    Returns:
        RollingStatistics, or None if the window is empty
    """
    if not metrics:
        return None

    if as_of is None:
        as_of = max(m.date for m in metrics)
    start = as_of - timedelta(days=window_days)

    window = [m for m in metrics if start <= m.date <= as_of]
    if not window:
        return None

    returns = np.array([m.daily_return for m in window], dtype=float)
    avg_return = float(np.mean(returns))
    std_dev = float(np.std(returns))  # ddof=0

    volatility = std_dev * math.sqrt(annualization_days)
    annualized_return = avg_return * annualization_days
    sharpe = annualized_return / volatility if volatility > 0 else 0.0

    return RollingStatistics(
        window_days=window_days,
        data_points=len(window),
        start_date=start,
        end_date=as_of,
        avg_daily_return=avg_return,
        volatility=volatility,
        annualized_return=annualized_return,
        sharpe_ratio=sharpe,
        total_return=window[-1].cumulative_return,
        max_drawdown=min(m.drawdown for m in window),
        win_rate=sum(1 for m in window if m.is_profitable) / len(window)
    )


def classify_trend(
    recent: Optional[RollingStatistics],
    historical: Optional[RollingStatistics],
    sharpe_delta: float = 0.2
) -> PerformanceTrend:
    """Compare a short window against a long one."""
    if recent is None or historical is None:
        return PerformanceTrend.INSUFFICIENT_DATA

    sharpe_change = recent.sharpe_ratio - historical.sharpe_ratio
    return_change = recent.avg_daily_return - historical.avg_daily_return

    if sharpe_change > sharpe_delta and return_change > 0:
        return PerformanceTrend.IMPROVING
    if sharpe_change < -sharpe_delta and return_change < 0:
        return PerformanceTrend.DEGRADING
    return PerformanceTrend.STABLE


def comparison_status(
    expected: Optional[float],
    actual: Optional[float],
    threshold: float,
    lower_is_better: bool = False
) -> ComparisonStatus:
    """
    Classify a live value against its expectation.

    The relative change (actual - expected) / |expected| is compared with
    the tolerance in the direction that hurts: upward for lower-is-better
    metrics, downward otherwise.
    """
    if expected is None or expected == 0 or actual is None:
        return ComparisonStatus.NO_BASELINE

    tolerance = abs(threshold)
    change = (actual - expected) / abs(expected)

    if lower_is_better:
        change = -change

    if change < -tolerance:
        return ComparisonStatus.WORSE
    if change > tolerance:
        return ComparisonStatus.BETTER
    return ComparisonStatus.SIMILAR


def determine_overall_status(
    deployment: Deployment,
    latest_metric: PerformanceMetric
) -> OverallStatus:
    """First matching rule wins."""
    if latest_metric.drift_detected:
        return OverallStatus.DRIFTING
    if latest_metric.drawdown >= deployment.max_drawdown_limit * 0.8:
        return OverallStatus.AT_RISK
    if latest_metric.cumulative_return < 0:
        return OverallStatus.LOSING

    sharpe = latest_metric.sharpe_ratio or 0.0
    if sharpe > 1.5:
        return OverallStatus.EXCELLENT
    if sharpe > 1.0:
        return OverallStatus.GOOD
    return OverallStatus.ACCEPTABLE
