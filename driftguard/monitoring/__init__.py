"""Live performance monitoring."""

from driftguard.monitoring.service import MonitoringService
from driftguard.monitoring.statistics import (ComparisonStatus,
                                              OverallStatus,
                                              PerformanceTrend,
                                              RollingStatistics)

__all__ = [
    "MonitoringService",
    "RollingStatistics",
    "PerformanceTrend",
    "ComparisonStatus",
    "OverallStatus",
]
