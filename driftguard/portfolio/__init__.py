"""Portfolio state engine and performance metrics.

The state engine is pure: every operation returns a new Portfolio and
leaves its input untouched. Money is Decimal throughout.
"""

from driftguard.portfolio.metrics import (MetricsCalculator, MetricsConfig,
                                          MetricsResult, Timeframe,
                                          TradeMetrics)
from driftguard.portfolio.state import PortfolioStateEngine

__all__ = [
    "PortfolioStateEngine",
    "MetricsCalculator",
    "MetricsConfig",
    "MetricsResult",
    "Timeframe",
    "TradeMetrics",
]
