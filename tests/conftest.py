"""Pytest fixtures and utilities for the driftguard test suite."""
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List

import pytest
import pytest_asyncio

from driftguard.core.models import (BacktestBaseline, Deployment,
                                    DeploymentStatus, PerformanceMetric)
from driftguard.drift.detector import DriftDetectorService
from driftguard.monitoring.service import MonitoringService
from driftguard.portfolio.state import PortfolioStateEngine
from driftguard.storage.audit import AuditService
from driftguard.storage.database import Database


# =============================================================================
# Portfolio Fixtures
# =============================================================================

@pytest.fixture
def engine():
    """Portfolio state engine."""
    return PortfolioStateEngine()


@pytest.fixture
def initial_capital():
    return Decimal("10000")


@pytest.fixture
def empty_portfolio(engine, initial_capital):
    """Cash-only portfolio with 10,000."""
    return engine.initialize(initial_capital)


@pytest.fixture
def btc_portfolio(engine, empty_portfolio):
    """Portfolio holding 0.1 bitcoin bought at 45,000 with no fee."""
    result = engine.apply_buy(
        empty_portfolio, "bitcoin", Decimal("0.1"), Decimal("45000"), Decimal("0")
    )
    assert result.success
    return result.portfolio


# =============================================================================
# Deployment Fixtures
# =============================================================================

@pytest.fixture
def baseline():
    """Typical backtest expectations."""
    return BacktestBaseline(
        sharpe=2.0,
        cumulative_return=0.20,
        max_drawdown=0.10,
        win_rate=0.60,
        volatility=0.30
    )


@pytest.fixture
def deployment(baseline):
    """Active deployment with a full backtest baseline."""
    return Deployment(
        id="dep-1",
        strategy_name="momentum",
        status=DeploymentStatus.ACTIVE,
        max_drawdown_limit=0.40,
        baseline=baseline,
        deployed_at=datetime.utcnow() - timedelta(days=30)
    )


def make_metric(deployment_id: str = "dep-1", day: date = date(2024, 1, 31), **overrides) -> PerformanceMetric:
    """Build a metric that matches the baseline fixture closely."""
    values = dict(
        deployment_id=deployment_id,
        date=day,
        daily_pnl=10.0,
        daily_return=0.001,
        cumulative_pnl=2000.0,
        cumulative_return=0.20,
        drawdown=0.02,
        max_drawdown=0.10,
        volatility=0.30,
        sharpe_ratio=2.0,
        trades_count=2,
        cumulative_trades_count=50,
        winning_trades=30,
        losing_trades=20,
        win_rate=0.60,
        profit_factor=1.8,
    )
    values.update(overrides)
    return PerformanceMetric(**values)


@pytest.fixture
def healthy_metric():
    """Metric in line with the baseline fixture."""
    return make_metric()


def make_series(deployment_id: str, returns: List[float], start: date = date(2024, 1, 1)) -> List[PerformanceMetric]:
    """Daily metrics with the given daily returns on consecutive days."""
    metrics = []
    cumulative = 0.0
    for i, daily_return in enumerate(returns):
        cumulative += daily_return
        metrics.append(make_metric(
            deployment_id,
            start + timedelta(days=i),
            daily_return=daily_return,
            daily_pnl=daily_return * 10000,
            cumulative_return=cumulative,
            drawdown=0.01 * (i % 3),
        ))
    return metrics


# =============================================================================
# Storage Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def test_database():
    """Create an in-memory test database."""
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
def monitoring_service(test_database):
    return MonitoringService(test_database)


@pytest.fixture
def audit_service(test_database):
    return AuditService(test_database, persist=True)


@pytest.fixture
def drift_service(test_database, monitoring_service, audit_service):
    return DriftDetectorService(test_database, monitoring_service, audit_service)


@pytest.fixture
def metric_factory():
    """Factory for metrics with field overrides."""
    return make_metric


@pytest.fixture
def series_factory():
    """Factory for consecutive daily metric series."""
    return make_series
