"""Unit tests for data models."""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from driftguard.core.models import (ApplyTradeResult, BacktestBaseline,
                                    Deployment, DeploymentStatus, DriftAlert,
                                    DriftSeverity, DriftType, DrawdownState,
                                    Portfolio, Position, ResolutionType)


# =============================================================================
# Portfolio Model Tests
# =============================================================================

class TestPositionModel:
    """Test Position validation."""

    def test_negative_quantity_rejected(self):
        with pytest.raises(ValidationError):
            Position(instrument_id="bitcoin", quantity=Decimal("-1"), average_price=Decimal("1"))

    def test_zero_average_price_rejected(self):
        with pytest.raises(ValidationError):
            Position(instrument_id="bitcoin", quantity=Decimal("1"), average_price=Decimal("0"))

    def test_frozen(self):
        position = Position(instrument_id="bitcoin", quantity=Decimal("1"), average_price=Decimal("1"))
        with pytest.raises(ValidationError):
            position.quantity = Decimal("2")


class TestPortfolioModel:
    """Test Portfolio helpers."""

    def test_positions_value_and_lookup(self):
        position = Position(
            instrument_id="bitcoin",
            quantity=Decimal("0.1"),
            average_price=Decimal("50000"),
            total_value=Decimal("5000")
        )
        portfolio = Portfolio(
            cash_balance=Decimal("5000"),
            positions={"bitcoin": position},
            total_value=Decimal("10000")
        )

        assert portfolio.positions_value == Decimal("5000")
        assert portfolio.get_position("bitcoin") is position
        assert portfolio.get_position("ethereum") is None

    def test_rejected_result_keeps_portfolio(self):
        portfolio = Portfolio(cash_balance=Decimal("1"), total_value=Decimal("1"))
        result = ApplyTradeResult.rejected(portfolio, "nope")

        assert result.success is False
        assert result.error == "nope"
        assert result.portfolio is portfolio

    def test_drawdown_start(self):
        state = DrawdownState.start(Decimal("500"))
        assert state.peak_value == Decimal("500")
        assert state.max_drawdown == Decimal("0")


# =============================================================================
# Deployment Model Tests
# =============================================================================

class TestBacktestBaseline:
    """Test baseline metadata conversion."""

    def test_from_metadata(self):
        baseline = BacktestBaseline.from_metadata({
            "backtestSharpe": 1.8,
            "backtestReturn": "0.25",
            "backtestWinRate": 0.6,
            "unrelated": "ignored",
        })

        assert baseline.sharpe == 1.8
        assert baseline.cumulative_return == 0.25
        assert baseline.win_rate == 0.6
        assert baseline.max_drawdown is None
        assert baseline.volatility is None

    def test_from_empty_metadata(self):
        assert BacktestBaseline.from_metadata(None) == BacktestBaseline()

    def test_zero_values_from_metadata_are_missing(self):
        baseline = BacktestBaseline.from_metadata({
            "backtestSharpe": 0,
            "backtestReturn": "0.0",
            "backtestWinRate": 0.0,
            "backtestVolatility": 0.35,
        })

        assert baseline.sharpe is None
        assert baseline.cumulative_return is None
        assert baseline.win_rate is None
        assert baseline.volatility == 0.35

    @pytest.mark.parametrize("value", [0.0, float("nan"), float("inf"), float("-inf")])
    def test_unusable_values_are_missing(self, value):
        baseline = BacktestBaseline(sharpe=value, max_drawdown=value)

        assert baseline.sharpe is None
        assert baseline.max_drawdown is None
        assert baseline.to_metadata() == {}

    def test_negative_values_are_kept(self):
        assert BacktestBaseline(cumulative_return=-0.1).cumulative_return == -0.1

    def test_to_metadata_omits_missing(self):
        baseline = BacktestBaseline(sharpe=1.5, max_drawdown=0.2)
        assert baseline.to_metadata() == {"backtestSharpe": 1.5, "backtestMaxDrawdown": 0.2}


class TestDeploymentModel:
    """Test Deployment properties."""

    def test_defaults(self):
        deployment = Deployment(strategy_name="grid")

        assert deployment.status == DeploymentStatus.PENDING_APPROVAL
        assert deployment.max_drawdown_limit == 0.40
        assert deployment.drift_alert_count == 0
        assert not deployment.is_active
        assert deployment.days_live is None

    def test_days_live(self):
        deployment = Deployment(
            status=DeploymentStatus.ACTIVE,
            deployed_at=datetime.utcnow() - timedelta(days=12, hours=1)
        )

        assert deployment.is_active
        assert deployment.days_live == 12


# =============================================================================
# Drift Alert Model Tests
# =============================================================================

class TestDriftAlertModel:
    """Test DriftAlert resolution."""

    @pytest.fixture
    def alert(self):
        return DriftAlert(
            deployment_id="dep-1",
            drift_type=DriftType.VOLATILITY,
            severity=DriftSeverity.CRITICAL,
            expected_value=0.3,
            actual_value=0.9,
            deviation_percent=200.0,
            threshold=0.5,
            message="Volatility increased",
            metadata={"recommendation": "Reduce"}
        )

    def test_properties(self, alert):
        assert alert.is_critical
        assert alert.recommendation == "Reduce"
        assert not alert.resolved

    def test_resolve(self, alert):
        alert.resolve(ResolutionType.ACKNOWLEDGED, "seen")

        assert alert.resolved
        assert alert.resolution_type == "acknowledged"
        assert alert.resolution_notes == "seen"
        assert alert.resolved_at is not None

    def test_resolve_twice_restamps(self, alert):
        first = datetime(2024, 1, 1)
        second = datetime(2024, 1, 2)

        alert.resolve(ResolutionType.ACKNOWLEDGED, resolved_at=first)
        alert.resolve(ResolutionType.FALSE_POSITIVE, resolved_at=second)

        assert alert.resolved_at == second
        assert alert.resolution_type == "false_positive"
