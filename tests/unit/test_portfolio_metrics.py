"""Unit tests for backtest performance metrics."""
import math

import pytest

from driftguard.core.config import BacktestConfig
from driftguard.core.models import BacktestBaseline, TradeSide
from driftguard.portfolio.metrics import (MetricsCalculator, MetricsConfig,
                                          Timeframe, TradeMetrics,
                                          periods_per_year)


@pytest.fixture
def calculator():
    return MetricsCalculator(MetricsConfig(timeframe=Timeframe.DAILY, risk_free_rate=0.0))


# =============================================================================
# Annualization Tests
# =============================================================================

class TestPeriodsPerYear:
    """Test timeframe annualization factors."""

    @pytest.mark.parametrize("timeframe,crypto,expected", [
        (Timeframe.HOURLY, True, 8760),
        (Timeframe.HOURLY, False, 6552),
        (Timeframe.DAILY, True, 365),
        (Timeframe.DAILY, False, 252),
        (Timeframe.WEEKLY, True, 52),
        (Timeframe.MONTHLY, False, 12),
    ])
    def test_periods(self, timeframe, crypto, expected):
        assert periods_per_year(timeframe, crypto) == expected

    def test_config_property(self):
        config = MetricsConfig(timeframe=Timeframe.DAILY, use_crypto_calendar=False)
        assert config.periods_per_year == 252


class TestMetricsConfigFromSettings:
    """Test building MetricsConfig from BACKTEST_* settings."""

    def test_from_settings(self):
        settings = BacktestConfig(
            metrics_timeframe="hourly", risk_free_rate=0.05, use_crypto_calendar=False
        )

        config = MetricsConfig.from_settings(settings)

        assert config.timeframe == Timeframe.HOURLY
        assert config.risk_free_rate == 0.05
        assert config.periods_per_year == 6552

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("BACKTEST_USE_CRYPTO_CALENDAR", "false")

        assert MetricsConfig.from_settings(BacktestConfig()).periods_per_year == 252

    def test_default_calculator_reads_settings(self, monkeypatch):
        monkeypatch.setattr(
            "driftguard.portfolio.metrics.backtest_config",
            BacktestConfig(use_crypto_calendar=False, risk_free_rate=0.0)
        )

        calculator = MetricsCalculator()

        assert calculator.config.periods_per_year == 252
        assert calculator.config.risk_free_rate == 0.0


# =============================================================================
# Return Series Tests
# =============================================================================

class TestReturnsAndRisk:
    """Test return, drawdown and volatility calculations."""

    def test_returns(self, calculator):
        returns = calculator.calculate_returns([100.0, 110.0, 99.0])
        assert returns == pytest.approx([0.10, -0.10])

    def test_zero_previous_value_yields_zero_return(self, calculator):
        assert calculator.calculate_returns([0.0, 50.0]) == [0.0]

    def test_max_drawdown(self, calculator):
        assert calculator.calculate_max_drawdown([100, 120, 90, 130, 65]) == pytest.approx(0.5)

    def test_max_drawdown_empty(self, calculator):
        assert calculator.calculate_max_drawdown([]) == 0.0

    def test_flat_returns_have_zero_volatility_and_sharpe(self, calculator):
        returns = [0.0] * 10
        assert calculator.calculate_volatility(returns) == pytest.approx(0.0)
        assert calculator.calculate_sharpe_ratio(returns) == 0.0

    def test_volatility_is_annualized_population_std(self, calculator):
        returns = [0.01, -0.01, 0.01, -0.01]
        assert calculator.calculate_volatility(returns) == pytest.approx(0.01 * math.sqrt(365))

    def test_sharpe_sign_follows_mean(self, calculator):
        assert calculator.calculate_sharpe_ratio([0.02, 0.01, 0.03, -0.005]) > 0
        assert calculator.calculate_sharpe_ratio([-0.02, -0.01, 0.01, -0.03]) < 0

    def test_sortino_without_downside_is_zero(self, calculator):
        assert calculator.calculate_sortino_ratio([0.01, 0.02]) == 0.0


# =============================================================================
# Trade Statistics Tests
# =============================================================================

class TestTradeStatistics:
    """Test win rate and profit factor."""

    def test_win_rate_counts_sells_only(self, calculator):
        trades = [
            TradeMetrics(0.0, TradeSide.BUY),
            TradeMetrics(50.0, TradeSide.SELL),
            TradeMetrics(-20.0, TradeSide.SELL),
            TradeMetrics(10.0, TradeSide.SELL),
            TradeMetrics(-5.0, TradeSide.SELL),
        ]
        assert calculator.calculate_win_rate(trades) == 0.5
        assert calculator.calculate_profit_factor(trades) == pytest.approx(60.0 / 25.0)

    def test_no_sells(self, calculator):
        trades = [TradeMetrics(0.0, TradeSide.BUY)]
        assert calculator.calculate_win_rate(trades) == 0.0
        assert calculator.calculate_profit_factor(trades) == 1.0

    def test_profit_factor_without_losses_is_infinite(self, calculator):
        trades = [TradeMetrics(10.0, TradeSide.SELL)]
        assert calculator.calculate_profit_factor(trades) == float("inf")


# =============================================================================
# Aggregate Metrics Tests
# =============================================================================

class TestCalculateMetrics:
    """Test full metric calculation."""

    def test_empty_values(self, calculator):
        result = calculator.calculate_metrics([], initial_capital=1000)

        assert result.total_return == 0.0
        assert result.final_value == 1000.0
        assert result.profit_factor == 1.0

    def test_total_return_and_baseline(self, calculator):
        values = [1000.0, 1100.0, 1050.0, 1200.0]
        trades = [TradeMetrics(100.0, TradeSide.SELL), TradeMetrics(-50.0, TradeSide.SELL)]

        result = calculator.calculate_metrics(values, 1000.0, trades)

        assert result.total_return == pytest.approx(0.2)
        assert result.max_drawdown == pytest.approx(50.0 / 1100.0)
        assert result.total_trades == 2
        assert result.winning_trades == 1

        baseline = result.to_baseline()
        assert baseline.cumulative_return == pytest.approx(0.2)
        assert baseline.win_rate == 0.5
        assert baseline.sharpe == result.sharpe_ratio
        assert baseline.volatility == result.volatility

    def test_total_trades_counts_sells_only(self, calculator):
        trades = [
            TradeMetrics(0.0, TradeSide.BUY),
            TradeMetrics(0.0, TradeSide.BUY),
            TradeMetrics(30.0, TradeSide.SELL),
        ]

        result = calculator.calculate_metrics([1000.0, 1030.0], 1000.0, trades)

        assert result.total_trades == 1
        assert result.winning_trades == 1
        assert result.win_rate == 1.0

    def test_flat_run_baseline_is_empty(self, calculator):
        result = calculator.calculate_metrics([1000.0] * 5, 1000.0, [TradeMetrics(0.0, TradeSide.BUY)])

        assert result.sharpe_ratio == 0.0
        assert result.win_rate == 0.0
        assert result.to_baseline() == BacktestBaseline()
