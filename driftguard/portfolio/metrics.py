"""Performance metrics for completed backtests.

Computes risk/return statistics from a portfolio value series and the
realized P&L of sell fills, with annualization aware of the sampling
timeframe. The result can seed a deployment's drift baseline.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence

import numpy as np

from driftguard.core.config import BacktestConfig, backtest_config
from driftguard.core.models import BacktestBaseline, TradeSide


class Timeframe(str, Enum):
    """Sampling interval of a value series."""
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def periods_per_year(timeframe: Timeframe, use_crypto_calendar: bool = True) -> int:
    """Annualization factor for a timeframe.

    Crypto markets trade 24/7, so the crypto calendar uses 365 days.
    """
    if timeframe == Timeframe.HOURLY:
        return 8760 if use_crypto_calendar else 6552
    if timeframe == Timeframe.DAILY:
        return 365 if use_crypto_calendar else 252
    if timeframe == Timeframe.WEEKLY:
        return 52
    if timeframe == Timeframe.MONTHLY:
        return 12
    return 252


@dataclass(frozen=True)
class MetricsConfig:
    """Annualization settings for metric calculation."""
    timeframe: Timeframe = Timeframe.DAILY
    risk_free_rate: float = 0.02
    use_crypto_calendar: bool = True

    @property
    def periods_per_year(self) -> int:
        return periods_per_year(self.timeframe, self.use_crypto_calendar)

    @classmethod
    def from_settings(cls, settings: BacktestConfig) -> "MetricsConfig":
        """Build from the BACKTEST_* environment settings."""
        return cls(
            timeframe=Timeframe(settings.metrics_timeframe),
            risk_free_rate=settings.risk_free_rate,
            use_crypto_calendar=settings.use_crypto_calendar,
        )


@dataclass(frozen=True)
class TradeMetrics:
    """Realized outcome of one fill."""
    realized_pnl: float
    side: TradeSide


@dataclass
class MetricsResult:
    """Complete backtest metrics. Ratios and returns are fractions."""
    sharpe_ratio: float
    sortino_ratio: float
    max_drawdown: float
    win_rate: float
    profit_factor: float
    volatility: float
    downside_deviation: float
    total_return: float
    annualized_return: float
    total_trades: int  # sell fills only
    winning_trades: int
    final_value: float

    def to_baseline(self) -> BacktestBaseline:
        """Expectations for drift detection derived from this backtest."""
        return BacktestBaseline(
            sharpe=self.sharpe_ratio,
            cumulative_return=self.total_return,
            max_drawdown=self.max_drawdown,
            win_rate=self.win_rate,
            volatility=self.volatility,
        )


class MetricsCalculator:
    """
    Backtest performance metrics with timeframe-aware annualization.

    Usage:
        calculator = MetricsCalculator(MetricsConfig(timeframe=Timeframe.DAILY))
        result = calculator.calculate_metrics(values, initial_capital=10000, trades=trades)
    """

    def __init__(self, config: MetricsConfig = None):
        self.config = config or MetricsConfig.from_settings(backtest_config)

    def calculate_metrics(
        self,
        portfolio_values: Sequence[float],
        initial_capital: float,
        trades: Sequence[TradeMetrics] = ()
    ) -> MetricsResult:
        """Calculate all metrics from a value series and trades."""
        if len(portfolio_values) == 0:
            return self._empty_metrics(initial_capital)

        values = [float(v) for v in portfolio_values]
        initial_capital = float(initial_capital)
        returns = self.calculate_returns(values)
        periods = self.config.periods_per_year

        final_value = values[-1]
        total_return = (final_value - initial_capital) / initial_capital if initial_capital else 0.0

        duration = len(values) - 1
        if duration > 0 and total_return > -1:
            annualized_return = (1 + total_return) ** (periods / duration) - 1
        else:
            annualized_return = total_return

        sells = [t for t in trades if t.side == TradeSide.SELL]

        return MetricsResult(
            sharpe_ratio=self.calculate_sharpe_ratio(returns),
            sortino_ratio=self.calculate_sortino_ratio(returns),
            max_drawdown=self.calculate_max_drawdown(values),
            win_rate=self.calculate_win_rate(trades),
            profit_factor=self.calculate_profit_factor(trades),
            volatility=self.calculate_volatility(returns),
            downside_deviation=self.calculate_downside_deviation(returns),
            total_return=total_return,
            annualized_return=annualized_return,
            total_trades=len(sells),
            winning_trades=sum(1 for t in sells if t.realized_pnl > 0),
            final_value=final_value,
        )

    def calculate_returns(self, portfolio_values: Sequence[float]) -> List[float]:
        """Period-over-period returns; a zero previous value yields 0."""
        returns = []
        for previous, current in zip(portfolio_values, portfolio_values[1:]):
            previous, current = float(previous), float(current)
            returns.append(0.0 if previous == 0 else (current - previous) / previous)
        return returns

    def calculate_sharpe_ratio(self, returns: Sequence[float]) -> float:
        """Annualized Sharpe ratio of period returns over the risk-free rate."""
        if len(returns) == 0:
            return 0.0

        periods = self.config.periods_per_year
        excess = np.asarray(returns, dtype=float) - self.config.risk_free_rate / periods
        std = excess.std()
        if std == 0:
            return 0.0
        return float(excess.mean() / std * np.sqrt(periods))

    def calculate_sortino_ratio(self, returns: Sequence[float]) -> float:
        """Annualized Sortino ratio (downside deviation denominator)."""
        if len(returns) == 0:
            return 0.0

        periods = self.config.periods_per_year
        period_rf = self.config.risk_free_rate / periods
        excess_mean = float(np.mean(returns)) - period_rf
        downside = self.calculate_downside_deviation(returns) / np.sqrt(periods)
        if downside == 0:
            return 0.0
        return float(excess_mean / downside * np.sqrt(periods))

    def calculate_max_drawdown(self, portfolio_values: Sequence[float]) -> float:
        """Largest peak-to-trough decline as a fraction."""
        if len(portfolio_values) == 0:
            return 0.0

        values = np.asarray(portfolio_values, dtype=float)
        peaks = np.maximum.accumulate(values)
        with np.errstate(divide="ignore", invalid="ignore"):
            drawdowns = np.where(peaks > 0, (peaks - values) / peaks, 0.0)
        return float(drawdowns.max())

    def calculate_volatility(self, returns: Sequence[float]) -> float:
        """Annualized population standard deviation of returns."""
        if len(returns) == 0:
            return 0.0
        return float(np.std(returns) * np.sqrt(self.config.periods_per_year))

    def calculate_downside_deviation(self, returns: Sequence[float]) -> float:
        """Annualized deviation of returns below the risk-free rate.

        Uses the full sample size as the denominator.
        """
        if len(returns) == 0:
            return 0.0

        periods = self.config.periods_per_year
        period_rf = self.config.risk_free_rate / periods
        values = np.asarray(returns, dtype=float)
        downside = values[values < period_rf]
        if downside.size == 0:
            return 0.0

        variance = np.sum((downside - period_rf) ** 2) / values.size
        return float(np.sqrt(variance) * np.sqrt(periods))

    def calculate_win_rate(self, trades: Sequence[TradeMetrics]) -> float:
        """Winning sells / all sells. Only sells realize P&L."""
        sells = [t for t in trades if t.side == TradeSide.SELL]
        if not sells:
            return 0.0
        return sum(1 for t in sells if t.realized_pnl > 0) / len(sells)

    def calculate_profit_factor(self, trades: Sequence[TradeMetrics]) -> float:
        """Gross profit / gross loss over sells."""
        sells = [t for t in trades if t.side == TradeSide.SELL]
        gross_profit = sum(t.realized_pnl for t in sells if t.realized_pnl > 0)
        gross_loss = abs(sum(t.realized_pnl for t in sells if t.realized_pnl < 0))

        if gross_loss == 0:
            return float("inf") if gross_profit > 0 else 1.0
        return gross_profit / gross_loss

    def _empty_metrics(self, initial_capital: float) -> MetricsResult:
        return MetricsResult(
            sharpe_ratio=0.0,
            sortino_ratio=0.0,
            max_drawdown=0.0,
            win_rate=0.0,
            profit_factor=1.0,
            volatility=0.0,
            downside_deviation=0.0,
            total_return=0.0,
            annualized_return=0.0,
            total_trades=0,
            winning_trades=0,
            final_value=float(initial_capital),
        )
