"""
Backtest driver - sequential simulation over priced ticks.

Feeds a time-ordered sequence of price maps and trade signals through the
portfolio state engine and records:
- Every signal received
- Simulated fills (with realized P&L for sells)
- Rejected trades (insufficient cash, nothing to sell, no price)
- Periodic portfolio snapshots and the per-tick equity curve

A run is a strict fold: each tick's portfolio depends on the previous one.
Independent runs share nothing and can execute in parallel.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import pandas as pd
import structlog
from pydantic import BaseModel, ConfigDict, Field

from driftguard.core.config import backtest_config
from driftguard.core.models import (DrawdownState, Portfolio, PortfolioSnapshot,
                                    SerializablePortfolio, TradeSide)
from driftguard.portfolio.metrics import (MetricsCalculator, MetricsConfig,
                                          MetricsResult, TradeMetrics)
from driftguard.portfolio.state import PortfolioStateEngine

logger = structlog.get_logger(__name__)

NO_PRICE_ERROR = "No price available for signal"


@dataclass(frozen=True)
class TradeSignal:
    """Pre-validated fill request produced by a strategy."""

    instrument_id: str
    side: TradeSide
    quantity: Decimal
    price: Optional[Decimal] = None  # Falls back to the tick price
    fee: Decimal = Decimal("0")
    reason: str = ""
    confidence: float = 0.5

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError("Signal quantity must be positive")
        if self.fee < 0:
            raise ValueError("Signal fee must not be negative")


@dataclass(frozen=True)
class Tick:
    """One simulation step: current prices plus the signals to execute."""

    timestamp: datetime
    prices: Dict[str, Decimal]
    signals: List[TradeSignal] = field(default_factory=list)


@dataclass(frozen=True)
class SignalRecord:
    """A signal as received at a given tick."""

    timestamp: datetime
    signal: TradeSignal


@dataclass(frozen=True)
class SimulatedFill:
    """A trade applied to the portfolio."""

    timestamp: datetime
    instrument_id: str
    side: TradeSide
    quantity: Decimal
    price: Decimal
    fee: Decimal
    realized_pnl: Decimal = Decimal("0")


@dataclass(frozen=True)
class RejectedTrade:
    """A signal the portfolio engine refused."""

    timestamp: datetime
    signal: TradeSignal
    error: str


class BacktestCheckpoint(BaseModel):
    """Everything needed to resume a paused simulation."""
    model_config = ConfigDict(json_encoders={Decimal: str})

    portfolio: SerializablePortfolio
    drawdown: DrawdownState
    ticks_processed: int = Field(..., ge=0)
    last_timestamp: Optional[datetime] = None
    last_prices: Dict[str, Decimal] = Field(default_factory=dict)


@dataclass
class BacktestResult:
    """Complete output of a backtest run."""

    initial_capital: Decimal
    final_portfolio: Portfolio
    drawdown: DrawdownState
    snapshots: List[PortfolioSnapshot] = field(default_factory=list)
    signals: List[SignalRecord] = field(default_factory=list)
    fills: List[SimulatedFill] = field(default_factory=list)
    rejected: List[RejectedTrade] = field(default_factory=list)
    equity: List[Dict] = field(default_factory=list)
    ticks_processed: int = 0
    last_timestamp: Optional[datetime] = None
    last_prices: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def final_value(self) -> Decimal:
        return self.final_portfolio.total_value

    @property
    def total_return(self) -> Decimal:
        if self.initial_capital <= 0:
            return Decimal("0")
        return (self.final_value - self.initial_capital) / self.initial_capital

    def checkpoint(self) -> BacktestCheckpoint:
        """Checkpoint for resuming from the end of this run."""
        engine = PortfolioStateEngine()
        return BacktestCheckpoint(
            portfolio=engine.serialize(self.final_portfolio),
            drawdown=self.drawdown,
            ticks_processed=self.ticks_processed,
            last_timestamp=self.last_timestamp,
            last_prices=dict(self.last_prices),
        )

    def equity_curve(self) -> pd.DataFrame:
        """Per-tick portfolio values indexed by timestamp."""
        if not self.equity:
            return pd.DataFrame(columns=["equity", "cash", "drawdown"])
        frame = pd.DataFrame(self.equity)
        frame = frame.set_index("timestamp")
        return frame.astype(float)

    def metrics(self, config: Optional[MetricsConfig] = None) -> MetricsResult:
        """Performance metrics over the per-tick equity curve."""
        calculator = MetricsCalculator(config)
        values = [float(point["equity"]) for point in self.equity]
        trades = [
            TradeMetrics(realized_pnl=float(fill.realized_pnl), side=fill.side)
            for fill in self.fills
        ]
        return calculator.calculate_metrics(values, float(self.initial_capital), trades)


class BacktestDriver:
    """
    Drives the portfolio state engine tick by tick.

    Usage:
        driver = BacktestDriver(initial_capital=Decimal("10000"))
        result = driver.run(ticks)

        # Pause and resume later
        checkpoint = result.checkpoint()
        resumed = driver.run(remaining_ticks, checkpoint=checkpoint)
    """

    def __init__(
        self,
        initial_capital: Optional[Decimal] = None,
        snapshot_interval: Optional[int] = None,
        engine: Optional[PortfolioStateEngine] = None,
    ):
        self.initial_capital = (
            initial_capital if initial_capital is not None else backtest_config.initial_capital
        )
        self.snapshot_interval = snapshot_interval or backtest_config.snapshot_interval
        self.engine = engine or PortfolioStateEngine()

        if self.initial_capital <= 0:
            raise ValueError("initial_capital must be positive")
        if self.snapshot_interval < 1:
            raise ValueError("snapshot_interval must be at least 1")

    def run(
        self,
        ticks: Iterable[Tick],
        checkpoint: Optional[BacktestCheckpoint] = None,
    ) -> BacktestResult:
        """
        Run the simulation over ticks.

        Args:
            ticks: Time-ordered ticks
            checkpoint: Resume from this checkpoint instead of a fresh portfolio

        Returns:
            BacktestResult with final state and recorded activity

        Raises:
            ValueError: If ticks are not in time order
        """
        ticks = list(ticks)
        self._validate_order(ticks, checkpoint)

        last_prices: Dict[str, Decimal] = {}
        if checkpoint is not None:
            last_prices.update(checkpoint.last_prices)
            if ticks:
                last_prices.update(ticks[0].prices)
            portfolio = self.engine.deserialize(checkpoint.portfolio, last_prices)
            drawdown = checkpoint.drawdown
            offset = checkpoint.ticks_processed
            last_timestamp = checkpoint.last_timestamp
        else:
            portfolio = self.engine.initialize(self.initial_capital)
            drawdown = DrawdownState.start(self.initial_capital)
            offset = 0
            last_timestamp = None

        result = BacktestResult(
            initial_capital=self.initial_capital,
            final_portfolio=portfolio,
            drawdown=drawdown,
        )

        logger.info(
            "backtest.starting",
            ticks=len(ticks),
            initial_capital=str(self.initial_capital),
            resumed=checkpoint is not None,
        )

        for i, tick in enumerate(ticks):
            index = offset + i

            if i and i % 1000 == 0:
                logger.info(
                    "backtest.progress",
                    current=tick.timestamp.isoformat(),
                    progress=f"{i / len(ticks) * 100:.1f}%",
                )

            last_prices.update(tick.prices)
            portfolio = self.engine.update_values(portfolio, tick.prices)

            for signal in tick.signals:
                result.signals.append(SignalRecord(timestamp=tick.timestamp, signal=signal))
                portfolio = self._execute_signal(portfolio, signal, tick, result, last_prices)

            drawdown = self.engine.update_drawdown(portfolio.total_value, drawdown)

            result.equity.append({
                "timestamp": tick.timestamp,
                "equity": portfolio.total_value,
                "cash": portfolio.cash_balance,
                "drawdown": drawdown.current_drawdown,
            })

            if index % self.snapshot_interval == 0 or i == len(ticks) - 1:
                result.snapshots.append(
                    self.engine.create_snapshot(
                        portfolio, tick.timestamp, tick.prices, self.initial_capital, drawdown
                    )
                )

            last_timestamp = tick.timestamp

        result.final_portfolio = portfolio
        result.drawdown = drawdown
        result.ticks_processed = offset + len(ticks)
        result.last_timestamp = last_timestamp
        result.last_prices = last_prices

        logger.info(
            "backtest.complete",
            fills=len(result.fills),
            rejected=len(result.rejected),
            final_value=str(portfolio.total_value),
            max_drawdown=str(drawdown.max_drawdown),
        )

        return result

    def _execute_signal(
        self,
        portfolio: Portfolio,
        signal: TradeSignal,
        tick: Tick,
        result: BacktestResult,
        last_prices: Dict[str, Decimal],
    ) -> Portfolio:
        """Apply one signal, recording a fill or a rejection."""
        price = signal.price if signal.price is not None else tick.prices.get(signal.instrument_id)

        if price is None:
            result.rejected.append(RejectedTrade(tick.timestamp, signal, NO_PRICE_ERROR))
            logger.debug("backtest.signal_without_price", instrument=signal.instrument_id)
            return portfolio

        realized_pnl = Decimal("0")
        filled_quantity = signal.quantity

        if signal.side == TradeSide.BUY:
            outcome = self.engine.apply_buy(
                portfolio, signal.instrument_id, signal.quantity, price, signal.fee, tick.prices
            )
        else:
            held = portfolio.get_position(signal.instrument_id)
            if held is not None:
                filled_quantity = min(signal.quantity, held.quantity)
                realized_pnl = (price - held.average_price) * filled_quantity - signal.fee
            outcome = self.engine.apply_sell(
                portfolio, signal.instrument_id, signal.quantity, price, signal.fee, tick.prices
            )

        if not outcome.success:
            result.rejected.append(RejectedTrade(tick.timestamp, signal, outcome.error))
            logger.debug(
                "backtest.trade_rejected",
                instrument=signal.instrument_id,
                side=signal.side.value,
                error=outcome.error,
            )
            return portfolio

        result.fills.append(
            SimulatedFill(
                timestamp=tick.timestamp,
                instrument_id=signal.instrument_id,
                side=signal.side,
                quantity=filled_quantity,
                price=price,
                fee=signal.fee,
                realized_pnl=realized_pnl,
            )
        )
        last_prices[signal.instrument_id] = tick.prices.get(signal.instrument_id, price)

        return outcome.portfolio

    def _validate_order(self, ticks: List[Tick], checkpoint: Optional[BacktestCheckpoint]):
        """Reject ticks that go backwards in time."""
        previous = checkpoint.last_timestamp if checkpoint is not None else None
        for tick in ticks:
            if previous is not None and tick.timestamp < previous:
                raise ValueError(
                    f"Tick at {tick.timestamp.isoformat()} precedes {previous.isoformat()}"
                )
            previous = tick.timestamp
