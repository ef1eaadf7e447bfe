"""
Backtest driver.

Usage:
    from driftguard.backtest import BacktestDriver, Tick, TradeSignal

    driver = BacktestDriver(initial_capital=Decimal("10000"))
    result = driver.run(ticks)

    # Pause and resume later
    checkpoint = result.checkpoint()
    resumed = driver.run(remaining_ticks, checkpoint=checkpoint)
"""

from driftguard.backtest.engine import (BacktestCheckpoint, BacktestDriver,
                                        BacktestResult, RejectedTrade,
                                        SimulatedFill, Tick, TradeSignal)

__all__ = [
    "BacktestDriver",
    "BacktestResult",
    "BacktestCheckpoint",
    "Tick",
    "TradeSignal",
    "SimulatedFill",
    "RejectedTrade",
]
