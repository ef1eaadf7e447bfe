"""Portfolio state engine.

Pure transitions over immutable portfolio values for backtest simulation:
- Initialization with starting capital
- Revaluation against a price map
- Buy/sell fill application
- Drawdown tracking
- Snapshot creation for charting
- Checkpoint serialization/deserialization

No method mutates its inputs. Every operation returns a fresh Portfolio
(with a fresh positions dict), so a caller can keep the previous value for
comparison. Trade rejections are returned as ApplyTradeResult values, never
raised.

Usage:
    engine = PortfolioStateEngine()
    portfolio = engine.initialize(Decimal("10000"))

    result = engine.apply_buy(portfolio, "bitcoin", Decimal("0.1"), Decimal("50000"), Decimal("5"))
    if result.success:
        portfolio = engine.update_values(result.portfolio, prices)
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, Mapping, Optional

import structlog

from driftguard.core.models import (
    ApplyTradeResult, DrawdownState, HoldingSnapshot, Portfolio,
    PortfolioSnapshot, Position, SerializablePortfolio, SerializablePosition
)

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")

INSUFFICIENT_CASH_ERROR = "Insufficient cash balance for buy trade"
NO_POSITION_ERROR = "No position to sell"


class PortfolioStateEngine:
    """
    Deterministic portfolio state transitions for backtesting.

    Holds no state of its own; one instance can serve any number of
    independent simulations concurrently.
    """

    def initialize(self, initial_capital: Decimal) -> Portfolio:
        """Create a portfolio holding only cash."""
        return Portfolio(
            cash_balance=initial_capital,
            positions={},
            total_value=initial_capital
        )

    def update_values(self, portfolio: Portfolio, prices: Mapping[str, Decimal]) -> Portfolio:
        """
        Revalue every position against current prices.

        Positions without a price keep their stored valuation.

        Args:
            portfolio: Current portfolio
            prices: Instrument ID -> current price

        Returns:
            New portfolio with recalculated values
        """
        total_value = portfolio.cash_balance
        new_positions: Dict[str, Position] = {}

        for instrument_id, position in portfolio.positions.items():
            price = prices.get(instrument_id)
            value = position.quantity * price if price is not None else position.total_value

            new_positions[instrument_id] = position.model_copy(update={"total_value": value})
            total_value += value

        return Portfolio(
            cash_balance=portfolio.cash_balance,
            positions=new_positions,
            total_value=total_value
        )

    def apply_buy(
        self,
        portfolio: Portfolio,
        instrument_id: str,
        quantity: Decimal,
        price: Decimal,
        fee: Decimal,
        current_prices: Optional[Mapping[str, Decimal]] = None
    ) -> ApplyTradeResult:
        """
        Apply a buy fill: deduct cost plus fee from cash, add to the position.

        Adding to an existing position moves its average price to the
        quantity-weighted mean of old and new fills.

        Args:
            portfolio: Current portfolio
            instrument_id: Instrument to buy
            quantity: Units bought
            price: Execution price
            fee: Trading fee
            current_prices: Prices for all positions. When omitted only the
                traded instrument is revalued; others keep stored values.

        Returns:
            ApplyTradeResult; on rejection the input portfolio is returned
        """
        total_cost = quantity * price + fee

        # A fee that exactly exhausts cash is allowed
        if portfolio.cash_balance < total_cost:
            logger.debug(
                "portfolio.buy_rejected",
                instrument=instrument_id,
                cost=str(total_cost),
                cash=str(portfolio.cash_balance)
            )
            return ApplyTradeResult.rejected(portfolio, INSUFFICIENT_CASH_ERROR)

        new_cash = portfolio.cash_balance - total_cost
        existing = portfolio.positions.get(instrument_id)

        if existing is not None and existing.quantity > 0:
            new_quantity = existing.quantity + quantity
            new_average = (
                existing.average_price * existing.quantity + price * quantity
            ) / new_quantity
            position = Position(
                instrument_id=instrument_id,
                quantity=new_quantity,
                average_price=new_average,
                total_value=new_quantity * price
            )
        else:
            position = Position(
                instrument_id=instrument_id,
                quantity=quantity,
                average_price=price,
                total_value=quantity * price
            )

        new_positions = dict(portfolio.positions)
        new_positions[instrument_id] = position

        return ApplyTradeResult.ok(
            self._build(new_cash, new_positions, current_prices, instrument_id, price)
        )

    def apply_sell(
        self,
        portfolio: Portfolio,
        instrument_id: str,
        quantity: Decimal,
        price: Decimal,
        fee: Decimal,
        current_prices: Optional[Mapping[str, Decimal]] = None
    ) -> ApplyTradeResult:
        """
        Apply a sell fill: add proceeds less fee to cash, reduce the position.

        Quantity is capped at the held amount. A fully sold position is
        removed. The average price of a remaining position is unchanged.

        Args:
            portfolio: Current portfolio
            instrument_id: Instrument to sell
            quantity: Units requested
            price: Execution price
            fee: Trading fee
            current_prices: Prices for all positions (see apply_buy)

        Returns:
            ApplyTradeResult; on rejection the input portfolio is returned
        """
        existing = portfolio.positions.get(instrument_id)

        if existing is None or existing.quantity == 0:
            logger.debug("portfolio.sell_rejected", instrument=instrument_id)
            return ApplyTradeResult.rejected(portfolio, NO_POSITION_ERROR)

        sell_quantity = min(quantity, existing.quantity)
        proceeds = sell_quantity * price
        new_cash = portfolio.cash_balance + proceeds - fee

        remaining = existing.quantity - sell_quantity
        new_positions = dict(portfolio.positions)

        if remaining <= 0:
            del new_positions[instrument_id]
        else:
            new_positions[instrument_id] = Position(
                instrument_id=instrument_id,
                quantity=remaining,
                average_price=existing.average_price,
                total_value=remaining * price
            )

        return ApplyTradeResult.ok(
            self._build(new_cash, new_positions, current_prices, instrument_id, price)
        )

    def calculate_positions_value(
        self,
        positions: Mapping[str, Position],
        prices: Mapping[str, Decimal]
    ) -> Decimal:
        """Sum position values, using stored values where no price is known."""
        total = ZERO

        for instrument_id, position in positions.items():
            price = prices.get(instrument_id)
            if price is not None:
                total += position.quantity * price
            else:
                total += position.total_value

        return total

    def update_drawdown(self, current_value: Decimal, state: DrawdownState) -> DrawdownState:
        """
        Fold a new portfolio value into the drawdown state.

        Peak and max drawdown never decrease.
        """
        peak = max(state.peak_value, current_value)
        current_drawdown = ZERO if peak == 0 else (peak - current_value) / peak
        max_drawdown = max(state.max_drawdown, current_drawdown)

        return DrawdownState(
            peak_value=peak,
            max_drawdown=max_drawdown,
            current_drawdown=current_drawdown
        )

    def create_snapshot(
        self,
        portfolio: Portfolio,
        timestamp: datetime,
        prices: Mapping[str, Decimal],
        initial_capital: Decimal,
        drawdown_state: DrawdownState
    ) -> PortfolioSnapshot:
        """
        Project the portfolio into a snapshot for charting.

        Holdings with no known price are shown at price 0.
        """
        holdings = {}
        for instrument_id, position in portfolio.positions.items():
            price = prices.get(instrument_id, ZERO)
            holdings[instrument_id] = HoldingSnapshot(
                quantity=position.quantity,
                value=position.quantity * price,
                price=price
            )

        if initial_capital > 0:
            cumulative_return = (portfolio.total_value - initial_capital) / initial_capital
        else:
            cumulative_return = ZERO

        return PortfolioSnapshot(
            timestamp=timestamp,
            portfolio_value=portfolio.total_value,
            cash_balance=portfolio.cash_balance,
            holdings=holdings,
            cumulative_return=cumulative_return,
            drawdown=drawdown_state.current_drawdown
        )

    def serialize(self, portfolio: Portfolio) -> SerializablePortfolio:
        """Convert to checkpoint form."""
        return SerializablePortfolio(
            cash_balance=portfolio.cash_balance,
            positions=[
                SerializablePosition(
                    instrument_id=instrument_id,
                    quantity=position.quantity,
                    average_price=position.average_price
                )
                for instrument_id, position in portfolio.positions.items()
            ]
        )

    def deserialize(
        self,
        serialized: SerializablePortfolio,
        current_prices: Optional[Mapping[str, Decimal]] = None
    ) -> Portfolio:
        """
        Restore a portfolio from checkpoint form.

        Positions are valued at current prices when given, otherwise at
        their average price.
        """
        positions: Dict[str, Position] = {}
        positions_value = ZERO

        for item in serialized.positions:
            price = None
            if current_prices is not None:
                price = current_prices.get(item.instrument_id)
            if price is None:
                price = item.average_price

            value = item.quantity * price
            positions[item.instrument_id] = Position(
                instrument_id=item.instrument_id,
                quantity=item.quantity,
                average_price=item.average_price,
                total_value=value
            )
            positions_value += value

        return Portfolio(
            cash_balance=serialized.cash_balance,
            positions=positions,
            total_value=serialized.cash_balance + positions_value
        )

    def _build(
        self,
        cash: Decimal,
        positions: Dict[str, Position],
        current_prices: Optional[Mapping[str, Decimal]],
        instrument_id: str,
        price: Decimal
    ) -> Portfolio:
        """Assemble a post-trade portfolio with consistent cached values."""
        prices = current_prices if current_prices is not None else {instrument_id: price}

        # Re-cache revalued positions so total_value matches their sum
        revalued: Dict[str, Position] = {}
        for key, position in positions.items():
            known = prices.get(key)
            if known is not None and position.quantity * known != position.total_value:
                position = position.model_copy(update={"total_value": position.quantity * known})
            revalued[key] = position

        return Portfolio(
            cash_balance=cash,
            positions=revalued,
            total_value=cash + self.calculate_positions_value(revalued, prices)
        )
