"""Data models for the driftguard backtest and drift monitoring system.

This module defines all data structures shared across the system:
- Portfolio state: positions, portfolios, drawdown tracking, snapshots, checkpoints
- Live deployments and their daily performance metrics
- Drift alerts raised when live performance deviates from backtest expectations
- Audit events recording drift detection and resolution

All monetary values in the portfolio engine use Decimal for precision.
Statistical metrics (Sharpe, volatility, win rate) are floats.
"""

import math
from datetime import date as date_type
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================

class TradeSide(str, Enum):
    """Fill side - buy or sell."""
    BUY = "buy"
    SELL = "sell"


class DeploymentStatus(str, Enum):
    """Live deployment lifecycle status."""
    PENDING_APPROVAL = "pending_approval"
    ACTIVE = "active"
    PAUSED = "paused"             # Manual pause or drift response
    DEMOTED = "demoted"           # Automatically stopped for performance/risk
    TERMINATED = "terminated"


class DriftType(str, Enum):
    """Performance dimension a drift alert refers to."""
    SHARPE_RATIO = "sharpe_ratio"
    RETURN = "return"
    DRAWDOWN = "drawdown"
    WIN_RATE = "win_rate"
    VOLATILITY = "volatility"


class DriftSeverity(str, Enum):
    """Severity tiers for drift alerts.

    LOW is part of the vocabulary but detectors never raise it: a deviation
    below the medium threshold produces no alert at all.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ResolutionType(str, Enum):
    """How a drift alert was closed."""
    ACKNOWLEDGED = "acknowledged"
    AUTO_DEMOTED = "auto_demoted"
    STRATEGY_ADJUSTED = "strategy_adjusted"
    FALSE_POSITIVE = "false_positive"


class AuditEventType(str, Enum):
    """Audit trail event types emitted by the drift orchestrator."""
    DRIFT_DETECTED = "drift_detected"
    DRIFT_ALERT_RESOLVED = "drift_alert_resolved"


# =============================================================================
# Portfolio State Models
# =============================================================================

class Position(BaseModel):
    """Holding of a single instrument inside a simulated portfolio.

    Attributes:
        instrument_id: Instrument identifier (e.g., "bitcoin")
        quantity: Units held
        average_price: Quantity-weighted average entry price
        total_value: Cached valuation; carried forward when no price is known
    """
    model_config = ConfigDict(frozen=True, json_encoders={Decimal: str})

    instrument_id: str = Field(..., description="Instrument identifier")
    quantity: Decimal = Field(..., ge=0, description="Units held")
    average_price: Decimal = Field(..., gt=0, description="Average entry price")
    total_value: Decimal = Field(default=Decimal("0"), description="Cached valuation")


class Portfolio(BaseModel):
    """Cash plus positions for one simulation run.

    Instances are never mutated; every engine operation returns a new one.
    Invariant: total_value == cash_balance + sum(position.total_value).
    """
    model_config = ConfigDict(frozen=True, json_encoders={Decimal: str})

    cash_balance: Decimal = Field(..., description="Cash in quote currency")
    positions: Dict[str, Position] = Field(default_factory=dict, description="Positions by instrument")
    total_value: Decimal = Field(..., description="Cash plus position values")

    @property
    def positions_value(self) -> Decimal:
        """Sum of cached position valuations."""
        return sum((p.total_value for p in self.positions.values()), Decimal("0"))

    def get_position(self, instrument_id: str) -> Optional[Position]:
        """Get the position for an instrument, if held."""
        return self.positions.get(instrument_id)


class DrawdownState(BaseModel):
    """Peak-to-trough drawdown tracking.

    peak_value and max_drawdown never decrease across a simulation.
    """
    model_config = ConfigDict(frozen=True, json_encoders={Decimal: str})

    peak_value: Decimal = Field(default=Decimal("0"), description="Peak portfolio value")
    max_drawdown: Decimal = Field(default=Decimal("0"), description="Max drawdown (fraction)")
    current_drawdown: Decimal = Field(default=Decimal("0"), description="Current drawdown (fraction)")

    @classmethod
    def start(cls, initial_value: Decimal) -> "DrawdownState":
        """Initial drawdown state for a run starting at initial_value."""
        return cls(peak_value=initial_value)


class HoldingSnapshot(BaseModel):
    """Per-instrument holding inside a portfolio snapshot."""
    model_config = ConfigDict(frozen=True, json_encoders={Decimal: str})

    quantity: Decimal
    value: Decimal
    price: Decimal


class PortfolioSnapshot(BaseModel):
    """Point-in-time projection of a portfolio for charting. Write-once."""
    model_config = ConfigDict(frozen=True, json_encoders={Decimal: str})

    timestamp: datetime = Field(..., description="Snapshot time")
    portfolio_value: Decimal = Field(..., description="Total portfolio value")
    cash_balance: Decimal = Field(..., description="Cash balance")
    holdings: Dict[str, HoldingSnapshot] = Field(default_factory=dict, description="Holdings")
    cumulative_return: Decimal = Field(..., description="Return since initial capital")
    drawdown: Decimal = Field(..., description="Current drawdown from peak")


class SerializablePosition(BaseModel):
    """Checkpoint form of a position (no cached valuation)."""
    model_config = ConfigDict(json_encoders={Decimal: str})

    instrument_id: str
    quantity: Decimal
    average_price: Decimal
    entry_date: Optional[str] = None


class SerializablePortfolio(BaseModel):
    """Checkpoint form of a portfolio.

    total_value is intentionally absent; it is recomputed on load.
    """
    model_config = ConfigDict(json_encoders={Decimal: str})

    cash_balance: Decimal
    positions: List[SerializablePosition] = Field(default_factory=list)


class ApplyTradeResult(BaseModel):
    """Outcome of applying a fill to a portfolio.

    A rejected trade carries the unchanged input portfolio and an error.
    """
    model_config = ConfigDict(frozen=True)

    portfolio: Portfolio
    success: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls, portfolio: Portfolio) -> "ApplyTradeResult":
        return cls(portfolio=portfolio, success=True)

    @classmethod
    def rejected(cls, portfolio: Portfolio, error: str) -> "ApplyTradeResult":
        return cls(portfolio=portfolio, success=False, error=error)


# =============================================================================
# Deployment Models
# =============================================================================

class BacktestBaseline(BaseModel):
    """Backtest-derived expectations a deployment is measured against.

    Every field is optional; detectors apply their own documented default
    when a value is missing. Zero and non-finite values count as missing.
    """

    sharpe: Optional[float] = Field(default=None, description="Backtest Sharpe ratio")
    cumulative_return: Optional[float] = Field(default=None, description="Backtest return")
    max_drawdown: Optional[float] = Field(default=None, description="Backtest max drawdown")
    win_rate: Optional[float] = Field(default=None, description="Backtest win rate")
    volatility: Optional[float] = Field(default=None, description="Backtest annualized volatility")

    # Stored metadata keys
    METADATA_KEYS: ClassVar[Dict[str, str]] = {
        "sharpe": "backtestSharpe",
        "cumulative_return": "backtestReturn",
        "max_drawdown": "backtestMaxDrawdown",
        "win_rate": "backtestWinRate",
        "volatility": "backtestVolatility",
    }

    @field_validator("sharpe", "cumulative_return", "max_drawdown", "win_rate", "volatility")
    @classmethod
    def drop_unusable_values(cls, v):
        if v is None or v == 0 or not math.isfinite(v):
            return None
        return v

    @classmethod
    def from_metadata(cls, metadata: Optional[Dict[str, Any]]) -> "BacktestBaseline":
        """Build a baseline from a deployment metadata bag."""
        metadata = metadata or {}
        values = {}
        for field_name, key in cls.METADATA_KEYS.items():
            raw = metadata.get(key)
            if raw is not None:
                values[field_name] = float(raw)
        return cls(**values)

    def to_metadata(self) -> Dict[str, float]:
        """Convert to the metadata bag representation (missing fields omitted)."""
        return {
            key: getattr(self, field_name)
            for field_name, key in self.METADATA_KEYS.items()
            if getattr(self, field_name) is not None
        }


class Deployment(BaseModel):
    """Live deployment of a strategy, referenced by drift detection.

    Attributes:
        id: Deployment ID
        strategy_name: Name of the deployed strategy
        status: Lifecycle status
        max_drawdown_limit: Hard drawdown limit (fraction, 0.40 = 40%)
        daily_loss_limit: Daily loss limit (fraction)
        live_sharpe_ratio: Live Sharpe ratio, used when no backtest Sharpe exists
        drift_alert_count: Cumulative number of drift alerts raised
        last_drift_detected_at: When drift was last detected
        drift_metrics: Summary of the latest drift detection pass
        baseline: Backtest expectations
        deployed_at: When the deployment went live
    """

    id: str = Field(default_factory=lambda: str(uuid4()), description="Deployment ID")
    strategy_name: str = Field(default="", description="Strategy name")
    status: DeploymentStatus = Field(default=DeploymentStatus.PENDING_APPROVAL)

    # Risk limits
    max_drawdown_limit: float = Field(default=0.40, gt=0, description="Hard drawdown limit")
    daily_loss_limit: float = Field(default=0.05, gt=0, description="Daily loss limit")

    live_sharpe_ratio: Optional[float] = Field(default=None, description="Live Sharpe ratio")

    # Drift monitoring
    drift_alert_count: int = Field(default=0, ge=0, description="Drift alerts triggered")
    last_drift_detected_at: Optional[datetime] = Field(default=None)
    drift_metrics: Optional[Dict[str, Any]] = Field(default=None)

    baseline: BacktestBaseline = Field(default_factory=BacktestBaseline)

    deployed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_active(self) -> bool:
        """True if the deployment is currently trading."""
        return self.status == DeploymentStatus.ACTIVE

    @property
    def days_live(self) -> Optional[int]:
        """Whole days since the deployment went live."""
        if self.deployed_at is None:
            return None
        return (datetime.utcnow() - self.deployed_at).days


class PerformanceMetric(BaseModel):
    """Daily live performance snapshot for a deployment.

    One record per deployment per day. Returns and drawdowns are fractions
    (0.01 = 1%); volatility and Sharpe are annualized.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    deployment_id: str
    date: date_type
    snapshot_at: datetime = Field(default_factory=datetime.utcnow)

    # Daily performance
    daily_pnl: float = 0.0
    daily_return: float = 0.0
    cumulative_pnl: float = 0.0
    cumulative_return: float = 0.0

    # Risk metrics
    drawdown: float = 0.0
    max_drawdown: float = 0.0
    volatility: Optional[float] = None
    sharpe_ratio: Optional[float] = None

    # Trade statistics
    trades_count: int = 0
    cumulative_trades_count: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: Optional[float] = None
    profit_factor: Optional[float] = None

    # Position information
    open_positions: int = 0
    exposure_amount: float = 0.0
    utilization: float = 0.0

    # Drift flags
    drift_detected: bool = False
    drift_details: Optional[Dict[str, Any]] = None

    @property
    def is_profitable(self) -> bool:
        return self.daily_pnl > 0

    @property
    def is_loss(self) -> bool:
        return self.daily_pnl < 0


# =============================================================================
# Drift Alert Models
# =============================================================================

class DriftAlert(BaseModel):
    """Deviation of one live metric from its backtest expectation.

    Created by a detector and immutable afterwards except for the resolution
    fields, which are set by resolve().
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    deployment_id: str
    drift_type: DriftType
    severity: DriftSeverity
    expected_value: float
    actual_value: float
    deviation_percent: float = Field(..., description="Signed deviation in percent")
    threshold: float = Field(..., description="Medium threshold used as alert boundary")
    message: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    # Resolution
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    resolution_type: Optional[str] = None
    resolution_notes: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_critical(self) -> bool:
        return self.severity == DriftSeverity.CRITICAL

    @property
    def recommendation(self) -> Optional[str]:
        return self.metadata.get("recommendation")

    def resolve(self, resolution_type: str, notes: Optional[str] = None,
                resolved_at: Optional[datetime] = None) -> None:
        """Mark the alert resolved.

        Resolving again re-stamps resolved_at.
        """
        self.resolved = True
        self.resolved_at = resolved_at or datetime.utcnow()
        self.resolution_type = (
            resolution_type.value if isinstance(resolution_type, ResolutionType) else resolution_type
        )
        self.resolution_notes = notes


# =============================================================================
# Audit Models
# =============================================================================

class AuditEvent(BaseModel):
    """Audit trail entry for drift detection activity."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: AuditEventType
    entity_type: str
    entity_id: str
    user_id: str = "system"
    before_state: Optional[Dict[str, Any]] = None
    after_state: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)
