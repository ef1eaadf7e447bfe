"""Database storage for deployments, performance metrics, drift alerts and audit events."""
from datetime import date, datetime
from typing import List, Optional

import structlog
from sqlalchemy import (Boolean, Column, Date, DateTime, Float, Integer, JSON,
                        String, Text, UniqueConstraint, select)
from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession,
                                    async_sessionmaker, create_async_engine)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from driftguard.core.config import database_config
from driftguard.core.models import (AuditEvent, AuditEventType,
                                    BacktestBaseline, Deployment,
                                    DeploymentStatus, DriftAlert,
                                    DriftSeverity, DriftType,
                                    PerformanceMetric)

logger = structlog.get_logger(__name__)

Base = declarative_base()


class DeploymentModel(Base):
    """SQLAlchemy model for live deployments."""
    __tablename__ = 'deployments'

    id = Column(String, primary_key=True)
    strategy_name = Column(String, nullable=False, default="")
    status = Column(String, nullable=False)
    max_drawdown_limit = Column(Float, nullable=False, default=0.40)
    daily_loss_limit = Column(Float, nullable=False, default=0.05)
    live_sharpe_ratio = Column(Float, nullable=True)
    drift_alert_count = Column(Integer, default=0)
    last_drift_detected_at = Column(DateTime, nullable=True)
    drift_metrics = Column(JSON, nullable=True)
    deployed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True)
    metadata_json = Column(JSON, default=dict)  # backtest baseline keys


class PerformanceMetricModel(Base):
    """SQLAlchemy model for daily performance metrics."""
    __tablename__ = 'performance_metrics'
    __table_args__ = (
        UniqueConstraint('deployment_id', 'date', name='uq_performance_metric_day'),
    )

    id = Column(String, primary_key=True)
    deployment_id = Column(String, nullable=False, index=True)
    date = Column(Date, nullable=False)
    snapshot_at = Column(DateTime, nullable=False)
    daily_pnl = Column(Float, default=0.0)
    daily_return = Column(Float, default=0.0)
    cumulative_pnl = Column(Float, default=0.0)
    cumulative_return = Column(Float, default=0.0)
    drawdown = Column(Float, default=0.0)
    max_drawdown = Column(Float, default=0.0)
    volatility = Column(Float, nullable=True)
    sharpe_ratio = Column(Float, nullable=True)
    trades_count = Column(Integer, default=0)
    cumulative_trades_count = Column(Integer, default=0)
    winning_trades = Column(Integer, default=0)
    losing_trades = Column(Integer, default=0)
    win_rate = Column(Float, nullable=True)
    profit_factor = Column(Float, nullable=True)
    open_positions = Column(Integer, default=0)
    exposure_amount = Column(Float, default=0.0)
    utilization = Column(Float, default=0.0)
    drift_detected = Column(Boolean, default=False)
    drift_details = Column(JSON, nullable=True)


class DriftAlertModel(Base):
    """SQLAlchemy model for drift alerts."""
    __tablename__ = 'drift_alerts'

    id = Column(String, primary_key=True)
    deployment_id = Column(String, nullable=False, index=True)
    drift_type = Column(String, nullable=False)
    severity = Column(String, nullable=False)
    expected_value = Column(Float, nullable=False)
    actual_value = Column(Float, nullable=False)
    deviation_percent = Column(Float, nullable=False)
    threshold = Column(Float, nullable=False)
    message = Column(Text, nullable=False)
    resolved = Column(Boolean, default=False)
    resolved_at = Column(DateTime, nullable=True)
    resolution_type = Column(String, nullable=True)
    resolution_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    metadata_json = Column(JSON, default=dict)


class AuditLogModel(Base):
    """SQLAlchemy model for audit events."""
    __tablename__ = 'audit_logs'

    id = Column(String, primary_key=True)
    event_type = Column(String, nullable=False)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, default="system")
    before_state = Column(JSON, nullable=True)
    after_state = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    metadata_json = Column(JSON, default=dict)


class Database:
    """Async database interface."""

    def __init__(self, url: Optional[str] = None):
        # Convert SQLite URL to async version if needed
        db_url = url or database_config.database_url
        if db_url.startswith('sqlite:///') and not db_url.startswith('sqlite+aiosqlite:///'):
            db_url = db_url.replace('sqlite:///', 'sqlite+aiosqlite:///')
        if db_url == 'sqlite://':
            db_url = 'sqlite+aiosqlite://'

        engine_kwargs = {"echo": database_config.database_echo}
        # In-memory SQLite lives per connection; share a single one
        if ':memory:' in db_url or db_url == 'sqlite+aiosqlite://':
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        self.url = db_url
        self.engine: AsyncEngine = create_async_engine(db_url, **engine_kwargs)
        self.session_maker = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def initialize(self):
        """Create tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.initialized", url=self.url)

    async def close(self):
        """Close database connection."""
        await self.engine.dispose()

    # Deployment operations
    async def save_deployment(self, deployment: Deployment):
        """Save or update a deployment."""
        async with self.session_maker() as session:
            db_deployment = await session.get(DeploymentModel, deployment.id)

            if db_deployment is None:
                db_deployment = DeploymentModel(
                    id=deployment.id,
                    created_at=deployment.created_at
                )
                session.add(db_deployment)
            else:
                db_deployment.updated_at = datetime.utcnow()

            db_deployment.strategy_name = deployment.strategy_name
            db_deployment.status = deployment.status.value
            db_deployment.max_drawdown_limit = deployment.max_drawdown_limit
            db_deployment.daily_loss_limit = deployment.daily_loss_limit
            db_deployment.live_sharpe_ratio = deployment.live_sharpe_ratio
            db_deployment.drift_alert_count = deployment.drift_alert_count
            db_deployment.last_drift_detected_at = deployment.last_drift_detected_at
            db_deployment.drift_metrics = deployment.drift_metrics
            db_deployment.deployed_at = deployment.deployed_at
            db_deployment.metadata_json = deployment.baseline.to_metadata()

            await session.commit()

    async def get_deployment(self, deployment_id: str) -> Optional[Deployment]:
        """Get a deployment by ID."""
        async with self.session_maker() as session:
            db_deployment = await session.get(DeploymentModel, deployment_id)

            if db_deployment is None:
                return None

            return self._deployment_from_model(db_deployment)

    async def get_active_deployments(self) -> List[Deployment]:
        """Get all deployments currently trading."""
        async with self.session_maker() as session:
            query = (
                select(DeploymentModel)
                .where(DeploymentModel.status == DeploymentStatus.ACTIVE.value)
                .order_by(DeploymentModel.created_at)
            )
            result = await session.execute(query)
            return [self._deployment_from_model(d) for d in result.scalars().all()]

    # Performance metric operations
    async def save_performance_metric(self, metric: PerformanceMetric):
        """Save a daily metric, replacing any existing record for the same day."""
        async with self.session_maker() as session:
            query = select(PerformanceMetricModel).where(
                PerformanceMetricModel.deployment_id == metric.deployment_id,
                PerformanceMetricModel.date == metric.date
            )
            result = await session.execute(query)
            db_metric = result.scalar_one_or_none()

            if db_metric is None:
                db_metric = PerformanceMetricModel(
                    id=metric.id,
                    deployment_id=metric.deployment_id,
                    date=metric.date
                )
                session.add(db_metric)

            for field in self._METRIC_FIELDS:
                setattr(db_metric, field, getattr(metric, field))

            await session.commit()

    async def get_performance_metrics(
        self,
        deployment_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> List[PerformanceMetric]:
        """Get metrics for a deployment in ascending date order."""
        async with self.session_maker() as session:
            query = (
                select(PerformanceMetricModel)
                .where(PerformanceMetricModel.deployment_id == deployment_id)
                .order_by(PerformanceMetricModel.date.asc())
            )

            if start_date:
                query = query.where(PerformanceMetricModel.date >= start_date)
            if end_date:
                query = query.where(PerformanceMetricModel.date <= end_date)

            result = await session.execute(query)
            return [self._metric_from_model(m) for m in result.scalars().all()]

    async def get_latest_metric(self, deployment_id: str) -> Optional[PerformanceMetric]:
        """Get the most recent metric for a deployment."""
        async with self.session_maker() as session:
            query = (
                select(PerformanceMetricModel)
                .where(PerformanceMetricModel.deployment_id == deployment_id)
                .order_by(PerformanceMetricModel.date.desc())
                .limit(1)
            )
            result = await session.execute(query)
            db_metric = result.scalar_one_or_none()

            if db_metric is None:
                return None

            return self._metric_from_model(db_metric)

    # Drift alert operations
    async def save_drift_alert(self, alert: DriftAlert):
        """Save or update a drift alert."""
        async with self.session_maker() as session:
            db_alert = await session.get(DriftAlertModel, alert.id)

            if db_alert is None:
                db_alert = DriftAlertModel(
                    id=alert.id,
                    deployment_id=alert.deployment_id,
                    drift_type=alert.drift_type.value,
                    severity=alert.severity.value,
                    expected_value=alert.expected_value,
                    actual_value=alert.actual_value,
                    deviation_percent=alert.deviation_percent,
                    threshold=alert.threshold,
                    message=alert.message,
                    created_at=alert.created_at,
                    metadata_json=alert.metadata
                )
                session.add(db_alert)

            db_alert.resolved = alert.resolved
            db_alert.resolved_at = alert.resolved_at
            db_alert.resolution_type = alert.resolution_type
            db_alert.resolution_notes = alert.resolution_notes

            await session.commit()

    async def get_drift_alert(self, alert_id: str) -> Optional[DriftAlert]:
        """Get a drift alert by ID."""
        async with self.session_maker() as session:
            db_alert = await session.get(DriftAlertModel, alert_id)

            if db_alert is None:
                return None

            return self._alert_from_model(db_alert)

    async def get_drift_alerts(
        self,
        deployment_id: str,
        resolved: Optional[bool] = None
    ) -> List[DriftAlert]:
        """Get drift alerts for a deployment, newest first."""
        async with self.session_maker() as session:
            query = (
                select(DriftAlertModel)
                .where(DriftAlertModel.deployment_id == deployment_id)
                .order_by(DriftAlertModel.created_at.desc())
            )

            if resolved is not None:
                query = query.where(DriftAlertModel.resolved == resolved)

            result = await session.execute(query)
            return [self._alert_from_model(a) for a in result.scalars().all()]

    # Audit operations
    async def save_audit_event(self, event: AuditEvent):
        """Append an audit event."""
        async with self.session_maker() as session:
            session.add(AuditLogModel(
                id=event.id,
                event_type=event.event_type.value,
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                user_id=event.user_id,
                before_state=event.before_state,
                after_state=event.after_state,
                created_at=event.created_at,
                metadata_json=event.metadata
            ))
            await session.commit()

    async def get_audit_events(
        self,
        entity_id: Optional[str] = None,
        event_type: Optional[AuditEventType] = None,
        limit: int = 100
    ) -> List[AuditEvent]:
        """Get audit events with optional filters, newest first."""
        async with self.session_maker() as session:
            query = select(AuditLogModel).order_by(AuditLogModel.created_at.desc()).limit(limit)

            if entity_id:
                query = query.where(AuditLogModel.entity_id == entity_id)
            if event_type:
                query = query.where(AuditLogModel.event_type == event_type.value)

            result = await session.execute(query)
            return [self._audit_from_model(e) for e in result.scalars().all()]

    _METRIC_FIELDS = (
        'snapshot_at', 'daily_pnl', 'daily_return', 'cumulative_pnl', 'cumulative_return',
        'drawdown', 'max_drawdown', 'volatility', 'sharpe_ratio', 'trades_count',
        'cumulative_trades_count', 'winning_trades', 'losing_trades', 'win_rate',
        'profit_factor', 'open_positions', 'exposure_amount', 'utilization',
        'drift_detected', 'drift_details',
    )

    def _deployment_from_model(self, model: DeploymentModel) -> Deployment:
        """Convert database model to Deployment."""
        return Deployment(
            id=model.id,
            strategy_name=model.strategy_name,
            status=DeploymentStatus(model.status),
            max_drawdown_limit=model.max_drawdown_limit,
            daily_loss_limit=model.daily_loss_limit,
            live_sharpe_ratio=model.live_sharpe_ratio,
            drift_alert_count=model.drift_alert_count or 0,
            last_drift_detected_at=model.last_drift_detected_at,
            drift_metrics=model.drift_metrics,
            baseline=BacktestBaseline.from_metadata(model.metadata_json),
            deployed_at=model.deployed_at,
            created_at=model.created_at
        )

    def _metric_from_model(self, model: PerformanceMetricModel) -> PerformanceMetric:
        """Convert database model to PerformanceMetric."""
        values = {field: getattr(model, field) for field in self._METRIC_FIELDS}
        return PerformanceMetric(
            id=model.id,
            deployment_id=model.deployment_id,
            date=model.date,
            **values
        )

    def _alert_from_model(self, model: DriftAlertModel) -> DriftAlert:
        """Convert database model to DriftAlert."""
        return DriftAlert(
            id=model.id,
            deployment_id=model.deployment_id,
            drift_type=DriftType(model.drift_type),
            severity=DriftSeverity(model.severity),
            expected_value=model.expected_value,
            actual_value=model.actual_value,
            deviation_percent=model.deviation_percent,
            threshold=model.threshold,
            message=model.message,
            metadata=model.metadata_json or {},
            resolved=bool(model.resolved),
            resolved_at=model.resolved_at,
            resolution_type=model.resolution_type,
            resolution_notes=model.resolution_notes,
            created_at=model.created_at
        )

    def _audit_from_model(self, model: AuditLogModel) -> AuditEvent:
        """Convert database model to AuditEvent."""
        return AuditEvent(
            id=model.id,
            event_type=AuditEventType(model.event_type),
            entity_type=model.entity_type,
            entity_id=model.entity_id,
            user_id=model.user_id,
            before_state=model.before_state,
            after_state=model.after_state,
            metadata=model.metadata_json or {},
            created_at=model.created_at
        )
