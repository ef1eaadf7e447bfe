"""Audit trail for drift detection activity."""
from typing import Any, Dict, List, Optional

import structlog

from driftguard.core.config import logging_config
from driftguard.core.models import AuditEvent, AuditEventType
from driftguard.storage.database import Database
from driftguard.utils.logging_config import get_audit_logger

logger = structlog.get_logger(__name__)


class AuditService:
    """
    Records audit events.

    Every event goes to the audit logger. Events are also persisted to the
    audit_logs table unless audit logging is disabled in configuration.
    """

    def __init__(self, database: Database, persist: Optional[bool] = None):
        self.database = database
        self.persist = logging_config.audit_log_enabled if persist is None else persist
        self.audit_logger = get_audit_logger()

    async def record(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        before_state: Optional[Dict[str, Any]] = None,
        after_state: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: str = "system"
    ) -> AuditEvent:
        """Create, log and (optionally) persist an audit event."""
        event = AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            before_state=before_state,
            after_state=after_state,
            metadata=metadata or {}
        )

        self.audit_logger.info(
            event_type.value,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            before_state=before_state,
            after_state=after_state,
            **(metadata or {})
        )

        if self.persist:
            await self.database.save_audit_event(event)

        return event

    async def get_events(
        self,
        entity_id: Optional[str] = None,
        event_type: Optional[AuditEventType] = None,
        limit: int = 100
    ) -> List[AuditEvent]:
        """Get persisted audit events, newest first."""
        return await self.database.get_audit_events(
            entity_id=entity_id, event_type=event_type, limit=limit
        )
