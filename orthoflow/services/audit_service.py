"""Audit service - append-only trail of workflow events kept in the document."""

import logging

from orthoflow.core.config import settings
from orthoflow.db.enums import AuditEntity
from orthoflow.schemas.audit import AuditLog
from orthoflow.schemas.auth import Actor
from orthoflow.schemas.state import WorkflowState
from orthoflow.utils.dates import utcnow
from orthoflow.utils.ids import new_id

logger = logging.getLogger(__name__)


def record_event(
    state: WorkflowState,
    entity: AuditEntity,
    entity_id: str,
    action: str,
    message: str,
    actor: Actor | None = None,
) -> AuditLog | None:
    """
    Append an audit entry to the state being mutated.

    Only the most recent AUDIT_LOG_LIMIT entries are kept. A failure here is
    logged and never fails the surrounding mutation.
    """
    try:
        entry = AuditLog(
            id=new_id("audit"),
            at=utcnow(),
            entity=entity.value,
            entity_id=entity_id,
            action=action,
            message=message,
            actor_role=actor.role if actor else None,
            actor_id=actor.user_id if actor else None,
        )
        state.audit_logs.append(entry)
        overflow = len(state.audit_logs) - settings.AUDIT_LOG_LIMIT
        if overflow > 0:
            del state.audit_logs[:overflow]
        return entry
    except Exception:
        logger.exception(f"Failed to record audit event {action} for {entity.value} {entity_id}")
        return None


def list_events(
    state: WorkflowState,
    entity: AuditEntity | None = None,
    entity_id: str | None = None,
    limit: int = 100,
) -> list[AuditLog]:
    """Most recent events first, optionally filtered by entity."""
    events = [
        event
        for event in state.audit_logs
        if (entity is None or event.entity == entity.value)
        and (entity_id is None or event.entity_id == entity_id)
    ]
    return list(reversed(events))[:limit]
