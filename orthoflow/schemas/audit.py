"""Audit trail entry schema."""

from datetime import datetime

from orthoflow.db.enums import AuditEntity
from orthoflow.schemas.base import DocumentModel


class AuditLog(DocumentModel):
    id: str
    at: datetime
    entity: AuditEntity
    entity_id: str
    action: str
    message: str
    actor_role: str | None = None
    actor_id: str | None = None
