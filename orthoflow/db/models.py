"""SQLAlchemy ORM models for the persistence substrate.

The workflow engine stores its whole state as one JSON document per
``DOCUMENT_ID``; the ``version`` column backs optimistic concurrency so a
stale load/mutate/save cycle is rejected instead of silently overwriting.
"""

from datetime import datetime

from sqlalchemy import JSON, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from orthoflow.db.base import Base


class WorkflowDocument(Base):
    """Whole-state workflow document (cases, lab items, scans, directory, audit)."""

    __tablename__ = "workflow_documents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        server_default=text("CURRENT_TIMESTAMP"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        server_default=text("CURRENT_TIMESTAMP"), nullable=False
    )

    def __repr__(self):
        return f"<WorkflowDocument(id='{self.id}', version={self.version})>"
