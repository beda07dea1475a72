"""Document store - load/save of the whole workflow state with serialized mutation.

Every mutating operation runs as one load -> transform -> save cycle under a
process-wide lock. ``SqlDocumentStore`` also checks the row version on save
so a stale cycle from another process is rejected instead of overwriting.
"""

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from orthoflow.core.errors import (
    ConcurrentModification,
    OperationResult,
    PersistenceError,
    WorkflowError,
)
from orthoflow.core.structured_logging import build_log_context
from orthoflow.db.models import WorkflowDocument
from orthoflow.schemas.state import WorkflowState

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[WorkflowState], None]


class DocumentStore(ABC):
    """Base store: subclasses implement ``load`` and ``_write``."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []

    @abstractmethod
    def load(self) -> WorkflowState:
        """Return a fresh copy of the persisted state (never a shared instance)."""

    @abstractmethod
    def _write(self, payload: dict[str, Any], expected_version: int) -> int:
        """Persist ``payload`` if the stored version still equals ``expected_version``.

        Returns the new version.
        """

    def save(self, state: WorkflowState) -> None:
        payload = state.model_dump(mode="json", exclude={"version"})
        state.version = self._write(payload, state.version)
        self._broadcast(state)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _broadcast(self, state: WorkflowState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Document change listener failed")

    @contextmanager
    def mutate(self) -> Iterator[WorkflowState]:
        """Serialized load/mutate/save. Nothing is saved if the block raises."""
        with self._lock:
            state = self.load()
            yield state
            self.save(state)

    def maintain(self, fn: Callable[[WorkflowState], bool]) -> WorkflowState:
        """Run a housekeeping pass under the lock; save only when ``fn`` reports a change."""
        with self._lock:
            state = self.load()
            if fn(state):
                self.save(state)
            return state

    def execute(
        self,
        operation: str,
        fn: Callable[[WorkflowState], T | OperationResult[T]],
        **log_fields: Any,
    ) -> OperationResult[T]:
        """
        Run ``fn`` inside ``mutate`` and wrap the outcome.

        Workflow errors become failed results and leave the document untouched.
        Persistence errors propagate.
        """
        try:
            with self.mutate() as state:
                outcome = fn(state)
        except WorkflowError as exc:
            context = build_log_context(
                operation=operation, error_code=exc.code, **log_fields
            )
            logger.info(f"Workflow operation rejected: {operation}", extra=context)
            return OperationResult.failure(exc)

        if isinstance(outcome, OperationResult):
            return outcome
        return OperationResult.success(outcome)


class InMemoryDocumentStore(DocumentStore):
    """Process-local store holding the JSON payload; used by tests and scripts."""

    def __init__(self, initial: WorkflowState | None = None) -> None:
        super().__init__()
        self._payload: dict[str, Any] = (initial or WorkflowState()).model_dump(
            mode="json", exclude={"version"}
        )
        self._version = 0

    def load(self) -> WorkflowState:
        state = WorkflowState.model_validate(self._payload)
        state.version = self._version
        return state

    def _write(self, payload: dict[str, Any], expected_version: int) -> int:
        if expected_version != self._version:
            raise ConcurrentModification(
                "Document changed since it was loaded. Reload and retry."
            )
        self._payload = payload
        self._version += 1
        return self._version


class SqlDocumentStore(DocumentStore):
    """One JSON row per document id in ``workflow_documents``."""

    def __init__(self, session_factory: sessionmaker[Session], document_id: str) -> None:
        super().__init__()
        self.session_factory = session_factory
        self.document_id = document_id

    def load(self) -> WorkflowState:
        try:
            with self.session_factory() as db:
                row = db.get(WorkflowDocument, self.document_id)
                if row is None:
                    return WorkflowState()
                state = WorkflowState.model_validate(row.payload)
                state.version = row.version
                return state
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load document {self.document_id}", exc) from exc

    def _write(self, payload: dict[str, Any], expected_version: int) -> int:
        new_version = expected_version + 1
        try:
            with self.session_factory() as db:
                if expected_version == 0:
                    db.add(
                        WorkflowDocument(
                            id=self.document_id, payload=payload, version=new_version
                        )
                    )
                else:
                    result = db.execute(
                        update(WorkflowDocument)
                        .where(
                            WorkflowDocument.id == self.document_id,
                            WorkflowDocument.version == expected_version,
                        )
                        .values(payload=payload, version=new_version, updated_at=func.now())
                    )
                    if result.rowcount != 1:
                        db.rollback()
                        raise ConcurrentModification(
                            "Document changed since it was loaded. Reload and retry."
                        )
                db.commit()
        except IntegrityError as exc:
            raise ConcurrentModification(
                "Document was created concurrently. Reload and retry."
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to save document {self.document_id}", exc) from exc
        return new_version


_default_store: DocumentStore | None = None


def init_db() -> None:
    """Create the document table if it does not exist."""
    from orthoflow.db.base import Base
    from orthoflow.db.session import engine

    Base.metadata.create_all(bind=engine)


def get_default_store() -> DocumentStore:
    """Process-wide SQL store for the configured DOCUMENT_ID."""
    global _default_store
    if _default_store is None:
        from orthoflow.core.config import settings
        from orthoflow.db.session import SessionLocal

        init_db()
        _default_store = SqlDocumentStore(SessionLocal, settings.DOCUMENT_ID)
    return _default_store
