"""FastAPI dependencies for the document store, the acting identity, and result mapping."""

from typing import TypeVar

from fastapi import Depends, Header, HTTPException, status

from orthoflow.core.errors import ErrorCategory, OperationResult
from orthoflow.db.enums import Role
from orthoflow.schemas.auth import Actor
from orthoflow.services.document_store import DocumentStore, get_default_store

T = TypeVar("T")

# Header names supplied by the auth/session collaborator in front of the API
ROLE_HEADER = "X-Actor-Role"
CLINIC_HEADER = "X-Actor-Clinic-Id"
DENTIST_HEADER = "X-Actor-Dentist-Id"
USER_HEADER = "X-Actor-User-Id"

ERROR_STATUS = {
    ErrorCategory.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCategory.BUSINESS_LIMIT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCategory.STATE_MACHINE: status.HTTP_409_CONFLICT,
    ErrorCategory.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCategory.PRECONDITION: status.HTTP_412_PRECONDITION_FAILED,
    ErrorCategory.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCategory.FORBIDDEN: status.HTTP_403_FORBIDDEN,
}


def get_store() -> DocumentStore:
    """Document store dependency (overridden in tests)."""
    return get_default_store()


def get_actor(
    x_actor_role: str | None = Header(None, alias=ROLE_HEADER),
    x_actor_clinic_id: str | None = Header(None, alias=CLINIC_HEADER),
    x_actor_dentist_id: str | None = Header(None, alias=DENTIST_HEADER),
    x_actor_user_id: str | None = Header(None, alias=USER_HEADER),
) -> Actor:
    """
    Build the acting identity from request headers.

    Raises:
        HTTPException 401: role header missing or unknown
    """
    if not x_actor_role:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if not Role.has_value(x_actor_role):
        raise HTTPException(status_code=401, detail="Unknown role")
    return Actor(
        role=x_actor_role,
        clinic_id=x_actor_clinic_id or None,
        dentist_id=x_actor_dentist_id or None,
        user_id=x_actor_user_id or None,
    )


def require_internal(actor: Actor = Depends(get_actor)) -> Actor:
    """Mutations are reserved for back-office roles; external clients only read."""
    if actor.is_external:
        raise HTTPException(status_code=403, detail="Read-only access")
    return actor


def unwrap(result: OperationResult[T]) -> T:
    """Return the result data or raise the HTTPException matching its error category."""
    if result.ok:
        return result.data
    status_code = ERROR_STATUS.get(result.category, status.HTTP_400_BAD_REQUEST)
    raise HTTPException(
        status_code=status_code,
        detail={"code": result.code, "message": result.error},
    )
