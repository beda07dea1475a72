"""Workflow error taxonomy and discriminated operation results.

Services raise ``WorkflowError`` subclasses; the document store converts them
into ``OperationResult`` failures at the mutation boundary so callers never
see a half-applied change. Persistence failures are not workflow errors and
propagate as ``PersistenceError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    STATE_MACHINE = "state_machine"
    PRECONDITION = "precondition"
    NOT_FOUND = "not_found"
    BUSINESS_LIMIT = "business_limit"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"


class WorkflowError(Exception):
    """Base class for recoverable workflow errors."""

    category: ErrorCategory = ErrorCategory.VALIDATION
    code: str = "WorkflowError"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# Validation
class ValidationFailed(WorkflowError):
    category = ErrorCategory.VALIDATION
    code = "ValidationFailed"


class InvalidRange(WorkflowError):
    category = ErrorCategory.VALIDATION
    code = "InvalidRange"


# State machine
class InvalidTransition(WorkflowError):
    category = ErrorCategory.STATE_MACHINE
    code = "InvalidTransition"


class RegressionDenied(WorkflowError):
    category = ErrorCategory.STATE_MACHINE
    code = "RegressionDenied"


class DeliveredLocked(WorkflowError):
    category = ErrorCategory.STATE_MACHINE
    code = "DeliveredLocked"


class InvalidPhase(WorkflowError):
    category = ErrorCategory.STATE_MACHINE
    code = "InvalidPhase"


# Preconditions
class ContractNotApproved(WorkflowError):
    category = ErrorCategory.PRECONDITION
    code = "ContractNotApproved"


class NoProductionOrder(WorkflowError):
    category = ErrorCategory.PRECONDITION
    code = "NoProductionOrder"


class NoDentistDelivery(WorkflowError):
    category = ErrorCategory.PRECONDITION
    code = "NoDentistDelivery"


class NoProductionPlan(WorkflowError):
    category = ErrorCategory.PRECONDITION
    code = "NoProductionPlan"


class NoPendingTray(WorkflowError):
    category = ErrorCategory.PRECONDITION
    code = "NoPendingTray"


class TrayNotReady(WorkflowError):
    category = ErrorCategory.PRECONDITION
    code = "TrayNotReady"


class ScanNotApproved(WorkflowError):
    category = ErrorCategory.PRECONDITION
    code = "ScanNotApproved"


class ScanAlreadyConverted(WorkflowError):
    category = ErrorCategory.PRECONDITION
    code = "ScanAlreadyConverted"


# Not found
class CaseNotFound(WorkflowError):
    category = ErrorCategory.NOT_FOUND
    code = "CaseNotFound"


class TrayNotFound(WorkflowError):
    category = ErrorCategory.NOT_FOUND
    code = "TrayNotFound"


class LabItemNotFound(WorkflowError):
    category = ErrorCategory.NOT_FOUND
    code = "LabItemNotFound"


class ScanNotFound(WorkflowError):
    category = ErrorCategory.NOT_FOUND
    code = "ScanNotFound"


# Business limits
class PlanExceedsCase(WorkflowError):
    category = ErrorCategory.BUSINESS_LIMIT
    code = "PlanExceedsCase"


class ExceedsCaseTotal(WorkflowError):
    category = ErrorCategory.BUSINESS_LIMIT
    code = "ExceedsCaseTotal"


class ExceedsDentistDelivery(WorkflowError):
    category = ErrorCategory.BUSINESS_LIMIT
    code = "ExceedsDentistDelivery"


# Conflicts
class DuplicateLot(WorkflowError):
    category = ErrorCategory.CONFLICT
    code = "DuplicateLot"


class ConcurrentModification(WorkflowError):
    category = ErrorCategory.CONFLICT
    code = "ConcurrentModification"


class Forbidden(WorkflowError):
    category = ErrorCategory.FORBIDDEN
    code = "Forbidden"


class PersistenceError(Exception):
    """Raised when the persistence substrate fails; the mutation is not applied."""

    def __init__(self, message: str, original_error: Exception | None = None):
        self.message = message
        self.original_error = original_error
        super().__init__(message)


@dataclass
class OperationResult(Generic[T]):
    """Discriminated result of a mutating operation: ``ok`` + data, or error."""

    ok: bool
    data: T | None = None
    error: str | None = None
    code: str | None = None
    category: ErrorCategory | None = None
    already_exists: bool = False
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def success(
        cls,
        data: T,
        *,
        already_exists: bool = False,
        warnings: list[str] | None = None,
    ) -> "OperationResult[T]":
        return cls(ok=True, data=data, already_exists=already_exists, warnings=warnings or [])

    @classmethod
    def failure(cls, error: WorkflowError) -> "OperationResult[T]":
        return cls(ok=False, error=error.message, code=error.code, category=error.category)
