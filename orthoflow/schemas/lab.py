"""Pydantic schemas for lab work orders."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from orthoflow.db.enums import Arch, LabPriority, LabStatus, RequestKind
from orthoflow.schemas.base import DocumentModel


class LabItem(DocumentModel):
    """
    A unit of planned/actual production.

    ``linked_item_id`` ties a rework order to the production order created
    alongside it. ``replenishment_key`` (case, tray, expected date) marks
    programmed-replenishment placeholders and the advance orders that
    consumed them.
    """

    id: str
    case_id: str | None = None
    request_code: str | None = None
    request_kind: RequestKind = RequestKind.PRODUCTION
    expected_replacement_date: date | None = None
    arch: Arch = Arch.BOTH
    planned_upper_qty: int = 0
    planned_lower_qty: int = 0
    planning_defined_at: datetime | None = None
    tray_number: int = Field(..., ge=1)
    patient_name: str
    planned_date: date
    due_date: date
    status: LabStatus = LabStatus.AWAITING_START
    priority: LabPriority = LabPriority.MEDIUM
    notes: str | None = None
    linked_item_id: str | None = None
    replenishment_key: str | None = None
    created_at: datetime
    updated_at: datetime


class LabItemCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    case_id: str | None = None
    request_code: str | None = None
    request_kind: RequestKind = RequestKind.PRODUCTION
    expected_replacement_date: date | None = None
    arch: Arch | None = None
    planned_upper_qty: int = Field(0, ge=0)
    planned_lower_qty: int = Field(0, ge=0)
    tray_number: int = Field(1, ge=1)
    patient_name: str | None = None
    planned_date: date | None = None
    due_date: date
    status: LabStatus = LabStatus.AWAITING_START
    priority: LabPriority = LabPriority.MEDIUM
    notes: str | None = None


class LabItemUpdate(BaseModel):
    """Partial update; the case link and request kind are fixed after creation."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    planned_upper_qty: int | None = Field(None, ge=0)
    planned_lower_qty: int | None = Field(None, ge=0)
    tray_number: int | None = Field(None, ge=1)
    planned_date: date | None = None
    due_date: date | None = None
    status: LabStatus | None = None
    priority: LabPriority | None = None
    notes: str | None = None


class LabMove(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    status: LabStatus


class AdvanceOrderCreate(BaseModel):
    planned_upper_qty: int
    planned_lower_qty: int
    due_date: date | None = None


class LabOrderOutcome(BaseModel):
    """Result payload of lab mutations that may touch the linked case tray."""

    item: LabItem
    sync_message: str | None = None


class LabItemResponse(BaseModel):
    item: LabItem
    sync_message: str | None = None
    already_exists: bool = False
    warnings: list[str] = Field(default_factory=list)
