"""Pydantic schemas for intake scans."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from orthoflow.db.enums import Arch, ScanStatus
from orthoflow.schemas.base import DocumentModel


class ScanAttachment(DocumentModel):
    id: str
    name: str
    kind: str = "other"
    arch: str | None = None
    url: str | None = None
    status: str = "ok"
    created_at: datetime | None = None


class Scan(DocumentModel):
    """Intraoral scan submitted for a patient, converted into a case once approved."""

    id: str
    service_order_code: str | None = None
    patient_name: str
    patient_id: str | None = None
    dentist_id: str | None = None
    requested_by_dentist_id: str | None = None
    clinic_id: str | None = None
    scan_date: date
    arch: Arch = Arch.BOTH
    complaint: str | None = None
    dentist_guidance: str | None = None
    status: ScanStatus = ScanStatus.PENDING
    linked_case_id: str | None = None
    attachments: list[ScanAttachment] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ScanAttachmentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    kind: str = "other"
    arch: str | None = None
    url: str | None = None


class ScanCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    patient_name: str = Field(..., min_length=1, max_length=255)
    patient_id: str | None = None
    dentist_id: str | None = None
    requested_by_dentist_id: str | None = None
    clinic_id: str | None = None
    scan_date: date
    arch: Arch = Arch.BOTH
    complaint: str | None = None
    dentist_guidance: str | None = None
    attachments: list[ScanAttachmentCreate] = Field(default_factory=list)


class CaseFromScanCreate(BaseModel):
    upper_qty: int = Field(0, ge=0)
    lower_qty: int = Field(0, ge=0)
    change_every_days: int = Field(..., ge=1)
    attachment_bonding_tray: bool = False
