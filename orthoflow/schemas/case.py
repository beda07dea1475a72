"""Pydantic schemas for treatment cases, trays, and delivery records."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from orthoflow.db.enums import (
    Arch,
    CasePhase,
    CaseStatus,
    ContractStatus,
    TrayState,
    TreatmentOrigin,
)
from orthoflow.schemas.base import DocumentModel


class Tray(DocumentModel):
    """One aligner within a case. ``tray_number`` is never renumbered."""

    tray_number: int = Field(..., ge=1)
    state: TrayState = TrayState.PENDING
    due_date: date | None = None
    delivered_at: datetime | None = None
    notes: str | None = None


class Budget(DocumentModel):
    value: Decimal | None = None
    notes: str | None = None
    created_at: datetime | None = None


class Contract(DocumentModel):
    status: ContractStatus = ContractStatus.PENDING
    approved_at: datetime | None = None
    notes: str | None = None


class DeliveryLot(DocumentModel):
    """Immutable record of a tray range handed to the prescribing dentist."""

    id: str
    arch: Arch
    from_tray: int
    to_tray: int
    quantity: int
    delivered_to_doctor_at: date
    note: str | None = None
    created_at: datetime


class PatientDeliveryLot(DocumentModel):
    """Paired tray range handed from the dentist to the patient."""

    id: str
    from_tray: int
    to_tray: int
    quantity: int
    delivered_at: date
    note: str | None = None
    created_at: datetime


class Installation(DocumentModel):
    installed_at: date | None = None
    note: str | None = None
    delivered_upper: int = 0
    delivered_lower: int = 0
    patient_delivery_lots: list[PatientDeliveryLot] = Field(default_factory=list)


class ScanFile(DocumentModel):
    """Attachment reference copied from the source scan (storage is external)."""

    id: str
    name: str
    kind: str = "other"
    arch: str | None = None
    url: str | None = None
    status: str = "ok"
    created_at: datetime | None = None


class Case(DocumentModel):
    """One orthodontic treatment."""

    id: str
    treatment_code: str | None = None
    treatment_origin: TreatmentOrigin | None = None
    patient_name: str
    patient_id: str | None = None
    dentist_id: str | None = None
    requested_by_dentist_id: str | None = None
    clinic_id: str | None = None
    scan_date: date
    arch: Arch = Arch.BOTH
    total_trays: int = Field(..., ge=1)
    total_trays_upper: int | None = None
    total_trays_lower: int | None = None
    change_every_days: int = Field(..., ge=1)
    attachment_bonding_tray: bool = False
    status: CaseStatus = CaseStatus.PLANNING
    phase: CasePhase = CasePhase.PLANNING
    budget: Budget | None = None
    contract: Contract = Field(default_factory=Contract)
    trays: list[Tray] = Field(default_factory=list)
    delivery_lots: list[DeliveryLot] = Field(default_factory=list)
    installation: Installation | None = None
    source_scan_id: str | None = None
    complaint: str | None = None
    dentist_guidance: str | None = None
    scan_files: list[ScanFile] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @property
    def code(self) -> str:
        """Base code used for lab request codes."""
        return self.treatment_code or self.id

    @property
    def upper_total(self) -> int:
        return self.total_trays_upper if self.total_trays_upper is not None else self.total_trays

    @property
    def lower_total(self) -> int:
        return self.total_trays_lower if self.total_trays_lower is not None else self.total_trays

    @property
    def contract_approved(self) -> bool:
        return self.contract.status == ContractStatus.APPROVED.value

    def get_tray(self, tray_number: int) -> Tray | None:
        return next((tray for tray in self.trays if tray.tray_number == tray_number), None)


# =============================================================================
# Request schemas
# =============================================================================


class CaseCreate(BaseModel):
    """Direct case creation (without an intake scan)."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    patient_name: str = Field(..., min_length=1, max_length=255)
    patient_id: str | None = None
    dentist_id: str | None = None
    requested_by_dentist_id: str | None = None
    clinic_id: str | None = None
    scan_date: date
    arch: Arch = Arch.BOTH
    total_trays_upper: int = Field(0, ge=0)
    total_trays_lower: int = Field(0, ge=0)
    change_every_days: int = Field(..., ge=1)
    attachment_bonding_tray: bool = False
    complaint: str | None = None
    dentist_guidance: str | None = None


class CaseUpdate(BaseModel):
    """Partial update of descriptive case fields (workflow fields are not patchable)."""

    patient_name: str | None = Field(None, min_length=1, max_length=255)
    complaint: str | None = None
    dentist_guidance: str | None = None
    attachment_bonding_tray: bool | None = None


class BudgetClose(BaseModel):
    value: Decimal
    notes: str | None = None
    contract_notes: str | None = None


class ContractApprove(BaseModel):
    notes: str | None = None


class TrayUpdate(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    state: TrayState | None = None
    note: str | None = None


class DeliveryLotCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    arch: Arch
    from_tray: int
    to_tray: int
    delivered_to_doctor_at: date | None = None
    note: str | None = None


class InstallationCreate(BaseModel):
    """Increment of trays handed to the patient (added to the running counts)."""

    installed_at: date | None = None
    note: str | None = None
    delivered_upper: int = 0
    delivered_lower: int = 0

    @field_validator("note")
    @classmethod
    def strip_note(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class CaseSupplySummary(BaseModel):
    """Remaining-to-deliver view of a case."""

    case_id: str
    total: int
    delivered: int
    remaining: int
    next_tray: int | None
    next_due_date: date | None
    delivered_to_dentist_upper: int
    delivered_to_dentist_lower: int
    delivered_to_patient_upper: int
    delivered_to_patient_lower: int


class CaseMutationResponse(BaseModel):
    """Case returned by a mutation, with non-fatal warnings."""

    case: Case
    warnings: list[str] = Field(default_factory=list)
