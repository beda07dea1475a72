"""The whole workflow state, persisted as one JSON document."""

from pydantic import Field

from orthoflow.schemas.audit import AuditLog
from orthoflow.schemas.base import DocumentModel
from orthoflow.schemas.case import Case
from orthoflow.schemas.directory import Clinic, Dentist, Patient
from orthoflow.schemas.lab import LabItem
from orthoflow.schemas.scan import Scan


class WorkflowState(DocumentModel):
    """
    Aggregate document loaded and saved atomically by the document store.

    ``version`` is owned by the store and bumped on every successful save.
    """

    version: int = 0
    cases: list[Case] = Field(default_factory=list)
    lab_items: list[LabItem] = Field(default_factory=list)
    scans: list[Scan] = Field(default_factory=list)
    patients: list[Patient] = Field(default_factory=list)
    dentists: list[Dentist] = Field(default_factory=list)
    clinics: list[Clinic] = Field(default_factory=list)
    audit_logs: list[AuditLog] = Field(default_factory=list)

    def get_case(self, case_id: str) -> Case | None:
        return next((case for case in self.cases if case.id == case_id), None)

    def get_lab_item(self, item_id: str) -> LabItem | None:
        return next((item for item in self.lab_items if item.id == item_id), None)

    def get_scan(self, scan_id: str) -> Scan | None:
        return next((scan for scan in self.scans if scan.id == scan_id), None)

    def get_patient(self, patient_id: str | None) -> Patient | None:
        if not patient_id:
            return None
        return next((p for p in self.patients if p.id == patient_id), None)

    def get_dentist(self, dentist_id: str | None) -> Dentist | None:
        if not dentist_id:
            return None
        return next((d for d in self.dentists if d.id == dentist_id), None)

    def get_clinic(self, clinic_id: str | None) -> Clinic | None:
        if not clinic_id:
            return None
        return next((c for c in self.clinics if c.id == clinic_id), None)
