"""Directory records (patients, dentists, clinics) used for scoping and codes."""

from orthoflow.db.enums import DentistKind
from orthoflow.schemas.base import DocumentModel


class Clinic(DocumentModel):
    id: str
    trade_name: str
    is_internal: bool = False


class Dentist(DocumentModel):
    id: str
    name: str
    kind: DentistKind = DentistKind.DENTIST
    clinic_id: str | None = None


class Patient(DocumentModel):
    id: str
    name: str
    clinic_id: str | None = None
    primary_dentist_id: str | None = None
