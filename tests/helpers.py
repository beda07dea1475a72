"""Shared builders for tests: seeded directory, case ladder walkers, actor headers."""
from datetime import date, timedelta
from decimal import Decimal

from orthoflow.db.enums import Arch, DentistKind, Role
from orthoflow.schemas.case import BudgetClose, Case, CaseCreate
from orthoflow.schemas.directory import Clinic, Dentist, Patient
from orthoflow.schemas.state import WorkflowState
from orthoflow.services import case_service
from orthoflow.services.document_store import DocumentStore

TODAY = date(2026, 3, 16)

def seed_state() -> WorkflowState:
    """Directory records shared by every test."""
    return WorkflowState(
        clinics=[
            Clinic(id="clinic_arrimo", trade_name="ARRIMO", is_internal=True),
            Clinic(id="clinic_sorriso", trade_name="Clinica Sorriso"),
        ],
        dentists=[
            Dentist(id="dentist_ana", name="Dr. Ana", clinic_id="clinic_sorriso"),
            Dentist(id="dentist_bruno", name="Dr. Bruno"),
            Dentist(
                id="dentist_sorriso_desk",
                name="Sorriso front desk",
                kind=DentistKind.CLINIC,
                clinic_id="clinic_sorriso",
            ),
        ],
        patients=[
            Patient(id="patient_maria", name="Maria", primary_dentist_id="dentist_ana"),
            Patient(id="patient_joao", name="Joao", primary_dentist_id="dentist_bruno"),
            Patient(id="patient_lia", name="Lia", clinic_id="clinic_sorriso"),
        ],
    )


def create_case(
    store: DocumentStore,
    *,
    total_upper: int = 12,
    total_lower: int = 12,
    change_every_days: int = 7,
    scan_date: date = TODAY,
    clinic_id: str | None = "clinic_arrimo",
    patient_id: str | None = "patient_maria",
    dentist_id: str | None = "dentist_ana",
    arch: Arch = Arch.BOTH,
) -> Case:
    result = case_service.create_case(
        store,
        CaseCreate(
            patient_name="Maria",
            patient_id=patient_id,
            dentist_id=dentist_id,
            clinic_id=clinic_id,
            scan_date=scan_date,
            arch=arch,
            total_trays_upper=total_upper,
            total_trays_lower=total_lower,
            change_every_days=change_every_days,
        ),
    )
    assert result.ok, result.error
    return result.data

def approve_case(store: DocumentStore, case_id: str) -> Case:
    """Walk a case through planning -> budget -> contract approval."""
    assert case_service.conclude_planning(store, case_id).ok
    assert case_service.close_budget(store, case_id, BudgetClose(value=Decimal("4500.00"))).ok
    result = case_service.approve_contract(store, case_id)
    assert result.ok, result.error
    return result.data

def create_approved_case(store: DocumentStore, **kwargs) -> Case:
    case = create_case(store, **kwargs)
    return approve_case(store, case.id)

def move_tray(store: DocumentStore, case_id: str, tray_number: int, *states: str) -> Case:
    case = None
    for state in states:
        result = case_service.set_tray_state(store, case_id, tray_number, state)
        assert result.ok, result.error
        case = result.data
    return case

def days_before(value: date, days: int) -> date:
    return value - timedelta(days=days)

def actor_headers(role: Role, clinic_id: str | None = None, dentist_id: str | None = None) -> dict:
    headers = {"X-Actor-Role": role.value}
    if clinic_id:
        headers["X-Actor-Clinic-Id"] = clinic_id
    if dentist_id:
        headers["X-Actor-Dentist-Id"] = dentist_id
    return headers
