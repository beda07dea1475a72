"""Case access control - role-scoped visibility over patients, scans, cases, and lab items.

Scoping rules:
- dentist_client: patients whose primary dentist is the actor's dentist;
  scans/cases of those patients or where the actor is the dentist or the
  requesting dentist
- clinic_client: patients of the clinic or of dentists belonging to it;
  scans/cases of the clinic or of a visible patient
- lab items follow the visibility of their linked case (unlinked items are
  hidden from external roles)
- administrative and internal roles see everything; no actor sees nothing

Every list handed to a caller (and every KPI/alert computation) goes
through these functions.
"""

from orthoflow.db.enums import DentistKind, Role
from orthoflow.schemas.auth import Actor
from orthoflow.schemas.case import Case
from orthoflow.schemas.directory import Patient
from orthoflow.schemas.lab import LabItem
from orthoflow.schemas.scan import Scan
from orthoflow.schemas.state import WorkflowState


def _dentist_ids_for_clinic(state: WorkflowState, clinic_id: str | None) -> set[str]:
    if not clinic_id:
        return set()
    return {
        dentist.id
        for dentist in state.dentists
        if dentist.kind == DentistKind.DENTIST.value and dentist.clinic_id == clinic_id
    }


def list_patients_for_actor(state: WorkflowState, actor: Actor | None) -> list[Patient]:
    if actor is None:
        return []
    if actor.role == Role.DENTIST_CLIENT.value:
        if not actor.dentist_id:
            return []
        return [p for p in state.patients if p.primary_dentist_id == actor.dentist_id]
    if actor.role == Role.CLINIC_CLIENT.value:
        if not actor.clinic_id:
            return []
        dentist_ids = _dentist_ids_for_clinic(state, actor.clinic_id)
        return [
            p
            for p in state.patients
            if p.clinic_id == actor.clinic_id
            or (p.primary_dentist_id and p.primary_dentist_id in dentist_ids)
        ]
    return list(state.patients)


def _is_record_visible(
    record: Scan | Case, actor: Actor, patient_ids: set[str]
) -> bool:
    if record.patient_id and record.patient_id in patient_ids:
        return True
    if actor.role == Role.DENTIST_CLIENT.value:
        return bool(actor.dentist_id) and actor.dentist_id in (
            record.dentist_id,
            record.requested_by_dentist_id,
        )
    return bool(actor.clinic_id) and record.clinic_id == actor.clinic_id


def list_scans_for_actor(state: WorkflowState, actor: Actor | None) -> list[Scan]:
    if actor is None:
        return []
    if not actor.is_external:
        return list(state.scans)
    patient_ids = {p.id for p in list_patients_for_actor(state, actor)}
    return [scan for scan in state.scans if _is_record_visible(scan, actor, patient_ids)]


def list_cases_for_actor(state: WorkflowState, actor: Actor | None) -> list[Case]:
    if actor is None:
        return []
    if not actor.is_external:
        return list(state.cases)
    patient_ids = {p.id for p in list_patients_for_actor(state, actor)}
    return [case for case in state.cases if _is_record_visible(case, actor, patient_ids)]


def list_lab_items_for_actor(
    state: WorkflowState,
    actor: Actor | None,
    items: list[LabItem] | None = None,
) -> list[LabItem]:
    """Filter ``items`` (default: every lab item) down to what ``actor`` may see."""
    items = state.lab_items if items is None else items
    if actor is None:
        return []
    if not actor.is_external:
        return list(items)
    allowed_case_ids = {case.id for case in list_cases_for_actor(state, actor)}
    return [item for item in items if item.case_id and item.case_id in allowed_case_ids]


def can_access_case(state: WorkflowState, actor: Actor | None, case_id: str) -> bool:
    """Single-record check used before returning or mutating one case."""
    return any(case.id == case_id for case in list_cases_for_actor(state, actor))


def can_access_scan(state: WorkflowState, actor: Actor | None, scan_id: str) -> bool:
    return any(scan.id == scan_id for scan in list_scans_for_actor(state, actor))
