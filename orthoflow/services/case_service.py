"""Case service - orchestration of case, tray, and delivery operations."""

import logging
from datetime import date

from orthoflow.core.case_access import can_access_case, list_cases_for_actor
from orthoflow.core.errors import OperationResult, ValidationFailed
from orthoflow.db.enums import (
    AuditEntity,
    CasePhase,
    CaseStatus,
    ContractStatus,
    TrayState,
    TreatmentOrigin,
)
from orthoflow.schemas.audit import AuditLog
from orthoflow.schemas.auth import Actor
from orthoflow.schemas.case import (
    BudgetClose,
    Case,
    CaseCreate,
    CaseSupplySummary,
    CaseUpdate,
    Contract,
    ContractApprove,
    DeliveryLotCreate,
    InstallationCreate,
    ScanFile,
)
from orthoflow.schemas.state import WorkflowState
from orthoflow.services import (
    audit_service,
    code_service,
    delivery_service,
    lab_service,
    lifecycle_service,
    replenishment_service,
    tray_service,
)
from orthoflow.services.document_store import DocumentStore
from orthoflow.utils.dates import utcnow
from orthoflow.utils.ids import new_id

logger = logging.getLogger(__name__)


# =============================================================================
# Reads (scoped)
# =============================================================================


def list_cases(store: DocumentStore, actor: Actor | None) -> list[Case]:
    state = store.load()
    return sorted(list_cases_for_actor(state, actor), key=lambda c: c.created_at, reverse=True)


def get_case(store: DocumentStore, actor: Actor | None, case_id: str) -> Case | None:
    """Return the case only when ``actor`` may see it."""
    state = store.load()
    if not can_access_case(state, actor, case_id):
        return None
    return state.get_case(case_id)


def get_case_supply_summary(
    store: DocumentStore, actor: Actor | None, case_id: str
) -> CaseSupplySummary | None:
    case = get_case(store, actor, case_id)
    if case is None:
        return None
    return replenishment_service.get_case_supply_summary(case)


def list_case_events(
    store: DocumentStore, actor: Actor | None, case_id: str, limit: int = 100
) -> list[AuditLog]:
    state = store.load()
    if not can_access_case(state, actor, case_id):
        return []
    return audit_service.list_events(state, AuditEntity.CASE, case_id, limit=limit)


# =============================================================================
# Creation
# =============================================================================


def build_case(
    state: WorkflowState,
    *,
    patient_name: str,
    scan_date: date,
    arch: str,
    total_trays_upper: int,
    total_trays_lower: int,
    change_every_days: int,
    attachment_bonding_tray: bool = False,
    patient_id: str | None = None,
    dentist_id: str | None = None,
    requested_by_dentist_id: str | None = None,
    clinic_id: str | None = None,
    treatment_code: str | None = None,
    complaint: str | None = None,
    dentist_guidance: str | None = None,
    source_scan_id: str | None = None,
    scan_files: list[ScanFile] | None = None,
) -> Case:
    """
    Build and insert a case in ``planning`` with its pending trays.

    ``total_trays`` is the larger of the per-arch totals; a zero arch total
    falls back to it.
    """
    total = max(total_trays_upper, total_trays_lower)
    if total <= 0:
        raise ValidationFailed("Provide the upper and/or lower tray totals.")

    internal = code_service.is_internal_clinic(state, clinic_id)
    code = treatment_code or code_service.next_treatment_code(
        state, code_service.treatment_prefix(state, clinic_id)
    )
    now = utcnow()
    case = Case(
        id=new_id("case"),
        treatment_code=code,
        treatment_origin=(TreatmentOrigin.INTERNAL if internal else TreatmentOrigin.EXTERNAL).value,
        patient_name=patient_name,
        patient_id=patient_id,
        dentist_id=dentist_id,
        requested_by_dentist_id=requested_by_dentist_id,
        clinic_id=clinic_id,
        scan_date=scan_date,
        arch=arch,
        total_trays=total,
        total_trays_upper=total_trays_upper or None,
        total_trays_lower=total_trays_lower or None,
        change_every_days=change_every_days,
        attachment_bonding_tray=attachment_bonding_tray,
        status=CaseStatus.PLANNING.value,
        phase=CasePhase.PLANNING.value,
        contract=Contract(status=ContractStatus.PENDING.value),
        trays=tray_service.build_pending_trays(total, scan_date, change_every_days),
        source_scan_id=source_scan_id,
        complaint=complaint,
        dentist_guidance=dentist_guidance,
        scan_files=scan_files or [],
        created_at=now,
        updated_at=now,
    )
    state.cases.insert(0, case)
    return case


def create_case(
    store: DocumentStore, data: CaseCreate, actor: Actor | None = None
) -> OperationResult[Case]:
    def _op(state: WorkflowState) -> Case:
        case = build_case(state, **data.model_dump())
        audit_service.record_event(
            state,
            AuditEntity.CASE,
            case.id,
            "case.create",
            f"Case {case.treatment_code} created.",
            actor,
        )
        return case

    return store.execute("create_case", _op)


def update_case(
    store: DocumentStore, case_id: str, data: CaseUpdate, actor: Actor | None = None
) -> OperationResult[Case]:
    """Patch descriptive fields. Workflow fields only change through their own operations."""

    def _op(state: WorkflowState) -> Case:
        case = lifecycle_service.get_case_or_raise(state, case_id)
        update_data = data.model_dump(exclude_unset=True)
        if "patient_name" in update_data and not update_data["patient_name"]:
            raise ValidationFailed("Patient name cannot be empty.")
        for field, value in update_data.items():
            setattr(case, field, value)
        case.updated_at = utcnow()
        audit_service.record_event(
            state,
            AuditEntity.CASE,
            case.id,
            "case.update",
            f"Case {case.code} updated ({', '.join(sorted(update_data)) or 'no fields'}).",
            actor,
        )
        return case

    return store.execute("update_case", _op, case_id=case_id)


# =============================================================================
# Phase ladder
# =============================================================================


def conclude_planning(
    store: DocumentStore, case_id: str, actor: Actor | None = None
) -> OperationResult[Case]:
    def _op(state: WorkflowState) -> Case:
        case = lifecycle_service.conclude_planning(
            lifecycle_service.get_case_or_raise(state, case_id)
        )
        audit_service.record_event(
            state, AuditEntity.CASE, case.id, "case.planning_concluded", "Planning concluded.", actor
        )
        return case

    return store.execute("conclude_planning", _op, case_id=case_id)


def close_budget(
    store: DocumentStore, case_id: str, data: BudgetClose, actor: Actor | None = None
) -> OperationResult[Case]:
    def _op(state: WorkflowState) -> Case:
        case = lifecycle_service.close_budget(
            lifecycle_service.get_case_or_raise(state, case_id),
            data.value,
            data.notes,
            data.contract_notes,
        )
        audit_service.record_event(
            state, AuditEntity.CASE, case.id, "case.budget_closed", "Budget closed.", actor
        )
        return case

    return store.execute("close_budget", _op, case_id=case_id)


def approve_contract(
    store: DocumentStore,
    case_id: str,
    data: ContractApprove | None = None,
    actor: Actor | None = None,
) -> OperationResult[Case]:
    def _op(state: WorkflowState) -> Case:
        case = lifecycle_service.approve_contract(
            lifecycle_service.get_case_or_raise(state, case_id),
            data.notes if data else None,
        )
        audit_service.record_event(
            state, AuditEntity.CASE, case.id, "case.contract_approved", "Contract approved.", actor
        )
        return case

    return store.execute("approve_contract", _op, case_id=case_id)


# =============================================================================
# Trays
# =============================================================================


def set_tray_state(
    store: DocumentStore,
    case_id: str,
    tray_number: int,
    next_state: TrayState | str,
    actor: Actor | None = None,
    today: date | None = None,
) -> OperationResult[Case]:
    """
    Move one tray through the state machine and re-derive the case lifecycle.

    Entering rework creates the linked rework/production orders; when the
    contract is not approved the tray still moves and a warning is returned.
    """
    next_state = TrayState(next_state).value

    def _op(state: WorkflowState) -> OperationResult[Case]:
        case = lifecycle_service.get_case_or_raise(state, case_id)
        tray = tray_service.get_tray_or_raise(case, tray_number)
        previous = tray.state
        entered_rework = tray_service.transition_tray(tray, next_state)

        warnings: list[str] = []
        if entered_rework:
            warnings = lab_service.ensure_rework_orders(state, case, tray, actor, today)
        lifecycle_service.apply_lifecycle(case)

        audit_service.record_event(
            state,
            AuditEntity.CASE,
            case.id,
            "case.tray_state",
            f"Tray {tray_number} changed from {previous} to {next_state}.",
            actor,
        )
        return OperationResult.success(case, warnings=warnings)

    return store.execute("set_tray_state", _op, case_id=case_id)


def update_tray_note(
    store: DocumentStore,
    case_id: str,
    tray_number: int,
    note: str | None,
    actor: Actor | None = None,
) -> OperationResult[Case]:
    def _op(state: WorkflowState) -> Case:
        case = lifecycle_service.get_case_or_raise(state, case_id)
        tray = tray_service.get_tray_or_raise(case, tray_number)
        tray.notes = (note or "").strip() or None
        case.updated_at = utcnow()
        audit_service.record_event(
            state,
            AuditEntity.CASE,
            case.id,
            "case.tray_note",
            f"Note updated on tray {tray_number}.",
            actor,
        )
        return case

    return store.execute("update_tray_note", _op, case_id=case_id)


# =============================================================================
# Deliveries
# =============================================================================


def register_case_delivery_lot(
    store: DocumentStore,
    case_id: str,
    data: DeliveryLotCreate,
    actor: Actor | None = None,
) -> OperationResult[Case]:
    return store.execute(
        "register_case_delivery_lot",
        lambda state: delivery_service.register_delivery_lot(state, case_id, data, actor),
        case_id=case_id,
    )


def register_case_installation(
    store: DocumentStore,
    case_id: str,
    data: InstallationCreate,
    actor: Actor | None = None,
) -> OperationResult[Case]:
    return store.execute(
        "register_case_installation",
        lambda state: delivery_service.register_installation(state, case_id, data, actor),
        case_id=case_id,
    )
