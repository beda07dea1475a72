"""Cases router - treatment cases, trays, phase ladder, and deliveries."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from orthoflow.core.deps import get_actor, get_store, require_internal, unwrap
from orthoflow.schemas.audit import AuditLog
from orthoflow.schemas.auth import Actor
from orthoflow.schemas.case import (
    BudgetClose,
    Case,
    CaseCreate,
    CaseMutationResponse,
    CaseSupplySummary,
    CaseUpdate,
    ContractApprove,
    DeliveryLotCreate,
    InstallationCreate,
    TrayUpdate,
)
from orthoflow.schemas.lab import LabItemResponse
from orthoflow.services import case_service, lab_service
from orthoflow.services.document_store import DocumentStore

router = APIRouter()


def _require_visible(store: DocumentStore, actor: Actor, case_id: str) -> Case:
    """404 for cases that do not exist or are outside the actor's scope."""
    case = case_service.get_case(store, actor, case_id)
    if not case:
        raise HTTPException(status_code=404, detail="Case not found")
    return case


@router.get("", response_model=list[Case])
def list_cases(
    actor: Actor = Depends(get_actor),
    store: DocumentStore = Depends(get_store),
):
    return case_service.list_cases(store, actor)


@router.post("", response_model=Case, status_code=201)
def create_case(
    data: CaseCreate,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(case_service.create_case(store, data, actor))


@router.get("/{case_id}", response_model=Case)
def get_case(
    case_id: str,
    actor: Actor = Depends(get_actor),
    store: DocumentStore = Depends(get_store),
):
    return _require_visible(store, actor, case_id)


@router.patch("/{case_id}", response_model=Case)
def update_case(
    case_id: str,
    data: CaseUpdate,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    _require_visible(store, actor, case_id)
    return unwrap(case_service.update_case(store, case_id, data, actor))


@router.get("/{case_id}/supply", response_model=CaseSupplySummary)
def get_case_supply(
    case_id: str,
    actor: Actor = Depends(get_actor),
    store: DocumentStore = Depends(get_store),
):
    """Delivered vs. remaining trays and the next expected delivery."""
    summary = case_service.get_case_supply_summary(store, actor, case_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Case not found")
    return summary


@router.get("/{case_id}/events", response_model=list[AuditLog])
def list_case_events(
    case_id: str,
    limit: int = Query(100, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    store: DocumentStore = Depends(get_store),
):
    _require_visible(store, actor, case_id)
    return case_service.list_case_events(store, actor, case_id, limit=limit)


# =============================================================================
# Phase ladder
# =============================================================================


@router.post("/{case_id}/conclude-planning", response_model=Case)
def conclude_planning(
    case_id: str,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(case_service.conclude_planning(store, case_id, actor))


@router.post("/{case_id}/budget", response_model=Case)
def close_budget(
    case_id: str,
    data: BudgetClose,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(case_service.close_budget(store, case_id, data, actor))


@router.post("/{case_id}/contract/approve", response_model=Case)
def approve_contract(
    case_id: str,
    data: ContractApprove | None = None,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(case_service.approve_contract(store, case_id, data, actor))


@router.post("/{case_id}/lab-order", response_model=LabItemResponse)
def generate_lab_order(
    case_id: str,
    today: date | None = Query(None, description="Order date override (YYYY-MM-DD)"),
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    """
    Generate the case's first production order.

    Returns the existing order with ``already_exists=true`` when one was issued before.
    """
    result = lab_service.generate_lab_order(store, case_id, actor, today)
    item = unwrap(result)
    return LabItemResponse(
        item=item, already_exists=result.already_exists, warnings=result.warnings
    )


# =============================================================================
# Trays
# =============================================================================


@router.patch("/{case_id}/trays/{tray_number}", response_model=CaseMutationResponse)
def update_tray(
    case_id: str,
    tray_number: int,
    data: TrayUpdate,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    """
    Change a tray's state and/or note.

    Entering rework generates the linked rework orders; problems that do not
    block the transition come back in ``warnings``.
    """
    if data.state is None and "note" not in data.model_fields_set:
        raise HTTPException(status_code=422, detail="Provide a state or a note")

    warnings: list[str] = []
    case = None
    if data.state is not None:
        result = case_service.set_tray_state(store, case_id, tray_number, data.state, actor)
        case = unwrap(result)
        warnings.extend(result.warnings)
    if "note" in data.model_fields_set:
        case = unwrap(case_service.update_tray_note(store, case_id, tray_number, data.note, actor))
    return CaseMutationResponse(case=case, warnings=warnings)


# =============================================================================
# Deliveries
# =============================================================================


@router.post("/{case_id}/delivery-lots", response_model=Case, status_code=201)
def register_delivery_lot(
    case_id: str,
    data: DeliveryLotCreate,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    """Record trays handed to the dentist."""
    return unwrap(case_service.register_case_delivery_lot(store, case_id, data, actor))


@router.post("/{case_id}/installation", response_model=Case)
def register_installation(
    case_id: str,
    data: InstallationCreate,
    actor: Actor = Depends(require_internal),
    store: DocumentStore = Depends(get_store),
):
    """Record trays handed to the patient (counts are increments)."""
    return unwrap(case_service.register_case_installation(store, case_id, data, actor))
