"""Case lifecycle - explicit phase ladder and status/phase derivation from trays."""

import logging
from decimal import Decimal

from orthoflow.core.errors import CaseNotFound, InvalidPhase, ValidationFailed
from orthoflow.core.stage_rules import PHASE_LADDER, TRAY_PRODUCTION_STATES
from orthoflow.db.enums import CasePhase, CaseStatus, ContractStatus, TrayState
from orthoflow.schemas.case import Budget, Case, Contract, Tray
from orthoflow.schemas.state import WorkflowState
from orthoflow.utils.dates import utcnow

logger = logging.getLogger(__name__)


def get_case_or_raise(state: WorkflowState, case_id: str) -> Case:
    case = state.get_case(case_id)
    if case is None:
        raise CaseNotFound(f"Case {case_id} not found.")
    return case


def derive_lifecycle(case: Case, trays: list[Tray] | None = None) -> tuple[str, str]:
    """
    Compute ``(status, phase)`` from tray states.

    - every tray delivered -> finalized
    - any delivery (tray, dentist lot, or installation) -> in_delivery / in_production
    - any tray in production, ready, or rework -> in_production
    - otherwise the ladder values are kept
    """
    trays = case.trays if trays is None else trays
    states = [tray.state for tray in trays]

    if states and all(state == TrayState.DELIVERED.value for state in states):
        return CaseStatus.FINALIZED.value, CasePhase.FINALIZED.value

    has_delivery = (
        TrayState.DELIVERED.value in states
        or bool(case.delivery_lots)
        or bool(case.installation and case.installation.installed_at)
    )
    if has_delivery:
        return CaseStatus.IN_DELIVERY.value, CasePhase.IN_PRODUCTION.value

    if any(state in TRAY_PRODUCTION_STATES for state in states):
        return CaseStatus.IN_PRODUCTION.value, CasePhase.IN_PRODUCTION.value

    return case.status, case.phase


def apply_lifecycle(case: Case) -> None:
    """Recompute status/phase in place; called after every tray, lot, or installation change."""
    status, phase = derive_lifecycle(case)
    if (status, phase) != (case.status, case.phase):
        logger.debug(f"Case {case.id} lifecycle {case.status}/{case.phase} -> {status}/{phase}")
    case.status = status
    case.phase = phase
    case.updated_at = utcnow()


def _advance(case: Case, action: str) -> None:
    required, resulting = PHASE_LADDER[action]
    if case.phase != required:
        raise InvalidPhase(
            f"Action '{action}' requires phase '{required}', case is in '{case.phase}'."
        )
    case.phase = resulting
    case.status = CaseStatus.PLANNING.value
    case.updated_at = utcnow()


def conclude_planning(case: Case) -> Case:
    _advance(case, "conclude_planning")
    return case


def close_budget(
    case: Case,
    value: Decimal,
    notes: str | None = None,
    contract_notes: str | None = None,
) -> Case:
    """Record a positive budget and open the contract for approval."""
    if value is None or value <= 0:
        raise ValidationFailed("Budget value must be greater than zero.")
    _advance(case, "close_budget")
    case.budget = Budget(value=value, notes=(notes or "").strip() or None, created_at=utcnow())
    case.contract = Contract(
        status=ContractStatus.PENDING.value,
        notes=(contract_notes or "").strip() or case.contract.notes,
    )
    return case


def approve_contract(case: Case, notes: str | None = None) -> Case:
    _advance(case, "approve_contract")
    case.contract = Contract(
        status=ContractStatus.APPROVED.value,
        approved_at=utcnow(),
        notes=(notes or "").strip() or case.contract.notes,
    )
    return case
