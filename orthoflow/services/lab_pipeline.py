"""Lab status pipeline rules and production-plan gates."""

from orthoflow.core.errors import PlanExceedsCase
from orthoflow.core.stage_rules import LAB_STATUS_FLOW
from orthoflow.db.enums import RequestKind
from orthoflow.schemas.case import Case
from orthoflow.schemas.state import WorkflowState


def can_move(current: str, next_status: str) -> bool:
    """Adjacent moves (either direction) and no-op moves are allowed."""
    if current not in LAB_STATUS_FLOW or next_status not in LAB_STATUS_FLOW:
        return False
    return abs(LAB_STATUS_FLOW.index(next_status) - LAB_STATUS_FLOW.index(current)) <= 1


def next_status(status: str) -> str | None:
    if status not in LAB_STATUS_FLOW:
        return None
    index = LAB_STATUS_FLOW.index(status)
    return LAB_STATUS_FLOW[index + 1] if index < len(LAB_STATUS_FLOW) - 1 else None


def previous_status(status: str) -> str | None:
    if status not in LAB_STATUS_FLOW:
        return None
    index = LAB_STATUS_FLOW.index(status)
    return LAB_STATUS_FLOW[index - 1] if index > 0 else None


def has_production_plan(planned_upper_qty: int | None, planned_lower_qty: int | None) -> bool:
    upper = planned_upper_qty or 0
    lower = planned_lower_qty or 0
    if upper < 0 or lower < 0:
        return False
    return upper + lower > 0


def remaining_quota(
    state: WorkflowState, case: Case, exclude_item_id: str | None = None
) -> tuple[int, int]:
    """
    Per-arch ``(upper, lower)`` trays not yet planned by other production orders.

    Rework production orders remake trays already counted, so they do not
    consume quota.
    """
    planned_upper = 0
    planned_lower = 0
    for item in state.lab_items:
        if item.case_id != case.id or item.id == exclude_item_id:
            continue
        if item.request_kind != RequestKind.PRODUCTION.value:
            continue
        if is_rework_production(state, item):
            continue
        planned_upper += item.planned_upper_qty
        planned_lower += item.planned_lower_qty
    return case.upper_total - planned_upper, case.lower_total - planned_lower


def is_rework_production(state: WorkflowState, item) -> bool:
    if not item.linked_item_id:
        return False
    linked = state.get_lab_item(item.linked_item_id)
    return linked is not None and linked.request_kind == RequestKind.REWORK.value


def is_remake_order(state: WorkflowState, item) -> bool:
    """Rework orders and their production counterparts remake trays already planned."""
    return item.request_kind == RequestKind.REWORK.value or is_rework_production(state, item)


def validate_plan(
    state: WorkflowState,
    case: Case,
    planned_upper_qty: int,
    planned_lower_qty: int,
    exclude_item_id: str | None = None,
    remake: bool = False,
) -> None:
    """
    Reject a plan larger than the case allows.

    Regular production orders share the remaining quota; remake orders are
    only capped at the arch totals.
    """
    if remake:
        if planned_upper_qty > case.upper_total:
            raise PlanExceedsCase(
                f"Upper quantity {planned_upper_qty} exceeds the case total ({case.upper_total})."
            )
        if planned_lower_qty > case.lower_total:
            raise PlanExceedsCase(
                f"Lower quantity {planned_lower_qty} exceeds the case total ({case.lower_total})."
            )
        return

    remaining_upper, remaining_lower = remaining_quota(state, case, exclude_item_id)
    if planned_upper_qty > remaining_upper:
        raise PlanExceedsCase(
            f"Upper quantity {planned_upper_qty} exceeds the case's remaining plan ({max(remaining_upper, 0)})."
        )
    if planned_lower_qty > remaining_lower:
        raise PlanExceedsCase(
            f"Lower quantity {planned_lower_qty} exceeds the case's remaining plan ({max(remaining_lower, 0)})."
        )
