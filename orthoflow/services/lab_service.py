"""Lab service - work orders, lab -> tray synchronization, and order generation."""

import logging
from datetime import date

from orthoflow.core.case_access import list_lab_items_for_actor
from orthoflow.core.config import settings
from orthoflow.core.errors import (
    ContractNotApproved,
    DeliveredLocked,
    Forbidden,
    InvalidPhase,
    InvalidTransition,
    LabItemNotFound,
    NoPendingTray,
    NoProductionPlan,
    OperationResult,
    ValidationFailed,
)
from orthoflow.core.stage_rules import LAB_ORDER_PHASES, LAB_STATUS_TRAY_STATE
from orthoflow.db.enums import (
    Arch,
    AuditEntity,
    CasePhase,
    CaseStatus,
    LabPriority,
    LabStatus,
    RequestKind,
    TrayState,
)
from orthoflow.schemas.auth import Actor
from orthoflow.schemas.case import Case, Tray
from orthoflow.schemas.lab import (
    AdvanceOrderCreate,
    LabItem,
    LabItemCreate,
    LabItemUpdate,
    LabOrderOutcome,
)
from orthoflow.schemas.state import WorkflowState
from orthoflow.services import (
    audit_service,
    code_service,
    lab_pipeline,
    lifecycle_service,
    replenishment_service,
    tray_service,
)
from orthoflow.services.document_store import DocumentStore
from orthoflow.utils.dates import add_days, clinic_today, utcnow
from orthoflow.utils.ids import new_id

logger = logging.getLogger(__name__)

SYNCED_KINDS = {RequestKind.PRODUCTION.value, RequestKind.REWORK.value}


# =============================================================================
# State-level helpers (run inside a mutation)
# =============================================================================


def get_lab_item_or_raise(state: WorkflowState, item_id: str) -> LabItem:
    item = state.get_lab_item(item_id)
    if item is None:
        raise LabItemNotFound(f"Lab item {item_id} not found.")
    return item


def main_production_orders(state: WorkflowState, case_id: str) -> list[LabItem]:
    """Production orders of a case, leaving out the counterparts of rework orders."""
    return [
        item
        for item in state.lab_items
        if item.case_id == case_id
        and item.request_kind == RequestKind.PRODUCTION.value
        and not lab_pipeline.is_rework_production(state, item)
    ]


def has_production_order(state: WorkflowState, case_id: str) -> bool:
    return bool(main_production_orders(state, case_id))


def _require_contract(case: Case) -> None:
    if not case.contract_approved:
        raise ContractNotApproved(
            f"Contract for case {case.code} is not approved; lab orders cannot be issued."
        )


def sync_tray_from_lab(state: WorkflowState, item: LabItem) -> tuple[str | None, bool]:
    """
    Move the case tray along with a production or rework order.

    Returns ``(note, applied)``. A tray the state machine will not move is
    left untouched and reported in the note.
    """
    if not item.case_id or item.request_kind not in SYNCED_KINDS:
        return None, False
    target = LAB_STATUS_TRAY_STATE.get(item.status)
    if target is None:
        return None, False
    case = state.get_case(item.case_id)
    if case is None:
        return None, False
    tray = case.get_tray(item.tray_number)
    if tray is None:
        return f"Tray {item.tray_number} does not exist in case {case.code}; not synchronized.", False
    if tray.state == target:
        return None, False

    steps = [target]
    if tray.state == TrayState.PENDING.value and target == TrayState.READY.value:
        steps = [TrayState.IN_PRODUCTION.value, TrayState.READY.value]

    current = tray.state
    for step in steps:
        if current == TrayState.DELIVERED.value or not tray_service.can_transition(current, step):
            return (
                f"Tray {tray.tray_number} kept as '{tray.state}': cannot follow lab status '{item.status}'.",
                False,
            )
        current = step
    for step in steps:
        tray_service.transition_tray(tray, step)
    lifecycle_service.apply_lifecycle(case)
    return f"Tray {tray.tray_number} moved to '{tray.state}'.", True


def create_lab_item(
    state: WorkflowState,
    data: LabItemCreate,
    actor: Actor | None = None,
    today: date | None = None,
) -> tuple[LabItem, str | None, bool]:
    """Validate and insert a new work order. Returns the item and the tray sync outcome."""
    today = today or clinic_today()
    case = None
    if data.case_id:
        case = lifecycle_service.get_case_or_raise(state, data.case_id)
        _require_contract(case)

    if data.status not in (LabStatus.AWAITING_START.value, LabStatus.IN_PRODUCTION.value):
        raise InvalidTransition(
            f"A new lab order must start in '{LabStatus.AWAITING_START.value}' "
            f"or '{LabStatus.IN_PRODUCTION.value}'."
        )
    plan_defined = lab_pipeline.has_production_plan(data.planned_upper_qty, data.planned_lower_qty)
    if data.status == LabStatus.IN_PRODUCTION.value and not plan_defined:
        raise NoProductionPlan("Define per-arch quantities before starting production.")
    if case is not None:
        lab_pipeline.validate_plan(
            state,
            case,
            data.planned_upper_qty,
            data.planned_lower_qty,
            remake=data.request_kind == RequestKind.REWORK.value,
        )

    patient_name = data.patient_name or (case.patient_name if case else None)
    if not patient_name:
        raise ValidationFailed("Patient name is required for orders without a case.")

    if data.request_code and data.request_code.strip():
        request_code = data.request_code.strip()
    elif case is not None:
        request_code = code_service.allocate_request_code(state, case, data.request_kind)
    else:
        request_code = f"OS-{new_id('lab').split('_', 1)[1]}"

    now = utcnow()
    item = LabItem(
        id=new_id("lab"),
        case_id=data.case_id,
        request_code=request_code,
        request_kind=data.request_kind,
        expected_replacement_date=data.expected_replacement_date or data.due_date,
        arch=data.arch or (case.arch if case else Arch.BOTH.value),
        planned_upper_qty=data.planned_upper_qty,
        planned_lower_qty=data.planned_lower_qty,
        planning_defined_at=now if plan_defined else None,
        tray_number=data.tray_number,
        patient_name=patient_name,
        planned_date=data.planned_date or today,
        due_date=data.due_date,
        status=data.status,
        priority=data.priority,
        notes=data.notes,
        created_at=now,
        updated_at=now,
    )
    state.lab_items.insert(0, item)

    if (
        case is not None
        and item.status != LabStatus.AWAITING_START.value
        and case.phase != CasePhase.FINALIZED.value
    ):
        case.phase = CasePhase.IN_PRODUCTION.value
        case.status = CaseStatus.IN_PRODUCTION.value
        lifecycle_service.apply_lifecycle(case)

    note, applied = sync_tray_from_lab(state, item)
    audit_service.record_event(
        state,
        AuditEntity.LAB,
        item.id,
        "lab.create",
        f"Order {item.request_code} created.",
        actor,
    )
    return item, note, applied


def ensure_rework_orders(
    state: WorkflowState,
    case: Case,
    tray: Tray,
    actor: Actor | None = None,
    today: date | None = None,
) -> list[str]:
    """
    Create the rework order and its production counterpart for a tray entering rework.

    Both orders are linked to each other. Nothing is created while an open
    rework order for the tray exists. Returns warnings.
    """
    if not case.contract_approved:
        return [
            f"Contract not approved: rework orders for tray {tray.tray_number} were not created."
        ]
    open_rework = any(
        item.case_id == case.id
        and item.tray_number == tray.tray_number
        and item.request_kind == RequestKind.REWORK.value
        and item.status != LabStatus.READY.value
        for item in state.lab_items
    )
    if open_rework:
        return []

    today = today or clinic_today()
    due_date = tray.due_date or today
    now = utcnow()
    common = dict(
        case_id=case.id,
        expected_replacement_date=due_date,
        arch=case.arch,
        planned_upper_qty=0,
        planned_lower_qty=0,
        tray_number=tray.tray_number,
        patient_name=case.patient_name,
        planned_date=today,
        due_date=due_date,
        status=LabStatus.AWAITING_START.value,
        priority=LabPriority.URGENT.value,
        created_at=now,
        updated_at=now,
    )
    rework = LabItem(
        id=new_id("lab"),
        request_code=code_service.allocate_request_code(state, case, RequestKind.REWORK.value),
        request_kind=RequestKind.REWORK.value,
        notes=f"Rework of tray {tray.tray_number}.",
        **common,
    )
    state.lab_items.insert(0, rework)
    production = LabItem(
        id=new_id("lab"),
        request_code=code_service.allocate_request_code(state, case, RequestKind.REWORK.value),
        request_kind=RequestKind.PRODUCTION.value,
        notes=f"Production for rework of tray {tray.tray_number}.",
        linked_item_id=rework.id,
        **common,
    )
    rework.linked_item_id = production.id
    state.lab_items.insert(0, production)

    audit_service.record_event(
        state,
        AuditEntity.LAB,
        rework.id,
        "lab.rework_created",
        f"Rework orders {rework.request_code} and {production.request_code} created for tray {tray.tray_number}.",
        actor,
    )
    logger.info(f"Rework orders created for case {case.id} tray {tray.tray_number}")
    return []


def ensure_lab_request_codes(state: WorkflowState) -> bool:
    """Fill in request codes missing on case-linked orders. Returns True if anything changed."""
    changed = False
    for item in reversed(state.lab_items):
        if not item.case_id or (item.request_code and item.request_code.strip()):
            continue
        case = state.get_case(item.case_id)
        if case is None:
            continue
        item.request_code = code_service.allocate_request_code(
            state, case, item.request_kind, exclude_item_id=item.id
        )
        item.updated_at = utcnow()
        changed = True
    return changed


def refresh_lab_items(state: WorkflowState, today: date | None = None) -> bool:
    """Housekeeping run before every lab list read: codes, scheduler, dedupe."""
    coded = ensure_lab_request_codes(state)
    created = replenishment_service.ensure_programmed_replenishments(state, today)
    removed = replenishment_service.dedupe_programmed_replenishments(state)
    return coded or bool(created) or bool(removed)


# =============================================================================
# Store operations
# =============================================================================


def _outcome(item: LabItem, note: str | None, applied: bool) -> OperationResult[LabOrderOutcome]:
    """Sync notes travel with the result; a skipped sync is also a warning."""
    warnings = [note] if note and not applied else []
    return OperationResult.success(LabOrderOutcome(item=item, sync_message=note), warnings=warnings)


def list_lab_items(
    store: DocumentStore, actor: Actor | None, today: date | None = None
) -> list[LabItem]:
    """Run housekeeping (persisted when it changes anything), then return scoped items by due date."""
    state = store.maintain(lambda s: refresh_lab_items(s, today))
    items = sorted(state.lab_items, key=lambda item: item.due_date)
    return list_lab_items_for_actor(state, actor, items)


def get_lab_item(store: DocumentStore, actor: Actor | None, item_id: str) -> LabItem | None:
    state = store.load()
    visible = list_lab_items_for_actor(state, actor)
    return next((item for item in visible if item.id == item_id), None)


def add_lab_item(
    store: DocumentStore,
    data: LabItemCreate,
    actor: Actor | None = None,
    today: date | None = None,
) -> OperationResult[LabOrderOutcome]:
    def _op(state: WorkflowState) -> OperationResult[LabOrderOutcome]:
        item, note, applied = create_lab_item(state, data, actor, today)
        return _outcome(item, note, applied)

    return store.execute("add_lab_item", _op, case_id=data.case_id)


def update_lab_item(
    store: DocumentStore,
    item_id: str,
    data: LabItemUpdate,
    actor: Actor | None = None,
) -> OperationResult[LabOrderOutcome]:
    """Partial update. Status changes follow the same pipeline gates as ``move_lab_item``."""

    def _op(state: WorkflowState) -> OperationResult[LabOrderOutcome]:
        item = get_lab_item_or_raise(state, item_id)
        patch = data.model_dump(exclude_unset=True)
        case = state.get_case(item.case_id) if item.case_id else None
        if case is not None:
            _require_contract(case)

        upper = patch.get("planned_upper_qty", item.planned_upper_qty)
        lower = patch.get("planned_lower_qty", item.planned_lower_qty)
        if upper is None:
            upper = item.planned_upper_qty
        if lower is None:
            lower = item.planned_lower_qty
        if case is not None:
            lab_pipeline.validate_plan(
                state,
                case,
                upper,
                lower,
                exclude_item_id=item.id,
                remake=lab_pipeline.is_remake_order(state, item),
            )
        plan_defined = lab_pipeline.has_production_plan(upper, lower)

        requested = patch.get("status") or item.status
        tray_number = patch.get("tray_number") or item.tray_number
        if requested != item.status:
            _check_move(case, item, tray_number, requested, plan_defined)

        for field in ("tray_number", "planned_date", "due_date", "priority", "notes"):
            if field in patch and (patch[field] is not None or field == "notes"):
                setattr(item, field, patch[field])
        item.planned_upper_qty = upper
        item.planned_lower_qty = lower
        item.planning_defined_at = (item.planning_defined_at or utcnow()) if plan_defined else None
        item.status = requested
        item.updated_at = utcnow()

        note, applied = sync_tray_from_lab(state, item)
        audit_service.record_event(
            state,
            AuditEntity.LAB,
            item.id,
            "lab.update",
            f"Order {item.request_code} updated (status {item.status}).",
            actor,
        )
        return _outcome(item, note, applied)

    return store.execute("update_lab_item", _op, lab_item_id=item_id)


def _check_move(
    case: Case | None, item: LabItem, tray_number: int, status: str, plan_defined: bool
) -> None:
    if case is not None:
        tray = case.get_tray(tray_number)
        if tray is not None and tray.state == TrayState.DELIVERED.value:
            raise DeliveredLocked(
                f"Tray {tray_number} was already delivered to the dentist; its order status is locked."
            )
    if not lab_pipeline.can_move(item.status, status):
        raise InvalidTransition(f"Order cannot move from '{item.status}' to '{status}'.")
    if (
        item.status == LabStatus.AWAITING_START.value
        and status == LabStatus.IN_PRODUCTION.value
        and not plan_defined
    ):
        raise NoProductionPlan("Define per-arch quantities before starting production.")


def move_lab_item(
    store: DocumentStore,
    item_id: str,
    status: LabStatus | str,
    actor: Actor | None = None,
) -> OperationResult[LabOrderOutcome]:
    status = LabStatus(status).value

    def _op(state: WorkflowState) -> OperationResult[LabOrderOutcome]:
        item = get_lab_item_or_raise(state, item_id)
        case = state.get_case(item.case_id) if item.case_id else None
        if status != item.status:
            _check_move(
                case,
                item,
                item.tray_number,
                status,
                lab_pipeline.has_production_plan(item.planned_upper_qty, item.planned_lower_qty),
            )
        item.status = status
        item.updated_at = utcnow()

        note, applied = sync_tray_from_lab(state, item)
        audit_service.record_event(
            state,
            AuditEntity.LAB,
            item.id,
            "lab.move",
            f"Order {item.request_code} moved to {item.status}.",
            actor,
        )
        return _outcome(item, note, applied)

    return store.execute("move_lab_item", _op, lab_item_id=item_id)


def delete_lab_item(
    store: DocumentStore, item_id: str, actor: Actor | None
) -> OperationResult[list[str]]:
    """Admin-only removal; the linked rework/production counterpart goes with it."""

    def _op(state: WorkflowState) -> list[str]:
        if actor is None or not actor.is_admin:
            raise Forbidden("Only administrators can delete lab orders.")
        item = get_lab_item_or_raise(state, item_id)
        ids = {item.id}
        if item.linked_item_id:
            ids.add(item.linked_item_id)
        ids.update(other.id for other in state.lab_items if other.linked_item_id == item.id)

        removed = [other for other in state.lab_items if other.id in ids]
        state.lab_items = [other for other in state.lab_items if other.id not in ids]
        for other in removed:
            audit_service.record_event(
                state,
                AuditEntity.LAB,
                other.id,
                "lab.delete",
                f"Order {other.request_code or other.id} removed.",
                actor,
            )
        return [other.id for other in removed]

    return store.execute("delete_lab_item", _op, lab_item_id=item_id)


def generate_lab_order(
    store: DocumentStore,
    case_id: str,
    actor: Actor | None = None,
    today: date | None = None,
) -> OperationResult[LabItem]:
    """
    Issue the case's first production order (tray 1, due in LAB_ORDER_DUE_DAYS).

    Idempotent: when a production order already exists it is returned with
    ``already_exists=True``.
    """

    def _op(state: WorkflowState) -> OperationResult[LabItem]:
        case = lifecycle_service.get_case_or_raise(state, case_id)
        _require_contract(case)
        if case.phase not in LAB_ORDER_PHASES:
            raise InvalidPhase(f"Lab orders cannot be generated in phase '{case.phase}'.")

        existing = main_production_orders(state, case.id)
        if existing:
            return OperationResult.success(existing[-1], already_exists=True)

        order_date = today or clinic_today()
        due_date = add_days(order_date, settings.LAB_ORDER_DUE_DAYS)
        item, note, applied = create_lab_item(
            state,
            LabItemCreate(
                case_id=case.id,
                request_code=case.code,
                request_kind=RequestKind.PRODUCTION,
                expected_replacement_date=due_date,
                tray_number=1,
                planned_date=order_date,
                due_date=due_date,
                status=LabStatus.AWAITING_START,
                priority=LabPriority.MEDIUM,
                notes="Order generated from the case workflow. Define per-arch quantities before production.",
            ),
            actor,
            order_date,
        )
        return OperationResult.success(item, warnings=[note] if note and not applied else [])

    return store.execute("generate_lab_order", _op, case_id=case_id)


def create_advance_lab_order(
    store: DocumentStore,
    source_item_id: str,
    data: AdvanceOrderCreate,
    actor: Actor | None = None,
    today: date | None = None,
) -> OperationResult[LabItem]:
    """
    Turn a replenishment placeholder (or any order) into an urgent production order.

    The new order targets the lowest tray not yet delivered. A programmed
    replenishment source is consumed, and its revision code is reused when it
    belongs to the same treatment code.
    """

    def _op(state: WorkflowState) -> OperationResult[LabItem]:
        source = get_lab_item_or_raise(state, source_item_id)
        if not source.case_id:
            raise ValidationFailed("Source order is not linked to a case.")
        case = lifecycle_service.get_case_or_raise(state, source.case_id)
        _require_contract(case)

        upper = max(0, data.planned_upper_qty)
        lower = max(0, data.planned_lower_qty)
        if upper + lower <= 0:
            raise ValidationFailed("Quantity must be greater than zero for an advance order.")
        consumes_source = source.request_kind == RequestKind.PROGRAMMED_REPLENISHMENT.value
        lab_pipeline.validate_plan(
            state, case, upper, lower, exclude_item_id=source.id if consumes_source else None
        )
        tray_number = tray_service.next_pending_tray_number(case)
        if tray_number is None:
            raise NoPendingTray("No pending trays left for an advance order.")

        base_code = case.code
        if consumes_source and code_service.is_revision_of(source.request_code, base_code):
            request_code = source.request_code
        else:
            request_code = f"{base_code}/{code_service.next_request_revision(state, base_code)}"

        if consumes_source:
            state.lab_items = [item for item in state.lab_items if item.id != source.id]

        now = utcnow()
        order_date = today or clinic_today()
        item = LabItem(
            id=new_id("lab"),
            case_id=case.id,
            request_code=request_code,
            request_kind=RequestKind.PRODUCTION.value,
            expected_replacement_date=source.expected_replacement_date or source.due_date,
            arch=source.arch,
            planned_upper_qty=upper,
            planned_lower_qty=lower,
            planning_defined_at=now,
            tray_number=tray_number,
            patient_name=source.patient_name,
            planned_date=order_date,
            due_date=data.due_date or source.expected_replacement_date or source.due_date,
            status=LabStatus.AWAITING_START.value,
            priority=LabPriority.URGENT.value,
            notes=f"Advance order created from {source.request_code or source.id}.",
            replenishment_key=source.replenishment_key,
            created_at=now,
            updated_at=now,
        )
        state.lab_items.insert(0, item)

        if consumes_source:
            audit_service.record_event(
                state,
                AuditEntity.LAB,
                source.id,
                "lab.advance_source_consumed",
                f"Replenishment placeholder {source.request_code or source.id} consumed.",
                actor,
            )
        audit_service.record_event(
            state,
            AuditEntity.LAB,
            item.id,
            "lab.advance_created",
            f"Advance order {item.request_code} created.",
            actor,
        )
        return OperationResult.success(item)

    return store.execute("create_advance_lab_order", _op, lab_item_id=source_item_id)
