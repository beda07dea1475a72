"""Delivery lot ledger - tray batches handed to the dentist and then to the patient.

Both ledgers are append-only. Dentist lots mark their trays delivered;
patient deliveries are running per-arch counts bounded by what the dentist
received, with each newly paired range recorded as a dated patient lot.
"""

import logging

from orthoflow.core.errors import (
    ContractNotApproved,
    DuplicateLot,
    ExceedsCaseTotal,
    ExceedsDentistDelivery,
    InvalidRange,
    NoDentistDelivery,
    NoProductionOrder,
    TrayNotReady,
    ValidationFailed,
)
from orthoflow.db.enums import Arch, AuditEntity, TrayState
from orthoflow.schemas.auth import Actor
from orthoflow.schemas.case import (
    Case,
    DeliveryLot,
    DeliveryLotCreate,
    Installation,
    InstallationCreate,
    PatientDeliveryLot,
)
from orthoflow.schemas.state import WorkflowState
from orthoflow.services import audit_service, lifecycle_service, tray_service
from orthoflow.services.lab_service import has_production_order
from orthoflow.services.replenishment_service import delivered_to_dentist
from orthoflow.utils.dates import utcnow
from orthoflow.utils.ids import new_id

logger = logging.getLogger(__name__)


def _arches_affected(arch: str) -> tuple[str, ...]:
    if arch == Arch.BOTH.value:
        return Arch.UPPER.value, Arch.LOWER.value
    return (arch,)


def last_delivered_tray(case: Case, arch: str) -> int:
    """Highest ``to_tray`` among dentist lots covering ``arch`` (``both`` covers both)."""
    return max(
        (lot.to_tray for lot in case.delivery_lots if arch in _arches_affected(lot.arch)),
        default=0,
    )


def register_delivery_lot(
    state: WorkflowState,
    case_id: str,
    data: DeliveryLotCreate,
    actor: Actor | None = None,
) -> Case:
    """
    Record trays handed to the dentist and mark them delivered.

    Ranges per arch are contiguous: a new lot must start right after the
    last tray already delivered for every arch it covers.
    """
    case = lifecycle_service.get_case_or_raise(state, case_id)
    if not case.contract_approved:
        raise ContractNotApproved("Contract not approved; dentist deliveries cannot be registered.")
    if not has_production_order(state, case.id):
        raise NoProductionOrder("No lab production order has been generated for this case yet.")

    if data.from_tray < 1:
        raise InvalidRange("First tray must be 1 or greater.")
    if data.to_tray < data.from_tray:
        raise InvalidRange("Last tray must not be lower than the first tray.")
    if data.to_tray > case.total_trays:
        raise InvalidRange(f"Range exceeds the case total ({case.total_trays}).")
    if data.delivered_to_doctor_at is None:
        raise ValidationFailed("Delivery date is required.")

    duplicate = any(
        lot.arch == data.arch
        and lot.from_tray == data.from_tray
        and lot.to_tray == data.to_tray
        and lot.delivered_to_doctor_at == data.delivered_to_doctor_at
        for lot in case.delivery_lots
    )
    if duplicate:
        raise DuplicateLot("A lot with the same arch, range, and date is already registered.")

    for arch in _arches_affected(data.arch):
        last = last_delivered_tray(case, arch)
        if data.from_tray != last + 1:
            raise InvalidRange(
                f"Trays up to {last} were delivered for the {arch} arch; "
                f"the next lot must start at {last + 1}."
            )

    in_range = [t for t in case.trays if data.from_tray <= t.tray_number <= data.to_tray]
    if not in_range:
        raise InvalidRange("No trays found in this range.")
    not_ready = next(
        (
            t
            for t in in_range
            if t.state not in (TrayState.READY.value, TrayState.DELIVERED.value)
        ),
        None,
    )
    if not_ready is not None:
        raise TrayNotReady(f"Tray {not_ready.tray_number} is not ready for delivery.")

    for tray in in_range:
        tray_service.transition_tray(tray, TrayState.DELIVERED.value)

    lot = DeliveryLot(
        id=new_id("lot"),
        arch=data.arch,
        from_tray=data.from_tray,
        to_tray=data.to_tray,
        quantity=data.to_tray - data.from_tray + 1,
        delivered_to_doctor_at=data.delivered_to_doctor_at,
        note=(data.note or "").strip() or None,
        created_at=utcnow(),
    )
    case.delivery_lots.append(lot)
    lifecycle_service.apply_lifecycle(case)

    audit_service.record_event(
        state,
        AuditEntity.CASE,
        case.id,
        "case.delivery_lot",
        f"Trays {lot.from_tray}-{lot.to_tray} ({lot.arch}) delivered to the dentist.",
        actor,
    )
    logger.info(f"Delivery lot {lot.id} registered for case {case.id}")
    return case


def register_installation(
    state: WorkflowState,
    case_id: str,
    data: InstallationCreate,
    actor: Actor | None = None,
) -> Case:
    """
    Add patient deliveries to the running per-arch counts.

    The first call needs ``installed_at``; later calls need it only when they
    extend the paired (upper and lower) coverage.
    """
    case = lifecycle_service.get_case_or_raise(state, case_id)
    if not has_production_order(state, case.id):
        raise NoProductionOrder("No lab production order has been generated for this case yet.")
    if not case.delivery_lots:
        raise NoDentistDelivery("Register the delivery to the dentist before delivering to the patient.")

    current = case.installation
    if (current is None or current.installed_at is None) and data.installed_at is None:
        raise ValidationFailed("Installation date is required.")
    if data.delivered_upper < 0 or data.delivered_lower < 0:
        raise ValidationFailed("Delivered quantities cannot be negative.")

    current_upper = current.delivered_upper if current else 0
    current_lower = current.delivered_lower if current else 0
    next_upper = current_upper + data.delivered_upper
    next_lower = current_lower + data.delivered_lower
    if next_upper > case.upper_total:
        raise ExceedsCaseTotal(f"Upper deliveries would exceed the case total ({case.upper_total}).")
    if next_lower > case.lower_total:
        raise ExceedsCaseTotal(f"Lower deliveries would exceed the case total ({case.lower_total}).")

    dentist_upper, dentist_lower = delivered_to_dentist(case)
    if next_upper > dentist_upper:
        raise ExceedsDentistDelivery(
            f"Upper patient deliveries exceed what the dentist received ({dentist_upper})."
        )
    if next_lower > dentist_lower:
        raise ExceedsDentistDelivery(
            f"Lower patient deliveries exceed what the dentist received ({dentist_lower})."
        )

    current_pair = max(0, min(current_upper, current_lower))
    next_pair = max(0, min(next_upper, next_lower))
    new_pair_qty = max(0, next_pair - current_pair)
    if new_pair_qty > 0 and data.installed_at is None:
        raise ValidationFailed("Delivery date is required when new trays reach the patient.")

    patient_lots = list(current.patient_delivery_lots) if current else []
    if new_pair_qty > 0:
        patient_lots.append(
            PatientDeliveryLot(
                id=new_id("patient_lot"),
                from_tray=current_pair + 1,
                to_tray=current_pair + new_pair_qty,
                quantity=new_pair_qty,
                delivered_at=data.installed_at,
                note=data.note,
                created_at=utcnow(),
            )
        )

    case.installation = Installation(
        installed_at=current.installed_at if current and current.installed_at else data.installed_at,
        note=data.note or (current.note if current else None),
        delivered_upper=next_upper,
        delivered_lower=next_lower,
        patient_delivery_lots=patient_lots,
    )
    lifecycle_service.apply_lifecycle(case)

    audit_service.record_event(
        state,
        AuditEntity.CASE,
        case.id,
        "case.installation",
        f"Patient deliveries now {next_upper} upper / {next_lower} lower.",
        actor,
    )
    return case
