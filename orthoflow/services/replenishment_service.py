"""Replenishment scheduler and delivery forecast alerts.

The scheduler creates ``programmed_replenishment`` placeholders for pending
trays whose due date falls within the lead time, once per
(case, tray, expected date). Alerts are computed from the next forecast
delivery date of installed cases. Nothing here is cached: callers pass
``today`` or it is evaluated per call.
"""

import logging
from datetime import date

from orthoflow.core.case_access import list_cases_for_actor
from orthoflow.core.config import settings
from orthoflow.db.enums import (
    AlertSeverity,
    AlertType,
    Arch,
    LabPriority,
    LabStatus,
    RequestKind,
    TrayState,
)
from orthoflow.schemas.auth import Actor
from orthoflow.schemas.case import Case, CaseSupplySummary
from orthoflow.schemas.dashboard import ReplenishmentAlert
from orthoflow.schemas.lab import LabItem
from orthoflow.schemas.state import WorkflowState
from orthoflow.services import code_service
from orthoflow.utils.dates import add_days, clinic_today, days_until, utcnow
from orthoflow.utils.ids import new_id

logger = logging.getLogger(__name__)


def replenishment_key(case_id: str | None, tray_number: int, expected: date | None) -> str:
    expected_part = expected.isoformat() if expected else "-"
    return f"{case_id or '-'}_{tray_number}_{expected_part}"


def _placeholder_exists(state: WorkflowState, case: Case, tray_number: int, expected: date, key: str) -> bool:
    for item in state.lab_items:
        if item.replenishment_key == key:
            return True
        if (
            item.case_id == case.id
            and item.request_kind == RequestKind.PROGRAMMED_REPLENISHMENT.value
            and item.tray_number == tray_number
            and item.expected_replacement_date == expected
        ):
            return True
    return False


def ensure_programmed_replenishments(
    state: WorkflowState, today: date | None = None
) -> list[LabItem]:
    """
    Create missing placeholders and return the ones created.

    Eligible cases have an approved contract, at least one delivered tray and
    at least one pending tray. A placeholder is due when
    ``tray.due_date - REPLENISHMENT_LEAD_DAYS <= today``.
    """
    today = today or clinic_today()
    created: list[LabItem] = []

    for case in state.cases:
        if not case.contract_approved:
            continue
        states = {tray.state for tray in case.trays}
        if TrayState.DELIVERED.value not in states or TrayState.PENDING.value not in states:
            continue

        for tray in case.trays:
            if tray.state != TrayState.PENDING.value or tray.due_date is None:
                continue
            start_date = add_days(tray.due_date, -settings.REPLENISHMENT_LEAD_DAYS)
            if start_date > today:
                continue
            key = replenishment_key(case.id, tray.tray_number, tray.due_date)
            if _placeholder_exists(state, case, tray.tray_number, tray.due_date, key):
                continue

            base_code = case.code
            now = utcnow()
            item = LabItem(
                id=new_id("lab"),
                case_id=case.id,
                request_code=f"{base_code}/{code_service.next_request_revision(state, base_code)}",
                request_kind=RequestKind.PROGRAMMED_REPLENISHMENT.value,
                expected_replacement_date=tray.due_date,
                arch=case.arch or Arch.BOTH.value,
                planned_upper_qty=0,
                planned_lower_qty=0,
                tray_number=tray.tray_number,
                patient_name=case.patient_name,
                planned_date=start_date,
                due_date=tray.due_date,
                status=LabStatus.AWAITING_START.value,
                priority=LabPriority.MEDIUM.value,
                notes=f"Programmed replenishment ({key}).",
                replenishment_key=key,
                created_at=now,
                updated_at=now,
            )
            state.lab_items.insert(0, item)
            created.append(item)
            logger.info(
                f"Programmed replenishment {item.request_code} created for case {case.id} tray {tray.tray_number}"
            )

    return created


def dedupe_programmed_replenishments(state: WorkflowState) -> int:
    """
    Keep one awaiting placeholder per (case, tray, expected date).

    The most recently updated copy wins. Returns the number removed.
    """
    keep: dict[str, LabItem] = {}
    passthrough: set[str] = set()
    removed = 0

    for item in state.lab_items:
        if (
            item.request_kind != RequestKind.PROGRAMMED_REPLENISHMENT.value
            or item.status != LabStatus.AWAITING_START.value
        ):
            passthrough.add(item.id)
            continue
        key = replenishment_key(
            item.case_id, item.tray_number, item.expected_replacement_date or item.due_date
        )
        current = keep.get(key)
        if current is None:
            keep[key] = item
            continue
        removed += 1
        if item.updated_at > current.updated_at:
            keep[key] = item

    if removed:
        kept_ids = passthrough | {item.id for item in keep.values()}
        state.lab_items = [item for item in state.lab_items if item.id in kept_ids]
        logger.info(f"Removed {removed} duplicate programmed replenishment(s)")
    return removed


# =============================================================================
# Forecast
# =============================================================================


def get_delivered_range(case: Case) -> tuple[int, int]:
    """
    ``(max_delivered, delivered_count)`` toward the patient.

    Installation counts win when present; otherwise dentist lots are used.
    """
    if case.installation is not None:
        upper = max(0, case.installation.delivered_upper)
        lower = max(0, case.installation.delivered_lower)
        return max(upper, lower), min(upper, lower)
    max_delivered = max((lot.to_tray for lot in case.delivery_lots), default=0)
    delivered_count = sum(lot.quantity for lot in case.delivery_lots)
    return max_delivered, delivered_count


def get_next_needed_tray(case: Case) -> int | None:
    max_delivered, _ = get_delivered_range(case)
    if max_delivered >= case.total_trays:
        return None
    return max_delivered + 1


def get_next_delivery_due_date(case: Case) -> date | None:
    """``installed_at + max_delivered * change_every_days`` for installed, unfinished cases."""
    if case.installation is None or case.installation.installed_at is None:
        return None
    max_delivered, _ = get_delivered_range(case)
    if max_delivered >= case.total_trays:
        return None
    return add_days(case.installation.installed_at, max_delivered * case.change_every_days)


def get_replenishment_alerts(case: Case, today: date | None = None) -> list[ReplenishmentAlert]:
    """At most one alert, for the most specific bracket."""
    due_date = get_next_delivery_due_date(case)
    if due_date is None:
        return []

    today = today or clinic_today()
    days_left = days_until(due_date, today)
    warning_days = settings.ALERT_WARNING_DAYS
    lead_days = settings.REPLENISHMENT_LEAD_DAYS

    if lead_days < days_left <= warning_days:
        alert_type, severity, suffix = AlertType.WARNING_15D, AlertSeverity.MEDIUM, "15d"
        title = f"Replenishment in {warning_days} days"
        message = f"Case {case.code} needs a new batch in about {days_left} day(s)."
    elif 0 <= days_left <= lead_days:
        alert_type, severity, suffix = AlertType.WARNING_10D, AlertSeverity.HIGH, "10d"
        title = f"Replenishment in {lead_days} days"
        message = f"Case {case.code} needs replenishment in {days_left} day(s)."
    elif days_left < 0:
        alert_type, severity, suffix = AlertType.OVERDUE, AlertSeverity.URGENT, "late"
        title = "Replenishment overdue"
        message = f"Case {case.code} is {abs(days_left)} day(s) late for replenishment."
    else:
        return []

    return [
        ReplenishmentAlert(
            id=f"{case.id}_{suffix}_{due_date.isoformat()}",
            case_id=case.id,
            type=alert_type,
            severity=severity,
            title=title,
            message=message,
            due_date=due_date,
            days_left=days_left,
        )
    ]


def delivered_to_dentist(case: Case) -> tuple[int, int]:
    """Per-arch ``(upper, lower)`` trays handed to the dentist; ``both`` lots count twice."""
    upper = 0
    lower = 0
    for lot in case.delivery_lots:
        if lot.arch in (Arch.UPPER.value, Arch.BOTH.value):
            upper += lot.quantity
        if lot.arch in (Arch.LOWER.value, Arch.BOTH.value):
            lower += lot.quantity
    return upper, lower


def get_case_supply_summary(case: Case) -> CaseSupplySummary:
    _, delivered_count = get_delivered_range(case)
    delivered = min(delivered_count, case.total_trays)
    dentist_upper, dentist_lower = delivered_to_dentist(case)
    installation = case.installation
    return CaseSupplySummary(
        case_id=case.id,
        total=case.total_trays,
        delivered=delivered,
        remaining=max(0, case.total_trays - delivered),
        next_tray=get_next_needed_tray(case),
        next_due_date=get_next_delivery_due_date(case),
        delivered_to_dentist_upper=dentist_upper,
        delivered_to_dentist_lower=dentist_lower,
        delivered_to_patient_upper=installation.delivered_upper if installation else 0,
        delivered_to_patient_lower=installation.delivered_lower if installation else 0,
    )


def list_replenishment_alerts(
    state: WorkflowState, actor: Actor | None, today: date | None = None
) -> list[ReplenishmentAlert]:
    """Alerts over the cases visible to ``actor``, most urgent first."""
    today = today or clinic_today()
    alerts = [
        alert
        for case in list_cases_for_actor(state, actor)
        for alert in get_replenishment_alerts(case, today)
    ]
    return sorted(alerts, key=lambda alert: alert.days_left)
