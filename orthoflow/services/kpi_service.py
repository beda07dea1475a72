"""KPI service - dashboard and lab counters over actor-visible records."""

from datetime import date

from orthoflow.core.case_access import (
    list_cases_for_actor,
    list_lab_items_for_actor,
    list_scans_for_actor,
)
from orthoflow.db.enums import CasePhase, LabStatus, ScanStatus
from orthoflow.schemas.auth import Actor
from orthoflow.schemas.dashboard import DashboardStats, LabKpis
from orthoflow.schemas.lab import LabItem
from orthoflow.schemas.state import WorkflowState
from orthoflow.services import replenishment_service
from orthoflow.utils.dates import clinic_date, clinic_today


def _is_overdue(item: LabItem, today: date) -> bool:
    return item.status != LabStatus.READY.value and item.due_date < today


def get_dashboard_stats(
    state: WorkflowState, actor: Actor | None, today: date | None = None
) -> DashboardStats:
    today = today or clinic_today()
    cases = list_cases_for_actor(state, actor)
    lab_items = list_lab_items_for_actor(state, actor)
    scans = list_scans_for_actor(state, actor)

    open_case_ids = {c.id for c in cases if c.phase != CasePhase.FINALIZED.value}
    deliveries_today = sum(
        1
        for case in cases
        for tray in case.trays
        if tray.delivered_at is not None and clinic_date(tray.delivered_at) == today
    )
    return DashboardStats(
        active_patients=len(cases),
        ongoing_cases=len(open_case_ids),
        deliveries_today=deliveries_today,
        pending_aligners=len({i.case_id for i in lab_items if i.case_id in open_case_ids}),
        overdue=sum(1 for item in lab_items if _is_overdue(item, today)),
        contracts_pending=sum(1 for c in cases if c.phase == CasePhase.CONTRACT_PENDING.value),
        scans_pending=sum(1 for s in scans if s.status == ScanStatus.PENDING.value),
        replenishment_alerts=len(
            replenishment_service.list_replenishment_alerts(state, actor, today)
        ),
    )


def get_lab_kpis(state: WorkflowState, actor: Actor | None, today: date | None = None) -> LabKpis:
    today = today or clinic_today()
    items = list_lab_items_for_actor(state, actor)
    counts = {status.value: 0 for status in LabStatus}
    for item in items:
        counts[item.status] = counts.get(item.status, 0) + 1
    return LabKpis(
        **counts,
        overdue=sum(1 for item in items if _is_overdue(item, today)),
    )
