"""Transition tables for trays, lab work orders, and the case phase ladder."""

from orthoflow.db.enums import CasePhase, LabStatus, TrayState

TRAY_TRANSITIONS: dict[str, list[str]] = {
    TrayState.PENDING.value: [TrayState.PENDING.value, TrayState.IN_PRODUCTION.value],
    TrayState.IN_PRODUCTION.value: [
        TrayState.IN_PRODUCTION.value,
        TrayState.READY.value,
        TrayState.REWORK.value,
    ],
    TrayState.READY.value: [
        TrayState.READY.value,
        TrayState.DELIVERED.value,
        TrayState.REWORK.value,
    ],
    TrayState.DELIVERED.value: [TrayState.DELIVERED.value, TrayState.REWORK.value],
    TrayState.REWORK.value: [
        TrayState.REWORK.value,
        TrayState.IN_PRODUCTION.value,
        TrayState.READY.value,
    ],
}

# Tray states that count as "production started" for lifecycle derivation
TRAY_PRODUCTION_STATES = {
    TrayState.IN_PRODUCTION.value,
    TrayState.READY.value,
    TrayState.REWORK.value,
}

LAB_STATUS_FLOW: list[str] = [
    LabStatus.AWAITING_START.value,
    LabStatus.IN_PRODUCTION.value,
    LabStatus.QUALITY_CONTROL.value,
    LabStatus.READY.value,
]

# Tray state a case tray should follow when its work order reaches a lab status
LAB_STATUS_TRAY_STATE: dict[str, str] = {
    LabStatus.IN_PRODUCTION.value: TrayState.IN_PRODUCTION.value,
    LabStatus.QUALITY_CONTROL.value: TrayState.IN_PRODUCTION.value,
    LabStatus.READY.value: TrayState.READY.value,
}

# Explicit ladder actions: action -> (required phase, resulting phase)
PHASE_LADDER: dict[str, tuple[str, str]] = {
    "conclude_planning": (CasePhase.PLANNING.value, CasePhase.BUDGET.value),
    "close_budget": (CasePhase.BUDGET.value, CasePhase.CONTRACT_PENDING.value),
    "approve_contract": (CasePhase.CONTRACT_PENDING.value, CasePhase.CONTRACT_APPROVED.value),
}

LAB_ORDER_PHASES = {CasePhase.CONTRACT_APPROVED.value, CasePhase.IN_PRODUCTION.value}
