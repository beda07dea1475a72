"""Tray state machine."""

from datetime import date

from orthoflow.core.errors import InvalidTransition, RegressionDenied, TrayNotFound
from orthoflow.core.stage_rules import TRAY_TRANSITIONS
from orthoflow.db.enums import TrayState
from orthoflow.schemas.case import Case, Tray
from orthoflow.utils.dates import add_days, utcnow


def can_transition(current: str, next_state: str) -> bool:
    return next_state in TRAY_TRANSITIONS.get(current, [])


def check_transition(current: str, next_state: str) -> None:
    """Raise if ``current -> next_state`` is not allowed.

    Regression out of ``delivered`` is reported before the generic table check.
    """
    if current == TrayState.DELIVERED.value and next_state not in (
        TrayState.DELIVERED.value,
        TrayState.REWORK.value,
    ):
        raise RegressionDenied("A tray delivered to the dentist cannot go back in the workflow.")
    if not can_transition(current, next_state):
        raise InvalidTransition(f"Tray cannot move from '{current}' to '{next_state}'.")


def get_tray_or_raise(case: Case, tray_number: int) -> Tray:
    tray = case.get_tray(tray_number)
    if tray is None:
        raise TrayNotFound(f"Tray {tray_number} not found in case {case.id}.")
    return tray


def transition_tray(tray: Tray, next_state: str) -> bool:
    """
    Apply a checked transition to ``tray``.

    Returns True when the tray entered rework from another state, which is
    the trigger for automatic rework orders.
    """
    check_transition(tray.state, next_state)
    entered_rework = next_state == TrayState.REWORK.value and tray.state != TrayState.REWORK.value
    if next_state == TrayState.DELIVERED.value and tray.state != TrayState.DELIVERED.value:
        tray.delivered_at = utcnow()
    elif next_state != TrayState.DELIVERED.value:
        tray.delivered_at = None
    tray.state = next_state
    return entered_rework


def build_pending_trays(total_trays: int, scan_date: date, change_every_days: int) -> list[Tray]:
    """Trays 1..N, tray *n* due ``n * change_every_days`` after the scan."""
    return [
        Tray(
            tray_number=number,
            state=TrayState.PENDING.value,
            due_date=add_days(scan_date, change_every_days * number),
        )
        for number in range(1, total_trays + 1)
    ]


def max_delivered_tray(case: Case) -> int:
    delivered = [t.tray_number for t in case.trays if t.state == TrayState.DELIVERED.value]
    return max(delivered, default=0)


def next_pending_tray_number(case: Case) -> int | None:
    """Lowest tray number not yet delivered."""
    pending = sorted(t.tray_number for t in case.trays if t.state != TrayState.DELIVERED.value)
    return pending[0] if pending else None
