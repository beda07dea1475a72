"""Tests for the tray state machine and rework order creation."""

import pytest

from helpers import TODAY, create_case, create_approved_case, move_tray
from orthoflow.core.errors import InvalidTransition, RegressionDenied
from orthoflow.db.enums import LabPriority, RequestKind, TrayState
from orthoflow.schemas.case import Tray
from orthoflow.services import case_service, lab_service, tray_service


@pytest.mark.parametrize(
    "current,allowed",
    [
        ("pending", {"pending", "in_production"}),
        ("in_production", {"in_production", "ready", "rework"}),
        ("ready", {"ready", "delivered", "rework"}),
        ("delivered", {"delivered", "rework"}),
        ("rework", {"rework", "in_production", "ready"}),
    ],
)
def test_transition_table(current, allowed):
    for next_state in TrayState:
        assert tray_service.can_transition(current, next_state.value) == (next_state.value in allowed)


def test_delivered_regression_is_reported_before_table_check():
    with pytest.raises(RegressionDenied):
        tray_service.check_transition("delivered", "in_production")
    with pytest.raises(RegressionDenied):
        tray_service.check_transition("delivered", "pending")
    with pytest.raises(InvalidTransition):
        tray_service.check_transition("pending", "ready")


def test_delivered_at_is_stamped_only_when_entering_delivered():
    tray = Tray(tray_number=1, state="ready")
    tray_service.transition_tray(tray, "delivered")
    stamped = tray.delivered_at
    assert stamped is not None

    tray_service.transition_tray(tray, "delivered")
    assert tray.delivered_at == stamped

    tray_service.transition_tray(tray, "rework")
    assert tray.delivered_at is None


def test_build_pending_trays_schedules_by_change_interval():
    trays = tray_service.build_pending_trays(3, TODAY, 10)

    assert [t.tray_number for t in trays] == [1, 2, 3]
    assert all(t.state == "pending" for t in trays)
    assert trays[0].due_date.isoformat() == "2026-03-26"
    assert trays[2].due_date.isoformat() == "2026-04-15"


def test_scenario_c_delivered_tray_cannot_return_to_production(store):
    """A delivered tray rejects in_production and keeps its state."""
    case = create_approved_case(store)
    move_tray(store, case.id, 1, "in_production", "ready", "delivered")

    result = case_service.set_tray_state(store, case.id, 1, "in_production")

    assert not result.ok
    assert result.code == "RegressionDenied"
    assert result.category == "state_machine"
    reloaded = store.load().get_case(case.id)
    assert reloaded.get_tray(1).state == "delivered"


def test_invalid_transition_leaves_document_untouched(store):
    case = create_case(store)
    version = store.load().version

    result = case_service.set_tray_state(store, case.id, 1, "delivered")

    assert result.code == "InvalidTransition"
    assert store.load().version == version


def test_unknown_tray_is_not_found(store):
    case = create_case(store)

    result = case_service.set_tray_state(store, case.id, 99, "in_production")

    assert result.code == "TrayNotFound"
    assert result.category == "not_found"


def test_entering_rework_creates_linked_orders_once(store):
    case = create_approved_case(store)
    move_tray(store, case.id, 2, "in_production", "rework")

    state = store.load()
    rework = [i for i in state.lab_items if i.request_kind == RequestKind.REWORK.value]
    production = [i for i in state.lab_items if i.request_kind == RequestKind.PRODUCTION.value]
    assert len(rework) == 1
    assert len(production) == 1
    assert rework[0].linked_item_id == production[0].id
    assert production[0].linked_item_id == rework[0].id
    assert rework[0].tray_number == production[0].tray_number == 2
    assert rework[0].priority == LabPriority.URGENT.value

    # Leaving and re-entering rework while the rework order is open creates nothing new
    move_tray(store, case.id, 2, "in_production", "rework")
    assert len(store.load().lab_items) == 2


def test_rework_without_contract_moves_tray_with_warning(store):
    case = create_case(store)
    with store.mutate() as state:
        tray = state.get_case(case.id).get_tray(1)
        tray.state = "in_production"

    result = case_service.set_tray_state(store, case.id, 1, "rework")

    assert result.ok
    assert result.warnings
    state = store.load()
    assert state.get_case(case.id).get_tray(1).state == "rework"
    assert state.lab_items == []


def test_tray_note_is_trimmed(store):
    case = create_case(store)

    result = case_service.update_tray_note(store, case.id, 3, "  attachment lost  ")

    assert result.ok
    assert result.data.get_tray(3).notes == "attachment lost"


def test_next_pending_tray_skips_delivered(store):
    case = create_approved_case(store)
    move_tray(store, case.id, 1, "in_production", "ready", "delivered")

    reloaded = store.load().get_case(case.id)
    assert tray_service.next_pending_tray_number(reloaded) == 2
    assert tray_service.max_delivered_tray(reloaded) == 1
    assert lab_service.has_production_order(store.load(), case.id) is False
