"""Tests for the case phase ladder, lifecycle derivation, and lab order generation."""

from decimal import Decimal

from helpers import TODAY, approve_case, create_approved_case, create_case, move_tray
from orthoflow.core.config import settings
from orthoflow.schemas.case import BudgetClose, CaseCreate, CaseUpdate, ContractApprove, Tray
from orthoflow.services import case_service, lab_service, lifecycle_service


def test_ladder_runs_in_order(store):
    case = create_case(store)
    assert (case.status, case.phase) == ("planning", "planning")
    assert case.contract.status == "pending"

    early = case_service.approve_contract(store, case.id)
    assert early.code == "InvalidPhase"

    assert case_service.conclude_planning(store, case.id).data.phase == "budget"
    budget = case_service.close_budget(
        store, case.id, BudgetClose(value=Decimal("3200"), notes=" 12x ", contract_notes="sign")
    )
    assert budget.data.phase == "contract_pending"
    assert budget.data.budget.value == Decimal("3200")
    assert budget.data.budget.notes == "12x"
    assert budget.data.contract.status == "pending"

    approved = case_service.approve_contract(store, case.id, ContractApprove(notes="ok"))
    assert approved.data.phase == "contract_approved"
    assert approved.data.contract.status == "approved"
    assert approved.data.contract.approved_at is not None


def test_budget_must_be_positive(store):
    case = create_case(store)
    case_service.conclude_planning(store, case.id)

    result = case_service.close_budget(store, case.id, BudgetClose(value=Decimal("0")))

    assert result.code == "ValidationFailed"
    assert store.load().get_case(case.id).phase == "budget"


def test_unknown_case_is_not_found(store):
    result = case_service.conclude_planning(store, "case_missing")

    assert result.code == "CaseNotFound"


def test_generate_lab_order_is_idempotent(store, approved_case):
    first = lab_service.generate_lab_order(store, approved_case.id, today=TODAY)
    second = lab_service.generate_lab_order(store, approved_case.id, today=TODAY)

    assert first.ok and not first.already_exists
    assert second.ok and second.already_exists
    assert second.data.id == first.data.id
    assert len(store.load().lab_items) == 1

    item = first.data
    assert item.request_code == approved_case.treatment_code
    assert item.tray_number == 1
    assert item.status == "awaiting_start"
    assert (item.due_date - TODAY).days == settings.LAB_ORDER_DUE_DAYS


def test_generate_lab_order_requires_approved_contract(store):
    case = create_case(store)

    result = lab_service.generate_lab_order(store, case.id, today=TODAY)

    assert result.code == "ContractNotApproved"


def test_derive_lifecycle_rules(approved_case):
    case = approved_case
    pending = [Tray(tray_number=1, state="pending"), Tray(tray_number=2, state="pending")]
    assert lifecycle_service.derive_lifecycle(case, pending) == ("planning", "contract_approved")

    rework = [Tray(tray_number=1, state="rework"), Tray(tray_number=2, state="pending")]
    assert lifecycle_service.derive_lifecycle(case, rework) == ("in_production", "in_production")

    partial = [Tray(tray_number=1, state="delivered"), Tray(tray_number=2, state="ready")]
    assert lifecycle_service.derive_lifecycle(case, partial) == ("in_delivery", "in_production")

    done = [Tray(tray_number=1, state="delivered"), Tray(tray_number=2, state="delivered")]
    assert lifecycle_service.derive_lifecycle(case, done) == ("finalized", "finalized")


def test_finalized_iff_every_tray_delivered(store):
    case = create_approved_case(store, total_upper=2, total_lower=2)
    move_tray(store, case.id, 1, "in_production", "ready", "delivered")
    assert store.load().get_case(case.id).phase != "finalized"

    move_tray(store, case.id, 2, "in_production", "ready", "delivered")
    finalized = store.load().get_case(case.id)
    assert finalized.phase == "finalized"
    assert finalized.status == "finalized"

    move_tray(store, case.id, 2, "rework")
    reopened = store.load().get_case(case.id)
    assert reopened.phase != "finalized"
    assert reopened.get_tray(2).state == "rework"


def test_update_case_patches_descriptive_fields(store):
    case = create_case(store)

    result = case_service.update_case(
        store, case.id, CaseUpdate(complaint="crowding", attachment_bonding_tray=True)
    )

    assert result.ok
    assert result.data.complaint == "crowding"
    assert result.data.attachment_bonding_tray is True
    assert result.data.phase == "planning"


def test_case_totals_fall_back_to_larger_arch(store):
    case = create_case(store, total_upper=14, total_lower=0)

    assert case.total_trays == 14
    assert case.upper_total == 14
    assert case.lower_total == 14
    assert len(case.trays) == 14


def test_case_without_trays_is_rejected(store):
    result = case_service.create_case(
        store,
        CaseCreate(patient_name="Maria", scan_date=TODAY, change_every_days=7),
    )

    assert result.code == "ValidationFailed"


def test_ladder_events_are_audited(store, admin):
    case = create_case(store)
    approve_case(store, case.id)

    events = case_service.list_case_events(store, admin, case.id)

    assert [e.action for e in events][:3] == [
        "case.contract_approved",
        "case.budget_closed",
        "case.planning_concluded",
    ]
