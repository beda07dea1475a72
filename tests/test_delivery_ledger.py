"""Tests for dentist delivery lots and patient installations."""

from datetime import timedelta

import pytest

from helpers import TODAY, create_approved_case, create_case, move_tray
from orthoflow.db.enums import Arch
from orthoflow.schemas.case import DeliveryLotCreate, InstallationCreate
from orthoflow.services import case_service, lab_service, replenishment_service


def _lot(arch=Arch.BOTH, from_tray=1, to_tray=1, when=TODAY) -> DeliveryLotCreate:
    return DeliveryLotCreate(
        arch=arch, from_tray=from_tray, to_tray=to_tray, delivered_to_doctor_at=when
    )


def _ready(store, case_id, *tray_numbers):
    for number in tray_numbers:
        move_tray(store, case_id, number, "in_production", "ready")


@pytest.fixture
def producing_case(store):
    case = create_approved_case(store)
    assert lab_service.generate_lab_order(store, case.id, today=TODAY).ok
    return case


def test_scenario_a_dentist_delivery_needs_a_production_order(store):
    """12 trays every 7 days: the lot fails until the lab order exists, then succeeds."""
    case = create_approved_case(store, total_upper=12, total_lower=12, change_every_days=7)
    move_tray(store, case.id, 1, "in_production", "ready", "delivered")

    failures = []
    before = case_service.register_case_delivery_lot(store, case.id, _lot())
    if not before.ok:
        failures.append(before.code)
    assert failures == ["NoProductionOrder"]
    assert store.load().get_case(case.id).delivery_lots == []

    assert lab_service.generate_lab_order(store, case.id, today=TODAY).ok
    after = case_service.register_case_delivery_lot(store, case.id, _lot())

    assert after.ok, after.error
    assert len(after.data.delivery_lots) == 1
    assert after.data.delivery_lots[0].quantity == 1


def test_lot_marks_trays_delivered_and_updates_lifecycle(store, producing_case):
    _ready(store, producing_case.id, 1, 2, 3)

    result = case_service.register_case_delivery_lot(
        store, producing_case.id, _lot(from_tray=1, to_tray=3)
    )

    case = result.data
    assert [case.get_tray(n).state for n in (1, 2, 3, 4)] == [
        "delivered",
        "delivered",
        "delivered",
        "pending",
    ]
    assert case.get_tray(2).delivered_at is not None
    assert case.status == "in_delivery"
    assert case.delivery_lots[0].quantity == 3


@pytest.mark.parametrize(
    "from_tray,to_tray",
    [(0, 1), (3, 2), (12, 13)],
)
def test_lot_range_is_validated(store, producing_case, from_tray, to_tray):
    result = case_service.register_case_delivery_lot(
        store, producing_case.id, _lot(from_tray=from_tray, to_tray=to_tray)
    )

    assert result.code == "InvalidRange"
    assert result.category == "validation"


def test_lot_requires_a_date(store, producing_case):
    _ready(store, producing_case.id, 1)

    result = case_service.register_case_delivery_lot(
        store, producing_case.id, DeliveryLotCreate(arch=Arch.BOTH, from_tray=1, to_tray=1)
    )

    assert result.code == "ValidationFailed"


def test_lot_requires_ready_trays(store, producing_case):
    _ready(store, producing_case.id, 1)

    result = case_service.register_case_delivery_lot(
        store, producing_case.id, _lot(from_tray=1, to_tray=2)
    )

    assert result.code == "TrayNotReady"
    assert store.load().get_case(producing_case.id).get_tray(1).state == "ready"


def test_duplicate_lot_is_rejected(store, producing_case):
    _ready(store, producing_case.id, 1)
    assert case_service.register_case_delivery_lot(store, producing_case.id, _lot()).ok

    result = case_service.register_case_delivery_lot(store, producing_case.id, _lot())

    assert result.code == "DuplicateLot"
    assert result.category == "conflict"


def test_lot_ranges_move_forward_per_arch(store, producing_case):
    _ready(store, producing_case.id, 1, 2, 3)
    assert case_service.register_case_delivery_lot(
        store, producing_case.id, _lot(arch=Arch.UPPER, from_tray=1, to_tray=2)
    ).ok

    overlap = case_service.register_case_delivery_lot(
        store,
        producing_case.id,
        _lot(arch=Arch.BOTH, from_tray=2, to_tray=3, when=TODAY + timedelta(days=1)),
    )
    assert overlap.code == "InvalidRange"

    _ready(store, producing_case.id, 4)
    gap = case_service.register_case_delivery_lot(
        store, producing_case.id, _lot(arch=Arch.UPPER, from_tray=4, to_tray=4)
    )
    assert gap.code == "InvalidRange"
    assert store.load().get_case(producing_case.id).get_tray(4).state == "ready"

    lower = case_service.register_case_delivery_lot(
        store, producing_case.id, _lot(arch=Arch.LOWER, from_tray=1, to_tray=2)
    )
    assert lower.ok

    upper, lower_count = replenishment_service.delivered_to_dentist(lower.data)
    assert (upper, lower_count) == (2, 2)


def test_lot_requires_contract(store):
    case = create_case(store)

    result = case_service.register_case_delivery_lot(store, case.id, _lot())

    assert result.code == "ContractNotApproved"


def test_lot_for_unknown_case(store):
    result = case_service.register_case_delivery_lot(store, "case_missing", _lot())

    assert result.code == "CaseNotFound"


# =============================================================================
# Installation
# =============================================================================


def test_scenario_d_installation_needs_dentist_delivery(store, producing_case):
    early = case_service.register_case_installation(
        store,
        producing_case.id,
        InstallationCreate(installed_at=TODAY, delivered_upper=1),
    )
    assert early.code == "NoDentistDelivery"

    _ready(store, producing_case.id, 1)
    assert case_service.register_case_delivery_lot(
        store, producing_case.id, _lot(arch=Arch.UPPER)
    ).ok

    result = case_service.register_case_installation(
        store,
        producing_case.id,
        InstallationCreate(installed_at=TODAY, delivered_upper=1, delivered_lower=0),
    )

    assert result.ok, result.error
    assert result.data.installation.delivered_upper == 1
    assert result.data.installation.delivered_lower == 0
    # Upper alone does not extend paired coverage
    assert result.data.installation.patient_delivery_lots == []


def test_installation_needs_production_order(store):
    case = create_approved_case(store)

    result = case_service.register_case_installation(
        store, case.id, InstallationCreate(installed_at=TODAY, delivered_upper=1)
    )

    assert result.code == "NoProductionOrder"


def test_first_installation_needs_a_date(store, producing_case):
    _ready(store, producing_case.id, 1)
    case_service.register_case_delivery_lot(store, producing_case.id, _lot())

    result = case_service.register_case_installation(
        store, producing_case.id, InstallationCreate(delivered_upper=1, delivered_lower=1)
    )

    assert result.code == "ValidationFailed"


def test_patient_deliveries_are_monotonic_and_bounded(store, producing_case):
    _ready(store, producing_case.id, 1, 2, 3)
    case_service.register_case_delivery_lot(store, producing_case.id, _lot(from_tray=1, to_tray=3))

    history = []
    for upper, lower in [(1, 1), (1, 0), (0, 1), (1, 1)]:
        result = case_service.register_case_installation(
            store,
            producing_case.id,
            InstallationCreate(installed_at=TODAY, delivered_upper=upper, delivered_lower=lower),
        )
        assert result.ok, result.error
        installation = result.data.installation
        history.append((installation.delivered_upper, installation.delivered_lower))

    assert history == [(1, 1), (2, 1), (2, 2), (3, 3)]
    for previous, current in zip(history, history[1:]):
        assert current[0] >= previous[0] and current[1] >= previous[1]

    over = case_service.register_case_installation(
        store, producing_case.id, InstallationCreate(delivered_upper=1)
    )
    assert over.code == "ExceedsDentistDelivery"

    negative = case_service.register_case_installation(
        store, producing_case.id, InstallationCreate(delivered_upper=-1)
    )
    assert negative.code == "ValidationFailed"

    lots = store.load().get_case(producing_case.id).installation.patient_delivery_lots
    assert [(lot.from_tray, lot.to_tray) for lot in lots] == [(1, 1), (2, 2), (3, 3)]


def test_installation_keeps_first_install_date(store, producing_case):
    _ready(store, producing_case.id, 1, 2)
    case_service.register_case_delivery_lot(store, producing_case.id, _lot(from_tray=1, to_tray=2))
    case_service.register_case_installation(
        store, producing_case.id, InstallationCreate(installed_at=TODAY, delivered_upper=1, delivered_lower=1)
    )

    later = TODAY + timedelta(days=14)
    result = case_service.register_case_installation(
        store, producing_case.id, InstallationCreate(installed_at=later, delivered_upper=1, delivered_lower=1)
    )

    assert result.data.installation.installed_at == TODAY
    assert result.data.installation.patient_delivery_lots[-1].delivered_at == later


def test_installation_cannot_exceed_case_total(store):
    case = create_approved_case(store, total_upper=2, total_lower=2)
    lab_service.generate_lab_order(store, case.id, today=TODAY)
    _ready(store, case.id, 1, 2)
    case_service.register_case_delivery_lot(store, case.id, _lot(from_tray=1, to_tray=2))

    result = case_service.register_case_installation(
        store, case.id, InstallationCreate(installed_at=TODAY, delivered_upper=3)
    )

    assert result.code == "ExceedsCaseTotal"


def test_supply_summary(store, producing_case, admin):
    _ready(store, producing_case.id, 1, 2)
    case_service.register_case_delivery_lot(store, producing_case.id, _lot(from_tray=1, to_tray=2))
    case_service.register_case_installation(
        store, producing_case.id, InstallationCreate(installed_at=TODAY, delivered_upper=2, delivered_lower=1)
    )

    summary = case_service.get_case_supply_summary(store, admin, producing_case.id)

    assert summary.total == 12
    assert summary.delivered == 1
    assert summary.remaining == 11
    assert summary.next_tray == 3
    assert summary.next_due_date == TODAY + timedelta(days=14)
    assert (summary.delivered_to_dentist_upper, summary.delivered_to_dentist_lower) == (2, 2)
    assert (summary.delivered_to_patient_upper, summary.delivered_to_patient_lower) == (2, 1)
