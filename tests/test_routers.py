"""HTTP surface tests: actor headers, status mapping, and scoped reads."""

from datetime import timedelta

from helpers import TODAY, actor_headers, create_approved_case, create_case
from orthoflow.core.config import settings
from orthoflow.db.enums import Role

ADMIN = actor_headers(Role.MASTER_ADMIN)
LAB = actor_headers(Role.LAB_TECH)
BRUNO = actor_headers(Role.DENTIST_CLIENT, dentist_id="dentist_bruno")
ANA = actor_headers(Role.DENTIST_CLIENT, dentist_id="dentist_ana")


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["version"] == settings.VERSION


async def test_missing_or_unknown_role_is_unauthorized(client):
    assert (await client.get("/cases")).status_code == 401
    assert (await client.get("/cases", headers={"X-Actor-Role": "pirate"})).status_code == 401


async def test_create_and_read_case(client):
    payload = {
        "patient_name": "Maria",
        "patient_id": "patient_maria",
        "dentist_id": "dentist_ana",
        "clinic_id": "clinic_arrimo",
        "scan_date": TODAY.isoformat(),
        "total_trays_upper": 8,
        "total_trays_lower": 6,
        "change_every_days": 7,
    }
    created = await client.post("/cases", json=payload, headers=ADMIN)
    assert created.status_code == 201
    case_id = created.json()["id"]
    assert created.json()["treatment_code"] == "A-0001"

    visible = await client.get(f"/cases/{case_id}", headers=ANA)
    hidden = await client.get(f"/cases/{case_id}", headers=BRUNO)
    assert visible.status_code == 200
    assert hidden.status_code == 404
    assert (await client.get("/cases", headers=BRUNO)).json() == []


async def test_workflow_errors_map_to_status_codes(client, store):
    case = create_case(store)

    wrong_phase = await client.post(f"/cases/{case.id}/contract/approve", headers=ADMIN)
    assert wrong_phase.status_code == 409
    assert wrong_phase.json()["detail"]["code"] == "InvalidPhase"

    no_contract = await client.post(f"/cases/{case.id}/lab-order", headers=ADMIN)
    assert no_contract.status_code == 412
    assert no_contract.json()["detail"]["code"] == "ContractNotApproved"

    missing = await client.post("/cases/case_missing/conclude-planning", headers=ADMIN)
    assert missing.status_code == 404


async def test_ladder_and_lab_order_over_http(client, store):
    case = create_case(store)

    assert (await client.post(f"/cases/{case.id}/conclude-planning", headers=ADMIN)).status_code == 200
    budget = await client.post(f"/cases/{case.id}/budget", json={"value": "1500.00"}, headers=ADMIN)
    assert budget.json()["phase"] == "contract_pending"
    approved = await client.post(f"/cases/{case.id}/contract/approve", json={"notes": "ok"}, headers=ADMIN)
    assert approved.json()["phase"] == "contract_approved"

    first = await client.post(f"/cases/{case.id}/lab-order", headers=ADMIN)
    second = await client.post(f"/cases/{case.id}/lab-order", headers=ADMIN)
    assert first.json()["already_exists"] is False
    assert second.json()["already_exists"] is True
    assert second.json()["item"]["id"] == first.json()["item"]["id"]


async def test_external_roles_cannot_mutate_workflow(client, store):
    case = create_case(store)

    response = await client.post(f"/cases/{case.id}/conclude-planning", headers=ANA)

    assert response.status_code == 403


async def test_tray_update_returns_warnings(client, store):
    case = create_case(store)

    moved = await client.patch(
        f"/cases/{case.id}/trays/1", json={"state": "in_production", "note": "check IPR"}, headers=LAB
    )
    assert moved.status_code == 200
    body = moved.json()
    assert body["case"]["trays"][0]["state"] == "in_production"
    assert body["case"]["trays"][0]["notes"] == "check IPR"

    rework = await client.patch(f"/cases/{case.id}/trays/1", json={"state": "rework"}, headers=LAB)
    assert rework.status_code == 200
    assert rework.json()["warnings"]

    regress = await client.patch(f"/cases/{case.id}/trays/1", json={"state": "pending"}, headers=LAB)
    assert regress.status_code == 409

    empty = await client.patch(f"/cases/{case.id}/trays/1", json={}, headers=LAB)
    assert empty.status_code == 422


async def test_lab_endpoints(client, store):
    case = create_approved_case(store)
    due = (TODAY + timedelta(days=7)).isoformat()

    created = await client.post("/lab", json={"case_id": case.id, "due_date": due}, headers=LAB)
    assert created.status_code == 201
    item_id = created.json()["item"]["id"]

    blind = await client.post(f"/lab/{item_id}/move", json={"status": "in_production"}, headers=LAB)
    assert blind.status_code == 412

    patched = await client.patch(f"/lab/{item_id}", json={"planned_upper_qty": 13}, headers=LAB)
    assert patched.status_code == 422
    assert patched.json()["detail"]["code"] == "PlanExceedsCase"

    listed = await client.get("/lab", headers=ADMIN)
    assert [i["id"] for i in listed.json()] == [item_id]
    assert (await client.get(f"/lab/{item_id}", headers=BRUNO)).status_code == 404

    forbidden = await client.delete(f"/lab/{item_id}", headers=LAB)
    assert forbidden.status_code == 403
    deleted = await client.delete(f"/lab/{item_id}", headers=ADMIN)
    assert deleted.json() == {"deleted": [item_id]}


async def test_delivery_and_supply_endpoints(client, store):
    case = create_approved_case(store)

    early = await client.post(
        f"/cases/{case.id}/installation",
        json={"installed_at": TODAY.isoformat(), "delivered_upper": 1},
        headers=ADMIN,
    )
    assert early.status_code == 412
    assert early.json()["detail"]["code"] == "NoProductionOrder"

    await client.post(f"/cases/{case.id}/lab-order", headers=ADMIN)
    await client.patch(f"/cases/{case.id}/trays/1", json={"state": "in_production"}, headers=ADMIN)
    await client.patch(f"/cases/{case.id}/trays/1", json={"state": "ready"}, headers=ADMIN)

    lot = await client.post(
        f"/cases/{case.id}/delivery-lots",
        json={"arch": "both", "from_tray": 1, "to_tray": 1, "delivered_to_doctor_at": TODAY.isoformat()},
        headers=ADMIN,
    )
    assert lot.status_code == 201
    assert lot.json()["status"] == "in_delivery"

    duplicate = await client.post(
        f"/cases/{case.id}/delivery-lots",
        json={"arch": "both", "from_tray": 1, "to_tray": 1, "delivered_to_doctor_at": TODAY.isoformat()},
        headers=ADMIN,
    )
    assert duplicate.status_code == 409

    supply = await client.get(f"/cases/{case.id}/supply", headers=ANA)
    assert supply.status_code == 200
    assert supply.json()["delivered_to_dentist_upper"] == 1

    events = await client.get(f"/cases/{case.id}/events", headers=ADMIN)
    assert events.json()[0]["action"] == "case.delivery_lot"


async def test_scan_endpoints(client):
    created = await client.post(
        "/scans",
        json={"patient_name": "Lia", "patient_id": "patient_lia", "scan_date": TODAY.isoformat()},
        headers=ADMIN,
    )
    scan_id = created.json()["id"]

    early = await client.post(
        f"/scans/{scan_id}/case", json={"upper_qty": 6, "change_every_days": 7}, headers=ADMIN
    )
    assert early.status_code == 412

    await client.post(f"/scans/{scan_id}/approve", headers=ADMIN)
    converted = await client.post(
        f"/scans/{scan_id}/case", json={"upper_qty": 6, "change_every_days": 7}, headers=ADMIN
    )
    assert converted.status_code == 201
    assert converted.json()["source_scan_id"] == scan_id

    scan = await client.get(f"/scans/{scan_id}", headers=ADMIN)
    assert scan.json()["status"] == "converted"


async def test_dashboard_endpoints(client, store):
    create_case(store)

    alerts = await client.get("/alerts", headers=ADMIN)
    stats = await client.get("/kpis/dashboard", headers=ADMIN)
    lab = await client.get("/kpis/lab", headers=BRUNO)

    assert alerts.json() == []
    assert stats.json()["active_patients"] == 1
    assert lab.json()["awaiting_start"] == 0


async def test_external_roles_cannot_create_or_edit_cases(client, store):
    case = create_case(store)
    payload = {
        "patient_name": "Joao",
        "dentist_id": "dentist_ana",
        "clinic_id": "clinic_arrimo",
        "scan_date": TODAY.isoformat(),
        "total_trays_upper": 4,
        "change_every_days": 7,
    }

    created = await client.post("/cases", json=payload, headers=BRUNO)
    edited = await client.patch(f"/cases/{case.id}", json={"complaint": "crowding"}, headers=ANA)

    assert created.status_code == 403
    assert edited.status_code == 403
    assert [c.id for c in store.load().cases] == [case.id]


async def test_dentist_scan_is_pinned_to_own_record(client):
    created = await client.post(
        "/scans",
        json={
            "patient_name": "Joao",
            "dentist_id": "dentist_ana",
            "clinic_id": "clinic_sorriso",
            "scan_date": TODAY.isoformat(),
        },
        headers=BRUNO,
    )

    assert created.status_code == 201
    assert created.json()["dentist_id"] == "dentist_bruno"
    assert created.json()["requested_by_dentist_id"] == "dentist_bruno"
    assert (await client.get(f"/scans/{created.json()['id']}", headers=BRUNO)).status_code == 200


async def test_unlinked_external_actor_cannot_register_scans(client):
    response = await client.post(
        "/scans",
        json={"patient_name": "Lia", "scan_date": TODAY.isoformat()},
        headers=actor_headers(Role.CLINIC_CLIENT),
    )

    assert response.status_code == 403
