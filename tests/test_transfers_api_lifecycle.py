from tests.api_helpers import create_transfer, run_action, seed_stock_via_api, stock_level
from tests.transfer_helpers import STORE, WAREHOUSE, auth_headers


def test_full_lifecycle_over_http(client):
    seed_stock_via_api(client, WAREHOUSE, "P-1", 100)

    created = create_transfer(client)
    assert created.status_code == 201
    body = created.json()
    transfer_id = body["id"]
    assert body["status"] == "DRAFT"
    assert body["requesting_location_id"] == STORE
    assert body["created_by"] == "clerk-1"
    assert body["request_number"].startswith("TR-")
    assert body["lines"][0]["source_available_stock"] == 100

    submitted = run_action(client, transfer_id, "submit", "submit-1", actor_id="clerk-1")
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "SUBMITTED"
    assert submitted.json()["warnings"] == []

    approved = run_action(
        client, transfer_id, "approve", "approve-1", quantities={"1": 20}, notes="half now"
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "PARTIALLY_APPROVED"
    assert approved.json()["lines"][0]["approved_quantity"] == 20
    assert stock_level(client, WAREHOUSE, "P-1") == {
        "location_id": WAREHOUSE,
        "product_id": "P-1",
        "on_hand": 100,
        "reserved": 20,
        "available": 80,
    }

    shipped = run_action(
        client, transfer_id, "ship", "ship-1", actor_id="shipper-1", carrier="ACME", tracking_number="1Z999"
    )
    assert shipped.status_code == 200
    assert shipped.json()["status"] == "IN_TRANSIT"
    assert shipped.json()["shipped_by"] == "shipper-1"
    assert stock_level(client, WAREHOUSE, "P-1")["on_hand"] == 80

    received = run_action(
        client,
        transfer_id,
        "receive",
        "receive-1",
        actor_id="receiver-1",
        quantities={"1": 20},
    )
    assert received.status_code == 200
    assert received.json()["status"] == "RECEIVED"
    assert received.json()["received_at"] is not None
    assert stock_level(client, STORE, "P-1")["on_hand"] == 20

    history = client.get(f"/stockflow/transfers/{transfer_id}/history", headers=auth_headers())
    assert history.status_code == 200
    rows = history.json()["rows"]
    assert [row["to_status"] for row in rows] == [
        "DRAFT",
        "SUBMITTED",
        "PARTIALLY_APPROVED",
        "IN_TRANSIT",
        "RECEIVED",
    ]
    assert [row["sequence"] for row in rows] == [1, 2, 3, 4, 5]
    assert rows[2]["actor_id"] == "manager-1"
    assert rows[0]["from_status"] is None


def test_submit_reports_stock_shortfall_warnings(client):
    seed_stock_via_api(client, WAREHOUSE, "P-1", 10)
    transfer_id = create_transfer(client).json()["id"]

    response = run_action(client, transfer_id, "submit", "submit-1", actor_id="clerk-1")

    assert response.status_code == 200
    warnings = response.json()["warnings"]
    assert [warning["code"] for warning in warnings] == ["STOCK_SHORTFALL"]
    assert warnings[0]["line_no"] == 1


def test_draft_editing_endpoints(client):
    created = create_transfer(client).json()
    transfer_id = created["id"]

    patched = client.patch(
        f"/stockflow/transfers/{transfer_id}",
        json={"priority": "high", "expected_version": created["version"]},
        headers=auth_headers(),
    )
    assert patched.status_code == 200
    assert patched.json()["priority"] == "high"

    added = client.post(
        f"/stockflow/transfers/{transfer_id}/lines",
        json={"product_id": "P-2", "requested_quantity": 4},
        headers=auth_headers(),
    )
    assert added.status_code == 201
    new_line = added.json()["lines"][1]
    assert new_line["line_no"] == 2

    updated = client.patch(
        f"/stockflow/transfers/{transfer_id}/lines/{new_line['id']}",
        json={"requested_quantity": 6},
        headers=auth_headers(),
    )
    assert updated.status_code == 200
    assert updated.json()["lines"][1]["requested_quantity"] == 6

    removed = client.delete(f"/stockflow/transfers/{transfer_id}/lines/1", headers=auth_headers())
    assert removed.status_code == 200
    assert [line["product_id"] for line in removed.json()["lines"]] == ["P-2"]

    deleted = client.delete(f"/stockflow/transfers/{transfer_id}", headers=auth_headers())
    assert deleted.status_code == 204
    assert client.get(f"/stockflow/transfers/{transfer_id}", headers=auth_headers()).status_code == 404


def test_list_filters_and_pagination(client):
    first = create_transfer(client, "create-1", notes="spring reset").json()
    second = create_transfer(client, "create-2").json()
    run_action(client, second["id"], "cancel", "cancel-1", actor_id="clerk-1")

    listing = client.get("/stockflow/transfers", headers=auth_headers())
    assert listing.status_code == 200
    payload = listing.json()
    assert payload["total"] == 2
    assert payload["limit"] == 50
    assert {row["id"] for row in payload["rows"]} == {first["id"], second["id"]}

    cancelled = client.get("/stockflow/transfers", params={"status": "CANCELLED"}, headers=auth_headers())
    assert [row["id"] for row in cancelled.json()["rows"]] == [second["id"]]

    searched = client.get("/stockflow/transfers", params={"q": "spring"}, headers=auth_headers())
    assert [row["id"] for row in searched.json()["rows"]] == [first["id"]]

    paged = client.get("/stockflow/transfers", params={"limit": 1, "offset": 1}, headers=auth_headers())
    assert paged.json()["total"] == 2
    assert len(paged.json()["rows"]) == 1
