from tests.api_helpers import create_transfer, run_action, seed_stock_via_api
from tests.transfer_helpers import WAREHOUSE, auth_headers


def test_missing_or_invalid_token_is_rejected(client):
    response = client.get("/stockflow/transfers")
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"

    response = client.get("/stockflow/transfers", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"
    assert response.json()["trace_id"]


def test_requesting_location_falls_back_to_token(client):
    response = client.post(
        "/stockflow/transfers",
        json={"source_location_id": WAREHOUSE, "source_location_type": "warehouse", "lines": []},
        headers=auth_headers("hq-1", location_id=None, key="create-1"),
    )

    assert response.status_code == 422
    errors = response.json()["details"]["errors"]
    assert errors[0]["code"] == "REQUESTING_LOCATION_REQUIRED"

    response = client.post(
        "/stockflow/transfers",
        json={
            "requesting_location_id": "STORE-40",
            "source_location_id": WAREHOUSE,
            "source_location_type": "warehouse",
            "lines": [],
        },
        headers=auth_headers("hq-1", location_id=None, key="create-2"),
    )
    assert response.status_code == 201
    assert response.json()["requesting_location_id"] == "STORE-40"


def test_unknown_transfer_is_404(client):
    response = client.get("/stockflow/transfers/3f0c5d55-3c1e-4a51-8f2b-6a6f4e1d7c90", headers=auth_headers())

    assert response.status_code == 404
    assert response.json()["code"] == "TRANSFER_NOT_FOUND"


def test_validation_errors_point_at_the_line(client):
    response = create_transfer(
        client,
        lines=[
            {"product_id": "P-1", "requested_quantity": 5},
            {"product_id": "P-2", "requested_quantity": 0},
        ],
    )

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == "VALIDATION_ERROR"
    assert payload["details"]["errors"] == [
        {
            "code": "QUANTITY_NOT_POSITIVE",
            "message": "Requested quantity must be greater than zero",
            "line_no": 2,
            "field": "requested_quantity",
        }
    ]


def test_transition_out_of_order_is_409(client):
    transfer_id = create_transfer(client).json()["id"]

    response = run_action(client, transfer_id, "ship", "ship-1", actor_id="shipper-1")

    assert response.status_code == 409
    payload = response.json()
    assert payload["code"] == "INVALID_TRANSITION"
    assert payload["details"]["from_status"] == "DRAFT"
    assert payload["details"]["to_status"] == "IN_TRANSIT"


def test_stale_expected_version_is_409(client):
    seed_stock_via_api(client, WAREHOUSE, "P-1", 100)
    created = create_transfer(client).json()
    run_action(client, created["id"], "submit", "submit-1", actor_id="clerk-1")

    response = run_action(
        client, created["id"], "approve", "approve-1", expected_version=created["version"]
    )

    assert response.status_code == 409
    assert response.json()["code"] == "CONCURRENCY_CONFLICT"
    assert response.json()["details"]["expected_version"] == created["version"]


def test_reject_requires_reason(client):
    transfer_id = create_transfer(client).json()["id"]
    run_action(client, transfer_id, "submit", "submit-1", actor_id="clerk-1")

    response = run_action(client, transfer_id, "reject", "reject-1", reason="")
    assert response.status_code == 422
    assert response.json()["details"]["errors"][0]["code"] == "REASON_REQUIRED"

    response = run_action(client, transfer_id, "reject", "reject-2", reason="Budget freeze")
    assert response.status_code == 200
    assert response.json()["status"] == "REJECTED"
    assert response.json()["rejection_reason"] == "Budget freeze"


def test_unknown_action_is_rejected_by_schema(client):
    transfer_id = create_transfer(client).json()["id"]

    response = run_action(client, transfer_id, "teleport", "teleport-1")

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_patch_with_null_location_is_422(client):
    transfer_id = create_transfer(client).json()["id"]

    for field in ("source_location_type", "source_location_id", "requesting_location_id"):
        response = client.patch(
            f"/stockflow/transfers/{transfer_id}",
            json={field: None},
            headers=auth_headers(),
        )
        assert response.status_code == 422, response.text
        errors = response.json()["details"]["errors"]
        assert errors == [
            {"code": "VALUE_REQUIRED", "message": f"{field} cannot be cleared", "line_no": None, "field": field}
        ]

    detail = client.get(f"/stockflow/transfers/{transfer_id}", headers=auth_headers()).json()
    assert detail["source_location_type"] == "warehouse"
    assert detail["source_location_id"] == WAREHOUSE
