from tests.api_helpers import create_transfer, run_action, seed_stock_via_api, stock_level
from tests.transfer_helpers import STORE, WAREHOUSE, auth_headers


def _shipped_transfer(client) -> str:
    seed_stock_via_api(client, WAREHOUSE, "P-1", 100)
    transfer_id = create_transfer(client).json()["id"]
    run_action(client, transfer_id, "submit", "submit-1", actor_id="clerk-1")
    run_action(client, transfer_id, "approve", "approve-1")
    run_action(client, transfer_id, "ship", "ship-1", actor_id="shipper-1")
    return transfer_id


def test_create_replay_returns_first_response(client):
    first = create_transfer(client, "create-abc")
    replay = create_transfer(client, "create-abc")

    assert first.status_code == 201
    assert replay.status_code == 201
    assert replay.headers["X-Idempotency-Result"] == "IDEMPOTENCY_REPLAY"
    assert replay.json()["id"] == first.json()["id"]
    assert client.get("/stockflow/transfers", headers=auth_headers()).json()["total"] == 1


def test_create_key_reused_with_other_payload_conflicts(client):
    create_transfer(client, "create-abc")

    response = create_transfer(client, "create-abc", notes="different")

    assert response.status_code == 409
    assert response.json()["code"] == "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD"


def test_mutating_posts_require_a_key(client):
    response = client.post(
        "/stockflow/transfers",
        json={"source_location_id": WAREHOUSE, "source_location_type": "warehouse", "lines": []},
        headers=auth_headers(),
    )
    assert response.status_code == 400
    assert response.json()["code"] == "IDEMPOTENCY_KEY_REQUIRED"

    transfer_id = create_transfer(client).json()["id"]
    response = client.post(
        f"/stockflow/transfers/{transfer_id}/actions",
        json={"action": "submit"},
        headers=auth_headers(),
    )
    assert response.status_code == 400
    assert response.json()["code"] == "IDEMPOTENCY_KEY_REQUIRED"


def test_action_replay_does_not_transition_twice(client):
    seed_stock_via_api(client, WAREHOUSE, "P-1", 100)
    transfer_id = create_transfer(client).json()["id"]
    run_action(client, transfer_id, "submit", "submit-1", actor_id="clerk-1")

    first = run_action(client, transfer_id, "approve", "approve-1")
    replay = run_action(client, transfer_id, "approve", "approve-1")

    assert replay.status_code == 200
    assert replay.headers["X-Idempotency-Result"] == "IDEMPOTENCY_REPLAY"
    assert replay.json()["version"] == first.json()["version"]
    assert stock_level(client, WAREHOUSE, "P-1")["reserved"] == 30


def test_receipt_token_is_shared_across_callers(client):
    transfer_id = _shipped_transfer(client)

    first = run_action(client, transfer_id, "receive", "dock-7", actor_id="receiver-1", quantities={"1": 10})
    assert first.status_code == 200
    assert first.json()["status"] == "PARTIALLY_RECEIVED"

    # Same batch reported again by a second device using the same token.
    again = run_action(client, transfer_id, "receive", "dock-7", actor_id="receiver-2", quantities={"1": 10})
    assert again.status_code == 200
    assert again.json()["lines"][0]["received_quantity"] == 10
    assert stock_level(client, STORE, "P-1")["on_hand"] == 10

    clash = run_action(client, transfer_id, "receive", "dock-7", actor_id="receiver-3", quantities={"1": 12})
    assert clash.status_code == 409
    assert clash.json()["code"] == "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD"
