from tests.api_helpers import seed_stock_via_api, stock_level
from tests.transfer_helpers import WAREHOUSE, auth_headers


def test_unknown_stock_level_reads_as_zero(client):
    assert stock_level(client, WAREHOUSE, "P-404") == {
        "location_id": WAREHOUSE,
        "product_id": "P-404",
        "on_hand": 0,
        "reserved": 0,
        "available": 0,
    }


def test_adjustments_accumulate(client):
    seed_stock_via_api(client, WAREHOUSE, "P-1", 40)
    seed_stock_via_api(client, WAREHOUSE, "P-1", -15)

    assert stock_level(client, WAREHOUSE, "P-1")["on_hand"] == 25


def test_adjustment_cannot_go_negative(client):
    seed_stock_via_api(client, WAREHOUSE, "P-1", 5)

    response = client.post(
        "/stockflow/stock/adjustments",
        json={"location_id": WAREHOUSE, "product_id": "P-1", "delta": -6},
        headers=auth_headers(),
    )

    assert response.status_code == 409
    assert response.json()["code"] == "INSUFFICIENT_STOCK"
    assert stock_level(client, WAREHOUSE, "P-1")["on_hand"] == 5


def test_stock_endpoints_need_a_token(client):
    assert client.get(f"/stockflow/stock/{WAREHOUSE}/P-1").status_code == 401
