from types import SimpleNamespace

import pytest

from app.stockflow.core.error_catalog import (
    InsufficientStockError,
    QuantityChainViolation,
    ValidationFailedError,
)
from app.stockflow.domain.transfer import TransferStatus
from app.stockflow.services.inventory import SqlInventoryService
from app.stockflow.services.validator import (
    QUANTITY_EXCEEDS_APPROVED,
    QUANTITY_EXCEEDS_SHIPPED,
    QUANTITY_NEGATIVE,
    RECEIPT_EMPTY,
    UNKNOWN_LINE,
)
from app.stockflow.services.workflow import check_quantity_chain
from tests.transfer_helpers import WAREHOUSE, approved, seed_stock, shipped, stock_of


def _codes(exc_info):
    return [issue.code for issue in exc_info.value.result.errors]


def test_chain_check_rejects_received_above_shipped():
    transfer = SimpleNamespace(
        lines=[
            SimpleNamespace(
                line_no=1, requested_quantity=10, approved_quantity=8, shipped_quantity=5, received_quantity=6
            )
        ]
    )

    with pytest.raises(QuantityChainViolation) as exc_info:
        check_quantity_chain(transfer)
    assert exc_info.value.details["line_no"] == 1


def test_chain_check_treats_missing_approval_as_zero():
    transfer = SimpleNamespace(
        lines=[
            SimpleNamespace(
                line_no=1, requested_quantity=10, approved_quantity=None, shipped_quantity=0, received_quantity=0
            )
        ]
    )
    check_quantity_chain(transfer)


def test_shipping_more_than_approved_is_refused(service, db):
    seed_stock(db, WAREHOUSE, "P-1", 100)
    request = approved(service, quantities={1: 20})

    with pytest.raises(ValidationFailedError) as exc_info:
        service.ship(request.id, {1: 21}, "shipper-1")

    assert _codes(exc_info) == [QUANTITY_EXCEEDS_APPROVED]
    current = service.get(request.id)
    assert current.status == TransferStatus.PARTIALLY_APPROVED
    assert current.version == request.version
    assert stock_of(db, WAREHOUSE, "P-1") == (100, 20)


def test_negative_and_unknown_ship_lines_are_refused(service, db):
    seed_stock(db, WAREHOUSE, "P-1", 100)
    request = approved(service)

    with pytest.raises(ValidationFailedError) as exc_info:
        service.ship(request.id, {1: -1, 7: 3}, "shipper-1")

    assert set(_codes(exc_info)) == {QUANTITY_NEGATIVE, UNKNOWN_LINE}


def test_under_shipment_returns_the_rest_of_the_reservation(service, db):
    seed_stock(db, WAREHOUSE, "P-1", 100)
    request = approved(service)

    result = service.ship(request.id, {1: 45}, "shipper-1")

    assert result.status == TransferStatus.IN_TRANSIT
    assert result.lines[0].approved_quantity == 50
    assert result.lines[0].shipped_quantity == 45
    assert stock_of(db, WAREHOUSE, "P-1") == (55, 0)


def test_ship_fails_atomically_when_on_hand_dropped(service, db):
    seed_stock(db, WAREHOUSE, "P-1", 50)
    request = approved(service)
    SqlInventoryService(db).adjust_stock(WAREHOUSE, "P-1", -20)
    db.commit()

    with pytest.raises(InsufficientStockError) as exc_info:
        service.ship(request.id, {}, "shipper-1")

    assert exc_info.value.shortages[0]["product_id"] == "P-1"
    current = service.get(request.id)
    assert current.status == TransferStatus.APPROVED
    assert current.lines[0].shipped_quantity == 0
    assert stock_of(db, WAREHOUSE, "P-1") == (30, 50)
    assert len(service.history(request.id)) == 3


def test_receiving_more_than_shipped_is_refused(service, db):
    seed_stock(db, WAREHOUSE, "P-1", 50)
    request = shipped(service)

    with pytest.raises(ValidationFailedError) as exc_info:
        service.receive(request.id, {1: 51}, "receiver-1")
    assert _codes(exc_info) == [QUANTITY_EXCEEDS_SHIPPED]

    service.receive(request.id, {1: 40}, "receiver-1")
    with pytest.raises(ValidationFailedError) as exc_info:
        service.receive(request.id, {1: 11}, "receiver-1")
    assert _codes(exc_info) == [QUANTITY_EXCEEDS_SHIPPED]
    assert service.get(request.id).lines[0].received_quantity == 40


def test_receipt_needs_a_positive_quantity(service, db):
    seed_stock(db, WAREHOUSE, "P-1", 50)
    request = shipped(service)

    with pytest.raises(ValidationFailedError) as exc_info:
        service.receive(request.id, {1: 0}, "receiver-1")

    assert _codes(exc_info) == [RECEIPT_EMPTY]
