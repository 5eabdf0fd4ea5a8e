from decimal import Decimal

from app.stockflow.db.models import StockReservation
from app.stockflow.domain.transfer import ReservationStatus, TransferStatus
from app.stockflow.services.transfers import NewTransferLine
from tests.transfer_helpers import STORE, WAREHOUSE, approved, seed_stock, stock_of


def _total_on_hand(db, product_id):
    return stock_of(db, WAREHOUSE, product_id)[0] + stock_of(db, STORE, product_id)[0]


def test_stock_moves_without_being_created_or_lost(service, db):
    seed_stock(db, WAREHOUSE, "P-1", 40)
    seed_stock(db, WAREHOUSE, "P-2", 15)
    lines = [
        NewTransferLine(product_id="P-1", requested_quantity=30, unit_cost=Decimal("4.50")),
        NewTransferLine(product_id="P-2", requested_quantity=20, unit_cost=Decimal("12")),
    ]

    request = approved(service, lines)
    assert request.status == TransferStatus.PARTIALLY_APPROVED
    assert [line.approved_quantity for line in request.lines] == [30, 15]
    assert stock_of(db, WAREHOUSE, "P-1") == (40, 30)
    assert stock_of(db, WAREHOUSE, "P-2") == (15, 15)

    service.ship(request.id, {1: 25}, "shipper-1")
    assert stock_of(db, WAREHOUSE, "P-1") == (15, 0)
    assert stock_of(db, WAREHOUSE, "P-2") == (0, 0)
    # In transit: the moved units sit on neither shelf.
    assert _total_on_hand(db, "P-1") == 15
    assert _total_on_hand(db, "P-2") == 0

    service.receive(request.id, {1: 25, 2: 10}, "receiver-1")
    service.receive(request.id, {2: 5}, "receiver-1")

    final = service.get(request.id)
    assert final.status == TransferStatus.RECEIVED
    assert _total_on_hand(db, "P-1") == 40
    assert _total_on_hand(db, "P-2") == 15
    assert stock_of(db, STORE, "P-1") == (25, 0)
    assert stock_of(db, STORE, "P-2") == (15, 0)

    reservations = db.query(StockReservation).order_by(StockReservation.product_id).all()
    assert [reservation.status for reservation in reservations] == [
        ReservationStatus.FULFILLED.value,
        ReservationStatus.FULFILLED.value,
    ]


def test_snapshot_totals_follow_line_quantities(service, db):
    seed_stock(db, WAREHOUSE, "P-1", 40)
    seed_stock(db, WAREHOUSE, "P-2", 40)
    lines = [
        NewTransferLine(product_id="P-1", requested_quantity=10, unit_cost=Decimal("4.50")),
        NewTransferLine(product_id="P-2", requested_quantity=4, unit_cost=Decimal("12")),
    ]

    request = approved(service, lines, quantities={2: 3})

    assert request.total_requested_quantity == 14
    assert request.total_approved_quantity == 13
    assert request.total_estimated_value == Decimal("93.00")
    assert request.lines[1].line_total == Decimal("48")
