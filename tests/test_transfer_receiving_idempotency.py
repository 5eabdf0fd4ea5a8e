import pytest

from app.stockflow.core.error_catalog import IdempotencyConflictError, ValidationFailedError
from app.stockflow.db.models import TransferReceipt, TransferReceiptIssue
from app.stockflow.domain.transfer import ReceiptIssueType, TransferStatus
from app.stockflow.services.receiving import ReceiptIssueInput
from tests.transfer_helpers import STORE, WAREHOUSE, seed_stock, shipped, stock_of


def test_repeated_token_is_applied_once(service, db):
    seed_stock(db, WAREHOUSE, "P-1", 50)
    request = shipped(service)

    first = service.receive(request.id, {1: 20}, "receiver-1", idempotency_token="dock-7-batch-1")
    replay = service.receive(request.id, {"1": 20}, "receiver-1", idempotency_token="dock-7-batch-1")

    assert replay == first
    assert replay.lines[0].received_quantity == 20
    assert stock_of(db, STORE, "P-1") == (20, 0)
    assert db.query(TransferReceipt).count() == 1
    assert len(service.history(request.id)) == 5


def test_token_reused_with_other_quantities_conflicts(service, db):
    seed_stock(db, WAREHOUSE, "P-1", 50)
    request = shipped(service)
    service.receive(request.id, {1: 20}, "receiver-1", idempotency_token="batch-1")

    with pytest.raises(IdempotencyConflictError):
        service.receive(request.id, {1: 25}, "receiver-1", idempotency_token="batch-1")

    assert service.get(request.id).lines[0].received_quantity == 20


def test_replay_after_completion_returns_final_state(service, db):
    seed_stock(db, WAREHOUSE, "P-1", 50)
    request = shipped(service)

    done = service.receive(request.id, {1: 50}, "receiver-1", idempotency_token="full")
    again = service.receive(request.id, {1: 50}, "receiver-1", idempotency_token="full")

    assert done.status == TransferStatus.RECEIVED
    assert again.status == TransferStatus.RECEIVED
    assert stock_of(db, STORE, "P-1") == (50, 0)


def test_receipt_records_reported_issues(service, db):
    seed_stock(db, WAREHOUSE, "P-1", 50)
    request = shipped(service)

    result = service.receive(
        request.id,
        {1: 47},
        "receiver-1",
        "pallet damaged",
        issues=[ReceiptIssueInput(line_ref=1, issue_type=ReceiptIssueType.DAMAGED, quantity=3, description="wet")],
    )

    assert result.status == TransferStatus.PARTIALLY_RECEIVED
    assert result.lines[0].issue_quantity == 3
    receipt = db.query(TransferReceipt).one()
    assert receipt.has_issues is True
    assert receipt.is_complete is False
    assert receipt.receipt_number.startswith("RC-2026-")
    issue = db.query(TransferReceiptIssue).one()
    assert issue.issue_type == "damaged"
    assert issue.quantity == 3


def test_issue_quantities_are_checked_against_the_line(service, db):
    seed_stock(db, WAREHOUSE, "P-1", 50)
    request = shipped(service)

    with pytest.raises(ValidationFailedError) as excinfo:
        service.receive(
            request.id,
            {1: 10},
            "receiver-1",
            issues=[ReceiptIssueInput(line_ref=1, issue_type="damaged", quantity=-999)],
        )
    [error] = excinfo.value.result.errors
    assert (error.code, error.line_no, error.field) == ("QUANTITY_NEGATIVE", 1, "issues")

    with pytest.raises(ValidationFailedError) as excinfo:
        service.receive(
            request.id,
            {1: 10},
            "receiver-1",
            issues=[ReceiptIssueInput(line_ref=1, issue_type="missing", quantity=51)],
        )
    [error] = excinfo.value.result.errors
    assert (error.code, error.line_no) == ("QUANTITY_EXCEEDS_SHIPPED", 1)

    assert db.query(TransferReceipt).count() == 0
    assert db.query(TransferReceiptIssue).count() == 0
    assert service.get(request.id).lines[0].received_quantity == 0
    assert stock_of(db, STORE, "P-1") == (0, 0)
