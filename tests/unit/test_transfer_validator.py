from decimal import Decimal
from types import SimpleNamespace

from app.stockflow.domain.transfer import TransferStatus
from app.stockflow.services.validator import (
    DUPLICATE_PRODUCT,
    LINES_REQUIRED,
    NEGATIVE_UNIT_COST,
    QUANTITY_NOT_POSITIVE,
    SAME_LOCATION,
    STOCK_SHORTFALL,
    TransferRequestValidator,
)


class FakeInventory:
    def __init__(self, levels=None):
        self.levels = levels or {}
        self.calls = []

    def get_available_stock(self, location_id, product_id):
        self.calls.append((location_id, product_id))
        return self.levels.get((location_id, product_id), 0)


def _line(line_no, product_id, quantity, unit_cost="1.00"):
    return SimpleNamespace(
        line_no=line_no,
        product_id=product_id,
        requested_quantity=quantity,
        unit_cost=Decimal(unit_cost),
    )


def _request(lines, *, source="WH-1", requesting="ST-1"):
    return SimpleNamespace(source_location_id=source, requesting_location_id=requesting, lines=lines)


def test_clean_request_passes():
    validator = TransferRequestValidator(FakeInventory({("WH-1", "P-1"): 10}))
    result = validator.validate(_request([_line(1, "P-1", 5)]), for_transition=TransferStatus.SUBMITTED)
    assert result.ok
    assert result.warnings == []


def test_empty_draft_is_allowed_until_it_leaves_draft():
    validator = TransferRequestValidator(FakeInventory())
    assert validator.validate(_request([]), for_transition=TransferStatus.DRAFT).ok

    result = validator.validate(_request([]), for_transition=TransferStatus.SUBMITTED)
    assert [issue.code for issue in result.errors] == [LINES_REQUIRED]


def test_structural_errors_point_at_the_offending_line():
    validator = TransferRequestValidator(FakeInventory())
    request = _request(
        [_line(1, "P-1", 0), _line(2, "P-2", 3, unit_cost="-1"), _line(3, "P-1", 4)],
        source="ST-1",
    )

    result = validator.validate(request, for_transition=TransferStatus.DRAFT)

    codes = {(issue.code, issue.line_no) for issue in result.errors}
    assert (SAME_LOCATION, None) in codes
    assert (QUANTITY_NOT_POSITIVE, 1) in codes
    assert (NEGATIVE_UNIT_COST, 2) in codes
    assert (DUPLICATE_PRODUCT, 3) in codes
    assert result.as_dict()["errors"][0]["field"] == "source_location_id"


def test_stock_shortfall_is_only_a_warning_at_submission():
    inventory = FakeInventory({("WH-1", "P-1"): 3})
    validator = TransferRequestValidator(inventory)
    request = _request([_line(1, "P-1", 5)])

    result = validator.validate(request, for_transition=TransferStatus.SUBMITTED)

    assert result.ok
    assert [(issue.code, issue.line_no) for issue in result.warnings] == [(STOCK_SHORTFALL, 1)]


def test_stock_is_not_consulted_outside_submission():
    inventory = FakeInventory()
    validator = TransferRequestValidator(inventory)

    validator.validate(_request([_line(1, "P-1", 5)]), for_transition=TransferStatus.APPROVED)

    assert inventory.calls == []
