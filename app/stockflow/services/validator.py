from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from app.stockflow.domain.transfer import TransferStatus
from app.stockflow.services.inventory import InventoryService


LINES_REQUIRED = "LINES_REQUIRED"
QUANTITY_NOT_POSITIVE = "QUANTITY_NOT_POSITIVE"
SAME_LOCATION = "SAME_LOCATION"
DUPLICATE_PRODUCT = "DUPLICATE_PRODUCT"
NEGATIVE_UNIT_COST = "NEGATIVE_UNIT_COST"
STOCK_SHORTFALL = "STOCK_SHORTFALL"
UNKNOWN_LINE = "UNKNOWN_LINE"
QUANTITY_NEGATIVE = "QUANTITY_NEGATIVE"
QUANTITY_EXCEEDS_APPROVED = "QUANTITY_EXCEEDS_APPROVED"
QUANTITY_EXCEEDS_SHIPPED = "QUANTITY_EXCEEDS_SHIPPED"
RECEIPT_EMPTY = "RECEIPT_EMPTY"
REASON_REQUIRED = "REASON_REQUIRED"
VALUE_REQUIRED = "VALUE_REQUIRED"


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str
    line_no: int | None = None
    field: str | None = None

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "line_no": self.line_no, "field": self.field}


@dataclass
class ValidationResult:
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def error(self, code: str, message: str, *, line_no: int | None = None, field: str | None = None) -> None:
        self.errors.append(ValidationIssue(code, message, line_no, field))

    def warn(self, code: str, message: str, *, line_no: int | None = None, field: str | None = None) -> None:
        self.warnings.append(ValidationIssue(code, message, line_no, field))

    def as_dict(self) -> dict:
        return {
            "errors": [issue.as_dict() for issue in self.errors],
            "warnings": [issue.as_dict() for issue in self.warnings],
        }


class TransferRequestValidator:
    """Structural checks run before every state-changing operation.

    Never mutates the request. At submission the live source stock is also
    compared against each requested quantity and shortfalls come back as
    warnings; they do not block the submission.
    """

    def __init__(self, inventory: InventoryService):
        self.inventory = inventory

    def validate(self, transfer, *, for_transition: TransferStatus | str | None = None) -> ValidationResult:
        result = ValidationResult()
        lines = list(transfer.lines)
        leaving_draft = for_transition is not None and TransferStatus(for_transition) != TransferStatus.DRAFT

        if transfer.source_location_id == transfer.requesting_location_id:
            result.error(
                SAME_LOCATION,
                "Source location must differ from the requesting location",
                field="source_location_id",
            )
        if leaving_draft and not lines:
            result.error(LINES_REQUIRED, "At least one line is required", field="lines")

        seen: dict[str, int] = {}
        for line in lines:
            if line.requested_quantity is None or line.requested_quantity <= 0:
                result.error(
                    QUANTITY_NOT_POSITIVE,
                    "Requested quantity must be greater than zero",
                    line_no=line.line_no,
                    field="requested_quantity",
                )
            if line.unit_cost is not None and Decimal(line.unit_cost) < 0:
                result.error(
                    NEGATIVE_UNIT_COST,
                    "Unit cost cannot be negative",
                    line_no=line.line_no,
                    field="unit_cost",
                )
            if line.product_id in seen:
                result.error(
                    DUPLICATE_PRODUCT,
                    f"Product {line.product_id} already requested on line {seen[line.product_id]}",
                    line_no=line.line_no,
                    field="product_id",
                )
            else:
                seen[line.product_id] = line.line_no

        if for_transition is not None and TransferStatus(for_transition) == TransferStatus.SUBMITTED:
            self._check_stock(transfer, lines, result)
        return result

    def _check_stock(self, transfer, lines, result: ValidationResult) -> None:
        for line in lines:
            if not line.requested_quantity or line.requested_quantity <= 0:
                continue
            available = self.inventory.get_available_stock(transfer.source_location_id, line.product_id)
            if line.requested_quantity > available:
                result.warn(
                    STOCK_SHORTFALL,
                    f"Requested {line.requested_quantity} but only {available} available at source",
                    line_no=line.line_no,
                    field="requested_quantity",
                )
