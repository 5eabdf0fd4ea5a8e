from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from app.stockflow.core.config import settings
from app.stockflow.core.error_catalog import IdempotencyConflictError, ValidationFailedError
from app.stockflow.core.logging import log_json
from app.stockflow.core.metrics import metrics
from app.stockflow.db.models import TransferReceipt, TransferReceiptIssue, TransferReceiptLine
from app.stockflow.domain.transfer import ReceiptIssueType, TransferStatus
from app.stockflow.services.idempotency import IdempotencyService
from app.stockflow.services.validator import (
    QUANTITY_EXCEEDS_SHIPPED,
    QUANTITY_NEGATIVE,
    RECEIPT_EMPTY,
    UNKNOWN_LINE,
    ValidationResult,
)
from app.stockflow.services.workflow import WorkflowStep, to_snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiptIssueInput:
    line_ref: object
    issue_type: ReceiptIssueType
    quantity: int = 0
    description: str | None = None


class ReceivingReconciler(WorkflowStep):
    def receive(
        self,
        request_id,
        per_line_quantities: dict,
        actor_id: str,
        notes: str | None = None,
        *,
        idempotency_token: str | None = None,
        issues: list[ReceiptIssueInput] | None = None,
        expected_version: int | None = None,
    ):
        issues = list(issues or [])
        if idempotency_token:
            replay = self._replay(request_id, idempotency_token, per_line_quantities, issues, notes)
            if replay is not None:
                return replay

        def step(transfer):
            self.require_transition(transfer, TransferStatus.RECEIVED)
            result = ValidationResult()
            increments = self.resolve_lines(transfer, per_line_quantities, result)
            for line in transfer.lines:
                quantity = int(increments.get(line.id, 0))
                if quantity < 0:
                    result.error(
                        QUANTITY_NEGATIVE,
                        "Received quantity cannot be negative",
                        line_no=line.line_no,
                        field="received_quantity",
                    )
                elif line.received_quantity + quantity > line.shipped_quantity:
                    result.error(
                        QUANTITY_EXCEEDS_SHIPPED,
                        f"Receiving {quantity} would exceed shipped quantity {line.shipped_quantity}",
                        line_no=line.line_no,
                        field="received_quantity",
                    )
            if not any(int(quantity) > 0 for quantity in increments.values()):
                result.error(RECEIPT_EMPTY, "At least one received quantity must be positive", field="lines")
            issue_lines = []
            for issue in issues:
                line = self.find_line(transfer, issue.line_ref)
                if line is None:
                    result.error(UNKNOWN_LINE, f"Line {issue.line_ref} is not part of this request", field="issues")
                    continue
                if issue.quantity < 0:
                    result.error(
                        QUANTITY_NEGATIVE,
                        "Issue quantity cannot be negative",
                        line_no=line.line_no,
                        field="issues",
                    )
                    continue
                if issue.quantity > line.shipped_quantity:
                    result.error(
                        QUANTITY_EXCEEDS_SHIPPED,
                        f"Issue quantity {issue.quantity} exceeds shipped quantity {line.shipped_quantity}",
                        line_no=line.line_no,
                        field="issues",
                    )
                    continue
                issue_lines.append((line, issue))
            if not result.ok:
                raise ValidationFailedError(result)

            receipt = TransferReceipt(
                transfer_request_id=transfer.id,
                receipt_number=self.next_document_number(settings.RECEIPT_NUMBER_PREFIX),
                idempotency_token=idempotency_token,
                request_hash=self._fingerprint(transfer, per_line_quantities, issues, notes),
                received_by=actor_id,
                notes=notes,
                has_issues=bool(issue_lines),
                received_at=self.clock(),
            )
            line_details = []
            for line in transfer.lines:
                quantity = int(increments.get(line.id, 0))
                if quantity <= 0:
                    continue
                line.received_quantity += quantity
                self.inventory.adjust_stock(transfer.requesting_location_id, line.product_id, quantity)
                receipt.lines.append(
                    TransferReceiptLine(
                        transfer_line_id=line.id,
                        product_id=line.product_id,
                        received_quantity=quantity,
                    )
                )
                line_details.append(
                    {
                        "line_no": line.line_no,
                        "received_quantity": quantity,
                        "total_received": line.received_quantity,
                        "issue_quantity": line.issue_quantity,
                    }
                )
            for line, issue in issue_lines:
                receipt.issues.append(
                    TransferReceiptIssue(
                        transfer_line_id=line.id,
                        issue_type=ReceiptIssueType(issue.issue_type).value,
                        quantity=issue.quantity,
                        description=issue.description,
                    )
                )

            complete = all(line.received_quantity == line.shipped_quantity for line in transfer.lines)
            receipt.is_complete = complete
            self.transfers.add_receipt(receipt)
            if complete:
                to_status = TransferStatus.RECEIVED
                if transfer.received_at is None:
                    transfer.received_at = receipt.received_at
            else:
                to_status = TransferStatus.PARTIALLY_RECEIVED
            return self.set_status(
                transfer,
                to_status,
                actor_id=actor_id,
                note=notes,
                details={
                    "receipt_number": receipt.receipt_number,
                    "lines": line_details,
                    "issues": [
                        {
                            "line_no": line.line_no,
                            "issue_type": ReceiptIssueType(issue.issue_type).value,
                            "quantity": issue.quantity,
                        }
                        for line, issue in issue_lines
                    ],
                },
            )

        try:
            return self.run(request_id, step, expected_version=expected_version)
        except IntegrityError:
            # A concurrent call committed the same token first.
            if not idempotency_token:
                raise
            replay = self._replay(request_id, idempotency_token, per_line_quantities, issues, notes)
            if replay is None:
                raise
            return replay

    def _fingerprint(self, transfer, per_line_quantities, issues, notes) -> str:
        quantities = {}
        for line_ref, quantity in (per_line_quantities or {}).items():
            line = self.find_line(transfer, line_ref)
            quantities[str(line.line_no if line is not None else line_ref)] = int(quantity)
        issue_payload = []
        for issue in issues:
            line = self.find_line(transfer, issue.line_ref)
            issue_payload.append(
                {
                    "line": line.line_no if line is not None else str(issue.line_ref),
                    "issue_type": ReceiptIssueType(issue.issue_type).value,
                    "quantity": issue.quantity,
                    "description": issue.description,
                }
            )
        return IdempotencyService.fingerprint({"lines": quantities, "issues": issue_payload, "notes": notes})

    def _replay(self, request_id, token: str, per_line_quantities, issues, notes):
        transfer = self.load(request_id)
        receipt = self.transfers.get_receipt_by_token(transfer.id, token)
        if receipt is None:
            return None
        if receipt.request_hash != self._fingerprint(transfer, per_line_quantities, issues, notes):
            raise IdempotencyConflictError(token)
        metrics.increment_idempotency_replay()
        log_json(
            logger,
            {
                "event": "receipt_replayed",
                "transfer_request_id": str(transfer.id),
                "receipt_number": receipt.receipt_number,
                "idempotency_token": token,
            },
        )
        return to_snapshot(transfer)
