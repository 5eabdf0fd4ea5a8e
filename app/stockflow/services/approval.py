from __future__ import annotations

import logging
from datetime import datetime

from app.stockflow.core.error_catalog import ValidationFailedError
from app.stockflow.core.logging import log_json
from app.stockflow.core.metrics import metrics
from app.stockflow.db.models import StockReservation
from app.stockflow.domain.transfer import ReservationStatus, TransferStatus
from app.stockflow.services.validator import REASON_REQUIRED, ValidationResult
from app.stockflow.services.workflow import WorkflowStep

logger = logging.getLogger(__name__)

AUTO_REJECT_REASON = "No quantity could be approved for any line"


def _clamp(proposed, requested: int) -> int:
    return max(0, min(int(proposed), requested))


class ApprovalEngine(WorkflowStep):
    def approve(
        self,
        request_id,
        per_line_quantities: dict | None,
        actor_id: str,
        notes: str | None = None,
        *,
        expected_version: int | None = None,
        expected_delivery_date: datetime | None = None,
    ):
        reductions: list[dict] = []

        def step(transfer):
            self.require_transition(transfer, TransferStatus.APPROVED)
            self.validate(transfer, TransferStatus.APPROVED)
            result = ValidationResult()
            proposals = self.resolve_lines(transfer, per_line_quantities, result)
            if not result.ok:
                raise ValidationFailedError(result)

            line_details = []
            for line in transfer.lines:
                target = _clamp(proposals.get(line.id, line.requested_quantity), line.requested_quantity)
                granted = self.inventory.reserve_up_to(transfer.source_location_id, line.product_id, target)
                if granted > 0:
                    self.reservations.add(
                        StockReservation(
                            location_id=transfer.source_location_id,
                            product_id=line.product_id,
                            transfer_request_id=transfer.id,
                            transfer_line_id=line.id,
                            quantity=granted,
                            status=ReservationStatus.ACTIVE.value,
                            created_at=self.clock(),
                        )
                    )
                line.approved_quantity = granted
                if granted < target:
                    line.approval_notes = f"Reduced from {target} to {granted}: insufficient stock at source"
                    reductions.append(
                        {
                            "line_no": line.line_no,
                            "product_id": line.product_id,
                            "proposed_quantity": target,
                            "approved_quantity": granted,
                        }
                    )
                line_details.append(
                    {
                        "line_no": line.line_no,
                        "requested_quantity": line.requested_quantity,
                        "approved_quantity": granted,
                    }
                )

            approved = [line.approved_quantity for line in transfer.lines]
            if all(quantity == 0 for quantity in approved):
                to_status = TransferStatus.REJECTED
                transfer.rejection_reason = AUTO_REJECT_REASON
            elif all(line.approved_quantity == line.requested_quantity for line in transfer.lines):
                to_status = TransferStatus.APPROVED
            else:
                to_status = TransferStatus.PARTIALLY_APPROVED

            transfer.approved_at = self.clock()
            transfer.approved_by = actor_id
            transfer.approval_notes = notes
            if expected_delivery_date is not None:
                transfer.expected_delivery_date = expected_delivery_date
            return self.set_status(
                transfer,
                to_status,
                actor_id=actor_id,
                note=notes,
                details={"lines": line_details, "auto_reductions": reductions},
            )

        snapshot = self.run(request_id, step, expected_version=expected_version)
        if reductions:
            metrics.increment_auto_reduction(len(reductions))
            log_json(
                logger,
                {
                    "event": "approval_auto_reduced",
                    "transfer_request_id": snapshot.id,
                    "request_number": snapshot.request_number,
                    "lines": reductions,
                },
                level=logging.WARNING,
            )
        return snapshot

    def reject(self, request_id, actor_id: str, reason: str | None, *, expected_version: int | None = None):
        if not reason or not reason.strip():
            result = ValidationResult()
            result.error(REASON_REQUIRED, "A rejection reason is required", field="reason")
            raise ValidationFailedError(result)

        def step(transfer):
            self.require_transition(transfer, TransferStatus.REJECTED)
            transfer.approved_at = self.clock()
            transfer.approved_by = actor_id
            transfer.rejection_reason = reason.strip()
            return self.set_status(transfer, TransferStatus.REJECTED, actor_id=actor_id, note=reason.strip())

        return self.run(request_id, step, expected_version=expected_version)
