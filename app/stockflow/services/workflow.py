from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from app.stockflow.core.error_catalog import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    QuantityChainViolation,
    TransferNotFoundError,
    ValidationFailedError,
)
from app.stockflow.core.metrics import metrics
from app.stockflow.db.models import (
    TransferLine,
    TransferReceipt,
    TransferReceiptIssue,
    TransferRequest,
    TransferShipment,
)
from app.stockflow.db.session import unit_of_work
from app.stockflow.domain.transfer import (
    LocationType,
    ReceiptIssueSnapshot,
    ReceiptIssueType,
    ReceiptLineSnapshot,
    ReceiptSnapshot,
    ShipmentSnapshot,
    TransferLineSnapshot,
    TransferPriority,
    TransferReason,
    TransferRequestSnapshot,
    TransferStatus,
    TransferSummary,
    can_transition,
)
from app.stockflow.repos.reservations import ReservationRepository
from app.stockflow.repos.sequences import DocumentSequenceRepository
from app.stockflow.repos.transfers import TransferRepository
from app.stockflow.services.activity_log import ActivityLog
from app.stockflow.services.inventory import InventoryService, SqlInventoryService
from app.stockflow.services.validator import (
    UNKNOWN_LINE,
    TransferRequestValidator,
    ValidationResult,
)


def check_quantity_chain(transfer: TransferRequest) -> None:
    for line in transfer.lines:
        approved = line.approved_quantity or 0
        received = line.received_quantity or 0
        shipped = line.shipped_quantity or 0
        if not 0 <= received <= shipped <= approved <= line.requested_quantity:
            raise QuantityChainViolation(
                line.line_no,
                {
                    "requested_quantity": line.requested_quantity,
                    "approved_quantity": line.approved_quantity,
                    "shipped_quantity": shipped,
                    "received_quantity": received,
                },
            )


def line_snapshot(line: TransferLine) -> TransferLineSnapshot:
    return TransferLineSnapshot(
        id=str(line.id),
        line_no=line.line_no,
        product_id=line.product_id,
        unit_cost=Decimal(line.unit_cost or 0),
        requested_quantity=line.requested_quantity,
        approved_quantity=line.approved_quantity,
        shipped_quantity=line.shipped_quantity or 0,
        received_quantity=line.received_quantity or 0,
        issue_quantity=line.issue_quantity,
        source_available_stock=line.source_available_stock or 0,
        approval_notes=line.approval_notes,
        notes=line.notes,
    )


def to_snapshot(transfer: TransferRequest) -> TransferRequestSnapshot:
    return TransferRequestSnapshot(
        id=str(transfer.id),
        request_number=transfer.request_number,
        requesting_location_id=transfer.requesting_location_id,
        source_location_id=transfer.source_location_id,
        source_location_type=LocationType(transfer.source_location_type),
        status=TransferStatus(transfer.status),
        priority=TransferPriority(transfer.priority),
        reason=TransferReason(transfer.reason),
        version=transfer.version,
        notes=transfer.notes,
        requested_delivery_date=transfer.requested_delivery_date,
        expected_delivery_date=transfer.expected_delivery_date,
        created_at=transfer.created_at,
        created_by=transfer.created_by,
        submitted_at=transfer.submitted_at,
        submitted_by=transfer.submitted_by,
        approved_at=transfer.approved_at,
        approved_by=transfer.approved_by,
        approval_notes=transfer.approval_notes,
        rejection_reason=transfer.rejection_reason,
        shipped_at=transfer.shipped_at,
        shipped_by=transfer.shipped_by,
        received_at=transfer.received_at,
        cancelled_at=transfer.cancelled_at,
        cancelled_by=transfer.cancelled_by,
        cancellation_reason=transfer.cancellation_reason,
        updated_at=transfer.updated_at,
        lines=tuple(line_snapshot(line) for line in transfer.lines),
    )


def to_summary(transfer: TransferRequest) -> TransferSummary:
    lines = list(transfer.lines)
    return TransferSummary(
        id=str(transfer.id),
        request_number=transfer.request_number,
        requesting_location_id=transfer.requesting_location_id,
        source_location_id=transfer.source_location_id,
        status=TransferStatus(transfer.status),
        priority=TransferPriority(transfer.priority),
        reason=TransferReason(transfer.reason),
        line_count=len(lines),
        total_requested_quantity=sum(line.requested_quantity for line in lines),
        total_approved_quantity=sum(line.approved_quantity or 0 for line in lines),
        total_estimated_value=sum(
            (Decimal(line.unit_cost or 0) * line.requested_quantity for line in lines), Decimal("0")
        ),
        created_at=transfer.created_at,
        submitted_at=transfer.submitted_at,
        expected_delivery_date=transfer.expected_delivery_date,
    )


def shipment_snapshot(shipment: TransferShipment) -> ShipmentSnapshot:
    return ShipmentSnapshot(
        id=str(shipment.id),
        transfer_request_id=str(shipment.transfer_request_id),
        shipment_number=shipment.shipment_number,
        shipped_by=shipment.shipped_by,
        carrier=shipment.carrier,
        tracking_number=shipment.tracking_number,
        package_count=shipment.package_count or 0,
        notes=shipment.notes,
        shipped_at=shipment.shipped_at,
    )


def issue_snapshot(issue: TransferReceiptIssue) -> ReceiptIssueSnapshot:
    return ReceiptIssueSnapshot(
        id=str(issue.id),
        receipt_id=str(issue.receipt_id),
        receipt_number=issue.receipt.receipt_number,
        transfer_request_id=str(issue.receipt.transfer_request_id),
        line_no=issue.transfer_line.line_no,
        product_id=issue.transfer_line.product_id,
        issue_type=ReceiptIssueType(issue.issue_type),
        quantity=issue.quantity,
        description=issue.description,
        is_resolved=bool(issue.is_resolved),
        resolution_notes=issue.resolution_notes,
        resolved_at=issue.resolved_at,
        resolved_by=issue.resolved_by,
    )


def receipt_snapshot(receipt: TransferReceipt) -> ReceiptSnapshot:
    return ReceiptSnapshot(
        id=str(receipt.id),
        transfer_request_id=str(receipt.transfer_request_id),
        receipt_number=receipt.receipt_number,
        received_by=receipt.received_by,
        notes=receipt.notes,
        has_issues=bool(receipt.has_issues),
        is_complete=bool(receipt.is_complete),
        received_at=receipt.received_at,
        lines=tuple(
            ReceiptLineSnapshot(
                transfer_line_id=str(line.transfer_line_id),
                product_id=line.product_id,
                received_quantity=line.received_quantity,
            )
            for line in receipt.lines
        ),
        issues=tuple(issue_snapshot(issue) for issue in receipt.issues),
    )


class WorkflowStep:
    def __init__(
        self,
        db,
        *,
        inventory: InventoryService | None = None,
        activity: ActivityLog | None = None,
        validator: TransferRequestValidator | None = None,
        clock=datetime.utcnow,
    ):
        self.db = db
        self.clock = clock
        self.transfers = TransferRepository(db)
        self.reservations = ReservationRepository(db)
        self.sequences = DocumentSequenceRepository(db)
        self.inventory = inventory or SqlInventoryService(db)
        self.activity = activity or ActivityLog(db, clock=clock)
        self.validator = validator or TransferRequestValidator(self.inventory)

    def load_for_update(self, request_id, expected_version: int | None = None) -> TransferRequest:
        transfer = self.transfers.get_request_for_update(request_id)
        if transfer is None:
            raise TransferNotFoundError(request_id)
        if expected_version is not None and transfer.version != expected_version:
            metrics.increment_concurrency_conflict()
            raise ConcurrencyConflictError(
                request_id, expected_version=expected_version, actual_version=transfer.version
            )
        return transfer

    def load(self, request_id) -> TransferRequest:
        transfer = self.transfers.get_request(request_id)
        if transfer is None:
            raise TransferNotFoundError(request_id)
        return transfer

    @staticmethod
    def require_transition(transfer: TransferRequest, to_status: TransferStatus) -> None:
        if not can_transition(transfer.status, to_status):
            raise InvalidTransitionError(
                transfer.status,
                to_status.value,
                f"Cannot move a {transfer.status} request to {to_status.value}",
            )

    def validate(self, transfer: TransferRequest, to_status: TransferStatus) -> ValidationResult:
        result = self.validator.validate(transfer, for_transition=to_status)
        if not result.ok:
            raise ValidationFailedError(result)
        return result

    def next_document_number(self, prefix: str) -> str:
        year = self.clock().year
        value = self.sequences.next_value(f"{prefix}-{year}")
        return f"{prefix}-{year}-{value:05d}"

    def find_line(self, transfer: TransferRequest, line_ref) -> TransferLine | None:
        if isinstance(line_ref, str) and line_ref.isdigit():
            line_ref = int(line_ref)
        return self.transfers.find_line(transfer, line_ref)

    def resolve_lines(
        self, transfer: TransferRequest, per_line: dict | None, result: ValidationResult
    ) -> dict:
        """Map caller line references (id or line number) onto line ids."""
        resolved = {}
        for line_ref, quantity in (per_line or {}).items():
            line = self.find_line(transfer, line_ref)
            if line is None:
                result.error(UNKNOWN_LINE, f"Line {line_ref} is not part of this request", field="lines")
                continue
            resolved[line.id] = quantity
        return resolved

    def _stale(self, request_id):
        metrics.increment_concurrency_conflict()
        return ConcurrencyConflictError(request_id)

    def run(self, request_id, step, *, expected_version: int | None = None) -> TransferRequestSnapshot:
        """Apply ``step(transfer)`` in one transaction.

        ``step`` returns the activity log row it wrote, or ``None`` when the
        change is not a status transition.
        """
        with unit_of_work(self.db, on_stale=lambda: self._stale(request_id)):
            transfer = self.load_for_update(request_id, expected_version)
            log_row = step(transfer)
            transfer.updated_at = self.clock()
            check_quantity_chain(transfer)
            self.db.flush()
        if log_row is not None:
            self.activity.publish(log_row, request_number=transfer.request_number)
        return to_snapshot(transfer)

    def set_status(
        self,
        transfer: TransferRequest,
        to_status: TransferStatus,
        *,
        actor_id: str,
        note: str | None = None,
        details: dict | None = None,
    ):
        from_status = transfer.status
        transfer.status = to_status.value
        return self.activity.record(
            transfer,
            actor_id=actor_id,
            from_status=from_status,
            to_status=to_status,
            note=note,
            details=details,
        )