from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete

from app.stockflow.core.config import settings
from app.stockflow.core.error_catalog import (
    InvalidTransitionError,
    ReceiptIssueAlreadyResolvedError,
    ReceiptIssueNotFoundError,
    ShipmentNotFoundError,
    TransferNotFoundError,
    ValidationFailedError,
)
from app.stockflow.core.logging import log_json
from app.stockflow.db.models import TransferActivityLog, TransferLine, TransferRequest
from app.stockflow.db.session import unit_of_work
from app.stockflow.domain.transfer import (
    ActivityLogEntry,
    LocationType,
    ReceiptIssueSnapshot,
    ReceiptSnapshot,
    ShipmentSnapshot,
    TransferPriority,
    TransferReason,
    TransferRequestSnapshot,
    TransferStatus,
    TransferSummary,
)
from app.stockflow.repos.transfers import TransferQueryFilters
from app.stockflow.services.approval import ApprovalEngine
from app.stockflow.services.cancellation import CancellationGuard
from app.stockflow.services.receiving import ReceiptIssueInput, ReceivingReconciler
from app.stockflow.services.shipment import ShipmentTracker
from app.stockflow.services.validator import UNKNOWN_LINE, VALUE_REQUIRED, ValidationResult
from app.stockflow.services.workflow import (
    WorkflowStep,
    issue_snapshot,
    receipt_snapshot,
    shipment_snapshot,
    to_snapshot,
    to_summary,
)

logger = logging.getLogger(__name__)

DRAFT_FIELDS = (
    "requesting_location_id",
    "source_location_id",
    "source_location_type",
    "priority",
    "reason",
    "requested_delivery_date",
    "notes",
)

REQUIRED_DRAFT_FIELDS = (
    "requesting_location_id",
    "source_location_id",
    "source_location_type",
    "priority",
    "reason",
)


@dataclass(frozen=True)
class NewTransferLine:
    product_id: str
    requested_quantity: int
    unit_cost: Decimal = Decimal("0")
    notes: str | None = None


@dataclass(frozen=True)
class SubmitOutcome:
    request: TransferRequestSnapshot
    validation: ValidationResult


@dataclass(frozen=True)
class TransferQuery:
    status: TransferStatus | str | None = None
    statuses: tuple[TransferStatus | str, ...] = ()
    location_id: str | None = None
    requesting_location_id: str | None = None
    source_location_id: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    search_term: str | None = None
    limit: int = 50
    offset: int = 0


class TransferService(WorkflowStep):
    def __init__(self, db, **collaborators):
        super().__init__(db, **collaborators)
        shared = {
            "inventory": self.inventory,
            "activity": self.activity,
            "validator": self.validator,
            "clock": self.clock,
        }
        self.approval = ApprovalEngine(db, **shared)
        self.shipments = ShipmentTracker(db, **shared)
        self.receiving = ReceivingReconciler(db, **shared)
        self.cancellation = CancellationGuard(db, **shared)

    # Draft stage

    def create_draft(
        self,
        requesting_location_id: str,
        source_location_id: str,
        source_location_type: LocationType | str,
        lines: list[NewTransferLine],
        actor_id: str,
        *,
        priority: TransferPriority | str = TransferPriority.NORMAL,
        reason: TransferReason | str = TransferReason.REPLENISHMENT,
        requested_delivery_date: datetime | None = None,
        notes: str | None = None,
    ) -> TransferRequestSnapshot:
        now = self.clock()
        transfer = TransferRequest(
            requesting_location_id=requesting_location_id,
            source_location_id=source_location_id,
            source_location_type=LocationType(source_location_type).value,
            status=TransferStatus.DRAFT.value,
            priority=TransferPriority(priority).value,
            reason=TransferReason(reason).value,
            requested_delivery_date=requested_delivery_date,
            notes=notes,
            created_by=actor_id,
            created_at=now,
        )
        for line_no, line in enumerate(lines, start=1):
            transfer.lines.append(self._build_line(source_location_id, line_no, line, now))
        self.validate(transfer, TransferStatus.DRAFT)

        with unit_of_work(self.db):
            transfer.request_number = self.next_document_number(settings.REQUEST_NUMBER_PREFIX)
            self.db.add(transfer)
            self.db.flush()
            log_row = self.activity.record(
                transfer,
                actor_id=actor_id,
                from_status=None,
                to_status=TransferStatus.DRAFT,
                note=notes,
                details={"line_count": len(transfer.lines)},
            )
        self.activity.publish(log_row, request_number=transfer.request_number)
        return to_snapshot(transfer)

    def update_draft(
        self,
        request_id,
        actor_id: str,
        changes: dict,
        *,
        expected_version: int | None = None,
    ) -> TransferRequestSnapshot:
        converters = {
            "source_location_type": lambda value: LocationType(value).value,
            "priority": lambda value: TransferPriority(value).value,
            "reason": lambda value: TransferReason(value).value,
        }
        applied = {key: value for key, value in changes.items() if key in DRAFT_FIELDS}
        result = ValidationResult()
        for key in REQUIRED_DRAFT_FIELDS:
            if key in applied and applied[key] in (None, ""):
                result.error(VALUE_REQUIRED, f"{key} cannot be cleared", field=key)
        if not result.ok:
            raise ValidationFailedError(result)

        def mutate(transfer):
            for key, value in applied.items():
                if key in converters and value is not None:
                    value = converters[key](value)
                setattr(transfer, key, value)

        return self._edit_draft(
            request_id, actor_id, mutate, "transfer_draft_updated", expected_version, fields=sorted(applied)
        )

    def add_line(
        self,
        request_id,
        line: NewTransferLine,
        actor_id: str,
        *,
        expected_version: int | None = None,
    ) -> TransferRequestSnapshot:
        def mutate(transfer):
            line_no = self.transfers.next_line_no(transfer)
            transfer.lines.append(self._build_line(transfer.source_location_id, line_no, line, self.clock()))

        return self._edit_draft(
            request_id, actor_id, mutate, "transfer_line_added", expected_version, product_id=line.product_id
        )

    def update_line(
        self,
        request_id,
        line_ref,
        actor_id: str,
        *,
        requested_quantity: int | None = None,
        notes: str | None = None,
        expected_version: int | None = None,
    ) -> TransferRequestSnapshot:
        def mutate(transfer):
            line = self._require_line(transfer, line_ref)
            if requested_quantity is not None:
                line.requested_quantity = requested_quantity
            if notes is not None:
                line.notes = notes

        return self._edit_draft(
            request_id, actor_id, mutate, "transfer_line_updated", expected_version, line=str(line_ref)
        )

    def remove_line(
        self,
        request_id,
        line_ref,
        actor_id: str,
        *,
        expected_version: int | None = None,
    ) -> TransferRequestSnapshot:
        def mutate(transfer):
            transfer.lines.remove(self._require_line(transfer, line_ref))

        return self._edit_draft(
            request_id, actor_id, mutate, "transfer_line_removed", expected_version, line=str(line_ref)
        )

    def delete_draft(self, request_id, actor_id: str, *, expected_version: int | None = None) -> None:
        with unit_of_work(self.db, on_stale=lambda: self._stale(request_id)):
            transfer = self.load_for_update(request_id, expected_version)
            self._require_draft(transfer)
            request_number = transfer.request_number
            self.db.execute(
                delete(TransferActivityLog).where(TransferActivityLog.transfer_request_id == transfer.id)
            )
            self.db.delete(transfer)
        log_json(
            logger,
            {"event": "transfer_draft_deleted", "request_number": request_number, "actor_id": actor_id},
        )

    def submit(self, request_id, actor_id: str, *, expected_version: int | None = None) -> SubmitOutcome:
        outcome = {}

        def step(transfer):
            self.require_transition(transfer, TransferStatus.SUBMITTED)
            result = self.validate(transfer, TransferStatus.SUBMITTED)
            outcome["validation"] = result
            transfer.submitted_at = self.clock()
            transfer.submitted_by = actor_id
            details = {"warnings": [issue.as_dict() for issue in result.warnings]} if result.warnings else None
            return self.set_status(transfer, TransferStatus.SUBMITTED, actor_id=actor_id, details=details)

        snapshot = self.run(request_id, step, expected_version=expected_version)
        return SubmitOutcome(request=snapshot, validation=outcome["validation"])

    # Transitions after submission

    def approve(
        self,
        request_id,
        per_line_quantities: dict | None,
        actor_id: str,
        notes: str | None = None,
        *,
        expected_version: int | None = None,
        expected_delivery_date: datetime | None = None,
    ) -> TransferRequestSnapshot:
        return self.approval.approve(
            request_id,
            per_line_quantities,
            actor_id,
            notes,
            expected_version=expected_version,
            expected_delivery_date=expected_delivery_date,
        )

    def reject(
        self, request_id, actor_id: str, reason: str | None, *, expected_version: int | None = None
    ) -> TransferRequestSnapshot:
        return self.approval.reject(request_id, actor_id, reason, expected_version=expected_version)

    def ship(
        self,
        request_id,
        per_line_quantities: dict | None,
        actor_id: str,
        *,
        expected_version: int | None = None,
        carrier: str | None = None,
        tracking_number: str | None = None,
        package_count: int = 0,
        notes: str | None = None,
    ) -> TransferRequestSnapshot:
        return self.shipments.ship(
            request_id,
            per_line_quantities,
            actor_id,
            expected_version=expected_version,
            carrier=carrier,
            tracking_number=tracking_number,
            package_count=package_count,
            notes=notes,
        )

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
    ) -> TransferRequestSnapshot:
        return self.receiving.receive(
            request_id,
            per_line_quantities,
            actor_id,
            notes,
            idempotency_token=idempotency_token,
            issues=issues,
            expected_version=expected_version,
        )

    def cancel(
        self, request_id, actor_id: str, reason: str | None = None, *, expected_version: int | None = None
    ) -> TransferRequestSnapshot:
        return self.cancellation.cancel(request_id, actor_id, reason, expected_version=expected_version)

    # Reads

    def get(self, request_id) -> TransferRequestSnapshot:
        return to_snapshot(self.load(request_id))

    def history(self, request_id) -> list[ActivityLogEntry]:
        transfer = self.load(request_id)
        return self.activity.history(transfer.id)

    def get_shipment(self, request_id) -> ShipmentSnapshot:
        transfer = self.load(request_id)
        shipment = self.transfers.get_shipment(transfer.id)
        if shipment is None:
            raise ShipmentNotFoundError(request_id)
        return shipment_snapshot(shipment)

    def list_receipts(self, request_id) -> list[ReceiptSnapshot]:
        transfer = self.load(request_id)
        return [receipt_snapshot(receipt) for receipt in self.transfers.list_receipts(transfer.id)]

    def list_issues(self, request_id, *, unresolved_only: bool = False) -> list[ReceiptIssueSnapshot]:
        transfer = self.load(request_id)
        return [
            issue_snapshot(issue)
            for issue in self.transfers.list_issues(transfer.id, unresolved_only=unresolved_only)
        ]

    def list_unresolved_issues(self, location_id: str | None = None) -> list[ReceiptIssueSnapshot]:
        return [issue_snapshot(issue) for issue in self.transfers.list_unresolved_issues(location_id)]

    # Issue resolution

    def resolve_issue(
        self, request_id, issue_id, actor_id: str, resolution_notes: str | None = None
    ) -> ReceiptIssueSnapshot:
        with unit_of_work(self.db, on_stale=lambda: self._stale(request_id)):
            transfer = self.transfers.get_request_for_update(request_id)
            if transfer is None:
                raise TransferNotFoundError(request_id)
            issue = self.transfers.get_issue_for_update(transfer.id, issue_id)
            if issue is None:
                raise ReceiptIssueNotFoundError(request_id, issue_id)
            if issue.is_resolved:
                raise ReceiptIssueAlreadyResolvedError(issue_id, issue.resolved_by)
            issue.is_resolved = True
            issue.resolution_notes = resolution_notes
            issue.resolved_at = self.clock()
            issue.resolved_by = actor_id
            # Status is unchanged; the entry only records the resolution in history.
            self.activity.record(
                transfer,
                actor_id=actor_id,
                from_status=transfer.status,
                to_status=transfer.status,
                note=resolution_notes,
                details={
                    "issue_resolved": {
                        "issue_id": str(issue.id),
                        "receipt_number": issue.receipt.receipt_number,
                        "line_no": issue.transfer_line.line_no,
                        "issue_type": issue.issue_type,
                        "quantity": issue.quantity,
                    }
                },
            )
            self.db.flush()
        log_json(
            logger,
            {
                "event": "receipt_issue_resolved",
                "transfer_request_id": str(transfer.id),
                "request_number": transfer.request_number,
                "issue_id": str(issue.id),
                "actor_id": actor_id,
            },
        )
        return issue_snapshot(issue)

    def query(self, query: TransferQuery) -> list[TransferSummary]:
        return [to_summary(transfer) for transfer in self.transfers.list_requests(self.build_filters(query))]

    def count(self, query: TransferQuery) -> int:
        return self.transfers.count_requests(self.build_filters(query))

    @staticmethod
    def build_filters(query: TransferQuery) -> TransferQueryFilters:
        limit = max(1, min(query.limit or settings.QUERY_DEFAULT_PAGE_SIZE, settings.QUERY_MAX_PAGE_SIZE))
        return TransferQueryFilters(
            status=TransferStatus(query.status).value if query.status else None,
            statuses=tuple(TransferStatus(status).value for status in query.statuses),
            location_id=query.location_id,
            requesting_location_id=query.requesting_location_id,
            source_location_id=query.source_location_id,
            date_from=query.date_from,
            date_to=query.date_to,
            search_term=query.search_term.strip() if query.search_term else None,
            limit=limit,
            offset=max(query.offset, 0),
        )

    # Helpers

    def _build_line(self, source_location_id: str, line_no: int, line: NewTransferLine, now) -> TransferLine:
        return TransferLine(
            line_no=line_no,
            product_id=line.product_id,
            unit_cost=Decimal(line.unit_cost if line.unit_cost is not None else 0),
            requested_quantity=line.requested_quantity,
            shipped_quantity=0,
            received_quantity=0,
            source_available_stock=self.inventory.get_available_stock(source_location_id, line.product_id),
            notes=line.notes,
            created_at=now,
        )

    def _require_line(self, transfer: TransferRequest, line_ref) -> TransferLine:
        line = self.find_line(transfer, line_ref)
        if line is None:
            result = ValidationResult()
            result.error(UNKNOWN_LINE, f"Line {line_ref} is not part of this request", field="lines")
            raise ValidationFailedError(result)
        return line

    @staticmethod
    def _require_draft(transfer: TransferRequest) -> None:
        if transfer.status != TransferStatus.DRAFT.value:
            raise InvalidTransitionError(
                transfer.status, TransferStatus.DRAFT.value, "Only draft requests can be edited"
            )

    def _edit_draft(self, request_id, actor_id: str, mutate, event: str, expected_version, **log_fields):
        def step(transfer):
            self._require_draft(transfer)
            mutate(transfer)
            self.validate(transfer, TransferStatus.DRAFT)
            return None

        snapshot = self.run(request_id, step, expected_version=expected_version)
        log_json(
            logger,
            {
                "event": event,
                "transfer_request_id": snapshot.id,
                "request_number": snapshot.request_number,
                "actor_id": actor_id,
                "version": snapshot.version,
                **log_fields,
            },
        )
        return snapshot
