from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class TransferStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    PARTIALLY_APPROVED = "PARTIALLY_APPROVED"
    REJECTED = "REJECTED"
    IN_TRANSIT = "IN_TRANSIT"
    PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"


class LocationType(str, Enum):
    STORE = "store"
    WAREHOUSE = "warehouse"
    HEADQUARTERS = "headquarters"


class TransferPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class TransferReason(str, Enum):
    REPLENISHMENT = "replenishment"
    EMERGENCY = "emergency"
    SEASONAL = "seasonal"
    PROMOTION = "promotion"
    REBALANCING = "rebalancing"
    RECALL = "recall"
    DAMAGED_RETURN = "damaged_return"
    SLOW_MOVING = "slow_moving"
    OTHER = "other"


class ReceiptIssueType(str, Enum):
    DAMAGED = "damaged"
    MISSING = "missing"
    WRONG_ITEM = "wrong_item"
    QUANTITY_MISMATCH = "quantity_mismatch"
    EXPIRED = "expired"
    OTHER = "other"


class ReservationStatus(str, Enum):
    ACTIVE = "active"
    FULFILLED = "fulfilled"
    RELEASED = "released"


TERMINAL_STATUSES = frozenset(
    {TransferStatus.REJECTED, TransferStatus.RECEIVED, TransferStatus.CANCELLED}
)

CANCELLABLE_STATUSES = frozenset(
    {
        TransferStatus.DRAFT,
        TransferStatus.SUBMITTED,
        TransferStatus.APPROVED,
        TransferStatus.PARTIALLY_APPROVED,
        TransferStatus.IN_TRANSIT,
        TransferStatus.PARTIALLY_RECEIVED,
    }
)

# Goods may already be moving; cancelling from here needs a reason.
GOODS_IN_MOTION_STATUSES = frozenset({TransferStatus.IN_TRANSIT, TransferStatus.PARTIALLY_RECEIVED})

ALLOWED_TRANSITIONS: dict[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.DRAFT: frozenset({TransferStatus.SUBMITTED, TransferStatus.CANCELLED}),
    TransferStatus.SUBMITTED: frozenset(
        {
            TransferStatus.APPROVED,
            TransferStatus.PARTIALLY_APPROVED,
            TransferStatus.REJECTED,
            TransferStatus.CANCELLED,
        }
    ),
    TransferStatus.APPROVED: frozenset({TransferStatus.IN_TRANSIT, TransferStatus.CANCELLED}),
    TransferStatus.PARTIALLY_APPROVED: frozenset({TransferStatus.IN_TRANSIT, TransferStatus.CANCELLED}),
    TransferStatus.IN_TRANSIT: frozenset(
        {TransferStatus.PARTIALLY_RECEIVED, TransferStatus.RECEIVED, TransferStatus.CANCELLED}
    ),
    TransferStatus.PARTIALLY_RECEIVED: frozenset(
        {TransferStatus.PARTIALLY_RECEIVED, TransferStatus.RECEIVED, TransferStatus.CANCELLED}
    ),
    TransferStatus.REJECTED: frozenset(),
    TransferStatus.RECEIVED: frozenset(),
    TransferStatus.CANCELLED: frozenset(),
}


def can_transition(from_status: TransferStatus | str, to_status: TransferStatus | str) -> bool:
    return TransferStatus(to_status) in ALLOWED_TRANSITIONS[TransferStatus(from_status)]


@dataclass(frozen=True)
class TransferLineSnapshot:
    id: str
    line_no: int
    product_id: str
    unit_cost: Decimal
    requested_quantity: int
    approved_quantity: int | None
    shipped_quantity: int
    received_quantity: int
    issue_quantity: int
    source_available_stock: int
    approval_notes: str | None
    notes: str | None

    @property
    def line_total(self) -> Decimal:
        return self.unit_cost * self.requested_quantity


@dataclass(frozen=True)
class TransferRequestSnapshot:
    id: str
    request_number: str
    requesting_location_id: str
    source_location_id: str
    source_location_type: LocationType
    status: TransferStatus
    priority: TransferPriority
    reason: TransferReason
    version: int
    notes: str | None
    requested_delivery_date: datetime | None
    expected_delivery_date: datetime | None
    created_at: datetime
    created_by: str
    submitted_at: datetime | None
    submitted_by: str | None
    approved_at: datetime | None
    approved_by: str | None
    approval_notes: str | None
    rejection_reason: str | None
    shipped_at: datetime | None
    shipped_by: str | None
    received_at: datetime | None
    cancelled_at: datetime | None
    cancelled_by: str | None
    cancellation_reason: str | None
    updated_at: datetime | None
    lines: tuple[TransferLineSnapshot, ...] = field(default_factory=tuple)

    @property
    def total_requested_quantity(self) -> int:
        return sum(line.requested_quantity for line in self.lines)

    @property
    def total_approved_quantity(self) -> int:
        return sum(line.approved_quantity or 0 for line in self.lines)

    @property
    def total_shipped_quantity(self) -> int:
        return sum(line.shipped_quantity for line in self.lines)

    @property
    def total_received_quantity(self) -> int:
        return sum(line.received_quantity for line in self.lines)

    @property
    def total_issue_quantity(self) -> int:
        return sum(line.issue_quantity for line in self.lines)

    @property
    def total_estimated_value(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))


@dataclass(frozen=True)
class TransferSummary:
    id: str
    request_number: str
    requesting_location_id: str
    source_location_id: str
    status: TransferStatus
    priority: TransferPriority
    reason: TransferReason
    line_count: int
    total_requested_quantity: int
    total_approved_quantity: int
    total_estimated_value: Decimal
    created_at: datetime
    submitted_at: datetime | None
    expected_delivery_date: datetime | None


@dataclass(frozen=True)
class ActivityLogEntry:
    id: str
    transfer_request_id: str
    sequence: int
    actor_id: str
    timestamp: datetime
    from_status: TransferStatus | None
    to_status: TransferStatus
    note: str | None
    details: dict | None = None


@dataclass(frozen=True)
class ShipmentSnapshot:
    id: str
    transfer_request_id: str
    shipment_number: str
    shipped_by: str
    carrier: str | None
    tracking_number: str | None
    package_count: int
    notes: str | None
    shipped_at: datetime


@dataclass(frozen=True)
class ReceiptIssueSnapshot:
    id: str
    receipt_id: str
    receipt_number: str
    transfer_request_id: str
    line_no: int
    product_id: str
    issue_type: ReceiptIssueType
    quantity: int
    description: str | None
    is_resolved: bool
    resolution_notes: str | None
    resolved_at: datetime | None
    resolved_by: str | None


@dataclass(frozen=True)
class ReceiptLineSnapshot:
    transfer_line_id: str
    product_id: str
    received_quantity: int


@dataclass(frozen=True)
class ReceiptSnapshot:
    id: str
    transfer_request_id: str
    receipt_number: str
    received_by: str
    notes: str | None
    has_issues: bool
    is_complete: bool
    received_at: datetime
    lines: tuple[ReceiptLineSnapshot, ...] = field(default_factory=tuple)
    issues: tuple[ReceiptIssueSnapshot, ...] = field(default_factory=tuple)
