from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from app.stockflow.domain.transfer import (
    LocationType,
    ReceiptIssueType,
    TransferPriority,
    TransferReason,
    TransferStatus,
)


_TRANSFER_CREATE_EXAMPLE = {
    "requesting_location_id": "STORE-12",
    "source_location_id": "WH-MAIN",
    "source_location_type": "warehouse",
    "priority": "normal",
    "reason": "replenishment",
    "notes": "Weekend restock",
    "lines": [
        {"product_id": "SKU-1001", "requested_quantity": 20, "unit_cost": "4.50"},
        {"product_id": "SKU-1002", "requested_quantity": 10, "unit_cost": "12.00"},
    ],
}


class TransferLineCreate(BaseModel):
    product_id: str = Field(min_length=1, max_length=64)
    requested_quantity: int
    unit_cost: Decimal = Decimal("0")
    notes: str | None = None


class TransferLineAddRequest(TransferLineCreate):
    expected_version: int | None = None


class TransferLineUpdateRequest(BaseModel):
    requested_quantity: int | None = None
    notes: str | None = None
    expected_version: int | None = None


class TransferCreateRequest(BaseModel):
    requesting_location_id: str | None = Field(default=None, max_length=64)
    source_location_id: str = Field(min_length=1, max_length=64)
    source_location_type: LocationType
    priority: TransferPriority = TransferPriority.NORMAL
    reason: TransferReason = TransferReason.REPLENISHMENT
    requested_delivery_date: datetime | None = None
    notes: str | None = None
    lines: list[TransferLineCreate] = []

    model_config = {"json_schema_extra": {"example": _TRANSFER_CREATE_EXAMPLE}}


class TransferUpdateRequest(BaseModel):
    requesting_location_id: str | None = Field(default=None, max_length=64)
    source_location_id: str | None = Field(default=None, max_length=64)
    source_location_type: LocationType | None = None
    priority: TransferPriority | None = None
    reason: TransferReason | None = None
    requested_delivery_date: datetime | None = None
    notes: str | None = None
    expected_version: int | None = None


class ReceiptIssueCreate(BaseModel):
    line: str
    issue_type: ReceiptIssueType
    quantity: int = Field(default=0, ge=0)
    description: str | None = None


class TransferActionRequest(BaseModel):
    action: Literal["submit", "approve", "reject", "ship", "receive", "cancel"]
    expected_version: int | None = None
    quantities: dict[str, int] | None = None
    notes: str | None = None
    reason: str | None = None
    expected_delivery_date: datetime | None = None
    carrier: str | None = None
    tracking_number: str | None = None
    package_count: int = 0
    issues: list[ReceiptIssueCreate] | None = None


class ValidationIssueResponse(BaseModel):
    code: str
    message: str
    line_no: int | None = None
    field: str | None = None


class TransferLineResponse(BaseModel):
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
    line_total: Decimal
    approval_notes: str | None
    notes: str | None

    model_config = {"from_attributes": True}


class TransferResponse(BaseModel):
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
    total_requested_quantity: int
    total_approved_quantity: int
    total_shipped_quantity: int
    total_received_quantity: int
    total_issue_quantity: int
    total_estimated_value: Decimal
    lines: list[TransferLineResponse]
    warnings: list[ValidationIssueResponse] = []

    model_config = {"from_attributes": True}


class TransferSummaryResponse(BaseModel):
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

    model_config = {"from_attributes": True}


class TransferListResponse(BaseModel):
    rows: list[TransferSummaryResponse]
    total: int
    limit: int
    offset: int


class ActivityLogEntryResponse(BaseModel):
    id: str
    sequence: int
    actor_id: str
    timestamp: datetime
    from_status: TransferStatus | None
    to_status: TransferStatus
    note: str | None
    details: dict | None

    model_config = {"from_attributes": True}


class TransferHistoryResponse(BaseModel):
    transfer_request_id: str
    rows: list[ActivityLogEntryResponse]


class ShipmentResponse(BaseModel):
    id: str
    transfer_request_id: str
    shipment_number: str
    shipped_by: str
    carrier: str | None
    tracking_number: str | None
    package_count: int
    notes: str | None
    shipped_at: datetime

    model_config = {"from_attributes": True}


class ReceiptIssueResponse(BaseModel):
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

    model_config = {"from_attributes": True}


class ReceiptLineResponse(BaseModel):
    transfer_line_id: str
    product_id: str
    received_quantity: int

    model_config = {"from_attributes": True}


class ReceiptResponse(BaseModel):
    id: str
    receipt_number: str
    received_by: str
    notes: str | None
    has_issues: bool
    is_complete: bool
    received_at: datetime
    lines: list[ReceiptLineResponse]
    issues: list[ReceiptIssueResponse]

    model_config = {"from_attributes": True}


class ReceiptListResponse(BaseModel):
    transfer_request_id: str
    rows: list[ReceiptResponse]


class ReceiptIssueListResponse(BaseModel):
    rows: list[ReceiptIssueResponse]


class ReceiptIssueResolveRequest(BaseModel):
    resolution_notes: str | None = None
