import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator, CHAR


class GUID(TypeDecorator):
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


class Base(DeclarativeBase):
    pass


class TransferRequest(Base):
    __tablename__ = "transfer_requests"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    request_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    requesting_location_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    source_location_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    source_location_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(32), index=True, nullable=False, default="DRAFT")
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="normal")
    reason: Mapped[str] = mapped_column(String(32), nullable=False, default="replenishment")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    requested_delivery_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expected_delivery_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    submitted_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    shipped_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    shipped_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    received_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    lines = relationship(
        "TransferLine",
        back_populates="transfer_request",
        order_by="TransferLine.line_no",
        cascade="all, delete-orphan",
    )
    shipment = relationship("TransferShipment", back_populates="transfer_request", uselist=False)

    __mapper_args__ = {"version_id_col": version}


class TransferLine(Base):
    __tablename__ = "transfer_lines"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    transfer_request_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("transfer_requests.id"), index=True, nullable=False
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    requested_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    approved_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    shipped_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    received_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    source_available_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    transfer_request = relationship("TransferRequest", back_populates="lines")

    __table_args__ = (
        UniqueConstraint("transfer_request_id", "line_no", name="uq_transfer_lines_line_no"),
    )

    @property
    def issue_quantity(self) -> int:
        return max((self.shipped_quantity or 0) - (self.received_quantity or 0), 0)


class StockLevel(Base):
    __tablename__ = "stock_levels"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    location_id: Mapped[str] = mapped_column(String(64), nullable=False)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    on_hand: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("location_id", "product_id", name="uq_stock_levels_location_product"),
        CheckConstraint("on_hand >= 0", name="ck_stock_levels_on_hand_non_negative"),
        CheckConstraint("reserved >= 0", name="ck_stock_levels_reserved_non_negative"),
    )


class StockReservation(Base):
    __tablename__ = "stock_reservations"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    location_id: Mapped[str] = mapped_column(String(64), nullable=False)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    transfer_request_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("transfer_requests.id"), index=True, nullable=False
    )
    transfer_line_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("transfer_lines.id"), unique=True, nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class TransferShipment(Base):
    __tablename__ = "transfer_shipments"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    transfer_request_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("transfer_requests.id"), unique=True, nullable=False
    )
    shipment_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    shipped_by: Mapped[str] = mapped_column(String(64), nullable=False)
    carrier: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(255), nullable=True)
    package_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    shipped_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    transfer_request = relationship("TransferRequest", back_populates="shipment")


class TransferReceipt(Base):
    __tablename__ = "transfer_receipts"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    transfer_request_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("transfer_requests.id"), index=True, nullable=False
    )
    receipt_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    idempotency_token: Mapped[str | None] = mapped_column(String(255), nullable=True)
    request_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    received_by: Mapped[str] = mapped_column(String(64), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    has_issues: Mapped[bool] = mapped_column(default=False, nullable=False)
    is_complete: Mapped[bool] = mapped_column(default=False, nullable=False)
    received_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    lines = relationship("TransferReceiptLine", cascade="all, delete-orphan")
    issues = relationship("TransferReceiptIssue", back_populates="receipt", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("transfer_request_id", "idempotency_token", name="uq_transfer_receipts_token"),
    )


class TransferReceiptLine(Base):
    __tablename__ = "transfer_receipt_lines"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    receipt_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("transfer_receipts.id"), index=True, nullable=False
    )
    transfer_line_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("transfer_lines.id"), nullable=False)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    received_quantity: Mapped[int] = mapped_column(Integer, nullable=False)


class TransferReceiptIssue(Base):
    __tablename__ = "transfer_receipt_issues"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    receipt_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("transfer_receipts.id"), index=True, nullable=False
    )
    transfer_line_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("transfer_lines.id"), nullable=False)
    issue_type: Mapped[str] = mapped_column(String(32), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_resolved: Mapped[bool] = mapped_column(default=False, nullable=False, index=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    receipt = relationship("TransferReceipt", back_populates="issues")
    transfer_line = relationship("TransferLine")


class TransferActivityLog(Base):
    __tablename__ = "transfer_activity_log"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    transfer_request_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("transfer_requests.id"), index=True, nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    to_status: Mapped[str] = mapped_column(String(32), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("transfer_request_id", "sequence", name="uq_transfer_activity_log_sequence"),
    )


class DocumentSequence(Base):
    __tablename__ = "document_sequences"

    name: Mapped[str] = mapped_column(String(32), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class IdempotencyRecord(Base):
    __tablename__ = "idempotency_records"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    actor_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    endpoint: Mapped[str] = mapped_column(String(255), nullable=False)
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False)
    request_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    state: Mapped[str] = mapped_column(String(20), nullable=False, default="in_progress")
    status_code: Mapped[int | None] = mapped_column(nullable=True)
    response_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("actor_id", "endpoint", "method", "idempotency_key", name="uq_idempotency"),
    )


Index("ix_transfer_requests_created_at", TransferRequest.created_at)
Index("ix_stock_reservations_location_product", StockReservation.location_id, StockReservation.product_id)
