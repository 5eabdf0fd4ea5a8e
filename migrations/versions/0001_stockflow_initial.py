"""stockflow initial schema

Revision ID: 0001_stockflow_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_stockflow_initial"
down_revision = None
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def upgrade() -> None:
    op.create_table(
        "transfer_requests",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("request_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column("requesting_location_id", sa.String(length=64), nullable=False),
        sa.Column("source_location_id", sa.String(length=64), nullable=False),
        sa.Column("source_location_type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("reason", sa.String(length=32), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("requested_delivery_date", sa.DateTime(), nullable=True),
        sa.Column("expected_delivery_date", sa.DateTime(), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("submitted_by", sa.String(length=64), nullable=True),
        sa.Column("approved_by", sa.String(length=64), nullable=True),
        sa.Column("approval_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("shipped_by", sa.String(length=64), nullable=True),
        sa.Column("cancelled_by", sa.String(length=64), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("shipped_at", sa.DateTime(), nullable=True),
        sa.Column("received_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_transfer_requests_requesting_location_id", "transfer_requests", ["requesting_location_id"])
    op.create_index("ix_transfer_requests_source_location_id", "transfer_requests", ["source_location_id"])
    op.create_index("ix_transfer_requests_status", "transfer_requests", ["status"])
    op.create_index("ix_transfer_requests_created_at", "transfer_requests", ["created_at"])

    op.create_table(
        "transfer_lines",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("transfer_request_id", GUID(), sa.ForeignKey("transfer_requests.id"), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.String(length=64), nullable=False),
        sa.Column("unit_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("requested_quantity", sa.Integer(), nullable=False),
        sa.Column("approved_quantity", sa.Integer(), nullable=True),
        sa.Column("shipped_quantity", sa.Integer(), nullable=False),
        sa.Column("received_quantity", sa.Integer(), nullable=False),
        sa.Column("source_available_stock", sa.Integer(), nullable=False),
        sa.Column("approval_notes", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("transfer_request_id", "line_no", name="uq_transfer_lines_line_no"),
    )
    op.create_index("ix_transfer_lines_transfer_request_id", "transfer_lines", ["transfer_request_id"])

    op.create_table(
        "stock_levels",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("location_id", sa.String(length=64), nullable=False),
        sa.Column("product_id", sa.String(length=64), nullable=False),
        sa.Column("on_hand", sa.Integer(), nullable=False),
        sa.Column("reserved", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("location_id", "product_id", name="uq_stock_levels_location_product"),
        sa.CheckConstraint("on_hand >= 0", name="ck_stock_levels_on_hand_non_negative"),
        sa.CheckConstraint("reserved >= 0", name="ck_stock_levels_reserved_non_negative"),
    )

    op.create_table(
        "stock_reservations",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("location_id", sa.String(length=64), nullable=False),
        sa.Column("product_id", sa.String(length=64), nullable=False),
        sa.Column("transfer_request_id", GUID(), sa.ForeignKey("transfer_requests.id"), nullable=False),
        sa.Column("transfer_line_id", GUID(), sa.ForeignKey("transfer_lines.id"), nullable=False, unique=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_stock_reservations_transfer_request_id", "stock_reservations", ["transfer_request_id"])
    op.create_index(
        "ix_stock_reservations_location_product",
        "stock_reservations",
        ["location_id", "product_id"],
    )

    op.create_table(
        "transfer_shipments",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column(
            "transfer_request_id", GUID(), sa.ForeignKey("transfer_requests.id"), nullable=False, unique=True
        ),
        sa.Column("shipment_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column("shipped_by", sa.String(length=64), nullable=False),
        sa.Column("carrier", sa.String(length=255), nullable=True),
        sa.Column("tracking_number", sa.String(length=255), nullable=True),
        sa.Column("package_count", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("shipped_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "transfer_receipts",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("transfer_request_id", GUID(), sa.ForeignKey("transfer_requests.id"), nullable=False),
        sa.Column("receipt_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column("idempotency_token", sa.String(length=255), nullable=True),
        sa.Column("request_hash", sa.String(length=64), nullable=True),
        sa.Column("received_by", sa.String(length=64), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("has_issues", sa.Boolean(), nullable=False),
        sa.Column("is_complete", sa.Boolean(), nullable=False),
        sa.Column("received_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("transfer_request_id", "idempotency_token", name="uq_transfer_receipts_token"),
    )
    op.create_index("ix_transfer_receipts_transfer_request_id", "transfer_receipts", ["transfer_request_id"])

    op.create_table(
        "transfer_receipt_lines",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("receipt_id", GUID(), sa.ForeignKey("transfer_receipts.id"), nullable=False),
        sa.Column("transfer_line_id", GUID(), sa.ForeignKey("transfer_lines.id"), nullable=False),
        sa.Column("product_id", sa.String(length=64), nullable=False),
        sa.Column("received_quantity", sa.Integer(), nullable=False),
    )
    op.create_index("ix_transfer_receipt_lines_receipt_id", "transfer_receipt_lines", ["receipt_id"])

    op.create_table(
        "transfer_receipt_issues",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("receipt_id", GUID(), sa.ForeignKey("transfer_receipts.id"), nullable=False),
        sa.Column("transfer_line_id", GUID(), sa.ForeignKey("transfer_lines.id"), nullable=False),
        sa.Column("issue_type", sa.String(length=32), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
    )
    op.create_index("ix_transfer_receipt_issues_receipt_id", "transfer_receipt_issues", ["receipt_id"])

    op.create_table(
        "transfer_activity_log",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("transfer_request_id", GUID(), sa.ForeignKey("transfer_requests.id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("from_status", sa.String(length=32), nullable=True),
        sa.Column("to_status", sa.String(length=32), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("transfer_request_id", "sequence", name="uq_transfer_activity_log_sequence"),
    )
    op.create_index(
        "ix_transfer_activity_log_transfer_request_id", "transfer_activity_log", ["transfer_request_id"]
    )

    op.create_table(
        "document_sequences",
        sa.Column("name", sa.String(length=32), primary_key=True),
        sa.Column("last_value", sa.Integer(), nullable=False),
    )

    op.create_table(
        "idempotency_records",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("endpoint", sa.String(length=255), nullable=False),
        sa.Column("method", sa.String(length=10), nullable=False),
        sa.Column("idempotency_key", sa.String(length=255), nullable=False),
        sa.Column("request_hash", sa.String(length=64), nullable=False),
        sa.Column("state", sa.String(length=20), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("response_body", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("actor_id", "endpoint", "method", "idempotency_key", name="uq_idempotency"),
    )
    op.create_index("ix_idempotency_records_actor_id", "idempotency_records", ["actor_id"])


def downgrade() -> None:
    op.drop_index("ix_idempotency_records_actor_id", table_name="idempotency_records")
    op.drop_table("idempotency_records")
    op.drop_table("document_sequences")
    op.drop_index("ix_transfer_activity_log_transfer_request_id", table_name="transfer_activity_log")
    op.drop_table("transfer_activity_log")
    op.drop_index("ix_transfer_receipt_issues_receipt_id", table_name="transfer_receipt_issues")
    op.drop_table("transfer_receipt_issues")
    op.drop_index("ix_transfer_receipt_lines_receipt_id", table_name="transfer_receipt_lines")
    op.drop_table("transfer_receipt_lines")
    op.drop_index("ix_transfer_receipts_transfer_request_id", table_name="transfer_receipts")
    op.drop_table("transfer_receipts")
    op.drop_table("transfer_shipments")
    op.drop_index("ix_stock_reservations_location_product", table_name="stock_reservations")
    op.drop_index("ix_stock_reservations_transfer_request_id", table_name="stock_reservations")
    op.drop_table("stock_reservations")
    op.drop_table("stock_levels")
    op.drop_index("ix_transfer_lines_transfer_request_id", table_name="transfer_lines")
    op.drop_table("transfer_lines")
    op.drop_index("ix_transfer_requests_created_at", table_name="transfer_requests")
    op.drop_index("ix_transfer_requests_status", table_name="transfer_requests")
    op.drop_index("ix_transfer_requests_source_location_id", table_name="transfer_requests")
    op.drop_index("ix_transfer_requests_requesting_location_id", table_name="transfer_requests")
    op.drop_table("transfer_requests")
