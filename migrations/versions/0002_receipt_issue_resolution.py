"""receipt issue resolution

Revision ID: 0002_receipt_issue_resolution
Revises: 0001_stockflow_initial
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_receipt_issue_resolution"
down_revision = "0001_stockflow_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("transfer_receipt_issues") as batch_op:
        batch_op.add_column(sa.Column("is_resolved", sa.Boolean(), nullable=False, server_default=sa.false()))
        batch_op.add_column(sa.Column("resolution_notes", sa.Text(), nullable=True))
        batch_op.add_column(sa.Column("resolved_at", sa.DateTime(), nullable=True))
        batch_op.add_column(sa.Column("resolved_by", sa.String(length=64), nullable=True))
        batch_op.create_index("ix_transfer_receipt_issues_is_resolved", ["is_resolved"])
        batch_op.alter_column("is_resolved", server_default=None)


def downgrade() -> None:
    with op.batch_alter_table("transfer_receipt_issues") as batch_op:
        batch_op.drop_index("ix_transfer_receipt_issues_is_resolved")
        batch_op.drop_column("resolved_by")
        batch_op.drop_column("resolved_at")
        batch_op.drop_column("resolution_notes")
        batch_op.drop_column("is_resolved")
