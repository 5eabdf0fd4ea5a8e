from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from app.stockflow.db.models import (
    TransferLine,
    TransferReceipt,
    TransferReceiptIssue,
    TransferRequest,
    TransferShipment,
)


def parse_uuid(value) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class TransferQueryFilters:
    status: str | None = None
    statuses: tuple[str, ...] = ()
    location_id: str | None = None
    requesting_location_id: str | None = None
    source_location_id: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    search_term: str | None = None
    limit: int = 50
    offset: int = 0


class TransferRepository:
    def __init__(self, db):
        self.db = db

    def get_request(self, request_id) -> TransferRequest | None:
        parsed = parse_uuid(request_id)
        if parsed is None:
            return None
        return (
            self.db.execute(
                select(TransferRequest)
                .options(selectinload(TransferRequest.lines))
                .where(TransferRequest.id == parsed)
            )
            .scalars()
            .first()
        )

    def get_request_for_update(self, request_id) -> TransferRequest | None:
        parsed = parse_uuid(request_id)
        if parsed is None:
            return None
        return (
            self.db.execute(
                select(TransferRequest)
                .options(selectinload(TransferRequest.lines))
                .where(TransferRequest.id == parsed)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            .scalars()
            .first()
        )

    def list_requests(self, filters: TransferQueryFilters) -> list[TransferRequest]:
        query = self._apply_filters(select(TransferRequest).options(selectinload(TransferRequest.lines)), filters)
        query = query.order_by(TransferRequest.created_at.desc(), TransferRequest.request_number.desc())
        query = query.offset(filters.offset).limit(filters.limit)
        return self.db.execute(query).scalars().all()

    def count_requests(self, filters: TransferQueryFilters) -> int:
        query = self._apply_filters(select(TransferRequest.id), filters)
        return self.db.execute(select(func.count()).select_from(query.subquery())).scalar_one()

    @staticmethod
    def _apply_filters(query, filters: TransferQueryFilters):
        statuses = set(filters.statuses)
        if filters.status:
            statuses.add(filters.status)
        if statuses:
            query = query.where(TransferRequest.status.in_(sorted(statuses)))
        if filters.location_id:
            query = query.where(
                or_(
                    TransferRequest.requesting_location_id == filters.location_id,
                    TransferRequest.source_location_id == filters.location_id,
                )
            )
        if filters.requesting_location_id:
            query = query.where(TransferRequest.requesting_location_id == filters.requesting_location_id)
        if filters.source_location_id:
            query = query.where(TransferRequest.source_location_id == filters.source_location_id)
        if filters.date_from:
            query = query.where(TransferRequest.created_at >= filters.date_from)
        if filters.date_to:
            query = query.where(TransferRequest.created_at <= filters.date_to)
        if filters.search_term:
            like = f"%{filters.search_term}%"
            query = query.where(
                or_(
                    TransferRequest.request_number.ilike(like),
                    TransferRequest.notes.ilike(like),
                )
            )
        return query

    @staticmethod
    def find_line(transfer: TransferRequest, line_ref) -> TransferLine | None:
        """Resolve a line by id or by 1-based line number."""
        if isinstance(line_ref, int) and not isinstance(line_ref, bool):
            return next((line for line in transfer.lines if line.line_no == line_ref), None)
        parsed = parse_uuid(line_ref)
        if parsed is None:
            return None
        return next((line for line in transfer.lines if line.id == parsed), None)

    @staticmethod
    def next_line_no(transfer: TransferRequest) -> int:
        return max((line.line_no for line in transfer.lines), default=0) + 1

    def get_shipment(self, transfer_id) -> TransferShipment | None:
        return (
            self.db.execute(select(TransferShipment).where(TransferShipment.transfer_request_id == transfer_id))
            .scalars()
            .first()
        )

    def add_shipment(self, shipment: TransferShipment) -> TransferShipment:
        self.db.add(shipment)
        self.db.flush()
        return shipment

    def get_receipt_by_token(self, transfer_id, token: str) -> TransferReceipt | None:
        return (
            self.db.execute(
                select(TransferReceipt).where(
                    TransferReceipt.transfer_request_id == transfer_id,
                    TransferReceipt.idempotency_token == token,
                )
            )
            .scalars()
            .first()
        )

    def list_receipts(self, transfer_id) -> list[TransferReceipt]:
        return (
            self.db.execute(
                select(TransferReceipt)
                .options(selectinload(TransferReceipt.lines), selectinload(TransferReceipt.issues))
                .where(TransferReceipt.transfer_request_id == transfer_id)
                .order_by(TransferReceipt.received_at.asc(), TransferReceipt.receipt_number.asc())
            )
            .scalars()
            .all()
        )

    def add_receipt(self, receipt: TransferReceipt) -> TransferReceipt:
        self.db.add(receipt)
        self.db.flush()
        return receipt

    def list_issues(self, transfer_id, *, unresolved_only: bool = False) -> list[TransferReceiptIssue]:
        query = (
            select(TransferReceiptIssue)
            .join(TransferReceipt, TransferReceipt.id == TransferReceiptIssue.receipt_id)
            .options(selectinload(TransferReceiptIssue.receipt), selectinload(TransferReceiptIssue.transfer_line))
            .where(TransferReceipt.transfer_request_id == transfer_id)
        )
        if unresolved_only:
            query = query.where(TransferReceiptIssue.is_resolved.is_(False))
        query = query.order_by(TransferReceipt.received_at.asc(), TransferReceipt.receipt_number.asc())
        return self.db.execute(query).scalars().all()

    def list_unresolved_issues(self, location_id: str | None = None) -> list[TransferReceiptIssue]:
        query = (
            select(TransferReceiptIssue)
            .join(TransferReceipt, TransferReceipt.id == TransferReceiptIssue.receipt_id)
            .join(TransferRequest, TransferRequest.id == TransferReceipt.transfer_request_id)
            .options(selectinload(TransferReceiptIssue.receipt), selectinload(TransferReceiptIssue.transfer_line))
            .where(TransferReceiptIssue.is_resolved.is_(False))
        )
        if location_id:
            query = query.where(TransferRequest.requesting_location_id == location_id)
        query = query.order_by(TransferReceipt.received_at.asc(), TransferReceipt.receipt_number.asc())
        return self.db.execute(query).scalars().all()

    def get_issue_for_update(self, transfer_id, issue_id) -> TransferReceiptIssue | None:
        parsed = parse_uuid(issue_id)
        if parsed is None:
            return None
        return (
            self.db.execute(
                select(TransferReceiptIssue)
                .join(TransferReceipt, TransferReceipt.id == TransferReceiptIssue.receipt_id)
                .options(selectinload(TransferReceiptIssue.receipt), selectinload(TransferReceiptIssue.transfer_line))
                .where(
                    TransferReceiptIssue.id == parsed,
                    TransferReceipt.transfer_request_id == transfer_id,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            .scalars()
            .first()
        )
