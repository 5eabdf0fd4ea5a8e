from __future__ import annotations

from datetime import datetime

from sqlalchemy import select

from app.stockflow.db.models import StockReservation


class ReservationRepository:
    def __init__(self, db):
        self.db = db

    def add(self, reservation: StockReservation) -> StockReservation:
        self.db.add(reservation)
        self.db.flush()
        return reservation

    def get_for_line(self, line_id) -> StockReservation | None:
        return (
            self.db.execute(select(StockReservation).where(StockReservation.transfer_line_id == line_id))
            .scalars()
            .first()
        )

    def list_active(self, transfer_id) -> list[StockReservation]:
        return (
            self.db.execute(
                select(StockReservation).where(
                    StockReservation.transfer_request_id == transfer_id,
                    StockReservation.status == "active",
                )
            )
            .scalars()
            .all()
        )

    def list_for_request(self, transfer_id) -> list[StockReservation]:
        return (
            self.db.execute(
                select(StockReservation)
                .where(StockReservation.transfer_request_id == transfer_id)
                .order_by(StockReservation.created_at.asc())
            )
            .scalars()
            .all()
        )

    def complete(self, reservation: StockReservation, status: str) -> StockReservation:
        reservation.status = status
        reservation.completed_at = datetime.utcnow()
        self.db.flush()
        return reservation
