from sqlalchemy import func, select

from app.stockflow.db.models import TransferActivityLog


class ActivityLogRepository:
    def __init__(self, db):
        self.db = db

    def append(self, entry: TransferActivityLog) -> TransferActivityLog:
        self.db.add(entry)
        self.db.flush()
        return entry

    def next_sequence(self, transfer_id) -> int:
        current = self.db.execute(
            select(func.max(TransferActivityLog.sequence)).where(
                TransferActivityLog.transfer_request_id == transfer_id
            )
        ).scalar()
        return int(current or 0) + 1

    def list_for_request(self, transfer_id) -> list[TransferActivityLog]:
        return (
            self.db.execute(
                select(TransferActivityLog)
                .where(TransferActivityLog.transfer_request_id == transfer_id)
                .order_by(TransferActivityLog.sequence.asc())
            )
            .scalars()
            .all()
        )
