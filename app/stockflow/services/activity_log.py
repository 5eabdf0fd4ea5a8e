import logging
from datetime import datetime

from app.stockflow.core.logging import log_json
from app.stockflow.core.metrics import metrics
from app.stockflow.db.models import TransferActivityLog
from app.stockflow.domain.transfer import ActivityLogEntry, TransferStatus
from app.stockflow.repos.activity_log import ActivityLogRepository

logger = logging.getLogger("stockflow.transitions")


def to_entry(row: TransferActivityLog) -> ActivityLogEntry:
    return ActivityLogEntry(
        id=str(row.id),
        transfer_request_id=str(row.transfer_request_id),
        sequence=row.sequence,
        actor_id=row.actor_id,
        timestamp=row.occurred_at,
        from_status=TransferStatus(row.from_status) if row.from_status else None,
        to_status=TransferStatus(row.to_status),
        note=row.note,
        details=dict(row.details) if row.details else None,
    )


class ActivityLog:
    """Append-only transition history.

    Rows are written inside the caller's transaction so a rolled back
    transition leaves no entry behind. ``publish`` is called only after
    commit and is where transitions reach the log stream and metrics.
    """

    def __init__(self, db, *, clock=datetime.utcnow):
        self.repo = ActivityLogRepository(db)
        self.clock = clock

    def record(
        self,
        transfer,
        *,
        actor_id: str,
        from_status: TransferStatus | str | None,
        to_status: TransferStatus | str,
        note: str | None = None,
        details: dict | None = None,
    ) -> TransferActivityLog:
        entry = TransferActivityLog(
            transfer_request_id=transfer.id,
            sequence=self.repo.next_sequence(transfer.id),
            actor_id=actor_id,
            from_status=TransferStatus(from_status).value if from_status else None,
            to_status=TransferStatus(to_status).value,
            note=note,
            details=details,
            occurred_at=self.clock(),
        )
        return self.repo.append(entry)

    def publish(self, row: TransferActivityLog, *, request_number: str | None = None) -> ActivityLogEntry:
        entry = to_entry(row)
        log_json(
            logger,
            {
                "event": "transfer_transition",
                "transfer_request_id": entry.transfer_request_id,
                "request_number": request_number,
                "sequence": entry.sequence,
                "actor_id": entry.actor_id,
                "from_status": entry.from_status.value if entry.from_status else None,
                "to_status": entry.to_status.value,
            },
        )
        metrics.record_transition(entry.to_status.value)
        return entry

    def history(self, transfer_id) -> list[ActivityLogEntry]:
        return [to_entry(row) for row in self.repo.list_for_request(transfer_id)]
