from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.stockflow.db.models import DocumentSequence


class DocumentSequenceRepository:
    """Locked counter rows backing request, shipment and receipt numbers."""

    def __init__(self, db):
        self.db = db

    def next_value(self, name: str) -> int:
        for _ in range(2):
            counter = (
                self.db.execute(
                    select(DocumentSequence)
                    .where(DocumentSequence.name == name)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
                .scalars()
                .first()
            )
            if counter is not None:
                counter.last_value += 1
                self.db.flush()
                return counter.last_value
            try:
                with self.db.begin_nested():
                    self.db.add(DocumentSequence(name=name, last_value=1))
                    self.db.flush()
                return 1
            except IntegrityError:
                continue
        raise RuntimeError(f"could not allocate next value for sequence {name}")
