from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from app.stockflow.db.models import StockLevel


class StockRepository:
    """Row-level access to ``stock_levels``.

    Every mutation is a single conditional UPDATE so the availability check
    and the write happen in one statement; callers learn whether the guard
    held from the returned row count.
    """

    def __init__(self, db):
        self.db = db

    def get_quantities(self, location_id: str, product_id: str) -> tuple[int, int]:
        row = self.db.execute(
            select(StockLevel.on_hand, StockLevel.reserved).where(
                StockLevel.location_id == location_id,
                StockLevel.product_id == product_id,
            )
        ).first()
        if row is None:
            return 0, 0
        return int(row.on_hand), int(row.reserved)

    def _guarded_update(self, location_id: str, product_id: str, *conditions, **values) -> bool:
        stmt = (
            update(StockLevel)
            .where(
                StockLevel.location_id == location_id,
                StockLevel.product_id == product_id,
                *conditions,
            )
            .values(updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def try_reserve(self, location_id: str, product_id: str, qty: int) -> bool:
        return self._guarded_update(
            location_id,
            product_id,
            StockLevel.on_hand - StockLevel.reserved >= qty,
            reserved=StockLevel.reserved + qty,
        )

    def release(self, location_id: str, product_id: str, qty: int) -> bool:
        return self._guarded_update(
            location_id,
            product_id,
            StockLevel.reserved >= qty,
            reserved=StockLevel.reserved - qty,
        )

    def try_ship(self, location_id: str, product_id: str, qty: int, reserved_qty: int) -> bool:
        return self._guarded_update(
            location_id,
            product_id,
            StockLevel.on_hand >= qty,
            StockLevel.reserved >= reserved_qty,
            on_hand=StockLevel.on_hand - qty,
            reserved=StockLevel.reserved - reserved_qty,
        )

    def try_adjust(self, location_id: str, product_id: str, delta: int) -> bool:
        if delta >= 0:
            if self._guarded_update(location_id, product_id, on_hand=StockLevel.on_hand + delta):
                return True
            return self._insert_level(location_id, product_id, delta)
        return self._guarded_update(
            location_id,
            product_id,
            StockLevel.on_hand + delta >= 0,
            on_hand=StockLevel.on_hand + delta,
        )

    def _insert_level(self, location_id: str, product_id: str, on_hand: int) -> bool:
        try:
            with self.db.begin_nested():
                self.db.add(StockLevel(location_id=location_id, product_id=product_id, on_hand=on_hand, reserved=0))
                self.db.flush()
        except IntegrityError:
            # Another writer created the row first.
            return self._guarded_update(location_id, product_id, on_hand=StockLevel.on_hand + on_hand)
        return True
