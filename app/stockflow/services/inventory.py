from __future__ import annotations

import logging
from typing import Protocol

from app.stockflow.core.config import settings
from app.stockflow.core.error_catalog import AppError, ErrorCatalog, InsufficientStockError
from app.stockflow.core.logging import log_json
from app.stockflow.repos.stock import StockRepository

logger = logging.getLogger(__name__)


class InventoryService(Protocol):
    def get_available_stock(self, location_id: str, product_id: str) -> int: ...

    def adjust_stock(self, location_id: str, product_id: str, delta: int) -> None: ...

    def reserve_up_to(self, location_id: str, product_id: str, quantity: int) -> int: ...

    def release_reservation(self, location_id: str, product_id: str, quantity: int) -> None: ...

    def ship_from_reservation(
        self, location_id: str, product_id: str, quantity: int, reserved_quantity: int
    ) -> bool: ...


class SqlInventoryService:
    def __init__(self, db, *, max_attempts: int | None = None):
        self.repo = StockRepository(db)
        self.max_attempts = max_attempts or settings.STOCK_RESERVE_MAX_ATTEMPTS

    def get_available_stock(self, location_id: str, product_id: str) -> int:
        on_hand, reserved = self.repo.get_quantities(location_id, product_id)
        return max(on_hand - reserved, 0)

    def get_on_hand(self, location_id: str, product_id: str) -> int:
        on_hand, _ = self.repo.get_quantities(location_id, product_id)
        return on_hand

    def adjust_stock(self, location_id: str, product_id: str, delta: int) -> None:
        if delta == 0:
            return
        if not self.repo.try_adjust(location_id, product_id, delta):
            raise InsufficientStockError(
                [
                    {
                        "location_id": location_id,
                        "product_id": product_id,
                        "requested": -delta,
                        "on_hand": self.get_on_hand(location_id, product_id),
                    }
                ]
            )

    def reserve_up_to(self, location_id: str, product_id: str, quantity: int) -> int:
        """Reserve as much of ``quantity`` as is available and return the amount granted.

        The availability read and the reservation are separate statements, so
        the reservation UPDATE re-checks availability and the read is retried
        when another writer got there first.
        """
        if quantity <= 0:
            return 0
        for attempt in range(1, self.max_attempts + 1):
            available = self.get_available_stock(location_id, product_id)
            grant = min(quantity, available)
            if grant <= 0:
                return 0
            if self.repo.try_reserve(location_id, product_id, grant):
                return grant
            log_json(
                logger,
                {
                    "event": "stock_reserve_retry",
                    "location_id": location_id,
                    "product_id": product_id,
                    "attempt": attempt,
                },
                level=logging.WARNING,
            )
        raise AppError(
            ErrorCatalog.STOCK_CONTENTION,
            details={"location_id": location_id, "product_id": product_id},
        )

    def release_reservation(self, location_id: str, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            return
        if not self.repo.release(location_id, product_id, quantity):
            raise AppError(
                ErrorCatalog.STOCK_CONTENTION,
                details={"location_id": location_id, "product_id": product_id, "release": quantity},
            )

    def ship_from_reservation(
        self, location_id: str, product_id: str, quantity: int, reserved_quantity: int
    ) -> bool:
        if quantity <= 0 and reserved_quantity <= 0:
            return True
        return self.repo.try_ship(location_id, product_id, quantity, reserved_quantity)
