import logging

from fastapi import APIRouter, Depends

from app.stockflow.core.deps import get_current_actor
from app.stockflow.core.logging import log_json
from app.stockflow.db.session import get_db, unit_of_work
from app.stockflow.schemas.stock import StockAdjustmentRequest, StockLevelResponse
from app.stockflow.services.inventory import SqlInventoryService

logger = logging.getLogger(__name__)

router = APIRouter()


def _level_response(inventory: SqlInventoryService, location_id: str, product_id: str) -> StockLevelResponse:
    on_hand, reserved = inventory.repo.get_quantities(location_id, product_id)
    return StockLevelResponse(
        location_id=location_id,
        product_id=product_id,
        on_hand=on_hand,
        reserved=reserved,
        available=max(on_hand - reserved, 0),
    )


@router.get("/stockflow/stock/{location_id}/{product_id}", response_model=StockLevelResponse)
def get_stock_level(
    location_id: str,
    product_id: str,
    _actor=Depends(get_current_actor),
    db=Depends(get_db),
):
    return _level_response(SqlInventoryService(db), location_id, product_id)


@router.post("/stockflow/stock/adjustments", response_model=StockLevelResponse)
def adjust_stock(
    payload: StockAdjustmentRequest,
    actor=Depends(get_current_actor),
    db=Depends(get_db),
):
    inventory = SqlInventoryService(db)
    with unit_of_work(db):
        inventory.adjust_stock(payload.location_id, payload.product_id, payload.delta)
    log_json(
        logger,
        {
            "event": "stock_adjusted",
            "location_id": payload.location_id,
            "product_id": payload.product_id,
            "delta": payload.delta,
            "reason": payload.reason,
            "actor_id": actor.sub,
        },
    )
    return _level_response(inventory, payload.location_id, payload.product_id)
