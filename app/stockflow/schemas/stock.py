from pydantic import BaseModel, Field


class StockLevelResponse(BaseModel):
    location_id: str
    product_id: str
    on_hand: int
    reserved: int
    available: int


class StockAdjustmentRequest(BaseModel):
    location_id: str = Field(min_length=1, max_length=64)
    product_id: str = Field(min_length=1, max_length=64)
    delta: int
    reason: str | None = None
