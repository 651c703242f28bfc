from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel


class PriceAdjustmentCreate(BaseModel):
    adjusted_price: Decimal
    justification: str


class PriceAdjustmentRead(BaseModel):
    id: str
    production_order_id: str
    original_price: Decimal
    adjusted_price: Decimal
    adjustment_amount: Decimal
    adjustment_type: str
    justification: str
    status: str
    response_deadline: datetime | None = None
    customer_responded_at: datetime | None = None
    payment_intent_id: str | None = None
    difference_captured: bool
    created_at: datetime

    model_config = {"from_attributes": True}
