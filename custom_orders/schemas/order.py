from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field


class ProductionOrderCreate(BaseModel):
    customer_id: str
    provider_id: str
    description: str = ""
    final_price: Decimal | None = None


class OrderInitialize(BaseModel):
    amount: Decimal = Field(gt=0)
    description: str
    provider_requires_consultation: bool = False
    consultation_requested: bool = False
    metadata: dict[str, str] | None = None


class RefundRequest(BaseModel):
    reason: str
    refund_amount: Decimal | None = Field(default=None, ge=0)


class CustomerDecisionRequest(BaseModel):
    customer_id: str


class ProductionOrderRead(BaseModel):
    id: str
    customer_id: str
    provider_id: str
    description: str
    status: str
    escrow_amount: Decimal
    final_price: Decimal | None = None
    refund_policy: str
    cancellation_reason: str | None = None
    payment_intent_id: str | None = None
    escrow_captured_at: datetime | None = None
    escrow_released_at: datetime | None = None
    escrow_refunded_at: datetime | None = None
    order_received_at: datetime | None = None
    consultation_requested: bool
    consultation_required: bool
    consultation_waived: bool
    consultation_completed_at: datetime | None = None
    provider_response_deadline: datetime | None = None
    price_adjustment_allowed: bool
    price_adjustment_used: bool
    customer_response_deadline: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
