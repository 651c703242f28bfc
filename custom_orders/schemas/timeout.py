from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel


class ConsultationTimeoutRead(BaseModel):
    id: str
    production_order_id: str
    consultation_id: str | None = None
    price_adjustment_id: str | None = None
    timeout_type: str
    deadline_at: datetime
    expired_at: datetime | None = None
    action_taken: str | None = None
    customer_decision: str | None = None
    customer_decided_at: datetime | None = None
    timeout_resolution: str | None = None

    model_config = {"from_attributes": True}
