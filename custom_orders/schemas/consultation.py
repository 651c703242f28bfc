from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel


class ConsultationCreate(BaseModel):
    requested_by: str  # customer | provider_required


class ConsultationWaive(BaseModel):
    waived_by: str


class ConsultationComplete(BaseModel):
    notes: str | None = None


class ConsultationRead(BaseModel):
    id: str
    production_order_id: str
    customer_id: str
    provider_id: str
    status: str
    requested_by: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    waived_at: datetime | None = None
    waived_by: str | None = None
    timeout_at: datetime | None = None
    customer_can_decide: bool
    notes: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
