from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, Field


class TimelineEventRead(BaseModel):
    id: str
    event_type: str
    description: str
    metadata: dict = Field(default_factory=dict, validation_alias="event_metadata")
    created_at: datetime

    model_config = {"from_attributes": True}
