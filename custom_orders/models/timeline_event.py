"""Append-only order history shown to both parties."""

from __future__ import annotations

from sqlalchemy import String, ForeignKey, JSON, Text
from sqlalchemy.orm import Mapped, mapped_column

from custom_orders.models.base import Base, ULIDMixin


class ProductionTimelineEvent(Base, ULIDMixin):
    __tablename__ = "production_timeline_events"

    production_order_id: Mapped[str] = mapped_column(String(26), ForeignKey("production_orders.id"), index=True)
    event_type: Mapped[str] = mapped_column(String(50))
    description: Mapped[str] = mapped_column(Text, default="")
    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
