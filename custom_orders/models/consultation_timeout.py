"""Deadline records for the provider and customer response clocks."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from custom_orders.models.base import Base, ULIDMixin


class ConsultationTimeout(Base, ULIDMixin):
    __tablename__ = "consultation_timeouts"

    production_order_id: Mapped[str] = mapped_column(String(26), ForeignKey("production_orders.id"), index=True)
    consultation_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("custom_service_consultations.id"), nullable=True, default=None,
    )
    price_adjustment_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("price_adjustments.id"), nullable=True, default=None,
    )
    timeout_type: Mapped[str] = mapped_column(String(30))  # provider_response | customer_response | price_adjustment_response
    deadline_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    expired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    action_taken: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    customer_decision: Mapped[str | None] = mapped_column(String(10), nullable=True, default=None)
    customer_decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    timeout_resolution: Mapped[str | None] = mapped_column(String(30), nullable=True, default=None)
