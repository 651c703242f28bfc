from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from custom_orders.models.base import Base, ULIDMixin, UpdatedAtMixin


class Consultation(Base, ULIDMixin, UpdatedAtMixin):
    __tablename__ = "custom_service_consultations"

    production_order_id: Mapped[str] = mapped_column(String(26), ForeignKey("production_orders.id"), index=True)
    customer_id: Mapped[str] = mapped_column(String(64))
    provider_id: Mapped[str] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending | in_progress | completed | waived | timed_out | cancelled
    requested_by: Mapped[str] = mapped_column(String(20))  # customer | provider_required
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    waived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    waived_by: Mapped[str | None] = mapped_column(String(64), nullable=True, default=None)
    timeout_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    customer_can_decide: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
