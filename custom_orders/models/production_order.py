"""Production order: the aggregate root of the escrow workflow."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Boolean, Numeric, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from custom_orders.models.base import Base, ULIDMixin, UpdatedAtMixin


class ProductionOrder(Base, ULIDMixin, UpdatedAtMixin):
    __tablename__ = "production_orders"

    customer_id: Mapped[str] = mapped_column(String(64), index=True)
    provider_id: Mapped[str] = mapped_column(String(64), index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(30), default="pending_order_received", index=True)

    # Money
    escrow_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"))
    final_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True, default=None)
    refund_policy: Mapped[str] = mapped_column(String(30), default="fully_refundable")
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)

    # Payment linkage
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True, default=None)
    escrow_captured_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    escrow_released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    escrow_refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    order_received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)

    # Consultation
    consultation_requested: Mapped[bool] = mapped_column(Boolean, default=False)
    consultation_required: Mapped[bool] = mapped_column(Boolean, default=False)
    consultation_waived: Mapped[bool] = mapped_column(Boolean, default=False)
    consultation_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    consultation_timer_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    provider_response_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)

    # Price adjustment
    price_adjustment_allowed: Mapped[bool] = mapped_column(Boolean, default=True)
    price_adjustment_used: Mapped[bool] = mapped_column(Boolean, default=False)
    customer_response_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
