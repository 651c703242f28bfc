from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from custom_orders.models.base import Base, ULIDMixin, UpdatedAtMixin


class PriceAdjustment(Base, ULIDMixin, UpdatedAtMixin):
    __tablename__ = "price_adjustments"

    production_order_id: Mapped[str] = mapped_column(String(26), ForeignKey("production_orders.id"), index=True)
    provider_id: Mapped[str] = mapped_column(String(64))
    customer_id: Mapped[str] = mapped_column(String(64))
    original_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    adjusted_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    adjustment_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))  # always >= 0
    adjustment_type: Mapped[str] = mapped_column(String(10))  # increase | decrease
    justification: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    response_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    customer_responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True, default=None)
    difference_captured: Mapped[bool] = mapped_column(Boolean, default=False)
