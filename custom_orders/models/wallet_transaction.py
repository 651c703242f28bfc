from __future__ import annotations

from decimal import Decimal

from sqlalchemy import String, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from custom_orders.models.base import Base, ULIDMixin


class WalletTransaction(Base, ULIDMixin):
    __tablename__ = "wallet_transactions"

    user_id: Mapped[str] = mapped_column(String(64), index=True)
    type: Mapped[str] = mapped_column(String(10), default="credit")  # credit | debit
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    status: Mapped[str] = mapped_column(String(20), default="completed")
    description: Mapped[str] = mapped_column(Text, default="")
    reference_type: Mapped[str] = mapped_column(String(30), default="production_order")
    reference_id: Mapped[str] = mapped_column(String(26), index=True)
