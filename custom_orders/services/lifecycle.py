"""Shared helpers for moving an order between statuses."""

from __future__ import annotations

from decimal import Decimal

from custom_orders.models import ProductionOrder
from custom_orders.models.enums import OrderStatus
from custom_orders.services.policies import refund_policy_for


def apply_status(order: ProductionOrder, status: OrderStatus | str) -> None:
    """Set the status and keep refund_policy in step with it."""
    value = getattr(status, "value", status)
    order.refund_policy = refund_policy_for(value, order.refund_policy)
    order.status = value


def money(amount: Decimal | None) -> str:
    return f"${(amount or Decimal('0')):.2f}"
