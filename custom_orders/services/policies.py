"""Business-rule predicates over order snapshots.

Each returns a ``PolicyDecision`` so callers can surface the reason verbatim.
No I/O here: callers load the rows and pass them in.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from custom_orders.models import ProductionOrder, Consultation, ConsultationTimeout
from custom_orders.models.enums import (
    ConsultationStatus, OrderStatus, PRE_RECEIPT_STATUSES, RELEASABLE_STATUSES, RefundPolicy,
)


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOWED = PolicyDecision(True)


def deny(reason: str) -> PolicyDecision:
    return PolicyDecision(False, reason)


def can_request_price_adjustment(
    order: ProductionOrder | None, has_pending_adjustment: bool,
) -> PolicyDecision:
    if order is None:
        return deny("Order not found")
    if order.price_adjustment_used:
        return deny("Price adjustment has already been used for this order")
    if not order.price_adjustment_allowed:
        return deny("Price adjustments are no longer allowed for this order")
    if has_pending_adjustment:
        return deny("A price adjustment is already awaiting the customer's response")
    if order.status not in PRE_RECEIPT_STATUSES:
        return deny("Price adjustments are only allowed before order is marked as received")
    return ALLOWED


def can_mark_order_received(
    order: ProductionOrder | None,
    consultations: Sequence[Consultation],
    has_pending_adjustment: bool,
) -> PolicyDecision:
    if order is None:
        return deny("Order not found")
    if order.status == OrderStatus.CANCELLED:
        return deny("Order has been cancelled")
    if order.escrow_captured_at is None:
        return deny("No escrow payment has been captured for this order")
    if order.consultation_required and not order.consultation_waived:
        settled = {ConsultationStatus.COMPLETED.value, ConsultationStatus.WAIVED.value}
        if not any(c.status in settled for c in consultations):
            return deny("Consultation must be completed or waived before marking order as received")
    if has_pending_adjustment:
        return deny("Pending price adjustment must be resolved before marking order as received")
    if order.status != OrderStatus.PENDING_ORDER_RECEIVED:
        return deny(f"Order cannot be marked as received while {order.status}")
    return ALLOWED


def can_release_escrow(order: ProductionOrder | None) -> PolicyDecision:
    if order is None:
        return deny("Order not found")
    if order.escrow_released_at is not None:
        return deny("Escrow already released")
    if order.escrow_refunded_at is not None or order.status == OrderStatus.CANCELLED:
        return deny("Escrow was refunded; the order is cancelled")
    if order.escrow_captured_at is None:
        return deny("No escrow payment has been captured for this order")
    if order.status not in RELEASABLE_STATUSES:
        return deny("Escrow can only be released after the order has been received")
    return ALLOWED


def can_refund_escrow(order: ProductionOrder | None, amount: Decimal) -> PolicyDecision:
    if order is None:
        return deny("Order not found")
    if order.escrow_released_at is not None:
        return deny("Escrow already released to the provider; refund not possible")
    if order.escrow_refunded_at is not None:
        return deny("Escrow already refunded")
    if amount < 0:
        return deny("Refund amount cannot be negative")
    held = order.escrow_amount or Decimal("0")
    if order.escrow_captured_at is not None and amount > held:
        return deny(f"Refund amount ${amount:.2f} exceeds escrowed ${held:.2f}")
    return ALLOWED


def check_provider_capacity(
    active_count: int, today_count: int,
    max_active: int | None, max_daily: int | None,
) -> PolicyDecision:
    if max_active is not None and active_count >= max_active:
        return deny("Provider at maximum active order capacity")
    if max_daily is not None and today_count >= max_daily:
        return deny("Provider at maximum daily order capacity")
    return ALLOWED


def can_customer_decide(
    order: ProductionOrder | None,
    customer_id: str,
    consultation: Consultation | None,
    timeout: ConsultationTimeout | None,
) -> PolicyDecision:
    """Shared gate for proceed/cancel after a provider-response timeout."""
    if order is None or order.customer_id != customer_id:
        return deny("Order not found or access denied")
    if order.status == OrderStatus.CANCELLED or order.escrow_refunded_at is not None:
        return deny("Order has already been cancelled")
    if consultation is None:
        return deny("No timed out consultation found")
    if timeout is None:
        return deny("Timeout decision already made")
    return ALLOWED


def can_cancel_after_timeout(order: ProductionOrder) -> PolicyDecision:
    if order.status not in PRE_RECEIPT_STATUSES:
        return deny("Cannot cancel - work has already started")
    return ALLOWED


def timeout_options(
    order: ProductionOrder,
    consultation: Consultation | None,
    timeout: ConsultationTimeout | None,
) -> dict:
    """What the customer may do right now after a provider-response timeout."""
    decidable = (
        consultation is not None and timeout is not None
        and order.status != OrderStatus.CANCELLED and order.escrow_refunded_at is None
    )
    return {
        "has_timed_out_consultation": consultation is not None,
        "customer_can_decide": bool(consultation.customer_can_decide) if consultation else False,
        "can_proceed": decidable,
        "can_cancel": decidable and order.status in PRE_RECEIPT_STATUSES,
        "original_price": order.escrow_amount,
        "refund_amount": refund_amount_for(order),
        "timeout_at": consultation.timeout_at if consultation else None,
        "current_status": order.status,
    }


def refund_amount_for(order: ProductionOrder) -> Decimal:
    """Full refund: whatever is escrowed, else the agreed price; nothing before capture."""
    if order.escrow_captured_at is None:
        return Decimal("0.00")
    if order.escrow_amount:
        return order.escrow_amount
    return order.final_price or Decimal("0.00")


_POLICY_BY_STATUS = {
    OrderStatus.PENDING_CONSULTATION.value: RefundPolicy.FULLY_REFUNDABLE,
    OrderStatus.PENDING_ORDER_RECEIVED.value: RefundPolicy.FULLY_REFUNDABLE,
    OrderStatus.ORDER_RECEIVED.value: RefundPolicy.PARTIALLY_REFUNDABLE,
    OrderStatus.PROOFING.value: RefundPolicy.PARTIALLY_REFUNDABLE,
}


def refund_policy_for(status: str, current: str | None = None) -> str:
    status = getattr(status, "value", status)
    if status == OrderStatus.CANCELLED:
        return current or RefundPolicy.FULLY_REFUNDABLE.value
    return _POLICY_BY_STATUS.get(status, RefundPolicy.NON_REFUNDABLE).value
