"""One-time provider price adjustment with customer approval.

The provider proposes a new price with a justification; the customer has
``price_adjustment_response_hours`` (72h) to approve or reject. Approval
moves the difference through the processor before anything is recorded.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from custom_orders.config import get_settings
from custom_orders.db import crud
from custom_orders.models import PriceAdjustment
from custom_orders.models.base import utcnow
from custom_orders.models.enums import (
    AdjustmentStatus, AdjustmentType, CUSTOMER_TIMEOUT_TYPES, TimeoutResolution, TimeoutType,
)
from custom_orders.services import policies
from custom_orders.services.escrow import settle_adjustment_difference
from custom_orders.services.lifecycle import money
from custom_orders.services.payment_gateway import PaymentGateway, quantize_money
from custom_orders.services.results import (
    ConflictError, NotFoundError, ValidationError, ok, workflow_operation,
)

logger = logging.getLogger(__name__)

_settings = get_settings()


def compute_adjustment(original_price: Decimal, adjusted_price: Decimal) -> tuple[Decimal, str]:
    """Magnitude is always non-negative; direction is carried separately."""
    delta = quantize_money(adjusted_price) - quantize_money(original_price)
    kind = AdjustmentType.INCREASE if delta > 0 else AdjustmentType.DECREASE
    return abs(delta), kind.value


@workflow_operation("Failed to request price adjustment")
async def request_price_adjustment(
    db: AsyncSession, order_id: str, adjusted_price: Decimal, justification: str,
) -> dict:
    order = await crud.get_production_order(db, order_id)
    pending = await crud.get_pending_adjustment(db, order_id) if order else None
    decision = policies.can_request_price_adjustment(order, pending is not None)
    if not decision:
        raise ValidationError(decision.reason)

    adjusted_price = quantize_money(adjusted_price)
    if adjusted_price <= 0:
        raise ValidationError("Adjusted price must be greater than zero")
    if not justification or not justification.strip():
        raise ValidationError("A justification is required for a price adjustment")
    original_price = order.final_price or order.escrow_amount
    if adjusted_price == original_price:
        raise ValidationError("Adjusted price is the same as the current price")

    amount, kind = compute_adjustment(original_price, adjusted_price)
    hours = _settings.workflow.price_adjustment_response_hours
    deadline = utcnow() + timedelta(hours=hours)

    adjustment = await crud.create_price_adjustment(
        db, order,
        original_price=original_price,
        adjusted_price=adjusted_price,
        adjustment_amount=amount,
        adjustment_type=kind,
        justification=justification.strip(),
        response_deadline=deadline,
    )
    order.customer_response_deadline = deadline
    await crud.create_timeout(
        db, order.id, TimeoutType.PRICE_ADJUSTMENT_RESPONSE.value, deadline,
        price_adjustment_id=adjustment.id,
    )
    await crud.add_timeline_event(
        db, order.id, "price_adjustment_requested",
        f"Provider requested a price {kind}: {money(original_price)} → {money(adjusted_price)}",
        {
            "price_adjustment_id": adjustment.id,
            "original_price": str(original_price),
            "adjusted_price": str(adjusted_price),
            "adjustment_amount": str(amount),
            "adjustment_type": kind,
            "justification": adjustment.justification,
        },
    )
    await db.commit()
    return ok(
        adjustment_id=adjustment.id,
        adjustment_type=kind,
        adjustment_amount=amount,
        response_deadline=deadline,
    )


async def _load_pending(db: AsyncSession, adjustment_id: str) -> PriceAdjustment:
    adjustment = await crud.get_price_adjustment(db, adjustment_id)
    if adjustment is None:
        raise NotFoundError("Price adjustment not found")
    if adjustment.status != AdjustmentStatus.PENDING:
        raise ConflictError("Price adjustment has already been processed")
    return adjustment


async def _close_customer_timeout(db: AsyncSession, adjustment: PriceAdjustment, action: str) -> None:
    timeout = await crud.get_open_timeout(
        db, adjustment.production_order_id, CUSTOMER_TIMEOUT_TYPES,
        price_adjustment_id=adjustment.id,
    )
    if timeout is not None:
        timeout.timeout_resolution = TimeoutResolution.CUSTOMER_RESPONDED.value
        timeout.action_taken = action


@workflow_operation("Failed to approve price adjustment")
async def approve_price_adjustment(db: AsyncSession, gateway: PaymentGateway, adjustment_id: str) -> dict:
    adjustment = await _load_pending(db, adjustment_id)
    order = await crud.get_production_order(db, adjustment.production_order_id)

    # Money first: if this raises, the adjustment stays pending.
    await settle_adjustment_difference(gateway, order, adjustment)

    claimed = await crud.claim_adjustment_resolution(
        db, adjustment.id, AdjustmentStatus.APPROVED.value, utcnow(),
        payment_intent_id=adjustment.payment_intent_id,
        difference_captured=adjustment.difference_captured,
    )
    if not claimed:
        logger.error(
            "Adjustment %s was resolved concurrently after its difference moved; reconcile order %s",
            adjustment.id, order.id,
        )
        raise ConflictError("Price adjustment has already been processed")

    order.escrow_amount = adjustment.adjusted_price
    order.final_price = adjustment.adjusted_price
    order.price_adjustment_used = True
    order.customer_response_deadline = None
    await _close_customer_timeout(db, adjustment, "Customer approved the price adjustment")
    await crud.add_timeline_event(
        db, order.id, "price_adjustment_approved",
        f"Customer approved price adjustment: {money(adjustment.original_price)} → {money(adjustment.adjusted_price)}",
        {
            "price_adjustment_id": adjustment.id,
            "final_price": str(adjustment.adjusted_price),
            "difference_captured": adjustment.difference_captured,
        },
    )
    await db.commit()
    return ok(
        adjustment_id=adjustment.id,
        final_price=order.final_price,
        difference_captured=adjustment.difference_captured,
    )


@workflow_operation("Failed to reject price adjustment")
async def reject_price_adjustment(db: AsyncSession, adjustment_id: str) -> dict:
    adjustment = await _load_pending(db, adjustment_id)
    order = await crud.get_production_order(db, adjustment.production_order_id)

    if not await crud.claim_adjustment_resolution(
        db, adjustment.id, AdjustmentStatus.REJECTED.value, utcnow(),
    ):
        raise ConflictError("Price adjustment has already been processed")

    order.customer_response_deadline = None
    await _close_customer_timeout(db, adjustment, "Customer rejected the price adjustment")
    await crud.add_timeline_event(
        db, order.id, "price_adjustment_rejected",
        f"Customer rejected price adjustment to {money(adjustment.adjusted_price)}. "
        f"Provider may proceed at the original price of {money(adjustment.original_price)} or cancel.",
        {"price_adjustment_id": adjustment.id, "original_price": str(adjustment.original_price)},
    )
    await db.commit()
    return ok(adjustment_id=adjustment.id, final_price=order.final_price)
