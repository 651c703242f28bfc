"""Escrow money movement: capture at checkout, release to provider, refund to customer.

The processor call always happens first; local state only advances once it
succeeds. Release and refund are claimed with conditional updates so two
concurrent callers cannot both pay out.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from custom_orders.config import get_settings
from custom_orders.db import crud
from custom_orders.models import ProductionOrder, PriceAdjustment
from custom_orders.models.base import utcnow
from custom_orders.models.enums import (
    AdjustmentType, ConsultationStatus, LIVE_CONSULTATION_STATUSES, OrderStatus, TimeoutResolution,
)
from custom_orders.services import policies
from custom_orders.services.lifecycle import apply_status, money
from custom_orders.services.payment_gateway import PaymentGateway, quantize_money
from custom_orders.services.results import (
    ConflictError, NotFoundError, ValidationError, ok, workflow_operation,
)

logger = logging.getLogger(__name__)

_settings = get_settings()


def split_escrow(escrow_amount: Decimal, fee_rate: Decimal | None = None) -> tuple[Decimal, Decimal]:
    """Return (platform_fee, provider_amount) for an escrowed amount."""
    rate = _settings.workflow.platform_fee_rate if fee_rate is None else fee_rate
    platform_fee = quantize_money(Decimal(escrow_amount) * Decimal(rate))
    return platform_fee, quantize_money(Decimal(escrow_amount) - platform_fee)


async def capture_escrow(
    db: AsyncSession,
    gateway: PaymentGateway,
    order: ProductionOrder,
    amount: Decimal,
    description: str,
    consultation_requested: bool = False,
    metadata: dict | None = None,
) -> dict:
    """Charge the customer and stage the escrow fields on ``order`` (no commit)."""
    amount = quantize_money(amount)
    if amount <= 0:
        raise ValidationError("Escrow amount must be greater than zero")
    if order.escrow_captured_at is not None:
        raise ConflictError("Escrow payment already captured for this order")

    intent = await gateway.create_escrow_payment(
        order.id, order.customer_id, order.provider_id, amount, description,
        metadata={**(metadata or {}), "consultation_requested": str(consultation_requested).lower()},
    )

    order.payment_intent_id = intent["payment_intent_id"]
    order.escrow_amount = amount
    if order.final_price is None:
        order.final_price = amount
    order.escrow_captured_at = utcnow()
    apply_status(order, OrderStatus.PENDING_ORDER_RECEIVED)
    await crud.add_timeline_event(
        db, order.id, "escrow_captured",
        f"Payment of {money(amount)} captured and held in escrow",
        {"amount": str(amount), "payment_intent_id": intent["payment_intent_id"]},
    )
    return intent


@workflow_operation("Failed to create escrow payment")
async def create_escrow_payment(
    db: AsyncSession,
    gateway: PaymentGateway,
    order_id: str,
    amount: Decimal,
    description: str,
    consultation_requested: bool = False,
    metadata: dict | None = None,
) -> dict:
    order = await crud.get_production_order(db, order_id)
    if order is None:
        raise NotFoundError("Order not found")

    intent = await capture_escrow(
        db, gateway, order, amount, description, consultation_requested, metadata,
    )
    await db.commit()
    return ok(payment_intent_id=intent["payment_intent_id"], client_secret=intent["client_secret"])


@workflow_operation("Failed to release escrow funds")
async def release_escrow_funds(db: AsyncSession, gateway: PaymentGateway, order_id: str) -> dict:
    order = await crud.get_production_order(db, order_id)
    decision = policies.can_release_escrow(order)
    if not decision:
        raise ValidationError(decision.reason)

    platform_fee, provider_amount = split_escrow(order.escrow_amount)
    await gateway.release_escrow(order.id, order.provider_id, provider_amount)

    if not await crud.claim_escrow_release(db, order.id, utcnow()):
        # A concurrent call won the claim; the idempotency key kept the
        # processor from paying twice.
        logger.warning("Escrow release for order %s lost the claim race", order.id)
        raise ConflictError("Escrow already released")

    await crud.create_wallet_credit(
        db, order.provider_id, provider_amount,
        "Custom service payment released from escrow", order.id,
    )
    await crud.add_timeline_event(
        db, order.id, "escrow_released",
        f"Escrow released: {money(provider_amount)} paid to provider",
        {
            "escrow_amount": str(order.escrow_amount),
            "platform_fee": str(platform_fee),
            "provider_amount": str(provider_amount),
        },
    )
    await db.commit()
    logger.info("Released escrow for order %s: provider %s, fee %s", order.id, provider_amount, platform_fee)
    return ok(provider_amount=provider_amount, platform_fee=platform_fee)


async def close_consultation_gate(db: AsyncSession, order_id: str) -> None:
    """Retire open consultations and deadlines so a cancelled order cannot be revived."""
    for timeout in await crud.list_unresolved_timeouts(db, order_id):
        timeout.timeout_resolution = TimeoutResolution.ORDER_CANCELLED.value
        timeout.action_taken = "Order cancelled and refunded"
    for consultation in await crud.list_consultations(db, order_id):
        if consultation.status in LIVE_CONSULTATION_STATUSES:
            consultation.status = ConsultationStatus.CANCELLED.value
        consultation.customer_can_decide = False


async def refund_escrow_for(
    db: AsyncSession,
    gateway: PaymentGateway,
    order: ProductionOrder,
    reason: str,
    refund_amount: Decimal | None = None,
) -> Decimal:
    """Refund and cancel ``order``; stages the writes and returns the amount refunded."""
    if refund_amount is None:
        amount = policies.refund_amount_for(order)
    else:
        amount = quantize_money(refund_amount)
    decision = policies.can_refund_escrow(order, amount)
    if not decision:
        raise ValidationError(decision.reason)

    if amount > 0 and order.payment_intent_id:
        await gateway.refund_escrow(order.id, order.payment_intent_id, amount, reason)

    if not await crud.claim_escrow_refund(db, order.id, utcnow(), reason):
        logger.warning("Refund for order %s lost the claim race", order.id)
        raise ConflictError("Escrow already released or refunded")
    await close_consultation_gate(db, order.id)

    await crud.add_timeline_event(
        db, order.id, "order_refunded",
        f"Refunded {money(amount)}",
        {"refund_amount": str(amount), "reason": reason},
    )
    return amount


@workflow_operation("Failed to refund order")
async def refund_escrow(
    db: AsyncSession,
    gateway: PaymentGateway,
    order_id: str,
    reason: str,
    refund_amount: Decimal | None = None,
) -> dict:
    order = await crud.get_production_order(db, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    amount = await refund_escrow_for(db, gateway, order, reason, refund_amount)
    await db.commit()
    return ok(refunded_amount=amount)


async def capture_price_difference(
    gateway: PaymentGateway, order: ProductionOrder, adjustment: PriceAdjustment,
) -> None:
    """Charge the customer the increase; records the charge on ``adjustment``."""
    result = await gateway.capture_price_difference(
        order.id, order.customer_id, adjustment.adjustment_amount,
        f"Approved price adjustment: {money(adjustment.original_price)} → {money(adjustment.adjusted_price)}",
        adjustment.id,
    )
    adjustment.payment_intent_id = result["payment_intent_id"]
    adjustment.difference_captured = True


async def refund_price_difference(
    gateway: PaymentGateway, order: ProductionOrder, adjustment: PriceAdjustment,
) -> None:
    """Hand a decrease back to the customer from the escrowed charge."""
    if not order.payment_intent_id:
        return
    await gateway.refund_escrow(
        order.id, order.payment_intent_id, adjustment.adjustment_amount,
        "Price adjustment decrease",
        idempotency_key=f"adjustment-refund-{adjustment.id}",
    )


async def settle_adjustment_difference(
    gateway: PaymentGateway, order: ProductionOrder, adjustment: PriceAdjustment,
) -> None:
    """Move the price difference through the processor before an adjustment is approved."""
    if adjustment.adjustment_amount <= 0:
        return
    if adjustment.adjustment_type == AdjustmentType.INCREASE:
        await capture_price_difference(gateway, order, adjustment)
    else:
        await refund_price_difference(gateway, order, adjustment)
