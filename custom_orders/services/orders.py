"""Order lifecycle coordinator.

Drives a production order from escrow capture through consultation and
receipt to release or refund, and answers the customer's "what can I do
now" questions after a provider timeout.
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timezone
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from custom_orders.config import get_settings
from custom_orders.db import crud
from custom_orders.models.base import as_utc, utcnow
from custom_orders.models.enums import (
    ConsultationRequester, ConsultationStatus, CustomerDecision, OrderStatus,
    RefundPolicy, TimeoutResolution, TimeoutType,
)
from custom_orders.schemas import (
    ConsultationRead, ConsultationTimeoutRead, PriceAdjustmentRead,
    ProductionOrderRead, TimelineEventRead,
)
from custom_orders.services import policies
from custom_orders.services.consultations import expire_timeout, open_consultation
from custom_orders.services.escrow import capture_escrow, close_consultation_gate, refund_escrow
from custom_orders.services.lifecycle import apply_status, money
from custom_orders.services.payment_gateway import PaymentGateway
from custom_orders.services.results import (
    GatewayError, NotFoundError, ValidationError, failure, ok, workflow_operation,
)

logger = logging.getLogger(__name__)

_settings = get_settings()

TIMEOUT_CANCEL_REASON = "Customer cancelled after provider consultation timeout"


async def _check_capacity(db: AsyncSession, provider_id: str) -> None:
    wf = _settings.workflow
    if wf.max_active_orders is None and wf.max_daily_orders is None:
        return
    start_of_day = datetime.combine(utcnow().date(), time.min, tzinfo=timezone.utc)
    decision = policies.check_provider_capacity(
        await crud.count_active_orders_for_provider(db, provider_id),
        await crud.count_orders_captured_since(db, provider_id, start_of_day),
        wf.max_active_orders,
        wf.max_daily_orders,
    )
    if not decision:
        raise ValidationError(decision.reason)


@workflow_operation("Failed to initialize custom service order")
async def initialize_custom_service_order(
    db: AsyncSession,
    gateway: PaymentGateway,
    order_id: str,
    amount: Decimal,
    description: str,
    provider_requires_consultation: bool = False,
    consultation_requested: bool = False,
    metadata: dict | None = None,
) -> dict:
    """Capture escrow and open the consultation gate when one is needed.

    The processor charge is the only step outside the local transaction. A
    re-run after a partial failure skips the charge when the escrow is
    already recorded and only opens the consultation if it is still missing.
    """
    order = await crud.get_production_order(db, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if order.status == OrderStatus.CANCELLED:
        raise ValidationError("Order has been cancelled")

    needs_consultation = provider_requires_consultation or consultation_requested
    order.consultation_required = provider_requires_consultation
    order.consultation_requested = consultation_requested

    client_secret = None
    if order.escrow_captured_at is None:
        await _check_capacity(db, order.provider_id)
        intent = await capture_escrow(
            db, gateway, order, amount, description, consultation_requested, metadata,
        )
        client_secret = intent["client_secret"]
    else:
        logger.info("Order %s already has escrow %s; resuming initialization", order.id, order.payment_intent_id)

    consultation_id = None
    if needs_consultation:
        existing = await crud.list_consultations(db, order.id)
        if existing:
            consultation_id = existing[-1].id
        else:
            requested_by = (
                ConsultationRequester.PROVIDER_REQUIRED if provider_requires_consultation
                else ConsultationRequester.CUSTOMER
            )
            consultation = await open_consultation(db, order, requested_by.value)
            consultation_id = consultation.id

    await db.commit()
    return ok(
        payment_intent_id=order.payment_intent_id,
        client_secret=client_secret,
        consultation_id=consultation_id,
        status=order.status,
    )


@workflow_operation("Failed to mark order as received")
async def mark_order_received(db: AsyncSession, order_id: str) -> dict:
    order = await crud.get_production_order(db, order_id)
    consultations = await crud.list_consultations(db, order_id) if order else []
    pending = await crud.get_pending_adjustment(db, order_id) if order else None
    decision = policies.can_mark_order_received(order, consultations, pending is not None)
    if not decision:
        raise ValidationError(decision.reason)

    apply_status(order, OrderStatus.ORDER_RECEIVED)
    order.order_received_at = utcnow()
    order.price_adjustment_allowed = False
    await crud.add_timeline_event(
        db, order.id, "order_received",
        "Order received. Price is now locked.",
        {"final_price": str(order.final_price), "escrow_amount": str(order.escrow_amount)},
    )
    await db.commit()
    return ok(status=order.status)


async def _decision_context(db: AsyncSession, order_id: str):
    consultation = await crud.get_decidable_consultation(db, order_id)
    timeout = None
    if consultation is not None:
        timeout = await crud.get_pending_decision_timeout(db, consultation.id)
    return consultation, timeout


async def _detect_lapsed_deadline(db: AsyncSession, order_id: str) -> None:
    """Mark an expired provider deadline the sweep has not reached yet."""
    timeout = await crud.get_open_timeout(db, order_id, [TimeoutType.PROVIDER_RESPONSE.value])
    if timeout is not None and as_utc(timeout.deadline_at) <= utcnow():
        await expire_timeout(db, order_id, TimeoutType.PROVIDER_RESPONSE.value)
        await db.commit()


@workflow_operation("Failed to load timeout options")
async def get_customer_timeout_options(db: AsyncSession, order_id: str, customer_id: str) -> dict:
    order = await crud.get_production_order(db, order_id)
    if order is None or order.customer_id != customer_id:
        raise NotFoundError("Order not found or access denied")

    await _detect_lapsed_deadline(db, order_id)
    consultation, timeout = await _decision_context(db, order_id)
    return ok(**policies.timeout_options(order, consultation, timeout))


@workflow_operation("Failed to proceed with order")
async def customer_proceed_after_timeout(db: AsyncSession, order_id: str, customer_id: str) -> dict:
    order = await crud.get_production_order(db, order_id)
    consultation, timeout = await _decision_context(db, order_id) if order else (None, None)
    decision = policies.can_customer_decide(order, customer_id, consultation, timeout)
    if not decision:
        raise ValidationError(decision.reason)

    now = utcnow()
    consultation.status = ConsultationStatus.WAIVED.value
    consultation.waived_at = now
    consultation.waived_by = customer_id
    consultation.customer_can_decide = False
    timeout.customer_decision = CustomerDecision.PROCEED.value
    timeout.customer_decided_at = now
    timeout.timeout_resolution = TimeoutResolution.CUSTOMER_PROCEEDED.value

    apply_status(order, OrderStatus.PENDING_ORDER_RECEIVED)
    order.consultation_waived = True
    order.consultation_completed_at = now
    await crud.add_timeline_event(
        db, order.id, "customer_proceeded_after_timeout",
        "Customer chose to proceed at original price after consultation timeout",
        {
            "consultation_id": consultation.id,
            "decision": CustomerDecision.PROCEED.value,
            "original_price": str(order.escrow_amount),
        },
    )
    await db.commit()
    return ok(
        status=order.status,
        message="Order will proceed at original price without consultation",
    )


@workflow_operation("Failed to cancel order")
async def customer_cancel_after_timeout(
    db: AsyncSession, gateway: PaymentGateway, order_id: str, customer_id: str,
) -> dict:
    """Record the customer's cancel decision, then refund the escrow in full.

    The two steps commit separately; a refund failure after the decision is
    reported with ``decision_recorded=True`` so the caller can retry the
    refund alone via ``refund_escrow``.
    """
    order = await crud.get_production_order(db, order_id)
    consultation, timeout = await _decision_context(db, order_id) if order else (None, None)
    decision = policies.can_customer_decide(order, customer_id, consultation, timeout)
    if not decision:
        raise ValidationError(decision.reason)
    decision = policies.can_cancel_after_timeout(order)
    if not decision:
        raise ValidationError(decision.reason)

    refund_amount = policies.refund_amount_for(order)
    payment_intent_id = order.payment_intent_id
    now = utcnow()
    consultation.customer_can_decide = False
    timeout.customer_decision = CustomerDecision.CANCEL.value
    timeout.customer_decided_at = now
    timeout.timeout_resolution = TimeoutResolution.CUSTOMER_CANCELLED.value

    order.refund_policy = RefundPolicy.FULLY_REFUNDABLE.value
    apply_status(order, OrderStatus.CANCELLED)
    order.cancellation_reason = TIMEOUT_CANCEL_REASON
    await close_consultation_gate(db, order.id)
    await crud.add_timeline_event(
        db, order.id, "customer_cancelled_after_timeout",
        f"Customer cancelled order after consultation timeout - Full refund of {money(refund_amount)} issued",
        {
            "consultation_id": consultation.id,
            "decision": CustomerDecision.CANCEL.value,
            "refund_amount": str(refund_amount),
            "refund_type": "full",
            "reason": "Provider did not respond to consultation request",
        },
    )
    await db.commit()

    if refund_amount <= 0 or not payment_intent_id:
        return ok(
            status=OrderStatus.CANCELLED.value, refund_amount=refund_amount,
            decision_recorded=True, refund_processed=False,
            message="Order cancelled - nothing was charged, so no refund is due",
        )

    refund = await refund_escrow(db, gateway, order_id, TIMEOUT_CANCEL_REASON, refund_amount)
    if not refund["success"]:
        logger.warning("Order %s cancelled after timeout but refund failed: %s", order_id, refund["error"])
        return failure(
            f"Order cancelled but refund failed: {refund['error']}",
            refund.get("error_type", GatewayError.error_type),
            status=OrderStatus.CANCELLED.value,
            refund_amount=refund_amount,
            decision_recorded=True,
            refund_processed=False,
        )
    return ok(
        status=OrderStatus.CANCELLED.value,
        refund_amount=refund["refunded_amount"],
        payment_intent_id=payment_intent_id,
        decision_recorded=True,
        refund_processed=True,
        message="Order cancelled - Full refund processed",
    )


@workflow_operation("Failed to load order status")
async def get_order_status(db: AsyncSession, order_id: str) -> dict:
    """Single read model for the whole workflow state of one order."""
    order = await crud.get_production_order(db, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    await db.refresh(order)

    consultation = await crud.get_latest_consultation(db, order_id)
    pending = await crud.get_pending_adjustment(db, order_id)
    timeouts = await crud.list_timeouts(db, order_id)
    timeline = await crud.list_timeline_events(db, order_id)

    return ok(
        order=ProductionOrderRead.model_validate(order).model_dump(),
        consultation=ConsultationRead.model_validate(consultation).model_dump() if consultation else None,
        pending_adjustment=PriceAdjustmentRead.model_validate(pending).model_dump() if pending else None,
        timeouts=[ConsultationTimeoutRead.model_validate(t).model_dump() for t in timeouts],
        timeline=[TimelineEventRead.model_validate(e).model_dump() for e in timeline],
        customer_can_decide=bool(
            consultation is not None
            and consultation.status == ConsultationStatus.TIMED_OUT
            and consultation.customer_can_decide
        ),
    )
