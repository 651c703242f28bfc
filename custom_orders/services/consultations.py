"""Consultation gate: the optional customer/provider handshake before production.

A consultation lives for ``consultation_response_hours`` (48h). The provider
completes or waives it; if the deadline passes first, the customer gains the
decision (proceed at the original price or cancel for a full refund).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from custom_orders.config import get_settings
from custom_orders.db import crud
from custom_orders.models import ProductionOrder, Consultation
from custom_orders.models.base import as_utc, utcnow
from custom_orders.models.enums import (
    ConsultationRequester, ConsultationStatus, CUSTOMER_TIMEOUT_TYPES, CustomerDecision,
    LIVE_CONSULTATION_STATUSES, OrderStatus, TimeoutResolution, TimeoutType,
)
from custom_orders.services.lifecycle import apply_status
from custom_orders.services.results import (
    ConflictError, NotFoundError, ValidationError, ok, workflow_operation,
)

logger = logging.getLogger(__name__)

_settings = get_settings()

PROVIDER_TIMEOUT_POLICY = (
    "Provider did not respond within {hours} hours. "
    "Customer may proceed at original price or cancel for full refund."
)
CUSTOMER_TIMEOUT_POLICY = (
    "Customer did not respond to the price adjustment within {hours} hours. "
    "Provider may proceed at the original price or cancel the order."
)


async def open_consultation(
    db: AsyncSession, order: ProductionOrder, requested_by: str,
) -> Consultation:
    """Stage a pending consultation, its provider deadline and timeline entry."""
    if requested_by not in {r.value for r in ConsultationRequester}:
        raise ValidationError(f"Unknown consultation requester: {requested_by}")
    if await crud.get_live_consultation(db, order.id) is not None:
        raise ConflictError("A consultation is already open for this order")

    now = utcnow()
    hours = _settings.workflow.consultation_response_hours
    deadline = now + timedelta(hours=hours)

    consultation = await crud.create_consultation(db, order, requested_by, deadline)
    order.consultation_timer_started_at = now
    order.provider_response_deadline = deadline
    apply_status(order, OrderStatus.PENDING_CONSULTATION)

    await crud.create_timeout(
        db, order.id, TimeoutType.PROVIDER_RESPONSE.value, deadline,
        consultation_id=consultation.id,
    )
    who = "Customer requested" if requested_by == ConsultationRequester.CUSTOMER else "Provider requires"
    await crud.add_timeline_event(
        db, order.id, "consultation_requested",
        f"{who} a consultation. Provider has {hours} hours to respond.",
        {"consultation_id": consultation.id, "requested_by": requested_by, "deadline": deadline.isoformat()},
    )
    return consultation


@workflow_operation("Failed to create consultation")
async def create_consultation(db: AsyncSession, order_id: str, requested_by: str) -> dict:
    order = await crud.get_production_order(db, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if order.status not in (OrderStatus.PENDING_CONSULTATION, OrderStatus.PENDING_ORDER_RECEIVED):
        raise ValidationError("Consultations can only be opened before the order is received")

    consultation = await open_consultation(db, order, requested_by)
    await db.commit()
    return ok(consultation_id=consultation.id, timeout_at=consultation.timeout_at)


@workflow_operation("Failed to start consultation")
async def start_consultation(db: AsyncSession, consultation_id: str) -> dict:
    consultation = await crud.get_consultation(db, consultation_id)
    if consultation is None:
        raise NotFoundError("Consultation not found")
    if consultation.status != ConsultationStatus.PENDING:
        raise ConflictError(f"Consultation is already {consultation.status}")

    consultation.status = ConsultationStatus.IN_PROGRESS.value
    consultation.started_at = utcnow()
    await _close_provider_timeout(db, consultation, "Provider started the consultation")
    await crud.add_timeline_event(
        db, consultation.production_order_id, "consultation_started",
        "Consultation started", {"consultation_id": consultation.id},
    )
    await db.commit()
    return ok(consultation_id=consultation.id, status=consultation.status)


async def _close_provider_timeout(db: AsyncSession, consultation: Consultation, action: str) -> None:
    timeout = await crud.get_open_timeout(
        db, consultation.production_order_id, [TimeoutType.PROVIDER_RESPONSE.value],
        consultation_id=consultation.id,
    )
    if timeout is not None:
        timeout.timeout_resolution = TimeoutResolution.PROVIDER_RESPONDED.value
        timeout.action_taken = action


def _release_gate(order: ProductionOrder) -> None:
    if order.status == OrderStatus.PENDING_CONSULTATION:
        apply_status(order, OrderStatus.PENDING_ORDER_RECEIVED)


@workflow_operation("Failed to complete consultation")
async def complete_consultation(db: AsyncSession, consultation_id: str, notes: str | None = None) -> dict:
    consultation = await crud.get_consultation(db, consultation_id)
    if consultation is None:
        raise NotFoundError("Consultation not found")
    if consultation.status not in LIVE_CONSULTATION_STATUSES:
        raise ConflictError(f"Consultation is already {consultation.status}")
    order = await crud.get_production_order(db, consultation.production_order_id)

    now = utcnow()
    consultation.status = ConsultationStatus.COMPLETED.value
    consultation.completed_at = now
    if notes:
        consultation.notes = notes
    order.consultation_completed_at = now
    _release_gate(order)
    await _close_provider_timeout(db, consultation, "Consultation completed")
    await crud.add_timeline_event(
        db, order.id, "consultation_completed",
        "Consultation completed. Order is ready to be marked as received.",
        {"consultation_id": consultation.id},
    )
    await db.commit()
    return ok(consultation_id=consultation.id, order_status=order.status)


@workflow_operation("Failed to waive consultation")
async def waive_consultation(db: AsyncSession, order_id: str, waived_by: str) -> dict:
    order = await crud.get_production_order(db, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    consultation = await crud.get_live_consultation(db, order_id)
    if consultation is None:
        raise ValidationError("No open consultation to waive")

    consultation.status = ConsultationStatus.WAIVED.value
    consultation.waived_at = utcnow()
    consultation.waived_by = waived_by
    order.consultation_waived = True
    _release_gate(order)
    await _close_provider_timeout(db, consultation, f"Consultation waived by {waived_by}")
    await crud.add_timeline_event(
        db, order.id, "consultation_waived",
        "Consultation requirement waived",
        {"consultation_id": consultation.id, "waived_by": waived_by},
    )
    await db.commit()
    return ok(consultation_id=consultation.id, order_status=order.status)


async def expire_timeout(
    db: AsyncSession, order_id: str, timeout_type: str, now: datetime | None = None,
) -> dict:
    """Stamp the open timeout of ``timeout_type`` for ``order_id`` (no commit).

    Never changes the order's status: the deadline only hands a decision to
    the other party.
    """
    now = now or utcnow()
    if timeout_type == TimeoutType.PROVIDER_RESPONSE:
        return await _expire_provider_timeout(db, order_id, now)
    if timeout_type in CUSTOMER_TIMEOUT_TYPES:
        return await _expire_customer_timeout(db, order_id, now)
    raise ValidationError(f"Unknown timeout type: {timeout_type}")


async def _expire_provider_timeout(db: AsyncSession, order_id: str, now: datetime) -> dict:
    timeout = await crud.get_open_timeout(db, order_id, [TimeoutType.PROVIDER_RESPONSE.value])
    if timeout is None:
        raise ValidationError("No open provider response deadline for this order")
    if as_utc(timeout.deadline_at) > now:
        raise ValidationError("Consultation deadline has not passed yet")

    consultation = None
    if timeout.consultation_id:
        consultation = await crud.get_consultation(db, timeout.consultation_id)
    if consultation is None or consultation.status != ConsultationStatus.PENDING:
        raise ConflictError("Consultation not found or not pending")
    order = await crud.get_production_order(db, order_id)

    policy = PROVIDER_TIMEOUT_POLICY.format(hours=_settings.workflow.consultation_response_hours)
    consultation.status = ConsultationStatus.TIMED_OUT.value
    consultation.customer_can_decide = True
    timeout.expired_at = now
    timeout.customer_decision = CustomerDecision.PENDING.value
    timeout.timeout_resolution = TimeoutResolution.PENDING.value
    timeout.action_taken = policy

    await crud.add_timeline_event(
        db, order_id, "consultation_timed_out",
        f"Consultation timed out - {policy}",
        {
            "consultation_id": consultation.id,
            "timeout_type": TimeoutType.PROVIDER_RESPONSE.value,
            "customer_can_decide": True,
            "original_price": str(order.escrow_amount),
            "refund_policy": "fully_refundable",
        },
    )
    logger.info("Consultation %s for order %s timed out", consultation.id, order_id)
    return ok(
        timeout_id=timeout.id, consultation_id=consultation.id,
        customer_can_decide=True, message=policy,
    )


async def _expire_customer_timeout(db: AsyncSession, order_id: str, now: datetime) -> dict:
    timeout = await crud.get_open_timeout(db, order_id, CUSTOMER_TIMEOUT_TYPES)
    if timeout is None:
        raise ValidationError("No open customer response deadline for this order")
    if as_utc(timeout.deadline_at) > now:
        raise ValidationError("Customer response deadline has not passed yet")

    policy = CUSTOMER_TIMEOUT_POLICY.format(hours=_settings.workflow.price_adjustment_response_hours)
    timeout.expired_at = now
    timeout.action_taken = policy
    await crud.add_timeline_event(
        db, order_id, "price_adjustment_timed_out",
        f"Price adjustment response timed out - {policy}",
        {"timeout_type": timeout.timeout_type, "price_adjustment_id": timeout.price_adjustment_id},
    )
    logger.info("Customer response deadline for order %s expired", order_id)
    return ok(timeout_id=timeout.id, price_adjustment_id=timeout.price_adjustment_id, message=policy)


@workflow_operation("Failed to handle consultation timeout")
async def handle_consultation_timeout(
    db: AsyncSession, order_id: str, timeout_type: str, now: datetime | None = None,
) -> dict:
    if await crud.get_production_order(db, order_id) is None:
        raise NotFoundError("Order not found")
    result = await expire_timeout(db, order_id, timeout_type, now)
    await db.commit()
    return result
