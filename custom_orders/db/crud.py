"""CRUD operations for the escrow workflow tables.

Writes are staged on the session (add + flush); the calling workflow
operation commits once, so a single operation's local writes land together.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from custom_orders.models import (
    ProductionOrder, Consultation, PriceAdjustment, ConsultationTimeout,
    ProductionTimelineEvent, WalletTransaction,
)
from custom_orders.models.enums import (
    AdjustmentStatus, LIVE_CONSULTATION_STATUSES, OrderStatus,
)


# ── ProductionOrder ───────────────────────────────────────

async def create_production_order(
    db: AsyncSession, customer_id: str, provider_id: str,
    description: str = "", final_price: Decimal | None = None,
) -> ProductionOrder:
    order = ProductionOrder(
        customer_id=customer_id, provider_id=provider_id,
        description=description, final_price=final_price,
    )
    db.add(order)
    await db.commit()
    await db.refresh(order)
    return order


async def get_production_order(db: AsyncSession, order_id: str) -> ProductionOrder | None:
    return await db.get(ProductionOrder, order_id)


async def get_order_by_payment_intent(db: AsyncSession, payment_intent_id: str) -> ProductionOrder | None:
    result = await db.execute(
        select(ProductionOrder).where(ProductionOrder.payment_intent_id == payment_intent_id)
    )
    return result.scalars().first()


async def count_active_orders_for_provider(db: AsyncSession, provider_id: str) -> int:
    result = await db.execute(
        select(func.count(ProductionOrder.id)).where(
            ProductionOrder.provider_id == provider_id,
            ProductionOrder.escrow_captured_at.is_not(None),
            ProductionOrder.status.not_in([OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value]),
        )
    )
    return result.scalar_one()


async def count_orders_captured_since(db: AsyncSession, provider_id: str, since: datetime) -> int:
    result = await db.execute(
        select(func.count(ProductionOrder.id)).where(
            ProductionOrder.provider_id == provider_id,
            ProductionOrder.escrow_captured_at >= since,
        )
    )
    return result.scalar_one()


async def claim_escrow_release(db: AsyncSession, order_id: str, released_at: datetime) -> bool:
    """Stamp escrow_released_at only if no release or refund has landed yet."""
    result = await db.execute(
        update(ProductionOrder)
        .where(
            ProductionOrder.id == order_id,
            ProductionOrder.escrow_released_at.is_(None),
            ProductionOrder.escrow_refunded_at.is_(None),
        )
        .values(escrow_released_at=released_at)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


async def claim_escrow_refund(
    db: AsyncSession, order_id: str, refunded_at: datetime, reason: str,
) -> bool:
    """Stamp the refund and cancel the order unless it was released or refunded."""
    result = await db.execute(
        update(ProductionOrder)
        .where(
            ProductionOrder.id == order_id,
            ProductionOrder.escrow_released_at.is_(None),
            ProductionOrder.escrow_refunded_at.is_(None),
        )
        .values(
            escrow_refunded_at=refunded_at,
            status=OrderStatus.CANCELLED.value,
            cancellation_reason=reason,
        )
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


# ── Timeline ──────────────────────────────────────────────

async def add_timeline_event(
    db: AsyncSession, order_id: str, event_type: str,
    description: str, metadata: dict | None = None,
) -> ProductionTimelineEvent:
    event = ProductionTimelineEvent(
        production_order_id=order_id, event_type=event_type,
        description=description, event_metadata=metadata or {},
    )
    db.add(event)
    await db.flush()
    return event


async def list_timeline_events(db: AsyncSession, order_id: str) -> list[ProductionTimelineEvent]:
    result = await db.execute(
        select(ProductionTimelineEvent)
        .where(ProductionTimelineEvent.production_order_id == order_id)
        .order_by(ProductionTimelineEvent.created_at, ProductionTimelineEvent.id)
    )
    return list(result.scalars().all())


# ── Consultation ─────────────────────────────────────────

async def create_consultation(
    db: AsyncSession, order: ProductionOrder, requested_by: str, timeout_at: datetime,
) -> Consultation:
    consultation = Consultation(
        production_order_id=order.id,
        customer_id=order.customer_id,
        provider_id=order.provider_id,
        requested_by=requested_by,
        timeout_at=timeout_at,
    )
    db.add(consultation)
    await db.flush()
    return consultation


async def get_consultation(db: AsyncSession, consultation_id: str) -> Consultation | None:
    return await db.get(Consultation, consultation_id)


async def list_consultations(db: AsyncSession, order_id: str) -> list[Consultation]:
    result = await db.execute(
        select(Consultation)
        .where(Consultation.production_order_id == order_id)
        .order_by(Consultation.created_at, Consultation.id)
    )
    return list(result.scalars().all())


async def get_latest_consultation(db: AsyncSession, order_id: str) -> Consultation | None:
    result = await db.execute(
        select(Consultation)
        .where(Consultation.production_order_id == order_id)
        .order_by(Consultation.created_at.desc(), Consultation.id.desc())
        .limit(1)
    )
    return result.scalars().first()


async def get_live_consultation(db: AsyncSession, order_id: str) -> Consultation | None:
    result = await db.execute(
        select(Consultation)
        .where(
            Consultation.production_order_id == order_id,
            Consultation.status.in_(list(LIVE_CONSULTATION_STATUSES)),
        )
        .order_by(Consultation.created_at.desc(), Consultation.id.desc())
        .limit(1)
    )
    return result.scalars().first()


async def get_decidable_consultation(db: AsyncSession, order_id: str) -> Consultation | None:
    """Most recent timed-out consultation that hands the decision to the customer."""
    result = await db.execute(
        select(Consultation)
        .where(
            Consultation.production_order_id == order_id,
            Consultation.status == "timed_out",
            Consultation.customer_can_decide.is_(True),
        )
        .order_by(Consultation.created_at.desc(), Consultation.id.desc())
        .limit(1)
    )
    return result.scalars().first()


# ── PriceAdjustment ──────────────────────────────────────

async def create_price_adjustment(db: AsyncSession, order: ProductionOrder, **fields) -> PriceAdjustment:
    adjustment = PriceAdjustment(
        production_order_id=order.id,
        provider_id=order.provider_id,
        customer_id=order.customer_id,
        **fields,
    )
    db.add(adjustment)
    await db.flush()
    return adjustment


async def get_price_adjustment(db: AsyncSession, adjustment_id: str) -> PriceAdjustment | None:
    return await db.get(PriceAdjustment, adjustment_id)


async def get_pending_adjustment(db: AsyncSession, order_id: str) -> PriceAdjustment | None:
    result = await db.execute(
        select(PriceAdjustment)
        .where(
            PriceAdjustment.production_order_id == order_id,
            PriceAdjustment.status == AdjustmentStatus.PENDING.value,
        )
        .order_by(PriceAdjustment.created_at.desc())
        .limit(1)
    )
    return result.scalars().first()


async def claim_adjustment_resolution(
    db: AsyncSession, adjustment_id: str, status: str, responded_at: datetime, **values,
) -> bool:
    """Move an adjustment out of pending; False if another caller already resolved it."""
    result = await db.execute(
        update(PriceAdjustment)
        .where(
            PriceAdjustment.id == adjustment_id,
            PriceAdjustment.status == AdjustmentStatus.PENDING.value,
        )
        .values(status=status, customer_responded_at=responded_at, **values)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


# ── ConsultationTimeout ──────────────────────────────────

async def create_timeout(
    db: AsyncSession, order_id: str, timeout_type: str, deadline_at: datetime,
    consultation_id: str | None = None, price_adjustment_id: str | None = None,
) -> ConsultationTimeout:
    timeout = ConsultationTimeout(
        production_order_id=order_id,
        timeout_type=timeout_type,
        deadline_at=deadline_at,
        consultation_id=consultation_id,
        price_adjustment_id=price_adjustment_id,
    )
    db.add(timeout)
    await db.flush()
    return timeout


async def get_open_timeout(
    db: AsyncSession, order_id: str, timeout_types: Iterable[str],
    consultation_id: str | None = None, price_adjustment_id: str | None = None,
) -> ConsultationTimeout | None:
    """Latest timeout of the given types that has neither expired nor been resolved."""
    stmt = select(ConsultationTimeout).where(
        ConsultationTimeout.production_order_id == order_id,
        ConsultationTimeout.timeout_type.in_(list(timeout_types)),
        ConsultationTimeout.expired_at.is_(None),
        ConsultationTimeout.timeout_resolution.is_(None),
    )
    if consultation_id is not None:
        stmt = stmt.where(ConsultationTimeout.consultation_id == consultation_id)
    if price_adjustment_id is not None:
        stmt = stmt.where(ConsultationTimeout.price_adjustment_id == price_adjustment_id)
    result = await db.execute(stmt.order_by(ConsultationTimeout.created_at.desc()).limit(1))
    return result.scalars().first()


async def get_pending_decision_timeout(db: AsyncSession, consultation_id: str) -> ConsultationTimeout | None:
    result = await db.execute(
        select(ConsultationTimeout).where(
            ConsultationTimeout.consultation_id == consultation_id,
            ConsultationTimeout.timeout_type == "provider_response",
            ConsultationTimeout.customer_decision == "pending",
        )
    )
    return result.scalars().first()


async def list_timeouts(db: AsyncSession, order_id: str) -> list[ConsultationTimeout]:
    result = await db.execute(
        select(ConsultationTimeout)
        .where(ConsultationTimeout.production_order_id == order_id)
        .order_by(ConsultationTimeout.created_at, ConsultationTimeout.id)
    )
    return list(result.scalars().all())


async def list_unresolved_timeouts(db: AsyncSession, order_id: str) -> list[ConsultationTimeout]:
    """Timeouts still running or still waiting on a decision."""
    result = await db.execute(
        select(ConsultationTimeout)
        .where(
            ConsultationTimeout.production_order_id == order_id,
            or_(
                ConsultationTimeout.timeout_resolution.is_(None),
                ConsultationTimeout.timeout_resolution == "pending",
            ),
        )
    )
    return list(result.scalars().all())


async def list_due_timeouts(db: AsyncSession, now: datetime) -> list[ConsultationTimeout]:
    """Open timeouts whose deadline has passed, oldest first."""
    result = await db.execute(
        select(ConsultationTimeout)
        .where(
            ConsultationTimeout.expired_at.is_(None),
            ConsultationTimeout.timeout_resolution.is_(None),
            ConsultationTimeout.deadline_at <= now,
        )
        .order_by(ConsultationTimeout.deadline_at)
    )
    return list(result.scalars().all())


# ── WalletTransaction ────────────────────────────────────

async def create_wallet_credit(
    db: AsyncSession, user_id: str, amount: Decimal, description: str, reference_id: str,
) -> WalletTransaction:
    txn = WalletTransaction(
        user_id=user_id, type="credit", amount=amount, status="completed",
        description=description, reference_type="production_order",
        reference_id=reference_id,
    )
    db.add(txn)
    await db.flush()
    return txn


async def list_wallet_transactions(db: AsyncSession, reference_id: str) -> list[WalletTransaction]:
    result = await db.execute(
        select(WalletTransaction).where(WalletTransaction.reference_id == reference_id)
    )
    return list(result.scalars().all())
