"""Deprecated entry points from the authorize-then-capture payment model.

Each name forwards to the escrow workflow operation that replaced it. New
callers should use the targets directly.
"""

from __future__ import annotations

import logging
import warnings
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from custom_orders.db import crud
from custom_orders.services.escrow import refund_escrow
from custom_orders.services.orders import mark_order_received
from custom_orders.services.payment_gateway import PaymentGateway
from custom_orders.services.price_adjustments import approve_price_adjustment, request_price_adjustment
from custom_orders.services.results import GatewayError, NotFoundError, failure, ok

logger = logging.getLogger(__name__)


def _deprecated(old: str, new: str) -> None:
    warnings.warn(f"{old} is deprecated; use {new}", DeprecationWarning, stacklevel=3)


async def capture_payment(db: AsyncSession, order_id: str) -> dict:
    """Escrow is captured up front now; receipt is what locks the order."""
    _deprecated("capture_payment", "mark_order_received")
    return await mark_order_received(db, order_id)


async def propose_price(db: AsyncSession, order_id: str, adjusted_price: Decimal, justification: str) -> dict:
    _deprecated("propose_price", "request_price_adjustment")
    return await request_price_adjustment(db, order_id, adjusted_price, justification)


async def approve_price(db: AsyncSession, gateway: PaymentGateway, order_id: str) -> dict:
    _deprecated("approve_price", "approve_price_adjustment")
    pending = await crud.get_pending_adjustment(db, order_id)
    if pending is None:
        return failure("No pending price adjustment for this order", NotFoundError.error_type)
    return await approve_price_adjustment(db, gateway, pending.id)


async def cancel_authorization(db: AsyncSession, gateway: PaymentGateway, order_id: str, reason: str) -> dict:
    _deprecated("cancel_authorization", "refund_escrow")
    order = await crud.get_production_order(db, order_id)
    if order is None:
        return failure("Order not found", NotFoundError.error_type)
    # An order that was never charged cancels without touching the processor.
    amount = None if order.escrow_captured_at is not None else Decimal("0.00")
    return await refund_escrow(db, gateway, order_id, reason, amount)


async def check_authorization_status(gateway: PaymentGateway, payment_intent_id: str) -> dict:
    _deprecated("check_authorization_status", "PaymentGateway.get_payment_status")
    try:
        status = await gateway.get_payment_status(payment_intent_id)
    except GatewayError as exc:
        logger.warning("Payment status lookup for %s failed: %s", payment_intent_id, exc.message)
        return failure(exc.message, exc.error_type)
    return ok(**status)


LEGACY_ALIASES = {
    "capture_payment": capture_payment,
    "propose_price": propose_price,
    "approve_price": approve_price,
    "cancel_authorization": cancel_authorization,
    "check_authorization_status": check_authorization_status,
}
