from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from custom_orders.api.responses import unwrap
from custom_orders.db import crud
from custom_orders.dependencies import get_db, get_gateway
from custom_orders.schemas import (
    ConsultationCreate, ConsultationWaive, CustomerDecisionRequest, OrderInitialize,
    PriceAdjustmentCreate, ProductionOrderCreate, ProductionOrderRead, RefundRequest,
)
from custom_orders.models.enums import TimeoutType
from custom_orders.services import consultations, escrow, orders, price_adjustments
from custom_orders.services.payment_gateway import PaymentGateway

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", response_model=ProductionOrderRead, status_code=201)
async def create_order(body: ProductionOrderCreate, db: AsyncSession = Depends(get_db)):
    return await crud.create_production_order(
        db, body.customer_id, body.provider_id, body.description, body.final_price,
    )


@router.post("/{order_id}/initialize")
async def initialize_order(
    order_id: str,
    body: OrderInitialize,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    return unwrap(await orders.initialize_custom_service_order(
        db, gateway, order_id, body.amount, body.description,
        provider_requires_consultation=body.provider_requires_consultation,
        consultation_requested=body.consultation_requested,
        metadata=body.metadata,
    ))


@router.get("/{order_id}/status")
async def order_status(order_id: str, db: AsyncSession = Depends(get_db)):
    return unwrap(await orders.get_order_status(db, order_id))


@router.post("/{order_id}/mark-received")
async def mark_received(order_id: str, db: AsyncSession = Depends(get_db)):
    return unwrap(await orders.mark_order_received(db, order_id))


@router.post("/{order_id}/release")
async def release(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    return unwrap(await escrow.release_escrow_funds(db, gateway, order_id))


@router.post("/{order_id}/refund")
async def refund(
    order_id: str,
    body: RefundRequest,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    return unwrap(await escrow.refund_escrow(db, gateway, order_id, body.reason, body.refund_amount))


@router.get("/{order_id}/timeout-options")
async def timeout_options(order_id: str, customer_id: str, db: AsyncSession = Depends(get_db)):
    return unwrap(await orders.get_customer_timeout_options(db, order_id, customer_id))


@router.post("/{order_id}/timeout/proceed")
async def proceed_after_timeout(
    order_id: str, body: CustomerDecisionRequest, db: AsyncSession = Depends(get_db),
):
    return unwrap(await orders.customer_proceed_after_timeout(db, order_id, body.customer_id))


@router.post("/{order_id}/timeout/cancel")
async def cancel_after_timeout(
    order_id: str,
    body: CustomerDecisionRequest,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    return unwrap(await orders.customer_cancel_after_timeout(db, gateway, order_id, body.customer_id))


@router.post("/{order_id}/consultations", status_code=201)
async def request_consultation(
    order_id: str, body: ConsultationCreate, db: AsyncSession = Depends(get_db),
):
    return unwrap(await consultations.create_consultation(db, order_id, body.requested_by))


@router.post("/{order_id}/consultations/waive")
async def waive_consultation(
    order_id: str, body: ConsultationWaive, db: AsyncSession = Depends(get_db),
):
    return unwrap(await consultations.waive_consultation(db, order_id, body.waived_by))


@router.post("/{order_id}/timeouts/{timeout_type}")
async def expire_deadline(order_id: str, timeout_type: str, db: AsyncSession = Depends(get_db)):
    if timeout_type not in {t.value for t in TimeoutType}:
        raise HTTPException(400, f"Unknown timeout type: {timeout_type}")
    return unwrap(await consultations.handle_consultation_timeout(db, order_id, timeout_type))


@router.post("/{order_id}/price-adjustments", status_code=201)
async def request_price_adjustment(
    order_id: str, body: PriceAdjustmentCreate, db: AsyncSession = Depends(get_db),
):
    return unwrap(await price_adjustments.request_price_adjustment(
        db, order_id, body.adjusted_price, body.justification,
    ))
