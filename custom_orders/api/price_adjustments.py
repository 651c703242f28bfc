from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from custom_orders.api.responses import unwrap
from custom_orders.dependencies import get_db, get_gateway
from custom_orders.services import price_adjustments
from custom_orders.services.payment_gateway import PaymentGateway

router = APIRouter(prefix="/api/price-adjustments", tags=["price-adjustments"])


@router.post("/{adjustment_id}/approve")
async def approve(
    adjustment_id: str,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    return unwrap(await price_adjustments.approve_price_adjustment(db, gateway, adjustment_id))


@router.post("/{adjustment_id}/reject")
async def reject(adjustment_id: str, db: AsyncSession = Depends(get_db)):
    return unwrap(await price_adjustments.reject_price_adjustment(db, adjustment_id))
