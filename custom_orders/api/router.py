"""Central router that includes all sub-routers."""

from fastapi import APIRouter

from custom_orders.api.orders import router as orders_router
from custom_orders.api.consultations import router as consultations_router
from custom_orders.api.price_adjustments import router as price_adjustments_router

api_router = APIRouter()
api_router.include_router(orders_router)
api_router.include_router(consultations_router)
api_router.include_router(price_adjustments_router)
