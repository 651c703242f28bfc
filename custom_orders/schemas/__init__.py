"""Pydantic request/response schemas."""

from custom_orders.schemas.order import (
    CustomerDecisionRequest, OrderInitialize, ProductionOrderCreate, ProductionOrderRead, RefundRequest,
)
from custom_orders.schemas.consultation import (
    ConsultationComplete, ConsultationCreate, ConsultationRead, ConsultationWaive,
)
from custom_orders.schemas.price_adjustment import PriceAdjustmentCreate, PriceAdjustmentRead
from custom_orders.schemas.timeout import ConsultationTimeoutRead
from custom_orders.schemas.timeline_event import TimelineEventRead

__all__ = [
    "ProductionOrderCreate", "ProductionOrderRead", "OrderInitialize",
    "RefundRequest", "CustomerDecisionRequest",
    "ConsultationCreate", "ConsultationComplete", "ConsultationWaive", "ConsultationRead",
    "PriceAdjustmentCreate", "PriceAdjustmentRead",
    "ConsultationTimeoutRead",
    "TimelineEventRead",
]
