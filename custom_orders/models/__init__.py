"""SQLAlchemy ORM models for the custom-service escrow workflow."""

from custom_orders.models.base import Base
from custom_orders.models.production_order import ProductionOrder
from custom_orders.models.consultation import Consultation
from custom_orders.models.price_adjustment import PriceAdjustment
from custom_orders.models.consultation_timeout import ConsultationTimeout
from custom_orders.models.timeline_event import ProductionTimelineEvent
from custom_orders.models.wallet_transaction import WalletTransaction

__all__ = [
    "Base", "ProductionOrder", "Consultation", "PriceAdjustment",
    "ConsultationTimeout", "ProductionTimelineEvent", "WalletTransaction",
]
