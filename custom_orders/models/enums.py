"""Lifecycle vocabularies stored as plain strings."""

from __future__ import annotations

from enum import Enum


class OrderStatus(str, Enum):
    PENDING_CONSULTATION = "pending_consultation"
    PENDING_ORDER_RECEIVED = "pending_order_received"
    ORDER_RECEIVED = "order_received"
    PROOFING = "proofing"
    APPROVED = "approved"
    IN_PRODUCTION = "in_production"
    QUALITY_CHECK = "quality_check"
    READY_FOR_DELIVERY = "ready_for_delivery"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


PRE_RECEIPT_STATUSES = frozenset({
    OrderStatus.PENDING_CONSULTATION.value,
    OrderStatus.PENDING_ORDER_RECEIVED.value,
})

# Statuses from which escrowed funds may be paid out.
RELEASABLE_STATUSES = frozenset({
    OrderStatus.ORDER_RECEIVED.value,
    OrderStatus.PROOFING.value,
    OrderStatus.APPROVED.value,
    OrderStatus.IN_PRODUCTION.value,
    OrderStatus.QUALITY_CHECK.value,
    OrderStatus.READY_FOR_DELIVERY.value,
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
    OrderStatus.COMPLETED.value,
})


class RefundPolicy(str, Enum):
    FULLY_REFUNDABLE = "fully_refundable"
    PARTIALLY_REFUNDABLE = "partially_refundable"
    NON_REFUNDABLE = "non_refundable"


class ConsultationStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    WAIVED = "waived"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


LIVE_CONSULTATION_STATUSES = frozenset({
    ConsultationStatus.PENDING.value,
    ConsultationStatus.IN_PROGRESS.value,
})


class ConsultationRequester(str, Enum):
    CUSTOMER = "customer"
    PROVIDER_REQUIRED = "provider_required"


class AdjustmentType(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


class AdjustmentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TimeoutType(str, Enum):
    PROVIDER_RESPONSE = "provider_response"
    CUSTOMER_RESPONSE = "customer_response"
    PRICE_ADJUSTMENT_RESPONSE = "price_adjustment_response"


# Both names refer to the customer's clock on a pending price adjustment.
CUSTOMER_TIMEOUT_TYPES = frozenset({
    TimeoutType.CUSTOMER_RESPONSE.value,
    TimeoutType.PRICE_ADJUSTMENT_RESPONSE.value,
})


class CustomerDecision(str, Enum):
    PENDING = "pending"
    PROCEED = "proceed"
    CANCEL = "cancel"


class TimeoutResolution(str, Enum):
    PENDING = "pending"
    CUSTOMER_PROCEEDED = "customer_proceeded"
    CUSTOMER_CANCELLED = "customer_cancelled"
    PROVIDER_RESPONDED = "provider_responded"
    CUSTOMER_RESPONDED = "customer_responded"
    ORDER_CANCELLED = "order_cancelled"
