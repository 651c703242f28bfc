"""FastAPI dependency providers for the DB session and payment gateway."""

from __future__ import annotations

from fastapi import Request

from custom_orders.db.engine import get_db  # noqa: F401
from custom_orders.services.payment_gateway import PaymentGateway


def get_gateway(request: Request) -> PaymentGateway:
    """The process-wide gateway created in the app lifespan."""
    return request.app.state.gateway
