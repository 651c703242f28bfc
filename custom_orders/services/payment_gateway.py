"""HTTP client for the payment processor's escrow endpoints.

Amounts are decimal currency units everywhere in the workflow and cross
this boundary as integer minor units only.
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP

import httpx

from custom_orders.config import PaymentsConfig, get_settings
from custom_orders.services.results import GatewayError

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def to_minor_units(amount: Decimal | int | float | str) -> int:
    """Dollars -> cents, rounded half-up (x * 100, round)."""
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(minor: int) -> Decimal:
    return (Decimal(minor) / 100).quantize(_CENT)


def quantize_money(amount: Decimal | int | float | str) -> Decimal:
    return Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP)


class PaymentGateway:
    """Thin async wrapper over the processor's escrow edge functions.

    No retries: a failed call raises ``GatewayError`` and the caller leaves
    local state untouched. Each call sends an ``Idempotency-Key`` so a retried
    operation is deduplicated by the processor.
    """

    def __init__(self, config: PaymentsConfig | None = None, client: httpx.AsyncClient | None = None):
        self._config = config or get_settings().payments
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._config.api_url,
            timeout=self._config.timeout_seconds,
        )

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, path: str, payload: dict, idempotency_key: str, default_error: str) -> dict:
        headers = {
            "Authorization": f"Bearer {self._config.api_key}",
            "Idempotency-Key": idempotency_key,
        }
        try:
            response = await self._client.post(path, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Payment processor unreachable on %s: %s", path, exc)
            raise GatewayError(default_error) from exc

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = None

        if response.is_error:
            message = body.get("error") if isinstance(body, dict) else None
            logger.warning("Payment processor rejected %s (%s): %s", path, response.status_code, message)
            raise GatewayError(message or default_error, status_code=response.status_code)
        if not isinstance(body, dict):
            raise GatewayError(f"{default_error}: malformed processor response", status_code=response.status_code)
        return body

    async def create_escrow_payment(
        self, order_id: str, customer_id: str, provider_id: str,
        amount: Decimal, description: str, metadata: dict | None = None,
    ) -> dict:
        """Charge the customer and hold the funds. Returns paymentIntentId + clientSecret."""
        body = await self._post(
            "/create-custom-service-escrow",
            {
                "productionOrderId": order_id,
                "customerId": customer_id,
                "providerId": provider_id,
                "amount": to_minor_units(amount),
                "description": description,
                "metadata": {
                    **(metadata or {}),
                    "production_order_id": order_id,
                    "order_type": "custom_service",
                },
            },
            idempotency_key=f"escrow-create-{order_id}",
            default_error="Failed to create escrow payment",
        )
        if not body.get("paymentIntentId"):
            raise GatewayError("Failed to create escrow payment: no payment intent returned")
        return {"payment_intent_id": body["paymentIntentId"], "client_secret": body.get("clientSecret")}

    async def capture_price_difference(
        self, order_id: str, customer_id: str, amount: Decimal,
        description: str, adjustment_id: str,
    ) -> dict:
        body = await self._post(
            "/capture-price-difference",
            {
                "productionOrderId": order_id,
                "customerId": customer_id,
                "amount": to_minor_units(amount),
                "description": description,
            },
            idempotency_key=f"adjustment-capture-{adjustment_id}",
            default_error="Failed to capture price difference",
        )
        return {"payment_intent_id": body.get("paymentIntentId")}

    async def release_escrow(self, order_id: str, provider_id: str, provider_amount: Decimal) -> None:
        await self._post(
            "/release-custom-service-escrow",
            {
                "productionOrderId": order_id,
                "providerId": provider_id,
                "amount": to_minor_units(provider_amount),
            },
            idempotency_key=f"escrow-release-{order_id}",
            default_error="Failed to release escrow funds",
        )

    async def refund_escrow(
        self, order_id: str, payment_intent_id: str, amount: Decimal, reason: str,
        idempotency_key: str | None = None,
    ) -> None:
        await self._post(
            "/refund-custom-service-escrow",
            {
                "productionOrderId": order_id,
                "paymentIntentId": payment_intent_id,
                "amount": to_minor_units(amount),
                "reason": reason,
            },
            idempotency_key=idempotency_key or f"escrow-refund-{order_id}",
            default_error="Failed to process refund",
        )

    async def get_payment_status(self, payment_intent_id: str) -> dict:
        body = await self._post(
            "/check-payment-intent-status",
            {"paymentIntentId": payment_intent_id},
            idempotency_key=f"status-{payment_intent_id}",
            default_error="Failed to check payment status",
        )
        return {"status": body.get("status"), "expires_at": body.get("expiresAt")}
