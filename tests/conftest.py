from __future__ import annotations

import json
from datetime import timedelta
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from custom_orders.config import PaymentsConfig
from custom_orders.db import crud
from custom_orders.models import Base
from custom_orders.models.base import utcnow
from custom_orders.services.orders import initialize_custom_service_order
from custom_orders.services.payment_gateway import PaymentGateway

CUSTOMER_ID = "cust_1"
PROVIDER_ID = "prov_1"
PROCESSOR_URL = "http://payments.test/functions/v1"


class FakeProcessor:
    """Records every call to the escrow endpoints and answers like the processor."""

    def __init__(self):
        self.calls: list[dict] = []
        self.failures: dict[str, tuple[int, dict]] = {}
        self._intents = 0

    def fail(self, endpoint: str, status: int = 402, error: str = "Your card was declined."):
        self.failures[endpoint] = (status, {"error": error})

    def calls_to(self, endpoint: str) -> list[dict]:
        return [c for c in self.calls if c["endpoint"] == endpoint]

    def handler(self, request: httpx.Request) -> httpx.Response:
        endpoint = request.url.path.rsplit("/", 1)[-1]
        self.calls.append({
            "endpoint": endpoint,
            "json": json.loads(request.content or b"{}"),
            "idempotency_key": request.headers.get("idempotency-key"),
            "authorization": request.headers.get("authorization"),
        })
        if endpoint in self.failures:
            status, body = self.failures[endpoint]
            return httpx.Response(status, json=body)

        if endpoint in ("create-custom-service-escrow", "capture-price-difference"):
            self._intents += 1
            return httpx.Response(200, json={
                "paymentIntentId": f"pi_test_{self._intents}",
                "clientSecret": f"pi_test_{self._intents}_secret",
            })
        if endpoint == "check-payment-intent-status":
            return httpx.Response(200, json={"status": "succeeded", "expiresAt": None})
        return httpx.Response(200, json={"success": True})


@pytest_asyncio.fixture
async def db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def processor():
    return FakeProcessor()


@pytest_asyncio.fixture
async def gateway(processor):
    client = httpx.AsyncClient(transport=httpx.MockTransport(processor.handler), base_url=PROCESSOR_URL)
    yield PaymentGateway(PaymentsConfig(api_url=PROCESSOR_URL, api_key="sk_test_123"), client=client)
    await client.aclose()


@pytest.fixture
def new_order(db):
    async def _make(final_price: Decimal | None = None):
        return await crud.create_production_order(
            db, CUSTOMER_ID, PROVIDER_ID, "Embroidered team jackets", final_price,
        )
    return _make


@pytest.fixture
def funded_order(db, gateway, new_order):
    """An order whose escrow has been captured through initialize."""
    async def _make(amount: str = "100.00", **kwargs):
        order = await new_order()
        result = await initialize_custom_service_order(
            db, gateway, order.id, Decimal(amount), "Embroidered team jackets", **kwargs,
        )
        assert result["success"], result
        return order
    return _make


@pytest.fixture
def lapse_deadlines(db):
    """Move every deadline of an order into the past."""
    async def _lapse(order_id: str):
        for timeout in await crud.list_timeouts(db, order_id):
            timeout.deadline_at = utcnow() - timedelta(minutes=5)
        await db.commit()
    return _lapse
