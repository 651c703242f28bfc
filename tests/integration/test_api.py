"""Integration tests for API endpoints."""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from custom_orders.config import PaymentsConfig
from custom_orders.db.engine import get_db
from custom_orders.main import app
from custom_orders.models import Base
from custom_orders.services.payment_gateway import PaymentGateway


@pytest_asyncio.fixture
async def client(processor):
    """Test client over an in-memory database and a fake payment processor."""
    test_engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    test_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async def override_get_db():
        async with test_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    processor_client = httpx.AsyncClient(
        transport=httpx.MockTransport(processor.handler), base_url="http://payments.test",
    )
    app.state.gateway = PaymentGateway(PaymentsConfig(api_url="http://payments.test"), client=processor_client)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    await processor_client.aclose()
    await test_engine.dispose()


async def _create_order(client, **body) -> str:
    r = await client.post("/api/orders", json={"customer_id": "cust_1", "provider_id": "prov_1", **body})
    assert r.status_code == 201
    return r.json()["id"]


async def _initialize(client, order_id, amount="200.00", **flags) -> dict:
    r = await client.post(
        f"/api/orders/{order_id}/initialize",
        json={"amount": amount, "description": "Hand-painted sign", **flags},
    )
    assert r.status_code == 200, r.text
    return r.json()


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/health")
    assert r.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_create_order(client):
    r = await client.post("/api/orders", json={"customer_id": "cust_1", "provider_id": "prov_1", "description": "Quilt"})
    assert r.status_code == 201
    data = r.json()
    assert data["status"] == "pending_order_received"
    assert data["refund_policy"] == "fully_refundable"
    assert data["escrow_captured_at"] is None


@pytest.mark.asyncio
async def test_happy_path(client, processor):
    order_id = await _create_order(client)

    init = await _initialize(client, order_id)
    assert init["status"] == "pending_order_received"
    assert init["client_secret"] == "pi_test_1_secret"

    r = await client.post(f"/api/orders/{order_id}/mark-received")
    assert r.json()["status"] == "order_received"

    r = await client.post(f"/api/orders/{order_id}/release")
    assert r.status_code == 200
    assert r.json()["provider_amount"] == 170.0
    assert r.json()["platform_fee"] == 30.0
    assert processor.calls_to("release-custom-service-escrow")[0]["json"]["amount"] == 17000

    r = await client.get(f"/api/orders/{order_id}/status")
    status = r.json()
    assert status["order"]["escrow_released_at"] is not None
    assert [e["event_type"] for e in status["timeline"]] == ["escrow_captured", "order_received", "escrow_released"]

    r = await client.post(f"/api/orders/{order_id}/release")
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "Escrow already released"


@pytest.mark.asyncio
async def test_release_before_receipt_is_rejected(client):
    order_id = await _create_order(client)
    await _initialize(client, order_id)

    r = await client.post(f"/api/orders/{order_id}/release")
    assert r.status_code == 400
    assert r.json()["detail"]["error_type"] == "validation"


@pytest.mark.asyncio
async def test_unknown_order_is_404(client):
    r = await client.get("/api/orders/01UNKNOWN/status")
    assert r.status_code == 404
    assert r.json()["detail"]["error"] == "Order not found"


@pytest.mark.asyncio
async def test_declined_card_is_502(client, processor):
    order_id = await _create_order(client)
    processor.fail("create-custom-service-escrow", 402, "Your card was declined.")

    r = await client.post(
        f"/api/orders/{order_id}/initialize", json={"amount": "20.00", "description": "Sticker pack"},
    )
    assert r.status_code == 502
    assert r.json()["detail"]["error"] == "Your card was declined."


@pytest.mark.asyncio
async def test_initialize_rejects_non_positive_amount(client):
    order_id = await _create_order(client)
    r = await client.post(f"/api/orders/{order_id}/initialize", json={"amount": "0", "description": "x"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_consultation_flow(client):
    order_id = await _create_order(client)
    init = await _initialize(client, order_id, provider_requires_consultation=True)
    assert init["status"] == "pending_consultation"
    consultation_id = init["consultation_id"]

    r = await client.post(f"/api/orders/{order_id}/mark-received")
    assert r.status_code == 400

    r = await client.post(f"/api/consultations/{consultation_id}/start")
    assert r.json()["status"] == "in_progress"

    r = await client.post(f"/api/consultations/{consultation_id}/complete", json={"notes": "Matte finish"})
    assert r.json()["order_status"] == "pending_order_received"

    r = await client.post(f"/api/orders/{order_id}/mark-received")
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_waive_consultation(client):
    order_id = await _create_order(client)
    await _initialize(client, order_id, consultation_requested=True)

    r = await client.post(f"/api/orders/{order_id}/consultations/waive", json={"waived_by": "cust_1"})
    assert r.status_code == 200
    assert r.json()["order_status"] == "pending_order_received"


@pytest.mark.asyncio
async def test_request_consultation_after_funding(client):
    order_id = await _create_order(client)
    await _initialize(client, order_id)

    r = await client.post(f"/api/orders/{order_id}/consultations", json={"requested_by": "customer"})
    assert r.status_code == 201
    assert r.json()["consultation_id"]


@pytest.mark.asyncio
async def test_timeout_endpoints(client):
    order_id = await _create_order(client)
    await _initialize(client, order_id, consultation_requested=True)

    r = await client.post(f"/api/orders/{order_id}/timeouts/provider_response")
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "Consultation deadline has not passed yet"

    r = await client.post(f"/api/orders/{order_id}/timeouts/lunch_break")
    assert r.status_code == 400

    r = await client.get(f"/api/orders/{order_id}/timeout-options", params={"customer_id": "cust_1"})
    assert r.status_code == 200
    assert r.json()["can_proceed"] is False

    r = await client.post(f"/api/orders/{order_id}/timeout/proceed", json={"customer_id": "cust_1"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_price_adjustment_flow(client, processor):
    order_id = await _create_order(client)
    await _initialize(client, order_id, amount="100.00")

    r = await client.post(
        f"/api/orders/{order_id}/price-adjustments",
        json={"adjusted_price": "120.00", "justification": "Second coat of varnish"},
    )
    assert r.status_code == 201
    adjustment_id = r.json()["adjustment_id"]
    assert r.json()["adjustment_type"] == "increase"

    r = await client.post(f"/api/price-adjustments/{adjustment_id}/approve")
    assert r.status_code == 200
    assert r.json()["final_price"] == 120.0
    assert processor.calls_to("capture-price-difference")[0]["json"]["amount"] == 2000

    r = await client.post(f"/api/price-adjustments/{adjustment_id}/reject")
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_refund_endpoint(client, processor):
    order_id = await _create_order(client)
    await _initialize(client, order_id, amount="80.00")

    r = await client.post(f"/api/orders/{order_id}/refund", json={"reason": "Customer cancelled"})
    assert r.status_code == 200
    assert r.json()["refunded_amount"] == 80.0

    r = await client.get(f"/api/orders/{order_id}/status")
    assert r.json()["order"]["status"] == "cancelled"
