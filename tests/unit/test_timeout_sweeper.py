from datetime import timedelta
from decimal import Decimal

from custom_orders.db import crud
from custom_orders.models.base import utcnow
from custom_orders.services.consultations import waive_consultation
from custom_orders.services.price_adjustments import request_price_adjustment
from custom_orders.services.timeout_sweeper import check_consultation_timeouts


async def test_sweep_with_nothing_due(db, funded_order):
    await funded_order(consultation_requested=True)
    result = await check_consultation_timeouts(db)

    assert result["success"]
    assert result["expired_count"] == 0


async def test_sweep_expires_lapsed_deadlines(db, funded_order):
    consulting = await funded_order(consultation_requested=True)
    adjusting = await funded_order("100.00")
    await request_price_adjustment(db, adjusting.id, Decimal("125"), "Larger canvas")

    later = utcnow() + timedelta(hours=73)
    result = await check_consultation_timeouts(db, now=later)

    assert result == {"success": True, "expired_count": 2, "checked_at": later}

    (consultation,) = await crud.list_consultations(db, consulting.id)
    assert consultation.status == "timed_out"
    assert consultation.customer_can_decide is True

    (timeout,) = await crud.list_timeouts(db, adjusting.id)
    assert timeout.expired_at is not None
    assert "Provider may proceed at the original price" in timeout.action_taken
    # The adjustment itself stays open for the provider to act on.
    assert (await crud.get_pending_adjustment(db, adjusting.id)) is not None
    assert adjusting.status == "pending_order_received"


async def test_sweep_only_reaches_due_rows(db, funded_order):
    consulting = await funded_order(consultation_requested=True)
    adjusting = await funded_order("100.00")
    await request_price_adjustment(db, adjusting.id, Decimal("125"), "Larger canvas")

    # Past the 48h consultation window, inside the 72h adjustment window.
    result = await check_consultation_timeouts(db, now=utcnow() + timedelta(hours=50))

    assert result["expired_count"] == 1
    (timeout,) = await crud.list_timeouts(db, adjusting.id)
    assert timeout.expired_at is None
    (consultation,) = await crud.list_consultations(db, consulting.id)
    assert consultation.status == "timed_out"


async def test_sweep_is_idempotent(db, funded_order):
    await funded_order(consultation_requested=True)
    later = utcnow() + timedelta(hours=49)

    first = await check_consultation_timeouts(db, now=later)
    second = await check_consultation_timeouts(db, now=later)

    assert first["expired_count"] == 1
    assert second["expired_count"] == 0


async def test_sweep_skips_resolved_consultations(db, funded_order):
    order = await funded_order(consultation_requested=True)
    await waive_consultation(db, order.id, "prov_1")

    result = await check_consultation_timeouts(db, now=utcnow() + timedelta(hours=49))
    assert result["expired_count"] == 0
