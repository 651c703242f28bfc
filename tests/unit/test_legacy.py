from decimal import Decimal

import pytest

from custom_orders.services import legacy


def test_alias_table():
    assert set(legacy.LEGACY_ALIASES) == {
        "capture_payment", "propose_price", "approve_price",
        "cancel_authorization", "check_authorization_status",
    }


async def test_capture_payment_marks_received(db, funded_order):
    order = await funded_order()
    with pytest.warns(DeprecationWarning):
        result = await legacy.capture_payment(db, order.id)

    assert result == {"success": True, "status": "order_received"}


async def test_propose_and_approve_price(db, gateway, funded_order):
    order = await funded_order("100.00")
    with pytest.warns(DeprecationWarning):
        proposed = await legacy.propose_price(db, order.id, Decimal("110"), "Rush delivery")
    with pytest.warns(DeprecationWarning):
        approved = await legacy.approve_price(db, gateway, order.id)

    assert proposed["success"]
    assert approved["adjustment_id"] == proposed["adjustment_id"]
    assert order.final_price == Decimal("110.00")


async def test_approve_price_without_pending_adjustment(db, gateway, funded_order):
    order = await funded_order()
    with pytest.warns(DeprecationWarning):
        result = await legacy.approve_price(db, gateway, order.id)
    assert result["error_type"] == "not_found"


async def test_cancel_authorization_before_capture_is_free(db, gateway, processor, new_order):
    order = await new_order(final_price=Decimal("60.00"))
    with pytest.warns(DeprecationWarning):
        result = await legacy.cancel_authorization(db, gateway, order.id, "Customer cancelled")

    assert result == {"success": True, "refunded_amount": Decimal("0.00")}
    assert processor.calls == []


async def test_cancel_authorization_after_capture_refunds(db, gateway, processor, funded_order):
    order = await funded_order("60.00")
    with pytest.warns(DeprecationWarning):
        result = await legacy.cancel_authorization(db, gateway, order.id, "Customer cancelled")

    assert result["refunded_amount"] == Decimal("60.00")
    assert len(processor.calls_to("refund-custom-service-escrow")) == 1


async def test_check_authorization_status(gateway, processor):
    with pytest.warns(DeprecationWarning):
        result = await legacy.check_authorization_status(gateway, "pi_1")
    assert result == {"success": True, "status": "succeeded", "expires_at": None}

    processor.fail("check-payment-intent-status", 404, "No such payment_intent")
    with pytest.warns(DeprecationWarning):
        failed = await legacy.check_authorization_status(gateway, "pi_missing")
    assert failed == {"success": False, "error": "No such payment_intent", "error_type": "gateway"}
