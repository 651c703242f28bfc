from datetime import timedelta

from custom_orders.db import crud
from custom_orders.models.base import as_utc, utcnow
from custom_orders.services import consultations
from custom_orders.services.orders import mark_order_received
from custom_orders.services.timeout_sweeper import check_consultation_timeouts


async def test_initialize_with_required_consultation_opens_gate(db, funded_order):
    order = await funded_order(provider_requires_consultation=True)

    assert order.status == "pending_consultation"
    assert order.consultation_required is True
    (consultation,) = await crud.list_consultations(db, order.id)
    assert consultation.status == "pending"
    assert consultation.requested_by == "provider_required"

    (timeout,) = await crud.list_timeouts(db, order.id)
    assert timeout.timeout_type == "provider_response"
    assert timeout.consultation_id == consultation.id
    window = as_utc(timeout.deadline_at) - as_utc(order.consultation_timer_started_at)
    assert window == timedelta(hours=48)


async def test_customer_requested_consultation(db, funded_order):
    order = await funded_order(consultation_requested=True)

    assert order.status == "pending_consultation"
    assert order.consultation_required is False
    assert order.consultation_requested is True
    (consultation,) = await crud.list_consultations(db, order.id)
    assert consultation.requested_by == "customer"


async def test_required_consultation_blocks_receipt_until_waived(db, funded_order):
    order = await funded_order(provider_requires_consultation=True)

    blocked = await mark_order_received(db, order.id)
    assert not blocked["success"]
    assert blocked["error"] == "Consultation must be completed or waived before marking order as received"
    await db.refresh(order)

    waived = await consultations.waive_consultation(db, order.id, "prov_1")
    assert waived["success"]
    assert waived["order_status"] == "pending_order_received"

    received = await mark_order_received(db, order.id)
    assert received["success"]
    assert order.status == "order_received"

    (timeout,) = await crud.list_timeouts(db, order.id)
    assert timeout.timeout_resolution == "provider_responded"


async def test_start_and_complete_consultation(db, funded_order):
    order = await funded_order(consultation_requested=True)
    (consultation,) = await crud.list_consultations(db, order.id)

    started = await consultations.start_consultation(db, consultation.id)
    assert started["status"] == "in_progress"
    assert consultation.started_at is not None

    completed = await consultations.complete_consultation(db, consultation.id, "Agreed on navy thread")
    assert completed["success"]
    assert completed["order_status"] == "pending_order_received"
    assert consultation.status == "completed"
    assert consultation.notes == "Agreed on navy thread"
    assert order.consultation_completed_at is not None

    again = await consultations.complete_consultation(db, consultation.id)
    assert again["error_type"] == "conflict"


async def test_start_twice_is_refused(db, funded_order):
    order = await funded_order(consultation_requested=True)
    (consultation,) = await crud.list_consultations(db, order.id)

    await consultations.start_consultation(db, consultation.id)
    result = await consultations.start_consultation(db, consultation.id)
    assert result["error_type"] == "conflict"


async def test_only_one_open_consultation(db, funded_order):
    order = await funded_order(consultation_requested=True)
    result = await consultations.create_consultation(db, order.id, "customer")

    assert not result["success"]
    assert result["error"] == "A consultation is already open for this order"


async def test_create_consultation_after_funding(db, funded_order):
    order = await funded_order()
    result = await consultations.create_consultation(db, order.id, "customer")

    assert result["success"]
    assert order.status == "pending_consultation"


async def test_create_consultation_rejects_unknown_requester(db, funded_order):
    order = await funded_order()
    result = await consultations.create_consultation(db, order.id, "stranger")
    assert result["error_type"] == "validation"


async def test_waive_without_open_consultation(db, funded_order):
    order = await funded_order()
    result = await consultations.waive_consultation(db, order.id, "cust_1")
    assert result["error"] == "No open consultation to waive"


async def test_timeout_before_deadline_is_refused(db, funded_order):
    order = await funded_order(consultation_requested=True)
    result = await consultations.handle_consultation_timeout(db, order.id, "provider_response")

    assert not result["success"]
    assert result["error"] == "Consultation deadline has not passed yet"


async def test_provider_timeout_hands_decision_to_customer(db, funded_order):
    order = await funded_order(consultation_requested=True)

    result = await consultations.handle_consultation_timeout(
        db, order.id, "provider_response", now=utcnow() + timedelta(hours=49),
    )

    assert result["success"]
    assert result["customer_can_decide"] is True
    (consultation,) = await crud.list_consultations(db, order.id)
    assert consultation.status == "timed_out"
    assert consultation.customer_can_decide is True
    (timeout,) = await crud.list_timeouts(db, order.id)
    assert timeout.expired_at is not None
    assert timeout.customer_decision == "pending"
    assert "Customer may proceed at original price or cancel for full refund" in timeout.action_taken
    # The deadline alone never moves the order.
    assert order.status == "pending_consultation"

    events = [e.event_type for e in await crud.list_timeline_events(db, order.id)]
    assert "consultation_timed_out" in events


async def test_timeout_expires_only_once(db, funded_order):
    order = await funded_order(consultation_requested=True)
    later = utcnow() + timedelta(hours=49)

    await consultations.handle_consultation_timeout(db, order.id, "provider_response", now=later)
    again = await consultations.handle_consultation_timeout(db, order.id, "provider_response", now=later)

    assert not again["success"]


async def test_unknown_timeout_type(db, funded_order):
    order = await funded_order(consultation_requested=True)
    result = await consultations.handle_consultation_timeout(db, order.id, "weather")
    assert result["error"] == "Unknown timeout type: weather"


async def test_timeout_for_unknown_order(db):
    result = await consultations.handle_consultation_timeout(db, "missing", "provider_response")
    assert result["error_type"] == "not_found"


async def test_started_consultation_does_not_time_out(db, funded_order, lapse_deadlines):
    order = await funded_order(provider_requires_consultation=True)
    (consultation,) = await crud.list_consultations(db, order.id)
    await consultations.start_consultation(db, consultation.id)

    await lapse_deadlines(order.id)
    result = await check_consultation_timeouts(db)

    assert result["expired_count"] == 0
    assert consultation.status == "in_progress"
    assert consultation.customer_can_decide is False
    (timeout,) = await crud.list_timeouts(db, order.id)
    assert timeout.expired_at is None
    assert timeout.timeout_resolution == "provider_responded"

    completed = await consultations.complete_consultation(db, consultation.id)
    assert completed["order_status"] == "pending_order_received"
