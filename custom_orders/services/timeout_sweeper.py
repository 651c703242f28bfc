"""Periodic sweep that expires lapsed consultation and price-adjustment deadlines."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from custom_orders.db import crud
from custom_orders.models.base import utcnow
from custom_orders.services.consultations import handle_consultation_timeout
from custom_orders.services.results import ok

logger = logging.getLogger(__name__)


async def check_consultation_timeouts(db: AsyncSession, now: datetime | None = None) -> dict:
    """Expire every open timeout whose deadline is at or before ``now``.

    One failing row is logged and skipped; the rest of the sweep continues.
    """
    now = now or utcnow()
    due = [(t.production_order_id, t.timeout_type) for t in await crud.list_due_timeouts(db, now)]

    expired = 0
    for order_id, timeout_type in due:
        result = await handle_consultation_timeout(db, order_id, timeout_type, now)
        if result["success"]:
            expired += 1
        else:
            logger.warning("Could not expire %s timeout for order %s: %s", timeout_type, order_id, result["error"])

    if expired:
        logger.info("Timeout sweep expired %d deadline(s)", expired)
    return ok(expired_count=expired, checked_at=now)
