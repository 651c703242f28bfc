"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from custom_orders.api.router import api_router
from custom_orders.config import get_settings
from custom_orders.db.engine import async_session_factory, engine, init_db
from custom_orders.services.payment_gateway import PaymentGateway

logger = logging.getLogger(__name__)

_settings = get_settings()


async def _timeout_sweeper():
    """Background task: expire lapsed consultation and price-adjustment deadlines."""
    from custom_orders.services.timeout_sweeper import check_consultation_timeouts

    interval = _settings.workflow.sweep_interval_seconds
    while True:
        try:
            async with async_session_factory() as db:
                await check_consultation_timeouts(db)
        except Exception:
            logger.exception("Timeout sweep failed; retrying in %ss", interval)
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=_settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()

    app.state.gateway = PaymentGateway(_settings.payments)

    sweep_task = asyncio.create_task(_timeout_sweeper())
    yield
    sweep_task.cancel()
    await app.state.gateway.aclose()
    await engine.dispose()


app = FastAPI(
    title="Custom Orders",
    description="Escrow, consultation and price-adjustment workflow for custom-service production orders.",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(api_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
