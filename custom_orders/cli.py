"""CLI for the custom-order escrow workflow."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys


async def cmd_init_db(args):
    """Create the workflow tables."""
    from custom_orders.db.engine import engine, init_db

    await init_db()
    await engine.dispose()
    print("Database tables created.")


async def cmd_sweep_timeouts(args):
    """Expire every deadline that has passed, once."""
    from custom_orders.db.engine import async_session_factory, engine, init_db
    from custom_orders.services.timeout_sweeper import check_consultation_timeouts

    await init_db()
    async with async_session_factory() as db:
        result = await check_consultation_timeouts(db)
    await engine.dispose()
    print(f"Expired {result['expired_count']} deadline(s) at {result['checked_at'].isoformat()}")


async def cmd_order_status(args):
    """Print the workflow state of one order as JSON."""
    from custom_orders.db.engine import async_session_factory, engine
    from custom_orders.services.orders import get_order_status

    async with async_session_factory() as db:
        result = await get_order_status(db, args.order_id)
    await engine.dispose()

    print(json.dumps(result, indent=2, default=str))
    if not result["success"]:
        sys.exit(1)


def main():
    from custom_orders.config import get_settings

    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="Custom orders CLI")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init-db", help="Create the database tables")
    subparsers.add_parser("sweep-timeouts", help="Expire consultation and price-adjustment deadlines that have passed")

    st = subparsers.add_parser("order-status", help="Show the workflow state of an order")
    st.add_argument("order_id", help="Production order id")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "init-db":
        asyncio.run(cmd_init_db(args))
    elif args.command == "sweep-timeouts":
        asyncio.run(cmd_sweep_timeouts(args))
    elif args.command == "order-status":
        asyncio.run(cmd_order_status(args))


if __name__ == "__main__":
    main()
