"""Order-Ledger CLI management tool.

Usage:
    python -m cli init-db
    python -m cli orders show <order-id>
    python -m cli orders timeline <order-id>
    python -m cli orders cancel <order-id> --reason "Customer request" --actor ops-1
    python -m cli refunds summary <order-id>
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from app.database import Base, async_session, engine
from app.models import ActorType
from app.services.cancellation import CancellationService
from app.services.errors import LedgerError
from app.services.orders import OrderService
from app.services.refunds import RefundService
from app.services.timeline import Actor, TimelineRecorder


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-cli",
        description="Order-Ledger CLI",
    )
    sub = parser.add_subparsers(dest="command", help="Top-level command")

    sub.add_parser("init-db", help="Create database tables")

    # ── Orders ───────────────────────────────────────────
    orders_parser = sub.add_parser("orders", help="Order lifecycle")
    orders_sub = orders_parser.add_subparsers(dest="action")

    show = orders_sub.add_parser("show", help="Show an order with items and balances")
    show.add_argument("order_id", help="Order UUID")

    timeline = orders_sub.add_parser("timeline", help="Print an order's timeline")
    timeline.add_argument("order_id", help="Order UUID")

    cancel = orders_sub.add_parser("cancel", help="Cancel an order and restock its items")
    cancel.add_argument("order_id", help="Order UUID")
    cancel.add_argument("--reason", required=True, help="Cancellation reason")
    cancel.add_argument("--notes", default=None, help="Internal notes")
    cancel.add_argument("--actor", default="cli", help="Actor id recorded on the timeline")

    # ── Refunds ──────────────────────────────────────────
    refunds_parser = sub.add_parser("refunds", help="Refund ledger")
    refunds_sub = refunds_parser.add_subparsers(dest="action")

    summary = refunds_sub.add_parser("summary", help="Refunded and refundable amounts")
    summary.add_argument("order_id", help="Order UUID")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    handlers = {
        "init-db": handle_init_db,
        "orders": handle_orders,
        "refunds": handle_refunds,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return asyncio.run(handler(args))
    except LedgerError as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 2


# ── Command Handlers ────────────────────────────────────

async def handle_init_db(args) -> int:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("Tables created")
    return 0


async def handle_orders(args) -> int:
    async with async_session() as session:
        if args.action == "show":
            order = await OrderService(session).get_order(args.order_id)
            summary = await RefundService(session).refund_summary(order.id)
            print(json.dumps({
                "id": str(order.id),
                "order_number": order.order_number,
                "status": order.status.value,
                "customer_id": order.customer_id,
                "items": [
                    {"product_id": str(i.product_id), "quantity": i.quantity, "price": str(i.price)}
                    for i in order.items
                ],
                **summary.to_dict(),
            }, indent=2))

        elif args.action == "timeline":
            order = await OrderService(session).get_order(args.order_id)
            for row in await TimelineRecorder(session).list_events(order.id):
                actor = row.actor_name or row.actor_id or "-"
                print(f"{row.id:>6}  {row.created_at:%Y-%m-%d %H:%M:%S}  {row.event.value:<17} {actor:<12} {row.title}")

        elif args.action == "cancel":
            actor = Actor(actor_id=args.actor, actor_type=ActorType.ADMIN)
            order = await CancellationService(session).cancel_order(
                args.order_id, args.reason, actor, args.notes
            )
            print(f"Order {order.order_number} cancelled, {len(order.items)} item(s) restocked")

        else:
            print("Usage: ledger-cli orders {show|timeline|cancel}")
            return 1
    return 0


async def handle_refunds(args) -> int:
    if args.action != "summary":
        print("Usage: ledger-cli refunds summary <order-id>")
        return 1
    async with async_session() as session:
        summary = await RefundService(session).refund_summary(args.order_id)
        print(json.dumps(summary.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
