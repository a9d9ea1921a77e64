"""Timeline recorder and replay tests."""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select

from app.models import (
    OrderStatus, OrderTimeline, RefundStatus, RefundType, ReturnStatus, TimelineEvent,
)
from app.schemas.timeline import (
    PAYLOAD_TYPES, OrderCancelledPayload, StatusChangedPayload, parse_payload,
)
from app.services.cancellation import CancellationService
from app.services.errors import InvalidStateTransition
from app.services.order_status import OrderStatusService
from app.services.refunds import RefundService
from app.services.returns import ReturnItemRequest, ReturnService
from app.services.timeline import TimelineRecorder, replay

from conftest import ADMIN, CUSTOMER


def _snapshot(rows):
    return [
        (r.id, r.event, r.title, r.description, r.actor_type, r.actor_id, r.actor_name, r.payload)
        for r in rows
    ]


class TestPayloads:
    def test_every_event_has_a_payload_model(self):
        assert set(PAYLOAD_TYPES) == set(TimelineEvent)

    def test_metadata_is_camel_case_json(self):
        payload = StatusChangedPayload(
            previous_status=OrderStatus.PENDING, new_status=OrderStatus.CONFIRMED,
        )
        assert payload.to_metadata() == {"previousStatus": "PENDING", "newStatus": "CONFIRMED"}

    def test_parse_payload_round_trip(self):
        metadata = {"reason": "Out of stock", "notes": None, "restoredStock": []}
        payload = parse_payload(TimelineEvent.ORDER_CANCELLED, metadata)
        assert isinstance(payload, OrderCancelledPayload)
        assert payload.reason == "Out of stock"


@pytest.mark.asyncio
class TestRecorder:
    async def test_add_event_rejects_wrong_payload_type(self, session, make_product, make_order):
        product = await make_product("TL-1")
        order = await make_order([(product, 1)])
        recorder = TimelineRecorder(session)

        with pytest.raises(TypeError):
            await recorder.add_event(
                order.id,
                TimelineEvent.ORDER_CANCELLED,
                "Order cancelled",
                ADMIN,
                StatusChangedPayload(
                    previous_status=OrderStatus.PENDING, new_status=OrderStatus.CONFIRMED,
                ),
            )

    async def test_actor_type_override(self, session, make_product, make_order):
        product = await make_product("TL-2")
        order = await make_order([(product, 1)])
        recorder = TimelineRecorder(session)

        row = await recorder.add_event(
            order.id,
            TimelineEvent.STATUS_CHANGED,
            "Order status changed to CONFIRMED",
            CUSTOMER,
            StatusChangedPayload(
                previous_status=OrderStatus.PENDING, new_status=OrderStatus.CONFIRMED,
            ),
            actor_type=ADMIN.actor_type,
        )
        await session.commit()
        assert row.actor_type == ADMIN.actor_type
        assert row.actor_id == CUSTOMER.actor_id

    async def test_each_operation_appends_exactly_one_row(self, session, make_product, make_order):
        product = await make_product("TL-3", stock=5)
        order = await make_order([(product, 2)], total="100.00")
        recorder = TimelineRecorder(session)

        await OrderStatusService(session).update_status(order.id, OrderStatus.CONFIRMED, ADMIN)
        assert len(await recorder.list_events(order.id)) == 1

        await RefundService(session).create_refund(order.id, "10.00", RefundType.PARTIAL, "Goodwill", ADMIN)
        assert len(await recorder.list_events(order.id)) == 2

        await CancellationService(session).cancel_order(order.id, "Customer request", ADMIN)
        assert len(await recorder.list_events(order.id)) == 3

    async def test_failed_operation_writes_nothing(self, session, make_product, make_order):
        product = await make_product("TL-4")
        order = await make_order([(product, 1)], status=OrderStatus.DELIVERED)
        order_id = order.id

        with pytest.raises(InvalidStateTransition):
            await CancellationService(session).cancel_order(order_id, "Too late", ADMIN)
        assert await TimelineRecorder(session).list_events(order_id) == []

    async def test_rows_are_never_rewritten(self, session, make_product, make_order):
        product = await make_product("TL-5", stock=0)
        order = await make_order([(product, 1)], total="50.00")
        recorder = TimelineRecorder(session)

        await OrderStatusService(session).update_status(order.id, OrderStatus.PROCESSING, ADMIN)
        await OrderStatusService(session).update_status(order.id, OrderStatus.SHIPPED, ADMIN)
        before = _snapshot(await recorder.list_events(order.id))

        await OrderStatusService(session).update_status(order.id, OrderStatus.DELIVERED, ADMIN)
        await RefundService(session).create_refund(order.id, "5.00", RefundType.SHIPPING_ONLY, "Late", ADMIN)

        order_id = order.id
        session.expire_all()
        after = _snapshot(await recorder.list_events(order_id))
        assert after[: len(before)] == before
        assert len(after) == len(before) + 2

    async def test_events_after_is_a_cursor_feed(self, session, make_product, make_order):
        product = await make_product("TL-6")
        first = await make_order([(product, 1)])
        second = await make_order([(product, 1)])
        status = OrderStatusService(session)

        await status.update_status(first.id, OrderStatus.CONFIRMED, ADMIN)
        await status.update_status(second.id, OrderStatus.CONFIRMED, ADMIN)
        await status.update_status(first.id, OrderStatus.SHIPPED, ADMIN)

        recorder = TimelineRecorder(session)
        page = await recorder.events_after(0, limit=2)
        assert [row.order_id for row in page] == [first.id, second.id]

        rest = await recorder.events_after(page[-1].id)
        assert len(rest) == 1
        assert rest[0].order_id == first.id


@pytest.mark.asyncio
class TestReplay:
    async def test_replay_matches_stored_state(self, session, make_product, make_order):
        product = await make_product("RP-1", stock=0)
        order = await make_order([(product, 3)], total="300.00")
        item_id = order.items[0].id
        status = OrderStatusService(session)

        for new_status in (OrderStatus.CONFIRMED, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            await status.update_status(order.id, new_status, ADMIN)

        returns = ReturnService(session)
        ret = await returns.create_return_request(
            order.id,
            [ReturnItemRequest(item_id, 1, "Damaged")],
            "Damaged in transit",
            CUSTOMER,
        )
        await returns.process_return_request(ret.id, True, ADMIN)

        refunds = RefundService(session)
        ok = await refunds.create_refund(order.id, "100.00", RefundType.PARTIAL, "Damaged item", ADMIN, return_id=ret.id)
        bad = await refunds.create_refund(order.id, "50.00", RefundType.SHIPPING_ONLY, "Shipping", ADMIN)
        await refunds.settle_refund(ok.id, True, ADMIN)
        await refunds.settle_refund(bad.id, False, ADMIN)

        rows = await TimelineRecorder(session).list_events(order.id)
        state = replay(rows)

        stored = await refunds.refund_summary(order.id)
        assert state.status == OrderStatus.DELIVERED
        assert state.returns == {ret.id: ReturnStatus.APPROVED}
        assert state.refunds[ok.id] == (Decimal("100.00"), RefundStatus.COMPLETED)
        assert state.refunds[bad.id][1] == RefundStatus.FAILED
        assert state.refunded_total == stored.total_refunded == Decimal("100.00")

    async def test_replay_of_cancellation(self, session, make_product, make_order):
        a = await make_product("RP-A", stock=0)
        b = await make_product("RP-B", stock=0)
        order = await make_order([(a, 2), (b, 3)])

        await CancellationService(session).cancel_order(order.id, "Fraud check failed", ADMIN)
        state = replay(await TimelineRecorder(session).list_events(order.id))

        assert state.status == OrderStatus.CANCELLED
        assert state.cancellation_reason == "Fraud check failed"
        assert state.restored_stock == {a.id: 2, b.id: 3}

    async def test_incomplete_payload_is_rejected(self):
        row = OrderTimeline(event=TimelineEvent.STATUS_CHANGED, payload={"previousStatus": "PENDING"})
        with pytest.raises(PydanticValidationError):
            replay([row])

    async def test_stored_rows_are_ordered_by_creation(self, session, make_product, make_order):
        product = await make_product("RP-2")
        order = await make_order([(product, 1)])
        status = OrderStatusService(session)
        await status.update_status(order.id, OrderStatus.PROCESSING, ADMIN)
        await status.update_status(order.id, OrderStatus.SHIPPED, ADMIN)

        result = await session.execute(
            select(OrderTimeline.id).where(OrderTimeline.order_id == order.id).order_by(OrderTimeline.id)
        )
        ids = list(result.scalars().all())
        assert ids == sorted(ids)
        assert replay(await TimelineRecorder(session).list_events(order.id)).status == OrderStatus.SHIPPED
