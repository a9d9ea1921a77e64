"""Order registration, detail reads and detail updates."""

from datetime import timedelta
from decimal import Decimal

import pytest

from app.models import OrderStatus, RefundType, TimelineEvent, utcnow
from app.services.cancellation import CancellationService
from app.services.errors import (
    InvalidStateTransition, OrderNotFound, ProductNotFound, ValidationError,
)
from app.services.orders import OrderLine, OrderService
from app.services.refunds import RefundService
from app.services.timeline import TimelineRecorder

from conftest import ADMIN

pytestmark = pytest.mark.asyncio


class TestRegisterOrder:
    async def test_register(self, session, make_product):
        a = await make_product("ORD-A")
        b = await make_product("ORD-B")

        order = await OrderService(session).register_order(
            "cust-42",
            [OrderLine(a.id, 2, Decimal("19.99")), OrderLine(str(b.id), 1, Decimal("5.00"))],
            total="44.98",
            notes="Gift wrap",
        )

        assert order.status == OrderStatus.PENDING
        assert order.order_number.startswith("NO")
        assert order.currency == "AED"
        assert order.total == Decimal("44.98")
        assert [(i.product_id, i.quantity, i.position) for i in order.items] == [
            (a.id, 2, 0), (b.id, 1, 1),
        ]
        # Registration is not a lifecycle transition.
        assert await TimelineRecorder(session).list_events(order.id) == []

    async def test_unknown_product(self, session, make_product):
        product = await make_product("ORD-C")
        with pytest.raises(ProductNotFound):
            await OrderService(session).register_order(
                "cust-42",
                [OrderLine(product.id, 1), OrderLine("5e8f0000-0000-4000-8000-000000000000", 1)],
                total=10,
            )

    async def test_malformed_product_id(self, session):
        with pytest.raises(ProductNotFound):
            await OrderService(session).register_order("cust-42", [OrderLine("nope", 1)], total=10)

    @pytest.mark.parametrize("lines,total", [
        ([], 10),
        ([OrderLine("5e8f0000-0000-4000-8000-000000000000", 0)], 10),
        ([OrderLine("5e8f0000-0000-4000-8000-000000000000", 1)], -1),
    ])
    async def test_input_validation(self, session, lines, total):
        with pytest.raises(ValidationError):
            await OrderService(session).register_order("cust-42", lines, total=total)


class TestOrderDetails:
    async def test_details_include_everything(self, session, make_product, make_order):
        product = await make_product("DET-1", stock=0)
        order = await make_order([(product, 2)])
        await RefundService(session).create_refund(order.id, "20.00", RefundType.PARTIAL, "Late", ADMIN)
        await CancellationService(session).cancel_order(order.id, "Customer request", ADMIN)

        details = await OrderService(session).get_order_details(order.id)
        assert details.status == OrderStatus.CANCELLED
        assert len(details.items) == 1
        assert len(details.refunds) == 1
        assert details.returns == []
        assert [r.event for r in details.timeline] == [
            TimelineEvent.REFUND_INITIATED, TimelineEvent.ORDER_CANCELLED,
        ]

    async def test_missing_order(self, session):
        with pytest.raises(OrderNotFound):
            await OrderService(session).get_order_details("6a1b0000-0000-4000-8000-000000000000")


class TestUpdateDetails:
    async def test_update_fields(self, session, make_product, make_order):
        product = await make_product("UPD-1")
        order = await make_order([(product, 1)], status=OrderStatus.SHIPPED)
        eta = utcnow() + timedelta(days=3)

        updated = await OrderService(session).update_details(
            order.id, ADMIN, tracking_number="1Z999", estimated_delivery=eta,
        )
        assert updated.tracking_number == "1Z999"
        assert updated.status == OrderStatus.SHIPPED

        rows = await TimelineRecorder(session).list_events(order.id)
        assert [r.event for r in rows] == [TimelineEvent.DETAILS_UPDATED]
        assert rows[0].payload == {"updatedFields": ["estimated_delivery", "tracking_number"]}

    async def test_nothing_to_update(self, session, make_product, make_order):
        product = await make_product("UPD-2")
        order = await make_order([(product, 1)])
        with pytest.raises(ValidationError):
            await OrderService(session).update_details(order.id, ADMIN)

    async def test_cancelled_order_is_frozen(self, session, make_product, make_order):
        product = await make_product("UPD-3")
        order = await make_order([(product, 1)], status=OrderStatus.CANCELLED)
        with pytest.raises(InvalidStateTransition):
            await OrderService(session).update_details(order.id, ADMIN, notes="late note")
