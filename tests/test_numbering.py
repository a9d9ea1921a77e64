"""Reference number tests."""

import re

import pytest

from app.models import Order
from app.services.errors import ReferenceNumberExhausted
from app.services.numbering import (
    generate_order_number, generate_reference, generate_refund_number, generate_return_number,
)
from app.services.repository import OrderRepository

SHAPE = re.compile(r"^(NO|RT|RF)\d{8}[0-9A-Z]{4}$")


class TestGenerate:
    def test_order_number_shape(self):
        number = generate_order_number()
        assert number.startswith("NO")
        assert SHAPE.match(number)

    def test_return_and_refund_prefixes(self):
        assert generate_return_number().startswith("RT")
        assert generate_refund_number().startswith("RF")

    def test_uses_last_eight_digits_of_timestamp(self):
        number = generate_reference("NO", now_ms=1712345678901)
        assert number[2:10] == "45678901"

    def test_short_timestamp_is_zero_padded(self):
        number = generate_reference("RF", now_ms=1234)
        assert number[2:10] == "00001234"
        assert len(number) == 14

    def test_suffix_varies(self):
        numbers = {generate_reference("NO", now_ms=1712345678901) for _ in range(50)}
        assert len(numbers) > 1


@pytest.mark.asyncio
class TestUniqueReference:
    async def test_retries_past_existing_number(self, session, make_product, make_order):
        product = await make_product("NUM-1")
        order = await make_order([(product, 1)])
        candidates = iter([order.order_number, "NO12345678ABCD"])

        repo = OrderRepository(session)
        number = await repo.unique_reference(Order.order_number, lambda: next(candidates), attempts=5)
        assert number == "NO12345678ABCD"

    async def test_exhaustion(self, session, make_product, make_order):
        product = await make_product("NUM-2")
        order = await make_order([(product, 1)])

        repo = OrderRepository(session)
        with pytest.raises(ReferenceNumberExhausted) as exc:
            await repo.unique_reference(Order.order_number, lambda: order.order_number, attempts=3)
        assert exc.value.context["attempts"] == 3
        assert exc.value.status_code == 503
