"""Test fixtures."""

import os

# Keep the module-level engine off PostgreSQL when the app is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import datetime  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import AsyncGenerator, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from app.config import Settings  # noqa: E402
from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import ActorType, Order, OrderItem, OrderStatus, Product  # noqa: E402
from app.services.numbering import generate_order_number  # noqa: E402
from app.services.timeline import Actor  # noqa: E402

ADMIN = Actor(actor_id="admin-1", actor_name="Ops Admin", actor_type=ActorType.ADMIN)
CUSTOMER = Actor(actor_id="cust-1", actor_name="Jane Buyer", actor_type=ActorType.CUSTOMER)


@pytest_asyncio.fixture
async def engine(tmp_path):
    # One SQLite file per test so separate sessions see each other's commits.
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", echo=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as s:
        yield s


@pytest.fixture
def settings():
    return Settings(_env_file=None, database_url="sqlite+aiosqlite://")


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_product(session):
    async def _make(sku: str, stock: int = 10) -> Product:
        product = Product(sku=sku, name=f"Product {sku}", stock=stock)
        session.add(product)
        await session.commit()
        return product
    return _make


@pytest.fixture
def make_order(session):
    """Insert an order directly in the given status, bypassing the workflows."""
    async def _make(
        lines,
        total="300.00",
        status: OrderStatus = OrderStatus.PENDING,
        created_at: Optional[datetime] = None,
    ) -> Order:
        order = Order(
            order_number=generate_order_number(),
            customer_id=CUSTOMER.actor_id,
            status=status,
            total=Decimal(total),
            currency="AED",
            items=[
                OrderItem(product_id=product.id, position=i, quantity=qty, price=Decimal("10.00"))
                for i, (product, qty) in enumerate(lines)
            ],
        )
        if created_at is not None:
            order.created_at = created_at
        session.add(order)
        await session.commit()
        return order
    return _make


async def stock_of(session: AsyncSession, product_id) -> int:
    result = await session.execute(select(Product.stock).where(Product.id == product_id))
    return result.scalar_one()
