import json
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("STORE_BASE_URL", "https://shop.example.com")

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import src.database.models  # noqa: F401
from main import app
from src.config.constants import OrderStatus
from src.database.base import Base
from src.database.connection import get_db
from src.database.models import Order
from src.dependencies.payments import get_client_factory, get_gateway_config
from src.integrations.spaceremit import GatewayConfig, SpaceRemitClient


class FakeGateway:
    """In-memory SpaceRemit API served through httpx.MockTransport."""

    def __init__(self):
        self.payments: Dict[str, Dict[str, Any]] = {}
        self.requests: List[Dict[str, Any]] = []
        # Queued responses (or exceptions) returned before normal lookups
        self.queue: List[Any] = []

    def add_payment(
        self,
        payment_id: str,
        status_tag: str = "A",
        original_amount: str = "25.00",
        currency: str = "USD",
        **extra,
    ) -> Dict[str, Any]:
        payment = {
            "id": payment_id,
            "status_tag": status_tag,
            "original_amount": original_amount,
            "currency": currency,
            **extra,
        }
        self.payments[payment_id] = payment
        return payment

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append({"body": body, "headers": dict(request.headers)})

        if self.queue:
            queued = self.queue.pop(0)
            if isinstance(queued, Exception):
                raise queued
            return queued

        if body.get("test_connection"):
            return httpx.Response(
                200, json={"response_status": "success", "message": "Connected"}
            )

        payment = self.payments.get(body.get("payment_id"))
        if payment is None:
            return httpx.Response(
                200, json={"response_status": "failed", "message": "Payment not found"}
            )
        return httpx.Response(200, json={"response_status": "success", "data": payment})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return GatewayConfig(
        api_url="https://gateway.test/api",
        test_mode=False,
        live_public_key="live_public_0123456789",
        live_secret_key="live_secret_0123456789",
        test_public_key="test_public_0123456789",
        test_secret_key="test_secret_0123456789",
    )


@pytest.fixture
def client_factory(gateway, sleeps):
    async def fake_sleep(delay):
        sleeps.append(delay)

    def factory(config: GatewayConfig) -> SpaceRemitClient:
        return SpaceRemitClient(config, transport=gateway.transport(), sleep=fake_sleep)

    return factory


@pytest.fixture
def spaceremit_client(client_factory, gateway_config) -> SpaceRemitClient:
    return client_factory(gateway_config)


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_order(session_factory):
    async def _make_order(
        total: str = "25.00",
        currency: str = "USD",
        status: OrderStatus = OrderStatus.PENDING,
        order_key: Optional[str] = None,
        date_paid: Optional[datetime] = None,
    ) -> Order:
        async with session_factory() as session:
            order = Order(
                order_key=order_key or f"wc_order_{os.urandom(6).hex()}",
                status=status,
                currency=currency,
                total=Decimal(total),
                billing_first_name="Jane",
                billing_last_name="Doe",
                billing_email="jane@example.com",
                date_paid=date_paid,
            )
            session.add(order)
            await session.commit()
            return order

    return _make_order


@pytest.fixture
def fetch_order(session_factory):
    async def _fetch_order(order_id: int) -> Order:
        async with session_factory() as session:
            return await session.get(Order, order_id)

    return _fetch_order


@pytest_asyncio.fixture
async def api_client(session_factory, gateway_config, client_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway_config] = lambda: gateway_config
    app.dependency_overrides[get_client_factory] = lambda: client_factory

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()
