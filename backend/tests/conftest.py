"""
Pytest fixtures for test database, client, gateway config and authentication.

Tables are created and dropped per test for isolation. Each HTTP request
gets its own session that commits or rolls back like the real get_db, so
tests observe the same transaction boundaries as production.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./ticketpay_test.db")
os.environ["REDIS_ENABLED"] = "false"

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from ticketpay.main import app
from ticketpay.db.base import Base
from ticketpay.db.session import get_db
from ticketpay.core.config import GatewayConfig, PricingConfig, get_gateway_config, get_pricing_config
from ticketpay.core.security import create_access_token
from ticketpay.models.booking import Booking
from ticketpay.models.coupon import Coupon
from ticketpay.models.user import User

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///./ticketpay_test.db")

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

TEST_GATEWAY = GatewayConfig(
    merchant_key="gtKFFx",
    salt="eCwWELxi",
    payment_url="https://test.payu.in/_payment",
    callback_url="http://api.test/payment-callback",
    success_url="http://frontend.test/payment-success",
    failure_url="http://frontend.test/payment-failure",
)
TEST_PRICING = PricingConfig(
    base_ticket_price=1311,
    referral_discount_per_code=50,
    max_referral_codes=2,
)


@pytest.fixture
def gateway() -> GatewayConfig:
    return TEST_GATEWAY


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with per-request test sessions and fixed gateway credentials."""

    async def override_get_db():
        async with TestSessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway_config] = lambda: TEST_GATEWAY
    app.dependency_overrides[get_pricing_config] = lambda: TEST_PRICING

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(email: str, first_name: str, phone: str) -> User:
    async with TestSessionLocal() as session:
        user = User(email=email, first_name=first_name, last_name="Tester", phone=phone)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


def _headers(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def user_one(db_session: AsyncSession) -> User:
    return await _create_user("asha@example.com", "Asha", "9876543210")


@pytest_asyncio.fixture
async def user_two(db_session: AsyncSession) -> User:
    return await _create_user("ravi@example.com", "Ravi", "9123456780")


@pytest_asyncio.fixture
async def user_three(db_session: AsyncSession) -> User:
    return await _create_user("meera@example.com", "Meera", "9988776655")


@pytest.fixture
def headers_one(user_one: User) -> dict:
    return _headers(user_one)


@pytest.fixture
def headers_two(user_two: User) -> dict:
    return _headers(user_two)


@pytest.fixture
def headers_three(user_three: User) -> dict:
    return _headers(user_three)


@pytest_asyncio.fixture
async def college_coupon(db_session: AsyncSession) -> Coupon:
    async with TestSessionLocal() as session:
        coupon = Coupon(code="COLLEGE100", discount=100, is_active=True)
        session.add(coupon)
        await session.commit()
        await session.refresh(coupon)
        return coupon


@pytest_asyncio.fixture
async def retired_coupon(db_session: AsyncSession) -> Coupon:
    async with TestSessionLocal() as session:
        coupon = Coupon(code="OLDPROMO", discount=200, is_active=False)
        session.add(coupon)
        await session.commit()
        await session.refresh(coupon)
        return coupon


def booking_payload(**overrides) -> dict:
    payload = {
        "event_id": "evt-2026-marathon",
        "ticket_type": "General",
        "first_name": "Asha",
        "last_name": "Tester",
        "email": "asha@example.com",
        "phone": "9876543210",
        "gender": "female",
        "tshirt_size": "M",
    }
    payload.update(overrides)
    return payload


async def load_booking(booking_id: str) -> Booking:
    """Read the committed row with a fresh session."""
    async with TestSessionLocal() as session:
        return await session.get(Booking, booking_id)
