"""
Tests for the coupon lookup when a Redis cache is in front of it.
"""

import pytest
from sqlalchemy import update

from conftest import TestSessionLocal
from ticketpay.core.exceptions import InvalidCodeError
from ticketpay.models.coupon import Coupon
from ticketpay.services import cache_service
from ticketpay.services.coupon_service import apply_coupon


class InMemoryRedis:
    """The subset of redis.asyncio.Redis the coupon cache uses."""

    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value

    async def delete(self, key):
        self.store.pop(key, None)


@pytest.fixture
def fake_redis(monkeypatch) -> InMemoryRedis:
    client = InMemoryRedis()

    async def get_redis():
        return client

    monkeypatch.setattr(cache_service, "get_redis", get_redis)
    return client


@pytest.mark.asyncio
async def test_cached_coupon_is_served(fake_redis, college_coupon):
    async with TestSessionLocal() as session:
        first = await apply_coupon(session, "COLLEGE100")
    assert "coupons:active:COLLEGE100" in fake_redis.store

    async with TestSessionLocal() as session:
        second = await apply_coupon(session, "COLLEGE100")
    assert second == first
    assert second.discount == 100


@pytest.mark.asyncio
async def test_deactivated_coupon_rejected_despite_cache(fake_redis, college_coupon):
    """A live cache entry does not keep a deactivated coupon usable."""
    async with TestSessionLocal() as session:
        await apply_coupon(session, "COLLEGE100")
    assert "coupons:active:COLLEGE100" in fake_redis.store

    async with TestSessionLocal() as session:
        await session.execute(
            update(Coupon).where(Coupon.id == college_coupon.id).values(is_active=False)
        )
        await session.commit()

    async with TestSessionLocal() as session:
        with pytest.raises(InvalidCodeError):
            await apply_coupon(session, "COLLEGE100")
    assert "coupons:active:COLLEGE100" not in fake_redis.store
