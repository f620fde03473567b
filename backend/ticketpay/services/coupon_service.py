"""
Coupon ledger: look up an active promotional code and quote its discount.
"""

from dataclasses import dataclass, asdict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpay.core.exceptions import InvalidCodeError
from ticketpay.core.logging import get_logger
from ticketpay.core.metrics import record_coupon_lookup
from ticketpay.models.coupon import Coupon
from ticketpay.services.cache_service import (
    get_cached_coupon,
    invalidate_cached_coupon,
    set_cached_coupon,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class CouponQuote:
    id: int
    code: str
    discount: int


async def apply_coupon(db: AsyncSession, code: str) -> CouponQuote:
    """Discount for an active coupon. Coupons are not consumed."""
    cached = await get_cached_coupon(code)
    if cached:
        # Deactivation must win over a live cache entry.
        active = await db.scalar(
            select(Coupon.is_active).where(Coupon.id == cached["id"])
        )
        if active:
            record_coupon_lookup(valid=True)
            return CouponQuote(**cached)
        await invalidate_cached_coupon(code)

    result = await db.execute(
        select(Coupon).where(Coupon.code == code, Coupon.is_active.is_(True))
    )
    coupon = result.scalar_one_or_none()
    if not coupon:
        record_coupon_lookup(valid=False)
        logger.info("coupon_rejected", code=code)
        raise InvalidCodeError(code, "Invalid or inactive coupon code")

    quote = CouponQuote(id=coupon.id, code=coupon.code, discount=coupon.discount)
    await set_cached_coupon(asdict(quote))
    record_coupon_lookup(valid=True)
    return quote
