"""
Referral ledger: spend referral codes issued by earlier bookings.

Every booking carries a self-issued referral_code. Another user may redeem
it once for a fixed discount; the owner may not redeem their own.

CONCURRENCY
===========
Two checkouts can race for the same code. Spending is a conditional UPDATE
that only matches an unused code owned by someone else:

    UPDATE bookings SET referral_code_used = true, referral_code_redeemed_by = :user
    WHERE referral_code = :code AND referral_code_used = false AND user_id != :user

rowcount == 1 means this request won the code. The loser gets InvalidCode
and its transaction rolls back, which also releases any other code it had
already spent in the same request.
"""

from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpay.core.config import PricingConfig
from ticketpay.core.exceptions import InvalidCodeError, InvalidInputError
from ticketpay.core.logging import get_logger
from ticketpay.core.metrics import record_referral
from ticketpay.models.booking import Booking

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReferralResult:
    discount: int
    consumed_codes: list[str]


def _redeemable(code: str, user_id: int):
    return (
        Booking.referral_code == code,
        Booking.referral_code_used.is_(False),
        Booking.user_id != user_id,
    )


def _check_count(codes: Sequence[str], pricing: PricingConfig) -> None:
    if len(codes) > pricing.max_referral_codes:
        record_referral("over_cap")
        raise InvalidInputError(
            f"You can use a maximum of {pricing.max_referral_codes} referral codes"
        )


async def _is_redeemable(db: AsyncSession, code: str, user_id: int) -> bool:
    result = await db.execute(select(Booking.id).where(*_redeemable(code, user_id)))
    return result.first() is not None


async def apply_referrals(
    db: AsyncSession,
    codes: Sequence[str],
    user_id: int,
    pricing: PricingConfig,
) -> ReferralResult:
    """Validate all codes, then spend them. All or nothing."""
    _check_count(codes, pricing)
    if not codes:
        return ReferralResult(discount=0, consumed_codes=[])

    seen = set()
    for code in codes:
        if code in seen or not await _is_redeemable(db, code, user_id):
            record_referral("invalid")
            logger.info("referral_rejected", code=code, user_id=user_id)
            raise InvalidCodeError(code, f"Invalid or already used referral code: {code}")
        seen.add(code)

    for code in codes:
        result = await db.execute(
            update(Booking)
            .where(*_redeemable(code, user_id))
            .values(referral_code_used=True, referral_code_redeemed_by=user_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            record_referral("invalid")
            logger.warning("referral_race_lost", code=code, user_id=user_id)
            raise InvalidCodeError(code, f"Invalid or already used referral code: {code}")

    record_referral("redeemed", len(codes))
    logger.info("referral_redeemed", codes=list(codes), user_id=user_id)
    return ReferralResult(
        discount=len(codes) * pricing.referral_discount_per_code,
        consumed_codes=list(codes),
    )


async def preview_referrals(
    db: AsyncSession,
    codes: Sequence[str],
    user_id: int,
    pricing: PricingConfig,
) -> ReferralResult:
    """Which codes the user could redeem right now. Nothing is spent."""
    if not codes:
        raise InvalidInputError("No referral codes provided")
    _check_count(codes, pricing)

    valid = []
    for code in dict.fromkeys(codes):
        if await _is_redeemable(db, code, user_id):
            valid.append(code)

    if not valid:
        raise InvalidInputError("No valid referral codes found")

    return ReferralResult(
        discount=len(valid) * pricing.referral_discount_per_code,
        consumed_codes=valid,
    )
