"""
Booking service: checkout, owner queries and attendance edits.

PRICING
=======
  total = base - discount, discount = coupon + referrals, capped at base

Discounts are fixed when the booking is created; payment initiation
never changes them.

ATOMICITY
=========
Referral codes are spent in the same transaction that inserts the new
booking. If anything later in the request fails, the rollback un-spends
the codes, so a code is only ever marked used by a booking that exists.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpay.core.config import PricingConfig
from ticketpay.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError
from ticketpay.core.logging import get_logger
from ticketpay.core.metrics import bookings_created
from ticketpay.models.booking import Booking
from ticketpay.models.enums import BookingStatus, PaymentStatus
from ticketpay.schemas.booking import BookingCreate, BookingUpdate
from ticketpay.services.coupon_service import apply_coupon
from ticketpay.services.referral_service import apply_referrals

logger = get_logger(__name__)


async def create_booking(
    db: AsyncSession,
    user_id: int,
    data: BookingCreate,
    pricing: PricingConfig,
) -> Booking:
    base_amount = pricing.base_ticket_price
    discount = 0
    coupon = None

    if data.coupon_code:
        coupon = await apply_coupon(db, data.coupon_code)
        discount += coupon.discount

    referrals = await apply_referrals(db, data.referral_codes, user_id, pricing)
    discount += referrals.discount

    discount = min(discount, base_amount)

    booking = Booking(
        user_id=user_id,
        event_id=data.event_id,
        ticket_type=data.ticket_type.value,
        quantity=1,
        base_amount=base_amount,
        discount_amount=discount,
        total_amount=base_amount - discount,
        payment_status=PaymentStatus.PENDING.value,
        status=BookingStatus.CONFIRMED.value,
        coupon_id=coupon.id if coupon else None,
        coupon_code=coupon.code if coupon else None,
        referral_coupons=referrals.consumed_codes,
        attendees=[
            {
                "name": f"{data.first_name} {data.last_name}".strip(),
                "email": data.email,
                "phone": data.phone,
                "gender": data.gender,
            }
        ],
        tshirt_size=data.tshirt_size,
        government_id=data.government_id,
    )
    db.add(booking)
    await db.flush()
    await db.refresh(booking)

    bookings_created.labels(discounted="yes" if discount else "no").inc()
    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=user_id,
        total=booking.total_amount,
        discount=discount,
        coupon=booking.coupon_code,
        referrals=len(referrals.consumed_codes),
    )
    return booking


async def get_user_booking(db: AsyncSession, booking_id: str, user_id: int) -> Booking:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError(f"Booking not found with ID of {booking_id}")
    if booking.user_id != user_id:
        raise ForbiddenError("Not authorized to view this booking")
    return booking


async def get_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    """Get all bookings for a user, newest first."""
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc())
    )
    return list(result.scalars().all())


async def cancel_booking(db: AsyncSession, booking_id: str, user_id: int) -> Booking:
    """Mark a booking cancelled. Payment state is left as is."""
    booking = await get_user_booking(db, booking_id, user_id)

    result = await db.execute(
        update(Booking)
        .where(
            Booking.id == booking.id,
            Booking.status != BookingStatus.CANCELLED.value,
        )
        .values(status=BookingStatus.CANCELLED.value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise InvalidStateError("Booking is already cancelled")

    await db.refresh(booking)
    logger.info("booking_cancelled", booking_id=booking.id, user_id=user_id)
    return booking


async def update_booking(
    db: AsyncSession,
    booking_id: str,
    user_id: int,
    data: BookingUpdate,
) -> Booking:
    booking = await get_user_booking(db, booking_id, user_id)

    changes = data.model_dump(exclude_unset=True, exclude_none=True, mode="json")
    for name, value in changes.items():
        setattr(booking, name, value)

    await db.flush()
    await db.refresh(booking)
    logger.info("booking_updated", booking_id=booking.id, fields=sorted(changes))
    return booking
