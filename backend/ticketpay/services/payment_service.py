"""
Payment initiation: turn a booking into a signed PayU checkout form.

CONCURRENCY
===========
Two browser tabs may start payment for the same booking at once. Each call
mints its own txnid and writes it with a conditional UPDATE that only
matches while the booking is not completed:

    UPDATE bookings SET payment_id = :txnid, payment_status = 'pending'
    WHERE id = :booking_id AND payment_status != 'completed'

The last writer's txnid becomes the current one. A callback carrying an
older txnid no longer matches (id, txnid) and is handled by the
reconciler's fallback path, so a stale attempt can never complete a newer
one. If the booking was completed between our read and our write the
UPDATE matches nothing and we refuse instead of re-opening a paid booking.
"""

import secrets

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpay.core.config import GatewayConfig
from ticketpay.core.exceptions import InvalidStateError, NotFoundError
from ticketpay.core.logging import get_logger
from ticketpay.core.metrics import payment_initiations
from ticketpay.models.booking import Booking
from ticketpay.models.enums import PaymentStatus
from ticketpay.models.user import User
from ticketpay.schemas.payment import GatewayPayload
from ticketpay.services import hash_signer

logger = get_logger(__name__)

GUEST_FIRST_NAME = "Guest"
GUEST_EMAIL = "guest@example.com"
GUEST_PHONE = "0000000000"


def new_txnid() -> str:
    # PayU caps txnid at 25 characters.
    return secrets.token_hex(12)


def product_descriptor(event_id: str | None) -> str:
    return f"Booking for Event ID: {event_id or 'N/A'}"


async def get_booking(db: AsyncSession, booking_id: str) -> Booking:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


async def initiate_payment(
    db: AsyncSession,
    gateway: GatewayConfig,
    booking_id: str,
) -> GatewayPayload:
    booking = await get_booking(db, booking_id)

    if booking.is_paid:
        payment_initiations.labels(result="already_paid").inc()
        logger.warning("payment_initiation_rejected", booking_id=booking_id, reason="already_paid")
        raise InvalidStateError("This booking has already been paid.")

    user = await db.get(User, booking.user_id)
    firstname = user.first_name if user else GUEST_FIRST_NAME
    email = user.email if user else GUEST_EMAIL
    phone = (user.phone if user else None) or GUEST_PHONE

    txnid = new_txnid()
    amount = str(booking.total_amount)
    productinfo = product_descriptor(booking.event_id)
    udfs = {"udf1": booking.id}

    payment_hash = hash_signer.request_hash(
        gateway,
        txnid=txnid,
        amount=amount,
        productinfo=productinfo,
        firstname=firstname,
        email=email,
        udfs=udfs,
    )

    result = await db.execute(
        update(Booking)
        .where(
            Booking.id == booking.id,
            Booking.payment_status != PaymentStatus.COMPLETED.value,
        )
        .values(payment_id=txnid, payment_status=PaymentStatus.PENDING.value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        payment_initiations.labels(result="already_paid").inc()
        logger.warning("payment_initiation_rejected", booking_id=booking_id, reason="completed_concurrently")
        raise InvalidStateError("This booking has already been paid.")

    payment_initiations.labels(result="initiated").inc()
    logger.info(
        "payment_initiated",
        booking_id=booking.id,
        txnid=txnid,
        amount=amount,
    )

    return GatewayPayload(
        key=gateway.merchant_key,
        txnid=txnid,
        amount=amount,
        productinfo=productinfo,
        firstname=firstname,
        email=email,
        phone=phone,
        surl=gateway.callback_url,
        furl=gateway.callback_url,
        hash=payment_hash,
        udf1=booking.id,
        action=gateway.payment_url,
    )


async def get_payment_status(db: AsyncSession, payment_id: str, user_id: int) -> Booking:
    """Booking whose current payment id is ``payment_id``, for its owner only."""
    result = await db.execute(select(Booking).where(Booking.payment_id == payment_id))
    booking = result.scalar_one_or_none()
    if not booking or booking.user_id != user_id:
        raise NotFoundError("No booking found for this transaction")
    return booking
