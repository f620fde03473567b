"""
Booking model representing one ticket purchase.

Key design decisions:
- String ids (uuid4 hex) so the booking id can travel through the gateway
  round-trip in a user-defined field
- payment_id and referral_code are unique-indexed; the payment and referral
  services look bookings up by them and update with conditional WHERE
  clauses instead of read-modify-write
- Amount invariants are enforced by CHECK constraints as the final safety net
- status (attendance lifecycle) is independent of payment_status
"""

import secrets
import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, JSON, String

from ticketpay.db.base import Base, TimestampMixin
from ticketpay.models.enums import BookingStatus, PaymentStatus


def new_booking_id() -> str:
    return uuid.uuid4().hex


def new_referral_code() -> str:
    return f"REF{secrets.token_hex(4).upper()}"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(String(32), primary_key=True, default=new_booking_id)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(String(64), nullable=True, index=True)
    ticket_type = Column(String(20), nullable=False, default="General")
    quantity = Column(Integer, nullable=False, default=1)

    # Commerce
    base_amount = Column(Integer, nullable=False)
    discount_amount = Column(Integer, nullable=False, default=0)
    total_amount = Column(Integer, nullable=False)

    # Payment
    payment_id = Column(String(64), unique=True, nullable=True, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(20), nullable=True)
    gateway_response = Column(JSON, nullable=True)

    # Referral
    referral_code = Column(String(20), unique=True, nullable=False, index=True, default=new_referral_code)
    referral_code_used = Column(Boolean, nullable=False, default=False)
    referral_code_redeemed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    referral_coupons = Column(JSON, nullable=False, default=list)

    # Coupon snapshot
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=True)
    coupon_code = Column(String(50), nullable=True)

    # Attendee details
    attendees = Column(JSON, nullable=False, default=list)
    tshirt_size = Column(String(10), nullable=True)
    government_id = Column(String(32), nullable=True)

    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)

    __table_args__ = (
        CheckConstraint("discount_amount >= 0", name="check_booking_discount_non_negative"),
        CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        CheckConstraint(
            "total_amount = base_amount - discount_amount",
            name="check_booking_total_matches",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded')",
            name="check_booking_payment_status",
        ),
        CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'attended', 'no-show')",
            name="check_booking_status",
        ),
    )

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED.value

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, user={self.user_id}, "
            f"payment={self.payment_status}, status={self.status})>"
        )
