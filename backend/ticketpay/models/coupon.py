"""
Promotional coupon. Read-only from the booking core; coupons are not
single-use, so applying one never mutates it.
"""

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint

from ticketpay.db.base import Base, TimestampMixin


class Coupon(Base, TimestampMixin):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True, nullable=False)
    discount = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("discount >= 0", name="check_coupon_discount_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Coupon(code={self.code}, discount={self.discount}, active={self.is_active})>"
