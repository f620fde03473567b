from ticketpay.models.user import User
from ticketpay.models.coupon import Coupon
from ticketpay.models.booking import Booking

__all__ = ["User", "Coupon", "Booking"]
