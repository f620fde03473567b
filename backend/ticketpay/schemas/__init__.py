from ticketpay.schemas.booking import (
    Attendee, BookingCreate, BookingUpdate, BookingResponse, BookingCancelResponse,
)
from ticketpay.schemas.payment import (
    InitiatePaymentRequest, GatewayPayload, InitiatePaymentResponse, PaymentStatusResponse,
)
from ticketpay.schemas.discount import (
    CouponValidateRequest, CouponValidateResponse,
    ReferralValidateRequest, ReferralValidateResponse,
)

__all__ = [
    "Attendee", "BookingCreate", "BookingUpdate", "BookingResponse", "BookingCancelResponse",
    "InitiatePaymentRequest", "GatewayPayload", "InitiatePaymentResponse", "PaymentStatusResponse",
    "CouponValidateRequest", "CouponValidateResponse",
    "ReferralValidateRequest", "ReferralValidateResponse",
]
