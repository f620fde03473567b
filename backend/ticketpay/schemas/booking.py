"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from ticketpay.models.enums import BookingStatus, TicketType


class Attendee(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None


class BookingCreate(BaseModel):
    event_id: Optional[str] = Field(None, max_length=64)
    ticket_type: TicketType = TicketType.GENERAL
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    gender: Optional[str] = Field(None, max_length=20)
    tshirt_size: Optional[str] = Field(None, max_length=10)
    government_id: Optional[str] = Field(None, max_length=32)
    coupon_code: Optional[str] = Field(None, max_length=50)
    referral_codes: list[str] = Field(default_factory=list)

    @field_validator("referral_codes", mode="before")
    @classmethod
    def split_referral_codes(cls, value):
        # The checkout form posts a comma-separated string.
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [code.strip() for code in value if code and code.strip()]

    @field_validator("coupon_code", mode="before")
    @classmethod
    def blank_coupon_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value


class BookingUpdate(BaseModel):
    """Explicit edits; payment fields are owned by the payment flow."""

    ticket_type: Optional[TicketType] = None
    status: Optional[BookingStatus] = None
    attendees: Optional[list[Attendee]] = None
    tshirt_size: Optional[str] = Field(None, max_length=10)
    government_id: Optional[str] = Field(None, max_length=32)


class BookingResponse(BaseModel):
    id: str
    user_id: int
    event_id: Optional[str]
    ticket_type: str
    quantity: int
    base_amount: int
    discount_amount: int
    total_amount: int
    payment_id: Optional[str]
    payment_status: str
    payment_method: Optional[str]
    referral_code: str
    referral_code_used: bool
    referral_coupons: list[str]
    coupon_code: Optional[str]
    attendees: list[Attendee]
    tshirt_size: Optional[str]
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: str
    status: str
