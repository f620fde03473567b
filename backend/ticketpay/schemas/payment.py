"""
Schemas for the gateway round-trip.
"""

from typing import Optional

from pydantic import BaseModel, Field


class InitiatePaymentRequest(BaseModel):
    booking_id: str = Field(..., alias="bookingId", min_length=1)

    model_config = {"populate_by_name": True}


class GatewayPayload(BaseModel):
    """Fields posted to the hosted checkout as a hidden form."""

    key: str
    txnid: str
    amount: str
    productinfo: str
    firstname: str
    email: str
    phone: str
    surl: str
    furl: str
    hash: str
    udf1: str
    action: str


class InitiatePaymentResponse(BaseModel):
    success: bool = True
    message: str = "Payment initiation successful"
    data: GatewayPayload


class PaymentStatusResponse(BaseModel):
    booking_id: str = Field(..., serialization_alias="bookingId")
    payment_id: Optional[str] = Field(None, serialization_alias="paymentId")
    payment_status: str = Field(..., serialization_alias="status")
    amount: int

    model_config = {"populate_by_name": True}
