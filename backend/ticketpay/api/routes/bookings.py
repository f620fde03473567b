"""
Booking endpoints: checkout, owner queries and payment initiation.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpay.core.config import GatewayConfig, PricingConfig, get_gateway_config, get_pricing_config
from ticketpay.core.security import get_current_user_id
from ticketpay.db.session import get_db
from ticketpay.schemas.booking import (
    BookingCancelResponse,
    BookingCreate,
    BookingResponse,
    BookingUpdate,
)
from ticketpay.schemas.payment import (
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    PaymentStatusResponse,
)
from ticketpay.services import booking_service, payment_service

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    pricing: PricingConfig = Depends(get_pricing_config),
):
    """
    Create a booking at the fixed ticket price.

    An optional coupon and up to two referral codes reduce the total.
    Referral codes are spent atomically with the booking insert.
    """
    return await booking_service.create_booking(db, user_id, booking_data, pricing)


@router.post("/initiate-payment", response_model=InitiatePaymentResponse)
async def initiate_payment(
    request: InitiatePaymentRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: GatewayConfig = Depends(get_gateway_config),
):
    """Signed PayU form fields for the caller's booking."""
    await booking_service.get_user_booking(db, request.booking_id, user_id)
    payload = await payment_service.initiate_payment(db, gateway, request.booking_id)
    return InitiatePaymentResponse(data=payload)


@router.get("/my-bookings", response_model=list[BookingResponse])
async def list_user_bookings(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.get_user_bookings(db, user_id)


@router.get("/payment-status/{payment_id}", response_model=PaymentStatusResponse)
async def get_payment_status(
    payment_id: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Payment state by current payment id (merchant txnid or gateway id)."""
    booking = await payment_service.get_payment_status(db, payment_id, user_id)
    return PaymentStatusResponse(
        booking_id=booking.id,
        payment_id=booking.payment_id,
        payment_status=booking.payment_status,
        amount=booking.total_amount,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.get_user_booking(db, booking_id, user_id)


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: str,
    booking_data: BookingUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Edit attendee details, ticket type or attendance status."""
    return await booking_service.update_booking(db, booking_id, user_id, booking_data)


@router.put("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_service.cancel_booking(db, booking_id, user_id)
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking_id=booking.id,
        status=booking.status,
    )
