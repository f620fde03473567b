"""
Central API router that aggregates all route modules.

The gateway callback is mounted at the root by main.py because PayU is
configured with its absolute URL.
"""

from fastapi import APIRouter
from ticketpay.api.routes import bookings, discounts

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(bookings.router)
api_router.include_router(discounts.coupons_router)
api_router.include_router(discounts.referrals_router)
