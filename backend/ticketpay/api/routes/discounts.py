"""
Non-mutating previews for the checkout form.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpay.core.config import PricingConfig, get_pricing_config
from ticketpay.core.security import get_current_user_id
from ticketpay.db.session import get_db
from ticketpay.schemas.discount import (
    CouponValidateRequest,
    CouponValidateResponse,
    ReferralValidateRequest,
    ReferralValidateResponse,
)
from ticketpay.services.coupon_service import apply_coupon
from ticketpay.services.referral_service import preview_referrals

coupons_router = APIRouter(prefix="/coupons", tags=["Coupons"])
referrals_router = APIRouter(prefix="/referral-codes", tags=["Referral codes"])


@coupons_router.post("/validate", response_model=CouponValidateResponse)
async def validate_coupon(
    request: CouponValidateRequest,
    db: AsyncSession = Depends(get_db),
):
    quote = await apply_coupon(db, request.code.strip())
    return CouponValidateResponse(code=quote.code, discount=quote.discount)


@referrals_router.post("/validate-referral-codes", response_model=ReferralValidateResponse)
async def validate_referral_codes(
    request: ReferralValidateRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    pricing: PricingConfig = Depends(get_pricing_config),
):
    """Report which codes are redeemable by the caller without spending them."""
    codes = [code.strip() for code in request.codes if code.strip()]
    result = await preview_referrals(db, codes, user_id, pricing)
    return ReferralValidateResponse(valid_codes=result.consumed_codes, total_discount=result.discount)
