"""
Schemas for non-mutating coupon and referral previews.
"""

from pydantic import BaseModel, Field


class CouponValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)


class CouponValidateResponse(BaseModel):
    success: bool = True
    code: str
    discount: int


class ReferralValidateRequest(BaseModel):
    codes: list[str]


class ReferralValidateResponse(BaseModel):
    success: bool = True
    valid_codes: list[str] = Field(..., serialization_alias="validCodes")
    total_discount: int = Field(..., serialization_alias="totalDiscount")
