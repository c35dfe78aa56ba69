from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class SubscriptionCreateRequest(BaseModel):
    planId: str = Field(min_length=1)
    paymentMethodId: Optional[str] = None
    applicationId: Optional[str] = None
    trialDays: Optional[int] = Field(default=None, ge=1, le=365)
    seats: int = Field(default=1, ge=1)
    coupon: Optional[str] = None


class SubscriptionUpdateRequest(BaseModel):
    planId: str = Field(min_length=1)
    seats: Optional[int] = Field(default=None, ge=1)


class PaymentMethodAttachRequest(BaseModel):
    paymentMethodId: str = Field(min_length=1)
    setAsDefault: bool = False


class CouponApplyRequest(BaseModel):
    coupon: str = Field(min_length=1)
