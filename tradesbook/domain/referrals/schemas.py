"""Referral schemas"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class SalesStaffCodeCreate(BaseModel):
    salesStaffName: str = Field(min_length=1, max_length=255)
    salesStaffStore: str = Field(min_length=1, max_length=255)
    customCode: Optional[str] = Field(default=None, max_length=50)

    @field_validator("customCode")
    @classmethod
    def validate_custom_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if not v.isalnum():
            raise ValueError("Referral code may only contain letters and digits")
        return v


class SalesStaffCodeResponse(BaseModel):
    id: int
    referralCode: str
    salesStaffName: Optional[str] = None
    salesStaffStore: Optional[str] = None
    discountPercentage: float
    totalReferrals: int
    isActive: bool


class ValidateReferralRequest(BaseModel):
    referralCode: str = Field(min_length=2, max_length=50)
    bookingAmount: float = Field(gt=0)


class ReferralDiscountResponse(BaseModel):
    success: bool
    discountAmount: float
    discountPercentage: float
    subsidyAmount: float
    referralCodeId: Optional[int] = None
    salesStaffName: Optional[str] = None
    salesStaffStore: Optional[str] = None
    message: Optional[str] = None


class StaffCompletionMetrics(BaseModel):
    staffName: str
    totalBookings: int
    completedInstallations: int
    completionRate: int
    totalCommissionEarned: float


class StoreEarningsResponse(BaseModel):
    retailerCode: str
    storeCode: Optional[str] = None
    completedEarnings: float
    staff: list[StaffCompletionMetrics]
