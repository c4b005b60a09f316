"""Pricing domain schemas - Pydantic models for validation"""

from typing import Literal, Optional

from pydantic import BaseModel, field_validator

PricingCategory = Literal["service", "addon", "bracket"]


class PricingItem(BaseModel):
    """A row of the admin-managed rate table"""

    id: Optional[int] = None
    category: PricingCategory
    itemKey: str
    name: str
    description: Optional[str] = None
    customerPrice: float
    leadFee: float = 0.0
    minTvSize: Optional[int] = None
    maxTvSize: Optional[int] = None
    isActive: bool = True

    @field_validator("customerPrice", "leadFee")
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("Prices cannot be negative")
        return v

    @field_validator("itemKey")
    @classmethod
    def validate_item_key(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Item key is required")
        return v


class AddonItem(BaseModel):
    key: Optional[str] = None
    name: str
    price: float = 0.0


class EstimateRequest(BaseModel):
    serviceType: str
    addons: list[AddonItem] = []


class EstimateResponse(BaseModel):
    serviceType: str
    customerEstimate: float
    addonsEstimate: float
    totalEstimate: float
    leadFee: float


class ServiceTierResponse(BaseModel):
    key: str
    name: str
    description: str
    category: str
    minTvSize: int
    maxTvSize: Optional[int] = None
    installerEarnings: int
    customerPrice: int


class BookingPricingResponse(BaseModel):
    basePrice: float
    addonsPrice: float
    installerEarnings: float
    appFee: float
    totalPrice: float
    feePercentage: float


class LeadPricingResponse(BaseModel):
    serviceType: str
    leadFee: float
    priority: int
