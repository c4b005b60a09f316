"""Booking schemas"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email, validate_phone
from ..pricing.lead_pricing import CUSTOMER_PRICING
from ..pricing.schemas import AddonItem

BookingStatus = Literal[
    "open",
    "pending",
    "urgent",
    "confirmed",
    "installation_scheduled",
    "in_progress",
    "completed",
    "cancelled",
]


class BookingCreate(BaseModel):
    tvSize: int = Field(ge=20, le=120)
    serviceType: str
    wallType: str = Field(min_length=1, max_length=50)
    mountType: str = Field(min_length=1, max_length=50)
    addons: list[AddonItem] = []
    address: str = Field(min_length=3)
    scheduledDate: Optional[datetime] = None
    timeSlot: Optional[str] = None
    customerNotes: Optional[str] = None
    difficulty: Literal["easy", "moderate", "difficult"] = "moderate"
    contactName: Optional[str] = None
    contactEmail: Optional[str] = None
    contactPhone: Optional[str] = None
    referralCode: Optional[str] = None

    @field_validator("serviceType")
    @classmethod
    def validate_service_type(cls, v: str) -> str:
        if v not in CUSTOMER_PRICING:
            raise ValueError(f"Unknown service type: {v}")
        return v

    @field_validator("contactEmail")
    @classmethod
    def validate_contact_email(cls, v: Optional[str]) -> Optional[str]:
        return validate_email(v)

    @field_validator("contactPhone")
    @classmethod
    def validate_contact_phone(cls, v: Optional[str]) -> Optional[str]:
        return validate_phone(v)


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    agreedPrice: Optional[float] = Field(default=None, ge=0)


class BookingResponse(BaseModel):
    id: int
    qrCode: str
    userId: Optional[int] = None
    installerId: Optional[int] = None
    tvSize: int
    serviceType: str
    wallType: str
    mountType: str
    addons: list[AddonItem]
    address: str
    scheduledDate: Optional[datetime] = None
    timeSlot: Optional[str] = None
    customerNotes: Optional[str] = None
    difficulty: Optional[str] = None
    contactName: Optional[str] = None
    contactEmail: Optional[str] = None
    contactPhone: Optional[str] = None
    estimatedPrice: float
    estimatedAddonsPrice: float
    estimatedTotal: float
    agreedPrice: Optional[float] = None
    totalLeadFee: float
    referralCode: Optional[str] = None
    referralDiscount: float
    status: str
    createdAt: Optional[datetime] = None


class BookingCreatedResponse(BookingResponse):
    trackingUrl: str
    qrCodeUrl: str


class BookingTrackingResponse(BaseModel):
    qrCode: str
    status: str
    serviceType: str
    tvSize: int
    area: str
    scheduledDate: Optional[datetime] = None
    timeSlot: Optional[str] = None
    estimatedTotal: float
    installerName: Optional[str] = None
    createdAt: Optional[datetime] = None
