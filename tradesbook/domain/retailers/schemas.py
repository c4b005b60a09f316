"""Retailer and invoice schemas"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email, validate_phone


class InvoiceLoginRequest(BaseModel):
    invoiceNumber: str = Field(min_length=4, max_length=50)


class RetailerResponse(BaseModel):
    code: str
    name: str
    fullName: str
    color: str
    invoiceFormats: list[str]
    referralCodePrefix: str
    storeLocations: dict[str, str]


class InvoiceUserResponse(BaseModel):
    id: int
    email: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    role: str


class InvoiceLoginResponse(BaseModel):
    success: bool
    message: str
    accessToken: str
    tokenType: str = "bearer"
    isNewRegistration: bool
    user: InvoiceUserResponse
    retailer: RetailerResponse


class InvoiceCreate(BaseModel):
    invoiceNumber: str = Field(min_length=4, max_length=50)
    customerEmail: str
    customerName: str = Field(min_length=1, max_length=255)
    customerPhone: Optional[str] = None
    storeCode: Optional[str] = None
    storeName: Optional[str] = None
    purchaseAmount: Optional[float] = Field(default=None, ge=0)
    purchaseDate: Optional[datetime] = None
    productDetails: Optional[str] = None

    @field_validator("customerEmail")
    @classmethod
    def validate_customer_email(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("customerPhone")
    @classmethod
    def validate_customer_phone(cls, v: Optional[str]) -> Optional[str]:
        return validate_phone(v)


class InvoiceResponse(BaseModel):
    id: int
    invoiceNumber: str
    customerEmail: str
    customerName: str
    retailerCode: str
    storeCode: Optional[str] = None
    storeName: Optional[str] = None
    purchaseAmount: Optional[float] = None
    purchaseDate: Optional[datetime] = None
    isUsedForRegistration: bool


class DetectRequest(BaseModel):
    value: str = Field(min_length=2, max_length=50)
    kind: Literal["invoice", "referral"] = "invoice"


class DetectResponse(BaseModel):
    detected: bool
    retailerCode: Optional[str] = None
    retailerName: Optional[str] = None
    storeCode: Optional[str] = None
    storeName: Optional[str] = None
    invoiceNumber: Optional[str] = None
    staffName: Optional[str] = None
