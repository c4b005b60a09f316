"""Wallet domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class AddCreditsRequest(BaseModel):
    amount: float
    paymentIntentId: Optional[str] = None
    description: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        if v <= 0:
            raise ValueError("Amount must be greater than zero")
        if v > 5000:
            raise ValueError("Maximum top-up is €5000")
        return round(v, 2)


class PurchaseLeadRequest(BaseModel):
    bookingId: int


class WalletBalanceResponse(BaseModel):
    current: float
    totalSpent: float
    totalEarned: float
    pendingCharges: float


class TransactionResponse(BaseModel):
    id: int
    type: str
    amount: float
    description: Optional[str] = None
    jobAssignmentId: Optional[int] = None
    bookingId: Optional[int] = None
    status: str
    createdAt: Optional[datetime] = None


class SpendingStatsResponse(BaseModel):
    thisMonth: float
    thisWeek: float
    averagePerLead: float
    totalLeads: int


class WalletResponse(BaseModel):
    installerId: int
    balance: WalletBalanceResponse
    transactions: list[TransactionResponse]
    spending: SpendingStatsResponse


class LeadCustomer(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class AvailableLeadResponse(BaseModel):
    id: int
    qrCode: str
    tvSize: int
    serviceType: str
    wallType: str
    mountType: str
    addons: list[dict] = []
    address: str
    preferredDate: Optional[datetime] = None
    timeSlot: Optional[str] = None
    status: str
    leadFee: float
    estimatedEarnings: float
    profitMargin: float
    customer: LeadCustomer
    createdAt: Optional[datetime] = None


class LeadFeeBreakdownResponse(BaseModel):
    baseFee: float
    addonFees: float
    subsidyAmount: float
    totalFee: float
    breakdown: list[str]


class PurchasedLeadResponse(BaseModel):
    success: bool
    message: str
    jobAssignmentId: int
    leadFee: float
    newBalance: float
    customer: LeadCustomer
    address: str
    customerNotes: Optional[str] = None
