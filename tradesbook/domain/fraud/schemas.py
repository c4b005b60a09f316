"""Fraud prevention schemas"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_phone

RefundReason = Literal["customer_unresponsive", "fake_booking", "customer_ghosted", "technical_issue"]


class QualityAssessmentResponse(BaseModel):
    bookingId: int
    qualityScore: int
    riskLevel: str
    requiresVerification: bool
    suspiciousFlags: list[str]
    recommendations: list[str]


class PhoneVerificationRequest(BaseModel):
    phoneNumber: str

    @field_validator("phoneNumber")
    @classmethod
    def validate_phone_number(cls, v: str) -> str:
        return validate_phone(v)


class VerifyPhoneRequest(BaseModel):
    code: str = Field(min_length=6, max_length=6)


class ManipulationCheckRequest(BaseModel):
    installerId: Optional[int] = None


class ManipulationCheckResponse(BaseModel):
    bookingId: int
    flags: list[str]
    suspicious: bool


class ContactOutcomeRequest(BaseModel):
    bookingId: int
    installerContacted: bool
    customerResponded: bool


class RefundRequest(BaseModel):
    bookingId: int
    reason: RefundReason
    evidence: Optional[str] = None
    installerNotes: Optional[str] = None


class RefundEligibilityResponse(BaseModel):
    eligible: bool
    reason: Optional[str] = None
    refundAmount: float
    automaticApproval: bool
    evidence: list[str] = []


class RefundRequestResult(BaseModel):
    success: bool
    message: str
    refundId: Optional[int] = None
    status: Optional[str] = None
    refundAmount: Optional[float] = None


class LeadRefundResponse(BaseModel):
    id: int
    installerId: int
    bookingId: int
    originalLeadFee: float
    refundReason: str
    refundAmount: float
    refundType: str
    evidenceProvided: Optional[str] = None
    installerNotes: Optional[str] = None
    adminNotes: Optional[str] = None
    status: str
    automaticApproval: bool
    requestedDate: Optional[datetime] = None
    reviewedDate: Optional[datetime] = None
    processedDate: Optional[datetime] = None


class RefundDecisionRequest(BaseModel):
    adminNotes: Optional[str] = None


class QualityMetricsResponse(BaseModel):
    totalBookings: int
    verifiedBookings: int
    highRiskBookings: int
    averageQualityScore: float
    refundRate: float
    fraudDetections: int


class InstallationPatternsResponse(BaseModel):
    installerId: int
    recentBookingsCount: int
    suspiciousPatterns: dict[str, bool]
    riskLevel: str


class PaymentRiskRequest(BaseModel):
    payment: dict[str, Any]


class PaymentRiskResponse(BaseModel):
    bookingId: int
    riskScore: float
    highRisk: bool
