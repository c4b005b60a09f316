"""Fraud prevention router - lead quality, verification and lead refunds"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import ensure_booking_access, ensure_installer_access, get_current_user, require_admin
from ...database import get_db
from ...email_service import send_quietly, send_refund_processed_email
from ...models import Booking, Installer, LeadRefund, User
from ...rate_limiter import create_rate_limiter
from .schemas import (
    ContactOutcomeRequest,
    InstallationPatternsResponse,
    LeadRefundResponse,
    ManipulationCheckRequest,
    ManipulationCheckResponse,
    PaymentRiskRequest,
    PaymentRiskResponse,
    PhoneVerificationRequest,
    QualityAssessmentResponse,
    QualityMetricsResponse,
    RefundDecisionRequest,
    RefundEligibilityResponse,
    RefundRequest,
    RefundRequestResult,
    VerifyPhoneRequest,
)
from .service import HIGH_PAYMENT_RISK_THRESHOLD, FraudPreventionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/fraud", tags=["Fraud Prevention"])
admin_router = APIRouter(prefix="/api/admin/refunds", tags=["Fraud Prevention Admin"])

phone_verification_limit = create_rate_limiter(limit=5, window_seconds=900, key_prefix="phone_verification")


def get_fraud_service(db: Session = Depends(get_db)) -> FraudPreventionService:
    """Dependency injection for FraudPreventionService"""
    return FraudPreventionService(db)


def _get_booking_or_404(db: Session, booking_id: int) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


def _refund_response(r: LeadRefund) -> LeadRefundResponse:
    return LeadRefundResponse(
        id=r.id,
        installerId=r.installer_id,
        bookingId=r.booking_id,
        originalLeadFee=r.original_lead_fee,
        refundReason=r.refund_reason,
        refundAmount=r.refund_amount,
        refundType=r.refund_type,
        evidenceProvided=r.evidence_provided,
        installerNotes=r.installer_notes,
        adminNotes=r.admin_notes,
        status=r.status,
        automaticApproval=r.automatic_approval,
        requestedDate=r.requested_date,
        reviewedDate=r.reviewed_date,
        processedDate=r.processed_date,
    )


def _queue_refund_email(background_tasks: BackgroundTasks, db: Session, refund: LeadRefund) -> None:
    installer = db.query(Installer).filter(Installer.id == refund.installer_id).first()
    booking = db.query(Booking).filter(Booking.id == refund.booking_id).first()
    if not installer or not installer.email:
        return
    background_tasks.add_task(
        send_quietly,
        send_refund_processed_email,
        to=installer.email,
        installer_name=installer.contact_name or installer.business_name,
        qr_code=booking.qr_code if booking else str(refund.booking_id),
        amount=refund.refund_amount,
        reason=refund.refund_reason,
    )


# ============================================================================
# LEAD QUALITY
# ============================================================================


@router.post("/bookings/{booking_id}/assess", response_model=QualityAssessmentResponse)
async def assess_booking(
    booking_id: int,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
    service: FraudPreventionService = Depends(get_fraud_service),
):
    booking = _get_booking_or_404(db, booking_id)
    assessment = service.assess_customer_quality(booking.id, booking.user_id)
    return QualityAssessmentResponse(
        bookingId=booking.id,
        qualityScore=assessment.quality_score,
        riskLevel=assessment.risk_level,
        requiresVerification=assessment.requires_verification,
        suspiciousFlags=assessment.suspicious_flags,
        recommendations=assessment.recommendations,
    )


@router.post("/bookings/{booking_id}/manipulation-check", response_model=ManipulationCheckResponse)
async def check_manipulation(
    booking_id: int,
    data: ManipulationCheckRequest,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
    service: FraudPreventionService = Depends(get_fraud_service),
):
    _get_booking_or_404(db, booking_id)
    flags = service.detect_manipulation(booking_id, data.installerId)
    return ManipulationCheckResponse(bookingId=booking_id, flags=flags, suspicious=bool(flags))


@router.post("/bookings/{booking_id}/payment-risk", response_model=PaymentRiskResponse)
async def check_payment_risk(
    booking_id: int,
    data: PaymentRiskRequest,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
    service: FraudPreventionService = Depends(get_fraud_service),
):
    _get_booking_or_404(db, booking_id)
    score = service.track_payment_risk(booking_id, data.payment)
    return PaymentRiskResponse(
        bookingId=booking_id, riskScore=score, highRisk=score > HIGH_PAYMENT_RISK_THRESHOLD
    )


# ============================================================================
# PHONE VERIFICATION
# ============================================================================


@router.post("/bookings/{booking_id}/phone-verification")
async def start_phone_verification(
    booking_id: int,
    data: PhoneVerificationRequest,
    _: None = Depends(phone_verification_limit),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: FraudPreventionService = Depends(get_fraud_service),
):
    ensure_booking_access(current_user, _get_booking_or_404(db, booking_id))
    result = service.initiate_phone_verification(booking_id, data.phoneNumber)
    if not result["success"]:
        raise HTTPException(status_code=500, detail="Failed to start phone verification")
    # The code itself only goes out by SMS
    return {"success": True, "message": "Verification code sent"}


@router.post("/bookings/{booking_id}/verify-phone")
async def verify_phone(
    booking_id: int,
    data: VerifyPhoneRequest,
    _: None = Depends(phone_verification_limit),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: FraudPreventionService = Depends(get_fraud_service),
):
    ensure_booking_access(current_user, _get_booking_or_404(db, booking_id))
    if not service.verify_phone_code(booking_id, data.code):
        raise HTTPException(status_code=400, detail="Invalid verification code")
    return {"success": True, "verified": True}


# ============================================================================
# INSTALLER LEAD REFUNDS
# ============================================================================


@router.post("/installers/{installer_id}/contact-outcome")
async def report_contact_outcome(
    installer_id: int,
    data: ContactOutcomeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: FraudPreventionService = Depends(get_fraud_service),
):
    ensure_installer_access(current_user, installer_id)
    _get_booking_or_404(db, data.bookingId)
    tracking = service.record_contact_outcome(
        data.bookingId, installer_id, data.installerContacted, data.customerResponded
    )
    return {
        "bookingId": tracking.booking_id,
        "installerContacted": tracking.installer_contacted,
        "customerResponded": tracking.customer_responded,
    }


@router.post("/installers/{installer_id}/refund-eligibility", response_model=RefundEligibilityResponse)
async def check_refund_eligibility(
    installer_id: int,
    data: RefundRequest,
    current_user: User = Depends(get_current_user),
    service: FraudPreventionService = Depends(get_fraud_service),
):
    ensure_installer_access(current_user, installer_id)
    eligibility = service.assess_refund_eligibility(installer_id, data.bookingId, data.reason)
    return RefundEligibilityResponse(
        eligible=eligibility.eligible,
        reason=eligibility.reason,
        refundAmount=eligibility.refund_amount,
        automaticApproval=eligibility.automatic_approval,
        evidence=eligibility.evidence,
    )


@router.post("/installers/{installer_id}/refunds", response_model=RefundRequestResult)
async def request_refund(
    installer_id: int,
    data: RefundRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: FraudPreventionService = Depends(get_fraud_service),
):
    ensure_installer_access(current_user, installer_id)
    logger.info(f"📥 Refund request from installer {installer_id} for booking {data.bookingId} ({data.reason})")

    result = service.process_lead_refund(
        installer_id, data.bookingId, data.reason, data.evidence, data.installerNotes
    )
    if not result["success"]:
        raise HTTPException(status_code=400, detail=result["message"])

    if result["status"] == "processed":
        _queue_refund_email(background_tasks, db, service.get_refund(result["refundId"]))
    return result


@router.get("/installers/{installer_id}/patterns", response_model=InstallationPatternsResponse)
async def get_installation_patterns(
    installer_id: int,
    _: User = Depends(require_admin),
    service: FraudPreventionService = Depends(get_fraud_service),
):
    return InstallationPatternsResponse(installerId=installer_id, **service.monitor_installation_patterns(installer_id))


# ============================================================================
# ADMIN REFUND REVIEW
# ============================================================================


@admin_router.get("", response_model=list[LeadRefundResponse])
async def list_refund_requests(
    status: str = Query(None),
    _: User = Depends(require_admin),
    service: FraudPreventionService = Depends(get_fraud_service),
):
    return [_refund_response(r) for r in service.get_refund_requests(status)]


@admin_router.post("/{refund_id}/approve", response_model=LeadRefundResponse)
async def approve_refund(
    refund_id: int,
    data: RefundDecisionRequest,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    service: FraudPreventionService = Depends(get_fraud_service),
):
    if not service.approve_refund(refund_id, data.adminNotes):
        raise HTTPException(status_code=400, detail="Refund not found or already reviewed")

    refund = service.get_refund(refund_id)
    logger.info(f"✅ Admin {admin.email} approved refund #{refund_id}")
    _queue_refund_email(background_tasks, db, refund)
    return _refund_response(refund)


@admin_router.post("/{refund_id}/reject", response_model=LeadRefundResponse)
async def reject_refund(
    refund_id: int,
    data: RefundDecisionRequest,
    admin: User = Depends(require_admin),
    service: FraudPreventionService = Depends(get_fraud_service),
):
    if not service.reject_refund(refund_id, data.adminNotes):
        raise HTTPException(status_code=400, detail="Refund not found or already reviewed")

    logger.info(f"🚫 Admin {admin.email} rejected refund #{refund_id}")
    return _refund_response(service.get_refund(refund_id))


@admin_router.get("/quality-metrics", response_model=QualityMetricsResponse)
async def get_quality_metrics(
    _: User = Depends(require_admin),
    service: FraudPreventionService = Depends(get_fraud_service),
):
    return service.get_quality_metrics()
