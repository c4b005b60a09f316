"""Booking service - customer installation requests and their lifecycle"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import (
    AntiManipulation,
    Booking,
    CustomerVerification,
    JobAssignment,
    LeadQualityTracking,
    ReferralUsage,
    StoreReferralUsage,
    User,
)
from ...utils.qr_codes import generate_booking_qr_code
from ..fraud.service import FraudPreventionService
from ..pricing.lead_pricing import calculate_estimated_pricing, resolve_lead_fee
from ..referrals.service import ReferralService, StoreReferralCompletionService
from ..wallet.leads import area_only
from ..wallet.service import InstallerWalletService
from .schemas import BookingCreate

logger = logging.getLogger(__name__)

MAX_QR_CODE_ATTEMPTS = 10


class BookingService:
    """Service layer for bookings"""

    def __init__(self, db: Session):
        self.db = db
        self.wallet = InstallerWalletService(db)
        self.fraud = FraudPreventionService(db)
        self.referrals = ReferralService(db)

    def _unique_qr_code(self) -> str:
        for _ in range(MAX_QR_CODE_ATTEMPTS):
            code = generate_booking_qr_code()
            if not self.db.query(Booking.id).filter(Booking.qr_code == code).first():
                return code
        raise HTTPException(status_code=500, detail="Could not allocate a booking reference")

    def create_booking(self, data: BookingCreate, user: User) -> Booking:
        """
        Create an open booking priced from lead pricing estimates.

        A valid referral code lowers the customer total and is passed on to the
        installer as a lead fee subsidy. The new booking is scored for lead quality.
        """
        addons = [addon.model_dump() for addon in data.addons]
        estimate = calculate_estimated_pricing(data.serviceType, addons)

        booking = Booking(
            user_id=user.id,
            qr_code=self._unique_qr_code(),
            tv_size=data.tvSize,
            service_type=data.serviceType,
            wall_type=data.wallType,
            mount_type=data.mountType,
            addons=addons,
            address=data.address,
            scheduled_date=data.scheduledDate,
            time_slot=data.timeSlot,
            customer_notes=data.customerNotes,
            difficulty=data.difficulty,
            contact_name=data.contactName or user.full_name or None,
            contact_email=data.contactEmail or user.email,
            contact_phone=data.contactPhone or user.phone,
            estimated_price=estimate.customer_estimate,
            estimated_addons_price=estimate.addons_estimate,
            estimated_total=estimate.total_estimate,
            lead_fee=resolve_lead_fee(self.db, data.serviceType),
            status="open",
        )
        self.db.add(booking)
        self.db.flush()

        if data.referralCode:
            discount = self.referrals.validate_and_calculate_discount(data.referralCode, estimate.total_estimate)
            if discount.success:
                booking.referral_code = data.referralCode.upper().strip()
                booking.referral_discount = discount.discount_amount
                booking.estimated_total = round(estimate.total_estimate - discount.discount_amount, 2)
                self.referrals.apply_referral_to_booking(
                    booking.id,
                    discount.referral_code_id,
                    discount.discount_amount,
                    discount.subsidy_amount,
                    customer_user_id=user.id,
                )
            else:
                logger.warning(f"⚠️ Referral code {data.referralCode} ignored: {discount.message}")

        booking.total_lead_fee = self.wallet.calculate_complete_lead_fee(booking).total_fee
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"📋 Booking {booking.qr_code} created for {booking.contact_email} (€{booking.estimated_total:.2f})")

        self.fraud.assess_customer_quality(booking.id, user.id)
        self.db.refresh(booking)
        return booking

    def get_booking(self, booking_id: int) -> Booking:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def get_booking_by_qr_code(self, qr_code: str) -> Booking:
        booking = self.db.query(Booking).filter(Booking.qr_code == qr_code.upper()).first()
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def list_bookings(self, status: Optional[str] = None) -> list[Booking]:
        query = self.db.query(Booking)
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    def list_user_bookings(self, user_id: int) -> list[Booking]:
        return (
            self.db.query(Booking)
            .filter(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )

    def update_status(self, booking_id: int, status: str, agreed_price: Optional[float] = None) -> Booking:
        """Move a booking to a new status, settling referrals and earnings on completion"""
        booking = self.get_booking(booking_id)
        previous = booking.status

        if agreed_price is not None:
            booking.agreed_price = agreed_price
        booking.status = status
        booking.updated_at = datetime.utcnow()
        self.db.commit()
        logger.info(f"🔄 Booking {booking.qr_code} status {previous} -> {status}")

        if status == "completed" and previous != "completed":
            self._complete(booking)
        elif status == "cancelled" or agreed_price is not None:
            self.fraud.detect_manipulation(booking.id, booking.installer_id)

        self.db.refresh(booking)
        return booking

    def _complete(self, booking: Booking) -> None:
        StoreReferralCompletionService(self.db).record_installation_completion(booking.id)

        if not booking.installer_id:
            return
        assignment = (
            self.db.query(JobAssignment)
            .filter(JobAssignment.booking_id == booking.id, JobAssignment.installer_id == booking.installer_id)
            .first()
        )
        if not assignment:
            return
        assignment.status = "completed"
        earnings = booking.agreed_price or booking.estimated_total or 0.0
        self.wallet.add_job_earnings(booking.installer_id, assignment.id, earnings)

    def delete_booking(self, booking_id: int) -> None:
        """
        Remove a booking and its tracking records

        Raises:
            HTTPException: Unknown booking (404) or a lead fee was already paid (400)
        """
        booking = self.get_booking(booking_id)
        paid = (
            self.db.query(JobAssignment.id)
            .filter(JobAssignment.booking_id == booking_id, JobAssignment.lead_fee_status == "paid")
            .first()
        )
        if paid:
            raise HTTPException(status_code=400, detail="Cannot delete a booking whose lead has been purchased")

        for model in (LeadQualityTracking, CustomerVerification, AntiManipulation, ReferralUsage, StoreReferralUsage):
            self.db.query(model).filter(model.booking_id == booking_id).delete(synchronize_session=False)
        self.db.delete(booking)
        self.db.commit()
        logger.info(f"🗑️ Booking {booking_id} deleted")

    def track_booking(self, qr_code: str) -> dict:
        """Public tracker view; customer contact details are never included"""
        booking = self.get_booking_by_qr_code(qr_code)
        self.fraud.track_qr_access(booking.id)
        return {
            "qrCode": booking.qr_code,
            "status": booking.status,
            "serviceType": booking.service_type,
            "tvSize": booking.tv_size,
            "area": area_only(booking.address),
            "scheduledDate": booking.scheduled_date,
            "timeSlot": booking.time_slot,
            "estimatedTotal": booking.estimated_total,
            "installerName": booking.installer.business_name if booking.installer else None,
            "createdAt": booking.created_at,
        }
