"""Lead marketplace - installers browse open bookings and buy access to them"""

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Booking, Installer, JobAssignment, LeadQualityTracking
from ..pricing.lead_pricing import resolve_lead_fee
from .service import InstallerWalletService, InsufficientBalanceError

logger = logging.getLogger(__name__)

AVAILABLE_LEAD_STATUSES = ("open", "pending", "urgent", "confirmed")
HIDDEN_CONTACT_NOTICE = "Customer details available after lead purchase"


def area_only(address: str) -> str:
    """Show only the last two address parts (town, county) before purchase"""
    if not address:
        return "Ireland"
    return ", ".join(part.strip() for part in address.split(",")[-2:])


class LeadMarketplaceService:
    """Service layer for browsing and purchasing leads"""

    def __init__(self, db: Session):
        self.db = db
        self.wallet = InstallerWalletService(db)

    def _get_installer(self, installer_id: int) -> Installer:
        installer = self.db.query(Installer).filter(Installer.id == installer_id).first()
        if not installer:
            raise HTTPException(status_code=404, detail="Installer not found")
        return installer

    def get_available_leads(self, installer_id: int) -> list[dict]:
        """Unassigned open bookings, with contact details withheld"""
        self._get_installer(installer_id)
        bookings = (
            self.db.query(Booking)
            .filter(Booking.status.in_(AVAILABLE_LEAD_STATUSES), Booking.installer_id.is_(None))
            .order_by(Booking.created_at.desc())
            .all()
        )

        leads = []
        for booking in bookings:
            lead_fee = resolve_lead_fee(self.db, booking.service_type)
            earnings = booking.estimated_total or 0.0
            leads.append(
                {
                    "id": booking.id,
                    "qrCode": booking.qr_code,
                    "tvSize": booking.tv_size,
                    "serviceType": booking.service_type,
                    "wallType": booking.wall_type,
                    "mountType": booking.mount_type,
                    "addons": booking.addons or [],
                    "address": area_only(booking.address),
                    "preferredDate": booking.scheduled_date,
                    "timeSlot": booking.time_slot,
                    "status": booking.status,
                    "leadFee": lead_fee,
                    "estimatedEarnings": earnings,
                    "profitMargin": max(0.0, round(earnings - lead_fee, 2)),
                    "customer": {
                        "name": HIDDEN_CONTACT_NOTICE,
                        "email": None,
                        "phone": None,
                    },
                    "createdAt": booking.created_at,
                }
            )
        return leads

    def purchase_lead(self, installer_id: int, booking_id: int) -> tuple[Booking, Installer, JobAssignment]:
        """
        Buy a lead: charge the wallet, assign the booking and create a paid job assignment

        Raises:
            HTTPException: Unknown installer/booking (404) or booking already taken (400)
            InsufficientBalanceError: Wallet cannot cover the lead fee
        """
        installer = self._get_installer(installer_id)
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise HTTPException(status_code=404, detail="Lead not found")
        if booking.installer_id:
            raise HTTPException(status_code=400, detail="Lead already purchased by another installer")
        if booking.status not in AVAILABLE_LEAD_STATUSES:
            raise HTTPException(status_code=400, detail=f"Lead is not available (status: {booking.status})")

        lead_fee = resolve_lead_fee(self.db, booking.service_type)
        wallet = self.wallet.get_or_create_wallet(installer_id)
        if wallet.balance < lead_fee:
            logger.warning(
                f"⚠️ Installer {installer_id} has €{wallet.balance:.2f}, lead {booking_id} needs €{lead_fee:.2f}"
            )
            raise InsufficientBalanceError(required=lead_fee, available=wallet.balance)

        now = datetime.utcnow()
        assignment = JobAssignment(
            booking_id=booking.id,
            installer_id=installer_id,
            status="accepted",
            accepted_date=now,
            lead_fee=lead_fee,
            lead_fee_status="paid",
            lead_paid_date=now,
        )
        self.db.add(assignment)
        self.db.flush()

        wallet.balance = round(wallet.balance - lead_fee, 2)
        wallet.total_spent = round(wallet.total_spent + lead_fee, 2)
        self.wallet.record_transaction(
            installer_id,
            "lead_purchase",
            -lead_fee,
            f"Purchased lead access for request #{booking.id}",
            job_assignment_id=assignment.id,
            booking_id=booking.id,
        )

        booking.installer_id = installer_id
        booking.lead_fee = lead_fee
        booking.status = "installation_scheduled"

        tracking = (
            self.db.query(LeadQualityTracking).filter(LeadQualityTracking.booking_id == booking.id).first()
        )
        if tracking:
            tracking.installer_id = installer_id

        self.db.commit()
        self.db.refresh(booking)
        self.db.refresh(assignment)
        self.db.refresh(installer)
        logger.info(f"✅ Installer {installer_id} purchased lead {booking.qr_code} for €{lead_fee:.2f}")
        return booking, installer, assignment
