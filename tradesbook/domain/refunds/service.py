"""Performance refund service - lead fee rebates for highly rated installations"""

import logging
import math
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import Booking, JobAssignment, PerformanceRefundSetting
from ..wallet.service import InstallerWalletService

logger = logging.getLogger(__name__)

MIN_REFUND_STARS = 3

DEFAULT_REFUND_SETTINGS = [
    {
        "star_level": 3,
        "refund_percentage": 25.0,
        "description": "Good quality - 3 stars (photos + customer satisfaction)",
    },
    {
        "star_level": 4,
        "refund_percentage": 50.0,
        "description": "High quality - 4 stars (excellent photos and customer review)",
    },
    {
        "star_level": 5,
        "refund_percentage": 75.0,
        "description": "Exceptional quality - 5 stars (perfect execution and customer delight)",
    },
]


class PerformanceRefundService:
    """Service layer for star-rated performance refunds"""

    def __init__(self, db: Session):
        self.db = db
        self.wallet = InstallerWalletService(db)

    def get_refund_setting_for_stars(self, stars: float) -> Optional[PerformanceRefundSetting]:
        return (
            self.db.query(PerformanceRefundSetting)
            .filter(
                PerformanceRefundSetting.star_level == math.floor(stars),
                PerformanceRefundSetting.is_active.is_(True),
            )
            .first()
        )

    def rate_installation_quality(self, booking_id: int, stars: int) -> Optional[Booking]:
        """Store the quality rating; 3 stars or more makes the booking refund eligible"""
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            return None
        booking.quality_stars = stars
        booking.eligible_for_refund = stars >= MIN_REFUND_STARS
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"⭐ Booking {booking_id} rated {stars} stars (refund eligible: {booking.eligible_for_refund})")
        return booking

    def process_performance_refund(self, booking_id: int) -> dict:
        """Credit each paying installer with a share of the lead fee they paid, capped at the total lead fee"""
        logger.info(f"🔍 Checking performance refund eligibility for booking {booking_id}")
        try:
            booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
            if not booking:
                return {"success": False, "message": "Booking not found"}

            if booking.refund_processed:
                return {"success": False, "message": "Performance refund already processed"}

            if not booking.eligible_for_refund:
                return {"success": False, "message": "Not eligible for performance refund"}

            quality_stars = booking.quality_stars or 0
            setting = self.get_refund_setting_for_stars(quality_stars)
            if not setting:
                return {"success": False, "message": f"No refund setting configured for {quality_stars} stars"}

            total_lead_fee = booking.total_lead_fee or 0.0
            if total_lead_fee <= 0:
                return {"success": False, "message": "No lead fee to refund"}

            refund_percentage = setting.refund_percentage

            paid_assignments = (
                self.db.query(JobAssignment)
                .filter(JobAssignment.booking_id == booking_id, JobAssignment.lead_fee_status == "paid")
                .all()
            )
            if not paid_assignments:
                return {"success": False, "message": "No paid lead fee found for this booking"}

            total_refunded = 0.0
            for assignment in paid_assignments:
                # Never refund more than the installer actually paid for the lead
                paid_fee = min(total_lead_fee, assignment.lead_fee or 0.0)
                refund_amount = round(paid_fee * refund_percentage / 100, 2)
                if refund_amount <= 0:
                    continue
                wallet = self.wallet.get_or_create_wallet(assignment.installer_id)
                wallet.balance = round(wallet.balance + refund_amount, 2)
                self.wallet.record_transaction(
                    assignment.installer_id,
                    "credit",
                    refund_amount,
                    f"Performance refund - {quality_stars} quality stars",
                    booking_id=booking_id,
                )
                total_refunded += refund_amount

            if total_refunded <= 0:
                return {"success": False, "message": "No lead fee to refund"}

            booking.refund_amount = round(total_refunded, 2)
            booking.refund_processed = True
            booking.refund_percentage = refund_percentage
            self.db.commit()

            logger.info(
                f"✅ Performance refund processed: €{total_refunded:.2f} refunded to "
                f"{len(paid_assignments)} installer(s) for {quality_stars} quality stars"
            )
            return {
                "success": True,
                "message": f"Performance refund of €{total_refunded:.2f} processed for {quality_stars} quality stars",
                "refundAmount": round(total_refunded, 2),
            }
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Error processing performance refund: {e}")
            return {"success": False, "message": "Failed to process performance refund"}

    def initialize_default_settings(self) -> bool:
        """Seed the 3/4/5 star settings once. Returns True when rows were added."""
        try:
            if self.db.query(PerformanceRefundSetting.id).first():
                logger.info("ℹ️ Performance refund settings already initialized")
                return False

            for setting in DEFAULT_REFUND_SETTINGS:
                self.db.add(PerformanceRefundSetting(is_active=True, **setting))
            self.db.commit()
            logger.info("✅ Default performance refund settings initialized")
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Error initializing default performance refund settings: {e}")
            return False

    def get_settings(self) -> list[PerformanceRefundSetting]:
        return self.db.query(PerformanceRefundSetting).order_by(PerformanceRefundSetting.star_level).all()

    def get_performance_refund_summary(self) -> dict:
        try:
            refunded = (
                self.db.query(Booking)
                .filter(Booking.refund_processed.is_(True), Booking.eligible_for_refund.is_(True))
                .all()
            )

            by_star: dict[int, dict] = {}
            for booking in refunded:
                stars = booking.quality_stars or 0
                entry = by_star.setdefault(stars, {"starLevel": stars, "count": 0, "amount": 0.0})
                entry["count"] += 1
                entry["amount"] = round(entry["amount"] + (booking.refund_amount or 0.0), 2)

            return {
                "totalRefunds": len(refunded),
                "totalAmount": round(sum(b.refund_amount or 0.0 for b in refunded), 2),
                "byStarLevel": sorted(by_star.values(), key=lambda item: item["starLevel"], reverse=True),
            }
        except SQLAlchemyError as e:
            logger.error(f"❌ Error getting performance refund summary: {e}")
            return {"totalRefunds": 0, "totalAmount": 0.0, "byStarLevel": []}
