"""
Referral services
Sales staff referral codes, booking discounts and store commission tracking
"""

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import REFERRAL_DISCOUNT_PERCENTAGE, STORE_REFERRAL_REWARD
from ...models import ReferralCode, ReferralUsage, StoreReferralUsage
from ..retailers.detection import retailer_detection_service

logger = logging.getLogger(__name__)


@dataclass
class ReferralDiscount:
    success: bool
    discount_amount: float = 0.0
    discount_percentage: float = 0.0
    subsidy_amount: float = 0.0  # Paid by the installer on top of the lead fee
    referral_code_id: Optional[int] = None
    sales_staff_name: Optional[str] = None
    sales_staff_store: Optional[str] = None
    message: Optional[str] = None


def normalize_code(code: str) -> str:
    return (code or "").upper().strip()


def generate_sales_staff_code(sales_staff_name: str) -> str:
    """HN + first four letters of the name + three random digits"""
    name_code = re.sub(r"[^a-zA-Z]", "", sales_staff_name)[:4].upper()
    return f"HN{name_code}{secrets.randbelow(1000):03d}"


class ReferralService:
    """Service layer for sales staff referral codes"""

    def __init__(self, db: Session):
        self.db = db

    def get_code(self, code: str, active_only: bool = True) -> Optional[ReferralCode]:
        query = self.db.query(ReferralCode).filter(ReferralCode.referral_code == normalize_code(code))
        if active_only:
            query = query.filter(ReferralCode.is_active.is_(True))
        return query.first()

    def create_sales_staff_code(
        self, sales_staff_name: str, sales_staff_store: str, custom_code: Optional[str] = None
    ) -> ReferralCode:
        """
        Create a 10% sales staff code

        Raises:
            HTTPException: Code already taken (400)
        """
        code = normalize_code(custom_code) if custom_code else generate_sales_staff_code(sales_staff_name)
        if self.get_code(code, active_only=False):
            raise HTTPException(status_code=400, detail=f"Referral code {code} already exists")

        referral = ReferralCode(
            referral_code=code,
            referral_type="sales_staff",
            sales_staff_name=sales_staff_name,
            sales_staff_store=sales_staff_store,
            discount_percentage=REFERRAL_DISCOUNT_PERCENTAGE,
            user_id=None,
            total_referrals=0,
            total_earnings=0.0,
            is_active=True,
        )
        self.db.add(referral)
        self.db.commit()
        self.db.refresh(referral)
        logger.info(f"🏷️ Created sales staff referral code {code} for {sales_staff_name} ({sales_staff_store})")
        return referral

    def validate_and_calculate_discount(self, code: str, booking_amount: float) -> ReferralDiscount:
        try:
            referral = self.get_code(code)
            if not referral:
                return ReferralDiscount(success=False, message="Invalid or inactive referral code")

            discount_percentage = referral.discount_percentage
            discount_amount = round(booking_amount * discount_percentage / 100, 2)
            is_sales_staff = referral.referral_type == "sales_staff"

            return ReferralDiscount(
                success=True,
                discount_amount=discount_amount,
                discount_percentage=discount_percentage,
                subsidy_amount=discount_amount if is_sales_staff else 0.0,
                referral_code_id=referral.id,
                sales_staff_name=referral.sales_staff_name,
                sales_staff_store=referral.sales_staff_store,
                message=(
                    f"{discount_percentage:g}% discount applied (subsidized by installer)"
                    if is_sales_staff
                    else f"{discount_percentage:g}% discount applied"
                ),
            )
        except SQLAlchemyError as e:
            logger.error(f"❌ Error validating referral code {code}: {e}")
            return ReferralDiscount(success=False, message="Error validating referral code")

    def apply_referral_to_booking(
        self,
        booking_id: int,
        referral_code_id: int,
        discount_amount: float,
        subsidy_amount: float,
        customer_user_id: Optional[int] = None,
    ) -> bool:
        """Record the code's use on a booking and update its statistics (caller commits)"""
        referral = self.db.query(ReferralCode).filter(ReferralCode.id == referral_code_id).first()
        if not referral:
            return False

        is_sales_staff = referral.referral_type == "sales_staff"
        self.db.add(
            ReferralUsage(
                referral_code_id=referral.id,
                booking_id=booking_id,
                referrer_user_id=referral.user_id,
                referee_user_id=customer_user_id,
                discount_amount=discount_amount,
                reward_amount=0.0,
                subsidized_by_installer=is_sales_staff,
                installer_subsidy_amount=subsidy_amount,
                status="pending",
                paid_out=False,
            )
        )
        referral.total_referrals = (referral.total_referrals or 0) + 1
        referral.total_earnings = round((referral.total_earnings or 0.0) + subsidy_amount, 2)

        if is_sales_staff:
            StoreReferralCompletionService(self.db).track_referral_usage(
                booking_id, referral.referral_code, referral.sales_staff_name, referral.sales_staff_store
            )

        logger.info(f"🏷️ Referral {referral.referral_code} applied to booking {booking_id} (-€{discount_amount:.2f})")
        return True

    def get_all_sales_staff_codes(self) -> list[ReferralCode]:
        return (
            self.db.query(ReferralCode)
            .filter(ReferralCode.referral_type == "sales_staff", ReferralCode.is_active.is_(True))
            .order_by(ReferralCode.created_at.desc())
            .all()
        )

    @staticmethod
    def calculate_installer_lead_fee_with_subsidy(base_fee: float, subsidy_amount: float) -> float:
        return round(base_fee + subsidy_amount, 2)

    def deactivate_sales_staff_code(self, referral_code_id: int) -> bool:
        referral = self.db.query(ReferralCode).filter(ReferralCode.id == referral_code_id).first()
        if not referral:
            return False
        referral.is_active = False
        self.db.commit()
        logger.info(f"🔒 Deactivated referral code {referral.referral_code}")
        return True


class StoreReferralCompletionService:
    """Store commission is only earned once the referred installation is completed"""

    def __init__(self, db: Session):
        self.db = db

    def track_referral_usage(
        self,
        booking_id: int,
        referral_code: str,
        staff_name: Optional[str] = None,
        store_name: Optional[str] = None,
    ) -> Optional[StoreReferralUsage]:
        """Attribute a booking to the retailer/store behind a referral code (caller commits)"""
        parsed = retailer_detection_service.detect_retailer_from_referral_code(referral_code)
        if not parsed:
            return None

        usage = StoreReferralUsage(
            booking_id=booking_id,
            retailer_code=parsed.retailer_code,
            store_code=parsed.store_code,
            store_name=store_name or retailer_detection_service.get_store_name(parsed.retailer_code, parsed.store_code),
            staff_name=staff_name or parsed.staff_name,
            reward_amount=STORE_REFERRAL_REWARD,
        )
        self.db.add(usage)
        return usage

    def record_installation_completion(self, booking_id: int) -> int:
        """Mark the booking's referral records completed. Returns how many were updated."""
        try:
            records = self.db.query(StoreReferralUsage).filter(StoreReferralUsage.booking_id == booking_id).all()
            if not records:
                logger.info(f"ℹ️ No referral records found for booking {booking_id}")
                return 0

            now = datetime.utcnow()
            for record in records:
                record.installation_completed = True
                record.completed_at = now
                record.commission_earned = record.reward_amount
                logger.info(
                    f"✅ Referral completion for {record.staff_name} at {record.store_name}: "
                    f"€{record.reward_amount:.2f} commission earned"
                )
            self.db.commit()
            return len(records)
        except SQLAlchemyError as e:
            # Completing the installation must not fail on referral bookkeeping
            self.db.rollback()
            logger.error(f"❌ Error recording referral completion for booking {booking_id}: {e}")
            return 0

    def _records(self, retailer_code: str, store_code: Optional[str]) -> list[StoreReferralUsage]:
        query = self.db.query(StoreReferralUsage).filter(StoreReferralUsage.retailer_code == retailer_code)
        if store_code:
            query = query.filter(StoreReferralUsage.store_code == store_code)
        return query.all()

    def get_completed_referral_earnings(self, retailer_code: str, store_code: Optional[str] = None) -> float:
        try:
            records = self._records(retailer_code, store_code)
            return round(sum(r.commission_earned or 0.0 for r in records if r.installation_completed), 2)
        except SQLAlchemyError as e:
            logger.error(f"❌ Error getting completed referral earnings: {e}")
            return 0.0

    def get_staff_completion_metrics(self, retailer_code: str, store_code: Optional[str] = None) -> list[dict]:
        try:
            records = self._records(retailer_code, store_code)
        except SQLAlchemyError as e:
            logger.error(f"❌ Error getting staff completion metrics: {e}")
            return []

        metrics: dict[str, dict] = {}
        for record in records:
            name = record.staff_name or "Unknown"
            entry = metrics.setdefault(
                name,
                {"staffName": name, "totalBookings": 0, "completedInstallations": 0, "totalCommissionEarned": 0.0},
            )
            entry["totalBookings"] += 1
            if record.installation_completed:
                entry["completedInstallations"] += 1
                entry["totalCommissionEarned"] = round(
                    entry["totalCommissionEarned"] + (record.commission_earned or 0.0), 2
                )

        for entry in metrics.values():
            entry["completionRate"] = round(entry["completedInstallations"] / entry["totalBookings"] * 100)
        return list(metrics.values())
