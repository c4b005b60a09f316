from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), default="customer", nullable=False)  # customer, installer, admin
    email_verified = Column(Boolean, default=False, nullable=False)
    registration_method = Column(String(20), default="email", nullable=False)  # email, invoice, guest
    retailer_invoice_number = Column(String(50), nullable=True)
    invoice_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    bookings = relationship("Booking", back_populates="user")
    installer_profile = relationship("Installer", back_populates="user", uselist=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class Installer(Base):
    __tablename__ = "installers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, unique=True)
    business_name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    service_area = Column(String(255), nullable=True)
    years_experience = Column(Integer, nullable=True)
    approval_status = Column(String(20), default="pending", nullable=False)  # pending, approved, rejected
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="installer_profile")
    wallet = relationship("InstallerWallet", back_populates="installer", uselist=False)
    job_assignments = relationship("JobAssignment", back_populates="installer")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    installer_id = Column(Integer, ForeignKey("installers.id"), nullable=True)
    qr_code = Column(String(50), unique=True, index=True, nullable=False)
    tv_size = Column(Integer, nullable=False)
    service_type = Column(String(50), nullable=False)
    wall_type = Column(String(50), nullable=False)
    mount_type = Column(String(50), nullable=False)
    addons = Column(JSON, default=list)  # [{"key", "name", "price"}]
    address = Column(Text, nullable=False)
    scheduled_date = Column(DateTime, nullable=True)
    time_slot = Column(String(50), nullable=True)
    customer_notes = Column(Text, nullable=True)
    difficulty = Column(String(20), default="moderate")
    contact_name = Column(String(255), nullable=True)
    contact_email = Column(String(255), index=True, nullable=True)
    contact_phone = Column(String(50), nullable=True)
    # Pricing (EUR)
    estimated_price = Column(Float, default=0.0, nullable=False)
    estimated_addons_price = Column(Float, default=0.0, nullable=False)
    estimated_total = Column(Float, default=0.0, nullable=False)
    agreed_price = Column(Float, nullable=True)
    lead_fee = Column(Float, default=0.0, nullable=False)
    total_lead_fee = Column(Float, default=0.0, nullable=False)  # Lead fee incl. add-ons and subsidy
    referral_code = Column(String(50), nullable=True)
    referral_discount = Column(Float, default=0.0, nullable=False)
    payment_intent_id = Column(String(255), nullable=True)
    # Performance refunds
    quality_stars = Column(Integer, default=0)
    eligible_for_refund = Column(Boolean, default=False, nullable=False)
    refund_processed = Column(Boolean, default=False, nullable=False)
    refund_amount = Column(Float, default=0.0)
    refund_percentage = Column(Float, nullable=True)
    # pending, open, urgent, confirmed, installation_scheduled, in_progress, completed, cancelled
    status = Column(String(30), default="pending", nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="bookings")
    installer = relationship("Installer")
    job_assignments = relationship(
        "JobAssignment", back_populates="booking", cascade="all, delete-orphan"
    )


class JobAssignment(Base):
    __tablename__ = "job_assignments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    installer_id = Column(Integer, ForeignKey("installers.id"), nullable=False, index=True)
    status = Column(String(20), default="accepted", nullable=False)  # accepted, declined, completed
    accepted_date = Column(DateTime, nullable=True)
    lead_fee = Column(Float, default=0.0, nullable=False)
    lead_fee_status = Column(String(20), default="pending", nullable=False)  # pending, paid, refunded
    lead_paid_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    booking = relationship("Booking", back_populates="job_assignments")
    installer = relationship("Installer", back_populates="job_assignments")


class InstallerWallet(Base):
    __tablename__ = "installer_wallets"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    installer_id = Column(Integer, ForeignKey("installers.id"), unique=True, nullable=False)
    balance = Column(Float, default=0.0, nullable=False)
    total_spent = Column(Float, default=0.0, nullable=False)
    total_earned = Column(Float, default=0.0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    installer = relationship("Installer", back_populates="wallet")


class InstallerTransaction(Base):
    __tablename__ = "installer_transactions"

    id = Column(Integer, primary_key=True, index=True)
    installer_id = Column(Integer, ForeignKey("installers.id"), nullable=False, index=True)
    # credit_purchase, lead_purchase, addon_fee, referral_subsidy, job_earnings, credit
    type = Column(String(30), nullable=False)
    amount = Column(Float, nullable=False)  # Signed: debits are negative
    description = Column(Text, nullable=True)
    job_assignment_id = Column(Integer, ForeignKey("job_assignments.id"), nullable=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    payment_intent_id = Column(String(255), nullable=True)
    status = Column(String(20), default="completed", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class LeadPricing(Base):
    __tablename__ = "lead_pricing"

    id = Column(Integer, primary_key=True, index=True)
    service_type = Column(String(50), unique=True, nullable=False)
    lead_fee = Column(Float, nullable=False)
    priority = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class PricingConfig(Base):
    __tablename__ = "pricing_config"

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String(20), nullable=False, index=True)  # service, addon, bracket
    item_key = Column(String(50), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    customer_price = Column(Float, nullable=False)
    lead_fee = Column(Float, default=0.0, nullable=False)
    min_tv_size = Column(Integer, nullable=True)
    max_tv_size = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class LeadQualityTracking(Base):
    __tablename__ = "lead_quality_tracking"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    installer_id = Column(Integer, ForeignKey("installers.id"), nullable=True)
    quality_score = Column(Integer, default=50, nullable=False)
    risk_level = Column(String(20), default="medium", nullable=False)  # low, medium, high, verified
    suspicious_activity = Column(Boolean, default=False, nullable=False)
    multiple_bookings_same_details = Column(Boolean, default=False, nullable=False)
    requires_verification = Column(Boolean, default=False, nullable=False)
    phone_verified = Column(Boolean, default=False, nullable=False)
    phone_verification_date = Column(DateTime, nullable=True)
    installer_contacted = Column(Boolean, default=False, nullable=False)
    customer_responded = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CustomerVerification(Base):
    __tablename__ = "customer_verification"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    phone_number = Column(String(50), nullable=False)
    phone_verification_code = Column(String(10), nullable=True)
    phone_verified = Column(Boolean, default=False, nullable=False)
    phone_verification_attempts = Column(Integer, default=0, nullable=False)
    phone_verification_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AntiManipulation(Base):
    __tablename__ = "anti_manipulation"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    installer_id = Column(Integer, ForeignKey("installers.id"), nullable=True)
    rapid_booking_cancellation = Column(Boolean, default=False, nullable=False)
    price_discrepancy_reported = Column(Boolean, default=False, nullable=False)
    high_risk_payment = Column(Boolean, default=False, nullable=False)
    qr_code_access_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class LeadRefund(Base):
    __tablename__ = "lead_refunds"

    id = Column(Integer, primary_key=True, index=True)
    installer_id = Column(Integer, ForeignKey("installers.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    original_lead_fee = Column(Float, nullable=False)
    refund_reason = Column(String(50), nullable=False)
    refund_amount = Column(Float, nullable=False)
    refund_type = Column(String(20), default="credit", nullable=False)
    evidence_provided = Column(Text, nullable=True)
    installer_notes = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, approved, processed, rejected
    automatic_approval = Column(Boolean, default=False, nullable=False)
    fraud_check_passed = Column(Boolean, default=True, nullable=False)
    requested_date = Column(DateTime, default=datetime.utcnow)
    reviewed_date = Column(DateTime, nullable=True)
    processed_date = Column(DateTime, nullable=True)


class PerformanceRefundSetting(Base):
    __tablename__ = "performance_refund_settings"

    id = Column(Integer, primary_key=True, index=True)
    star_level = Column(Integer, unique=True, nullable=False)
    refund_percentage = Column(Float, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class RetailerInvoice(Base):
    __tablename__ = "retailer_invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(50), unique=True, index=True, nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)
    retailer_code = Column(String(10), default="HN", nullable=False)
    store_code = Column(String(10), nullable=True)
    store_name = Column(String(255), nullable=True)
    purchase_amount = Column(Float, nullable=True)
    purchase_date = Column(DateTime, nullable=True)
    product_details = Column(Text, nullable=True)
    is_used_for_registration = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class ReferralCode(Base):
    __tablename__ = "referral_codes"

    id = Column(Integer, primary_key=True, index=True)
    referral_code = Column(String(50), unique=True, index=True, nullable=False)
    referral_type = Column(String(20), default="customer", nullable=False)  # sales_staff, customer
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    sales_staff_name = Column(String(255), nullable=True)
    sales_staff_store = Column(String(255), nullable=True)
    discount_percentage = Column(Float, default=10.0, nullable=False)
    total_referrals = Column(Integer, default=0, nullable=False)
    total_earnings = Column(Float, default=0.0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class ReferralUsage(Base):
    __tablename__ = "referral_usage"

    id = Column(Integer, primary_key=True, index=True)
    referral_code_id = Column(Integer, ForeignKey("referral_codes.id"), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    referrer_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    referee_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    discount_amount = Column(Float, default=0.0, nullable=False)
    reward_amount = Column(Float, default=0.0, nullable=False)
    subsidized_by_installer = Column(Boolean, default=False, nullable=False)
    installer_subsidy_amount = Column(Float, default=0.0, nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    paid_out = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class StoreReferralUsage(Base):
    __tablename__ = "store_referral_usage"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    retailer_code = Column(String(10), nullable=False, index=True)
    store_code = Column(String(10), nullable=True)
    store_name = Column(String(255), nullable=True)
    staff_name = Column(String(255), nullable=True)
    reward_amount = Column(Float, default=0.0, nullable=False)
    installation_completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    commission_earned = Column(Float, default=0.0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
