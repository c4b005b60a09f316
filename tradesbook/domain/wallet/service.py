"""Installer wallet service - credit balance and transaction ledger"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Booking, InstallerTransaction, InstallerWallet, JobAssignment
from ...shared.validators import to_kebab_key

logger = logging.getLogger(__name__)

# Lead fee components charged to installers (EUR)
SERVICE_LEAD_FEES: dict[str, float] = {
    "table-top-small": 12,
    "table-top-large": 15,
    "bronze": 20,
    "silver": 25,
    "silver-large": 30,
    "gold": 30,
    "gold-large": 35,
}
SERVICE_LEAD_FEE_DEFAULT = 20.0

ADDON_LEAD_FEES: dict[str, float] = {
    "cable-concealment": 5,
    "soundbar-mounting": 7,
    "additional-devices": 3,
}


class InsufficientBalanceError(Exception):
    """Raised when a wallet cannot cover a charge"""

    def __init__(self, required: float, available: float):
        self.required = required
        self.available = available
        super().__init__(
            "Insufficient wallet balance. Please add credits to purchase this lead."
        )


@dataclass
class LeadFeeBreakdown:
    base_fee: float
    addon_fees: float
    subsidy_amount: float
    total_fee: float
    breakdown: list[str] = field(default_factory=list)
    addon_items: list[tuple[str, float]] = field(default_factory=list)


@dataclass
class WalletBalance:
    current: float
    total_spent: float
    total_earned: float
    pending_charges: float


def _addon_key(addon) -> str:
    if isinstance(addon, dict):
        return to_kebab_key(addon.get("key") or addon.get("name") or "")
    return to_kebab_key(str(addon))


def _money(amount: float) -> str:
    return f"{amount:g}" if float(amount).is_integer() else f"{amount:.2f}"


class InstallerWalletService:
    """Service layer for installer wallets"""

    def __init__(self, db: Session):
        self.db = db

    def get_or_create_wallet(self, installer_id: int) -> InstallerWallet:
        wallet = (
            self.db.query(InstallerWallet).filter(InstallerWallet.installer_id == installer_id).first()
        )
        if wallet:
            return wallet

        wallet = InstallerWallet(installer_id=installer_id, balance=0.0, total_spent=0.0, total_earned=0.0)
        self.db.add(wallet)
        self.db.commit()
        self.db.refresh(wallet)
        logger.info(f"👛 Created wallet for installer {installer_id}")
        return wallet

    def record_transaction(self, installer_id: int, type_: str, amount: float, description: str, **extra) -> InstallerTransaction:
        transaction = InstallerTransaction(
            installer_id=installer_id,
            type=type_,
            amount=round(amount, 2),
            description=description,
            status="completed",
            **extra,
        )
        self.db.add(transaction)
        return transaction

    def add_credits(
        self,
        installer_id: int,
        amount: float,
        payment_intent_id: Optional[str] = None,
        description: Optional[str] = None,
        transaction_type: str = "credit_purchase",
    ) -> InstallerWallet:
        """Top up a wallet and record the ledger entry"""
        if amount <= 0:
            raise ValueError("Credit amount must be positive")

        wallet = self.get_or_create_wallet(installer_id)
        wallet.balance = round(wallet.balance + amount, 2)
        self.record_transaction(
            installer_id,
            transaction_type,
            amount,
            description or f"Added €{_money(amount)} credits to wallet",
            payment_intent_id=payment_intent_id,
        )
        self.db.commit()
        self.db.refresh(wallet)
        logger.info(f"💶 Added €{amount:.2f} to installer {installer_id} wallet (balance €{wallet.balance:.2f})")
        return wallet

    def calculate_complete_lead_fee(self, booking: Booking) -> LeadFeeBreakdown:
        """Lead fee for a booking: base service fee, add-on fees and referral subsidy"""
        base_fee = float(SERVICE_LEAD_FEES.get(booking.service_type, SERVICE_LEAD_FEE_DEFAULT))
        breakdown = [f"Base service: €{_money(base_fee)}"]

        addon_items: list[tuple[str, float]] = []
        for addon in booking.addons or []:
            key = _addon_key(addon)
            fee = ADDON_LEAD_FEES.get(key, 0)
            if fee > 0:
                addon_items.append((key, float(fee)))
                breakdown.append(f"{key}: €{_money(fee)}")
        addon_fees = float(sum(fee for _, fee in addon_items))

        # Sales staff referral discounts are passed on to the installer
        subsidy_amount = 0.0
        if booking.referral_discount and booking.referral_discount > 0:
            subsidy_amount = round(float(booking.referral_discount), 2)
            breakdown.append(f"Harvey Norman subsidy: €{_money(subsidy_amount)}")

        return LeadFeeBreakdown(
            base_fee=base_fee,
            addon_fees=addon_fees,
            subsidy_amount=subsidy_amount,
            total_fee=round(base_fee + addon_fees + subsidy_amount, 2),
            breakdown=breakdown,
            addon_items=addon_items,
        )

    def _debit(self, wallet: InstallerWallet, total: float) -> None:
        wallet.balance = round(wallet.balance - total, 2)
        wallet.total_spent = round(wallet.total_spent + total, 2)

    def charge_lead_fee(
        self, installer_id: int, job_assignment_id: int, lead_fee: float, subsidy_amount: float = 0.0
    ) -> bool:
        """Charge a flat lead fee plus optional subsidy. False when the balance is too low."""
        wallet = self.get_or_create_wallet(installer_id)
        total_charge = lead_fee + subsidy_amount
        if wallet.balance < total_charge:
            logger.warning(
                f"⚠️ Installer {installer_id} cannot afford €{total_charge:.2f} (balance €{wallet.balance:.2f})"
            )
            return False

        self._debit(wallet, total_charge)
        self.record_transaction(
            installer_id,
            "lead_purchase",
            -lead_fee,
            f"Lead access fee for job assignment #{job_assignment_id}",
            job_assignment_id=job_assignment_id,
        )
        if subsidy_amount > 0:
            self.record_transaction(
                installer_id,
                "referral_subsidy",
                -subsidy_amount,
                f"Harvey Norman referral discount subsidy for job assignment #{job_assignment_id}",
                job_assignment_id=job_assignment_id,
            )
        self.db.commit()
        return True

    def charge_complete_lead_fee(self, installer_id: int, job_assignment_id: int, booking: Booking) -> bool:
        """Charge the full lead fee with one ledger row per component. False when the balance is too low."""
        fee = self.calculate_complete_lead_fee(booking)
        wallet = self.get_or_create_wallet(installer_id)
        if wallet.balance < fee.total_fee:
            logger.warning(
                f"⚠️ Installer {installer_id} cannot afford €{fee.total_fee:.2f} (balance €{wallet.balance:.2f})"
            )
            return False

        self._debit(wallet, fee.total_fee)
        self.record_transaction(
            installer_id,
            "lead_purchase",
            -fee.base_fee,
            f"Lead fee: {booking.service_type} - Job #{job_assignment_id}",
            job_assignment_id=job_assignment_id,
            booking_id=booking.id,
        )
        for addon_key, addon_fee in fee.addon_items:
            self.record_transaction(
                installer_id,
                "addon_fee",
                -addon_fee,
                f"Addon fee: {addon_key} - Job #{job_assignment_id}",
                job_assignment_id=job_assignment_id,
                booking_id=booking.id,
            )
        if fee.subsidy_amount > 0:
            self.record_transaction(
                installer_id,
                "referral_subsidy",
                -fee.subsidy_amount,
                f"Harvey Norman referral subsidy - Job #{job_assignment_id}",
                job_assignment_id=job_assignment_id,
                booking_id=booking.id,
            )
        self.db.commit()
        logger.info(f"💳 Charged installer {installer_id} €{fee.total_fee:.2f} for job #{job_assignment_id}")
        return True

    def add_job_earnings(self, installer_id: int, job_assignment_id: int, earnings: float) -> None:
        """Record earnings from a completed job (paid by the customer directly, not to the balance)"""
        wallet = self.get_or_create_wallet(installer_id)
        wallet.total_earned = round(wallet.total_earned + earnings, 2)
        self.record_transaction(
            installer_id,
            "job_earnings",
            earnings,
            f"Earnings from completed job #{job_assignment_id}",
            job_assignment_id=job_assignment_id,
        )
        self.db.commit()

    def get_wallet_balance(self, installer_id: int) -> WalletBalance:
        wallet = self.get_or_create_wallet(installer_id)
        pending = (
            self.db.query(JobAssignment)
            .filter(JobAssignment.installer_id == installer_id, JobAssignment.lead_fee_status == "pending")
            .all()
        )
        return WalletBalance(
            current=wallet.balance,
            total_spent=wallet.total_spent,
            total_earned=wallet.total_earned,
            pending_charges=sum(job.lead_fee or 0.0 for job in pending),
        )

    def get_transaction_history(self, installer_id: int, limit: int = 50) -> list[InstallerTransaction]:
        return (
            self.db.query(InstallerTransaction)
            .filter(InstallerTransaction.installer_id == installer_id)
            .order_by(InstallerTransaction.created_at.desc(), InstallerTransaction.id.desc())
            .limit(limit)
            .all()
        )

    def can_afford_lead_fee(self, installer_id: int, lead_fee: float) -> bool:
        return self.get_wallet_balance(installer_id).current >= lead_fee

    def get_spending_stats(self, installer_id: int) -> dict:
        """Lead purchase spending, reported as positive amounts"""
        now = datetime.utcnow()
        month_start = datetime(now.year, now.month, 1)
        week_start = now - timedelta(days=7)

        purchases = (
            self.db.query(InstallerTransaction)
            .filter(
                InstallerTransaction.installer_id == installer_id,
                InstallerTransaction.type == "lead_purchase",
            )
            .all()
        )

        def spent(rows) -> float:
            return round(sum(abs(t.amount) for t in rows), 2)

        total_leads = len(purchases)
        total_spent = spent(purchases)
        return {
            "thisMonth": spent(t for t in purchases if t.created_at and t.created_at >= month_start),
            "thisWeek": spent(t for t in purchases if t.created_at and t.created_at >= week_start),
            "averagePerLead": round(total_spent / total_leads, 2) if total_leads else 0.0,
            "totalLeads": total_leads,
        }
