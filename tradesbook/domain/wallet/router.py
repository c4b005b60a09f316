"""Wallet router - installer wallet and lead marketplace endpoints"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import ensure_installer_access, get_current_user, require_admin, require_installer
from ...database import get_db
from ...email_service import send_lead_purchased_email, send_quietly
from ...models import Booking, Installer, InstallerTransaction, User
from .leads import LeadMarketplaceService
from .schemas import (
    AddCreditsRequest,
    AvailableLeadResponse,
    LeadCustomer,
    LeadFeeBreakdownResponse,
    PurchasedLeadResponse,
    PurchaseLeadRequest,
    SpendingStatsResponse,
    TransactionResponse,
    WalletBalanceResponse,
    WalletResponse,
)
from .service import InstallerWalletService, InsufficientBalanceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/installer", tags=["Installer Wallet"])


def get_wallet_service(db: Session = Depends(get_db)) -> InstallerWalletService:
    """Dependency injection for InstallerWalletService"""
    return InstallerWalletService(db)


def get_lead_service(db: Session = Depends(get_db)) -> LeadMarketplaceService:
    """Dependency injection for LeadMarketplaceService"""
    return LeadMarketplaceService(db)


def _transaction_response(t: InstallerTransaction) -> TransactionResponse:
    return TransactionResponse(
        id=t.id,
        type=t.type,
        amount=t.amount,
        description=t.description,
        jobAssignmentId=t.job_assignment_id,
        bookingId=t.booking_id,
        status=t.status,
        createdAt=t.created_at,
    )


# ============================================================================
# WALLET
# ============================================================================


def _wallet_response(service: InstallerWalletService, installer_id: int, limit: int) -> WalletResponse:
    balance = service.get_wallet_balance(installer_id)
    return WalletResponse(
        installerId=installer_id,
        balance=WalletBalanceResponse(
            current=balance.current,
            totalSpent=balance.total_spent,
            totalEarned=balance.total_earned,
            pendingCharges=balance.pending_charges,
        ),
        transactions=[_transaction_response(t) for t in service.get_transaction_history(installer_id, limit)],
        spending=SpendingStatsResponse(**service.get_spending_stats(installer_id)),
    )


@router.get("/me/wallet", response_model=WalletResponse)
async def get_my_wallet(
    limit: int = Query(50, ge=1, le=200),
    installer: Installer = Depends(require_installer),
    service: InstallerWalletService = Depends(get_wallet_service),
):
    """Wallet of the signed-in installer"""
    return _wallet_response(service, installer.id, limit)


@router.get("/{installer_id}/wallet", response_model=WalletResponse)
async def get_wallet(
    installer_id: int,
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    service: InstallerWalletService = Depends(get_wallet_service),
):
    """Wallet balance, recent transactions and spending statistics"""
    ensure_installer_access(current_user, installer_id)
    return _wallet_response(service, installer_id, limit)


@router.post("/{installer_id}/wallet/add-credits", response_model=WalletBalanceResponse)
async def add_credits(
    installer_id: int,
    data: AddCreditsRequest,
    admin: User = Depends(require_admin),
    service: InstallerWalletService = Depends(get_wallet_service),
):
    """Record a credit top-up once payment has been received"""
    logger.info(f"📥 Admin {admin.email} adding €{data.amount:.2f} to installer {installer_id}")
    service.add_credits(installer_id, data.amount, data.paymentIntentId, data.description)
    balance = service.get_wallet_balance(installer_id)
    return WalletBalanceResponse(
        current=balance.current,
        totalSpent=balance.total_spent,
        totalEarned=balance.total_earned,
        pendingCharges=balance.pending_charges,
    )


# ============================================================================
# LEADS
# ============================================================================


@router.get("/{installer_id}/available-leads", response_model=list[AvailableLeadResponse])
async def get_available_leads(
    installer_id: int,
    current_user: User = Depends(get_current_user),
    service: LeadMarketplaceService = Depends(get_lead_service),
):
    ensure_installer_access(current_user, installer_id)
    return service.get_available_leads(installer_id)


@router.get("/{installer_id}/leads/{booking_id}/fee", response_model=LeadFeeBreakdownResponse)
async def get_lead_fee_breakdown(
    installer_id: int,
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: InstallerWalletService = Depends(get_wallet_service),
):
    """Full lead fee for a booking including add-ons and referral subsidy"""
    ensure_installer_access(current_user, installer_id)
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise HTTPException(status_code=404, detail="Lead not found")
    fee = service.calculate_complete_lead_fee(booking)
    return LeadFeeBreakdownResponse(
        baseFee=fee.base_fee,
        addonFees=fee.addon_fees,
        subsidyAmount=fee.subsidy_amount,
        totalFee=fee.total_fee,
        breakdown=fee.breakdown,
    )


@router.post("/{installer_id}/purchase-lead", response_model=PurchasedLeadResponse)
async def purchase_lead(
    installer_id: int,
    data: PurchaseLeadRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: LeadMarketplaceService = Depends(get_lead_service),
):
    """Buy access to a lead; customer contact details are returned on success"""
    ensure_installer_access(current_user, installer_id)
    try:
        booking, installer, assignment = service.purchase_lead(installer_id, data.bookingId)
    except InsufficientBalanceError as e:
        raise HTTPException(
            status_code=400,
            detail={"message": str(e), "required": e.required, "available": e.available},
        )

    if booking.contact_email:
        background_tasks.add_task(
            send_quietly,
            send_lead_purchased_email,
            to=booking.contact_email,
            booking=booking,
            installer=installer,
        )

    return PurchasedLeadResponse(
        success=True,
        message="Lead purchased successfully. Customer contact details are now available.",
        jobAssignmentId=assignment.id,
        leadFee=assignment.lead_fee,
        newBalance=service.wallet.get_or_create_wallet(installer_id).balance,
        customer=LeadCustomer(
            name=booking.contact_name or "",
            email=booking.contact_email,
            phone=booking.contact_phone,
        ),
        address=booking.address,
        customerNotes=booking.customer_notes,
    )
