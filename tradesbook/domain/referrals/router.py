"""Referral router - sales staff codes and store commission reporting"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import ReferralCode, User
from .schemas import (
    ReferralDiscountResponse,
    SalesStaffCodeCreate,
    SalesStaffCodeResponse,
    StaffCompletionMetrics,
    StoreEarningsResponse,
    ValidateReferralRequest,
)
from .service import ReferralService, StoreReferralCompletionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/referrals", tags=["Referrals"])


def get_referral_service(db: Session = Depends(get_db)) -> ReferralService:
    """Dependency injection for ReferralService"""
    return ReferralService(db)


def get_completion_service(db: Session = Depends(get_db)) -> StoreReferralCompletionService:
    """Dependency injection for StoreReferralCompletionService"""
    return StoreReferralCompletionService(db)


def _code_response(code: ReferralCode) -> SalesStaffCodeResponse:
    return SalesStaffCodeResponse(
        id=code.id,
        referralCode=code.referral_code,
        salesStaffName=code.sales_staff_name,
        salesStaffStore=code.sales_staff_store,
        discountPercentage=code.discount_percentage,
        totalReferrals=code.total_referrals,
        isActive=code.is_active,
    )


@router.post("/validate", response_model=ReferralDiscountResponse)
async def validate_referral(
    data: ValidateReferralRequest,
    service: ReferralService = Depends(get_referral_service),
):
    """Preview the discount a referral code gives on a booking amount"""
    result = service.validate_and_calculate_discount(data.referralCode, data.bookingAmount)
    return ReferralDiscountResponse(
        success=result.success,
        discountAmount=result.discount_amount,
        discountPercentage=result.discount_percentage,
        subsidyAmount=result.subsidy_amount,
        referralCodeId=result.referral_code_id,
        salesStaffName=result.sales_staff_name,
        salesStaffStore=result.sales_staff_store,
        message=result.message,
    )


# ============================================================================
# ADMIN - SALES STAFF CODES
# ============================================================================


@router.post("/sales-staff", response_model=SalesStaffCodeResponse)
async def create_sales_staff_code(
    data: SalesStaffCodeCreate,
    admin: User = Depends(require_admin),
    service: ReferralService = Depends(get_referral_service),
):
    logger.info(f"📥 Admin {admin.email} creating referral code for {data.salesStaffName}")
    code = service.create_sales_staff_code(data.salesStaffName, data.salesStaffStore, data.customCode)
    return _code_response(code)


@router.get("/sales-staff", response_model=list[SalesStaffCodeResponse])
async def list_sales_staff_codes(
    _: User = Depends(require_admin),
    service: ReferralService = Depends(get_referral_service),
):
    return [_code_response(c) for c in service.get_all_sales_staff_codes()]


@router.post("/sales-staff/{code_id}/deactivate")
async def deactivate_sales_staff_code(
    code_id: int,
    _: User = Depends(require_admin),
    service: ReferralService = Depends(get_referral_service),
):
    if not service.deactivate_sales_staff_code(code_id):
        raise HTTPException(status_code=404, detail="Referral code not found")
    return {"message": "Referral code deactivated successfully"}


# ============================================================================
# ADMIN - STORE COMMISSION
# ============================================================================


@router.get("/stores/{retailer_code}/earnings", response_model=StoreEarningsResponse)
async def get_store_earnings(
    retailer_code: str,
    store_code: str = Query(None, alias="storeCode"),
    _: User = Depends(require_admin),
    service: StoreReferralCompletionService = Depends(get_completion_service),
):
    retailer_code = retailer_code.upper()
    return StoreEarningsResponse(
        retailerCode=retailer_code,
        storeCode=store_code,
        completedEarnings=service.get_completed_referral_earnings(retailer_code, store_code),
        staff=[StaffCompletionMetrics(**m) for m in service.get_staff_completion_metrics(retailer_code, store_code)],
    )
