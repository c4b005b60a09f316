"""Pricing router - public price estimates and admin rate table management"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import User
from .lead_pricing import calculate_estimated_pricing, get_all_lead_pricing, resolve_lead_fee
from .schemas import (
    BookingPricingResponse,
    EstimateRequest,
    EstimateResponse,
    LeadPricingResponse,
    PricingCategory,
    PricingItem,
    ServiceTierResponse,
)
from .service import PricingError, PricingManagementService
from .tiers import SERVICE_TIERS, calculate_booking_pricing, get_service_tiers_for_tv_size

logger = logging.getLogger(__name__)

public_router = APIRouter(prefix="/api/pricing", tags=["Pricing"])
router = APIRouter(prefix="/api/admin/pricing", tags=["Admin Pricing"])


def get_pricing_service(db: Session = Depends(get_db)) -> PricingManagementService:
    """Dependency injection for PricingManagementService"""
    return PricingManagementService(db)


# ============================================================================
# PUBLIC PRICING
# ============================================================================


@public_router.get("/tiers", response_model=list[ServiceTierResponse])
async def get_service_tiers(tv_size: Optional[int] = Query(None, ge=1)):
    """Service tiers, optionally only those that fit a TV size"""
    tiers = get_service_tiers_for_tv_size(tv_size) if tv_size else list(SERVICE_TIERS.values())
    return [
        ServiceTierResponse(
            key=t.key,
            name=t.name,
            description=t.description,
            category=t.category,
            minTvSize=t.min_tv_size,
            maxTvSize=t.max_tv_size,
            installerEarnings=t.installer_earnings,
            customerPrice=t.customer_price,
        )
        for t in tiers
    ]


@public_router.post("/estimate", response_model=EstimateResponse)
async def estimate_price(data: EstimateRequest, db: Session = Depends(get_db)):
    addons = [a.model_dump() for a in data.addons]
    estimate = calculate_estimated_pricing(data.serviceType, addons)
    return EstimateResponse(
        serviceType=data.serviceType,
        customerEstimate=estimate.customer_estimate,
        addonsEstimate=estimate.addons_estimate,
        totalEstimate=estimate.total_estimate,
        leadFee=resolve_lead_fee(db, data.serviceType),
    )


@public_router.post("/booking", response_model=BookingPricingResponse)
async def price_booking(data: EstimateRequest):
    try:
        pricing = calculate_booking_pricing(data.serviceType, [a.model_dump() for a in data.addons])
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return BookingPricingResponse(
        basePrice=pricing.base_price,
        addonsPrice=pricing.addons_price,
        installerEarnings=pricing.installer_earnings,
        appFee=pricing.app_fee,
        totalPrice=pricing.total_price,
        feePercentage=pricing.fee_percentage,
    )


@public_router.get("/lead-fees", response_model=list[LeadPricingResponse])
async def get_lead_fees(db: Session = Depends(get_db)):
    return [
        LeadPricingResponse(serviceType=p.service_type, leadFee=p.lead_fee, priority=p.priority)
        for p in get_all_lead_pricing(db)
    ]


# ============================================================================
# ADMIN RATE TABLE
# ============================================================================


@router.get("", response_model=list[PricingItem])
async def get_all_pricing(
    _: User = Depends(require_admin),
    service: PricingManagementService = Depends(get_pricing_service),
):
    return service.get_all_pricing()


@router.get("/{category}", response_model=list[PricingItem])
async def get_pricing_by_category(
    category: PricingCategory,
    _: User = Depends(require_admin),
    service: PricingManagementService = Depends(get_pricing_service),
):
    return service.get_pricing_by_category(category)


@router.post("", response_model=PricingItem)
async def create_pricing(
    item: PricingItem,
    admin: User = Depends(require_admin),
    service: PricingManagementService = Depends(get_pricing_service),
):
    logger.info(f"📥 Admin {admin.email} creating pricing item {item.itemKey}")
    try:
        return service.upsert_pricing(item.model_copy(update={"id": None}))
    except PricingError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/{pricing_id}", response_model=PricingItem)
async def update_pricing(
    pricing_id: int,
    item: PricingItem,
    admin: User = Depends(require_admin),
    service: PricingManagementService = Depends(get_pricing_service),
):
    logger.info(f"📥 Admin {admin.email} updating pricing item {pricing_id}")
    try:
        return service.upsert_pricing(item.model_copy(update={"id": pricing_id}))
    except PricingError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{pricing_id}")
async def delete_pricing(
    pricing_id: int,
    _: User = Depends(require_admin),
    service: PricingManagementService = Depends(get_pricing_service),
):
    if not service.delete_pricing(pricing_id):
        raise HTTPException(status_code=404, detail="Pricing item not found")
    return {"success": True}


@router.post("/initialize")
async def initialize_pricing(
    _: User = Depends(require_admin),
    service: PricingManagementService = Depends(get_pricing_service),
):
    created = service.initialize_default_pricing()
    return {
        "success": True,
        "message": "Default pricing initialized" if created else "Pricing already initialized",
    }
