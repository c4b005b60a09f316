"""Performance refund router - admin endpoints"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import User
from .schemas import (
    QualityRatingRequest,
    RefundResult,
    RefundSettingResponse,
    RefundSummaryResponse,
)
from .service import PerformanceRefundService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/performance-refunds", tags=["Performance Refunds"])


def get_refund_service(db: Session = Depends(get_db)) -> PerformanceRefundService:
    """Dependency injection for PerformanceRefundService"""
    return PerformanceRefundService(db)


@router.get("/summary", response_model=RefundSummaryResponse)
async def get_summary(
    _: User = Depends(require_admin),
    service: PerformanceRefundService = Depends(get_refund_service),
):
    return service.get_performance_refund_summary()


@router.get("/settings", response_model=list[RefundSettingResponse])
async def get_settings(
    _: User = Depends(require_admin),
    service: PerformanceRefundService = Depends(get_refund_service),
):
    return [
        RefundSettingResponse(
            starLevel=s.star_level,
            refundPercentage=s.refund_percentage,
            description=s.description,
            isActive=s.is_active,
        )
        for s in service.get_settings()
    ]


@router.post("/settings/initialize")
async def initialize_settings(
    _: User = Depends(require_admin),
    service: PerformanceRefundService = Depends(get_refund_service),
):
    created = service.initialize_default_settings()
    return {"success": True, "created": created}


@router.put("/bookings/{booking_id}/quality")
async def rate_quality(
    booking_id: int,
    data: QualityRatingRequest,
    _: User = Depends(require_admin),
    service: PerformanceRefundService = Depends(get_refund_service),
):
    booking = service.rate_installation_quality(booking_id, data.stars)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return {
        "bookingId": booking.id,
        "qualityStars": booking.quality_stars,
        "eligibleForRefund": booking.eligible_for_refund,
    }


@router.post("/bookings/{booking_id}/process", response_model=RefundResult)
async def process_refund(
    booking_id: int,
    admin: User = Depends(require_admin),
    service: PerformanceRefundService = Depends(get_refund_service),
):
    logger.info(f"📥 Admin {admin.email} processing performance refund for booking {booking_id}")
    return service.process_performance_refund(booking_id)
