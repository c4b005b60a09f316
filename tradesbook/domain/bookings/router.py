"""Booking router - booking creation, lifecycle and public QR tracking"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import ensure_booking_access, get_current_user, require_admin
from ...database import get_db
from ...email_service import (
    send_admin_booking_notification,
    send_booking_confirmation,
    send_new_lead_notification,
    send_quietly,
)
from ...models import Booking, Installer, User
from ...utils.qr_codes import build_tracking_url, detect_device_type, generate_qr_data_url
from .schemas import (
    BookingCreate,
    BookingCreatedResponse,
    BookingResponse,
    BookingStatus,
    BookingStatusUpdate,
    BookingTrackingResponse,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])
qr_router = APIRouter(prefix="/api/qr-code", tags=["QR Codes"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


def _booking_fields(b: Booking) -> dict:
    return {
        "id": b.id,
        "qrCode": b.qr_code,
        "userId": b.user_id,
        "installerId": b.installer_id,
        "tvSize": b.tv_size,
        "serviceType": b.service_type,
        "wallType": b.wall_type,
        "mountType": b.mount_type,
        "addons": b.addons or [],
        "address": b.address,
        "scheduledDate": b.scheduled_date,
        "timeSlot": b.time_slot,
        "customerNotes": b.customer_notes,
        "difficulty": b.difficulty,
        "contactName": b.contact_name,
        "contactEmail": b.contact_email,
        "contactPhone": b.contact_phone,
        "estimatedPrice": b.estimated_price,
        "estimatedAddonsPrice": b.estimated_addons_price,
        "estimatedTotal": b.estimated_total,
        "agreedPrice": b.agreed_price,
        "totalLeadFee": b.total_lead_fee,
        "referralCode": b.referral_code,
        "referralDiscount": b.referral_discount,
        "status": b.status,
        "createdAt": b.created_at,
    }


def _queue_booking_notifications(background_tasks: BackgroundTasks, db: Session, booking: Booking) -> None:
    """Emails go out after the response; a failed send never fails the booking"""
    tracking_url = build_tracking_url(booking.qr_code)
    if booking.contact_email:
        background_tasks.add_task(
            send_quietly, send_booking_confirmation, to=booking.contact_email, booking=booking, qr_tracking_url=tracking_url
        )
    background_tasks.add_task(send_quietly, send_admin_booking_notification, booking=booking)

    installers = (
        db.query(Installer)
        .filter(Installer.approval_status == "approved", Installer.email.isnot(None))
        .all()
    )
    for installer in installers:
        background_tasks.add_task(
            send_quietly,
            send_new_lead_notification,
            to=installer.email,
            installer_name=installer.contact_name or installer.business_name,
            booking=booking,
            lead_fee=booking.lead_fee,
        )
    logger.info(f"📧 Queued booking notifications for {booking.qr_code} ({len(installers)} installer(s))")


# ============================================================================
# CUSTOMER BOOKINGS
# ============================================================================


@router.post("", response_model=BookingCreatedResponse)
async def create_booking(
    data: BookingCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.create_booking(data, current_user)
    _queue_booking_notifications(background_tasks, db, booking)

    tracking_url = build_tracking_url(booking.qr_code)
    return BookingCreatedResponse(
        **_booking_fields(booking),
        trackingUrl=tracking_url,
        qrCodeUrl=generate_qr_data_url(tracking_url),
    )


@router.get("/mine", response_model=list[BookingResponse])
async def list_my_bookings(
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return [BookingResponse(**_booking_fields(b)) for b in service.list_user_bookings(current_user.id)]


@router.get("/track/{qr_code}", response_model=BookingTrackingResponse)
async def track_booking(
    qr_code: str,
    user_agent: str = Header(None),
    service: BookingService = Depends(get_booking_service),
):
    """Public tracker opened from the booking QR code"""
    tracking = service.track_booking(qr_code)
    logger.info(f"🔎 QR tracking view for {tracking['qrCode']} from {detect_device_type(user_agent)} device")
    return tracking


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.get_booking(booking_id)
    ensure_booking_access(current_user, booking)
    return BookingResponse(**_booking_fields(booking))


# ============================================================================
# ADMIN
# ============================================================================


@router.get("", response_model=list[BookingResponse])
async def list_bookings(
    status: BookingStatus = Query(None),
    _: User = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    return [BookingResponse(**_booking_fields(b)) for b in service.list_bookings(status)]


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: int,
    data: BookingStatusUpdate,
    admin: User = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    logger.info(f"📥 Admin {admin.email} setting booking {booking_id} to {data.status}")
    booking = service.update_status(booking_id, data.status, data.agreedPrice)
    return BookingResponse(**_booking_fields(booking))


@router.delete("/{booking_id}")
async def delete_booking(
    booking_id: int,
    admin: User = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    service.delete_booking(booking_id)
    logger.info(f"🗑️ Admin {admin.email} deleted booking {booking_id}")
    return {"success": True}


# ============================================================================
# QR CODES
# ============================================================================


@qr_router.get("/{text}")
async def get_qr_code(text: str):
    """Render any short text (usually a tracking URL) as a PNG data URL"""
    if len(text) > 500:
        raise HTTPException(status_code=400, detail="Text too long for QR code")
    return {"qrCodeUrl": generate_qr_data_url(text)}
