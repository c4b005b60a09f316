"""Retailer router - invoice login, retailer lookup and invoice administration"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import RetailerInvoice, User
from ...rate_limiter import create_rate_limiter
from .detection import RetailerInfo, retailer_detection_service
from .schemas import (
    DetectRequest,
    DetectResponse,
    InvoiceCreate,
    InvoiceLoginRequest,
    InvoiceLoginResponse,
    InvoiceResponse,
    InvoiceUserResponse,
    RetailerResponse,
)
from .service import RetailerInvoiceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/retailers", tags=["Retailers"])
auth_router = APIRouter(prefix="/api/auth", tags=["Authentication"])
admin_router = APIRouter(prefix="/api/admin/invoices", tags=["Retailer Invoices"])

invoice_login_limit = create_rate_limiter(limit=10, window_seconds=900, key_prefix="invoice_login")


def get_invoice_service(db: Session = Depends(get_db)) -> RetailerInvoiceService:
    """Dependency injection for RetailerInvoiceService"""
    return RetailerInvoiceService(db)


def _retailer_response(retailer: RetailerInfo) -> RetailerResponse:
    return RetailerResponse(
        code=retailer.code,
        name=retailer.name,
        fullName=retailer.full_name,
        color=retailer.color,
        invoiceFormats=list(retailer.invoice_formats),
        referralCodePrefix=retailer.referral_code_prefix,
        storeLocations=retailer.store_locations,
    )


def _invoice_response(invoice: RetailerInvoice) -> InvoiceResponse:
    return InvoiceResponse(
        id=invoice.id,
        invoiceNumber=invoice.invoice_number,
        customerEmail=invoice.customer_email,
        customerName=invoice.customer_name,
        retailerCode=invoice.retailer_code,
        storeCode=invoice.store_code,
        storeName=invoice.store_name,
        purchaseAmount=invoice.purchase_amount,
        purchaseDate=invoice.purchase_date,
        isUsedForRegistration=invoice.is_used_for_registration,
    )


# ============================================================================
# INVOICE LOGIN
# ============================================================================


@auth_router.post("/invoice-login", response_model=InvoiceLoginResponse)
async def invoice_login(
    data: InvoiceLoginRequest,
    _: None = Depends(invoice_login_limit),
    service: RetailerInvoiceService = Depends(get_invoice_service),
):
    """Log in with the invoice number printed on a retailer receipt"""
    result = service.login_with_invoice(data.invoiceNumber)
    if not result["success"]:
        logger.warning(f"⚠️ Invoice login rejected: {result['message']}")
        raise HTTPException(status_code=401, detail=result["message"])

    user = result["user"]
    return InvoiceLoginResponse(
        success=True,
        message=result["message"],
        accessToken=result["accessToken"],
        isNewRegistration=result["isNewRegistration"],
        user=InvoiceUserResponse(
            id=user.id,
            email=user.email,
            firstName=user.first_name,
            lastName=user.last_name,
            role=user.role,
        ),
        retailer=_retailer_response(result["retailer"]),
    )


# ============================================================================
# RETAILERS
# ============================================================================


@router.get("", response_model=list[RetailerResponse])
async def list_retailers():
    return [_retailer_response(r) for r in retailer_detection_service.get_all_retailers()]


@router.post("/detect", response_model=DetectResponse)
async def detect_retailer(data: DetectRequest):
    """Identify the retailer behind an invoice number or staff referral code"""
    detector = retailer_detection_service

    if data.kind == "referral":
        parsed = detector.detect_retailer_from_referral_code(data.value)
        if not parsed:
            return DetectResponse(detected=False)
        return DetectResponse(
            detected=True,
            retailerCode=parsed.retailer_code,
            retailerName=parsed.retailer.name,
            storeCode=parsed.store_code,
            storeName=detector.get_store_name(parsed.retailer_code, parsed.store_code),
            staffName=parsed.staff_name,
        )

    parsed = detector.detect_retailer_from_invoice(data.value)
    if not parsed:
        return DetectResponse(detected=False)
    return DetectResponse(
        detected=True,
        retailerCode=parsed.retailer_code,
        retailerName=parsed.retailer.name,
        storeCode=parsed.store_code,
        storeName=detector.get_store_name(parsed.retailer_code, parsed.store_code),
        invoiceNumber=parsed.invoice_number,
    )


# ============================================================================
# ADMIN INVOICES
# ============================================================================


@admin_router.post("", response_model=InvoiceResponse)
async def add_invoice(
    data: InvoiceCreate,
    admin: User = Depends(require_admin),
    service: RetailerInvoiceService = Depends(get_invoice_service),
):
    logger.info(f"📥 Admin {admin.email} adding invoice {data.invoiceNumber}")
    invoice = service.add_verified_invoice(
        {
            "invoice_number": data.invoiceNumber,
            "customer_email": data.customerEmail,
            "customer_name": data.customerName,
            "customer_phone": data.customerPhone,
            "store_code": data.storeCode,
            "store_name": data.storeName,
            "purchase_amount": data.purchaseAmount,
            "purchase_date": data.purchaseDate,
            "product_details": data.productDetails,
        }
    )
    return _invoice_response(invoice)


@admin_router.post("/samples")
async def create_sample_invoices(
    _: User = Depends(require_admin),
    service: RetailerInvoiceService = Depends(get_invoice_service),
):
    return {"success": True, "created": service.create_sample_invoices()}
