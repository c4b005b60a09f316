"""Retailer invoice service - invoice-based customer login and invoice records"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...auth import issue_token_for_user
from ...models import RetailerInvoice, User
from .detection import RetailerDetectionService, retailer_detection_service

logger = logging.getLogger(__name__)

SAMPLE_INVOICES = [
    {
        "invoice_number": "HN-CKM-2576597",
        "customer_email": "jude.okun@email.com",
        "customer_name": "Jude Okun",
        "customer_phone": "0851159264",
        "purchase_date": datetime(2025, 5, 5),
        "product_details": "SILKN DUAL LED MASK",
        "purchase_amount": 224.50,
        "store_code": "CKM",
    },
    {
        "invoice_number": "HN-DUB-001234",
        "customer_email": "john.smith@email.com",
        "customer_name": "John Smith",
        "customer_phone": "0871234567",
        "purchase_date": datetime(2025, 6, 15),
        "product_details": 'Samsung 55" QLED',
        "purchase_amount": 899.99,
        "store_code": "DUB",
    },
    {
        "invoice_number": "HN-CRK-005678",
        "customer_email": "mary.jones@email.com",
        "customer_name": "Mary Jones",
        "customer_phone": "0879876543",
        "purchase_date": datetime(2025, 6, 20),
        "product_details": 'LG 65" OLED',
        "purchase_amount": 1299.99,
        "store_code": "CRK",
    },
    {
        "invoice_number": "HN-GAL-009876",
        "customer_email": "david.brown@email.com",
        "customer_name": "David Brown",
        "customer_phone": "0861122334",
        "purchase_date": datetime(2025, 6, 25),
        "product_details": 'Sony 43" LED',
        "purchase_amount": 549.99,
        "store_code": "GAL",
    },
    {
        "invoice_number": "HN-LIM-012345",
        "customer_email": "sarah.murphy@email.com",
        "customer_name": "Sarah Murphy",
        "customer_phone": "0863456789",
        "purchase_date": datetime(2025, 6, 28),
        "product_details": 'Samsung 75" QLED',
        "purchase_amount": 1599.99,
        "store_code": "LIM",
    },
    {
        "invoice_number": "HN-BLA-112233",
        "customer_email": "david.walsh@email.com",
        "customer_name": "David Walsh",
        "customer_phone": "0851234567",
        "purchase_date": datetime(2025, 6, 30),
        "product_details": 'LG 65" OLED',
        "purchase_amount": 1299.00,
        "store_code": "BLA",
    },
    {
        "invoice_number": "HN-TAL-998877",
        "customer_email": "sarah.kelly@email.com",
        "customer_name": "Sarah Kelly",
        "customer_phone": "0865432109",
        "purchase_date": datetime(2025, 7, 1),
        "product_details": 'Sony 55" Bravia',
        "purchase_amount": 749.99,
        "store_code": "TAL",
    },
    {
        "invoice_number": "HN-WAT-445566",
        "customer_email": "michael.brown@email.com",
        "customer_name": "Michael Brown",
        "customer_phone": "0877654321",
        "purchase_date": datetime(2025, 6, 25),
        "product_details": 'Samsung 43" Crystal UHD',
        "purchase_amount": 399.99,
        "store_code": "WAT",
    },
]


def _split_name(full_name: str) -> tuple[str, str]:
    parts = (full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


class RetailerInvoiceService:
    """Service layer for retailer invoices"""

    def __init__(self, db: Session, detector: Optional[RetailerDetectionService] = None):
        self.db = db
        self.detector = detector or retailer_detection_service

    def get_invoice(self, invoice_number: str) -> Optional[RetailerInvoice]:
        return (
            self.db.query(RetailerInvoice)
            .filter(RetailerInvoice.invoice_number == invoice_number.upper().strip())
            .first()
        )

    def login_with_invoice(self, invoice_number: str) -> dict:
        """
        Log in (or register) the customer named on a retailer invoice.

        Returns a dict with ``success`` and ``message``; on success also ``user``,
        ``accessToken``, ``isNewRegistration`` and ``retailer``.
        """
        parsed = self.detector.detect_retailer_from_invoice(invoice_number)
        if not parsed:
            return {
                "success": False,
                "message": "Invalid invoice format. Please check your invoice number and try again.",
            }

        try:
            invoice = self.get_invoice(invoice_number)
            if not invoice:
                return {
                    "success": False,
                    "message": (
                        f"No purchase record found for this {parsed.retailer.name} invoice. "
                        "Please check the invoice number."
                    ),
                }

            email = invoice.customer_email.lower()
            user = self.db.query(User).filter(User.email == email).first()
            is_new_registration = False

            if user:
                if user.registration_method != "invoice":
                    user.registration_method = "invoice"
                    user.retailer_invoice_number = invoice.invoice_number
                    user.invoice_verified = True
            else:
                first_name, last_name = _split_name(invoice.customer_name)
                user = User(
                    email=email,
                    first_name=first_name,
                    last_name=last_name,
                    phone=invoice.customer_phone,
                    role="customer",
                    registration_method="invoice",
                    retailer_invoice_number=invoice.invoice_number,
                    invoice_verified=True,
                    email_verified=True,
                )
                self.db.add(user)
                is_new_registration = True

            invoice.is_used_for_registration = True
            self.db.commit()
            self.db.refresh(user)

            logger.info(
                f"🧾 Invoice login for {user.email} via {parsed.retailer.name} "
                f"({'new registration' if is_new_registration else 'existing user'})"
            )
            return {
                "success": True,
                "message": (
                    "Welcome! Your account has been created using your purchase receipt."
                    if is_new_registration
                    else "Welcome back! Logged in using your receipt."
                ),
                "user": user,
                "accessToken": issue_token_for_user(user),
                "isNewRegistration": is_new_registration,
                "retailer": parsed.retailer,
            }
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Invoice login error: {e}")
            return {
                "success": False,
                "message": "Unable to process invoice login at this time. Please try again later.",
            }

    def add_verified_invoice(self, data: dict) -> RetailerInvoice:
        """
        Store a verified purchase record

        Raises:
            HTTPException: Unrecognised invoice format or duplicate invoice number (400)
        """
        invoice_number = data["invoice_number"].upper().strip()
        parsed = self.detector.detect_retailer_from_invoice(invoice_number)
        if not parsed:
            raise HTTPException(status_code=400, detail="Unrecognised invoice number format")
        if self.get_invoice(invoice_number):
            raise HTTPException(status_code=400, detail="Invoice already exists")

        store_code = data.get("store_code") or parsed.store_code
        invoice = RetailerInvoice(
            invoice_number=invoice_number,
            customer_email=data["customer_email"].lower(),
            customer_name=data["customer_name"],
            customer_phone=data.get("customer_phone"),
            retailer_code=parsed.retailer_code,
            store_code=store_code,
            store_name=data.get("store_name") or self.detector.get_store_name(parsed.retailer_code, store_code),
            purchase_amount=data.get("purchase_amount"),
            purchase_date=data.get("purchase_date"),
            product_details=data.get("product_details"),
        )
        self.db.add(invoice)
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"✅ Verified invoice {invoice_number} added for {invoice.customer_email}")
        return invoice

    def create_sample_invoices(self) -> int:
        """Insert the demo invoices that are missing. Returns how many were created."""
        created = 0
        try:
            for sample in SAMPLE_INVOICES:
                if self.get_invoice(sample["invoice_number"]):
                    continue
                self.db.add(
                    RetailerInvoice(
                        retailer_code="HN",
                        store_name=self.detector.get_store_name("HN", sample["store_code"]),
                        **sample,
                    )
                )
                created += 1
                logger.info(f"🧾 Created sample invoice: {sample['invoice_number']}")
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Error creating sample invoices: {e}")
            return 0
        return created
