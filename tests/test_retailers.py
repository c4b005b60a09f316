"""
Tests for retailer detection and invoice-based login
"""

import pytest
from fastapi import HTTPException

from tradesbook.domain.retailers.detection import RETAILERS, RetailerDetectionService
from tradesbook.domain.retailers.service import SAMPLE_INVOICES, RetailerInvoiceService
from tradesbook.models import RetailerInvoice, User
from tradesbook.security_utils import verify_access_token


@pytest.fixture
def detector():
    return RetailerDetectionService()


@pytest.fixture
def invoices(db_session):
    service = RetailerInvoiceService(db_session)
    service.create_sample_invoices()
    return service


# =============================================================================
# Invoice detection
# =============================================================================


class TestInvoiceDetection:
    def test_hyphenated_store_format(self, detector):
        parsed = detector.detect_retailer_from_invoice("HN-CKM-2576597")
        assert parsed.retailer_code == "HN"
        assert parsed.store_code == "CKM"
        assert parsed.invoice_number == "2576597"

    def test_compact_format_is_case_insensitive(self, detector):
        parsed = detector.detect_retailer_from_invoice(" hndub001234 ")
        assert (parsed.retailer_code, parsed.store_code, parsed.invoice_number) == ("HN", "DUB", "001234")

    def test_simple_format(self, detector):
        parsed = detector.detect_retailer_from_invoice("CR-123456")
        assert parsed.retailer_code == "CR"
        assert parsed.store_code is None

    @pytest.mark.parametrize("value,code", [("DID-12345", "DD"), ("PWR-98765", "PC"), ("ARG-4444", "AR")])
    def test_short_form_prefixes(self, detector, value, code):
        assert detector.detect_retailer_from_invoice(value).retailer_code == code

    @pytest.mark.parametrize("value", ["", "HN-CKM-123", "HN-CKMXYZ-12345", "ZZ-1234", "HN-123456789"])
    def test_invalid_formats(self, detector, value):
        assert detector.detect_retailer_from_invoice(value) is None
        assert detector.is_valid_invoice_format(value) is False


# =============================================================================
# Referral code detection
# =============================================================================


class TestReferralDetection:
    def test_store_and_staff(self, detector):
        parsed = detector.detect_retailer_from_referral_code("HNCKMDOUG")
        assert parsed.retailer_code == "HN"
        assert parsed.store_code == "CKM"
        assert parsed.staff_name == "DOUG"
        assert parsed.original_code == "HNCKMDOUG"

    def test_unknown_store_becomes_staff_name(self, detector):
        parsed = detector.detect_retailer_from_referral_code("hnmary")
        assert parsed.store_code is None
        assert parsed.staff_name == "MARY"

    def test_prefix_only(self, detector):
        parsed = detector.detect_retailer_from_referral_code("CR")
        assert parsed.retailer_code == "CR"
        assert parsed.staff_name is None

    def test_unknown_retailer(self, detector):
        assert detector.detect_retailer_from_referral_code("ZZDUBANN") is None


class TestRetailerLookups:
    def test_store_names(self, detector):
        assert detector.get_store_name("HN", "CKM") == "Harvey Norman Carrickmines"
        assert detector.get_store_name("HN", "XXX") == "Harvey Norman"
        assert detector.get_store_name("ZZ") == "Unknown Store"

    def test_generate_referral_code(self, detector):
        assert detector.generate_referral_code("HN", "ckm", "doug") == "HNCKMDOUG"
        assert detector.generate_referral_code("ZZ", "DUB", "ann") == "RTDUBANN"

    def test_all_retailers(self, detector):
        assert [r.code for r in detector.get_all_retailers()] == list(RETAILERS)
        assert detector.get_retailer("HN").name == "Harvey Norman"
        assert detector.get_retailer("ZZ") is None


# =============================================================================
# Invoice records and login
# =============================================================================


class TestInvoiceRecords:
    def test_samples_created_once(self, db_session, invoices):
        assert db_session.query(RetailerInvoice).count() == len(SAMPLE_INVOICES)
        assert invoices.create_sample_invoices() == 0

    def test_sample_store_names(self, invoices):
        assert invoices.get_invoice("HN-CKM-2576597").store_name == "Harvey Norman Carrickmines"

    def test_lookup_is_case_insensitive(self, invoices):
        assert invoices.get_invoice("hn-dub-001234") is not None

    def test_add_verified_invoice(self, invoices):
        invoice = invoices.add_verified_invoice(
            {
                "invoice_number": "hn-swo-556677",
                "customer_email": "Ciara.Walsh@Example.ie",
                "customer_name": "Ciara Walsh",
            }
        )
        assert invoice.invoice_number == "HN-SWO-556677"
        assert invoice.customer_email == "ciara.walsh@example.ie"
        assert invoice.retailer_code == "HN"
        assert invoice.store_name == "Harvey Norman Swords"

    def test_duplicate_invoice_rejected(self, invoices):
        with pytest.raises(HTTPException) as exc:
            invoices.add_verified_invoice(
                {"invoice_number": "HN-CKM-2576597", "customer_email": "a@b.ie", "customer_name": "A"}
            )
        assert exc.value.status_code == 400

    def test_unrecognised_format_rejected(self, invoices):
        with pytest.raises(HTTPException) as exc:
            invoices.add_verified_invoice({"invoice_number": "XX-1", "customer_email": "a@b.ie", "customer_name": "A"})
        assert exc.value.status_code == 400


class TestInvoiceLogin:
    def test_first_login_registers_customer(self, db_session, invoices):
        result = invoices.login_with_invoice("HN-CKM-2576597")

        assert result["success"] is True
        assert result["isNewRegistration"] is True
        assert result["message"] == "Welcome! Your account has been created using your purchase receipt."
        assert result["retailer"].code == "HN"

        user = result["user"]
        assert user.email == "jude.okun@email.com"
        assert (user.first_name, user.last_name) == ("Jude", "Okun")
        assert user.registration_method == "invoice"
        assert user.invoice_verified is True
        assert verify_access_token(result["accessToken"])["sub"] == str(user.id)
        assert invoices.get_invoice("HN-CKM-2576597").is_used_for_registration is True

    def test_second_login_reuses_account(self, db_session, invoices):
        invoices.login_with_invoice("HN-CKM-2576597")
        result = invoices.login_with_invoice("hn-ckm-2576597")

        assert result["isNewRegistration"] is False
        assert result["message"] == "Welcome back! Logged in using your receipt."
        assert db_session.query(User).filter_by(email="jude.okun@email.com").count() == 1

    def test_existing_email_account_is_upgraded(self, db_session, invoices):
        db_session.add(User(email="john.smith@email.com", first_name="John", registration_method="email"))
        db_session.commit()

        result = invoices.login_with_invoice("HN-DUB-001234")
        assert result["isNewRegistration"] is False
        assert result["user"].registration_method == "invoice"
        assert result["user"].retailer_invoice_number == "HN-DUB-001234"

    def test_invalid_format(self, invoices):
        result = invoices.login_with_invoice("not-an-invoice")
        assert result == {
            "success": False,
            "message": "Invalid invoice format. Please check your invoice number and try again.",
        }

    def test_unknown_invoice(self, invoices):
        result = invoices.login_with_invoice("CR-DUB-123456")
        assert result["success"] is False
        assert result["message"] == "No purchase record found for this Currys invoice. Please check the invoice number."


# =============================================================================
# API
# =============================================================================


class TestRetailerApi:
    def test_invoice_login(self, client, invoices):
        response = client.post("/api/auth/invoice-login", json={"invoiceNumber": "HN-GAL-009876"})
        assert response.status_code == 200
        body = response.json()
        assert body["tokenType"] == "bearer"
        assert body["user"]["email"] == "david.brown@email.com"
        assert body["retailer"]["storeLocations"]["GAL"] == "Galway"

        token = body["accessToken"]
        response = client.get("/api/bookings/mine", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200

    def test_invoice_login_failure(self, client, invoices):
        response = client.post("/api/auth/invoice-login", json={"invoiceNumber": "HN-GAL-000000"})
        assert response.status_code == 401

    def test_list_retailers(self, client):
        response = client.get("/api/retailers")
        assert response.status_code == 200
        assert len(response.json()) == len(RETAILERS)

    def test_detect_invoice(self, client):
        response = client.post("/api/retailers/detect", json={"value": "DD-BLA-55555"})
        body = response.json()
        assert body["detected"] is True
        assert body["retailerCode"] == "DD"
        assert body["invoiceNumber"] == "55555"

    def test_detect_referral(self, client):
        response = client.post("/api/retailers/detect", json={"value": "HNTALAOIFE", "kind": "referral"})
        body = response.json()
        assert body["storeName"] == "Harvey Norman Tallaght"
        assert body["staffName"] == "AOIFE"

    def test_detect_nothing(self, client):
        assert client.post("/api/retailers/detect", json={"value": "QQ-1"}).json() == {
            "detected": False,
            "retailerCode": None,
            "retailerName": None,
            "storeCode": None,
            "storeName": None,
            "invoiceNumber": None,
            "staffName": None,
        }

    def test_admin_adds_invoice(self, client, admin_headers, customer_headers):
        payload = {"invoiceNumber": "HN-NAA-778899", "customerEmail": "pat@example.ie", "customerName": "Pat Doyle"}
        assert client.post("/api/admin/invoices", json=payload, headers=customer_headers).status_code == 403

        response = client.post("/api/admin/invoices", json=payload, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["storeName"] == "Harvey Norman Naas"

        response = client.post("/api/admin/invoices", json=payload, headers=admin_headers)
        assert response.status_code == 400
