"""
Tests for app-level endpoints, authentication, fraud endpoints and notifications
"""

import asyncio
import smtplib
from datetime import datetime

import pytest

from tradesbook import email_service, rate_limiter
from tradesbook.email_service import send_email, send_quietly
from tradesbook.email_templates import booking_confirmation_template, refund_processed_template
from tradesbook.models import JobAssignment, LeadRefund
from tradesbook.security_utils import create_access_token


# =============================================================================
# App and authentication
# =============================================================================


class TestApp:
    def test_root_and_health(self, client):
        assert client.get("/").json() == {"message": "tradesbook.ie API"}
        assert client.get("/health").json() == {"status": "healthy"}

    def test_dev_token_disabled_by_default(self, client, customer):
        response = client.post("/api/auth/token", json={"email": customer.email})
        assert response.status_code == 404


class TestAuthentication:
    def test_missing_token(self, client):
        assert client.get("/api/bookings/mine").status_code == 401

    def test_malformed_token(self, client):
        response = client.get("/api/bookings/mine", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_expired_or_forged_token(self, client):
        response = client.get("/api/bookings/mine", headers={"Authorization": "Bearer a.b.c"})
        assert response.status_code == 401
        assert response.headers["X-Token-Expired"] == "true"

    def test_token_for_deleted_user(self, client):
        token = create_access_token({"sub": "4242", "role": "customer"})
        response = client.get("/api/bookings/mine", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_admin_routes_reject_customers(self, client, customer_headers):
        assert client.get("/api/admin/refunds", headers=customer_headers).status_code == 403


# =============================================================================
# Fraud endpoints
# =============================================================================


@pytest.fixture
def paid_lead(db_session, installer, make_booking):
    booking = make_booking(installer_id=installer.id, status="installation_scheduled")
    db_session.add(
        JobAssignment(
            booking_id=booking.id,
            installer_id=installer.id,
            lead_fee=25.0,
            lead_fee_status="paid",
            lead_paid_date=datetime.utcnow(),
        )
    )
    db_session.commit()
    return booking


class TestFraudApi:
    def test_assess(self, client, admin_headers, make_booking):
        booking = make_booking()
        response = client.post(f"/api/fraud/bookings/{booking.id}/assess", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["qualityScore"] == 50

    def test_assess_unknown_booking(self, client, admin_headers):
        assert client.post("/api/fraud/bookings/999/assess", headers=admin_headers).status_code == 404

    def test_phone_verification_never_returns_code(self, client, customer, customer_headers, make_booking):
        booking = make_booking(user_id=customer.id)
        response = client.post(
            f"/api/fraud/bookings/{booking.id}/phone-verification",
            json={"phoneNumber": "087 123 4567"},
            headers=customer_headers,
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Verification code sent"}

        response = client.post(
            f"/api/fraud/bookings/{booking.id}/verify-phone", json={"code": "000000"}, headers=customer_headers
        )
        assert response.status_code == 400

    def test_phone_verification_requires_booking_owner(self, client, customer_headers, make_booking):
        booking = make_booking()
        start_url = f"/api/fraud/bookings/{booking.id}/phone-verification"
        verify_url = f"/api/fraud/bookings/{booking.id}/verify-phone"

        assert client.post(start_url, json={"phoneNumber": "0871234567"}).status_code == 401
        assert client.post(verify_url, json={"code": "000000"}).status_code == 401
        assert client.post(start_url, json={"phoneNumber": "0871234567"}, headers=customer_headers).status_code == 403
        assert client.post(verify_url, json={"code": "000000"}, headers=customer_headers).status_code == 403

    def test_manipulation_check(self, client, admin_headers, make_booking):
        booking = make_booking(agreed_price=90.0)
        response = client.post(
            f"/api/fraud/bookings/{booking.id}/manipulation-check", json={}, headers=admin_headers
        )
        assert response.json()["suspicious"] is True

    def test_payment_risk(self, client, admin_headers, make_booking):
        booking = make_booking()
        payment = {"charges": {"data": [{"disputed": True}]}}
        response = client.post(
            f"/api/fraud/bookings/{booking.id}/payment-risk", json={"payment": payment}, headers=admin_headers
        )
        assert response.json() == {"bookingId": booking.id, "riskScore": 0.8, "highRisk": True}

    def test_contact_outcome_then_refund(self, client, installer, installer_headers, paid_lead):
        response = client.post(
            f"/api/fraud/installers/{installer.id}/contact-outcome",
            json={"bookingId": paid_lead.id, "installerContacted": True, "customerResponded": False},
            headers=installer_headers,
        )
        assert response.status_code == 200

        response = client.post(
            f"/api/fraud/installers/{installer.id}/refund-eligibility",
            json={"bookingId": paid_lead.id, "reason": "customer_unresponsive"},
            headers=installer_headers,
        )
        assert response.json()["refundAmount"] == 20.0

        response = client.post(
            f"/api/fraud/installers/{installer.id}/refunds",
            json={"bookingId": paid_lead.id, "reason": "customer_unresponsive"},
            headers=installer_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "processed"

        wallet = client.get(f"/api/installer/{installer.id}/wallet", headers=installer_headers).json()
        assert wallet["balance"]["current"] == 20.0

    def test_refund_for_unpaid_lead(self, client, installer, installer_headers, make_booking):
        booking = make_booking()
        response = client.post(
            f"/api/fraud/installers/{installer.id}/refunds",
            json={"bookingId": booking.id, "reason": "technical_issue"},
            headers=installer_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "No paid lead fee found"

    def test_unknown_refund_reason(self, client, installer, installer_headers, paid_lead):
        response = client.post(
            f"/api/fraud/installers/{installer.id}/refunds",
            json={"bookingId": paid_lead.id, "reason": "changed_my_mind"},
            headers=installer_headers,
        )
        assert response.status_code == 422

    def test_installer_cannot_refund_for_another(self, client, other_installer, installer_headers, paid_lead):
        response = client.post(
            f"/api/fraud/installers/{other_installer.id}/refunds",
            json={"bookingId": paid_lead.id, "reason": "technical_issue"},
            headers=installer_headers,
        )
        assert response.status_code == 403

    def test_admin_review(self, client, db_session, installer, installer_headers, admin_headers, paid_lead):
        client.post(
            f"/api/fraud/installers/{installer.id}/refunds",
            json={"bookingId": paid_lead.id, "reason": "customer_ghosted", "installerNotes": "No answer"},
            headers=installer_headers,
        )
        pending = client.get("/api/admin/refunds", params={"status": "pending"}, headers=admin_headers).json()
        assert len(pending) == 1
        refund_id = pending[0]["id"]

        response = client.post(
            f"/api/admin/refunds/{refund_id}/approve", json={"adminNotes": "Checked"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "processed"
        assert response.json()["refundAmount"] == 15.0

        response = client.post(f"/api/admin/refunds/{refund_id}/reject", json={}, headers=admin_headers)
        assert response.status_code == 400
        assert db_session.query(LeadRefund).one().status == "processed"

    def test_quality_metrics_and_patterns(self, client, installer, admin_headers, make_booking):
        make_booking(installer_id=installer.id)
        metrics = client.get("/api/admin/refunds/quality-metrics", headers=admin_headers).json()
        assert metrics["totalBookings"] == 1

        patterns = client.get(f"/api/fraud/installers/{installer.id}/patterns", headers=admin_headers).json()
        assert patterns["installerId"] == installer.id
        assert patterns["riskLevel"] == "low"


# =============================================================================
# Rate limiting
# =============================================================================


class TestRateLimiter:
    @pytest.fixture(autouse=True)
    def clear_cache(self):
        rate_limiter.memory_cache.clear()
        yield
        rate_limiter.memory_cache.clear()

    def test_memory_window(self):
        results = [rate_limiter.check_rate_limit("test:1.2.3.4", 2, 60, None) for _ in range(3)]
        assert [allowed for allowed, _, _ in results] == [True, True, False]
        assert results[-1][1] == 2
        assert 0 < results[-1][2] <= 60

    def test_keys_are_independent(self):
        rate_limiter.check_rate_limit("test:a", 1, 60, None)
        assert rate_limiter.check_rate_limit("test:b", 1, 60, None)[0] is True


# =============================================================================
# Notifications
# =============================================================================


class TestNotifications:
    def test_confirmation_template(self, make_booking):
        booking = make_booking(addons=[{"name": "Cable Concealment", "price": 49}])
        mjml = booking_confirmation_template(booking, "https://tradesbook.ie/qr-tracking/BK-TEST0001")

        assert "<mjml>" in mjml
        assert booking.qr_code in mjml
        assert "Cable Concealment" in mjml
        assert "€180.00" in mjml
        assert "https://tradesbook.ie/qr-tracking/BK-TEST0001" in mjml

    def test_refund_template(self):
        mjml = refund_processed_template("Sean", "BK-TEST0001", 1250.5, "technical_issue")
        assert "€1,250.50" in mjml
        assert "Reason: technical_issue" in mjml

    def test_send_without_provider_fails(self):
        with pytest.raises(Exception, match="Email service not configured"):
            asyncio.run(send_email("someone@example.ie", "Hello", "<mjml><mj-body></mj-body></mjml>"))

    def test_smtp_connection_closed_when_login_fails(self, monkeypatch):
        connections = []

        class FailingSMTP:
            def __init__(self, host, port, timeout=None):
                self.closed = False
                connections.append(self)

            def __enter__(self):
                return self

            def __exit__(self, *exc_info):
                self.closed = True

            def login(self, username, password):
                raise smtplib.SMTPAuthenticationError(535, b"Authentication failed")

            def sendmail(self, *args):
                raise AssertionError("sendmail should not be reached")

        monkeypatch.setattr(email_service.smtplib, "SMTP", FailingSMTP)
        monkeypatch.setattr(email_service, "SMTP_PORT", 587)
        monkeypatch.setattr(email_service, "SMTP_USE_TLS", False)
        monkeypatch.setattr(email_service, "SMTP_USERNAME", "bookings@tradesbook.ie")

        with pytest.raises(Exception, match="SMTP failed"):
            email_service.send_via_smtp(["someone@example.ie"], "Hello", "<p>Hi</p>", "tradesbook <noreply@tradesbook.ie>")
        assert len(connections) == 1
        assert connections[0].closed is True

    def test_send_quietly_swallows_failures(self):
        async def broken(**kwargs):
            raise RuntimeError("provider down")

        assert asyncio.run(send_quietly(broken, to="someone@example.ie")) is None
