"""
Tests for star-rated performance refunds
"""

import pytest

from tradesbook.domain.bookings.schemas import BookingCreate
from tradesbook.domain.bookings.service import BookingService
from tradesbook.domain.referrals.service import ReferralService
from tradesbook.domain.refunds.service import DEFAULT_REFUND_SETTINGS, PerformanceRefundService
from tradesbook.domain.wallet.leads import LeadMarketplaceService
from tradesbook.domain.wallet.service import InstallerWalletService
from tradesbook.models import InstallerTransaction, JobAssignment, PerformanceRefundSetting


@pytest.fixture
def refunds(db_session):
    service = PerformanceRefundService(db_session)
    service.initialize_default_settings()
    return service


@pytest.fixture
def paid_booking(db_session, installer, make_booking):
    booking = make_booking(installer_id=installer.id, status="completed", total_lead_fee=40.0)
    db_session.add(
        JobAssignment(booking_id=booking.id, installer_id=installer.id, lead_fee=40.0, lead_fee_status="paid")
    )
    db_session.commit()
    return booking


class TestSettings:
    def test_seeded_once(self, db_session, refunds):
        assert refunds.initialize_default_settings() is False
        assert db_session.query(PerformanceRefundSetting).count() == len(DEFAULT_REFUND_SETTINGS)

    def test_lookup_floors_fractional_stars(self, refunds):
        assert refunds.get_refund_setting_for_stars(4.7).refund_percentage == 50.0
        assert refunds.get_refund_setting_for_stars(2) is None

    def test_inactive_setting_is_ignored(self, db_session, refunds):
        db_session.query(PerformanceRefundSetting).filter_by(star_level=5).update({"is_active": False})
        db_session.commit()
        assert refunds.get_refund_setting_for_stars(5) is None


class TestRating:
    @pytest.mark.parametrize("stars,eligible", [(2, False), (3, True), (5, True)])
    def test_eligibility_threshold(self, refunds, make_booking, stars, eligible):
        booking = refunds.rate_installation_quality(make_booking().id, stars)
        assert booking.quality_stars == stars
        assert booking.eligible_for_refund is eligible

    def test_unknown_booking(self, refunds):
        assert refunds.rate_installation_quality(999, 4) is None


class TestProcessPerformanceRefund:
    @pytest.mark.parametrize("stars,amount", [(3, 10.0), (4, 20.0), (5, 30.0)])
    def test_refund_share_by_stars(self, db_session, refunds, installer, paid_booking, stars, amount):
        refunds.rate_installation_quality(paid_booking.id, stars)
        result = refunds.process_performance_refund(paid_booking.id)

        assert result["success"] is True
        assert result["refundAmount"] == amount
        assert InstallerWalletService(db_session).get_or_create_wallet(installer.id).balance == amount

        credit = db_session.query(InstallerTransaction).filter_by(type="credit").one()
        assert credit.description == f"Performance refund - {stars} quality stars"

        db_session.refresh(paid_booking)
        assert paid_booking.refund_processed is True
        assert paid_booking.refund_amount == amount

    def test_processed_only_once(self, refunds, paid_booking):
        refunds.rate_installation_quality(paid_booking.id, 4)
        refunds.process_performance_refund(paid_booking.id)
        result = refunds.process_performance_refund(paid_booking.id)
        assert result == {"success": False, "message": "Performance refund already processed"}

    def test_low_rating_is_not_refunded(self, refunds, paid_booking):
        refunds.rate_installation_quality(paid_booking.id, 2)
        result = refunds.process_performance_refund(paid_booking.id)
        assert result["message"] == "Not eligible for performance refund"

    def test_requires_lead_fee(self, refunds, make_booking):
        booking = make_booking(total_lead_fee=0.0)
        refunds.rate_installation_quality(booking.id, 5)
        assert refunds.process_performance_refund(booking.id)["message"] == "No lead fee to refund"

    def test_requires_paid_assignment(self, refunds, make_booking):
        booking = make_booking(total_lead_fee=40.0)
        refunds.rate_installation_quality(booking.id, 5)
        result = refunds.process_performance_refund(booking.id)
        assert result["message"] == "No paid lead fee found for this booking"

    def test_unpaid_fee_is_not_refunded(self, db_session, refunds, installer, make_booking):
        booking = make_booking(installer_id=installer.id, total_lead_fee=40.0)
        db_session.add(
            JobAssignment(booking_id=booking.id, installer_id=installer.id, lead_fee=0.0, lead_fee_status="paid")
        )
        db_session.commit()
        refunds.rate_installation_quality(booking.id, 5)

        assert refunds.process_performance_refund(booking.id)["message"] == "No lead fee to refund"
        db_session.refresh(booking)
        assert booking.refund_processed is False

    def test_refund_is_based_on_fee_paid(self, db_session, refunds, customer, installer):
        """A referral booking with add-ons records a larger total lead fee than the base fee charged."""
        ReferralService(db_session).create_sales_staff_code("Doug Brennan", "Carrickmines", "HNCKMDOUG")
        booking = BookingService(db_session).create_booking(
            BookingCreate(
                tvSize=65,
                serviceType="silver",
                wallType="brick",
                mountType="full-motion",
                addons=[
                    {"key": "cable-concealment", "name": "Cable Concealment", "price": 49},
                    {"key": "soundbar-mounting", "name": "Soundbar Mounting", "price": 79},
                ],
                address="4 Harbour Road, Howth, Co. Dublin",
                referralCode="HNCKMDOUG",
            ),
            customer,
        )
        InstallerWalletService(db_session).add_credits(installer.id, 100.0)
        _, _, assignment = LeadMarketplaceService(db_session).purchase_lead(installer.id, booking.id)
        assert booking.total_lead_fee > assignment.lead_fee == 25.0

        refunds.rate_installation_quality(booking.id, 5)
        result = refunds.process_performance_refund(booking.id)

        assert result["refundAmount"] == 18.75
        assert InstallerWalletService(db_session).get_wallet_balance(installer.id).current == 93.75

    def test_summary(self, refunds, paid_booking):
        refunds.rate_installation_quality(paid_booking.id, 5)
        refunds.process_performance_refund(paid_booking.id)

        summary = refunds.get_performance_refund_summary()
        assert summary["totalRefunds"] == 1
        assert summary["totalAmount"] == 30.0
        assert summary["byStarLevel"] == [{"starLevel": 5, "count": 1, "amount": 30.0}]


class TestPerformanceRefundApi:
    def test_admin_only(self, client, customer_headers):
        response = client.get("/api/admin/performance-refunds/summary", headers=customer_headers)
        assert response.status_code == 403

    def test_rate_and_process(self, client, refunds, admin_headers, paid_booking):
        response = client.put(
            f"/api/admin/performance-refunds/bookings/{paid_booking.id}/quality",
            json={"stars": 4},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["eligibleForRefund"] is True

        response = client.post(
            f"/api/admin/performance-refunds/bookings/{paid_booking.id}/process", headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["refundAmount"] == 20.0

    def test_rating_out_of_range(self, client, admin_headers, paid_booking):
        response = client.put(
            f"/api/admin/performance-refunds/bookings/{paid_booking.id}/quality",
            json={"stars": 6},
            headers=admin_headers,
        )
        assert response.status_code == 422
