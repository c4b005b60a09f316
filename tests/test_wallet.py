"""
Tests for installer wallets, lead fees and the lead marketplace
"""

import pytest
from fastapi import HTTPException

from tradesbook.domain.wallet.leads import HIDDEN_CONTACT_NOTICE, LeadMarketplaceService, area_only
from tradesbook.domain.wallet.service import InstallerWalletService, InsufficientBalanceError
from tradesbook.models import InstallerTransaction, JobAssignment, LeadQualityTracking


@pytest.fixture
def wallets(db_session):
    return InstallerWalletService(db_session)


@pytest.fixture
def marketplace(db_session):
    return LeadMarketplaceService(db_session)


@pytest.fixture
def assignment(db_session, installer, make_booking):
    booking = make_booking()
    job = JobAssignment(booking_id=booking.id, installer_id=installer.id, lead_fee=25.0)
    db_session.add(job)
    db_session.commit()
    return job


def _types(db_session, installer_id):
    rows = (
        db_session.query(InstallerTransaction)
        .filter_by(installer_id=installer_id)
        .order_by(InstallerTransaction.id)
        .all()
    )
    return [(t.type, t.amount) for t in rows]


# =============================================================================
# Wallet
# =============================================================================


class TestWallet:
    def test_new_wallet_is_empty(self, wallets, installer):
        balance = wallets.get_wallet_balance(installer.id)
        assert balance.current == 0.0
        assert balance.total_spent == 0.0
        assert balance.pending_charges == 0.0

    def test_wallet_is_created_once(self, wallets, installer):
        assert wallets.get_or_create_wallet(installer.id).id == wallets.get_or_create_wallet(installer.id).id

    def test_add_credits(self, db_session, wallets, installer):
        wallet = wallets.add_credits(installer.id, 50, payment_intent_id="pi_123")
        assert wallet.balance == 50.0

        credit = db_session.query(InstallerTransaction).one()
        assert credit.type == "credit_purchase"
        assert credit.description == "Added €50 credits to wallet"
        assert credit.payment_intent_id == "pi_123"

    @pytest.mark.parametrize("amount", [0, -10])
    def test_add_credits_rejects_non_positive(self, wallets, installer, amount):
        with pytest.raises(ValueError):
            wallets.add_credits(installer.id, amount)

    def test_pending_charges(self, wallets, installer, assignment):
        assert wallets.get_wallet_balance(installer.id).pending_charges == 25.0

    def test_can_afford(self, wallets, installer):
        wallets.add_credits(installer.id, 20)
        assert wallets.can_afford_lead_fee(installer.id, 20)
        assert not wallets.can_afford_lead_fee(installer.id, 20.01)


class TestCompleteLeadFee:
    def test_base_fee_only(self, wallets, make_booking):
        fee = wallets.calculate_complete_lead_fee(make_booking(service_type="gold"))
        assert fee.total_fee == 30.0
        assert fee.breakdown == ["Base service: €30"]

    def test_unknown_service_uses_default(self, wallets, make_booking):
        assert wallets.calculate_complete_lead_fee(make_booking(service_type="custom")).base_fee == 20.0

    def test_addons_and_subsidy(self, wallets, make_booking):
        booking = make_booking(
            addons=[
                {"name": "Cable Concealment", "price": 49},
                {"key": "soundbar-mounting", "name": "Soundbar", "price": 39},
                {"name": "Wall Shelf", "price": 35},
            ],
            referral_discount=18.0,
        )
        fee = wallets.calculate_complete_lead_fee(booking)

        assert fee.base_fee == 25.0
        assert fee.addon_fees == 12.0
        assert fee.subsidy_amount == 18.0
        assert fee.total_fee == 55.0
        assert fee.breakdown == [
            "Base service: €25",
            "cable-concealment: €5",
            "soundbar-mounting: €7",
            "Harvey Norman subsidy: €18",
        ]


class TestCharges:
    def test_complete_charge_writes_one_row_per_component(self, db_session, wallets, installer, assignment):
        booking = assignment.booking
        booking.addons = [{"name": "Cable Concealment", "price": 49}]
        booking.referral_discount = 18.0
        db_session.commit()
        wallets.add_credits(installer.id, 100)

        assert wallets.charge_complete_lead_fee(installer.id, assignment.id, booking) is True

        wallet = wallets.get_or_create_wallet(installer.id)
        assert wallet.balance == 52.0
        assert wallet.total_spent == 48.0
        assert _types(db_session, installer.id) == [
            ("credit_purchase", 100.0),
            ("lead_purchase", -25.0),
            ("addon_fee", -5.0),
            ("referral_subsidy", -18.0),
        ]

    def test_complete_charge_insufficient_balance(self, db_session, wallets, installer, assignment):
        wallets.add_credits(installer.id, 10)
        assert wallets.charge_complete_lead_fee(installer.id, assignment.id, assignment.booking) is False
        assert wallets.get_or_create_wallet(installer.id).balance == 10.0

    def test_flat_charge_with_subsidy(self, db_session, wallets, installer, assignment):
        wallets.add_credits(installer.id, 40)
        assert wallets.charge_lead_fee(installer.id, assignment.id, 20, subsidy_amount=5) is True
        assert wallets.get_or_create_wallet(installer.id).balance == 15.0
        assert _types(db_session, installer.id)[1:] == [("lead_purchase", -20.0), ("referral_subsidy", -5.0)]

    def test_flat_charge_insufficient_balance(self, wallets, installer, assignment):
        assert wallets.charge_lead_fee(installer.id, assignment.id, 20) is False

    def test_job_earnings_do_not_touch_balance(self, wallets, installer, assignment):
        wallets.add_job_earnings(installer.id, assignment.id, 180)
        wallet = wallets.get_or_create_wallet(installer.id)
        assert wallet.total_earned == 180.0
        assert wallet.balance == 0.0

    def test_spending_stats_count_lead_purchases_only(self, wallets, installer, assignment):
        wallets.add_credits(installer.id, 100)
        booking = assignment.booking
        booking.addons = [{"name": "Cable Concealment"}]
        wallets.charge_complete_lead_fee(installer.id, assignment.id, booking)

        stats = wallets.get_spending_stats(installer.id)
        assert stats["totalLeads"] == 1
        assert stats["thisWeek"] == 25.0
        assert stats["thisMonth"] == 25.0
        assert stats["averagePerLead"] == 25.0

    def test_history_is_newest_first(self, wallets, installer):
        wallets.add_credits(installer.id, 10)
        wallets.add_credits(installer.id, 20)
        history = wallets.get_transaction_history(installer.id)
        assert [t.amount for t in history] == [20.0, 10.0]


# =============================================================================
# Lead marketplace
# =============================================================================


class TestAreaOnly:
    def test_keeps_town_and_county(self):
        assert area_only("12 Main Street, Swords, Co. Dublin") == "Swords, Co. Dublin"

    def test_empty_address(self):
        assert area_only("") == "Ireland"


class TestAvailableLeads:
    def test_contact_details_are_hidden(self, marketplace, installer, make_booking):
        make_booking()
        leads = marketplace.get_available_leads(installer.id)

        assert len(leads) == 1
        lead = leads[0]
        assert lead["customer"] == {"name": HIDDEN_CONTACT_NOTICE, "email": None, "phone": None}
        assert lead["address"] == "Swords, Co. Dublin"
        assert lead["leadFee"] == 25.0
        assert lead["profitMargin"] == 155.0

    def test_taken_and_closed_bookings_are_excluded(self, marketplace, installer, other_installer, make_booking):
        make_booking(installer_id=other_installer.id)
        make_booking(status="completed")
        make_booking(status="urgent")
        assert [lead["status"] for lead in marketplace.get_available_leads(installer.id)] == ["urgent"]

    def test_unknown_installer(self, marketplace):
        with pytest.raises(HTTPException) as exc:
            marketplace.get_available_leads(999)
        assert exc.value.status_code == 404


class TestPurchaseLead:
    def test_purchase(self, db_session, marketplace, wallets, installer, make_booking):
        booking = make_booking()
        db_session.add(LeadQualityTracking(booking_id=booking.id))
        db_session.commit()
        wallets.add_credits(installer.id, 60)

        booking, _, assignment = marketplace.purchase_lead(installer.id, booking.id)

        assert booking.installer_id == installer.id
        assert booking.status == "installation_scheduled"
        assert booking.lead_fee == 25.0
        assert assignment.lead_fee_status == "paid"
        assert wallets.get_or_create_wallet(installer.id).balance == 35.0
        tracking = db_session.query(LeadQualityTracking).filter_by(booking_id=booking.id).one()
        assert tracking.installer_id == installer.id

    def test_insufficient_balance(self, marketplace, wallets, installer, make_booking):
        booking = make_booking()
        wallets.add_credits(installer.id, 10)

        with pytest.raises(InsufficientBalanceError) as exc:
            marketplace.purchase_lead(installer.id, booking.id)
        assert exc.value.required == 25.0
        assert exc.value.available == 10.0

    def test_lead_can_only_be_bought_once(self, marketplace, wallets, installer, other_installer, make_booking):
        booking = make_booking()
        wallets.add_credits(installer.id, 50)
        wallets.add_credits(other_installer.id, 50)
        marketplace.purchase_lead(installer.id, booking.id)

        with pytest.raises(HTTPException) as exc:
            marketplace.purchase_lead(other_installer.id, booking.id)
        assert exc.value.status_code == 400
        assert wallets.get_or_create_wallet(other_installer.id).balance == 50.0

    def test_unknown_booking(self, marketplace, installer):
        with pytest.raises(HTTPException) as exc:
            marketplace.purchase_lead(installer.id, 999)
        assert exc.value.status_code == 404


# =============================================================================
# API
# =============================================================================


class TestWalletApi:
    def test_installer_sees_own_wallet(self, client, installer, installer_headers):
        response = client.get(f"/api/installer/{installer.id}/wallet", headers=installer_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["balance"]["current"] == 0.0
        assert body["spending"]["totalLeads"] == 0

    def test_installer_cannot_see_other_wallet(self, client, other_installer, installer_headers):
        response = client.get(f"/api/installer/{other_installer.id}/wallet", headers=installer_headers)
        assert response.status_code == 403

    def test_wallet_requires_auth(self, client, installer):
        assert client.get(f"/api/installer/{installer.id}/wallet").status_code == 401

    def test_signed_in_installer_wallet(self, client, installer, installer_headers):
        response = client.get("/api/installer/me/wallet", headers=installer_headers)
        assert response.status_code == 200
        assert response.json()["installerId"] == installer.id

    def test_own_wallet_needs_installer_account(self, client, customer_headers, admin_headers):
        assert client.get("/api/installer/me/wallet", headers=customer_headers).status_code == 403
        assert client.get("/api/installer/me/wallet", headers=admin_headers).status_code == 403

    def test_admin_tops_up(self, client, installer, admin_headers, installer_headers):
        response = client.post(
            f"/api/installer/{installer.id}/wallet/add-credits",
            json={"amount": 75},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["current"] == 75.0

        response = client.post(
            f"/api/installer/{installer.id}/wallet/add-credits",
            json={"amount": 75},
            headers=installer_headers,
        )
        assert response.status_code == 403

    def test_top_up_limits(self, client, installer, admin_headers):
        for amount in (0, 5001):
            response = client.post(
                f"/api/installer/{installer.id}/wallet/add-credits",
                json={"amount": amount},
                headers=admin_headers,
            )
            assert response.status_code == 422

    def test_purchase_flow(self, client, wallets, installer, installer_headers, make_booking):
        booking = make_booking()
        wallets.add_credits(installer.id, 30)

        leads = client.get(f"/api/installer/{installer.id}/available-leads", headers=installer_headers).json()
        assert leads[0]["customer"]["email"] is None

        response = client.post(
            f"/api/installer/{installer.id}/purchase-lead",
            json={"bookingId": booking.id},
            headers=installer_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["newBalance"] == 5.0
        assert body["customer"]["email"] == "aoife.byrne@example.ie"
        assert body["address"] == "12 Main Street, Swords, Co. Dublin"

    def test_purchase_without_credit(self, client, installer, installer_headers, make_booking):
        booking = make_booking()
        response = client.post(
            f"/api/installer/{installer.id}/purchase-lead",
            json={"bookingId": booking.id},
            headers=installer_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"]["required"] == 25.0

    def test_fee_breakdown(self, client, installer, installer_headers, make_booking):
        booking = make_booking(addons=[{"name": "Soundbar Mounting"}])
        response = client.get(f"/api/installer/{installer.id}/leads/{booking.id}/fee", headers=installer_headers)
        assert response.status_code == 200
        assert response.json()["totalFee"] == 32.0
