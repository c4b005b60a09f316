"""
Tests for customer pricing, lead pricing and the admin rate table
"""

import pytest

from tradesbook.domain.pricing.lead_pricing import (
    LEAD_FEES,
    calculate_estimated_pricing,
    get_all_lead_pricing,
    get_customer_estimate,
    get_lead_fee,
    initialize_lead_pricing,
    resolve_lead_fee,
)
from tradesbook.domain.pricing.schemas import PricingItem
from tradesbook.domain.pricing.service import DEFAULT_PRICING, PricingManagementService
from tradesbook.domain.pricing.tiers import (
    SERVICE_TIERS,
    calculate_booking_pricing,
    calculate_customer_price,
    get_service_tiers_for_tv_size,
)
from tradesbook.models import LeadPricing


# =============================================================================
# Service tiers
# =============================================================================


class TestServiceTiers:
    def test_customer_price_includes_commission(self):
        assert calculate_customer_price(89) == 105
        assert calculate_customer_price(159) == 187
        assert calculate_customer_price(359) == 422

    def test_tier_prices_are_derived_from_earnings(self):
        assert SERVICE_TIERS["silver"].installer_earnings == 159
        assert SERVICE_TIERS["silver"].customer_price == 187

    def test_tiers_for_small_tv(self):
        keys = {tier.key for tier in get_service_tiers_for_tv_size(40)}
        assert keys == {"table-top-small", "bronze"}

    def test_tiers_for_large_tv_include_open_ended_tiers(self):
        keys = {tier.key for tier in get_service_tiers_for_tv_size(98)}
        assert keys == {"table-top-large", "silver-large", "gold-large"}

    def test_tier_boundaries_are_inclusive(self):
        assert SERVICE_TIERS["silver"].fits_tv_size(43)
        assert SERVICE_TIERS["silver"].fits_tv_size(85)
        assert not SERVICE_TIERS["silver"].fits_tv_size(86)


class TestBookingPricing:
    def test_fee_charged_on_top_of_earnings(self):
        result = calculate_booking_pricing("bronze", [{"name": "Cable Concealment", "price": 49}])
        assert result.base_price == 109
        assert result.addons_price == 49
        assert result.installer_earnings == 158
        assert result.app_fee == pytest.approx(23.7)
        assert result.total_price == pytest.approx(181.7)
        assert result.fee_percentage == pytest.approx(15)

    def test_unknown_service_rejected(self):
        with pytest.raises(ValueError, match="Unknown service type"):
            calculate_booking_pricing("diamond")


# =============================================================================
# Lead pricing
# =============================================================================


class TestLeadPricing:
    def test_known_and_default_lead_fees(self):
        assert get_lead_fee("silver") == 25.0
        assert get_lead_fee("something-else") == 15.0

    def test_customer_estimate_default(self):
        assert get_customer_estimate("gold") == 250
        assert get_customer_estimate("unknown") == 120

    def test_estimate_adds_addons(self):
        estimate = calculate_estimated_pricing(
            "silver", [{"name": "Soundbar Mounting", "price": 39}, {"name": "Cable Concealment", "price": 49}]
        )
        assert estimate.customer_estimate == 180
        assert estimate.addons_estimate == 88
        assert estimate.total_estimate == 268

    def test_initialize_seeds_once(self, db_session):
        initialize_lead_pricing(db_session)
        initialize_lead_pricing(db_session)
        assert db_session.query(LeadPricing).count() == len(LEAD_FEES)
        emergency = db_session.query(LeadPricing).filter_by(service_type="emergency").one()
        assert emergency.priority == 10

    def test_resolve_prefers_active_db_row(self, db_session):
        db_session.add(LeadPricing(service_type="silver", lead_fee=22.5, priority=1, is_active=True))
        db_session.commit()
        assert resolve_lead_fee(db_session, "silver") == 22.5

    def test_resolve_ignores_inactive_row(self, db_session):
        db_session.add(LeadPricing(service_type="silver", lead_fee=22.5, priority=1, is_active=False))
        db_session.commit()
        assert resolve_lead_fee(db_session, "silver") == 25.0
        assert get_all_lead_pricing(db_session) == []


# =============================================================================
# Admin rate table
# =============================================================================


class TestPricingManagement:
    def test_initialize_default_pricing(self, db_session):
        service = PricingManagementService(db_session)
        assert service.initialize_default_pricing() is True
        assert service.initialize_default_pricing() is False
        assert len(service.get_all_pricing()) == len(DEFAULT_PRICING)
        assert len(service.get_pricing_by_category("addon")) == 3
        assert len(service.get_pricing_by_category("bracket")) == 3

    def test_upsert_creates_then_updates(self, db_session):
        service = PricingManagementService(db_session)
        created = service.upsert_pricing(
            PricingItem(category="addon", itemKey="wall-shelf", name="Wall Shelf", customerPrice=35, leadFee=4)
        )
        assert created.id is not None

        updated = service.upsert_pricing(created.model_copy(update={"customerPrice": 40}))
        assert updated.id == created.id
        assert service.get_pricing_by_key("wall-shelf").customerPrice == 40

    def test_delete_is_soft(self, db_session):
        service = PricingManagementService(db_session)
        service.initialize_default_pricing()
        item = service.get_pricing_by_key("soundbar-mounting")

        assert service.delete_pricing(item.id) is True
        assert service.get_pricing_by_key("soundbar-mounting") is None
        assert service.delete_pricing(99999) is False

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError):
            PricingItem(category="service", itemKey="x", name="X", customerPrice=-1)


# =============================================================================
# API
# =============================================================================


class TestPricingApi:
    def test_tiers_filtered_by_tv_size(self, client):
        response = client.get("/api/pricing/tiers", params={"tv_size": 40})
        assert response.status_code == 200
        assert {t["key"] for t in response.json()} == {"table-top-small", "bronze"}

    def test_estimate(self, client):
        response = client.post(
            "/api/pricing/estimate",
            json={"serviceType": "gold", "addons": [{"name": "Cable Concealment", "price": 49}]},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["totalEstimate"] == 299
        assert body["leadFee"] == 30

    def test_booking_pricing_unknown_service(self, client):
        response = client.post("/api/pricing/booking", json={"serviceType": "diamond"})
        assert response.status_code == 400

    def test_admin_pricing_requires_admin(self, client, customer_headers):
        assert client.get("/api/admin/pricing", headers=customer_headers).status_code == 403

    def test_admin_initialize_and_list(self, client, admin_headers):
        response = client.post("/api/admin/pricing/initialize", headers=admin_headers)
        assert response.status_code == 200

        response = client.get("/api/admin/pricing/service", headers=admin_headers)
        assert response.status_code == 200
        assert len(response.json()) == 7
