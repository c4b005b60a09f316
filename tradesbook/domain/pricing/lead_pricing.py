"""Lead pricing - what installers pay to access customer requests"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import CUSTOMER_ESTIMATE_DEFAULT, LEAD_FEE_DEFAULT
from ...models import LeadPricing
from .tiers import sum_addon_prices

logger = logging.getLogger(__name__)

# Lead fees by job category (EUR)
LEAD_FEES: dict[str, float] = {
    "table-top-small": 12.00,  # Small TV table mount (32-43")
    "table-top-medium": 15.00,  # Medium TV table mount (44-55")
    "table-top-large": 18.00,  # Large TV table mount (56-65")
    "bronze": 20.00,  # Standard wall mount
    "silver": 25.00,  # Premium wall mount with cable management
    "gold": 30.00,  # Full-service with concealment
    "platinum": 35.00,  # Complex installation with soundbar
    "emergency": 40.00,
    "weekend": 30.00,
}

# What customers pay installers directly, used for estimates only
CUSTOMER_PRICING: dict[str, float] = {
    "table-top-small": 60,
    "table-top-medium": 75,
    "table-top-large": 95,
    "bronze": 120,
    "silver": 180,
    "gold": 250,
    "platinum": 320,
    "emergency": 400,
    "weekend": 200,
}


@dataclass(frozen=True)
class EstimatedPrice:
    customer_estimate: float
    addons_estimate: float
    total_estimate: float


def get_lead_fee(service_type: str) -> float:
    return LEAD_FEES.get(service_type) or LEAD_FEE_DEFAULT


def get_customer_estimate(service_type: str) -> float:
    return CUSTOMER_PRICING.get(service_type) or CUSTOMER_ESTIMATE_DEFAULT


def calculate_estimated_pricing(service_type: str, addons: Optional[list[dict]] = None) -> EstimatedPrice:
    base_estimate = float(get_customer_estimate(service_type))
    addons_estimate = sum_addon_prices(addons)
    return EstimatedPrice(
        customer_estimate=base_estimate,
        addons_estimate=addons_estimate,
        total_estimate=base_estimate + addons_estimate,
    )


def initialize_lead_pricing(db: Session) -> None:
    """Seed the lead pricing table once"""
    try:
        if db.query(LeadPricing).first():
            return

        for index, (service_type, fee) in enumerate(LEAD_FEES.items()):
            db.add(
                LeadPricing(
                    service_type=service_type,
                    lead_fee=fee,
                    priority=10 if service_type == "emergency" else index,
                    is_active=True,
                )
            )
        db.commit()
        logger.info("✅ Lead pricing initialized successfully")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Error initializing lead pricing: {e}")


def get_lead_pricing_from_db(db: Session, service_type: str) -> Optional[LeadPricing]:
    try:
        return db.query(LeadPricing).filter(LeadPricing.service_type == service_type).first()
    except SQLAlchemyError as e:
        logger.error(f"❌ Error fetching lead pricing: {e}")
        return None


def get_all_lead_pricing(db: Session) -> list[LeadPricing]:
    try:
        return db.query(LeadPricing).filter(LeadPricing.is_active.is_(True)).all()
    except SQLAlchemyError as e:
        logger.error(f"❌ Error fetching all lead pricing: {e}")
        return []


def resolve_lead_fee(db: Session, service_type: str) -> float:
    """Lead fee for a service type: active DB row first, static table otherwise"""
    pricing = get_lead_pricing_from_db(db, service_type)
    if pricing and pricing.is_active:
        return float(pricing.lead_fee)
    return get_lead_fee(service_type)
