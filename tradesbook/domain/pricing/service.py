"""Pricing management service - admin-controlled customer prices and lead fees"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import PricingConfig
from .repository import PricingRepository
from .schemas import PricingItem

logger = logging.getLogger(__name__)


class PricingError(Exception):
    """Raised when the rate table cannot be written"""


DEFAULT_PRICING: list[dict] = [
    # Services
    {
        "category": "service",
        "item_key": "table-top-small",
        "name": "Table Top Installation (Small)",
        "description": "Professional table top setup for TVs 32\"-42\"",
        "customer_price": 60,
        "lead_fee": 12,
        "min_tv_size": 32,
        "max_tv_size": 42,
    },
    {
        "category": "service",
        "item_key": "table-top-large",
        "name": "Table Top Installation (Large)",
        "description": "Professional table top setup for TVs 43\"+",
        "customer_price": 85,
        "lead_fee": 15,
        "min_tv_size": 43,
        "max_tv_size": None,
    },
    {
        "category": "service",
        "item_key": "bronze",
        "name": "Bronze Wall Mount",
        "description": "Standard wall mount with basic cable management",
        "customer_price": 120,
        "lead_fee": 20,
        "min_tv_size": 32,
        "max_tv_size": 65,
    },
    {
        "category": "service",
        "item_key": "silver",
        "name": "Silver Premium",
        "description": "Premium wall mount with advanced cable management",
        "customer_price": 180,
        "lead_fee": 25,
        "min_tv_size": 32,
        "max_tv_size": 65,
    },
    {
        "category": "service",
        "item_key": "silver-large",
        "name": "Silver Premium (Large)",
        "description": "Premium wall mount for large TVs 66\"+",
        "customer_price": 280,
        "lead_fee": 30,
        "min_tv_size": 66,
        "max_tv_size": None,
    },
    {
        "category": "service",
        "item_key": "gold",
        "name": "Gold Premium",
        "description": "Complete installation with full cable concealment",
        "customer_price": 250,
        "lead_fee": 30,
        "min_tv_size": 32,
        "max_tv_size": 65,
    },
    {
        "category": "service",
        "item_key": "gold-large",
        "name": "Gold Premium (Large)",
        "description": "Complete installation for large TVs with full concealment",
        "customer_price": 380,
        "lead_fee": 35,
        "min_tv_size": 66,
        "max_tv_size": None,
    },
    # Add-ons
    {
        "category": "addon",
        "item_key": "soundbar-mounting",
        "name": "Soundbar Mounting",
        "description": "Professional soundbar installation below TV",
        "customer_price": 45,
        "lead_fee": 5,
    },
    {
        "category": "addon",
        "item_key": "cable-concealment",
        "name": "Cable Concealment",
        "description": "Hide cables behind wall or in conduit",
        "customer_price": 35,
        "lead_fee": 5,
    },
    {
        "category": "addon",
        "item_key": "additional-devices",
        "name": "Additional Device Setup",
        "description": "Connect and configure additional devices",
        "customer_price": 25,
        "lead_fee": 3,
    },
    # Brackets
    {
        "category": "bracket",
        "item_key": "fixed-bracket",
        "name": "Fixed Wall Bracket",
        "description": "Basic fixed position bracket",
        "customer_price": 25,
        "lead_fee": 0,
    },
    {
        "category": "bracket",
        "item_key": "tilt-bracket",
        "name": "Tilt Wall Bracket",
        "description": "Adjustable tilt bracket",
        "customer_price": 45,
        "lead_fee": 0,
    },
    {
        "category": "bracket",
        "item_key": "full-motion-bracket",
        "name": "Full Motion Bracket",
        "description": "Swivel and tilt bracket with extended arm",
        "customer_price": 85,
        "lead_fee": 0,
    },
]


def to_pricing_item(config: PricingConfig) -> PricingItem:
    return PricingItem(
        id=config.id,
        category=config.category,
        itemKey=config.item_key,
        name=config.name,
        description=config.description,
        customerPrice=config.customer_price,
        leadFee=config.lead_fee or 0.0,
        minTvSize=config.min_tv_size,
        maxTvSize=config.max_tv_size,
        isActive=config.is_active,
    )


class PricingManagementService:
    """Service layer for the admin-managed rate table"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PricingRepository()

    def get_pricing_by_category(self, category: str) -> list[PricingItem]:
        return [to_pricing_item(c) for c in self.repo.get_active(self.db, category)]

    def get_all_pricing(self) -> list[PricingItem]:
        return [to_pricing_item(c) for c in self.repo.get_active(self.db)]

    def get_pricing_by_key(self, item_key: str) -> Optional[PricingItem]:
        config = self.repo.get_active_by_key(self.db, item_key)
        return to_pricing_item(config) if config else None

    def upsert_pricing(self, item: PricingItem) -> PricingItem:
        """Update the row when ``item.id`` is set, otherwise create it"""
        fields = {
            "category": item.category,
            "item_key": item.itemKey,
            "name": item.name,
            "description": item.description,
            "customer_price": item.customerPrice,
            "lead_fee": item.leadFee,
            "min_tv_size": item.minTvSize,
            "max_tv_size": item.maxTvSize,
            "is_active": item.isActive,
        }
        try:
            if item.id:
                config = self.repo.get_by_id(self.db, item.id)
                if not config:
                    raise PricingError("Failed to save pricing configuration")
                config = self.repo.update(self.db, config, **fields)
                logger.info(f"✅ Updated pricing {config.item_key} (id={config.id})")
            else:
                config = self.repo.create(self.db, **fields)
                logger.info(f"✅ Created pricing {config.item_key} (id={config.id})")
            return to_pricing_item(config)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Error upserting pricing: {e}")
            raise PricingError("Failed to save pricing configuration") from e

    def delete_pricing(self, pricing_id: int) -> bool:
        """Soft delete: the row is deactivated, never removed"""
        try:
            config = self.repo.get_by_id(self.db, pricing_id)
            if not config:
                return False
            self.repo.update(self.db, config, is_active=False)
            logger.info(f"🗑️ Deactivated pricing {config.item_key} (id={pricing_id})")
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Error deleting pricing: {e}")
            return False

    def initialize_default_pricing(self) -> bool:
        """Seed the default rate table if it is empty. Returns True when rows were added."""
        try:
            if self.repo.has_any(self.db):
                logger.info("ℹ️ Pricing configuration already initialized")
                return False

            for fields in DEFAULT_PRICING:
                self.db.add(PricingConfig(is_active=True, **fields))
            self.db.commit()
            logger.info(f"✅ Default pricing initialized ({len(DEFAULT_PRICING)} items)")
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Error initializing default pricing: {e}")
            return False
