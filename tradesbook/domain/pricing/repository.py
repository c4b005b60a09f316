"""Pricing repository - Database operations for the managed rate table"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import PricingConfig


class PricingRepository:
    """Repository for pricing configuration database operations"""

    @staticmethod
    def get_active(db: Session, category: Optional[str] = None) -> list[PricingConfig]:
        query = db.query(PricingConfig).filter(PricingConfig.is_active.is_(True))
        if category:
            query = query.filter(PricingConfig.category == category)
        return query.order_by(PricingConfig.category, PricingConfig.customer_price).all()

    @staticmethod
    def get_active_by_key(db: Session, item_key: str) -> Optional[PricingConfig]:
        return (
            db.query(PricingConfig)
            .filter(PricingConfig.item_key == item_key, PricingConfig.is_active.is_(True))
            .first()
        )

    @staticmethod
    def get_by_id(db: Session, pricing_id: int) -> Optional[PricingConfig]:
        return db.query(PricingConfig).filter(PricingConfig.id == pricing_id).first()

    @staticmethod
    def has_any(db: Session) -> bool:
        return db.query(PricingConfig.id).first() is not None

    @staticmethod
    def create(db: Session, **fields) -> PricingConfig:
        config = PricingConfig(**fields)
        db.add(config)
        db.commit()
        db.refresh(config)
        return config

    @staticmethod
    def update(db: Session, config: PricingConfig, **fields) -> PricingConfig:
        for key, value in fields.items():
            setattr(config, key, value)
        db.commit()
        db.refresh(config)
        return config
