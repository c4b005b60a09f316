"""Service tiers and customer pricing with platform commission included"""

from dataclasses import dataclass
from typing import Iterable, Optional

from ...config import COMMISSION_RATE

# What installers receive per tier (EUR)
BASE_INSTALLER_EARNINGS: dict[str, int] = {
    "table-top-small": 89,
    "table-top-large": 109,
    "bronze": 109,
    "silver": 159,
    "silver-large": 259,
    "gold": 259,
    "gold-large": 359,
}


@dataclass(frozen=True)
class ServiceTier:
    key: str
    name: str
    description: str
    category: str
    min_tv_size: int
    max_tv_size: Optional[int]  # None means no upper bound
    installer_earnings: int
    customer_price: int

    def fits_tv_size(self, tv_size: int) -> bool:
        if self.max_tv_size is None:
            return tv_size >= self.min_tv_size
        return self.min_tv_size <= tv_size <= self.max_tv_size


@dataclass(frozen=True)
class PricingResult:
    base_price: float
    addons_price: float
    installer_earnings: float
    app_fee: float
    total_price: float  # What the customer pays
    fee_percentage: float


def calculate_customer_price(installer_earnings: float) -> int:
    """Customer price such that the commission share is COMMISSION_RATE"""
    return round(installer_earnings / (1 - COMMISSION_RATE))


def _tier(key: str, name: str, description: str, category: str, min_size: int, max_size: Optional[int]) -> ServiceTier:
    earnings = BASE_INSTALLER_EARNINGS[key]
    return ServiceTier(
        key=key,
        name=name,
        description=description,
        category=category,
        min_tv_size=min_size,
        max_tv_size=max_size,
        installer_earnings=earnings,
        customer_price=calculate_customer_price(earnings),
    )


SERVICE_TIERS: dict[str, ServiceTier] = {
    tier.key: tier
    for tier in (
        _tier("table-top-small", "Table Top Installation", "Professional table top setup for smaller TVs", "table-top", 32, 42),
        _tier("table-top-large", "Table Top Installation", "Professional table top setup for larger TVs", "table-top", 43, None),
        _tier("bronze", "Bronze TV Mounting", "Fixed wall mount installation", "bronze", 32, 42),
        _tier("silver", "Silver TV Mounting", "Tilting wall mount with cable management", "silver", 43, 85),
        _tier("silver-large", "Silver TV Mounting", "Tilting wall mount for large TVs", "silver", 86, None),
        _tier("gold", "Gold TV Mounting", "Full motion mount with premium features", "gold", 43, 85),
        _tier("gold-large", "Gold TV Mounting", "Premium large TV full motion installation", "gold", 86, None),
    )
}


def get_service_tiers_for_tv_size(tv_size: int) -> list[ServiceTier]:
    return [tier for tier in SERVICE_TIERS.values() if tier.fits_tv_size(tv_size)]


def sum_addon_prices(addons: Optional[Iterable[dict]]) -> float:
    return float(sum(float(addon.get("price", 0) or 0) for addon in (addons or [])))


def calculate_booking_pricing(service_type: str, addons: Optional[list[dict]] = None) -> PricingResult:
    """
    Price a booking from the installer's side: installer earnings are the tier
    base plus add-ons, and the platform fee is charged on top.

    Raises:
        ValueError: If the service type is unknown
    """
    tier = SERVICE_TIERS.get(service_type)
    if not tier:
        raise ValueError(f"Unknown service type: {service_type}")

    base_price = float(tier.installer_earnings)
    addons_price = sum_addon_prices(addons)
    installer_earnings = base_price + addons_price
    app_fee = installer_earnings * COMMISSION_RATE

    return PricingResult(
        base_price=base_price,
        addons_price=addons_price,
        installer_earnings=installer_earnings,
        app_fee=app_fee,
        total_price=installer_earnings + app_fee,
        fee_percentage=COMMISSION_RATE * 100,
    )
