# 套餐相关的数据模型

from decimal import Decimal
from typing import List, Optional, Dict, Any

from api.schemas import CamelModel
from utils.money import format_cents


class CreatePackageRequest(CamelModel):
    name: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    badge: Optional[str] = None
    min_guests: Optional[int] = None


class UpdatePackageRequest(CamelModel):
    name: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    badge: Optional[str] = None
    min_guests: Optional[int] = None
    active: Optional[bool] = None
    display_order: Optional[int] = None


class TierRequest(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    select_count: Optional[int] = None
    price: Optional[Decimal] = None
    active: Optional[bool] = None
    display_order: Optional[int] = None


class UpgradeRequest(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price_per_person: Optional[Decimal] = None
    active: Optional[bool] = None
    display_order: Optional[int] = None


class PackageCategoryRequest(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    active: Optional[bool] = None
    display_order: Optional[int] = None


class CategoryItemRequest(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    active: Optional[bool] = None
    display_order: Optional[int] = None


class PackageItemRequest(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[Decimal] = None
    tier_prices: Optional[Dict[str, Decimal]] = None
    badge: Optional[str] = None
    active: Optional[bool] = None
    display_order: Optional[int] = None


class TierView(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    select_count: Optional[int] = None
    price: str
    active: bool
    display_order: int

    @classmethod
    def from_row(cls, tier: Dict[str, Any]) -> "TierView":
        return cls(
            id=tier['id'],
            name=tier['name'],
            description=tier.get('description'),
            select_count=tier.get('select_count'),
            price=format_cents(tier['price_cents']),
            active=tier['active'],
            display_order=tier['display_order']
        )


class UpgradeView(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    price_per_person: str
    active: bool
    display_order: int

    @classmethod
    def from_row(cls, upgrade: Dict[str, Any]) -> "UpgradeView":
        return cls(
            id=upgrade['id'],
            name=upgrade['name'],
            description=upgrade.get('description'),
            price_per_person=format_cents(upgrade['price_per_person_cents']),
            active=upgrade['active'],
            display_order=upgrade['display_order']
        )


class CategoryItemView(CamelModel):
    id: str
    category_id: str
    name: str
    description: Optional[str] = None
    active: bool
    display_order: int

    @classmethod
    def from_row(cls, item: Dict[str, Any]) -> "CategoryItemView":
        return cls(
            id=item['id'],
            category_id=item['category_id'],
            name=item['name'],
            description=item.get('description'),
            active=item['active'],
            display_order=item['display_order']
        )


class PackageCategoryView(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    active: bool
    display_order: int
    items: Optional[List[CategoryItemView]] = None

    @classmethod
    def from_row(cls, category: Dict[str, Any]) -> "PackageCategoryView":
        items = category.get('items')
        return cls(
            id=category['id'],
            name=category['name'],
            description=category.get('description'),
            image_url=category.get('image_url'),
            active=category['active'],
            display_order=category['display_order'],
            items=[CategoryItemView.from_row(i) for i in items] if items is not None else None
        )


class PackageItemView(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[str] = None
    tier_prices: Optional[Dict[str, str]] = None
    badge: Optional[str] = None
    active: bool
    display_order: int

    @classmethod
    def from_row(cls, item: Dict[str, Any]) -> "PackageItemView":
        price_cents = item.get('price_cents')
        tier_prices = item.get('tier_prices')
        return cls(
            id=item['id'],
            name=item['name'],
            description=item.get('description'),
            image_url=item.get('image_url'),
            price=format_cents(price_cents) if price_cents is not None else None,
            tier_prices={k: format_cents(v) for k, v in tier_prices.items()} if tier_prices is not None else None,
            badge=item.get('badge'),
            active=item['active'],
            display_order=item['display_order']
        )


class PackageView(CamelModel):
    id: str
    name: str
    type: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    badge: Optional[str] = None
    min_guests: Optional[int] = None
    active: bool
    display_order: int
    tiers: List[TierView] = []
    upgrades: List[UpgradeView] = []
    categories: List[PackageCategoryView] = []
    items: List[PackageItemView] = []

    @classmethod
    def from_row(cls, package: Dict[str, Any]) -> "PackageView":
        return cls(
            id=package['id'],
            name=package['name'],
            type=package['type'],
            description=package.get('description'),
            image_url=package.get('image_url'),
            badge=package.get('badge'),
            min_guests=package.get('min_guests'),
            active=package['active'],
            display_order=package['display_order'],
            tiers=[TierView.from_row(t) for t in package.get('tiers', [])],
            upgrades=[UpgradeView.from_row(u) for u in package.get('upgrades', [])],
            categories=[PackageCategoryView.from_row(c) for c in package.get('categories', [])],
            items=[PackageItemView.from_row(i) for i in package.get('items', [])]
        )
