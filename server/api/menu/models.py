# 菜单相关的数据模型

from decimal import Decimal
from typing import List, Optional, Dict, Any

from api.schemas import CamelModel
from utils.money import format_cents


class CreateCategoryRequest(CamelModel):
    name: Optional[str] = None


class UpdateCategoryRequest(CamelModel):
    name: Optional[str] = None
    active: Optional[bool] = None
    display_order: Optional[int] = None


class CreateItemRequest(CamelModel):
    category_id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    pricing_type: Optional[str] = "fixed"
    serves_count: Optional[int] = None
    image_url: Optional[str] = None


class UpdateItemRequest(CamelModel):
    category_id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    pricing_type: Optional[str] = None
    serves_count: Optional[int] = None
    image_url: Optional[str] = None
    active: Optional[bool] = None
    display_order: Optional[int] = None


class MenuItemView(CamelModel):
    id: str
    category_id: str
    name: str
    description: Optional[str] = None
    price: str
    pricing_type: str
    serves_count: Optional[int] = None
    image_url: Optional[str] = None
    active: bool
    display_order: int

    @classmethod
    def from_row(cls, item: Dict[str, Any]) -> "MenuItemView":
        return cls(
            id=item['id'],
            category_id=item['category_id'],
            name=item['name'],
            description=item.get('description'),
            price=format_cents(item['price_cents']),
            pricing_type=item['pricing_type'],
            serves_count=item.get('serves_count'),
            image_url=item.get('image_url'),
            active=item['active'],
            display_order=item['display_order']
        )


class MenuCategoryView(CamelModel):
    id: str
    name: str
    display_order: int
    active: bool
    items: Optional[List[MenuItemView]] = None

    @classmethod
    def from_row(cls, category: Dict[str, Any]) -> "MenuCategoryView":
        items = category.get('items')
        return cls(
            id=category['id'],
            name=category['name'],
            display_order=category['display_order'],
            active=category['active'],
            items=[MenuItemView.from_row(item) for item in items] if items is not None else None
        )
