# 菜单维护API路由

import logging
from typing import Dict, Any, Optional
from fastapi import APIRouter, HTTPException, Depends, Query, Path

from .models import (
    CreateCategoryRequest, UpdateCategoryRequest, CreateItemRequest, UpdateItemRequest,
    MenuCategoryView, MenuItemView
)
from api.auth.routes import get_database, get_current_admin
from api.auth.models import TokenData
from db.manager import DatabaseManager
from db.supporting_operations import SupportingOperations
from utils.money import to_cents
from utils.response import create_success_response
from utils.validators import is_blank, validate_pricing_type

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/menu", tags=["菜单"])


def _price_cents(price) -> int:
    try:
        cents = to_cents(price)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid price")
    if cents < 0:
        raise HTTPException(status_code=400, detail="Invalid price")
    return cents


# ===== 分类 =====

@router.get("/categories", response_model=Dict[str, Any])
async def list_categories(
    active_only: bool = Query(False, alias="activeOnly", description="只返回上架的分类和菜品"),
    db: DatabaseManager = Depends(get_database)
):
    """
    分类列表（含菜品），按显示顺序排列
    """
    categories = SupportingOperations(db).list_categories(include_items=True, active_only=active_only)
    return create_success_response(
        data=[MenuCategoryView.from_row(c).model_dump(by_alias=True) for c in categories]
    )


@router.post("/categories", response_model=Dict[str, Any])
async def create_category(
    category_request: CreateCategoryRequest,
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    if is_blank(category_request.name):
        raise HTTPException(status_code=400, detail="Name is required")

    category = SupportingOperations(db).create_category(category_request.name)
    logger.info(f"管理员 {current_admin.email} 创建分类: {category['name']}")

    return create_success_response(data=MenuCategoryView.from_row(category).model_dump(by_alias=True))


@router.put("/categories/{category_id}", response_model=Dict[str, Any])
async def update_category(
    category_request: UpdateCategoryRequest,
    category_id: str = Path(..., description="分类ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    if not support_ops.get_category(category_id):
        raise HTTPException(status_code=404, detail="Category not found")

    changes = category_request.model_dump(exclude_unset=True)
    if 'name' in changes and is_blank(changes['name']):
        raise HTTPException(status_code=400, detail="Name is required")

    category = support_ops.update_category(category_id, changes)
    return create_success_response(data=MenuCategoryView.from_row(category).model_dump(by_alias=True))


@router.delete("/categories/{category_id}", response_model=Dict[str, Any])
async def delete_category(
    category_id: str = Path(..., description="分类ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    """
    删除分类（其下菜品一并删除）
    """
    if not SupportingOperations(db).delete_category(category_id):
        raise HTTPException(status_code=404, detail="Category not found")

    logger.info(f"管理员 {current_admin.email} 删除分类 {category_id}")
    return create_success_response(data={"deleted": True})


# ===== 菜品 =====

@router.get("/items", response_model=Dict[str, Any])
async def list_items(
    category_id: Optional[str] = Query(None, alias="categoryId"),
    active_only: bool = Query(False, alias="activeOnly"),
    db: DatabaseManager = Depends(get_database)
):
    items = SupportingOperations(db).list_items(category_id=category_id, active_only=active_only)
    return create_success_response(data=[MenuItemView.from_row(i).model_dump(by_alias=True) for i in items])


@router.post("/items", response_model=Dict[str, Any])
async def create_item(
    item_request: CreateItemRequest,
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    if is_blank(item_request.name) or item_request.price is None or is_blank(item_request.category_id):
        raise HTTPException(status_code=400, detail="Name, price, and category are required")

    pricing_type = item_request.pricing_type or 'fixed'
    if not validate_pricing_type(pricing_type):
        raise HTTPException(status_code=400, detail="Invalid pricing type")

    try:
        item = SupportingOperations(db).create_item(
            category_id=item_request.category_id,
            name=item_request.name.strip(),
            price_cents=_price_cents(item_request.price),
            pricing_type=pricing_type,
            description=item_request.description or None,
            serves_count=item_request.serves_count or None,
            image_url=item_request.image_url or None
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"管理员 {current_admin.email} 创建菜品: {item['name']}")
    return create_success_response(data=MenuItemView.from_row(item).model_dump(by_alias=True))


@router.put("/items/{item_id}", response_model=Dict[str, Any])
async def update_item(
    item_request: UpdateItemRequest,
    item_id: str = Path(..., description="菜品ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    if not support_ops.get_item(item_id):
        raise HTTPException(status_code=404, detail="Item not found")

    changes = item_request.model_dump(exclude_unset=True)
    if 'price' in changes:
        price = changes.pop('price')
        if price is None:
            raise HTTPException(status_code=400, detail="Invalid price")
        changes['price_cents'] = _price_cents(price)

    if 'pricing_type' in changes and not validate_pricing_type(changes['pricing_type']):
        raise HTTPException(status_code=400, detail="Invalid pricing type")

    if 'name' in changes and is_blank(changes['name']):
        raise HTTPException(status_code=400, detail="Name is required")

    try:
        item = support_ops.update_item(item_id, changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return create_success_response(data=MenuItemView.from_row(item).model_dump(by_alias=True))


@router.delete("/items/{item_id}", response_model=Dict[str, Any])
async def delete_item(
    item_id: str = Path(..., description="菜品ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    """
    删除菜品；历史订单保留快照
    """
    if not SupportingOperations(db).delete_item(item_id):
        raise HTTPException(status_code=404, detail="Item not found")

    logger.info(f"管理员 {current_admin.email} 删除菜品 {item_id}")
    return create_success_response(data={"deleted": True})
