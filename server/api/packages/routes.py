# 套餐维护API路由

import logging
from typing import Dict, Any, Optional
from fastapi import APIRouter, HTTPException, Depends, Query, Path

from .models import (
    CreatePackageRequest, UpdatePackageRequest, TierRequest, UpgradeRequest,
    PackageCategoryRequest, CategoryItemRequest, PackageItemRequest,
    PackageView, TierView, UpgradeView, PackageCategoryView, CategoryItemView, PackageItemView
)
from api.auth.routes import get_database, get_current_admin
from api.auth.models import TokenData
from db.manager import DatabaseManager
from db.supporting_operations import SupportingOperations, PACKAGE_CHILDREN
from utils.money import to_cents
from utils.response import create_success_response
from utils.validators import is_blank, validate_package_type

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/packages", tags=["套餐"])


def _price_cents(price) -> int:
    try:
        cents = to_cents(price)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid price")
    if cents < 0:
        raise HTTPException(status_code=400, detail="Invalid price")
    return cents


def _tier_prices_cents(tier_prices: Optional[Dict[str, Any]]) -> Optional[Dict[str, int]]:
    if tier_prices is None:
        return None
    return {tier_id: _price_cents(price) for tier_id, price in tier_prices.items()}


def _package_or_404(support_ops: SupportingOperations, package_id: str) -> Dict[str, Any]:
    package = support_ops.get_package(package_id, include_children=False)
    if not package:
        raise HTTPException(status_code=404, detail="Package not found")
    return package


def _owned_child(support_ops: SupportingOperations, table: str, child_id: str,
                 parent_id: str, detail: str) -> Dict[str, Any]:
    """取下属记录并确认它挂在路径中的父记录下"""
    _, parent_column, _ = PACKAGE_CHILDREN[table]
    child = support_ops.get_package_child(table, child_id)
    if child is None or child[parent_column] != parent_id:
        raise HTTPException(status_code=404, detail=detail)
    return child


def _checked_changes(request, required_price: Optional[str] = None) -> Dict[str, Any]:
    """
    取出请求中显式给出的字段，校验名称并把金额换算成分

    Args:
        request: 更新请求
        required_price: 不允许置空的金额字段
    """
    changes = request.model_dump(exclude_unset=True)
    if 'name' in changes and is_blank(changes['name']):
        raise HTTPException(status_code=400, detail="Name is required")

    if required_price and required_price in changes and changes[required_price] is None:
        raise HTTPException(status_code=400, detail="Invalid price")

    if 'price' in changes:
        price = changes.pop('price')
        changes['price_cents'] = _price_cents(price) if price is not None else None
    if 'price_per_person' in changes:
        price = changes.pop('price_per_person')
        changes['price_per_person_cents'] = _price_cents(price)
    if 'tier_prices' in changes:
        changes['tier_prices'] = _tier_prices_cents(changes['tier_prices'])
    return changes


def _view(view_cls, row: Dict[str, Any]) -> Dict[str, Any]:
    return view_cls.from_row(row).model_dump(by_alias=True)


# ===== 套餐 =====

@router.get("", response_model=Dict[str, Any])
async def list_packages(
    active_only: bool = Query(False, alias="activeOnly", description="只返回上架的套餐及其内容"),
    db: DatabaseManager = Depends(get_database)
):
    """
    套餐列表，附带档位、分类、单品和加购项
    """
    packages = SupportingOperations(db).list_packages(active_only=active_only)
    return create_success_response(data=[_view(PackageView, p) for p in packages])


@router.get("/{package_id}", response_model=Dict[str, Any])
async def get_package(
    package_id: str = Path(..., description="套餐ID"),
    db: DatabaseManager = Depends(get_database)
):
    package = SupportingOperations(db).get_package(package_id)
    if not package:
        raise HTTPException(status_code=404, detail="Package not found")
    return create_success_response(data=_view(PackageView, package))


@router.post("", response_model=Dict[str, Any])
async def create_package(
    package_request: CreatePackageRequest,
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    if is_blank(package_request.name) or is_blank(package_request.type):
        raise HTTPException(status_code=400, detail="Name and type are required")
    if not validate_package_type(package_request.type):
        raise HTTPException(status_code=400, detail="Invalid package type")

    package = SupportingOperations(db).create_package(
        name=package_request.name.strip(),
        package_type=package_request.type,
        description=package_request.description or None,
        image_url=package_request.image_url or None,
        badge=package_request.badge or None,
        min_guests=package_request.min_guests or None
    )
    logger.info(f"管理员 {current_admin.email} 创建套餐: {package['name']}")

    return create_success_response(data=_view(PackageView, package))


@router.put("/{package_id}", response_model=Dict[str, Any])
async def update_package(
    package_request: UpdatePackageRequest,
    package_id: str = Path(..., description="套餐ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    _package_or_404(support_ops, package_id)

    changes = _checked_changes(package_request)
    if 'type' in changes and not validate_package_type(changes['type']):
        raise HTTPException(status_code=400, detail="Invalid package type")

    package = support_ops.update_package(package_id, changes)
    return create_success_response(data=_view(PackageView, package))


@router.delete("/{package_id}", response_model=Dict[str, Any])
async def delete_package(
    package_id: str = Path(..., description="套餐ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    """
    删除套餐（档位、分类、单品和加购项一并删除）
    """
    if not SupportingOperations(db).delete_package(package_id):
        raise HTTPException(status_code=404, detail="Package not found")

    logger.info(f"管理员 {current_admin.email} 删除套餐 {package_id}")
    return create_success_response(data={"deleted": True})


# ===== 档位 =====

@router.post("/{package_id}/tiers", response_model=Dict[str, Any])
async def create_tier(
    tier_request: TierRequest,
    package_id: str = Path(..., description="套餐ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    _package_or_404(support_ops, package_id)

    if is_blank(tier_request.name) or tier_request.price is None:
        raise HTTPException(status_code=400, detail="Name and price are required")

    tier = support_ops.create_package_child('package_tiers', package_id, _checked_changes(tier_request))
    logger.info(f"管理员 {current_admin.email} 为套餐 {package_id} 新增档位: {tier['name']}")
    return create_success_response(data=_view(TierView, tier))


@router.put("/{package_id}/tiers/{tier_id}", response_model=Dict[str, Any])
async def update_tier(
    tier_request: TierRequest,
    package_id: str = Path(..., description="套餐ID"),
    tier_id: str = Path(..., description="档位ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    _owned_child(support_ops, 'package_tiers', tier_id, package_id, "Tier not found")

    tier = support_ops.update_package_child(
        'package_tiers', tier_id, _checked_changes(tier_request, required_price='price')
    )
    return create_success_response(data=_view(TierView, tier))


@router.delete("/{package_id}/tiers/{tier_id}", response_model=Dict[str, Any])
async def delete_tier(
    package_id: str = Path(..., description="套餐ID"),
    tier_id: str = Path(..., description="档位ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    _owned_child(support_ops, 'package_tiers', tier_id, package_id, "Tier not found")
    support_ops.delete_package_child('package_tiers', tier_id)

    logger.info(f"管理员 {current_admin.email} 删除档位 {tier_id}")
    return create_success_response(data={"deleted": True})


# ===== 加购项 =====

@router.post("/{package_id}/upgrades", response_model=Dict[str, Any])
async def create_upgrade(
    upgrade_request: UpgradeRequest,
    package_id: str = Path(..., description="套餐ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    _package_or_404(support_ops, package_id)

    if is_blank(upgrade_request.name):
        raise HTTPException(status_code=400, detail="Name is required")
    if upgrade_request.price_per_person is None:
        raise HTTPException(status_code=400, detail="Price is required")

    upgrade = support_ops.create_package_child(
        'package_upgrades', package_id, _checked_changes(upgrade_request)
    )
    logger.info(f"管理员 {current_admin.email} 为套餐 {package_id} 新增加购项: {upgrade['name']}")
    return create_success_response(data=_view(UpgradeView, upgrade))


@router.put("/{package_id}/upgrades/{upgrade_id}", response_model=Dict[str, Any])
async def update_upgrade(
    upgrade_request: UpgradeRequest,
    package_id: str = Path(..., description="套餐ID"),
    upgrade_id: str = Path(..., description="加购项ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    _owned_child(support_ops, 'package_upgrades', upgrade_id, package_id, "Upgrade not found")

    upgrade = support_ops.update_package_child(
        'package_upgrades', upgrade_id, _checked_changes(upgrade_request, required_price='price_per_person')
    )
    return create_success_response(data=_view(UpgradeView, upgrade))


@router.delete("/{package_id}/upgrades/{upgrade_id}", response_model=Dict[str, Any])
async def delete_upgrade(
    package_id: str = Path(..., description="套餐ID"),
    upgrade_id: str = Path(..., description="加购项ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    _owned_child(support_ops, 'package_upgrades', upgrade_id, package_id, "Upgrade not found")
    support_ops.delete_package_child('package_upgrades', upgrade_id)

    logger.info(f"管理员 {current_admin.email} 删除加购项 {upgrade_id}")
    return create_success_response(data={"deleted": True})


# ===== 分类及其可选项 =====

@router.post("/{package_id}/categories", response_model=Dict[str, Any])
async def create_package_category(
    category_request: PackageCategoryRequest,
    package_id: str = Path(..., description="套餐ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    _package_or_404(support_ops, package_id)

    if is_blank(category_request.name):
        raise HTTPException(status_code=400, detail="Name is required")

    category = support_ops.create_package_child(
        'package_categories', package_id, _checked_changes(category_request)
    )
    return create_success_response(data=_view(PackageCategoryView, category))


@router.put("/{package_id}/categories/{category_id}", response_model=Dict[str, Any])
async def update_package_category(
    category_request: PackageCategoryRequest,
    package_id: str = Path(..., description="套餐ID"),
    category_id: str = Path(..., description="分类ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    _owned_child(support_ops, 'package_categories', category_id, package_id, "Category not found")

    category = support_ops.update_package_child(
        'package_categories', category_id, _checked_changes(category_request)
    )
    return create_success_response(data=_view(PackageCategoryView, category))


@router.delete("/{package_id}/categories/{category_id}", response_model=Dict[str, Any])
async def delete_package_category(
    package_id: str = Path(..., description="套餐ID"),
    category_id: str = Path(..., description="分类ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    """
    删除分类（其下可选项一并删除）
    """
    support_ops = SupportingOperations(db)
    _owned_child(support_ops, 'package_categories', category_id, package_id, "Category not found")
    support_ops.delete_package_child('package_categories', category_id)

    logger.info(f"管理员 {current_admin.email} 删除套餐分类 {category_id}")
    return create_success_response(data={"deleted": True})


@router.post("/{package_id}/categories/{category_id}/items", response_model=Dict[str, Any])
async def create_category_item(
    item_request: CategoryItemRequest,
    package_id: str = Path(..., description="套餐ID"),
    category_id: str = Path(..., description="分类ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    _owned_child(support_ops, 'package_categories', category_id, package_id, "Category not found")

    if is_blank(item_request.name):
        raise HTTPException(status_code=400, detail="Name is required")

    item = support_ops.create_package_child(
        'package_category_items', category_id, _checked_changes(item_request)
    )
    return create_success_response(data=_view(CategoryItemView, item))


@router.put("/{package_id}/categories/{category_id}/items/{item_id}", response_model=Dict[str, Any])
async def update_category_item(
    item_request: CategoryItemRequest,
    package_id: str = Path(..., description="套餐ID"),
    category_id: str = Path(..., description="分类ID"),
    item_id: str = Path(..., description="可选项ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    _owned_child(support_ops, 'package_categories', category_id, package_id, "Category not found")
    _owned_child(support_ops, 'package_category_items', item_id, category_id, "Item not found")

    item = support_ops.update_package_child(
        'package_category_items', item_id, _checked_changes(item_request)
    )
    return create_success_response(data=_view(CategoryItemView, item))


@router.delete("/{package_id}/categories/{category_id}/items/{item_id}", response_model=Dict[str, Any])
async def delete_category_item(
    package_id: str = Path(..., description="套餐ID"),
    category_id: str = Path(..., description="分类ID"),
    item_id: str = Path(..., description="可选项ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    _owned_child(support_ops, 'package_categories', category_id, package_id, "Category not found")
    _owned_child(support_ops, 'package_category_items', item_id, category_id, "Item not found")
    support_ops.delete_package_child('package_category_items', item_id)

    return create_success_response(data={"deleted": True})


# ===== 单品 =====

@router.post("/{package_id}/items", response_model=Dict[str, Any])
async def create_package_item(
    item_request: PackageItemRequest,
    package_id: str = Path(..., description="套餐ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    """
    新增单品；可给统一价，也可按档位分别定价
    """
    support_ops = SupportingOperations(db)
    _package_or_404(support_ops, package_id)

    if is_blank(item_request.name):
        raise HTTPException(status_code=400, detail="Name is required")

    item = support_ops.create_package_child('package_items', package_id, _checked_changes(item_request))
    logger.info(f"管理员 {current_admin.email} 为套餐 {package_id} 新增单品: {item['name']}")
    return create_success_response(data=_view(PackageItemView, item))


@router.put("/{package_id}/items/{item_id}", response_model=Dict[str, Any])
async def update_package_item(
    item_request: PackageItemRequest,
    package_id: str = Path(..., description="套餐ID"),
    item_id: str = Path(..., description="单品ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    _owned_child(support_ops, 'package_items', item_id, package_id, "Item not found")

    item = support_ops.update_package_child('package_items', item_id, _checked_changes(item_request))
    return create_success_response(data=_view(PackageItemView, item))


@router.delete("/{package_id}/items/{item_id}", response_model=Dict[str, Any])
async def delete_package_item(
    package_id: str = Path(..., description="套餐ID"),
    item_id: str = Path(..., description="单品ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    support_ops = SupportingOperations(db)
    _owned_child(support_ops, 'package_items', item_id, package_id, "Item not found")
    support_ops.delete_package_child('package_items', item_id)

    logger.info(f"管理员 {current_admin.email} 删除套餐单品 {item_id}")
    return create_success_response(data={"deleted": True})
