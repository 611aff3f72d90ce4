# 业务设置API路由

import logging
from typing import Dict, Any
from fastapi import APIRouter, HTTPException, Depends, Body

from api.auth.routes import get_database, get_current_admin
from api.auth.models import TokenData
from db.manager import DatabaseManager
from db.supporting_operations import SupportingOperations
from utils.money import to_cents
from utils.response import create_success_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/settings", tags=["设置"])

# 需要是合法金额的设置项
MONEY_KEYS = ('delivery_fee', 'min_order_amount')


@router.get("", response_model=Dict[str, Any])
async def get_settings(db: DatabaseManager = Depends(get_database)):
    """
    读取全部设置项（键值对）
    """
    return create_success_response(data=SupportingOperations(db).get_settings())


@router.put("", response_model=Dict[str, Any])
async def update_settings(
    values: Dict[str, Any] = Body(...),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    """
    批量更新设置项，只接受字符串值，其他类型忽略
    """
    updates = {key: value for key, value in values.items() if isinstance(value, str)}

    for key in MONEY_KEYS:
        if key in updates:
            try:
                to_cents(updates[key])
            except ValueError:
                raise HTTPException(status_code=400, detail=f"Invalid amount for {key}")

    support_ops = SupportingOperations(db)
    if updates:
        support_ops.upsert_settings(updates)
        logger.info(f"管理员 {current_admin.email} 更新设置: {sorted(updates)}")

    return create_success_response(data=support_ops.get_settings(), message="Settings updated")
