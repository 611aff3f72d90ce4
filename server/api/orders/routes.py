# 订单相关API路由

import logging
from typing import Dict, Any, Optional
from fastapi import APIRouter, BackgroundTasks, HTTPException, Depends, Query, Path

from .models import DirectOrderRequest, UpdateOrderStatusRequest, OrderLookupView
from api.auth.routes import get_database, get_current_admin
from api.auth.models import TokenData
from api.dependencies import (
    get_business_settings, get_base_url, get_payment_gateway, get_notification_dispatcher
)
from api.schemas import order_to_view
from db.manager import DatabaseManager
from db.query_operations import QueryOperations
from services.checkout_service import CheckoutService
from services.notifications import NotificationDispatcher, NotificationOutbox
from services.payment_gateway import StripeGateway
from services.payment_workflow import OrderStatusManager
from services.settings_provider import BusinessSettings
from utils.exceptions import (
    CheckoutValidationError, InvalidStatusTransition, OrderNotFound, PaymentGatewayError
)
from utils.response import create_success_response, create_pagination_response
from utils.validators import validate_order_status, validate_date

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/orders", tags=["订单"])


@router.post("", response_model=Dict[str, Any])
async def create_direct_order(
    order_request: DirectOrderRequest,
    background_tasks: BackgroundTasks,
    db: DatabaseManager = Depends(get_database),
    settings: BusinessSettings = Depends(get_business_settings),
    gateway: StripeGateway = Depends(get_payment_gateway),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    base_url: str = Depends(get_base_url)
):
    """
    直接下单（不经过在线支付）
    """
    outbox = NotificationOutbox()
    service = CheckoutService(db, gateway, settings, base_url=base_url)

    try:
        order_id = service.place_direct_order(order_request.model_dump(), outbox)
    except CheckoutValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"创建订单失败: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create order")

    background_tasks.add_task(dispatcher.flush, outbox)

    return create_success_response(data={"orderId": order_id}, message="Order placed successfully")


@router.get("", response_model=Dict[str, Any])
async def list_orders(
    status: Optional[str] = Query(None, description="订单状态"),
    date: Optional[str] = Query(None, description="送餐日期 YYYY-MM-DD"),
    page: int = Query(1, ge=1, description="页码"),
    size: int = Query(50, ge=1, le=100, description="每页条数"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    """
    后台订单列表，按创建时间倒序
    """
    if status and not validate_order_status(status):
        raise HTTPException(status_code=400, detail="Invalid status")

    if date and not validate_date(date):
        raise HTTPException(status_code=400, detail="Invalid date")

    orders, total_count = QueryOperations(db).list_orders(
        status=status, scheduled_date=date, page=page, size=size
    )

    return create_pagination_response(
        items=[order_to_view(order) for order in orders],
        total_count=total_count,
        current_page=page,
        per_page=size
    )


@router.get("/lookup", response_model=Dict[str, Any])
async def lookup_order(
    id: Optional[str] = Query(None, description="完整订单号或前缀"),
    db: DatabaseManager = Depends(get_database)
):
    """
    顾客订单跟踪，返回精简信息
    """
    if not id or not id.strip():
        raise HTTPException(status_code=400, detail="Order ID is required")

    order = QueryOperations(db).lookup_order(id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    return create_success_response(data=OrderLookupView.from_order(order).model_dump(by_alias=True))


@router.get("/{order_id}", response_model=Dict[str, Any])
async def get_order(
    order_id: str = Path(..., description="订单ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database)
):
    """
    后台订单详情
    """
    order = QueryOperations(db).get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    return create_success_response(data=order_to_view(order))


@router.put("/{order_id}", response_model=Dict[str, Any])
async def update_order_status(
    update_request: UpdateOrderStatusRequest,
    background_tasks: BackgroundTasks,
    order_id: str = Path(..., description="订单ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database),
    settings: BusinessSettings = Depends(get_business_settings),
    gateway: StripeGateway = Depends(get_payment_gateway),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """
    修改订单状态：确认时扣款（失败则中止），取消时释放预授权
    """
    outbox = NotificationOutbox()
    manager = OrderStatusManager(db, gateway, settings)

    try:
        order = manager.change_status(order_id, update_request.status, outbox)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PaymentGatewayError as e:
        logger.error(f"订单 {order_id} 扣款失败: {str(e)}")
        raise HTTPException(status_code=503 if e.retryable else 502, detail="Failed to capture payment")

    logger.info(f"管理员 {current_admin.email} 将订单 {order_id} 设为 {update_request.status}")

    if len(outbox):
        background_tasks.add_task(dispatcher.flush, outbox)

    return create_success_response(data=order_to_view(order), message="Order updated")


@router.delete("/{order_id}", response_model=Dict[str, Any])
async def cancel_order(
    background_tasks: BackgroundTasks,
    order_id: str = Path(..., description="订单ID"),
    current_admin: TokenData = Depends(get_current_admin),
    db: DatabaseManager = Depends(get_database),
    settings: BusinessSettings = Depends(get_business_settings),
    gateway: StripeGateway = Depends(get_payment_gateway),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """
    软删除：订单转为 cancelled，尝试释放预授权并通知顾客
    """
    outbox = NotificationOutbox()
    manager = OrderStatusManager(db, gateway, settings)

    try:
        order = manager.soft_delete(order_id, outbox)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"管理员 {current_admin.email} 取消了订单 {order_id}")

    if len(outbox):
        background_tasks.add_task(dispatcher.flush, outbox)

    return create_success_response(data={"order": order_to_view(order)}, message="Order cancelled")
