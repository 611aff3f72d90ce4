# 结算相关API路由

import logging
from typing import Dict, Any, Optional
from fastapi import APIRouter, BackgroundTasks, HTTPException, Depends, Query

from .models import CheckoutRequest, CheckoutResponse, SessionOrderSummary
from api.auth.routes import get_database
from api.dependencies import (
    get_business_settings, get_base_url, get_bypass_code, get_payment_gateway, get_notification_dispatcher
)
from db.manager import DatabaseManager
from services.checkout_service import CheckoutService
from services.notifications import NotificationDispatcher, NotificationOutbox
from services.payment_gateway import StripeGateway
from services.payment_workflow import PaymentReconciler
from services.settings_provider import BusinessSettings
from utils.exceptions import CheckoutValidationError, OrderNotFound
from utils.money import format_cents
from utils.response import create_success_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/checkout", tags=["结算"])


@router.post("", response_model=Dict[str, Any])
async def create_checkout(
    checkout_request: CheckoutRequest,
    background_tasks: BackgroundTasks,
    db: DatabaseManager = Depends(get_database),
    settings: BusinessSettings = Depends(get_business_settings),
    gateway: StripeGateway = Depends(get_payment_gateway),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    base_url: str = Depends(get_base_url),
    bypass_code: str = Depends(get_bypass_code)
):
    """
    结算：创建订单并返回支付跳转地址（或测试通道地址）
    """
    outbox = NotificationOutbox()
    service = CheckoutService(db, gateway, settings, base_url=base_url, bypass_code=bypass_code)

    try:
        result = service.checkout(checkout_request.model_dump(), outbox)
    except CheckoutValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"结算失败: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create checkout session")

    if len(outbox):
        background_tasks.add_task(dispatcher.flush, outbox)

    response_data = CheckoutResponse(
        order_id=result.order_id,
        checkout_url=result.checkout_url,
        bypass_url=result.bypass_url
    )

    return create_success_response(
        data=response_data.model_dump(by_alias=True, exclude_none=True),
        message="Order placed" if result.is_bypass else "Checkout session created"
    )


@router.get("/session", response_model=Dict[str, Any])
async def get_session_order(
    background_tasks: BackgroundTasks,
    session_id: Optional[str] = Query(None, description="支付会话ID"),
    db: DatabaseManager = Depends(get_database),
    settings: BusinessSettings = Depends(get_business_settings),
    gateway: StripeGateway = Depends(get_payment_gateway),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """
    支付成功页查询订单摘要；webhook 未到达时在此完成对账
    """
    if not session_id:
        raise HTTPException(status_code=400, detail="Session ID is required")

    outbox = NotificationOutbox()
    reconciler = PaymentReconciler(db, gateway, settings)

    try:
        order = reconciler.reconcile_session(session_id, outbox)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except Exception as e:
        logger.error(f"查询支付会话订单失败: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch order")

    if len(outbox):
        background_tasks.add_task(dispatcher.flush, outbox)

    summary = SessionOrderSummary(
        id=order['id'],
        customer_name=order['customer_name'],
        customer_email=order['customer_email'],
        scheduled_date=order['scheduled_date'],
        scheduled_time=order['scheduled_time'],
        total=format_cents(order['total_cents']),
        payment_status=order['payment_status']
    )

    return create_success_response(data=summary.model_dump(by_alias=True))
