# 支付网关 webhook 路由

import logging
from typing import Dict, Any, Optional
from fastapi import APIRouter, BackgroundTasks, HTTPException, Depends, Header, Request

from api.auth.routes import get_database
from api.dependencies import get_business_settings, get_payment_gateway, get_notification_dispatcher
from db.manager import DatabaseManager
from services.notifications import NotificationDispatcher, NotificationOutbox
from services.payment_gateway import StripeGateway
from services.payment_workflow import PaymentReconciler
from services.settings_provider import BusinessSettings
from utils.exceptions import PaymentGatewayNotConfigured, WebhookSignatureError
from utils.response import create_success_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/webhooks", tags=["回调"])


@router.post("/stripe", response_model=Dict[str, Any])
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: DatabaseManager = Depends(get_database),
    settings: BusinessSettings = Depends(get_business_settings),
    gateway: StripeGateway = Depends(get_payment_gateway),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """
    接收 Stripe 事件：先校验签名再解析，签名通过后无法关联订单的事件也返回成功
    """
    payload = await request.body()

    if not stripe_signature:
        logger.error("webhook 请求缺少签名")
        raise HTTPException(status_code=400, detail="Missing signature")

    try:
        event = gateway.verify_webhook(payload, stripe_signature)
    except PaymentGatewayNotConfigured:
        logger.error("未配置 STRIPE_WEBHOOK_SECRET")
        raise HTTPException(status_code=500, detail="Webhook not configured")
    except WebhookSignatureError as e:
        logger.error(f"webhook 签名校验失败: {str(e)}")
        raise HTTPException(status_code=400, detail="Invalid signature")

    outbox = NotificationOutbox()
    reconciler = PaymentReconciler(db, gateway, settings)

    try:
        outcome = reconciler.handle_event(event, outbox)
    except Exception as e:
        logger.error(f"webhook 处理失败: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Webhook handler failed")

    logger.info(f"webhook 事件 {event.get('id')} 处理结果: {outcome}")

    if len(outbox):
        background_tasks.add_task(dispatcher.flush, outbox)

    return create_success_response(data={"received": True})
