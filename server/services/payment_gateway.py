# 支付网关适配层（Stripe Checkout，预授权 + 延迟扣款）

import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Dict, Any, Union

import stripe

from utils.config import Config
from utils.exceptions import PaymentGatewayError, PaymentGatewayNotConfigured, WebhookSignatureError

logger = logging.getLogger(__name__)

DELIVERY_FEE_LINE_NAME = "Delivery Fee"


@dataclass(frozen=True)
class GatewayLineItem:
    """发给支付网关的一行商品，金额单位为分"""
    name: str
    unit_amount_cents: int
    quantity: int
    description: Optional[str] = None


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    redirect_url: str


@dataclass(frozen=True)
class SessionStatus:
    """
    支付会话的当前状态（轮询兜底使用）

    status: open / complete / expired
    payment_status: paid / unpaid / no_payment_required
    """
    session_id: str
    status: Optional[str]
    payment_status: Optional[str]
    payment_intent_id: Optional[str]
    order_id: Optional[str]

    @property
    def is_completed(self) -> bool:
        return self.status == 'complete' or self.payment_status == 'paid'

    @property
    def is_expired(self) -> bool:
        return self.status == 'expired'


def extract_object_id(value: Any) -> Optional[str]:
    """payment_intent 字段可能是ID字符串，也可能是展开后的对象"""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, dict):
        return value.get('id')
    return getattr(value, 'id', None)


def _metadata(obj: Any) -> Dict[str, Any]:
    metadata = getattr(obj, 'metadata', None)
    if metadata is None:
        return {}
    if hasattr(metadata, 'to_dict'):
        return metadata.to_dict()
    return dict(metadata)


class StripeGateway:
    """
    Stripe 支付网关

    所有网络调用都带超时；密钥缺失时对象依然可以构造，
    但任何调用都会抛出 PaymentGatewayNotConfigured。
    """

    def __init__(self, secret_key: str, webhook_secret: str = "", currency: str = "cad",
                 automatic_tax: bool = True, session_expiry_minutes: int = 30,
                 request_timeout: float = 10.0, webhook_tolerance: int = 300):
        self.secret_key = secret_key or ""
        self.webhook_secret = webhook_secret or ""
        self.currency = currency
        self.automatic_tax = automatic_tax
        self.session_expiry_minutes = session_expiry_minutes
        self.request_timeout = request_timeout
        self.webhook_tolerance = webhook_tolerance

    @classmethod
    def from_config(cls, config: Config) -> "StripeGateway":
        return cls(
            secret_key=config.get('payment.stripe_secret_key', ''),
            webhook_secret=config.get('payment.stripe_webhook_secret', ''),
            currency=config.get('payment.currency', 'cad'),
            automatic_tax=bool(config.get('payment.automatic_tax', True)),
            session_expiry_minutes=int(config.get('payment.session_expiry_minutes', 30)),
            request_timeout=float(config.get('payment.request_timeout_seconds', 10)),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key)

    def _require_key(self):
        if not self.secret_key:
            raise PaymentGatewayNotConfigured("Payment gateway is not configured")

    def _price_line(self, item: GatewayLineItem) -> Dict[str, Any]:
        product_data = {'name': item.name}
        if item.description:
            product_data['description'] = item.description

        return {
            'price_data': {
                'currency': self.currency,
                'product_data': product_data,
                'unit_amount': item.unit_amount_cents,
            },
            'quantity': item.quantity,
        }

    def build_line_items(self, line_items: List[GatewayLineItem], delivery_fee_cents: int = 0) -> List[Dict[str, Any]]:
        """
        转换为 Stripe line_items；配送费大于0时追加一行 "Delivery Fee"
        """
        lines = [self._price_line(item) for item in line_items]
        if delivery_fee_cents > 0:
            lines.append(self._price_line(GatewayLineItem(DELIVERY_FEE_LINE_NAME, delivery_fee_cents, 1)))
        return lines

    def create_checkout_session(self, line_items: List[GatewayLineItem], customer_email: str, order_id: str,
                                success_url: str, cancel_url: str, delivery_fee_cents: int = 0) -> CheckoutSession:
        """
        创建托管支付会话（只授权不扣款）

        Args:
            line_items: 订单明细
            customer_email: 顾客邮箱
            order_id: 订单ID，写入会话和支付意图的 metadata.orderId
            success_url: 支付成功跳转地址
            cancel_url: 取消支付跳转地址
            delivery_fee_cents: 配送费（分）

        Returns:
            CheckoutSession

        Raises:
            PaymentGatewayError: 网关调用失败
        """
        self._require_key()

        params = {
            'mode': 'payment',
            'payment_method_types': ['card'],
            'customer_email': customer_email,
            'line_items': self.build_line_items(line_items, delivery_fee_cents),
            'payment_intent_data': {
                'capture_method': 'manual',
                'metadata': {'orderId': order_id},
            },
            'metadata': {'orderId': order_id},
            'automatic_tax': {'enabled': self.automatic_tax},
            'success_url': success_url,
            'cancel_url': cancel_url,
            'expires_at': int(time.time()) + self.session_expiry_minutes * 60,
        }

        try:
            session = stripe.checkout.Session.create(
                api_key=self.secret_key,
                idempotency_key=f"checkout_{order_id}",
                **params
            )
        except stripe.APIConnectionError as e:
            raise PaymentGatewayError(f"Payment gateway unreachable: {e}", retryable=True) from e
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Failed to create checkout session: {e}") from e

        logger.info(f"订单 {order_id} 已创建支付会话 {session.id}")
        return CheckoutSession(session_id=session.id, redirect_url=session.url)

    def capture_payment(self, payment_intent_id: str):
        """
        扣款：把预授权转为实际收款

        Raises:
            PaymentGatewayError: 扣款失败；网络超时时 retryable=True
        """
        self._require_key()

        try:
            stripe.PaymentIntent.capture(payment_intent_id, api_key=self.secret_key)
        except stripe.APIConnectionError as e:
            raise PaymentGatewayError(f"Capture timed out for {payment_intent_id}: {e}", retryable=True) from e
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Capture failed for {payment_intent_id}: {e}") from e

        logger.info(f"支付意图 {payment_intent_id} 扣款成功")

    def cancel_payment(self, payment_intent_id: str):
        """
        释放预授权

        Raises:
            PaymentGatewayError: 释放失败（调用方按非致命错误处理）
        """
        self._require_key()

        try:
            stripe.PaymentIntent.cancel(payment_intent_id, api_key=self.secret_key)
        except stripe.APIConnectionError as e:
            raise PaymentGatewayError(f"Release timed out for {payment_intent_id}: {e}", retryable=True) from e
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Release failed for {payment_intent_id}: {e}") from e

        logger.info(f"支付意图 {payment_intent_id} 预授权已释放")

    def retrieve_session(self, session_id: str) -> SessionStatus:
        self._require_key()

        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.secret_key)
        except stripe.APIConnectionError as e:
            raise PaymentGatewayError(f"Payment gateway unreachable: {e}", retryable=True) from e
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Failed to retrieve session {session_id}: {e}") from e

        return SessionStatus(
            session_id=session.id,
            status=getattr(session, 'status', None),
            payment_status=getattr(session, 'payment_status', None),
            payment_intent_id=extract_object_id(getattr(session, 'payment_intent', None)),
            order_id=_metadata(session).get('orderId'),
        )

    def verify_webhook(self, payload: Union[bytes, str], signature: str) -> Dict[str, Any]:
        """
        校验 Stripe-Signature 并构造事件

        Raises:
            PaymentGatewayNotConfigured: 未配置 webhook 密钥
            WebhookSignatureError: 签名无效或载荷无法解析（含非UTF-8字节）
        """
        if not self.webhook_secret:
            raise PaymentGatewayNotConfigured("Webhook not configured")

        try:
            event = stripe.Webhook.construct_event(
                payload, signature, self.webhook_secret, tolerance=self.webhook_tolerance
            )
        except ValueError as e:
            raise WebhookSignatureError(f"Invalid payload: {e}") from e
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(f"Invalid signature: {e}") from e

        return event.to_dict()


@lru_cache()
def get_payment_gateway() -> StripeGateway:
    """FastAPI 依赖：进程内共享的网关实例，同时设置带超时的 HTTP 客户端"""
    gateway = StripeGateway.from_config(Config())
    stripe.default_http_client = stripe.RequestsClient(timeout=gateway.request_timeout)
    return gateway
