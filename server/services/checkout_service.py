# 结算编排：校验购物车、服务端重算金额、落库、创建支付会话或走测试通道

import hmac
import logging
from dataclasses import dataclass
from typing import List, Optional, Dict, Any

from db.manager import DatabaseManager
from db.core_operations import CoreOperations
from db.query_operations import QueryOperations
from utils.exceptions import CheckoutValidationError
from utils.money import to_cents
from utils.validators import is_blank, validate_date, validate_pricing_type, validate_positive_integer
from .email_templates import build_order_email_data
from .notifications import NotificationOutbox
from .payment_gateway import StripeGateway, GatewayLineItem
from .settings_provider import BusinessSettings

logger = logging.getLogger(__name__)

FULFILLMENT_TYPES = ('delivery', 'pickup')


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    checkout_url: Optional[str] = None
    bypass_url: Optional[str] = None

    @property
    def is_bypass(self) -> bool:
        return self.bypass_url is not None


def calculate_line_total(price_cents: int, quantity: int, pricing_type: str,
                         guest_count: Optional[int] = None) -> int:
    """
    单行金额 = 单价 × 数量 × (按人头计价时的人数，缺省为1)
    """
    multiplier = (guest_count or 1) if pricing_type == 'per_person' else 1
    return price_cents * quantity * multiplier


def _price_lines(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    校验每行明细并计算行金额

    Raises:
        CheckoutValidationError: 明细数据不合法
    """
    lines = []
    for item in items:
        if is_blank(item.get('item_name')):
            raise CheckoutValidationError("Item name is required")

        pricing_type = item.get('pricing_type') or 'fixed'
        if not validate_pricing_type(pricing_type):
            raise CheckoutValidationError("Invalid pricing type")

        quantity = item.get('quantity')
        if not validate_positive_integer(quantity):
            raise CheckoutValidationError("Invalid item quantity")
        quantity = int(quantity)

        guest_count = item.get('guest_count')
        if guest_count is not None:
            if not validate_positive_integer(guest_count):
                raise CheckoutValidationError("Invalid guest count")
            guest_count = int(guest_count)

        try:
            price_cents = to_cents(item.get('item_price'))
        except ValueError:
            raise CheckoutValidationError("Invalid item price")
        if price_cents < 0:
            raise CheckoutValidationError("Invalid item price")

        lines.append({
            'menu_item_id': item.get('menu_item_id') or None,
            'item_name': item['item_name'].strip(),
            'item_price_cents': price_cents,
            'pricing_type': pricing_type,
            'quantity': quantity,
            'guest_count': guest_count,
            'line_total_cents': calculate_line_total(price_cents, quantity, pricing_type, guest_count),
            'notes': item.get('notes') or None,
        })

    return lines


def _parse_delivery_fee(value: Any) -> int:
    try:
        fee_cents = to_cents(value)
    except ValueError:
        raise CheckoutValidationError("Invalid delivery fee")
    if fee_cents < 0:
        raise CheckoutValidationError("Invalid delivery fee")
    return fee_cents


def _gateway_line(line: Dict[str, Any]) -> GatewayLineItem:
    if line['pricing_type'] == 'per_person':
        guests = line['guest_count'] or 1
        return GatewayLineItem(
            name=line['item_name'],
            unit_amount_cents=line['item_price_cents'],
            quantity=line['quantity'] * guests,
            description=f"{guests} guests",
        )
    return GatewayLineItem(line['item_name'], line['item_price_cents'], line['quantity'])


class CheckoutService:
    """
    结算编排服务

    请求中的小计/总额只作参考，全部以服务端重算结果为准。
    邮件不会在这里直接发送，而是追加到调用方提供的发件箱。
    """

    def __init__(self, db_manager: DatabaseManager, gateway: StripeGateway, settings: BusinessSettings,
                 base_url: str, bypass_code: str = ""):
        self.db = db_manager
        self.core_ops = CoreOperations(db_manager)
        self.query_ops = QueryOperations(db_manager)
        self.gateway = gateway
        self.settings = settings
        self.base_url = base_url.rstrip('/')
        self.bypass_code = bypass_code or ""

    def _is_bypass(self, promo_code: Optional[str]) -> bool:
        """
        Raises:
            CheckoutValidationError: 填了促销码但与测试密钥不符（未配置密钥时任何促销码都无效）
        """
        if not promo_code:
            return False

        if self.bypass_code and hmac.compare_digest(promo_code.encode(), self.bypass_code.encode()):
            return True

        raise CheckoutValidationError("Invalid promo code")

    def validate(self, payload: Dict[str, Any]) -> bool:
        """
        按固定顺序校验，第一个失败即返回

        Returns:
            是否走测试通道
        """
        if any(is_blank(payload.get(k)) for k in ('customer_name', 'customer_email', 'customer_phone')):
            raise CheckoutValidationError("Customer information is required")

        if is_blank(payload.get('customer_address')):
            raise CheckoutValidationError("Delivery address is required")

        if is_blank(payload.get('scheduled_date')) or is_blank(payload.get('scheduled_time')):
            raise CheckoutValidationError("Scheduled date and time are required")

        if not payload.get('items'):
            raise CheckoutValidationError("At least one item is required")

        is_bypass = self._is_bypass(payload.get('promo_code'))

        if not validate_date(payload['scheduled_date']):
            raise CheckoutValidationError("Invalid scheduled date")

        return is_bypass

    def _link_menu_items(self, lines: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """菜品已被删除时明细只保留名称和价格快照"""
        known = self.query_ops.existing_menu_item_ids(
            line['menu_item_id'] for line in lines if line['menu_item_id']
        )
        for line in lines:
            if line['menu_item_id'] and line['menu_item_id'] not in known:
                line['menu_item_id'] = None
        return lines

    def _order_fields(self, payload: Dict[str, Any], lines: List[Dict[str, Any]], delivery_fee_cents: int,
                      fulfillment_type: str, payment_status: Optional[str]) -> Dict[str, Any]:
        subtotal_cents = sum(line['line_total_cents'] for line in lines)
        return {
            'status': 'new',
            'payment_status': payment_status,
            'customer_name': payload['customer_name'].strip(),
            'customer_email': payload['customer_email'].strip(),
            'customer_phone': payload['customer_phone'].strip(),
            'customer_address': (payload.get('customer_address') or '').strip() or None,
            'fulfillment_type': fulfillment_type,
            'scheduled_date': payload['scheduled_date'],
            'scheduled_time': payload['scheduled_time'].strip(),
            'subtotal_cents': subtotal_cents,
            'delivery_fee_cents': delivery_fee_cents,
            'total_cents': subtotal_cents + delivery_fee_cents,
            'notes': payload.get('notes') or None,
        }

    def _enqueue_order_received(self, order_id: str, outbox: NotificationOutbox):
        order = self.query_ops.get_order(order_id)
        data = build_order_email_data(order, self.settings)
        outbox.order_received(data, self.settings.notification_email, self.settings.send_customer_confirmation)

    def checkout(self, payload: Dict[str, Any], outbox: NotificationOutbox) -> CheckoutResult:
        """
        结算入口

        Args:
            payload: snake_case 字段的结算请求
            outbox: 本次请求的发件箱

        Returns:
            CheckoutResult，包含支付跳转地址或测试通道地址

        Raises:
            CheckoutValidationError: 输入校验失败（不会创建订单）
            PaymentGatewayError: 支付会话创建失败（订单保留为 pending，无会话ID）
        """
        is_bypass = self.validate(payload)
        lines = self._link_menu_items(_price_lines(payload['items']))
        delivery_fee_cents = _parse_delivery_fee(payload.get('delivery_fee'))

        order = self._order_fields(
            payload, lines, delivery_fee_cents,
            fulfillment_type='delivery',
            payment_status='test_bypass' if is_bypass else 'pending'
        )
        order_id = self.core_ops.create_order(order, lines)['order_id']

        if is_bypass:
            logger.info(f"订单 {order_id} 使用测试促销码，跳过支付")
            self._enqueue_order_received(order_id, outbox)
            return CheckoutResult(
                order_id=order_id,
                bypass_url=f"{self.base_url}/checkout/success?bypass=true&order_id={order_id}"
            )

        try:
            session = self.gateway.create_checkout_session(
                line_items=[_gateway_line(line) for line in lines],
                customer_email=order['customer_email'],
                order_id=order_id,
                success_url=f"{self.base_url}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self.base_url}/checkout/cancelled?order_id={order_id}",
                delivery_fee_cents=delivery_fee_cents,
            )
        except Exception:
            logger.error(f"订单 {order_id} 创建支付会话失败，订单保持 pending 且无会话ID")
            raise

        self.core_ops.attach_checkout_session(order_id, session.session_id)
        return CheckoutResult(order_id=order_id, checkout_url=session.redirect_url)

    def place_direct_order(self, payload: Dict[str, Any], outbox: NotificationOutbox) -> str:
        """
        直接下单（不经过支付），支持自取

        Returns:
            订单ID
        """
        if any(is_blank(payload.get(k)) for k in ('customer_name', 'customer_email', 'customer_phone')):
            raise CheckoutValidationError("Missing required customer information")

        if is_blank(payload.get('scheduled_date')) or is_blank(payload.get('scheduled_time')):
            raise CheckoutValidationError("Please select a date and time")

        if not payload.get('items'):
            raise CheckoutValidationError("Cart is empty")

        fulfillment_type = payload.get('fulfillment_type') or 'delivery'
        if fulfillment_type not in FULFILLMENT_TYPES:
            raise CheckoutValidationError("Invalid fulfillment type")

        if fulfillment_type == 'delivery' and is_blank(payload.get('customer_address')):
            raise CheckoutValidationError("Delivery address is required")

        if not validate_date(payload['scheduled_date']):
            raise CheckoutValidationError("Invalid scheduled date")

        lines = self._link_menu_items(_price_lines(payload['items']))
        delivery_fee_cents = _parse_delivery_fee(payload.get('delivery_fee')) if fulfillment_type == 'delivery' else 0

        order = self._order_fields(payload, lines, delivery_fee_cents, fulfillment_type, payment_status=None)
        order_id = self.core_ops.create_order(order, lines)['order_id']

        self._enqueue_order_received(order_id, outbox)
        return order_id
