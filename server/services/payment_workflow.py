# 支付状态对账（webhook + 轮询兜底）与后台订单状态流转

import logging
from typing import Optional, Dict, Any

from db.manager import DatabaseManager
from db.core_operations import CoreOperations
from db.query_operations import QueryOperations
from utils.exceptions import (
    InvalidStatusTransition, OrderNotFound, PaymentGatewayError
)
from utils.validators import validate_order_status
from .email_templates import build_order_email_data
from .notifications import NotificationOutbox
from .payment_gateway import StripeGateway, extract_object_id
from .settings_provider import BusinessSettings

logger = logging.getLogger(__name__)

EVENT_CHECKOUT_COMPLETED = 'checkout.session.completed'
EVENT_CHECKOUT_EXPIRED = 'checkout.session.expired'
EVENT_PAYMENT_FAILED = 'payment_intent.payment_failed'

# 事件处理结果
OUTCOME_APPLIED = 'applied'
OUTCOME_DUPLICATE = 'duplicate'
OUTCOME_IGNORED = 'ignored'

# 订单状态 -> 允许流转到的状态（同状态视为无操作，单独处理）
ORDER_TRANSITIONS = {
    'new': {'confirmed', 'completed', 'cancelled'},
    'confirmed': {'completed', 'cancelled'},
    'completed': set(),
    'cancelled': set(),
}

NOTIFY_STATUSES = ('confirmed', 'cancelled')

# 尚未扣款的支付状态，不能直接完成订单
UNCAPTURED_PAYMENT_STATUSES = ('pending', 'authorized')


def _order_id_from_metadata(obj: Dict[str, Any]) -> Optional[str]:
    metadata = obj.get('metadata') or {}
    return metadata.get('orderId') or None


class PaymentReconciler:
    """
    支付状态对账

    webhook 与支付成功页轮询共用同一个授权入口：
    只有把 pending 改成 authorized 的那次调用会追加新订单通知。
    """

    def __init__(self, db_manager: DatabaseManager, gateway: StripeGateway, settings: BusinessSettings):
        self.core_ops = CoreOperations(db_manager)
        self.query_ops = QueryOperations(db_manager)
        self.gateway = gateway
        self.settings = settings

    def authorize(self, order_id: str, payment_intent_id: Optional[str], outbox: NotificationOutbox) -> bool:
        """
        pending -> authorized；订单已被取消时改为释放这笔迟到的预授权

        Returns:
            本次调用是否完成了状态变更
        """
        changed = self.core_ops.mark_payment_authorized(order_id, payment_intent_id)
        if not changed:
            if self.core_ops.mark_late_authorization_cancelled(order_id, payment_intent_id):
                self._release_late_authorization(order_id, payment_intent_id)
                return True
            logger.info(f"订单 {order_id} 不处于 pending（或不存在），跳过授权处理")
            return False

        order = self.query_ops.get_order(order_id)
        data = build_order_email_data(order, self.settings)
        outbox.order_received(data, self.settings.notification_email, self.settings.send_customer_confirmation)

        logger.info(f"订单 {order_id} 支付已授权，支付意图 {payment_intent_id}")
        return True

    def _release_late_authorization(self, order_id: str, payment_intent_id: Optional[str]):
        if not payment_intent_id:
            logger.error(f"已取消订单 {order_id} 收到授权但缺少支付意图ID，无法释放预授权")
            return

        try:
            self.gateway.cancel_payment(payment_intent_id)
        except PaymentGatewayError as e:
            logger.error(f"已取消订单 {order_id} 释放迟到的预授权失败，需要人工处理: {str(e)}")
            return

        logger.info(f"订单 {order_id} 已取消，迟到的预授权 {payment_intent_id} 已释放")

    def handle_event(self, event: Dict[str, Any], outbox: NotificationOutbox) -> str:
        """
        处理已通过签名校验的 webhook 事件

        无法关联订单的事件只记录日志并丢弃；数据库异常向上抛出，由路由返回500让发送方重试。

        Returns:
            applied / duplicate / ignored
        """
        event_type = event.get('type')
        obj = (event.get('data') or {}).get('object') or {}
        logger.info(f"收到支付事件: {event_type} ({event.get('id')})")

        if event_type not in (EVENT_CHECKOUT_COMPLETED, EVENT_CHECKOUT_EXPIRED, EVENT_PAYMENT_FAILED):
            logger.info(f"未处理的事件类型: {event_type}")
            return OUTCOME_IGNORED

        order_id = _order_id_from_metadata(obj)
        if not order_id:
            logger.error(f"事件 {event_type} 缺少 metadata.orderId，已丢弃")
            return OUTCOME_IGNORED

        if event_type == EVENT_CHECKOUT_COMPLETED:
            changed = self.authorize(order_id, extract_object_id(obj.get('payment_intent')), outbox)
        elif event_type == EVENT_CHECKOUT_EXPIRED:
            changed = self.core_ops.mark_checkout_expired(order_id)
            if changed:
                logger.info(f"订单 {order_id} 支付会话已过期，订单取消")
        else:
            changed = self.core_ops.mark_payment_failed(order_id)
            if changed:
                logger.info(f"订单 {order_id} 支付失败")

        if not changed and self.query_ops.get_order(order_id, include_items=False) is None:
            logger.warning(f"事件 {event_type} 关联的订单 {order_id} 不存在")
            return OUTCOME_IGNORED

        return OUTCOME_APPLIED if changed else OUTCOME_DUPLICATE

    def reconcile_session(self, session_id: str, outbox: NotificationOutbox) -> Dict[str, Any]:
        """
        支付成功页轮询：订单仍为 pending 时直接向网关查询会话状态

        网关查询失败不影响返回当前订单状态。

        Raises:
            OrderNotFound: 没有订单关联该会话
        """
        order = self.query_ops.get_order_by_session(session_id)
        if not order:
            raise OrderNotFound(session_id)

        if order['payment_status'] != 'pending':
            return order

        try:
            status = self.gateway.retrieve_session(session_id)
        except PaymentGatewayError as e:
            logger.warning(f"查询支付会话 {session_id} 失败: {str(e)}")
            return order

        if status.is_completed:
            self.authorize(order['id'], status.payment_intent_id, outbox)
        elif status.is_expired:
            if self.core_ops.mark_checkout_expired(order['id']):
                logger.info(f"轮询发现订单 {order['id']} 支付会话已过期")

        return self.query_ops.get_order_by_session(session_id)


class OrderStatusManager:
    """
    后台订单状态流转

    确认订单时若已预授权则先扣款，扣款失败中止流转；
    取消订单时尝试释放预授权，释放失败只记录日志。
    """

    def __init__(self, db_manager: DatabaseManager, gateway: StripeGateway, settings: BusinessSettings):
        self.core_ops = CoreOperations(db_manager)
        self.query_ops = QueryOperations(db_manager)
        self.gateway = gateway
        self.settings = settings

    def _get_order(self, order_id: str) -> Dict[str, Any]:
        order = self.query_ops.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        return order

    def _set_status(self, order: Dict[str, Any], new_status: str) -> bool:
        return self.core_ops.set_order_status(order['id'], order['status'], new_status, order['payment_status'])

    def _confirm(self, order: Dict[str, Any]) -> bool:
        if order['payment_status'] == 'pending':
            raise InvalidStatusTransition("Payment has not been authorized yet")

        if order['payment_status'] != 'authorized':
            return self._set_status(order, 'confirmed')

        payment_intent_id = order.get('stripe_payment_intent_id')
        if not payment_intent_id:
            raise PaymentGatewayError(f"Order {order['id']} has no payment intent to capture")

        self.gateway.capture_payment(payment_intent_id)

        changed = self.core_ops.confirm_with_capture(order['id'], order['status'])
        if not changed:
            logger.error(f"订单 {order['id']} 已扣款，但状态在此期间被修改，需要人工核对")
        return changed

    def _cancel(self, order: Dict[str, Any]) -> bool:
        if order['payment_status'] != 'authorized':
            return self._set_status(order, 'cancelled')

        payment_intent_id = order.get('stripe_payment_intent_id')
        if payment_intent_id:
            try:
                self.gateway.cancel_payment(payment_intent_id)
            except PaymentGatewayError as e:
                logger.error(f"订单 {order['id']} 释放预授权失败，需要人工处理: {str(e)}")
        else:
            logger.error(f"订单 {order['id']} 已授权但缺少支付意图ID，无法释放预授权")

        return self.core_ops.cancel_with_release(order['id'], order['status'])

    def change_status(self, order_id: str, new_status: str, outbox: NotificationOutbox) -> Dict[str, Any]:
        """
        修改订单状态

        Returns:
            修改后的订单（含明细）

        Raises:
            OrderNotFound: 订单不存在
            InvalidStatusTransition: 状态值未知或流转不合法
            PaymentGatewayError: 确认订单时扣款失败（订单保持原状态）
        """
        if not validate_order_status(new_status):
            raise InvalidStatusTransition("Invalid status")

        order = self._get_order(order_id)
        current = order['status']

        if new_status == current:
            return order

        if new_status not in ORDER_TRANSITIONS.get(current, set()):
            raise InvalidStatusTransition("Invalid status transition")

        if new_status == 'confirmed':
            changed = self._confirm(order)
        elif new_status == 'cancelled':
            changed = self._cancel(order)
        else:
            if order['payment_status'] in UNCAPTURED_PAYMENT_STATUSES:
                raise InvalidStatusTransition("Payment has not been captured")
            changed = self._set_status(order, new_status)

        if not changed:
            raise InvalidStatusTransition("Order was modified concurrently, please retry")

        updated = self._get_order(order_id)
        logger.info(f"订单 {order_id} 状态 {current} -> {new_status}，支付状态 {updated['payment_status']}")

        if new_status in NOTIFY_STATUSES:
            outbox.status_update(build_order_email_data(updated, self.settings), new_status)

        return updated

    def soft_delete(self, order_id: str, outbox: NotificationOutbox) -> Dict[str, Any]:
        """
        软删除：转为 cancelled；已取消的订单直接返回，不再发邮件
        """
        order = self._get_order(order_id)
        if order['status'] == 'cancelled':
            return order
        if order['status'] == 'completed':
            raise InvalidStatusTransition("Completed orders cannot be cancelled")

        return self.change_status(order_id, 'cancelled', outbox)
