# 核心业务写操作：订单创建与状态流转

import uuid
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any, Iterable

from .manager import DatabaseManager

# 允许通过 update_order_fields 写入的列
UPDATABLE_ORDER_COLUMNS = {
    'status',
    'payment_status',
    'stripe_session_id',
    'stripe_payment_intent_id',
    'paid_at',
}

ORDER_COLUMNS = [
    'id', 'status', 'payment_status', 'customer_name', 'customer_email',
    'customer_phone', 'customer_address', 'fulfillment_type', 'scheduled_date',
    'scheduled_time', 'subtotal_cents', 'delivery_fee_cents', 'total_cents', 'notes'
]

ITEM_COLUMNS = [
    'order_id', 'menu_item_id', 'item_name', 'item_price_cents', 'pricing_type',
    'quantity', 'guest_count', 'line_total_cents', 'notes'
]


def utc_now() -> str:
    """与SQLite CURRENT_TIMESTAMP一致的UTC时间格式"""
    return datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')


def generate_order_id() -> str:
    return uuid.uuid4().hex


class CoreOperations:
    """
    核心业务写操作类

    所有订单更新都是只涉及调用方所属字段的部分更新；
    支付状态流转使用带前置条件的 UPDATE（比较并交换），
    返回值表示本次调用是否真正改变了数据行。
    """
    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def create_order(self, order: Dict[str, Any], items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        在同一事务中写入订单及全部明细，明细写入失败时订单不会存在

        Args:
            order: 订单字段（不含id，金额以分为单位）
            items: 订单明细列表，line_total_cents 已计算好

        Returns:
            {'order_id': ..., 'created_at': ...}
        """
        if not items:
            raise ValueError("订单至少需要一条明细")

        if order['total_cents'] != order['subtotal_cents'] + order['delivery_fee_cents']:
            raise ValueError("订单总额与小计、配送费不一致")

        order_id = generate_order_id()
        created_at = utc_now()

        values = {**order, 'id': order_id}
        order_placeholders = ', '.join('?' for _ in ORDER_COLUMNS)
        item_placeholders = ', '.join('?' for _ in ITEM_COLUMNS)

        with self.db.transaction() as conn:
            conn.execute(
                f"INSERT INTO orders ({', '.join(ORDER_COLUMNS)}, created_at, updated_at) "
                f"VALUES ({order_placeholders}, ?, ?)",
                [values.get(col) for col in ORDER_COLUMNS] + [created_at, created_at]
            )

            for item in items:
                item_values = {**item, 'order_id': order_id}
                conn.execute(
                    f"INSERT INTO order_items ({', '.join(ITEM_COLUMNS)}) VALUES ({item_placeholders})",
                    [item_values.get(col) for col in ITEM_COLUMNS]
                )

        self.db.logger.info(
            f"订单 {order_id} 创建成功，明细 {len(items)} 条，总额 {order['total_cents']} 分，"
            f"支付状态 {order.get('payment_status')}"
        )

        return {'order_id': order_id, 'created_at': created_at}

    def update_order_fields(self, order_id: str, updates: Dict[str, Any],
                            expected: Optional[Dict[str, Iterable[str]]] = None) -> bool:
        """
        条件部分更新

        Args:
            order_id: 订单ID
            updates: 要写入的列 -> 值
            expected: 前置条件，列 -> 允许的当前值集合

        Returns:
            是否有数据行被更新（前置条件不满足或订单不存在时为False）
        """
        unknown = set(updates) - UPDATABLE_ORDER_COLUMNS
        if unknown:
            raise ValueError(f"不允许更新的订单字段: {sorted(unknown)}")

        set_parts = [f"{col} = ?" for col in updates] + ["updated_at = ?"]
        params: List[Any] = list(updates.values()) + [utc_now()]

        where_parts = ["id = ?"]
        params.append(order_id)

        for col, allowed in (expected or {}).items():
            allowed = list(allowed)
            values = [v for v in allowed if v is not None]
            clauses = []
            if values:
                clauses.append(f"{col} IN ({', '.join('?' for _ in values)})")
                params.extend(values)
            if len(values) != len(allowed):
                clauses.append(f"{col} IS NULL")
            where_parts.append(f"({' OR '.join(clauses)})" if clauses else "0")

        with self.db.transaction() as conn:
            cursor = conn.execute(
                f"UPDATE orders SET {', '.join(set_parts)} WHERE {' AND '.join(where_parts)}",
                params
            )
            changed = cursor.rowcount == 1

        return changed

    def attach_checkout_session(self, order_id: str, session_id: str) -> bool:
        return self.update_order_fields(order_id, {'stripe_session_id': session_id})

    def mark_payment_authorized(self, order_id: str, payment_intent_id: Optional[str]) -> bool:
        """
        pending -> authorized，webhook和轮询共用；只有一个调用方能拿到True

        已取消的订单不会进入 authorized，见 mark_late_authorization_cancelled
        """
        updates = {'payment_status': 'authorized'}
        if payment_intent_id:
            updates['stripe_payment_intent_id'] = payment_intent_id
        return self.update_order_fields(
            order_id, updates,
            expected={'payment_status': ['pending'], 'status': ['new', 'confirmed']}
        )

    def mark_late_authorization_cancelled(self, order_id: str, payment_intent_id: Optional[str]) -> bool:
        """
        订单已取消后才完成的授权：pending -> cancelled，由拿到True的调用方释放预授权
        """
        updates = {'payment_status': 'cancelled'}
        if payment_intent_id:
            updates['stripe_payment_intent_id'] = payment_intent_id
        return self.update_order_fields(
            order_id, updates,
            expected={'payment_status': ['pending'], 'status': ['cancelled']}
        )

    def mark_checkout_expired(self, order_id: str) -> bool:
        """
        pending -> failed，同时订单状态 -> cancelled（已完成的订单不动）
        """
        return self.update_order_fields(
            order_id,
            {'payment_status': 'failed', 'status': 'cancelled'},
            expected={'payment_status': ['pending'], 'status': ['new', 'confirmed', 'cancelled']}
        )

    def mark_payment_failed(self, order_id: str) -> bool:
        return self.update_order_fields(
            order_id,
            {'payment_status': 'failed'},
            expected={'payment_status': ['pending', 'authorized']}
        )

    def confirm_with_capture(self, order_id: str, from_status: str) -> bool:
        """
        扣款成功后：authorized -> paid，订单 -> confirmed
        """
        return self.update_order_fields(
            order_id,
            {'status': 'confirmed', 'payment_status': 'paid', 'paid_at': utc_now()},
            expected={'status': [from_status], 'payment_status': ['authorized']}
        )

    def cancel_with_release(self, order_id: str, from_status: str) -> bool:
        """
        订单 -> cancelled，授权状态 -> cancelled
        """
        return self.update_order_fields(
            order_id,
            {'status': 'cancelled', 'payment_status': 'cancelled'},
            expected={'status': [from_status], 'payment_status': ['authorized']}
        )

    def set_order_status(self, order_id: str, from_status: str, to_status: str,
                         payment_status: Optional[str]) -> bool:
        """
        只改订单状态；支付状态（可为NULL）在此期间被改动时返回False
        """
        return self.update_order_fields(
            order_id,
            {'status': to_status},
            expected={'status': [from_status], 'payment_status': [payment_status]}
        )
