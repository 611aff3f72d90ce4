# 各路由模块共用的数据模型基类和输出转换

from typing import Dict, Any, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from utils.money import format_cents


class CamelModel(BaseModel):
    """JSON 字段使用 camelCase，同时接受 snake_case"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderItemView(CamelModel):
    id: int
    menu_item_id: Optional[str] = None
    item_name: str
    item_price: str
    pricing_type: str
    quantity: int
    guest_count: Optional[int] = None
    line_total: str
    notes: Optional[str] = None


class OrderView(CamelModel):
    """后台看到的完整订单"""
    id: str
    status: str
    payment_status: Optional[str] = None
    customer_name: str
    customer_email: str
    customer_phone: str
    customer_address: Optional[str] = None
    fulfillment_type: str
    scheduled_date: str
    scheduled_time: str
    subtotal: str
    delivery_fee: str
    total: str
    notes: Optional[str] = None
    stripe_session_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    paid_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    items: List[OrderItemView] = []


def item_to_view(item: Dict[str, Any]) -> OrderItemView:
    return OrderItemView(
        id=item['id'],
        menu_item_id=item.get('menu_item_id'),
        item_name=item['item_name'],
        item_price=format_cents(item['item_price_cents']),
        pricing_type=item['pricing_type'],
        quantity=item['quantity'],
        guest_count=item.get('guest_count'),
        line_total=format_cents(item['line_total_cents']),
        notes=item.get('notes'),
    )


def order_to_view(order: Dict[str, Any]) -> Dict[str, Any]:
    """数据库订单字典 -> camelCase 响应数据"""
    view = OrderView(
        id=order['id'],
        status=order['status'],
        payment_status=order.get('payment_status'),
        customer_name=order['customer_name'],
        customer_email=order['customer_email'],
        customer_phone=order['customer_phone'],
        customer_address=order.get('customer_address'),
        fulfillment_type=order['fulfillment_type'],
        scheduled_date=order['scheduled_date'],
        scheduled_time=order['scheduled_time'],
        subtotal=format_cents(order['subtotal_cents']),
        delivery_fee=format_cents(order['delivery_fee_cents']),
        total=format_cents(order['total_cents']),
        notes=order.get('notes'),
        stripe_session_id=order.get('stripe_session_id'),
        stripe_payment_intent_id=order.get('stripe_payment_intent_id'),
        paid_at=order.get('paid_at'),
        created_at=order.get('created_at'),
        updated_at=order.get('updated_at'),
        items=[item_to_view(item) for item in order.get('items', [])],
    )
    return view.model_dump(by_alias=True)
