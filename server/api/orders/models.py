# 订单相关的数据模型

from decimal import Decimal
from typing import List, Optional, Dict, Any

from pydantic import Field

from api.checkout.models import CheckoutItem
from api.schemas import CamelModel
from utils.money import format_cents


class DirectOrderRequest(CamelModel):
    """直接下单请求（不经过在线支付，支持自取）"""
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    fulfillment_type: Optional[str] = "delivery"
    scheduled_date: Optional[str] = None
    scheduled_time: Optional[str] = None
    notes: Optional[str] = None
    items: Optional[List[CheckoutItem]] = None
    subtotal: Optional[Decimal] = None
    delivery_fee: Optional[Decimal] = None
    total: Optional[Decimal] = None


class UpdateOrderStatusRequest(CamelModel):
    status: str = Field(..., description="new / confirmed / completed / cancelled")


class LookupItem(CamelModel):
    item_name: str
    quantity: int
    guest_count: Optional[int] = None
    line_total: str


class OrderLookupView(CamelModel):
    """
    顾客跟踪订单看到的信息：不含备注、联系方式和支付凭据
    """
    id: str
    status: str
    customer_name: str
    fulfillment_type: str
    scheduled_date: str
    scheduled_time: str
    items: List[LookupItem]
    subtotal: str
    delivery_fee: str
    total: str
    created_at: Optional[str] = None

    @classmethod
    def from_order(cls, order: Dict[str, Any]) -> "OrderLookupView":
        return cls(
            id=order['id'],
            status=order['status'],
            customer_name=order['customer_name'],
            fulfillment_type=order['fulfillment_type'],
            scheduled_date=order['scheduled_date'],
            scheduled_time=order['scheduled_time'],
            items=[
                LookupItem(
                    item_name=item['item_name'],
                    quantity=item['quantity'],
                    guest_count=item.get('guest_count'),
                    line_total=format_cents(item['line_total_cents'])
                )
                for item in order.get('items', [])
            ],
            subtotal=format_cents(order['subtotal_cents']),
            delivery_fee=format_cents(order['delivery_fee_cents']),
            total=format_cents(order['total_cents']),
            created_at=order.get('created_at')
        )
