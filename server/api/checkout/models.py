# 结算相关的数据模型

from decimal import Decimal
from typing import List, Optional

from api.schemas import CamelModel


class CheckoutItem(CamelModel):
    """购物车中的一行"""
    menu_item_id: Optional[str] = None
    item_name: Optional[str] = None
    item_price: Optional[Decimal] = None
    pricing_type: Optional[str] = "fixed"
    quantity: Optional[int] = None
    guest_count: Optional[int] = None
    notes: Optional[str] = None


class CheckoutRequest(CamelModel):
    """
    结算请求

    字段都允许缺省，缺失项由结算服务按固定顺序给出错误信息；
    subtotal/total 只作参考，服务端会重新计算。
    """
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    scheduled_date: Optional[str] = None
    scheduled_time: Optional[str] = None
    notes: Optional[str] = None
    promo_code: Optional[str] = None
    items: Optional[List[CheckoutItem]] = None
    subtotal: Optional[Decimal] = None
    delivery_fee: Optional[Decimal] = None
    total: Optional[Decimal] = None


class CheckoutResponse(CamelModel):
    order_id: str
    checkout_url: Optional[str] = None
    bypass_url: Optional[str] = None


class SessionOrderSummary(CamelModel):
    """支付成功页展示的订单摘要"""
    id: str
    customer_name: str
    customer_email: str
    scheduled_date: str
    scheduled_time: str
    total: str
    payment_status: Optional[str] = None
