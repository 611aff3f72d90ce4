# 订单模块

from .routes import router as orders_router
from .models import DirectOrderRequest, UpdateOrderStatusRequest, OrderLookupView

__all__ = [
    "orders_router",
    "DirectOrderRequest",
    "UpdateOrderStatusRequest",
    "OrderLookupView"
]
