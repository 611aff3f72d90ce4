# 结算模块

from .routes import router as checkout_router
from .models import CheckoutRequest, CheckoutResponse, SessionOrderSummary

__all__ = [
    "checkout_router",
    "CheckoutRequest",
    "CheckoutResponse",
    "SessionOrderSummary"
]
