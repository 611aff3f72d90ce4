# 支付网关回调模块

from .routes import router as webhooks_router

__all__ = [
    "webhooks_router"
]
