# 业务设置模块

from .routes import router as settings_router

__all__ = [
    "settings_router"
]
