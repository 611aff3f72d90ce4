# 后台认证模块

from .routes import router as auth_router, get_database, get_current_admin
from .models import LoginRequest, LoginResponse, TokenData

__all__ = [
    "auth_router",
    "get_database",
    "get_current_admin",
    "LoginRequest",
    "LoginResponse",
    "TokenData"
]
