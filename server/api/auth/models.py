# 后台认证相关的数据模型

from typing import Optional
from pydantic import BaseModel, Field

from api.schemas import CamelModel


class LoginRequest(CamelModel):
    """登录请求模型"""
    email: Optional[str] = Field(None, description="管理员邮箱")
    password: Optional[str] = Field(None, description="密码")


class CheckEmailRequest(CamelModel):
    email: Optional[str] = None


class SetupPasswordRequest(CamelModel):
    """首次设置密码"""
    email: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None


class AdminInfo(CamelModel):
    id: str
    email: str
    name: Optional[str] = None


class LoginResponse(CamelModel):
    """登录响应模型"""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    admin: AdminInfo


class TokenData(BaseModel):
    """JWT Token数据模型"""
    admin_id: str
    email: str
    is_admin: bool = False
    exp: Optional[int] = None
