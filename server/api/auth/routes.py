# 后台认证相关API路由

import logging
from typing import Dict, Any, Optional
from fastapi import APIRouter, HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .models import LoginRequest, CheckEmailRequest, SetupPasswordRequest, LoginResponse, AdminInfo, TokenData
from db.manager import DatabaseManager
from db.supporting_operations import SupportingOperations
from utils.config import Config
from utils.security import JWTManager, hash_password, verify_password
from utils.validators import is_blank
from utils.response import create_success_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["认证"])

MIN_PASSWORD_LENGTH = 8

# 初始化服务
config = Config()
jwt_manager = JWTManager(
    secret_key=config.get("auth.jwt_secret_key"),
    algorithm=config.get("auth.jwt_algorithm", "HS256"),
    access_token_expire_minutes=config.get("auth.access_token_expire_minutes", 60 * 24 * 7)
)
security = HTTPBearer(auto_error=False)


def get_database():
    """获取数据库连接（每个请求独立连接）"""
    db_config = config.get_database_config()
    db_manager = DatabaseManager(db_config["path"], auto_connect=True)
    try:
        yield db_manager
    finally:
        db_manager.close()


def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: DatabaseManager = Depends(get_database)
) -> TokenData:
    """获取当前管理员（后台接口使用）"""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    payload = jwt_manager.verify_token(credentials.credentials)
    if not payload or "admin_id" not in payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    if not payload.get("is_admin", False):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")

    admin = SupportingOperations(db).get_admin_by_id(payload["admin_id"])
    if not admin:
        logger.warning(f"令牌对应的管理员不存在: {payload.get('email')}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    return TokenData(
        admin_id=payload["admin_id"],
        email=payload.get("email", admin["email"]),
        is_admin=True,
        exp=payload.get("exp")
    )


def _issue_token(admin: Dict[str, Any]) -> Dict[str, Any]:
    access_token = jwt_manager.create_access_token({
        "admin_id": admin["id"],
        "email": admin["email"],
        "is_admin": True
    })

    response_data = LoginResponse(
        access_token=access_token,
        expires_in=jwt_manager.access_token_expire_minutes * 60,
        admin=AdminInfo(id=admin["id"], email=admin["email"], name=admin.get("name"))
    )
    return response_data.model_dump(by_alias=True)


@router.post("/login", response_model=Dict[str, Any])
async def login(
    login_request: LoginRequest,
    db: DatabaseManager = Depends(get_database)
):
    """
    管理员登录，返回 Bearer Token
    """
    if is_blank(login_request.email) or is_blank(login_request.password):
        raise HTTPException(status_code=400, detail="Email and password are required")

    support_ops = SupportingOperations(db)
    admin = support_ops.get_admin_by_email(login_request.email)

    if not admin:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if admin["must_set_password"] or not admin["password_hash"]:
        raise HTTPException(status_code=403, detail="Password not set")

    if not verify_password(login_request.password, admin["password_hash"]):
        logger.warning(f"管理员登录失败: {admin['email']}")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    logger.info(f"管理员登录: {admin['email']}")
    return create_success_response(data=_issue_token(admin), message="Login successful")


@router.post("/check-email", response_model=Dict[str, Any])
async def check_email(
    check_request: CheckEmailRequest,
    db: DatabaseManager = Depends(get_database)
):
    """
    检查邮箱是否需要先设置密码（不透露邮箱是否存在）
    """
    if is_blank(check_request.email):
        raise HTTPException(status_code=400, detail="Email is required")

    admin = SupportingOperations(db).get_admin_by_email(check_request.email)

    if admin and (admin["must_set_password"] or not admin["password_hash"]):
        return create_success_response(data={"requiresPasswordSetup": True, "email": admin["email"]})

    return create_success_response(data={"requiresPasswordSetup": False})


@router.post("/setup-password", response_model=Dict[str, Any])
async def setup_password(
    setup_request: SetupPasswordRequest,
    db: DatabaseManager = Depends(get_database)
):
    """
    首次设置密码，成功后直接登录
    """
    if is_blank(setup_request.email) or is_blank(setup_request.password):
        raise HTTPException(status_code=400, detail="Email and password are required")

    if setup_request.password != setup_request.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")

    if len(setup_request.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    support_ops = SupportingOperations(db)
    admin = support_ops.get_admin_by_email(setup_request.email)

    if not admin:
        raise HTTPException(status_code=404, detail="Admin user not found")

    if not admin["must_set_password"] and admin["password_hash"]:
        raise HTTPException(status_code=400, detail="Password already set. Please login.")

    support_ops.set_admin_password(admin["id"], hash_password(setup_request.password))
    logger.info(f"管理员已设置密码: {admin['email']}")

    return create_success_response(data=_issue_token(admin), message="Password set successfully")
